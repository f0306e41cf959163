"""Tests for the integration exception hierarchy."""

import pytest

from integrations.exceptions import (
    ConfigurationError,
    ExchangeError,
    IntegrationError,
    PersistenceError,
    UpstreamError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "cls", [ConfigurationError, ExchangeError, PersistenceError, UpstreamError]
    )
    def test_subclasses_integration_error(self, cls):
        assert issubclass(cls, IntegrationError)

    def test_default_provider_is_plaid(self):
        assert ConfigurationError("missing").provider_name == "Plaid"

    def test_provider_name_carried(self):
        err = UpstreamError("down", provider_name="OpenAI")
        assert err.provider_name == "OpenAI"
        assert str(err) == "down"


class TestUpstreamError:
    @pytest.mark.parametrize("status,expected", [
        (429, True),
        (500, True),
        (503, True),
        (400, False),
        (401, False),
        (None, False),
    ])
    def test_retriable(self, status, expected):
        assert UpstreamError("x", status_code=status).retriable is expected

    def test_keeps_body(self):
        err = UpstreamError("x", status_code=400, body='{"error_code": "INVALID_API_KEYS"}')
        assert "INVALID_API_KEYS" in err.body


def test_exchange_error_code():
    err = ExchangeError("expired", error_code="INVALID_PUBLIC_TOKEN")
    assert err.error_code == "INVALID_PUBLIC_TOKEN"
