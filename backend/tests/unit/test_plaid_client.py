"""Unit tests for PlaidClient."""

import json
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import urllib3
from plaid import ApiException

from integrations.exceptions import ConfigurationError, ExchangeError, UpstreamError
from integrations.plaid_client import PlaidClient, _parse_error_body


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _settings(ms, client_id, secret):
    ms.PLAID_CLIENT_ID = client_id
    ms.PLAID_SECRET = secret
    ms.PLAID_ENVIRONMENT = "sandbox"
    ms.PLAID_REQUEST_TIMEOUT = 10.0
    ms.plaid_products = ["transactions"]
    ms.plaid_country_codes = ["US"]


@pytest.fixture
def mock_settings():
    """Fixture that mocks settings with configured Plaid credentials."""
    with patch("integrations.plaid_client.settings") as ms:
        _settings(ms, "test-client-id", "test-secret")
        yield ms


@pytest.fixture
def mock_empty_settings():
    """Fixture that mocks settings with empty Plaid credentials."""
    with patch("integrations.plaid_client.settings") as ms:
        _settings(ms, "", "")
        yield ms


@pytest.fixture
def mock_plaid_api():
    """Fixture that provides a mocked PlaidApi."""
    with patch("integrations.plaid_client.PlaidApi") as MockCls:
        api_instance = MagicMock()
        MockCls.return_value = api_instance
        yield api_instance


def _api_exception(status: int, error_code: str, message: str = "") -> ApiException:
    exc = ApiException(status=status, reason="Bad Request")
    exc.body = json.dumps({"error_code": error_code, "error_message": message})
    return exc


@pytest.fixture
def sample_accounts_response():
    """Sample accounts_get response from Plaid."""
    return {
        "item": {"item_id": "item-1", "institution_id": "ins_3"},
        "accounts": [
            {
                "account_id": "acc_checking",
                "name": "Plaid Checking",
                "mask": "0000",
                "type": "depository",
                "subtype": "checking",
                "balances": {"current": 110.0, "available": 100.0},
            },
            {
                "account_id": "acc_credit",
                "name": "Plaid Credit Card",
                "mask": "3333",
                "type": "credit",
                "subtype": "credit card",
                "balances": {"current": 410.0},
            },
            {
                "account_id": "acc_no_balance",
                "name": None,
                "official_name": "Official Savings",
                "mask": None,
                "type": "depository",
                "subtype": None,
                "balances": {"current": None},
            },
        ],
    }


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestConfiguration:
    def test_is_configured(self, mock_settings):
        assert PlaidClient().is_configured() is True

    def test_not_configured_without_secret(self, mock_empty_settings):
        assert PlaidClient(client_id="id-only").is_configured() is False

    def test_missing_credentials_raise_before_any_request(self, mock_empty_settings):
        with patch("integrations.plaid_client.PlaidApi") as MockCls:
            client = PlaidClient()
            with pytest.raises(ConfigurationError):
                client.create_link_token("user-1")
            with pytest.raises(ConfigurationError):
                client.exchange_public_token("public-token")
            with pytest.raises(ConfigurationError):
                client.get_accounts("access-token")
        MockCls.assert_not_called()

    def test_development_environment_host(self, mock_settings):
        with patch("integrations.plaid_client.PlaidApi"), \
                patch("integrations.plaid_client.ApiClient"), \
                patch("integrations.plaid_client.Configuration") as MockConfig:
            PlaidClient(environment="development")._get_api()
        assert MockConfig.call_args.kwargs["host"] == "https://development.plaid.com"

    def test_unknown_environment_falls_back_to_sandbox(self, mock_settings):
        from plaid import Environment

        with patch("integrations.plaid_client.PlaidApi"), \
                patch("integrations.plaid_client.ApiClient"), \
                patch("integrations.plaid_client.Configuration") as MockConfig:
            PlaidClient(environment="staging")._get_api()
        assert MockConfig.call_args.kwargs["host"] == Environment.Sandbox


# ---------------------------------------------------------------------------
# Link token
# ---------------------------------------------------------------------------


class TestCreateLinkToken:
    def test_returns_link_token(self, mock_settings, mock_plaid_api):
        mock_plaid_api.link_token_create.return_value = {"link_token": "link-sandbox-123"}

        token = PlaidClient().create_link_token("user-1")

        assert token == "link-sandbox-123"
        request = mock_plaid_api.link_token_create.call_args.args[0]
        assert request.user.client_user_id == "user-1"
        assert request.client_name == "DoughJo Financial App"
        assert mock_plaid_api.link_token_create.call_args.kwargs["_request_timeout"] == 10.0

    def test_includes_webhook_when_given(self, mock_settings, mock_plaid_api):
        mock_plaid_api.link_token_create.return_value = {"link_token": "link-sandbox-123"}

        PlaidClient().create_link_token("user-1", webhook_url="https://example.com/api/plaid/webhook")

        request = mock_plaid_api.link_token_create.call_args.args[0]
        assert request.webhook == "https://example.com/api/plaid/webhook"

    def test_api_error_raises_upstream_error(self, mock_settings, mock_plaid_api):
        mock_plaid_api.link_token_create.side_effect = _api_exception(
            400, "INVALID_API_KEYS", "invalid client_id or secret provided"
        )

        with pytest.raises(UpstreamError) as exc_info:
            PlaidClient().create_link_token("user-1")

        assert exc_info.value.status_code == 400
        assert "INVALID_API_KEYS" in exc_info.value.body
        assert "invalid client_id" in str(exc_info.value)

    def test_timeout_raises_upstream_error(self, mock_settings, mock_plaid_api):
        mock_plaid_api.link_token_create.side_effect = urllib3.exceptions.ConnectTimeoutError(
            "timed out"
        )

        with pytest.raises(UpstreamError):
            PlaidClient().create_link_token("user-1")

    def test_empty_link_token_raises(self, mock_settings, mock_plaid_api):
        mock_plaid_api.link_token_create.return_value = {"link_token": ""}

        with pytest.raises(UpstreamError):
            PlaidClient().create_link_token("user-1")


# ---------------------------------------------------------------------------
# Token exchange
# ---------------------------------------------------------------------------


class TestExchangePublicToken:
    def test_returns_access_token_and_item_id(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_public_token_exchange.return_value = {
            "access_token": "access-sandbox-1",
            "item_id": "item-1",
            "request_id": "req",
        }

        result = PlaidClient().exchange_public_token("public-sandbox-1")

        assert result == {"access_token": "access-sandbox-1", "item_id": "item-1"}

    def test_invalid_public_token_raises_exchange_error(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_public_token_exchange.side_effect = _api_exception(
            400, "INVALID_PUBLIC_TOKEN", "provided public token is expired"
        )

        with pytest.raises(ExchangeError) as exc_info:
            PlaidClient().exchange_public_token("public-expired")

        assert exc_info.value.error_code == "INVALID_PUBLIC_TOKEN"

    def test_other_400_is_upstream_error(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_public_token_exchange.side_effect = _api_exception(
            400, "INVALID_API_KEYS", "bad keys"
        )

        with pytest.raises(UpstreamError):
            PlaidClient().exchange_public_token("public-sandbox-1")

    def test_server_error_is_retriable(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_public_token_exchange.side_effect = _api_exception(
            500, "INTERNAL_SERVER_ERROR"
        )

        with pytest.raises(UpstreamError) as exc_info:
            PlaidClient().exchange_public_token("public-sandbox-1")

        assert exc_info.value.retriable is True

    def test_missing_access_token_raises(self, mock_settings, mock_plaid_api):
        mock_plaid_api.item_public_token_exchange.return_value = {"item_id": "item-1"}

        with pytest.raises(UpstreamError):
            PlaidClient().exchange_public_token("public-sandbox-1")


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


class TestGetAccounts:
    def test_parses_accounts(self, mock_settings, mock_plaid_api, sample_accounts_response):
        mock_plaid_api.accounts_get.return_value = sample_accounts_response

        snapshot = PlaidClient().get_accounts("access-sandbox-1")

        assert snapshot.item_id == "item-1"
        assert snapshot.institution_id == "ins_3"
        assert [a.account_id for a in snapshot.accounts] == [
            "acc_checking", "acc_credit", "acc_no_balance",
        ]
        checking, credit, no_balance = snapshot.accounts
        assert checking.current_balance == Decimal("110.0")
        assert checking.subtype == "checking"
        # Raw Plaid sign is preserved; normalization happens at write time
        assert credit.current_balance == Decimal("410.0")
        assert credit.type == "credit"
        assert no_balance.current_balance is None
        assert no_balance.name == "Official Savings"

    def test_skips_accounts_without_id(self, mock_settings, mock_plaid_api):
        mock_plaid_api.accounts_get.return_value = {
            "item": {},
            "accounts": [{"name": "ghost", "balances": {}}],
        }

        snapshot = PlaidClient().get_accounts("access-sandbox-1")

        assert snapshot.accounts == []
        assert snapshot.item_id is None

    def test_item_login_required_raises_upstream_error(self, mock_settings, mock_plaid_api):
        mock_plaid_api.accounts_get.side_effect = _api_exception(
            400, "ITEM_LOGIN_REQUIRED", "the login details of this item have changed"
        )

        with pytest.raises(UpstreamError) as exc_info:
            PlaidClient().get_accounts("access-sandbox-1")

        assert "ITEM_LOGIN_REQUIRED" in str(exc_info.value)
        assert exc_info.value.retriable is False


class TestParseErrorBody:
    def test_parses_code_and_message(self):
        exc = _api_exception(400, "INVALID_PUBLIC_TOKEN", "expired")
        assert _parse_error_body(exc) == ("INVALID_PUBLIC_TOKEN", "expired")

    def test_non_json_body(self):
        exc = ApiException(status=502, reason="Bad Gateway")
        exc.body = "<html>bad gateway</html>"
        assert _parse_error_body(exc) == ("", "")

    def test_missing_body(self):
        exc = ApiException(status=502, reason="Bad Gateway")
        assert _parse_error_body(exc) == ("", "")
