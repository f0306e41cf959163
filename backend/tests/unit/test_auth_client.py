"""Unit tests for SupabaseAuthClient (mocked httpx)."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from integrations.auth_client import SupabaseAuthClient
from integrations.exceptions import UpstreamError


@pytest.fixture
def client():
    c = SupabaseAuthClient(url="https://project.supabase.co/", anon_key="anon-key")
    yield c
    c.close()


def _response(status_code=204, text=""):
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.text = text
    return mock_response


class TestSignOut:
    def test_posts_logout_with_bearer(self, client):
        with patch.object(client._client, "post", return_value=_response()) as mock_post:
            client.sign_out("jwt-abc")

        mock_post.assert_called_once_with(
            "/logout", headers={"Authorization": "Bearer jwt-abc"}
        )

    def test_base_url_and_api_key(self, client):
        assert str(client._client.base_url).rstrip("/") == "https://project.supabase.co/auth/v1"
        assert client._client.headers["apikey"] == "anon-key"

    def test_no_token_skips_request(self, client):
        with patch.object(client._client, "post") as mock_post:
            client.sign_out(None)
        mock_post.assert_not_called()

    def test_error_status_raises(self, client):
        with patch.object(client._client, "post", return_value=_response(500, "oops")):
            with pytest.raises(UpstreamError) as exc_info:
                client.sign_out("jwt-abc")
        assert exc_info.value.provider_name == "Supabase"
        assert exc_info.value.status_code == 500

    def test_network_error_raises(self, client):
        with patch.object(client._client, "post", side_effect=httpx.ConnectError("refused")):
            with pytest.raises(UpstreamError):
                client.sign_out("jwt-abc")


def test_unconfigured_is_noop():
    with patch("integrations.auth_client.settings") as ms:
        ms.SUPABASE_URL = ""
        ms.SUPABASE_ANON_KEY = ""
        client = SupabaseAuthClient()

    assert client.is_configured() is False
    with patch.object(client._client, "post") as mock_post:
        client.sign_out("jwt-abc")
    mock_post.assert_not_called()
