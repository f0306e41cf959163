"""Supabase Auth (GoTrue) client used to revoke a session on sign-out."""

import logging

import httpx

from config import settings
from integrations.exceptions import UpstreamError

logger = logging.getLogger(__name__)


class SupabaseAuthClient:
    """Calls ``POST /auth/v1/logout`` for a bearer token.

    Only sign-out is implemented; sign-in, OAuth and password flows stay
    with the Supabase JS client in the browser.
    """

    def __init__(
        self,
        url: str | None = None,
        anon_key: str | None = None,
        timeout: float = 5.0,
    ):
        self._url = (url or settings.SUPABASE_URL).rstrip("/")
        self._anon_key = anon_key or settings.SUPABASE_ANON_KEY
        self._client = httpx.Client(
            base_url=f"{self._url}/auth/v1" if self._url else "http://localhost",
            headers={"apikey": self._anon_key} if self._anon_key else {},
            timeout=timeout,
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def is_configured(self) -> bool:
        return bool(self._url) and bool(self._anon_key)

    def sign_out(self, access_token: str | None = None) -> None:
        """Revoke ``access_token`` at Supabase.

        Does nothing when Supabase is not configured or there is no
        token to revoke.

        Raises:
            UpstreamError: Supabase answered non-2xx or could not be reached.
        """
        if not self.is_configured():
            logger.debug("Supabase not configured, skipping remote sign-out")
            return
        if not access_token:
            logger.debug("No access token stored, skipping remote sign-out")
            return

        try:
            response = self._client.post(
                "/logout",
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Supabase sign-out failed: {e}", provider_name="Supabase") from e

        if response.status_code >= 400:
            raise UpstreamError(
                f"Supabase sign-out failed: {response.status_code}",
                provider_name="Supabase",
                status_code=response.status_code,
                body=response.text,
            )
        logger.info("Signed out of Supabase")
