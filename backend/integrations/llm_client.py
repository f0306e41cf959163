"""OpenAI chat-completions client (direct HTTP via httpx)."""

import logging

import httpx

from config import settings
from integrations.exceptions import ConfigurationError, UpstreamError

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAIChatClient:
    """Minimal chat-completions wrapper: one system prompt, one user message."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float = 30.0,
        max_tokens: int = 300,
        temperature: float = 0.7,
    ):
        self._api_key = api_key or settings.OPENAI_API_KEY
        self._model = model or settings.OPENAI_MODEL
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client = httpx.Client(
            base_url=OPENAI_BASE_URL,
            headers={"Authorization": f"Bearer {self._api_key}"} if self._api_key else {},
            timeout=timeout,
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def complete(self, system_prompt: str, user_message: str) -> str | None:
        """Send one chat turn and return the assistant text.

        Returns:
            The reply text, or None if the model returned no content.

        Raises:
            ConfigurationError: No API key configured (no request made).
            UpstreamError: Non-2xx, unreachable, or malformed response.
        """
        if not self.is_configured():
            raise ConfigurationError("OpenAI API key not configured", provider_name="OpenAI")

        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }
        try:
            response = self._client.post("/chat/completions", json=payload)
        except httpx.HTTPError as e:
            raise UpstreamError(f"OpenAI request failed: {e}", provider_name="OpenAI") from e

        if response.status_code >= 400:
            logger.error("OpenAI API error: %s", response.status_code)
            raise UpstreamError(
                f"OpenAI API error: {response.status_code}",
                provider_name="OpenAI",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            choices = response.json().get("choices") or []
        except ValueError as e:
            raise UpstreamError("OpenAI returned malformed JSON", provider_name="OpenAI") from e
        if not choices:
            return None
        return (choices[0].get("message") or {}).get("content")
