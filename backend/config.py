"""Application configuration using pydantic-settings."""

from typing import Any

from pydantic import field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from services.credential_manager import CREDENTIAL_KEYS, get_credential


class KeychainSettingsSource(PydanticBaseSettingsSource):
    """Load credential fields from the OS keychain via ``keyring``.

    Only fields whose uppercase name appears in
    :data:`~services.credential_manager.CREDENTIAL_KEYS` are looked up.
    All other fields return ``None`` so the next source in the chain
    handles them.
    """

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        env_name = field_name.upper()
        if env_name not in CREDENTIAL_KEYS:
            return None, field_name, False
        value = get_credential(env_name)
        return value, field_name, False

    def __call__(self) -> dict[str, Any]:
        d: dict[str, Any] = {}
        for field_name, field_info in self.settings_cls.model_fields.items():
            value, key, is_complex = self.get_field_value(field_info, field_name)
            if value is not None:
                d[key] = value
        return d


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            KeychainSettingsSource(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    # Database
    DATABASE_URL: str = "sqlite:///./doughjo.db"

    # Plaid credentials (optional - bank linking is disabled without them)
    PLAID_CLIENT_ID: str = ""
    PLAID_SECRET: str = ""
    PLAID_ENVIRONMENT: str = "sandbox"
    PLAID_PRODUCTS: str = "transactions"
    PLAID_COUNTRY_CODES: str = "US"
    PLAID_WEBHOOK_URL: str = ""
    PLAID_REQUEST_TIMEOUT: float = 10.0

    # Public URL the aggregator uses to reach /api/plaid/webhook
    PUBLIC_BASE_URL: str = ""

    # OpenAI (optional - chat falls back to canned replies without it)
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4"

    # Supabase auth (optional - used for sign-out on session expiry)
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""

    # Session security timings, in seconds
    SESSION_MAX_INACTIVITY_SECONDS: float = 300
    SESSION_MAX_DURATION_SECONDS: float = 1800
    SESSION_WARNING_SECONDS: float = 60
    SESSION_CHECK_INTERVAL_SECONDS: float = 10
    SESSION_MAX_EXTENSIONS: int = 2

    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173"

    @field_validator("PLAID_ENVIRONMENT", mode="before")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        """Lowercase the Plaid environment selector."""
        if isinstance(v, str):
            return v.strip().lower() or "sandbox"
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()

    @property
    def plaid_products(self) -> list[str]:
        """PLAID_PRODUCTS split on commas."""
        return _split_csv(self.PLAID_PRODUCTS)

    @property
    def plaid_country_codes(self) -> list[str]:
        """PLAID_COUNTRY_CODES split on commas and uppercased."""
        return [c.upper() for c in _split_csv(self.PLAID_COUNTRY_CODES)]

    @property
    def cors_origins(self) -> list[str]:
        return _split_csv(self.CORS_ORIGINS)

    @property
    def plaid_webhook_url(self) -> str | None:
        """Explicit webhook URL, else one derived from PUBLIC_BASE_URL."""
        if self.PLAID_WEBHOOK_URL:
            return self.PLAID_WEBHOOK_URL
        if self.PUBLIC_BASE_URL:
            return f"{self.PUBLIC_BASE_URL.rstrip('/')}/api/plaid/webhook"
        return None

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


settings = Settings()
