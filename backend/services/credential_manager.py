"""Server-side secrets for DoughJo's three integrations.

Plaid, OpenAI and Supabase keys must never reach client-side code.
Besides environment variables they can live in the OS keychain under the
``doughjo`` service. :func:`missing_credentials` reports, per
integration, which required secrets are still blank so startup can say
which features run degraded.

The ``keyring`` import is lazy so the app works without it; the keychain
then simply has nothing to offer.
"""

import logging
from collections.abc import Mapping

logger = logging.getLogger(__name__)

SERVICE_NAME = "doughjo"

# Secrets each integration needs, in the order they are prompted for
INTEGRATION_CREDENTIALS: dict[str, tuple[str, ...]] = {
    "plaid": ("PLAID_CLIENT_ID", "PLAID_SECRET"),
    "openai": ("OPENAI_API_KEY",),
    "supabase": ("SUPABASE_ANON_KEY",),
}

# What each integration loses while its secrets are missing
DEGRADED_FEATURES: dict[str, str] = {
    "plaid": "bank linking is disabled",
    "openai": "chat answers from canned replies",
    "supabase": "remote sign-out is skipped on session expiry",
}

CREDENTIAL_KEYS: frozenset[str] = frozenset(
    key for keys in INTEGRATION_CREDENTIALS.values() for key in keys
)


def _keyring():
    try:
        import keyring
    except ImportError:
        return None
    return keyring


def get_credential(key: str) -> str | None:
    """Look up ``key`` (e.g. ``"PLAID_SECRET"``) in the keychain.

    Returns ``None`` when it is absent, keyring is not installed, or the
    backend fails.
    """
    keyring = _keyring()
    if keyring is None:
        return None
    try:
        return keyring.get_password(SERVICE_NAME, key)
    except Exception:
        logger.debug("keyring lookup failed for %s", key, exc_info=True)
        return None


def set_credential(key: str, value: str) -> bool:
    """Store one secret in the keychain.

    Only keys in :data:`CREDENTIAL_KEYS` with a non-blank value are
    accepted.

    Returns:
        ``True`` if stored.
    """
    if key not in CREDENTIAL_KEYS:
        logger.warning("Refusing to store %s: not a DoughJo secret", key)
        return False
    if not value or not value.strip():
        logger.warning("Refusing to store empty value for %s", key)
        return False

    keyring = _keyring()
    if keyring is None:
        logger.warning("keyring is not installed - cannot store %s", key)
        return False
    try:
        keyring.set_password(SERVICE_NAME, key, value)
    except Exception:
        logger.warning("Failed to store %s in keychain", key, exc_info=True)
        return False
    logger.info("Stored %s in keychain", key)
    return True


def delete_credential(key: str) -> bool:
    """Remove one secret from the keychain. Returns ``True`` if removed."""
    if key not in CREDENTIAL_KEYS:
        logger.warning("Refusing to delete %s: not a DoughJo secret", key)
        return False

    keyring = _keyring()
    if keyring is None:
        return False
    try:
        keyring.delete_password(SERVICE_NAME, key)
    except Exception:
        logger.debug("Failed to delete %s from keychain", key, exc_info=True)
        return False
    logger.info("Deleted %s from keychain", key)
    return True


def store_integration_credentials(integration: str, values: Mapping[str, str]) -> list[str]:
    """Store every secret one integration needs.

    Args:
        integration: A key of :data:`INTEGRATION_CREDENTIALS`.
        values: Secret values by key; keys the integration does not use
            are ignored.

    Returns:
        The keys that could not be stored (empty on full success).

    Raises:
        KeyError: Unknown integration.
    """
    failed = []
    for key in INTEGRATION_CREDENTIALS[integration]:
        if not set_credential(key, values.get(key, "")):
            failed.append(key)
    return failed


def missing_credentials(values: Mapping[str, str | None]) -> dict[str, list[str]]:
    """Required secrets that are blank, grouped by integration.

    ``values`` is typically ``settings.model_dump()``, after the
    environment, ``.env`` and keychain have all been consulted.
    Integrations with everything present are omitted.
    """
    missing = {}
    for integration, keys in INTEGRATION_CREDENTIALS.items():
        blank = [key for key in keys if not (values.get(key) or "").strip()]
        if blank:
            missing[integration] = blank
    return missing


def log_missing_credentials(values: Mapping[str, str | None]) -> dict[str, list[str]]:
    """Warn once per integration that will run degraded."""
    missing = missing_credentials(values)
    for integration, keys in missing.items():
        logger.warning(
            "%s not configured (%s missing); %s",
            integration.capitalize(), ", ".join(keys), DEGRADED_FEATURES[integration],
        )
    return missing
