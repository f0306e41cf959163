"""Plaid API client.

Wraps the three Plaid endpoints used by bank linking via the
plaid-python SDK: link token creation, public token exchange, and
accounts/balances lookup.

Plaid uses per-institution access tokens (Items). Every account under
one Item is fetched by a single ``accounts_get`` call, which is why
balance refreshes are batched per access token by the caller.
"""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

import urllib3
from plaid import ApiException, Environment
from plaid.api.plaid_api import PlaidApi
from plaid.api_client import ApiClient
from plaid.configuration import Configuration
from plaid.model.accounts_get_request import AccountsGetRequest
from plaid.model.country_code import CountryCode
from plaid.model.item_public_token_exchange_request import ItemPublicTokenExchangeRequest
from plaid.model.link_token_create_request import LinkTokenCreateRequest
from plaid.model.link_token_create_request_user import LinkTokenCreateRequestUser
from plaid.model.products import Products

from config import settings
from integrations.exceptions import ConfigurationError, ExchangeError, UpstreamError

logger = logging.getLogger(__name__)

CLIENT_NAME = "DoughJo Financial App"

# Map PLAID_ENVIRONMENT setting to SDK host URLs.
_ENVIRONMENT_MAP: dict[str, str] = {
    "sandbox": Environment.Sandbox,
    "development": "https://development.plaid.com",
    "production": Environment.Production,
}

# Plaid error codes meaning the public token itself was rejected
_EXCHANGE_ERROR_CODES = frozenset({"INVALID_PUBLIC_TOKEN"})


@dataclass
class PlaidAccount:
    """One account as reported by ``/accounts/get``."""

    account_id: str
    name: str
    type: str
    subtype: str | None = None
    mask: str | None = None
    current_balance: Decimal | None = None  # Plaid's raw balances.current


@dataclass
class PlaidAccountsSnapshot:
    """All accounts under one Item, plus the Item's identity."""

    item_id: str | None
    institution_id: str | None
    accounts: list[PlaidAccount] = field(default_factory=list)


class PlaidClient:
    """Wrapper around the Plaid API.

    Credentials are read from settings unless passed explicitly. Every
    request carries an explicit timeout; timeouts and non-2xx responses
    surface as :class:`UpstreamError`.
    """

    def __init__(
        self,
        client_id: str | None = None,
        secret: str | None = None,
        environment: str | None = None,
        timeout: float | None = None,
    ):
        self._client_id = client_id or settings.PLAID_CLIENT_ID
        self._secret = secret or settings.PLAID_SECRET
        self._environment = environment or settings.PLAID_ENVIRONMENT
        self._timeout = timeout or settings.PLAID_REQUEST_TIMEOUT

        # Lazily created on first use
        self._api: PlaidApi | None = None

    def _get_api(self) -> PlaidApi:
        """Return (and cache) a PlaidApi instance."""
        if self._api is None:
            env_key = self._environment.lower()
            host = _ENVIRONMENT_MAP.get(env_key)
            if host is None:
                logger.warning(
                    "Unknown PLAID_ENVIRONMENT=%r, falling back to sandbox. "
                    "Valid values: sandbox, development, production",
                    self._environment,
                )
                host = Environment.Sandbox
            logger.info(
                "Plaid API client: environment=%s, host=%s, client_id=<configured>",
                env_key,
                host,
            )
            configuration = Configuration(
                host=host,
                api_key={
                    "clientId": self._client_id,
                    "secret": self._secret,
                },
            )
            api_client = ApiClient(configuration)
            self._api = PlaidApi(api_client)
        return self._api

    @property
    def provider_name(self) -> str:
        return "Plaid"

    def is_configured(self) -> bool:
        """Check if Plaid credentials are configured."""
        return bool(self._client_id) and bool(self._secret)

    def _require_configured(self) -> None:
        if not self.is_configured():
            raise ConfigurationError(
                "Plaid credentials not configured. Set PLAID_CLIENT_ID and "
                "PLAID_SECRET or run 'python -m scripts.setup_plaid'."
            )

    # ------------------------------------------------------------------
    # Link token & token exchange
    # ------------------------------------------------------------------

    def create_link_token(self, user_id: str, webhook_url: str | None = None) -> str:
        """Create a Plaid Link token for one end user.

        Args:
            user_id: Our user id, sent as Plaid's ``client_user_id``.
            webhook_url: Where Plaid should push Item updates.

        Returns:
            The short-lived link_token string to be passed to Plaid Link.
        """
        self._require_configured()
        api = self._get_api()

        kwargs = {}
        if webhook_url:
            kwargs["webhook"] = webhook_url
        request = LinkTokenCreateRequest(
            user=LinkTokenCreateRequestUser(client_user_id=user_id),
            client_name=CLIENT_NAME,
            products=[Products(p) for p in settings.plaid_products],
            country_codes=[CountryCode(c) for c in settings.plaid_country_codes],
            language="en",
            **kwargs,
        )

        logger.info("Creating Plaid link token for user %s", user_id)
        response = self._call(api.link_token_create, request, action="create link token")
        data = _as_dict(response)
        link_token = data.get("link_token")
        if not link_token:
            raise UpstreamError("Plaid returned no link_token")
        return link_token

    def exchange_public_token(self, public_token: str) -> dict:
        """Exchange a Plaid Link public_token for a permanent access_token.

        The public token is single-use and short-lived, so this must be
        called as soon as Link reports success.

        Returns:
            Dict with ``access_token`` and ``item_id``.

        Raises:
            ExchangeError: The public token was rejected.
            UpstreamError: Any other upstream failure.
        """
        self._require_configured()
        api = self._get_api()
        request = ItemPublicTokenExchangeRequest(public_token=public_token)
        try:
            response = api.item_public_token_exchange(
                request, _request_timeout=self._timeout
            )
        except ApiException as e:
            error_code, message = _parse_error_body(e)
            if error_code in _EXCHANGE_ERROR_CODES:
                raise ExchangeError(
                    message or "Public token is invalid, expired, or already used",
                    error_code=error_code or None,
                ) from e
            raise self._map_plaid_error(e, "exchange public token") from e
        except urllib3.exceptions.HTTPError as e:
            raise UpstreamError(f"Plaid exchange request failed: {e}") from e

        data = _as_dict(response)
        if not data.get("access_token") or not data.get("item_id"):
            raise UpstreamError("Plaid exchange response missing access_token or item_id")
        return {
            "access_token": data["access_token"],
            "item_id": data["item_id"],
        }

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def get_accounts(self, access_token: str) -> PlaidAccountsSnapshot:
        """Fetch every account (with balances) under one Item."""
        self._require_configured()
        api = self._get_api()
        request = AccountsGetRequest(access_token=access_token)
        response = self._call(api.accounts_get, request, action="fetch accounts")
        data = _as_dict(response)

        item = data.get("item") or {}
        accounts: list[PlaidAccount] = []
        for acct in data.get("accounts") or []:
            account_id = acct.get("account_id")
            if not account_id:
                continue
            balances = acct.get("balances") or {}
            accounts.append(PlaidAccount(
                account_id=account_id,
                name=acct.get("name") or acct.get("official_name") or "Bank Account",
                type=str(acct.get("type") or "other"),
                subtype=str(acct["subtype"]) if acct.get("subtype") else None,
                mask=acct.get("mask"),
                current_balance=self._to_decimal(balances.get("current")),
            ))

        return PlaidAccountsSnapshot(
            item_id=item.get("item_id"),
            institution_id=item.get("institution_id"),
            accounts=accounts,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _call(self, endpoint, request, *, action: str):
        """Invoke an SDK endpoint, mapping every failure to UpstreamError."""
        try:
            return endpoint(request, _request_timeout=self._timeout)
        except ApiException as e:
            raise self._map_plaid_error(e, action) from e
        except urllib3.exceptions.HTTPError as e:
            logger.error("Plaid request to %s failed: %s", action, e)
            raise UpstreamError(f"Plaid request to {action} failed: {e}") from e

    @staticmethod
    def _map_plaid_error(exc: ApiException, action: str) -> UpstreamError:
        """Map a Plaid ApiException to an UpstreamError."""
        status = exc.status or None
        error_code, error_message = _parse_error_body(exc)
        if error_message:
            message = f"Plaid error ({error_code}): {error_message}"
        else:
            message = f"Plaid API error while trying to {action}: {status}"
        logger.error("Plaid API error: %s %s", status, error_code or exc.reason)
        return UpstreamError(message, status_code=status, body=exc.body)

    @staticmethod
    def _to_decimal(value) -> Decimal | None:
        """Convert a value to Decimal, returning None on failure."""
        if value is None:
            return None
        try:
            return Decimal(str(value))
        except (InvalidOperation, ValueError):
            return None


def _as_dict(response) -> dict:
    """Plain-dict view of an SDK response model."""
    if hasattr(response, "to_dict"):
        return response.to_dict()
    return dict(response)


def _parse_error_body(exc: ApiException) -> tuple[str, str]:
    """Return ``(error_code, error_message)`` from a Plaid error body."""
    try:
        body = json.loads(exc.body) if exc.body else {}
    except (TypeError, ValueError):
        return "", ""
    if not isinstance(body, dict):
        return "", ""
    return body.get("error_code", "") or "", body.get("error_message", "") or ""
