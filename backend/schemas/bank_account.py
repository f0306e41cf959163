"""Pydantic schemas for linked bank accounts and the Plaid Link flow."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from services.balance import BalanceKind


class ConnectionStatus(str, Enum):
    """Reachability of a backing service."""

    checking = "checking"
    connected = "connected"
    disconnected = "disconnected"
    error = "error"


class BankAccountResponse(BaseModel):
    """A linked account as sent to the browser.

    The Plaid access token is deliberately not part of this schema.
    """

    id: str
    name: str
    type: str
    subtype: str | None = None
    balance: Decimal
    display_amount: Decimal
    is_owed: bool
    balance_kind: BalanceKind
    institution_name: str
    institution_id: str
    mask: str
    last_updated: datetime | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class LinkTokenRequest(BaseModel):
    user_id: str = Field(min_length=1)


class LinkTokenResponse(BaseModel):
    link_token: str


class LinkAccountMetadata(BaseModel):
    """One entry of Plaid Link's ``metadata.accounts``."""

    id: str
    name: str | None = None
    mask: str | None = None
    type: str | None = None
    subtype: str | None = None


class ExchangeTokenRequest(BaseModel):
    public_token: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    institution_name: str | None = None
    institution_id: str | None = None
    accounts: list[LinkAccountMetadata] = []


class ExchangeTokenResponse(BaseModel):
    success: bool = True
    accounts: list[BankAccountResponse]
    message: str


class RefreshAccountsRequest(BaseModel):
    user_id: str = Field(min_length=1)


class RefreshAccountsResponse(BaseModel):
    success: bool = True
    refreshed_accounts: int
    failed_groups: int = 0
    message: str


class LinkEvent(BaseModel):
    """Non-success outcome reported by the Plaid Link widget."""

    user_id: str | None = None
    event_name: str
    error: dict | None = None
    metadata: dict | None = None


class WebhookResponse(BaseModel):
    received: bool = True
