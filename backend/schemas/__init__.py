"""Pydantic schemas for API request/response validation."""

from .bank_account import (
    BankAccountResponse,
    ConnectionStatus,
    ExchangeTokenRequest,
    ExchangeTokenResponse,
    LinkAccountMetadata,
    LinkEvent,
    LinkTokenRequest,
    LinkTokenResponse,
    RefreshAccountsRequest,
    RefreshAccountsResponse,
    WebhookResponse,
)
from .chat import ChatMessageResponse, ChatRequest, ChatResponse
from .session import SessionConfigResponse

__all__ = [
    "BankAccountResponse",
    "ChatMessageResponse",
    "ChatRequest",
    "ChatResponse",
    "ConnectionStatus",
    "ExchangeTokenRequest",
    "ExchangeTokenResponse",
    "LinkAccountMetadata",
    "LinkEvent",
    "LinkTokenRequest",
    "LinkTokenResponse",
    "RefreshAccountsRequest",
    "RefreshAccountsResponse",
    "SessionConfigResponse",
    "WebhookResponse",
]
