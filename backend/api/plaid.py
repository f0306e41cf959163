"""Plaid Link API endpoints.

Provides the server-side half of the Plaid Link browser flow: creating
link tokens, exchanging public tokens, refreshing balances and receiving
Plaid webhooks.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from api.helpers import bank_account_response_dict
from database import get_db
from integrations.exceptions import (
    ConfigurationError,
    ExchangeError,
    PersistenceError,
    UpstreamError,
)
from schemas import (
    ExchangeTokenRequest,
    ExchangeTokenResponse,
    LinkEvent,
    LinkTokenRequest,
    LinkTokenResponse,
    RefreshAccountsRequest,
    RefreshAccountsResponse,
    WebhookResponse,
)
from services.bank_link_service import BankLinkService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plaid", tags=["plaid"])


def get_bank_link_service() -> BankLinkService:
    """Dependency for injecting the bank link service (overridable in tests)."""
    return BankLinkService()


def _upstream_http_error(e: UpstreamError, action: str) -> HTTPException:
    detail = f"Failed to {action}"
    # Surface actionable hint for the most common error
    if e.body and "INVALID_API_KEYS" in e.body:
        detail = (
            "Plaid rejected the credentials. Check that PLAID_ENVIRONMENT "
            "matches your keys (sandbox, development or production)."
        )
    return HTTPException(status_code=502, detail=detail)


@router.post("/link-token", response_model=LinkTokenResponse)
def create_link_token(
    body: LinkTokenRequest,
    service: BankLinkService = Depends(get_bank_link_service),
):
    """Create a Plaid Link token for the frontend."""
    try:
        link_token = service.create_link_handle(body.user_id)
    except ConfigurationError as e:
        logger.error("Cannot create link token: %s", e)
        raise HTTPException(status_code=400, detail="Plaid is not configured")
    except UpstreamError as e:
        logger.error("Failed to create Plaid link token: %s", e)
        raise _upstream_http_error(e, "create link token")
    return LinkTokenResponse(link_token=link_token)


@router.post("/link-events", response_model=WebhookResponse)
def record_link_event(body: LinkEvent):
    """Record an exit or diagnostic event from Plaid Link. Observational only."""
    if body.error:
        logger.warning(
            "Plaid Link %s for user %s: %s",
            body.event_name, body.user_id, body.error.get("error_code") or body.error,
        )
    else:
        logger.info("Plaid Link event %s for user %s", body.event_name, body.user_id)
    return WebhookResponse()


@router.post("/exchange-token", response_model=ExchangeTokenResponse)
def exchange_token(
    body: ExchangeTokenRequest,
    db: Session = Depends(get_db),
    service: BankLinkService = Depends(get_bank_link_service),
):
    """Exchange a Plaid Link public_token and store the Item's accounts."""
    try:
        accounts = service.exchange_and_persist(
            db,
            public_token=body.public_token,
            user_id=body.user_id,
            institution_name=body.institution_name,
            accounts_metadata=[a.model_dump() for a in body.accounts],
            institution_id=body.institution_id,
        )
        db.commit()
    except ConfigurationError as e:
        logger.error("Cannot exchange token: %s", e)
        raise HTTPException(status_code=400, detail="Plaid is not configured")
    except ExchangeError as e:
        logger.error("Plaid rejected public token: %s", e)
        raise HTTPException(
            status_code=400,
            detail="Bank link expired or was already used. Please connect again.",
        )
    except UpstreamError as e:
        logger.error("Failed to exchange Plaid token: %s", e)
        raise _upstream_http_error(e, "exchange token")
    except PersistenceError as e:
        logger.error("Failed to save linked accounts: %s", e)
        raise HTTPException(
            status_code=500,
            detail="Failed to save accounts. Please connect again.",
        )

    return ExchangeTokenResponse(
        accounts=[bank_account_response_dict(a) for a in accounts],
        message=f"Successfully connected {len(accounts)} accounts",
    )


@router.post("/refresh-accounts", response_model=RefreshAccountsResponse)
def refresh_accounts(
    body: RefreshAccountsRequest,
    db: Session = Depends(get_db),
    service: BankLinkService = Depends(get_bank_link_service),
):
    """Refresh balances for all of a user's accounts (best effort)."""
    result = service.refresh_balances(db, body.user_id)
    db.commit()

    if result.groups == 0:
        message = "No accounts found to refresh"
    else:
        message = f"Successfully refreshed {result.refreshed} accounts"
    return RefreshAccountsResponse(
        refreshed_accounts=result.refreshed,
        failed_groups=result.failed_groups,
        message=message,
    )


@router.post("/webhook", response_model=WebhookResponse)
def plaid_webhook(
    payload: dict,
    db: Session = Depends(get_db),
    service: BankLinkService = Depends(get_bank_link_service),
):
    """Receive a Plaid webhook.

    Unknown webhook types still get a 2xx; Plaid retries anything else.
    """
    service.handle_webhook(db, payload)
    db.commit()
    return WebhookResponse()
