"""Linked bank accounts API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.helpers import bank_account_response_dict
from database import get_db
from schemas import BankAccountResponse
from services.bank_link_service import BankLinkService

router = APIRouter(prefix="/api/accounts", tags=["accounts"])


@router.get("", response_model=list[BankAccountResponse])
def list_accounts(user_id: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    """List a user's linked accounts, newest first."""
    accounts = BankLinkService.list_accounts(db, user_id)
    return [bank_account_response_dict(a) for a in accounts]


@router.delete("/{account_id}")
def remove_account(
    account_id: str,
    user_id: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    """Remove one linked account. Only the owner can remove it."""
    deleted = BankLinkService.remove_account(db, user_id, account_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Account not found: {account_id}")
    db.commit()
    return {"status": "ok", "account_id": account_id, "deleted": deleted}
