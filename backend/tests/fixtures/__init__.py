"""Test fixtures and sample data."""
import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from models import BankAccount
from sqlalchemy.orm import Session

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
ITEM_ID = "item-1"
ACCESS_TOKEN = "access-sandbox-1"


def create_bank_account(
    db: Session,
    *,
    user_id: str = USER_ID,
    plaid_account_id: str = "plaid-acc-checking",
    plaid_item_id: str | None = ITEM_ID,
    plaid_access_token: str = ACCESS_TOKEN,
    name: str = "Plaid Checking",
    type: str = "depository",
    subtype: str | None = "checking",
    balance: Decimal = Decimal("110.00"),
    institution_name: str = "Chase",
    created_at: datetime | None = None,
) -> BankAccount:
    """Create and flush a BankAccount.

    This is a helper function (not a fixture) for tests that need several
    accounts with different owners, Items or tokens.
    """
    account = BankAccount(
        user_id=user_id,
        plaid_account_id=plaid_account_id,
        plaid_item_id=plaid_item_id,
        plaid_access_token=plaid_access_token,
        name=name,
        type=type,
        subtype=subtype,
        balance=balance,
        institution_name=institution_name,
        institution_id="ins_3",
        mask="0000",
        created_at=created_at or datetime.now(timezone.utc),
    )
    db.add(account)
    db.flush()
    return account


@pytest.fixture
def checking_account(db):
    """A depository account with money available."""
    account = create_bank_account(
        db, created_at=datetime.now(timezone.utc) - timedelta(minutes=5)
    )
    db.commit()
    return account


@pytest.fixture
def credit_account(db):
    """A credit card under the same Item as checking_account, 850.25 owed."""
    account = create_bank_account(
        db,
        plaid_account_id="plaid-acc-credit",
        name="Plaid Credit Card",
        type="credit",
        subtype="credit card",
        balance=Decimal("-850.25"),
    )
    db.commit()
    return account
