"""Tests for the ORM models."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from models import BankAccount, ChatMessage
from tests.fixtures import create_bank_account


def test_defaults(db):
    account = BankAccount(
        user_id="user-1",
        plaid_account_id="acc-1",
        plaid_access_token="access-1",
        name="Checking",
        type="depository",
    )
    db.add(account)
    db.flush()

    assert len(account.id) == 36
    assert account.institution_name == "Unknown Bank"
    assert account.institution_id == "unknown"
    assert account.mask == "0000"
    assert account.balance == Decimal("0")
    assert account.created_at is not None


def test_plaid_account_unique_per_item(db):
    create_bank_account(db)
    with pytest.raises(IntegrityError):
        create_bank_account(db)


def test_same_plaid_account_under_different_items(db):
    create_bank_account(db, plaid_item_id="item-a")
    create_bank_account(db, plaid_item_id="item-b")
    assert db.query(BankAccount).count() == 2


def test_repr_hides_token(db):
    account = create_bank_account(db)
    assert "access" not in repr(account)
    assert "****0000" in repr(account)


def test_chat_message_defaults(db):
    message = ChatMessage(user_id="user-1", message="hi", is_user=True)
    db.add(message)
    db.flush()

    assert len(message.id) == 36
    assert message.timestamp is not None
    assert "user" in repr(message)
