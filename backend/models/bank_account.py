"""BankAccount model - an account linked through the bank-data aggregator."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Numeric, String, UniqueConstraint

from database import Base
from models.utils import generate_uuid


class BankAccount(Base):
    """A bank account linked via Plaid Link.

    Every account under one Plaid Item shares that Item's access token.
    The token is a server-side secret and must never be serialized to
    a client response.
    """

    __tablename__ = "bank_accounts"
    __table_args__ = (
        UniqueConstraint(
            "plaid_item_id", "plaid_account_id", name="uix_plaid_item_account"
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String, nullable=False, index=True)
    plaid_account_id = Column(String, nullable=False, index=True)
    plaid_item_id = Column(String, nullable=True, index=True)
    plaid_access_token = Column(String, nullable=False)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)  # depository, credit, loan, investment, ...
    subtype = Column(String, nullable=True)  # checking, savings, credit card, ...
    # Negative = money owed (credit/loan balances are negated at write time)
    balance = Column(Numeric(14, 2), nullable=False, default=0)
    institution_name = Column(String, nullable=False, default="Unknown Bank")
    institution_id = Column(String, nullable=False, default="unknown")
    mask = Column(String, nullable=False, default="0000")
    last_updated = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    def __repr__(self) -> str:
        return (
            f"<BankAccount {self.name!r} ****{self.mask} "
            f"user={self.user_id} balance={self.balance}>"
        )
