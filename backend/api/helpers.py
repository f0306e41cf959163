"""Shared API helpers for route handlers."""

from models import BankAccount
from services.balance import interpret_balance


def bank_account_response_dict(account: BankAccount) -> dict:
    """Build a BankAccountResponse-compatible dict from a BankAccount.

    The balance is interpreted for the account type here so every
    endpoint reports owed/overdraft amounts the same way. The access
    token is never copied into the result.

    Args:
        account: A persisted BankAccount.

    Returns:
        Dict matching the BankAccountResponse schema.
    """
    interp = interpret_balance(account.type, account.balance)
    return {
        "id": account.id,
        "name": account.name,
        "type": account.type,
        "subtype": account.subtype,
        "balance": account.balance,
        "display_amount": interp.display_amount,
        "is_owed": interp.is_owed,
        "balance_kind": interp.kind,
        "institution_name": account.institution_name,
        "institution_id": account.institution_id,
        "mask": account.mask,
        "last_updated": account.last_updated,
        "created_at": account.created_at,
    }
