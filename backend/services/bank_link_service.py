"""Bank linking: Plaid Link handshake and account balance upkeep.

The handshake is three sequential steps, each needing the previous
step's output:

1. ``create_link_handle`` - short-lived link token for the Link widget
2. (browser) Plaid Link returns a one-time public token
3. ``exchange_and_persist`` - public token -> durable access token,
   then one ``bank_accounts`` row per account under the new Item

Balances are kept current by ``refresh_balances`` (user-initiated) and
``handle_webhook`` (pushed by Plaid). Both write through
``apply_balance_update``, keyed by Plaid's account id.

Transaction convention: methods ``flush()``; the API layer commits.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from integrations.exceptions import IntegrationError, PersistenceError
from integrations.plaid_client import PlaidAccountsSnapshot, PlaidClient
from models import BankAccount
from services.balance import normalize_plaid_balance

logger = logging.getLogger(__name__)

DEFAULT_INSTITUTION_NAME = "Unknown Bank"
DEFAULT_INSTITUTION_ID = "unknown"
DEFAULT_MASK = "0000"


@dataclass
class RefreshResult:
    """Outcome of a best-effort balance refresh.

    ``refreshed`` counts updated account rows; failed token groups are
    listed in ``errors`` and never abort the others.
    """

    refreshed: int = 0
    groups: int = 0
    failed_groups: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class WebhookResult:
    webhook_type: str | None
    webhook_code: str | None
    handled: bool = False
    accounts_updated: int = 0


class BankLinkService:
    """Coordinates Plaid Link and keeps persisted accounts in sync."""

    def __init__(self, plaid_client: PlaidClient | None = None):
        self._plaid = plaid_client or PlaidClient()

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------

    def create_link_handle(self, user_id: str) -> str:
        """Request a link token for ``user_id``.

        The token is short-lived and is handed straight to the caller;
        it is never stored.

        Raises:
            ConfigurationError: Plaid credentials are missing (no request made).
            UpstreamError: Plaid rejected the request or timed out.
        """
        return self._plaid.create_link_token(user_id, webhook_url=settings.plaid_webhook_url)

    def exchange_and_persist(
        self,
        db: Session,
        public_token: str,
        user_id: str,
        institution_name: str | None = None,
        accounts_metadata: list[dict] | None = None,
        institution_id: str | None = None,
    ) -> list[BankAccount]:
        """Exchange a public token and store every account under the new Item.

        Args:
            db: Database session.
            public_token: One-time token from Plaid Link's success callback.
            user_id: Owner of the new accounts.
            institution_name: Label chosen in Link (metadata.institution.name).
            accounts_metadata: Link's ``metadata.accounts``; only used to fill
                in a name or mask that ``/accounts/get`` left empty.
            institution_id: Link's ``metadata.institution.institution_id``.

        Returns:
            The newly created BankAccount rows.

        Raises:
            ExchangeError: The public token was rejected.
            UpstreamError: Exchange or accounts lookup failed upstream.
            PersistenceError: Inserting the rows failed. The Item already
                exists at Plaid; the caller must link again.
        """
        exchange = self._plaid.exchange_public_token(public_token)
        access_token = exchange["access_token"]
        item_id = exchange["item_id"]
        logger.info("Exchanged public token for Item %s (user %s)", item_id, user_id)

        snapshot = self._plaid.get_accounts(access_token)
        logger.info("Plaid reported %d accounts for Item %s", len(snapshot.accounts), item_id)

        link_accounts = {
            meta.get("id"): meta for meta in accounts_metadata or [] if meta.get("id")
        }
        now = datetime.now(timezone.utc)
        rows: list[BankAccount] = []
        for acct in snapshot.accounts:
            meta = link_accounts.get(acct.account_id, {})
            rows.append(BankAccount(
                user_id=user_id,
                plaid_account_id=acct.account_id,
                plaid_item_id=snapshot.item_id or item_id,
                plaid_access_token=access_token,
                name=acct.name or meta.get("name") or "Bank Account",
                type=acct.type,
                subtype=acct.subtype or meta.get("subtype"),
                balance=normalize_plaid_balance(acct.type, acct.current_balance),
                institution_name=institution_name or DEFAULT_INSTITUTION_NAME,
                institution_id=(
                    snapshot.institution_id or institution_id or DEFAULT_INSTITUTION_ID
                ),
                mask=acct.mask or meta.get("mask") or DEFAULT_MASK,
                last_updated=now,
            ))

        try:
            db.add_all(rows)
            db.flush()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to save %d accounts for Item %s: %s", len(rows), item_id, e)
            raise PersistenceError(f"Failed to save accounts: {e}") from e

        logger.info("Saved %d accounts for user %s", len(rows), user_id)
        return rows

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    @staticmethod
    def list_accounts(db: Session, user_id: str) -> list[BankAccount]:
        """List a user's linked accounts, newest first."""
        return (
            db.query(BankAccount)
            .filter(BankAccount.user_id == user_id)
            .order_by(BankAccount.created_at.desc())
            .all()
        )

    @staticmethod
    def remove_account(db: Session, user_id: str, account_id: str) -> int:
        """Delete one account owned by ``user_id``.

        Returns:
            Rows deleted: 1, or 0 when the account does not exist or
            belongs to someone else.
        """
        deleted = (
            db.query(BankAccount)
            .filter(BankAccount.id == account_id, BankAccount.user_id == user_id)
            .delete(synchronize_session=False)
        )
        db.flush()
        if deleted:
            logger.info("Removed account %s for user %s", account_id, user_id)
        else:
            logger.info("No account %s owned by user %s to remove", account_id, user_id)
        return deleted

    @staticmethod
    def apply_balance_update(
        db: Session,
        plaid_account_id: str,
        current,
        *,
        user_id: str | None = None,
        item_id: str | None = None,
    ) -> int:
        """Write a fresh Plaid balance to every matching account row.

        Rows are matched by Plaid account id, narrowed by owner and/or
        Item when given. The balance is normalized per row type.

        Returns:
            Number of rows updated.
        """
        query = db.query(BankAccount).filter(BankAccount.plaid_account_id == plaid_account_id)
        if user_id is not None:
            query = query.filter(BankAccount.user_id == user_id)
        if item_id is not None:
            query = query.filter(BankAccount.plaid_item_id == item_id)

        now = datetime.now(timezone.utc)
        updated = 0
        for row in query.all():
            row.balance = normalize_plaid_balance(row.type, current)
            row.last_updated = now
            updated += 1
        db.flush()
        return updated

    def refresh_balances(self, db: Session, user_id: str) -> RefreshResult:
        """Refresh every account of ``user_id`` from Plaid.

        Accounts are grouped by access token so each Item costs one
        ``/accounts/get`` call. A failing group is logged and skipped.
        Each group's writes run in their own SAVEPOINT, so a database
        error rolls back that group only.
        """
        result = RefreshResult()
        accounts = db.query(BankAccount).filter(BankAccount.user_id == user_id).all()
        if not accounts:
            logger.info("No accounts to refresh for user %s", user_id)
            return result

        groups: dict[str, list[BankAccount]] = {}
        for account in accounts:
            groups.setdefault(account.plaid_access_token, []).append(account)
        result.groups = len(groups)

        logger.info(
            "Refreshing %d accounts across %d Items for user %s",
            len(accounts), len(groups), user_id,
        )

        for access_token, group in groups.items():
            institution = group[0].institution_name
            try:
                snapshot = self._plaid.get_accounts(access_token)
            except IntegrationError as e:
                logger.warning("Failed to refresh accounts at %s: %s", institution, e)
                result.failed_groups += 1
                result.errors.append(f"{institution}: {e}")
                continue
            except Exception as e:
                logger.warning("Failed to refresh accounts at %s", institution, exc_info=True)
                result.failed_groups += 1
                result.errors.append(f"{institution}: {e}")
                continue

            try:
                with db.begin_nested():
                    updated = self._apply_snapshot(db, snapshot, group, user_id=user_id)
            except SQLAlchemyError as e:
                logger.error("Failed to save balances for %s", institution, exc_info=True)
                result.failed_groups += 1
                result.errors.append(f"{institution}: {e}")
                continue
            result.refreshed += updated

        logger.info("Refreshed %d accounts for user %s", result.refreshed, user_id)
        return result

    def _apply_snapshot(
        self,
        db: Session,
        snapshot: PlaidAccountsSnapshot,
        group: list[BankAccount],
        *,
        user_id: str | None = None,
        item_id: str | None = None,
    ) -> int:
        known = {account.plaid_account_id for account in group}
        updated = 0
        for acct in snapshot.accounts:
            if acct.account_id not in known:
                continue
            updated += self.apply_balance_update(
                db, acct.account_id, acct.current_balance, user_id=user_id, item_id=item_id
            )
        return updated

    def _refresh_item(self, db: Session, item_id: str | None) -> int:
        """Refresh the accounts of one Item; failures are logged, not raised."""
        if not item_id:
            return 0
        group = db.query(BankAccount).filter(BankAccount.plaid_item_id == item_id).all()
        if not group:
            logger.info("No local accounts for Item %s", item_id)
            return 0
        try:
            snapshot = self._plaid.get_accounts(group[0].plaid_access_token)
        except IntegrationError as e:
            logger.warning("Failed to refresh Item %s: %s", item_id, e)
            return 0
        return self._apply_snapshot(db, snapshot, group, item_id=item_id)

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------

    def handle_webhook(self, db: Session, payload: dict) -> WebhookResult:
        """Apply a Plaid webhook notification.

        Unrecognized types are accepted and ignored: Plaid retries any
        non-2xx response.
        """
        webhook_type = payload.get("webhook_type")
        webhook_code = payload.get("webhook_code")
        item_id = payload.get("item_id")
        result = WebhookResult(webhook_type=webhook_type, webhook_code=webhook_code)

        logger.info(
            "Plaid webhook received: type=%s code=%s item=%s",
            webhook_type, webhook_code, item_id,
        )

        if webhook_type == "ACCOUNTS" and webhook_code == "DEFAULT_UPDATE":
            result.handled = True
            accounts = payload.get("accounts") or []
            if accounts:
                for acct in accounts:
                    account_id = acct.get("account_id")
                    if not account_id:
                        continue
                    current = (acct.get("balances") or {}).get("current")
                    if current is None:
                        logger.debug("No current balance for account %s, skipping", account_id)
                        continue
                    result.accounts_updated += self.apply_balance_update(
                        db, account_id, current, item_id=item_id
                    )
            else:
                result.accounts_updated = self._refresh_item(db, item_id)
        elif webhook_type == "TRANSACTIONS" and webhook_code == "DEFAULT_UPDATE":
            result.handled = True
            logger.info("New transactions available for Item %s", item_id)
            result.accounts_updated = self._refresh_item(db, item_id)
        elif webhook_type == "ITEM" and webhook_code == "ERROR":
            result.handled = True
            logger.error("Plaid Item %s error: %s", item_id, payload.get("error"))
        else:
            logger.info("Unhandled Plaid webhook: %s/%s", webhook_type, webhook_code)

        return result
