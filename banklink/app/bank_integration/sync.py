"""
Bank Synchronization Engine

Fetches accounts and per-account transactions from the provider and returns
a deduplicated snapshot. Nothing is persisted here.

Failure policy:
- Account list failure aborts the sync (SyncError, stage "accounts")
- A single account's transaction failure is reported and skipped
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, UTC
from typing import Any, Callable, Dict, List, Optional

from banklink.app.schemas import BankSyncResult, SyncedTransaction
from .deduplication import TransactionDeduplicator
from .errors import SyncError
from .providers.base import BaseBankProvider


logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Transaction"


class SyncReporter(ABC):
    """Receives diagnostics for non-fatal sync problems."""

    @abstractmethod
    def transaction_fetch_failed(
        self,
        account_id: str,
        status_code: Optional[int],
        reason: str
    ) -> None:
        pass


class LoggingSyncReporter(SyncReporter):
    def transaction_fetch_failed(
        self,
        account_id: str,
        status_code: Optional[int],
        reason: str
    ) -> None:
        logger.error(
            f"Transaction fetch failed for account {account_id} "
            f"(status: {status_code}, error: {reason}); skipping account"
        )


def _results(payload: Dict[str, Any]) -> List[Any]:
    results = payload.get('results')
    return results if isinstance(results, list) else []


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class BankSyncEngine:
    """
    Pull accounts and transactions with a valid access token.

    Accounts are processed sequentially in the order the provider returns
    them, so "first seen" in deduplication means first account, then first
    transaction within that account.
    """

    def __init__(
        self,
        provider: BaseBankProvider,
        reporter: Optional[SyncReporter] = None,
        clock: Optional[Callable[[], str]] = None
    ):
        """
        Args:
            provider: Provider used for data endpoints
            reporter: Receives per-account failures (defaults to logging)
            clock: Returns the current instant as an ISO string, used for
                transactions without a timestamp
        """
        self.provider = provider
        self.reporter = reporter or LoggingSyncReporter()
        self.clock = clock or _utc_now_iso

    async def sync(self, access_token: str) -> BankSyncResult:
        """
        Run one synchronization pass.

        Args:
            access_token: Valid (already refreshed) access token

        Returns:
            BankSyncResult with raw accounts and deduplicated transactions

        Raises:
            SyncError: If the account list cannot be fetched
        """
        response = await self.provider.fetch_accounts(access_token)
        if not response.ok:
            raise SyncError(
                stage="accounts",
                reason=response.error_reason("Accounts fetch failed"),
                status_code=response.status_code,
            )

        accounts = _results(response.payload)
        transactions: List[SyncedTransaction] = []

        for account in accounts:
            account_id = account.get('account_id') if isinstance(account, dict) else None
            if not account_id or isinstance(account_id, bool):
                logger.warning("Skipping account without account_id")
                continue
            account_id = str(account_id)

            tx_response = await self.provider.fetch_transactions(access_token, account_id)
            if not tx_response.ok:
                self.reporter.transaction_fetch_failed(
                    account_id,
                    tx_response.status_code,
                    tx_response.error_reason("Transactions fetch failed"),
                )
                continue

            for raw_tx in _results(tx_response.payload):
                if isinstance(raw_tx, dict):
                    transactions.append(self.map_transaction(account_id, raw_tx))

        unique = TransactionDeduplicator.dedupe(transactions)
        logger.info(
            f"Sync complete: {len(accounts)} accounts, {len(transactions)} transactions "
            f"({len(transactions) - len(unique)} duplicates dropped)"
        )
        return BankSyncResult(accounts=accounts, transactions=unique)

    def map_transaction(self, account_id: str, raw_tx: Dict[str, Any]) -> SyncedTransaction:
        """Convert a raw provider transaction to a SyncedTransaction."""
        timestamp = raw_tx.get('timestamp') or self.clock()
        description = raw_tx.get('description')
        counterparty = raw_tx.get('merchant_name')
        category = raw_tx.get('transaction_category')

        return SyncedTransaction(
            external_id=TransactionDeduplicator.resolve_external_id(account_id, raw_tx),
            account_id=account_id,
            date=str(timestamp)[:10],
            amount=TransactionDeduplicator.parse_amount(raw_tx.get('amount')),
            description=str(description) if description else DEFAULT_DESCRIPTION,
            counterparty=str(counterparty) if counterparty is not None else None,
            category=str(category) if category else None,
        )
