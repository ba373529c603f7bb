"""
Transaction Deduplication Module

Assigns every fetched transaction a stable external identity and collapses
duplicates within one sync result:
1. Provider transaction_id (preferred)
2. Provider normalised_provider_transaction_id
3. Fallback hash of normalized transaction attributes

The fallback hash deliberately ignores provider sequence numbers. Two
genuinely distinct transactions with the same account, currency, date,
amount, description and merchant collapse into one.
"""

import hashlib
import math
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Any, Dict, Iterable, List

from banklink.app.schemas import SyncedTransaction


FALLBACK_PREFIX = "fallback_"

_WHITESPACE = re.compile(r"\s+")
_CENTS = Decimal("0.01")


class TransactionDeduplicator:
    """
    Stable identities and first-seen-wins deduplication for synced transactions.

    Re-syncing the same period must produce the same external ids, otherwise
    downstream ingestion would import the same transaction twice.
    """

    @staticmethod
    def normalize_text(value: Any) -> str:
        """Lowercase, trim, and collapse internal whitespace runs to one space."""
        if value is None:
            return ""
        return _WHITESPACE.sub(" ", str(value).lower().strip())

    @staticmethod
    def parse_amount(value: Any) -> Decimal:
        """
        Convert a provider amount to Decimal.

        Missing or unparsable amounts are treated as zero.
        """
        if value is None or isinstance(value, bool):
            return Decimal("0")
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return Decimal("0")
        if not amount.is_finite():
            return Decimal("0")
        return amount

    @staticmethod
    def format_amount(value: Any) -> str:
        """
        Amount with exactly two decimals, e.g. -12.5 -> '-12.50'.

        Rounds the binary double nearest to the amount, half away from zero,
        so 1.005 (stored as 1.00499...) becomes '1.00'. Amounts too large
        for a double keep their decimal value.
        """
        amount = TransactionDeduplicator.parse_amount(value)
        as_double = float(amount)
        if math.isfinite(as_double):
            amount = Decimal(as_double)

        with localcontext() as ctx:
            # quantize needs room for every integer digit plus the cents
            ctx.prec = max(ctx.prec, amount.adjusted() + 4)
            return f"{amount.quantize(_CENTS, rounding=ROUND_HALF_UP):.2f}"

    @staticmethod
    def generate_fallback_id(account_id: str, raw_tx: Dict[str, Any]) -> str:
        """
        Derive a deterministic id when the provider supplies none.

        Hash input:
            account_id|currency|YYYY-MM-DD|amount(2dp)|description|merchant

        Args:
            account_id: Provider account identifier
            raw_tx: Raw provider transaction

        Returns:
            'fallback_' followed by a 40-character SHA-1 hex digest

        Example:
            >>> a = TransactionDeduplicator.generate_fallback_id(
            ...     "acc_1", {"timestamp": "2024-01-15T10:00:00Z", "amount": -4.5,
            ...               "description": "  COFFEE   Shop "})
            >>> b = TransactionDeduplicator.generate_fallback_id(
            ...     "acc_1", {"timestamp": "2024-01-15T18:30:00Z", "amount": "-4.50",
            ...               "description": "coffee shop"})
            >>> a == b
            True
        """
        timestamp = raw_tx.get('timestamp') or ''
        hash_input = "|".join([
            str(account_id),
            str(raw_tx.get('currency') or ''),
            str(timestamp)[:10],
            TransactionDeduplicator.format_amount(raw_tx.get('amount')),
            TransactionDeduplicator.normalize_text(raw_tx.get('description')),
            TransactionDeduplicator.normalize_text(raw_tx.get('merchant_name')),
        ])

        # SHA-1 as an identity digest, not for security
        digest = hashlib.sha1(hash_input.encode("utf-8")).hexdigest()
        return f"{FALLBACK_PREFIX}{digest}"

    @staticmethod
    def resolve_external_id(account_id: str, raw_tx: Dict[str, Any]) -> str:
        """Provider id, else normalized provider id, else fallback hash."""
        provider_id = raw_tx.get('transaction_id') or raw_tx.get('normalised_provider_transaction_id')
        if provider_id:
            return str(provider_id)
        return TransactionDeduplicator.generate_fallback_id(account_id, raw_tx)

    @staticmethod
    def dedupe(transactions: Iterable[SyncedTransaction]) -> List[SyncedTransaction]:
        """
        Drop later transactions whose external_id was already seen.

        Order of the surviving transactions is preserved.
        """
        seen = set()
        unique = []
        for tx in transactions:
            if tx.external_id in seen:
                continue
            seen.add(tx.external_id)
            unique.append(tx)
        return unique
