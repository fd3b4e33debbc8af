"""Append-only in-memory transaction ledger"""

import math
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from moneylens_guard.domain.exceptions import InvalidAmountError, InvalidTransactionDataError
from moneylens_guard.domain.models import Transaction
from moneylens_guard.utils.date_utils import days_ago


def validate_amount(amount) -> float:
    """Reject amounts that would turn scores into NaN"""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidAmountError(f"invalid amount: {amount!r}")
    if math.isnan(amount) or math.isinf(amount):
        raise InvalidAmountError(f"invalid amount: {amount!r}")
    return float(amount)


def validate_transaction(transaction: Transaction) -> None:
    """
    Check a transaction before it enters the ledger.

    Raises:
        InvalidAmountError: amount is not a usable number
        InvalidTransactionDataError: missing merchant or category, or timestamp is not a
            naive datetime
    """
    validate_amount(transaction.amount)
    if not isinstance(transaction.merchant, str) or not transaction.merchant.strip():
        raise InvalidTransactionDataError("merchant is required")
    if not isinstance(transaction.category, str) or not transaction.category.strip():
        raise InvalidTransactionDataError("category is required")
    if not isinstance(transaction.timestamp, datetime):
        raise InvalidTransactionDataError(f"invalid timestamp: {transaction.timestamp!r}")
    if transaction.timestamp.tzinfo is not None:
        # Ledger windows compare naive local wall-clock times
        raise InvalidTransactionDataError(f"timestamp must be naive local time: {transaction.timestamp.isoformat()}")


class TransactionLedger:
    """Source of truth for pattern aggregation.

    Every windowed query scans the full history, which is fine for a single user's
    session but does not scale to large histories.
    """

    def __init__(self) -> None:
        self._transactions: List[Transaction] = []

    def append(self, transaction: Transaction) -> None:
        validate_transaction(transaction)
        self._transactions.append(transaction)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(list(self._transactions))

    def __len__(self) -> int:
        return len(self._transactions)

    def for_merchant(self, merchant: str) -> List[Transaction]:
        return [t for t in self._transactions if t.merchant == merchant]

    def since(
        self,
        since: datetime,
        merchant: Optional[str] = None,
        category: Optional[str] = None,
    ) -> List[Transaction]:
        """Transactions at or after `since`, optionally filtered"""
        return [
            t for t in self._transactions
            if t.timestamp >= since
            and (merchant is None or t.merchant == merchant)
            and (category is None or t.category == category)
        ]

    def spent_since(
        self,
        since: datetime,
        merchant: Optional[str] = None,
        category: Optional[str] = None,
    ) -> float:
        return sum(t.amount for t in self.since(since, merchant, category))

    def count_since(self, since: datetime, merchant: Optional[str] = None) -> int:
        return len(self.since(since, merchant))

    def summary(self, now: datetime, window_days: Optional[int] = 30) -> Dict[str, list]:
        """
        Spending by category and top five merchants.

        Args:
            now: Reference time for the window
            window_days: Trailing window; None covers the whole ledger

        Returns:
            {"by_category": [...], "top_merchants": [...]} sorted by amount, descending
        """
        txns = self._transactions if window_days is None else self.since(days_ago(now, window_days))

        by_category: Dict[str, float] = defaultdict(float)
        by_merchant: Dict[str, float] = defaultdict(float)
        for t in txns:
            by_category[t.category] += t.amount
            by_merchant[t.merchant] += t.amount

        return {
            "by_category": [
                {"category": c, "amount": round(a, 2)}
                for c, a in sorted(by_category.items(), key=lambda kv: kv[1], reverse=True)
            ],
            "top_merchants": [
                {"merchant": m, "amount": round(a, 2)}
                for m, a in sorted(by_merchant.items(), key=lambda kv: kv[1], reverse=True)[:5]
            ],
        }
