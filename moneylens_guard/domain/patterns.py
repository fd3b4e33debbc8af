"""Per-merchant spending patterns derived from the ledger"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from moneylens_guard.domain.ledger import TransactionLedger
from moneylens_guard.domain.models import Preferences, RiskTier, SpendingPattern, Transaction
from moneylens_guard.utils.date_utils import days_ago

logger = logging.getLogger(__name__)


def derive_risk_tier(
    pattern: SpendingPattern,
    weekly_spend: float,
    monthly_spend: float,
    preferences: Preferences,
) -> RiskTier:
    """
    Map a merchant pattern to a risk tier.

    - high: frequent and pricey (> 10 visits averaging > $50), or trailing 7-day spend
      above half the weekly limit, or trailing 30-day spend above 30% of the monthly limit
    - medium: average above $100 or more than 5 visits
    - low: otherwise
    """
    if pattern.visit_count > 10 and pattern.average_amount > 50:
        return RiskTier.HIGH
    if weekly_spend > preferences.weekly_limit * 0.5:
        return RiskTier.HIGH
    if monthly_spend > preferences.monthly_limit * 0.3:
        return RiskTier.HIGH
    if pattern.average_amount > 100:
        return RiskTier.MEDIUM
    if pattern.visit_count > 5:
        return RiskTier.MEDIUM
    return RiskTier.LOW


class PatternAggregator:
    """Maintains one SpendingPattern per merchant, updated on every transaction"""

    def __init__(
        self,
        ledger: TransactionLedger,
        preferences: Callable[[], Preferences],
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.ledger = ledger
        self._preferences = preferences
        self._clock = clock
        self._patterns: Dict[str, SpendingPattern] = {}

    def record_transaction(self, transaction: Transaction) -> None:
        """Append to the ledger and fold the transaction into its merchant's pattern"""
        self.ledger.append(transaction)

        pattern = self._patterns.get(transaction.merchant)
        if pattern is None:
            pattern = SpendingPattern(merchant=transaction.merchant)
            self._patterns[transaction.merchant] = pattern

        pattern.total_spent += transaction.amount
        pattern.visit_count += 1
        pattern.last_visit = transaction.timestamp

        previous = pattern.risk_tier
        pattern.risk_tier = self._derive(pattern)
        if pattern.risk_tier != previous:
            logger.info(
                "Merchant risk tier changed",
                extra={
                    "merchant": pattern.merchant,
                    "from_tier": previous.value,
                    "to_tier": pattern.risk_tier.value,
                },
            )

    def refresh_tiers(self) -> None:
        """Re-derive every tier, e.g. after the limits changed"""
        for pattern in self._patterns.values():
            pattern.risk_tier = self._derive(pattern)

    def _derive(self, pattern: SpendingPattern) -> RiskTier:
        now = self._clock()
        weekly = self.ledger.spent_since(days_ago(now, 7), merchant=pattern.merchant)
        monthly = self.ledger.spent_since(days_ago(now, 30), merchant=pattern.merchant)
        return derive_risk_tier(pattern, weekly, monthly, self._preferences())

    def get(self, merchant: str) -> Optional[SpendingPattern]:
        return self._patterns.get(merchant)

    def snapshot(self) -> List[SpendingPattern]:
        """Copies of all patterns, safe to hand to scans"""
        return [
            SpendingPattern(
                merchant=p.merchant,
                total_spent=p.total_spent,
                visit_count=p.visit_count,
                last_visit=p.last_visit,
                risk_tier=p.risk_tier,
            )
            for p in self._patterns.values()
        ]

    def high_risk_merchants(self) -> List[str]:
        return [m for m, p in self._patterns.items() if p.risk_tier == RiskTier.HIGH]
