"""Unit tests for the ledger and pattern aggregation"""

import math
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from moneylens_guard.domain.exceptions import InvalidAmountError, InvalidTransactionDataError
from moneylens_guard.domain.ledger import TransactionLedger
from moneylens_guard.domain.models import Preferences, RiskTier, SpendingPattern
from moneylens_guard.domain.patterns import PatternAggregator, derive_risk_tier


@pytest.fixture
def aggregator(prefs, clock) -> PatternAggregator:
    return PatternAggregator(TransactionLedger(), prefs, clock)


def test_average_is_total_over_visits_after_every_record(aggregator, make_tx):
    """Average never drifts from total / visits"""
    for amount in [12.5, 3.25, 40.0, 7.75, 0.01]:
        aggregator.record_transaction(make_tx(amount))
        pattern = aggregator.get("Starbucks")
        assert pattern.average_amount == pytest.approx(pattern.total_spent / pattern.visit_count)

    pattern = aggregator.get("Starbucks")
    assert pattern.visit_count == 5
    assert pattern.total_spent == pytest.approx(63.51)


def test_eleven_visits_averaging_sixty_is_high_risk(aggregator, make_tx, clock):
    for day in range(11):
        aggregator.record_transaction(make_tx(60, merchant="Mall", at=clock() - timedelta(days=day * 3)))

    pattern = aggregator.get("Mall")
    assert pattern.visit_count == 11
    assert pattern.average_amount == pytest.approx(60)
    assert pattern.risk_tier == RiskTier.HIGH
    assert aggregator.high_risk_merchants() == ["Mall"]


def test_trailing_week_spend_above_half_weekly_limit_is_high(aggregator, make_tx):
    aggregator.record_transaction(make_tx(600, merchant="Electronics"))
    assert aggregator.get("Electronics").risk_tier == RiskTier.HIGH


def test_old_spend_outside_windows_only_counts_toward_average(aggregator, make_tx, clock):
    aggregator.record_transaction(make_tx(600, merchant="Electronics", at=clock() - timedelta(days=40)))
    assert aggregator.get("Electronics").risk_tier == RiskTier.MEDIUM


def test_medium_tiers(aggregator, make_tx):
    aggregator.record_transaction(make_tx(150, merchant="Restaurant"))
    assert aggregator.get("Restaurant").risk_tier == RiskTier.MEDIUM

    for _ in range(6):
        aggregator.record_transaction(make_tx(10, merchant="Coffee"))
    assert aggregator.get("Coffee").risk_tier == RiskTier.MEDIUM


def test_single_small_visit_is_low(aggregator, make_tx):
    aggregator.record_transaction(make_tx(10))
    assert aggregator.get("Starbucks").risk_tier == RiskTier.LOW


def test_derive_risk_tier_monthly_share():
    pattern = SpendingPattern(merchant="Grocer", total_spent=1300, visit_count=13 * 2)
    prefs = Preferences(weekly_limit=10_000, monthly_limit=4000)
    # 1300 > 30% of 4000
    assert derive_risk_tier(pattern, weekly_spend=0, monthly_spend=1300, preferences=prefs) == RiskTier.HIGH
    assert derive_risk_tier(pattern, weekly_spend=0, monthly_spend=1000, preferences=prefs) == RiskTier.MEDIUM


def test_refresh_tiers_after_limit_change(prefs, clock, make_tx):
    prefs.value = Preferences(daily_limit=1000, weekly_limit=5000, monthly_limit=100_000)
    aggregator = PatternAggregator(TransactionLedger(), prefs, clock)
    aggregator.record_transaction(make_tx(600, merchant="Electronics"))
    assert aggregator.get("Electronics").risk_tier == RiskTier.MEDIUM

    prefs.value = Preferences()
    aggregator.refresh_tiers()
    assert aggregator.get("Electronics").risk_tier == RiskTier.HIGH


def test_invalid_amount_is_rejected(aggregator, make_tx):
    with pytest.raises(InvalidAmountError):
        aggregator.record_transaction(make_tx(math.nan))

    assert len(aggregator.ledger) == 0
    assert aggregator.get("Starbucks") is None


@pytest.mark.parametrize(
    "field, value",
    [
        ("merchant", ""),
        ("category", "  "),
        ("timestamp", "yesterday"),
        ("timestamp", datetime(2026, 10, 21, 14, 0, tzinfo=timezone.utc)),
    ],
)
def test_malformed_transaction_is_rejected(aggregator, make_tx, field, value):
    tx = replace(make_tx(10), **{field: value})

    with pytest.raises(InvalidTransactionDataError):
        aggregator.record_transaction(tx)
    assert len(aggregator.ledger) == 0


def test_snapshot_is_a_copy(aggregator, make_tx):
    aggregator.record_transaction(make_tx(10))
    snapshot = aggregator.snapshot()
    snapshot[0].total_spent = 9999

    assert aggregator.get("Starbucks").total_spent == 10


def test_ledger_summary_by_category_and_top_merchants(make_tx, clock):
    ledger = TransactionLedger()
    ledger.append(make_tx(10, merchant="Starbucks", category="food"))
    ledger.append(make_tx(50, merchant="Target", category="shopping"))
    ledger.append(make_tx(20, merchant="Kroger", category="food"))
    ledger.append(make_tx(500, merchant="Old", category="travel", at=clock() - timedelta(days=45)))

    summary = ledger.summary(clock(), window_days=30)

    assert summary["by_category"] == [
        {"category": "shopping", "amount": 50},
        {"category": "food", "amount": 30.0},
    ]
    assert [m["merchant"] for m in summary["top_merchants"]] == ["Target", "Kroger", "Starbucks"]

    everything = ledger.summary(clock(), window_days=None)
    assert everything["by_category"][0] == {"category": "travel", "amount": 500}
