"""Unit tests for monthly spending caps"""

from datetime import datetime

import pytest

from moneylens_guard.domain.caps import CapRegistry, evaluate_cap
from moneylens_guard.domain.ledger import TransactionLedger
from moneylens_guard.domain.models import SpendingCap


@pytest.fixture
def ledger() -> TransactionLedger:
    return TransactionLedger()


@pytest.fixture
def registry(ledger, clock) -> CapRegistry:
    return CapRegistry(ledger, clock=clock)


@pytest.mark.parametrize(
    "spend, near, over",
    [(0, False, False), (79.99, False, False), (80, True, False), (99.99, True, False), (100, False, True), (150, False, True)],
)
def test_cap_boundaries(spend, near, over):
    status = evaluate_cap(SpendingCap("c1", "merchant", "Starbucks", 100), spend)
    assert status.near_cap is near
    assert status.over_cap is over


def test_no_cap_reports_none():
    status = evaluate_cap(None, 50)
    assert status.cap_kind == "none"
    assert status.near_cap is False and status.over_cap is False


def test_merchant_cap_wins_over_category(registry, ledger, make_tx):
    registry.create("category", "food", 1000)
    registry.create("merchant", "Starbucks", 100)
    ledger.append(make_tx(85))
    ledger.append(make_tx(300, merchant="Bistro"))

    status = registry.status("Starbucks", "food")
    assert status.cap_kind == "merchant"
    assert status.current_spend == pytest.approx(85)
    assert status.near_cap is True

    status = registry.status("Bistro", "food")
    assert status.cap_kind == "category"
    assert status.current_spend == pytest.approx(385)
    assert status.percentage == pytest.approx(38.5)


def test_only_current_month_counts(registry, ledger, make_tx):
    registry.create("merchant", "Starbucks", 100)
    ledger.append(make_tx(500, at=datetime(2026, 9, 30, 12, 0)))
    ledger.append(make_tx(20, at=datetime(2026, 10, 1, 8, 0)))

    assert registry.status("Starbucks", "food").current_spend == pytest.approx(20)


def test_inactive_caps_are_ignored(registry, ledger, make_tx):
    registry.create("merchant", "Starbucks", 10, active=False)
    ledger.append(make_tx(50))
    assert registry.status("Starbucks", "food").cap_kind == "none"


def test_create_and_delete_persist(ledger, clock):
    saved = []
    registry = CapRegistry(ledger, on_change=saved.append, clock=clock)

    cap = registry.create("merchant", "Starbucks", 100)
    assert [c.id for c in saved[-1]] == [cap.id]

    registry.delete(cap.id)
    assert saved[-1] == []

    with pytest.raises(ValueError):
        registry.create("planet", "Mars", 1)


def test_overrides(registry):
    assert registry.has_override("Starbucks") is False
    registry.set_override("Starbucks", True)
    assert registry.has_override("Starbucks") is True
    registry.set_override("Starbucks", False)
    assert registry.has_override("Starbucks") is False
