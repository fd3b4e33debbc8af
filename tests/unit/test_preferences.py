"""Unit tests for preference persistence"""

import pytest

from moneylens_guard.domain.exceptions import PreferenceStoreError
from moneylens_guard.domain.models import Geofence, GeofenceKind, Location, Preferences, SpendingCap
from moneylens_guard.infrastructure.preferences import InMemoryKeyValueStore, PreferenceStore


class BrokenStore:
    """Store whose backend is unreachable"""

    def get(self, key):
        raise PreferenceStoreError("disk unavailable")

    def set(self, key, value):
        raise PreferenceStoreError("disk unavailable")


def test_missing_record_gives_defaults(store):
    assert PreferenceStore(store).load() == Preferences()


def test_partial_record_is_merged_over_defaults():
    store = InMemoryKeyValueStore({"preferences": {"daily_limit": 50}})
    loaded = PreferenceStore(store).load()
    assert loaded.daily_limit == 50
    assert loaded.weekly_limit == 1000
    assert loaded.alerts_enabled is True


@pytest.mark.parametrize(
    "raw",
    [{"daily_limit": -5}, {"daily_limit": "lots"}, "not-a-record", ["daily_limit"]],
)
def test_invalid_record_falls_back_to_defaults(raw):
    defaults = Preferences(daily_limit=75)
    store = InMemoryKeyValueStore({"preferences": raw})
    assert PreferenceStore(store, defaults).load() == defaults


def test_failing_backend_is_not_fatal(caplog):
    prefs = PreferenceStore(BrokenStore())
    assert prefs.load() == Preferences()
    prefs.save(Preferences(daily_limit=10))
    assert "Failed to save to preference store" in caplog.text


def test_round_trip_through_sqlite(sql_store):
    saved = Preferences(daily_limit=80, weekly_limit=400, monthly_limit=1500, tracking_enabled=False)
    PreferenceStore(sql_store).save(saved)

    assert PreferenceStore(sql_store).load() == saved


def test_geofences_and_caps_round_trip(sql_store):
    store = PreferenceStore(sql_store)
    fence = Geofence("g1", "Mall", Location(37.2, -80.4), 150, GeofenceKind.HIGH_RISK)
    cap = SpendingCap("c1", "category", "food", 300)

    store.save_geofences([fence])
    store.save_caps([cap])

    assert store.load_geofences() == [fence]
    assert store.load_caps() == [cap]


def test_invalid_stored_items_are_skipped():
    store = InMemoryKeyValueStore({
        "geofences": [
            {"id": "ok", "name": "Home", "center": {"lat": 1, "lng": 2}, "radius_meters": 50, "kind": "safe_zone"},
            {"id": "bad", "name": "Nowhere", "center": {"lat": 500, "lng": 2}, "radius_meters": 50, "kind": "safe_zone"},
        ],
        "spending_caps": [{"id": "c", "kind": "planet", "target": "x", "amount": 1}],
    })
    prefs = PreferenceStore(store)

    assert [g.id for g in prefs.load_geofences()] == ["ok"]
    assert prefs.load_caps() == []
