"""Unit tests for geofence monitoring"""

from dataclasses import replace

import pytest

from moneylens_guard.domain.exceptions import GeofenceNotFoundError, LocationUnavailableError
from moneylens_guard.domain.geofence import (
    GeofenceMonitor,
    SequenceLocationSource,
    UnavailableLocationSource,
    geofence_notification,
)
from moneylens_guard.domain.models import Geofence, GeofenceKind, Location, Severity
from moneylens_guard.utils.geo_utils import distance_meters

CENTER = Location(37.22767, -80.41794)
INSIDE = Location(37.22797, -80.41794)      # ~33m north
APPROACH = Location(37.22902, -80.41794)    # ~150m north
FAR = Location(37.23767, -80.41794)         # ~1.1km north


def ballroom(kind: GeofenceKind = GeofenceKind.MERCHANT) -> Geofence:
    return Geofence(
        id="ballroom",
        name="Owens Ballroom",
        center=CENTER,
        radius_meters=100,
        kind=kind,
        merchant_id="owens_ballroom",
    )


@pytest.fixture
def monitor(clock) -> GeofenceMonitor:
    monitor = GeofenceMonitor([ballroom()], clock=clock)
    monitor.start()
    return monitor


def test_distance_one_degree_of_latitude():
    assert distance_meters(0, 0, 1, 0) == pytest.approx(111_195, abs=1)
    assert distance_meters(CENTER.lat, CENTER.lng, CENTER.lat, CENTER.lng) == 0


def test_enter_and_exit_alternate(monitor):
    kinds = []
    for fix in [FAR, INSIDE, INSIDE, FAR, INSIDE, INSIDE, FAR]:
        kinds += [e.kind for e in monitor.simulate_location(fix) if e.kind != "proximity"]

    assert kinds == ["enter", "exit", "enter", "exit"]
    assert monitor.is_inside("ballroom") is False


def test_subscribers_receive_events(monitor):
    received = []
    monitor.subscribe(received.append)

    monitor.simulate_location(INSIDE)

    assert [e.kind for e in received] == ["enter"]
    assert received[0].geofence.id == "ballroom"
    assert received[0].distance_meters == pytest.approx(33, abs=1)


def test_recent_event_buffer_is_bounded(monitor):
    for _ in range(30):
        monitor.simulate_location(INSIDE)
        monitor.simulate_location(FAR)

    assert len(monitor.recent_events) == 50
    assert monitor.recent_events[-1].kind == "exit"


def test_proximity_fires_once_per_approach(monitor):
    first = monitor.simulate_location(APPROACH)
    second = monitor.simulate_location(APPROACH)

    assert [e.kind for e in first] == ["proximity"]
    assert second == []

    monitor.simulate_location(FAR)
    assert [e.kind for e in monitor.simulate_location(APPROACH)] == ["proximity"]


def test_no_proximity_for_high_risk_zone(clock):
    monitor = GeofenceMonitor([ballroom(GeofenceKind.HIGH_RISK)], clock=clock)
    monitor.start()
    assert monitor.simulate_location(APPROACH) == []


def test_unavailable_source_falls_back_to_simulation(clock):
    monitor = GeofenceMonitor([ballroom()], clock=clock)

    with pytest.raises(LocationUnavailableError):
        monitor.start(UnavailableLocationSource("permission denied"))

    assert monitor.active is True
    assert monitor.simulation_mode is True
    assert [e.kind for e in monitor.simulate_location(INSIDE)] == ["enter"]


def test_simulation_ignored_when_stopped(monitor):
    monitor.stop()
    assert monitor.simulate_location(INSIDE) == []
    assert monitor.current_location is None


def test_sequence_source_feeds_monitor(clock):
    source = SequenceLocationSource([FAR, INSIDE, FAR])
    monitor = GeofenceMonitor([ballroom()], clock=clock)
    events = []
    monitor.subscribe(events.append)

    monitor.start(source)
    assert source.emit_all() == 3
    assert [e.kind for e in events] == ["enter", "exit"]
    assert len(monitor.history) == 3

    source.push(INSIDE)
    monitor.stop()
    assert source.emit_next() is False


def test_location_history_is_bounded(clock):
    monitor = GeofenceMonitor([], history_size=100, clock=clock)
    monitor.start()
    for i in range(120):
        monitor.simulate_location(Location(37.0 + i * 0.0001, -80.0))

    assert len(monitor.history) == 100
    assert monitor.history[-1].timestamp == clock()


def test_add_and_remove_persist(clock):
    saved = []
    monitor = GeofenceMonitor([], on_change=saved.append, clock=clock)

    monitor.add_geofence(ballroom())
    assert [g.id for g in saved[-1]] == ["ballroom"]

    monitor.remove_geofence("ballroom")
    assert saved[-1] == []

    with pytest.raises(GeofenceNotFoundError):
        monitor.remove_geofence("ballroom")


def test_nearby_geofences_and_accuracy(monitor):
    assert monitor.nearby_geofences() == []
    assert monitor.is_location_accurate() is False

    monitor.simulate_location(Location(APPROACH.lat, APPROACH.lng, accuracy_meters=25))
    assert [g.id for g in monitor.nearby_geofences(200)] == ["ballroom"]
    assert monitor.nearby_geofences(100) == []
    assert monitor.is_location_accurate() is True

    monitor.simulate_location(Location(FAR.lat, FAR.lng, accuracy_meters=500))
    assert monitor.is_location_accurate() is False


@pytest.mark.parametrize(
    "kind, severity",
    [
        (GeofenceKind.HIGH_RISK, Severity.CRITICAL),
        (GeofenceKind.MERCHANT, Severity.MEDIUM),
        (GeofenceKind.SAFE_ZONE, Severity.LOW),
    ],
)
def test_enter_notification_severity(clock, kind, severity):
    monitor = GeofenceMonitor([ballroom(kind)], clock=clock)
    monitor.start()
    enter = monitor.simulate_location(INSIDE)[0]
    exit_ = monitor.simulate_location(FAR)[0]

    assert geofence_notification(enter).severity == severity
    assert geofence_notification(exit_).severity == Severity.LOW
    assert geofence_notification(exit_).title == "Left Owens Ballroom"


def test_replacing_geofence_while_inside_keeps_state(monitor):
    monitor.simulate_location(INSIDE)

    assert monitor.add_geofence(replace(ballroom(), radius_meters=120)) == []
    assert monitor.simulate_location(INSIDE) == []
    assert monitor.is_inside("ballroom") is True

    kinds = [e.kind for e in monitor.simulate_location(FAR)]
    assert kinds == ["exit"]


def test_shrinking_geofence_around_device_emits_exit(monitor):
    received = []
    monitor.subscribe(received.append)
    monitor.simulate_location(INSIDE)

    events = monitor.add_geofence(replace(ballroom(), radius_meters=20))

    assert [e.kind for e in events] == ["exit"]
    assert [e.kind for e in received] == ["enter", "exit"]
    assert monitor.is_inside("ballroom") is False
    assert [e.kind for e in monitor.simulate_location(CENTER)] == ["enter"]


def test_new_geofence_starts_outside(monitor):
    monitor.simulate_location(INSIDE)
    other = Geofence("cafe", "Cafe", CENTER, 100, GeofenceKind.SAFE_ZONE)

    assert monitor.add_geofence(other) == []
    assert [e.kind for e in monitor.simulate_location(INSIDE)] == ["enter"]
