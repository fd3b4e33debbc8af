"""Geofence monitoring: inside/outside state per region, driven by location fixes"""

import logging
from collections import deque
from datetime import datetime
from typing import Callable, Deque, Dict, Iterable, List, Optional, Protocol

from moneylens_guard.domain.exceptions import GeofenceNotFoundError, LocationUnavailableError
from moneylens_guard.domain.models import (
    Geofence,
    GeofenceEvent,
    GeofenceKind,
    Location,
    Notification,
    Severity,
)
from moneylens_guard.utils.geo_utils import distance_meters

logger = logging.getLogger(__name__)

LocationCallback = Callable[[Location], None]
GeofenceListener = Callable[[GeofenceEvent], None]

ACCURATE_FIX_METERS = 100


class LocationSource(Protocol):
    """Push-style location feed"""

    def start(self, callback: LocationCallback) -> None:
        """Begin delivering fixes; raise LocationUnavailableError if impossible"""
        ...

    def stop(self) -> None:
        ...


class SequenceLocationSource:
    """Replays a fixed sequence of fixes on demand"""

    def __init__(self, fixes: Iterable[Location] = ()):
        self._pending: Deque[Location] = deque(fixes)
        self._callback: Optional[LocationCallback] = None

    def start(self, callback: LocationCallback) -> None:
        self._callback = callback

    def stop(self) -> None:
        self._callback = None

    def push(self, fix: Location) -> None:
        self._pending.append(fix)

    def emit_next(self) -> bool:
        """Deliver one fix; False once exhausted or stopped"""
        if self._callback is None or not self._pending:
            return False
        self._callback(self._pending.popleft())
        return True

    def emit_all(self) -> int:
        delivered = 0
        while self.emit_next():
            delivered += 1
        return delivered


class UnavailableLocationSource:
    """A source that can never start, e.g. permission denied"""

    def __init__(self, reason: str = "Geolocation is not supported"):
        self.reason = reason

    def start(self, callback: LocationCallback) -> None:
        raise LocationUnavailableError(self.reason)

    def stop(self) -> None:
        pass


def distance_to(location: Location, geofence: Geofence) -> float:
    return distance_meters(location.lat, location.lng, geofence.center.lat, geofence.center.lng)


class GeofenceMonitor:
    """
    Tracks a device against named circular regions.

    Each geofence is either outside or inside; a fix flips the state when the
    Haversine distance crosses the radius, emitting exactly one enter or exit
    event, so events for one geofence always alternate.

    When the location source cannot start, the monitor stays active in
    simulation mode and accepts fixes through simulate_location().
    """

    def __init__(
        self,
        geofences: Iterable[Geofence] = (),
        on_change: Callable[[List[Geofence]], None] = lambda geofences: None,
        event_buffer: int = 50,
        history_size: int = 100,
        proximity_meters: float = 200.0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._geofences: Dict[str, Geofence] = {g.id: g for g in geofences}
        self._inside: Dict[str, bool] = {g_id: False for g_id in self._geofences}
        self._approaching: Dict[str, bool] = {g_id: False for g_id in self._geofences}
        self._on_change = on_change
        self._listeners: List[GeofenceListener] = []
        self.recent_events: Deque[GeofenceEvent] = deque(maxlen=event_buffer)
        self.history: Deque[Location] = deque(maxlen=history_size)
        self.proximity_meters = proximity_meters
        self._clock = clock
        self._source: Optional[LocationSource] = None
        self.current_location: Optional[Location] = None
        self.active = False
        self.simulation_mode = False

    # -- lifecycle ---------------------------------------------------------

    def start(self, source: Optional[LocationSource] = None) -> None:
        """
        Activate tracking.

        Without a source the monitor runs in simulation mode.

        Raises:
            LocationUnavailableError: source refused to start; the monitor stays
                active in simulation mode and the start is not retried
        """
        self.active = True
        if source is None:
            self.simulation_mode = True
            logger.info("Geofence monitor started in simulation mode")
            return

        try:
            source.start(self._on_fix)
        except LocationUnavailableError:
            self.simulation_mode = True
            logger.warning("Location source failed to start, falling back to simulation mode")
            raise

        self._source = source
        self.simulation_mode = False
        logger.info("Geofence monitor started", extra={"geofence_count": len(self._geofences)})

    def stop(self) -> None:
        if self._source is not None:
            self._source.stop()
            self._source = None
        self.active = False
        self.simulation_mode = False
        logger.info("Geofence monitor stopped")

    def subscribe(self, listener: GeofenceListener) -> None:
        self._listeners.append(listener)

    # -- feeds -------------------------------------------------------------

    def simulate_location(self, location: Location) -> List[GeofenceEvent]:
        """Manual substitute feed, used when no real source is available"""
        if not self.active:
            logger.debug("Ignoring simulated location while monitor is stopped")
            return []
        return self.update_location(location)

    def _on_fix(self, location: Location) -> None:
        if self.active:
            self.update_location(location)

    def update_location(self, location: Location) -> List[GeofenceEvent]:
        """Record a fix and evaluate every geofence against it"""
        if location.timestamp is None:
            location = Location(location.lat, location.lng, location.accuracy_meters, self._clock())

        self.current_location = location
        self.history.append(location)

        events = []
        for geofence in list(self._geofences.values()):
            event = self._transition(geofence, location)
            if event is not None:
                events.append(event)

        self._dispatch(events)
        return events

    def _dispatch(self, events: List[GeofenceEvent]) -> None:
        for event in events:
            self.recent_events.append(event)
            for listener in list(self._listeners):
                listener(event)

    def _transition(self, geofence: Geofence, location: Location) -> Optional[GeofenceEvent]:
        distance = distance_to(location, geofence)
        inside = distance <= geofence.radius_meters
        was_inside = self._inside.get(geofence.id, False)
        self._inside[geofence.id] = inside

        if inside and not was_inside:
            self._approaching[geofence.id] = False
            return self._event("enter", geofence, location, distance)
        if was_inside and not inside:
            return self._event("exit", geofence, location, distance)

        # Approach band: outside the radius but within the proximity distance
        approaching = (
            not inside
            and geofence.kind == GeofenceKind.MERCHANT
            and distance <= max(self.proximity_meters, geofence.radius_meters)
        )
        was_approaching = self._approaching.get(geofence.id, False)
        self._approaching[geofence.id] = approaching
        if approaching and not was_approaching:
            return self._event("proximity", geofence, location, distance)
        return None

    def _event(self, kind: str, geofence: Geofence, location: Location, distance: float) -> GeofenceEvent:
        logger.info(
            "Geofence event",
            extra={"event": kind, "geofence_id": geofence.id, "distance_m": round(distance, 1)},
        )
        return GeofenceEvent(
            kind=kind,
            geofence=geofence,
            location=location,
            distance_meters=distance,
            timestamp=location.timestamp or self._clock(),
        )

    # -- configuration -----------------------------------------------------

    def add_geofence(self, geofence: Geofence) -> List[GeofenceEvent]:
        """
        Register or replace a geofence.

        A new geofence starts outside. A replacement keeps its inside state and is
        re-evaluated against the latest fix, so a shrunk or moved region emits the
        exit (or enter) the change implies.
        """
        replacing = geofence.id in self._geofences
        self._geofences[geofence.id] = geofence
        if not replacing:
            self._inside[geofence.id] = False
            self._approaching[geofence.id] = False
        self._on_change(self.geofences)

        if not replacing or not self.active or self.current_location is None:
            return []
        event = self._transition(geofence, self.current_location)
        events = [event] if event is not None else []
        self._dispatch(events)
        return events

    def remove_geofence(self, geofence_id: str) -> None:
        if geofence_id not in self._geofences:
            raise GeofenceNotFoundError(f"Unknown geofence: {geofence_id}")
        del self._geofences[geofence_id]
        self._inside.pop(geofence_id, None)
        self._approaching.pop(geofence_id, None)
        self._on_change(self.geofences)

    @property
    def geofences(self) -> List[Geofence]:
        return list(self._geofences.values())

    # -- queries -----------------------------------------------------------

    def is_inside(self, geofence_id: str) -> bool:
        if geofence_id not in self._geofences:
            raise GeofenceNotFoundError(f"Unknown geofence: {geofence_id}")
        return self._inside.get(geofence_id, False)

    def nearby_geofences(self, max_distance: float = 1000, location: Optional[Location] = None) -> List[Geofence]:
        """Geofences whose center is within max_distance of location (default: current fix)"""
        location = location or self.current_location
        if location is None:
            return []
        return [g for g in self._geofences.values() if distance_to(location, g) <= max_distance]

    def is_location_accurate(self) -> bool:
        """Whether the latest fix is good enough for financial decisions"""
        if self.current_location is None or self.current_location.accuracy_meters is None:
            return False
        return self.current_location.accuracy_meters <= ACCURATE_FIX_METERS


ENTER_SEVERITY = {
    GeofenceKind.HIGH_RISK: Severity.CRITICAL,
    GeofenceKind.MERCHANT: Severity.MEDIUM,
    GeofenceKind.SAFE_ZONE: Severity.LOW,
}


def geofence_notification(event: GeofenceEvent) -> Notification:
    """Turn a geofence event into a user-facing notification"""
    geofence = event.geofence
    data = {
        "geofence_id": geofence.id,
        "event": event.kind,
        "distance_m": round(event.distance_meters, 1),
    }

    if event.kind == "enter":
        if geofence.kind == GeofenceKind.HIGH_RISK:
            title = "High Risk Location Detected"
            message = f"You've entered {geofence.name}, a high-spending zone. Consider strict limits here."
        elif geofence.kind == GeofenceKind.SAFE_ZONE:
            title = f"Entered {geofence.name}"
            message = f"You're in a safe zone: {geofence.name}."
        else:
            title = f"Near {geofence.name}"
            message = f"You've entered the {geofence.name} area. Spending here adds up; check your caps."
        severity = ENTER_SEVERITY[geofence.kind]
    elif event.kind == "exit":
        title = f"Left {geofence.name}"
        message = f"You've left the {geofence.name} area."
        severity = Severity.LOW
    else:
        title = f"Approaching {geofence.name}"
        message = f"You're about {event.distance_meters:.0f}m from {geofence.name}."
        severity = Severity.MEDIUM

    return Notification(
        title=title,
        message=message,
        severity=severity,
        source="geofence",
        timestamp=event.timestamp,
        data=data,
    )
