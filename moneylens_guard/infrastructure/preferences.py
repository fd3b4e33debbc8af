"""Persistence of preferences, geofences and caps in a flat key-value store"""

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from moneylens_guard.domain.exceptions import PreferenceStoreError
from moneylens_guard.domain.models import Geofence, GeofenceKind, Location, Preferences, SpendingCap
from moneylens_guard.infrastructure.database.repositories import KeyValueRepository
from moneylens_guard.infrastructure.observability.metrics import store_failure_counter

logger = logging.getLogger(__name__)

PREFERENCES_KEY = "preferences"
GEOFENCES_KEY = "geofences"
CAPS_KEY = "spending_caps"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...


class InMemoryKeyValueStore:
    """Dict-backed store for tests and throwaway sessions"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return self.data.get(key)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value


class SqlKeyValueStore:
    """Key-value store on top of the kv_entry table"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get(self, key: str) -> Optional[Any]:
        db = self.session_factory()
        try:
            return KeyValueRepository(db).get(key)
        except SQLAlchemyError as e:
            raise PreferenceStoreError(f"Failed to read {key}: {e}") from e
        finally:
            db.close()

    def set(self, key: str, value: Any) -> None:
        db = self.session_factory()
        try:
            KeyValueRepository(db).put(key, value)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PreferenceStoreError(f"Failed to write {key}: {e}") from e
        finally:
            db.close()


class PreferencesRecord(BaseModel):
    """Stored shape of Preferences; missing keys fall back to defaults"""

    daily_limit: float = Field(200.0, gt=0)
    weekly_limit: float = Field(1000.0, gt=0)
    monthly_limit: float = Field(4000.0, gt=0)
    tracking_enabled: bool = True
    alerts_enabled: bool = True


class LocationRecord(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    accuracy_meters: Optional[float] = None


class GeofenceRecord(BaseModel):
    id: str = Field(..., min_length=1)
    name: str
    center: LocationRecord
    radius_meters: float = Field(..., gt=0)
    kind: GeofenceKind
    merchant_id: Optional[str] = None


class SpendingCapRecord(BaseModel):
    id: str
    kind: str = Field(..., pattern="^(merchant|category)$")
    target: str
    amount: float = Field(..., gt=0)
    active: bool = True


class PreferenceStore:
    """
    Load/save of user settings with a never-fatal policy.

    Read or validation failures are logged and the defaults are used; write
    failures are logged and the in-memory value stays authoritative.
    """

    def __init__(self, store: KeyValueStore, defaults: Optional[Preferences] = None):
        self.store = store
        self.defaults = defaults or Preferences()

    def load(self) -> Preferences:
        raw = self._read(PREFERENCES_KEY)
        if raw is None:
            return Preferences(**asdict(self.defaults))
        try:
            record = PreferencesRecord.model_validate({**asdict(self.defaults), **raw})
        except (ValidationError, TypeError) as e:
            store_failure_counter.labels(operation="load").inc()
            logger.warning("Stored preferences are invalid, using defaults", extra={"error": str(e)})
            return Preferences(**asdict(self.defaults))
        return Preferences(**record.model_dump())

    def save(self, preferences: Preferences) -> None:
        self._write(PREFERENCES_KEY, PreferencesRecord(**asdict(preferences)).model_dump())

    def load_geofences(self) -> List[Geofence]:
        raw = self._read(GEOFENCES_KEY) or []
        geofences = []
        for item in raw:
            try:
                record = GeofenceRecord.model_validate(item)
            except ValidationError as e:
                logger.warning("Skipping invalid stored geofence", extra={"error": str(e)})
                continue
            geofences.append(Geofence(
                id=record.id,
                name=record.name,
                center=Location(record.center.lat, record.center.lng, record.center.accuracy_meters),
                radius_meters=record.radius_meters,
                kind=record.kind,
                merchant_id=record.merchant_id,
            ))
        return geofences

    def save_geofences(self, geofences: List[Geofence]) -> None:
        self._write(GEOFENCES_KEY, [
            {
                "id": g.id,
                "name": g.name,
                "center": {"lat": g.center.lat, "lng": g.center.lng, "accuracy_meters": g.center.accuracy_meters},
                "radius_meters": g.radius_meters,
                "kind": g.kind.value,
                "merchant_id": g.merchant_id,
            }
            for g in geofences
        ])

    def load_caps(self) -> List[SpendingCap]:
        caps = []
        for item in self._read(CAPS_KEY) or []:
            try:
                caps.append(SpendingCap(**SpendingCapRecord.model_validate(item).model_dump()))
            except ValidationError as e:
                logger.warning("Skipping invalid stored cap", extra={"error": str(e)})
        return caps

    def save_caps(self, caps: List[SpendingCap]) -> None:
        self._write(CAPS_KEY, [asdict(c) for c in caps])

    def _read(self, key: str) -> Optional[Any]:
        try:
            return self.store.get(key)
        except PreferenceStoreError as e:
            store_failure_counter.labels(operation="load").inc()
            logger.warning("Failed to load from preference store", extra={"key": key, "error": str(e)})
            return None

    def _write(self, key: str, value: Any) -> None:
        try:
            self.store.set(key, value)
        except PreferenceStoreError as e:
            store_failure_counter.labels(operation="save").inc()
            logger.warning("Failed to save to preference store", extra={"key": key, "error": str(e)})
