"""Session context: one object owning every component of the spending bodyguard"""

import logging
from collections import deque
from dataclasses import asdict, fields
from datetime import datetime
from typing import Callable, Deque, List, Optional

from moneylens_guard.config import Settings, settings as default_settings
from moneylens_guard.domain.caps import CapRegistry
from moneylens_guard.domain.exceptions import SpendingCapExceededError
from moneylens_guard.domain.geofence import GeofenceMonitor, LocationSource, distance_to, geofence_notification
from moneylens_guard.domain.insights import InsightGenerator, NotificationSink
from moneylens_guard.domain.ledger import TransactionLedger, validate_transaction
from moneylens_guard.domain.models import (
    CapStatus,
    GatingAction,
    GeofenceEvent,
    GeofenceKind,
    Insight,
    Location,
    Notification,
    Preferences,
    RiskAssessment,
    Severity,
    Transaction,
)
from moneylens_guard.domain.patterns import PatternAggregator
from moneylens_guard.domain.scheduler import Scheduler
from moneylens_guard.domain.scoring import DEFAULT_SCORING, RiskAssessor, ScoringConfig
from moneylens_guard.infrastructure.observability.metrics import (
    cap_rejection_counter,
    geofence_event_counter,
    insight_counter,
    record_assessment,
    transaction_counter,
)
from moneylens_guard.infrastructure.preferences import KeyValueStore, PreferenceStore, PreferencesRecord
from moneylens_guard.utils.geo_utils import distance_meters

logger = logging.getLogger(__name__)

ACTION_SEVERITY = {
    GatingAction.WARN: Severity.MEDIUM,
    GatingAction.REQUIRE_APPROVAL: Severity.HIGH,
    GatingAction.BLOCK: Severity.CRITICAL,
}

PREFERENCE_FIELDS = {f.name for f in fields(Preferences)}


class NotificationHub:
    """Keeps the most recent notifications and fans them out to sinks"""

    def __init__(self, size: int = 50):
        self.recent: Deque[Notification] = deque(maxlen=size)
        self._sinks: List[NotificationSink] = []

    def subscribe(self, sink: NotificationSink) -> None:
        self._sinks.append(sink)

    def __call__(self, notification: Notification) -> None:
        self.recent.append(notification)
        for sink in list(self._sinks):
            sink(notification)


class GuardContext:
    """
    All state for one user session.

    Built once and handed to whoever needs it (the HTTP app keeps it on
    app.state). Everything runs on a single logical thread; periodic scans are
    driven through `scheduler`.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: Settings = default_settings,
        scoring: ScoringConfig = DEFAULT_SCORING,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config
        self.scoring = scoring
        self.clock = clock

        self.preference_store = PreferenceStore(
            store,
            defaults=Preferences(
                daily_limit=config.default_daily_limit,
                weekly_limit=config.default_weekly_limit,
                monthly_limit=config.default_monthly_limit,
            ),
        )
        self.preferences = self.preference_store.load()

        self.ledger = TransactionLedger()
        self.aggregator = PatternAggregator(self.ledger, self._current_preferences, clock)
        self.notifications = NotificationHub(config.geofence_event_buffer)

        self.monitor = GeofenceMonitor(
            self.preference_store.load_geofences(),
            on_change=self.preference_store.save_geofences,
            event_buffer=config.geofence_event_buffer,
            history_size=config.location_history_size,
            proximity_meters=config.proximity_alert_meters,
            clock=clock,
        )
        self.monitor.subscribe(self._on_geofence_event)

        self.caps = CapRegistry(
            self.ledger,
            self.preference_store.load_caps(),
            on_change=self.preference_store.save_caps,
            clock=clock,
        )
        self.assessor = RiskAssessor(
            self.aggregator,
            self.ledger,
            self._current_preferences,
            nearby_merchants=self.nearby_merchants,
            config=scoring,
            clock=clock,
        )
        self.insights = InsightGenerator(
            self.aggregator,
            self.ledger,
            self._current_preferences,
            sink=self._alert,
            cooldown_seconds=config.insight_cooldown_seconds,
            prediction_history=config.prediction_history_size,
            clock=clock,
        )
        self.scheduler = Scheduler(clock)

    def _current_preferences(self) -> Preferences:
        return self.preferences

    # -- transactions --------------------------------------------------------

    def record_transaction(self, transaction: Transaction) -> None:
        self.aggregator.record_transaction(transaction)
        transaction_counter.inc()

    def submit_transaction(self, transaction: Transaction) -> CapStatus:
        """
        Record a purchase unless its merchant or category cap is already spent.

        Raises:
            InvalidAmountError: amount is not a usable number
            InvalidTransactionDataError: missing merchant or category
            SpendingCapExceededError: cap reached and no override for the merchant
        """
        validate_transaction(transaction)
        status = self.caps.status(transaction.merchant, transaction.category)
        if status.over_cap and not self.caps.has_override(transaction.merchant):
            cap_rejection_counter.inc()
            logger.warning(
                "Transaction blocked by spending cap",
                extra={"merchant": transaction.merchant, "cap_kind": status.cap_kind},
            )
            raise SpendingCapExceededError("Transaction blocked: spending cap exceeded", status)

        self.record_transaction(transaction)
        return self.caps.status(transaction.merchant, transaction.category)

    # -- assessment ----------------------------------------------------------

    def assess(
        self,
        amount: float,
        merchant: str,
        category: str,
        location: Optional[Location] = None,
    ) -> RiskAssessment:
        assessment = self.assessor.assess(amount, merchant, category, location)
        assessment = self.insights.enhance_assessment(assessment, merchant, self.scoring)
        record_assessment(assessment.level.value, assessment.action.value, assessment.score)

        if assessment.action != GatingAction.ALLOW:
            self._alert(Notification(
                title=f"Spending alert: {merchant}",
                message=assessment.recommendation,
                severity=ACTION_SEVERITY[assessment.action],
                source="assessment",
                timestamp=self.clock(),
                data={
                    "amount": amount,
                    "score": assessment.score,
                    "level": assessment.level.value,
                    "action": assessment.action.value,
                },
            ))
        return assessment

    def nearby_merchants(self, location: Location) -> List[str]:
        """Known merchants around a point: merchant geofences and located past purchases"""
        radius = self.config.nearby_merchant_radius_meters
        names = {
            g.merchant_id or g.name
            for g in self.monitor.geofences
            if g.kind == GeofenceKind.MERCHANT and distance_to(location, g) <= radius
        }
        names.update(
            t.merchant for t in self.ledger
            if t.location is not None
            and distance_meters(location.lat, location.lng, t.location.lat, t.location.lng) <= radius
        )
        return sorted(names)

    # -- preferences ---------------------------------------------------------

    def update_preferences(self, **changes) -> Preferences:
        """
        Apply and persist a partial update.

        Raises:
            ValueError: unknown preference key
            pydantic.ValidationError: non-positive limit or wrong type
        """
        unknown = set(changes) - PREFERENCE_FIELDS
        if unknown:
            raise ValueError(f"Unknown preferences: {', '.join(sorted(unknown))}")

        record = PreferencesRecord.model_validate({**asdict(self.preferences), **changes})
        self.preferences = Preferences(**record.model_dump())
        self.preference_store.save(self.preferences)
        self.aggregator.refresh_tiers()

        if not self.preferences.tracking_enabled and self.monitor.active:
            self.stop_tracking()

        logger.info("Preferences updated", extra={"changed": sorted(changes)})
        return self.preferences

    # -- location ------------------------------------------------------------

    def start_tracking(self, source: Optional[LocationSource] = None) -> bool:
        """
        Start geofence monitoring; False when tracking is disabled in preferences.

        Raises:
            LocationUnavailableError: the source failed; simulate_location() still works
        """
        if not self.preferences.tracking_enabled:
            logger.info("Location tracking disabled in preferences")
            return False
        self.monitor.start(source)
        return True

    def stop_tracking(self) -> None:
        self.monitor.stop()

    def simulate_location(self, location: Location) -> List[GeofenceEvent]:
        if not self.preferences.tracking_enabled:
            return []
        return self.monitor.simulate_location(location)

    def _on_geofence_event(self, event: GeofenceEvent) -> None:
        geofence_event_counter.labels(event=event.kind).inc()
        self._alert(geofence_notification(event))

    def _alert(self, notification: Notification) -> None:
        if self.preferences.alerts_enabled:
            self.notifications(notification)

    # -- insights ------------------------------------------------------------

    def run_shallow_scan(self) -> List[Insight]:
        return self._count(self.insights.shallow_scan())

    def run_deep_scan(self) -> List[Insight]:
        return self._count(self.insights.deep_scan())

    def _count(self, insights: List[Insight]) -> List[Insight]:
        for insight in insights:
            insight_counter.labels(type=insight.type).inc()
        return insights

    def start_analysis(self) -> None:
        """Schedule the shallow and deep scans; drive with scheduler.run_pending()"""
        if not self.scheduler.tasks:
            self.scheduler.every(self.config.shallow_scan_interval_seconds, self.run_shallow_scan, "shallow_scan")
            self.scheduler.every(self.config.deep_scan_interval_seconds, self.run_deep_scan, "deep_scan")
        self.scheduler.start()

    def stop_analysis(self) -> None:
        self.scheduler.stop()
