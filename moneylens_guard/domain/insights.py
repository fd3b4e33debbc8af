"""Insight and prediction generation over aggregated spending patterns"""

import logging
import uuid
from collections import defaultdict, deque
from datetime import datetime, timedelta
from typing import Callable, Deque, Dict, List, Optional, Tuple

from moneylens_guard.domain.ledger import TransactionLedger
from moneylens_guard.domain.models import (
    AutonomousAction,
    FactorCategory,
    Insight,
    Notification,
    Prediction,
    Preferences,
    RiskAssessment,
    RiskFactor,
    RiskTier,
    Severity,
    SpendingPattern,
)
from moneylens_guard.domain.patterns import PatternAggregator
from moneylens_guard.domain.scoring import DEFAULT_SCORING, ScoringConfig, build_assessment
from moneylens_guard.utils.date_utils import days_between, is_weekend, start_of_day
from moneylens_guard.utils.geo_utils import centroid, distance_meters

logger = logging.getLogger(__name__)

NotificationSink = Callable[[Notification], None]

TIER_SCORE = {RiskTier.LOW: 1, RiskTier.MEDIUM: 2, RiskTier.HIGH: 3}

ACTION_CONFIDENCE = 80
ACTION_WINDOW = timedelta(minutes=5)


def estimate_window_spend(patterns: List[SpendingPattern], now: datetime, window_days: int) -> float:
    """
    Extrapolate spending over a trailing window from visit frequency and average ticket.

    A merchant last seen d days ago with n visits is assumed to be visited
    n * window/d times per window (d floored at one day), capped at one visit a day.
    """
    total = 0.0
    for p in patterns:
        if p.last_visit is None:
            continue
        days_since = days_between(p.last_visit, now)
        if days_since > window_days:
            continue
        visits = min(window_days, p.visit_count * (window_days / max(1.0, days_since)))
        total += visits * p.average_amount
    return total


def forecast_next_week(
    recent_weekly: float,
    historical_weekly: float,
    recent_weight: float = 0.7,
) -> Tuple[float, float]:
    """
    Forecast next week's spending.

    Blends the recent-week estimate with the historical weekly average, then scales
    by the recent/historical trend clamped to [0.5, 1.5]. Without recent activity the
    historical average stands alone with a neutral trend.

    Returns:
        (forecast, raw_trend_factor)
    """
    if recent_weekly > 0:
        trend = recent_weekly / max(historical_weekly, 1.0)
        base = recent_weight * recent_weekly + (1 - recent_weight) * historical_weekly
    else:
        trend = 1.0
        base = historical_weekly

    return base * min(1.5, max(0.5, trend)), trend


class InsightGenerator:
    """
    Periodic scans over the aggregator snapshot.

    shallow_scan() runs often (trends, anomalies, predictions, autonomous alerts);
    deep_scan() runs rarely (time, location and behavioral patterns). Both only
    append to in-memory lists; nothing is persisted. Predictions keep only the
    most recent `prediction_history` entries.
    """

    def __init__(
        self,
        aggregator: PatternAggregator,
        ledger: TransactionLedger,
        preferences: Callable[[], Preferences],
        sink: NotificationSink = lambda notification: None,
        cooldown_seconds: float = 300.0,
        prediction_history: int = 60,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.aggregator = aggregator
        self.ledger = ledger
        self._preferences = preferences
        self._sink = sink
        self.cooldown = timedelta(seconds=cooldown_seconds)
        self._clock = clock
        self.insights: List[Insight] = []
        self.predictions: Deque[Prediction] = deque(maxlen=prediction_history)
        self.actions: List[AutonomousAction] = []
        self._last_emitted: Dict[str, datetime] = {}

    # -- scans -------------------------------------------------------------

    def shallow_scan(self) -> List[Insight]:
        now = self._clock()
        patterns = self.aggregator.snapshot()
        before = len(self.insights)

        self._analyze_trends(patterns, now)
        self._check_daily_limit(now)
        self._detect_anomalies(patterns, now)
        self._generate_predictions(patterns, now)
        self._execute_autonomous_actions(now)

        return self.insights[before:]

    def deep_scan(self) -> List[Insight]:
        logger.info("Performing deep analysis")
        now = self._clock()
        patterns = self.aggregator.snapshot()
        before = len(self.insights)

        self._identify_time_patterns(now)
        self._identify_location_patterns(now)
        self._analyze_behavior(patterns, now)
        self._update_risk_model(patterns, now)
        self._generate_strategic_insights(now)

        return self.insights[before:]

    # -- shallow -----------------------------------------------------------

    def _analyze_trends(self, patterns: List[SpendingPattern], now: datetime) -> None:
        avg_daily = estimate_window_spend(patterns, now, 7) / 7
        projected_monthly = estimate_window_spend(patterns, now, 30)

        if avg_daily > 150:
            self.add_insight(
                "trend_high_daily", "spending_trend",
                "High Daily Spending Detected",
                f"Average daily spending is ${avg_daily:.2f}, which is significantly above normal levels.",
                Severity.HIGH, 90, now,
                suggested_action="Consider setting daily spending limits or reviewing recent purchases.",
            )
        elif avg_daily > 100:
            self.add_insight(
                "trend_moderate_daily", "spending_trend",
                "Moderate Daily Spending Increase",
                f"Average daily spending is ${avg_daily:.2f}, which is above normal levels.",
                Severity.MEDIUM, 75, now,
                suggested_action="Monitor your spending patterns and consider setting daily limits.",
            )

        if projected_monthly > 2000:
            self.add_insight(
                "trend_high_monthly", "spending_trend",
                "High Monthly Spending Detected",
                f"Projected monthly spending is ${projected_monthly:.2f}, which may exceed your budget.",
                Severity.HIGH, 80, now,
                suggested_action="Review your monthly budget and consider reducing discretionary spending.",
            )

    def _check_daily_limit(self, now: datetime) -> None:
        limit = self._preferences().daily_limit
        spent_today = self.ledger.spent_since(start_of_day(now))
        if spent_today > limit:
            self.add_insight(
                "daily_limit_breached", "risk_alert",
                "Daily Limit Exceeded",
                f"You've spent ${spent_today:.2f} today against a daily limit of ${limit:.2f}.",
                Severity.CRITICAL, 95, now,
                suggested_action="Pause discretionary purchases until tomorrow.",
            )

    def _detect_anomalies(self, patterns: List[SpendingPattern], now: datetime) -> None:
        for p in patterns:
            if p.average_amount > 200 and p.visit_count > 5:
                self.add_insight(
                    f"anomaly_amount:{p.merchant}", "pattern_anomaly",
                    f"Unusual Spending Pattern at {p.merchant}",
                    f"High average spending of ${p.average_amount:.2f} with {p.visit_count} visits.",
                    Severity.MEDIUM, 75, now,
                    suggested_action="Review spending at this merchant and consider setting spending caps.",
                    merchant=p.merchant,
                )

            if p.last_visit is not None and p.visit_count > 10 and days_between(p.last_visit, now) < 1:
                self.add_insight(
                    f"anomaly_frequency:{p.merchant}", "pattern_anomaly",
                    f"Frequent Visits to {p.merchant}",
                    f"Multiple visits to {p.merchant} in a short period.",
                    Severity.HIGH, 90, now,
                    suggested_action="Consider if these visits are necessary or if spending is getting out of control.",
                    merchant=p.merchant,
                )

    def _generate_predictions(self, patterns: List[SpendingPattern], now: datetime) -> None:
        if not patterns:
            return

        recent = estimate_window_spend(patterns, now, 7)
        historical_weekly = self.historical_weekly_average(now)
        value, trend = forecast_next_week(recent, historical_weekly)

        self.predictions.append(Prediction(
            type="spending_forecast",
            value=round(value, 2),
            confidence=min(95, 60 + len(patterns) * 5),
            timeframe="next_week",
            factors=[
                f"Recent spending: ${recent:.2f}",
                f"Historical average: ${historical_weekly:.2f}",
                f"Trend factor: {trend:.2f}x",
            ],
            timestamp=now,
        ))

        high_risk = [p for p in patterns if p.risk_tier == RiskTier.HIGH and p.last_visit is not None]
        if high_risk:
            frequency = sum(
                p.visit_count / max(1.0, days_between(p.last_visit, now)) for p in high_risk
            ) / len(high_risk)
            probability = min(0.9, max(0.1, frequency / 7))
            average = sum(p.average_amount for p in high_risk) / len(high_risk)

            self.predictions.append(Prediction(
                type="merchant_visit_probability",
                value=round(probability, 3),
                confidence=min(90, 50 + len(high_risk) * 10),
                timeframe="next_3_days",
                factors=[
                    f"Visit frequency: {frequency:.2f}/day",
                    f"High-risk merchants: {len(high_risk)}",
                    f"Average spending: ${average:.2f}",
                ],
                timestamp=now,
            ))

        avg_tier = sum(TIER_SCORE[p.risk_tier] for p in patterns) / len(patterns)
        self.predictions.append(Prediction(
            type="risk_prediction",
            value=round(avg_tier, 2),
            confidence=70,
            timeframe="next_transaction",
            factors=[
                f"Average merchant risk: {avg_tier:.1f}/3",
                f"High-risk merchants: {len(high_risk)}",
                f"Total patterns: {len(patterns)}",
            ],
            timestamp=now,
        ))

    def _execute_autonomous_actions(self, now: datetime) -> None:
        handled = {a.parameters.get("insight_id") for a in self.actions}
        for insight in self.insights:
            if insight.id in handled:
                continue
            if insight.severity != Severity.CRITICAL or now - insight.timestamp >= ACTION_WINDOW:
                continue
            if insight.confidence < ACTION_CONFIDENCE:
                continue

            action = AutonomousAction(
                id=str(uuid.uuid4()),
                type="auto_alert",
                description=f"Autonomous action triggered by: {insight.title}",
                executed=False,
                timestamp=now,
                parameters={"insight_id": insight.id},
            )
            self.actions.append(action)
            self._sink(Notification(
                title=insight.title,
                message=insight.description,
                severity=insight.severity,
                source="insights",
                timestamp=now,
                data={"insight_id": insight.id, "suggested_action": insight.suggested_action},
            ))
            action.executed = True
            logger.info("Autonomous action executed", extra={"action_id": action.id, "insight_id": insight.id})

    # -- deep --------------------------------------------------------------

    def _identify_time_patterns(self, now: datetime) -> None:
        txns = list(self.ledger)
        if len(txns) < 5:
            return

        night = sum(1 for t in txns if t.timestamp.hour >= 22 or t.timestamp.hour <= 6)
        weekend = sum(1 for t in txns if is_weekend(t.timestamp))

        if night / len(txns) > 0.3:
            self.add_insight(
                "time_pattern:evening", "spending_trend",
                "Time-Based Spending Pattern Detected",
                f"{night / len(txns):.0%} of purchases happen late at night.",
                Severity.LOW, 80, now, actionable=False,
            )
        if weekend / len(txns) > 0.5:
            self.add_insight(
                "time_pattern:weekend", "spending_trend",
                "Time-Based Spending Pattern Detected",
                f"{weekend / len(txns):.0%} of purchases happen on weekends.",
                Severity.LOW, 80, now, actionable=False,
            )

    def _identify_location_patterns(self, now: datetime) -> None:
        located = [t.location for t in self.ledger if t.location is not None]
        if len(located) < 3:
            return

        lat, lng = centroid((loc.lat, loc.lng) for loc in located)
        close = sum(1 for loc in located if distance_meters(loc.lat, loc.lng, lat, lng) <= 1000)
        if close / len(located) >= 0.7:
            self.add_insight(
                "location_pattern:concentrated", "spending_trend",
                "Location-Based Spending Pattern Detected",
                "Spending is concentrated in specific areas.",
                Severity.LOW, 75, now, actionable=False,
            )

    def _analyze_behavior(self, patterns: List[SpendingPattern], now: datetime) -> None:
        impulse = [
            p for p in patterns
            if p.average_amount > 50 and p.visit_count > 3 and p.risk_tier == RiskTier.HIGH
        ]
        if impulse:
            self.add_insight(
                "impulse_buying", "recommendation",
                "Potential Impulse Buying Detected",
                f"{len(impulse)} merchant(s) show signs of impulse buying behavior.",
                Severity.MEDIUM, 70, now,
                suggested_action="Consider implementing a 24-hour cooling-off period for purchases over $50.",
            )

    def _update_risk_model(self, patterns: List[SpendingPattern], now: datetime) -> None:
        if not patterns:
            return
        avg_spending = sum(p.average_amount for p in patterns) / len(patterns)
        if avg_spending > 100:
            self.add_insight(
                "risk_model_updated", "recommendation",
                "Risk Model Updated",
                "Risk thresholds have been adjusted based on your spending patterns.",
                Severity.LOW, 85, now, actionable=False,
            )

    def _generate_strategic_insights(self, now: datetime) -> None:
        by_category: Dict[str, float] = defaultdict(float)
        for t in self.ledger:
            by_category[t.category] += t.amount

        total = sum(by_category.values())
        if total <= 0:
            return

        category, amount = max(by_category.items(), key=lambda kv: kv[1])
        if len(by_category) > 1 and amount > total * 0.4:
            self.add_insight(
                f"category_concentration:{category}", "recommendation",
                f"{category.title()} Spending Optimization",
                f"{category.title()} spending represents {amount / total * 100:.1f}% of total spending.",
                Severity.MEDIUM, 80, now,
                suggested_action=f"Look for ways to trim {category} expenses.",
            )

    # -- helpers -----------------------------------------------------------

    def historical_weekly_average(self, now: datetime) -> float:
        txns = list(self.ledger)
        if not txns:
            return 0.0
        first = min(t.timestamp for t in txns)
        weeks = max(1.0, days_between(first, now) / 7)
        return sum(t.amount for t in txns) / weeks

    def add_insight(
        self,
        key: str,
        type: str,
        title: str,
        description: str,
        severity: Severity,
        confidence: int,
        now: datetime,
        actionable: bool = True,
        suggested_action: Optional[str] = None,
        merchant: Optional[str] = None,
    ) -> Optional[Insight]:
        """Append an insight unless the same key fired within the cooldown"""
        last = self._last_emitted.get(key)
        if last is not None and now - last < self.cooldown:
            return None

        insight = Insight(
            id=str(uuid.uuid4()),
            key=key,
            type=type,
            title=title,
            description=description,
            severity=severity,
            confidence=confidence,
            timestamp=now,
            actionable=actionable,
            suggested_action=suggested_action,
            merchant=merchant,
        )
        self.insights.append(insight)
        self._last_emitted[key] = now
        logger.info("Insight generated", extra={"insight_key": key, "severity": severity.value})
        return insight

    def enhance_assessment(
        self,
        assessment: RiskAssessment,
        merchant: str,
        config: ScoringConfig = DEFAULT_SCORING,
    ) -> RiskAssessment:
        """Raise the score by 10 when an anomaly was flagged for this merchant"""
        flagged = any(i.type == "pattern_anomaly" and i.merchant == merchant for i in self.insights)
        if not flagged:
            return assessment

        factors = assessment.factors + [
            RiskFactor(
                FactorCategory.HISTORY,
                Severity.MEDIUM,
                f"Unusual spending patterns detected at {merchant}",
                15,
            )
        ]
        return build_assessment(factors, assessment.score + 10, config)
