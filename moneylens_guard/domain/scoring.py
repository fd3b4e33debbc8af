"""Risk scoring engine - core business logic for spending decisions"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from moneylens_guard.domain.ledger import TransactionLedger, validate_amount
from moneylens_guard.domain.models import (
    FactorCategory,
    GatingAction,
    Location,
    Preferences,
    RiskAssessment,
    RiskFactor,
    RiskLevel,
    RiskTier,
    Severity,
    SpendingPattern,
)
from moneylens_guard.domain.patterns import PatternAggregator
from moneylens_guard.utils.date_utils import is_weekend

SEVERITY_MULTIPLIER = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

RECOMMENDATIONS = {
    RiskLevel.CRITICAL: "CRITICAL: This transaction poses significant financial risk. Consider alternatives or wait.",
    RiskLevel.DANGER: "DANGER: High risk transaction. Review your spending goals before proceeding.",
    RiskLevel.WARNING: "WARNING: Moderate risk detected. Consider if this purchase aligns with your budget.",
    RiskLevel.CAUTION: "CAUTION: Low risk detected. Proceed with awareness of your spending patterns.",
    RiskLevel.SAFE: "SAFE: Transaction appears to be within normal spending patterns.",
}


@dataclass(frozen=True)
class ScoringConfig:
    """
    Thresholds and weights for the risk assessor.

    Level bands (score >= cut-off):
    - 80: critical
    - 60: danger
    - 40: warning
    - 20: caution

    Gating: block at >= 90 or critical, require approval at >= 70 or danger,
    warn at >= 50 or warning, allow otherwise.
    """

    critical_level: float = 80
    danger_level: float = 60
    warning_level: float = 40
    caution_level: float = 20

    block_score: float = 90
    approval_score: float = 70
    warn_score: float = 50

    # Amount factor
    weekly_share_high: float = 0.3
    monthly_share_medium: float = 0.1
    amount_critical_weight: int = 30
    amount_high_weight: int = 20
    amount_medium_weight: int = 10

    # Merchant history factor
    history_high_weight: int = 25
    history_medium_weight: int = 15

    # Location factor
    location_nearby_weight: int = 10

    # Time-of-day factor
    night_start_hour: int = 22
    night_end_hour: int = 6  # inclusive
    night_weight: int = 15
    weekend_weight: int = 8

    # Frequency factor (trailing 24h at the same merchant)
    frequency_high_count: int = 3
    frequency_medium_count: int = 2
    frequency_high_weight: int = 20
    frequency_medium_weight: int = 10

    baseline_weight: int = 5


DEFAULT_SCORING = ScoringConfig()


def assess_amount_risk(amount: float, preferences: Preferences, config: ScoringConfig = DEFAULT_SCORING) -> RiskFactor:
    """Compare the amount against the daily, weekly and monthly limits"""
    if amount > preferences.daily_limit:
        return RiskFactor(
            FactorCategory.AMOUNT,
            Severity.CRITICAL,
            f"Transaction amount (${amount:.2f}) exceeds daily limit (${preferences.daily_limit:.2f})",
            config.amount_critical_weight,
        )
    if amount > preferences.weekly_limit * config.weekly_share_high:
        return RiskFactor(
            FactorCategory.AMOUNT,
            Severity.HIGH,
            f"Transaction amount (${amount:.2f}) is high relative to weekly limit",
            config.amount_high_weight,
        )
    if amount > preferences.monthly_limit * config.monthly_share_medium:
        return RiskFactor(
            FactorCategory.AMOUNT,
            Severity.MEDIUM,
            f"Transaction amount (${amount:.2f}) is moderate relative to monthly limit",
            config.amount_medium_weight,
        )
    return RiskFactor(
        FactorCategory.AMOUNT,
        Severity.LOW,
        f"Transaction amount (${amount:.2f}) is within safe limits",
        config.baseline_weight,
    )


def assess_merchant_risk(
    merchant: str, pattern: Optional[SpendingPattern], config: ScoringConfig = DEFAULT_SCORING
) -> RiskFactor:
    if pattern is not None and pattern.risk_tier == RiskTier.HIGH:
        return RiskFactor(
            FactorCategory.HISTORY,
            Severity.HIGH,
            f'Merchant "{merchant}" has a history of high spending',
            config.history_high_weight,
        )
    if pattern is not None and pattern.risk_tier == RiskTier.MEDIUM:
        return RiskFactor(
            FactorCategory.HISTORY,
            Severity.MEDIUM,
            f'Merchant "{merchant}" has moderate spending history',
            config.history_medium_weight,
        )
    return RiskFactor(
        FactorCategory.HISTORY,
        Severity.LOW,
        f'Merchant "{merchant}" has safe spending history',
        config.baseline_weight,
    )


def assess_location_risk(nearby_merchants: List[str], config: ScoringConfig = DEFAULT_SCORING) -> RiskFactor:
    if nearby_merchants:
        return RiskFactor(
            FactorCategory.LOCATION,
            Severity.MEDIUM,
            f"You're near {len(nearby_merchants)} known merchant(s)",
            config.location_nearby_weight,
        )
    return RiskFactor(
        FactorCategory.LOCATION,
        Severity.LOW,
        "Location appears safe for spending",
        config.baseline_weight,
    )


def assess_time_risk(now: datetime, config: ScoringConfig = DEFAULT_SCORING) -> RiskFactor:
    """Late night/early morning beats weekend; weekday daytime is baseline"""
    if now.hour >= config.night_start_hour or now.hour <= config.night_end_hour:
        return RiskFactor(
            FactorCategory.TIME,
            Severity.HIGH,
            "Late night/early morning spending is typically higher risk",
            config.night_weight,
        )
    if is_weekend(now):
        return RiskFactor(
            FactorCategory.TIME,
            Severity.MEDIUM,
            "Weekend spending patterns may be different",
            config.weekend_weight,
        )
    return RiskFactor(
        FactorCategory.TIME,
        Severity.LOW,
        "Time of day appears safe for spending",
        config.baseline_weight,
    )


def assess_frequency_risk(merchant: str, recent_count: int, config: ScoringConfig = DEFAULT_SCORING) -> RiskFactor:
    if recent_count >= config.frequency_high_count:
        return RiskFactor(
            FactorCategory.FREQUENCY,
            Severity.HIGH,
            f'Multiple transactions at "{merchant}" in the last 24 hours',
            config.frequency_high_weight,
        )
    if recent_count >= config.frequency_medium_count:
        return RiskFactor(
            FactorCategory.FREQUENCY,
            Severity.MEDIUM,
            f'Multiple transactions at "{merchant}" recently',
            config.frequency_medium_weight,
        )
    return RiskFactor(
        FactorCategory.FREQUENCY,
        Severity.LOW,
        "Transaction frequency appears normal",
        config.baseline_weight,
    )


def calculate_risk_score(factors: List[RiskFactor]) -> float:
    """Sum of weight x severity multiplier, clamped to [0, 100]"""
    total = sum(f.weight * SEVERITY_MULTIPLIER[f.severity] for f in factors)
    return clamp_score(total)


def clamp_score(score: float) -> float:
    return float(min(100, max(0, score)))


def determine_risk_level(score: float, config: ScoringConfig = DEFAULT_SCORING) -> RiskLevel:
    if score >= config.critical_level:
        return RiskLevel.CRITICAL
    elif score >= config.danger_level:
        return RiskLevel.DANGER
    elif score >= config.warning_level:
        return RiskLevel.WARNING
    elif score >= config.caution_level:
        return RiskLevel.CAUTION
    else:
        return RiskLevel.SAFE


def determine_action(level: RiskLevel, score: float, config: ScoringConfig = DEFAULT_SCORING) -> GatingAction:
    if level == RiskLevel.CRITICAL or score >= config.block_score:
        return GatingAction.BLOCK
    if level == RiskLevel.DANGER or score >= config.approval_score:
        return GatingAction.REQUIRE_APPROVAL
    if level == RiskLevel.WARNING or score >= config.warn_score:
        return GatingAction.WARN
    return GatingAction.ALLOW


def build_assessment(factors: List[RiskFactor], score: float, config: ScoringConfig = DEFAULT_SCORING) -> RiskAssessment:
    score = clamp_score(score)
    level = determine_risk_level(score, config)
    return RiskAssessment(
        score=score,
        level=level,
        factors=factors,
        recommendation=RECOMMENDATIONS[level],
        action=determine_action(level, score, config),
    )


class RiskAssessor:
    """Combines the five factors into a gated assessment.

    Reads aggregator state only; the clock drives the time-of-day and frequency factors.
    """

    def __init__(
        self,
        aggregator: PatternAggregator,
        ledger: TransactionLedger,
        preferences: Callable[[], Preferences],
        nearby_merchants: Callable[[Location], List[str]] = lambda location: [],
        config: ScoringConfig = DEFAULT_SCORING,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.aggregator = aggregator
        self.ledger = ledger
        self._preferences = preferences
        self._nearby_merchants = nearby_merchants
        self.config = config
        self._clock = clock

    def assess(
        self,
        amount: float,
        merchant: str,
        category: str,
        location: Optional[Location] = None,
    ) -> RiskAssessment:
        """
        Assess a prospective purchase.

        Raises:
            InvalidAmountError: amount is NaN, infinite or not numeric
        """
        amount = validate_amount(amount)
        now = self._clock()
        preferences = self._preferences()

        factors = [
            assess_amount_risk(amount, preferences, self.config),
            assess_merchant_risk(merchant, self.aggregator.get(merchant), self.config),
        ]

        if _usable_location(location):
            factors.append(assess_location_risk(self._nearby_merchants(location), self.config))

        factors.append(assess_time_risk(now, self.config))

        recent = self.ledger.count_since(now - timedelta(hours=24), merchant=merchant)
        factors.append(assess_frequency_risk(merchant, recent, self.config))

        return build_assessment(factors, calculate_risk_score(factors), self.config)


def _usable_location(location: Optional[Location]) -> bool:
    """Malformed coordinates are treated like a missing location"""
    if location is None:
        return False
    try:
        lat, lng = float(location.lat), float(location.lng)
    except (TypeError, ValueError):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180
