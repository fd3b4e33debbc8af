"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class RiskTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FactorCategory(str, Enum):
    AMOUNT = "amount"
    HISTORY = "history"
    LOCATION = "location"
    TIME = "time"
    FREQUENCY = "frequency"


class RiskLevel(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    WARNING = "warning"
    DANGER = "danger"
    CRITICAL = "critical"


class GatingAction(str, Enum):
    ALLOW = "allow"
    WARN = "warn"
    REQUIRE_APPROVAL = "require_approval"
    BLOCK = "block"


class GeofenceKind(str, Enum):
    MERCHANT = "merchant"
    HIGH_RISK = "high_risk"
    SAFE_ZONE = "safe_zone"


@dataclass(frozen=True)
class Location:
    """A single coordinate fix"""

    lat: float
    lng: float
    accuracy_meters: Optional[float] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class Transaction:
    """Recorded purchase; immutable once appended to the ledger"""

    id: str
    amount: float
    merchant: str
    category: str
    timestamp: datetime
    location: Optional[Location] = None


@dataclass
class SpendingPattern:
    """Rolling statistics for one merchant"""

    merchant: str
    total_spent: float = 0.0
    visit_count: int = 0
    last_visit: Optional[datetime] = None
    risk_tier: RiskTier = RiskTier.LOW

    @property
    def average_amount(self) -> float:
        return self.total_spent / self.visit_count if self.visit_count else 0.0


@dataclass(frozen=True)
class RiskFactor:
    """One scored dimension of an assessment"""

    category: FactorCategory
    severity: Severity
    message: str
    weight: int


@dataclass
class RiskAssessment:
    """Output of risk assessment"""

    score: float
    level: RiskLevel
    factors: List[RiskFactor]
    recommendation: str
    action: GatingAction


@dataclass(frozen=True)
class Geofence:
    """Named circular region"""

    id: str
    name: str
    center: Location
    radius_meters: float
    kind: GeofenceKind
    merchant_id: Optional[str] = None


@dataclass
class Preferences:
    """User-tunable thresholds feeding the risk assessor"""

    daily_limit: float = 200.0
    weekly_limit: float = 1000.0
    monthly_limit: float = 4000.0
    tracking_enabled: bool = True
    alerts_enabled: bool = True


@dataclass(frozen=True)
class GeofenceEvent:
    """Entry, exit or approach of a geofence"""

    kind: str  # "enter" | "exit" | "proximity"
    geofence: Geofence
    location: Location
    distance_meters: float
    timestamp: datetime


@dataclass(frozen=True)
class Notification:
    """Structured event handed to the notification sink"""

    title: str
    message: str
    severity: Severity
    source: str = "bodyguard"
    timestamp: Optional[datetime] = None
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Insight:
    """Human-readable finding produced by a scan"""

    id: str
    key: str
    type: str  # spending_trend | risk_alert | pattern_anomaly | recommendation | prediction
    title: str
    description: str
    severity: Severity
    confidence: int  # 0-100
    timestamp: datetime
    actionable: bool
    suggested_action: Optional[str] = None
    merchant: Optional[str] = None


@dataclass
class Prediction:
    """Simple forecast emitted by a shallow scan"""

    type: str  # spending_forecast | merchant_visit_probability | risk_prediction
    value: float
    confidence: int
    timeframe: str
    factors: List[str]
    timestamp: datetime


@dataclass
class AutonomousAction:
    """Alert raised automatically from a critical insight"""

    id: str
    type: str
    description: str
    executed: bool
    timestamp: datetime
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SpendingCap:
    """Monthly spending cap for a merchant or a category"""

    id: str
    kind: str  # "merchant" | "category"
    target: str
    amount: float
    active: bool = True


@dataclass(frozen=True)
class CapStatus:
    """Month-to-date position against the effective cap"""

    cap_kind: str  # "merchant" | "category" | "none"
    cap_amount: float
    current_spend: float
    percentage: float
    near_cap: bool
    over_cap: bool
