"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from moneylens_guard.domain.models import GeofenceKind


class LocationSchema(BaseModel):
    """Coordinate fix"""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    accuracy_meters: Optional[float] = Field(None, ge=0)


class AssessRequest(BaseModel):
    """Request body for POST /v1/assess"""

    amount: float = Field(..., description="Prospective purchase amount in dollars")
    merchant: str = Field(..., min_length=1)
    category: str = Field("general", min_length=1)
    location: Optional[LocationSchema] = None


class RiskFactorSchema(BaseModel):
    category: str
    severity: str
    message: str
    weight: int


class AssessResponse(BaseModel):
    """Response for POST /v1/assess"""

    score: float
    level: str
    action: str
    recommendation: str
    factors: List[RiskFactorSchema]


class TransactionRequest(BaseModel):
    """Request body for POST /v1/transactions"""

    id: Optional[str] = None
    amount: float = Field(..., gt=0)
    merchant: str = Field(..., min_length=1)
    category: str = Field("general", min_length=1)
    timestamp: Optional[datetime] = None
    location: Optional[LocationSchema] = None


class CapStatusSchema(BaseModel):
    cap_kind: str
    cap_amount: float
    current_spend: float
    percentage: float
    near_cap: bool
    over_cap: bool


class TransactionResponse(BaseModel):
    """Response for POST /v1/transactions"""

    id: str
    merchant: str
    amount: float
    cap_status: CapStatusSchema


class CategoryAmount(BaseModel):
    category: str
    amount: float


class MerchantAmount(BaseModel):
    merchant: str
    amount: float


class SummaryResponse(BaseModel):
    """Response for GET /v1/transactions/summary"""

    window: str
    by_category: List[CategoryAmount]
    top_merchants: List[MerchantAmount]


class PatternSchema(BaseModel):
    merchant: str
    total_spent: float
    visit_count: int
    average_amount: float
    last_visit: Optional[datetime] = None
    risk_tier: str


class PreferencesSchema(BaseModel):
    daily_limit: float
    weekly_limit: float
    monthly_limit: float
    tracking_enabled: bool
    alerts_enabled: bool


class PreferencesUpdate(BaseModel):
    """Partial update for PUT /v1/preferences"""

    model_config = ConfigDict(extra="forbid")

    daily_limit: Optional[float] = Field(None, gt=0)
    weekly_limit: Optional[float] = Field(None, gt=0)
    monthly_limit: Optional[float] = Field(None, gt=0)
    tracking_enabled: Optional[bool] = None
    alerts_enabled: Optional[bool] = None


class GeofenceSchema(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    center: LocationSchema
    radius_meters: float = Field(..., gt=0)
    kind: GeofenceKind
    merchant_id: Optional[str] = None


class GeofenceEventSchema(BaseModel):
    event: str
    geofence_id: str
    name: str
    distance_meters: float
    timestamp: datetime


class InsightSchema(BaseModel):
    id: str
    type: str
    title: str
    description: str
    severity: str
    confidence: int
    timestamp: datetime
    actionable: bool
    suggested_action: Optional[str] = None


class PredictionSchema(BaseModel):
    type: str
    value: float
    confidence: int
    timeframe: str
    factors: List[str]
    timestamp: datetime


class ScanRequest(BaseModel):
    depth: str = Field("shallow", pattern="^(shallow|deep)$")


class CapCreateRequest(BaseModel):
    kind: str = Field(..., pattern="^(merchant|category)$")
    target: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    active: bool = True


class CapSchema(BaseModel):
    id: str
    kind: str
    target: str
    amount: float
    active: bool


class OverrideRequest(BaseModel):
    enabled: bool


class NotificationSchema(BaseModel):
    title: str
    message: str
    severity: str
    source: str
    timestamp: Optional[datetime] = None
