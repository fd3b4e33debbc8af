"""Prometheus metrics for assessments, geofencing, insights and notification delivery"""

from prometheus_client import Counter, Histogram

# Assessment metrics
assessment_counter = Counter(
    "moneylens_assessment_total",
    "Risk assessments made",
    ["level", "action"],
)

assessment_score_histogram = Histogram(
    "moneylens_assessment_score",
    "Distribution of risk scores",
    buckets=[10, 20, 30, 40, 50, 60, 70, 80, 90, 100],
)

transaction_counter = Counter(
    "moneylens_transactions_recorded_total",
    "Transactions appended to the ledger",
)

cap_rejection_counter = Counter(
    "moneylens_cap_rejections_total",
    "Purchases rejected by a spending cap",
)

# Geofencing and insights
geofence_event_counter = Counter(
    "moneylens_geofence_events_total",
    "Geofence transitions",
    ["event"],  # enter | exit | proximity
)

insight_counter = Counter(
    "moneylens_insights_total",
    "Insights emitted by scans",
    ["type"],
)

store_failure_counter = Counter(
    "moneylens_preference_store_failures_total",
    "Preference store read/write failures",
    ["operation"],  # load | save
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "notification_webhook_latency_seconds",
    "Notification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "notification_webhook_failures_total",
    "Failed notification deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_assessment(level: str, action: str, score: float) -> None:
    """Record assessment metrics for monitoring gating outcomes"""
    assessment_counter.labels(level=level, action=action).inc()
    assessment_score_histogram.observe(score)
