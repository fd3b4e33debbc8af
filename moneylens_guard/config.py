"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="MONEYLENS_", extra="ignore"
    )

    # Database (key-value preference store)
    database_url: str = "sqlite:///./moneylens.db"

    # Service
    service_name: str = "moneylens-guard"
    log_level: str = "INFO"

    # Notification webhook (optional)
    notification_webhook_url: str | None = None
    http_timeout_seconds: float = 5.0
    webhook_max_retries: int = 5
    webhook_backoff_base: float = 1.0  # Exponential backoff base in seconds
    notification_queue_size: int = 100
    notification_flush_interval_seconds: float = 1.0

    # Default spending thresholds, used when nothing is saved
    default_daily_limit: float = 200.0
    default_weekly_limit: float = 1000.0
    default_monthly_limit: float = 4000.0

    # Insight scans
    shallow_scan_interval_seconds: float = 30.0
    deep_scan_interval_seconds: float = 300.0
    insight_cooldown_seconds: float = 300.0
    prediction_history_size: int = 60

    # Location
    geofence_event_buffer: int = 50
    location_history_size: int = 100
    nearby_merchant_radius_meters: float = 500.0
    proximity_alert_meters: float = 200.0


settings = Settings()
