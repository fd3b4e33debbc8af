"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "moneylens-guard"


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_assessment(
    request_id: str,
    merchant: str,
    amount: float,
    score: float,
    level: str,
    action: str,
    duration_ms: float,
) -> None:
    """Log structured assessment outcome for analysis"""
    logging.info(
        "Assessment completed",
        extra={
            "request_id": request_id,
            "merchant": merchant,
            "amount": amount,
            "step": "assessment_complete",
            "risk_score": score,
            "risk_level": level,
            "gating_action": action,
            "duration_ms": duration_ms,
        },
    )
