"""Date manipulation utilities"""

from datetime import datetime, timedelta


def start_of_day(moment: datetime) -> datetime:
    """Midnight of the day containing moment"""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(moment: datetime) -> datetime:
    return start_of_day(moment).replace(day=1)


def days_ago(now: datetime, days: float) -> datetime:
    return now - timedelta(days=days)


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from earlier to later"""
    return (later - earlier).total_seconds() / 86400


def is_weekend(moment: datetime) -> bool:
    return moment.weekday() >= 5
