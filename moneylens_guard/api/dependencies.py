"""Dependency injection for FastAPI endpoints"""

from fastapi import Request

from moneylens_guard.context import GuardContext
from moneylens_guard.infrastructure.clients.notifications import NotificationWebhookClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_context(request: Request) -> GuardContext:
    """Provide the session context built by the app factory"""
    return request.app.state.context


def get_notification_client(request: Request) -> NotificationWebhookClient:
    """Provide the notification webhook outbox"""
    return request.app.state.notification_client
