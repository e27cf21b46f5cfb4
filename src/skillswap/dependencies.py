"""Shared FastAPI dependencies for app-owned resources."""

from fastapi import Request

from skillswap.notifications.dispatcher import NotificationDispatcher


def get_notifier(request: Request) -> NotificationDispatcher:
    """The dispatcher constructed by the app factory."""
    return request.app.state.notifier
