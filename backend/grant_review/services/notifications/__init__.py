"""Best-effort reviewer notifications.

`notify` is what the review engines call. It never raises: a notification that
cannot be queued is logged and dropped so the review transition still commits.
"""

from __future__ import annotations

from typing import Any, Protocol

from grant_review.core.logging import get_logger
from grant_review.services.notifications.queue import ReviewNotification, enqueue_notification

logger = get_logger(__name__)


class Notifier(Protocol):
    def __call__(self, kind: str, recipient_email: str, template_data: dict[str, Any]) -> bool: ...


def notify(kind: str, recipient_email: str, template_data: dict[str, Any]) -> bool:
    """Queue a notification for delivery; returns False instead of raising."""
    try:
        return enqueue_notification(
            ReviewNotification(
                kind=kind,
                recipient_email=recipient_email,
                template_data=template_data,
            ),
        )
    except Exception:
        logger.warning(
            "notification.enqueue_failed",
            extra={"kind": kind, "recipient": recipient_email},
            exc_info=True,
        )
        return False


def notify_safely(
    notifier: Notifier,
    kind: str,
    recipient_email: str,
    template_data: dict[str, Any],
) -> bool:
    """Call an injected notifier, absorbing any failure it raises."""
    try:
        return bool(notifier(kind, recipient_email, template_data))
    except Exception:
        logger.warning(
            "notification.notifier_failed",
            extra={"kind": kind, "recipient": recipient_email},
            exc_info=True,
        )
        return False


__all__ = ["Notifier", "ReviewNotification", "notify", "notify_safely"]
