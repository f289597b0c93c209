"""Review notification dispatch handler."""

from __future__ import annotations

from grant_review.core.logging import get_logger
from grant_review.services.notifications.queue import (
    ReviewNotification,
    decode_notification_task,
    requeue_if_failed,
)
from grant_review.services.queue import QueuedTask

logger = get_logger(__name__)


def _dispatch(notification: ReviewNotification) -> None:
    """Deliver a review notification.

    Currently logs the notification. Outbound email delivery plugs in here.
    """
    logger.info(
        "notification.dispatch",
        extra={
            "kind": notification.kind,
            "recipient": notification.recipient_email,
            "template_keys": sorted(notification.template_data),
            "attempt": notification.attempts,
        },
    )


async def process_notification_task(task: QueuedTask) -> None:
    """Decode and dispatch a review notification task."""
    _dispatch(decode_notification_task(task))


def requeue_notification_task(task: QueuedTask, *, delay_seconds: float = 0) -> bool:
    """Requeue a failed notification task."""
    return requeue_if_failed(decode_notification_task(task), delay_seconds=delay_seconds)
