"""Review notification queue persistence helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from grant_review.core.config import settings
from grant_review.core.logging import get_logger
from grant_review.services.queue import QueuedTask, enqueue_task
from grant_review.services.queue import requeue_if_failed as generic_requeue_if_failed

logger = get_logger(__name__)
TASK_TYPE = "review_notification"

NOTIFICATION_KINDS = frozenset(
    {
        "review_assignment",
        "review_reminder",
        "overdue_notice",
        "reconciliation_assignment",
    },
)


@dataclass(frozen=True)
class ReviewNotification:
    """An email-bound message for one reviewer."""

    kind: str
    recipient_email: str
    template_data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    attempts: int = 0


def _task_from_notification(notification: ReviewNotification) -> QueuedTask:
    return QueuedTask(
        task_type=TASK_TYPE,
        payload={
            "kind": notification.kind,
            "recipient_email": notification.recipient_email,
            "template_data": notification.template_data,
        },
        created_at=notification.created_at,
        attempts=notification.attempts,
    )


def decode_notification_task(task: QueuedTask) -> ReviewNotification:
    """Decode a QueuedTask into a ReviewNotification."""
    if task.task_type != TASK_TYPE:
        raise ValueError(f"Unexpected task_type={task.task_type!r}; expected {TASK_TYPE!r}")
    p: dict[str, Any] = task.payload
    return ReviewNotification(
        kind=str(p["kind"]),
        recipient_email=str(p["recipient_email"]),
        template_data=dict(p.get("template_data") or {}),
        created_at=task.created_at,
        attempts=task.attempts,
    )


def enqueue_notification(notification: ReviewNotification) -> bool:
    """Persist a review notification in the Redis queue."""
    if notification.kind not in NOTIFICATION_KINDS:
        logger.warning(
            "notification.unknown_kind",
            extra={"kind": notification.kind, "recipient": notification.recipient_email},
        )
        return False
    queued = enqueue_task(
        _task_from_notification(notification),
        settings.rq_queue_name,
        redis_url=settings.rq_redis_url,
    )
    if queued:
        logger.info(
            "notification.enqueued",
            extra={"kind": notification.kind, "recipient": notification.recipient_email},
        )
    return queued


def requeue_if_failed(
    notification: ReviewNotification,
    *,
    delay_seconds: float = 0,
) -> bool:
    """Requeue a failed notification with capped retries."""
    return generic_requeue_if_failed(
        _task_from_notification(notification),
        settings.rq_queue_name,
        max_retries=settings.rq_dispatch_max_retries,
        redis_url=settings.rq_redis_url,
        delay_seconds=delay_seconds,
    )
