"""Redis list queue carrying background tasks (AI scoring, review notifications).

Immediate tasks are LPUSHed onto the queue list and consumed with (B)RPOP.
Delayed tasks (retries with backoff) wait in a sorted set scored by their due
timestamp and are moved onto the list once due.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any, cast

import redis

from grant_review.core.config import settings
from grant_review.core.logging import get_logger

logger = get_logger(__name__)

_SCHEDULED_SUFFIX = ":scheduled"
_DRAIN_BATCH_SIZE = 100


@dataclass(frozen=True)
class QueuedTask:
    """Task envelope stored in Redis."""

    task_type: str
    payload: dict[str, Any]
    created_at: datetime
    attempts: int = 0

    def to_json(self) -> str:
        return json.dumps(
            {
                "task_type": self.task_type,
                "payload": self.payload,
                "created_at": self.created_at.isoformat(),
                "attempts": self.attempts,
            },
            sort_keys=True,
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> QueuedTask:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data: dict[str, Any] = json.loads(raw)
        return cls(
            task_type=str(data["task_type"]),
            payload=dict(data.get("payload") or {}),
            created_at=datetime.fromisoformat(data["created_at"]),
            attempts=int(data.get("attempts", 0)),
        )

    def next_attempt(self) -> QueuedTask:
        return replace(self, attempts=self.attempts + 1)


def new_task(task_type: str, payload: dict[str, Any]) -> QueuedTask:
    return QueuedTask(task_type=task_type, payload=payload, created_at=datetime.now(UTC))


def _redis_client(redis_url: str | None = None) -> redis.Redis:
    return redis.Redis.from_url(redis_url or settings.rq_redis_url)


def _scheduled_key(queue_name: str) -> str:
    return f"{queue_name}{_SCHEDULED_SUFFIX}"


def _move_due_tasks(client: redis.Redis, queue_name: str) -> float | None:
    """Push due delayed tasks onto the list; return seconds until the next one."""
    scheduled = _scheduled_key(queue_name)
    now = time.time()
    due = cast(
        list[str | bytes],
        client.zrangebyscore(scheduled, "-inf", now, start=0, num=_DRAIN_BATCH_SIZE),
    )
    if due:
        client.lpush(queue_name, *due)
        client.zrem(scheduled, *due)
        logger.debug("queue.scheduled.moved", extra={"queue_name": queue_name, "count": len(due)})

    upcoming = cast(
        list[tuple[str | bytes, float]],
        client.zrangebyscore(scheduled, now, "+inf", start=0, num=1, withscores=True),
    )
    if not upcoming:
        return None
    return max(0.0, float(upcoming[0][1]) - now)


def enqueue_task(
    task: QueuedTask,
    queue_name: str,
    *,
    redis_url: str | None = None,
    delay_seconds: float = 0,
) -> bool:
    """Store a task for immediate or delayed delivery; False when Redis fails."""
    delay = max(0.0, float(delay_seconds))
    try:
        client = _redis_client(redis_url=redis_url)
        if delay > 0:
            client.zadd(_scheduled_key(queue_name), {task.to_json(): time.time() + delay})
        else:
            client.lpush(queue_name, task.to_json())
    except Exception as exc:
        logger.warning(
            "queue.enqueue_failed",
            extra={"task_type": task.task_type, "queue_name": queue_name, "error": str(exc)},
        )
        return False
    logger.info(
        "queue.enqueued",
        extra={
            "task_type": task.task_type,
            "queue_name": queue_name,
            "attempt": task.attempts,
            "delay_seconds": delay,
        },
    )
    return True


def dequeue_task(
    queue_name: str,
    *,
    redis_url: str | None = None,
    block: bool = False,
    block_timeout: float = 0,
) -> QueuedTask | None:
    """Pop one task, optionally blocking until one arrives or a delayed task is due."""
    client = _redis_client(redis_url=redis_url)
    next_due = _move_due_tasks(client, queue_name)
    raw: str | bytes | None
    if block:
        timeout = max(0.0, float(block_timeout))
        if next_due is not None:
            timeout = min(timeout, next_due) if timeout else next_due
        popped = cast(
            tuple[bytes | str, bytes | str] | None,
            client.brpop([queue_name], timeout=timeout),
        )
        raw = popped[1] if popped is not None else None
    else:
        raw = cast(str | bytes | None, client.rpop(queue_name))
    if raw is None:
        return None
    try:
        return QueuedTask.from_json(raw)
    except (ValueError, KeyError, TypeError) as exc:
        logger.error(
            "queue.decode_failed",
            extra={"queue_name": queue_name, "raw_payload": str(raw), "error": str(exc)},
        )
        raise


def retry_delay_seconds(attempts: int) -> float:
    """Exponential backoff capped at the configured maximum."""
    return min(
        settings.rq_dispatch_retry_base_seconds * (2 ** max(0, attempts)),
        settings.rq_dispatch_retry_max_seconds,
    )


def requeue_if_failed(
    task: QueuedTask,
    queue_name: str,
    *,
    max_retries: int,
    redis_url: str | None = None,
    delay_seconds: float = 0,
) -> bool:
    """Requeue a failed task unless it has exhausted `max_retries`."""
    retry = task.next_attempt()
    if retry.attempts > max_retries:
        logger.warning(
            "queue.drop_failed_task",
            extra={"task_type": task.task_type, "queue_name": queue_name, "attempts": retry.attempts},
        )
        return False
    return enqueue_task(retry, queue_name, redis_url=redis_url, delay_seconds=delay_seconds)
