"""Review deadline sweep: reminders before the due date, overdue marking after it."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from redis import Redis
from rq_scheduler import Scheduler  # type: ignore[import-untyped]
from sqlmodel import col

from grant_review.core.config import settings
from grant_review.core.logging import get_logger
from grant_review.core.time import utcnow
from grant_review.models.proposals import Proposal
from grant_review.models.reviews import Review
from grant_review.models.users import User
from grant_review.schemas.assignments import SweepResult
from grant_review.services.audit import record_audit
from grant_review.services.notifications import notify, notify_safely
from grant_review.services.review_policy import DEFAULT_POLICY, ReviewPolicy

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from grant_review.services.notifications import Notifier

logger = get_logger(__name__)


async def sweep_overdue_and_approaching(
    session: AsyncSession,
    *,
    policy: ReviewPolicy = DEFAULT_POLICY,
    notifier: Notifier = notify,
    now: datetime | None = None,
) -> SweepResult:
    """Remind reviewers whose deadline is near and mark past-due reviews overdue.

    Covers every unfinished human and reconciliation review; the AI review is
    never swept.
    """
    now = now or utcnow()
    window_end = now + timedelta(days=policy.reminder_window_days)
    reviews = await (
        Review.objects.filter_by(status="in_progress")
        .filter(col(Review.review_type) != "ai")
        .all(session)
    )
    reviewer_ids = {r.reviewer_id for r in reviews if r.reviewer_id is not None}
    proposal_ids = {r.proposal_id for r in reviews}
    reviewers = (
        {u.id: u for u in await User.objects.by_ids(reviewer_ids).all(session)}
        if reviewer_ids
        else {}
    )
    titles = (
        {p.id: p.title for p in await Proposal.objects.by_ids(proposal_ids).all(session)}
        if proposal_ids
        else {}
    )

    due_soon: list[Review] = []
    overdue: list[Review] = []
    for review in reviews:
        if review.due_date < now:
            overdue.append(review)
        elif review.due_date <= window_end:
            due_soon.append(review)

    for review in overdue:
        review.status = "overdue"
        review.updated_at = now
        session.add(review)
        await record_audit(
            session,
            action="review.overdue",
            target_type="review",
            target_id=review.id,
            payload={"due_date": review.due_date.isoformat()},
            commit=False,
        )
    if overdue:
        await session.commit()

    reminders = 0
    for review in due_soon:
        reviewer = reviewers.get(review.reviewer_id) if review.reviewer_id else None
        if reviewer is None:
            continue
        if notify_safely(
            notifier,
            "review_reminder",
            reviewer.email,
            {
                "reviewer_name": reviewer.name,
                "proposal_title": titles.get(review.proposal_id, "Research Proposal"),
                "due_date": review.due_date.isoformat(),
            },
        ):
            reminders += 1
    for review in overdue:
        reviewer = reviewers.get(review.reviewer_id) if review.reviewer_id else None
        if reviewer is None:
            continue
        notify_safely(
            notifier,
            "overdue_notice",
            reviewer.email,
            {
                "reviewer_name": reviewer.name,
                "proposal_title": titles.get(review.proposal_id, "Research Proposal"),
                "due_date": review.due_date.isoformat(),
            },
        )

    logger.info(
        "review.sweep.completed",
        extra={"reminders_sent": reminders, "overdue_marked": len(overdue)},
    )
    return SweepResult(reminders_sent=reminders, overdue_marked=len(overdue))


async def _sweep_once() -> SweepResult:
    from grant_review.db.session import session_scope

    async with session_scope() as session:
        return await sweep_overdue_and_approaching(
            session,
            policy=ReviewPolicy.from_settings(),
        )


def run_review_sweep() -> dict[str, int]:
    """RQ job entrypoint scheduled by `bootstrap_review_sweep_schedule`."""
    return asyncio.run(_sweep_once()).model_dump()


def bootstrap_review_sweep_schedule(interval_seconds: int | None = None) -> None:
    """Register the recurring sweep job, replacing any earlier registration."""
    connection = Redis.from_url(settings.rq_redis_url)
    scheduler = Scheduler(queue_name=settings.rq_queue_name, connection=connection)

    for job in scheduler.get_jobs():
        if job.id == settings.review_sweep_schedule_id:
            scheduler.cancel(job)

    effective_interval_seconds = (
        settings.review_sweep_interval_seconds if interval_seconds is None else interval_seconds
    )
    scheduler.schedule(
        datetime.now(tz=timezone.utc) + timedelta(seconds=5),
        func=run_review_sweep,
        interval=effective_interval_seconds,
        repeat=None,
        id=settings.review_sweep_schedule_id,
        queue_name=settings.rq_queue_name,
    )
    logger.info(
        "review.sweep.scheduled",
        extra={"interval_seconds": effective_interval_seconds},
    )
