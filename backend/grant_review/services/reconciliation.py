"""Score discrepancy detection and reconciliation reviewer assignment."""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import update
from sqlmodel import col

from grant_review.core.errors import InvalidStateError, NoReconciliationReviewerError
from grant_review.core.logging import get_logger
from grant_review.core.time import add_business_days, utcnow
from grant_review.models.proposals import Proposal
from grant_review.models.reviews import Review
from grant_review.models.users import User
from grant_review.schemas.assignments import (
    CriterionSpread,
    DiscrepancyAnalysis,
    DiscrepancyResult,
)
from grant_review.schemas.reviews import SCORE_CRITERIA
from grant_review.services.assignment_engine import get_proposal, load_peer_context
from grant_review.services.audit import record_audit
from grant_review.services.notifications import notify, notify_safely
from grant_review.services.review_policy import DEFAULT_POLICY
from grant_review.services.reviewer_pool import (
    ReviewerCandidate,
    build_candidates,
    rank_for_reconciliation,
    summarize_reviewer,
)

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from grant_review.services.notifications import Notifier
    from grant_review.services.review_policy import ReviewPolicy

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScoreEvaluation:
    has_discrepancy: bool
    average: float
    threshold: float


def evaluate_scores(scores: Sequence[float], *, ratio: float = 0.2) -> ScoreEvaluation:
    """Flag a discrepancy when any score is further than `ratio` x mean from the mean."""
    if not scores:
        raise InvalidStateError("At least one completed review is required")
    average = sum(scores) / len(scores)
    threshold = average * ratio
    return ScoreEvaluation(
        has_discrepancy=any(abs(score - average) > threshold for score in scores),
        average=average,
        threshold=threshold,
    )


def _completed_regular(reviews: Sequence[Review]) -> list[Review]:
    return [r for r in reviews if r.review_type != "reconciliation" and r.status == "completed"]


async def select_reconciliation_candidate(
    session: AsyncSession,
    proposal: Proposal,
    *,
    exclude_ids: Collection[UUID],
) -> ReviewerCandidate:
    """Best-ranked peer-faculty reviewer outside `exclude_ids` and the submitter."""
    context = await load_peer_context(session, proposal)
    candidates = await build_candidates(
        session,
        faculty_titles=context.faculty_titles,
        exclude_ids={*exclude_ids, proposal.submitter_id},
    )
    ranked = rank_for_reconciliation(candidates)
    if not ranked:
        raise NoReconciliationReviewerError(
            "No eligible reconciliation reviewer available",
            proposal_id=str(proposal.id),
            excluded_reviewer_ids=sorted(str(i) for i in exclude_ids),
            **context.detail(),
        )
    return ranked[0]


async def claim_review_stage(session: AsyncSession, proposal_id: UUID) -> bool:
    """Move `review_status` from ``pending`` to ``finalizing``; True for the single winner."""
    result = await session.execute(
        update(Proposal)
        .where(col(Proposal.id) == proposal_id)
        .where(col(Proposal.review_status) == "pending")
        .values(review_status="finalizing", updated_at=utcnow()),
    )
    await session.commit()
    return result.rowcount == 1


async def release_review_stage(session: AsyncSession, proposal_id: UUID) -> None:
    await session.execute(
        update(Proposal)
        .where(col(Proposal.id) == proposal_id)
        .where(col(Proposal.review_status) == "finalizing")
        .values(review_status="pending", updated_at=utcnow()),
    )
    await session.commit()


async def _report_existing(
    session: AsyncSession,
    result: DiscrepancyResult,
    existing: Review,
) -> DiscrepancyResult:
    reviewer = None
    if existing.reviewer_id is not None:
        user = await User.objects.by_id(existing.reviewer_id).first(session)
        reviewer = await summarize_reviewer(session, user) if user else None
    return result.model_copy(
        update={
            "reconciliation_review_id": existing.id,
            "reconciliation_reviewer": reviewer,
            "due_date": existing.due_date,
        },
    )


def _existing_reconciliation(reviews: Sequence[Review]) -> Review | None:
    return next((r for r in reviews if r.review_type == "reconciliation"), None)


async def _assign_reconciliation(
    session: AsyncSession,
    proposal: Proposal,
    reviews: Sequence[Review],
    result: DiscrepancyResult,
    *,
    policy: ReviewPolicy,
    notifier: Notifier,
    actor_id: UUID | None,
) -> DiscrepancyResult:
    human_reviewer_ids = {
        r.reviewer_id for r in reviews if r.review_type == "human" and r.reviewer_id is not None
    }
    candidate = await select_reconciliation_candidate(
        session,
        proposal,
        exclude_ids=human_reviewer_ids,
    )

    now = utcnow()
    due_date = add_business_days(now, policy.review_due_business_days)
    review = Review(
        proposal_id=proposal.id,
        reviewer_id=candidate.reviewer_id,
        review_type="reconciliation",
        status="in_progress",
        due_date=due_date,
        created_at=now,
        updated_at=now,
    )
    session.add(review)
    proposal.status = "under_review"
    proposal.updated_at = now
    session.add(proposal)
    await record_audit(
        session,
        action="review.reconciliation.assign",
        actor_id=actor_id,
        target_type="proposal",
        target_id=proposal.id,
        payload={
            "reviewer_id": str(candidate.reviewer_id),
            "scores": result.scores,
            "average_score": result.average_score,
        },
        commit=False,
    )
    await session.commit()

    notify_safely(
        notifier,
        "reconciliation_assignment",
        candidate.email,
        {
            "reviewer_name": candidate.name,
            "proposal_id": str(proposal.id),
            "proposal_title": proposal.title,
            "due_date": due_date.isoformat(),
            "review_count": len(result.scores),
            "average_score": round(result.average_score, 1),
            "scores": result.scores,
        },
    )
    logger.info(
        "review.reconciliation.assigned",
        extra={
            "proposal_id": str(proposal.id),
            "reviewer_id": str(candidate.reviewer_id),
            "average_score": result.average_score,
            "threshold": result.discrepancy_threshold,
        },
    )
    return result.model_copy(
        update={
            "reconciliation_review_id": review.id,
            "reconciliation_reviewer": candidate.summary(),
            "due_date": due_date,
            "created": True,
        },
    )


async def check_discrepancy(
    session: AsyncSession,
    proposal_id: UUID,
    *,
    policy: ReviewPolicy = DEFAULT_POLICY,
    notifier: Notifier = notify,
    actor_id: UUID | None = None,
    stage_claimed: bool = False,
) -> DiscrepancyResult:
    """Compare completed review totals and assign a reconciliation review on divergence.

    Calling this again for the same set of completed reviews reports the
    existing reconciliation review instead of creating a second one. A new
    reconciliation review is only created while holding the proposal's review
    stage; pass `stage_claimed=True` when the caller already holds it.
    """
    proposal = await get_proposal(session, proposal_id)
    reviews = await Review.objects.filter_by(proposal_id=proposal.id).all(session)
    completed = _completed_regular(reviews)
    if not completed:
        raise InvalidStateError(
            "At least one completed review is required",
            proposal_id=str(proposal.id),
        )
    scores = [r.total_score for r in completed]
    evaluation = evaluate_scores(scores, ratio=policy.discrepancy_ratio)
    result = DiscrepancyResult(
        proposal_id=proposal.id,
        has_discrepancy=evaluation.has_discrepancy,
        scores=scores,
        average_score=evaluation.average,
        discrepancy_threshold=evaluation.threshold,
    )
    if not evaluation.has_discrepancy:
        return result

    existing = _existing_reconciliation(reviews)
    if existing is not None:
        return await _report_existing(session, result, existing)

    if stage_claimed:
        return await _assign_reconciliation(
            session,
            proposal,
            reviews,
            result,
            policy=policy,
            notifier=notifier,
            actor_id=actor_id,
        )

    if not await claim_review_stage(session, proposal_id):
        raise InvalidStateError(
            "Another review stage is already running for this proposal",
            proposal_id=str(proposal.id),
        )
    try:
        # Re-read under the claim; a concurrent caller may have just created one.
        reviews = await Review.objects.filter_by(proposal_id=proposal.id).all(session)
        existing = _existing_reconciliation(reviews)
        if existing is not None:
            return await _report_existing(session, result, existing)
        return await _assign_reconciliation(
            session,
            proposal,
            reviews,
            result,
            policy=policy,
            notifier=notifier,
            actor_id=actor_id,
        )
    except Exception:
        await session.rollback()
        raise
    finally:
        await release_review_stage(session, proposal_id)


def _spread(name: str, values: Sequence[float]) -> CriterionSpread:
    low, high = min(values), max(values)
    average = sum(values) / len(values)
    return CriterionSpread(
        criterion=name,
        min=low,
        max=high,
        average=round(average, 2),
        spread_percent=round((high - low) / average * 100, 2) if average else 0.0,
    )


def analyze_reviews(proposal_id: UUID, reviews: Sequence[Review]) -> DiscrepancyAnalysis:
    completed = _completed_regular(reviews)
    if not completed:
        return DiscrepancyAnalysis(proposal_id=proposal_id)
    criteria = [
        _spread(name, [float((r.scores or {}).get(name, 0)) for r in completed])
        for name in SCORE_CRITERIA
    ]
    criteria.sort(key=lambda spread: spread.spread_percent, reverse=True)
    return DiscrepancyAnalysis(
        proposal_id=proposal_id,
        review_count=len(completed),
        criteria=criteria,
        total=_spread("total", [r.total_score for r in completed]),
    )


async def discrepancy_analysis(session: AsyncSession, proposal_id: UUID) -> DiscrepancyAnalysis:
    """Per-criterion spread across the proposal's completed regular reviews."""
    proposal = await get_proposal(session, proposal_id)
    reviews = await Review.objects.filter_by(proposal_id=proposal.id).all(session)
    return analyze_reviews(proposal.id, reviews)
