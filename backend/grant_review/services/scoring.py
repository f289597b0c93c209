"""Review submission and proposal completion tracking.

Every completed review (human, AI, or reconciliation) goes through
`_advance_proposal`, which decides whether the proposal is still waiting on
reviewers, needs a discrepancy check, or can be finalized. Only one caller may
run that next stage: it must first move `review_status` from ``pending`` to
``finalizing`` with a conditional UPDATE and see exactly one row change. If the
stage fails with an engine error the marker is released and the submission
reports a ``blocked`` stage, since the review itself is already saved.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from grant_review.core.errors import (
    AlreadyCompletedError,
    NotFoundError,
    ReviewEngineError,
    ValidationError,
)
from grant_review.core.logging import get_logger
from grant_review.core.time import utcnow
from grant_review.models.reviews import Review
from grant_review.schemas.assignments import (
    DiscrepancyResult,
    FinalizationResult,
    SubmissionResult,
)
from grant_review.schemas.reviews import (
    SCORE_CRITERIA,
    PartialReviewScores,
    ReviewComments,
    ReviewerStatistics,
    ReviewRead,
    ReviewScores,
)
from grant_review.services.audit import record_audit
from grant_review.services.finalization import finalize
from grant_review.services.notifications import notify
from grant_review.services.reconciliation import (
    analyze_reviews,
    check_discrepancy,
    claim_review_stage,
    release_review_stage,
)
from grant_review.services.review_policy import DEFAULT_POLICY

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from grant_review.services.ai_scoring import AIReviewResult
    from grant_review.services.notifications import Notifier
    from grant_review.services.review_policy import ReviewPolicy

logger = get_logger(__name__)

_COMMENT_KEYS = frozenset(ReviewComments.model_fields)


def _reject_unknown(keys: Mapping[str, Any], allowed: frozenset[str], what: str) -> None:
    unknown = sorted(set(keys) - allowed)
    if unknown:
        raise ValidationError(f"Unknown {what}", unknown=unknown)


def validate_scores(scores: Mapping[str, float] | ReviewScores) -> ReviewScores:
    """Validate a complete score set; raises the engine `ValidationError`."""
    if isinstance(scores, ReviewScores):
        return scores
    _reject_unknown(scores, frozenset(SCORE_CRITERIA), "score criteria")
    try:
        return ReviewScores.model_validate(dict(scores))
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid review scores",
            errors=[{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()],
        ) from exc


def validate_partial_scores(scores: Mapping[str, float]) -> dict[str, float]:
    _reject_unknown(scores, frozenset(SCORE_CRITERIA), "score criteria")
    try:
        partial = PartialReviewScores.model_validate(dict(scores))
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid review scores",
            errors=[{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()],
        ) from exc
    return partial.model_dump(exclude_none=True)


def validate_comments(comments: Mapping[str, str] | None) -> dict[str, str]:
    if not comments:
        return {}
    _reject_unknown(comments, _COMMENT_KEYS, "comment fields")
    return {key: str(value) for key, value in comments.items()}


async def _get_owned_review(
    session: AsyncSession,
    review_id: UUID,
    acting_reviewer_id: UUID,
) -> Review:
    review = await Review.objects.by_id(review_id).first(session)
    if review is None or review.reviewer_id is None or review.reviewer_id != acting_reviewer_id:
        raise NotFoundError("Review not found", review_id=str(review_id))
    if review.status == "completed":
        raise AlreadyCompletedError("Review has already been submitted", review_id=str(review.id))
    return review


@dataclass(frozen=True)
class _StageOutcome:
    stage: str
    discrepancy: DiscrepancyResult | None = None
    finalization: FinalizationResult | None = None
    blocked: dict[str, Any] | None = None


async def _advance_proposal(
    session: AsyncSession,
    review: Review,
    *,
    policy: ReviewPolicy,
    notifier: Notifier,
) -> _StageOutcome:
    proposal_id = review.proposal_id
    reviews = await Review.objects.filter_by(proposal_id=proposal_id).all(session)
    regular = [r for r in reviews if r.review_type != "reconciliation"]
    reconciliation = next((r for r in reviews if r.review_type == "reconciliation"), None)

    if any(r.status != "completed" for r in regular):
        return _StageOutcome("awaiting_reviews")
    if reconciliation is not None and (
        reconciliation.id != review.id or reconciliation.status != "completed"
    ):
        return _StageOutcome("awaiting_reconciliation")

    if not await claim_review_stage(session, proposal_id):
        logger.info(
            "review.stage.already_claimed",
            extra={"proposal_id": str(proposal_id), "review_id": str(review.id)},
        )
        return _StageOutcome("skipped")

    try:
        if reconciliation is not None:
            finalization = await finalize(session, proposal_id, policy=policy)
            return _StageOutcome("finalized", finalization=finalization)

        discrepancy = await check_discrepancy(
            session,
            proposal_id,
            policy=policy,
            notifier=notifier,
            stage_claimed=True,
        )
        if discrepancy.has_discrepancy:
            await release_review_stage(session, proposal_id)
            return _StageOutcome("reconciliation_assigned", discrepancy=discrepancy)
        finalization = await finalize(session, proposal_id, policy=policy)
        return _StageOutcome("finalized", discrepancy=discrepancy, finalization=finalization)
    except ReviewEngineError as exc:
        # The review stays committed; only the next stage is abandoned.
        await session.rollback()
        await release_review_stage(session, proposal_id)
        await session.refresh(review)
        logger.warning(
            "review.stage.blocked",
            extra={
                "proposal_id": str(proposal_id),
                "review_id": str(review.id),
                "code": exc.code,
                "error_message": exc.message,
            },
        )
        return _StageOutcome("blocked", blocked={"code": exc.code, **exc.to_payload()})
    except Exception:
        await session.rollback()
        await release_review_stage(session, proposal_id)
        raise


async def _complete_review(
    session: AsyncSession,
    review: Review,
    *,
    scores: ReviewScores,
    comments: dict[str, str],
    actor_id: UUID | None,
) -> None:
    now = utcnow()
    review.scores = {name: float(getattr(scores, name)) for name in SCORE_CRITERIA}
    review.comments = {**(review.comments or {}), **comments}
    review.total_score = scores.total
    review.status = "completed"
    review.completed_at = now
    review.updated_at = now
    session.add(review)
    await record_audit(
        session,
        action="review.submit",
        actor_id=actor_id,
        target_type="review",
        target_id=review.id,
        payload={"review_type": review.review_type, "total_score": review.total_score},
        commit=False,
    )
    await session.commit()


async def _finish(
    session: AsyncSession,
    review: Review,
    *,
    policy: ReviewPolicy,
    notifier: Notifier,
) -> SubmissionResult:
    outcome = await _advance_proposal(
        session,
        review,
        policy=policy,
        notifier=notifier,
    )
    reviews = await Review.objects.filter_by(proposal_id=review.proposal_id).all(session)
    logger.info(
        "review.submission.completed",
        extra={
            "review_id": str(review.id),
            "proposal_id": str(review.proposal_id),
            "review_type": review.review_type,
            "total_score": review.total_score,
            "stage": outcome.stage,
        },
    )
    return SubmissionResult(
        review=ReviewRead.model_validate(review, from_attributes=True),
        stage=outcome.stage,
        discrepancy=outcome.discrepancy,
        finalization=outcome.finalization,
        blocked=outcome.blocked,
        analysis=analyze_reviews(review.proposal_id, reviews),
    )


async def submit_review(
    session: AsyncSession,
    review_id: UUID,
    *,
    scores: Mapping[str, float] | ReviewScores,
    comments: Mapping[str, str] | None = None,
    acting_reviewer_id: UUID,
    policy: ReviewPolicy = DEFAULT_POLICY,
    notifier: Notifier = notify,
) -> SubmissionResult:
    """Complete a reviewer's review and move the proposal to its next stage."""
    review = await _get_owned_review(session, review_id, acting_reviewer_id)
    validated = validate_scores(scores)
    await _complete_review(
        session,
        review,
        scores=validated,
        comments=validate_comments(comments),
        actor_id=acting_reviewer_id,
    )
    return await _finish(session, review, policy=policy, notifier=notifier)


async def record_ai_review(
    session: AsyncSession,
    review_id: UUID,
    *,
    result: AIReviewResult,
    policy: ReviewPolicy = DEFAULT_POLICY,
    notifier: Notifier = notify,
) -> SubmissionResult:
    """Store AI scores on the proposal's AI review and advance the proposal."""
    review = await Review.objects.by_id(review_id).first(session)
    if review is None or review.review_type != "ai":
        raise NotFoundError("AI review not found", review_id=str(review_id))
    if review.status == "completed":
        raise AlreadyCompletedError("AI review has already been recorded", review_id=str(review.id))
    await _complete_review(
        session,
        review,
        scores=validate_scores(result.scores),
        comments=validate_comments(result.explanations),
        actor_id=None,
    )
    return await _finish(session, review, policy=policy, notifier=notifier)


async def save_review_progress(
    session: AsyncSession,
    review_id: UUID,
    *,
    scores: Mapping[str, float] | None = None,
    comments: Mapping[str, str] | None = None,
    acting_reviewer_id: UUID,
) -> Review:
    """Merge partial scores and comments into an unfinished review."""
    review = await _get_owned_review(session, review_id, acting_reviewer_id)
    partial = validate_partial_scores(scores or {})
    if partial:
        review.scores = {**(review.scores or {}), **partial}
    extra_comments = validate_comments(comments)
    if extra_comments:
        review.comments = {**(review.comments or {}), **extra_comments}
    review.updated_at = utcnow()
    session.add(review)
    await session.commit()
    await session.refresh(review)
    return review


async def reviewer_statistics(session: AsyncSession, reviewer_id: UUID) -> ReviewerStatistics:
    """Dashboard counters; in-progress reviews past their due date count as overdue."""
    reviews = await Review.objects.filter_by(reviewer_id=reviewer_id).all(session)
    now = utcnow()
    return ReviewerStatistics(
        reviewer_id=reviewer_id,
        total_assigned=len(reviews),
        completed=sum(1 for r in reviews if r.status == "completed"),
        pending=sum(1 for r in reviews if r.status == "in_progress" and r.due_date > now),
        overdue=sum(
            1
            for r in reviews
            if r.status == "overdue" or (r.status == "in_progress" and r.due_date <= now)
        ),
    )
