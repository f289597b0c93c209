"""Final score computation and award upsert."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from grant_review.core.errors import InvalidStateError
from grant_review.core.logging import get_logger
from grant_review.core.time import utcnow
from grant_review.models.awards import Award
from grant_review.models.reviews import Review
from grant_review.schemas.assignments import FinalizationResult
from grant_review.services.assignment_engine import get_proposal
from grant_review.services.audit import record_audit
from grant_review.services.review_policy import DEFAULT_POLICY

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from grant_review.services.review_policy import ReviewPolicy

logger = get_logger(__name__)

FEEDBACK_REVIEWED = "Your proposal has been reviewed. Final decision pending."
FEEDBACK_RECONCILED = (
    "Your proposal has been reviewed after reconciliation. Final decision pending."
)


def compute_final_score(
    regular_totals: Sequence[float],
    reconciliation_total: float | None = None,
    *,
    reconciliation_weight: float = 0.6,
) -> float:
    """Mean of regular totals, blended with the reconciliation total when present."""
    if not regular_totals:
        raise InvalidStateError("No completed reviews to finalize")
    average = sum(regular_totals) / len(regular_totals)
    if reconciliation_total is None:
        return average
    return reconciliation_total * reconciliation_weight + average * (1 - reconciliation_weight)


async def finalize(
    session: AsyncSession,
    proposal_id: UUID,
    *,
    policy: ReviewPolicy = DEFAULT_POLICY,
    actor_id: UUID | None = None,
) -> FinalizationResult:
    """Mark the proposal reviewed and create or update its pending award."""
    proposal = await get_proposal(session, proposal_id)
    reviews = await Review.objects.filter_by(proposal_id=proposal.id).all(session)
    regular = [
        r.total_score
        for r in reviews
        if r.review_type != "reconciliation" and r.status == "completed"
    ]
    reconciliation = next(
        (r for r in reviews if r.review_type == "reconciliation" and r.status == "completed"),
        None,
    )
    reconciled = reconciliation is not None
    final_score = compute_final_score(
        regular,
        reconciliation.total_score if reconciliation is not None else None,
        reconciliation_weight=policy.reconciliation_weight,
    )
    feedback = FEEDBACK_RECONCILED if reconciled else FEEDBACK_REVIEWED

    now = utcnow()
    proposal.review_status = "reviewed"
    proposal.updated_at = now
    session.add(proposal)

    award = await Award.objects.filter_by(proposal_id=proposal.id).first(session)
    award_created = award is None
    if award is None:
        award = Award(
            proposal_id=proposal.id,
            submitter_id=proposal.submitter_id,
            final_score=final_score,
            status="pending",
            funding_amount=proposal.estimated_budget or 0.0,
            feedback=feedback,
            created_at=now,
            updated_at=now,
        )
    else:
        award.final_score = final_score
        award.feedback = feedback
        award.updated_at = now
    session.add(award)

    await record_audit(
        session,
        action="review.finalize",
        actor_id=actor_id,
        target_type="proposal",
        target_id=proposal.id,
        payload={"final_score": final_score, "reconciled": reconciled},
        commit=False,
    )
    await session.commit()

    logger.info(
        "review.finalization.completed",
        extra={
            "proposal_id": str(proposal.id),
            "final_score": final_score,
            "reconciled": reconciled,
            "award_created": award_created,
        },
    )
    return FinalizationResult(
        proposal_id=proposal.id,
        final_score=final_score,
        reconciled=reconciled,
        award_id=award.id,
        award_created=award_created,
        feedback=feedback,
    )
