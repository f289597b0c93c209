"""Moving an unfinished review to a different reviewer."""

from __future__ import annotations

from collections.abc import Collection
from typing import TYPE_CHECKING

from grant_review.core.errors import (
    AlreadyCompletedError,
    InsufficientReviewersError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from grant_review.core.logging import get_logger
from grant_review.core.time import add_business_days, utcnow
from grant_review.models.reviews import Review
from grant_review.models.users import User
from grant_review.schemas.assignments import ReassignmentResult, ReviewerSummary
from grant_review.services.assignment_engine import PeerContext, get_proposal, load_peer_context
from grant_review.services.audit import record_audit
from grant_review.services.notifications import notify, notify_safely
from grant_review.services.reconciliation import select_reconciliation_candidate
from grant_review.services.review_policy import DEFAULT_POLICY
from grant_review.services.reviewer_pool import (
    build_candidates,
    rank_eligible,
    select_diverse,
    summarize_reviewer,
)

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from grant_review.models.proposals import Proposal
    from grant_review.services.notifications import Notifier
    from grant_review.services.review_policy import ReviewPolicy

logger = get_logger(__name__)


async def _explicit_reviewer(
    session: AsyncSession,
    reviewer_id: UUID,
    *,
    proposal: Proposal,
    context: PeerContext,
    excluded_ids: Collection[UUID],
) -> ReviewerSummary:
    user = await User.objects.by_id(reviewer_id).first(session)
    if user is None:
        raise NotFoundError("Reviewer not found", reviewer_id=str(reviewer_id))
    reason = None
    if not user.can_review:
        reason = "Reviewer is not an active reviewer with an accepted invitation"
    elif user.faculty_id is None or user.faculty_id not in context.faculty_titles:
        reason = "Reviewer is not in a peer faculty of the submitter"
    elif user.id in excluded_ids or user.id == proposal.submitter_id:
        reason = "Reviewer is already involved with this proposal"
    if reason is not None:
        raise ValidationError(reason, reviewer_id=str(user.id), **context.detail())
    return await summarize_reviewer(session, user)


async def reassign_regular_review(
    session: AsyncSession,
    review_id: UUID,
    *,
    new_reviewer_id: UUID | None = None,
    policy: ReviewPolicy = DEFAULT_POLICY,
    notifier: Notifier = notify,
    actor_id: UUID | None = None,
) -> ReassignmentResult:
    """Hand an unfinished human review to another reviewer.

    Without `new_reviewer_id` the least-loaded eligible reviewer is chosen,
    preferring a faculty the proposal's other reviewers do not already cover.
    """
    review = await Review.objects.by_id(review_id).first(session)
    if review is None:
        raise NotFoundError("Review not found", review_id=str(review_id))
    if review.status == "completed":
        raise AlreadyCompletedError("Completed reviews cannot be reassigned", review_id=str(review.id))
    if review.review_type != "human":
        raise InvalidStateError(
            "Only human reviews can be reassigned here",
            review_id=str(review.id),
            review_type=review.review_type,
        )
    proposal = await get_proposal(session, review.proposal_id)
    context = await load_peer_context(session, proposal)
    reviews = await Review.objects.filter_by(proposal_id=proposal.id).all(session)
    assigned_ids = {r.reviewer_id for r in reviews if r.reviewer_id is not None}

    if new_reviewer_id is not None:
        reviewer = await _explicit_reviewer(
            session,
            new_reviewer_id,
            proposal=proposal,
            context=context,
            excluded_ids=assigned_ids,
        )
    else:
        candidates = await build_candidates(
            session,
            faculty_titles=context.faculty_titles,
            exclude_ids={*assigned_ids, proposal.submitter_id},
        )
        if not candidates:
            raise InsufficientReviewersError(
                "No other eligible reviewer available",
                review_id=str(review.id),
                **context.detail(),
            )
        other_ids = [
            r.reviewer_id
            for r in reviews
            if r.review_type == "human" and r.id != review.id and r.reviewer_id is not None
        ]
        others = await User.objects.by_ids(other_ids).all(session) if other_ids else []
        picked = select_diverse(
            rank_eligible(candidates),
            1,
            taken_faculties={
                context.faculty_titles[u.faculty_id]
                for u in others
                if u.faculty_id in context.faculty_titles
            },
        )
        reviewer = picked[0].summary()

    previous_reviewer_id = review.reviewer_id
    now = utcnow()
    due_date = add_business_days(now, policy.review_due_business_days)
    review.reviewer_id = reviewer.id
    review.status = "in_progress"
    review.scores = None
    review.comments = None
    review.total_score = 0.0
    review.due_date = due_date
    review.updated_at = now
    session.add(review)
    await record_audit(
        session,
        action="review.reassign",
        actor_id=actor_id,
        target_type="review",
        target_id=review.id,
        payload={
            "previous_reviewer_id": str(previous_reviewer_id) if previous_reviewer_id else None,
            "reviewer_id": str(reviewer.id),
        },
        commit=False,
    )
    await session.commit()

    notify_safely(
        notifier,
        "review_assignment",
        reviewer.email,
        {
            "reviewer_name": reviewer.name,
            "proposal_id": str(proposal.id),
            "proposal_title": proposal.title,
            "due_date": due_date.isoformat(),
            "reassigned": True,
        },
    )
    logger.info(
        "review.reassignment.completed",
        extra={"review_id": str(review.id), "reviewer_id": str(reviewer.id)},
    )
    return ReassignmentResult(
        review_id=review.id,
        proposal_id=proposal.id,
        reviewer=reviewer,
        previous_reviewer_id=previous_reviewer_id,
        due_date=due_date,
    )


async def reassign_reconciliation_review(
    session: AsyncSession,
    proposal_id: UUID,
    *,
    new_reviewer_id: UUID | None = None,
    policy: ReviewPolicy = DEFAULT_POLICY,
    notifier: Notifier = notify,
    actor_id: UUID | None = None,
) -> ReassignmentResult:
    """Create or move the reconciliation review of a proposal sent back for revision."""
    proposal = await get_proposal(session, proposal_id)
    if proposal.status != "revision_requested" or proposal.review_status != "pending":
        raise InvalidStateError(
            "Reconciliation can only be reassigned for proposals awaiting revision review",
            proposal_id=str(proposal.id),
            status=proposal.status,
            review_status=proposal.review_status,
        )
    reviews = await Review.objects.filter_by(proposal_id=proposal.id).all(session)
    reconciliation = next((r for r in reviews if r.review_type == "reconciliation"), None)
    if reconciliation is not None and reconciliation.status == "completed":
        raise AlreadyCompletedError(
            "Reconciliation review is already completed",
            review_id=str(reconciliation.id),
        )
    excluded = {
        r.reviewer_id for r in reviews if r.review_type == "human" and r.reviewer_id is not None
    }
    if reconciliation is not None and reconciliation.reviewer_id is not None:
        excluded.add(reconciliation.reviewer_id)

    if new_reviewer_id is not None:
        reviewer = await _explicit_reviewer(
            session,
            new_reviewer_id,
            proposal=proposal,
            context=await load_peer_context(session, proposal),
            excluded_ids=excluded,
        )
    else:
        candidate = await select_reconciliation_candidate(session, proposal, exclude_ids=excluded)
        reviewer = candidate.summary()

    scores = [
        r.total_score
        for r in reviews
        if r.review_type != "reconciliation" and r.status == "completed"
    ]
    now = utcnow()
    due_date = add_business_days(now, policy.review_due_business_days)
    is_new = reconciliation is None
    previous_reviewer_id = None
    if reconciliation is None:
        reconciliation = Review(
            proposal_id=proposal.id,
            review_type="reconciliation",
            created_at=now,
        )
    else:
        previous_reviewer_id = reconciliation.reviewer_id
    reconciliation.reviewer_id = reviewer.id
    reconciliation.status = "in_progress"
    reconciliation.scores = None
    reconciliation.comments = None
    reconciliation.total_score = 0.0
    reconciliation.due_date = due_date
    reconciliation.updated_at = now
    session.add(reconciliation)
    await record_audit(
        session,
        action="review.reconciliation.reassign",
        actor_id=actor_id,
        target_type="proposal",
        target_id=proposal.id,
        payload={
            "review_id": str(reconciliation.id),
            "reviewer_id": str(reviewer.id),
            "is_new_assignment": is_new,
        },
        commit=False,
    )
    await session.commit()

    notify_safely(
        notifier,
        "reconciliation_assignment",
        reviewer.email,
        {
            "reviewer_name": reviewer.name,
            "proposal_id": str(proposal.id),
            "proposal_title": proposal.title,
            "due_date": due_date.isoformat(),
            "review_count": len(scores),
            "average_score": round(sum(scores) / len(scores), 1) if scores else None,
            "scores": scores,
        },
    )
    logger.info(
        "review.reconciliation.reassigned",
        extra={
            "proposal_id": str(proposal.id),
            "reviewer_id": str(reviewer.id),
            "is_new_assignment": is_new,
        },
    )
    return ReassignmentResult(
        review_id=reconciliation.id,
        proposal_id=proposal.id,
        reviewer=reviewer,
        previous_reviewer_id=previous_reviewer_id,
        due_date=due_date,
        is_new_assignment=is_new,
    )
