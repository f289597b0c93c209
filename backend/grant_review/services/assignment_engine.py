"""Reviewer assignment for newly submitted proposals."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from grant_review.core.errors import (
    InsufficientReviewersError,
    NoEligibleFacultyError,
    NotFoundError,
    UnresolvedFacultyError,
)
from grant_review.core.logging import get_logger
from grant_review.core.time import add_business_days, utcnow
from grant_review.models.faculties import Faculty
from grant_review.models.proposals import Proposal
from grant_review.models.reviews import Review
from grant_review.models.users import User
from grant_review.schemas.assignments import AssignmentResult
from grant_review.services.ai_scoring import dispatch_ai_review
from grant_review.services.audit import record_audit
from grant_review.services.faculty_clusters import peer_faculties, resolve_faculty
from grant_review.services.notifications import notify, notify_safely
from grant_review.services.review_policy import DEFAULT_POLICY
from grant_review.services.reviewer_pool import (
    build_candidates,
    eligible_faculty_ids,
    rank_eligible,
    select_diverse,
)

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from grant_review.services.ai_scoring import AIDispatcher
    from grant_review.services.notifications import Notifier
    from grant_review.services.review_policy import ReviewPolicy

logger = get_logger(__name__)


@dataclass(frozen=True)
class PeerContext:
    """Submitter faculty resolved to its peer faculties and their rows."""

    submitter: User
    faculty_title: str
    canonical_faculty: str
    peer_faculties: frozenset[str]
    faculty_titles: dict[UUID, str]

    def detail(self) -> dict[str, Any]:
        return {
            "faculty": self.faculty_title,
            "canonical_faculty": self.canonical_faculty,
            "peer_faculties": sorted(self.peer_faculties),
        }


async def get_proposal(session: AsyncSession, proposal_id: UUID) -> Proposal:
    proposal = await Proposal.objects.by_id(proposal_id).first(session)
    if proposal is None:
        raise NotFoundError("Proposal not found", proposal_id=str(proposal_id))
    return proposal


async def load_peer_context(session: AsyncSession, proposal: Proposal) -> PeerContext:
    """Resolve the proposal submitter's faculty to the faculties allowed to review it.

    Raises `NotFoundError` for a missing submitter and `NoEligibleFacultyError`
    when the faculty is missing, unknown, or has no peers.
    """
    submitter = await User.objects.by_id(proposal.submitter_id).first(session)
    if submitter is None:
        raise NotFoundError("Submitter not found", proposal_id=str(proposal.id))
    faculty = None
    if submitter.faculty_id is not None:
        faculty = await Faculty.objects.by_id(submitter.faculty_id).first(session)
    if faculty is None:
        raise NoEligibleFacultyError(
            "Submitter has no faculty on record",
            proposal_id=str(proposal.id),
            submitter_id=str(submitter.id),
        )
    try:
        canonical = resolve_faculty(faculty.title)
        peers = peer_faculties(faculty.title)
    except UnresolvedFacultyError as exc:
        raise NoEligibleFacultyError(
            "Submitter faculty does not belong to any review cluster",
            faculty=faculty.title,
            proposal_id=str(proposal.id),
        ) from exc
    if not peers:
        raise NoEligibleFacultyError(
            "Submitter faculty has no peer faculties",
            faculty=faculty.title,
            canonical_faculty=canonical,
        )
    return PeerContext(
        submitter=submitter,
        faculty_title=faculty.title,
        canonical_faculty=canonical,
        peer_faculties=peers,
        faculty_titles=await eligible_faculty_ids(session, peers),
    )


async def assign_reviewers(
    session: AsyncSession,
    proposal_id: UUID,
    *,
    policy: ReviewPolicy = DEFAULT_POLICY,
    notifier: Notifier = notify,
    ai_dispatcher: AIDispatcher = dispatch_ai_review,
    actor_id: UUID | None = None,
) -> AssignmentResult:
    """Assign peer reviewers and the AI reviewer to a proposal.

    Picks up to `policy.reviewers_per_proposal` reviewers from the submitter's
    peer faculties (one per faculty where possible), creates their reviews and
    the AI review in one commit, then dispatches AI scoring and notifications.
    """
    proposal = await get_proposal(session, proposal_id)
    context = await load_peer_context(session, proposal)

    candidates = await build_candidates(
        session,
        faculty_titles=context.faculty_titles,
        exclude_ids={proposal.submitter_id},
    )
    if not candidates:
        raise InsufficientReviewersError(
            "No eligible reviewers found in peer faculties",
            proposal_id=str(proposal.id),
            **context.detail(),
        )
    selected = select_diverse(rank_eligible(candidates), policy.reviewers_per_proposal)
    if len(selected) < policy.reviewers_per_proposal:
        logger.warning(
            "review.assignment.short_staffed",
            extra={
                "proposal_id": str(proposal.id),
                "selected": len(selected),
                "wanted": policy.reviewers_per_proposal,
            },
        )

    now = utcnow()
    due_date = add_business_days(now, policy.review_due_business_days)
    human_reviews = [
        Review(
            proposal_id=proposal.id,
            reviewer_id=candidate.reviewer_id,
            review_type="human",
            status="in_progress",
            due_date=due_date,
            created_at=now,
            updated_at=now,
        )
        for candidate in selected
    ]
    ai_review = Review(
        proposal_id=proposal.id,
        reviewer_id=None,
        review_type="ai",
        status="in_progress",
        due_date=now,
        created_at=now,
        updated_at=now,
    )
    for review in (*human_reviews, ai_review):
        session.add(review)

    proposal.status = "under_review"
    proposal.review_status = "pending"
    proposal.updated_at = now
    session.add(proposal)

    await record_audit(
        session,
        action="review.assign",
        actor_id=actor_id,
        target_type="proposal",
        target_id=proposal.id,
        payload={
            "reviewer_ids": [str(c.reviewer_id) for c in selected],
            "ai_review_id": str(ai_review.id),
            "due_date": due_date.isoformat(),
        },
        commit=False,
    )
    await session.commit()

    try:
        ai_dispatcher(proposal_id=proposal.id, review_id=ai_review.id)
    except Exception:
        logger.warning(
            "review.assignment.ai_dispatch_failed",
            extra={"proposal_id": str(proposal.id)},
            exc_info=True,
        )
    for candidate in selected:
        notify_safely(
            notifier,
            "review_assignment",
            candidate.email,
            {
                "reviewer_name": candidate.name,
                "proposal_id": str(proposal.id),
                "proposal_title": proposal.title,
                "due_date": due_date.isoformat(),
            },
        )

    logger.info(
        "review.assignment.completed",
        extra={
            "proposal_id": str(proposal.id),
            "reviewer_ids": [str(c.reviewer_id) for c in selected],
            "faculty": context.canonical_faculty,
        },
    )
    return AssignmentResult(
        proposal_id=proposal.id,
        reviewers=[c.summary() for c in selected],
        review_ids=[r.id for r in human_reviews],
        ai_review_id=ai_review.id,
        due_date=due_date,
        submitter_faculty=context.canonical_faculty,
        peer_faculties=sorted(context.peer_faculties),
    )
