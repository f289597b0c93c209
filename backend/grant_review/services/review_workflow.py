"""Review workflow facade wiring the engines to their collaborators.

The engines are plain async functions; `ReviewWorkflow` binds the policy,
notifier, AI dispatcher and AI scorer once so API routes and the queue worker
call every operation with the same dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from grant_review.core.errors import NotFoundError
from grant_review.core.logging import get_logger
from grant_review.models.reviews import Review
from grant_review.services import (
    assignment_engine,
    deadlines,
    finalization,
    reassignment,
    reconciliation,
    scoring,
)
from grant_review.services.ai_scoring import (
    PlaceholderAIScorer,
    decode_ai_review_task,
    dispatch_ai_review,
)
from grant_review.services.assignment_engine import get_proposal
from grant_review.services.notifications import notify
from grant_review.services.review_policy import DEFAULT_POLICY, ReviewPolicy

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from grant_review.schemas.assignments import (
        AssignmentResult,
        DiscrepancyAnalysis,
        DiscrepancyResult,
        FinalizationResult,
        ReassignmentResult,
        SubmissionResult,
        SweepResult,
    )
    from grant_review.schemas.reviews import ReviewerStatistics
    from grant_review.services.ai_scoring import AIDispatcher, AIScorer
    from grant_review.services.notifications import Notifier
    from grant_review.services.queue import QueuedTask

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReviewWorkflow:
    policy: ReviewPolicy = DEFAULT_POLICY
    notifier: Notifier = notify
    ai_dispatcher: AIDispatcher = dispatch_ai_review
    ai_scorer: AIScorer = field(default_factory=PlaceholderAIScorer)

    @classmethod
    def from_settings(cls) -> ReviewWorkflow:
        return cls(policy=ReviewPolicy.from_settings())

    async def assign_reviewers(
        self,
        session: AsyncSession,
        proposal_id: UUID,
        *,
        actor_id: UUID | None = None,
    ) -> AssignmentResult:
        return await assignment_engine.assign_reviewers(
            session,
            proposal_id,
            policy=self.policy,
            notifier=self.notifier,
            ai_dispatcher=self.ai_dispatcher,
            actor_id=actor_id,
        )

    async def submit_review(
        self,
        session: AsyncSession,
        review_id: UUID,
        *,
        scores: Mapping[str, float],
        comments: Mapping[str, str] | None,
        acting_reviewer_id: UUID,
    ) -> SubmissionResult:
        return await scoring.submit_review(
            session,
            review_id,
            scores=scores,
            comments=comments,
            acting_reviewer_id=acting_reviewer_id,
            policy=self.policy,
            notifier=self.notifier,
        )

    async def save_review_progress(
        self,
        session: AsyncSession,
        review_id: UUID,
        *,
        scores: Mapping[str, float] | None,
        comments: Mapping[str, str] | None,
        acting_reviewer_id: UUID,
    ) -> Review:
        return await scoring.save_review_progress(
            session,
            review_id,
            scores=scores,
            comments=comments,
            acting_reviewer_id=acting_reviewer_id,
        )

    async def score_ai_review(self, session: AsyncSession, review_id: UUID) -> SubmissionResult:
        """Run the AI scorer for an AI review and record its result."""
        review = await Review.objects.by_id(review_id).first(session)
        if review is None or review.review_type != "ai":
            raise NotFoundError("AI review not found", review_id=str(review_id))
        proposal = await get_proposal(session, review.proposal_id)
        result = self.ai_scorer.generate_ai_review(proposal)
        return await scoring.record_ai_review(
            session,
            review.id,
            result=result,
            policy=self.policy,
            notifier=self.notifier,
        )

    async def check_discrepancy(
        self,
        session: AsyncSession,
        proposal_id: UUID,
        *,
        actor_id: UUID | None = None,
    ) -> DiscrepancyResult:
        return await reconciliation.check_discrepancy(
            session,
            proposal_id,
            policy=self.policy,
            notifier=self.notifier,
            actor_id=actor_id,
        )

    async def discrepancy_analysis(
        self,
        session: AsyncSession,
        proposal_id: UUID,
    ) -> DiscrepancyAnalysis:
        return await reconciliation.discrepancy_analysis(session, proposal_id)

    async def finalize(self, session: AsyncSession, proposal_id: UUID) -> FinalizationResult:
        return await finalization.finalize(session, proposal_id, policy=self.policy)

    async def reassign_regular_review(
        self,
        session: AsyncSession,
        review_id: UUID,
        *,
        new_reviewer_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> ReassignmentResult:
        return await reassignment.reassign_regular_review(
            session,
            review_id,
            new_reviewer_id=new_reviewer_id,
            policy=self.policy,
            notifier=self.notifier,
            actor_id=actor_id,
        )

    async def reassign_reconciliation_review(
        self,
        session: AsyncSession,
        proposal_id: UUID,
        *,
        new_reviewer_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> ReassignmentResult:
        return await reassignment.reassign_reconciliation_review(
            session,
            proposal_id,
            new_reviewer_id=new_reviewer_id,
            policy=self.policy,
            notifier=self.notifier,
            actor_id=actor_id,
        )

    async def sweep_overdue_and_approaching(self, session: AsyncSession) -> SweepResult:
        return await deadlines.sweep_overdue_and_approaching(
            session,
            policy=self.policy,
            notifier=self.notifier,
        )

    async def reviewer_statistics(
        self,
        session: AsyncSession,
        reviewer_id: UUID,
    ) -> ReviewerStatistics:
        return await scoring.reviewer_statistics(session, reviewer_id)


def get_review_workflow() -> ReviewWorkflow:
    return ReviewWorkflow.from_settings()


async def process_ai_review_task(task: QueuedTask) -> None:
    """Queue-worker handler for `ai_review` tasks."""
    from grant_review.db.session import session_scope

    proposal_id, review_id = decode_ai_review_task(task)
    async with session_scope() as session:
        review = await Review.objects.by_id(review_id).first(session)
        if review is None or review.status == "completed":
            logger.info(
                "ai_scoring.task.skipped",
                extra={"proposal_id": str(proposal_id), "review_id": str(review_id)},
            )
            return
        result = await get_review_workflow().score_ai_review(session, review_id)
    logger.info(
        "ai_scoring.task.completed",
        extra={
            "proposal_id": str(proposal_id),
            "review_id": str(review_id),
            "total_score": result.review.total_score,
            "stage": result.stage,
        },
    )
