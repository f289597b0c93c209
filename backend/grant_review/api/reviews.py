"""Reviewer-facing endpoints: submission, progress, dashboard, reassignment."""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from fastapi_pagination.limit_offset import LimitOffsetPage
from sqlmodel import col
from sqlmodel.ext.asyncio.session import AsyncSession

from grant_review.api.deps import get_acting_reviewer_id, get_optional_actor_id, get_workflow
from grant_review.db.pagination import paginate
from grant_review.db.session import get_session
from grant_review.models.reviews import Review
from grant_review.schemas.assignments import (
    ReassignmentResult,
    ReassignPayload,
    SubmissionResult,
    SweepResult,
)
from grant_review.schemas.errors import ErrorResponse
from grant_review.schemas.pagination import DefaultLimitOffsetPage
from grant_review.schemas.reviews import (
    ReviewerStatistics,
    ReviewProgress,
    ReviewRead,
    ReviewSubmit,
)
from grant_review.services.review_workflow import ReviewWorkflow

router = APIRouter(prefix="/reviews", tags=["reviews"])
SESSION_DEP = Depends(get_session)
WORKFLOW_DEP = Depends(get_workflow)
REVIEWER_DEP = Depends(get_acting_reviewer_id)
ACTOR_DEP = Depends(get_optional_actor_id)
ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


def _to_review_reads(items: Sequence[Review]) -> list[ReviewRead]:
    return [ReviewRead.model_validate(item, from_attributes=True) for item in items]


@router.get("/me", response_model=DefaultLimitOffsetPage[ReviewRead])
async def list_my_reviews(
    status: str | None = None,
    session: AsyncSession = SESSION_DEP,
    reviewer_id: UUID = REVIEWER_DEP,
) -> LimitOffsetPage[ReviewRead]:
    """Reviews assigned to the acting reviewer, soonest due first."""
    queryset = Review.objects.filter_by(reviewer_id=reviewer_id)
    if status:
        queryset = queryset.filter_by(status=status)
    queryset = queryset.order_by(col(Review.due_date).asc(), col(Review.id).asc())
    return await paginate(session, queryset.statement(), transformer=_to_review_reads)


@router.get("/me/statistics", response_model=ReviewerStatistics)
async def my_statistics(
    session: AsyncSession = SESSION_DEP,
    workflow: ReviewWorkflow = WORKFLOW_DEP,
    reviewer_id: UUID = REVIEWER_DEP,
) -> ReviewerStatistics:
    return await workflow.reviewer_statistics(session, reviewer_id)


@router.post("/sweep", response_model=SweepResult)
async def run_sweep(
    session: AsyncSession = SESSION_DEP,
    workflow: ReviewWorkflow = WORKFLOW_DEP,
) -> SweepResult:
    """Run the deadline sweep now instead of waiting for the scheduler."""
    return await workflow.sweep_overdue_and_approaching(session)


@router.post(
    "/{review_id}/submit",
    response_model=SubmissionResult,
    responses=ERROR_RESPONSES,
)
async def submit_review(
    review_id: UUID,
    payload: ReviewSubmit,
    session: AsyncSession = SESSION_DEP,
    workflow: ReviewWorkflow = WORKFLOW_DEP,
    reviewer_id: UUID = REVIEWER_DEP,
) -> SubmissionResult:
    """Submit final scores; may trigger reconciliation or finalization."""
    return await workflow.submit_review(
        session,
        review_id,
        scores=payload.scores,
        comments=payload.comments,
        acting_reviewer_id=reviewer_id,
    )


@router.patch(
    "/{review_id}/progress",
    response_model=ReviewRead,
    responses=ERROR_RESPONSES,
)
async def save_progress(
    review_id: UUID,
    payload: ReviewProgress,
    session: AsyncSession = SESSION_DEP,
    workflow: ReviewWorkflow = WORKFLOW_DEP,
    reviewer_id: UUID = REVIEWER_DEP,
) -> ReviewRead:
    review = await workflow.save_review_progress(
        session,
        review_id,
        scores=payload.scores,
        comments=payload.comments,
        acting_reviewer_id=reviewer_id,
    )
    return ReviewRead.model_validate(review, from_attributes=True)


@router.post(
    "/{review_id}/reassign",
    response_model=ReassignmentResult,
    responses=ERROR_RESPONSES,
)
async def reassign_review(
    review_id: UUID,
    payload: ReassignPayload | None = Body(default=None),
    session: AsyncSession = SESSION_DEP,
    workflow: ReviewWorkflow = WORKFLOW_DEP,
    actor_id: UUID | None = ACTOR_DEP,
) -> ReassignmentResult:
    return await workflow.reassign_regular_review(
        session,
        review_id,
        new_reviewer_id=payload.new_reviewer_id if payload else None,
        actor_id=actor_id,
    )
