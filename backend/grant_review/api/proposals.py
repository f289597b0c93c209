"""Proposal-level review endpoints: assignment, discrepancy, reconciliation."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from grant_review.api.deps import get_optional_actor_id, get_workflow
from grant_review.db.session import get_session
from grant_review.schemas.assignments import (
    AssignmentResult,
    DiscrepancyAnalysis,
    DiscrepancyResult,
    ReassignmentResult,
    ReassignPayload,
)
from grant_review.schemas.errors import ErrorResponse
from grant_review.services.review_workflow import ReviewWorkflow

router = APIRouter(prefix="/proposals", tags=["proposals"])
SESSION_DEP = Depends(get_session)
WORKFLOW_DEP = Depends(get_workflow)
ACTOR_DEP = Depends(get_optional_actor_id)
ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


@router.post(
    "/{proposal_id}/assign-reviewers",
    response_model=AssignmentResult,
    responses=ERROR_RESPONSES,
)
async def assign_reviewers(
    proposal_id: UUID,
    session: AsyncSession = SESSION_DEP,
    workflow: ReviewWorkflow = WORKFLOW_DEP,
    actor_id: UUID | None = ACTOR_DEP,
) -> AssignmentResult:
    """Assign peer reviewers and queue the AI review for a submitted proposal."""
    return await workflow.assign_reviewers(session, proposal_id, actor_id=actor_id)


@router.post(
    "/{proposal_id}/discrepancy-check",
    response_model=DiscrepancyResult,
    responses=ERROR_RESPONSES,
)
async def check_discrepancy(
    proposal_id: UUID,
    session: AsyncSession = SESSION_DEP,
    workflow: ReviewWorkflow = WORKFLOW_DEP,
    actor_id: UUID | None = ACTOR_DEP,
) -> DiscrepancyResult:
    return await workflow.check_discrepancy(session, proposal_id, actor_id=actor_id)


@router.get(
    "/{proposal_id}/discrepancy-analysis",
    response_model=DiscrepancyAnalysis,
    responses=ERROR_RESPONSES,
)
async def discrepancy_analysis(
    proposal_id: UUID,
    session: AsyncSession = SESSION_DEP,
    workflow: ReviewWorkflow = WORKFLOW_DEP,
) -> DiscrepancyAnalysis:
    return await workflow.discrepancy_analysis(session, proposal_id)


@router.post(
    "/{proposal_id}/reconciliation/reassign",
    response_model=ReassignmentResult,
    responses=ERROR_RESPONSES,
)
async def reassign_reconciliation(
    proposal_id: UUID,
    payload: ReassignPayload | None = Body(default=None),
    session: AsyncSession = SESSION_DEP,
    workflow: ReviewWorkflow = WORKFLOW_DEP,
    actor_id: UUID | None = ACTOR_DEP,
) -> ReassignmentResult:
    """Create or move the reconciliation review of a proposal awaiting revision review."""
    return await workflow.reassign_reconciliation_review(
        session,
        proposal_id,
        new_reviewer_id=payload.new_reviewer_id if payload else None,
        actor_id=actor_id,
    )
