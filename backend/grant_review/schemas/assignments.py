"""Schemas for assignment, discrepancy, finalization, and reassignment results."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

from grant_review.schemas.reviews import ReviewRead

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class ReviewerSummary(SQLModel):
    """Reviewer identity as reported back from assignment operations."""

    id: UUID
    name: str
    email: str
    faculty_id: UUID | None = None
    faculty_title: str | None = None


class AssignmentResult(SQLModel):
    """Outcome of assigning reviewers to a proposal."""

    proposal_id: UUID
    reviewers: list[ReviewerSummary] = Field(default_factory=list)
    review_ids: list[UUID] = Field(default_factory=list)
    ai_review_id: UUID
    due_date: datetime
    submitter_faculty: str
    peer_faculties: list[str] = Field(default_factory=list)


class CriterionSpread(SQLModel):
    """Min/max/average of one criterion across completed reviews."""

    criterion: str
    min: float
    max: float
    average: float
    spread_percent: float


class DiscrepancyAnalysis(SQLModel):
    """Per-criterion spread, sorted by descending spread, plus overall totals."""

    proposal_id: UUID
    review_count: int = 0
    criteria: list[CriterionSpread] = Field(default_factory=list)
    total: CriterionSpread | None = None


class DiscrepancyResult(SQLModel):
    """Outcome of a discrepancy check over completed review totals."""

    proposal_id: UUID
    has_discrepancy: bool
    scores: list[float] = Field(default_factory=list)
    average_score: float
    discrepancy_threshold: float
    reconciliation_review_id: UUID | None = None
    reconciliation_reviewer: ReviewerSummary | None = None
    due_date: datetime | None = None
    created: bool = False


class FinalizationResult(SQLModel):
    """Final score and award produced when a proposal finishes review."""

    proposal_id: UUID
    final_score: float
    reconciled: bool
    award_id: UUID
    award_created: bool
    feedback: str


class SubmissionResult(SQLModel):
    """What happened after a review was submitted."""

    review: ReviewRead
    # awaiting_reviews | awaiting_reconciliation | reconciliation_assigned | finalized
    # | skipped | blocked
    stage: str
    discrepancy: DiscrepancyResult | None = None
    finalization: FinalizationResult | None = None
    # Set when the next stage could not run, e.g. no reconciliation reviewer.
    blocked: dict[str, Any] | None = None
    analysis: DiscrepancyAnalysis


class ReassignPayload(SQLModel):
    """Optional explicit replacement reviewer; omitted means auto-select."""

    new_reviewer_id: UUID | None = None


class ReassignmentResult(SQLModel):
    """Outcome of reassigning a regular or reconciliation review."""

    review_id: UUID
    proposal_id: UUID
    reviewer: ReviewerSummary
    previous_reviewer_id: UUID | None = None
    due_date: datetime
    is_new_assignment: bool = False


class SweepResult(SQLModel):
    """Counters from one deadline sweep run."""

    reminders_sent: int = 0
    overdue_marked: int = 0
