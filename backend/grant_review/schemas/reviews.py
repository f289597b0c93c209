"""Schemas for review scores, comments, and review read/write payloads."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from types import MappingProxyType
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)

# Criterion name -> maximum points. The maxima add up to 100.
SCORE_CRITERIA: Mapping[str, int] = MappingProxyType(
    {
        "relevance": 10,
        "originality": 15,
        "clarity": 10,
        "methodology": 15,
        "literature_review": 10,
        "team_composition": 10,
        "feasibility_and_timeline": 10,
        "budget_justification": 10,
        "expected_outcomes": 5,
        "sustainability_and_scalability": 5,
    },
)
MAX_TOTAL_SCORE = sum(SCORE_CRITERIA.values())


class ReviewScores(SQLModel):
    """Complete set of ten criterion scores for a submitted review."""

    relevance: float = Field(ge=0, le=10)
    originality: float = Field(ge=0, le=15)
    clarity: float = Field(ge=0, le=10)
    methodology: float = Field(ge=0, le=15)
    literature_review: float = Field(ge=0, le=10)
    team_composition: float = Field(ge=0, le=10)
    feasibility_and_timeline: float = Field(ge=0, le=10)
    budget_justification: float = Field(ge=0, le=10)
    expected_outcomes: float = Field(ge=0, le=5)
    sustainability_and_scalability: float = Field(ge=0, le=5)

    @property
    def total(self) -> float:
        return float(sum(getattr(self, name) for name in SCORE_CRITERIA))


class PartialReviewScores(SQLModel):
    """Any subset of criterion scores, used for saving review progress."""

    relevance: float | None = Field(default=None, ge=0, le=10)
    originality: float | None = Field(default=None, ge=0, le=15)
    clarity: float | None = Field(default=None, ge=0, le=10)
    methodology: float | None = Field(default=None, ge=0, le=15)
    literature_review: float | None = Field(default=None, ge=0, le=10)
    team_composition: float | None = Field(default=None, ge=0, le=10)
    feasibility_and_timeline: float | None = Field(default=None, ge=0, le=10)
    budget_justification: float | None = Field(default=None, ge=0, le=10)
    expected_outcomes: float | None = Field(default=None, ge=0, le=5)
    sustainability_and_scalability: float | None = Field(default=None, ge=0, le=5)


class ReviewComments(SQLModel):
    """Free-text reviewer remarks: one per criterion plus a summary."""

    relevance: str = ""
    originality: str = ""
    clarity: str = ""
    methodology: str = ""
    literature_review: str = ""
    team_composition: str = ""
    feasibility_and_timeline: str = ""
    budget_justification: str = ""
    expected_outcomes: str = ""
    sustainability_and_scalability: str = ""
    strengths: str = ""
    weaknesses: str = ""
    overall: str = ""


class ReviewSubmit(SQLModel):
    """Payload for submitting a completed review."""

    scores: dict[str, float]
    comments: dict[str, str] = Field(default_factory=dict)


class ReviewProgress(SQLModel):
    """Payload for saving a partially completed review."""

    scores: dict[str, float] = Field(default_factory=dict)
    comments: dict[str, str] = Field(default_factory=dict)


class ReviewRead(SQLModel):
    """Review payload returned by read endpoints."""

    id: UUID
    proposal_id: UUID
    reviewer_id: UUID | None = None
    review_type: str
    status: str
    scores: dict[str, float] | None = None
    comments: dict[str, str] | None = None
    total_score: float
    due_date: datetime
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ReviewerStatistics(SQLModel):
    """Workload counters shown on a reviewer's dashboard."""

    reviewer_id: UUID
    total_assigned: int = 0
    completed: int = 0
    pending: int = 0
    overdue: int = 0
