"""Review model: one row per reviewer (or the AI) per proposal."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field

from grant_review.core.time import utcnow
from grant_review.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Review(QueryModel, table=True):
    """Scored review of a proposal.

    `reviewer_id` is null for the AI review. `total_score` is always the sum of
    the ten criterion scores stored in `scores`.
    """

    __tablename__ = "reviews"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    proposal_id: UUID = Field(foreign_key="proposals.id", index=True)
    reviewer_id: UUID | None = Field(default=None, foreign_key="users.id", index=True)
    review_type: str = Field(default="human", index=True)  # ai | human | reconciliation
    status: str = Field(default="in_progress", index=True)  # in_progress | completed | overdue
    scores: dict[str, float] | None = Field(default=None, sa_column=Column(JSON))
    comments: dict[str, str] | None = Field(default=None, sa_column=Column(JSON))
    total_score: float = Field(default=0.0)
    due_date: datetime = Field(default_factory=utcnow, index=True)
    completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
