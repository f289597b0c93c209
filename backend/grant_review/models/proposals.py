"""Research-grant proposal model."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field

from grant_review.core.time import utcnow
from grant_review.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Proposal(QueryModel, table=True):
    """Grant proposal moving through assignment, scoring, and reconciliation."""

    __tablename__ = "proposals"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    submitter_id: UUID = Field(foreign_key="users.id", index=True)
    title: str = Field(default="Research Proposal")
    estimated_budget: float | None = None
    # submitted | under_review | revision_requested | approved | rejected
    status: str = Field(default="submitted", index=True)
    # pending | finalizing | reviewed
    review_status: str = Field(default="pending", index=True)
    is_archived: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
