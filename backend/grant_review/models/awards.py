"""Award record materialized once a proposal finishes review."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field

from grant_review.core.time import utcnow
from grant_review.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Award(QueryModel, table=True):
    """Funding decision record; one per proposal."""

    __tablename__ = "awards"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    proposal_id: UUID = Field(foreign_key="proposals.id", index=True, unique=True)
    submitter_id: UUID = Field(foreign_key="users.id", index=True)
    final_score: float
    status: str = Field(default="pending", index=True)  # pending | approved | declined
    funding_amount: float = Field(default=0.0)
    feedback: str = Field(default="")
    approved_by: UUID | None = Field(default=None, foreign_key="users.id")
    approved_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
