"""User model covering researchers, reviewers, and administrators."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field

from grant_review.core.time import utcnow
from grant_review.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)

ELIGIBLE_INVITATION_STATUSES = ("accepted", "added")


class User(QueryModel, table=True):
    """Platform user; reviewers are users with role="reviewer"."""

    __tablename__ = "users"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    role: str = Field(default="researcher", index=True)  # admin | researcher | reviewer
    faculty_id: UUID | None = Field(default=None, foreign_key="faculties.id", index=True)
    is_active: bool = Field(default=True, index=True)
    invitation_status: str = Field(default="pending", index=True)  # pending | added | accepted | expired
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def can_review(self) -> bool:
        return (
            self.role == "reviewer"
            and self.is_active
            and self.invitation_status in ELIGIBLE_INVITATION_STATUSES
        )
