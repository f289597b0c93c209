"""Faculty reference data."""

from __future__ import annotations

from uuid import UUID, uuid4

from sqlmodel import Field

from grant_review.models.base import QueryModel


class Faculty(QueryModel, table=True):
    """Academic faculty; title may carry a code suffix, e.g. "Faculty of Law (LAW)"."""

    __tablename__ = "faculties"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str = Field(index=True, unique=True)
    code: str = Field(default="", index=True)
