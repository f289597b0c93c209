"""Shared SQLModel base class with the `objects` query manager."""

from __future__ import annotations

from typing import Any, ClassVar

from sqlmodel import SQLModel

from grant_review.db.query_manager import ManagerDescriptor, ModelManager


class QueryModel(SQLModel, table=False):
    """Base class for tables; exposes `Model.objects` for common lookups."""

    objects: ClassVar[ModelManager[Any]] = ManagerDescriptor()  # type: ignore[assignment]
