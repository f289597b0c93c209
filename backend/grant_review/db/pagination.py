"""Async limit/offset pagination over SQLModel select statements."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from fastapi_pagination.ext.sqlalchemy import paginate as _paginate

if TYPE_CHECKING:
    from fastapi_pagination.bases import AbstractPage
    from sqlalchemy.sql import Select
    from sqlmodel.ext.asyncio.session import AsyncSession


async def paginate(
    session: AsyncSession,
    statement: Select[Any],
    *,
    transformer: Callable[[Sequence[Any]], Sequence[Any]] | None = None,
) -> AbstractPage[Any]:
    """Run `statement` with the request's limit/offset params applied."""
    return await _paginate(session, statement, transformer=transformer)
