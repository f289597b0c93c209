"""Small Django-flavoured query helpers on top of SQLModel select statements.

``Model.objects.by_id(some_id).first(session)`` reads better in service code
than hand-assembling ``select(Model).where(...)`` each time.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlmodel import col, select

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement
    from sqlmodel import SQLModel
    from sqlmodel.ext.asyncio.session import AsyncSession

ModelT = TypeVar("ModelT", bound="SQLModel")


@dataclass(frozen=True)
class QuerySet(Generic[ModelT]):
    """Immutable, chainable query description executed against a session."""

    model: type[ModelT]
    clauses: tuple[ColumnElement[bool], ...] = ()
    ordering: tuple[Any, ...] = ()

    def filter(self, *clauses: ColumnElement[bool]) -> QuerySet[ModelT]:
        return replace(self, clauses=self.clauses + clauses)

    def filter_by(self, **values: object) -> QuerySet[ModelT]:
        return self.filter(*(col(getattr(self.model, k)) == v for k, v in values.items()))

    def order_by(self, *ordering: Any) -> QuerySet[ModelT]:
        return replace(self, ordering=self.ordering + ordering)

    def statement(self) -> Any:
        stmt = select(self.model)
        for clause in self.clauses:
            stmt = stmt.where(clause)
        if self.ordering:
            stmt = stmt.order_by(*self.ordering)
        return stmt

    async def all(self, session: AsyncSession) -> list[ModelT]:
        result = await session.exec(self.statement())
        return list(result)

    async def first(self, session: AsyncSession) -> ModelT | None:
        result = await session.exec(self.statement())
        return result.first()


class ModelManager(Generic[ModelT]):
    """Entry point for building querysets for a single model."""

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model

    def all(self) -> QuerySet[ModelT]:
        return QuerySet(self.model)

    def filter(self, *clauses: ColumnElement[bool]) -> QuerySet[ModelT]:
        return self.all().filter(*clauses)

    def filter_by(self, **values: object) -> QuerySet[ModelT]:
        return self.all().filter_by(**values)

    def by_id(self, obj_id: object) -> QuerySet[ModelT]:
        return self.filter_by(id=obj_id)

    def by_ids(self, obj_ids: Iterable[object]) -> QuerySet[ModelT]:
        return self.by_field_in("id", obj_ids)

    def by_field_in(self, field_name: str, values: Iterable[object]) -> QuerySet[ModelT]:
        return self.filter(col(getattr(self.model, field_name)).in_(list(values)))


class ManagerDescriptor:
    """Class-level descriptor returning a manager bound to the owning model."""

    def __get__(self, instance: object, owner: type[Any]) -> ModelManager[Any]:
        return ModelManager(owner)
