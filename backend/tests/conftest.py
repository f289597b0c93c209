# ruff: noqa: INP001
"""Pytest configuration shared across backend tests."""

from __future__ import annotations

import os
import sys
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from uuid import UUID

import pytest
import pytest_asyncio

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Deterministic settings during import-time initialization, regardless of shell env.
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RQ_REDIS_URL"] = "redis://localhost:6379/15"

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402
from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402

from grant_review.models import Faculty, Proposal, User  # noqa: E402
from grant_review.schemas.reviews import SCORE_CRITERIA  # noqa: E402
from grant_review.services.review_workflow import ReviewWorkflow  # noqa: E402


async def make_engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


@dataclass
class RecordingNotifier:
    calls: list[tuple[str, str, dict[str, Any]]] = field(default_factory=list)

    def __call__(self, kind: str, recipient_email: str, template_data: dict[str, Any]) -> bool:
        self.calls.append((kind, recipient_email, template_data))
        return True

    def kinds(self) -> list[str]:
        return [kind for kind, _, _ in self.calls]


@dataclass
class RecordingDispatcher:
    calls: list[tuple[UUID, UUID]] = field(default_factory=list)

    def __call__(self, *, proposal_id: UUID, review_id: UUID) -> bool:
        self.calls.append((proposal_id, review_id))
        return True


class ReviewFactory:
    """Creates faculties, users and proposals in a test session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._faculties: dict[str, Faculty] = {}
        self._counter = 0

    async def faculty(self, title: str) -> Faculty:
        if title not in self._faculties:
            faculty = Faculty(title=title)
            self.session.add(faculty)
            await self.session.commit()
            self._faculties[title] = faculty
        return self._faculties[title]

    async def user(
        self,
        faculty_title: str | None,
        *,
        name: str | None = None,
        role: str = "reviewer",
        is_active: bool = True,
        invitation_status: str = "accepted",
    ) -> User:
        self._counter += 1
        faculty = await self.faculty(faculty_title) if faculty_title else None
        user = User(
            name=name or f"User {self._counter}",
            email=f"user{self._counter}@example.edu",
            role=role,
            faculty_id=faculty.id if faculty else None,
            is_active=is_active,
            invitation_status=invitation_status,
        )
        self.session.add(user)
        await self.session.commit()
        return user

    async def proposal(
        self,
        submitter: User,
        *,
        estimated_budget: float | None = 250000.0,
        status: str = "submitted",
    ) -> Proposal:
        proposal = Proposal(
            submitter_id=submitter.id,
            title="Soil microbiome study",
            estimated_budget=estimated_budget,
            status=status,
        )
        self.session.add(proposal)
        await self.session.commit()
        return proposal


def scores_totaling(total: int) -> dict[str, float]:
    """Integer criterion scores filled greedily up to each maximum, summing to `total`."""
    remaining = total
    scores: dict[str, float] = {}
    for name, maximum in SCORE_CRITERIA.items():
        points = min(maximum, remaining)
        scores[name] = float(points)
        remaining -= points
    assert remaining == 0
    return scores


@pytest.fixture
def make_scores():
    return scores_totaling


@pytest_asyncio.fixture
async def session() -> AsyncIterator[AsyncSession]:
    engine = await make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as db_session:
            yield db_session
    finally:
        await engine.dispose()


@pytest.fixture
def factory(session: AsyncSession) -> ReviewFactory:
    return ReviewFactory(session)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def ai_dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def workflow(notifier: RecordingNotifier, ai_dispatcher: RecordingDispatcher) -> ReviewWorkflow:
    return ReviewWorkflow(notifier=notifier, ai_dispatcher=ai_dispatcher)
