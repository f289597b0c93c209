"""Reviewer candidate profiles and deterministic workload-based ranking."""

from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from sqlmodel import col

from grant_review.models.faculties import Faculty
from grant_review.models.reviews import Review
from grant_review.models.users import ELIGIBLE_INVITATION_STATUSES, User
from grant_review.schemas.assignments import ReviewerSummary
from grant_review.services.faculty_clusters import try_resolve_faculty

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

_UNFINISHED_STATUSES = frozenset({"in_progress", "overdue"})


@dataclass(frozen=True)
class ReviewerCandidate:
    """An eligible reviewer together with their current workload."""

    reviewer_id: UUID
    name: str
    email: str
    faculty_id: UUID | None
    faculty_title: str | None = None
    pending_count: int = 0
    completed_count: int = 0
    reconciliation_count: int = 0
    total_count: int = 0

    def summary(self) -> ReviewerSummary:
        return ReviewerSummary(
            id=self.reviewer_id,
            name=self.name,
            email=self.email,
            faculty_id=self.faculty_id,
            faculty_title=self.faculty_title,
        )


def _workload_key(candidate: ReviewerCandidate) -> tuple[int, int, str]:
    return (candidate.pending_count, candidate.reconciliation_count, str(candidate.reviewer_id))


def rank_eligible(candidates: Iterable[ReviewerCandidate]) -> list[ReviewerCandidate]:
    """Least-loaded first: pending reviews, then past reconciliations, then id."""
    return sorted(candidates, key=_workload_key)


def rank_for_reconciliation(candidates: Iterable[ReviewerCandidate]) -> list[ReviewerCandidate]:
    """Rank reconciliation candidates, preferring reviewers with completed reviews.

    Reviewers without any completed review go after the experienced ones. When
    nobody has history the pending workload alone decides.
    """
    pool = list(candidates)
    experienced = [c for c in pool if c.completed_count > 0]
    if not experienced:
        return sorted(pool, key=lambda c: (c.pending_count, str(c.reviewer_id)))
    newcomers = [c for c in pool if c.completed_count == 0]
    return rank_eligible(experienced) + rank_eligible(newcomers)


def _faculty_key(candidate: ReviewerCandidate) -> str | None:
    if candidate.faculty_title is not None:
        return candidate.faculty_title
    return str(candidate.faculty_id) if candidate.faculty_id is not None else None


def select_diverse(
    ranked: Sequence[ReviewerCandidate],
    slots: int,
    *,
    taken_faculties: Collection[str | None] = (),
) -> list[ReviewerCandidate]:
    """Pick up to `slots` reviewers, one per canonical faculty first, then by rank.

    Several faculty rows can resolve to the same canonical faculty, so diversity
    is keyed on `faculty_title` rather than on the row id.
    """
    if slots <= 0:
        return []
    represented: set[str | None] = set(taken_faculties)
    picked: list[ReviewerCandidate] = []
    for candidate in ranked:
        if len(picked) >= slots:
            return picked
        key = _faculty_key(candidate)
        if key in represented:
            continue
        represented.add(key)
        picked.append(candidate)
    picked_ids = {c.reviewer_id for c in picked}
    for candidate in ranked:
        if len(picked) >= slots:
            break
        if candidate.reviewer_id not in picked_ids:
            picked.append(candidate)
            picked_ids.add(candidate.reviewer_id)
    return picked


async def summarize_reviewer(session: AsyncSession, user: User) -> ReviewerSummary:
    faculty = None
    if user.faculty_id is not None:
        faculty = await Faculty.objects.by_id(user.faculty_id).first(session)
    return ReviewerSummary(
        id=user.id,
        name=user.name,
        email=user.email,
        faculty_id=user.faculty_id,
        faculty_title=try_resolve_faculty(faculty.title) if faculty else None,
    )


async def eligible_faculty_ids(
    session: AsyncSession,
    peer_titles: Collection[str],
) -> dict[UUID, str]:
    """Faculty rows whose resolved canonical title is one of `peer_titles`."""
    faculties = await Faculty.objects.all().all(session)
    eligible: dict[UUID, str] = {}
    for faculty in faculties:
        canonical = try_resolve_faculty(faculty.title)
        if canonical is not None and canonical in peer_titles:
            eligible[faculty.id] = canonical
    return eligible


async def build_candidates(
    session: AsyncSession,
    *,
    faculty_titles: dict[UUID, str],
    exclude_ids: Collection[UUID] = (),
) -> list[ReviewerCandidate]:
    """Load eligible reviewers in the given faculties with their workload counts."""
    if not faculty_titles:
        return []
    users = await (
        User.objects.by_field_in("faculty_id", faculty_titles.keys())
        .filter_by(role="reviewer", is_active=True)
        .filter(col(User.invitation_status).in_(ELIGIBLE_INVITATION_STATUSES))
        .all(session)
    )
    users = [user for user in users if user.id not in exclude_ids]
    if not users:
        return []

    reviews = await Review.objects.by_field_in("reviewer_id", [u.id for u in users]).all(session)
    by_reviewer: dict[UUID, list[Review]] = {}
    for review in reviews:
        if review.reviewer_id is not None:
            by_reviewer.setdefault(review.reviewer_id, []).append(review)

    candidates: list[ReviewerCandidate] = []
    for user in users:
        history = by_reviewer.get(user.id, [])
        candidates.append(
            ReviewerCandidate(
                reviewer_id=user.id,
                name=user.name,
                email=user.email,
                faculty_id=user.faculty_id,
                faculty_title=faculty_titles.get(user.faculty_id) if user.faculty_id else None,
                pending_count=sum(1 for r in history if r.status in _UNFINISHED_STATUSES),
                completed_count=sum(1 for r in history if r.status == "completed"),
                reconciliation_count=sum(
                    1 for r in history if r.review_type == "reconciliation"
                ),
                total_count=len(history),
            ),
        )
    return candidates
