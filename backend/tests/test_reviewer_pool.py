# ruff: noqa: INP001
"""Reviewer ranking and diversity selection tests."""

from __future__ import annotations

from uuid import UUID, uuid4

import pytest

from grant_review.models import Review
from grant_review.services.reviewer_pool import (
    ReviewerCandidate,
    build_candidates,
    eligible_faculty_ids,
    rank_eligible,
    rank_for_reconciliation,
    select_diverse,
)

FAC_A = UUID("aaaaaaaa-0000-0000-0000-000000000001")
FAC_B = UUID("aaaaaaaa-0000-0000-0000-000000000002")
LIFE_SCIENCES = "Faculty of Life Sciences"
VETERINARY = "Faculty of Veterinary Medicine"


def _candidate(
    n: int,
    *,
    faculty_id: UUID = FAC_A,
    faculty_title: str | None = LIFE_SCIENCES,
    pending: int = 0,
    completed: int = 0,
    reconciliation: int = 0,
) -> ReviewerCandidate:
    return ReviewerCandidate(
        reviewer_id=UUID(int=n),
        name=f"Reviewer {n}",
        email=f"r{n}@example.edu",
        faculty_id=faculty_id,
        faculty_title=faculty_title,
        pending_count=pending,
        completed_count=completed,
        reconciliation_count=reconciliation,
    )


def test_rank_eligible_orders_by_pending_then_reconciliations_then_id() -> None:
    busy = _candidate(1, pending=3)
    veteran = _candidate(2, pending=1, reconciliation=2)
    fresh_b = _candidate(4, pending=1)
    fresh_a = _candidate(3, pending=1)

    ranked = rank_eligible([busy, veteran, fresh_b, fresh_a])

    assert [c.reviewer_id for c in ranked] == [
        fresh_a.reviewer_id,
        fresh_b.reviewer_id,
        veteran.reviewer_id,
        busy.reviewer_id,
    ]


def test_rank_for_reconciliation_prefers_experience() -> None:
    idle_newcomer = _candidate(1, pending=0, completed=0)
    loaded_expert = _candidate(2, pending=4, completed=6)

    ranked = rank_for_reconciliation([idle_newcomer, loaded_expert])

    assert ranked[0] is loaded_expert
    assert ranked[1] is idle_newcomer


def test_rank_for_reconciliation_without_history_uses_pending_only() -> None:
    a = _candidate(1, pending=2, reconciliation=0)
    b = _candidate(2, pending=1, reconciliation=5)

    assert rank_for_reconciliation([a, b]) == [b, a]


def test_select_diverse_spreads_across_faculties() -> None:
    ranked = [
        _candidate(1, faculty_id=FAC_A),
        _candidate(2, faculty_id=FAC_A),
        _candidate(3, faculty_id=FAC_B, faculty_title=VETERINARY, pending=5),
    ]

    picked = select_diverse(ranked, 2)

    assert {c.faculty_title for c in picked} == {LIFE_SCIENCES, VETERINARY}
    assert [c.reviewer_id for c in picked] == [UUID(int=1), UUID(int=3)]


def test_select_diverse_fills_from_same_faculty_when_needed() -> None:
    ranked = [_candidate(1), _candidate(2), _candidate(3)]

    picked = select_diverse(ranked, 2)

    assert [c.reviewer_id for c in picked] == [UUID(int=1), UUID(int=2)]


def test_select_diverse_respects_taken_faculties() -> None:
    ranked = [
        _candidate(1, faculty_id=FAC_A),
        _candidate(2, faculty_id=FAC_B, faculty_title=VETERINARY, pending=9),
    ]

    picked = select_diverse(ranked, 1, taken_faculties={LIFE_SCIENCES})

    assert picked[0].reviewer_id == UUID(int=2)


def test_select_diverse_with_no_slots() -> None:
    assert select_diverse([_candidate(1)], 0) == []


@pytest.mark.asyncio
async def test_build_candidates_filters_ineligible_and_counts_workload(
    session,
    factory,
    make_scores,
) -> None:
    eligible = await factory.user("Faculty of Life Sciences")
    await factory.user("Faculty of Life Sciences", is_active=False)
    await factory.user("Faculty of Life Sciences", invitation_status="pending")
    await factory.user("Faculty of Life Sciences", role="researcher")
    added = await factory.user("Faculty of Veterinary Medicine (VET)", invitation_status="added")
    excluded = await factory.user("Faculty of Veterinary Medicine (VET)")
    await factory.user("Faculty of Law")
    submitter = await factory.user("Faculty of Agriculture", role="researcher")
    proposal = await factory.proposal(submitter)

    session.add(Review(proposal_id=proposal.id, reviewer_id=eligible.id, status="in_progress"))
    session.add(
        Review(
            proposal_id=proposal.id,
            reviewer_id=eligible.id,
            review_type="reconciliation",
            status="completed",
            scores=make_scores(60),
            total_score=60,
        ),
    )
    await session.commit()

    titles = await eligible_faculty_ids(
        session,
        {"Faculty of Life Sciences", "Faculty of Veterinary Medicine"},
    )
    assert sorted(titles.values()) == [
        "Faculty of Life Sciences",
        "Faculty of Veterinary Medicine",
    ]

    candidates = await build_candidates(
        session,
        faculty_titles=titles,
        exclude_ids={excluded.id},
    )
    by_id = {c.reviewer_id: c for c in candidates}

    assert set(by_id) == {eligible.id, added.id}
    assert by_id[eligible.id].pending_count == 1
    assert by_id[eligible.id].completed_count == 1
    assert by_id[eligible.id].reconciliation_count == 1
    assert by_id[eligible.id].faculty_title == "Faculty of Life Sciences"
    assert by_id[added.id].total_count == 0


@pytest.mark.asyncio
async def test_build_candidates_with_no_faculties(session) -> None:
    assert await build_candidates(session, faculty_titles={}, exclude_ids={uuid4()}) == []


def test_select_diverse_groups_faculty_rows_by_canonical_title() -> None:
    ranked = [
        _candidate(1, faculty_id=FAC_A),
        _candidate(2, faculty_id=FAC_B),
        _candidate(3, faculty_id=uuid4(), faculty_title=VETERINARY, pending=1),
    ]

    picked = select_diverse(ranked, 2)

    assert [c.reviewer_id for c in picked] == [UUID(int=1), UUID(int=3)]
