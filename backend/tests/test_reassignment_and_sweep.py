# ruff: noqa: INP001
"""Reassignment rules, the deadline sweep, progress saving and reviewer statistics."""

from __future__ import annotations

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from grant_review.core.errors import (
    AlreadyCompletedError,
    InsufficientReviewersError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from grant_review.models import AuditEntry, Review
from grant_review.services import deadlines
from grant_review.services.deadlines import sweep_overdue_and_approaching

NOW = datetime(2026, 10, 19, 9, 0)


async def _assigned(factory, workflow, session, *, life_sciences: int = 2):
    submitter = await factory.user("Faculty of Agriculture", role="researcher")
    pool = [await factory.user("Faculty of Life Sciences") for _ in range(life_sciences)]
    vet = await factory.user("Faculty of Veterinary Medicine")
    proposal = await factory.proposal(submitter)
    assignment = await workflow.assign_reviewers(session, proposal.id)
    return proposal, assignment, pool, vet


def _review_of(assignment, reviewer_id):
    index = [r.id for r in assignment.reviewers].index(reviewer_id)
    return assignment.review_ids[index]


@pytest.mark.asyncio
async def test_reassign_regular_review_auto_selects_and_resets(
    session,
    factory,
    workflow,
    notifier,
) -> None:
    proposal, assignment, pool, vet = await _assigned(factory, workflow, session)
    (assigned_ls,) = [r for r in assignment.reviewers if r.id != vet.id]
    (spare,) = [u for u in pool if u.id != assigned_ls.id]
    review_id = _review_of(assignment, assigned_ls.id)
    await workflow.save_review_progress(
        session,
        review_id,
        scores={"relevance": 6},
        comments={"strengths": "Novel"},
        acting_reviewer_id=assigned_ls.id,
    )
    notifier.calls.clear()

    result = await workflow.reassign_regular_review(session, review_id)

    assert result.reviewer.id == spare.id
    assert result.previous_reviewer_id == assigned_ls.id
    assert result.is_new_assignment is False
    review = await Review.objects.by_id(review_id).first(session)
    assert review is not None
    assert review.reviewer_id == spare.id
    assert review.status == "in_progress"
    assert review.scores is None and review.comments is None
    assert review.due_date == result.due_date

    assert notifier.kinds() == ["review_assignment"]
    assert notifier.calls[0][1] == spare.email
    assert notifier.calls[0][2]["reassigned"] is True
    audit = await AuditEntry.objects.filter_by(action="review.reassign").all(session)
    assert [a.target_id for a in audit] == [review_id]


@pytest.mark.asyncio
async def test_reassign_regular_review_explicit_reviewer_rules(
    session,
    factory,
    workflow,
) -> None:
    proposal, assignment, pool, vet = await _assigned(factory, workflow, session)
    (assigned_ls,) = [r for r in assignment.reviewers if r.id != vet.id]
    (spare,) = [u for u in pool if u.id != assigned_ls.id]
    review_id = _review_of(assignment, assigned_ls.id)
    outsider = await factory.user("Faculty of Law")
    retired = await factory.user("Faculty of Life Sciences", is_active=False)

    with pytest.raises(NotFoundError):
        await workflow.reassign_regular_review(session, review_id, new_reviewer_id=uuid4())
    for bad in (outsider, retired):
        with pytest.raises(ValidationError):
            await workflow.reassign_regular_review(session, review_id, new_reviewer_id=bad.id)
    with pytest.raises(ValidationError) as excinfo:
        await workflow.reassign_regular_review(session, review_id, new_reviewer_id=vet.id)
    assert "already involved" in str(excinfo.value)

    result = await workflow.reassign_regular_review(session, review_id, new_reviewer_id=spare.id)
    assert result.reviewer.id == spare.id


@pytest.mark.asyncio
async def test_reassign_regular_review_guards(session, factory, workflow, make_scores) -> None:
    proposal, assignment, pool, vet = await _assigned(factory, workflow, session, life_sciences=1)
    vet_review = _review_of(assignment, vet.id)
    (ls_reviewer,) = pool
    ls_review = _review_of(assignment, ls_reviewer.id)

    with pytest.raises(NotFoundError):
        await workflow.reassign_regular_review(session, uuid4())
    with pytest.raises(InvalidStateError):
        await workflow.reassign_regular_review(session, assignment.ai_review_id)
    with pytest.raises(InsufficientReviewersError):
        await workflow.reassign_regular_review(session, ls_review)

    await workflow.submit_review(
        session,
        vet_review,
        scores=make_scores(60),
        comments=None,
        acting_reviewer_id=vet.id,
    )
    with pytest.raises(AlreadyCompletedError):
        await workflow.reassign_regular_review(session, vet_review)


@pytest.mark.asyncio
async def test_reassign_reconciliation_review_lifecycle(session, factory, workflow) -> None:
    proposal, assignment, pool, vet = await _assigned(factory, workflow, session, life_sciences=3)
    human_ids = {r.id for r in assignment.reviewers}

    with pytest.raises(InvalidStateError):
        await workflow.reassign_reconciliation_review(session, proposal.id)

    proposal.status = "revision_requested"
    session.add(proposal)
    await session.commit()

    created = await workflow.reassign_reconciliation_review(session, proposal.id)
    assert created.is_new_assignment is True
    assert created.previous_reviewer_id is None
    assert created.reviewer.id not in human_ids

    moved = await workflow.reassign_reconciliation_review(session, proposal.id)
    assert moved.is_new_assignment is False
    assert moved.review_id == created.review_id
    assert moved.previous_reviewer_id == created.reviewer.id
    assert moved.reviewer.id not in human_ids | {created.reviewer.id}

    reconciliations = [
        r
        for r in await Review.objects.filter_by(proposal_id=proposal.id).all(session)
        if r.review_type == "reconciliation"
    ]
    assert len(reconciliations) == 1
    reconciliations[0].status = "completed"
    session.add(reconciliations[0])
    await session.commit()

    with pytest.raises(AlreadyCompletedError):
        await workflow.reassign_reconciliation_review(session, proposal.id)


@pytest.mark.asyncio
async def test_reassign_reconciliation_requires_pending_review_status(
    session,
    factory,
    workflow,
) -> None:
    proposal, _, _, _ = await _assigned(factory, workflow, session)
    proposal.status = "revision_requested"
    proposal.review_status = "reviewed"
    session.add(proposal)
    await session.commit()

    with pytest.raises(InvalidStateError) as excinfo:
        await workflow.reassign_reconciliation_review(session, proposal.id)
    assert excinfo.value.detail["review_status"] == "reviewed"


@pytest.mark.asyncio
async def test_sweep_marks_overdue_and_reminds(session, factory, notifier) -> None:
    submitter = await factory.user("Faculty of Agriculture", role="researcher")
    reviewer = await factory.user("Faculty of Life Sciences", name="Ada")
    proposal = await factory.proposal(submitter)

    def _add(due: datetime, **fields) -> Review:
        review = Review(
            proposal_id=proposal.id,
            reviewer_id=fields.pop("reviewer_id", reviewer.id),
            due_date=due,
            **fields,
        )
        session.add(review)
        return review

    soon = _add(NOW + timedelta(days=1))
    late = _add(NOW - timedelta(hours=1))
    _add(NOW + timedelta(days=4))
    _add(NOW - timedelta(days=3), review_type="ai", reviewer_id=None)
    _add(NOW - timedelta(days=3), status="completed")
    reconciliation = _add(NOW + timedelta(days=2), review_type="reconciliation")
    await session.commit()

    result = await sweep_overdue_and_approaching(session, notifier=notifier, now=NOW)

    assert result.overdue_marked == 1
    assert result.reminders_sent == 2
    assert sorted(notifier.kinds()) == ["overdue_notice", "review_reminder", "review_reminder"]
    assert all(email == reviewer.email for _, email, _ in notifier.calls)
    assert notifier.calls[0][2]["proposal_title"] == proposal.title

    statuses = {
        r.id: r.status for r in await Review.objects.filter_by(proposal_id=proposal.id).all(session)
    }
    assert statuses[late.id] == "overdue"
    assert statuses[soon.id] == "in_progress"
    assert statuses[reconciliation.id] == "in_progress"
    audit = await AuditEntry.objects.filter_by(action="review.overdue").all(session)
    assert [a.target_id for a in audit] == [late.id]

    # Overdue reviews are not picked up again.
    notifier.calls.clear()
    again = await sweep_overdue_and_approaching(session, notifier=notifier, now=NOW)
    assert again.overdue_marked == 0


@pytest.mark.asyncio
async def test_save_review_progress_merges_partial_work(session, factory, workflow) -> None:
    proposal, assignment, pool, vet = await _assigned(factory, workflow, session)
    review_id = _review_of(assignment, vet.id)

    await workflow.save_review_progress(
        session,
        review_id,
        scores={"relevance": 8},
        comments={"relevance": "Timely"},
        acting_reviewer_id=vet.id,
    )
    review = await workflow.save_review_progress(
        session,
        review_id,
        scores={"clarity": 5.5},
        comments=None,
        acting_reviewer_id=vet.id,
    )

    assert review.scores == {"relevance": 8.0, "clarity": 5.5}
    assert review.comments == {"relevance": "Timely"}
    assert review.status == "in_progress"
    assert review.total_score == 0.0

    with pytest.raises(NotFoundError):
        await workflow.save_review_progress(
            session,
            review_id,
            scores={"clarity": 1},
            comments=None,
            acting_reviewer_id=pool[0].id,
        )
    with pytest.raises(ValidationError):
        await workflow.save_review_progress(
            session,
            review_id,
            scores={"clarity": 11},
            comments=None,
            acting_reviewer_id=vet.id,
        )


@pytest.mark.asyncio
async def test_save_review_progress_allowed_while_overdue(session, factory, workflow) -> None:
    proposal, assignment, _, vet = await _assigned(factory, workflow, session)
    review = await Review.objects.by_id(_review_of(assignment, vet.id)).first(session)
    review.status = "overdue"
    session.add(review)
    await session.commit()

    saved = await workflow.save_review_progress(
        session,
        review.id,
        scores={"methodology": 12},
        comments=None,
        acting_reviewer_id=vet.id,
    )
    assert saved.status == "overdue"
    assert saved.scores == {"methodology": 12.0}


@pytest.mark.asyncio
async def test_reviewer_statistics(session, factory, workflow, make_scores) -> None:
    submitter = await factory.user("Faculty of Agriculture", role="researcher")
    reviewer = await factory.user("Faculty of Life Sciences")
    proposal = await factory.proposal(submitter)
    far = datetime(2100, 1, 1)
    past = datetime(2000, 1, 1)
    for status, due in (
        ("completed", past),
        ("in_progress", far),
        ("in_progress", past),
        ("overdue", past),
    ):
        session.add(
            Review(proposal_id=proposal.id, reviewer_id=reviewer.id, status=status, due_date=due),
        )
    await session.commit()

    stats = await workflow.reviewer_statistics(session, reviewer.id)

    assert stats.reviewer_id == reviewer.id
    assert stats.total_assigned == 4
    assert stats.completed == 1
    assert stats.pending == 1
    assert stats.overdue == 2

    empty = await workflow.reviewer_statistics(session, uuid4())
    assert empty.total_assigned == 0


class _FakeJob:
    def __init__(self, job_id: str) -> None:
        self.id = job_id


class _FakeScheduler:
    instances: list[_FakeScheduler] = []

    def __init__(self, *, queue_name: str, connection: object) -> None:
        self.queue_name = queue_name
        self.cancelled: list[str] = []
        self.scheduled: list[dict[str, object]] = []
        self.jobs = [_FakeJob(deadlines.settings.review_sweep_schedule_id), _FakeJob("other")]
        _FakeScheduler.instances.append(self)

    def get_jobs(self) -> list[_FakeJob]:
        return self.jobs

    def cancel(self, job: _FakeJob) -> None:
        self.cancelled.append(job.id)

    def schedule(self, scheduled_time: datetime, **kwargs: object) -> None:
        self.scheduled.append(kwargs)


def test_bootstrap_review_sweep_schedule_replaces_existing_job(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _FakeScheduler.instances.clear()
    monkeypatch.setattr(deadlines, "Scheduler", _FakeScheduler)
    monkeypatch.setattr(deadlines.Redis, "from_url", staticmethod(lambda url: object()))

    deadlines.bootstrap_review_sweep_schedule(interval_seconds=3600)

    (scheduler,) = _FakeScheduler.instances
    assert scheduler.cancelled == [deadlines.settings.review_sweep_schedule_id]
    (job,) = scheduler.scheduled
    assert job["func"] is deadlines.run_review_sweep
    assert job["interval"] == 3600
    assert job["id"] == deadlines.settings.review_sweep_schedule_id
