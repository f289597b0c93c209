# ruff: noqa: INP001
"""Placeholder AI scorer and AI review dispatch tests."""

from __future__ import annotations

import random
from datetime import UTC, datetime
from uuid import uuid4

import pytest

from grant_review.models import Proposal
from grant_review.schemas.reviews import SCORE_CRITERIA, ReviewComments
from grant_review.services.ai_scoring import (
    BASELINE_SCORES,
    TASK_TYPE,
    PlaceholderAIScorer,
    decode_ai_review_task,
    dispatch_ai_review,
)
from grant_review.services.queue import QueuedTask
from grant_review.services.scoring import validate_comments, validate_scores


def _proposal() -> Proposal:
    return Proposal(submitter_id=uuid4(), title="Cassava yield")


@pytest.mark.parametrize("seed", [0, 1, 7, 42, 1234])
def test_placeholder_scores_stay_within_bounds(seed: int) -> None:
    result = PlaceholderAIScorer(rng=random.Random(seed)).generate_ai_review(_proposal())

    assert set(result.scores) == set(SCORE_CRITERIA)
    for criterion, score in result.scores.items():
        assert 1 <= score <= SCORE_CRITERIA[criterion]
        assert score == int(score)
    validate_scores(result.scores)
    assert result.total == sum(result.scores.values())


def test_placeholder_scores_vary_at_most_twenty_percent() -> None:
    scorer = PlaceholderAIScorer(rng=random.Random(3))
    for _ in range(20):
        scores = scorer.generate_ai_review(_proposal()).scores
        for criterion, baseline in BASELINE_SCORES.items():
            assert abs(scores[criterion] - baseline) <= round(baseline * 0.2) + 1


def test_explanations_cover_every_comment_field() -> None:
    result = PlaceholderAIScorer(rng=random.Random(9)).generate_ai_review(_proposal())

    assert set(result.explanations) == set(ReviewComments.model_fields)
    assert validate_comments(result.explanations) == result.explanations


def test_explanation_wording_follows_baseline() -> None:
    class _Fixed(random.Random):
        def uniform(self, a: float, b: float) -> float:
            return b

    high = PlaceholderAIScorer(rng=_Fixed()).generate_ai_review(_proposal())
    assert "strong alignment" in high.explanations["relevance"]

    class _Flat(random.Random):
        def uniform(self, a: float, b: float) -> float:
            return 0.0

    flat = PlaceholderAIScorer(rng=_Flat()).generate_ai_review(_proposal())
    assert flat.scores == {k: float(v) for k, v in BASELINE_SCORES.items()}
    assert "moderate alignment" in flat.explanations["relevance"]


def test_dispatch_ai_review_enqueues_task(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[QueuedTask] = []

    def _fake_enqueue(task: QueuedTask, queue_name: str, **_: object) -> bool:
        captured.append(task)
        return True

    monkeypatch.setattr("grant_review.services.ai_scoring.enqueue_task", _fake_enqueue)
    proposal_id, review_id = uuid4(), uuid4()

    assert dispatch_ai_review(proposal_id=proposal_id, review_id=review_id) is True
    assert captured[0].task_type == TASK_TYPE
    assert decode_ai_review_task(captured[0]) == (proposal_id, review_id)


def test_dispatch_ai_review_never_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(*_: object, **__: object) -> bool:
        raise RuntimeError("no redis")

    monkeypatch.setattr("grant_review.services.ai_scoring.enqueue_task", _boom)

    assert dispatch_ai_review(proposal_id=uuid4(), review_id=uuid4()) is False


def test_decode_ai_review_task_rejects_other_types() -> None:
    task = QueuedTask(task_type="review_notification", payload={}, created_at=datetime.now(UTC))

    with pytest.raises(ValueError):
        decode_ai_review_task(task)
