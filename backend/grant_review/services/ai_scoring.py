"""AI scoring collaborator and its background-queue dispatch.

`PlaceholderAIScorer` does not read the proposal: it perturbs fixed baseline
scores and fills templated explanations. Anything implementing `AIScorer` can
replace it without touching the review engines.
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

from grant_review.core.config import settings
from grant_review.core.logging import get_logger
from grant_review.schemas.reviews import SCORE_CRITERIA
from grant_review.services.queue import QueuedTask, enqueue_task, new_task
from grant_review.services.queue import requeue_if_failed as generic_requeue_if_failed

if TYPE_CHECKING:
    from grant_review.models.proposals import Proposal

logger = get_logger(__name__)
TASK_TYPE = "ai_review"

BASELINE_SCORES: Mapping[str, int] = MappingProxyType(
    {
        "relevance": 7,
        "originality": 12,
        "clarity": 8,
        "methodology": 12,
        "literature_review": 8,
        "team_composition": 8,
        "feasibility_and_timeline": 7,
        "budget_justification": 7,
        "expected_outcomes": 4,
        "sustainability_and_scalability": 4,
    },
)
VARIATION = 0.2


@dataclass(frozen=True)
class AIReviewResult:
    scores: dict[str, float]
    explanations: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> float:
        return float(sum(self.scores.values()))


class AIScorer(Protocol):
    def generate_ai_review(self, proposal: Proposal) -> AIReviewResult: ...


class AIDispatcher(Protocol):
    def __call__(self, *, proposal_id: UUID, review_id: UUID) -> bool: ...


def _explanations(scores: Mapping[str, float]) -> dict[str, str]:
    def above(criterion: str) -> bool:
        return scores[criterion] > BASELINE_SCORES[criterion]

    return {
        "relevance": (
            f"The proposal demonstrates {'strong' if above('relevance') else 'moderate'} "
            "alignment with national priorities."
        ),
        "originality": (
            f"The research concept shows {'excellent' if above('originality') else 'good'} "
            "innovation potential."
        ),
        "clarity": (
            f"Research problem is {'very clearly' if above('clarity') else 'adequately'} defined."
        ),
        "methodology": (
            f"Proposed methods are {'highly appropriate' if above('methodology') else 'suitable'} "
            "for addressing the research questions."
        ),
        "literature_review": (
            "The literature review is "
            f"{'comprehensive' if above('literature_review') else 'adequate'}."
        ),
        "team_composition": (
            f"Research team has {'excellent' if above('team_composition') else 'appropriate'} "
            "qualifications for the project."
        ),
        "feasibility_and_timeline": (
            "Project timeline is "
            f"{'realistic' if above('feasibility_and_timeline') else 'somewhat ambitious'}."
        ),
        "budget_justification": (
            "Budget allocation is "
            f"{'well justified' if above('budget_justification') else 'reasonably aligned'} "
            "with project goals."
        ),
        "expected_outcomes": (
            "Anticipated outcomes "
            f"{'strongly contribute' if above('expected_outcomes') else 'contribute'} "
            "to the field."
        ),
        "sustainability_and_scalability": (
            "Project has "
            f"{'significant' if above('sustainability_and_scalability') else 'some'} "
            "potential for long-term impact."
        ),
        "strengths": (
            "The proposal demonstrates good alignment with research priorities and "
            "presents a clear methodology."
        ),
        "weaknesses": (
            "Some aspects of the budget justification and timeline could be strengthened "
            "for better feasibility."
        ),
        "overall": (
            "This is a solid research proposal with good potential for impact in its field."
        ),
    }


class PlaceholderAIScorer:
    """Baselines varied by up to ±20%, rounded and clamped to [1, criterion max]."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def generate_ai_review(self, proposal: Proposal) -> AIReviewResult:
        scores: dict[str, float] = {}
        for criterion, baseline in BASELINE_SCORES.items():
            varied = round(baseline * (1 + self._rng.uniform(-VARIATION, VARIATION)))
            scores[criterion] = float(min(max(varied, 1), SCORE_CRITERIA[criterion]))
        logger.debug("ai_scoring.generated", extra={"proposal_id": str(proposal.id)})
        return AIReviewResult(scores=scores, explanations=_explanations(scores))


def dispatch_ai_review(*, proposal_id: UUID, review_id: UUID) -> bool:
    """Queue AI scoring for a proposal; never raises."""
    try:
        return enqueue_task(
            new_task(TASK_TYPE, {"proposal_id": str(proposal_id), "review_id": str(review_id)}),
            settings.rq_queue_name,
            redis_url=settings.rq_redis_url,
        )
    except Exception:
        logger.warning(
            "ai_scoring.dispatch_failed",
            extra={"proposal_id": str(proposal_id), "review_id": str(review_id)},
            exc_info=True,
        )
        return False


def decode_ai_review_task(task: QueuedTask) -> tuple[UUID, UUID]:
    """Return `(proposal_id, review_id)` from an `ai_review` task."""
    if task.task_type != TASK_TYPE:
        raise ValueError(f"Unexpected task_type={task.task_type!r}; expected {TASK_TYPE!r}")
    p: dict[str, Any] = task.payload
    return UUID(p["proposal_id"]), UUID(p["review_id"])


def requeue_ai_review_task(task: QueuedTask, *, delay_seconds: float = 0) -> bool:
    return generic_requeue_if_failed(
        task,
        settings.rq_queue_name,
        max_retries=settings.rq_dispatch_max_retries,
        redis_url=settings.rq_redis_url,
        delay_seconds=delay_seconds,
    )
