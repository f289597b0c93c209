"""Public schema exports shared across API route modules."""

from grant_review.schemas.assignments import (
    AssignmentResult,
    CriterionSpread,
    DiscrepancyAnalysis,
    DiscrepancyResult,
    FinalizationResult,
    ReassignmentResult,
    ReassignPayload,
    ReviewerSummary,
    SubmissionResult,
    SweepResult,
)
from grant_review.schemas.errors import ErrorResponse
from grant_review.schemas.health import HealthStatusResponse
from grant_review.schemas.reviews import (
    SCORE_CRITERIA,
    PartialReviewScores,
    ReviewComments,
    ReviewerStatistics,
    ReviewProgress,
    ReviewRead,
    ReviewScores,
    ReviewSubmit,
)

__all__ = [
    "SCORE_CRITERIA",
    "AssignmentResult",
    "CriterionSpread",
    "DiscrepancyAnalysis",
    "DiscrepancyResult",
    "ErrorResponse",
    "FinalizationResult",
    "HealthStatusResponse",
    "PartialReviewScores",
    "ReassignPayload",
    "ReassignmentResult",
    "ReviewComments",
    "ReviewProgress",
    "ReviewRead",
    "ReviewScores",
    "ReviewSubmit",
    "ReviewerStatistics",
    "ReviewerSummary",
    "SubmissionResult",
    "SweepResult",
]
