"""Typed failures raised by the review engine.

Every error carries a machine-readable ``code``, the HTTP status the API layer
should answer with, and a ``detail`` mapping with actionable context (for
blocked assignments: the faculty and cluster that were attempted).
"""

from __future__ import annotations

from typing import Any, ClassVar


class ReviewEngineError(Exception):
    """Base class for review-engine failures surfaced to callers."""

    code: ClassVar[str] = "review_engine_error"
    status_code: ClassVar[int] = 400

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail: dict[str, Any] = detail

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"message": self.message}
        payload.update(self.detail)
        return payload


class NotFoundError(ReviewEngineError):
    code = "not_found"
    status_code = 404


class ValidationError(ReviewEngineError):
    code = "validation_error"
    status_code = 422


class UnresolvedFacultyError(ReviewEngineError):
    """Free-text faculty name did not match any canonical faculty."""

    code = "unresolved_faculty"
    status_code = 422


class NoEligibleFacultyError(ReviewEngineError):
    code = "no_eligible_faculty"
    status_code = 409


class InsufficientReviewersError(ReviewEngineError):
    code = "insufficient_reviewers"
    status_code = 409


class NoReconciliationReviewerError(ReviewEngineError):
    code = "no_reconciliation_reviewer"
    status_code = 409


class AlreadyCompletedError(ReviewEngineError):
    code = "already_completed"
    status_code = 409


class InvalidStateError(ReviewEngineError):
    code = "invalid_state"
    status_code = 409
