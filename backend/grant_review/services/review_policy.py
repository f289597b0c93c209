"""Tunable review-policy numbers shared by the review engines."""

from __future__ import annotations

from dataclasses import dataclass

from grant_review.core.config import Settings, settings


@dataclass(frozen=True)
class ReviewPolicy:
    reviewers_per_proposal: int = 2
    review_due_business_days: int = 5
    reminder_window_days: int = 2
    discrepancy_ratio: float = 0.2
    reconciliation_weight: float = 0.6

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> ReviewPolicy:
        source = source or settings
        return cls(
            reviewers_per_proposal=source.reviewers_per_proposal,
            review_due_business_days=source.review_due_business_days,
            reminder_window_days=source.reminder_window_days,
            discrepancy_ratio=source.discrepancy_ratio,
            reconciliation_weight=source.reconciliation_weight,
        )


DEFAULT_POLICY = ReviewPolicy()
