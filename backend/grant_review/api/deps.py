"""Shared FastAPI dependencies for review routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import Header, HTTPException, status

from grant_review.services.review_workflow import ReviewWorkflow, get_review_workflow

REVIEWER_ID_HEADER = "X-Reviewer-Id"


def get_acting_reviewer_id(
    x_reviewer_id: str | None = Header(default=None, alias=REVIEWER_ID_HEADER),
) -> UUID:
    """Acting reviewer identity as forwarded by the authenticating gateway."""
    if not x_reviewer_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {REVIEWER_ID_HEADER} header",
        )
    try:
        return UUID(x_reviewer_id.strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid {REVIEWER_ID_HEADER} header",
        ) from exc


def get_optional_actor_id(
    x_reviewer_id: str | None = Header(default=None, alias=REVIEWER_ID_HEADER),
) -> UUID | None:
    if not x_reviewer_id:
        return None
    try:
        return UUID(x_reviewer_id.strip())
    except ValueError:
        return None


def get_workflow() -> ReviewWorkflow:
    return get_review_workflow()
