"""Structured error payload schema used by API responses."""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel


class ErrorResponse(SQLModel):
    """Error envelope rendered by the installed exception handlers."""

    detail: str | dict[str, object] | list[object] = Field(
        description=(
            "Error payload. Review-engine errors carry a `message` plus context such as "
            "the faculty and peer cluster that were attempted."
        ),
        examples=[
            "Not Found",
            {"message": "No eligible reviewers found", "peer_faculties": ["Faculty of Arts"]},
        ],
    )
    code: str | None = Field(
        default=None,
        description="Machine-readable review-engine error code.",
        examples=["insufficient_reviewers", "already_completed"],
    )
    request_id: str | None = Field(
        default=None,
        description="Request correlation identifier injected by middleware.",
    )
