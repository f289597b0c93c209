"""Model exports for SQLAlchemy/SQLModel metadata discovery."""

from grant_review.models.audit_entries import AuditEntry
from grant_review.models.awards import Award
from grant_review.models.faculties import Faculty
from grant_review.models.proposals import Proposal
from grant_review.models.reviews import Review
from grant_review.models.users import User

__all__ = [
    "AuditEntry",
    "Award",
    "Faculty",
    "Proposal",
    "Review",
    "User",
]
