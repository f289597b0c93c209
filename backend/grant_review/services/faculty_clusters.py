"""Faculty peer clusters and free-text faculty name resolution.

Faculties are partitioned into five disjoint clusters of academically related
departments. A proposal is reviewed by reviewers from the *other* faculties of
its submitter's cluster, never from the submitter's own faculty.

Stored faculty titles are free text ("Faculty of Law (LAW)", "medicine"), so
every lookup first resolves the title to a canonical name through an ordered
keyword table. This module is the only place that knows the cluster layout.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING

from grant_review.core.errors import UnresolvedFacultyError
from grant_review.core.logging import get_logger
from grant_review.models.faculties import Faculty

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)

CLUSTERS: tuple[frozenset[str], ...] = (
    frozenset(
        {
            "Faculty of Agriculture",
            "Faculty of Life Sciences",
            "Faculty of Veterinary Medicine",
        },
    ),
    frozenset(
        {
            "Faculty of Pharmacy",
            "Faculty of Dentistry",
            "Faculty of Medicine",
            "Faculty of Basic Medical Sciences",
        },
    ),
    frozenset(
        {
            "Faculty of Management Sciences",
            "Faculty of Education",
            "Faculty of Social Sciences",
            "Faculty of Vocational Education",
        },
    ),
    frozenset(
        {
            "Faculty of Law",
            "Faculty of Arts",
            "Institute of Education",
        },
    ),
    frozenset(
        {
            "Faculty of Engineering",
            "Faculty of Physical Sciences",
            "Faculty of Environmental Sciences",
        },
    ),
)

# Ordered (keyword, canonical title) pairs; first substring match wins, so
# keywords that contain a shorter keyword must come before it.
_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("veterinary medicine", "Faculty of Veterinary Medicine"),
    ("basic medical sciences", "Faculty of Basic Medical Sciences"),
    ("vocational education", "Faculty of Vocational Education"),
    ("institute of education", "Institute of Education"),
    ("agriculture", "Faculty of Agriculture"),
    ("life sciences", "Faculty of Life Sciences"),
    ("pharmacy", "Faculty of Pharmacy"),
    ("dentistry", "Faculty of Dentistry"),
    ("medicine", "Faculty of Medicine"),
    ("management sciences", "Faculty of Management Sciences"),
    ("social sciences", "Faculty of Social Sciences"),
    ("education", "Faculty of Education"),
    ("law", "Faculty of Law"),
    ("arts", "Faculty of Arts"),
    ("engineering", "Faculty of Engineering"),
    ("physical sciences", "Faculty of Physical Sciences"),
    ("environmental sciences", "Faculty of Environmental Sciences"),
)

_CLUSTER_BY_TITLE: Mapping[str, frozenset[str]] = MappingProxyType(
    {title: cluster for cluster in CLUSTERS for title in cluster},
)


def _normalize(faculty_title: str) -> str:
    return faculty_title.split("(", 1)[0].strip().lower()


def canonical_faculties() -> tuple[str, ...]:
    """All canonical faculty titles, sorted."""
    return tuple(sorted(_CLUSTER_BY_TITLE))


def resolve_faculty(faculty_title: str) -> str:
    """Map a free-text faculty title to its canonical title.

    Raises `UnresolvedFacultyError` when no keyword matches.
    """
    normalized = _normalize(faculty_title or "")
    if normalized:
        for keyword, canonical in _KEYWORDS:
            if keyword in normalized:
                return canonical
    raise UnresolvedFacultyError(
        "Faculty could not be matched to a known faculty",
        faculty=faculty_title,
    )


def cluster_of(faculty_title: str) -> frozenset[str]:
    """Every canonical faculty in the same cluster, including the faculty itself."""
    return _CLUSTER_BY_TITLE[resolve_faculty(faculty_title)]


def peer_faculties(faculty_title: str) -> frozenset[str]:
    """Canonical titles of faculties eligible to review work from `faculty_title`."""
    canonical = resolve_faculty(faculty_title)
    return _CLUSTER_BY_TITLE[canonical] - {canonical}


def same_cluster(first: str, second: str) -> bool:
    return cluster_of(first) == cluster_of(second)


def try_resolve_faculty(faculty_title: str | None) -> str | None:
    """Like `resolve_faculty` but returns None for missing or unknown titles."""
    if not faculty_title:
        return None
    try:
        return resolve_faculty(faculty_title)
    except UnresolvedFacultyError:
        return None


async def seed_faculties(session: AsyncSession) -> list[Faculty]:
    """Insert canonical faculty rows that are missing; returns the new rows."""
    existing = await Faculty.objects.all().all(session)
    known = {try_resolve_faculty(faculty.title) for faculty in existing}
    created: list[Faculty] = []
    for title in canonical_faculties():
        if title in known:
            continue
        faculty = Faculty(title=title)
        session.add(faculty)
        created.append(faculty)
    if created:
        await session.commit()
        logger.info("faculty.seed.created", extra={"count": len(created)})
    return created
