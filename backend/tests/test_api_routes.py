# ruff: noqa: INP001
"""HTTP-level tests for the proposal and review routers."""

from __future__ import annotations

from collections.abc import AsyncIterator
from uuid import uuid4

import pytest
import pytest_asyncio
from fastapi import APIRouter, FastAPI
from fastapi_pagination import add_pagination
from httpx import ASGITransport, AsyncClient

from grant_review.api.deps import REVIEWER_ID_HEADER, get_workflow
from grant_review.api.proposals import router as proposals_router
from grant_review.api.reviews import router as reviews_router
from grant_review.core.error_handling import install_error_handling
from grant_review.db.session import get_session


def _build_test_app(session, workflow) -> FastAPI:
    app = FastAPI()
    install_error_handling(app)
    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(proposals_router)
    api_v1.include_router(reviews_router)
    app.include_router(api_v1)
    add_pagination(app)

    async def _override_get_session() -> AsyncIterator:
        yield session

    app.dependency_overrides[get_session] = _override_get_session
    app.dependency_overrides[get_workflow] = lambda: workflow
    return app


@pytest_asyncio.fixture
async def client(session, workflow) -> AsyncIterator[AsyncClient]:
    app = _build_test_app(session, workflow)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as c:
        yield c


async def _proposal(factory):
    submitter = await factory.user("Faculty of Pharmacy", role="researcher")
    await factory.user("Faculty of Dentistry")
    await factory.user("Faculty of Basic Medical Sciences")
    return await factory.proposal(submitter)


@pytest.mark.asyncio
async def test_health_probes() -> None:
    from grant_review.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as c:
        for path in ("/health", "/healthz", "/readyz"):
            resp = await c.get(path)
            assert resp.status_code == 200
            assert resp.json() == {"ok": True}


@pytest.mark.asyncio
async def test_review_flow_over_http(client, factory, make_scores) -> None:
    proposal = await _proposal(factory)

    assigned = await client.post(f"/api/v1/proposals/{proposal.id}/assign-reviewers")
    assert assigned.status_code == 200
    body = assigned.json()
    assert body["submitter_faculty"] == "Faculty of Pharmacy"
    assert len(body["reviewers"]) == 2
    reviewer_id = body["reviewers"][0]["id"]
    review_id = body["review_ids"][0]
    headers = {REVIEWER_ID_HEADER: reviewer_id}

    mine = await client.get("/api/v1/reviews/me", headers=headers)
    assert mine.status_code == 200
    page = mine.json()
    assert page["total"] == 1
    assert page["limit"] == 50
    assert page["items"][0]["id"] == review_id
    assert page["items"][0]["status"] == "in_progress"

    progress = await client.patch(
        f"/api/v1/reviews/{review_id}/progress",
        json={"scores": {"relevance": 7}, "comments": {"strengths": "Clear aims"}},
        headers=headers,
    )
    assert progress.status_code == 200
    assert progress.json()["scores"] == {"relevance": 7.0}

    submitted = await client.post(
        f"/api/v1/reviews/{review_id}/submit",
        json={"scores": make_scores(68), "comments": {"overall": "Fund it"}},
        headers=headers,
    )
    assert submitted.status_code == 200
    result = submitted.json()
    assert result["stage"] == "awaiting_reviews"
    assert result["review"]["total_score"] == 68
    assert result["review"]["comments"] == {"strengths": "Clear aims", "overall": "Fund it"}

    again = await client.post(
        f"/api/v1/reviews/{review_id}/submit",
        json={"scores": make_scores(68)},
        headers=headers,
    )
    assert again.status_code == 409
    assert again.json()["code"] == "already_completed"

    stats = await client.get("/api/v1/reviews/me/statistics", headers=headers)
    assert stats.json()["completed"] == 1

    unfinished = await client.get(
        "/api/v1/reviews/me",
        params={"status": "in_progress"},
        headers=headers,
    )
    assert unfinished.json()["total"] == 0

    analysis = await client.get(f"/api/v1/proposals/{proposal.id}/discrepancy-analysis")
    assert analysis.status_code == 200
    assert analysis.json()["review_count"] == 1


@pytest.mark.asyncio
async def test_reviewer_header_is_required(client) -> None:
    missing = await client.get("/api/v1/reviews/me")
    assert missing.status_code == 401
    assert missing.json()["detail"] == f"Missing {REVIEWER_ID_HEADER} header"

    invalid = await client.get("/api/v1/reviews/me", headers={REVIEWER_ID_HEADER: "nobody"})
    assert invalid.status_code == 401


@pytest.mark.asyncio
async def test_engine_errors_map_to_http(client, factory, make_scores) -> None:
    proposal = await _proposal(factory)

    unknown = await client.post(f"/api/v1/proposals/{uuid4()}/assign-reviewers")
    assert unknown.status_code == 404
    assert unknown.json()["code"] == "not_found"

    assigned = (await client.post(f"/api/v1/proposals/{proposal.id}/assign-reviewers")).json()
    review_id = assigned["review_ids"][0]
    owner = assigned["reviewers"][0]["id"]

    early = await client.post(f"/api/v1/proposals/{proposal.id}/discrepancy-check")
    assert early.status_code == 409
    assert early.json()["code"] == "invalid_state"

    bad_scores = make_scores(50)
    bad_scores["methodology"] = 20
    invalid = await client.post(
        f"/api/v1/reviews/{review_id}/submit",
        json={"scores": bad_scores},
        headers={REVIEWER_ID_HEADER: owner},
    )
    assert invalid.status_code == 422
    assert invalid.json()["code"] == "validation_error"

    stranger = await client.post(
        f"/api/v1/reviews/{review_id}/submit",
        json={"scores": make_scores(50)},
        headers={REVIEWER_ID_HEADER: str(uuid4())},
    )
    assert stranger.status_code == 404

    not_revising = await client.post(f"/api/v1/proposals/{proposal.id}/reconciliation/reassign")
    assert not_revising.status_code == 409
    assert not_revising.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_blocked_assignment_reports_cluster(client, factory) -> None:
    submitter = await factory.user("Faculty of Engineering", role="researcher")
    proposal = await factory.proposal(submitter)

    resp = await client.post(f"/api/v1/proposals/{proposal.id}/assign-reviewers")

    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "insufficient_reviewers"
    assert body["detail"]["canonical_faculty"] == "Faculty of Engineering"
    assert body["detail"]["peer_faculties"] == [
        "Faculty of Environmental Sciences",
        "Faculty of Physical Sciences",
    ]


@pytest.mark.asyncio
async def test_sweep_endpoint_and_pagination_bounds(client) -> None:
    sweep = await client.post("/api/v1/reviews/sweep")
    assert sweep.status_code == 200
    assert sweep.json() == {"reminders_sent": 0, "overdue_marked": 0}

    too_big = await client.get(
        "/api/v1/reviews/me",
        params={"limit": 500},
        headers={REVIEWER_ID_HEADER: str(uuid4())},
    )
    assert too_big.status_code == 422
