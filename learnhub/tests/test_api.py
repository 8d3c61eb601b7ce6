"""Tests for HTTP API routes."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from learnhub.ai import AIRecommendationEngine, ContentAnalysisService, UserProfileAnalysisService
from learnhub.core.contracts import ContentAnalysis, RecommendationCandidate
from learnhub.jobs.debounce import InterestUpdateScheduler
from learnhub.llm import LLMDisabledError
from learnhub.main import (
    app,
    get_content_service,
    get_profile_service,
    get_recommendation_engine,
    get_sessions,
)
from learnhub.storage import (
    ActivitiesRepo,
    AnalysisRepo,
    EmbeddingsRepo,
    FeedbackRepo,
    RecsRepo,
    UsersRepo,
)

EMBEDDING_MODEL = "text-embedding-3-small"
ADMIN_HEADERS = {"Authorization": "Bearer test-admin-token"}


@pytest.fixture
def update_scheduler():
    return MagicMock(spec=InterestUpdateScheduler)


@pytest.fixture
async def client(llm, session_factory, update_scheduler):
    engine = AIRecommendationEngine(llm=llm, session_factory=session_factory)
    profile_service = UserProfileAnalysisService(
        llm=llm, session_factory=session_factory, update_scheduler=update_scheduler
    )
    content_service = ContentAnalysisService(llm=llm, session_factory=session_factory)

    app.dependency_overrides[get_sessions] = lambda: session_factory
    app.dependency_overrides[get_recommendation_engine] = lambda: engine
    app.dependency_overrides[get_profile_service] = lambda: profile_service
    app.dependency_overrides[get_content_service] = lambda: content_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def auth_headers(session):
    token = await UsersRepo(session).create_session("u1")
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.anyio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.anyio
async def test_user_routes_require_session(client):
    assert (await client.post("/api/ai/recommend", json={})).status_code == 401
    response = await client.get(
        "/api/ai/activity", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


@pytest.mark.anyio
async def test_recommend_returns_and_records(client, auth_headers, llm, session):
    embeddings_repo = EmbeddingsRepo(session)
    await embeddings_repo.upsert_embedding(
        "resource", "r1", [1.0, 0.0, 0.0], EMBEDDING_MODEL, {"title": "Linear algebra"}
    )
    await embeddings_repo.upsert_embedding("learning_path", "p1", [0.0, 1.0, 0.0], EMBEDDING_MODEL)
    llm.complete.return_value = json.dumps(
        {"reasons": [{"id": "r1", "reason": "Matches your math focus"}]}
    )

    response = await client.post(
        "/api/ai/recommend", json={"type": "mixed", "limit": 50}, headers=auth_headers
    )

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    by_id = {r["id"]: r for r in body["recommendations"]}
    assert by_id["r1"]["reason"] == "Matches your math focus"
    assert by_id["r1"]["title"] == "Linear algebra"
    assert by_id["p1"]["reason"] == "Recommended based on your interests"
    assert await RecsRepo(session).count_user_recs("u1") == 2


@pytest.mark.anyio
async def test_recommend_rejects_unknown_type(client, auth_headers):
    response = await client.post(
        "/api/ai/recommend", json={"type": "podcast"}, headers=auth_headers
    )

    assert response.status_code == 400


@pytest.mark.anyio
async def test_recommend_llm_disabled(client, auth_headers, llm):
    llm.create_embedding.side_effect = LLMDisabledError("LLM is disabled")
    await _track_view(client, auth_headers)

    response = await client.post("/api/ai/recommend", json={}, headers=auth_headers)

    assert response.status_code == 503


async def _track_view(client, auth_headers):
    response = await client.post(
        "/api/ai/activity",
        json={
            "type": "view",
            "contentId": "r1",
            "contentType": "resource",
            "metadata": {"category": "ml"},
        },
        headers=auth_headers,
    )
    assert response.status_code == 200


@pytest.mark.anyio
async def test_feedback_save_marks_clicked(client, auth_headers, session):
    recs_repo = RecsRepo(session)
    rec_id = await recs_repo.upsert_recommendation(
        "u1", RecommendationCandidate(item_id="r1", type="resource", score=0.8)
    )

    response = await client.put(
        "/api/ai/recommend",
        json={"recommendationId": rec_id, "feedbackType": "save", "feedbackText": "nice"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    rec = await recs_repo.get_rec(rec_id)
    await session.refresh(rec)
    assert rec.is_clicked is True
    assert await FeedbackRepo(session).get_type_stats(rec_id) == {"save": 1}


@pytest.mark.anyio
async def test_feedback_validation(client, auth_headers, session):
    other_rec = await RecsRepo(session).upsert_recommendation(
        "someone-else", RecommendationCandidate(item_id="r1", type="resource", score=0.8)
    )

    response = await client.put(
        "/api/ai/recommend",
        json={"recommendationId": other_rec, "feedbackType": "love"},
        headers=auth_headers,
    )
    assert response.status_code == 400

    response = await client.put(
        "/api/ai/recommend",
        json={"recommendationId": other_rec, "feedbackType": "helpful"},
        headers=auth_headers,
    )
    assert response.status_code == 404

    response = await client.put(
        "/api/ai/recommend", json={"feedbackType": "helpful"}, headers=auth_headers
    )
    assert response.status_code == 400
    assert "error" in response.json()


@pytest.mark.anyio
async def test_track_activity(client, auth_headers, update_scheduler, session):
    await _track_view(client, auth_headers)

    update_scheduler.schedule.assert_called_once_with("u1")
    activities = await ActivitiesRepo(session).list_recent("u1")
    assert activities[0].metadata == {"category": "ml"}


@pytest.mark.anyio
async def test_track_activity_validation(client, auth_headers):
    bad_type = {"type": "stare", "contentId": "r1", "contentType": "resource"}
    bad_content_type = {"type": "view", "contentId": "r1", "contentType": "podcast"}
    missing_id = {"type": "view", "contentType": "resource"}

    for body in (bad_type, bad_content_type, missing_id):
        response = await client.post("/api/ai/activity", json=body, headers=auth_headers)
        assert response.status_code == 400


@pytest.mark.anyio
async def test_interests_without_activities(client, auth_headers, llm):
    response = await client.get("/api/ai/activity", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"interests": None, "message": "No activities found to analyze"}
    llm.complete.assert_not_awaited()


@pytest.mark.anyio
async def test_interests_cached_after_analysis(client, auth_headers, llm):
    await _track_view(client, auth_headers)
    llm.complete.return_value = json.dumps({"primaryInterests": ["ml"]})

    first = await client.get("/api/ai/activity", headers=auth_headers)
    second = await client.get("/api/ai/activity", headers=auth_headers)
    forced = await client.get("/api/ai/activity?forceUpdate=true", headers=auth_headers)

    assert first.json()["cached"] is False
    assert first.json()["interests"]["primary"] == ["ml"]
    assert second.json()["cached"] is True
    assert forced.json()["cached"] is False
    assert llm.complete.await_count == 2


@pytest.mark.anyio
async def test_analyze_unknown_content(client, auth_headers):
    response = await client.post(
        "/api/ai/analyze", json={"contentId": "missing"}, headers=auth_headers
    )

    assert response.status_code == 404


@pytest.mark.anyio
async def test_embeddings_route(client, auth_headers, session):
    response = await client.post(
        "/api/ai/embeddings",
        json={"contentId": "r1", "contentType": "resource", "text": "Matrix calculus"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["embeddingModel"] == EMBEDDING_MODEL
    assert response.json()["dimensions"] == 3
    assert await EmbeddingsRepo(session).get_embedding("resource", "r1") is not None

    response = await client.post(
        "/api/ai/embeddings",
        json={"contentId": "e1", "contentType": "event", "text": "Meetup"},
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.anyio
async def test_admin_prune_requires_token(client):
    response = await client.post("/admin/recommendations/prune")
    assert response.status_code == 401

    response = await client.post(
        "/admin/recommendations/prune", headers={"Authorization": "Bearer wrong"}
    )
    assert response.status_code == 403


@pytest.mark.anyio
async def test_admin_prune_runs_job(client):
    run_prune = AsyncMock(return_value={"deleted": 3, "retention_days": 90})

    with patch("learnhub.jobs.run_prune_recommendations", run_prune):
        response = await client.post("/admin/recommendations/prune", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"ok": True, "deleted": 3, "retention_days": 90}
    run_prune.assert_awaited_once()


@pytest.mark.anyio
async def test_admin_jobs_lists_schedule(client):
    jobs = [{"id": "prune_recommendations", "name": "Recommendation retention prune",
             "trigger": "cron[hour='4', minute='0']", "next_run_time": None}]

    with patch("learnhub.main.describe_jobs", return_value=jobs):
        response = await client.get("/admin/jobs", headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"jobs": jobs, "count": 1}


@pytest.mark.anyio
async def test_similar_content_with_stale_embedding_model(client, auth_headers, session):
    await AnalysisRepo(session).upsert_analysis(
        "r1",
        ContentAnalysis(
            topics=[],
            target_audience="general",
            difficulty_level="beginner",
            key_takeaways=[],
            summary="",
            embedding=[1.0, 0.0, 0.0],
            embedding_model="text-embedding-ada-002",
        ),
        content_type="resource",
    )

    response = await client.get(
        "/api/ai/analyze", params={"contentId": "r1"}, headers=auth_headers
    )

    assert response.status_code == 409
