"""Tests for scheduled jobs."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import update

from learnhub.core.contracts import RecommendationCandidate
from learnhub.jobs import scheduler as scheduler_module
from learnhub.jobs import run_analyze_pending_content, run_prune_recommendations
from learnhub.llm import AIServiceError, ModerationResult
from learnhub.storage import AnalysisRepo, ContentRepo, RecsRepo
from learnhub.storage.models import AIRecommendation, ContentItem

ANALYSIS_RESPONSE = json.dumps({"topics": ["ml"], "difficultyLevel": "beginner"})


@pytest.fixture
def fresh_scheduler(monkeypatch):
    monkeypatch.setattr(scheduler_module, "_scheduler", None)
    yield scheduler_module.get_scheduler()
    monkeypatch.setattr(scheduler_module, "_scheduler", None)


@pytest.mark.anyio
async def test_prune_job_uses_retention_window(session_factory, session):
    recs_repo = RecsRepo(session)
    old = await recs_repo.upsert_recommendation(
        "u1", RecommendationCandidate(item_id="r1", type="resource", score=0.5)
    )
    recent = await recs_repo.upsert_recommendation(
        "u1", RecommendationCandidate(item_id="r2", type="resource", score=0.5)
    )
    await session.execute(
        update(AIRecommendation)
        .where(AIRecommendation.rec_id == old)
        .values(updated_at=datetime.now(timezone.utc) - timedelta(days=10))
    )
    await session.commit()

    with patch("learnhub.storage.get_session_factory", return_value=session_factory):
        result = await run_prune_recommendations(days=7)

    assert result == {"deleted": 1, "retention_days": 7}
    assert await recs_repo.get_rec(recent) is not None


@pytest.mark.anyio
async def test_analyze_job_processes_unanalyzed_content(session_factory, session, llm):
    content_repo = ContentRepo(session)
    await content_repo.upsert_content("r1", "resource", "Transformers", "a1", body="Attention")
    await content_repo.upsert_content("r2", "resource", "RNNs", "a1", body="Recurrence")
    llm.close = AsyncMock()

    with (
        patch("learnhub.storage.get_session_factory", return_value=session_factory),
        patch("learnhub.ai.content_analysis.LLMClient", return_value=llm),
    ):
        result = await run_analyze_pending_content()

    assert result == {"candidates": 2, "analyzed": 2, "skipped": False}
    assert await AnalysisRepo(session).get_analysis("r1") is not None
    llm.close.assert_awaited_once()

    with patch("learnhub.storage.get_session_factory", return_value=session_factory):
        result = await run_analyze_pending_content()

    assert result == {"candidates": 0, "analyzed": 0, "skipped": False}


@pytest.mark.anyio
async def test_analyze_job_is_not_blocked_by_failing_content(session_factory, session, llm):
    content_repo = ContentRepo(session)
    await content_repo.upsert_content("bad", "resource", "Broken", "a1", body="x")
    await content_repo.upsert_content("good", "resource", "Working", "a1", body="y")
    await session.execute(
        update(ContentItem)
        .where(ContentItem.content_id == "bad")
        .values(created_at=datetime.now(timezone.utc) - timedelta(days=1))
    )
    await session.commit()

    def moderate(text):
        if text.startswith("Broken"):
            raise AIServiceError("TestService", "moderateContent")
        return ModerationResult(flagged=False)

    llm.moderate_content.side_effect = moderate
    llm.complete.side_effect = lambda prompt, **kwargs: (
        ANALYSIS_RESPONSE if kwargs.get("response_format") == "json" else "summary"
    )
    llm.close = AsyncMock()

    with (
        patch("learnhub.storage.get_session_factory", return_value=session_factory),
        patch("learnhub.ai.content_analysis.LLMClient", return_value=llm),
    ):
        results = [await run_analyze_pending_content(limit=1) for _ in range(3)]

    assert results == [
        {"candidates": 1, "analyzed": 0, "skipped": False},
        {"candidates": 1, "analyzed": 1, "skipped": False},
        {"candidates": 0, "analyzed": 0, "skipped": False},
    ]
    assert await AnalysisRepo(session).get_analysis("good") is not None
    assert (await AnalysisRepo(session).get_failure("bad")).attempts == 1


def test_prune_job_scheduled_daily(fresh_scheduler):
    job_id = scheduler_module.setup_prune_recommendations_job()

    job = fresh_scheduler.get_job(job_id)
    assert job is not None
    assert "hour='4'" in str(job.trigger)


def test_analyze_job_respects_toggle(fresh_scheduler):
    # CONTENT_ANALYSIS_JOB_ENABLED=false in the test environment
    assert scheduler_module.setup_analyze_content_job() is None
    assert fresh_scheduler.get_job(scheduler_module.ANALYZE_CONTENT_JOB_ID) is None


def test_describe_jobs(fresh_scheduler):
    scheduler_module.setup_prune_recommendations_job()

    jobs = scheduler_module.describe_jobs()

    assert [job["id"] for job in jobs] == [scheduler_module.PRUNE_RECOMMENDATIONS_JOB_ID]
    assert jobs[0]["name"] == "Recommendation retention prune"
