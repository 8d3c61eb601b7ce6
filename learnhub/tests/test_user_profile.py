"""Tests for user interest profiling and debounced recomputation."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from learnhub.ai.user_profile import UserProfileAnalysisService
from learnhub.core.contracts import UserActivity
from learnhub.jobs.debounce import InterestUpdateScheduler
from learnhub.llm import ModelOutputError
from learnhub.storage import ActivitiesRepo, InterestsRepo


def _activity(user_id="u1", content_id="r1", minutes_ago=0, **metadata) -> UserActivity:
    return UserActivity(
        user_id=user_id,
        type="view",
        content_id=content_id,
        content_type="resource",
        timestamp=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
        duration=120,
        metadata=metadata,
    )


@pytest.fixture
def update_scheduler():
    return MagicMock(spec=InterestUpdateScheduler)


@pytest.fixture
def service(llm, session_factory, update_scheduler):
    return UserProfileAnalysisService(
        llm=llm,
        session_factory=session_factory,
        update_scheduler=update_scheduler,
    )


@pytest.fixture
async def running_scheduler():
    scheduler = AsyncIOScheduler()
    scheduler.start()
    yield scheduler
    scheduler.shutdown(wait=False)


@pytest.mark.anyio
async def test_analyze_user_interests_persists_snapshot(service, llm, session):
    llm.complete.return_value = json.dumps({
        "primaryInterests": ["machine learning", "python"],
        "secondaryInterests": ["statistics"],
        "skills": {"python": "advanced"},
        "contentTypes": ["resource"],
        "formats": ["video"],
        "lengthPreference": "short",
        "learningGoals": ["ship a model"],
    })

    interests = await service.analyze_user_interests("u1", [_activity(category="ml")])

    assert interests.primary == ["machine learning", "python"]
    assert interests.skills == {"python": "advanced"}
    assert interests.content_preferences.length_preference == "short"

    stored = await InterestsRepo(session).get_interests("u1")
    assert stored.primary == ["machine learning", "python"]
    assert stored.learning_goals == ["ship a model"]


@pytest.mark.anyio
async def test_analyze_user_interests_defaults(service, llm):
    llm.complete.return_value = json.dumps({"lengthPreference": "epic"})

    interests = await service.analyze_user_interests("u1", [_activity()])

    assert interests.primary == []
    assert interests.content_preferences.types == ["post", "resource"]
    assert interests.content_preferences.length_preference == "medium"


@pytest.mark.anyio
async def test_analyze_user_interests_rejects_non_json(service, llm, session):
    llm.complete.return_value = "The user likes Python."

    with pytest.raises(ModelOutputError):
        await service.analyze_user_interests("u1", [_activity()])

    assert await InterestsRepo(session).get_interests("u1") is None


@pytest.mark.anyio
async def test_track_user_activity_records_and_schedules(service, update_scheduler, session):
    await service.track_user_activity(_activity(content_id="r7"))

    activities = await ActivitiesRepo(session).list_recent("u1")
    assert [a.content_id for a in activities] == ["r7"]
    update_scheduler.schedule.assert_called_once_with("u1")


@pytest.mark.anyio
async def test_track_user_activity_propagates_store_errors(llm, update_scheduler):
    failing_factory = MagicMock(side_effect=RuntimeError("database is locked"))
    service = UserProfileAnalysisService(
        llm=llm,
        session_factory=failing_factory,
        update_scheduler=update_scheduler,
    )

    with pytest.raises(RuntimeError):
        await service.track_user_activity(_activity())

    update_scheduler.schedule.assert_not_called()


@pytest.mark.anyio
async def test_recompute_without_activities_returns_none(service, llm):
    assert await service.recompute_user_interests("u1") is None
    llm.complete.assert_not_awaited()


@pytest.mark.anyio
async def test_recompute_uses_recent_activities(service, llm, session):
    repo = ActivitiesRepo(session)
    for i in range(3):
        await repo.add_activity(_activity(content_id=f"r{i}", minutes_ago=i))
    llm.complete.return_value = json.dumps({"primaryInterests": ["sql"]})

    interests = await service.recompute_user_interests("u1")

    assert interests.primary == ["sql"]
    prompt = llm.complete.await_args.args[0]
    assert '"totalActivities": 3' in prompt


@pytest.mark.anyio
async def test_analyze_user_segment(service, llm, session):
    await ActivitiesRepo(session).add_activity(_activity())
    llm.complete.return_value = json.dumps({
        "segment": "Active Learner",
        "characteristics": ["reads daily"],
        "recommendations": ["suggest paths"],
    })

    segment = await service.analyze_user_segment("u1")

    assert segment.segment == "Active Learner"
    assert segment.characteristics == ["reads daily"]

    llm.complete.return_value = "{}"
    assert (await service.analyze_user_segment("u1")).segment == "general"


@pytest.mark.anyio
async def test_debounce_coalesces_burst_into_one_update(running_scheduler):
    callback = AsyncMock()
    updater = InterestUpdateScheduler(
        callback, delay_seconds=0.2, max_pending=10, scheduler=running_scheduler
    )

    updater.schedule("u1")
    await asyncio.sleep(0.05)
    updater.schedule("u1")
    assert updater.pending_count == 1

    await asyncio.sleep(0.8)

    callback.assert_awaited_once_with("u1")
    assert not updater.is_pending("u1")


@pytest.mark.anyio
async def test_debounce_evicts_least_recently_scheduled(running_scheduler):
    updater = InterestUpdateScheduler(
        AsyncMock(), delay_seconds=60, max_pending=2, scheduler=running_scheduler
    )

    updater.schedule("a")
    updater.schedule("b")
    updater.schedule("a")
    updater.schedule("c")

    assert updater.pending_count == 2
    assert not updater.is_pending("b")
    assert updater.is_pending("a") and updater.is_pending("c")
    assert running_scheduler.get_job(InterestUpdateScheduler.job_id_for("b")) is None
    assert running_scheduler.get_job(InterestUpdateScheduler.job_id_for("a")) is not None


@pytest.mark.anyio
async def test_debounce_cancel(running_scheduler):
    updater = InterestUpdateScheduler(
        AsyncMock(), delay_seconds=60, max_pending=5, scheduler=running_scheduler
    )
    updater.schedule("u1")

    assert updater.cancel("u1") is True
    assert updater.cancel("u1") is False
    assert running_scheduler.get_job(InterestUpdateScheduler.job_id_for("u1")) is None


@pytest.mark.anyio
async def test_failed_update_is_logged_not_raised():
    callback = AsyncMock(side_effect=RuntimeError("model down"))
    updater = InterestUpdateScheduler(callback, delay_seconds=0, max_pending=5)

    await updater._fire("u1")

    callback.assert_awaited_once_with("u1")
