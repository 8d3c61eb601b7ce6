"""Tests for preference aggregation."""

import json
from datetime import datetime, timezone

from learnhub.core.contracts import UserActivity
from learnhub.core.preferences import (
    ContentSignal,
    PreferenceProfile,
    aggregate_preferences,
    average_view_duration,
    most_active_hour,
    preferences_to_text,
    summarize_activities,
)


def _activity(
    activity_type: str,
    content_id: str = "r1",
    content_type: str = "resource",
    hour: int = 10,
    duration: float | None = None,
    metadata: dict | None = None,
) -> UserActivity:
    return UserActivity(
        user_id="u1",
        type=activity_type,
        content_id=content_id,
        content_type=content_type,
        timestamp=datetime(2026, 3, 1, hour, 15, tzinfo=timezone.utc),
        duration=duration,
        metadata=metadata or {},
    )


def test_view_and_bookmark_without_metadata():
    """Content types are counted; categories and tags stay empty."""
    profile = aggregate_preferences([_activity("view"), _activity("bookmark")])

    assert profile.content_types == {"resource": 2}
    assert profile.categories == {}
    assert profile.tags == {}
    assert profile.skill_levels == {}
    assert profile.activity_types == {"view": 1, "bookmark": 1}


def test_metadata_contributes_categories_tags_and_skill():
    profile = aggregate_preferences([
        _activity("view", metadata={"category": "ml", "tags": ["python", "numpy"]}),
        _activity("like", metadata={"category": "ml", "tags": "python", "skill_level": "beginner"}),
        _activity("view", content_type="post", metadata={"category": "web"}),
    ])

    assert profile.categories == {"ml": 2, "web": 1}
    assert profile.tags == {"python": 2, "numpy": 1}
    assert profile.skill_levels == {"beginner": 1}
    assert profile.content_types == {"resource": 2, "post": 1}


def test_bookmarks_and_authored_content_are_counted():
    profile = aggregate_preferences(
        [],
        bookmarks=[ContentSignal("resource", category="data", tags=["sql"], skill_level="advanced")],
        authored=[ContentSignal("post", category="data", tags=["sql", "etl"])],
    )

    assert profile.categories == {"data": 2}
    assert profile.tags == {"sql": 2, "etl": 1}
    assert profile.skill_levels == {"advanced": 1}
    assert profile.content_types == {"resource": 1, "post": 1}
    assert profile.learning_patterns.most_active_time is None
    assert profile.learning_patterns.engagement_score is None


def test_learning_patterns():
    activities = [
        _activity("view", hour=21, duration=100),
        _activity("view", hour=21, duration=200),
        _activity("comment", hour=9),
        _activity("view", hour=8),
    ]
    profile = aggregate_preferences(activities)

    assert profile.learning_patterns.most_active_time == "21:00"
    assert profile.learning_patterns.avg_view_duration == 150
    assert profile.learning_patterns.engagement_score == 0.25


def test_pattern_helpers_handle_empty_input():
    assert most_active_hour([]) is None
    assert average_view_duration([_activity("like", duration=30)]) is None


def test_preferences_to_text():
    profile = PreferenceProfile(
        categories={"ml": 5, "web": 3, "data": 2, "devops": 1},
        tags={"python": 4, "pandas": 2},
        skill_levels={"intermediate": 3, "beginner": 1},
    )
    profile.learning_patterns.most_active_time = "20:00"

    assert preferences_to_text(profile) == (
        "Interested in ml, web, data. Topics: python, pandas. "
        "Skill level: intermediate. Active time: 20:00"
    )


def test_preferences_to_text_without_signal_is_empty():
    profile = aggregate_preferences([_activity("view"), _activity("bookmark")])

    assert profile.is_empty()
    assert preferences_to_text(profile) == ""


def test_summarize_activities():
    summary = json.loads(summarize_activities([
        _activity("view", duration=60, metadata={"category": "ml", "tags": ["python"]}),
        _activity("like", content_type="post"),
    ]))

    assert summary["totalActivities"] == 2
    assert summary["activityTypes"] == {"view": 1, "like": 1}
    assert summary["contentTypes"] == {"resource": 1, "post": 1}
    assert summary["topCategories"] == ["ml"]
    assert summary["recentTopics"] == ["python"]
    assert summary["avgViewDuration"] == 60


def test_summarize_no_activities():
    summary = json.loads(summarize_activities([]))
    assert summary == {"totalActivities": 0, "activityTypes": {}, "contentTypes": {}}
