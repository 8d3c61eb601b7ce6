"""Preference aggregation shared by interest profiling and recommendations.

Activities, bookmarks and authored content are folded into frequency maps.
The same ``PreferenceProfile`` feeds the profiler prompt (via
``summarize_activities``) and the recommendation query (via
``preferences_to_text``).
"""

import json
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

from learnhub.core.contracts import ActivityType, UserActivity


@dataclass
class ContentSignal:
    """Preference-relevant attributes of a bookmarked or authored item."""

    content_type: str
    category: str | None = None
    tags: list[str] = field(default_factory=list)
    skill_level: str | None = None


@dataclass
class LearningPatterns:
    """When and how long a user engages."""

    most_active_time: str | None = None
    avg_view_duration: int | None = None
    engagement_score: float | None = None


@dataclass
class PreferenceProfile:
    """Frequency-weighted preferences of one user."""

    categories: dict[str, int] = field(default_factory=dict)
    tags: dict[str, int] = field(default_factory=dict)
    skill_levels: dict[str, int] = field(default_factory=dict)
    content_types: dict[str, int] = field(default_factory=dict)
    activity_types: dict[str, int] = field(default_factory=dict)
    learning_patterns: LearningPatterns = field(default_factory=LearningPatterns)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def is_empty(self) -> bool:
        return not (self.categories or self.tags or self.skill_levels)


def _metadata_tags(metadata: dict[str, Any]) -> list[str]:
    tags = metadata.get("tags")
    if isinstance(tags, str):
        return [tags]
    if isinstance(tags, list):
        return [str(t) for t in tags if t]
    return []


def _top_keys(counts: dict[str, int], n: int) -> list[str]:
    # Stable for ties: first-seen key wins
    return [key for key, _ in Counter(counts).most_common(n)]


def average_view_duration(activities: Iterable[UserActivity]) -> int | None:
    """Rounded mean duration over view activities that carry one."""
    durations = [
        a.duration for a in activities
        if a.type == ActivityType.VIEW.value and a.duration
    ]
    if not durations:
        return None
    return round(sum(durations) / len(durations))


def most_active_hour(activities: Iterable[UserActivity]) -> str | None:
    """Mode of activity hour-of-day, rendered as ``H:00``."""
    hours = Counter(a.timestamp.hour for a in activities)
    if not hours:
        return None
    hour, _ = hours.most_common(1)[0]
    return f"{hour}:00"


def aggregate_preferences(
    activities: Iterable[UserActivity],
    bookmarks: Iterable[ContentSignal] = (),
    authored: Iterable[ContentSignal] = (),
) -> PreferenceProfile:
    """Fold user signals into a preference profile.

    Categories, tags and skill levels only appear when the activity metadata
    or the referenced content carries them; otherwise the maps stay empty.
    """
    activities = list(activities)
    categories: Counter[str] = Counter()
    tags: Counter[str] = Counter()
    skill_levels: Counter[str] = Counter()
    content_types: Counter[str] = Counter()
    activity_types: Counter[str] = Counter()

    for activity in activities:
        metadata = activity.metadata or {}
        category = metadata.get("category")
        if category:
            categories[str(category)] += 1
        for tag in _metadata_tags(metadata):
            tags[tag] += 1
        skill_level = metadata.get("skill_level")
        if skill_level:
            skill_levels[str(skill_level)] += 1
        content_types[activity.content_type] += 1
        activity_types[activity.type] += 1

    for signal in [*bookmarks, *authored]:
        if signal.category:
            categories[signal.category] += 1
        for tag in signal.tags:
            tags[tag] += 1
        if signal.skill_level:
            skill_levels[signal.skill_level] += 1
        content_types[signal.content_type] += 1

    engaged = sum(
        count for kind, count in activity_types.items() if kind != ActivityType.VIEW.value
    )
    engagement_score = round(engaged / len(activities), 2) if activities else None

    return PreferenceProfile(
        categories=dict(categories),
        tags=dict(tags),
        skill_levels=dict(skill_levels),
        content_types=dict(content_types),
        activity_types=dict(activity_types),
        learning_patterns=LearningPatterns(
            most_active_time=most_active_hour(activities),
            avg_view_duration=average_view_duration(activities),
            engagement_score=engagement_score,
        ),
    )


def summarize_activities(activities: Iterable[UserActivity]) -> str:
    """JSON summary of activities for the interest-extraction prompt."""
    activities = list(activities)
    profile = aggregate_preferences(activities)

    summary: dict[str, Any] = {
        "totalActivities": len(activities),
        "activityTypes": profile.activity_types,
        "contentTypes": profile.content_types,
    }
    if profile.categories:
        summary["topCategories"] = _top_keys(profile.categories, 5)
    if profile.tags:
        summary["recentTopics"] = _top_keys(profile.tags, 10)
    if profile.learning_patterns.avg_view_duration is not None:
        summary["avgViewDuration"] = profile.learning_patterns.avg_view_duration

    return json.dumps(summary, indent=2, ensure_ascii=False)


def preferences_to_text(profile: PreferenceProfile) -> str:
    """Render preferences as a short sentence for embedding."""
    parts = []

    top_categories = _top_keys(profile.categories, 3)
    if top_categories:
        parts.append(f"Interested in {', '.join(top_categories)}")

    top_tags = _top_keys(profile.tags, 5)
    if top_tags:
        parts.append(f"Topics: {', '.join(top_tags)}")

    top_skill = _top_keys(profile.skill_levels, 1)
    if top_skill:
        parts.append(f"Skill level: {top_skill[0]}")

    if profile.learning_patterns.most_active_time and parts:
        parts.append(f"Active time: {profile.learning_patterns.most_active_time}")

    return ". ".join(parts)
