"""Domain contracts and type definitions."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ContentType(str, Enum):
    """Kinds of community content."""

    RESOURCE = "resource"
    LEARNING_PATH = "learning_path"
    POST = "post"
    EVENT = "event"
    PROJECT = "project"


# Content types that get a stored embedding and take part in vector search
EMBEDDABLE_CONTENT_TYPES = frozenset(
    {ContentType.RESOURCE.value, ContentType.LEARNING_PATH.value, ContentType.POST.value}
)

# Content types accepted on the activity log
ACTIVITY_CONTENT_TYPES = frozenset(t.value for t in ContentType)


class ActivityType(str, Enum):
    """User activity events."""

    VIEW = "view"
    LIKE = "like"
    COMMENT = "comment"
    SHARE = "share"
    BOOKMARK = "bookmark"
    CREATE = "create"


class DifficultyLevel(str, Enum):
    """Content difficulty levels."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class RecommendationType(str, Enum):
    """What a recommendation request asks for."""

    RESOURCE = "resource"
    LEARNING_PATH = "learning_path"
    MIXED = "mixed"

    def content_types(self) -> list[str]:
        """Content types searched for this request type."""
        if self is RecommendationType.MIXED:
            return [RecommendationType.RESOURCE.value, RecommendationType.LEARNING_PATH.value]
        return [self.value]


class FeedbackType(str, Enum):
    """User feedback on a recommendation."""

    HELPFUL = "helpful"
    NOT_HELPFUL = "not_helpful"
    SAVE = "save"
    DISMISS = "dismiss"


@dataclass
class ContentMetadata:
    """Input to content analysis."""

    content_id: str
    title: str
    description: str
    content: str
    author_id: str
    type: str
    tags: list[str] = field(default_factory=list)


@dataclass
class ContentAnalysis:
    """Result of analysing a piece of content."""

    topics: list[str]
    target_audience: str
    difficulty_level: str
    key_takeaways: list[str]
    summary: str
    embedding: list[float] | None = None
    embedding_model: str | None = None
    moderation_flagged: bool = False
    analyzed_at: datetime | None = None

    def to_dict(self, include_embedding: bool = False) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        if not include_embedding:
            data.pop("embedding")
        data["analyzed_at"] = self.analyzed_at.isoformat() if self.analyzed_at else None
        return data


@dataclass
class UserActivity:
    """One recorded user activity event."""

    user_id: str
    type: str
    content_id: str
    content_type: str
    timestamp: datetime
    duration: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ContentPreferences:
    """Preferred content shape."""

    types: list[str] = field(default_factory=lambda: ["post", "resource"])
    formats: list[str] = field(default_factory=list)
    length_preference: str = "medium"


@dataclass
class UserInterests:
    """Point-in-time snapshot of a user's interests."""

    primary: list[str] = field(default_factory=list)
    secondary: list[str] = field(default_factory=list)
    skills: dict[str, str] = field(default_factory=dict)
    content_preferences: ContentPreferences = field(default_factory=ContentPreferences)
    learning_goals: list[str] = field(default_factory=list)
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data


@dataclass
class UserSegment:
    """Free-form segment classification of a user."""

    segment: str
    characteristics: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


@dataclass
class SimilarContent:
    """A content item and its similarity to a query vector."""

    content_id: str
    content_type: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class RecommendationCandidate:
    """A ranked recommendation candidate."""

    item_id: str
    type: str
    score: float
    title: str = ""
    description: str = ""
    similarity: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
