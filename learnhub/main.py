"""Application entrypoint for the FastAPI server."""

from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Callable

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.ai import (
    AIRecommendationEngine,
    ContentAnalysisService,
    ContentRejectedError,
    UserProfileAnalysisService,
)
from learnhub.config import config
from learnhub.core.contracts import (
    ACTIVITY_CONTENT_TYPES,
    EMBEDDABLE_CONTENT_TYPES,
    ActivityType,
    FeedbackType,
    RecommendationType,
    UserActivity,
)
from learnhub.core.similarity import EmbeddingModelMismatchError
from learnhub.jobs import describe_jobs, setup_all_jobs, shutdown_scheduler, start_scheduler
from learnhub.llm import LLMDisabledError
from learnhub.logging import get_logger, setup_logging
from learnhub.storage import (
    ContentRepo,
    FeedbackRepo,
    RecsRepo,
    UsersRepo,
    close_engine,
    create_all_tables,
    get_session_factory,
)
from learnhub.storage.json_utils import load_list
from learnhub.storage.models import ContentItem
from learnhub.storage.repo_content import to_metadata

setup_logging(config.log_level, config.log_format)
logger = get_logger(__name__)

_recommendation_engine: AIRecommendationEngine | None = None
_profile_service: UserProfileAnalysisService | None = None
_content_service: ContentAnalysisService | None = None


# ------------------------------------------------------------------
# Dependencies
# ------------------------------------------------------------------

def get_sessions() -> Callable[[], AsyncSession]:
    """Session factory used by route handlers."""
    return get_session_factory()


def get_recommendation_engine() -> AIRecommendationEngine:
    global _recommendation_engine
    if _recommendation_engine is None:
        _recommendation_engine = AIRecommendationEngine()
    return _recommendation_engine


def get_profile_service() -> UserProfileAnalysisService:
    global _profile_service
    if _profile_service is None:
        _profile_service = UserProfileAnalysisService()
    return _profile_service


def get_content_service() -> ContentAnalysisService:
    global _content_service
    if _content_service is None:
        _content_service = ContentAnalysisService()
    return _content_service


async def verify_admin_token(
    authorization: str | None = Header(None, alias="Authorization"),
) -> None:
    """Verify admin token for protected endpoints.

    Args:
        authorization: Authorization header value

    Raises:
        HTTPException: If token is invalid or missing
    """
    if not config.admin_token:
        raise HTTPException(
            status_code=503,
            detail="Admin endpoints not configured (ADMIN_TOKEN not set)",
        )

    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    # Support "Bearer <token>" or just "<token>"
    token = authorization
    if authorization.startswith("Bearer "):
        token = authorization[7:]

    if token != config.admin_token:
        raise HTTPException(status_code=403, detail="Invalid admin token")


async def get_current_user_id(
    authorization: str | None = Header(None, alias="Authorization"),
    sessions: Callable[[], AsyncSession] = Depends(get_sessions),
) -> str:
    """Resolve the session bearer token to a user ID.

    Raises:
        HTTPException: 401 if the token is missing, unknown or expired
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")

    token = authorization[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    async with sessions() as session:
        user_id = await UsersRepo(session).get_user_id_for_token(token)

    if user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


# ------------------------------------------------------------------
# Application
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting application")

    await create_all_tables()

    start_scheduler()
    setup_all_jobs()

    yield

    logger.info("Shutting down application")

    shutdown_scheduler()

    for service in (_recommendation_engine, _profile_service, _content_service):
        if service is not None:
            await service.llm.close()

    await close_engine()


app = FastAPI(
    title="LearnHub AI",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies and query strings as 400."""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


def _server_error(message: str, e: Exception) -> JSONResponse:
    logger.exception(f"{message}: {e}")
    return JSONResponse(status_code=500, content={"error": message})


def _llm_unavailable(e: LLMDisabledError) -> HTTPException:
    logger.warning(f"LLM unavailable: {e}")
    return HTTPException(status_code=503, detail="AI service unavailable")


def _ensure_utc(dt: datetime) -> datetime:
    """SQLite returns naive datetimes; treat them as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _content_to_dict(item: ContentItem) -> dict[str, Any]:
    return {
        "id": item.content_id,
        "type": item.content_type,
        "title": item.title,
        "description": item.description,
        "authorId": item.author_id,
        "category": item.category,
        "tags": load_list(item.tags_json),
        "skillLevel": item.skill_level,
        "createdAt": item.created_at.isoformat() if item.created_at else None,
    }


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"ok": True}


# ------------------------------------------------------------------
# Recommendations
# ------------------------------------------------------------------

class RecommendRequest(BaseModel):
    """Body of ``POST /api/ai/recommend``."""

    type: str = RecommendationType.MIXED.value
    limit: int | None = None


class FeedbackRequest(BaseModel):
    """Body of ``PUT /api/ai/recommend``."""

    model_config = ConfigDict(populate_by_name=True)

    recommendation_id: str = Field(alias="recommendationId", min_length=1)
    feedback_type: str = Field(alias="feedbackType")
    feedback_text: str | None = Field(default=None, alias="feedbackText")


@app.post("/api/ai/recommend")
async def recommend(
    payload: RecommendRequest,
    user_id: str = Depends(get_current_user_id),
    engine: AIRecommendationEngine = Depends(get_recommendation_engine),
) -> Any:
    """Generate, explain and record personalised recommendations."""
    if payload.type not in {t.value for t in RecommendationType}:
        raise HTTPException(status_code=400, detail=f"Invalid recommendation type: {payload.type}")

    limit = payload.limit if payload.limit is not None else config.recs_max_recommendations
    limit = min(limit, config.recs_max_recommendations)

    try:
        preferences = await engine.analyze_user_behavior(user_id)
        candidates = await engine.generate_personalized_recommendations(
            user_id,
            payload.type,
            limit,
            preferences=preferences,
        )
        with_reasons = await engine.generate_recommendation_reasons(candidates, preferences)
        rec_ids = await engine.save_recommendations(user_id, with_reasons, preferences)
    except LLMDisabledError as e:
        raise _llm_unavailable(e)
    except Exception as e:
        return _server_error("Failed to generate recommendations", e)

    recommendations = [
        {**candidate.to_dict(), "id": candidate.item_id, "recommendationId": rec_id}
        for candidate, rec_id in zip(with_reasons, rec_ids)
    ]
    return {"recommendations": recommendations, "count": len(recommendations)}


@app.put("/api/ai/recommend")
async def recommendation_feedback(
    payload: FeedbackRequest,
    user_id: str = Depends(get_current_user_id),
    sessions: Callable[[], AsyncSession] = Depends(get_sessions),
) -> Any:
    """Record feedback on a recommendation; ``save`` marks it clicked."""
    if payload.feedback_type not in {t.value for t in FeedbackType}:
        raise HTTPException(
            status_code=400, detail=f"Invalid feedback type: {payload.feedback_type}"
        )

    try:
        async with sessions() as session:
            recs_repo = RecsRepo(session)
            rec = await recs_repo.get_user_rec(user_id, payload.recommendation_id)
            if rec is None:
                raise HTTPException(status_code=404, detail="Recommendation not found")

            await FeedbackRepo(session).add_feedback(
                user_id,
                payload.recommendation_id,
                payload.feedback_type,
                payload.feedback_text,
            )
            if payload.feedback_type == FeedbackType.SAVE.value:
                await recs_repo.mark_clicked(payload.recommendation_id)
    except HTTPException:
        raise
    except Exception as e:
        return _server_error("Failed to save feedback", e)

    logger.info(
        "Recommendation feedback recorded",
        extra={"context": {
            "user_id": user_id,
            "rec_id": payload.recommendation_id,
            "feedback": payload.feedback_type,
        }},
    )
    return {"success": True}


# ------------------------------------------------------------------
# Activity and interests
# ------------------------------------------------------------------

class ActivityRequest(BaseModel):
    """Body of ``POST /api/ai/activity``."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    content_id: str = Field(default="", alias="contentId")
    content_type: str = Field(alias="contentType")
    duration: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


@app.post("/api/ai/activity")
async def track_activity(
    payload: ActivityRequest,
    user_id: str = Depends(get_current_user_id),
    service: UserProfileAnalysisService = Depends(get_profile_service),
) -> Any:
    """Record a user activity and schedule the interest refresh."""
    if payload.type not in {t.value for t in ActivityType}:
        raise HTTPException(status_code=400, detail="Invalid activity type")
    if payload.content_type not in ACTIVITY_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Invalid content type")
    if not payload.content_id:
        raise HTTPException(status_code=400, detail="Content ID is required")

    activity = UserActivity(
        user_id=user_id,
        type=payload.type,
        content_id=payload.content_id,
        content_type=payload.content_type,
        timestamp=datetime.now(timezone.utc),
        duration=payload.duration,
        metadata=payload.metadata,
    )

    try:
        await service.track_user_activity(activity)
    except Exception as e:
        return _server_error("Failed to track activity", e)

    return {"success": True, "message": "Activity tracked successfully"}


@app.get("/api/ai/activity")
async def user_interests(
    force_update: bool = Query(False, alias="forceUpdate"),
    user_id: str = Depends(get_current_user_id),
    service: UserProfileAnalysisService = Depends(get_profile_service),
) -> Any:
    """Return the user's interests, recomputing stale or missing snapshots."""
    try:
        if not force_update:
            interests = await service.get_user_interests(user_id)
            if interests is not None and interests.updated_at is not None:
                cutoff = datetime.now(timezone.utc) - timedelta(hours=config.interest_cache_hours)
                if _ensure_utc(interests.updated_at) > cutoff:
                    return {"interests": interests.to_dict(), "cached": True}

        activities = await service.get_user_activities(user_id, 100)
        if not activities:
            return {"interests": None, "message": "No activities found to analyze"}

        interests = await service.analyze_user_interests(user_id, activities)
    except LLMDisabledError as e:
        raise _llm_unavailable(e)
    except Exception as e:
        return _server_error("Failed to analyze interests", e)

    return {"interests": interests.to_dict(), "cached": False}


@app.get("/api/ai/segment")
async def user_segment(
    user_id: str = Depends(get_current_user_id),
    service: UserProfileAnalysisService = Depends(get_profile_service),
) -> Any:
    """Classify the user into an engagement segment."""
    try:
        segment = await service.analyze_user_segment(user_id)
    except LLMDisabledError as e:
        raise _llm_unavailable(e)
    except Exception as e:
        return _server_error("Failed to analyze segment", e)

    return {"segment": asdict(segment)}


# ------------------------------------------------------------------
# Content analysis and embeddings
# ------------------------------------------------------------------

class AnalyzeRequest(BaseModel):
    """Body of ``POST /api/ai/analyze``."""

    model_config = ConfigDict(populate_by_name=True)

    content_id: str = Field(alias="contentId", min_length=1)
    force_reanalyze: bool = Field(default=False, alias="forceReanalyze")


class EmbeddingRequest(BaseModel):
    """Body of ``POST /api/ai/embeddings``."""

    model_config = ConfigDict(populate_by_name=True)

    content_id: str = Field(default="", alias="contentId")
    content_type: str = Field(default="", alias="contentType")
    text: str = ""


@app.post("/api/ai/analyze")
async def analyze_content(
    payload: AnalyzeRequest,
    user_id: str = Depends(get_current_user_id),
    service: ContentAnalysisService = Depends(get_content_service),
    sessions: Callable[[], AsyncSession] = Depends(get_sessions),
) -> Any:
    """Analyse a content item, reusing the stored analysis unless forced."""
    async with sessions() as session:
        item = await ContentRepo(session).get_content(payload.content_id)
        if item is None:
            raise HTTPException(status_code=404, detail="Content not found")
        metadata = to_metadata(item)

    try:
        if not payload.force_reanalyze:
            existing = await service.get_analysis(payload.content_id)
            if existing is not None:
                return {"analysis": existing.to_dict(), "cached": True}

        analysis = await service.analyze_content(metadata)
    except ContentRejectedError:
        raise HTTPException(status_code=400, detail="Content rejected by moderation")
    except LLMDisabledError as e:
        raise _llm_unavailable(e)
    except Exception as e:
        return _server_error("Failed to analyze content", e)

    return {"analysis": analysis.to_dict(), "cached": False}


@app.get("/api/ai/analyze")
async def similar_content(
    content_id: str = Query(..., alias="contentId", min_length=1),
    limit: int = Query(5, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    service: ContentAnalysisService = Depends(get_content_service),
    sessions: Callable[[], AsyncSession] = Depends(get_sessions),
) -> Any:
    """Published content most similar to the given item."""
    try:
        similar = await service.find_similar_content(content_id, limit)
        similarity_by_id = {s.content_id: s.similarity for s in similar}

        async with sessions() as session:
            items = await ContentRepo(session).list_by_ids(list(similarity_by_id))
    except EmbeddingModelMismatchError:
        raise HTTPException(
            status_code=409,
            detail="Stored embedding was produced by a different model; re-analyze the content",
        )
    except Exception as e:
        return _server_error("Failed to find similar content", e)

    results = [
        {**_content_to_dict(item), "similarity": similarity_by_id.get(item.content_id, 0.0)}
        for item in items
    ]
    results.sort(key=lambda r: r["similarity"], reverse=True)
    return {"similarContents": results}


@app.post("/api/ai/embeddings")
async def create_embedding(
    payload: EmbeddingRequest,
    user_id: str = Depends(get_current_user_id),
    service: ContentAnalysisService = Depends(get_content_service),
) -> Any:
    """Embed text for a content item and store the version-stamped vector."""
    if not payload.content_id or not payload.content_type or not payload.text.strip():
        raise HTTPException(status_code=400, detail="Missing required fields")
    if payload.content_type not in EMBEDDABLE_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Invalid content type")

    try:
        embedding = await service.store_embedding(
            payload.content_type,
            payload.content_id,
            payload.text,
        )
    except LLMDisabledError as e:
        raise _llm_unavailable(e)
    except Exception as e:
        return _server_error("Failed to create embedding", e)

    return {
        "success": True,
        "message": "Embedding created successfully",
        "embeddingModel": service.llm.embedding_model,
        "dimensions": len(embedding),
    }


# ------------------------------------------------------------------
# Admin
# ------------------------------------------------------------------

@app.post("/admin/recommendations/prune")
async def trigger_recommendation_prune(
    _: None = Depends(verify_admin_token),
) -> dict:
    """Run the recommendation retention prune now.

    Requires admin token in Authorization header.
    """
    from learnhub.jobs import run_prune_recommendations

    logger.info("Admin triggered recommendation prune")

    try:
        result = await run_prune_recommendations()
        return {"ok": True, **result}
    except Exception as e:
        logger.exception(f"Admin recommendation prune failed: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Prune failed: {str(e)[:200]}",
        )


@app.post("/admin/content/analyze")
async def trigger_content_analysis(
    _: None = Depends(verify_admin_token),
) -> dict:
    """Analyse pending content now.

    Requires admin token in Authorization header.
    """
    from learnhub.jobs import run_analyze_pending_content

    logger.info("Admin triggered content analysis")

    try:
        result = await run_analyze_pending_content()
        return {"ok": True, **result}
    except Exception as e:
        logger.exception(f"Admin content analysis failed: {e}")
        raise HTTPException(
            status_code=500,
            detail=f"Content analysis failed: {str(e)[:200]}",
        )


@app.get("/admin/jobs")
async def list_jobs(
    _: None = Depends(verify_admin_token),
) -> dict:
    """Scheduled jobs and their next run times, debounced updates included."""
    jobs = describe_jobs()
    return {"jobs": jobs, "count": len(jobs)}


def main() -> None:
    """Run the API server."""
    logger.info(f"Starting FastAPI server on {config.host}:{config.port}")
    uvicorn.run(
        "learnhub.main:app",
        host=config.host,
        port=config.port,
        reload=False,
    )


if __name__ == "__main__":
    main()
