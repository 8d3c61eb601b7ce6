"""Content analysis: moderation, topic extraction, summary and embedding.

``analyze_content`` runs moderation, the analysis completion, the summary
completion and the embedding call in order, and only then writes the result.
Nothing is stored unless every step succeeded.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.config import config
from learnhub.core.contracts import (
    EMBEDDABLE_CONTENT_TYPES,
    ContentAnalysis,
    ContentMetadata,
    DifficultyLevel,
    SimilarContent,
)
from learnhub.core.similarity import ensure_same_model
from learnhub.llm import LLMClient
from learnhub.llm.parsing import as_string_list, parse_json_object, parse_string_list
from learnhub.logging import get_logger
from learnhub.storage import AnalysisRepo, EmbeddingsRepo, get_session_factory
from learnhub.storage.json_utils import load_vector

logger = get_logger(__name__)

SERVICE_NAME = "ContentAnalysisService"

CONTENT_ANALYSIS_PROMPT = """Analyze the following content and extract key information:

Title: {title}
Description: {description}
Content: {content}

Extract:
1. Main topics (3-5 keywords)
2. Target audience
3. Difficulty level (beginner/intermediate/advanced)
4. Key takeaways

Respond with a JSON object using the keys "topics", "targetAudience",
"difficultyLevel" and "keyTakeaways"."""

SUMMARY_PROMPT = """Summarize the following content in {length} characters or less:

{content}

Focus on the main points and key takeaways."""

KEYWORDS_PROMPT = """Extract the {count} most important keywords from the following text:

{text}

Respond with a JSON object of the form {{"keywords": ["..."]}}."""

_DIFFICULTY_LEVELS = {level.value for level in DifficultyLevel}


class ContentRejectedError(Exception):
    """Content was flagged by moderation and flagged content is blocked."""

    def __init__(self, content_id: str, categories: list[str] | None = None):
        super().__init__(f"Content {content_id} rejected by moderation")
        self.content_id = content_id
        self.categories = categories or []


def _normalize_difficulty(value: Any) -> str:
    if isinstance(value, str) and value.strip().lower() in _DIFFICULTY_LEVELS:
        return value.strip().lower()
    return DifficultyLevel.INTERMEDIATE.value


def _chunk(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class ContentAnalysisService:
    """Analyses content with the LLM and stores the result."""

    def __init__(
        self,
        llm: LLMClient | None = None,
        session_factory: Callable[[], AsyncSession] | None = None,
    ) -> None:
        self.llm = llm or LLMClient(service_name=SERVICE_NAME)
        self._session_factory = session_factory or get_session_factory()

    async def analyze_content(self, metadata: ContentMetadata) -> ContentAnalysis:
        """Analyse one content item and upsert the result.

        Args:
            metadata: Content to analyse

        Returns:
            The stored analysis, embedding included

        Raises:
            ContentRejectedError: Flagged content while MODERATION_BLOCK_FLAGGED is on
            ModelOutputError: Analysis response was not a JSON object
            AIServiceError: An external call failed after all retries
        """
        context = {"content_id": metadata.content_id, "content_type": metadata.type}
        logger.info("Analyzing content", extra={"context": context})

        try:
            moderation = await self.llm.moderate_content(
                f"{metadata.title} {metadata.description} {metadata.content}"
            )
            if moderation.flagged:
                flagged_categories = [k for k, v in moderation.categories.items() if v]
                logger.warning(
                    "Content flagged by moderation",
                    extra={"context": {**context, "categories": ",".join(flagged_categories)}},
                )
                if config.moderation_block_flagged:
                    raise ContentRejectedError(metadata.content_id, flagged_categories)

            truncated = metadata.content[:config.analysis_max_content_length]
            prompt = CONTENT_ANALYSIS_PROMPT.format(
                title=metadata.title,
                description=metadata.description,
                content=truncated,
            )
            response = await self.llm.complete(
                prompt,
                response_format="json",
                temperature=0.3,
            )
            data = parse_json_object(response, "analyzeContent")
            topics = as_string_list(data.get("topics"))

            summary = await self._generate_summary(metadata.content)

            embedding_text = f"{metadata.title} {metadata.description} {' '.join(topics)}"
            embedding = await self.llm.create_embedding(embedding_text.strip())

            analysis = ContentAnalysis(
                topics=topics,
                target_audience=str(data.get("targetAudience") or "general"),
                difficulty_level=_normalize_difficulty(data.get("difficultyLevel")),
                key_takeaways=as_string_list(data.get("keyTakeaways")),
                summary=summary,
                embedding=embedding,
                embedding_model=self.llm.embedding_model,
                moderation_flagged=moderation.flagged,
                analyzed_at=datetime.now(timezone.utc),
            )

            await self._save_analysis(metadata, analysis)

        except Exception as e:
            logger.error(
                f"Content analysis failed: {e}",
                extra={"context": context},
            )
            raise

        logger.info(
            "Content analyzed",
            extra={"context": {**context, "topics": len(analysis.topics)}},
        )
        return analysis

    async def _generate_summary(self, content: str) -> str:
        limit = config.analysis_summary_length
        prompt = SUMMARY_PROMPT.format(
            length=limit,
            content=content[:config.analysis_max_content_length],
        )
        summary = await self.llm.complete(prompt, temperature=0.5, max_tokens=200)
        return summary.strip()[:limit]

    async def _save_analysis(self, metadata: ContentMetadata, analysis: ContentAnalysis) -> None:
        async with self._session_factory() as session:
            await AnalysisRepo(session).upsert_analysis(
                metadata.content_id,
                analysis,
                content_type=metadata.type,
                commit=False,
            )
            if metadata.type in EMBEDDABLE_CONTENT_TYPES and analysis.embedding:
                await EmbeddingsRepo(session).upsert_embedding(
                    metadata.type,
                    metadata.content_id,
                    analysis.embedding,
                    embedding_model=analysis.embedding_model or self.llm.embedding_model,
                    metadata={
                        "title": metadata.title,
                        "description": metadata.description,
                        "tags": metadata.tags,
                    },
                    commit=False,
                )
            await session.commit()

    async def _record_failure(self, content_id: str, error: BaseException) -> int:
        async with self._session_factory() as session:
            return await AnalysisRepo(session).record_failure(
                content_id, f"{type(error).__name__}: {error}"[:500]
            )

    async def analyze_content_batch(
        self,
        contents: list[ContentMetadata],
    ) -> dict[str, ContentAnalysis]:
        """Analyse content in concurrent chunks, skipping items that fail.

        Each failure is counted against the item so the periodic job can back
        off from content that keeps failing.

        Returns:
            Analyses keyed by content ID; failed items are absent
        """
        results: dict[str, ContentAnalysis] = {}

        for chunk in _chunk(contents, config.analysis_batch_size):
            outcomes = await asyncio.gather(
                *(self.analyze_content(item) for item in chunk),
                return_exceptions=True,
            )
            for item, outcome in zip(chunk, outcomes):
                if isinstance(outcome, BaseException):
                    attempts = await self._record_failure(item.content_id, outcome)
                    logger.error(
                        f"Batch analysis failed for content: {outcome}",
                        extra={"context": {"content_id": item.content_id, "attempts": attempts}},
                    )
                    continue
                results[item.content_id] = outcome

        logger.info(f"Batch analysis done: {len(results)}/{len(contents)} succeeded")
        return results

    async def extract_keywords(self, text: str, count: int | None = None) -> list[str]:
        """Ask the model for the most important keywords of a text.

        Unparseable output yields an empty list.
        """
        count = count or config.analysis_keyword_count
        response = await self.llm.complete(
            KEYWORDS_PROMPT.format(count=count, text=text),
            response_format="json",
            temperature=0.3,
        )
        return parse_string_list(response, key="keywords")[:count]

    async def find_similar_content(self, content_id: str, limit: int = 5) -> list[SimilarContent]:
        """Content whose stored embedding is closest to this content's.

        The content itself is never returned. Only vectors produced by the
        same embedding model are compared.

        Raises:
            EmbeddingModelMismatchError: The stored vector was produced by a
                model other than the pinned one and needs re-analysis
        """
        async with self._session_factory() as session:
            record = await AnalysisRepo(session).get_record(content_id)
            embedding = load_vector(record.embedding_json) if record else None
            if record is None or embedding is None or not record.embedding_model:
                logger.info(
                    "No stored embedding for content",
                    extra={"context": {"content_id": content_id}},
                )
                return []

            ensure_same_model(self.llm.embedding_model, record.embedding_model)
            return await EmbeddingsRepo(session).search_similar(
                embedding,
                embedding_model=record.embedding_model,
                limit=limit,
                exclude_ids={content_id},
            )

    async def store_embedding(
        self,
        content_type: str,
        content_id: str,
        text: str,
        metadata: dict[str, Any] | None = None,
    ) -> list[float]:
        """Embed arbitrary text for a content item and store it version-stamped."""
        embedding = await self.llm.create_embedding(text)
        async with self._session_factory() as session:
            await EmbeddingsRepo(session).upsert_embedding(
                content_type,
                content_id,
                embedding,
                embedding_model=self.llm.embedding_model,
                metadata=metadata,
            )
        logger.info(
            "Stored embedding",
            extra={"context": {"content_id": content_id, "content_type": content_type}},
        )
        return embedding

    async def get_analysis(self, content_id: str) -> ContentAnalysis | None:
        async with self._session_factory() as session:
            return await AnalysisRepo(session).get_analysis(content_id)
