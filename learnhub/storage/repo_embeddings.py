"""Repository for content embeddings and vector search."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnhub.core.contracts import SimilarContent
from learnhub.core.similarity import VectorDimensionError, rank_by_similarity
from learnhub.logging import get_logger
from learnhub.storage.db import dialect_insert
from learnhub.storage.json_utils import load_dict, load_vector, safe_json_dumps
from learnhub.storage.models import ContentEmbedding

logger = get_logger(__name__)


class EmbeddingsRepo:
    """Stores version-stamped embeddings and answers nearest-neighbour queries.

    ``search_similar`` is the store's vector-search capability: filtering by
    content type and embedding model happens in SQL and the surviving vectors
    are scored in a single vectorised pass.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert_embedding(
        self,
        content_type: str,
        content_id: str,
        embedding: list[float],
        embedding_model: str,
        metadata: dict[str, Any] | None = None,
        commit: bool = True,
    ) -> None:
        """Insert or overwrite the embedding for ``(content_type, content_id)``."""
        if not embedding:
            raise VectorDimensionError("Cannot store an empty embedding")

        now = datetime.now(timezone.utc)
        values = {
            "embedding_json": safe_json_dumps(embedding, default="[]"),
            "embedding_model": embedding_model,
            "dimensions": len(embedding),
            "metadata_json": safe_json_dumps(metadata or {}),
            "updated_at": now,
        }
        insert_stmt = dialect_insert(self.session, ContentEmbedding).values(
            content_type=content_type,
            content_id=content_id,
            **values,
        )
        upsert_stmt = insert_stmt.on_conflict_do_update(
            index_elements=["content_type", "content_id"],
            set_=values,
        )
        await self.session.execute(upsert_stmt)
        if commit:
            await self.session.commit()

    async def get_embedding(
        self,
        content_type: str,
        content_id: str,
    ) -> ContentEmbedding | None:
        stmt = select(ContentEmbedding).where(
            ContentEmbedding.content_type == content_type,
            ContentEmbedding.content_id == content_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def search_similar(
        self,
        query_embedding: list[float],
        embedding_model: str,
        content_type: str | None = None,
        limit: int = 10,
        threshold: float | None = None,
        exclude_ids: set[str] | None = None,
    ) -> list[SimilarContent]:
        """Find the stored embeddings closest to a query vector.

        Args:
            query_embedding: Query vector
            embedding_model: Only vectors from this model are compared
            content_type: Optional content type filter
            limit: Maximum matches to return
            threshold: Minimum similarity to include
            exclude_ids: Content IDs never returned

        Returns:
            Matches sorted by descending similarity
        """
        if limit <= 0:
            return []

        stmt = select(ContentEmbedding).where(
            ContentEmbedding.embedding_model == embedding_model,
            ContentEmbedding.dimensions == len(query_embedding),
        )
        if content_type:
            stmt = stmt.where(ContentEmbedding.content_type == content_type)
        if exclude_ids:
            stmt = stmt.where(ContentEmbedding.content_id.not_in(exclude_ids))

        result = await self.session.execute(stmt)
        rows = []
        vectors = []
        for row in result.scalars().all():
            vector = load_vector(row.embedding_json)
            if vector is None or len(vector) != len(query_embedding):
                logger.warning(
                    f"Skipping malformed embedding for {row.content_type}/{row.content_id}"
                )
                continue
            rows.append(row)
            vectors.append(vector)

        scores = rank_by_similarity(query_embedding, vectors)

        matches = [
            SimilarContent(
                content_id=row.content_id,
                content_type=row.content_type,
                similarity=score,
                metadata=load_dict(row.metadata_json),
            )
            for row, score in zip(rows, scores)
            if threshold is None or score >= threshold
        ]
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]

    async def list_recent(
        self,
        content_type: str,
        embedding_model: str,
        limit: int = 10,
    ) -> list[ContentEmbedding]:
        """Most recently embedded content of a type."""
        if limit <= 0:
            return []

        stmt = (
            select(ContentEmbedding)
            .where(
                ContentEmbedding.content_type == content_type,
                ContentEmbedding.embedding_model == embedding_model,
            )
            .order_by(ContentEmbedding.updated_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
