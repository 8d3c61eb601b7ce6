"""Periodic analysis of published content that has never been analysed."""

from datetime import timedelta

from learnhub.config import config
from learnhub.logging import get_logger

logger = get_logger(__name__)

# Items picked up per run
MAX_ITEMS_PER_RUN = 50


async def run_analyze_pending_content(limit: int = MAX_ITEMS_PER_RUN) -> dict:
    """Analyse up to ``limit`` unanalysed content items.

    Per-item failures are logged and counted by the batch analysis. Items
    that keep failing are retried after a delay and dropped after
    ANALYSIS_MAX_ATTEMPTS failures, so they cannot hold up newer content.

    Returns:
        Summary dict with candidate and analysed counts
    """
    from learnhub.ai.content_analysis import ContentAnalysisService
    from learnhub.storage import ContentRepo, get_session_factory
    from learnhub.storage.repo_content import to_metadata

    if not config.llm_enabled or not config.openai_api_key:
        logger.info("Content analysis skipped: LLM not configured")
        return {"candidates": 0, "analyzed": 0, "skipped": True}

    session_factory = get_session_factory()
    async with session_factory() as session:
        items = await ContentRepo(session).list_unanalyzed(
            limit,
            max_attempts=config.analysis_max_attempts,
            retry_after=timedelta(minutes=config.analysis_retry_after_minutes),
        )
        pending = [to_metadata(item) for item in items]

    if not pending:
        logger.debug("No content awaiting analysis")
        return {"candidates": 0, "analyzed": 0, "skipped": False}

    service = ContentAnalysisService(session_factory=session_factory)
    try:
        results = await service.analyze_content_batch(pending)
    finally:
        await service.llm.close()

    logger.info(f"Content analysis job done: {len(results)}/{len(pending)} analyzed")
    return {"candidates": len(pending), "analyzed": len(results), "skipped": False}
