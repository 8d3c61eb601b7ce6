"""Retention prune for emitted recommendations.

Runs daily. Recommendations that were never clicked and have not been
refreshed within ``RECS_RETENTION_DAYS`` are deleted together with their
feedback rows.
"""

from learnhub.config import config
from learnhub.logging import get_logger

logger = get_logger(__name__)


async def run_prune_recommendations(days: int | None = None) -> dict:
    """Delete stale recommendations.

    Args:
        days: Retention window override

    Returns:
        Summary dict with the number of deleted recommendations
    """
    from learnhub.storage import RecsRepo, get_session_factory

    retention_days = days if days is not None else config.recs_retention_days
    session_factory = get_session_factory()

    async with session_factory() as session:
        deleted = await RecsRepo(session).prune_older_than(retention_days)

    logger.info(
        f"Recommendation prune done: deleted={deleted}",
        extra={"context": {"retention_days": retention_days}},
    )
    return {"deleted": deleted, "retention_days": retention_days}
