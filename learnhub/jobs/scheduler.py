"""Process-wide APScheduler instance and the recurring job definitions.

Recurring jobs (retention prune, pending content analysis) and the
per-user debounced interest updates share one ``AsyncIOScheduler`` with an
in-memory job store. Nothing scheduled here survives a restart.
"""

from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from learnhub.logging import get_logger

logger = get_logger(__name__)

_scheduler: AsyncIOScheduler | None = None

PRUNE_RECOMMENDATIONS_JOB_ID = "prune_recommendations"
ANALYZE_CONTENT_JOB_ID = "analyze_content"

JOB_DEFAULTS = {
    "coalesce": True,
    "max_instances": 1,
    "misfire_grace_time": 60,
}


def get_scheduler() -> AsyncIOScheduler:
    """Shared scheduler, created (not started) on first use."""
    global _scheduler

    if _scheduler is None:
        _scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            job_defaults=JOB_DEFAULTS,
            timezone="UTC",
        )
        logger.debug("Scheduler created")

    return _scheduler


def start_scheduler() -> None:
    scheduler = get_scheduler()
    if scheduler.running:
        return
    scheduler.start()
    logger.info("Scheduler started")


def shutdown_scheduler() -> None:
    """Stop the scheduler; pending debounced updates are dropped."""
    global _scheduler

    if _scheduler is None:
        return
    if _scheduler.running:
        pending = len(_scheduler.get_jobs())
        _scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped", extra={"context": {"dropped_jobs": pending}})
    _scheduler = None


def describe_jobs() -> list[dict]:
    """Scheduled jobs with their next run time, for the admin API."""
    jobs = []
    for job in get_scheduler().get_jobs():
        next_run = getattr(job, "next_run_time", None)
        jobs.append({
            "id": job.id,
            "name": job.name,
            "trigger": str(job.trigger),
            "next_run_time": next_run.isoformat() if next_run else None,
        })
    return jobs


def setup_prune_recommendations_job() -> str:
    """Daily retention prune of unclicked recommendations at 04:00 UTC."""
    from learnhub.config import config
    from learnhub.jobs.prune_recommendations import run_prune_recommendations

    job = get_scheduler().add_job(
        run_prune_recommendations,
        "cron",
        hour=4,
        minute=0,
        timezone="UTC",
        id=PRUNE_RECOMMENDATIONS_JOB_ID,
        name="Recommendation retention prune",
        replace_existing=True,
    )
    logger.info(
        "Scheduled recommendation prune",
        extra={"context": {"job_id": job.id, "retention_days": config.recs_retention_days}},
    )
    return job.id


def setup_analyze_content_job() -> str | None:
    """Periodic analysis of published content that has no stored analysis.

    Not scheduled when disabled or when no provider key is configured.
    """
    from learnhub.config import config

    if not config.content_analysis_job_enabled:
        logger.info("Content analysis job disabled")
        return None
    if not config.openai_api_key:
        logger.warning("Content analysis job not scheduled: OPENAI_API_KEY not set")
        return None

    from learnhub.jobs.analyze_content import run_analyze_pending_content

    job = get_scheduler().add_job(
        run_analyze_pending_content,
        "interval",
        minutes=config.content_analysis_interval_minutes,
        id=ANALYZE_CONTENT_JOB_ID,
        name="Pending content analysis",
        replace_existing=True,
    )
    logger.info(
        "Scheduled content analysis",
        extra={"context": {
            "job_id": job.id,
            "interval_minutes": config.content_analysis_interval_minutes,
        }},
    )
    return job.id


def setup_all_jobs() -> None:
    setup_prune_recommendations_job()
    setup_analyze_content_job()
