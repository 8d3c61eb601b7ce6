"""Background work: recurring jobs and debounced interest updates."""

from learnhub.jobs.analyze_content import run_analyze_pending_content
from learnhub.jobs.debounce import InterestUpdateScheduler
from learnhub.jobs.prune_recommendations import run_prune_recommendations
from learnhub.jobs.scheduler import (
    describe_jobs,
    get_scheduler,
    setup_all_jobs,
    setup_analyze_content_job,
    setup_prune_recommendations_job,
    shutdown_scheduler,
    start_scheduler,
)

__all__ = [
    "InterestUpdateScheduler",
    "describe_jobs",
    "get_scheduler",
    "run_analyze_pending_content",
    "run_prune_recommendations",
    "setup_all_jobs",
    "setup_analyze_content_job",
    "setup_prune_recommendations_job",
    "shutdown_scheduler",
    "start_scheduler",
]
