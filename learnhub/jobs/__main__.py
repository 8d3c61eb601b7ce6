"""Scheduler worker process.

Usage::

    python -m learnhub.jobs                 # run the recurring jobs until stopped
    python -m learnhub.jobs --once prune    # run one job now and exit
    python -m learnhub.jobs --once analyze

The worker owns the retention prune and the pending content analysis.
Debounced interest updates live in the API process that received the
activity and never run here.
"""

import argparse
import asyncio
import json
import signal

from learnhub.config import config
from learnhub.logging import get_logger, setup_logging

setup_logging(config.log_level, config.log_format)
logger = get_logger(__name__)

ONE_SHOT_JOBS = ("prune", "analyze")


async def _run_once(job: str) -> dict:
    from learnhub.jobs import run_analyze_pending_content, run_prune_recommendations

    if job == "prune":
        return await run_prune_recommendations()
    return await run_analyze_pending_content()


async def _serve() -> None:
    from learnhub.jobs.scheduler import setup_all_jobs, shutdown_scheduler, start_scheduler

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    start_scheduler()
    setup_all_jobs()
    logger.info("Job worker started")

    await stop.wait()

    logger.info("Job worker stopping")
    shutdown_scheduler()


async def _main(once: str | None) -> None:
    from learnhub.storage import close_engine, create_all_tables

    await create_all_tables()
    try:
        if once:
            result = await _run_once(once)
            print(json.dumps(result))
        else:
            await _serve()
    finally:
        await close_engine()


def main() -> None:
    parser = argparse.ArgumentParser(prog="learnhub-jobs", description=__doc__.splitlines()[0])
    parser.add_argument(
        "--once",
        choices=ONE_SHOT_JOBS,
        help="run a single job immediately and exit",
    )
    args = parser.parse_args()
    asyncio.run(_main(args.once))


if __name__ == "__main__":
    main()
