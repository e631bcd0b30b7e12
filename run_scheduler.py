#!/usr/bin/env python3
"""
Background runner for the Game Fantasy League automation scheduler.

Runs the scoring and phase-sync jobs as a standalone service (systemd,
supervisor, or directly) when the API process runs with
SCHEDULER_ENABLED=false.

Usage:
    python run_scheduler.py               # Run in foreground
    python run_scheduler.py --list-jobs   # Show the job table and exit
    python run_scheduler.py --run-now full|ccu|phases
"""
import argparse
import asyncio
import signal
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from app.core.config import settings
from app.core.logging import configure_logging, get_logger
from app.core.scheduler import AutomationScheduler, run_scoring_job, sync_all_league_phases

configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON and not settings.is_development())
logger = get_logger(__name__)


class SchedulerRunner:
    """Runner for the automation scheduler."""

    def __init__(self):
        self.scheduler: AutomationScheduler = None
        self.shutdown = asyncio.Event()

    async def start(self):
        """Start the scheduler and run until a shutdown signal."""
        logger.info("Starting scheduler runner...")

        self.scheduler = AutomationScheduler()
        await self.scheduler.start()
        logger.info("Scheduler is now running; press Ctrl+C to stop")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        await self.shutdown.wait()

        await self.scheduler.stop()
        logger.info("Scheduler runner stopped")

    def _set_shutdown(self):
        logger.info("Shutdown signal received")
        self.shutdown.set()


async def list_jobs():
    """Start a scheduler just long enough to print its job table."""
    scheduler = AutomationScheduler()
    await scheduler.start()
    try:
        for row in scheduler.describe_jobs():
            print(f"{row['id']:<14} {row['name']:<22} {row['trigger']}  next: {row['next_run']}")
    finally:
        await scheduler.stop()


async def run_now(job: str) -> int:
    """Run one job immediately, outside the schedule."""
    if job == "phases":
        changed = sync_all_league_phases()
        print(f"Phase sync: {changed} leagues updated")
        return 0

    summary = await run_scoring_job(mode=job)
    for key, value in summary.to_dict().items():
        print(f"{key:>22}: {value}")
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run the Game Fantasy League automation scheduler")
    parser.add_argument("--list-jobs", action="store_true", help="List all scheduled jobs and exit")
    parser.add_argument(
        "--run-now",
        choices=["full", "ccu", "phases"],
        metavar="JOB",
        help="Run one job immediately (full, ccu or phases) and exit",
    )
    args = parser.parse_args()

    if args.list_jobs:
        asyncio.run(list_jobs())
        return 0

    if args.run_now:
        return asyncio.run(run_now(args.run_now))

    runner = SchedulerRunner()
    try:
        asyncio.run(runner.start())
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
