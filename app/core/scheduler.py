"""
Automated task scheduler for the Game Fantasy League API.

This module provides scheduled background jobs for:
- Daily full scoring run (telemetry, points, bomb damage)
- Off-peak concurrent-player snapshots
- Daily league phase read-repair

Scheduler: APScheduler (lightweight, FastAPI-compatible)
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.config import settings
from app.core.database import SessionLocal
from app.models import ScoringMode
from app.repositories import LeagueRepository
from app.services.draft.phase_scheduler import PhaseScheduler
from app.services.scoring.scoring_engine import ScoringEngine

logger = logging.getLogger(__name__)


async def run_scoring_job(mode: str = ScoringMode.FULL.value, dry_run: bool = False):
    """Run one scoring pass in its own session (shared by jobs and the CLI)."""
    db = SessionLocal()
    try:
        return await ScoringEngine(db).run(mode=mode, dry_run=dry_run)
    finally:
        db.close()


def sync_all_league_phases() -> int:
    """Read-repair every league still in play. Returns how many changed."""
    db = SessionLocal()
    try:
        scheduler = PhaseScheduler(db)
        changed = 0
        for league in LeagueRepository(db).find_in_play():
            before = (league.current_phase, league.status)
            state = scheduler.sync_league_current_phase(league.id)
            if (state.phase.value, state.status.value) != before:
                changed += 1
        return changed
    finally:
        db.close()


class AutomationScheduler:
    """Owns the AsyncIOScheduler and the scoring and phase jobs."""

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting automation scheduler...")

        self.scheduler = AsyncIOScheduler(
            timezone=settings.SCHEDULER_TIMEZONE,
            job_defaults={
                'coalesce': True,  # Combine missed runs into one
                'max_instances': 1,  # Only one instance of each job
                'misfire_grace_time': 300  # 5 minutes grace for misfires
            }
        )

        self._schedule_full_scoring()
        self._schedule_ccu_snapshots()
        self._schedule_phase_sync()

        self.scheduler.start()
        self.running = True

        logger.info("Scheduler started with %d jobs", len(self.scheduler.get_jobs()))
        for row in self.describe_jobs():
            logger.info("Job %s (%s) next run %s", row["id"], row["name"], row["next_run"] or "pending")

    async def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=True)
        self.running = False
        logger.info("Scheduler stopped")

    def _schedule_full_scoring(self):
        """
        Schedule: Full scoring run.

        Frequency: Daily at SCORING_CRON_HOUR:SCORING_CRON_MINUTE
        Purpose: Award the day's points and bomb damage
        """
        if self.scheduler is None:
            return

        @self.scheduler.scheduled_job(
            trigger=CronTrigger(
                hour=settings.SCORING_CRON_HOUR,
                minute=settings.SCORING_CRON_MINUTE,
                timezone=settings.SCHEDULER_TIMEZONE
            ),
            id='scoring_full',
            name='Daily Scoring Run',
            misfire_grace_time=3600
        )
        async def full_scoring_job():
            try:
                summary = await run_scoring_job(ScoringMode.FULL.value)
                logger.info(
                    f"Scoring: {summary.processed} scored, {summary.skipped} skipped, "
                    f"{summary.failed} failed, {summary.delisted} delisted ({summary.duration_ms}ms)"
                )
            except Exception:
                logger.exception("Daily scoring run failed")

        logger.info(
            f"Scheduled: Full scoring (daily {settings.SCORING_CRON_HOUR:02d}:{settings.SCORING_CRON_MINUTE:02d})"
        )

    def _schedule_ccu_snapshots(self):
        """
        Schedule: Off-peak concurrent-player samples.

        Frequency: Daily at each hour in CCU_SNAPSHOT_HOURS
        Purpose: Let the next full run use the day's higher player count
        """
        if self.scheduler is None or not settings.ccu_snapshot_hours:
            return

        @self.scheduler.scheduled_job(
            trigger=CronTrigger(
                hour=",".join(str(hour) for hour in settings.ccu_snapshot_hours),
                minute=0,
                timezone=settings.SCHEDULER_TIMEZONE
            ),
            id='scoring_ccu',
            name='CCU Snapshot',
            misfire_grace_time=600
        )
        async def ccu_snapshot_job():
            try:
                summary = await run_scoring_job(ScoringMode.CCU.value)
                logger.info(f"CCU snapshot: {summary.processed} sampled, {summary.failed} failed")
            except Exception:
                logger.exception("CCU snapshot failed")

        logger.info(f"Scheduled: CCU snapshots (hours {settings.ccu_snapshot_hours})")

    def _schedule_phase_sync(self):
        """
        Schedule: League phase read-repair.

        Frequency: Daily at 00:05
        Purpose: Catch leagues whose phase advance was missed
        """
        if self.scheduler is None:
            return

        @self.scheduler.scheduled_job(
            trigger=CronTrigger(hour=0, minute=5, timezone=settings.SCHEDULER_TIMEZONE),
            id='phase_sync',
            name='League Phase Sync',
            misfire_grace_time=3600
        )
        async def phase_sync_job():
            try:
                changed = sync_all_league_phases()
                logger.info(f"Phase sync: {changed} leagues updated")
            except Exception:
                logger.exception("Phase sync failed")

        logger.info("Scheduled: League phase sync (daily 00:05)")

    def describe_jobs(self) -> list[dict]:
        """id, name, trigger and next run time of every registered job."""
        if self.scheduler is None:
            return []
        rows = []
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            rows.append({
                "id": job.id,
                "name": job.name,
                "trigger": str(job.trigger),
                "next_run": next_run.isoformat() if next_run else None,
            })
        return rows


_scheduler: Optional[AutomationScheduler] = None


async def start_scheduler() -> AutomationScheduler:
    """Start the process-wide scheduler once; later calls return the running instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AutomationScheduler()
        await _scheduler.start()
    return _scheduler


async def stop_scheduler():
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None


def get_scheduler() -> Optional[AutomationScheduler]:
    return _scheduler
