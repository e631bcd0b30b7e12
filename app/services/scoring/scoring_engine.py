"""
Daily scoring run.

Flow for a full run:
1. Select scoreable games and preload their history and metrics.
2. Skip games that already have a history entry for today (their stored
   points still feed the bomb allocator).
3. Fetch telemetry for the rest through a bounded, staggered worker pool
   with per-game retry on rate limits and transient upstream errors.
4. Compute deltas, points, milestones and breakouts.
5. Write history + metrics + atomic score increments in size-bounded
   batches, retried with exponential backoff.
6. Flag delisted games on every league still in play where a team holds
   them as an active (scoring) pick.
7. Allocate bomb damage per league.

A ``ccu`` run only samples current players and stores the sample on the
game's metrics so the day's full run can use the higher of the two.

Workers share no mutable state: everything they read is loaded before
the pool starts and every write happens after it finishes.
"""
import asyncio
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from tenacity import RetryCallState, wait_exponential

from app.core.config import settings
from app.core.exceptions import Delisted, PersistenceConflict, RateLimited, UpstreamUnavailable
from app.core.logging import clear_run_id, get_logger, set_run_id
from app.core.metrics import (
    record_scoring_outcome,
    scoring_last_run_timestamp,
    scoring_points_total,
    scoring_run_duration_seconds,
)
from app.core.retry import bounded_retry, wait_retry_after
from app.models import GameActivity, GameMetrics, ScoringMode
from app.repositories import (
    GameHistoryRepository,
    GameMetricsRepository,
    LeagueRepository,
    TeamRepository,
)
from app.services.catalog_service import CatalogService
from app.services.scoring.bomb_allocator import BombDamageAllocator
from app.services.scoring.breakout import detect_breakout
from app.services.scoring.formulas import (
    DailyDelta,
    activity_status,
    compute_delta,
    daily_base_points,
)
from app.services.scoring.milestones import evaluate_milestones
from app.services.scoring.steam_client import SteamClient, SteamTelemetry
from app.services.scoring.team_scores import get_scoring_game_ids
from app.utils.timezone import days_between, utc_today, utcnow

logger = get_logger(__name__)

SCORED = "scored"
FAILED = "failed"
DELISTED = "delisted"

Wait = Callable[[RetryCallState], float]


@dataclass
class GameContext:
    """Everything a worker needs about one game, loaded before the pool starts."""
    game_id: str
    app_id: str
    release_date: date
    previous_owners: int = 0
    previous_reviews: int = 0
    prior_ccu: List[int] = field(default_factory=list)
    milestones: Set[str] = field(default_factory=set)
    breakout_awarded: bool = False
    off_peak_ccu: Optional[int] = None
    existing_points: Optional[float] = None


@dataclass
class GameOutcome:
    game_id: str
    status: str
    telemetry: Optional[SteamTelemetry] = None
    delta: Optional[DailyDelta] = None
    base_points: float = 0.0
    milestone_bonus: float = 0.0
    breakout_bonus: float = 0.0
    new_milestones: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def points(self) -> float:
        return self.base_points + self.milestone_bonus + self.breakout_bonus


@dataclass
class ScoringRunSummary:
    date: str
    mode: str
    dry_run: bool
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    delisted: int = 0
    total_points: float = 0.0
    milestone_bonus_total: float = 0.0
    breakout_bonus_total: float = 0.0
    bomb_threshold: float = 0.0
    total_bomb_damage: float = 0.0
    leagues_processed: int = 0
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ScoringEngine:
    """Orchestrates one scoring run over the whole catalog."""

    def __init__(
        self,
        db: Session,
        client: Optional[SteamClient] = None,
        concurrency: Optional[int] = None,
        request_delay: Optional[float] = None,
        max_attempts: Optional[int] = None,
        max_retry_after: Optional[float] = None,
        batch_size: Optional[int] = None,
        batch_max_attempts: Optional[int] = None,
        retry_wait: Optional[Wait] = None,
        batch_wait: Optional[Wait] = None,
    ):
        """
        Args:
            db: Database session
            client: Storefront client (a default SteamClient is created and closed per run)
            concurrency: Worker pool size
            request_delay: Minimum seconds between request starts
            max_attempts: Fetch attempts per game
            max_retry_after: Cap on the server-provided Retry-After
            batch_size: Games per write batch
            batch_max_attempts: Commit attempts per batch
            retry_wait: Override the fetch retry wait strategy
            batch_wait: Override the batch retry wait strategy
        """
        self.db = db
        self.client = client
        self.concurrency = max(1, concurrency if concurrency is not None else settings.SCORING_CONCURRENCY)
        self.request_delay = max(0.0, request_delay if request_delay is not None else settings.SCORING_REQUEST_DELAY)
        self.max_attempts = max_attempts or settings.SCORING_MAX_ATTEMPTS
        self.batch_size = max(1, batch_size or settings.SCORING_BATCH_SIZE)
        self.batch_max_attempts = batch_max_attempts or settings.SCORING_BATCH_MAX_ATTEMPTS
        self.retry_wait = retry_wait or wait_retry_after(
            cap=max_retry_after if max_retry_after is not None else settings.SCORING_MAX_RETRY_AFTER
        )
        self.batch_wait = batch_wait or wait_exponential(multiplier=0.5, max=30)

        self.catalog = CatalogService(db)
        self.history = GameHistoryRepository(db)
        self.metrics = GameMetricsRepository(db)
        self.leagues = LeagueRepository(db)
        self.teams = TeamRepository(db)
        self.allocator = BombDamageAllocator(db)

        self._next_start = 0.0
        self._start_lock: Optional[asyncio.Lock] = None

    # ========================================================================
    # Entry point
    # ========================================================================

    async def run(
        self,
        mode: str = ScoringMode.FULL.value,
        dry_run: bool = False,
        today: Optional[date] = None,
    ) -> ScoringRunSummary:
        """
        Run scoring once.

        Args:
            mode: "full" or "ccu"
            dry_run: Compute and log only
            today: Scoring date (defaults to today in UTC)

        Returns:
            ScoringRunSummary

        Raises:
            PersistenceConflict: A write batch failed after every retry
        """
        mode = ScoringMode(mode)
        today = today or utc_today()
        summary = ScoringRunSummary(date=today.isoformat(), mode=mode.value, dry_run=dry_run)
        started = time.monotonic()
        token = set_run_id(uuid.uuid4().hex[:12])

        own_client = self.client is None
        client = self.client or SteamClient()
        try:
            logger.info(f"Scoring run started: mode={mode.value} date={today} dry_run={dry_run}")
            contexts = self._load_contexts(today)
            if mode == ScoringMode.CCU:
                await self._run_ccu(client, contexts, today, summary)
            else:
                await self._run_full(client, contexts, today, summary)
        finally:
            if own_client:
                await client.close()
            summary.duration_ms = int((time.monotonic() - started) * 1000)
            scoring_run_duration_seconds.labels(mode=mode.value).observe(summary.duration_ms / 1000)
            clear_run_id(token)

        scoring_last_run_timestamp.labels(mode=mode.value).set(time.time())
        logger.info(
            f"Scoring run finished: processed={summary.processed} skipped={summary.skipped} "
            f"failed={summary.failed} delisted={summary.delisted} points={summary.total_points:.2f} "
            f"leagues={summary.leagues_processed} in {summary.duration_ms}ms"
        )
        return summary

    # ========================================================================
    # Modes
    # ========================================================================

    async def _run_full(
        self,
        client: SteamClient,
        contexts: List[GameContext],
        today: date,
        summary: ScoringRunSummary,
    ) -> None:
        daily_points: Dict[str, float] = {}
        to_fetch: List[GameContext] = []
        for ctx in contexts:
            if ctx.existing_points is not None:
                daily_points[ctx.game_id] = ctx.existing_points
                summary.skipped += 1
            else:
                to_fetch.append(ctx)

        outcomes = await self._gather(client, to_fetch, today, self._score_game)
        scored = [outcome for outcome in outcomes if outcome.status == SCORED]
        delisted = [outcome for outcome in outcomes if outcome.status == DELISTED]

        summary.processed = len(scored)
        summary.failed = sum(1 for outcome in outcomes if outcome.status == FAILED)
        summary.delisted = len(delisted)
        for outcome in scored:
            daily_points[outcome.game_id] = outcome.points
            summary.total_points += outcome.points
            summary.milestone_bonus_total += outcome.milestone_bonus
            summary.breakout_bonus_total += outcome.breakout_bonus
            logger.debug(
                f"{outcome.game_id}: {outcome.points:.2f} pts (base {outcome.base_points:.2f}, "
                f"milestones {outcome.milestone_bonus:.0f}, breakout {outcome.breakout_bonus:.0f})"
            )

        if not summary.dry_run:
            for start in range(0, len(scored), self.batch_size):
                self._write_with_retry(self._stage_scores, scored[start:start + self.batch_size], today)
            if delisted:
                self._write_with_retry(self._stage_delisted, [outcome.game_id for outcome in delisted])
            scoring_points_total.inc(summary.total_points)

        self._allocate_bombs(daily_points, today, summary)

        record_scoring_outcome(summary.mode, "processed", summary.processed)
        record_scoring_outcome(summary.mode, "skipped", summary.skipped)
        record_scoring_outcome(summary.mode, "failed", summary.failed)
        record_scoring_outcome(summary.mode, "delisted", summary.delisted)

    async def _run_ccu(
        self,
        client: SteamClient,
        contexts: List[GameContext],
        today: date,
        summary: ScoringRunSummary,
    ) -> None:
        outcomes = await self._gather(client, contexts, today, self._sample_ccu)
        sampled = [outcome for outcome in outcomes if outcome.status == SCORED]
        summary.processed = len(sampled)
        summary.failed = len(outcomes) - len(sampled)

        if not summary.dry_run:
            for start in range(0, len(sampled), self.batch_size):
                self._write_with_retry(self._stage_ccu_samples, sampled[start:start + self.batch_size], today)

        record_scoring_outcome(summary.mode, "processed", summary.processed)
        record_scoring_outcome(summary.mode, "failed", summary.failed)

    # ========================================================================
    # Preload
    # ========================================================================

    def _load_contexts(self, today: date) -> List[GameContext]:
        games = self.catalog.scoreable_games(today)
        ids = [game.id for game in games]
        histories = self.history.history_by_game(ids, until=today)
        metrics = self.metrics.find_many(ids)

        contexts = []
        for game in games:
            rows = histories.get(game.id, [])
            prior = [row for row in rows if row.date < today]
            todays = [row for row in rows if row.date == today]
            previous = prior[-1] if prior else None
            current = metrics.get(game.id)
            contexts.append(GameContext(
                game_id=game.id,
                app_id=str(game.steam_app_id),
                release_date=game.release_date,
                previous_owners=previous.estimated_owners if previous else 0,
                previous_reviews=previous.reviews_total if previous else 0,
                prior_ccu=[row.ccu for row in prior],
                milestones=set(current.milestones or []) if current else set(),
                breakout_awarded=bool(current.breakout_awarded) if current else False,
                off_peak_ccu=current.off_peak_ccu if current and current.off_peak_date == today else None,
                existing_points=todays[0].points if todays else None,
            ))
        logger.info(f"Loaded {len(contexts)} scoreable games for {today}")
        return contexts

    # ========================================================================
    # Worker pool
    # ========================================================================

    async def _gather(self, client, contexts, today, work) -> List[GameOutcome]:
        semaphore = asyncio.Semaphore(self.concurrency)
        self._start_lock = asyncio.Lock()
        self._next_start = 0.0

        async def worker(ctx: GameContext) -> GameOutcome:
            async with semaphore:
                return await work(client, ctx, today)

        return list(await asyncio.gather(*(worker(ctx) for ctx in contexts)))

    async def _throttle(self) -> None:
        """Hold each request start at least ``request_delay`` after the previous one."""
        async with self._start_lock:
            loop = asyncio.get_running_loop()
            delay = self._next_start - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
            self._next_start = loop.time() + self.request_delay

    async def _fetch(self, client: SteamClient, fetch, app_id: str):
        retrying = bounded_retry(
            self.max_attempts,
            self.retry_wait,
            (RateLimited, UpstreamUnavailable),
            is_async=True,
            log=logger,
        )

        async def attempt():
            await self._throttle()
            return await fetch(app_id)

        return await retrying(attempt)

    async def _score_game(self, client: SteamClient, ctx: GameContext, today: date) -> GameOutcome:
        try:
            telemetry = await self._fetch(client, client.fetch_telemetry, ctx.app_id)
        except Delisted as exc:
            logger.warning(f"{ctx.game_id} (app {ctx.app_id}) delisted: {exc}")
            return GameOutcome(ctx.game_id, DELISTED, error=str(exc))
        except (RateLimited, UpstreamUnavailable) as exc:
            logger.warning(f"{ctx.game_id} (app {ctx.app_id}) failed after retries: {exc}")
            return GameOutcome(ctx.game_id, FAILED, error=str(exc))

        delta = compute_delta(
            reviews_total=telemetry.reviews_total,
            reviews_positive=telemetry.reviews_positive,
            current_ccu=telemetry.ccu,
            days_since_release=days_between(ctx.release_date, today),
            previous_owners=ctx.previous_owners,
            previous_reviews=ctx.previous_reviews,
            off_peak_ccu=ctx.off_peak_ccu,
        )
        milestone_bonus, new_milestones = evaluate_milestones(
            delta.reviews_total, delta.peak_ccu, delta.positive_ratio, ctx.milestones
        )
        breakout_bonus = detect_breakout(delta.peak_ccu, ctx.prior_ccu, ctx.breakout_awarded)
        if breakout_bonus:
            logger.info(f"{ctx.game_id} breakout at {delta.peak_ccu} players")

        return GameOutcome(
            game_id=ctx.game_id,
            status=SCORED,
            telemetry=telemetry,
            delta=delta,
            base_points=daily_base_points(delta),
            milestone_bonus=milestone_bonus,
            breakout_bonus=breakout_bonus,
            new_milestones=new_milestones,
        )

    async def _sample_ccu(self, client: SteamClient, ctx: GameContext, today: date) -> GameOutcome:
        try:
            ccu = await self._fetch(client, client.fetch_current_players, ctx.app_id)
        except (RateLimited, UpstreamUnavailable) as exc:
            logger.warning(f"{ctx.game_id} CCU sample failed: {exc}")
            return GameOutcome(ctx.game_id, FAILED, error=str(exc))
        return GameOutcome(ctx.game_id, SCORED, telemetry=SteamTelemetry(0, 0, ccu))

    # ========================================================================
    # Writes
    # ========================================================================

    def _write_with_retry(self, stage: Callable, *args) -> None:
        """Stage writes and commit; on failure roll back and retry the whole batch."""

        def attempt():
            try:
                stage(*args)
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise

        retrying = bounded_retry(self.batch_max_attempts, self.batch_wait, (SQLAlchemyError,), log=logger)
        try:
            retrying(attempt)
        except SQLAlchemyError as exc:
            raise PersistenceConflict(f"Batch write failed after {self.batch_max_attempts} attempts: {exc}") from exc

    def _metrics_row(self, game_id: str) -> GameMetrics:
        row = self.metrics.find_by_id(game_id)
        if row is None:
            row = self.metrics.create(
                game_id=game_id,
                estimated_owners=0,
                ccu=0,
                reviews_total=0,
                reviews_positive=0,
                status=GameActivity.INACTIVE.value,
                score=0.0,
                milestones=[],
                breakout_awarded=False,
                delisted=False,
                last_updated=utcnow(),
            )
            self.db.flush()
        return row

    def _stage_scores(self, outcomes: Sequence[GameOutcome], today: date) -> None:
        for outcome in outcomes:
            # A concurrent run may have written today's entry since preload
            if self.history.entry_on(outcome.game_id, today):
                continue
            delta = outcome.delta
            self.history.create(
                game_id=outcome.game_id,
                date=today,
                estimated_owners=delta.estimated_owners,
                sales_delta=delta.sales_delta,
                ccu=delta.peak_ccu,
                reviews_total=delta.reviews_total,
                reviews_delta=delta.reviews_delta,
                positive_ratio=delta.positive_ratio,
                points=outcome.points,
                base_points=outcome.base_points,
                milestone_bonus=outcome.milestone_bonus,
                breakout_bonus=outcome.breakout_bonus,
                days_since_release=delta.days_since_release,
            )

            row = self._metrics_row(outcome.game_id)
            held = list(row.milestones or [])
            row.milestones = held + [milestone for milestone in outcome.new_milestones if milestone not in held]
            row.breakout_awarded = bool(row.breakout_awarded) or outcome.breakout_bonus > 0
            row.estimated_owners = delta.estimated_owners
            row.ccu = delta.peak_ccu
            row.reviews_total = delta.reviews_total
            row.reviews_positive = outcome.telemetry.reviews_positive
            row.status = activity_status(delta.estimated_owners, delta.sales_delta, delta.peak_ccu)
            row.delisted = False
            row.last_updated = utcnow()
            self.db.flush()
            self.metrics.increment_score(outcome.game_id, outcome.points)

    def _stage_ccu_samples(self, outcomes: Sequence[GameOutcome], today: date) -> None:
        for outcome in outcomes:
            row = self._metrics_row(outcome.game_id)
            sample = outcome.telemetry.ccu
            if row.off_peak_date == today and row.off_peak_ccu:
                sample = max(sample, row.off_peak_ccu)
            row.off_peak_ccu = sample
            row.off_peak_date = today
            row.last_updated = utcnow()

    def _stage_delisted(self, game_ids: Sequence[str]) -> None:
        for game_id in game_ids:
            row = self._metrics_row(game_id)
            row.delisted = True
            row.status = GameActivity.DELISTED.value
            row.last_updated = utcnow()

        delisted = set(game_ids)
        for league in self.leagues.find_in_play():
            already = self.leagues.delisted_game_ids(league.id)
            held: Set[str] = set()
            for team in self.teams.find_by_league(league.id):
                held.update(get_scoring_game_ids(team, already))
            for game_id in sorted(delisted & held):
                if self.leagues.add_delisted_game(league.id, game_id):
                    logger.info(f"League {league.id}: {game_id} flagged delisted")

    # ========================================================================
    # Bomb damage
    # ========================================================================

    def _allocate_bombs(self, daily_points: Dict[str, float], today: date, summary: ScoringRunSummary) -> None:
        for league in self.leagues.find_in_play():
            result = self.allocator.compute(league, today, daily_points)
            if not summary.dry_run:
                self._write_with_retry(self.allocator.apply, result)
            summary.leagues_processed += 1
            summary.bomb_threshold = max(summary.bomb_threshold, result.threshold)
            summary.total_bomb_damage += result.total_damage
