"""
Prometheus metrics for the Game Fantasy League API.

Metrics exposed:
- Draft picks submitted / skipped and draft errors by code
- Scoring run outcomes, points awarded and run duration
- Storefront (Steam) request outcomes
- Scheduler status gauge

HTTP request metrics come from prometheus-fastapi-instrumentator (see main.py).
"""
from prometheus_client import Counter, Gauge, Histogram

# Draft Metrics
draft_picks_total = Counter(
    "draft_picks_total",
    "Total draft picks committed",
    ["phase", "pick_type"]
)

draft_skips_total = Counter(
    "draft_skips_total",
    "Total draft slots skipped by an administrator"
)

draft_errors_total = Counter(
    "draft_errors_total",
    "Total rejected draft operations",
    ["code"]
)

# Scoring Metrics
scoring_games_total = Counter(
    "scoring_games_total",
    "Games handled by scoring runs",
    ["mode", "outcome"]
)

scoring_points_total = Counter(
    "scoring_points_total",
    "Total points awarded by scoring runs"
)

scoring_run_duration_seconds = Histogram(
    "scoring_run_duration_seconds",
    "Scoring run duration in seconds",
    ["mode"]
)

scoring_last_run_timestamp = Gauge(
    "scoring_last_run_timestamp",
    "Unix time of the last completed scoring run",
    ["mode"]
)

# Storefront API Metrics
steam_requests_total = Counter(
    "steam_requests_total",
    "Storefront API requests by endpoint and outcome",
    ["endpoint", "outcome"]
)

# Scheduler Metrics
scheduler_running = Gauge(
    "scheduler_running",
    "Whether the automation scheduler is running (1=running, 0=stopped)"
)

scheduler_jobs_total = Gauge(
    "scheduler_jobs_total",
    "Total number of scheduled jobs"
)


def update_scheduler_metrics():
    """
    Update scheduler metrics.

    Call this periodically to update scheduler status.
    """
    from app.core.scheduler import get_scheduler

    scheduler = get_scheduler()
    if scheduler and scheduler.running:
        scheduler_running.set(1)
        if scheduler.scheduler:
            scheduler_jobs_total.set(len(scheduler.scheduler.get_jobs()))
    else:
        scheduler_running.set(0)
        scheduler_jobs_total.set(0)


def record_pick(phase: str, pick_type: str):
    """Record a committed pick."""
    draft_picks_total.labels(phase=phase, pick_type=pick_type).inc()


def record_draft_error(code: str):
    """Record a rejected draft operation."""
    draft_errors_total.labels(code=code).inc()


def record_steam_request(endpoint: str, outcome: str = "ok"):
    """Record a storefront request outcome (ok, delisted, rate_limited, unavailable)."""
    steam_requests_total.labels(endpoint=endpoint, outcome=outcome).inc()


def record_scoring_outcome(mode: str, outcome: str, count: int = 1):
    """Record games processed/skipped/failed/delisted in a run."""
    if count:
        scoring_games_total.labels(mode=mode, outcome=outcome).inc(count)
