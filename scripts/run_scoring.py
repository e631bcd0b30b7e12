#!/usr/bin/env python3
"""
Run one scoring pass from the command line.

Examples:
    python scripts/run_scoring.py                       # full run for today (UTC)
    python scripts/run_scoring.py --mode ccu            # off-peak player sample
    python scripts/run_scoring.py --dry-run --date 2026-03-01
    python scripts/run_scoring.py --concurrency 1 --delay 3
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from app.core.config import settings
from app.core.database import SessionLocal
from app.core.exceptions import PersistenceConflict
from app.core.logging import configure_logging, get_logger
from app.models import ScoringMode
from app.services.scoring.scoring_engine import ScoringEngine
from app.utils.timezone import parse_date

logger = get_logger(__name__)


async def main() -> int:
    parser = argparse.ArgumentParser(description="Score the game catalog from storefront telemetry")
    parser.add_argument('--mode', choices=[mode.value for mode in ScoringMode], default=ScoringMode.FULL.value,
                        help='full scoring run or ccu sample (default: full)')
    parser.add_argument('--dry-run', action='store_true',
                        help='Compute and log points without writing anything')
    parser.add_argument('--concurrency', type=int, default=None,
                        help=f'Parallel requests (default: {settings.SCORING_CONCURRENCY})')
    parser.add_argument('--delay', type=float, default=None,
                        help=f'Seconds between request starts (default: {settings.SCORING_REQUEST_DELAY})')
    parser.add_argument('--date', type=str, default=None,
                        help='Scoring date YYYY-MM-DD (default: today, UTC)')
    parser.add_argument('--verbose', action='store_true', help='Log every game')
    args = parser.parse_args()

    configure_logging(level="DEBUG" if args.verbose else settings.LOG_LEVEL, json_output=False)

    today = parse_date(args.date)
    if args.date and today is None:
        parser.error(f"invalid --date {args.date!r}, expected YYYY-MM-DD")

    db = SessionLocal()
    try:
        engine = ScoringEngine(db, concurrency=args.concurrency, request_delay=args.delay)
        summary = await engine.run(mode=args.mode, dry_run=args.dry_run, today=today)
    except PersistenceConflict as exc:
        logger.error(f"Scoring run aborted: {exc}")
        return 1
    finally:
        db.close()

    print(json.dumps(summary.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
