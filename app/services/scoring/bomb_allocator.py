"""
Bomb damage allocation.

Per league per scoring day:
1. Take the day's points of every game in the league's drafted pool.
2. Threshold = 25th percentile of the positive values (0 with fewer
   than 4 values).
3. Each bomb pick scoring below the threshold deals the shortfall as
   damage, split evenly across every other team.
4. Store the day's adjustments and threshold, and move each team's
   cached bomb_adjustment by the change since the last stored record so
   re-runs on the same day are idempotent.
"""
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, Optional, Sequence, Set, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models import League, Team
from app.repositories import LeagueScoringDayRepository, TeamRepository

logger = get_logger(__name__)

BOMB_PERCENTILE = 0.25
BOMB_MIN_SAMPLE = 4


@dataclass
class LeagueBombResult:
    league_id: str
    date: date
    threshold: float
    total_damage: float
    adjustments: Dict[str, float] = field(default_factory=dict)


def compute_bomb_threshold(points: Iterable[float]) -> float:
    """Value at index floor(n * 0.25) of the ascending positive points."""
    positive = sorted(value for value in points if value > 0)
    if len(positive) < BOMB_MIN_SAMPLE:
        return 0.0
    return positive[int(math.floor(len(positive) * BOMB_PERCENTILE))]


def compute_bomb_adjustments(
    bombs: Sequence[Tuple[str, Optional[str]]],
    daily_points: Dict[str, float],
    threshold: float,
) -> Tuple[Dict[str, float], float]:
    """
    Spread each under-performing bomb's damage over the other teams.

    Args:
        bombs: (user_id, bomb game id or None) for every team in the league
        daily_points: game_id -> today's points (missing means 0)
        threshold: Today's bomb threshold

    Returns:
        (user_id -> signed adjustment, total damage dealt)
    """
    adjustments = {user_id: 0.0 for user_id, _ in bombs}
    if threshold <= 0 or len(bombs) < 2:
        return adjustments, 0.0

    total_damage = 0.0
    share_count = len(bombs) - 1
    for user_id, bomb_game_id in bombs:
        if not bomb_game_id:
            continue
        damage = max(0.0, threshold - daily_points.get(bomb_game_id, 0.0))
        if damage <= 0:
            continue
        total_damage += damage
        share = damage / share_count
        for other_id in adjustments:
            if other_id != user_id:
                adjustments[other_id] -= share
    return adjustments, total_damage


def picked_game_ids(team: Team) -> Set[str]:
    """Every game a team drafted: hit, bomb, seasonal and alt picks."""
    ids = {team.hit_pick, team.bomb_pick}
    for column in (team.winter_picks, team.summer_picks, team.fall_picks, team.alt_picks):
        ids.update(column or [])
    ids.discard(None)
    return ids


class BombDamageAllocator:
    """Computes and stages one league's bomb adjustments for a day."""

    def __init__(self, db: Session):
        self.db = db
        self.teams = TeamRepository(db)
        self.scoring_days = LeagueScoringDayRepository(db)

    def compute(self, league: League, day: date, daily_points: Dict[str, float]) -> LeagueBombResult:
        teams = self.teams.find_by_league(league.id)
        pool: Set[str] = set()
        for team in teams:
            pool |= picked_game_ids(team)

        threshold = compute_bomb_threshold(daily_points[game_id] for game_id in pool if game_id in daily_points)
        adjustments, total_damage = compute_bomb_adjustments(
            [(team.user_id, team.bomb_pick) for team in teams],
            daily_points,
            threshold,
        )
        return LeagueBombResult(
            league_id=league.id,
            date=day,
            threshold=threshold,
            total_damage=total_damage,
            adjustments=adjustments,
        )

    def apply(self, result: LeagueBombResult) -> None:
        """
        Upsert the day's record and shift cached team adjustments by the
        difference from what was stored before. Does not commit.
        """
        record = self.scoring_days.find_on(result.league_id, result.date)
        previous: Dict[str, float] = dict(record.bomb_adjustments or {}) if record else {}
        stored = {user_id: value for user_id, value in result.adjustments.items() if value}

        if record is None:
            self.scoring_days.create(
                league_id=result.league_id,
                date=result.date,
                bomb_adjustments=stored,
                bomb_threshold=result.threshold,
                total_damage=result.total_damage,
            )
        else:
            record.bomb_adjustments = stored
            record.bomb_threshold = result.threshold
            record.total_damage = result.total_damage
            self.scoring_days.touch(record)

        for user_id in set(previous) | set(stored):
            change = stored.get(user_id, 0.0) - previous.get(user_id, 0.0)
            if change:
                self.db.execute(
                    update(Team)
                    .where(Team.league_id == result.league_id, Team.user_id == user_id)
                    .values(bomb_adjustment=Team.bomb_adjustment + change)
                )

        logger.debug(
            f"League {result.league_id} {result.date}: threshold {result.threshold:.2f}, "
            f"damage {result.total_damage:.2f}"
        )
