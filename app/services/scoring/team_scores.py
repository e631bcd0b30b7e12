"""
Team score aggregation.

Team scores are never stored as a source of truth: they are rebuilt from
per-game daily history plus the league's stored bomb adjustments. The
cached ``Team.score`` / ``Team.bomb_adjustment`` columns and the frozen
season snapshot are both derived from ``get_team_scores_history``.
"""
from datetime import date
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import LeagueNotFound
from app.core.logging import get_logger
from app.models import League, SeasonSnapshot, Team
from app.repositories import (
    GameHistoryRepository,
    LeagueRepository,
    LeagueScoringDayRepository,
    SeasonSnapshotRepository,
    TeamRepository,
)
from app.services.draft.phases import season_end_date
from app.utils.timezone import utc_today, utcnow

logger = get_logger(__name__)

PHASE_PICK_COLUMNS = ("winter_picks", "summer_picks", "fall_picks")

ScoreHistory = Dict[str, Dict[date, float]]


def get_all_picked_game_ids(team: Team) -> List[str]:
    """Hit, bomb, seasonal (winter, summer, fall) then alt picks."""
    ids = []
    if team.hit_pick:
        ids.append(team.hit_pick)
    if team.bomb_pick:
        ids.append(team.bomb_pick)
    for column in PHASE_PICK_COLUMNS:
        ids.extend(getattr(team, column) or [])
    ids.extend(team.alt_picks or [])
    return ids


def get_scoring_game_ids(team: Team, delisted: Iterable[str] = ()) -> List[str]:
    """
    Games that score for a team.

    The hit pick plus every seasonal pick, where each delisted seasonal
    pick (in winter, summer, fall order) is replaced by the team's next
    unused alt pick. The bomb pick never scores for its own team.
    """
    delisted_set = set(delisted)
    alts = list(team.alt_picks or [])
    alt_index = 0
    ids = []
    if team.hit_pick:
        ids.append(team.hit_pick)
    for column in PHASE_PICK_COLUMNS:
        for game_id in getattr(team, column) or []:
            if game_id in delisted_set:
                if alt_index < len(alts):
                    ids.append(alts[alt_index])
                alt_index += 1
            else:
                ids.append(game_id)
    return ids


def rank_scores(final_scores: Dict[str, float]) -> List[str]:
    """User ids by score descending, ties by user id ascending."""
    return sorted(final_scores, key=lambda user_id: (-final_scores[user_id], user_id))


class TeamScoreAggregator:
    """Rebuilds cumulative team scores for a league."""

    def __init__(self, db: Session):
        self.db = db
        self.leagues = LeagueRepository(db)
        self.teams = TeamRepository(db)
        self.history = GameHistoryRepository(db)
        self.scoring_days = LeagueScoringDayRepository(db)
        self.snapshots = SeasonSnapshotRepository(db)

    def _league(self, league_id: str) -> League:
        league = self.leagues.find_by_id(league_id)
        if league is None:
            raise LeagueNotFound(f"League {league_id} not found")
        return league

    def get_team_scores_history(self, league_id: str, season_end: Optional[date] = None) -> ScoreHistory:
        """
        Cumulative score per team per date.

        Args:
            league_id: League ID
            season_end: Ignore history and adjustments after this date

        Returns:
            {user_id: {date: cumulative score}} over the union of history dates
        """
        self._league(league_id)
        teams = self.teams.find_by_league(league_id)
        delisted = self.leagues.delisted_game_ids(league_id)

        scoring_ids = {team.user_id: get_scoring_game_ids(team, delisted) for team in teams}
        all_ids = {game_id for ids in scoring_ids.values() for game_id in ids}

        points_by_game: Dict[str, Dict[date, float]] = {
            game_id: {row.date: row.points for row in rows}
            for game_id, rows in self.history.history_by_game(all_ids, until=season_end).items()
        }
        adjustments = self.scoring_days.adjustments_by_date(league_id, until=season_end)
        dates = sorted({day for points in points_by_game.values() for day in points})

        history: ScoreHistory = {team.user_id: {} for team in teams}
        running = {team.user_id: 0.0 for team in teams}
        for day in dates:
            day_adjustments = adjustments.get(day, {})
            for team in teams:
                raw = sum(points_by_game.get(game_id, {}).get(day, 0.0) for game_id in scoring_ids[team.user_id])
                running[team.user_id] += raw + day_adjustments.get(team.user_id, 0.0)
                history[team.user_id][day] = running[team.user_id]
        return history

    def recompute_team_scores(self, league_id: str) -> List[Team]:
        """Refresh the cached score and bomb adjustment on every team."""
        history = self.get_team_scores_history(league_id)
        adjustments = self.scoring_days.adjustments_by_date(league_id)
        teams = self.teams.find_by_league(league_id)
        for team in teams:
            series = history.get(team.user_id, {})
            team.score = series[max(series)] if series else 0.0
            team.bomb_adjustment = sum(day.get(team.user_id, 0.0) for day in adjustments.values())
            self.teams.touch(team)
        self.db.commit()
        return teams

    def get_leaderboard(self, league_id: str) -> List[Team]:
        """Teams by cached score descending, ties by user id."""
        self._league(league_id)
        return sorted(self.teams.find_by_league(league_id), key=lambda team: (-(team.score or 0.0), team.user_id))

    def get_season_snapshot_or_compute(
        self,
        league_id: str,
        season: str,
        today: Optional[date] = None,
    ) -> Optional[SeasonSnapshot]:
        """
        Frozen standings for a finished season.

        Returns the stored snapshot when there is one; otherwise computes and
        stores it if the season has ended, or returns None if it has not.
        """
        self._league(league_id)
        existing = self.snapshots.find(league_id, season)
        if existing is not None:
            return existing

        season_end = season_end_date(season)
        if (today or utc_today()) <= season_end:
            return None

        history = self.get_team_scores_history(league_id, season_end=season_end)
        dates = sorted({day for series in history.values() for day in series})
        final_scores = {
            user_id: (series[dates[-1]] if dates and dates[-1] in series else 0.0)
            for user_id, series in history.items()
        }
        ranked = rank_scores(final_scores)

        snapshot = self.snapshots.create(
            league_id=league_id,
            season=season,
            final_scores=final_scores,
            final_ranks={user_id: rank for rank, user_id in enumerate(ranked, start=1)},
            graph_data={
                "dates": [day.isoformat() for day in dates],
                "series": [
                    {"user_id": user_id, "data": [history[user_id].get(day, 0.0) for day in dates]}
                    for user_id in ranked
                ],
            },
            computed_at=utcnow(),
        )
        try:
            self.db.commit()
        except IntegrityError:
            # Another request froze the season first; theirs stands
            self.db.rollback()
            return self.snapshots.find(league_id, season)

        logger.info(f"Froze season {season} snapshot for league {league_id}")
        return snapshot
