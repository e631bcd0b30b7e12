"""
Domain exceptions.

Every error carries a stable ``code`` (returned to API clients) and the HTTP
status it maps to. Draft errors are raised straight to the caller and are
never retried; scoring errors are per game and are counted by the run.
"""
from typing import Optional


class FantasyLeagueError(Exception):
    """Base class for all domain errors."""

    code = "error"
    status_code = 400

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code


# =============================================================================
# DRAFT ERRORS
# =============================================================================

class DraftError(FantasyLeagueError):
    """Draft operation rejected."""


class DraftNotFound(DraftError):
    """Draft not found."""
    code = "draft_not_found"
    status_code = 404


class DraftStateError(DraftError):
    """Draft is not in a state that allows this operation."""
    code = "draft_state"
    status_code = 409


class NotYourTurn(DraftError):
    """It is not this user's turn to pick."""
    code = "not_your_turn"
    status_code = 409


class GameAlreadyDrafted(DraftError):
    """That game has already been drafted."""
    code = "game_already_drafted"
    status_code = 409


class InvalidPickType(DraftError):
    """That pick type is not available to this user right now."""
    code = "invalid_pick_type"
    status_code = 422


class GameUnavailable(DraftError):
    """That game is not available for draft."""
    code = "game_unavailable"
    status_code = 422


class InvalidDraftOrder(DraftError):
    """Draft order must be a permutation of the league members."""
    code = "invalid_draft_order"
    status_code = 422


# =============================================================================
# LEAGUE ERRORS
# =============================================================================

class LeagueNotFound(FantasyLeagueError):
    """League not found."""
    code = "league_not_found"
    status_code = 404


class TeamNotFound(FantasyLeagueError):
    """Team not found."""
    code = "team_not_found"
    status_code = 404


class LeagueCodeInUse(FantasyLeagueError):
    """League code already in use."""
    code = "league_code_in_use"
    status_code = 409


class LeagueInProgress(FantasyLeagueError):
    """Cannot join a league that is already in progress."""
    code = "league_in_progress"
    status_code = 409


# =============================================================================
# SCORING ERRORS
# =============================================================================

class ScoringError(FantasyLeagueError):
    """Telemetry fetch failed for a single game."""
    status_code = 502


class RateLimited(ScoringError):
    """Upstream rate limit hit (HTTP 429)."""
    code = "rate_limited"
    status_code = 429

    def __init__(self, message: Optional[str] = None, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamUnavailable(ScoringError):
    """Upstream telemetry source unavailable."""
    code = "upstream_unavailable"


class Delisted(ScoringError):
    """Game is no longer listed on the storefront."""
    code = "delisted"
    status_code = 410


# =============================================================================
# PERSISTENCE
# =============================================================================

class PersistenceConflict(FantasyLeagueError):
    """Write could not be committed; re-read and retry."""
    code = "persistence_conflict"
    status_code = 409
