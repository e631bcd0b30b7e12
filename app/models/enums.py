"""
Enumerations shared by models, services and API schemas.

Values are stored as plain strings in the database.
"""
from enum import Enum


class DraftPhase(str, Enum):
    """Seasonal draft windows, in the only order a league may move through them."""
    WINTER = "winter"
    SUMMER = "summer"
    FALL = "fall"


DRAFT_PHASES = [DraftPhase.WINTER, DraftPhase.SUMMER, DraftPhase.FALL]


class LeagueStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"


class DraftStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class PickType(str, Enum):
    """Roles a drafted game can fill on a team."""
    HIT = "hitPick"
    BOMB = "bombPick"
    SEASONAL = "seasonalPick"
    ALT = "altPick"


class ScoringMode(str, Enum):
    """Scoring run modes: full scoring, or a lightweight concurrent-users sample."""
    FULL = "full"
    CCU = "ccu"


class GameActivity(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    DELISTED = "Delisted"
