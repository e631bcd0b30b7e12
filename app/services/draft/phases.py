"""
League phase transitions.

``next_phase`` is the only function that decides a league's phase and
status. Both the advance-on-draft-completion path and the calendar
read-repair path call it, so the two can never disagree or move a
league backwards.
"""
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Tuple

from app.models.enums import DRAFT_PHASES, DraftPhase, LeagueStatus

# (month, day) inclusive bounds of each phase's release window
PHASE_WINDOWS = {
    DraftPhase.WINTER: ((1, 1), (4, 30)),
    DraftPhase.SUMMER: ((5, 1), (8, 31)),
    DraftPhase.FALL: ((9, 1), (12, 31)),
}


@dataclass(frozen=True)
class PhaseState:
    phase: DraftPhase
    status: LeagueStatus


def phase_index(phase: str) -> int:
    return DRAFT_PHASES.index(DraftPhase(phase))


def calendar_phase(day: date) -> DraftPhase:
    """Phase whose release window contains ``day``."""
    if day.month <= 4:
        return DraftPhase.WINTER
    if day.month <= 8:
        return DraftPhase.SUMMER
    return DraftPhase.FALL


def season_calendar_phase(day: date, season: str) -> Optional[DraftPhase]:
    """
    Calendar phase of ``day`` as seen by a league playing ``season``.

    None before the season's year starts (the calendar says nothing yet);
    the final phase once the season's year is over.
    """
    year = int(season)
    if day.year < year:
        return None
    if day.year > year:
        return DRAFT_PHASES[-1]
    return calendar_phase(day)


def release_window(phase: str, season: str) -> Tuple[date, date]:
    """First and last release date (inclusive) covered by a phase."""
    year = int(season)
    (start_month, start_day), (end_month, end_day) = PHASE_WINDOWS[DraftPhase(phase)]
    return date(year, start_month, start_day), date(year, end_month, end_day)


def season_end_date(season: str) -> date:
    return date(int(season), 12, 31)


def draft_key(phase: str, season: str) -> str:
    return f"{DraftPhase(phase).value}-{season}"


def next_phase(
    state: PhaseState,
    completed_phases: Iterable[str],
    calendar: Optional[DraftPhase] = None,
) -> PhaseState:
    """
    Compute a league's phase and status.

    Starts from the later of the current phase and the calendar phase and
    walks forward to the first phase whose draft has not completed. If
    none is left the league is completed in the final phase.

    Args:
        state: Current phase and status
        completed_phases: Phases whose draft has completed this season
        calendar: Phase implied by today's date, for read-repair

    Returns:
        The new PhaseState (equal to ``state`` when nothing changes)
    """
    if state.status == LeagueStatus.COMPLETED:
        return state

    completed = {DraftPhase(phase) for phase in completed_phases}
    start = phase_index(state.phase)
    if calendar is not None:
        start = max(start, phase_index(calendar))

    for phase in DRAFT_PHASES[start:]:
        if phase not in completed:
            if completed or phase != DraftPhase(state.phase):
                return PhaseState(phase, LeagueStatus.ACTIVE)
            return PhaseState(phase, state.status)

    return PhaseState(DRAFT_PHASES[-1], LeagueStatus.COMPLETED)
