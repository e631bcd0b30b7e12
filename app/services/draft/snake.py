"""
Snake-draft arithmetic.

Pure functions shared by draft start, pick submission and skip so every
path derives the turn from the same flat pick index.

Round parity: odd rounds (1, 3, ...) pick in ``order``; even rounds pick
in reverse. The flat index ``i`` (picks recorded plus slots skipped) maps
to ``round = i // N + 1`` and ``position = i % N``.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from app.models.enums import DraftPhase, PickType

SEASONAL_PICKS_BY_PLAYER_COUNT: Dict[int, int] = {
    2: 8,
    3: 6,
    4: 4,
    5: 3,
    6: 2,
    7: 2,
    8: 2,
}
DEFAULT_SEASONAL_PICKS = 2

# hit + bomb + alt in winter, alt only in summer/fall
WINTER_EXTRA_ROUNDS = 3
SEASONAL_PHASE_EXTRA_ROUNDS = 1


@dataclass(frozen=True)
class CurrentPick:
    """The slot on the clock."""
    round: int
    position: int
    user_id: str


@dataclass(frozen=True)
class TeamSlot:
    """
    Where a pick type is stored on a team.

    ``attribute`` is a fixed column name, or None for the phase's own
    seasonal list (``winter_picks`` / ``summer_picks`` / ``fall_picks``).
    """
    attribute: Optional[str]
    singleton: bool

    def column(self, phase: str) -> str:
        return self.attribute or f"{DraftPhase(phase).value}_picks"


PICK_SLOTS: Dict[PickType, TeamSlot] = {
    PickType.HIT: TeamSlot("hit_pick", singleton=True),
    PickType.BOMB: TeamSlot("bomb_pick", singleton=True),
    PickType.SEASONAL: TeamSlot(None, singleton=False),
    PickType.ALT: TeamSlot("alt_picks", singleton=False),
}

if set(PICK_SLOTS) != set(PickType):
    raise RuntimeError(f"PICK_SLOTS must map every PickType, missing {set(PickType) - set(PICK_SLOTS)}")


def snake_order(order: Sequence[str], round_number: int) -> List[str]:
    """Effective pick order for a 1-indexed round."""
    if round_number % 2 == 1:
        return list(order)
    return list(reversed(order))


def seasonal_picks_for_player_count(player_count: int) -> int:
    return SEASONAL_PICKS_BY_PLAYER_COUNT.get(player_count, DEFAULT_SEASONAL_PICKS)


def total_rounds(phase: str, seasonal_picks: int) -> int:
    if DraftPhase(phase) == DraftPhase.WINTER:
        return seasonal_picks + WINTER_EXTRA_ROUNDS
    return seasonal_picks + SEASONAL_PHASE_EXTRA_ROUNDS


def total_slots(order: Sequence[str], phase: str, seasonal_picks: int) -> int:
    return total_rounds(phase, seasonal_picks) * len(order)


def calculate_next_pick(
    order: Sequence[str],
    index: int,
    phase: str,
    seasonal_picks: int,
) -> Optional[CurrentPick]:
    """
    Resolve the slot at flat ``index``.

    Args:
        order: Draft order fixed at start
        index: Flat slot index (0-based)
        phase: Draft phase
        seasonal_picks: Seasonal picks per player

    Returns:
        The CurrentPick, or None when every slot has been consumed
    """
    player_count = len(order)
    if player_count == 0 or index >= total_slots(order, phase, seasonal_picks):
        return None
    round_number = index // player_count + 1
    position = index % player_count
    return CurrentPick(
        round=round_number,
        position=position,
        user_id=snake_order(order, round_number)[position],
    )


def eligible_pick_types(
    phase: str,
    prior_pick_types: Sequence[str],
    seasonal_picks: int,
) -> List[PickType]:
    """
    Pick types a user may submit next, from their own picks in this draft.

    Winter: the first two picks are hit and bomb in either order, then
    ``seasonal_picks`` seasonal picks, then one alt. Summer/fall: the
    seasonal picks, then one alt. A user with every slot filled gets
    nothing.
    """
    prior = [PickType(value) for value in prior_pick_types]
    count = len(prior)

    if DraftPhase(phase) == DraftPhase.WINTER:
        if count == 0:
            return [PickType.HIT, PickType.BOMB]
        if count == 1:
            return [pick for pick in (PickType.HIT, PickType.BOMB) if pick not in prior]
        count -= 2

    if count < seasonal_picks:
        return [PickType.SEASONAL]
    if count == seasonal_picks:
        return [PickType.ALT]
    return []
