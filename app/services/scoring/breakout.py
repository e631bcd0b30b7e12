"""
Breakout detection: a one-time bonus when today's peak concurrent players
jump well above the game's own recent average.
"""
from typing import Sequence

BREAKOUT_CCU_FLOOR = 1_000
BREAKOUT_MIN_HISTORY = 7
BREAKOUT_WINDOW = 7
BREAKOUT_MULTIPLIER = 3.0
BREAKOUT_BONUS = 25.0


def rolling_mean(samples: Sequence[int], window: int = BREAKOUT_WINDOW) -> float:
    """Mean of the last ``window`` samples (0 for no samples)."""
    recent = list(samples)[-window:]
    if not recent:
        return 0.0
    return sum(recent) / len(recent)


def detect_breakout(
    peak_ccu: int,
    prior_ccu: Sequence[int],
    already_awarded: bool,
) -> float:
    """
    Breakout bonus for today.

    Args:
        peak_ccu: Today's peak concurrent players
        prior_ccu: Peak CCU of earlier history entries, oldest first
        already_awarded: Whether the game ever received the bonus

    Returns:
        BREAKOUT_BONUS or 0.0
    """
    if already_awarded or peak_ccu < BREAKOUT_CCU_FLOOR:
        return 0.0
    if len(prior_ccu) < BREAKOUT_MIN_HISTORY:
        return 0.0
    mean = rolling_mean(prior_ccu)
    if peak_ccu >= mean * BREAKOUT_MULTIPLIER:
        return BREAKOUT_BONUS
    return 0.0
