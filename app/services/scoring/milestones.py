"""
One-time milestone bonuses.

Rules are checked in order against a game's cumulative metrics; each id
is awarded at most once per game, ever.
"""
from dataclasses import dataclass
from typing import Callable, Iterable, List, Tuple


@dataclass(frozen=True)
class Milestone:
    id: str
    bonus: float
    reached: Callable[[int, int, float], bool]  # (reviews_total, peak_ccu, positive_ratio)


ACCLAIMED_RATIO = 0.95
ACCLAIMED_MIN_REVIEWS = 500

MILESTONES: List[Milestone] = [
    Milestone("reviews_1k", 10.0, lambda reviews, ccu, ratio: reviews >= 1_000),
    Milestone("reviews_10k", 25.0, lambda reviews, ccu, ratio: reviews >= 10_000),
    Milestone("reviews_100k", 50.0, lambda reviews, ccu, ratio: reviews >= 100_000),
    Milestone("ccu_10k", 15.0, lambda reviews, ccu, ratio: ccu >= 10_000),
    Milestone("ccu_100k", 40.0, lambda reviews, ccu, ratio: ccu >= 100_000),
    Milestone(
        "acclaimed",
        20.0,
        lambda reviews, ccu, ratio: reviews >= ACCLAIMED_MIN_REVIEWS and ratio >= ACCLAIMED_RATIO,
    ),
]


def evaluate_milestones(
    reviews_total: int,
    peak_ccu: int,
    ratio: float,
    awarded: Iterable[str],
) -> Tuple[float, List[str]]:
    """
    Award every milestone reached and not yet held.

    Returns:
        (bonus total, newly awarded ids in rule order)
    """
    held = set(awarded or [])
    bonus = 0.0
    new_ids: List[str] = []
    for milestone in MILESTONES:
        if milestone.id in held:
            continue
        if milestone.reached(reviews_total, peak_ccu, ratio):
            bonus += milestone.bonus
            new_ids.append(milestone.id)
    return bonus, new_ids
