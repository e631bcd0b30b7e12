"""
Daily point formula.

    base = f(salesDelta) + g(peakCcu) + h(reviewsDelta) * positiveRatio
    daily_base = base * time_multiplier(daysSinceRelease)

f, g and h are weighted log10 curves, so a game's early relative growth
counts for more than raw volume.
"""
import math
from dataclasses import dataclass
from typing import Optional

from app.models.enums import GameActivity

# Estimated copies sold per written review
SALES_PER_REVIEW = 40

SALES_WEIGHT = 4.0
CCU_WEIGHT = 3.0
REVIEWS_WEIGHT = 5.0

# (max days since release, multiplier); anything older gets the floor
TIME_MULTIPLIER_BANDS = (
    (14, 2.0),
    (90, 1.0),
    (180, 0.75),
)
TIME_MULTIPLIER_FLOOR = 0.5

# Activity thresholds
ACTIVE_OWNERS = 1000
ACTIVE_SALES_DELTA = 100
ACTIVE_CCU = 20


@dataclass(frozen=True)
class DailyDelta:
    """Telemetry for one game on one day, relative to its last history entry."""
    estimated_owners: int
    sales_delta: int
    peak_ccu: int
    reviews_total: int
    reviews_delta: int
    positive_ratio: float
    days_since_release: int


def estimated_owners(reviews_total: int, sales_per_review: int = SALES_PER_REVIEW) -> int:
    return max(0, int(reviews_total)) * sales_per_review


def positive_ratio(reviews_positive: int, reviews_total: int) -> float:
    if reviews_total <= 0:
        return 0.0
    return reviews_positive / reviews_total


def _log_curve(value: float, weight: float) -> float:
    return weight * math.log10(max(1.0, float(value)))


def sales_points(sales_delta: int) -> float:
    return _log_curve(sales_delta, SALES_WEIGHT)


def ccu_points(peak_ccu: int) -> float:
    return _log_curve(peak_ccu, CCU_WEIGHT)


def review_points(reviews_delta: int, ratio: float) -> float:
    if reviews_delta <= 0:
        return 0.0
    return _log_curve(reviews_delta, REVIEWS_WEIGHT) * ratio


def time_multiplier(days_since_release: int) -> float:
    """Launch hype, full weight, reduced weight, long-term floor."""
    for max_days, multiplier in TIME_MULTIPLIER_BANDS:
        if days_since_release <= max_days:
            return multiplier
    return TIME_MULTIPLIER_FLOOR


def base_points(sales_delta: int, peak_ccu: int, reviews_delta: int, ratio: float) -> float:
    return sales_points(sales_delta) + ccu_points(peak_ccu) + review_points(reviews_delta, ratio)


def daily_base_points(delta: DailyDelta) -> float:
    base = base_points(delta.sales_delta, delta.peak_ccu, delta.reviews_delta, delta.positive_ratio)
    return base * time_multiplier(delta.days_since_release)


def compute_delta(
    reviews_total: int,
    reviews_positive: int,
    current_ccu: int,
    days_since_release: int,
    previous_owners: int = 0,
    previous_reviews: int = 0,
    off_peak_ccu: Optional[int] = None,
    sales_per_review: int = SALES_PER_REVIEW,
) -> DailyDelta:
    """
    Build today's delta from fresh telemetry and the previous history entry.

    Args:
        reviews_total: Current total reviews
        reviews_positive: Current positive reviews
        current_ccu: Concurrent players right now
        days_since_release: Whole days since release (0 on launch day)
        previous_owners: Owners on the last entry before today (0 if none)
        previous_reviews: Reviews on the last entry before today (0 if none)
        off_peak_ccu: Earlier same-day CCU sample, if any
    """
    owners = estimated_owners(reviews_total, sales_per_review)
    return DailyDelta(
        estimated_owners=owners,
        sales_delta=max(0, owners - previous_owners),
        peak_ccu=max(int(current_ccu), int(off_peak_ccu or 0)),
        reviews_total=reviews_total,
        reviews_delta=max(0, reviews_total - previous_reviews),
        positive_ratio=positive_ratio(reviews_positive, reviews_total),
        days_since_release=max(0, days_since_release),
    )


def activity_status(owners: int, sales_delta: int, ccu: int) -> str:
    """'Active' when any signal shows life, else 'Inactive'."""
    if owners > ACTIVE_OWNERS or sales_delta > ACTIVE_SALES_DELTA or ccu > ACTIVE_CCU:
        return GameActivity.ACTIVE.value
    return GameActivity.INACTIVE.value
