"""Score functions: the income step table and neighborhood factor composition.

Score bands are discrete classification tiers consumed downstream, so the
income mapping is a step table and never interpolates.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from .models import NeighborhoodCategory, NeighborhoodProfile
from .reference_data import CATEGORY_BUSINESS_FACTORS

# (lower bound inclusive, score), highest band first
INCOME_SCORE_STEPS: tuple[tuple[float, int], ...] = (
    (8000, 50),
    (5000, 45),
    (3500, 40),
    (2500, 35),
    (1500, 30),
    (1000, 25),
    (500, 20),
)
FLOOR_SCORE = 15

MIN_BUSINESS_FACTOR = 1.0
MAX_BUSINESS_FACTOR = 1.35

REAL_ESTATE_WEIGHT = 0.6
BUSINESS_WEIGHT = 0.4


def score_from_income(income: float) -> int:
    for lower_bound, score in INCOME_SCORE_STEPS:
        if income >= lower_bound:
            return score
    return FLOOR_SCORE


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (46.2 -> 46, 45.5 -> 46)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamp_score(score: int) -> int:
    return max(0, min(100, score))


def real_estate_factor(profile: NeighborhoodProfile, base_price_per_area: float) -> float:
    """Price ratio against the city base price, else the stored factor."""
    price = profile.reference_price_per_area
    if price and price > 0 and base_price_per_area > 0:
        return price / base_price_per_area
    return profile.real_estate_factor


def business_factor(profile: NeighborhoodProfile) -> float:
    """Profile's business factor, defaulted from its category when unset.

    Clamped to the 1.00-1.35 band.
    """
    factor = profile.business_factor
    if factor is None or factor <= MIN_BUSINESS_FACTOR:
        factor = CATEGORY_BUSINESS_FACTORS.get(profile.category, MIN_BUSINESS_FACTOR)
    return max(MIN_BUSINESS_FACTOR, min(MAX_BUSINESS_FACTOR, factor))


def default_business_factor(category: Optional[NeighborhoodCategory]) -> float:
    if category is None:
        return MIN_BUSINESS_FACTOR
    return CATEGORY_BUSINESS_FACTORS.get(category, MIN_BUSINESS_FACTOR)


def compose_neighborhood_score(base_score: int, re_factor: float, biz_factor: float) -> int:
    """``round(base * real_estate * business)`` clamped to 0..100.

    >>> compose_neighborhood_score(35, 1.20, 1.10)
    46
    """
    return clamp_score(round_half_up(base_score * re_factor * biz_factor))


def combined_factor(re_factor: float, biz_factor: float) -> float:
    """Weighted summary factor stored on profile updates."""
    return round(REAL_ESTATE_WEIGHT * re_factor + BUSINESS_WEIGHT * biz_factor, 2)
