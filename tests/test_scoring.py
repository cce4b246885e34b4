"""Tests for the income step table and neighborhood factor composition."""

import pytest

from location_intelligence.core.models import NeighborhoodCategory, NeighborhoodProfile
from location_intelligence.core.scoring import (
    business_factor,
    clamp_score,
    combined_factor,
    compose_neighborhood_score,
    real_estate_factor,
    round_half_up,
    score_from_income,
)


class TestScoreFromIncome:
    @pytest.mark.parametrize("income, expected", [
        (8000, 50),
        (7999, 45),
        (5000, 45),
        (4999.99, 40),
        (3500, 40),
        (3200, 35),
        (2500, 35),
        (2499, 30),
        (1500, 30),
        (1000, 25),
        (999, 20),
        (500, 20),
        (499, 15),
        (0, 15),
        (-10, 15),
        (1_000_000, 50),
    ])
    def test_bands_are_lower_edge_inclusive(self, income, expected):
        assert score_from_income(income) == expected

    def test_monotonic(self):
        incomes = range(0, 12000, 50)
        scores = [score_from_income(i) for i in incomes]
        assert scores == sorted(scores)


class TestRounding:
    def test_half_up(self):
        assert round_half_up(45.5) == 46
        assert round_half_up(0.5) == 1
        assert round_half_up(46.2) == 46
        assert round_half_up(46.7) == 47

    def test_clamp(self):
        assert clamp_score(-3) == 0
        assert clamp_score(140) == 100
        assert clamp_score(57) == 57


class TestComposition:
    def test_reference_composition(self):
        assert compose_neighborhood_score(35, 1.20, 1.10) == 46

    def test_identity_factors(self):
        assert compose_neighborhood_score(30, 1.0, 1.0) == 30

    def test_clamped_to_100(self):
        assert compose_neighborhood_score(90, 1.30, 1.35) == 100

    def test_combined_factor_weights(self):
        assert combined_factor(1.30, 1.15) == 1.24
        assert combined_factor(1.0, 1.0) == 1.0


class TestFactors:
    def test_real_estate_from_reference_price(self):
        profile = NeighborhoodProfile(name="Ibituruna", real_estate_factor=1.30, reference_price_per_area=4600)
        assert real_estate_factor(profile, 3500) == pytest.approx(4600 / 3500)

    def test_real_estate_ratio_is_not_rounded_before_scoring(self):
        # 50 x 1.0051 = 50.26; a ratio rounded to 1.01 would give 51
        profile = NeighborhoodProfile(name="Cintra", reference_price_per_area=3517.85)
        factor = real_estate_factor(profile, 3500)
        assert factor == pytest.approx(1.0051)
        assert compose_neighborhood_score(50, factor, 1.0) == 50

    def test_real_estate_stored_factor_without_price(self):
        profile = NeighborhoodProfile(name="Centro", real_estate_factor=1.15)
        assert real_estate_factor(profile, 3500) == 1.15

    def test_business_factor_defaults_from_category(self):
        high = NeighborhoodProfile(name="A", category=NeighborhoodCategory.HIGH)
        mid = NeighborhoodProfile(name="B", category=NeighborhoodCategory.MID)
        standard = NeighborhoodProfile(name="C", category=NeighborhoodCategory.STANDARD)
        assert business_factor(high) == 1.15
        assert business_factor(mid) == 1.08
        assert business_factor(standard) == 1.0

    def test_business_factor_explicit_value_wins(self):
        profile = NeighborhoodProfile(name="A", category=NeighborhoodCategory.HIGH, business_factor=1.10)
        assert business_factor(profile) == 1.10

    def test_business_factor_capped(self):
        profile = NeighborhoodProfile(name="A", business_factor=2.0)
        assert business_factor(profile) == 1.35
