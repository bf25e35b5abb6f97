"""Tests for base-rate and floor lookup tables."""

from decimal import Decimal

import pytest

from ratecard.domain.types import PLATFORM_DELIVERABLES, DeliverableType, Platform
from ratecard.pricing.rate_cards import (
    BASE_RATES,
    FOLLOWER_BRACKETS,
    follower_bracket,
    get_base_rate,
    get_floor,
)


class TestFollowerBracket:
    @pytest.mark.parametrize(
        "followers,expected",
        [
            (0, 0),
            (9_999, 0),
            (10_000, 1),
            (49_999, 1),
            (50_000, 2),
            (100_000, 3),
            (499_999, 3),
            (500_000, 4),
            (1_000_000, 5),
            (50_000_000, 5),
        ],
    )
    def test_bracket_boundaries(self, followers, expected):
        assert follower_bracket(followers) == expected


class TestBaseRates:
    def test_every_table_row_has_a_rate_per_bracket(self):
        for platform, rows in BASE_RATES.items():
            for dt, row in rows.items():
                assert len(row) == len(FOLLOWER_BRACKETS), (platform, dt)

    def test_rates_never_decrease_across_brackets(self):
        for rows in BASE_RATES.values():
            for row in rows.values():
                assert list(row) == sorted(row)

    def test_every_universe_pair_has_a_base_rate(self):
        for platform, types in PLATFORM_DELIVERABLES.items():
            for dt in types:
                assert get_base_rate(1_000, platform, dt) is not None

    def test_reference_bracket_rate(self):
        assert get_base_rate(150_000, Platform.INSTAGRAM, DeliverableType.REEL) == Decimal("80")

    def test_undefined_combination(self):
        assert get_base_rate(1_000, Platform.YOUTUBE, DeliverableType.STORY) is None


class TestFloors:
    def test_no_floor_at_or_below_macro_threshold(self):
        assert get_floor(100_000, Platform.INSTAGRAM, DeliverableType.REEL) is None

    def test_macro_floor(self):
        assert get_floor(100_001, Platform.INSTAGRAM, DeliverableType.REEL) == Decimal("25000")

    def test_mega_floor_wins_above_mega_threshold(self):
        assert get_floor(1_000_001, Platform.INSTAGRAM, DeliverableType.REEL) == Decimal(
            "100000"
        )

    def test_mega_only_floor(self):
        assert get_floor(500_000, Platform.LINKEDIN, DeliverableType.ARTICLE) is None
        assert get_floor(2_000_000, Platform.LINKEDIN, DeliverableType.ARTICLE) == Decimal(
            "80000"
        )

    def test_no_floor_defined(self):
        assert get_floor(5_000_000, Platform.TWITTER, DeliverableType.SPACE) is None
