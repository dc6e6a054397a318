"""
Tests for multiplier calculations and half-up rounding.
"""

from decimal import Decimal

import pytest

from folding_competition.utils.multiplier import MultiplierCalculator


class TestRoundHalfUp:

    def test_half_rounds_up(self):
        assert MultiplierCalculator.round_half_up(2.5) == Decimal('3')

    def test_half_rounds_up_at_two_places(self):
        assert MultiplierCalculator.round_half_up(0.125, 2) == Decimal('0.13')

    def test_below_half_rounds_down(self):
        assert MultiplierCalculator.round_half_up(4.449, 1) == Decimal('4.4')


class TestApplyMultiplier:

    def test_whole_result(self):
        assert MultiplierCalculator.apply_multiplier(100, 10.0) == 1000

    def test_fractional_result_rounds_half_up(self):
        assert MultiplierCalculator.apply_multiplier(15, 1.5) == 23

    def test_zero_points(self):
        assert MultiplierCalculator.apply_multiplier(0, 4.29) == 0

    def test_float_multiplier_is_not_truncated(self):
        # 1.1 is not exact in binary floating point
        assert MultiplierCalculator.apply_multiplier(1000, 1.1) == 1100


class TestCalculateMultiplier:

    def test_best_hardware_is_one(self):
        assert MultiplierCalculator.calculate_multiplier(30_000_000, 30_000_000) == 1.0

    def test_ratio_to_best(self):
        assert MultiplierCalculator.calculate_multiplier(30_000_000, 20_000_000) == 1.5

    def test_ratio_rounded_to_two_places(self):
        assert MultiplierCalculator.calculate_multiplier(30_000_000, 7_000_000) == 4.29

    def test_never_below_minimum(self):
        assert MultiplierCalculator.calculate_multiplier(1_000, 2_000) == 1.0

    def test_zero_ppd_rejected(self):
        with pytest.raises(ValueError):
            MultiplierCalculator.calculate_multiplier(30_000_000, 0)


class TestDerivePoints:

    def test_reverses_multiplier(self):
        assert MultiplierCalculator.derive_points(1500, 1.5) == 1000

    def test_rounds_half_up(self):
        assert MultiplierCalculator.derive_points(5, 2.0) == 3
