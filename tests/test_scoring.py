"""
Tests for composite score calculation.
"""
import math

import pytest

from allocator.models import ScoreResult, Weights
from allocator.scoring import (
    UNSCOREABLE,
    closes_of,
    composite_score,
    explain_score,
    momentum_score,
    recent_return,
    score_symbol,
    score_universe,
    slope_score,
)


class TestSlopeScore:
    def test_too_few_points(self):
        assert slope_score([1.0, 2.0, 3.0, 4.0]) == 0

    def test_flat_window(self):
        assert slope_score([5.0] * 10) == 0

    def test_rising_is_positive(self):
        assert slope_score([float(i) for i in range(1, 31)]) > 0

    def test_falling_is_negative(self):
        assert slope_score([float(i) for i in range(30, 0, -1)]) < 0

    def test_uses_last_twenty_only(self):
        tail = [float(i) for i in range(20)]
        # Wildly different history before the window changes nothing
        assert slope_score([1000.0, -50.0, 3.0] + tail) == pytest.approx(slope_score(tail))


class TestMomentumScore:
    def test_requires_twenty_one_points(self):
        assert momentum_score([float(i) for i in range(1, 21)]) == 0

    def test_rising_is_positive(self):
        assert momentum_score([float(i) for i in range(1, 41)]) > 0

    def test_constant_is_zero(self):
        assert momentum_score([10.0] * 30) == 0

    def test_zero_baseline_does_not_blow_up(self):
        value = momentum_score([0.0] * 30)
        assert value == 0
        assert math.isfinite(value)


class TestRecentReturn:
    def test_empty(self):
        assert recent_return([]) == 0

    def test_last_five_closes(self):
        # last five are 100..104 -> 4%
        closes = [1.0, 1.0, 100.0, 101.0, 102.0, 103.0, 104.0]
        assert recent_return(closes) == pytest.approx(0.04)

    def test_fewer_than_five(self):
        assert recent_return([10.0, 12.0]) == pytest.approx(0.2)

    def test_zero_first_close(self):
        assert recent_return([0.0, 1.0, 2.0]) == pytest.approx(2.0)


class TestCompositeScore:
    def test_short_series_is_unscoreable(self, default_weights):
        assert composite_score([1.0, 2.0, 3.0, 4.0], default_weights) == -math.inf

    def test_five_points_is_finite(self, default_weights):
        value = composite_score([1.0, 2.0, 3.0, 4.0, 5.0], default_weights)
        assert math.isfinite(value)

    def test_rising_beats_falling(self, rising_series, falling_series, default_weights):
        rising = composite_score(closes_of(rising_series), default_weights)
        falling = composite_score(closes_of(falling_series), default_weights)
        assert rising > falling

    def test_weighted_sum(self, rising_series):
        closes = closes_of(rising_series)
        weights = Weights(slope=0.2, momentum=0.3, recent=0.5)
        expected = (
            0.2 * slope_score(closes)
            + 0.3 * momentum_score(closes)
            + 0.5 * recent_return(closes)
        )
        assert composite_score(closes, weights) == pytest.approx(expected)

    def test_zero_weights(self, rising_series):
        weights = Weights(slope=0, momentum=0, recent=0)
        assert composite_score(closes_of(rising_series), weights) == 0

    def test_idempotent(self, rising_series, default_weights):
        closes = closes_of(rising_series)
        assert composite_score(closes, default_weights) == composite_score(closes, default_weights)

    @pytest.mark.parametrize(
        "closes",
        [
            [1e308, 1e-308, 1e308, 1e-308, 1e308] * 6,
            [0.0] * 25,
            [0.0, 0.0, 0.0, 0.0, 1e300],
            [1e-300] * 5 + [1e300] * 20,
        ],
    )
    def test_extreme_values_stay_finite(self, closes, default_weights):
        value = composite_score(closes, default_weights)
        assert math.isfinite(value) or value == -math.inf


class TestScoreSymbol:
    def test_keeps_components(self, rising_series, default_weights):
        result = score_symbol("UP", rising_series, default_weights)
        assert result.symbol == "UP"
        assert result.points == 30
        assert result.trend > 0
        assert result.momentum > 0
        assert result.recent > 0
        assert result.is_scoreable

    def test_short_series(self, short_series, default_weights):
        result = score_symbol("SHORT", short_series, default_weights)
        assert result.composite_score == UNSCOREABLE
        assert result.points == 3
        assert not result.is_scoreable

    def test_empty_series(self, default_weights):
        result = score_symbol("NONE", [], default_weights)
        assert not result.is_scoreable
        assert result.points == 0

    def test_universe_in_mapping_order(self, rising_series, falling_series, short_series, default_weights):
        results = score_universe(
            {"SHORT": short_series, "UP": rising_series, "DOWN": falling_series},
            default_weights,
        )
        assert [r.symbol for r in results] == ["SHORT", "UP", "DOWN"]


class TestExplainScore:
    def test_unscoreable(self, default_weights):
        result = ScoreResult(symbol="X", composite_score=UNSCOREABLE)
        assert explain_score(result, default_weights) == "Not enough data"

    def test_no_positive_signals(self, default_weights):
        result = ScoreResult(symbol="X", composite_score=-0.5, trend=-1.0, momentum=-0.1, recent=-0.02)
        assert explain_score(result, default_weights) == "No positive signals"

    def test_top_two_contributions(self):
        weights = Weights(slope=0.5, momentum=0.35, recent=0.15)
        result = ScoreResult(symbol="X", composite_score=1.0, trend=1.0, momentum=2.0, recent=1.0)
        assert explain_score(result, weights) == "momentum & trend vs. volatility"

    def test_single_positive(self, default_weights):
        result = ScoreResult(symbol="X", composite_score=0.1, trend=-1.0, momentum=0.0, recent=0.5)
        assert explain_score(result, default_weights) == "5-day return"
