"""Tests for parameter ranges and the strategy grid."""
import pytest

from kline_backtest.models import (
    DoublePatternParams,
    MarketType,
    PatternKind,
    ReversalPatternParams,
)
from pattern_optimizer.config import ParamRange
from pattern_optimizer.engine.parameter_grid import (
    ParameterGrid,
    create_w_and_m_strategies,
    print_grid_info,
)


def _make_grid(kind=PatternKind.W, tp=(1.0, 2.0, 1.0), sl=(1.0, 1.0, 1.0),
               size_a=(2, 3, 1), size_b=(10, 10, 1), risk=(1, 1, 1)):
    return ParameterGrid(
        kind,
        take_profit=ParamRange(*tp),
        stop_loss=ParamRange(*sl),
        size_a=ParamRange(*size_a),
        size_b=ParamRange(*size_b),
        risk=ParamRange(*risk),
    )


class TestParamRange:
    """Inclusive stepped ranges."""

    def test_integer_steps(self):
        assert ParamRange(2, 4, 1).values() == [2, 3, 4]

    def test_float_steps_do_not_drift(self):
        values = ParamRange(1.0, 2.0, 0.1).values()

        assert len(values) == 11
        assert values[3] == 1.3
        assert values[-1] == 2.0

    def test_step_not_reaching_max(self):
        assert ParamRange(1.0, 2.0, 0.3).values() == [1.0, 1.3, 1.6, 1.9]

    def test_fixed_value(self):
        assert ParamRange(1.5, 1.5, 0.5).values() == [1.5]

    def test_is_integral(self):
        assert ParamRange(2, 4, 1).is_integral
        assert ParamRange(2.0, 4.0, 2.0).is_integral
        assert not ParamRange(2, 3, 0.5).is_integral
        assert not ParamRange(1.5, 3, 1).is_integral

    def test_max_below_min_is_empty(self):
        rng = ParamRange(3, 1, 1)
        assert rng.values() == []
        assert len(rng) == 0

    @pytest.mark.parametrize("step", [0, -1])
    def test_non_positive_step_raises(self, step):
        with pytest.raises(ValueError):
            ParamRange(1, 2, step)

    def test_parse_forms(self):
        assert ParamRange.parse({"min": 1, "max": 3, "step": 0.5}) == ParamRange(1, 3, 0.5)
        assert ParamRange.parse([2, 4, 1]) == ParamRange(2, 4, 1)
        assert ParamRange.parse(5) == ParamRange(5, 5, 1.0)
        assert ParamRange.parse({"min": 1, "max": 2}).step == 1.0


class TestParameterGrid:
    """Cartesian product of strategy parameters."""

    def test_total_count(self):
        grid = _make_grid()
        assert grid.get_total_count() == 4
        assert len(grid.generate_all()) == 4

    def test_fixed_risk_is_a_fraction(self):
        grid = _make_grid(tp=(2.0, 2.0, 1.0), size_a=(2, 2, 1), size_b=(10, 20, 10))
        combos = grid.generate_all()

        assert len(combos) == 2
        assert all(c["risk_per_trade"] == 0.01 for c in combos)

    def test_fractional_size_step_rejected(self):
        with pytest.raises(ValueError, match="size_a"):
            _make_grid(size_a=(2, 3, 0.5))
        with pytest.raises(ValueError, match="size_b"):
            _make_grid(size_b=(10.5, 12, 1))

    def test_nested_order(self):
        combos = _make_grid().generate_all()
        order = [(c["take_profit_multiplier"], c["repetition_count"]) for c in combos]
        assert order == [(1.0, 2), (1.0, 3), (2.0, 2), (2.0, 3)]

    def test_innermost_is_risk(self):
        combos = _make_grid(tp=(1.0, 1.0, 1.0), size_a=(2, 2, 1), risk=(1, 2, 1)).generate_all()
        assert [c["risk_per_trade"] for c in combos] == [0.01, 0.02]

    def test_empty_range_gives_no_strategies(self):
        grid = _make_grid(tp=(3.0, 1.0, 1.0))
        assert grid.get_total_count() == 0
        assert grid.build_strategies() == []

    def test_build_double_pattern_strategies(self):
        strategies = _make_grid(kind=PatternKind.M).build_strategies()

        assert len(strategies) == 4
        config = strategies[0]
        assert config.pattern_params == DoublePatternParams(PatternKind.M, 2, 10)
        assert config.market_type is MarketType.SPOT
        assert config.starting_equity == 1000.0

    def test_bull_reversal_naming(self):
        grid = _make_grid(kind=PatternKind.BULL_REVERSAL)

        assert grid.param_keys[2:4] == ["trend_length", "counter_trend_length"]
        combo = grid.generate_all()[0]
        assert combo["trend_length"] == 2
        assert combo["counter_trend_length"] == 10
        config = grid.to_config(combo)
        assert config.pattern_params == ReversalPatternParams(trend_length=2, counter_trend_length=10)

    def test_estimate_time(self):
        grid = _make_grid()
        assert grid.estimate_time(3600, 1, seconds_per_combo=2.0) == "2h 0m"
        assert grid.estimate_time(60, 2, seconds_per_combo=2.0) == "1m"

    def test_print_grid_info(self, capsys):
        print_grid_info(_make_grid(), num_workers=2)
        out = capsys.readouterr().out

        assert "Total Combinations: 4" in out
        assert "repetition_count: [2, 3] (2 values)" in out


class TestWAndMStrategies:
    def test_interleaved(self):
        strategies = create_w_and_m_strategies(
            take_profit=ParamRange(1.0, 2.0, 1.0),
            stop_loss=ParamRange(1.0, 1.0, 1.0),
            repetition_count=ParamRange(2, 2, 1),
            search_range=ParamRange(10, 10, 1),
            risk=ParamRange(1, 1, 1),
        )

        assert len(strategies) == 4
        assert [s.pattern_kind for s in strategies] == [
            PatternKind.W, PatternKind.M, PatternKind.W, PatternKind.M,
        ]
        assert strategies[0].take_profit_multiplier == strategies[1].take_profit_multiplier == 1.0
        assert strategies[2].take_profit_multiplier == 2.0
