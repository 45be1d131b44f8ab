"""
Parameter Grid Generator for Pattern Strategy Optimization.

Generates the Cartesian product of strategy parameters for one pattern
kind and turns each combination into a StrategyConfig.
"""

import itertools
from typing import Any, Dict, List, Optional

from kline_backtest.models import (
    DoublePatternParams,
    MarketType,
    PatternKind,
    ReversalPatternParams,
    StrategyConfig,
)
from pattern_optimizer.config import ParamRange, print_status


# Pattern-size parameter names per kind: (size_a, size_b)
SIZE_PARAM_NAMES = {
    PatternKind.W: ("repetition_count", "search_range"),
    PatternKind.M: ("repetition_count", "search_range"),
    PatternKind.BULL_REVERSAL: ("trend_length", "counter_trend_length"),
}


class ParameterGrid:
    """
    Generates and manages parameter combinations for one pattern kind.

    Handles:
    - Nested enumeration: take-profit > stop-loss > size_a > size_b > risk
    - Conversion of risk from percent to fraction (1 -> 0.01)
    - Conversion of each combination into a StrategyConfig
    """

    def __init__(
        self,
        pattern_kind: PatternKind,
        take_profit: ParamRange,
        stop_loss: ParamRange,
        size_a: ParamRange,
        size_b: ParamRange,
        risk: ParamRange,
        starting_equity: float = 1000.0,
        market_type: MarketType = MarketType.SPOT,
    ):
        """
        Initialize ParameterGrid.

        Args:
            pattern_kind: Pattern every generated strategy trades
            take_profit: Take-profit multiplier range
            stop_loss: Stop-loss multiplier range
            size_a: Repetition count (W, M) / trend length (bull reversal)
            size_b: Search range (W, M) / counter-trend length (bull reversal)
            risk: Risk per trade range, in percent of equity
            starting_equity: Equity every strategy starts with
            market_type: Spot or futures
        """
        for name, rng in (("size_a", size_a), ("size_b", size_b)):
            if not rng.is_integral:
                raise ValueError(f"{name} needs a whole-number min and step, got {rng}")

        self.pattern_kind = PatternKind(pattern_kind)
        self.take_profit = take_profit
        self.stop_loss = stop_loss
        self.size_a = size_a
        self.size_b = size_b
        self.risk = risk
        self.starting_equity = starting_equity
        self.market_type = MarketType(market_type)

        size_a_name, size_b_name = SIZE_PARAM_NAMES[self.pattern_kind]
        # Column order used in reports
        self.param_keys = [
            "take_profit_multiplier",
            "stop_loss_multiplier",
            size_a_name,
            size_b_name,
            "risk_per_trade",
        ]

        self._combinations: Optional[List[Dict[str, Any]]] = None

    def generate_all(self) -> List[Dict[str, Any]]:
        """
        Generate all parameter combinations.

        Returns:
            List of parameter dicts (risk_per_trade as a fraction)
        """
        if self._combinations is not None:
            return self._combinations

        size_a_name, size_b_name = SIZE_PARAM_NAMES[self.pattern_kind]
        combinations = []

        for tp, sl, a, b, risk in itertools.product(
            self.take_profit.values(),
            self.stop_loss.values(),
            self.size_a.int_values(),
            self.size_b.int_values(),
            self.risk.values(),
        ):
            combinations.append({
                "take_profit_multiplier": tp,
                "stop_loss_multiplier": sl,
                size_a_name: a,
                size_b_name: b,
                "risk_per_trade": round(risk * 0.01, 10),
            })

        self._combinations = combinations
        return combinations

    def get_total_count(self) -> int:
        """Get total number of combinations without generating them."""
        return (
            len(self.take_profit) *
            len(self.stop_loss) *
            len(self.size_a) *
            len(self.size_b) *
            len(self.risk)
        )

    def to_config(self, params: Dict[str, Any]) -> StrategyConfig:
        """
        Build a StrategyConfig from a parameter dict.

        Args:
            params: Parameter dict as produced by generate_all

        Returns:
            StrategyConfig
        """
        size_a_name, size_b_name = SIZE_PARAM_NAMES[self.pattern_kind]

        if self.pattern_kind is PatternKind.BULL_REVERSAL:
            pattern_params = ReversalPatternParams(
                trend_length=params[size_a_name],
                counter_trend_length=params[size_b_name],
            )
        else:
            pattern_params = DoublePatternParams(
                kind=self.pattern_kind,
                repetition_count=params[size_a_name],
                search_range=params[size_b_name],
            )

        return StrategyConfig(
            take_profit_multiplier=params["take_profit_multiplier"],
            stop_loss_multiplier=params["stop_loss_multiplier"],
            risk_per_trade=params["risk_per_trade"],
            starting_equity=self.starting_equity,
            market_type=self.market_type,
            pattern_params=pattern_params,
        )

    def build_strategies(self) -> List[StrategyConfig]:
        """One StrategyConfig per combination, in enumeration order."""
        return [self.to_config(params) for params in self.generate_all()]

    def estimate_time(
        self,
        total_combinations: int,
        num_workers: int,
        seconds_per_combo: float = 2.0
    ) -> str:
        """
        Estimate total run time.

        Args:
            total_combinations: Number of combinations
            num_workers: Number of parallel workers
            seconds_per_combo: Estimated time per combination

        Returns:
            Human-readable time estimate
        """
        total_seconds = (total_combinations / num_workers) * seconds_per_combo
        hours = int(total_seconds // 3600)
        minutes = int((total_seconds % 3600) // 60)

        if hours > 0:
            return f"{hours}h {minutes}m"
        else:
            return f"{minutes}m"


def create_w_and_m_strategies(
    take_profit: ParamRange,
    stop_loss: ParamRange,
    repetition_count: ParamRange,
    search_range: ParamRange,
    risk: ParamRange,
    starting_equity: float = 1000.0,
    market_type: MarketType = MarketType.SPOT,
) -> List[StrategyConfig]:
    """
    Build W and M strategies for the same ranges.

    Each combination yields a W config followed by its M counterpart.
    """
    grids = [
        ParameterGrid(kind, take_profit, stop_loss, repetition_count, search_range,
                      risk, starting_equity, market_type)
        for kind in (PatternKind.W, PatternKind.M)
    ]
    w_configs, m_configs = (grid.build_strategies() for grid in grids)

    strategies = []
    for w_config, m_config in zip(w_configs, m_configs):
        strategies.append(w_config)
        strategies.append(m_config)
    return strategies


def print_grid_info(grid: ParameterGrid, num_workers: int = 1) -> None:
    """
    Print parameter grid information.

    Args:
        grid: Parameter grid
        num_workers: Workers used for the time estimate
    """
    total = grid.get_total_count()

    print_status(f"Parameter Grid for {grid.pattern_kind.value} ({grid.market_type.value})", "HEADER")
    print_status("=" * 50, "HEADER")

    ranges = {
        "take_profit_multiplier": grid.take_profit.values(),
        "stop_loss_multiplier": grid.stop_loss.values(),
        grid.param_keys[2]: grid.size_a.int_values(),
        grid.param_keys[3]: grid.size_b.int_values(),
        "risk_pct": grid.risk.values(),
    }
    for key, values in ranges.items():
        if len(values) > 1:
            print(f"  {key}: {values} ({len(values)} values)")
        elif values:
            print(f"  {key}: {values[0]} (fixed)")
        else:
            print(f"  {key}: empty range")

    print_status("=" * 50, "HEADER")
    print_status(f"Total Combinations: {total:,}", "SUCCESS")
    print_status(f"  With {num_workers} workers: ~{grid.estimate_time(total, num_workers)}", "INFO")
