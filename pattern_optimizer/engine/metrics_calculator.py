"""
Metrics Calculator for Pattern Strategy Optimization.

Ranks strategy results and builds sweep-level statistics and reports.
"""

from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from kline_backtest.models import StrategyResult

# Strategy parameter columns, in display order
PARAM_COLUMNS = [
    "pattern",
    "market_type",
    "take_profit_multiplier",
    "stop_loss_multiplier",
    "repetition_count",
    "search_range",
    "trend_length",
    "counter_trend_length",
    "risk_per_trade",
    "starting_equity",
]


def results_to_frame(results: List[StrategyResult]) -> pd.DataFrame:
    """StrategyResult list -> DataFrame, one row per configuration."""
    return pd.DataFrame([r.to_dict() for r in results])


class MetricsCalculator:
    """
    Ranks optimization results.

    Ordering:
    - efficiency ratio (actual win ratio / required win ratio), descending
    - final equity, descending
    Results without enough closed trades, or that failed, are not ranked.
    """

    SORT_COLUMNS = ["efficiency_ratio", "final_equity"]

    def __init__(self, min_closed_trades: int = 1):
        """
        Initialize MetricsCalculator.

        Args:
            min_closed_trades: Minimum closed trades to include in ranking
        """
        if min_closed_trades < 0:
            raise ValueError(f"min_closed_trades must be >= 0, got {min_closed_trades}")
        self.min_closed_trades = min_closed_trades

    @staticmethod
    def _valid_mask(results: pd.DataFrame) -> pd.Series:
        if "error" not in results.columns:
            return pd.Series(True, index=results.index)
        return results["error"].isna() | (results["error"] == "")

    def rank_results(
        self,
        results: pd.DataFrame,
        top_n: Optional[int] = None,
    ) -> pd.DataFrame:
        """
        Rank results by efficiency, then final equity.

        NaN efficiencies sort last.

        Args:
            results: DataFrame with results
            top_n: Return only top N results (None for all)

        Returns:
            Ranked DataFrame with 'rank' column
        """
        if len(results) == 0:
            return pd.DataFrame()

        df = results[self._valid_mask(results)]
        df = df[df["closed_count"] >= self.min_closed_trades].copy()

        if len(df) == 0:
            return pd.DataFrame()

        df = df.sort_values(
            self.SORT_COLUMNS,
            ascending=False,
            na_position="last",
            kind="stable",
        )

        df["rank"] = range(1, len(df) + 1)

        if top_n is not None:
            df = df.head(top_n)

        return df

    def get_best_params(self, results: pd.DataFrame) -> Optional[Dict[str, Any]]:
        """
        Get the parameters of the best ranked strategy.

        Args:
            results: DataFrame with results

        Returns:
            Params dict or None if no valid results
        """
        ranked = self.rank_results(results, top_n=1)

        if len(ranked) == 0:
            return None

        best_row = ranked.iloc[0]
        params = {}
        for col in PARAM_COLUMNS:
            if col in best_row.index and not pd.isna(best_row[col]):
                value = best_row[col]
                params[col] = value.item() if isinstance(value, np.generic) else value
        return params

    def get_statistics(self, results: pd.DataFrame) -> Dict[str, Any]:
        """
        Get summary statistics for results.

        Args:
            results: DataFrame with results

        Returns:
            Dict with statistics
        """
        if len(results) == 0:
            return {
                "total_strategies": 0,
                "valid_strategies": 0,
                "errors": 0,
            }

        mask = self._valid_mask(results)
        valid = results[mask]
        errors = results[~mask]

        def value_range(col: str):
            values = valid[col].dropna() if len(valid) > 0 else valid[col]
            if len(values) == 0:
                return (float("nan"), float("nan"))
            return (float(values.min()), float(values.max()))

        stats = {
            "total_strategies": len(results),
            "valid_strategies": len(valid),
            "errors": len(errors),
            "with_closed_trades": int((valid["closed_count"] > 0).sum()),
            "min_closed": int(valid["closed_count"].min()) if len(valid) > 0 else 0,
            "max_closed": int(valid["closed_count"].max()) if len(valid) > 0 else 0,
            "avg_closed": float(valid["closed_count"].mean()) if len(valid) > 0 else 0.0,
            "win_ratio_range": value_range("win_ratio"),
            "efficiency_range": value_range("efficiency_ratio"),
            "final_equity_range": value_range("final_equity"),
        }

        return stats

    def generate_summary_report(
        self,
        results: pd.DataFrame,
        top_n: int = 10,
    ) -> str:
        """
        Generate human-readable summary report.

        Args:
            results: DataFrame with results
            top_n: Number of top results to show

        Returns:
            Formatted report string
        """
        stats = self.get_statistics(results)
        ranked = self.rank_results(results, top_n)

        lines = [
            "=" * 70,
            "PATTERN STRATEGY SWEEP RESULTS",
            "=" * 70,
            "",
            "STATISTICS",
            "-" * 40,
            f"Total Strategies: {stats['total_strategies']:,}",
            f"Valid Strategies: {stats['valid_strategies']:,}",
            f"Errors: {stats['errors']:,}",
        ]

        if stats["valid_strategies"] > 0:
            lines += [
                f"With Closed Trades: {stats['with_closed_trades']:,}",
                "",
                f"Closed Trades Range: {stats['min_closed']} - {stats['max_closed']}",
                f"Avg Closed Trades: {stats['avg_closed']:.1f}",
                "",
                f"Win Ratio Range: {stats['win_ratio_range'][0]:.2f}% to {stats['win_ratio_range'][1]:.2f}%",
                f"Efficiency Range: {stats['efficiency_range'][0]:.2f} to {stats['efficiency_range'][1]:.2f}",
                f"Final Equity Range: {stats['final_equity_range'][0]:,.2f} to "
                f"{stats['final_equity_range'][1]:,.2f}",
            ]

        lines += [
            "",
            "=" * 70,
            f"TOP {min(top_n, len(ranked))} STRATEGIES (min {self.min_closed_trades} closed trades)",
            "=" * 70,
            "",
        ]

        for _, row in ranked.iterrows():
            if row["pattern"] == "Bull Reversal":
                sizes = f"Trend: {int(row['trend_length'])} | Counter: {int(row['counter_trend_length'])}"
            else:
                sizes = f"Reps: {int(row['repetition_count'])} | Range: {int(row['search_range'])}"

            lines.append(f"Rank #{int(row['rank'])}: {row['pattern']} {row['risk_reward']} | "
                         f"Efficiency={row['efficiency_ratio']:.2f}")
            lines.append(f"  Win: {row['win_ratio']:.2f}% (required {row['required_win_ratio']:.2f}%) | "
                         f"Lost: {row['lose_ratio']:.2f}% | Unknown: {row['unknown_ratio']:.2f}%")
            lines.append(f"  Closed: {int(row['closed_count'])} | Open: {int(row['open_count'])} | "
                         f"Equity: {row['final_equity']:,.2f} | Max DD: {row['max_drawdown_pct']:.1f}%")
            lines.append(f"  Params: TP x{row['take_profit_multiplier']} | SL x{row['stop_loss_multiplier']} | "
                         f"{sizes} | Risk: {row['risk_per_trade'] * 100:g}%")
            lines.append("")

        return "\n".join(lines)
