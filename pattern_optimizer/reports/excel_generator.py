"""
Excel Report Generator for Pattern Strategy Sweeps.

Builds a formatted workbook from sweep results: every strategy, the top
ranked strategies and a per-pattern summary.
"""

import math
from pathlib import Path
from typing import List, Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.formatting.rule import ColorScaleRule
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.dataframe import dataframe_to_rows

from pattern_optimizer.engine.metrics_calculator import PARAM_COLUMNS, MetricsCalculator


# Style constants
HEADER_FILL = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
ALT_ROW_FILL = PatternFill(start_color="F2F2F2", end_color="F2F2F2", fill_type="solid")
GOLD_FILL = PatternFill(start_color="FFD700", end_color="FFD700", fill_type="solid")
SILVER_FILL = PatternFill(start_color="C0C0C0", end_color="C0C0C0", fill_type="solid")
BRONZE_FILL = PatternFill(start_color="CD7F32", end_color="CD7F32", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)

# Pattern colors
PATTERN_COLORS = {
    "W": "70AD47",              # Green
    "M": "ED7D31",              # Orange
    "Bull Reversal": "4472C4",  # Blue
}

METRIC_COLUMNS = [
    "win_ratio",
    "lose_ratio",
    "unknown_ratio",
    "required_win_ratio",
    "efficiency_ratio",
    "risk_reward",
    "closed_count",
    "open_count",
    "final_equity",
    "total_return_pct",
    "max_drawdown_pct",
    "error",
]


class ExcelReportGenerator:
    """
    Generates Excel reports from sweep results.

    Sheets:
    - Results: every strategy
    - TopN: ranked strategies, top 3 highlighted
    - Summary: statistics per pattern kind
    """

    def __init__(self, output_dir: Path, metrics: Optional[MetricsCalculator] = None):
        """
        Initialize generator.

        Args:
            output_dir: Directory for output files
            metrics: Ranking calculator (default: 1 closed trade minimum)
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.metrics = metrics or MetricsCalculator()

    def generate_report(
        self,
        results: pd.DataFrame,
        name: str = "sweep",
        top_n: int = 100,
    ) -> Path:
        """
        Generate the Excel report.

        Args:
            results: Results DataFrame (BacktestOrchestrator.results_frame())
            name: File name stem
            top_n: Number of ranked strategies on the top sheet

        Returns:
            Path to generated Excel file
        """
        df = results.drop(columns=["equity_curve"], errors="ignore")

        wb = Workbook()

        # Sheet 1: Results (all strategies)
        self._create_grid_sheet(wb, df, "Results")

        # Sheet 2: TopN
        ranked = self.metrics.rank_results(df, top_n=top_n)
        self._create_grid_sheet(wb, ranked, f"Top{top_n}", highlight_top3=True, with_rank=True)

        # Sheet 3: Summary
        self._create_summary_sheet(wb, df)

        # Remove default sheet
        if "Sheet" in wb.sheetnames:
            del wb["Sheet"]

        output_path = self.output_dir / f"{name}_analysis.xlsx"
        wb.save(output_path)

        return output_path

    def _write_frame(self, ws, df: pd.DataFrame, header_fill: PatternFill = HEADER_FILL) -> None:
        for r_idx, row in enumerate(dataframe_to_rows(df, index=False, header=True)):
            for c_idx, value in enumerate(row, 1):
                if isinstance(value, float) and math.isnan(value):
                    value = None
                cell = ws.cell(row=r_idx + 1, column=c_idx, value=value)

                if r_idx == 0:
                    cell.fill = header_fill
                    cell.font = HEADER_FONT
                    cell.alignment = Alignment(horizontal="center", wrap_text=True)
                elif r_idx % 2 == 0:
                    cell.fill = ALT_ROW_FILL

                cell.border = THIN_BORDER

    def _create_grid_sheet(
        self,
        wb: Workbook,
        df: pd.DataFrame,
        sheet_name: str,
        highlight_top3: bool = False,
        with_rank: bool = False,
    ) -> None:
        """Create results sheet."""
        ws = wb.create_sheet(sheet_name)

        if len(df) == 0:
            ws.cell(row=1, column=1, value="No results")
            return

        display_cols = self._get_display_columns(df, with_rank)
        self._write_frame(ws, df[display_cols])

        if highlight_top3:
            for r_idx, fill in enumerate([GOLD_FILL, SILVER_FILL, BRONZE_FILL][:len(df)], start=2):
                for c_idx in range(1, len(display_cols) + 1):
                    ws.cell(row=r_idx, column=c_idx).fill = fill

        self._auto_width_columns(ws, max_width=40)

        # Conditional formatting for efficiency and win ratio
        if "efficiency_ratio" in display_cols:
            col_letter = get_column_letter(display_cols.index("efficiency_ratio") + 1)
            self._add_color_scale(ws, col_letter, 2, len(df) + 1, mid_value=1.0)

        if "win_ratio" in display_cols:
            col_letter = get_column_letter(display_cols.index("win_ratio") + 1)
            self._add_color_scale(ws, col_letter, 2, len(df) + 1)

    def _create_summary_sheet(self, wb: Workbook, df: pd.DataFrame) -> None:
        """Create summary sheet comparing pattern kinds."""
        ws = wb.create_sheet("Summary")

        summary_data = []
        for pattern, pattern_df in df.groupby("pattern", sort=False):
            valid = pattern_df[pattern_df["error"].isna()] if "error" in pattern_df.columns else pattern_df
            traded = valid[valid["closed_count"] > 0]

            summary_data.append({
                "Pattern": pattern,
                "Strategies": len(pattern_df),
                "Errors": len(pattern_df) - len(valid),
                "With_trades": len(traded),
                "Closed_trades": int(valid["closed_count"].sum()),
                "Avg_Win_pct": round(traded["win_ratio"].mean(), 2) if len(traded) else None,
                "Max_Win_pct": round(traded["win_ratio"].max(), 2) if len(traded) else None,
                "Avg_Efficiency": round(traded["efficiency_ratio"].mean(), 2) if len(traded) else None,
                "Max_Efficiency": round(traded["efficiency_ratio"].max(), 2) if len(traded) else None,
                "Best_Final_Equity": round(valid["final_equity"].max(), 2) if len(valid) else None,
            })

        summary_df = pd.DataFrame(summary_data)
        if len(summary_df) == 0:
            ws.cell(row=1, column=1, value="No results")
            return

        self._write_frame(ws, summary_df)

        # Color pattern name column
        for r_idx, pattern in enumerate(summary_df["Pattern"], start=2):
            color = PATTERN_COLORS.get(pattern, "366092")
            cell = ws.cell(row=r_idx, column=1)
            cell.fill = PatternFill(start_color=color, end_color=color, fill_type="solid")
            cell.font = Font(bold=True, color="FFFFFF")

        self._auto_width_columns(ws, max_width=30)

    def _get_display_columns(self, df: pd.DataFrame, with_rank: bool = False) -> List[str]:
        """Get columns to display (ordered, existing only, all-empty params dropped)."""
        leading = ["rank"] if with_rank else []
        params = [c for c in PARAM_COLUMNS if c in df.columns and df[c].notna().any()]
        return [c for c in leading + params + METRIC_COLUMNS if c in df.columns]

    def _auto_width_columns(self, ws, max_width: int = 50) -> None:
        """Auto-fit column widths."""
        for column_cells in ws.columns:
            max_length = 0
            column = column_cells[0].column_letter

            for cell in column_cells[:100]:  # Check first 100 rows only
                if cell.value is not None:
                    max_length = max(max_length, len(str(cell.value)))

            ws.column_dimensions[column].width = min(max_length + 2, max_width)

    def _add_color_scale(
        self,
        ws,
        column: str,
        start_row: int,
        end_row: int,
        mid_value: Optional[float] = None
    ) -> None:
        """Add color scale conditional formatting."""
        cell_range = f"{column}{start_row}:{column}{end_row}"

        if mid_value is not None:
            rule = ColorScaleRule(
                start_type="min", start_color="F8696B",
                mid_type="num", mid_value=mid_value, mid_color="FFEB84",
                end_type="max", end_color="63BE7B"
            )
        else:
            rule = ColorScaleRule(
                start_type="min", start_color="F8696B",
                mid_type="percentile", mid_value=50, mid_color="FFEB84",
                end_type="max", end_color="63BE7B"
            )

        ws.conditional_formatting.add(cell_range, rule)


def generate_excel_report(
    results: pd.DataFrame,
    output_dir: Path,
    name: str = "sweep",
    top_n: int = 100,
    min_closed_trades: int = 1,
) -> Path:
    """
    Convenience function to generate Excel report.

    Args:
        results: Results DataFrame
        output_dir: Output directory
        name: File name stem
        top_n: Ranked strategies on the top sheet
        min_closed_trades: Minimum closed trades for ranking

    Returns:
        Path to generated Excel file
    """
    generator = ExcelReportGenerator(output_dir, MetricsCalculator(min_closed_trades))
    return generator.generate_report(results, name, top_n)
