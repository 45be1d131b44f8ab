"""Reports package for pattern strategy sweeps."""

from pattern_optimizer.reports.excel_generator import (
    ExcelReportGenerator,
    generate_excel_report,
)

__all__ = ["ExcelReportGenerator", "generate_excel_report"]
