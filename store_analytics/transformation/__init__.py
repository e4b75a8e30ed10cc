"""
Data Transformation Module
"""
from .rollup import (
    MonthlyStats,
    RollupEngine,
    RollupResult,
    WeeklyStats,
    rollup_orders,
    summary_key,
    week_of_month,
)
from .summary_writer import MonthlySummaryRecord, SummaryWriter, build_summary_records

__all__ = [
    "MonthlyStats",
    "RollupEngine",
    "RollupResult",
    "WeeklyStats",
    "rollup_orders",
    "summary_key",
    "week_of_month",
    "MonthlySummaryRecord",
    "SummaryWriter",
    "build_summary_records",
]
