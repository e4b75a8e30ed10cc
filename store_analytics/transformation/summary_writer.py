"""
Monthly Summary Writer

Turns rollup statistics into ``monthly_revenue_summaries`` rows and writes
them with a merge upsert: new keys are inserted, existing keys get only the
computed columns overwritten and ``updated_at`` refreshed.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from store_analytics.database.connection import dialect_insert
from store_analytics.database.models import MonthlyRevenueSummary
from store_analytics.exceptions import DataAccessError
from store_analytics.transformation.rollup import MonthlyStats, RollupResult

logger = structlog.get_logger(__name__)

CENTS = Decimal("0.01")

# Columns produced by a rollup run; anything else on the row is left alone.
COMPUTED_COLUMNS = (
    "store_id",
    "month",
    "total_revenue",
    "total_orders",
    "total_products_sold",
    "active_customers",
    "weekly",
    "updated_at",
)


class WeeklyBreakdown(BaseModel):
    """One entry of the weekly array"""
    model_config = ConfigDict(populate_by_name=True)

    week: int
    revenue: Decimal
    orders: int
    products_sold: int = Field(alias="productsSold")
    active_customers: int = Field(alias="activeCustomers")


class MonthlySummaryRecord(BaseModel):
    """Persisted shape of a store/month summary"""
    model_config = ConfigDict(populate_by_name=True)

    summary_id: str
    store_id: str = Field(alias="storeId")
    month: str
    total_revenue: Decimal = Field(alias="totalRevenue")
    total_orders: int = Field(alias="totalOrders")
    total_products_sold: int = Field(alias="totalProductsSold")
    active_customers: int = Field(alias="activeCustomers")
    weekly: List[WeeklyBreakdown]

    @classmethod
    def from_stats(cls, stats: MonthlyStats) -> "MonthlySummaryRecord":
        return cls(
            summary_id=stats.key,
            store_id=stats.store_id,
            month=stats.month,
            total_revenue=stats.revenue,
            total_orders=stats.orders,
            total_products_sold=stats.units,
            active_customers=stats.active_customers,
            weekly=[
                WeeklyBreakdown(
                    week=week.week,
                    revenue=week.revenue,
                    orders=week.orders,
                    products_sold=week.units,
                    active_customers=week.active_customers,
                )
                for week in stats.weeks
            ],
        )

    def weekly_payload(self) -> List[Dict[str, Any]]:
        """
        Weekly array as stored in the JSON column.

        Revenue is a decimal string at the same scale as ``total_revenue`` so
        the weeks of a month add up to the month exactly.
        """
        return [
            {
                "week": entry.week,
                "revenue": str(entry.revenue.quantize(CENTS)),
                "orders": entry.orders,
                "productsSold": entry.products_sold,
                "activeCustomers": entry.active_customers,
            }
            for entry in self.weekly
        ]

    def to_row(self, updated_at: datetime) -> Dict[str, Any]:
        return {
            "summary_id": self.summary_id,
            "store_id": self.store_id,
            "month": self.month,
            "total_revenue": self.total_revenue.quantize(CENTS),
            "total_orders": self.total_orders,
            "total_products_sold": self.total_products_sold,
            "active_customers": self.active_customers,
            "weekly": self.weekly_payload(),
            "updated_at": updated_at,
        }


def build_summary_records(result: RollupResult) -> List[MonthlySummaryRecord]:
    """Build summary records sorted by key for a stable write order"""
    return [
        MonthlySummaryRecord.from_stats(result.stats[key])
        for key in sorted(result.stats)
    ]


class SummaryWriter:
    """
    Merge-upserts summary records within the caller's transaction.

    The writer never commits: the pipeline commits once after every record
    has been written, so a run either lands completely or not at all.
    """

    def __init__(self, session: AsyncSession, chunk_size: int = 500):
        self.session = session
        self.chunk_size = chunk_size

    def _upsert_statement(self, rows: List[Dict[str, Any]]):
        stmt = dialect_insert(self.session, MonthlyRevenueSummary).values(rows)
        return stmt.on_conflict_do_update(
            index_elements=[MonthlyRevenueSummary.summary_id],
            set_={column: stmt.excluded[column] for column in COMPUTED_COLUMNS},
        )

    async def write(
        self,
        records: List[MonthlySummaryRecord],
        updated_at: Optional[datetime] = None,
    ) -> int:
        """
        Stage all records for commit.

        Returns:
            Number of summaries written
        """
        if not records:
            logger.info("No summaries to write")
            return 0

        updated_at = updated_at or datetime.now(timezone.utc)
        rows = [record.to_row(updated_at) for record in records]

        try:
            for i in range(0, len(rows), self.chunk_size):
                chunk = rows[i:i + self.chunk_size]
                await self.session.execute(self._upsert_statement(chunk))
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.error("Summary write failed", error=str(e), error_type=type(e).__name__)
            raise DataAccessError(f"Failed to write monthly summaries: {e}") from e

        logger.info("Summaries staged", count=len(rows))
        return len(rows)
