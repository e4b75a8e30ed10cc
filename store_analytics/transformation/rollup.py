"""
Revenue Rollup Engine

Groups ledger orders by store, calendar month and week-of-month, and
accumulates revenue, order counts, units sold and distinct customers.

Every accumulation is a sum or a set union, so the result does not depend on
the order rows arrive in, and partial results built over disjoint slices of
the ledger can be merged.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import AsyncIterable, Dict, Iterable, List, Optional, Set, Tuple, Union
from zoneinfo import ZoneInfo

import structlog

from store_analytics.config import get_settings
from store_analytics.ingestion.ledger_reader import LineItemRecord, OrderRecord

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


def week_of_month(day: int) -> int:
    """
    Fixed-width week bucket for a day of month: 1-7 -> 1, ..., 29-31 -> 5.

    This is not aligned to calendar weeks; the fifth bucket holds at most
    three days. Downstream dashboards rely on exactly this bucketing.
    """
    if not 1 <= day <= 31:
        raise ValueError(f"Day of month out of range: {day}")
    return (day + 6) // 7


def summary_key(store_id: str, month: str) -> str:
    """Deterministic summary identifier ``{store_id}_{YYYY-MM}``"""
    return f"{store_id}_{month}"


class _Accumulator:
    """Shared add/merge behaviour for month and week buckets"""

    revenue: Decimal
    orders: int
    units: int
    customers: Set[str]

    def _accumulate(self, price: Decimal, units: int, customer_id: str) -> None:
        self.revenue += price
        self.orders += 1
        self.units += units
        self.customers.add(customer_id)

    def _absorb(self, other: "_Accumulator") -> None:
        self.revenue += other.revenue
        self.orders += other.orders
        self.units += other.units
        self.customers |= other.customers

    @property
    def active_customers(self) -> int:
        return len(self.customers)


@dataclass
class WeeklyStats(_Accumulator):
    """Totals for one week-of-month bucket"""
    week: int
    revenue: Decimal = ZERO
    orders: int = 0
    units: int = 0
    customers: Set[str] = field(default_factory=set)

    def add(self, price: Decimal, units: int, customer_id: str) -> None:
        self._accumulate(price, units, customer_id)

    def merge(self, other: "WeeklyStats") -> None:
        self._absorb(other)


@dataclass
class MonthlyStats(_Accumulator):
    """
    Totals for one store and calendar month, with nested weekly buckets.

    The monthly customer set is fed from the same orders as the weekly sets,
    so it is their union rather than the sum of their sizes.
    """
    store_id: str
    month: str
    revenue: Decimal = ZERO
    orders: int = 0
    units: int = 0
    customers: Set[str] = field(default_factory=set)
    weekly: Dict[int, WeeklyStats] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return summary_key(self.store_id, self.month)

    @property
    def weeks(self) -> List[WeeklyStats]:
        """Observed weeks sorted by week number"""
        return [self.weekly[week] for week in sorted(self.weekly)]

    def add(self, week: int, price: Decimal, units: int, customer_id: str) -> None:
        self._accumulate(price, units, customer_id)
        if week not in self.weekly:
            self.weekly[week] = WeeklyStats(week=week)
        self.weekly[week].add(price, units, customer_id)

    def merge(self, other: "MonthlyStats") -> None:
        self._absorb(other)
        for week, stats in other.weekly.items():
            if week not in self.weekly:
                self.weekly[week] = WeeklyStats(week=week)
            self.weekly[week].merge(stats)


@dataclass
class RollupResult:
    """Output of one rollup pass"""
    stats: Dict[str, MonthlyStats] = field(default_factory=dict)
    orders_seen: int = 0
    orders_skipped: int = 0

    @property
    def orders_counted(self) -> int:
        return self.orders_seen - self.orders_skipped

    def merge(self, other: "RollupResult") -> "RollupResult":
        """Fold another partial result into this one (reduce step)."""
        for key, monthly in other.stats.items():
            if key not in self.stats:
                self.stats[key] = MonthlyStats(store_id=monthly.store_id, month=monthly.month)
            self.stats[key].merge(monthly)
        self.orders_seen += other.orders_seen
        self.orders_skipped += other.orders_skipped
        return self


class RollupEngine:
    """
    Accumulates ledger rows into per store/month statistics.

    Example:
        engine = RollupEngine("America/Los_Angeles")
        result = await engine.consume(LedgerReader(db).read())
    """

    def __init__(self, tz: Optional[Union[str, ZoneInfo]] = None):
        if tz is None:
            tz = get_settings().rollup.timezone
        self.tz = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)
        self._result = RollupResult()

    def local_date(self, created_at: Union[datetime, date]) -> date:
        """Calendar date of a timestamp in the reference zone; naive means UTC."""
        if not isinstance(created_at, datetime):
            return created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return created_at.astimezone(self.tz).date()

    def bucket(self, created_at: Union[datetime, date]) -> Tuple[str, int]:
        """Return ``(YYYY-MM, week_of_month)`` for a creation timestamp."""
        day = self.local_date(created_at)
        return f"{day.year:04d}-{day.month:02d}", week_of_month(day.day)

    @staticmethod
    def is_countable(order: OrderRecord) -> bool:
        """Rows missing store, customer, price or timestamp are left out."""
        return bool(
            order.store_id
            and order.customer_id
            and order.total_price is not None
            and order.created_at is not None
        )

    def add(self, order: OrderRecord, items: Iterable[LineItemRecord]) -> bool:
        """Accumulate one order; returns False when the row was skipped."""
        self._result.orders_seen += 1

        if not self.is_countable(order):
            self._result.orders_skipped += 1
            logger.debug("Skipping incomplete order", order_id=order.order_id)
            return False

        month, week = self.bucket(order.created_at)
        units = sum(item.quantity or 0 for item in items)
        price = Decimal(order.total_price)

        key = summary_key(order.store_id, month)
        if key not in self._result.stats:
            self._result.stats[key] = MonthlyStats(store_id=order.store_id, month=month)
        self._result.stats[key].add(week, price, units, order.customer_id)
        return True

    def result(self) -> RollupResult:
        return self._result

    async def consume(
        self, rows: AsyncIterable[Tuple[OrderRecord, List[LineItemRecord]]]
    ) -> RollupResult:
        """Drain an async ledger stream into the engine."""
        async for order, items in rows:
            self.add(order, items)

        logger.info(
            "Rollup complete",
            orders_seen=self._result.orders_seen,
            orders_skipped=self._result.orders_skipped,
            summaries=len(self._result.stats),
        )
        return self._result


def rollup_orders(
    rows: Iterable[Tuple[OrderRecord, List[LineItemRecord]]],
    tz: Optional[Union[str, ZoneInfo]] = None,
) -> RollupResult:
    """Convenience function to roll up an in-memory sequence of ledger rows"""
    engine = RollupEngine(tz)
    for order, items in rows:
        engine.add(order, items)
    return engine.result()
