"""
Order Ledger Reader

Reads the full current snapshot of the order ledger together with each
order's line items. No filtering happens here; deciding which rows count
is the rollup's job.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import AsyncIterator, List, Optional, Tuple

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from store_analytics.database.models import Order
from store_analytics.exceptions import DataAccessError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LineItemRecord:
    """Quantity-bearing line of an order"""
    quantity: Optional[int] = None


@dataclass(frozen=True)
class OrderRecord:
    """Order as read from the ledger, fields possibly missing"""
    order_id: str
    store_id: Optional[str] = None
    customer_id: Optional[str] = None
    total_price: Optional[Decimal] = None
    created_at: Optional[datetime] = None
    status: Optional[str] = None


LedgerRow = Tuple[OrderRecord, List[LineItemRecord]]


class LedgerReader:
    """
    Snapshot reader over the ``orders`` and ``order_line_items`` tables.

    Each call to :meth:`read` takes a fresh snapshot; iteration cannot be
    resumed part way through.

    Example:
        async with get_db() as db:
            async for order, items in LedgerReader(db).read():
                ...
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _load(self) -> List[Order]:
        query = select(Order).options(selectinload(Order.line_items)).order_by(Order.order_id)
        try:
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.error("Ledger read failed", error=str(e), error_type=type(e).__name__)
            raise DataAccessError(f"Failed to read order ledger: {e}") from e

    async def read(self) -> AsyncIterator[LedgerRow]:
        """Yield ``(order, line_items)`` pairs for the whole ledger."""
        orders = await self._load()
        logger.info("Ledger snapshot loaded", orders=len(orders))

        for order in orders:
            status = order.status.value if order.status is not None else None
            record = OrderRecord(
                order_id=order.order_id,
                store_id=order.store_id,
                customer_id=order.customer_id,
                total_price=order.total_price,
                created_at=order.created_at,
                status=status,
            )
            items = [LineItemRecord(quantity=item.quantity) for item in order.line_items]
            yield record, items
