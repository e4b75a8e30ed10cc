"""
Seed the order ledger with synthetic demo orders.

Usage:
    python -m store_analytics.ingestion.seed_db --orders 500 --days 120
"""

import argparse
import asyncio
from typing import Any, Dict, List

import structlog

from store_analytics.config.logging import configure_logging
from store_analytics.data.generators import GeneratedOrder, OrderGenerator
from store_analytics.database.connection import dialect_insert, get_db, get_engine, init_database
from store_analytics.database.models import Base, Order, OrderLineItem, PaymentStatus

logger = structlog.get_logger(__name__)


async def create_tables() -> None:
    """Create any missing tables"""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def execute_batch_insert(model: Any, records: List[Dict[str, Any]]) -> None:
    """Helper to insert batch of records, ignoring rows already present"""
    if not records:
        return

    async with get_db() as db:
        chunk_size = 1000
        for i in range(0, len(records), chunk_size):
            chunk = records[i:i + chunk_size]
            stmt = dialect_insert(db, model).values(chunk).on_conflict_do_nothing()
            await db.execute(stmt)
    logger.info(f"Inserted {len(records)} records into {model.__tablename__}")


async def seed_orders(orders: List[GeneratedOrder]) -> None:
    """Insert generated orders and their line items"""
    await execute_batch_insert(Order, [
        {
            "order_id": order.order_id,
            "store_id": order.store_id,
            "customer_id": order.customer_id,
            "total_price": order.total_price,
            "created_at": order.created_at,
            "status": PaymentStatus(order.status),
            "paid_at": order.created_at if order.status == "paid" else None,
        }
        for order in orders
    ])
    await execute_batch_insert(OrderLineItem, [
        {
            "line_item_id": f"{order.order_id}-{position}",
            "order_id": order.order_id,
            "product_id": item.product_id,
            "quantity": item.quantity,
        }
        for order in orders
        for position, item in enumerate(order.line_items, start=1)
    ])


async def main(n_orders: int, days: int, seed: int) -> None:
    logger.info("Starting database seeding...", orders=n_orders, days=days)
    await init_database()
    try:
        await create_tables()
        await seed_orders(OrderGenerator(seed=seed).generate(n=n_orders, days=days))
        logger.info("Database seeding completed successfully!")
    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        raise


def cli() -> None:
    parser = argparse.ArgumentParser(description="Seed demo orders")
    parser.add_argument("--orders", type=int, default=200, help="Number of orders")
    parser.add_argument("--days", type=int, default=90, help="Spread orders over this many days")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args()

    configure_logging()
    asyncio.run(main(args.orders, args.days, args.seed))


if __name__ == "__main__":
    cli()
