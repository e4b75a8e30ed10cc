"""
Test Suite Configuration
"""
import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from store_analytics.config import Settings
from store_analytics.database.connection import build_engine, session_scope
from store_analytics.database.models import Base, Order, OrderLineItem, PaymentStatus
from store_analytics.ingestion.ledger_reader import LineItemRecord, OrderRecord
from store_analytics.payments.secrets import STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET

TEST_WEBHOOK_SECRET = "whsec_test_secret"
TEST_API_KEY = "sk_test_123"


class StaticSecretProvider:
    """Secret provider backed by a dict"""

    def __init__(self, values: Dict[str, Optional[str]]):
        self.values = values
        self.lookups: List[str] = []

    async def get(self, name: str) -> Optional[str]:
        self.lookups.append(name)
        return self.values.get(name)


def utc(year: int, month: int, day: int, hour: int = 20) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def ledger_row(
    order_id: str,
    store_id: Optional[str] = "store-1",
    customer_id: Optional[str] = "user-1",
    total_price: Optional[Any] = "10.00",
    created_at: Optional[datetime] = None,
    quantities: Optional[List[Optional[int]]] = None,
):
    """Build an (OrderRecord, [LineItemRecord]) pair"""
    order = OrderRecord(
        order_id=order_id,
        store_id=store_id,
        customer_id=customer_id,
        total_price=Decimal(total_price) if total_price is not None else None,
        created_at=created_at or utc(2024, 3, 3),
        status="pending",
    )
    items = [LineItemRecord(quantity=q) for q in (quantities if quantities is not None else [1])]
    return order, items


def sign_payload(payload: bytes, secret: str = TEST_WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header for a payload"""
    timestamp = timestamp if timestamp is not None else int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def make_event(
    event_id: str = "evt_1",
    event_type: str = "payment_intent.succeeded",
    order_id: Optional[str] = "order-1",
) -> bytes:
    """Serialize a minimal Stripe event"""
    metadata = {"orderId": order_id} if order_id else {}
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": 1710000000,
        "data": {
            "object": {
                "id": "pi_test_1",
                "object": "payment_intent",
                "amount": 3000,
                "currency": "usd",
                "metadata": metadata,
            }
        },
    }).encode("utf-8")


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(APP_ENV="testing")


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with all tables created"""
    engine = build_engine("sqlite+aiosqlite://")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Unit-of-work factory bound to the test engine"""
    return session_scope(
        async_sessionmaker(
            bind=test_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    )


@pytest.fixture
def secrets() -> StaticSecretProvider:
    return StaticSecretProvider({
        STRIPE_SECRET_KEY: TEST_API_KEY,
        STRIPE_WEBHOOK_SECRET: TEST_WEBHOOK_SECRET,
    })


@pytest.fixture
def insert_orders(session_factory):
    """Insert ledger orders given as dicts with an optional ``quantities`` list"""

    async def _insert(orders: List[Dict[str, Any]]) -> None:
        async with session_factory() as db:
            for values in orders:
                values = dict(values)
                quantities = values.pop("quantities", [1])
                order = Order(status=PaymentStatus.PENDING, **values)
                order.line_items = [
                    OrderLineItem(line_item_id=f"{order.order_id}-{i}", quantity=q)
                    for i, q in enumerate(quantities, start=1)
                ]
                db.add(order)

    return _insert


@pytest.fixture
def march_orders() -> List[Dict[str, Any]]:
    """Two orders for one store and customer in 2024-03, weeks 1 and 2"""
    return [
        {
            "order_id": "order-1",
            "store_id": "S",
            "customer_id": "U",
            "total_price": Decimal("10.00"),
            "created_at": utc(2024, 3, 3),
            "quantities": [2],
        },
        {
            "order_id": "order-2",
            "store_id": "S",
            "customer_id": "U",
            "total_price": Decimal("20.00"),
            "created_at": utc(2024, 3, 10),
            "quantities": [1, 2],
        },
    ]
