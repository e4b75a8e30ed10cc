"""
Synthetic Order Generator

Generates demo orders with line items for a single store and a small pool of
customers, for local development and dashboards.
"""

import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from faker import Faker

# Demo store and customers used by the seeded dataset
DEMO_STORE_ID = "MxOFNkEGVNrgaNfTaXlN"
DEMO_CUSTOMER_IDS = [
    "JFsmiiWMHjgdtHFFdhtqEDPAZsl1",
    "lDfLMVzWYaRscgQ4gea3vqBUc5r2",
    "fEWRpFTXpSgh4H45aAZ7GY9dWer2",
]


@dataclass
class GeneratedLineItem:
    product_id: str
    quantity: int
    unit_price: Decimal


@dataclass
class GeneratedOrder:
    order_id: str
    store_id: str
    customer_id: str
    created_at: datetime
    status: str = "pending"
    line_items: List[GeneratedLineItem] = field(default_factory=list)

    @property
    def total_price(self) -> Decimal:
        return sum(
            (item.unit_price * item.quantity for item in self.line_items),
            Decimal("0"),
        )


class OrderGenerator:
    """
    Generate realistic order data.

    Example:
        orders = OrderGenerator(seed=42).generate(n=200, days=90)
    """

    def __init__(
        self,
        store_id: str = DEMO_STORE_ID,
        customer_ids: Optional[List[str]] = None,
        seed: Optional[int] = 42,
    ):
        self.store_id = store_id
        self.customer_ids = customer_ids or list(DEMO_CUSTOMER_IDS)
        self.fake = Faker()
        self.random = random.Random(seed)
        if seed is not None:
            self.fake.seed_instance(seed)

    def _line_items(self) -> List[GeneratedLineItem]:
        return [
            GeneratedLineItem(
                product_id=f"PROD-{self.fake.bothify(text='????-####').upper()}",
                quantity=self.random.randint(1, 5),
                unit_price=Decimal(str(round(self.random.uniform(5, 250), 2))),
            )
            for _ in range(self.random.randint(1, 4))
        ]

    def generate(
        self,
        n: int = 100,
        days: int = 90,
        end: Optional[datetime] = None,
        paid_ratio: float = 0.8,
    ) -> List[GeneratedOrder]:
        """Generate n orders spread over the last ``days`` days"""
        end = end or datetime.now(timezone.utc)
        start = end - timedelta(days=days)

        orders = []
        for _ in range(n):
            created_at = self.fake.date_time_between(
                start_date=start, end_date=end, tzinfo=timezone.utc
            )
            orders.append(
                GeneratedOrder(
                    order_id=str(uuid.UUID(int=self.random.getrandbits(128))),
                    store_id=self.store_id,
                    customer_id=self.random.choice(self.customer_ids),
                    created_at=created_at,
                    status="paid" if self.random.random() < paid_ratio else "pending",
                    line_items=self._line_items(),
                )
            )

        return sorted(orders, key=lambda o: o.created_at)
