"""
Database Models

Operational tables:
- Order: Raw order ledger (append-only apart from payment status)
- OrderLineItem: Line items owned by an order
- PaymentEventLog: Payment provider events already applied to orders

Derived tables:
- MonthlyRevenueSummary: Per store/month rollup with weekly breakdown
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class PaymentStatus(str, Enum):
    """Order payment status"""
    PENDING = "pending"
    PAID = "paid"


# =============================================================================
# ORDER LEDGER
# =============================================================================

class Order(Base):
    """
    Order Ledger Table

    Written by checkout. Store, customer, price and creation time are nullable
    because the ledger is not validated on write, and because the payment
    webhook may upsert an order the ledger has not seen yet.
    """
    __tablename__ = "orders"

    order_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    store_id: Mapped[Optional[str]] = mapped_column(String(64))
    customer_id: Mapped[Optional[str]] = mapped_column(String(64))
    total_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Payment
    status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(
            PaymentStatus,
            name="payment_status",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Relationships
    line_items: Mapped[List["OrderLineItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_orders_store", "store_id"),
        Index("ix_orders_created_at", "created_at"),
    )


class OrderLineItem(Base):
    """
    Order Line Item Table

    Grain is one product line within an order. Only quantity is aggregated.
    """
    __tablename__ = "order_line_items"

    line_item_id: Mapped[str] = mapped_column(String(80), primary_key=True)
    order_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("orders.order_id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[Optional[str]] = mapped_column(String(64))
    quantity: Mapped[Optional[int]] = mapped_column(Integer)

    order: Mapped["Order"] = relationship(back_populates="line_items")

    __table_args__ = (
        Index("ix_order_line_items_order", "order_id"),
    )


class PaymentEventLog(Base):
    """
    Applied Payment Events

    One row per provider event id that changed an order. The primary key is
    the dedup guard for redelivered events.
    """
    __tablename__ = "payment_events"

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    order_id: Mapped[str] = mapped_column(String(64), nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


# =============================================================================
# AGGREGATE TABLES
# =============================================================================

class MonthlyRevenueSummary(Base):
    """
    Monthly Revenue Summary

    Keyed by ``{store_id}_{YYYY-MM}``. Rewritten by every rollup run through a
    merge upsert; ``notes`` is owned by other writers and never touched by
    the rollup.
    """
    __tablename__ = "monthly_revenue_summaries"

    summary_id: Mapped[str] = mapped_column(String(80), primary_key=True)
    store_id: Mapped[str] = mapped_column(String(64), nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)  # YYYY-MM

    # Metrics
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0)
    total_orders: Mapped[int] = mapped_column(Integer, default=0)
    total_products_sold: Mapped[int] = mapped_column(Integer, default=0)
    active_customers: Mapped[int] = mapped_column(Integer, default=0)
    weekly: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)

    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Audit
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_monthly_revenue_store_month", "store_id", "month"),
    )
