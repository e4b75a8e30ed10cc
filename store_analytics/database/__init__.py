"""
Database Module
"""
from .connection import (
    init_database,
    close_database,
    get_db,
    get_session_factory,
    session_scope,
)
from .models import Base, Order, OrderLineItem, MonthlyRevenueSummary, PaymentEventLog, PaymentStatus

__all__ = [
    "init_database",
    "close_database",
    "get_db",
    "get_session_factory",
    "session_scope",
    "Base",
    "Order",
    "OrderLineItem",
    "MonthlyRevenueSummary",
    "PaymentEventLog",
    "PaymentStatus",
]
