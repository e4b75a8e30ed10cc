"""
Data Generation Module
"""
from .generators import DEMO_CUSTOMER_IDS, DEMO_STORE_ID, OrderGenerator

__all__ = ["DEMO_CUSTOMER_IDS", "DEMO_STORE_ID", "OrderGenerator"]
