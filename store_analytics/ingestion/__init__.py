"""
Ingestion Module
"""
from .ledger_reader import LedgerReader, LineItemRecord, OrderRecord

__all__ = [
    "LedgerReader",
    "LineItemRecord",
    "OrderRecord",
]
