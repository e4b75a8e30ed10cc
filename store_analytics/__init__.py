"""
Store Analytics

Monthly/weekly revenue rollups over the order ledger and Stripe payment
reconciliation.
"""

__version__ = "1.0.0"
