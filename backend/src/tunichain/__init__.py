"""
Tunichain - permissioned ledger for invoicing, VAT accounting and settlement.
"""

__version__ = "0.1.0"
