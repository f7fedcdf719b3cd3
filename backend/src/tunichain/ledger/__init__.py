"""
Ledger package - the four cooperating contracts and their execution host.

Registry → InvoiceValidation → PaymentRegistry → VATControl, all executed
by a Chain that serializes transactions and rolls back failed ones.
"""

from .chain import Chain, Contract, LogEntry, TransactionReceipt
from .deployment import Deployment, deploy
from .invoice_validation import InvoiceValidation
from .payment_registry import PaymentRegistry
from .registry import Registry
from .vat_control import VATControl

__all__ = [
    "Chain",
    "Contract",
    "Deployment",
    "InvoiceValidation",
    "LogEntry",
    "PaymentRegistry",
    "Registry",
    "TransactionReceipt",
    "VATControl",
    "deploy",
]
