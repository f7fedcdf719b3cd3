"""
Services package - Integrations around the ledger core.

Includes signed submissions, the submission gateway, the process node and
the event listener that mirrors ledger state off-chain.
"""

from .gateway import TransactionGateway
from .node import LedgerNode, create_node, get_node
from .signing import SignedTransaction, TransactionSigner

__all__ = [
    "LedgerNode",
    "SignedTransaction",
    "TransactionGateway",
    "TransactionSigner",
    "create_node",
    "get_node",
]
