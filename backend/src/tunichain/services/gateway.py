"""
Submission gateway between signed envelopes and the ledger.

The gateway is the only path from the outside world to Chain.transact:
it authenticates the envelope, enforces per-sender nonces and restricts
calls to the externally callable contract methods. Role checks are left
to the contracts themselves.
"""

import logging
import threading
from typing import Any

from tunichain.ledger import Deployment, TransactionReceipt

from .signing import (
    NonceError,
    SignedTransaction,
    UnknownMethodError,
    recover_sender,
)

logger = logging.getLogger(__name__)


# Externally callable methods per contract. VATControl recorders are
# reachable only through the ledgers.
EXTERNAL_METHODS: dict[str, frozenset[str]] = {
    "Registry": frozenset({
        "add_seller",
        "add_bank",
        "remove_seller",
        "remove_bank",
        "grant_tax_admin",
        "revoke_tax_admin",
    }),
    "InvoiceValidation": frozenset({"submit_invoice", "set_vat_control"}),
    "PaymentRegistry": frozenset({"store_payment", "set_vat_control"}),
}


class TransactionGateway:
    """
    Verifies and dispatches signed transactions.
    
    A nonce is consumed only when its transaction commits, so a rejected
    transaction can be re-signed with the same nonce.
    """
    
    def __init__(self, deployment: Deployment) -> None:
        self.deployment = deployment
        self._nonces: dict[str, int] = {}
        self._lock = threading.Lock()
    
    def next_nonce(self, address: str) -> int:
        return self._nonces.get(address, 0)
    
    def submit(self, tx: SignedTransaction) -> TransactionReceipt:
        """
        Run a signed transaction on the ledger.
        
        Raises:
            InvalidSignatureError: If the envelope is not validly signed
            NonceError: If the nonce is not the sender's next nonce
            UnknownMethodError: If the method is not externally callable
            LedgerError: If the contract rejects the call
        """
        sender = recover_sender(tx)
        method = self._resolve(tx.contract, tx.method)
        
        with self._lock:
            expected = self.next_nonce(sender)
            if tx.nonce != expected:
                raise NonceError(f"invalid nonce: expected {expected}, got {tx.nonce}")
            
            receipt = self.deployment.chain.transact(sender, method, *tx.args)
            self._nonces[sender] = expected + 1
        
        logger.info(
            f"{tx.contract}.{tx.method} from {sender} committed in block "
            f"{receipt.block_number} ({receipt.tx_hash})"
        )
        return receipt
    
    def _resolve(self, contract_name: str, method_name: str) -> Any:
        allowed = EXTERNAL_METHODS.get(contract_name, frozenset())
        if method_name not in allowed:
            raise UnknownMethodError(f"unknown method {contract_name}.{method_name}")
        return getattr(self.deployment.contracts[contract_name], method_name)
