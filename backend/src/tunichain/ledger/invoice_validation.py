"""
Invoice ledger.

Registered sellers submit the hash of an invoice together with its amount
and VAT rate. The ledger derives the VAT, stores the record under the next
sequential id and forwards the tax base to VATControl in the same
transaction. Records are never updated or deleted.
"""

import logging

from tunichain.domain.errors import AccessControlError, DuplicateError
from tunichain.domain.hashing import normalize_hash
from tunichain.domain.models import (
    TAX_ADMIN_ROLE,
    InvoiceRecord,
    InvoiceStored,
    Role,
    VATControlUpdated,
)
from tunichain.domain.validation import compute_vat

from .chain import Chain, Contract, uint
from .registry import Registry
from .vat_control import VATControl

logger = logging.getLogger(__name__)


def resolve_vat_control(chain: Chain, address: str) -> VATControl:
    """Look up a deployed VATControl by address."""
    contract = chain.contract_at(address)
    if not isinstance(contract, VATControl):
        raise ValueError(f"No VATControl deployed at {address}")
    return contract


class InvoiceValidation(Contract):
    """Append-only, hash-unique invoice ledger."""
    
    def __init__(self, chain: Chain, address: str, registry: Registry) -> None:
        super().__init__(chain, address)
        self.registry = registry
        self.vat_control: VATControl | None = None
        self._invoices: dict[int, InvoiceRecord] = {}
        self._ids_by_hash: dict[str, int] = {}
        self._invoice_count = 0
    
    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------
    
    @property
    def invoice_count(self) -> int:
        return self._invoice_count
    
    def get_invoice_id_by_hash(self, invoice_hash: bytes | str) -> int:
        """Invoice id for a hash, 0 if the hash was never stored."""
        return self._ids_by_hash.get(normalize_hash(invoice_hash), 0)
    
    def get_invoice(self, invoice_id: int) -> InvoiceRecord | None:
        return self._invoices.get(invoice_id)
    
    def get_invoice_by_hash(self, invoice_hash: bytes | str) -> InvoiceRecord | None:
        return self._invoices.get(self.get_invoice_id_by_hash(invoice_hash))
    
    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------
    
    def set_vat_control(self, address: str) -> None:
        """Wire (or re-wire) the VAT aggregator. Tax-Admin only."""
        if not self.registry.is_tax_admin(self.msg_sender):
            raise AccessControlError("only admin", required_role=TAX_ADMIN_ROLE, account=self.msg_sender)
        
        vat_control = resolve_vat_control(self.chain, address)
        if vat_control.invoice_validation != self.address:
            logger.warning(
                f"VATControl {vat_control.address} does not accept calls from {self.address}; "
                "invoice submissions will revert until it is re-wired"
            )
        previous = self.vat_control.address if self.vat_control else None
        self._set("vat_control", vat_control)
        self._emit(VATControlUpdated(previous=previous, current=vat_control.address))
    
    def submit_invoice(
        self,
        invoice_hash: bytes | str,
        amount: int,
        vat_rate_permille: int,
    ) -> int:
        """
        Store an invoice for the calling seller.
        
        Zero amounts are accepted (e.g. corrective documents).
        
        Returns:
            The id assigned to the invoice
        """
        seller = self.msg_sender
        if not self.registry.is_seller(seller):
            raise AccessControlError("not registered seller", required_role=Role.SELLER.name, account=seller)
        
        invoice_hash = normalize_hash(invoice_hash)
        if invoice_hash in self._ids_by_hash:
            raise DuplicateError("already stored")
        
        uint(amount, "amount")
        uint(vat_rate_permille, "vat_rate_permille")
        vat_amount = compute_vat(amount, vat_rate_permille)
        
        invoice_id = self._invoice_count + 1
        record = InvoiceRecord(
            id=invoice_id,
            seller=seller,
            hash=invoice_hash,
            amount=amount,
            vat_rate_permille=vat_rate_permille,
            vat_amount=vat_amount,
            timestamp=self.block_timestamp,
        )
        self._set("_invoice_count", invoice_id)
        self._store(self._invoices, invoice_id, record)
        self._store(self._ids_by_hash, invoice_hash, invoice_id)
        
        self._emit(InvoiceStored(
            id=invoice_id,
            seller=seller,
            hash=invoice_hash,
            amount=amount,
            vat_rate_permille=vat_rate_permille,
            vat_amount=vat_amount,
        ))
        
        if self.vat_control is not None:
            self._call(
                self.vat_control.record_invoice,
                seller,
                invoice_id,
                amount,
                vat_rate_permille,
                vat_amount,
            )
        
        logger.debug(f"Invoice {invoice_id} stored for seller {seller}")
        return invoice_id
