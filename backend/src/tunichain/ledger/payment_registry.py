"""
Payment ledger.

Registered banks record payments against invoices already stored in
InvoiceValidation. The VAT contribution forwarded to VATControl is the one
stored on the referenced invoice, never one derived from the paid amount,
so a caller cannot supply an inconsistent VAT split. An invoice contributes
its VAT once: the first payment settles it and later payments against the
same invoice forward zero.

The ledger does not flag invoices as paid; that is left to the off-chain
mirror consuming PaymentStored.
"""

import logging

from tunichain.domain.errors import (
    AccessControlError,
    DuplicateError,
    ReferentialIntegrityError,
)
from tunichain.domain.hashing import normalize_hash
from tunichain.domain.models import (
    TAX_ADMIN_ROLE,
    PaymentRecord,
    PaymentStored,
    Role,
    VATControlUpdated,
)

from .chain import Chain, Contract, uint
from .invoice_validation import InvoiceValidation, resolve_vat_control
from .registry import Registry
from .vat_control import VATControl

logger = logging.getLogger(__name__)


class PaymentRegistry(Contract):
    """
    Append-only, payment-hash-unique payment ledger.
    
    store_payment checks, in order: bank role, invoice existence
    ("invoice unknown"), payment hash uniqueness ("payment exists").
    """
    
    def __init__(
        self,
        chain: Chain,
        address: str,
        registry: Registry,
        invoice_validation: InvoiceValidation,
    ) -> None:
        super().__init__(chain, address)
        self.registry = registry
        self.invoice_validation = invoice_validation
        self.vat_control: VATControl | None = None
        self._payments: dict[int, PaymentRecord] = {}
        self._ids_by_hash: dict[str, int] = {}
        self._vat_settled: dict[int, int] = {}
        self._payment_count = 0
    
    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------
    
    @property
    def payment_count(self) -> int:
        return self._payment_count
    
    def get_payment_id_by_hash(self, payment_hash: bytes | str) -> int:
        """Payment id for a hash, 0 if the hash was never stored."""
        return self._ids_by_hash.get(normalize_hash(payment_hash), 0)
    
    def get_payment(self, payment_id: int) -> PaymentRecord | None:
        return self._payments.get(payment_id)
    
    def get_payment_by_hash(self, payment_hash: bytes | str) -> PaymentRecord | None:
        return self._payments.get(self.get_payment_id_by_hash(payment_hash))
    
    def payments_for_invoice(self, invoice_id: int) -> list[PaymentRecord]:
        return [p for p in self._payments.values() if p.invoice_id == invoice_id]
    
    def vat_settled(self, invoice_id: int) -> int:
        """VAT already forwarded for an invoice, never above its vat_amount."""
        return self._vat_settled.get(invoice_id, 0)
    
    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------
    
    def set_vat_control(self, address: str) -> None:
        """Wire (or re-wire) the VAT aggregator. Tax-Admin only."""
        if not self.registry.is_tax_admin(self.msg_sender):
            raise AccessControlError("only admin", required_role=TAX_ADMIN_ROLE, account=self.msg_sender)
        
        vat_control = resolve_vat_control(self.chain, address)
        if vat_control.payment_registry != self.address:
            logger.warning(
                f"VATControl {vat_control.address} does not accept calls from {self.address}; "
                "payment submissions will revert until it is re-wired"
            )
        previous = self.vat_control.address if self.vat_control else None
        self._set("vat_control", vat_control)
        self._emit(VATControlUpdated(previous=previous, current=vat_control.address))
    
    def store_payment(
        self,
        payment_hash: bytes | str,
        invoice_hash: bytes | str,
        amount_paid: int,
    ) -> int:
        """
        Store a payment for the calling bank.
        
        Returns:
            The id assigned to the payment
        """
        bank = self.msg_sender
        if not self.registry.is_bank(bank):
            raise AccessControlError("not registered bank", required_role=Role.BANK.name, account=bank)
        
        payment_hash = normalize_hash(payment_hash)
        invoice = self.invoice_validation.get_invoice_by_hash(invoice_hash)
        if invoice is None:
            raise ReferentialIntegrityError("invoice unknown")
        
        if payment_hash in self._ids_by_hash:
            raise DuplicateError("payment exists")
        
        uint(amount_paid, "amount_paid")
        
        payment_id = self._payment_count + 1
        record = PaymentRecord(
            id=payment_id,
            bank=bank,
            invoice_id=invoice.id,
            payment_hash=payment_hash,
            amount_paid=amount_paid,
            timestamp=self.block_timestamp,
        )
        self._set("_payment_count", payment_id)
        self._store(self._payments, payment_id, record)
        self._store(self._ids_by_hash, payment_hash, payment_id)
        
        self._emit(PaymentStored(
            id=payment_id,
            bank=bank,
            invoice_id=invoice.id,
            payment_hash=payment_hash,
            amount_paid=amount_paid,
        ))
        
        if self.vat_control is not None:
            settled = self.vat_settled(invoice.id)
            vat_amount = invoice.vat_amount - settled
            self._store(self._vat_settled, invoice.id, settled + vat_amount)
            self._call(
                self.vat_control.record_payment,
                invoice.seller,
                payment_id,
                invoice.id,
                amount_paid,
                invoice.vat_rate_permille,
                vat_amount,
            )
        
        logger.debug(f"Payment {payment_id} stored by bank {bank} for invoice {invoice.id}")
        return payment_id
