"""
VAT aggregator fed by the two ledgers.

VATControl keeps per-seller running totals derived from invoice and
payment records. It has no other write path: only the InvoiceValidation and
PaymentRegistry addresses fixed at construction may call its recorders, and
it never touches ledger records. Totals only grow.
"""

from dataclasses import replace

from tunichain.domain.errors import UnauthorizedCallerError
from tunichain.domain.models import VATPaymentRecorded, VATRecorded, VATTotals

from .chain import Chain, Contract, uint


class VATControl(Contract):
    """
    Per-seller tax-base and VAT-paid accumulators.
    
    Every recorder emits an event carrying the post-update cumulative
    total, so observers get an auditable running balance without replaying
    history.
    """
    
    def __init__(
        self,
        chain: Chain,
        address: str,
        invoice_validation: str,
        payment_registry: str,
    ) -> None:
        super().__init__(chain, address)
        self.invoice_validation = invoice_validation
        self.payment_registry = payment_registry
        self._totals: dict[str, VATTotals] = {}
    
    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------
    
    def totals(self, seller: str) -> VATTotals:
        return self._totals.get(seller, VATTotals())
    
    def total_tax_base(self, seller: str) -> int:
        return self.totals(seller).total_tax_base
    
    def total_vat_paid(self, seller: str) -> int:
        return self.totals(seller).total_vat_paid
    
    def vat_due(self, seller: str) -> int:
        return self.totals(seller).vat_due
    
    def sellers(self) -> list[str]:
        """Sellers with at least one contribution, in first-contribution order."""
        return list(self._totals)
    
    # -------------------------------------------------------------------------
    # Recorders (wired ledgers only)
    # -------------------------------------------------------------------------
    
    def record_invoice(
        self,
        seller: str,
        invoice_id: int,
        taxable_amount: int,
        vat_rate_permille: int,
        vat_amount: int,
    ) -> None:
        if self.msg_sender != self.invoice_validation:
            raise UnauthorizedCallerError("only invoice validation")
        
        uint(taxable_amount, "taxable_amount")
        uint(vat_amount, "vat_amount")
        
        current = self.totals(seller)
        updated = replace(
            current,
            total_tax_base=current.total_tax_base + taxable_amount,
            total_vat_invoiced=current.total_vat_invoiced + vat_amount,
        )
        self._store(self._totals, seller, updated)
        
        self._emit(VATRecorded(
            seller=seller,
            invoice_id=invoice_id,
            taxable_amount=taxable_amount,
            vat_rate_permille=vat_rate_permille,
            vat_amount=vat_amount,
            seller_total_tax_base=updated.total_tax_base,
            timestamp=self.block_timestamp,
        ))
    
    def record_payment(
        self,
        seller: str,
        payment_id: int,
        invoice_id: int,
        amount_paid: int,
        vat_rate_permille: int,
        vat_amount: int,
    ) -> None:
        if self.msg_sender != self.payment_registry:
            raise UnauthorizedCallerError("only payment registry")
        
        uint(amount_paid, "amount_paid")
        uint(vat_amount, "vat_amount")
        
        current = self.totals(seller)
        updated = replace(current, total_vat_paid=current.total_vat_paid + vat_amount)
        self._store(self._totals, seller, updated)
        
        self._emit(VATPaymentRecorded(
            seller=seller,
            payment_id=payment_id,
            invoice_id=invoice_id,
            amount_paid=amount_paid,
            vat_rate_permille=vat_rate_permille,
            vat_amount=vat_amount,
            seller_total_vat_paid=updated.total_vat_paid,
            timestamp=self.block_timestamp,
        ))
