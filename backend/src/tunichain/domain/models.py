"""
Domain models for the invoicing ledger.

Records are what the ledgers store, events are what they emit. Both are
frozen dataclasses: a stored record is never updated in place, a role change
replaces the entry with a new one.

Design Decisions:
- Monetary values are plain ints in minor units, the ledger only does
  integer arithmetic
- Hashes are normalized "0x"-prefixed lowercase hex strings (32 bytes)
- Event field names mirror the emitted payloads so the mirror can read them
  without translation
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class Role(Enum):
    """Roles managed by the Registry."""
    SELLER = "seller"
    BANK = "bank"


TAX_ADMIN_ROLE = "TAX_ADMIN"


class MirrorStatus(str, Enum):
    """Lifecycle of an off-chain record: drafted, then confirmed by an event."""
    PENDING = "pending"
    CONFIRMED = "confirmed"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


@dataclass(frozen=True)
class RoleEntry:
    """A Seller or Bank registration. Deactivated, never removed."""
    address: str
    role: Role
    metadata: str
    active: bool = True


@dataclass(frozen=True)
class InvoiceRecord:
    """
    An invoice stored by InvoiceValidation.
    
    vat_amount is derived once at submission: amount * vat_rate_permille // 1000.
    """
    id: int
    seller: str
    hash: str
    amount: int
    vat_rate_permille: int
    vat_amount: int
    timestamp: int


@dataclass(frozen=True)
class PaymentRecord:
    """A payment stored by PaymentRegistry against an existing invoice."""
    id: int
    bank: str
    invoice_id: int
    payment_hash: str
    amount_paid: int
    timestamp: int


@dataclass(frozen=True)
class VATTotals:
    """Running per-seller totals kept by VATControl."""
    total_tax_base: int = 0
    total_vat_paid: int = 0
    total_vat_invoiced: int = 0
    
    @property
    def vat_due(self) -> int:
        """VAT invoiced but not yet covered by recorded payments."""
        return max(self.total_vat_invoiced - self.total_vat_paid, 0)


# =============================================================================
# Events
# =============================================================================

@dataclass(frozen=True)
class LedgerEvent:
    """Base class for everything a contract emits."""
    
    @property
    def name(self) -> str:
        return type(self).__name__
    
    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SellerAdded(LedgerEvent):
    seller: str
    meta: str


@dataclass(frozen=True)
class BankAdded(LedgerEvent):
    bank: str
    meta: str


@dataclass(frozen=True)
class SellerRemoved(LedgerEvent):
    seller: str


@dataclass(frozen=True)
class BankRemoved(LedgerEvent):
    bank: str


@dataclass(frozen=True)
class TaxAdminGranted(LedgerEvent):
    account: str


@dataclass(frozen=True)
class TaxAdminRevoked(LedgerEvent):
    account: str


@dataclass(frozen=True)
class InvoiceStored(LedgerEvent):
    id: int
    seller: str
    hash: str
    amount: int
    vat_rate_permille: int
    vat_amount: int


@dataclass(frozen=True)
class PaymentStored(LedgerEvent):
    id: int
    bank: str
    invoice_id: int
    payment_hash: str
    amount_paid: int


@dataclass(frozen=True)
class VATControlUpdated(LedgerEvent):
    previous: str | None
    current: str


@dataclass(frozen=True)
class VATRecorded(LedgerEvent):
    """Carries the seller's tax base after this contribution."""
    seller: str
    invoice_id: int
    taxable_amount: int
    vat_rate_permille: int
    vat_amount: int
    seller_total_tax_base: int
    timestamp: int


@dataclass(frozen=True)
class VATPaymentRecorded(LedgerEvent):
    """Carries the seller's VAT paid after this contribution."""
    seller: str
    payment_id: int
    invoice_id: int
    amount_paid: int
    vat_rate_permille: int
    vat_amount: int
    seller_total_vat_paid: int
    timestamp: int


EVENT_TYPES: dict[str, type[LedgerEvent]] = {
    cls.__name__: cls
    for cls in (
        SellerAdded,
        BankAdded,
        SellerRemoved,
        BankRemoved,
        TaxAdminGranted,
        TaxAdminRevoked,
        InvoiceStored,
        PaymentStored,
        VATControlUpdated,
        VATRecorded,
        VATPaymentRecorded,
    )
}
