"""
Pydantic schemas for API request/response validation.

These schemas define the contract between frontend and backend.
Ledger amounts are integers in minor units; decimal prices entered by
users are strings to avoid floating point issues.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tunichain.domain.models import MirrorStatus, PaymentStatus


# =============================================================================
# Request Schemas
# =============================================================================

class CreateSellerRequest(BaseModel):
    """Draft a seller profile before the tax admin registers it on the ledger."""
    wallet_address: str = Field(
        ...,
        description="Classic address of the seller wallet",
        pattern=r"^r[a-zA-Z0-9]{24,34}$",
    )
    name: str = Field(..., min_length=1, max_length=256)
    tax_id: str = Field(..., min_length=1, max_length=64)
    email: str | None = None


class CreateBankRequest(BaseModel):
    """Draft a bank profile before the tax admin registers it on the ledger."""
    wallet_address: str = Field(
        ...,
        description="Classic address of the bank wallet",
        pattern=r"^r[a-zA-Z0-9]{24,34}$",
    )
    name: str = Field(..., min_length=1, max_length=256)
    bic_code: str = Field(..., pattern=r"^[A-Z0-9]{8}([A-Z0-9]{3})?$")


class LineItemRequest(BaseModel):
    description: str
    quantity: Decimal = Field(..., description="Quantity, must be positive")
    price: Decimal = Field(..., description="Unit price, at least 0.001")


class CreateInvoiceRequest(BaseModel):
    """Draft an invoice; the response carries the hash to submit."""
    seller_address: str = Field(..., pattern=r"^r[a-zA-Z0-9]{24,34}$")
    invoice_number: str = Field(..., min_length=1, max_length=64)
    client_name: str = Field(..., min_length=1, max_length=256)
    vat_rate_permille: int = Field(default=190, description="VAT rate in parts per thousand (190 = 19%)")
    items: list[LineItemRequest]


class CreatePaymentRequest(BaseModel):
    """Draft a payment proof against a stored invoice."""
    bank_address: str = Field(..., pattern=r"^r[a-zA-Z0-9]{24,34}$")
    invoice_hash: str = Field(..., description="0x-prefixed 32-byte invoice hash")
    payment_reference: str = Field(..., min_length=1, max_length=128)
    amount_paid: int = Field(..., gt=0, description="Amount paid in minor units")


class SignedTransactionRequest(BaseModel):
    """A contract call signed with the sender's wallet."""
    contract: str = Field(..., examples=["InvoiceValidation"])
    method: str = Field(..., examples=["submit_invoice"])
    args: list[Any] = Field(default_factory=list)
    nonce: int = Field(..., ge=0)
    public_key: str
    signature: str


# =============================================================================
# Response Schemas
# =============================================================================

class LedgerConfirmationResponse(BaseModel):
    """Ledger position of a confirmed record."""
    model_config = ConfigDict(from_attributes=True)
    
    status: MirrorStatus
    tx_hash: str | None = None
    block_number: int | None = None
    log_index: int | None = None
    confirmed_at: datetime | None = None


class SellerResponse(LedgerConfirmationResponse):
    wallet_address: str
    name: str
    tax_id: str
    email: str | None = None
    active: bool


class BankResponse(LedgerConfirmationResponse):
    wallet_address: str
    name: str
    bic_code: str
    active: bool


class ValidationCheckResponse(BaseModel):
    """Single validation check result."""
    rule_name: str
    passed: bool
    message: str
    details: dict[str, Any] = {}


class InvoiceResponse(LedgerConfirmationResponse):
    seller_address: str
    invoice_number: str
    client_name: str
    amount: int
    vat_rate_permille: int
    vat_amount: int
    invoice_hash: str
    ledger_id: int | None = None
    payment_status: PaymentStatus
    checks: list[ValidationCheckResponse] = []


class PaymentResponse(LedgerConfirmationResponse):
    bank_address: str
    invoice_hash: str
    payment_reference: str
    amount_paid: int
    payment_hash: str
    ledger_id: int | None = None
    ledger_invoice_id: int | None = None


class LogResponse(BaseModel):
    """A committed ledger event."""
    event: str
    address: str
    block_number: int
    tx_hash: str
    log_index: int
    timestamp: int
    args: dict[str, Any]


class TransactionReceiptResponse(BaseModel):
    tx_hash: str
    block_number: int
    timestamp: int
    sender: str
    return_value: Any = None
    logs: list[LogResponse]


class NonceResponse(BaseModel):
    address: str
    next_nonce: int


class VATTotalsResponse(BaseModel):
    """Live VATControl totals for a seller."""
    seller_address: str
    total_tax_base: int
    total_vat_paid: int
    total_vat_invoiced: int
    vat_due: int
    mirrored_total_tax_base: int | None = None
    mirrored_total_vat_paid: int | None = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str
    database: str = "connected"
    block_number: int
    contracts: dict[str, str] = {}


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: str | None = None
    code: str | None = None
