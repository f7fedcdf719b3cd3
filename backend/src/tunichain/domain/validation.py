"""
Pre-submission rules for invoices and payments.

The ledger only enforces its own invariants (roles, uniqueness, referential
integrity). Business-rule validation happens here, before a caller signs a
transaction: positive quantities, a minimum unit price, a sane VAT rate and
the conversion of decimal prices to integer minor units.

Design Decisions:
- Pure functions enable easy unit testing and composition
- Each rule returns ValidationCheck with pass/fail and details
- Decimal in, int out: rounding happens once, here, never on the ledger
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any


# Minor units per currency unit (prices are integer-scaled by this factor)
PRICE_SCALE = 1000

# VAT rates are expressed in parts per thousand (190 = 19.0%)
PERMILLE = 1000

MIN_UNIT_PRICE = Decimal("0.001")


def compute_vat(amount: int, vat_rate_permille: int) -> int:
    """
    VAT owed on an amount, floored to the minor unit.
    
    This is the exact arithmetic the ledger applies; there is no
    fractional remainder tracking.
    """
    return amount * vat_rate_permille // PERMILLE


def to_minor_units(value: Decimal | int | str, scale: int = PRICE_SCALE) -> int:
    """
    Convert a decimal amount to integer minor units.
    
    Rounds half up at the minor unit so callers round consistently
    before submission.
    """
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}") from None
    return int((amount * scale).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percent_to_permille(percent: Decimal | int | str) -> int:
    """Convert a percentage (e.g. "19" or "5.5") to permille (190, 55)."""
    return to_minor_units(percent, scale=PERMILLE // 100)


@dataclass(frozen=True)
class LineItem:
    """A single invoice line as entered by the seller."""
    description: str
    quantity: Decimal
    unit_price: Decimal
    
    @property
    def total(self) -> Decimal:
        return self.quantity * self.unit_price
    
    def to_dict(self) -> dict[str, str]:
        return {
            "description": self.description,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
        }


@dataclass
class ValidationCheck:
    """
    Result of a single validation rule.
    
    Mutable because checks are built incrementally during validation.
    """
    rule_name: str
    passed: bool
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class InvoiceCheckResult:
    """Aggregated pre-submission checks with the derived ledger amounts."""
    checks: list[ValidationCheck]
    amount: int
    vat_rate_permille: int
    vat_amount: int
    
    @property
    def passed(self) -> bool:
        return all(check.passed for check in self.checks)
    
    @property
    def errors(self) -> list[str]:
        return [check.message for check in self.checks if not check.passed]


def validate_line_items(items: list[LineItem]) -> ValidationCheck:
    """
    Validate invoice lines.
    
    Rule: at least one line, every quantity > 0, every unit price >= 0.001
    """
    if not items:
        return ValidationCheck(
            rule_name="line_items",
            passed=False,
            message="Invoice must contain at least one line item",
        )
    
    errors: list[str] = []
    for i, item in enumerate(items):
        if item.quantity <= 0:
            errors.append(f"Line {i + 1}: quantity must be positive, got {item.quantity}")
        if item.unit_price < MIN_UNIT_PRICE:
            errors.append(f"Line {i + 1}: unit price must be at least {MIN_UNIT_PRICE}, got {item.unit_price}")
    
    passed = len(errors) == 0
    
    return ValidationCheck(
        rule_name="line_items",
        passed=passed,
        message="Line items valid" if passed else "; ".join(errors),
        details={"line_item_count": len(items)},
    )


def validate_vat_rate(vat_rate_permille: int) -> ValidationCheck:
    """
    Validate a VAT rate.
    
    Rule: 0 <= rate <= 1000 permille
    """
    passed = 0 <= vat_rate_permille <= PERMILLE
    return ValidationCheck(
        rule_name="vat_rate",
        passed=passed,
        message=(
            f"VAT rate {vat_rate_permille / 10:.1f}%" if passed
            else f"VAT rate must be between 0 and {PERMILLE} permille, got {vat_rate_permille}"
        ),
        details={"vat_rate_permille": vat_rate_permille},
    )


def validate_payment_amount(
    amount_paid: int,
    invoice_amount: int,
    vat_amount: int,
) -> ValidationCheck:
    """
    Validate a payment against the invoice it settles.
    
    Rule: 0 < amount_paid <= invoice amount + VAT
    """
    gross = invoice_amount + vat_amount
    
    if amount_paid <= 0:
        message = f"Payment amount must be positive, got {amount_paid}"
        passed = False
    elif amount_paid > gross:
        message = f"Payment {amount_paid} exceeds invoice gross amount {gross}"
        passed = False
    else:
        message = "Payment amount valid"
        passed = True
    
    return ValidationCheck(
        rule_name="payment_amount",
        passed=passed,
        message=message,
        details={
            "amount_paid": amount_paid,
            "invoice_gross": gross,
            "outstanding": gross - amount_paid,
        },
    )


def run_invoice_checks(items: list[LineItem], vat_rate_permille: int) -> InvoiceCheckResult:
    """
    Execute every invoice rule and derive the amounts to submit.
    
    Args:
        items: Invoice lines with decimal quantities and prices
        vat_rate_permille: VAT rate in parts per thousand
        
    Returns:
        InvoiceCheckResult with the checks, the amount in minor units and
        the VAT the ledger will compute for it
    """
    checks = [
        validate_line_items(items),
        validate_vat_rate(vat_rate_permille),
    ]
    
    amount = sum((to_minor_units(item.total) for item in items), 0)
    
    return InvoiceCheckResult(
        checks=checks,
        amount=amount,
        vat_rate_permille=vat_rate_permille,
        vat_amount=compute_vat(amount, vat_rate_permille),
    )
