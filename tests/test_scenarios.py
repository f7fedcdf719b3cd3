"""
End-to-end flows across the four contracts, starting from a bare deployment.
"""

import pytest

from tunichain.domain.errors import AccessControlError, DuplicateError
from tunichain.domain.models import InvoiceStored, PaymentStored
from tunichain.ledger import Chain, Deployment, deploy

INVOICE_HASH = "0x" + "ab" * 32
SECOND_INVOICE_HASH = "0x" + "ac" * 32
PAYMENT_HASH = "0x" + "cd" * 32
ZERO_INVOICE_HASH = "0x" + "ee" * 32


@pytest.fixture
def onboarded(chain: Chain, admin: str, seller: str, bank: str) -> Deployment:
    deployment = deploy(chain, admin)
    chain.transact(admin, deployment.registry.add_seller, seller, "ACME SARL")
    chain.transact(admin, deployment.registry.add_bank, bank, "Banque de Tunisie")
    return deployment


@pytest.fixture
def invoiced(chain: Chain, onboarded: Deployment, seller: str) -> Deployment:
    chain.transact(seller, onboarded.invoice_validation.submit_invoice, INVOICE_HASH, 1_000_000, 190)
    return onboarded


@pytest.fixture
def paid(chain: Chain, invoiced: Deployment, bank: str) -> Deployment:
    chain.transact(bank, invoiced.payment_registry.store_payment, PAYMENT_HASH, INVOICE_HASH, 1_190_000)
    return invoiced


def test_invoice_submission(chain: Chain, onboarded: Deployment, seller: str) -> None:
    receipt = chain.transact(seller, onboarded.invoice_validation.submit_invoice, INVOICE_HASH, 1_000_000, 190)

    assert receipt.events("InvoiceStored") == [
        InvoiceStored(
            id=1,
            seller=seller,
            hash=INVOICE_HASH,
            amount=1_000_000,
            vat_rate_permille=190,
            vat_amount=190_000,
        )
    ]
    assert onboarded.vat_control.total_tax_base(seller) == 1_000_000


def test_payment_recording(chain: Chain, invoiced: Deployment, seller: str, bank: str) -> None:
    receipt = chain.transact(bank, invoiced.payment_registry.store_payment, PAYMENT_HASH, INVOICE_HASH, 1_190_000)

    assert receipt.events("PaymentStored") == [
        PaymentStored(
            id=1,
            bank=bank,
            invoice_id=1,
            payment_hash=PAYMENT_HASH,
            amount_paid=1_190_000,
        )
    ]
    assert invoiced.vat_control.total_vat_paid(seller) == 190_000


def test_payment_retry_against_other_invoice(chain: Chain, paid: Deployment, seller: str, bank: str) -> None:
    chain.transact(seller, paid.invoice_validation.submit_invoice, SECOND_INVOICE_HASH, 50_000, 190)
    block_before = chain.block_number
    logs_before = chain.get_logs()

    with pytest.raises(DuplicateError, match="payment exists"):
        chain.transact(bank, paid.payment_registry.store_payment, PAYMENT_HASH, SECOND_INVOICE_HASH, 59_500)

    assert paid.payment_registry.payment_count == 1
    assert paid.payment_registry.get_payment(1).invoice_id == 1
    assert paid.payment_registry.payments_for_invoice(2) == []
    assert paid.vat_control.total_vat_paid(seller) == 190_000
    assert chain.block_number == block_before
    assert chain.get_logs() == logs_before


def test_unregistered_submitter(chain: Chain, onboarded: Deployment, outsider: str) -> None:
    logs_before = chain.get_logs()

    with pytest.raises(AccessControlError):
        chain.transact(outsider, onboarded.invoice_validation.submit_invoice, INVOICE_HASH, 1_000_000, 190)

    assert onboarded.invoice_validation.invoice_count == 0
    assert onboarded.invoice_validation.get_invoice_id_by_hash(INVOICE_HASH) == 0
    assert chain.get_logs() == logs_before


def test_zero_amount_invoice(chain: Chain, invoiced: Deployment, seller: str) -> None:
    tax_base_before = invoiced.vat_control.total_tax_base(seller)

    receipt = chain.transact(seller, invoiced.invoice_validation.submit_invoice, ZERO_INVOICE_HASH, 0, 190)

    [event] = receipt.events("InvoiceStored")
    assert event.vat_amount == 0
    assert invoiced.invoice_validation.get_invoice(receipt.return_value).vat_amount == 0
    assert invoiced.vat_control.total_tax_base(seller) == tax_base_before
