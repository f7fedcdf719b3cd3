import pytest

from tunichain.domain.errors import DuplicateError
from tunichain.domain.models import SellerAdded
from tunichain.ledger import Chain, Deployment, Registry, deploy
from tunichain.ledger.chain import Contract, derive_contract_address, uint


def test_deploy_addresses_are_deterministic(admin: str) -> None:
    first = deploy(Chain(), admin)
    second = deploy(Chain(), admin)

    assert first.addresses == second.addresses
    assert first.registry.address == derive_contract_address(admin, 0)
    assert len(set(first.addresses.values())) == 4
    assert all(address.startswith("0x") and len(address) == 42 for address in first.addresses.values())


def test_deploy_wires_aggregator(chain: Chain, admin: str) -> None:
    deployment = deploy(chain, admin)

    assert deployment.invoice_validation.vat_control is deployment.vat_control
    assert deployment.payment_registry.vat_control is deployment.vat_control
    assert chain.block_number == 2
    assert [log.name for log in chain.get_logs()] == ["VATControlUpdated", "VATControlUpdated"]
    assert chain.contract_at(deployment.vat_control.address) is deployment.vat_control


def test_one_block_per_transaction(chain: Chain, ledger: Deployment, seller: str) -> None:
    start = chain.block_number

    first = chain.transact(seller, ledger.invoice_validation.submit_invoice, "0x" + "01" * 32, 10, 190)
    second = chain.transact(seller, ledger.invoice_validation.submit_invoice, "0x" + "02" * 32, 10, 190)

    assert (first.block_number, second.block_number) == (start + 1, start + 2)
    assert first.tx_hash != second.tx_hash
    assert chain.block_number == start + 2


def test_log_indices_within_transaction(chain: Chain, ledger: Deployment, seller: str) -> None:
    receipt = chain.transact(seller, ledger.invoice_validation.submit_invoice, "0x" + "01" * 32, 10, 190)

    assert [(log.name, log.log_index) for log in receipt.logs] == [
        ("InvoiceStored", 0),
        ("VATRecorded", 1),
    ]
    assert {log.tx_hash for log in receipt.logs} == {receipt.tx_hash}
    assert {log.block_number for log in receipt.logs} == {receipt.block_number}


def test_timestamps_never_go_backwards(admin: str) -> None:
    ticks = iter([1_000, 900, 1_100])
    chain = Chain(clock=lambda: next(ticks))
    registry = chain.deploy(admin, Registry, admin)
    timestamps = [
        chain.transact(admin, registry.add_seller, account, "x").timestamp
        for account in ("rA", "rB", "rC")
    ]

    assert timestamps == [1_000, 1_000, 1_100]


def test_failed_transaction_leaves_no_trace(chain: Chain, ledger: Deployment, admin: str, seller: str) -> None:
    block_before = chain.block_number
    logs_before = chain.get_logs()

    with pytest.raises(DuplicateError):
        chain.transact(admin, ledger.registry.add_seller, seller, "again")

    assert chain.block_number == block_before
    assert chain.get_logs() == logs_before
    assert not chain.in_transaction
    assert ledger.registry.seller(seller).metadata == "Test Seller"


class Reentrant(Contract):
    """Contract that tries to open a second transaction from inside the first."""
    
    def __init__(self, chain: Chain, address: str, registry: Registry) -> None:
        super().__init__(chain, address)
        self.registry = registry
    
    def reenter(self, account: str) -> None:
        self.chain.transact(self.msg_sender, self.registry.add_seller, account, "nested")


def test_nested_transact_is_refused(chain: Chain, ledger: Deployment, admin: str) -> None:
    reentrant = chain.deploy(admin, Reentrant, ledger.registry)

    with pytest.raises(RuntimeError, match="cannot be nested"):
        chain.transact(admin, reentrant.reenter, "rNested")

    assert not ledger.registry.is_seller("rNested")
    assert not chain.in_transaction


def test_nested_call_sees_contract_as_sender(chain: Chain, ledger: Deployment, admin: str) -> None:
    seen = []
    
    class Relay(Contract):
        def outer(self) -> None:
            seen.append(self.msg_sender)
            self._call(self.inner)
            seen.append(self.msg_sender)
        
        def inner(self) -> None:
            seen.append(self.msg_sender)
    
    relay = chain.deploy(admin, Relay)
    chain.transact(admin, relay.outer)

    assert seen == [admin, relay.address, admin]


def test_get_logs_filters(chain: Chain, ledger: Deployment, admin: str, seller: str) -> None:
    chain.transact(seller, ledger.invoice_validation.submit_invoice, "0x" + "01" * 32, 10, 190)
    last_block = chain.block_number

    assert [log.name for log in chain.get_logs(from_block=last_block)] == ["InvoiceStored", "VATRecorded"]
    assert [log.name for log in chain.get_logs(address=ledger.vat_control.address)] == ["VATRecorded"]
    assert [log.event for log in chain.get_logs(event_name="SellerAdded")] == [
        SellerAdded(seller=seller, meta="Test Seller")
    ]
    assert chain.get_logs(from_block=1, to_block=2, event_name="InvoiceStored") == []
    assert chain.get_logs(from_block=last_block + 1) == []


def test_receipt_event_filter(chain: Chain, admin: str) -> None:
    deployment = deploy(chain, admin)
    receipt = chain.transact(admin, deployment.registry.add_bank, "rBankY", "Bank Y")

    assert [event.name for event in receipt.events()] == ["BankAdded"]
    assert receipt.events("SellerAdded") == []
    assert receipt.sender == admin


@pytest.mark.parametrize("value", [-1, True, 1.0, "1", None])
def test_uint_rejects_non_uint(value) -> None:
    with pytest.raises((TypeError, ValueError)):
        uint(value, "amount")


def test_uint_accepts_zero_and_large() -> None:
    assert uint(0, "amount") == 0
    assert uint(2**255, "amount") == 2**255
