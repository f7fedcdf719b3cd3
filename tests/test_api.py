"""
HTTP flow: drafts, signed submissions, mirror sync and VAT reporting.
"""

import pytest
from fastapi.testclient import TestClient
from xrpl.wallet import Wallet

from tunichain.api.schemas import InvoiceResponse
from tunichain.config import get_settings
from tunichain.infrastructure.database import InvoiceDocument, MirrorStatus, PaymentStatus
from tunichain.main import create_app
from tunichain.services.node import reset_node
from tunichain.services.signing import TransactionSigner

ITEMS = [
    {"description": "Consulting", "quantity": "2", "price": "500"},
]


@pytest.fixture
def admin_signer() -> TransactionSigner:
    return TransactionSigner(Wallet.create())


@pytest.fixture
def seller_signer() -> TransactionSigner:
    return TransactionSigner(Wallet.create())


@pytest.fixture
def bank_signer() -> TransactionSigner:
    return TransactionSigner(Wallet.create())


def serve(tmp_path, monkeypatch, admin_signer: TransactionSigner, listener_enabled: bool):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setenv("TAX_ADMIN_ADDRESS", admin_signer.address)
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.setenv("LISTENER_ENABLED", str(listener_enabled).lower())
    monkeypatch.setenv("LISTENER_POLL_INTERVAL", "0.05")
    get_settings.cache_clear()
    reset_node()
    
    with TestClient(create_app()) as client:
        yield client
    
    get_settings.cache_clear()
    reset_node()


@pytest.fixture
def client(tmp_path, monkeypatch, admin_signer: TransactionSigner):
    yield from serve(tmp_path, monkeypatch, admin_signer, listener_enabled=False)


@pytest.fixture
def live_client(tmp_path, monkeypatch, admin_signer: TransactionSigner):
    yield from serve(tmp_path, monkeypatch, admin_signer, listener_enabled=True)


def submit(client: TestClient, signer: TransactionSigner, contract: str, method: str, args: list):
    nonce = client.get(f"/api/v1/transactions/nonce/{signer.address}").json()["next_nonce"]
    tx = signer.sign(contract, method, args, nonce=nonce)
    return client.post("/api/v1/transactions", json=tx.to_dict())


def sync(client: TestClient) -> int:
    response = client.post("/api/v1/debug/sync")
    assert response.status_code == 200
    return response.json()["applied"]


def onboard_seller(client: TestClient, admin: TransactionSigner, seller: TransactionSigner) -> None:
    response = client.post("/api/v1/sellers", json={
        "wallet_address": seller.address,
        "name": "ACME SARL",
        "tax_id": "1234567A",
    })
    assert response.status_code == 201
    assert submit(client, admin, "Registry", "add_seller", [seller.address, "ACME SARL"]).status_code == 200


def onboard_bank(client: TestClient, admin: TransactionSigner, bank: TransactionSigner) -> None:
    response = client.post("/api/v1/banks", json={
        "wallet_address": bank.address,
        "name": "Banque de Tunisie",
        "bic_code": "BTUNTNTT",
    })
    assert response.status_code == 201
    assert submit(client, admin, "Registry", "add_bank", [bank.address, "Banque de Tunisie"]).status_code == 200


def draft_invoice(client: TestClient, seller: TransactionSigner, number: str = "INV-2024-001") -> dict:
    response = client.post("/api/v1/invoices", json={
        "seller_address": seller.address,
        "invoice_number": number,
        "client_name": "Client SA",
        "vat_rate_permille": 190,
        "items": ITEMS,
    })
    assert response.status_code == 201
    return response.json()


def test_health_reports_deployment(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["block_number"] == 2
    assert set(body["contracts"]) == {"Registry", "InvoiceValidation", "PaymentRegistry", "VATControl"}


def test_seller_confirmed_after_registration(client: TestClient, admin_signer, seller_signer) -> None:
    onboard_seller(client, admin_signer, seller_signer)

    before = client.get(f"/api/v1/sellers/{seller_signer.address}").json()
    assert before["status"] == "pending"
    assert before["active"] is False

    sync(client)

    after = client.get(f"/api/v1/sellers/{seller_signer.address}").json()
    assert after["status"] == "confirmed"
    assert after["active"] is True
    assert after["block_number"] == 3


def test_duplicate_seller_draft_conflicts(client: TestClient, admin_signer, seller_signer) -> None:
    onboard_seller(client, admin_signer, seller_signer)

    response = client.post("/api/v1/sellers", json={
        "wallet_address": seller_signer.address,
        "name": "ACME bis",
        "tax_id": "999",
    })

    assert response.status_code == 409


def test_invoice_payment_flow(client: TestClient, admin_signer, seller_signer, bank_signer) -> None:
    onboard_seller(client, admin_signer, seller_signer)
    onboard_bank(client, admin_signer, bank_signer)

    invoice = draft_invoice(client, seller_signer)
    assert invoice["amount"] == 1_000_000
    assert invoice["vat_amount"] == 190_000
    assert invoice["status"] == "pending"
    assert all(check["passed"] for check in invoice["checks"])

    submitted = submit(
        client, seller_signer, "InvoiceValidation", "submit_invoice",
        [invoice["invoice_hash"], invoice["amount"], invoice["vat_rate_permille"]],
    )
    assert submitted.status_code == 200
    receipt = submitted.json()
    assert receipt["return_value"] == 1
    assert [log["event"] for log in receipt["logs"]] == ["InvoiceStored", "VATRecorded"]
    assert receipt["logs"][0]["args"]["vat_amount"] == 190_000

    payment = client.post("/api/v1/payments", json={
        "bank_address": bank_signer.address,
        "invoice_hash": invoice["invoice_hash"],
        "payment_reference": "VIR-0001",
        "amount_paid": 1_190_000,
    })
    assert payment.status_code == 201
    payment_hash = payment.json()["payment_hash"]

    stored = submit(
        client, bank_signer, "PaymentRegistry", "store_payment",
        [payment_hash, invoice["invoice_hash"], 1_190_000],
    )
    assert stored.status_code == 200

    sync(client)

    mirrored_invoice = client.get(f"/api/v1/invoices/{invoice['invoice_hash']}").json()
    assert mirrored_invoice["status"] == "confirmed"
    assert mirrored_invoice["ledger_id"] == 1
    assert mirrored_invoice["payment_status"] == "paid"

    mirrored_payment = client.get(f"/api/v1/payments/{payment_hash}").json()
    assert mirrored_payment["status"] == "confirmed"
    assert mirrored_payment["ledger_invoice_id"] == 1

    vat = client.get(f"/api/v1/vat/{seller_signer.address}").json()
    assert vat["total_tax_base"] == 1_000_000
    assert vat["total_vat_paid"] == 190_000
    assert vat["vat_due"] == 0
    assert vat["mirrored_total_tax_base"] == 1_000_000
    assert vat["mirrored_total_vat_paid"] == 190_000


def test_ledger_rejections_map_to_status_codes(client: TestClient, admin_signer, seller_signer, bank_signer) -> None:
    onboard_seller(client, admin_signer, seller_signer)
    onboard_bank(client, admin_signer, bank_signer)
    invoice = draft_invoice(client, seller_signer)
    args = [invoice["invoice_hash"], invoice["amount"], 190]
    assert submit(client, seller_signer, "InvoiceValidation", "submit_invoice", args).status_code == 200

    duplicate = submit(client, seller_signer, "InvoiceValidation", "submit_invoice", args)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "already stored"

    wrong_role = submit(client, bank_signer, "InvoiceValidation", "submit_invoice", ["0x" + "01" * 32, 10, 190])
    assert wrong_role.status_code == 403
    assert wrong_role.json()["detail"] == "not registered seller"

    unknown = submit(client, bank_signer, "PaymentRegistry", "store_payment", ["0x" + "02" * 32, "0x" + "03" * 32, 10])
    assert unknown.status_code == 404
    assert unknown.json()["detail"] == "invoice unknown"

    bad_args = submit(client, seller_signer, "InvoiceValidation", "submit_invoice", ["0x1234", 10, 190])
    assert bad_args.status_code == 400


def test_envelope_rejections(client: TestClient, admin_signer, seller_signer) -> None:
    onboard_seller(client, admin_signer, seller_signer)

    stale = seller_signer.sign("InvoiceValidation", "submit_invoice", ["0x" + "01" * 32, 10, 190], nonce=7)
    response = client.post("/api/v1/transactions", json=stale.to_dict())
    assert response.status_code == 400
    assert "invalid nonce" in response.json()["detail"]

    tampered = seller_signer.sign("InvoiceValidation", "submit_invoice", ["0x" + "01" * 32, 10, 190], nonce=0).to_dict()
    tampered["args"][1] = 11
    response = client.post("/api/v1/transactions", json=tampered)
    assert response.status_code == 400
    assert response.json()["detail"] == "invalid signature"

    internal = seller_signer.sign("VATControl", "record_invoice", [seller_signer.address, 1, 10, 190, 1], nonce=0)
    response = client.post("/api/v1/transactions", json=internal.to_dict())
    assert response.status_code == 400
    assert response.json()["detail"] == "unknown method VATControl.record_invoice"

    assert client.get(f"/api/v1/transactions/nonce/{seller_signer.address}").json()["next_nonce"] == 0


def test_invalid_invoice_draft_is_rejected(client: TestClient, seller_signer) -> None:
    response = client.post("/api/v1/invoices", json={
        "seller_address": seller_signer.address,
        "invoice_number": "INV-X",
        "client_name": "Client",
        "items": [{"description": "Nothing", "quantity": "0", "price": "10"}],
    })

    assert response.status_code == 422
    assert "quantity must be positive" in response.json()["detail"]


def test_payment_draft_requires_known_invoice(client: TestClient, bank_signer) -> None:
    response = client.post("/api/v1/payments", json={
        "bank_address": bank_signer.address,
        "invoice_hash": "0x" + "aa" * 32,
        "payment_reference": "VIR-1",
        "amount_paid": 100,
    })

    assert response.status_code == 404
    assert response.json()["detail"] == "invoice unknown"


def test_payment_draft_over_gross_is_rejected(client: TestClient, seller_signer, bank_signer) -> None:
    invoice = draft_invoice(client, seller_signer)

    response = client.post("/api/v1/payments", json={
        "bank_address": bank_signer.address,
        "invoice_hash": invoice["invoice_hash"],
        "payment_reference": "VIR-1",
        "amount_paid": 1_190_001,
    })

    assert response.status_code == 422


def test_malformed_hash_lookup(client: TestClient) -> None:
    assert client.get("/api/v1/invoices/not-a-hash").status_code == 400
    assert client.get("/api/v1/invoices/0x" + "ab" * 32).status_code == 404


def test_debug_logs(client: TestClient, admin_signer, seller_signer) -> None:
    onboard_seller(client, admin_signer, seller_signer)

    logs = client.get("/api/v1/debug/logs", params={"event": "SellerAdded"}).json()

    assert len(logs) == 1
    assert logs[0]["args"] == {"seller": seller_signer.address, "meta": "ACME SARL"}


def test_account_listings(client: TestClient, admin_signer, seller_signer, bank_signer) -> None:
    onboard_seller(client, admin_signer, seller_signer)
    onboard_bank(client, admin_signer, bank_signer)
    sync(client)

    sellers = client.get("/api/v1/sellers").json()
    banks = client.get("/api/v1/banks").json()

    assert [(s["wallet_address"], s["status"], s["active"]) for s in sellers] == [
        (seller_signer.address, "confirmed", True)
    ]
    assert [b["bic_code"] for b in banks] == ["BTUNTNTT"]


def test_invoice_and_payment_listings(client: TestClient, admin_signer, seller_signer, bank_signer) -> None:
    onboard_seller(client, admin_signer, seller_signer)
    onboard_bank(client, admin_signer, bank_signer)
    first = draft_invoice(client, seller_signer, "INV-1")
    second = draft_invoice(client, seller_signer, "INV-2")
    draft_only = draft_invoice(client, seller_signer, "INV-3")
    for invoice in (first, second):
        args = [invoice["invoice_hash"], invoice["amount"], invoice["vat_rate_permille"]]
        assert submit(client, seller_signer, "InvoiceValidation", "submit_invoice", args).status_code == 200

    payment = client.post("/api/v1/payments", json={
        "bank_address": bank_signer.address,
        "invoice_hash": first["invoice_hash"],
        "payment_reference": "VIR-0001",
        "amount_paid": 1_190_000,
    }).json()
    args = [payment["payment_hash"], first["invoice_hash"], 1_190_000]
    assert submit(client, bank_signer, "PaymentRegistry", "store_payment", args).status_code == 200
    sync(client)

    by_seller = client.get(f"/api/v1/invoices/seller/{seller_signer.address}").json()
    assert [i["invoice_hash"] for i in by_seller] == [
        first["invoice_hash"], second["invoice_hash"], draft_only["invoice_hash"],
    ]
    assert client.get(f"/api/v1/invoices/seller/{bank_signer.address}").json() == []

    unpaid = client.get("/api/v1/invoices/unpaid").json()
    assert [i["invoice_hash"] for i in unpaid] == [second["invoice_hash"]]
    assert unpaid[0]["payment_status"] == "unpaid"

    by_bank = client.get(f"/api/v1/payments/bank/{bank_signer.address}").json()
    assert [(p["payment_hash"], p["status"]) for p in by_bank] == [(payment["payment_hash"], "confirmed")]
    assert client.get(f"/api/v1/payments/bank/{seller_signer.address}").json() == []


def test_debug_logs_reject_unknown_event(client: TestClient) -> None:
    response = client.get("/api/v1/debug/logs", params={"event": "InvoicePaid"})

    assert response.status_code == 400
    assert "Unknown event InvoicePaid" in response.json()["detail"]


def test_manual_sync_refused_while_listener_runs(live_client: TestClient) -> None:
    response = live_client.post("/api/v1/debug/sync")

    assert response.status_code == 409


def test_responses_read_mirror_statuses() -> None:
    document = InvoiceDocument(
        seller_address="rSellerXXXXXXXXXXXXXXXXXXXXXXXXX",
        invoice_number="INV-1",
        client_name="Client",
        amount=1_000,
        vat_rate_permille=190,
        vat_amount=190,
        invoice_hash="0x" + "ab" * 32,
        status=MirrorStatus.CONFIRMED.value,
        payment_status=PaymentStatus.PAID.value,
    )

    response = InvoiceResponse.model_validate(document)

    assert response.status is MirrorStatus.CONFIRMED
    assert response.payment_status is PaymentStatus.PAID
    assert response.model_dump(mode="json")["status"] == "confirmed"
