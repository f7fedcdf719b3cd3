import pytest

from tunichain.domain.hashing import (
    ZERO_HASH,
    canonical_json,
    compute_content_hash,
    compute_invoice_hash,
    compute_payment_hash,
    hash_to_bytes,
    normalize_hash,
)

SELLER = "rSellerXXXXXXXXXXXXXXXXXXXXXXXXX"
ITEMS = [{"description": "Audit", "quantity": "1", "unit_price": "100"}]


def test_normalize_accepts_all_spellings() -> None:
    raw = bytes(range(32))
    expected = "0x" + raw.hex()

    assert normalize_hash(raw) == expected
    assert normalize_hash(raw.hex()) == expected
    assert normalize_hash(raw.hex().upper()) == expected
    assert normalize_hash("0X" + raw.hex()) == expected
    assert hash_to_bytes(expected) == raw


@pytest.mark.parametrize("value", ["0x1234", "0x" + "zz" * 32, b"\x00" * 31, "0x" + "00" * 33])
def test_normalize_rejects_malformed(value) -> None:
    with pytest.raises(ValueError):
        normalize_hash(value)


def test_normalize_rejects_other_types() -> None:
    with pytest.raises(TypeError):
        normalize_hash(12)


def test_zero_hash_is_normalized() -> None:
    assert normalize_hash(ZERO_HASH) == ZERO_HASH


def test_canonical_json_ignores_key_order() -> None:
    assert canonical_json({"b": 1, "a": [1, 2]}) == canonical_json({"a": [1, 2], "b": 1})
    assert canonical_json({"a": 1}) == b'{"a":1}'


def test_content_hash() -> None:
    digest = compute_content_hash(b"invoice content")

    assert digest == normalize_hash(digest)
    with pytest.raises(ValueError):
        compute_content_hash(b"")


def test_invoice_hash_depends_on_seller() -> None:
    first = compute_invoice_hash(SELLER, "INV-1", "Client", 100_000, 190, ITEMS)
    same = compute_invoice_hash(SELLER, "INV-1", "Client", 100_000, 190, ITEMS)
    other_seller = compute_invoice_hash("rOtherXXXXXXXXXXXXXXXXXXXXXXXXX", "INV-1", "Client", 100_000, 190, ITEMS)

    assert first == same
    assert first != other_seller


def test_payment_hash_normalizes_invoice_hash() -> None:
    invoice_hash = "0x" + "ab" * 32

    assert compute_payment_hash("rBank", invoice_hash, "REF-1", 10) == compute_payment_hash(
        "rBank", invoice_hash.upper().replace("0X", "0x"), "REF-1", 10
    )
    assert compute_payment_hash("rBank", invoice_hash, "REF-1", 10) != compute_payment_hash(
        "rBank", invoice_hash, "REF-2", 10
    )
