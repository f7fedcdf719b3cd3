"""
Hashing utilities for ledger identifiers.

The ledger never sees document content, only 32-byte content hashes. The
off-chain layer hashes the canonical form of an invoice or payment proof and
submits the digest; the ledger enforces uniqueness on it.

Design Decisions:
- SHA-256 chosen for wide support and collision resistance
- Canonical JSON (sorted keys, no whitespace) makes payload hashes
  independent of field order
- Hashes travel as "0x"-prefixed lowercase hex so bytes and hex input
  compare equal after normalization
"""

import hashlib
import json
from typing import Any

HASH_SIZE = 32
ZERO_HASH = "0x" + "00" * HASH_SIZE


def normalize_hash(value: bytes | str) -> str:
    """
    Normalize a 32-byte hash to "0x" + 64 lowercase hex characters.
    
    Args:
        value: Raw 32 bytes, or a hex string with or without "0x" prefix
        
    Returns:
        Normalized hex representation
        
    Raises:
        TypeError: If value is neither bytes nor str
        ValueError: If value is not valid hex or not exactly 32 bytes
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        text = value[2:] if value[:2].lower() == "0x" else value
        try:
            raw = bytes.fromhex(text)
        except ValueError:
            raise ValueError(f"Invalid hex hash: {value!r}") from None
    else:
        raise TypeError(f"Hash must be bytes or hex string, got {type(value).__name__}")
    
    if len(raw) != HASH_SIZE:
        raise ValueError(f"Hash must be {HASH_SIZE} bytes, got {len(raw)}")
    
    return "0x" + raw.hex()


def hash_to_bytes(value: bytes | str) -> bytes:
    """Return the raw 32 bytes of a hash."""
    return bytes.fromhex(normalize_hash(value)[2:])


def canonical_json(payload: Any) -> bytes:
    """Serialize a payload deterministically for hashing and signing."""
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    ).encode("utf-8")


def compute_content_hash(content: bytes) -> str:
    """
    Compute the SHA-256 hash of raw content.
    
    Example:
        >>> compute_content_hash(b"invoice content")
        '0x...'
    """
    if not content:
        raise ValueError("Cannot hash empty content")
    
    return "0x" + hashlib.sha256(content).hexdigest()


def compute_invoice_hash(
    seller: str,
    invoice_number: str,
    client_name: str,
    amount: int,
    vat_rate_permille: int,
    items: list[dict[str, Any]],
) -> str:
    """
    Hash the canonical form of an invoice draft.
    
    The seller address is part of the payload so two sellers using the same
    invoice numbering never collide.
    """
    return compute_content_hash(canonical_json({
        "seller": seller,
        "invoice_number": invoice_number,
        "client_name": client_name,
        "amount": amount,
        "vat_rate_permille": vat_rate_permille,
        "items": items,
    }))


def compute_payment_hash(
    bank: str,
    invoice_hash: str,
    payment_reference: str,
    amount_paid: int,
) -> str:
    """Hash the canonical form of a payment proof."""
    return compute_content_hash(canonical_json({
        "bank": bank,
        "invoice_hash": normalize_hash(invoice_hash),
        "payment_reference": payment_reference,
        "amount_paid": amount_paid,
    }))
