"""
Signed transaction envelopes.

Callers never hand the ledger a bare "from" address: they sign the call
with their role key and the sender is derived from the public key. Keys,
signatures and classic addresses come from xrpl-py, so the same wallets
sellers and banks use on the XRP Ledger can sign Tunichain submissions.

Handles:
- Canonical encoding of a call (contract, method, args, nonce)
- Signing with an xrpl Wallet (ed25519 or secp256k1)
- Signature verification and sender recovery
"""

import logging
from dataclasses import dataclass
from typing import Any

from xrpl.core.keypairs import derive_classic_address, is_valid_message, sign
from xrpl.wallet import Wallet

from tunichain.domain.hashing import canonical_json

logger = logging.getLogger(__name__)


class SubmissionError(Exception):
    """Base class for envelope-level rejections (before the ledger runs)."""


class InvalidSignatureError(SubmissionError):
    """The signature does not match the envelope and public key."""


class NonceError(SubmissionError):
    """The nonce is not the sender's next nonce (replay or gap)."""


class UnknownMethodError(SubmissionError):
    """The contract/method pair is not externally callable."""


@dataclass(frozen=True)
class SignedTransaction:
    """
    A contract call signed by its sender.
    
    The signed message is the canonical JSON of contract, method, args and
    nonce; public_key and signature are uppercase hex as produced by xrpl-py.
    """
    contract: str
    method: str
    args: tuple[Any, ...]
    nonce: int
    public_key: str
    signature: str
    
    @property
    def message(self) -> bytes:
        return signing_message(self.contract, self.method, self.args, self.nonce)
    
    def to_dict(self) -> dict[str, Any]:
        return {
            "contract": self.contract,
            "method": self.method,
            "args": list(self.args),
            "nonce": self.nonce,
            "public_key": self.public_key,
            "signature": self.signature,
        }
    
    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SignedTransaction":
        return cls(
            contract=data["contract"],
            method=data["method"],
            args=tuple(data.get("args", ())),
            nonce=int(data["nonce"]),
            public_key=data["public_key"],
            signature=data["signature"],
        )


def signing_message(contract: str, method: str, args: Any, nonce: int) -> bytes:
    """Bytes covered by the signature."""
    return canonical_json({
        "contract": contract,
        "method": method,
        "args": list(args),
        "nonce": nonce,
    })


class TransactionSigner:
    """
    Signs contract calls with an xrpl wallet.
    
    Example:
        signer = TransactionSigner(Wallet.create())
        tx = signer.sign("InvoiceValidation", "submit_invoice", [h, 1_000_000, 190], nonce=0)
    """
    
    def __init__(self, wallet: Wallet) -> None:
        self.wallet = wallet
    
    @classmethod
    def from_seed(cls, seed: str) -> "TransactionSigner":
        return cls(Wallet.from_seed(seed))
    
    @property
    def address(self) -> str:
        return self.wallet.classic_address
    
    def sign(
        self,
        contract: str,
        method: str,
        args: list[Any] | tuple[Any, ...],
        nonce: int,
    ) -> SignedTransaction:
        message = signing_message(contract, method, args, nonce)
        signature = sign(message, self.wallet.private_key)
        return SignedTransaction(
            contract=contract,
            method=method,
            args=tuple(args),
            nonce=nonce,
            public_key=self.wallet.public_key,
            signature=signature,
        )


def recover_sender(tx: SignedTransaction) -> str:
    """
    Verify a signed transaction and return the signer's classic address.
    
    Raises:
        InvalidSignatureError: If the key or signature is malformed or does
            not match the message
    """
    try:
        valid = is_valid_message(tx.message, bytes.fromhex(tx.signature), tx.public_key)
        sender = derive_classic_address(tx.public_key)
    except Exception as e:
        logger.warning(f"Malformed signature envelope: {e}")
        raise InvalidSignatureError("invalid signature") from e
    
    if not valid:
        raise InvalidSignatureError("invalid signature")
    
    return sender
