"""
Rejection taxonomy for ledger transactions.

Every rejection carries the human-readable reason string that callers see
verbatim ("not registered seller", "already stored", ...). A rejection always
aborts the whole transaction, nested cross-contract calls included.
"""


class LedgerError(Exception):
    """Base class for all synchronous ledger rejections."""
    
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class AccessControlError(LedgerError):
    """The caller does not hold the role required by the operation."""
    
    def __init__(self, reason: str, required_role: str, account: str | None = None) -> None:
        super().__init__(reason)
        self.required_role = required_role
        self.account = account


class DuplicateError(LedgerError):
    """A uniqueness invariant (invoice hash, payment hash, role entry) was violated."""


class ReferentialIntegrityError(LedgerError):
    """A record references another record that does not exist."""


class UnauthorizedCallerError(LedgerError):
    """A non-wired address called an internal aggregator entry point."""


class NoActiveTransactionError(RuntimeError):
    """A state-changing method was invoked outside of a transaction."""
