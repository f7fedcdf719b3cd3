"""
In-process execution host for the ledger contracts.

The Chain plays the role a blockchain node plays for smart contracts:
it serializes transactions, tracks the caller of every (nested) call,
stamps blocks and collects emitted events.

Design Decisions:
- One transaction per block (auto-mining, like a local development node)
- A process-wide re-entrant lock serializes every state-changing call
- Storage writes go through a journal so a failing transaction can be
  undone completely, including writes made by nested contract calls
- Events are buffered per transaction and only become visible on commit
"""

import hashlib
import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, TypeVar

from tunichain.domain.errors import NoActiveTransactionError
from tunichain.domain.hashing import canonical_json
from tunichain.domain.models import LedgerEvent

logger = logging.getLogger(__name__)

C = TypeVar("C", bound="Contract")

_MISSING = object()


@dataclass(frozen=True)
class LogEntry:
    """A committed event together with its position on the ledger."""
    address: str
    event: LedgerEvent
    block_number: int
    tx_hash: str
    log_index: int
    timestamp: int
    
    @property
    def name(self) -> str:
        return self.event.name


@dataclass(frozen=True)
class TransactionReceipt:
    """Outcome of a committed transaction."""
    tx_hash: str
    block_number: int
    timestamp: int
    sender: str
    logs: tuple[LogEntry, ...]
    return_value: Any = None
    
    def events(self, name: str | None = None) -> list[LedgerEvent]:
        """Events of this transaction, optionally filtered by event name."""
        return [log.event for log in self.logs if name is None or log.name == name]


@dataclass
class _Transaction:
    """Mutable state of the transaction being executed."""
    tx_hash: str
    block_number: int
    timestamp: int
    senders: list[str]
    journal: list[Callable[[], None]] = field(default_factory=list)
    events: list[tuple[str, LedgerEvent]] = field(default_factory=list)


def uint(value: Any, name: str) -> int:
    """Enforce the unsigned-integer type constraint on a contract argument."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an unsigned integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be an unsigned integer, got {value}")
    return value


def derive_contract_address(deployer: str, nonce: int) -> str:
    """Deterministic address for the nth contract deployed by an account."""
    digest = hashlib.sha256(f"{deployer}:{nonce}".encode()).hexdigest()
    return "0x" + digest[-40:]


class Chain:
    """
    Serialized transaction processor.
    
    Example:
        chain = Chain()
        registry = chain.deploy(admin, Registry, admin)
        receipt = chain.transact(admin, registry.add_seller, seller, "ACME SARL")
        receipt.events("SellerAdded")
    """
    
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """
        Initialize an empty chain.
        
        Args:
            clock: Wall-clock source for block timestamps (seconds)
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._block_number = 0
        self._timestamp = 0
        self._logs: list[LogEntry] = []
        self._contracts: dict[str, Contract] = {}
        self._deploy_nonces: dict[str, int] = {}
        self._tx: _Transaction | None = None
    
    # -------------------------------------------------------------------------
    # Chain state
    # -------------------------------------------------------------------------
    
    @property
    def block_number(self) -> int:
        """Number of the last committed block."""
        return self._block_number
    
    @property
    def in_transaction(self) -> bool:
        return self._tx is not None
    
    @property
    def msg_sender(self) -> str:
        """Immediate caller of the executing contract method."""
        return self._require_tx().senders[-1]
    
    @property
    def block_timestamp(self) -> int:
        """Timestamp of the block being built."""
        return self._require_tx().timestamp
    
    def _require_tx(self) -> _Transaction:
        if self._tx is None:
            raise NoActiveTransactionError(
                "State-changing calls must run inside Chain.transact()"
            )
        return self._tx
    
    # -------------------------------------------------------------------------
    # Contracts
    # -------------------------------------------------------------------------
    
    def deploy(self, deployer: str, factory: Callable[..., C], *args: Any) -> C:
        """
        Deploy a contract at a deterministic address.
        
        Args:
            deployer: Account deploying the contract
            factory: Contract class; called as factory(chain, address, *args)
            *args: Constructor arguments
        """
        with self._lock:
            nonce = self._deploy_nonces.get(deployer, 0)
            address = derive_contract_address(deployer, nonce)
            contract = factory(self, address, *args)
            self._deploy_nonces[deployer] = nonce + 1
            self._contracts[address] = contract
        
        logger.info(f"Deployed {type(contract).__name__} at {address}")
        return contract
    
    def contract_at(self, address: str) -> "Contract | None":
        return self._contracts.get(address)
    
    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------
    
    def transact(
        self,
        sender: str,
        method: Callable[..., Any],
        *args: Any,
    ) -> TransactionReceipt:
        """
        Execute one contract method as an atomic transaction.
        
        Either every write made by the call (and its nested calls) is
        committed together with its events, or nothing is.
        
        Args:
            sender: Account signing the transaction
            method: Bound contract method to invoke
            *args: Method arguments
            
        Returns:
            TransactionReceipt with the committed logs and the return value
            
        Raises:
            LedgerError: (or a type error) after the transaction is rolled back
        """
        with self._lock:
            if self._tx is not None:
                raise RuntimeError("Chain.transact() cannot be nested; use Contract._call()")
            
            block_number = self._block_number + 1
            timestamp = max(self._timestamp, int(self._clock()))
            call_name = f"{type(method.__self__).__name__}.{method.__name__}"
            tx_hash = self._compute_tx_hash(sender, block_number, call_name, args)
            
            tx = _Transaction(
                tx_hash=tx_hash,
                block_number=block_number,
                timestamp=timestamp,
                senders=[sender],
            )
            self._tx = tx
            try:
                result = method(*args)
            except Exception as e:
                self._revert(tx)
                logger.info(f"Transaction {call_name} from {sender} reverted: {e}")
                raise
            finally:
                self._tx = None
            
            logs = tuple(
                LogEntry(
                    address=address,
                    event=event,
                    block_number=block_number,
                    tx_hash=tx_hash,
                    log_index=index,
                    timestamp=timestamp,
                )
                for index, (address, event) in enumerate(tx.events)
            )
            self._logs.extend(logs)
            self._block_number = block_number
            self._timestamp = timestamp
        
        logger.debug(f"Block {block_number}: {call_name} from {sender} ({len(logs)} logs)")
        return TransactionReceipt(
            tx_hash=tx_hash,
            block_number=block_number,
            timestamp=timestamp,
            sender=sender,
            logs=logs,
            return_value=result,
        )
    
    def _revert(self, tx: _Transaction) -> None:
        """Undo every journaled write in reverse order."""
        for undo in reversed(tx.journal):
            undo()
        tx.journal.clear()
        tx.events.clear()
    
    @staticmethod
    def _compute_tx_hash(sender: str, block_number: int, call_name: str, args: tuple) -> str:
        payload = canonical_json([sender, block_number, call_name, list(args)])
        return "0x" + hashlib.sha256(payload).hexdigest()
    
    @contextmanager
    def call_from(self, address: str) -> Iterator[None]:
        """Run a nested call with msg_sender set to the calling contract."""
        tx = self._require_tx()
        tx.senders.append(address)
        try:
            yield
        finally:
            tx.senders.pop()
    
    def journal(self, undo: Callable[[], None]) -> None:
        """Register the inverse of a storage write."""
        self._require_tx().journal.append(undo)
    
    def emit(self, address: str, event: LedgerEvent) -> None:
        """Buffer an event until the transaction commits."""
        self._require_tx().events.append((address, event))
    
    # -------------------------------------------------------------------------
    # Logs
    # -------------------------------------------------------------------------
    
    def get_logs(
        self,
        from_block: int = 0,
        to_block: int | None = None,
        address: str | None = None,
        event_name: str | None = None,
    ) -> list[LogEntry]:
        """
        Committed logs in ledger order.
        
        Args:
            from_block: First block to include
            to_block: Last block to include (latest if None)
            address: Only logs emitted by this contract
            event_name: Only logs of this event type
        """
        with self._lock:
            logs = list(self._logs)
        
        return [
            log for log in logs
            if log.block_number >= from_block
            and (to_block is None or log.block_number <= to_block)
            and (address is None or log.address == address)
            and (event_name is None or log.name == event_name)
        ]


class Contract:
    """
    Base class for ledger contracts.
    
    Subclasses keep their state in plain attributes and dicts, and must
    mutate it only through _store() and _set() so writes can be rolled back.
    """
    
    def __init__(self, chain: Chain, address: str) -> None:
        self.chain = chain
        self.address = address
    
    @property
    def msg_sender(self) -> str:
        return self.chain.msg_sender
    
    @property
    def block_timestamp(self) -> int:
        return self.chain.block_timestamp
    
    def _emit(self, event: LedgerEvent) -> None:
        self.chain.emit(self.address, event)
    
    def _store(self, mapping: dict, key: Any, value: Any) -> None:
        """Journaled mapping[key] = value."""
        previous = mapping.get(key, _MISSING)
        
        def undo() -> None:
            if previous is _MISSING:
                mapping.pop(key, None)
            else:
                mapping[key] = previous
        
        self.chain.journal(undo)
        mapping[key] = value
    
    def _set(self, name: str, value: Any) -> None:
        """Journaled setattr(self, name, value)."""
        previous = getattr(self, name)
        self.chain.journal(lambda: setattr(self, name, previous))
        setattr(self, name, value)
    
    def _call(self, method: Callable[..., Any], *args: Any) -> Any:
        """Call another contract with this contract as msg_sender."""
        with self.chain.call_from(self.address):
            return method(*args)
    
    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address})"
