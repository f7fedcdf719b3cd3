"""
Ledger event listener mirroring confirmed state into the database.

The listener is the only asynchronous actor around the ledger. It polls
committed logs from its persisted cursor and reconciles the off-chain
drafts with them:

1. SellerAdded / BankAdded confirm a pending seller or bank profile
2. SellerRemoved / BankRemoved deactivate it
3. InvoiceStored confirms a pending invoice matched by hash
4. PaymentStored confirms a pending payment proof and marks its invoice paid
5. VATRecorded / VATPaymentRecorded refresh the seller's running totals

Delivery is at-least-once: the cursor is committed in the same SQL
transaction as the updates it covers, and every handler is idempotent.
A log without a matching draft is skipped, never turned into a record.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tunichain.domain.models import (
    BankAdded,
    BankRemoved,
    InvoiceStored,
    PaymentStored,
    SellerAdded,
    SellerRemoved,
    VATPaymentRecorded,
    VATRecorded,
)
from tunichain.infrastructure.database import (
    BankAccount,
    InvoiceDocument,
    ListenerCursor,
    PaymentProof,
    PaymentStatus,
    SellerAccount,
    SellerVATTotals,
    get_session_factory,
)
from tunichain.ledger import Chain, LogEntry

logger = logging.getLogger(__name__)

Handler = Callable[[AsyncSession, LogEntry], Awaitable[bool]]


class EventListener:
    """
    Durable subscriber for ledger events.
    
    Example:
        listener = EventListener(node.chain)
        applied = await listener.poll_once()
        
        # or, as a background task
        task = asyncio.create_task(listener.run())
    """
    
    def __init__(
        self,
        chain: Chain,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        poll_interval: float = 2.0,
        batch_size: int = 500,
        name: str = "mirror",
    ) -> None:
        """
        Initialize the listener.
        
        Args:
            chain: Ledger to read committed logs from
            session_factory: Mirror database sessions (application default if None)
            poll_interval: Seconds between polls in run()
            batch_size: Maximum logs applied per poll
            name: Cursor name, one per independent listener
        """
        self.chain = chain
        self.session_factory = session_factory or get_session_factory()
        self.poll_interval = poll_interval
        self.batch_size = batch_size
        self.name = name
        self._stopped = asyncio.Event()
        self._handlers: dict[str, Handler] = {
            "SellerAdded": self._on_seller_added,
            "BankAdded": self._on_bank_added,
            "SellerRemoved": self._on_seller_removed,
            "BankRemoved": self._on_bank_removed,
            "InvoiceStored": self._on_invoice_stored,
            "PaymentStored": self._on_payment_stored,
            "VATRecorded": self._on_vat_recorded,
            "VATPaymentRecorded": self._on_vat_payment_recorded,
        }
    
    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------
    
    async def poll_once(self) -> int:
        """
        Apply the next batch of committed logs.
        
        Returns:
            Number of logs consumed (including logs without a handler)
        """
        async with self.session_factory() as session:
            try:
                cursor = await self._load_cursor(session)
                position = (cursor.block_number, cursor.log_index)
                
                logs = [
                    log for log in self.chain.get_logs(from_block=cursor.block_number)
                    if (log.block_number, log.log_index) > position
                ][:self.batch_size]
                
                for log in logs:
                    await self.apply(session, log)
                    cursor.block_number = log.block_number
                    cursor.log_index = log.log_index
                
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        
        if logs:
            logger.info(f"Listener '{self.name}' applied {len(logs)} logs up to block {cursor.block_number}")
        return len(logs)
    
    async def run(self) -> None:
        """Poll until stop() is called. Failed polls are retried next interval."""
        logger.info(f"Listener '{self.name}' started (interval {self.poll_interval}s)")
        self._stopped.clear()
        while not self._stopped.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception(f"Listener '{self.name}' poll failed, retrying")
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info(f"Listener '{self.name}' stopped")
    
    def stop(self) -> None:
        self._stopped.set()
    
    async def _load_cursor(self, session: AsyncSession) -> ListenerCursor:
        cursor = await session.get(ListenerCursor, self.name)
        if cursor is None:
            cursor = ListenerCursor(name=self.name, block_number=0, log_index=-1)
            session.add(cursor)
            await session.flush()
        return cursor
    
    async def apply(self, session: AsyncSession, log: LogEntry) -> bool:
        """
        Apply one log to the mirror.
        
        Returns:
            True if a mirrored row changed
        """
        handler = self._handlers.get(log.name)
        if handler is None:
            return False
        return await handler(session, log)
    
    # -------------------------------------------------------------------------
    # Handlers
    # -------------------------------------------------------------------------
    
    async def _on_seller_added(self, session: AsyncSession, log: LogEntry) -> bool:
        event: SellerAdded = log.event
        seller = await _find_one(session, SellerAccount, SellerAccount.wallet_address == event.seller)
        return _confirm_account(seller, log, "seller", event.seller)
    
    async def _on_bank_added(self, session: AsyncSession, log: LogEntry) -> bool:
        event: BankAdded = log.event
        bank = await _find_one(session, BankAccount, BankAccount.wallet_address == event.bank)
        return _confirm_account(bank, log, "bank", event.bank)
    
    async def _on_seller_removed(self, session: AsyncSession, log: LogEntry) -> bool:
        event: SellerRemoved = log.event
        seller = await _find_one(session, SellerAccount, SellerAccount.wallet_address == event.seller)
        return _deactivate_account(seller, "seller", event.seller)
    
    async def _on_bank_removed(self, session: AsyncSession, log: LogEntry) -> bool:
        event: BankRemoved = log.event
        bank = await _find_one(session, BankAccount, BankAccount.wallet_address == event.bank)
        return _deactivate_account(bank, "bank", event.bank)
    
    async def _on_invoice_stored(self, session: AsyncSession, log: LogEntry) -> bool:
        event: InvoiceStored = log.event
        invoice = await _find_one(session, InvoiceDocument, InvoiceDocument.invoice_hash == event.hash)
        
        if invoice is None:
            logger.warning(f"No invoice draft for hash {event.hash}; InvoiceStored {event.id} not mirrored")
            return False
        if invoice.is_confirmed_by(log.tx_hash, log.log_index):
            return False
        
        if invoice.amount != event.amount or invoice.vat_rate_permille != event.vat_rate_permille:
            logger.warning(
                f"Invoice {event.hash} draft differs from ledger "
                f"(amount {invoice.amount} vs {event.amount}); ledger values kept"
            )
        
        invoice.ledger_id = event.id
        invoice.seller_address = event.seller
        invoice.amount = event.amount
        invoice.vat_rate_permille = event.vat_rate_permille
        invoice.vat_amount = event.vat_amount
        invoice.confirm(log.tx_hash, log.block_number, log.log_index)
        logger.info(f"Invoice {event.hash} confirmed as ledger invoice {event.id}")
        return True
    
    async def _on_payment_stored(self, session: AsyncSession, log: LogEntry) -> bool:
        event: PaymentStored = log.event
        payment = await _find_one(session, PaymentProof, PaymentProof.payment_hash == event.payment_hash)
        
        if payment is None:
            logger.warning(
                f"No payment draft for hash {event.payment_hash}; PaymentStored {event.id} not mirrored"
            )
            return False
        if payment.is_confirmed_by(log.tx_hash, log.log_index):
            return False
        
        payment.ledger_id = event.id
        payment.ledger_invoice_id = event.invoice_id
        payment.bank_address = event.bank
        payment.amount_paid = event.amount_paid
        payment.confirm(log.tx_hash, log.block_number, log.log_index)
        
        invoice = await _find_one(session, InvoiceDocument, InvoiceDocument.ledger_id == event.invoice_id)
        if invoice is not None:
            invoice.payment_status = PaymentStatus.PAID.value
        else:
            logger.warning(f"Payment {event.payment_hash} references unmirrored invoice {event.invoice_id}")
        
        logger.info(f"Payment {event.payment_hash} confirmed as ledger payment {event.id}")
        return True
    
    async def _on_vat_recorded(self, session: AsyncSession, log: LogEntry) -> bool:
        event: VATRecorded = log.event
        totals = await _get_totals(session, event.seller)
        if event.seller_total_tax_base <= totals.total_tax_base:
            return False
        totals.total_tax_base = event.seller_total_tax_base
        return True
    
    async def _on_vat_payment_recorded(self, session: AsyncSession, log: LogEntry) -> bool:
        event: VATPaymentRecorded = log.event
        totals = await _get_totals(session, event.seller)
        if event.seller_total_vat_paid <= totals.total_vat_paid:
            return False
        totals.total_vat_paid = event.seller_total_vat_paid
        return True


async def _find_one(session: AsyncSession, model, *criteria):
    result = await session.execute(select(model).where(*criteria))
    return result.scalar_one_or_none()


async def _get_totals(session: AsyncSession, seller: str) -> SellerVATTotals:
    totals = await session.get(SellerVATTotals, seller)
    if totals is None:
        totals = SellerVATTotals(seller_address=seller, total_tax_base=0, total_vat_paid=0)
        session.add(totals)
        await session.flush()
    return totals


def _confirm_account(
    account: SellerAccount | BankAccount | None,
    log: LogEntry,
    kind: str,
    address: str,
) -> bool:
    if account is None:
        logger.warning(f"No {kind} draft for {address}; {log.name} not mirrored")
        return False
    if account.is_confirmed_by(log.tx_hash, log.log_index):
        return False
    
    account.active = True
    account.confirm(log.tx_hash, log.block_number, log.log_index)
    logger.info(f"{kind.capitalize()} {address} confirmed in block {log.block_number}")
    return True


def _deactivate_account(account: SellerAccount | BankAccount | None, kind: str, address: str) -> bool:
    if account is None:
        logger.warning(f"No {kind} record for {address}; removal not mirrored")
        return False
    if not account.active:
        return False
    account.active = False
    logger.info(f"{kind.capitalize()} {address} deactivated")
    return True
