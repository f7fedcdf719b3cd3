"""
Mirror database configuration and session management with SQLAlchemy.

Uses async SQLAlchemy for non-blocking database operations.
The mirror holds off-chain drafts (sellers, banks, invoices, payment
proofs) and the confirmed ledger state reconciled from events.

Design Decisions:
- AsyncSession for non-blocking operations
- Drafts are written first with status "pending", events confirm them
- Ledger positions (tx hash, block number, log index) are stored on every
  confirmed row so replays can be detected
- Session-per-request pattern
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator
from uuid import uuid4

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Integer, String
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from tunichain.config import get_settings
from tunichain.domain.models import MirrorStatus, PaymentStatus

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class LedgerConfirmation:
    """Columns shared by every row confirmed by a ledger event."""
    status: Mapped[str] = mapped_column(String(16), default=MirrorStatus.PENDING.value, index=True)
    tx_hash: Mapped[str | None] = mapped_column(String(66))
    block_number: Mapped[int | None] = mapped_column(Integer)
    log_index: Mapped[int | None] = mapped_column(Integer)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    
    def is_confirmed_by(self, tx_hash: str, log_index: int) -> bool:
        return self.tx_hash == tx_hash and self.log_index == log_index
    
    def confirm(self, tx_hash: str, block_number: int, log_index: int) -> None:
        self.status = MirrorStatus.CONFIRMED.value
        self.tx_hash = tx_hash
        self.block_number = block_number
        self.log_index = log_index
        self.confirmed_at = _utcnow()


class SellerAccount(LedgerConfirmation, Base):
    """Seller profile, confirmed by SellerAdded."""
    __tablename__ = "sellers"
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    
    wallet_address: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(256))
    tax_id: Mapped[str] = mapped_column(String(64), unique=True)
    email: Mapped[str | None] = mapped_column(String(256))
    active: Mapped[bool] = mapped_column(Boolean, default=False)


class BankAccount(LedgerConfirmation, Base):
    """Bank profile, confirmed by BankAdded."""
    __tablename__ = "banks"
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    
    wallet_address: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(256))
    bic_code: Mapped[str] = mapped_column(String(11), unique=True)
    active: Mapped[bool] = mapped_column(Boolean, default=False)


class InvoiceDocument(LedgerConfirmation, Base):
    """
    Invoice draft and its confirmed ledger state.
    
    Amounts are integer minor units, exactly as submitted to the ledger.
    """
    __tablename__ = "invoices"
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    
    seller_address: Mapped[str] = mapped_column(String(64), index=True)
    invoice_number: Mapped[str] = mapped_column(String(64))
    client_name: Mapped[str] = mapped_column(String(256))
    items_json: Mapped[list] = mapped_column(JSON, default=list)
    
    amount: Mapped[int] = mapped_column(BigInteger)
    vat_rate_permille: Mapped[int] = mapped_column(Integer)
    vat_amount: Mapped[int] = mapped_column(BigInteger)
    
    invoice_hash: Mapped[str] = mapped_column(String(66), unique=True, index=True)
    ledger_id: Mapped[int | None] = mapped_column(Integer, index=True)
    payment_status: Mapped[str] = mapped_column(String(16), default=PaymentStatus.UNPAID.value)


class PaymentProof(LedgerConfirmation, Base):
    """Payment proof draft and its confirmed ledger state."""
    __tablename__ = "payment_proofs"
    
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    
    bank_address: Mapped[str] = mapped_column(String(64), index=True)
    invoice_hash: Mapped[str] = mapped_column(String(66), index=True)
    payment_reference: Mapped[str] = mapped_column(String(128))
    amount_paid: Mapped[int] = mapped_column(BigInteger)
    
    payment_hash: Mapped[str] = mapped_column(String(66), unique=True, index=True)
    ledger_id: Mapped[int | None] = mapped_column(Integer)
    ledger_invoice_id: Mapped[int | None] = mapped_column(Integer)


class SellerVATTotals(Base):
    """
    Running VAT totals per seller, copied from VATControl events.
    
    Totals only grow on the ledger, so applying the larger of the stored
    and the event total makes replays harmless.
    """
    __tablename__ = "seller_vat_totals"
    
    seller_address: Mapped[str] = mapped_column(String(64), primary_key=True)
    total_tax_base: Mapped[int] = mapped_column(BigInteger, default=0)
    total_vat_paid: Mapped[int] = mapped_column(BigInteger, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class ListenerCursor(Base):
    """Last ledger position applied by an event listener."""
    __tablename__ = "listener_cursors"
    
    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    block_number: Mapped[int] = mapped_column(Integer, default=0)
    log_index: Mapped[int] = mapped_column(Integer, default=-1)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


# Engine and session factory (initialized lazily)
_engine = None
_session_factory = None


def get_engine():
    """Get or create the async database engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        url = make_url(settings.database_url)
        
        options = {"echo": settings.debug}
        if not url.drivername.startswith("sqlite"):
            options.update(pool_size=5, max_overflow=10, pool_timeout=30)
        
        _engine = create_async_engine(url, **options)
        logger.info(f"Database engine created for {url.host or url.database}")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory for creating database sessions."""
    global _session_factory
    if _session_factory is None:
        engine = get_engine()
        _session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session for a request.
    
    Usage:
        async with get_session() as session:
            session.add(record)
            await session.commit()
    """
    factory = get_session_factory()
    session = factory()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def session_dependency() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session."""
    async with get_session() as session:
        yield session


async def init_db() -> None:
    """
    Initialize database tables.
    
    Call this on application startup to ensure tables exist.
    In production, use Alembic migrations instead.
    """
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")


async def close_db() -> None:
    """Close database connections on shutdown."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
    logger.info("Database connections closed")
