"""
Payment proof endpoints.

A bank drafts the payment proof against a known invoice; the computed
payment hash is then signed into PaymentRegistry.store_payment.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tunichain.api.schemas import CreatePaymentRequest, PaymentResponse
from tunichain.domain.hashing import compute_payment_hash, normalize_hash
from tunichain.domain.validation import validate_payment_amount
from tunichain.infrastructure.database import (
    InvoiceDocument,
    MirrorStatus,
    PaymentProof,
    session_dependency,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Malformed invoice hash"},
        404: {"description": "Invoice unknown"},
        409: {"description": "Payment proof already exists"},
        422: {"description": "Payment amount rejected"},
    },
)
async def create_payment(
    request: CreatePaymentRequest,
    session: AsyncSession = Depends(session_dependency),
) -> PaymentResponse:
    """Validate and store a pending payment proof."""
    try:
        invoice_hash = normalize_hash(request.invoice_hash)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    
    result = await session.execute(
        select(InvoiceDocument).where(InvoiceDocument.invoice_hash == invoice_hash)
    )
    invoice = result.scalar_one_or_none()
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="invoice unknown")
    
    check = validate_payment_amount(request.amount_paid, invoice.amount, invoice.vat_amount)
    if not check.passed:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=check.message)
    
    payment_hash = compute_payment_hash(
        bank=request.bank_address,
        invoice_hash=invoice_hash,
        payment_reference=request.payment_reference,
        amount_paid=request.amount_paid,
    )
    
    existing = await session.execute(
        select(PaymentProof).where(PaymentProof.payment_hash == payment_hash)
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="payment exists")
    
    payment = PaymentProof(
        bank_address=request.bank_address,
        invoice_hash=invoice_hash,
        payment_reference=request.payment_reference,
        amount_paid=request.amount_paid,
        payment_hash=payment_hash,
        status=MirrorStatus.PENDING.value,
    )
    session.add(payment)
    await session.commit()
    
    logger.info(f"Payment draft {request.payment_reference} created with hash {payment_hash}")
    return PaymentResponse.model_validate(payment)


@router.get("/bank/{bank_address}", response_model=list[PaymentResponse])
async def list_bank_payments(
    bank_address: str,
    session: AsyncSession = Depends(session_dependency),
) -> list[PaymentResponse]:
    """A bank's payment proofs, drafts included, oldest first."""
    result = await session.execute(
        select(PaymentProof)
        .where(PaymentProof.bank_address == bank_address)
        .order_by(PaymentProof.created_at)
    )
    return [PaymentResponse.model_validate(payment) for payment in result.scalars()]


@router.get(
    "/{payment_hash}",
    response_model=PaymentResponse,
    responses={
        400: {"description": "Malformed hash"},
        404: {"description": "Payment not found"},
    },
)
async def get_payment(
    payment_hash: str,
    session: AsyncSession = Depends(session_dependency),
) -> PaymentResponse:
    """Get a mirrored payment proof by hash."""
    try:
        payment_hash = normalize_hash(payment_hash)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    
    result = await session.execute(
        select(PaymentProof).where(PaymentProof.payment_hash == payment_hash)
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return PaymentResponse.model_validate(payment)
