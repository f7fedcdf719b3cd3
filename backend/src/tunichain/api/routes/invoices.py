"""
Invoice draft endpoints.

A seller drafts the invoice here: lines are validated, the amount is
converted to minor units and the canonical invoice hash is computed.
The seller then signs InvoiceValidation.submit_invoice with that hash;
the listener confirms the draft once InvoiceStored is committed.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tunichain.api.schemas import (
    CreateInvoiceRequest,
    InvoiceResponse,
    ValidationCheckResponse,
)
from tunichain.domain.hashing import compute_invoice_hash, normalize_hash
from tunichain.domain.validation import LineItem, run_invoice_checks
from tunichain.infrastructure.database import (
    InvoiceDocument,
    MirrorStatus,
    PaymentStatus,
    session_dependency,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.post(
    "",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"description": "An identical invoice draft already exists"},
        422: {"description": "Invoice failed pre-submission checks"},
    },
)
async def create_invoice(
    request: CreateInvoiceRequest,
    session: AsyncSession = Depends(session_dependency),
) -> InvoiceResponse:
    """
    Validate and store a pending invoice draft.
    
    **Note:** This endpoint does not submit anything to the ledger.
    The returned invoice_hash is what the seller signs and submits.
    """
    items = [
        LineItem(description=item.description, quantity=item.quantity, unit_price=item.price)
        for item in request.items
    ]
    result = run_invoice_checks(items, request.vat_rate_permille)
    
    if not result.passed:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="; ".join(result.errors),
        )
    
    items_payload = [item.to_dict() for item in items]
    invoice_hash = compute_invoice_hash(
        seller=request.seller_address,
        invoice_number=request.invoice_number,
        client_name=request.client_name,
        amount=result.amount,
        vat_rate_permille=result.vat_rate_permille,
        items=items_payload,
    )
    
    existing = await session.execute(
        select(InvoiceDocument).where(InvoiceDocument.invoice_hash == invoice_hash)
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Invoice draft {invoice_hash} already exists",
        )
    
    invoice = InvoiceDocument(
        seller_address=request.seller_address,
        invoice_number=request.invoice_number,
        client_name=request.client_name,
        items_json=items_payload,
        amount=result.amount,
        vat_rate_permille=result.vat_rate_permille,
        vat_amount=result.vat_amount,
        invoice_hash=invoice_hash,
        status=MirrorStatus.PENDING.value,
        payment_status=PaymentStatus.UNPAID.value,
    )
    session.add(invoice)
    await session.commit()
    
    logger.info(f"Invoice draft {request.invoice_number} created with hash {invoice_hash}")
    
    checks = [
        ValidationCheckResponse(
            rule_name=check.rule_name,
            passed=check.passed,
            message=check.message,
            details=check.details,
        )
        for check in result.checks
    ]
    return InvoiceResponse.model_validate(invoice).model_copy(update={"checks": checks})


@router.get("/seller/{seller_address}", response_model=list[InvoiceResponse])
async def list_seller_invoices(
    seller_address: str,
    session: AsyncSession = Depends(session_dependency),
) -> list[InvoiceResponse]:
    """A seller's invoices, drafts included, oldest first."""
    result = await session.execute(
        select(InvoiceDocument)
        .where(InvoiceDocument.seller_address == seller_address)
        .order_by(InvoiceDocument.created_at)
    )
    return [InvoiceResponse.model_validate(invoice) for invoice in result.scalars()]


@router.get("/unpaid", response_model=list[InvoiceResponse])
async def list_unpaid_invoices(
    session: AsyncSession = Depends(session_dependency),
) -> list[InvoiceResponse]:
    """
    Confirmed invoices without a confirmed payment.
    
    Drafts are left out: a bank can only pay an invoice the ledger holds.
    """
    result = await session.execute(
        select(InvoiceDocument)
        .where(
            InvoiceDocument.status == MirrorStatus.CONFIRMED.value,
            InvoiceDocument.payment_status == PaymentStatus.UNPAID.value,
        )
        .order_by(InvoiceDocument.ledger_id)
    )
    return [InvoiceResponse.model_validate(invoice) for invoice in result.scalars()]


@router.get(
    "/{invoice_hash}",
    response_model=InvoiceResponse,
    responses={
        400: {"description": "Malformed hash"},
        404: {"description": "Invoice not found"},
    },
)
async def get_invoice(
    invoice_hash: str,
    session: AsyncSession = Depends(session_dependency),
) -> InvoiceResponse:
    """Get a mirrored invoice by hash."""
    try:
        invoice_hash = normalize_hash(invoice_hash)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    
    result = await session.execute(
        select(InvoiceDocument).where(InvoiceDocument.invoice_hash == invoice_hash)
    )
    invoice = result.scalar_one_or_none()
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return InvoiceResponse.model_validate(invoice)
