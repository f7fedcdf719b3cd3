"""
VAT reporting endpoint for the tax authority.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tunichain.api.schemas import VATTotalsResponse
from tunichain.infrastructure.database import SellerVATTotals, session_dependency
from tunichain.services.node import LedgerNode, get_node

router = APIRouter(prefix="/vat", tags=["vat"])


@router.get("/{seller_address}", response_model=VATTotalsResponse)
async def get_vat_totals(
    seller_address: str,
    node: LedgerNode = Depends(get_node),
    session: AsyncSession = Depends(session_dependency),
) -> VATTotalsResponse:
    """
    Live VATControl totals for a seller, next to the mirrored copy.
    
    A gap between the two means the listener has not caught up yet.
    """
    totals = node.deployment.vat_control.totals(seller_address)
    mirrored = await session.get(SellerVATTotals, seller_address)
    
    return VATTotalsResponse(
        seller_address=seller_address,
        total_tax_base=totals.total_tax_base,
        total_vat_paid=totals.total_vat_paid,
        total_vat_invoiced=totals.total_vat_invoiced,
        vat_due=totals.vat_due,
        mirrored_total_tax_base=mirrored.total_tax_base if mirrored else None,
        mirrored_total_vat_paid=mirrored.total_vat_paid if mirrored else None,
    )
