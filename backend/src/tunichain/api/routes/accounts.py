"""
Seller and bank profile endpoints.

Profiles are created here as pending drafts. They become confirmed and
active only when the listener sees the matching SellerAdded/BankAdded
event, i.e. after the tax admin registered the wallet on the ledger.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from tunichain.api.schemas import (
    BankResponse,
    CreateBankRequest,
    CreateSellerRequest,
    SellerResponse,
)
from tunichain.infrastructure.database import (
    BankAccount,
    MirrorStatus,
    SellerAccount,
    session_dependency,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["accounts"])


@router.post(
    "/sellers",
    response_model=SellerResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Wallet or tax id already in use"}},
)
async def create_seller(
    request: CreateSellerRequest,
    session: AsyncSession = Depends(session_dependency),
) -> SellerResponse:
    """Create a pending seller profile."""
    existing = await session.execute(
        select(SellerAccount).where(or_(
            SellerAccount.wallet_address == request.wallet_address,
            SellerAccount.tax_id == request.tax_id,
        ))
    )
    if existing.scalars().first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Seller with this wallet address or tax id already exists",
        )
    
    seller = SellerAccount(
        wallet_address=request.wallet_address,
        name=request.name,
        tax_id=request.tax_id,
        email=request.email,
        active=False,
        status=MirrorStatus.PENDING.value,
    )
    session.add(seller)
    await session.commit()
    
    logger.info(f"Seller draft created for {seller.wallet_address}")
    return SellerResponse.model_validate(seller)


@router.get("/sellers", response_model=list[SellerResponse])
async def list_sellers(session: AsyncSession = Depends(session_dependency)) -> list[SellerResponse]:
    """All seller profiles, drafts included, oldest first."""
    result = await session.execute(select(SellerAccount).order_by(SellerAccount.created_at))
    return [SellerResponse.model_validate(seller) for seller in result.scalars()]


@router.get(
    "/sellers/{wallet_address}",
    response_model=SellerResponse,
    responses={404: {"description": "Seller not found"}},
)
async def get_seller(
    wallet_address: str,
    session: AsyncSession = Depends(session_dependency),
) -> SellerResponse:
    result = await session.execute(
        select(SellerAccount).where(SellerAccount.wallet_address == wallet_address)
    )
    seller = result.scalar_one_or_none()
    if seller is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Seller not found")
    return SellerResponse.model_validate(seller)


@router.post(
    "/banks",
    response_model=BankResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Wallet or BIC already in use"}},
)
async def create_bank(
    request: CreateBankRequest,
    session: AsyncSession = Depends(session_dependency),
) -> BankResponse:
    """Create a pending bank profile."""
    existing = await session.execute(
        select(BankAccount).where(or_(
            BankAccount.wallet_address == request.wallet_address,
            BankAccount.bic_code == request.bic_code,
        ))
    )
    if existing.scalars().first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Bank with this wallet address or BIC already exists",
        )
    
    bank = BankAccount(
        wallet_address=request.wallet_address,
        name=request.name,
        bic_code=request.bic_code,
        active=False,
        status=MirrorStatus.PENDING.value,
    )
    session.add(bank)
    await session.commit()
    
    logger.info(f"Bank draft created for {bank.wallet_address}")
    return BankResponse.model_validate(bank)


@router.get("/banks", response_model=list[BankResponse])
async def list_banks(session: AsyncSession = Depends(session_dependency)) -> list[BankResponse]:
    """All bank profiles, drafts included, oldest first."""
    result = await session.execute(select(BankAccount).order_by(BankAccount.created_at))
    return [BankResponse.model_validate(bank) for bank in result.scalars()]


@router.get(
    "/banks/{wallet_address}",
    response_model=BankResponse,
    responses={404: {"description": "Bank not found"}},
)
async def get_bank(
    wallet_address: str,
    session: AsyncSession = Depends(session_dependency),
) -> BankResponse:
    result = await session.execute(
        select(BankAccount).where(BankAccount.wallet_address == wallet_address)
    )
    bank = result.scalar_one_or_none()
    if bank is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bank not found")
    return BankResponse.model_validate(bank)
