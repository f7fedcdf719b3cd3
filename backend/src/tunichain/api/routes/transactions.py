"""
Signed transaction submission.

The body is a contract call signed by the caller's wallet. Ledger
rejections come back with their reason string verbatim in `detail`.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from tunichain.api.schemas import (
    LogResponse,
    NonceResponse,
    SignedTransactionRequest,
    TransactionReceiptResponse,
)
from tunichain.domain.errors import (
    AccessControlError,
    DuplicateError,
    LedgerError,
    ReferentialIntegrityError,
    UnauthorizedCallerError,
)
from tunichain.ledger import LogEntry
from tunichain.services.node import LedgerNode, get_node
from tunichain.services.signing import SignedTransaction, SubmissionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["transactions"])


LEDGER_ERROR_STATUS: dict[type[LedgerError], int] = {
    AccessControlError: status.HTTP_403_FORBIDDEN,
    UnauthorizedCallerError: status.HTTP_403_FORBIDDEN,
    DuplicateError: status.HTTP_409_CONFLICT,
    ReferentialIntegrityError: status.HTTP_404_NOT_FOUND,
}


def log_response(log: LogEntry) -> LogResponse:
    return LogResponse(
        event=log.name,
        address=log.address,
        block_number=log.block_number,
        tx_hash=log.tx_hash,
        log_index=log.log_index,
        timestamp=log.timestamp,
        args=log.event.to_dict(),
    )


@router.post(
    "",
    response_model=TransactionReceiptResponse,
    responses={
        400: {"description": "Invalid signature, nonce, method or arguments"},
        403: {"description": "Caller lacks the required role"},
        404: {"description": "Referenced invoice unknown"},
        409: {"description": "Duplicate hash or registration"},
    },
)
async def submit_transaction(
    request: SignedTransactionRequest,
    node: LedgerNode = Depends(get_node),
) -> TransactionReceiptResponse:
    """
    Verify and execute a signed contract call.
    
    The transaction is atomic: on any rejection nothing is committed and
    no event is emitted.
    """
    tx = SignedTransaction.from_dict(request.model_dump())
    
    try:
        receipt = node.gateway.submit(tx)
    except SubmissionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except LedgerError as e:
        logger.info(f"{tx.contract}.{tx.method} rejected: {e.reason}")
        raise HTTPException(
            status_code=LEDGER_ERROR_STATUS.get(type(e), status.HTTP_400_BAD_REQUEST),
            detail=e.reason,
        )
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid arguments: {e}")
    
    return TransactionReceiptResponse(
        tx_hash=receipt.tx_hash,
        block_number=receipt.block_number,
        timestamp=receipt.timestamp,
        sender=receipt.sender,
        return_value=receipt.return_value,
        logs=[log_response(log) for log in receipt.logs],
    )


@router.get("/nonce/{address}", response_model=NonceResponse)
async def get_nonce(address: str, node: LedgerNode = Depends(get_node)) -> NonceResponse:
    """Next nonce the given address must sign with."""
    return NonceResponse(address=address, next_nonce=node.gateway.next_nonce(address))
