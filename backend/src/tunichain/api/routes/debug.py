"""
Debug endpoints for development and testing.

These endpoints are only available when DEBUG=true.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from tunichain.api.routes.transactions import log_response
from tunichain.api.schemas import LogResponse
from tunichain.config import get_settings
from tunichain.domain.models import EVENT_TYPES
from tunichain.services.listener import EventListener
from tunichain.services.node import LedgerNode, get_node

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/debug", tags=["debug"])


def _require_debug() -> None:
    settings = get_settings()
    if not settings.debug:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Debug endpoints are disabled in production",
        )


@router.get("/logs", response_model=list[LogResponse])
async def get_logs(
    from_block: int = 0,
    event: str | None = None,
    node: LedgerNode = Depends(get_node),
) -> list[LogResponse]:
    """Dump committed ledger logs, optionally filtered by event name."""
    _require_debug()
    if event is not None and event not in EVENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown event {event}; expected one of {sorted(EVENT_TYPES)}",
        )
    return [
        log_response(log)
        for log in node.chain.get_logs(from_block=from_block, event_name=event)
    ]


@router.post("/sync")
async def sync_mirror(node: LedgerNode = Depends(get_node)) -> dict[str, int]:
    """
    Run one listener poll immediately.
    
    Only available while the background listener is disabled: two pollers
    reading the same cursor would both apply the logs after it.
    """
    _require_debug()
    settings = get_settings()
    if settings.listener_enabled:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Background listener is running; manual sync is disabled",
        )
    listener = EventListener(node.chain, batch_size=settings.listener_batch_size)
    applied = await listener.poll_once()
    logger.info(f"Manual sync applied {applied} logs")
    return {"applied": applied, "block_number": node.chain.block_number}
