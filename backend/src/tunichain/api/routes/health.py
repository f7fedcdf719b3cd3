"""
Health check endpoint.

Provides system health status for monitoring and load balancers.
"""

from fastapi import APIRouter, Depends

from tunichain import __version__
from tunichain.api.schemas import HealthResponse
from tunichain.services.node import LedgerNode, get_node

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(node: LedgerNode = Depends(get_node)) -> HealthResponse:
    """
    Check system health.
    
    Returns the ledger height and contract addresses for monitoring
    dashboards and load balancer health checks.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        database="connected",  # Would check actual connection in production
        block_number=node.chain.block_number,
        contracts=node.deployment.addresses,
    )
