"""
Process-wide ledger node.

Bundles the chain, its deployment and the submission gateway. The API
and the event listener share one node per process.
"""

import logging
from dataclasses import dataclass

from tunichain.config import get_settings
from tunichain.ledger import Chain, Deployment, deploy

from .gateway import TransactionGateway

logger = logging.getLogger(__name__)


@dataclass
class LedgerNode:
    """A deployed ledger and its gateway."""
    chain: Chain
    deployment: Deployment
    gateway: TransactionGateway


def create_node(tax_admin: str, chain: Chain | None = None) -> LedgerNode:
    """Deploy a fresh ledger administered by tax_admin."""
    chain = chain or Chain()
    deployment = deploy(chain, tax_admin)
    return LedgerNode(
        chain=chain,
        deployment=deployment,
        gateway=TransactionGateway(deployment),
    )


_node: LedgerNode | None = None


def get_node() -> LedgerNode:
    """Get or create the process ledger node from settings."""
    global _node
    if _node is None:
        settings = get_settings()
        if not settings.tax_admin_address:
            raise RuntimeError("TAX_ADMIN_ADDRESS must be configured to start the ledger")
        _node = create_node(settings.tax_admin_address)
        logger.info(f"Ledger node started: {_node.deployment.addresses}")
    return _node


def reset_node() -> None:
    """Drop the process node (tests and shutdown)."""
    global _node
    _node = None
