"""
Deployment of the four contracts.

Order matters: each ledger receives its dependencies at construction, and
VATControl receives the two ledger addresses as its caller allow-list.
The aggregator is then wired into both ledgers by the tax admin.
"""

import logging
from dataclasses import dataclass

from .chain import Chain, Contract
from .invoice_validation import InvoiceValidation
from .payment_registry import PaymentRegistry
from .registry import Registry
from .vat_control import VATControl

logger = logging.getLogger(__name__)


@dataclass
class Deployment:
    """Handles to the deployed contracts."""
    chain: Chain
    tax_admin: str
    registry: Registry
    invoice_validation: InvoiceValidation
    payment_registry: PaymentRegistry
    vat_control: VATControl
    
    @property
    def contracts(self) -> dict[str, Contract]:
        """Contracts by name, as addressed by signed transactions."""
        return {
            "Registry": self.registry,
            "InvoiceValidation": self.invoice_validation,
            "PaymentRegistry": self.payment_registry,
            "VATControl": self.vat_control,
        }
    
    @property
    def addresses(self) -> dict[str, str]:
        return {name: contract.address for name, contract in self.contracts.items()}


def deploy(chain: Chain, tax_admin: str) -> Deployment:
    """
    Deploy and wire the ledger contracts.
    
    Args:
        chain: Chain to deploy on
        tax_admin: Account holding the initial Tax-Admin role; also the deployer
        
    Returns:
        Deployment with every contract wired
    """
    registry = chain.deploy(tax_admin, Registry, tax_admin)
    invoice_validation = chain.deploy(tax_admin, InvoiceValidation, registry)
    payment_registry = chain.deploy(tax_admin, PaymentRegistry, registry, invoice_validation)
    vat_control = chain.deploy(
        tax_admin,
        VATControl,
        invoice_validation.address,
        payment_registry.address,
    )
    
    chain.transact(tax_admin, invoice_validation.set_vat_control, vat_control.address)
    chain.transact(tax_admin, payment_registry.set_vat_control, vat_control.address)
    
    logger.info(f"Ledger deployed for tax admin {tax_admin}")
    
    return Deployment(
        chain=chain,
        tax_admin=tax_admin,
        registry=registry,
        invoice_validation=invoice_validation,
        payment_registry=payment_registry,
        vat_control=vat_control,
    )
