"""
Role registry: the single authorization oracle for both ledgers.

Holds the Seller and Bank sets as two independent maps plus the set of
Tax-Admin accounts allowed to manage them. Entries are deactivated,
never erased, so the history of who was registered stays on the ledger.
"""

import logging
from dataclasses import replace

from tunichain.domain.errors import AccessControlError, DuplicateError
from tunichain.domain.models import (
    TAX_ADMIN_ROLE,
    BankAdded,
    BankRemoved,
    Role,
    RoleEntry,
    SellerAdded,
    SellerRemoved,
    TaxAdminGranted,
    TaxAdminRevoked,
)

from .chain import Chain, Contract

logger = logging.getLogger(__name__)


class Registry(Contract):
    """
    Seller/Bank/Tax-Admin role registry.
    
    Re-adding an address that is already active is rejected with
    "already registered". Re-adding a removed address re-activates it with
    the new metadata.
    """
    
    def __init__(self, chain: Chain, address: str, tax_admin: str) -> None:
        super().__init__(chain, address)
        self._tax_admins: dict[str, bool] = {tax_admin: True}
        self._sellers: dict[str, RoleEntry] = {}
        self._banks: dict[str, RoleEntry] = {}
    
    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------
    
    def is_seller(self, account: str) -> bool:
        entry = self._sellers.get(account)
        return entry is not None and entry.active
    
    def is_bank(self, account: str) -> bool:
        entry = self._banks.get(account)
        return entry is not None and entry.active
    
    def is_tax_admin(self, account: str) -> bool:
        return self._tax_admins.get(account, False)
    
    def seller(self, account: str) -> RoleEntry | None:
        return self._sellers.get(account)
    
    def bank(self, account: str) -> RoleEntry | None:
        return self._banks.get(account)
    
    @property
    def tax_admins(self) -> list[str]:
        return [account for account, active in self._tax_admins.items() if active]
    
    # -------------------------------------------------------------------------
    # Role management (Tax-Admin only)
    # -------------------------------------------------------------------------
    
    def _only_tax_admin(self) -> str:
        sender = self.msg_sender
        if not self.is_tax_admin(sender):
            raise AccessControlError(
                f"AccessControlUnauthorizedAccount: {sender} is missing role {TAX_ADMIN_ROLE}",
                required_role=TAX_ADMIN_ROLE,
                account=sender,
            )
        return sender
    
    def add_seller(self, account: str, metadata: str) -> None:
        self._only_tax_admin()
        self._activate(self._sellers, Role.SELLER, account, metadata)
        self._emit(SellerAdded(seller=account, meta=metadata))
    
    def add_bank(self, account: str, metadata: str) -> None:
        self._only_tax_admin()
        self._activate(self._banks, Role.BANK, account, metadata)
        self._emit(BankAdded(bank=account, meta=metadata))
    
    def remove_seller(self, account: str) -> None:
        self._only_tax_admin()
        if self._deactivate(self._sellers, account):
            self._emit(SellerRemoved(seller=account))
    
    def remove_bank(self, account: str) -> None:
        self._only_tax_admin()
        if self._deactivate(self._banks, account):
            self._emit(BankRemoved(bank=account))
    
    def grant_tax_admin(self, account: str) -> None:
        self._only_tax_admin()
        if self.is_tax_admin(account):
            raise DuplicateError("already registered")
        self._store(self._tax_admins, account, True)
        self._emit(TaxAdminGranted(account=account))
    
    def revoke_tax_admin(self, account: str) -> None:
        self._only_tax_admin()
        if not self.is_tax_admin(account):
            return
        if self.tax_admins == [account]:
            raise AccessControlError(
                "cannot revoke last tax admin",
                required_role=TAX_ADMIN_ROLE,
                account=account,
            )
        self._store(self._tax_admins, account, False)
        self._emit(TaxAdminRevoked(account=account))
    
    def _activate(
        self,
        entries: dict[str, RoleEntry],
        role: Role,
        account: str,
        metadata: str,
    ) -> None:
        if not account:
            raise ValueError("account must be a non-empty address")
        
        existing = entries.get(account)
        if existing is not None and existing.active:
            raise DuplicateError("already registered")
        
        self._store(
            entries,
            account,
            RoleEntry(address=account, role=role, metadata=metadata, active=True),
        )
        logger.debug(f"{role.value} {account} activated")
    
    def _deactivate(self, entries: dict[str, RoleEntry], account: str) -> bool:
        existing = entries.get(account)
        if existing is None or not existing.active:
            return False
        
        self._store(entries, account, replace(existing, active=False))
        logger.debug(f"{existing.role.value} {account} deactivated")
        return True
