"""
Shared fixtures: a deployed ledger with one seller and one bank.
"""

import itertools

import pytest

from tunichain.ledger import Chain, Deployment, deploy

ADMIN = "rTaxAdminXXXXXXXXXXXXXXXXXXXXXXX"
SELLER = "rSellerXXXXXXXXXXXXXXXXXXXXXXXXX"
BANK = "rBankXXXXXXXXXXXXXXXXXXXXXXXXXXXX"
OUTSIDER = "rOutsiderXXXXXXXXXXXXXXXXXXXXXXX"


@pytest.fixture
def admin() -> str:
    return ADMIN


@pytest.fixture
def seller() -> str:
    return SELLER


@pytest.fixture
def bank() -> str:
    return BANK


@pytest.fixture
def outsider() -> str:
    return OUTSIDER


@pytest.fixture
def chain() -> Chain:
    ticks = itertools.count(1_700_000_000)
    return Chain(clock=lambda: next(ticks))


@pytest.fixture
def ledger(chain: Chain, admin: str, seller: str, bank: str) -> Deployment:
    deployment = deploy(chain, admin)
    chain.transact(admin, deployment.registry.add_seller, seller, "Test Seller")
    chain.transact(admin, deployment.registry.add_bank, bank, "Test Bank")
    return deployment
