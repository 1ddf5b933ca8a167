"""Batched savings vault fixtures.

In-memory ZCHF, savings module and roles, driven by a manual clock,
see :py:mod:`eth_batch_savings.testing`.
"""

import pytest

from eth_batch_savings.access import RoleRegistry
from eth_batch_savings.reserve import InMemorySavingsReserve
from eth_batch_savings.testing import VaultSetup, create_vault_setup
from eth_batch_savings.timestamp import ManualClock
from eth_batch_savings.token import InMemoryNativeCurrency, InMemoryToken
from eth_batch_savings.vault import BatchedSavingsVault


@pytest.fixture()
def setup() -> VaultSetup:
    return create_vault_setup()


@pytest.fixture()
def clock(setup) -> ManualClock:
    return setup.clock


@pytest.fixture()
def zchf(setup) -> InMemoryToken:
    return setup.zchf


@pytest.fixture()
def reserve(setup) -> InMemorySavingsReserve:
    return setup.reserve


@pytest.fixture()
def roles(setup) -> RoleRegistry:
    return setup.roles


@pytest.fixture()
def native(setup) -> InMemoryNativeCurrency:
    return setup.native


@pytest.fixture()
def vault(setup) -> BatchedSavingsVault:
    return setup.vault
