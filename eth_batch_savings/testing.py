"""In-memory vault deployment for tests and simulations.

Builds a complete vault with in-memory ZCHF, savings module and roles,
driven by a manual clock. Accounts are fixed, checksummed dummy addresses.

Example:

.. code-block:: python

    from eth_batch_savings.testing import OPERATOR, ONE_ZCHF, create_vault_setup

    setup = create_vault_setup()
    setup.vault.create_deposits(OPERATOR, [identifier], [100 * ONE_ZCHF], OPERATOR)
    setup.clock.advance(datetime.timedelta(days=365))
"""

import datetime
from dataclasses import dataclass
from pathlib import Path

from eth_utils import to_checksum_address

from eth_batch_savings.access import Capability, RoleRegistry
from eth_batch_savings.ledger import DepositLedger
from eth_batch_savings.reserve import InMemorySavingsReserve
from eth_batch_savings.timestamp import ManualClock
from eth_batch_savings.token import MAX_UINT256, InMemoryNativeCurrency, InMemoryToken
from eth_batch_savings.vault import BatchedSavingsVault


#: 2023-11-14 22:13:20 UTC
START_TIME = 1_700_000_000

#: 5% savings rate
SAVINGS_RATE_PPM = 50_000

#: Frankencoin savings module delay
ACTIVATION_DELAY = int(datetime.timedelta(days=3).total_seconds())

DAY = 24 * 3600

ONE_ZCHF = 10**18

CUSTODY = to_checksum_address("0x" + "c0" * 20)
OPERATOR = to_checksum_address("0x" + "0a" * 20)
RECEIVER = to_checksum_address("0x" + "be" * 20)
OUTSIDER = to_checksum_address("0x" + "ee" * 20)
EQUITY = to_checksum_address("0x" + "e9" * 20)
RESERVE_ADDRESS = to_checksum_address("0x" + "5a" * 20)
ZCHF_ADDRESS = to_checksum_address("0xB58E61C3098d85632Df34EecfB899A1Ed80921cB")


@dataclass
class VaultSetup:
    """Everything a vault simulation touches."""

    clock: ManualClock
    zchf: InMemoryToken
    reserve: InMemorySavingsReserve
    roles: RoleRegistry
    native: InMemoryNativeCurrency
    vault: BatchedSavingsVault


def create_vault_setup(
    clock: ManualClock | None = None,
    ledger_path: Path | None = None,
) -> VaultSetup:
    """Fresh vault with funded operator and savings equity.

    - Operator holds 1M ZCHF and has approved the custody account

    - Savings equity holds 1M ZCHF to pay interest

    :param clock:
        Share a clock between setups, default to a new one at `START_TIME`

    :param ledger_path:
        Keep the deposit ledger in this JSON file
    """
    if clock is None:
        clock = ManualClock(START_TIME)

    zchf = InMemoryToken(ZCHF_ADDRESS)
    reserve = InMemorySavingsReserve(
        RESERVE_ADDRESS,
        zchf,
        clock,
        equity=EQUITY,
        rate_ppm=SAVINGS_RATE_PPM,
        activation_delay=ACTIVATION_DELAY,
    )
    zchf.register_minter(RESERVE_ADDRESS)
    zchf.mint(EQUITY, 1_000_000 * ONE_ZCHF)
    zchf.mint(OPERATOR, 1_000_000 * ONE_ZCHF)
    zchf.approve(OPERATOR, CUSTODY, MAX_UINT256)

    roles = RoleRegistry()
    roles.grant(OPERATOR, Capability.operator)
    roles.grant(RECEIVER, Capability.receiver)

    native = InMemoryNativeCurrency()

    vault = BatchedSavingsVault(
        custody=CUSTODY,
        token=zchf,
        reserve=reserve,
        authority=roles,
        clock=clock,
        native=native,
        ledger=DepositLedger(ledger_path),
    )
    return VaultSetup(clock=clock, zchf=zchf, reserve=reserve, roles=roles, native=native, vault=vault)
