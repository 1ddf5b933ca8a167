"""Simulate a year of batched savings deposits in memory.

- Operator creates a batch of customer deposits

- Clock is moved forward one year

- Half of the deposits are redeemed and the accrual breakdown printed

To run:

.. code-block:: shell

    LOG_LEVEL=info python scripts/batch-savings/simulate-vault.py
"""

import datetime
import logging
import os
from decimal import Decimal

from eth_utils import to_checksum_address

from eth_batch_savings.access import Capability, RoleRegistry
from eth_batch_savings.identifier import hash_customer_reference
from eth_batch_savings.reserve import InMemorySavingsReserve
from eth_batch_savings.timestamp import ManualClock
from eth_batch_savings.token import MAX_UINT256, InMemoryToken, convert_to_decimals, convert_to_raw
from eth_batch_savings.vault import BatchedSavingsVault

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "warning").upper())

CUSTODY = to_checksum_address("0x" + "c0" * 20)
OPERATOR = to_checksum_address("0x" + "0a" * 20)
RECEIVER = to_checksum_address("0x" + "be" * 20)
EQUITY = to_checksum_address("0x" + "e9" * 20)
RESERVE = to_checksum_address("0x" + "5a" * 20)
ZCHF = to_checksum_address("0xB58E61C3098d85632Df34EecfB899A1Ed80921cB")

CUSTOMERS = 10
RATE_PPM = int(os.environ.get("RATE_PPM", "50000"))

clock = ManualClock(int(datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc).timestamp()))
zchf = InMemoryToken(ZCHF)
reserve = InMemorySavingsReserve(RESERVE, zchf, clock, equity=EQUITY, rate_ppm=RATE_PPM)
zchf.register_minter(RESERVE)
zchf.mint(EQUITY, convert_to_raw(Decimal(1_000_000)))
zchf.mint(OPERATOR, convert_to_raw(Decimal(1_000_000)))
zchf.approve(OPERATOR, CUSTODY, MAX_UINT256)

roles = RoleRegistry()
roles.grant(OPERATOR, Capability.operator, Capability.receiver)
roles.grant(RECEIVER, Capability.receiver)

vault = BatchedSavingsVault(CUSTODY, zchf, reserve, roles, clock)

identifiers = [hash_customer_reference(f"customer-{i}") for i in range(CUSTOMERS)]
amounts = [convert_to_raw(Decimal(1000 * (i + 1))) for i in range(CUSTOMERS)]
total = vault.create_deposits(OPERATOR, identifiers, amounts, OPERATOR)
print(f"Created {CUSTOMERS} deposits worth {convert_to_decimals(total):,} ZCHF at {RATE_PPM / 10_000}% savings rate")

clock.advance(datetime.timedelta(days=365))

redeemed = identifiers[: CUSTOMERS // 2]
for identifier in redeemed:
    breakdown = vault.get_accrual_breakdown(identifier)
    print(
        f"{identifier.hex()[:10]}… principal {convert_to_decimals(breakdown.principal):,} "
        f"gross {convert_to_decimals(breakdown.gross_interest):.4f} "
        f"fee {convert_to_decimals(breakdown.fee):.4f} "
        f"net {convert_to_decimals(breakdown.net_interest):.4f}"
    )

paid = vault.redeem_deposits(OPERATOR, redeemed, RECEIVER)
print(f"Redeemed {len(redeemed)} deposits, receiver got {convert_to_decimals(paid):,} ZCHF")
print(f"Custody savings balance left {convert_to_decimals(reserve.get_balance(CUSTODY)):,} ZCHF")
