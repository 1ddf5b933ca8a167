"""Check a customer deposit against deployed contracts.

Looks the deposit up in the ledger file and resolves its interest from the savings module.
Reads only, sends no transactions.

.. code-block:: shell

    export JSON_RPC_URL=...
    export BATCH_SAVINGS_CUSTODY=0x...
    export BATCH_SAVINGS_ZCHF=0x...
    export BATCH_SAVINGS_RESERVE=0x...
    export BATCH_SAVINGS_AUTHORITY=0x...
    export BATCH_SAVINGS_LEDGER=ledger.json
    python scripts/batch-savings/check-deposit.py customer-1234
"""

import datetime
import sys

from web3 import HTTPProvider, Web3

from eth_batch_savings.config import create_onchain_vault, read_config_from_env
from eth_batch_savings.identifier import hash_customer_reference
from eth_batch_savings.token import convert_to_decimals

assert len(sys.argv) == 2, f"Usage: {sys.argv[0]} <customer reference>"
reference = sys.argv[1]

config = read_config_from_env()
assert config.ledger_path is not None, "You must set BATCH_SAVINGS_LEDGER environment variable"
assert config.ledger_path.exists(), f"Ledger file {config.ledger_path} does not exist"

web3 = Web3(HTTPProvider(config.json_rpc_url))
print(f"Connected to chain {web3.eth.chain_id}, the latest block is {web3.eth.block_number:,}")

vault = create_onchain_vault(web3, config)
print(f"Ledger {config.ledger_path} has {len(vault.ledger)} live deposits")
print(f"Savings rate is {vault.reserve.current_rate_ppm() / 10_000}%, current ticks {vault.reserve.current_ticks():,}")

identifier = hash_customer_reference(reference)
record = vault.get_deposit(identifier)
if record is None:
    print(f"No live deposit for {reference} ({identifier.hex()})")
    sys.exit(1)

breakdown = vault.get_accrual_breakdown(identifier)
created_at = datetime.datetime.fromtimestamp(record.created_at, datetime.timezone.utc).replace(tzinfo=None)
print(f"Deposit {reference} ({identifier.hex()})")
print(f"  Created at:     {created_at} UTC")
print(f"  Principal:      {convert_to_decimals(breakdown.principal):,} ZCHF")
print(f"  Gross interest: {convert_to_decimals(breakdown.gross_interest):,} ZCHF")
print(f"  Fee:            {convert_to_decimals(breakdown.fee):,} ZCHF")
print(f"  Net interest:   {convert_to_decimals(breakdown.net_interest):,} ZCHF")
