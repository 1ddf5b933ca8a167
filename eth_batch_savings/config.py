"""Deployment configuration from environment variables.

Wire a vault against deployed contracts:

.. code-block:: shell

    export JSON_RPC_URL=https://...
    export BATCH_SAVINGS_CUSTODY=0x...
    export BATCH_SAVINGS_ZCHF=0xB58E61C3098d85632Df34EecfB899A1Ed80921cB
    export BATCH_SAVINGS_RESERVE=0x...
    export BATCH_SAVINGS_AUTHORITY=0x...
    export BATCH_SAVINGS_LEDGER=/var/lib/batch-savings/ledger.json

.. code-block:: python

    config = read_config_from_env()
    web3 = Web3(HTTPProvider(config.json_rpc_url))
    vault = create_onchain_vault(web3, config)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from eth_typing import HexAddress
from eth_utils import is_address, to_checksum_address
from web3 import Web3

from eth_batch_savings.ledger import DepositLedger
from eth_batch_savings.onchain import (
    DEFAULT_GAS,
    BlockClock,
    Web3AccessControl,
    Web3NativeCurrency,
    Web3SavingsReserve,
    Web3Token,
)
from eth_batch_savings.vault import BatchedSavingsVault


logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class BatchSavingsConfig:
    """Where the vault collaborators live on a chain."""

    json_rpc_url: str

    #: Account holding the vault funds, must be unlocked or a hot wallet
    custody: HexAddress

    #: ZCHF token
    token: HexAddress

    #: Savings module
    reserve: HexAddress

    #: AccessControl contract with OPERATOR_ROLE and RECEIVER_ROLE
    authority: HexAddress

    #: Gas limit for the vault transactions
    gas: int = DEFAULT_GAS

    #: JSON file keeping the deposit ledger between runs
    ledger_path: Path | None = None


def _read_address(env: Mapping[str, str], name: str) -> HexAddress:
    value = env.get(name)
    if not value:
        raise ValueError(f"Environment variable {name} is not set")
    if not is_address(value):
        raise ValueError(f"Environment variable {name} is not an address: {value}")
    return to_checksum_address(value)


def read_config_from_env(env: Mapping[str, str] | None = None) -> BatchSavingsConfig:
    """Read deployment configuration.

    :param env:
        Variables to read, default to `os.environ`

    :raise ValueError:
        A required variable is missing or malformed
    """
    if env is None:
        env = os.environ

    json_rpc_url = env.get("JSON_RPC_URL")
    if not json_rpc_url:
        raise ValueError("Environment variable JSON_RPC_URL is not set")

    gas = env.get("BATCH_SAVINGS_GAS")
    ledger_path = env.get("BATCH_SAVINGS_LEDGER")

    config = BatchSavingsConfig(
        json_rpc_url=json_rpc_url,
        custody=_read_address(env, "BATCH_SAVINGS_CUSTODY"),
        token=_read_address(env, "BATCH_SAVINGS_ZCHF"),
        reserve=_read_address(env, "BATCH_SAVINGS_RESERVE"),
        authority=_read_address(env, "BATCH_SAVINGS_AUTHORITY"),
        gas=int(gas) if gas else DEFAULT_GAS,
        ledger_path=Path(ledger_path) if ledger_path else None,
    )
    logger.info("Using custody %s, savings module %s, ZCHF %s", config.custody, config.reserve, config.token)
    return config


def create_onchain_vault(
    web3: Web3,
    config: BatchSavingsConfig,
    ledger: DepositLedger | None = None,
) -> BatchedSavingsVault:
    """Create a vault talking to the configured contracts.

    :param ledger:
        Deposit ledger to use. Default to the one in `config.ledger_path`.
    """
    if ledger is None:
        if config.ledger_path is None:
            logger.warning("BATCH_SAVINGS_LEDGER not set, deposits are kept in memory only and lost when the process exits")
        ledger = DepositLedger(config.ledger_path)

    return BatchedSavingsVault(
        custody=config.custody,
        token=Web3Token.from_address(web3, config.token, gas=config.gas),
        reserve=Web3SavingsReserve.from_address(web3, config.reserve, config.token, gas=config.gas),
        authority=Web3AccessControl.from_address(web3, config.authority),
        clock=BlockClock(web3),
        native=Web3NativeCurrency(web3),
        ledger=ledger,
    )
