"""ABI loading from the bundled interface files.

Only the interfaces the ledger talks to are bundled:
ERC-20, the savings module and OpenZeppelin AccessControl.
"""

import json
from functools import lru_cache
from pathlib import Path

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract

# How big are our ABI caches
_CACHE_SIZE = 32


#: Ethereum 0x0000000000000000000000000000000000000000 address
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@lru_cache(maxsize=_CACHE_SIZE)
def get_abi_by_filename(fname: str) -> dict:
    """Reads a bundled ABI file and returns it.

    Example::

        abi = get_abi_by_filename("ISavings.json")

    :param fname:
        JSON filename in `eth_batch_savings/abi`

    :return:
        Contract interface file content, ABI under the `abi` key
    """
    here = Path(__file__).resolve().parent
    abi_path = here / "abi" / Path(fname)
    with open(abi_path, "rt", encoding="utf-8") as f:
        abi = json.load(f)
    return abi


def get_deployed_contract(
    web3: Web3,
    fname: str,
    address: HexAddress | str,
) -> Contract:
    """Get a Contract proxy object for a contract deployed at a specific address.

    :param web3:
        Web3 instance

    :param fname:
        Bundled ABI file name

    :param address:
        Ethereum address of the deployed contract
    """
    assert address, f"get_deployed_contract() address was None"
    address = Web3.to_checksum_address(address)
    abi = get_abi_by_filename(fname)
    return web3.eth.contract(address=address, abi=abi["abi"])
