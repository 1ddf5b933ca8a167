"""Deposit identifiers.

Deposits are keyed by the keccak-256 hash of an off-chain customer reference,
so no personally identifying data ends up in the ledger state or in the events.
"""

from eth_typing import HexStr
from hexbytes import HexBytes
from web3 import Web3

#: Deposit identifiers are bytes32
IDENTIFIER_SIZE = 32


def hash_customer_reference(reference: str) -> HexBytes:
    """Derive a deposit identifier from an off-chain customer reference.

    Example:

    .. code-block:: python

        identifier = hash_customer_reference("customer-1234/order-5678")
        assert len(identifier) == 32

    :param reference:
        Free-form reference string from the back office

    :return:
        keccak-256 of the UTF-8 encoded reference
    """
    assert isinstance(reference, str), f"Got {type(reference)}"
    assert reference, "Empty customer reference"
    return HexBytes(Web3.keccak(text=reference))


def normalise_identifier(value: bytes | HexBytes | HexStr | str) -> HexBytes:
    """Convert any accepted identifier presentation to 32 bytes.

    :param value:
        Raw bytes or 0x-prefixed hex string

    :raise ValueError:
        If the value is not exactly 32 bytes
    """
    if isinstance(value, str):
        assert value.startswith("0x"), f"Identifier hex string must be 0x prefixed: {value}"
    identifier = HexBytes(value)
    if len(identifier) != IDENTIFIER_SIZE:
        raise ValueError(f"Deposit identifier must be {IDENTIFIER_SIZE} bytes, got {len(identifier)}: {identifier.hex()}")
    return identifier
