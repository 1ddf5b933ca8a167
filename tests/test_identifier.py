"""Deposit identifiers and capabilities."""

import pytest
from hexbytes import HexBytes
from web3 import Web3

from eth_batch_savings.access import Capability, RoleRegistry
from eth_batch_savings.identifier import hash_customer_reference, normalise_identifier


def test_hash_customer_reference():
    identifier = hash_customer_reference("customer-1234")
    assert isinstance(identifier, HexBytes)
    assert len(identifier) == 32
    assert identifier == Web3.keccak(text="customer-1234")
    assert identifier != hash_customer_reference("customer-1235")


def test_normalise_identifier():
    identifier = hash_customer_reference("customer-1234")
    as_hex = "0x" + bytes(identifier).hex()
    assert normalise_identifier(as_hex) == identifier
    assert normalise_identifier(bytes(identifier)) == identifier

    with pytest.raises(ValueError):
        normalise_identifier(b"\x00" * 20)


def test_role_ids():
    assert Capability.operator.get_role_id() == Web3.keccak(text="OPERATOR_ROLE")
    assert Capability.receiver.get_role_id() == Web3.keccak(text="RECEIVER_ROLE")


def test_role_registry():
    account = "0x" + "ab" * 20
    roles = RoleRegistry()
    assert not roles.is_authorized(account, Capability.operator)

    roles.grant(account, Capability.operator, Capability.receiver)
    # Checksummed and lowercased addresses are the same account
    assert roles.is_authorized(Web3.to_checksum_address(account), Capability.operator)
    assert roles.is_authorized(account, Capability.receiver)

    roles.revoke(account, Capability.operator)
    assert not roles.is_authorized(account, Capability.operator)
    assert roles.is_authorized(account, Capability.receiver)
