"""Capability checks.

The ledger only asks a yes/no question per account and capability.
Who grants the capabilities, and how, is up to the authority implementation.
"""

import enum
import logging
from abc import ABC, abstractmethod
from collections import defaultdict

from eth_typing import HexAddress
from eth_utils import to_checksum_address
from hexbytes import HexBytes
from web3 import Web3


logger = logging.getLogger(__name__)


class Capability(enum.Enum):
    """What an account is allowed to do with the ledger."""

    #: May create and redeem deposits and move treasury funds
    operator = "operator"

    #: May be the destination of redeemed or moved funds
    receiver = "receiver"

    def get_role_id(self) -> HexBytes:
        """OpenZeppelin AccessControl role id for this capability.

        E.g. `keccak256("OPERATOR_ROLE")`.
        """
        return HexBytes(Web3.keccak(text=f"{self.value.upper()}_ROLE"))


class PermissionAuthority(ABC):
    """Answer whether an account holds a capability."""

    @abstractmethod
    def is_authorized(self, account: HexAddress | str, capability: Capability) -> bool:
        pass


class RoleRegistry(PermissionAuthority):
    """In-memory capability grants.

    Used in simulations and tests. Addresses are compared checksummed.
    """

    def __init__(self):
        self._grants: dict[Capability, set[str]] = defaultdict(set)

    def grant(self, account: HexAddress | str, *capabilities: Capability):
        for capability in capabilities:
            assert isinstance(capability, Capability), f"Got {capability}"
            self._grants[capability].add(to_checksum_address(account))
            logger.info("Granted %s to %s", capability.name, account)

    def revoke(self, account: HexAddress | str, *capabilities: Capability):
        for capability in capabilities:
            self._grants[capability].discard(to_checksum_address(account))
            logger.info("Revoked %s from %s", capability.name, account)

    def is_authorized(self, account: HexAddress | str, capability: Capability) -> bool:
        return to_checksum_address(account) in self._grants[capability]
