"""Settlement currency transfers.

The ledger moves ZCHF, an ERC-20 token, in and out of its custody account
through :py:class:`AssetTransferService`.
Like ERC-20, transfers report failure by returning `False`.

- :py:class:`InMemoryToken` for simulations and tests

- :py:class:`eth_batch_savings.onchain.Web3Token` for a deployed token
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable

from eth_typing import HexAddress
from eth_utils import to_checksum_address

from eth_batch_savings.journal import Journaled


logger = logging.getLogger(__name__)


#: ERC-20 infinite approval
MAX_UINT256 = 2**256 - 1

#: ZCHF decimals
ZCHF_DECIMALS = 18

#: Called after a successful in-memory transfer with (from, to, amount)
TransferHook = Callable[[str, str, int], None]


def convert_to_decimals(raw_amount: int, decimals: int = ZCHF_DECIMALS) -> Decimal:
    """Convert raw token units to decimals.

    Example:

    .. code-block:: python

        assert convert_to_decimals(1_500_000_000_000_000_000) == Decimal("1.5")

    """
    assert type(raw_amount) == int, f"Got {type(raw_amount)}, expected int: {raw_amount}"
    return Decimal(raw_amount) / Decimal(10**decimals)


def convert_to_raw(decimal_amount: Decimal | int, decimals: int = ZCHF_DECIMALS) -> int:
    """Convert decimalised token amount to raw uint256.

    Rounds down to whole raw units.
    """
    assert not isinstance(decimal_amount, float), f"Use Decimal, not float: {decimal_amount}"
    return int(Decimal(decimal_amount) * 10**decimals)


class AssetTransferService(ABC):
    """ERC-20 like token seen by the ledger.

    `sender` and `spender` are the accounts on whose behalf a call is made,
    `msg.sender` in Solidity terms.
    """

    #: Token address, `None` for the native currency
    address: HexAddress | None = None

    @abstractmethod
    def transfer_from(self, spender: HexAddress | str, from_: HexAddress | str, to: HexAddress | str, amount: int) -> bool:
        pass

    @abstractmethod
    def transfer(self, sender: HexAddress | str, to: HexAddress | str, amount: int) -> bool:
        pass

    @abstractmethod
    def balance_of(self, account: HexAddress | str) -> int:
        pass

    @abstractmethod
    def approve(self, owner: HexAddress | str, spender: HexAddress | str, amount: int) -> bool:
        pass


@dataclass(slots=True)
class _TokenState:
    balances: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    allowances: dict[tuple[str, str], int] = field(default_factory=lambda: defaultdict(int))
    total_supply: int = 0

    def copy(self) -> "_TokenState":
        return _TokenState(
            balances=defaultdict(int, self.balances),
            allowances=defaultdict(int, self.allowances),
            total_supply=self.total_supply,
        )


class InMemoryToken(AssetTransferService, Journaled):
    """ERC-20 balances and allowances in process memory.

    - Insufficient balance or allowance returns `False`, never raises

    - `MAX_UINT256` allowance is never decreased

    - Transfer hooks let tests call back into the ledger mid-operation
    """

    def __init__(self, address: HexAddress | str, symbol: str = "ZCHF", decimals: int = ZCHF_DECIMALS):
        self.address = to_checksum_address(address)
        self.symbol = symbol
        self.decimals = decimals
        self.hooks: list[TransferHook] = []
        self.minters: set[str] = set()
        self._state = _TokenState()

    def __repr__(self):
        return f"<InMemoryToken {self.symbol} at {self.address}>"

    @property
    def total_supply(self) -> int:
        return self._state.total_supply

    def mint(self, to: HexAddress | str, amount: int):
        assert amount >= 0, f"Got {amount}"
        self._state.balances[to_checksum_address(to)] += amount
        self._state.total_supply += amount

    def balance_of(self, account: HexAddress | str) -> int:
        return self._state.balances.get(to_checksum_address(account), 0)

    def register_minter(self, minter: HexAddress | str):
        """Give an account unlimited allowance over every holder, like ZCHF does for its minters."""
        self.minters.add(to_checksum_address(minter))

    def allowance(self, owner: HexAddress | str, spender: HexAddress | str) -> int:
        spender = to_checksum_address(spender)
        if spender in self.minters:
            return MAX_UINT256
        return self._state.allowances.get((to_checksum_address(owner), spender), 0)

    def approve(self, owner: HexAddress | str, spender: HexAddress | str, amount: int) -> bool:
        assert amount >= 0, f"Got {amount}"
        self._state.allowances[(to_checksum_address(owner), to_checksum_address(spender))] = amount
        return True

    def transfer(self, sender: HexAddress | str, to: HexAddress | str, amount: int) -> bool:
        return self._move(to_checksum_address(sender), to_checksum_address(to), amount)

    def transfer_from(self, spender: HexAddress | str, from_: HexAddress | str, to: HexAddress | str, amount: int) -> bool:
        key = (to_checksum_address(from_), to_checksum_address(spender))
        allowance = self.allowance(from_, spender)
        if allowance < amount:
            logger.debug("%s: allowance %d of %s for %s is less than %d", self.symbol, allowance, from_, spender, amount)
            return False
        if self.balance_of(from_) < amount:
            logger.debug("%s: balance of %s is less than %d", self.symbol, from_, amount)
            return False
        if allowance != MAX_UINT256:
            self._state.allowances[key] = allowance - amount
        return self._move(key[0], to_checksum_address(to), amount)

    def _move(self, from_: str, to: str, amount: int) -> bool:
        assert amount >= 0, f"Got {amount}"
        balances = self._state.balances
        if balances.get(from_, 0) < amount:
            return False
        balances[from_] -= amount
        balances[to] += amount
        for hook in self.hooks:
            hook(from_, to, amount)
        return True

    def snapshot(self) -> _TokenState:
        return self._state.copy()

    def restore(self, snapshot: _TokenState):
        self._state = snapshot.copy()


class InMemoryNativeCurrency(AssetTransferService, Journaled):
    """Native currency balances, e.g. ETH accidentally sent to the custody account.

    Only plain sends are supported.
    """

    address = None

    def __init__(self):
        self._balances: dict[str, int] = defaultdict(int)

    def credit(self, account: HexAddress | str, amount: int):
        self._balances[to_checksum_address(account)] += amount

    def balance_of(self, account: HexAddress | str) -> int:
        return self._balances.get(to_checksum_address(account), 0)

    def transfer(self, sender: HexAddress | str, to: HexAddress | str, amount: int) -> bool:
        sender = to_checksum_address(sender)
        if self._balances.get(sender, 0) < amount:
            return False
        self._balances[sender] -= amount
        self._balances[to_checksum_address(to)] += amount
        return True

    def transfer_from(self, spender, from_, to, amount) -> bool:
        raise NotImplementedError("Native currency has no allowances")

    def approve(self, owner, spender, amount) -> bool:
        raise NotImplementedError("Native currency has no allowances")

    def snapshot(self) -> dict[str, int]:
        return dict(self._balances)

    def restore(self, snapshot: dict[str, int]):
        self._balances = defaultdict(int, snapshot)
