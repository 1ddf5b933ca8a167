"""Yield reserve the ledger forwards its funds to.

Modelled after the Frankencoin savings module:

- Interest accrues in ticks, ppm-seconds at the current rate.
  The tick counter is anchored at the last rate change and cannot be resolved before it.

- New deposits start to earn interest only after an activation delay.
  The delay is expressed by advancing the deposit tick baseline by `rate * delay`.

- Withdrawals pay out what the account holds, which can be less than requested.

The ledger holds one account in the reserve: the one of its custody address.
"""

import datetime
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from eth_typing import HexAddress
from eth_utils import to_checksum_address

from eth_batch_savings.accrual import PPM, SECONDS_PER_YEAR
from eth_batch_savings.errors import ReserveTickUnavailable
from eth_batch_savings.journal import Journaled
from eth_batch_savings.timestamp import Clock
from eth_batch_savings.token import AssetTransferService


logger = logging.getLogger(__name__)


#: Frankencoin savings module activation delay
DEFAULT_ACTIVATION_DELAY = int(datetime.timedelta(days=3).total_seconds())


class SavingsModuleError(Exception):
    """The in-memory savings module refused a call, like a revert."""


class YieldReserve(ABC):
    """Savings module interface consumed by the ledger.

    `sender` is the account the call is made from, the ledger custody account.
    """

    #: Reserve address, where the deposited tokens are held
    address: HexAddress

    @abstractmethod
    def deposit(self, sender: HexAddress | str, amount: int):
        """Pull `amount` from `sender` and credit it to the sender's savings account."""

    @abstractmethod
    def current_ticks(self) -> int:
        pass

    @abstractmethod
    def tick_count_at(self, timestamp: int) -> int:
        """Tick counter value at a moment.

        :raise ReserveTickUnavailable:
            The moment precedes the last rate change
        """

    @abstractmethod
    def current_rate_ppm(self) -> int:
        pass

    @abstractmethod
    def activation_delay(self) -> int:
        """Seconds before a new deposit starts earning."""

    @abstractmethod
    def get_balance(self, owner: HexAddress | str) -> int:
        """What a withdrawal for `owner` could pay right now.

        Savings balance plus accrued interest not yet credited.
        """

    @abstractmethod
    def withdraw(self, sender: HexAddress | str, target: HexAddress | str, amount: int) -> int:
        """Pay up to `amount` from the sender's savings account to `target`.

        :return:
            What was actually paid
        """


@dataclass(slots=True)
class SavingsAccount:
    """Balance of one owner in the savings module."""

    #: Principal plus credited interest
    saved: int = 0

    #: Tick baseline, interest is credited for ticks above this
    ticks: int = 0


@dataclass(slots=True, frozen=True)
class _ReserveState:
    accounts: dict[str, tuple[int, int]]
    rate_ppm: int
    anchor_time: int
    anchor_ticks: int


class InMemorySavingsReserve(YieldReserve, Journaled):
    """Savings module in process memory.

    Interest is paid from the token balance of the `equity` account.
    When equity runs dry, the interest credit is capped silently,
    so the reserve may end up paying less than the ledger expects.
    """

    def __init__(
        self,
        address: HexAddress | str,
        token: AssetTransferService,
        clock: Clock,
        equity: HexAddress | str,
        rate_ppm: int,
        activation_delay: int = DEFAULT_ACTIVATION_DELAY,
    ):
        assert rate_ppm >= 0, f"Got {rate_ppm}"
        assert activation_delay >= 0, f"Got {activation_delay}"
        self.address = to_checksum_address(address)
        self.token = token
        self.clock = clock
        self.equity = to_checksum_address(equity)
        self.delay = activation_delay
        self.accounts: dict[str, SavingsAccount] = {}
        self.rate_ppm = rate_ppm
        self.anchor_time = clock.now()
        self.anchor_ticks = 0

    def __repr__(self):
        return f"<InMemorySavingsReserve at {self.address}, rate {self.rate_ppm} ppm>"

    def set_rate(self, rate_ppm: int):
        """Apply a new interest rate from now on.

        Re-anchors the tick counter, so ticks before this moment can no longer be resolved.
        """
        assert rate_ppm >= 0, f"Got {rate_ppm}"
        now = self.clock.now()
        self.anchor_ticks = self.tick_count_at(now)
        self.anchor_time = now
        logger.info("Savings rate changed %d -> %d ppm at %d", self.rate_ppm, rate_ppm, now)
        self.rate_ppm = rate_ppm

    def tick_count_at(self, timestamp: int) -> int:
        if timestamp < self.anchor_time:
            raise ReserveTickUnavailable(f"Timestamp {timestamp} is before the last rate change at {self.anchor_time}")
        return self.anchor_ticks + (timestamp - self.anchor_time) * self.rate_ppm

    def current_ticks(self) -> int:
        return self.tick_count_at(self.clock.now())

    def current_rate_ppm(self) -> int:
        return self.rate_ppm

    def activation_delay(self) -> int:
        return self.delay

    def calculate_interest(self, account: SavingsAccount, ticks: int) -> int:
        if ticks <= account.ticks or account.ticks == 0:
            return 0
        return account.saved * (ticks - account.ticks) // PPM // SECONDS_PER_YEAR

    def refresh(self, owner: HexAddress | str) -> SavingsAccount:
        """Credit accrued interest to an account and move its baseline to now."""
        owner = to_checksum_address(owner)
        account = self.accounts.setdefault(owner, SavingsAccount())
        ticks = self.current_ticks()
        if account.ticks < ticks:
            earned = self.calculate_interest(account, ticks)
            if earned > 0:
                covered = min(earned, self.token.balance_of(self.equity))
                if covered < earned:
                    logger.warning("Savings equity cannot cover interest %d, paying %d", earned, covered)
                if covered > 0:
                    assert self.token.transfer(self.equity, self.address, covered)
                account.saved += covered
            account.ticks = ticks
        return account

    def get_balance(self, owner: HexAddress | str) -> int:
        """Savings balance including not yet credited interest.

        Interest is capped by the equity balance, the same way :py:meth:`refresh` credits it.
        """
        account = self.accounts.get(to_checksum_address(owner))
        if account is None:
            return 0
        earned = self.calculate_interest(account, self.current_ticks())
        return account.saved + min(earned, self.token.balance_of(self.equity))

    def deposit(self, sender: HexAddress | str, amount: int):
        if self.rate_ppm == 0:
            raise SavingsModuleError("Savings module disabled")
        account = self.refresh(sender)
        if amount == 0:
            return
        if not self.token.transfer_from(self.address, sender, self.address, amount):
            raise SavingsModuleError(f"Could not pull {amount} from {sender}")
        ticks = self.current_ticks()
        assert account.ticks >= ticks
        saved = account.saved
        weighted_average = (saved * (account.ticks - ticks) + amount * self.rate_ppm * self.delay) // (saved + amount)
        account.saved += amount
        account.ticks = ticks + weighted_average
        logger.debug("Saved %d for %s, tick baseline %d", amount, sender, account.ticks)

    def withdraw(self, sender: HexAddress | str, target: HexAddress | str, amount: int) -> int:
        sender = to_checksum_address(sender)
        account = self.refresh(sender)
        if amount >= account.saved:
            amount = account.saved
            del self.accounts[sender]
        else:
            account.saved -= amount
        if not self.token.transfer(self.address, target, amount):
            raise SavingsModuleError(f"Could not pay {amount} to {target}")
        logger.debug("Withdrew %d for %s to %s", amount, sender, target)
        return amount

    def snapshot(self) -> _ReserveState:
        return _ReserveState(
            accounts={owner: (a.saved, a.ticks) for owner, a in self.accounts.items()},
            rate_ppm=self.rate_ppm,
            anchor_time=self.anchor_time,
            anchor_ticks=self.anchor_ticks,
        )

    def restore(self, snapshot: _ReserveState):
        self.accounts = {owner: SavingsAccount(saved=saved, ticks=ticks) for owner, (saved, ticks) in snapshot.accounts.items()}
        self.rate_ppm = snapshot.rate_ppm
        self.anchor_time = snapshot.anchor_time
        self.anchor_ticks = snapshot.anchor_ticks
