"""Batched savings vault.

Aggregates many customer deposits into one savings module interaction,
while interest and the servicing fee are still resolved per deposit.

Create a batch of deposits:

.. code-block:: python

    vault = BatchedSavingsVault(
        custody=custody,
        token=zchf,
        reserve=savings,
        authority=roles,
        clock=clock,
    )

    vault.create_deposits(
        operator,
        [hash_customer_reference("customer-1"), hash_customer_reference("customer-2")],
        [100 * 10**18, 250 * 10**18],
        source=operator,
    )

Later redeem some of them to a receiver:

.. code-block:: python

    paid = vault.redeem_deposits(operator, [hash_customer_reference("customer-1")], receiver)

Every mutating call is all-or-nothing and non-reentrant.
"""

import logging
from typing import Sequence

from eth_typing import HexAddress
from eth_utils import to_checksum_address
from hexbytes import HexBytes

from eth_batch_savings.abi import ZERO_ADDRESS
from eth_batch_savings.access import Capability, PermissionAuthority
from eth_batch_savings.accrual import AccrualBreakdown, accrue, calculate_accrual
from eth_batch_savings.errors import (
    AmountTooLarge,
    ArrayLengthMismatch,
    DepositNotFound,
    InvalidReceiver,
    MissingCapability,
    TransferFailed,
    TransferFromFailed,
    UnexpectedWithdrawalAmount,
    ZeroAmount,
)
from eth_batch_savings.events import DepositCreated, DepositRedeemed, EventLog
from eth_batch_savings.guard import NonReentrantGuard, non_reentrant
from eth_batch_savings.identifier import normalise_identifier
from eth_batch_savings.journal import Journaled, atomic
from eth_batch_savings.ledger import DepositLedger, DepositRecord
from eth_batch_savings.onchain import Web3Token
from eth_batch_savings.reserve import YieldReserve
from eth_batch_savings.timestamp import Clock
from eth_batch_savings.token import AssetTransferService


logger = logging.getLogger(__name__)


#: Savings module stores amounts as uint192
MAX_DEPOSIT_AMOUNT = 2**192 - 1


class BatchedSavingsVault:
    """Deposit ledger, batch create/redeem protocol and treasury utilities.

    The vault owns one account, `custody`, that holds its savings module balance
    and sends all its token and reserve calls.
    """

    def __init__(
        self,
        custody: HexAddress | str,
        token: AssetTransferService,
        reserve: YieldReserve,
        authority: PermissionAuthority,
        clock: Clock,
        native: AssetTransferService | None = None,
        ledger: DepositLedger | None = None,
    ):
        """
        :param custody:
            Account holding the vault funds and its savings account

        :param token:
            Settlement currency, ZCHF

        :param reserve:
            Savings module

        :param authority:
            Operator and receiver capability checks

        :param clock:
            Source of the current moment, block timestamps on a chain

        :param native:
            Native currency, needed only for rescuing it

        :param ledger:
            Deposit ledger, e.g. one kept in a file.
            Default to a new memory only ledger.
        """
        self.custody = to_checksum_address(custody)
        self.token = token
        self.reserve = reserve
        self.authority = authority
        self.clock = clock
        self.native = native
        self.ledger = ledger if ledger is not None else DepositLedger()
        self.events = EventLog()
        self.guard = NonReentrantGuard()

    def __repr__(self):
        return f"<BatchedSavingsVault custody {self.custody}, {self.ledger}>"

    def _get_participants(self) -> list:
        """Everything an aborted call must roll back, without duplicates."""
        participants = []
        for p in (self.ledger, self.events, self.token, self.reserve, self.native):
            if p is not None and all(p is not q for q in participants):
                participants.append(p)
        return participants

    def _require_capability(self, account: HexAddress | str, capability: Capability):
        if not self.authority.is_authorized(account, capability):
            raise MissingCapability(account, capability)

    def _require_receiver(self, receiver: HexAddress | str):
        if not self.authority.is_authorized(receiver, Capability.receiver):
            raise InvalidReceiver(receiver)

    def _pull(self, source: HexAddress | str, amount: int):
        """Move funds from the source to the custody account."""
        if to_checksum_address(source) == self.custody:
            return
        if not self.token.transfer_from(self.custody, source, self.custody, amount):
            raise TransferFromFailed(source, self.custody, amount)

    def _get_asset(self, token: AssetTransferService | HexAddress | str | None) -> AssetTransferService:
        """Resolve what `rescue_tokens` transfers."""
        if isinstance(token, AssetTransferService):
            return token

        if token is None or token == ZERO_ADDRESS:
            assert self.native is not None, "Vault was not given a native currency service"
            return self.native

        address = to_checksum_address(token)
        if address == self.token.address:
            return self.token

        # On a chain any ERC-20 can be reached through its address
        if isinstance(self.token, Web3Token):
            return Web3Token.from_address(self.token.web3, address, gas=self.token.gas)

        raise ValueError(f"No transfer service for token {address}, pass an AssetTransferService instead")

    @staticmethod
    def _check_amount(amount: int):
        assert type(amount) == int, f"Amounts must be raw integers, got {type(amount)}: {amount}"
        if amount == 0:
            raise ZeroAmount()
        assert amount > 0, f"Got negative amount {amount}"
        if amount > MAX_DEPOSIT_AMOUNT:
            raise AmountTooLarge(amount, MAX_DEPOSIT_AMOUNT)

    @non_reentrant
    def create_deposits(
        self,
        caller: HexAddress | str,
        identifiers: Sequence[bytes | str],
        amounts: Sequence[int],
        source: HexAddress | str,
    ) -> int:
        """Create a batch of deposits with one savings module deposit.

        All deposits of the batch share the creation time and the interest tick baseline.

        :param caller:
            Operator account

        :param identifiers:
            32 byte deposit identifiers, see :py:func:`eth_batch_savings.identifier.hash_customer_reference`

        :param amounts:
            Raw amounts, one per identifier

        :param source:
            Account the total is pulled from. No pull if this is the custody account itself.

        :return:
            Batch total forwarded to the savings module

        :raise ArrayLengthMismatch:
            Identifier and amount counts differ

        :raise ZeroAmount:
            Any of the amounts is zero

        :raise AmountTooLarge:
            The total does not fit a deposit amount

        :raise TransferFromFailed:
            Could not pull the total from the source

        :raise DepositAlreadyExists:
            One of the identifiers is live, or repeated in the batch
        """
        self._require_capability(caller, Capability.operator)

        if len(identifiers) != len(amounts):
            raise ArrayLengthMismatch(len(identifiers), len(amounts))

        identifiers = [normalise_identifier(i) for i in identifiers]

        total = 0
        for idx, amount in enumerate(amounts):
            assert type(amount) == int, f"Amounts must be raw integers, got {type(amount)}: {amount}"
            if amount == 0:
                raise ZeroAmount(idx)
            assert amount > 0, f"Got negative amount {amount} at {idx}"
            total += amount

        if total > MAX_DEPOSIT_AMOUNT:
            raise AmountTooLarge(total, MAX_DEPOSIT_AMOUNT)

        with atomic(self._get_participants(), "create_deposits"):
            self._pull(source, total)
            self.reserve.deposit(self.custody, total)

            # One baseline for the whole batch
            ticks_at_deposit = self.reserve.current_ticks() + self.reserve.current_rate_ppm() * self.reserve.activation_delay()
            created_at = self.clock.now()

            for identifier, amount in zip(identifiers, amounts):
                self.ledger.insert(
                    identifier,
                    DepositRecord(
                        principal=amount,
                        created_at=created_at,
                        ticks_at_deposit=ticks_at_deposit,
                    ),
                )
                self.events.emit(
                    DepositCreated(
                        identifier=identifier,
                        amount=amount,
                        created_at=created_at,
                        ticks_at_deposit=ticks_at_deposit,
                    )
                )

        self.ledger.save()

        logger.info(
            "Created %d deposits totalling %d from %s, created at %d, tick baseline %d",
            len(identifiers),
            total,
            source,
            created_at,
            ticks_at_deposit,
        )
        return total

    @non_reentrant
    def redeem_deposits(
        self,
        caller: HexAddress | str,
        identifiers: Sequence[bytes | str],
        receiver: HexAddress | str,
    ) -> int:
        """Redeem deposits with their net interest, in one savings module withdrawal.

        :param caller:
            Operator account

        :param receiver:
            Where the funds go, must hold the receiver capability

        :return:
            Total paid out

        :raise InvalidReceiver:
            Receiver lacks the capability

        :raise DepositNotFound:
            One of the identifiers is not live, or repeated in the call

        :raise TimestampBeforeLastRateChange:
            The savings module cannot resolve the interest for now

        :raise UnexpectedWithdrawalAmount:
            The savings account cannot cover what is owed, checked before withdrawing.
            Or the savings module paid a different amount than owed.
            In the latter case, if the reserve cannot be rolled back (a deployed contract),
            the withdrawal stays mined and the redeemed records stay deleted.
        """
        self._require_capability(caller, Capability.operator)
        self._require_receiver(receiver)

        identifiers = [normalise_identifier(i) for i in identifiers]
        reserve_journaled = isinstance(self.reserve, Journaled)

        with atomic(self._get_participants(), "redeem_deposits"):
            now = self.clock.now()
            total = 0
            for identifier in identifiers:
                record = self.ledger.get(identifier)
                if record is None:
                    raise DepositNotFound(identifier)
                principal, net_interest = accrue(record, now, self.reserve)
                amount = principal + net_interest
                total += amount
                logger.debug("Redeeming %s: principal %d, net interest %d", identifier.hex(), principal, net_interest)
                self.events.emit(DepositRedeemed(identifier=identifier, total_amount=amount))
                self.ledger.remove(identifier)

            available = self.reserve.get_balance(self.custody)
            if available < total:
                raise UnexpectedWithdrawalAmount(total, available)

            withdrawn = self.reserve.withdraw(self.custody, receiver, total)
            if withdrawn != total and reserve_journaled:
                raise UnexpectedWithdrawalAmount(total, withdrawn)

        self.ledger.save()

        if withdrawn != total:
            logger.error(
                "Savings module paid %d to %s instead of %d, the withdrawal is final and %d deposits stay redeemed: %s",
                withdrawn,
                receiver,
                total,
                len(identifiers),
                ", ".join(i.hex() for i in identifiers),
            )
            raise UnexpectedWithdrawalAmount(total, withdrawn)

        logger.info("Redeemed %d deposits, paid %d to %s", len(identifiers), total, receiver)
        return total

    @non_reentrant
    def add_zchf(self, caller: HexAddress | str, source: HexAddress | str, amount: int):
        """Top up the savings account without creating a deposit.

        Used to cover under-funding, e.g. rounding or fee shortfalls.
        """
        self._require_capability(caller, Capability.operator)
        self._check_amount(amount)
        with atomic(self._get_participants(), "add_zchf"):
            self._pull(source, amount)
            self.reserve.deposit(self.custody, amount)
        logger.info("Added %d untracked funds from %s", amount, source)

    @non_reentrant
    def move_zchf(self, caller: HexAddress | str, receiver: HexAddress | str, amount: int) -> int:
        """Withdraw up to `amount` from the savings account, bypassing the ledger.

        The savings module pays at most what the account holds.
        The paid amount is not checked against the request.

        :return:
            What the savings module actually paid
        """
        self._require_capability(caller, Capability.operator)
        self._require_receiver(receiver)
        self._check_amount(amount)
        with atomic(self._get_participants(), "move_zchf"):
            withdrawn = self.reserve.withdraw(self.custody, receiver, amount)
        if withdrawn != amount:
            logger.warning("Requested moving %d to %s, savings module paid %d", amount, receiver, withdrawn)
        else:
            logger.info("Moved %d to %s", amount, receiver)
        return withdrawn

    @non_reentrant
    def rescue_tokens(
        self,
        caller: HexAddress | str,
        token: AssetTransferService | HexAddress | str | None,
        receiver: HexAddress | str,
        amount: int,
    ):
        """Send a balance held directly by the custody account.

        Funds already in the savings module are not reachable this way, use :py:meth:`move_zchf`.

        :param token:
            Asset to send: a transfer service or a token address.
            `None` or the zero address for the native currency.

        :raise ValueError:
            No way to transfer the token at the given address

        :raise TransferFailed:
            The transfer returned failure
        """
        self._require_capability(caller, Capability.operator)
        self._require_receiver(receiver)

        asset = self._get_asset(token)

        with atomic(self._get_participants() + [asset], "rescue_tokens"):
            if not asset.transfer(self.custody, receiver, amount):
                raise TransferFailed(asset.address, receiver, amount)
        logger.info("Rescued %d of %s to %s", amount, asset.address or "native currency", receiver)

    def get_deposit(self, identifier: bytes | str) -> DepositRecord | None:
        return self.ledger.get(identifier)

    def get_deposit_details(self, identifier: bytes | str, timestamp: int | None = None) -> tuple[int, int]:
        """Principal and net interest of a deposit.

        :param timestamp:
            Moment to evaluate at, default to now

        :return:
            `(0, 0)` if there is no such deposit
        """
        if timestamp is None:
            timestamp = self.clock.now()
        return accrue(self.ledger.get(identifier), timestamp, self.reserve)

    def get_accrual_breakdown(self, identifier: bytes | str, timestamp: int | None = None) -> AccrualBreakdown:
        """Gross interest, fee and net interest of a live deposit.

        :raise DepositNotFound:
            No such deposit
        """
        record = self.ledger.get(identifier)
        if record is None:
            raise DepositNotFound(normalise_identifier(identifier))
        if timestamp is None:
            timestamp = self.clock.now()
        return calculate_accrual(record, timestamp, self.reserve)
