"""Append-only event log.

The ledger state holds live deposits only.
Deposit history, including the list of open identifiers, is reconstructed from these events.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator

from hexbytes import HexBytes

from eth_batch_savings.journal import Journaled
from eth_batch_savings.ledger import DepositLedger, DepositRecord


logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DepositCreated:
    """A deposit was written to the ledger.

    Carries the whole record, so the ledger can be rebuilt from the history.
    """

    identifier: HexBytes
    amount: int

    #: Creation time shared by the batch
    created_at: int

    #: Interest tick baseline shared by the batch
    ticks_at_deposit: int


@dataclass(slots=True, frozen=True)
class DepositRedeemed:
    """A deposit was removed from the ledger and paid out."""

    identifier: HexBytes

    #: Principal plus net interest
    total_amount: int


DepositEvent = DepositCreated | DepositRedeemed


class EventLog(Journaled):
    """Events emitted by committed operations.

    Events of an aborted call are discarded together with the rest of its effects.
    """

    def __init__(self):
        self._events: list[DepositEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[DepositEvent]:
        return iter(self._events)

    def emit(self, event: DepositEvent):
        assert isinstance(event, (DepositCreated, DepositRedeemed)), f"Got {event}"
        self._events.append(event)

    def filter(self, event_type: type) -> list[DepositEvent]:
        return [e for e in self._events if isinstance(e, event_type)]

    def snapshot(self) -> int:
        return len(self._events)

    def restore(self, snapshot: int):
        assert snapshot <= len(self._events), f"Cannot restore forward: {snapshot} > {len(self._events)}"
        del self._events[snapshot:]


def get_open_deposits(events: Iterable[DepositEvent]) -> dict[HexBytes, int]:
    """Reconstruct the live deposits from the event history.

    :return:
        Identifier -> principal, in creation order
    """
    open_deposits: dict[HexBytes, int] = {}
    for event in events:
        match event:
            case DepositCreated(identifier=identifier, amount=amount):
                assert identifier not in open_deposits, f"Created twice without redemption: {identifier.hex()}"
                open_deposits[identifier] = amount
            case DepositRedeemed(identifier=identifier):
                assert identifier in open_deposits, f"Redeemed without creation: {identifier.hex()}"
                del open_deposits[identifier]
    return open_deposits


def get_redeemed_total(events: Iterable[DepositEvent]) -> int:
    """Sum of everything paid out by redemptions."""
    return sum(e.total_amount for e in events if isinstance(e, DepositRedeemed))


def rebuild_ledger(events: Iterable[DepositEvent]) -> DepositLedger:
    """Replay the event history into a ledger.

    Used to recover a lost or corrupted ledger file from the emitted events.
    """
    ledger = DepositLedger()
    for event in events:
        match event:
            case DepositCreated():
                ledger.insert(
                    event.identifier,
                    DepositRecord(
                        principal=event.amount,
                        created_at=event.created_at,
                        ticks_at_deposit=event.ticks_at_deposit,
                    ),
                )
            case DepositRedeemed():
                ledger.remove(event.identifier)
    return ledger
