"""Deposit ledger.

Single source of truth for principal, creation time and interest baseline per deposit.

- Keyed by 32 byte identifiers, see :py:mod:`eth_batch_savings.identifier`

- Records are immutable: written at creation, deleted at redemption, never updated

- There is no way to list the identifiers, callers track them from the events,
  see :py:func:`eth_batch_savings.events.get_open_deposits`
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from hexbytes import HexBytes

from eth_batch_savings.errors import DepositAlreadyExists, DepositNotFound
from eth_batch_savings.identifier import normalise_identifier
from eth_batch_savings.journal import Journaled


logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DepositRecord:
    """One customer deposit forwarded to the savings module."""

    #: Raw amount forwarded to the reserve for this deposit
    principal: int

    #: UNIX timestamp when the deposit batch was created
    created_at: int

    #: Reserve tick counter value, including the activation delay,
    #: from which the interest of this deposit is measured
    ticks_at_deposit: int

    def __post_init__(self):
        assert type(self.principal) == int, f"Got {type(self.principal)}: {self.principal}"
        assert self.principal > 0, f"Deposit principal must be positive, got {self.principal}"
        assert self.created_at >= 0, f"Got {self.created_at}"
        assert self.ticks_at_deposit >= 0, f"Got {self.ticks_at_deposit}"


class DepositLedger(Journaled):
    """Mapping of identifier to deposit record.

    Absence is represented by `None`, records with zero principal cannot exist.

    The ledger lives in process memory. Give it a `path` to keep it in a JSON file
    between runs: the file is read on construction and written by :py:meth:`save`,
    which the vault calls after every committed create or redeem.

    File format:

    .. code-block:: json

        {
            "0x5f3c...": {"principal": 1000000000000000000000, "created_at": 1700000000, "ticks_at_deposit": 12960000000}
        }
    """

    def __init__(self, path: Path | str | None = None):
        """
        :param path:
            JSON file to load from and save to. `None` for a memory only ledger.
        """
        self.path = Path(path) if path is not None else None
        self._records: dict[HexBytes, DepositRecord] = {}
        if self.path is not None and self.path.exists():
            self._records = self.read_records(self.path)
            logger.info("Loaded %d deposits from %s", len(self._records), self.path)

    def __repr__(self):
        return f"<DepositLedger with {len(self._records)} live deposits>"

    def get(self, identifier: bytes | str) -> DepositRecord | None:
        return self._records.get(normalise_identifier(identifier))

    def __contains__(self, identifier: bytes | str) -> bool:
        return self.get(identifier) is not None

    def __len__(self) -> int:
        return len(self._records)

    def insert(self, identifier: bytes | str, record: DepositRecord):
        """Store a new deposit.

        :raise DepositAlreadyExists:
            A live deposit is already stored under this identifier
        """
        identifier = normalise_identifier(identifier)
        assert isinstance(record, DepositRecord), f"Got {type(record)}"
        if identifier in self._records:
            raise DepositAlreadyExists(identifier)
        self._records[identifier] = record
        logger.debug("Inserted deposit %s: %s", identifier.hex(), record)

    def remove(self, identifier: bytes | str) -> DepositRecord:
        """Delete a deposit.

        :return:
            The deleted record

        :raise DepositNotFound:
            Nothing stored under this identifier
        """
        identifier = normalise_identifier(identifier)
        record = self._records.pop(identifier, None)
        if record is None:
            raise DepositNotFound(identifier)
        logger.debug("Removed deposit %s", identifier.hex())
        return record

    def snapshot(self) -> dict[HexBytes, DepositRecord]:
        """Capture the state for rolling back an aborted call.

        Records are frozen, so a shallow copy is enough.
        """
        return dict(self._records)

    def restore(self, snapshot: dict[HexBytes, DepositRecord]):
        self._records = dict(snapshot)

    @staticmethod
    def read_records(path: Path) -> dict[HexBytes, DepositRecord]:
        with open(path, "rt", encoding="utf-8") as f:
            data = json.load(f)
        return {
            normalise_identifier(identifier): DepositRecord(
                principal=int(entry["principal"]),
                created_at=int(entry["created_at"]),
                ticks_at_deposit=int(entry["ticks_at_deposit"]),
            )
            for identifier, entry in data.items()
        }

    def save(self):
        """Write the live deposits to the ledger file.

        The file is replaced as a whole, so a crash mid-write leaves the previous version intact.
        Does nothing for a memory only ledger.
        """
        if self.path is None:
            return

        data = {
            "0x" + bytes(identifier).hex(): {
                "principal": record.principal,
                "created_at": record.created_at,
                "ticks_at_deposit": record.ticks_at_deposit,
            }
            for identifier, record in self._records.items()
        }
        temp_path = self.path.with_name(self.path.name + ".tmp")
        with open(temp_path, "wt", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(temp_path, self.path)
        logger.debug("Saved %d deposits to %s", len(data), self.path)
