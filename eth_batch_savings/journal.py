"""All-or-nothing execution of ledger operations.

On a chain a failed call reverts every state change it made,
including the changes made in token and reserve contracts.
In-process we get the same by snapshotting every participant that keeps state
and restoring all of them if the call raises.

Participants that cannot be rolled back, like web3 adapters sending real transactions,
simply do not implement :py:class:`Journaled` and are left alone.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterable


logger = logging.getLogger(__name__)


class Journaled(ABC):
    """State that can be captured and put back."""

    @abstractmethod
    def snapshot(self) -> Any:
        pass

    @abstractmethod
    def restore(self, snapshot: Any):
        pass


@contextmanager
def atomic(participants: Iterable[Any], operation: str = "operation"):
    """Restore all journaled participants if the block raises.

    :param participants:
        Objects taking part in the call.
        Only :py:class:`Journaled` ones are rolled back, the rest are skipped.

    :param operation:
        Name used in logging
    """
    journaled = [p for p in participants if isinstance(p, Journaled)]
    snapshots = [(p, p.snapshot()) for p in journaled]
    try:
        yield
    except Exception as e:
        logger.warning("%s aborted, rolling back %d participants: %s", operation, len(snapshots), e)
        for participant, snapshot in reversed(snapshots):
            participant.restore(snapshot)
        raise
