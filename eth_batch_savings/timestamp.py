"""Time sources.

All ledger timestamps are integer UNIX seconds, like block timestamps.
"""

import datetime
import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Tells the current moment in UNIX seconds."""

    @abstractmethod
    def now(self) -> int:
        pass

    def now_datetime(self) -> datetime.datetime:
        """Current moment as a timezone naive UTC datetime."""
        return datetime.datetime.fromtimestamp(self.now(), datetime.timezone.utc).replace(tzinfo=None)


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> int:
        return int(time.time())


class ManualClock(Clock):
    """Clock moved by hand in simulations and tests."""

    def __init__(self, timestamp: int):
        assert type(timestamp) == int, f"Got {type(timestamp)}"
        self.timestamp = timestamp

    def now(self) -> int:
        return self.timestamp

    def advance(self, seconds: int | datetime.timedelta) -> int:
        """Move time forward.

        :return:
            The new timestamp
        """
        if isinstance(seconds, datetime.timedelta):
            seconds = int(seconds.total_seconds())
        assert seconds >= 0, f"Time cannot go backwards: {seconds}"
        self.timestamp += seconds
        return self.timestamp
