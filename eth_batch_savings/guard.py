"""Non-reentrant execution of mutating operations.

Token and reserve calls may call back into the ledger, e.g. through token hooks.
A nested entry into any guarded operation is refused while another one is running.
"""

import functools
import logging
import threading

from eth_batch_savings.errors import ReentrantCall


logger = logging.getLogger(__name__)


class NonReentrantGuard:
    """Mutual exclusion for the duration of one mutating call.

    - The same thread entering twice raises :py:class:`ReentrantCall`

    - Other threads wait until the running call exits

    - Released on every exit path, including exceptions
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._owner: int | None = None

    @property
    def entered(self) -> bool:
        return self._owner is not None

    def __enter__(self):
        if self._owner == threading.get_ident():
            raise ReentrantCall("Reentrant call into a guarded operation")
        self._lock.acquire()
        self._owner = threading.get_ident()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._owner = None
        self._lock.release()
        return False


def non_reentrant(func):
    """Run a method under `self.guard`."""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        with self.guard:
            return func(self, *args, **kwargs)

    return wrapper
