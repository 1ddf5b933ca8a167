"""eth_batch_savings package root.

Batched deposit ledger on the top of a Frankencoin-style savings module.

- Many customer deposits are forwarded to the savings module in one call

- Interest and the annual servicing fee are resolved per deposit at redemption time

See :py:class:`eth_batch_savings.vault.BatchedSavingsVault` for the entry point.
"""

import sys


#: Minimum required Python version to run this package
MIN_PYTHON_VERSION = (3, 10)


def _check_python_version():
    """Try early abort if the Python version is too old."""

    # Use Python tuple comparison for version numbers
    # https://stackoverflow.com/a/1093331/315168
    if sys.version_info < MIN_PYTHON_VERSION:
        raise RuntimeError(f"eth-batch-savings needs Python {MIN_PYTHON_VERSION[0]}.{MIN_PYTHON_VERSION[1]} or later")


_check_python_version()
