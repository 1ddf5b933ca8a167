"""Named failure conditions of the batched savings ledger.

Every failure aborts the whole enclosing operation.
The exceptions carry the offending values as attributes,
so calling tooling can tell the causes apart without parsing messages.

- :py:class:`ArgumentError`: bad input, raised before any external call

- :py:class:`AuthorizationError`: missing capability, raised before any mutation

- :py:class:`LedgerStateError`: identifier conflicts

- :py:class:`CollaboratorError`: token, reserve or native currency transfer misbehaved
"""

from eth_typing import HexAddress
from hexbytes import HexBytes


class BatchSavingsError(Exception):
    """Base class for all batched savings ledger failures."""


class ArgumentError(BatchSavingsError, ValueError):
    """Malformed input to a batch or treasury operation."""


class ArrayLengthMismatch(ArgumentError):
    """Identifier and amount sequences differ in length."""

    def __init__(self, identifier_count: int, amount_count: int):
        super().__init__(f"Got {identifier_count} identifiers but {amount_count} amounts")
        self.identifier_count = identifier_count
        self.amount_count = amount_count


class ZeroAmount(ArgumentError):
    """A deposit or treasury amount was zero."""

    def __init__(self, index: int | None = None):
        if index is None:
            super().__init__("Amount must be non-zero")
        else:
            super().__init__(f"Amount at index {index} must be non-zero")
        self.index = index


class AmountTooLarge(ArgumentError):
    """Batch total does not fit a single deposit amount field."""

    def __init__(self, amount: int, limit: int):
        super().__init__(f"Amount {amount} exceeds the maximum {limit}")
        self.amount = amount
        self.limit = limit


class AuthorizationError(BatchSavingsError):
    """Caller or destination lacks a capability."""


class MissingCapability(AuthorizationError):
    """Account does not hold the capability the operation requires."""

    def __init__(self, account: HexAddress | str, capability: "eth_batch_savings.access.Capability"):
        super().__init__(f"Account {account} is missing capability {capability.name}")
        self.account = account
        self.capability = capability


class InvalidReceiver(AuthorizationError):
    """Funds destination does not hold the receiver capability."""

    def __init__(self, receiver: HexAddress | str):
        super().__init__(f"Receiver {receiver} is not allowed to receive funds")
        self.receiver = receiver


class LedgerStateError(BatchSavingsError):
    """Operation conflicts with the current ledger state."""


class DepositAlreadyExists(LedgerStateError):
    """A live deposit is already stored under the identifier."""

    def __init__(self, identifier: HexBytes):
        super().__init__(f"Deposit {identifier.hex()} already exists")
        self.identifier = identifier


class DepositNotFound(LedgerStateError):
    """No live deposit is stored under the identifier."""

    def __init__(self, identifier: HexBytes):
        super().__init__(f"Deposit {identifier.hex()} not found")
        self.identifier = identifier


class CollaboratorError(BatchSavingsError):
    """External token, reserve or native currency call did not do what we asked."""


class TransferFromFailed(CollaboratorError):
    """Pulling funds from the source account failed."""

    def __init__(self, source: HexAddress | str, destination: HexAddress | str, amount: int):
        super().__init__(f"transferFrom {source} -> {destination} of {amount} failed")
        self.source = source
        self.destination = destination
        self.amount = amount


class TransferFailed(CollaboratorError):
    """Sending a held balance out of the custody account failed."""

    def __init__(self, token: HexAddress | str | None, receiver: HexAddress | str, amount: int):
        super().__init__(f"Transfer of {amount} of {token or 'native currency'} to {receiver} failed")
        self.token = token
        self.receiver = receiver
        self.amount = amount


class TimestampBeforeLastRateChange(CollaboratorError):
    """The reserve cannot resolve a tick value for a moment before its last rate change."""

    def __init__(self, timestamp: int):
        super().__init__(f"Cannot resolve reserve ticks at {timestamp}, it is before the last rate change")
        self.timestamp = timestamp


class UnexpectedWithdrawalAmount(CollaboratorError):
    """The reserve paid a different amount than redemption requested."""

    def __init__(self, requested: int, withdrawn: int):
        super().__init__(f"Requested withdrawal of {requested}, reserve paid {withdrawn}")
        self.requested = requested
        self.withdrawn = withdrawn


class ReserveTickUnavailable(Exception):
    """Raised by reserve implementations when the tick lookup reverts.

    Translated to :py:class:`TimestampBeforeLastRateChange` by the accrual engine.
    """


class ReentrantCall(BatchSavingsError):
    """A mutating operation was entered while another one was still running."""
