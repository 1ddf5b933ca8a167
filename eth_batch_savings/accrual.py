"""Interest and servicing fee accrual.

The savings module measures interest in ticks: ppm-seconds accumulated at the current rate.
Interest over an interval is `delta_ticks * principal / 1_000_000 / SECONDS_PER_YEAR`.

The servicing fee is a fixed annual rate charged over the whole life of a deposit,
including the activation delay during which the deposit does not yet earn anything.
The fee is clamped in tick terms to the ticks actually earned, so net interest cannot go negative.

All divisions floor. The rounding loss stays in the reserve,
so the ledger never owes more than the reserve holds.

Example:

.. code-block:: python

    principal, net_interest = accrue(ledger.get(identifier), clock.now(), reserve)

"""

import logging
from dataclasses import dataclass

from eth_batch_savings.errors import ReserveTickUnavailable, TimestampBeforeLastRateChange
from eth_batch_savings.ledger import DepositRecord


logger = logging.getLogger(__name__)


#: Rates are expressed in parts per million
PPM = 1_000_000

#: Savings module year, leap days ignored
SECONDS_PER_YEAR = 365 * 24 * 3600

#: Annual servicing fee, 1.25%
FEE_ANNUAL_PPM = 12_500


@dataclass(slots=True, frozen=True)
class TickLookup:
    """Result of asking the reserve for its tick counter at a moment.

    Either `ticks` is set or the lookup failed
    because the moment precedes the last rate change of the reserve.
    """

    #: The moment we asked about
    timestamp: int

    #: Tick counter value, `None` if the reserve could not resolve it
    ticks: int | None

    @property
    def ok(self) -> bool:
        return self.ticks is not None

    def unwrap(self) -> int:
        """Get the tick value.

        :raise TimestampBeforeLastRateChange:
            If the lookup failed
        """
        if self.ticks is None:
            raise TimestampBeforeLastRateChange(self.timestamp)
        return self.ticks


@dataclass(slots=True, frozen=True)
class AccrualBreakdown:
    """All intermediate values of one accrual calculation.

    Useful for statements and reconciliation reports.
    """

    principal: int

    #: Ticks earned since the interest baseline, floored at zero
    delta_ticks: int

    #: Seconds since the deposit was created
    duration: int

    #: Interest before the fee
    gross_interest: int

    #: Fee expressed in ticks, after clamping to `delta_ticks`
    fee_ticks: int

    fee: int

    net_interest: int

    @property
    def total(self) -> int:
        """What a redemption pays out for this deposit."""
        return self.principal + self.net_interest


def calculate_breakdown(
    principal: int,
    delta_ticks: int,
    duration: int,
    fee_annual_ppm: int = FEE_ANNUAL_PPM,
) -> AccrualBreakdown:
    """Pure interest and fee arithmetic.

    :param principal:
        Raw deposit amount

    :param delta_ticks:
        Ticks earned since the interest baseline, negative values are treated as zero

    :param duration:
        Seconds since the deposit creation, the fee accrues over this

    :param fee_annual_ppm:
        Annual servicing fee
    """
    assert principal >= 0, f"Got principal {principal}"
    assert duration >= 0, f"Got duration {duration}"
    delta_ticks = max(0, delta_ticks)
    gross_interest = delta_ticks * principal // PPM // SECONDS_PER_YEAR
    feeable_ticks = duration * fee_annual_ppm
    fee_ticks = min(feeable_ticks, delta_ticks)
    fee = fee_ticks * principal // PPM // SECONDS_PER_YEAR
    net_interest = gross_interest - fee if gross_interest > fee else 0
    return AccrualBreakdown(
        principal=principal,
        delta_ticks=delta_ticks,
        duration=duration,
        gross_interest=gross_interest,
        fee_ticks=fee_ticks,
        fee=fee,
        net_interest=net_interest,
    )


def lookup_ticks(reserve: "eth_batch_savings.reserve.YieldReserve", timestamp: int) -> TickLookup:
    """Ask the reserve for the tick counter at a moment without raising."""
    try:
        ticks = reserve.tick_count_at(timestamp)
    except ReserveTickUnavailable as e:
        logger.debug("Reserve could not resolve ticks at %d: %s", timestamp, e)
        return TickLookup(timestamp=timestamp, ticks=None)
    return TickLookup(timestamp=timestamp, ticks=ticks)


def calculate_accrual(
    record: DepositRecord,
    evaluation_time: int,
    reserve: "eth_batch_savings.reserve.YieldReserve",
) -> AccrualBreakdown:
    """Resolve interest and fee of a live deposit at a moment.

    :raise TimestampBeforeLastRateChange:
        The reserve cannot tell the tick value at `evaluation_time`
    """
    assert isinstance(record, DepositRecord), f"Got {type(record)}"

    if evaluation_time < record.created_at:
        return calculate_breakdown(record.principal, 0, 0)

    current_ticks = lookup_ticks(reserve, evaluation_time).unwrap()
    return calculate_breakdown(
        record.principal,
        current_ticks - record.ticks_at_deposit,
        evaluation_time - record.created_at,
    )


def accrue(
    record: DepositRecord | None,
    evaluation_time: int,
    reserve: "eth_batch_savings.reserve.YieldReserve",
) -> tuple[int, int]:
    """Get principal and net interest of a deposit at a moment.

    :param record:
        Deposit, or `None` if absent

    :return:
        Tuple (principal, net interest). `(0, 0)` for absent deposits.

    :raise TimestampBeforeLastRateChange:
        The reserve cannot tell the tick value at `evaluation_time`
    """
    if record is None:
        return 0, 0
    breakdown = calculate_accrual(record, evaluation_time, reserve)
    return breakdown.principal, breakdown.net_interest
