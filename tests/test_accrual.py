"""Interest and servicing fee arithmetic."""

import pytest

from eth_batch_savings.accrual import (
    FEE_ANNUAL_PPM,
    PPM,
    SECONDS_PER_YEAR,
    accrue,
    calculate_accrual,
    calculate_breakdown,
    lookup_ticks,
)
from eth_batch_savings.errors import ReserveTickUnavailable, TimestampBeforeLastRateChange
from eth_batch_savings.ledger import DepositRecord
from eth_batch_savings.reserve import YieldReserve
from eth_batch_savings.testing import ACTIVATION_DELAY, DAY, ONE_ZCHF, SAVINGS_RATE_PPM, START_TIME


class LinearTickReserve(YieldReserve):
    """Tick counter growing at a fixed rate since `origin`, unresolvable before `anchor_time`."""

    address = "0x0000000000000000000000000000000000000001"

    def __init__(self, rate_ppm: int, origin: int, anchor_time: int = 0):
        self.rate_ppm = rate_ppm
        self.origin = origin
        self.anchor_time = anchor_time
        self.lookups = []

    def tick_count_at(self, timestamp: int) -> int:
        self.lookups.append(timestamp)
        if timestamp < self.anchor_time:
            raise ReserveTickUnavailable(f"Before {self.anchor_time}")
        return max(0, timestamp - self.origin) * self.rate_ppm

    def current_ticks(self) -> int:
        raise NotImplementedError()

    def current_rate_ppm(self) -> int:
        return self.rate_ppm

    def activation_delay(self) -> int:
        return ACTIVATION_DELAY

    def deposit(self, sender, amount):
        raise NotImplementedError()

    def withdraw(self, sender, target, amount) -> int:
        raise NotImplementedError()

    def get_balance(self, owner) -> int:
        raise NotImplementedError()


@pytest.fixture()
def linear_reserve() -> LinearTickReserve:
    return LinearTickReserve(SAVINGS_RATE_PPM, origin=START_TIME)


@pytest.fixture()
def record() -> DepositRecord:
    """1000 ZCHF deposited at the start, earning after the activation delay."""
    return DepositRecord(
        principal=1000 * ONE_ZCHF,
        created_at=START_TIME,
        ticks_at_deposit=SAVINGS_RATE_PPM * ACTIVATION_DELAY,
    )


def test_thirty_day_example():
    """Fee ticks exceed earned ticks, so the fee eats all interest."""
    principal = 10**20
    delta_ticks = 10_000_000_000
    duration = 30 * DAY

    breakdown = calculate_breakdown(principal, delta_ticks, duration)

    gross = delta_ticks * principal // 1_000_000 // 31_536_000
    feeable_ticks = 30 * 86400 * 12500
    fee_ticks = min(feeable_ticks, delta_ticks)
    fee = fee_ticks * principal // 1_000_000 // 31_536_000

    assert breakdown.gross_interest == gross
    assert breakdown.fee_ticks == fee_ticks == delta_ticks
    assert breakdown.fee == fee
    assert breakdown.net_interest == 0
    assert breakdown.total == principal


def test_fee_below_interest():
    """A full year at 5% leaves interest after the 1.25% fee."""
    principal = 1000 * ONE_ZCHF
    duration = SECONDS_PER_YEAR + ACTIVATION_DELAY
    delta_ticks = SECONDS_PER_YEAR * SAVINGS_RATE_PPM

    breakdown = calculate_breakdown(principal, delta_ticks, duration)

    assert breakdown.gross_interest == 50 * ONE_ZCHF
    assert breakdown.fee_ticks == duration * FEE_ANNUAL_PPM
    assert breakdown.fee == duration * FEE_ANNUAL_PPM * principal // PPM // SECONDS_PER_YEAR
    assert breakdown.net_interest == breakdown.gross_interest - breakdown.fee
    assert 0 < breakdown.net_interest < breakdown.gross_interest


def test_negative_delta_ticks_clamped():
    breakdown = calculate_breakdown(ONE_ZCHF, -1_000, 10 * DAY)
    assert breakdown.delta_ticks == 0
    assert breakdown.gross_interest == 0
    assert breakdown.fee_ticks == 0
    assert breakdown.net_interest == 0


def test_rounding_floors():
    """One raw unit of principal never earns a fraction."""
    breakdown = calculate_breakdown(1, SAVINGS_RATE_PPM * SECONDS_PER_YEAR, SECONDS_PER_YEAR)
    assert breakdown.gross_interest == 0
    assert breakdown.net_interest == 0


def test_net_interest_within_bounds():
    """Net interest is never negative and never above gross interest."""
    for principal in (1, 999, ONE_ZCHF, 10**24, 2**192 - 1):
        for delta_ticks in (0, 1, 12_500, 10**9, SAVINGS_RATE_PPM * SECONDS_PER_YEAR, 10**15):
            for duration in (0, 1, DAY, 30 * DAY, SECONDS_PER_YEAR, 10 * SECONDS_PER_YEAR):
                b = calculate_breakdown(principal, delta_ticks, duration)
                assert 0 <= b.net_interest <= b.gross_interest
                assert b.fee_ticks <= b.delta_ticks


def test_accrue_absent_record(linear_reserve):
    assert accrue(None, START_TIME, linear_reserve) == (0, 0)
    assert linear_reserve.lookups == []


def test_accrue_before_creation(record, linear_reserve):
    """Negative durations do not accrue and do not ask the reserve."""
    assert accrue(record, START_TIME - 1, linear_reserve) == (record.principal, 0)
    assert linear_reserve.lookups == []


def test_accrue_at_creation(record, linear_reserve):
    assert accrue(record, START_TIME, linear_reserve) == (record.principal, 0)


def test_accrue_during_activation_delay(record, linear_reserve):
    """Nothing is earned before the activation delay has passed."""
    assert accrue(record, START_TIME + ACTIVATION_DELAY, linear_reserve) == (record.principal, 0)


def test_accrue_after_one_year(record, linear_reserve):
    evaluation_time = START_TIME + ACTIVATION_DELAY + SECONDS_PER_YEAR
    principal, net_interest = accrue(record, evaluation_time, linear_reserve)
    expected = calculate_breakdown(record.principal, SAVINGS_RATE_PPM * SECONDS_PER_YEAR, ACTIVATION_DELAY + SECONDS_PER_YEAR)
    assert principal == record.principal
    assert net_interest == expected.net_interest
    assert linear_reserve.lookups == [evaluation_time]


def test_net_interest_monotonic(record, linear_reserve):
    previous = 0
    for days in range(0, 800, 7):
        _, net_interest = accrue(record, START_TIME + days * DAY, linear_reserve)
        assert net_interest >= previous
        previous = net_interest
    assert previous > 0


def test_timestamp_before_last_rate_change(record):
    reserve = LinearTickReserve(SAVINGS_RATE_PPM, origin=START_TIME, anchor_time=START_TIME + 10 * DAY)

    lookup = lookup_ticks(reserve, START_TIME + 5 * DAY)
    assert not lookup.ok
    assert lookup.ticks is None

    with pytest.raises(TimestampBeforeLastRateChange) as exc_info:
        calculate_accrual(record, START_TIME + 5 * DAY, reserve)
    assert exc_info.value.timestamp == START_TIME + 5 * DAY

    # After the anchor everything resolves again
    lookup = lookup_ticks(reserve, START_TIME + 11 * DAY)
    assert lookup.ok
    assert lookup.unwrap() == 11 * DAY * SAVINGS_RATE_PPM
