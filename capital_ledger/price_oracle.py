"""
price_oracle.py - Exchange-rate sources for commitment validation

The ledger consults an oracle for exactly one thing: the native-asset to USD
rate used to check that a new commitment reaches the USD minimum.

Classes:
- PriceOracle: Protocol defining the rate interface
- StaticPriceOracle: Fixed rate
- TimeSeriesPriceOracle: Time-varying rates, latest observation at or before now

Functions:
- to_wad: Rescale a raw oracle rate to the ledger's 18-decimal unit
- read_rate: Query an oracle and validate the answer
- usd_value: Value a native amount at a WAD rate

Rates are integers with ORACLE_DECIMALS (8) implied decimal places, the way
on-chain price feeds report them.
"""

from bisect import bisect_right
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional, Protocol, Tuple, runtime_checkable

from .core import (
    ORACLE_DECIMALS, INTERNAL_DECIMALS, WAD,
    InvalidPriceData,
)


@runtime_checkable
class PriceOracle(Protocol):
    """
    Protocol for rate sources.

    latest_rate() returns (rate, as_of), where rate is an integer with
    `decimals` implied decimal places. Implementations may return None
    when they have no data.
    """
    decimals: int

    def latest_rate(self) -> Optional[Tuple[int, datetime]]:
        ...


def to_wad(rate: int, decimals: int = ORACLE_DECIMALS) -> int:
    """
    Rescale a fixed-point rate to 18 decimal places.

    Example:
        to_wad(2000_00000000) == 2000 * 10**18
    """
    if decimals <= INTERNAL_DECIMALS:
        return rate * 10 ** (INTERNAL_DECIMALS - decimals)
    return rate // 10 ** (decimals - INTERNAL_DECIMALS)


def read_rate(oracle: PriceOracle) -> int:
    """
    Return the oracle's latest rate as a WAD integer.

    Raises:
        InvalidPriceData: If the oracle has no rate or the rate is not positive.
    """
    answer = oracle.latest_rate()
    if answer is None:
        raise InvalidPriceData("oracle returned no rate")
    rate, _as_of = answer
    if isinstance(rate, bool) or not isinstance(rate, int) or rate <= 0:
        raise InvalidPriceData(f"oracle rate must be a positive integer, got {rate!r}")
    return to_wad(rate, getattr(oracle, "decimals", ORACLE_DECIMALS))


def usd_value(amount: Decimal, rate_wad: int) -> Decimal:
    """USD value of a native amount at a WAD-scaled rate."""
    return amount * Decimal(rate_wad) / Decimal(WAD)


class StaticPriceOracle:
    """
    Oracle with a fixed rate.

    The as_of timestamp is the time the rate was last set.
    """

    def __init__(self, rate: int, as_of: Optional[datetime] = None, decimals: int = ORACLE_DECIMALS):
        """
        Args:
            rate: Raw rate with `decimals` implied places (2000e8 = $2000)
            as_of: Observation time (default: 1970-01-01)
            decimals: Implied decimal places of `rate`
        """
        self.decimals = decimals
        self.rate = rate
        self.as_of = as_of or datetime(1970, 1, 1)

    def latest_rate(self) -> Optional[Tuple[int, datetime]]:
        return self.rate, self.as_of

    def update_rate(self, rate: int, as_of: Optional[datetime] = None):
        """Replace the rate."""
        self.rate = rate
        if as_of is not None:
            self.as_of = as_of

    def __repr__(self):
        return f"StaticPriceOracle({self.rate}e-{self.decimals})"


class TimeSeriesPriceOracle:
    """
    Oracle backed by a rate history.

    Returns the most recent observation at or before the time reported by
    `time_source`, so a simulation can replay a price path against a
    logical clock.
    """

    def __init__(
        self,
        time_source: Callable[[], datetime],
        history: Optional[List[Tuple[datetime, int]]] = None,
        decimals: int = ORACLE_DECIMALS,
    ):
        """
        Args:
            time_source: Callable returning the current time (e.g. clock.now)
            history: Optional list of (timestamp, raw_rate) observations
            decimals: Implied decimal places of the rates

        Example:
            clock = LogicalClock(t0)
            oracle = TimeSeriesPriceOracle(clock.now, [(t0, 2000_00000000)])
        """
        self.decimals = decimals
        self._time_source = time_source
        self.history: List[Tuple[datetime, int]] = sorted(history or [], key=lambda x: x[0])

    def add_rate(self, timestamp: datetime, rate: int):
        """Record an observation, keeping history sorted by time."""
        self.history.append((timestamp, rate))
        self.history.sort(key=lambda x: x[0])

    def latest_rate(self) -> Optional[Tuple[int, datetime]]:
        if not self.history:
            return None
        timestamps = [ts for ts, _ in self.history]
        idx = bisect_right(timestamps, self._time_source())
        if idx == 0:
            return None
        as_of, rate = self.history[idx - 1]
        return rate, as_of

    def __repr__(self):
        return f"TimeSeriesPriceOracle({len(self.history)} observations)"
