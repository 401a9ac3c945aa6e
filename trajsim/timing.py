"""Time representations used throughout the propagation engine.

Two time types are supported:
- ``float``: seconds since the reference epoch
- ``Epoch``: compensated representation, an integer number of full periods
  (hours) plus a float number of seconds into the current period

The compensated form keeps sub-microsecond resolution over decades of
simulated time, where a single float degrades to ~1e-7 s. Every
time-dependent interface accepts either form; ``Epoch`` arithmetic with plain
float seconds is supported so integrators can be written once for both.

Example:
    >>> from trajsim.timing import Epoch
    >>> t = Epoch.from_seconds(3.0e9)
    >>> t2 = t + 1.0e-6
    >>> float(t2 - t)
    1e-06
"""

import math
from functools import total_ordering
from numbers import Real

SECONDS_PER_PERIOD = 3600.0


@total_ordering
class Epoch:
    """Compensated (high-precision) time value.

    Attributes:
        full_periods: Integer number of whole periods (hours)
        seconds_into_period: Seconds into the current period, in [0, 3600)
    """

    __slots__ = ("full_periods", "seconds_into_period")

    def __init__(self, full_periods: int = 0, seconds_into_period: float = 0.0) -> None:
        if not math.isfinite(seconds_into_period):
            self.full_periods = int(full_periods)
            self.seconds_into_period = float(seconds_into_period)
            return
        extra, seconds = divmod(float(seconds_into_period), SECONDS_PER_PERIOD)
        periods = int(full_periods) + int(extra)
        # divmod can round a tiny negative remainder up to the full period
        if seconds >= SECONDS_PER_PERIOD:
            seconds -= SECONDS_PER_PERIOD
            periods += 1
        self.full_periods = periods
        self.seconds_into_period = seconds

    @classmethod
    def from_seconds(cls, seconds: float) -> "Epoch":
        """Create an epoch from float seconds since the reference epoch."""
        return cls(0, seconds)

    def to_seconds(self) -> float:
        """Convert to float seconds (loses precision for large epochs)."""
        return self.full_periods * SECONDS_PER_PERIOD + self.seconds_into_period

    def seconds_since(self, reference: "Epoch | float") -> float:
        """Float seconds elapsed since ``reference``, computed without cancellation."""
        return (self - reference).to_seconds()

    def __float__(self) -> float:
        return self.to_seconds()

    def __add__(self, other: "Epoch | float") -> "Epoch":
        if isinstance(other, Epoch):
            return Epoch(
                self.full_periods + other.full_periods,
                self.seconds_into_period + other.seconds_into_period,
            )
        if isinstance(other, Real):
            return Epoch(self.full_periods, self.seconds_into_period + float(other))
        return NotImplemented

    __radd__ = __add__

    def __sub__(self, other: "Epoch | float") -> "Epoch":
        if isinstance(other, Epoch):
            return Epoch(
                self.full_periods - other.full_periods,
                self.seconds_into_period - other.seconds_into_period,
            )
        if isinstance(other, Real):
            return Epoch(self.full_periods, self.seconds_into_period - float(other))
        return NotImplemented

    def __rsub__(self, other: float) -> "Epoch":
        if isinstance(other, Real):
            return Epoch(-self.full_periods, float(other) - self.seconds_into_period)
        return NotImplemented

    def __neg__(self) -> "Epoch":
        return Epoch(-self.full_periods, -self.seconds_into_period)

    def _difference(self, other: object) -> "Epoch | None":
        if isinstance(other, (Epoch, Real)):
            return self - other
        return None

    def __eq__(self, other: object) -> bool:
        diff = self._difference(other)
        if diff is None:
            return NotImplemented
        return diff.full_periods == 0 and diff.seconds_into_period == 0.0

    def __lt__(self, other: object) -> bool:
        diff = self._difference(other)
        if diff is None:
            return NotImplemented
        return diff.full_periods < 0

    def __hash__(self) -> int:
        return hash(self.to_seconds())

    def __repr__(self) -> str:
        return f"Epoch(full_periods={self.full_periods}, seconds_into_period={self.seconds_into_period!r})"


TimeLike = float | Epoch


def convert_time(time: TimeLike, time_type: type) -> TimeLike:
    """Convert a time value to ``time_type`` (``float`` or ``Epoch``)."""
    if time_type is Epoch:
        return time if isinstance(time, Epoch) else Epoch.from_seconds(float(time))
    if time_type is float:
        return float(time)
    raise TypeError(f"Unsupported time type: {time_type!r}")


def is_finite_time(time: TimeLike) -> bool:
    """Check that a time value holds no NaN or infinite component."""
    if isinstance(time, Epoch):
        return math.isfinite(time.seconds_into_period)
    return math.isfinite(time)
