"""Translational ephemerides of bodies.

An ephemeris gives the Cartesian state [x, y, z, vx, vy, vz] of a body with
respect to its ephemeris origin, as a function of time.
"""

from abc import ABC, abstractmethod

import numpy as np
from numpy.typing import NDArray
from scipy.interpolate import CubicSpline

from trajsim.timing import Epoch, TimeLike


class Ephemeris(ABC):
    """Cartesian state as a function of time."""

    def __init__(self, origin: str = "SSB") -> None:
        self.origin = origin

    @abstractmethod
    def cartesian_state(self, time: TimeLike) -> NDArray[np.float64]:
        """Six-element state at ``time``."""


class ConstantEphemeris(Ephemeris):
    """Body at rest at a fixed state."""

    def __init__(self, state: NDArray[np.float64] | None = None, origin: str = "SSB") -> None:
        super().__init__(origin)
        self._state = np.zeros(6) if state is None else np.asarray(state, dtype=np.float64)
        if self._state.shape != (6,):
            raise ValueError(f"Ephemeris state must have 6 elements, got {self._state.shape}")

    def cartesian_state(self, time: TimeLike) -> NDArray[np.float64]:
        return self._state.copy()


class TabulatedEphemeris(Ephemeris):
    """Cubic-spline interpolation of a state history.

    Epoch keys are converted to seconds since the first epoch before the
    spline is built.
    """

    def __init__(self, history: dict, origin: str = "SSB") -> None:
        super().__init__(origin)
        if len(history) < 2:
            raise ValueError("Tabulated ephemeris needs at least 2 epochs")
        times = sorted(history)
        self.reference_epoch = times[0]
        offsets = np.array([self._offset(t) for t in times])
        states = np.array([np.asarray(history[t], dtype=np.float64) for t in times])
        self._spline = CubicSpline(offsets, states, axis=0)
        self.start_time = times[0]
        self.end_time = times[-1]

    def _offset(self, time: TimeLike) -> float:
        if isinstance(time, Epoch):
            return time.seconds_since(self.reference_epoch)
        if isinstance(self.reference_epoch, Epoch):
            return Epoch.from_seconds(time).seconds_since(self.reference_epoch)
        return float(time) - float(self.reference_epoch)

    def cartesian_state(self, time: TimeLike) -> NDArray[np.float64]:
        return np.asarray(self._spline(self._offset(time)), dtype=np.float64)
