"""Numerical integrators.

An integrator advances (time, state) by one step of a derivative function
``f(time, state) -> state_dot``. Time may be a float or an ``Epoch``; the
state may be float64 or longdouble, and the dtype is preserved.

Integrators available:
- EulerIntegrator: explicit Euler, fixed step
- RK4Integrator: classical Runge-Kutta, fixed step
- RKF45Integrator: Runge-Kutta-Fehlberg 4(5), variable step

Example:
    >>> rk4 = RK4Integrator(step_size=0.5)
    >>> result = rk4.step(lambda t, y: -y, 0.0, np.array([1.0]))
    >>> result.time, result.state
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

import numpy as np

from trajsim.timing import TimeLike

logger = logging.getLogger(__name__)

DerivativeFunction = Callable[[TimeLike, np.ndarray], np.ndarray]


@dataclass(frozen=True)
class StepResult:
    """Outcome of one integration step.

    Attributes:
        time: Time after the step (unchanged when the step failed)
        state: State after the step (unchanged when the step failed)
        succeeded: False if no acceptable step could be taken
        message: Reason for a failure
    """
    time: TimeLike
    state: np.ndarray
    succeeded: bool = True
    message: str = ""


class Integrator(ABC):
    """Single-step integration strategy."""

    step_size: float

    @abstractmethod
    def step(self, derivative: DerivativeFunction, time: TimeLike, state: np.ndarray) -> StepResult:
        """Advance one step from (time, state)."""


class EulerIntegrator(Integrator):
    def __init__(self, step_size: float) -> None:
        self.step_size = step_size

    def step(self, derivative: DerivativeFunction, time: TimeLike, state: np.ndarray) -> StepResult:
        dt = self.step_size
        return StepResult(time + dt, state + dt * derivative(time, state))


class RK4Integrator(Integrator):
    def __init__(self, step_size: float) -> None:
        self.step_size = step_size

    def step(self, derivative: DerivativeFunction, time: TimeLike, state: np.ndarray) -> StepResult:
        dt = self.step_size
        h = dt / 2

        k1 = derivative(time, state)
        k2 = derivative(time + h, state + h * k1)
        k3 = derivative(time + h, state + h * k2)
        k4 = derivative(time + dt, state + dt * k3)

        new_state = state + (dt / 6) * (k1 + 2*k2 + 2*k3 + k4)
        return StepResult(time + dt, new_state)


# Fehlberg coefficients
_C = (0.0, 1/4, 3/8, 12/13, 1.0, 1/2)
_A = (
    (),
    (1/4,),
    (3/32, 9/32),
    (1932/2197, -7200/2197, 7296/2197),
    (439/216, -8.0, 3680/513, -845/4104),
    (-8/27, 2.0, -3544/2565, 1859/4104, -11/40),
)
_B4 = (25/216, 0.0, 1408/2565, 2197/4104, -1/5, 0.0)
_B5 = (16/135, 0.0, 6656/12825, 28561/56430, -9/50, 2/55)


class RKF45Integrator(Integrator):
    """Runge-Kutta-Fehlberg 4(5) with local error control.

    The fourth-order solution is propagated. A step fails (``succeeded``
    False) when the error cannot be met with a step of at least
    ``minimum_step_size``.

    Args:
        initial_step_size: First trial step [s]; its sign sets the direction
        minimum_step_size: Smallest allowed step magnitude [s]
        maximum_step_size: Largest allowed step magnitude [s]
        relative_tolerance: Relative error tolerance per step
        absolute_tolerance: Absolute error tolerance per step
    """

    def __init__(
        self,
        initial_step_size: float,
        minimum_step_size: float = 1e-6,
        maximum_step_size: float = np.inf,
        relative_tolerance: float = 1e-10,
        absolute_tolerance: float = 1e-10,
        safety_factor: float = 0.8,
    ) -> None:
        if initial_step_size == 0.0:
            raise ValueError("Initial step size must be non-zero")
        self.step_size = initial_step_size
        self.minimum_step_size = minimum_step_size
        self.maximum_step_size = maximum_step_size
        self.relative_tolerance = relative_tolerance
        self.absolute_tolerance = absolute_tolerance
        self.safety_factor = safety_factor

    def _trial(
        self, derivative: DerivativeFunction, time: TimeLike, state: np.ndarray, dt: float
    ) -> tuple[np.ndarray, float]:
        stages = []
        for c, a in zip(_C, _A):
            increment = sum((a_j * k for a_j, k in zip(a, stages)), np.zeros_like(state))
            stages.append(derivative(time + c * dt, state + dt * increment))
        fourth = state + dt * sum(b * k for b, k in zip(_B4, stages))
        fifth = state + dt * sum(b * k for b, k in zip(_B5, stages))
        scale = self.absolute_tolerance + self.relative_tolerance * np.maximum(np.abs(state), np.abs(fourth))
        error = float(np.max(np.abs(fifth - fourth) / scale)) if state.size else 0.0
        return fourth, error

    def step(self, derivative: DerivativeFunction, time: TimeLike, state: np.ndarray) -> StepResult:
        direction = 1.0 if self.step_size > 0 else -1.0
        dt = self.step_size
        while True:
            new_state, error = self._trial(derivative, time, state, dt)
            if np.isfinite(error) and error <= 1.0:
                factor = 5.0 if error == 0.0 else min(5.0, self.safety_factor * error ** -0.2)
                self.step_size = direction * min(abs(dt) * factor, self.maximum_step_size)
                return StepResult(time + dt, new_state)

            factor = 0.1 if not np.isfinite(error) else max(0.1, self.safety_factor * error ** -0.25)
            dt = dt * factor
            if abs(dt) < self.minimum_step_size:
                message = f"Step size {abs(dt):.3e} below minimum {self.minimum_step_size:.3e} at t={float(time)}"
                logger.warning(message)
                return StepResult(time, state, succeeded=False, message=message)
