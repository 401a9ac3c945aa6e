"""Propagation termination conditions.

A condition is a predicate over (time, state) evaluated after every accepted
step. Conditions combine with ``&`` (stop when all hold) and ``|`` (stop
when any holds).

Example:
    >>> stop = TimeTermination(100.0) | DependentVariableTermination(
    ...     altitude("Vehicle", "Earth"), limit=0.0, use_as_lower_limit=True)
"""

from abc import ABC, abstractmethod
from typing import Callable

import numpy as np

from trajsim.timing import TimeLike


class TerminationCondition(ABC):
    """Predicate deciding whether propagation stops."""

    @abstractmethod
    def should_stop(self, time: TimeLike, state: np.ndarray) -> bool:
        """True if propagation must stop at (time, state)."""

    def fired_conditions(self, time: TimeLike, state: np.ndarray) -> list["TerminationCondition"]:
        """Leaf conditions that hold at (time, state)."""
        return [self] if self.should_stop(time, state) else []

    def bind(self, bodies) -> None:
        """Attach the body registry, for conditions on environment quantities."""

    def dependent_variables(self) -> list:
        """Dependent variables the condition evaluates."""
        return []

    def __and__(self, other: "TerminationCondition") -> "HybridTermination":
        return HybridTermination([self, other], fulfill_all=True)

    def __or__(self, other: "TerminationCondition") -> "HybridTermination":
        return HybridTermination([self, other], fulfill_all=False)


class TimeTermination(TerminationCondition):
    """Stop once the final time is reached (or passed, in propagation direction)."""

    def __init__(self, final_time: TimeLike, backward: bool = False) -> None:
        self.final_time = final_time
        self.backward = backward

    def should_stop(self, time: TimeLike, state: np.ndarray) -> bool:
        if self.backward:
            return time <= self.final_time
        return time >= self.final_time

    def __repr__(self) -> str:
        return f"TimeTermination({self.final_time!r})"


class CustomTermination(TerminationCondition):
    """Stop when ``function(time, state)`` is true."""

    def __init__(self, function: Callable[[TimeLike, np.ndarray], bool]) -> None:
        self.function = function

    def should_stop(self, time: TimeLike, state: np.ndarray) -> bool:
        return bool(self.function(time, state))


class DependentVariableTermination(TerminationCondition):
    """Stop when a scalar dependent variable crosses a limit.

    Args:
        variable: Scalar ``DependentVariable``
        limit: Threshold value
        use_as_lower_limit: Stop when the value drops below ``limit``
            (otherwise when it exceeds it)
    """

    def __init__(self, variable, limit: float, use_as_lower_limit: bool = False) -> None:
        if variable.size != 1:
            raise ValueError(f"Termination variable {variable.name} must be scalar, has size {variable.size}")
        self.variable = variable
        self.limit = limit
        self.use_as_lower_limit = use_as_lower_limit
        self.bodies = None

    def bind(self, bodies) -> None:
        self.bodies = bodies

    def dependent_variables(self) -> list:
        return [self.variable]

    def should_stop(self, time: TimeLike, state: np.ndarray) -> bool:
        value = float(self.variable.evaluate(self.bodies)[0])
        return value < self.limit if self.use_as_lower_limit else value > self.limit

    def __repr__(self) -> str:
        direction = "<" if self.use_as_lower_limit else ">"
        return f"DependentVariableTermination({self.variable.name} {direction} {self.limit})"


class HybridTermination(TerminationCondition):
    """Combination of conditions; all must hold (``fulfill_all``) or any."""

    def __init__(self, conditions: list[TerminationCondition], fulfill_all: bool = False) -> None:
        if not conditions:
            raise ValueError("Hybrid termination needs at least one condition")
        self.conditions = tuple(conditions)
        self.fulfill_all = fulfill_all

    def bind(self, bodies) -> None:
        for condition in self.conditions:
            condition.bind(bodies)

    def dependent_variables(self) -> list:
        return [v for condition in self.conditions for v in condition.dependent_variables()]

    def should_stop(self, time: TimeLike, state: np.ndarray) -> bool:
        results = [c.should_stop(time, state) for c in self.conditions]
        return all(results) if self.fulfill_all else any(results)

    def fired_conditions(self, time: TimeLike, state: np.ndarray) -> list[TerminationCondition]:
        if not self.should_stop(time, state):
            return []
        fired = []
        for condition in self.conditions:
            fired.extend(condition.fired_conditions(time, state))
        return fired
