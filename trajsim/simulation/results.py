"""Propagation results."""

import numpy as np
from numpy.typing import NDArray

from trajsim.timing import TimeLike


class SolutionHistory:
    """Insertion-ordered history of accepted steps.

    Per entry: time, global state, dependent variables, cumulative
    computation time [s] and cumulative derivative evaluations.
    """

    def __init__(self, dependent_variable_names: list[str] | None = None) -> None:
        self.dependent_variable_names = list(dependent_variable_names or [])
        self.clear()

    def clear(self) -> None:
        self._times: list[TimeLike] = []
        self._states: list[np.ndarray] = []
        self._dependent: list[NDArray[np.float64]] = []
        self._computation_times: list[float] = []
        self._function_evaluations: list[int] = []

    def append(
        self,
        time: TimeLike,
        state: np.ndarray,
        dependent_variables: NDArray[np.float64] | None = None,
        computation_time: float = 0.0,
        function_evaluations: int = 0,
    ) -> None:
        self._times.append(time)
        self._states.append(np.array(state, copy=True))
        self._dependent.append(np.zeros(0) if dependent_variables is None else dependent_variables)
        self._computation_times.append(computation_time)
        self._function_evaluations.append(function_evaluations)

    def __len__(self) -> int:
        return len(self._times)

    def __bool__(self) -> bool:
        return bool(self._times)

    def items(self):
        return zip(self._times, self._states)

    @property
    def times(self) -> list[TimeLike]:
        return list(self._times)

    @property
    def time_array(self) -> NDArray[np.float64]:
        """Times as float seconds [s]."""
        return np.array([float(t) for t in self._times])

    @property
    def states(self) -> np.ndarray:
        """States, shape (N, n)."""
        return np.array(self._states)

    @property
    def dependent_variables(self) -> NDArray[np.float64]:
        return np.array(self._dependent)

    @property
    def computation_times(self) -> NDArray[np.float64]:
        return np.array(self._computation_times)

    @property
    def function_evaluations(self) -> NDArray[np.int64]:
        return np.array(self._function_evaluations, dtype=np.int64)

    @property
    def final_time(self) -> TimeLike:
        return self._times[-1]

    @property
    def final_state(self) -> np.ndarray:
        return self._states[-1]

    def as_dict(self) -> dict:
        """time -> state mapping."""
        return dict(zip(self._times, self._states))

    def to_dataframe(self, state_names: list[str] | None = None):
        """Convert to Polars DataFrame."""
        import polars as pl

        states = self.states.astype(np.float64) if self._states else np.zeros((0, 0))
        n = states.shape[1] if states.ndim == 2 else 0
        names = state_names or [f"x{i}" for i in range(n)]
        data = {"time": self.time_array}
        data.update({name: states[:, i] for i, name in enumerate(names)})
        dependent = self.dependent_variables
        for i in range(dependent.shape[1] if dependent.ndim == 2 else 0):
            data[f"dependent_{i}"] = dependent[:, i]
        data["computation_time"] = self.computation_times
        data["function_evaluations"] = self.function_evaluations
        return pl.DataFrame(data)
