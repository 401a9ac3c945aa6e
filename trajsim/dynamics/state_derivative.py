"""Global state layout and the state derivative model.

The global state is one flat vector made of blocks:

- translational (6 per body): position, velocity relative to the central body
- rotational (7 per body): body-to-global quaternion, body-frame angular velocity
- mass (1 per body)

The equations use:
- Newton's second law: d(v)/dt = sum of accelerations
- Euler's equations: I * omega_dot = M - omega x (I * omega)
- Quaternion kinematics: q_dot = 0.5 * q * (0, omega)
"""

import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np
from beartype import beartype
from numpy.typing import NDArray

from trajsim.dynamics.attitude import quaternion_derivative
from trajsim.dynamics.models import DerivativeModel
from trajsim.exceptions import DimensionMismatch, NumericalPropagationError
from trajsim.timing import TimeLike

logger = logging.getLogger(__name__)


class PropagatorType(Enum):
    """Kinds of state blocks; the value is the block size per body."""

    TRANSLATIONAL = 6
    ROTATIONAL = 7
    MASS = 1


# =============================================================================
# Layout
# =============================================================================


@dataclass(frozen=True)
class StateBlock:
    kind: PropagatorType
    body_name: str
    start: int

    @property
    def size(self) -> int:
        return self.kind.value

    @property
    def slice(self) -> slice:
        return slice(self.start, self.start + self.size)


class StateLayout:
    """Position of each (kind, body) block in the global state vector.

    Blocks are ordered translational, rotational, mass; bodies keep the
    order in which they were given.
    """

    def __init__(
        self,
        translational: list[str] | None = None,
        rotational: list[str] | None = None,
        mass: list[str] | None = None,
    ) -> None:
        self.blocks: list[StateBlock] = []
        start = 0
        for kind, names in (
            (PropagatorType.TRANSLATIONAL, translational or []),
            (PropagatorType.ROTATIONAL, rotational or []),
            (PropagatorType.MASS, mass or []),
        ):
            if len(set(names)) != len(names):
                raise DimensionMismatch(f"Duplicate body in {kind.name.lower()} block: {names}")
            for name in names:
                self.blocks.append(StateBlock(kind, name, start))
                start += kind.value
        self.size = start
        self._index = {(b.kind, b.body_name): b for b in self.blocks}

    def __iter__(self):
        return iter(self.blocks)

    def __contains__(self, key: tuple[PropagatorType, str]) -> bool:
        return key in self._index

    def block(self, kind: PropagatorType, body_name: str) -> StateBlock:
        return self._index[(kind, body_name)]

    def bodies(self, kind: PropagatorType) -> list[str]:
        return [b.body_name for b in self.blocks if b.kind is kind]

    def validate(self, state: np.ndarray) -> None:
        if state.ndim != 1 or state.shape[0] != self.size:
            raise DimensionMismatch(
                f"State has shape {state.shape}, but the propagated blocks need {self.size} entries"
            )

    def split(self, state: np.ndarray) -> dict[tuple[PropagatorType, str], np.ndarray]:
        return {(b.kind, b.body_name): state[b.slice] for b in self.blocks}

    def normalize_quaternions(self, state: np.ndarray) -> np.ndarray:
        """Copy of ``state`` with every attitude quaternion at unit norm."""
        state = state.copy()
        for block in self.blocks:
            if block.kind is PropagatorType.ROTATIONAL:
                q = state[block.start:block.start + 4]
                norm = np.sqrt(np.sum(q * q))
                if norm > 1e-10:
                    state[block.start:block.start + 4] = q / norm
        return state


# =============================================================================
# Euler's Equations
# =============================================================================


@beartype
def euler_rotational_dynamics(
    omega: NDArray[np.float64],
    moment: NDArray[np.float64],
    inertia: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Angular acceleration from Euler's equations.

    Args:
        omega: Angular velocity in body frame [p, q, r] [rad/s]
        moment: Applied moment in body frame [N*m]
        inertia: 3x3 inertia tensor [kg*m^2]

    Returns:
        Angular acceleration [rad/s^2]
    """
    gyroscopic = np.cross(omega, inertia @ omega)
    return np.linalg.solve(inertia, moment - gyroscopic)


# =============================================================================
# State Derivative Model
# =============================================================================


class StateDerivativeModel:
    """Maps (time, global state) to the time derivative of the global state.

    Args:
        bodies: Body registry
        layout: Global state layout
        accelerations, torques, mass_rates: Models per propagated body
        environment_updater: Brings the environment to (time, state) first
    """

    def __init__(
        self,
        bodies,
        layout: StateLayout,
        accelerations: dict[str, list[DerivativeModel]],
        torques: dict[str, list[DerivativeModel]],
        mass_rates: dict[str, list[DerivativeModel]],
        environment_updater,
    ) -> None:
        self.bodies = bodies
        self.layout = layout
        self.accelerations = accelerations
        self.torques = torques
        self.mass_rates = mass_rates
        self.environment_updater = environment_updater
        self.function_evaluations = 0

    def all_models(self) -> list[DerivativeModel]:
        """Accelerations, then torques, then mass rates."""
        models = []
        for group in (self.accelerations, self.torques, self.mass_rates):
            for body_models in group.values():
                models.extend(body_models)
        return models

    def evaluate(self, time: TimeLike, state: np.ndarray) -> np.ndarray:
        """Derivative of ``state`` at ``time``, with the same dtype as ``state``.

        Raises:
            IncompleteForceModel: If a model prerequisite is missing
            NumericalPropagationError: If the derivative is not finite
        """
        self.function_evaluations += 1
        models = self.all_models()
        for model in models:
            model.check_capabilities()

        self.environment_updater.update(time, state)
        for model in models:
            model.update_members(time)

        derivative = np.zeros(self.layout.size, dtype=state.dtype)
        for block in self.layout:
            values = state[block.slice]
            if block.kind is PropagatorType.TRANSLATIONAL:
                acceleration = np.zeros(3)
                for model in self.accelerations.get(block.body_name, []):
                    acceleration = acceleration + model.get_derivative_contribution()
                derivative[block.start:block.start + 3] = values[3:6]
                derivative[block.start + 3:block.start + 6] = acceleration
            elif block.kind is PropagatorType.ROTATIONAL:
                derivative[block.slice] = self._rotational_derivative(block.body_name, values)
            else:
                derivative[block.start] = sum(
                    (m.get_derivative_contribution() for m in self.mass_rates.get(block.body_name, [])),
                    0.0,
                )

        if not np.all(np.isfinite(derivative)):
            bad = [f"{b.kind.name.lower()}:{b.body_name}" for b in self.layout
                   if not np.all(np.isfinite(derivative[b.slice]))]
            raise NumericalPropagationError(f"Non-finite state derivative at t={float(time)} in {', '.join(bad)}")
        return derivative

    def _rotational_derivative(self, body_name: str, values: np.ndarray) -> np.ndarray:
        quaternion = np.asarray(values[:4], dtype=np.float64)
        omega = np.asarray(values[4:7], dtype=np.float64)
        torque = np.zeros(3)
        for model in self.torques.get(body_name, []):
            torque = torque + model.get_derivative_contribution()
        inertia = np.asarray(self.bodies.get_body(body_name).inertia_tensor, dtype=np.float64)
        return np.concatenate([
            quaternion_derivative(quaternion, omega),
            euler_rotational_dynamics(omega, torque, inertia),
        ])
