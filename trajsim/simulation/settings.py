"""Integrator and propagator settings.

Example:
    >>> integrator_settings = IntegratorSettings(IntegratorType.RK4, step_size=0.5)
    >>> propagator_settings = PropagatorSettings(
    ...     bodies_to_propagate=["Vehicle"],
    ...     central_bodies=["Earth"],
    ...     termination=TimeTermination(10.0),
    ...     accelerations={"Vehicle": [PointMassGravity("Vehicle", "Earth")]},
    ... )
"""

from dataclasses import dataclass, field
from enum import Enum, auto

import numpy as np
from beartype import beartype

from trajsim.dynamics.models import DerivativeModel
from trajsim.dynamics.state_derivative import StateLayout
from trajsim.exceptions import ConfigurationError, DimensionMismatch
from trajsim.simulation.dependent_variables import DependentVariable
from trajsim.simulation.environment_updater import ClosureBinding, EnvironmentNode
from trajsim.simulation.integrators import EulerIntegrator, Integrator, RK4Integrator, RKF45Integrator
from trajsim.simulation.termination import TerminationCondition
from trajsim.timing import Epoch

SUPPORTED_SCALAR_TYPES = (np.float64, np.longdouble)


# =============================================================================
# Integrator Settings
# =============================================================================


class IntegratorType(Enum):
    EULER = auto()
    RK4 = auto()
    RKF45 = auto()


@beartype
@dataclass
class IntegratorSettings:
    """Integrator selection and step control.

    Attributes:
        integrator_type: Integration scheme
        step_size: Fixed step, or initial step of a variable-step scheme [s]
        minimum_step_size: Smallest allowed variable step [s]
        maximum_step_size: Largest allowed variable step [s]
        relative_tolerance: Variable-step relative error tolerance
        absolute_tolerance: Variable-step absolute error tolerance
    """
    integrator_type: IntegratorType = IntegratorType.RK4
    step_size: float = 1.0
    minimum_step_size: float = 1e-6
    maximum_step_size: float = float("inf")
    relative_tolerance: float = 1e-10
    absolute_tolerance: float = 1e-10

    def __post_init__(self) -> None:
        if self.step_size == 0.0 or not np.isfinite(self.step_size):
            raise ConfigurationError(f"Step size must be finite and non-zero, got {self.step_size}")
        if self.minimum_step_size <= 0.0 or self.minimum_step_size > self.maximum_step_size:
            raise ConfigurationError("Step size bounds must satisfy 0 < minimum <= maximum")


@beartype
def create_integrator(settings: IntegratorSettings) -> Integrator:
    """Instantiate the integrator described by ``settings``."""
    if settings.integrator_type == IntegratorType.EULER:
        return EulerIntegrator(settings.step_size)
    if settings.integrator_type == IntegratorType.RK4:
        return RK4Integrator(settings.step_size)
    if settings.integrator_type == IntegratorType.RKF45:
        return RKF45Integrator(
            settings.step_size,
            minimum_step_size=settings.minimum_step_size,
            maximum_step_size=settings.maximum_step_size,
            relative_tolerance=settings.relative_tolerance,
            absolute_tolerance=settings.absolute_tolerance,
        )
    raise ValueError(f"Unknown integrator type: {settings.integrator_type}")


# =============================================================================
# Propagator Settings
# =============================================================================


@beartype
@dataclass
class PropagatorSettings:
    """What to propagate, under which models, until when.

    Attributes:
        bodies_to_propagate: Translationally propagated bodies
        central_bodies: Central body of each propagated body (same order)
        termination: Stop condition, checked after every step
        accelerations: Acceleration models per body
        rotational_bodies: Bodies whose attitude is propagated
        torques: Torque models per body
        mass_bodies: Bodies whose mass is propagated
        mass_rates: Mass rate models per body
        dependent_variables: Quantities recorded with each step
        max_steps: Step limit; the run ends as exhausted when reached
        state_scalar_type: ``np.float64`` or ``np.longdouble``
        time_type: ``float`` or ``Epoch``
        bindings: Additional environment dependency edges
        custom_nodes: User-defined environment nodes
    """
    bodies_to_propagate: list[str]
    central_bodies: list[str]
    termination: TerminationCondition
    accelerations: dict[str, list[DerivativeModel]] = field(default_factory=dict)
    rotational_bodies: list[str] = field(default_factory=list)
    torques: dict[str, list[DerivativeModel]] = field(default_factory=dict)
    mass_bodies: list[str] = field(default_factory=list)
    mass_rates: dict[str, list[DerivativeModel]] = field(default_factory=dict)
    dependent_variables: list[DependentVariable] = field(default_factory=list)
    max_steps: int = 100000
    state_scalar_type: type = np.float64
    time_type: type = float
    bindings: list[ClosureBinding] = field(default_factory=list)
    custom_nodes: list[EnvironmentNode] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.central_bodies) != len(self.bodies_to_propagate):
            raise DimensionMismatch(
                f"{len(self.bodies_to_propagate)} propagated bodies but {len(self.central_bodies)} central bodies"
            )
        if self.max_steps <= 0:
            raise ConfigurationError(f"max_steps must be positive, got {self.max_steps}")

    def layout(self) -> StateLayout:
        return StateLayout(self.bodies_to_propagate, self.rotational_bodies, self.mass_bodies)

    @property
    def central_body_map(self) -> dict[str, str]:
        return dict(zip(self.bodies_to_propagate, self.central_bodies))

    def models_by_body(self) -> list[tuple[str, DerivativeModel]]:
        return [
            (body, model)
            for group in (self.accelerations, self.torques, self.mass_rates)
            for body, models in group.items()
            for model in models
        ]


def validate_time_and_scalar_types(time_type: type, scalar_type: type) -> None:
    """Reject unsupported (time, state scalar) type combinations.

    Supported: float time with float64 state, Epoch time with float64 or
    longdouble state.

    Raises:
        ConfigurationError: For any other combination
    """
    if time_type not in (float, Epoch):
        raise ConfigurationError(f"Unsupported time type {time_type!r}; use float or Epoch")
    if scalar_type not in SUPPORTED_SCALAR_TYPES:
        raise ConfigurationError(f"Unsupported state scalar type {scalar_type!r}; use float64 or longdouble")
    if time_type is float and scalar_type is np.longdouble:
        raise ConfigurationError("A longdouble state requires Epoch time")
