"""Acceleration, torque and mass-rate models.

Every model contributes one term to the state derivative of the body it
acts on. Models hold body names and resolve them in the registry passed to
``bind``; the environment updater has brought every body up to date before
``update_members`` is called.

Models available:
- Accelerations (global frame, m/s^2): PointMassGravity, J2Gravity,
  ConstantAcceleration, ThrustAcceleration, AerodynamicAcceleration
- Torques (body frame, N m): ConstantTorque, CustomTorque, AerodynamicTorque
- Mass rates (kg/s): CustomMassRate, FromThrustMassRate

Example:
    >>> gravity = PointMassGravity("Vehicle", "Earth")
    >>> gravity.bind(bodies)
    >>> gravity.update_members(0.0)
    >>> gravity.get_derivative_contribution()
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable

import numpy as np
from numpy.typing import NDArray

from trajsim.environment.aerodynamic_angles import AerodynamicsReferenceFrames
from trajsim.environment.bodies import Capability
from trajsim.exceptions import IncompleteForceModel
from trajsim.timing import TimeLike

logger = logging.getLogger(__name__)

G0 = 9.80665  # Standard gravity [m/s^2]


# =============================================================================
# Base
# =============================================================================


class DerivativeModel(ABC):
    """One contribution to the state derivative of ``body_name``.

    Args:
        body_name: Body undergoing the acceleration/torque/mass change
        exerting_body_name: Body causing it, if any
    """

    def __init__(self, body_name: str, exerting_body_name: str | None = None) -> None:
        self.body_name = body_name
        self.exerting_body_name = exerting_body_name
        self.bodies = None
        self.current_time: TimeLike | None = None

    @property
    def name(self) -> str:
        exerted = f" by {self.exerting_body_name}" if self.exerting_body_name else ""
        return f"{type(self).__name__} on {self.body_name}{exerted}"

    def bind(self, bodies) -> None:
        """Attach the body registry the model reads from."""
        self.bodies = bodies

    def required_capabilities(self) -> list[tuple[str, Capability]]:
        """(body name, capability) pairs that must exist, in checking order."""
        return []

    def check_capabilities(self) -> None:
        """Raise ``IncompleteForceModel`` if a prerequisite has been removed."""
        for body_name, capability in self.required_capabilities():
            if not self.bodies.get_body(body_name).has_capability(capability):
                raise IncompleteForceModel(self.name, body_name, capability.value)

    @abstractmethod
    def update_members(self, time: TimeLike) -> None:
        """Compute the contribution at ``time`` from the current environment."""

    @abstractmethod
    def get_derivative_contribution(self):
        """Contribution computed by the last ``update_members``."""

    def _body(self):
        return self.bodies.get_body(self.body_name)

    def _exerting_body(self):
        return self.bodies.get_body(self.exerting_body_name)


class _VectorModel(DerivativeModel):
    def __init__(self, body_name: str, exerting_body_name: str | None = None) -> None:
        super().__init__(body_name, exerting_body_name)
        self._current = np.zeros(3)

    def get_derivative_contribution(self) -> NDArray[np.float64]:
        return self._current


# =============================================================================
# Accelerations
# =============================================================================


class PointMassGravity(_VectorModel):
    """Central gravity of ``exerting_body_name``."""

    def required_capabilities(self) -> list[tuple[str, Capability]]:
        return [(self.exerting_body_name, Capability.GRAVITY_FIELD)]

    def update_members(self, time: TimeLike) -> None:
        relative = self._body().position - self._exerting_body().position
        self._current = self._exerting_body().gravity_field.point_mass_acceleration(relative)
        self.current_time = time


class J2Gravity(_VectorModel):
    """Central gravity plus J2, evaluated in the exerting body's fixed frame."""

    def required_capabilities(self) -> list[tuple[str, Capability]]:
        return [
            (self.exerting_body_name, Capability.GRAVITY_FIELD),
            (self.exerting_body_name, Capability.ROTATION),
        ]

    def update_members(self, time: TimeLike) -> None:
        central = self._exerting_body()
        to_fixed = central.rotation_state.rotation_to_target_frame
        relative = self._body().position - central.position
        self._current = to_fixed.T @ central.gravity_field.acceleration(to_fixed @ relative)
        self.current_time = time


class ConstantAcceleration(_VectorModel):
    """Fixed acceleration in the global frame."""

    def __init__(self, body_name: str, acceleration: NDArray[np.float64]) -> None:
        super().__init__(body_name)
        self.acceleration = np.asarray(acceleration, dtype=np.float64)

    def update_members(self, time: TimeLike) -> None:
        self._current = self.acceleration.copy()
        self.current_time = time


class ThrustAcceleration(_VectorModel):
    """Thrust along a body-fixed direction.

    Args:
        body_name: Thrusting body
        thrust: Thrust magnitude [N], constant or a function of time
        specific_impulse: Isp [s], used for the propellant mass flow
        direction_body: Thrust direction in the body frame (normalized)
    """

    def __init__(
        self,
        body_name: str,
        thrust: float | Callable,
        specific_impulse: float,
        direction_body: NDArray[np.float64] | None = None,
    ) -> None:
        super().__init__(body_name)
        if specific_impulse <= 0.0:
            raise ValueError(f"Specific impulse must be positive, got {specific_impulse}")
        direction = np.array([1.0, 0.0, 0.0]) if direction_body is None else np.asarray(direction_body, dtype=np.float64)
        self.direction_body = direction / np.linalg.norm(direction)
        self.thrust = thrust
        self.specific_impulse = specific_impulse
        self.current_thrust = 0.0

    def required_capabilities(self) -> list[tuple[str, Capability]]:
        return [(self.body_name, Capability.MASS)]

    def thrust_magnitude(self, time: TimeLike) -> float:
        return float(self.thrust(time)) if callable(self.thrust) else float(self.thrust)

    def mass_flow(self) -> float:
        """Propellant mass flow [kg/s] at the last update (positive)."""
        return self.current_thrust / (self.specific_impulse * G0)

    def update_members(self, time: TimeLike) -> None:
        body = self._body()
        self.current_thrust = self.thrust_magnitude(time)
        to_base = body.rotation_state.rotation_to_base_frame
        self._current = to_base @ self.direction_body * (self.current_thrust / body.current_mass)
        self.current_time = time


class AerodynamicAcceleration(_VectorModel):
    """Aerodynamic force of the atmosphere of ``exerting_body_name`` divided by mass."""

    def required_capabilities(self) -> list[tuple[str, Capability]]:
        return [
            (self.exerting_body_name, Capability.ATMOSPHERE),
            (self.exerting_body_name, Capability.SHAPE),
            (self.exerting_body_name, Capability.ROTATION),
            (self.body_name, Capability.AERODYNAMIC_COEFFICIENTS),
            (self.body_name, Capability.FLIGHT_CONDITIONS),
            (self.body_name, Capability.MASS),
        ]

    def update_members(self, time: TimeLike) -> None:
        body = self._body()
        flight_conditions = body.flight_conditions
        force, in_aerodynamic_frame = flight_conditions.aerodynamic_force_in_frame()
        frame = AerodynamicsReferenceFrames.AERODYNAMIC if in_aerodynamic_frame else AerodynamicsReferenceFrames.BODY
        to_inertial = flight_conditions.angle_calculator.get_rotation_matrix_between_frames(
            frame, AerodynamicsReferenceFrames.INERTIAL
        )
        self._current = to_inertial @ force / body.current_mass
        self.current_time = time


# =============================================================================
# Torques
# =============================================================================


class ConstantTorque(_VectorModel):
    """Fixed torque in the body frame."""

    def __init__(self, body_name: str, torque: NDArray[np.float64]) -> None:
        super().__init__(body_name)
        self.torque = np.asarray(torque, dtype=np.float64)

    def update_members(self, time: TimeLike) -> None:
        self._current = self.torque.copy()
        self.current_time = time


class CustomTorque(_VectorModel):
    """Torque from a function of time, in the body frame."""

    def __init__(self, body_name: str, torque_function: Callable) -> None:
        super().__init__(body_name)
        self.torque_function = torque_function

    def update_members(self, time: TimeLike) -> None:
        self._current = np.asarray(self.torque_function(time), dtype=np.float64)
        self.current_time = time


class AerodynamicTorque(_VectorModel):
    """Aerodynamic moment about the body axes: q * S * L * C_M."""

    def required_capabilities(self) -> list[tuple[str, Capability]]:
        return [
            (self.exerting_body_name, Capability.ATMOSPHERE),
            (self.exerting_body_name, Capability.SHAPE),
            (self.exerting_body_name, Capability.ROTATION),
            (self.body_name, Capability.AERODYNAMIC_COEFFICIENTS),
            (self.body_name, Capability.FLIGHT_CONDITIONS),
        ]

    def update_members(self, time: TimeLike) -> None:
        flight_conditions = self._body().flight_conditions
        coefficients = flight_conditions.aerodynamic_coefficients
        scale = flight_conditions.dynamic_pressure * coefficients.reference_area * coefficients.reference_length
        self._current = scale * coefficients.current_moment_coefficients
        self.current_time = time


# =============================================================================
# Mass Rates
# =============================================================================


class CustomMassRate(DerivativeModel):
    """Mass rate [kg/s] from a function of time."""

    def __init__(self, body_name: str, mass_rate_function: Callable) -> None:
        super().__init__(body_name)
        self.mass_rate_function = mass_rate_function
        self._current = 0.0

    def update_members(self, time: TimeLike) -> None:
        self._current = float(self.mass_rate_function(time))
        self.current_time = time

    def get_derivative_contribution(self) -> float:
        return self._current


class FromThrustMassRate(DerivativeModel):
    """Mass rate consistent with the thrust models acting on the body."""

    def __init__(self, body_name: str) -> None:
        super().__init__(body_name)
        self.thrust_models: list[ThrustAcceleration] = []
        self._current = 0.0

    def attach_thrust_models(self, acceleration_models: list[DerivativeModel]) -> None:
        """Keep the thrust models among the accelerations of this body."""
        self.thrust_models = [
            m for m in acceleration_models
            if isinstance(m, ThrustAcceleration) and m.body_name == self.body_name
        ]
        if not self.thrust_models:
            logger.warning(
                "Mass rate from thrust requested for %s, but no thrust models found; mass rate is zero",
                self.body_name,
            )

    def update_members(self, time: TimeLike) -> None:
        self._current = -sum(m.mass_flow() for m in self.thrust_models)
        self.current_time = time

    def get_derivative_contribution(self) -> float:
        return self._current
