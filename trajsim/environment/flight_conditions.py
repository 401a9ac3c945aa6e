"""Atmospheric flight conditions, guidance and trim.

``AtmosphericFlightConditions`` combines the aerodynamic angle calculator
with the central body's shape and atmosphere to give altitude, density,
airspeed, Mach number and dynamic pressure, and keeps the vehicle's
aerodynamic coefficients evaluated at the current conditions.

Example:
    >>> fc = create_flight_conditions(bodies, "Vehicle", "Earth")
    >>> fc.update(10.0)
    >>> fc.mach_number, fc.dynamic_pressure
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import brentq

from trajsim.environment.aerodynamic_angles import (
    AerodynamicAngleCalculator,
    AerodynamicAngleRotation,
    AerodynamicAngles,
)
from trajsim.environment.bodies import Capability
from trajsim.exceptions import ConfigurationError, MissingEnvironmentModel
from trajsim.timing import TimeLike
from trajsim.vehicle.aerodynamics import AerodynamicCoefficientInterface, Variables

logger = logging.getLogger(__name__)


# =============================================================================
# Flight Conditions
# =============================================================================


class AtmosphericFlightConditions:
    """Current atmospheric flight state of a body w.r.t. a central body."""

    def __init__(
        self,
        bodies,
        body_name: str,
        central_body_name: str,
        angle_calculator: AerodynamicAngleCalculator,
    ) -> None:
        self.bodies = bodies
        self.body_name = body_name
        self.central_body_name = central_body_name
        self.angle_calculator = angle_calculator

        self._current_time: TimeLike | None = None
        self._trajectory_time: TimeLike | None = None
        self.altitude = float("nan")
        self.density = float("nan")
        self.temperature = float("nan")
        self.speed_of_sound = float("nan")
        self.airspeed = float("nan")

    @property
    def aerodynamic_coefficients(self) -> AerodynamicCoefficientInterface:
        return self.bodies.get_body(self.body_name).aerodynamic_coefficients

    @property
    def current_time(self) -> TimeLike | None:
        return self._current_time

    @property
    def mach_number(self) -> float:
        return self.airspeed / self.speed_of_sound

    @property
    def dynamic_pressure(self) -> float:
        return 0.5 * self.density * self.airspeed**2

    @property
    def latitude(self) -> float:
        return self.angle_calculator.get_angle(AerodynamicAngles.LATITUDE)

    @property
    def longitude(self) -> float:
        return self.angle_calculator.get_angle(AerodynamicAngles.LONGITUDE)

    def reset_current_time(self) -> None:
        self._current_time = None
        self._trajectory_time = None
        self.angle_calculator.reset_current_time()

    def update_trajectory_quantities(self, time: TimeLike) -> None:
        """Altitude, atmosphere and airspeed at ``time``; body angles untouched."""
        if self._trajectory_time is not None and self._trajectory_time == time:
            return
        self.angle_calculator.update(time, update_body_angles=False)
        central = self.bodies.get_body(self.central_body_name)
        position = self.angle_calculator.body_fixed_position

        self.altitude = float(central.shape.altitude(position))
        lon, lat = self.longitude, self.latitude
        atmosphere = central.atmosphere
        self.density = float(atmosphere.density(self.altitude, lon, lat, time))
        self.temperature = float(atmosphere.temperature(self.altitude, lon, lat, time))
        self.speed_of_sound = float(atmosphere.speed_of_sound(self.altitude, lon, lat, time))
        self.airspeed = float(np.linalg.norm(self.angle_calculator.airspeed_velocity))
        self._trajectory_time = time

    def update(self, time: TimeLike) -> None:
        """Refresh all conditions and the aerodynamic coefficients at ``time``."""
        if self._current_time is not None and self._current_time == time:
            return
        self.update_trajectory_quantities(time)
        self.angle_calculator.update(time, update_body_angles=True)

        coefficients = self.aerodynamic_coefficients
        if coefficients is not None:
            coefficients.update_current_coefficients(
                self.coefficient_independent_variables(coefficients),
                self.control_surface_independent_variables(coefficients),
            )
        self._current_time = time

    def independent_variable_value(self, variable: Variables) -> float:
        if variable is Variables.MACH_NUMBER:
            return self.mach_number
        if variable is Variables.ALTITUDE:
            return self.altitude
        if variable is Variables.ANGLE_OF_ATTACK:
            return self.angle_calculator.get_angle(AerodynamicAngles.ANGLE_OF_ATTACK)
        if variable is Variables.ANGLE_OF_SIDESLIP:
            return self.angle_calculator.get_angle(AerodynamicAngles.ANGLE_OF_SIDESLIP)
        if variable is Variables.CONTROL_SURFACE_DEFLECTION:
            raise ValueError("Control surface deflection is only a variable of control surface increments")
        raise ValueError(f"Unknown independent variable {variable}")

    def coefficient_independent_variables(
        self,
        coefficients: AerodynamicCoefficientInterface,
        overrides: dict[Variables, float] | None = None,
    ) -> list[float]:
        """Current values of the model's variables; ``overrides`` replace single variables."""
        overrides = overrides or {}
        return [
            float(overrides[v]) if v in overrides else float(self.independent_variable_value(v))
            for v in coefficients.independent_variables
        ]

    def control_surface_independent_variables(
        self,
        coefficients: AerodynamicCoefficientInterface,
        overrides: dict[Variables, float] | None = None,
    ) -> dict[str, list[float]]:
        """Variables of each control surface increment, with the surface's current deflection.

        Raises:
            ConfigurationError: If the body has no deflection for a surface
        """
        deflections = self.bodies.get_body(self.body_name).control_surface_deflections
        values = {}
        for name, increment in coefficients.control_surface_increments.items():
            if name not in deflections:
                raise ConfigurationError(
                    f"Body '{self.body_name}' has no deflection for control surface {name}",
                    body_name=self.body_name,
                )
            surface_overrides = {**(overrides or {}), Variables.CONTROL_SURFACE_DEFLECTION: deflections[name]}
            values[name] = self.coefficient_independent_variables(increment, surface_overrides)
        return values

    def aerodynamic_force_in_frame(self) -> tuple[NDArray[np.float64], bool]:
        """Dimensional aerodynamic force and whether it is in the aerodynamic frame."""
        coefficients = self.aerodynamic_coefficients
        force = self.dynamic_pressure * coefficients.reference_area * coefficients.current_force_coefficients
        if coefficients.are_coefficients_in_negative_axis_direction:
            force = -force
        return force, coefficients.are_coefficients_in_aerodynamic_frame


def create_flight_conditions(bodies, body_name: str, central_body_name: str) -> AtmosphericFlightConditions:
    """Create and attach flight conditions to ``body_name``.

    Raises:
        MissingEnvironmentModel: Checked in order: central body atmosphere,
            shape and rotation, then the vehicle's aerodynamic coefficients
    """
    body = bodies.get_body(body_name)
    central = bodies.get_body(central_body_name)
    required_by = f"flight conditions of {body_name}"
    for capability in (Capability.ATMOSPHERE, Capability.SHAPE, Capability.ROTATION):
        if not central.has_capability(capability):
            raise MissingEnvironmentModel(central_body_name, capability.value, required_by)
    if not body.has_capability(Capability.AERODYNAMIC_COEFFICIENTS):
        raise MissingEnvironmentModel(body_name, Capability.AERODYNAMIC_COEFFICIENTS.value, required_by)

    rotation = body.rotation_model
    if (
        isinstance(rotation, AerodynamicAngleRotation)
        and rotation.calculator.central_body_name == central_body_name
    ):
        calculator = rotation.calculator
    else:
        calculator = AerodynamicAngleCalculator(bodies, body_name, central_body_name)

    flight_conditions = AtmosphericFlightConditions(bodies, body_name, central_body_name, calculator)
    body.flight_conditions = flight_conditions
    logger.debug("Created flight conditions of %s w.r.t. %s", body_name, central_body_name)
    return flight_conditions


def _require_flight_conditions(bodies, body_name: str, required_by: str) -> AtmosphericFlightConditions:
    body = bodies.get_body(body_name)
    if body.flight_conditions is None:
        raise MissingEnvironmentModel(body_name, Capability.FLIGHT_CONDITIONS.value, required_by)
    return body.flight_conditions


def _angle_rotation_of(bodies, body_name: str, calculator) -> AerodynamicAngleRotation | None:
    rotation = bodies.get_body(body_name).rotation_model
    if isinstance(rotation, AerodynamicAngleRotation) and rotation.calculator is calculator:
        return rotation
    return None


# =============================================================================
# Guidance
# =============================================================================


class AerodynamicGuidance(ABC):
    """Base class of user guidance laws.

    ``update_guidance`` sets the three ``current_*`` angles for a time.
    """

    def __init__(self) -> None:
        self.current_angle_of_attack = 0.0
        self.current_angle_of_sideslip = 0.0
        self.current_bank_angle = 0.0

    @abstractmethod
    def update_guidance(self, time: TimeLike) -> None:
        """Compute the current angles."""

    def angles(self, time: TimeLike) -> NDArray[np.float64]:
        self.update_guidance(time)
        return np.array([
            self.current_angle_of_attack,
            self.current_angle_of_sideslip,
            self.current_bank_angle,
        ], dtype=np.float64)


def set_guidance_angle_functions(guidance: AerodynamicGuidance, bodies, body_name: str) -> None:
    """Drive the aerodynamic angles of ``body_name`` by a guidance object.

    If the body rotation is derived from aerodynamic angles, the guidance
    becomes its angle function; otherwise the calculator is driven directly.
    """
    flight_conditions = _require_flight_conditions(bodies, body_name, "aerodynamic guidance")
    calculator = flight_conditions.angle_calculator
    rotation = _angle_rotation_of(bodies, body_name, calculator)
    if rotation is not None:
        rotation.set_angle_function(guidance.angles)
    else:
        calculator.set_orientation_angle_functions(
            attack=lambda t: guidance.current_angle_of_attack,
            sideslip=lambda t: guidance.current_angle_of_sideslip,
            bank=lambda t: guidance.current_bank_angle,
            update=guidance.update_guidance,
        )


# =============================================================================
# Trim
# =============================================================================


class TrimOrientationCalculator:
    """Finds the angle of attack with zero pitch moment coefficient.

    Args:
        coefficients: Coefficient model with ANGLE_OF_ATTACK as a variable
        search_interval: Bracketing interval for the root search [rad]
    """

    def __init__(
        self,
        coefficients: AerodynamicCoefficientInterface,
        search_interval: tuple[float, float] = (-np.pi / 3, np.pi / 3),
        tolerance: float = 1e-12,
    ) -> None:
        index = coefficients.variable_index(Variables.ANGLE_OF_ATTACK)
        if index is None:
            raise ValueError("Trim requires angle of attack as an independent variable")
        self.coefficients = coefficients
        self.attack_index = index
        self.search_interval = search_interval
        self.tolerance = tolerance

    def find_trim_angle_of_attack(
        self,
        untrimmed_values: list[float],
        control_surface_values: dict[str, list[float]] | None = None,
    ) -> float:
        """Angle of attack [rad] for which C_m vanishes, other variables fixed.

        Control surface increments are included at their given deflections.
        """
        values = list(untrimmed_values)
        surfaces = {name: list(v) for name, v in (control_surface_values or {}).items()}
        surface_attack_index = {
            name: self.coefficients.control_surface_increments[name].variable_index(Variables.ANGLE_OF_ATTACK)
            for name in surfaces
        }

        def pitch_moment(attack: float) -> float:
            values[self.attack_index] = float(attack)
            for name, index in surface_attack_index.items():
                if index is not None:
                    surfaces[name][index] = float(attack)
            return float(self.coefficients.total_coefficients(values, surfaces)[1][1])

        lower, upper = self.search_interval
        return float(brentq(pitch_moment, lower, upper, xtol=self.tolerance))


def set_trimmed_conditions(bodies, body_name: str) -> TrimOrientationCalculator:
    """Set the angle of attack of ``body_name`` to its trimmed value.

    Sideslip and bank keep their existing functions.
    """
    flight_conditions = _require_flight_conditions(bodies, body_name, "trimmed conditions")
    coefficients = flight_conditions.aerodynamic_coefficients
    trim = TrimOrientationCalculator(coefficients)
    calculator = flight_conditions.angle_calculator

    def trimmed_attack(time: TimeLike) -> float:
        flight_conditions.update_trajectory_quantities(time)
        overrides = {Variables.ANGLE_OF_ATTACK: 0.0, Variables.ANGLE_OF_SIDESLIP: float(sideslip_of(time))}
        values = flight_conditions.coefficient_independent_variables(coefficients, overrides)
        surfaces = flight_conditions.control_surface_independent_variables(coefficients, overrides)
        return trim.find_trim_angle_of_attack(values, surfaces)

    rotation = _angle_rotation_of(bodies, body_name, calculator)
    if rotation is not None:
        previous: Callable | None = rotation.angle_function

        def sideslip_of(time: TimeLike) -> float:
            return 0.0 if previous is None else float(np.asarray(previous(time))[1])

        def trimmed_angles(time: TimeLike) -> NDArray[np.float64]:
            others = np.zeros(3) if previous is None else np.asarray(previous(time), dtype=np.float64)
            return np.array([trimmed_attack(time), others[1], others[2]])

        rotation.set_angle_function(trimmed_angles)
    else:
        source = getattr(calculator.closure, "source", None)
        sideslip_function = getattr(source, "sideslip", None)

        def sideslip_of(time: TimeLike) -> float:
            return 0.0 if sideslip_function is None else float(sideslip_function(time))

        calculator.set_orientation_angle_functions(attack=trimmed_attack)

    logger.debug("Body %s: angle of attack set to trimmed conditions", body_name)
    return trim
