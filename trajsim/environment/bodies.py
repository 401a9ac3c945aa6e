"""Bodies and the body registry.

A ``Body`` bundles the environment models attached to one physical body
(ephemeris, rotation, atmosphere, shape, gravity field, aerodynamic
coefficients, flight conditions) with its current time-varying state. The
``SystemOfBodies`` maps names to bodies; models keep body names and resolve
them in the registry they are bound to.

Example:
    >>> from trajsim.environment.bodies import Body, SystemOfBodies
    >>>
    >>> bodies = SystemOfBodies()
    >>> earth = bodies.create_empty_body("Earth")
    >>> earth.gravity_field = GravityField.earth()
    >>> vehicle = bodies.create_empty_body("Vehicle")
    >>> vehicle.mass = 500.0
"""

import logging
from enum import Enum
from typing import Callable

import numpy as np
from numpy.typing import NDArray

from trajsim.dynamics.attitude import quaternion_to_matrix, derivative_of_rotation_to_target_frame
from trajsim.environment.ephemeris import Ephemeris, TabulatedEphemeris
from trajsim.environment.rotation import GLOBAL_FRAME, RotationalEphemeris, RotationState, TabulatedRotation
from trajsim.exceptions import ConfigurationError
from trajsim.timing import Epoch, TimeLike

logger = logging.getLogger(__name__)


class Capability(Enum):
    """Environment capabilities a model may require from a body."""

    EPHEMERIS = "ephemeris"
    ROTATION = "rotation"
    ATMOSPHERE = "atmosphere"
    SHAPE = "shape"
    GRAVITY_FIELD = "gravity field"
    AERODYNAMIC_COEFFICIENTS = "aerodynamic coefficients"
    FLIGHT_CONDITIONS = "flight conditions"
    MASS = "mass"
    INERTIA = "inertia tensor"


class Body:
    """Environment models and current state of one body.

    Attributes:
        name: Body name, unique within its registry
        state: Current Cartesian state in the global frame [m, m/s]
        rotation_state: Current rotation from the global to the body-fixed frame
        ephemeris: Translational ephemeris (unused when propagated)
        rotation_model: Rotation provider (unused when rotationally propagated)
        mass: Constant mass [kg], or ``None`` when ``mass_function`` is used
        inertia_tensor: Body-frame inertia tensor [kg m^2]
        control_surface_deflections: Current deflection of each control surface [rad]
    """

    def __init__(self, name: str) -> None:
        self.name = name

        self.ephemeris: Ephemeris | None = None
        self.rotation_model: RotationalEphemeris | None = None
        self.atmosphere = None
        self.shape = None
        self.gravity_field = None
        self.aerodynamic_coefficients = None
        self.flight_conditions = None

        self.mass: float | None = None
        self.mass_function: Callable[[TimeLike], float] | None = None
        self.inertia_tensor: NDArray[np.float64] | None = None
        self.control_surface_deflections: dict[str, float] = {}

        self.state = np.zeros(6)
        self.rotation_state = RotationState.identity()
        self.angular_velocity_body = np.zeros(3)
        self.current_mass = float("nan")

    def __repr__(self) -> str:
        return f"Body({self.name!r})"

    # -------------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------------

    def has_capability(self, capability: Capability) -> bool:
        """Check whether the body carries the model behind ``capability``."""
        if capability is Capability.MASS:
            return self.mass is not None or self.mass_function is not None
        attribute = {
            Capability.EPHEMERIS: self.ephemeris,
            Capability.ROTATION: self.rotation_model,
            Capability.ATMOSPHERE: self.atmosphere,
            Capability.SHAPE: self.shape,
            Capability.GRAVITY_FIELD: self.gravity_field,
            Capability.AERODYNAMIC_COEFFICIENTS: self.aerodynamic_coefficients,
            Capability.FLIGHT_CONDITIONS: self.flight_conditions,
            Capability.INERTIA: self.inertia_tensor,
        }[capability]
        return attribute is not None

    @property
    def position(self) -> NDArray[np.float64]:
        return self.state[:3]

    @property
    def velocity(self) -> NDArray[np.float64]:
        return self.state[3:]

    @property
    def angle_calculator(self):
        """Aerodynamic angle calculator of the flight conditions, if any."""
        if self.flight_conditions is None:
            return None
        return self.flight_conditions.angle_calculator

    # -------------------------------------------------------------------------
    # Current state
    # -------------------------------------------------------------------------

    def set_state(self, state: NDArray) -> None:
        self.state = np.asarray(state, dtype=np.float64).copy()

    def update_state_from_ephemeris(self, time: TimeLike) -> None:
        if self.ephemeris is not None:
            self.state = self.ephemeris.cartesian_state(time)

    def update_rotation_from_model(self, time: TimeLike) -> None:
        if self.rotation_model is not None:
            self.rotation_state = self.rotation_model.rotational_state_to_target_frame(time)
            to_target = self.rotation_state.rotation_to_target_frame
            self.angular_velocity_body = to_target @ self.rotation_state.angular_velocity_in_base_frame

    def set_rotation_from_quaternion(self, quaternion: NDArray, angular_velocity_body: NDArray) -> None:
        """Set the current rotation from a propagated body-to-global quaternion."""
        to_base = quaternion_to_matrix(np.asarray(quaternion, dtype=np.float64))
        omega_body = np.asarray(angular_velocity_body, dtype=np.float64)
        omega_base = to_base @ omega_body
        self.rotation_state = RotationState(
            to_base.T,
            derivative_of_rotation_to_target_frame(to_base.T, omega_base),
            omega_base,
        )
        self.angular_velocity_body = omega_body.copy()

    def update_mass(self, time: TimeLike) -> None:
        if self.mass_function is not None:
            self.current_mass = float(self.mass_function(time))
        elif self.mass is not None:
            self.current_mass = float(self.mass)

    # -------------------------------------------------------------------------
    # Results of a propagation
    # -------------------------------------------------------------------------

    def set_state_history(self, history: dict, origin: str = "SSB") -> None:
        """Replace the ephemeris with an interpolated propagated history."""
        self.ephemeris = TabulatedEphemeris(history, origin=origin)
        logger.debug("Body %s: ephemeris replaced by %d-point history", self.name, len(history))

    def set_rotation_history(self, history: dict) -> None:
        """Replace the rotation model with an interpolated attitude history.

        Args:
            history: time -> 7-element [quaternion (body to global), angular velocity (body)]
        """
        times = sorted(history)
        values = np.array([np.asarray(history[t], dtype=np.float64) for t in times])
        self.rotation_model = TabulatedRotation(
            times, values[:, :4], values[:, 4:], base_frame=GLOBAL_FRAME, target_frame=f"{self.name}_Fixed",
        )
        logger.debug("Body %s: rotation replaced by %d-point history", self.name, len(history))

    def set_mass_history(self, history: dict) -> None:
        """Replace the mass with a linearly interpolated history."""
        times = sorted(history)
        reference = times[0]
        offsets = np.array([_seconds_between(t, reference) for t in times])
        masses = np.array([float(history[t]) for t in times])
        self.mass_function = lambda time: float(np.interp(_seconds_between(time, reference), offsets, masses))
        self.mass = None


def _seconds_between(time: TimeLike, reference: TimeLike) -> float:
    if isinstance(time, Epoch):
        return time.seconds_since(reference)
    if isinstance(reference, Epoch):
        return Epoch.from_seconds(time).seconds_since(reference)
    return float(time) - float(reference)


class SystemOfBodies:
    """Name registry of the bodies taking part in a simulation."""

    def __init__(self, global_frame_origin: str = "SSB", global_frame_orientation: str = GLOBAL_FRAME) -> None:
        self.global_frame_origin = global_frame_origin
        self.global_frame_orientation = global_frame_orientation
        self._bodies: dict[str, Body] = {}

    def create_empty_body(self, name: str) -> Body:
        body = Body(name)
        self.add_body(body)
        return body

    def add_body(self, body: Body) -> None:
        if body.name in self._bodies:
            raise ConfigurationError(f"Body '{body.name}' already exists", body_name=body.name)
        self._bodies[body.name] = body

    def get_body(self, name: str) -> Body:
        try:
            return self._bodies[name]
        except KeyError:
            raise ConfigurationError(f"Body '{name}' does not exist", body_name=name) from None

    __getitem__ = get_body

    def __contains__(self, name: str) -> bool:
        return name in self._bodies

    def __iter__(self):
        return iter(self._bodies.values())

    def __len__(self) -> int:
        return len(self._bodies)

    def names(self) -> list[str]:
        return list(self._bodies)
