"""Aerodynamic angles and the orientation closure.

The orientation of a vehicle in an atmosphere can be specified two ways:

- Rotation-driven: the body has a rotation model (an ephemeris, or a
  propagated attitude) and the aerodynamic angles are obtained by inverting
  the body-to-trajectory rotation.
- Angle-driven: the aerodynamic angles come from a function (guidance, trim)
  and the body rotation is built from them (``AerodynamicAngleRotation``).

Exactly one of the two must hold for each angle calculator. The choice is
recorded as an ``OrientationClosure`` and verified with
``verify_orientation_closure`` before propagation starts.

Frame chain (each entry rotates into the next):

    inertial -> corotating -> vertical -> trajectory -> aerodynamic -> body

- corotating: central body-fixed frame
- vertical: local north-east-down
- trajectory: x along the airspeed velocity, z in the vertical plane
- aerodynamic: trajectory frame banked by the bank angle
- body: vehicle-fixed frame, offset by attack and sideslip angles

Example:
    >>> calculator = AerodynamicAngleCalculator(bodies, "Vehicle", "Earth")
    >>> calculator.set_orientation_angle_functions(attack=lambda t: 0.1)
    >>> calculator.update(0.0)
    >>> calculator.get_angle(AerodynamicAngles.ANGLE_OF_ATTACK)
    0.1
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import numpy as np
from beartype import beartype
from numpy.typing import NDArray

from trajsim.dynamics.attitude import rotation_x, rotation_y, rotation_z
from trajsim.environment.rotation import (
    GLOBAL_FRAME,
    RotationalEphemeris,
    RotationState,
    undefined_rotation_derivative,
)
from trajsim.exceptions import AmbiguousOrientationClosure, ConfigurationError
from trajsim.timing import TimeLike

logger = logging.getLogger(__name__)


# =============================================================================
# Frames and Angles
# =============================================================================


class AerodynamicsReferenceFrames(Enum):
    """Frames of the aerodynamic chain, in chain order."""

    INERTIAL = 0
    COROTATING = 1
    VERTICAL = 2
    TRAJECTORY = 3
    AERODYNAMIC = 4
    BODY = 5


class AerodynamicAngles(Enum):
    LATITUDE = "latitude"
    LONGITUDE = "longitude"
    HEADING = "heading"
    FLIGHT_PATH = "flight path"
    ANGLE_OF_ATTACK = "angle of attack"
    ANGLE_OF_SIDESLIP = "angle of sideslip"
    BANK_ANGLE = "bank angle"


BODY_ANGLES = (
    AerodynamicAngles.ANGLE_OF_ATTACK,
    AerodynamicAngles.ANGLE_OF_SIDESLIP,
    AerodynamicAngles.BANK_ANGLE,
)


@beartype
def vertical_to_corotating_rotation(latitude: float, longitude: float) -> NDArray[np.float64]:
    """R_{corotating<-vertical}; columns are north, east and down."""
    sin_lat, cos_lat = np.sin(latitude), np.cos(latitude)
    sin_lon, cos_lon = np.sin(longitude), np.cos(longitude)
    north = [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat]
    east = [-sin_lon, cos_lon, 0.0]
    down = [-cos_lat * cos_lon, -cos_lat * sin_lon, -sin_lat]
    return np.array([north, east, down]).T


@beartype
def trajectory_to_vertical_rotation(heading: float, flight_path: float) -> NDArray[np.float64]:
    """R_{vertical<-trajectory}."""
    return rotation_z(heading) @ rotation_y(flight_path)


@beartype
def body_to_trajectory_rotation(attack: float, sideslip: float, bank: float) -> NDArray[np.float64]:
    """R_{trajectory<-body} for the given aerodynamic angles [rad]."""
    return rotation_x(bank) @ rotation_z(-sideslip) @ rotation_y(attack)


@beartype
def compute_body_fixed_aero_angles(
    rotation_to_body_fixed: NDArray[np.float64],
    trajectory_to_inertial: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Invert a body orientation into aerodynamic angles.

    Args:
        rotation_to_body_fixed: R_{body<-inertial}
        trajectory_to_inertial: R_{inertial<-trajectory}

    Returns:
        [attack, sideslip, bank] [rad]; sideslip in [-pi/2, pi/2]
    """
    m = rotation_to_body_fixed @ trajectory_to_inertial
    sideslip = float(np.arcsin(np.clip(m[1, 0], -1.0, 1.0)))
    attack = float(np.arctan2(m[2, 0], m[0, 0]))
    bank = float(np.arctan2(m[1, 2], m[1, 1]))
    return np.array([attack, sideslip, bank])


# =============================================================================
# Angle Sources and Closure Variants
# =============================================================================


class AngleSource(ABC):
    """Supplies [attack, sideslip, bank] as a function of time."""

    @abstractmethod
    def angles(self, time: TimeLike) -> NDArray[np.float64]:
        """Body angles [rad] at ``time``."""

    def reset_current_time(self) -> None:
        """Invalidate memoized values."""


class FunctionAngleSource(AngleSource):
    """Angles from up to three scalar functions of time (missing ones are zero).

    Args:
        attack, sideslip, bank: Callables time -> angle [rad]
        update: Optional callable run before the angles are read
        vector_function: Callable time -> [attack, sideslip, bank]; overrides
            the scalar functions when given
    """

    def __init__(
        self,
        attack: Callable | None = None,
        sideslip: Callable | None = None,
        bank: Callable | None = None,
        update: Callable | None = None,
        vector_function: Callable | None = None,
    ) -> None:
        self.attack = attack
        self.sideslip = sideslip
        self.bank = bank
        self.update = update
        self.vector_function = vector_function

    def angles(self, time: TimeLike) -> NDArray[np.float64]:
        if self.update is not None:
            self.update(time)
        if self.vector_function is not None:
            return np.asarray(self.vector_function(time), dtype=np.float64).reshape(3)
        return np.array([
            0.0 if f is None else float(f(time))
            for f in (self.attack, self.sideslip, self.bank)
        ])


class FromAerodynamicAngleRotation(AngleSource):
    """Angles read from the angle function of an ``AerodynamicAngleRotation``."""

    def __init__(self, rotation: "AerodynamicAngleRotation") -> None:
        self.rotation = rotation

    def angles(self, time: TimeLike) -> NDArray[np.float64]:
        return self.rotation.get_body_angles(time)

    def reset_current_time(self) -> None:
        self.rotation.reset_current_time()


@dataclass(frozen=True)
class AngleDriven:
    """Angles are given; the body rotation (if any) follows from them."""
    source: AngleSource


@dataclass(frozen=True)
class RotationDriven:
    """The body rotation is given; the angles follow from it.

    ``provider`` of ``None`` means the body's current (propagated) rotation.
    """
    provider: RotationalEphemeris | None = None


OrientationClosure = AngleDriven | RotationDriven


def _describe(closure: OrientationClosure) -> str:
    if isinstance(closure, RotationDriven):
        provider = closure.provider
        return f"rotation-driven ({type(provider).__name__ if provider else 'propagated attitude'})"
    return f"angle-driven ({type(closure.source).__name__})"


# =============================================================================
# Angle Calculator
# =============================================================================


class AerodynamicAngleCalculator:
    """Computes the aerodynamic angle chain of a body w.r.t. a central body.

    Reads the current global states of both bodies and the current rotation
    of the central body, so these must be up to date for ``time`` before
    ``update`` is called (the environment updater guarantees this during
    propagation; ``refresh_states=True`` does it from the ephemerides).
    """

    def __init__(self, bodies, body_name: str, central_body_name: str) -> None:
        self.bodies = bodies
        self.body_name = body_name
        self.central_body_name = central_body_name

        self.closure: OrientationClosure | None = None
        self.closure_conflict: str | None = None
        self.closure_is_incomplete = False

        self._current_time: TimeLike | None = None
        self._current_body_angle_time: TimeLike | None = None
        self._angles = {angle: float("nan") for angle in AerodynamicAngles}
        self._to_next_frame = [np.full((3, 3), np.nan) for _ in range(5)]
        self.body_fixed_position = np.full(3, np.nan)
        self.airspeed_velocity = np.full(3, np.nan)

    # -------------------------------------------------------------------------
    # Closure
    # -------------------------------------------------------------------------

    def bind_angle_source(self, closure: OrientationClosure) -> None:
        """Set the orientation closure.

        Rebinding with a closure of the same kind replaces it. Binding a
        different kind is recorded as a conflict and reported by
        ``verify_orientation_closure``.
        """
        current = self.closure
        if current is not None and _closure_kind(current) != _closure_kind(closure):
            self.closure_conflict = f"{_describe(current)} and {_describe(closure)} both requested"
            logger.debug("Body %s: %s", self.body_name, self.closure_conflict)
            return
        self.closure = closure
        self.reset_current_time()

    def set_aerodynamic_angle_closure_is_incomplete(self) -> None:
        self.closure_is_incomplete = True

    def set_orientation_angle_functions(
        self,
        attack: Callable | None = None,
        sideslip: Callable | None = None,
        bank: Callable | None = None,
        update: Callable | None = None,
    ) -> None:
        """Drive the angles by functions; ``None`` keeps the existing function."""
        previous = self.closure.source if isinstance(self.closure, AngleDriven) else None
        if isinstance(previous, FunctionAngleSource) and previous.vector_function is None:
            attack = attack or previous.attack
            sideslip = sideslip or previous.sideslip
            bank = bank or previous.bank
            update = update or previous.update
        self.bind_angle_source(AngleDriven(FunctionAngleSource(attack, sideslip, bank, update)))

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    def reset_current_time(self) -> None:
        self._current_time = None
        self._current_body_angle_time = None
        if isinstance(self.closure, AngleDriven):
            self.closure.source.reset_current_time()

    def update(self, time: TimeLike, update_body_angles: bool = True, refresh_states: bool = False) -> None:
        """Recompute the angle chain at ``time`` (memoized on time)."""
        if self._current_time is None or self._current_time != time:
            if refresh_states:
                self._refresh_states(time)
            self._update_trajectory_chain()
            self._current_time = time
            self._current_body_angle_time = None

        if update_body_angles and self._current_body_angle_time is None:
            self._update_body_angles(time)
            self._current_body_angle_time = time

    def _refresh_states(self, time: TimeLike) -> None:
        central = self.bodies.get_body(self.central_body_name)
        body = self.bodies.get_body(self.body_name)
        central.update_state_from_ephemeris(time)
        central.update_rotation_from_model(time)
        body.update_state_from_ephemeris(time)

    def _update_trajectory_chain(self) -> None:
        body = self.bodies.get_body(self.body_name)
        central = self.bodies.get_body(self.central_body_name)

        relative = body.state - central.state
        rotation = central.rotation_state.rotation_to_target_frame
        derivative = central.rotation_state.derivative_of_rotation_to_target_frame
        if not np.all(np.isfinite(derivative)):
            logger.debug(
                "Rotation of %s has no finite derivative; airspeed of %s ignores frame rotation",
                self.central_body_name,
                self.body_name,
            )
            derivative = np.zeros((3, 3))

        position = rotation @ relative[:3]
        velocity = rotation @ relative[3:] + derivative @ relative[:3]
        self.body_fixed_position = position
        self.airspeed_velocity = velocity

        radius = float(np.linalg.norm(position))
        latitude = float(np.arcsin(position[2] / radius)) if radius > 0.0 else 0.0
        longitude = float(np.arctan2(position[1], position[0]))

        corotating_to_vertical = vertical_to_corotating_rotation(latitude, longitude).T
        vertical_velocity = corotating_to_vertical @ velocity
        speed = float(np.linalg.norm(vertical_velocity))
        heading = float(np.arctan2(vertical_velocity[1], vertical_velocity[0]))
        flight_path = float(np.arcsin(-vertical_velocity[2] / speed)) if speed > 0.0 else 0.0

        self._angles[AerodynamicAngles.LATITUDE] = latitude
        self._angles[AerodynamicAngles.LONGITUDE] = longitude
        self._angles[AerodynamicAngles.HEADING] = heading
        self._angles[AerodynamicAngles.FLIGHT_PATH] = flight_path

        self._to_next_frame[0] = rotation
        self._to_next_frame[1] = corotating_to_vertical
        self._to_next_frame[2] = trajectory_to_vertical_rotation(heading, flight_path).T

    def _update_body_angles(self, time: TimeLike) -> None:
        closure = self.closure
        if isinstance(closure, AngleDriven):
            angles = closure.source.angles(time)
        elif isinstance(closure, RotationDriven):
            if closure.provider is not None:
                to_body = closure.provider.rotation_to_target_frame(time)
            else:
                to_body = self.bodies.get_body(self.body_name).rotation_state.rotation_to_target_frame
            angles = compute_body_fixed_aero_angles(to_body, self.trajectory_to_inertial())
        else:
            raise ConfigurationError(
                f"No orientation closure set for aerodynamic angles of body '{self.body_name}'",
                body_name=self.body_name,
            )

        attack, sideslip, bank = (float(a) for a in angles)
        self._angles[AerodynamicAngles.ANGLE_OF_ATTACK] = attack
        self._angles[AerodynamicAngles.ANGLE_OF_SIDESLIP] = sideslip
        self._angles[AerodynamicAngles.BANK_ANGLE] = bank
        self._to_next_frame[3] = rotation_x(bank).T
        self._to_next_frame[4] = rotation_y(-attack) @ rotation_z(sideslip)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def current_time(self) -> TimeLike | None:
        return self._current_time

    def get_angle(self, angle: AerodynamicAngles) -> float:
        return self._angles[angle]

    @property
    def body_angles(self) -> NDArray[np.float64]:
        """[attack, sideslip, bank] [rad]."""
        return np.array([self._angles[a] for a in BODY_ANGLES])

    def get_rotation_matrix_between_frames(
        self,
        from_frame: AerodynamicsReferenceFrames,
        to_frame: AerodynamicsReferenceFrames,
    ) -> NDArray[np.float64]:
        """R_{to<-from} along the frame chain, at the last update."""
        start, end = from_frame.value, to_frame.value
        if start > end:
            return self.get_rotation_matrix_between_frames(to_frame, from_frame).T
        rotation = np.eye(3)
        for i in range(start, end):
            rotation = self._to_next_frame[i] @ rotation
        return rotation

    def trajectory_to_inertial(self) -> NDArray[np.float64]:
        return self.get_rotation_matrix_between_frames(
            AerodynamicsReferenceFrames.TRAJECTORY, AerodynamicsReferenceFrames.INERTIAL
        )


def _closure_kind(closure: OrientationClosure) -> str:
    if isinstance(closure, RotationDriven):
        return "rotation"
    if isinstance(closure.source, FromAerodynamicAngleRotation):
        return "angle-rotation"
    return "angle-function"


# =============================================================================
# Angle-driven Rotation
# =============================================================================


class AerodynamicAngleRotation(RotationalEphemeris):
    """Body rotation built from aerodynamic angles and the trajectory frame.

    R_{inertial<-body} = R_{inertial<-trajectory} @ R_{trajectory<-body}(angles)

    The time derivative is not available: derivative and angular velocity
    are NaN-filled.
    """

    def __init__(
        self,
        calculator: AerodynamicAngleCalculator,
        base_frame: str = GLOBAL_FRAME,
        target_frame: str = "",
        angle_function: Callable | None = None,
    ) -> None:
        super().__init__(base_frame, target_frame)
        self.calculator = calculator
        self.angle_function = angle_function
        self.is_body_in_propagation = False
        self._current_time: TimeLike | None = None
        self._current_angles = np.zeros(3)

        calculator.set_aerodynamic_angle_closure_is_incomplete()
        calculator.bind_angle_source(AngleDriven(FromAerodynamicAngleRotation(self)))

    def set_angle_function(self, angle_function: Callable | None) -> None:
        self.angle_function = angle_function
        self.reset_current_time()

    def add_sideslip_bank_angle_functions(self, sideslip_bank_function: Callable) -> None:
        """Replace sideslip and bank by ``sideslip_bank_function(time) -> [sideslip, bank]``.

        The angle of attack of the existing function is kept (zero if none).
        """
        previous = self.angle_function

        def combined(time: TimeLike) -> NDArray[np.float64]:
            attack = 0.0 if previous is None else float(np.asarray(previous(time))[0])
            sideslip, bank = np.asarray(sideslip_bank_function(time), dtype=np.float64)
            return np.array([attack, sideslip, bank])

        self.angle_function = combined
        self.reset_current_time()

    def set_is_body_in_propagation(self, is_body_in_propagation: bool) -> None:
        self.is_body_in_propagation = is_body_in_propagation

    def reset_current_time(self) -> None:
        self._current_time = None

    def update(self, time: TimeLike) -> None:
        if self._current_time is not None and self._current_time == time:
            return
        self.calculator.update(time, update_body_angles=False, refresh_states=not self.is_body_in_propagation)
        if self.angle_function is None:
            self._current_angles = np.zeros(3)
        else:
            self._current_angles = np.asarray(self.angle_function(time), dtype=np.float64).reshape(3)
        self._current_time = time

    def get_body_angles(self, time: TimeLike) -> NDArray[np.float64]:
        self.update(time)
        return self._current_angles.copy()

    def rotation_to_base_frame(self, time: TimeLike) -> NDArray[np.float64]:
        self.update(time)
        attack, sideslip, bank = (float(a) for a in self._current_angles)
        return self.calculator.trajectory_to_inertial() @ body_to_trajectory_rotation(attack, sideslip, bank)

    def derivative_of_rotation_to_base_frame(self, time: TimeLike) -> NDArray[np.float64]:
        return undefined_rotation_derivative()

    def rotational_state_to_target_frame(self, time: TimeLike) -> RotationState:
        return RotationState(
            self.rotation_to_base_frame(time).T,
            undefined_rotation_derivative(),
            np.full(3, np.nan),
        )

    def _rotation_to_base_frame_at(self, seconds: float) -> NDArray[np.float64]:
        return self.rotation_to_base_frame(seconds)

    def _derivative_of_rotation_to_base_frame_at(self, seconds: float) -> NDArray[np.float64]:
        return undefined_rotation_derivative()


def create_aerodynamic_angle_rotation(
    bodies,
    body_name: str,
    central_body_name: str,
    angle_function: Callable | None = None,
) -> AerodynamicAngleRotation:
    """Give ``body_name`` a rotation model driven by aerodynamic angles.

    The new calculator is reused by ``create_flight_conditions``.
    """
    body = bodies.get_body(body_name)
    calculator = AerodynamicAngleCalculator(bodies, body_name, central_body_name)
    rotation = AerodynamicAngleRotation(
        calculator, bodies.global_frame_orientation, f"{body_name}_Fixed", angle_function
    )
    body.rotation_model = rotation
    return rotation


# =============================================================================
# Closure Verification
# =============================================================================


def verify_orientation_closure(
    bodies,
    body_name: str,
    rotation_propagated: bool = False,
) -> OrientationClosure | None:
    """Check and complete the orientation closure of a body's angle calculator.

    Args:
        bodies: Body registry
        body_name: Body whose flight conditions hold the calculator
        rotation_propagated: Whether the body attitude is part of the state

    Returns:
        The active closure, or ``None`` when the body has no angle calculator

    Raises:
        AmbiguousOrientationClosure: If the orientation is defined twice or
            defined in terms of itself
    """
    body = bodies.get_body(body_name)
    calculator = body.angle_calculator
    if calculator is None:
        return None

    if calculator.closure_conflict is not None:
        raise AmbiguousOrientationClosure(body_name, calculator.closure_conflict)

    rotation_model = body.rotation_model
    angle_rotation = (
        rotation_model
        if isinstance(rotation_model, AerodynamicAngleRotation) and rotation_model.calculator is calculator
        else None
    )
    closure = calculator.closure

    if rotation_propagated and isinstance(rotation_model, AerodynamicAngleRotation):
        raise AmbiguousOrientationClosure(
            body_name, "attitude is propagated but the rotation model is derived from aerodynamic angles"
        )

    if isinstance(closure, RotationDriven):
        provider = closure.provider if closure.provider is not None else rotation_model
        if isinstance(provider, AerodynamicAngleRotation) and provider.calculator is calculator:
            raise AmbiguousOrientationClosure(
                body_name, "angles are derived from a rotation that is itself derived from the same angles"
            )
    elif isinstance(closure, AngleDriven):
        from_rotation = isinstance(closure.source, FromAerodynamicAngleRotation)
        if not from_rotation and (rotation_propagated or (rotation_model is not None and angle_rotation is None)):
            raise AmbiguousOrientationClosure(
                body_name, "angle functions are set while the body orientation is given by its rotation"
            )
        if from_rotation and closure.source.rotation is not rotation_model:
            raise AmbiguousOrientationClosure(
                body_name, "angles are bound to an aerodynamic angle rotation that is not the body rotation"
            )
    elif rotation_propagated or rotation_model is not None:
        calculator.bind_angle_source(RotationDriven(None if rotation_propagated else rotation_model))
        logger.debug("Body %s: aerodynamic angles derived from body rotation", body_name)
    else:
        logger.warning(
            "Body %s has neither a rotation model nor angle functions; aerodynamic angles set to zero",
            body_name,
        )
        calculator.bind_angle_source(AngleDriven(FunctionAngleSource()))

    return calculator.closure
