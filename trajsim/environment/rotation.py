"""Frame rotation providers.

A rotation provider returns the rotation between a base frame (usually the
global inertial frame) and a target frame (usually a body-fixed frame) as a
function of time, together with its time derivative.

Models available:
- ConstantRotation: fixed orientation
- SimpleRotation: uniform spin about the target-frame z axis (planets)
- TabulatedRotation: interpolated from a propagated attitude history
- AerodynamicAngleRotation: derived from aerodynamic angles, see
  ``trajsim.environment.aerodynamic_angles``

Time handling:
    Every public method accepts ``float`` seconds or an ``Epoch``. Both are
    converted once, at this boundary, to float seconds relative to the
    provider's ``reference_epoch``; the compensated subtraction is used for
    ``Epoch`` input so that large absolute epochs do not lose precision.

Example:
    >>> from trajsim.environment.rotation import SimpleRotation
    >>>
    >>> earth = SimpleRotation(np.eye(3), rotation_rate=7.2921159e-5)
    >>> state = earth.rotational_state_to_target_frame(600.0)
    >>> state.is_consistent()
    True
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np
from beartype import beartype
from numpy.typing import NDArray
from scipy.interpolate import CubicSpline

from trajsim.dynamics.attitude import (
    angular_velocity_from_rotation_matrices,
    derivative_of_rotation_to_target_frame,
    normalize_quaternion,
    quaternion_to_matrix,
    rotation_z,
)
from trajsim.timing import Epoch, TimeLike

GLOBAL_FRAME = "ECLIPJ2000"


# =============================================================================
# Rotation State
# =============================================================================


@beartype
@dataclass(frozen=True)
class RotationState:
    """Rotation, its derivative and angular velocity, computed together.

    Attributes:
        rotation_to_target_frame: R_{target<-base}
        derivative_of_rotation_to_target_frame: dR_{target<-base}/dt
        angular_velocity_in_base_frame: Angular velocity of the target frame
            w.r.t. the base frame, expressed in the base frame [rad/s]
    """
    rotation_to_target_frame: NDArray[np.float64]
    derivative_of_rotation_to_target_frame: NDArray[np.float64]
    angular_velocity_in_base_frame: NDArray[np.float64]

    @classmethod
    def from_rotation_and_derivative(
        cls,
        rotation_to_target_frame: NDArray[np.float64],
        derivative_of_rotation_to_target_frame: NDArray[np.float64],
    ) -> "RotationState":
        """Build a state, recovering the angular velocity kinematically."""
        omega = angular_velocity_from_rotation_matrices(
            rotation_to_target_frame, derivative_of_rotation_to_target_frame.T
        )
        return cls(rotation_to_target_frame, derivative_of_rotation_to_target_frame, omega)

    @classmethod
    def identity(cls) -> "RotationState":
        return cls(np.eye(3), np.zeros((3, 3)), np.zeros(3))

    @property
    def rotation_to_base_frame(self) -> NDArray[np.float64]:
        """R_{base<-target}."""
        return self.rotation_to_target_frame.T

    @property
    def derivative_of_rotation_to_base_frame(self) -> NDArray[np.float64]:
        return self.derivative_of_rotation_to_target_frame.T

    @property
    def has_derivative(self) -> bool:
        """False when the derivative is the undefined (NaN) sentinel."""
        return bool(np.all(np.isfinite(self.derivative_of_rotation_to_target_frame)))

    def is_consistent(self, atol: float = 1e-10) -> bool:
        """Cross-check the angular velocity against (rotation, derivative)."""
        if not self.has_derivative:
            return bool(np.all(np.isnan(self.angular_velocity_in_base_frame)))
        recovered = angular_velocity_from_rotation_matrices(
            self.rotation_to_target_frame, self.derivative_of_rotation_to_base_frame
        )
        return bool(np.allclose(recovered, self.angular_velocity_in_base_frame, atol=atol, rtol=0.0))


def undefined_rotation_derivative() -> NDArray[np.float64]:
    """Sentinel returned when a rotation derivative cannot be computed."""
    return np.full((3, 3), np.nan)


# =============================================================================
# Rotation Provider Base
# =============================================================================


class RotationalEphemeris(ABC):
    """Rotation between a base frame and a target frame as a function of time.

    Subclasses implement the two ``_..._at`` primitives in terms of float
    seconds since ``reference_epoch``.
    """

    def __init__(
        self,
        base_frame: str = GLOBAL_FRAME,
        target_frame: str = "",
        reference_epoch: TimeLike = 0.0,
    ) -> None:
        self.base_frame = base_frame
        self.target_frame = target_frame
        self.reference_epoch = reference_epoch

    def seconds_since_reference(self, time: TimeLike) -> float:
        """Float seconds since ``reference_epoch`` for either time type."""
        if isinstance(time, Epoch):
            return time.seconds_since(self.reference_epoch)
        if isinstance(self.reference_epoch, Epoch):
            return Epoch.from_seconds(time).seconds_since(self.reference_epoch)
        return float(time) - float(self.reference_epoch)

    @abstractmethod
    def _rotation_to_base_frame_at(self, seconds: float) -> NDArray[np.float64]:
        """R_{base<-target} at ``seconds`` past the reference epoch."""

    @abstractmethod
    def _derivative_of_rotation_to_base_frame_at(self, seconds: float) -> NDArray[np.float64]:
        """dR_{base<-target}/dt at ``seconds`` past the reference epoch."""

    def rotation_to_base_frame(self, time: TimeLike) -> NDArray[np.float64]:
        return self._rotation_to_base_frame_at(self.seconds_since_reference(time))

    def rotation_to_target_frame(self, time: TimeLike) -> NDArray[np.float64]:
        return self.rotation_to_base_frame(time).T

    def derivative_of_rotation_to_base_frame(self, time: TimeLike) -> NDArray[np.float64]:
        return self._derivative_of_rotation_to_base_frame_at(self.seconds_since_reference(time))

    def derivative_of_rotation_to_target_frame(self, time: TimeLike) -> NDArray[np.float64]:
        return self.derivative_of_rotation_to_base_frame(time).T

    def angular_velocity_in_base_frame(self, time: TimeLike) -> NDArray[np.float64]:
        """Angular velocity of the target frame, NaN if the derivative is undefined."""
        return self.rotational_state_to_target_frame(time).angular_velocity_in_base_frame

    def rotational_state_to_target_frame(self, time: TimeLike) -> RotationState:
        """Rotation, derivative and angular velocity in one call."""
        seconds = self.seconds_since_reference(time)
        rotation = self._rotation_to_base_frame_at(seconds).T
        derivative = self._derivative_of_rotation_to_base_frame_at(seconds).T
        if not np.all(np.isfinite(derivative)):
            return RotationState(rotation, derivative, np.full(3, np.nan))
        return RotationState.from_rotation_and_derivative(rotation, derivative)

    def reset_current_time(self) -> None:
        """Invalidate any memoized evaluation. Stateless providers do nothing."""


# =============================================================================
# Ephemeris-backed Providers
# =============================================================================


class ConstantRotation(RotationalEphemeris):
    """Time-invariant orientation."""

    def __init__(
        self,
        rotation_to_base_frame: NDArray[np.float64],
        base_frame: str = GLOBAL_FRAME,
        target_frame: str = "",
    ) -> None:
        super().__init__(base_frame, target_frame)
        self._rotation = np.asarray(rotation_to_base_frame, dtype=np.float64)

    def _rotation_to_base_frame_at(self, seconds: float) -> NDArray[np.float64]:
        return self._rotation.copy()

    def _derivative_of_rotation_to_base_frame_at(self, seconds: float) -> NDArray[np.float64]:
        return np.zeros((3, 3))


class SimpleRotation(RotationalEphemeris):
    """Uniform rotation about the target-frame z axis.

    R_{target<-base}(t) = Rz(-rate * (t - t0)) @ R_{target<-base}(t0)
    """

    def __init__(
        self,
        initial_rotation_to_target_frame: NDArray[np.float64],
        rotation_rate: float,
        initial_epoch: TimeLike = 0.0,
        base_frame: str = GLOBAL_FRAME,
        target_frame: str = "",
    ) -> None:
        super().__init__(base_frame, target_frame, reference_epoch=initial_epoch)
        self.initial_rotation_to_target_frame = np.asarray(
            initial_rotation_to_target_frame, dtype=np.float64
        )
        self.rotation_rate = float(rotation_rate)
        # Spin axis is fixed in the base frame
        self._angular_velocity = self.rotation_rate * self.initial_rotation_to_target_frame[2, :]

    def _rotation_to_target_frame_at(self, seconds: float) -> NDArray[np.float64]:
        angle = float(np.fmod(self.rotation_rate * seconds, 2.0 * np.pi))
        return rotation_z(-angle) @ self.initial_rotation_to_target_frame

    def _rotation_to_base_frame_at(self, seconds: float) -> NDArray[np.float64]:
        return self._rotation_to_target_frame_at(seconds).T

    def _derivative_of_rotation_to_base_frame_at(self, seconds: float) -> NDArray[np.float64]:
        rotation = self._rotation_to_target_frame_at(seconds)
        return derivative_of_rotation_to_target_frame(rotation, self._angular_velocity).T


class TabulatedRotation(RotationalEphemeris):
    """Rotation interpolated from a history of attitude quaternions.

    Quaternions (body to base frame) and body-frame angular velocities are
    interpolated with cubic splines; the quaternion is renormalized.
    """

    def __init__(
        self,
        times: list[TimeLike],
        quaternions: NDArray[np.float64],
        angular_velocities_body: NDArray[np.float64],
        base_frame: str = GLOBAL_FRAME,
        target_frame: str = "",
    ) -> None:
        if len(times) < 2:
            raise ValueError("Tabulated rotation needs at least 2 epochs")
        super().__init__(base_frame, target_frame, reference_epoch=times[0])
        quaternions = np.array(quaternions, dtype=np.float64)
        # Keep sign continuity so the spline does not cross the double cover
        for i in range(1, len(quaternions)):
            if np.dot(quaternions[i], quaternions[i - 1]) < 0.0:
                quaternions[i] = -quaternions[i]
        offsets = np.array([self.seconds_since_reference(t) for t in times])
        self._quaternion_spline = CubicSpline(offsets, quaternions, axis=0)
        self._rate_spline = CubicSpline(
            offsets, np.asarray(angular_velocities_body, dtype=np.float64), axis=0
        )

    def _rotation_to_base_frame_at(self, seconds: float) -> NDArray[np.float64]:
        q = normalize_quaternion(np.asarray(self._quaternion_spline(seconds), dtype=np.float64))
        return quaternion_to_matrix(q)

    def _derivative_of_rotation_to_base_frame_at(self, seconds: float) -> NDArray[np.float64]:
        to_base = self._rotation_to_base_frame_at(seconds)
        omega_base = to_base @ np.asarray(self._rate_spline(seconds), dtype=np.float64)
        return derivative_of_rotation_to_target_frame(to_base.T, omega_base).T
