"""Attitude kinematics utilities.

Quaternion and rotation-matrix helpers shared by rotation providers, the
aerodynamic angle calculator and the rotational equations of motion.

Conventions:
- Quaternions are scalar-first: q = [q0, q1, q2, q3]
- A propagated attitude quaternion rotates body-frame vectors into the base
  (inertial) frame: v_base = R(q) @ v_body
- Elementary rotations ``rotation_x/y/z`` are active (right-handed) rotations
- Rotation matrices are named ``R_{to<-from}`` in docstrings

Example:
    >>> from trajsim.dynamics.attitude import rotation_z, matrix_to_quaternion
    >>> R = rotation_z(np.pi / 2)
    >>> q = matrix_to_quaternion(R)
"""

import numpy as np
from beartype import beartype
from numba import njit
from numpy.typing import NDArray

# =============================================================================
# Quaternion Algebra
# =============================================================================


@beartype
def normalize_quaternion(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Normalize a quaternion to unit length (identity if degenerate)."""
    norm = np.linalg.norm(q)
    if norm < 1e-10:
        return np.array([1.0, 0.0, 0.0, 0.0])
    return q / norm


@beartype
def quaternion_multiply(q1: NDArray[np.float64], q2: NDArray[np.float64]) -> NDArray[np.float64]:
    """Hamilton product q1 * q2."""
    w1, x1, y1, z1 = q1
    w2, x2, y2, z2 = q2

    return np.array([
        w1*w2 - x1*x2 - y1*y2 - z1*z2,
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2,
    ])


@beartype
def quaternion_conjugate(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Quaternion conjugate (inverse rotation for unit quaternions)."""
    return np.array([q[0], -q[1], -q[2], -q[3]])


@beartype
def quaternion_to_matrix(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Rotation matrix of a unit quaternion.

    Args:
        q: Quaternion [q0, q1, q2, q3]

    Returns:
        3x3 matrix R such that v_rotated = R @ v
    """
    q0, q1, q2, q3 = normalize_quaternion(q)

    return np.array([
        [1 - 2*(q2**2 + q3**2), 2*(q1*q2 - q0*q3), 2*(q1*q3 + q0*q2)],
        [2*(q1*q2 + q0*q3), 1 - 2*(q1**2 + q3**2), 2*(q2*q3 - q0*q1)],
        [2*(q1*q3 - q0*q2), 2*(q2*q3 + q0*q1), 1 - 2*(q1**2 + q2**2)],
    ])


@beartype
def matrix_to_quaternion(matrix: NDArray[np.float64]) -> NDArray[np.float64]:
    """Quaternion of a rotation matrix (Shepperd's method).

    The scalar part of the result is kept non-negative so that repeated
    conversions of a smoothly varying rotation give a continuous sequence.
    """
    m = matrix
    trace = np.trace(m)

    if trace > 0:
        s = 0.5 / np.sqrt(trace + 1.0)
        q = np.array([0.25 / s, (m[2, 1] - m[1, 2]) * s, (m[0, 2] - m[2, 0]) * s, (m[1, 0] - m[0, 1]) * s])
    elif m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
        s = 2.0 * np.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2])
        q = np.array([(m[2, 1] - m[1, 2]) / s, 0.25 * s, (m[0, 1] + m[1, 0]) / s, (m[0, 2] + m[2, 0]) / s])
    elif m[1, 1] > m[2, 2]:
        s = 2.0 * np.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2])
        q = np.array([(m[0, 2] - m[2, 0]) / s, (m[0, 1] + m[1, 0]) / s, 0.25 * s, (m[1, 2] + m[2, 1]) / s])
    else:
        s = 2.0 * np.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1])
        q = np.array([(m[1, 0] - m[0, 1]) / s, (m[0, 2] + m[2, 0]) / s, (m[1, 2] + m[2, 1]) / s, 0.25 * s])

    if q[0] < 0.0:
        q = -q
    return normalize_quaternion(q)


@njit(cache=True, fastmath=True)
def _quaternion_rates(
    q0: float, q1: float, q2: float, q3: float,
    p: float, q: float, r: float,
) -> tuple[float, float, float, float]:
    """Numba-optimized quaternion kinematics, q_dot = 0.5 * q * (0, omega)."""
    return (
        0.5 * (-p*q1 - q*q2 - r*q3),
        0.5 * (p*q0 + r*q2 - q*q3),
        0.5 * (q*q0 - r*q1 + p*q3),
        0.5 * (r*q0 + q*q1 - p*q2),
    )


def quaternion_derivative(q: np.ndarray, omega: np.ndarray) -> np.ndarray:
    """Time derivative of a body-to-base quaternion.

    Args:
        q: Quaternion [q0, q1, q2, q3] (body to base frame)
        omega: Angular velocity in body frame [p, q, r] [rad/s]

    Returns:
        dq/dt, same dtype as ``q``
    """
    rates = _quaternion_rates(
        float(q[0]), float(q[1]), float(q[2]), float(q[3]),
        float(omega[0]), float(omega[1]), float(omega[2]),
    )
    return np.asarray(rates, dtype=q.dtype)


# =============================================================================
# Rotation Matrices
# =============================================================================


@beartype
def rotation_x(angle: float) -> NDArray[np.float64]:
    """Active rotation about the x axis."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])


@beartype
def rotation_y(angle: float) -> NDArray[np.float64]:
    """Active rotation about the y axis."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


@beartype
def rotation_z(angle: float) -> NDArray[np.float64]:
    """Active rotation about the z axis."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


@beartype
def cross_product_matrix(vector: NDArray[np.float64]) -> NDArray[np.float64]:
    """Skew-symmetric matrix [v x] such that [v x] @ u = v x u."""
    x, y, z = vector
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


@beartype
def angular_velocity_from_rotation_matrices(
    rotation_to_target_frame: NDArray[np.float64],
    derivative_of_rotation_to_base_frame: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Angular velocity of the target frame, expressed in the base frame.

    Uses [w x] = dR_{base<-target}/dt @ R_{target<-base}.
    """
    cross = derivative_of_rotation_to_base_frame @ rotation_to_target_frame
    return np.array([cross[2, 1], cross[0, 2], cross[1, 0]])


@beartype
def derivative_of_rotation_to_target_frame(
    rotation_to_target_frame: NDArray[np.float64],
    angular_velocity_in_base_frame: NDArray[np.float64],
) -> NDArray[np.float64]:
    """dR_{target<-base}/dt from the rotation and the frame angular velocity."""
    return cross_product_matrix(
        -rotation_to_target_frame @ angular_velocity_in_base_frame
    ) @ rotation_to_target_frame
