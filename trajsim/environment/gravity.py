"""Gravity field models.

Point-mass and J2 (oblateness) fields. The acceleration kernels are
numba-compiled; J2 is evaluated in the central body's body-fixed frame.

Reference:
- WGS84 ellipsoid parameters
- EGM96 geopotential model (J2 term only)

Example:
    >>> from trajsim.environment.gravity import GravityField
    >>>
    >>> earth = GravityField.earth()
    >>> g = earth.acceleration(np.array([7.0e6, 0.0, 0.0]))
"""

import numpy as np
from beartype import beartype
from numba import njit
from numpy.typing import NDArray

# =============================================================================
# Constants
# =============================================================================

MU_EARTH: float = 3.986004418e14  # [m^3/s^2]
R_EARTH_EQ: float = 6378137.0  # [m]
R_EARTH_POLAR: float = 6356752.314245  # [m]
J2_EARTH: float = 1.08262668e-3
OMEGA_EARTH: float = 7.2921159e-5  # [rad/s]

# Radius below which the field is clamped
_MIN_RADIUS: float = 1e3


# =============================================================================
# Numba-Optimized Core Functions
# =============================================================================


@njit(cache=True, fastmath=True)
def _point_mass_gravity(x: float, y: float, z: float, mu: float) -> tuple[float, float, float]:
    """g = -mu/r^3 * r"""
    r_sq = x*x + y*y + z*z
    r = np.sqrt(r_sq)

    if r < _MIN_RADIUS:
        r = _MIN_RADIUS
        r_sq = r * r

    g_over_r = mu / (r_sq * r)

    return (-g_over_r * x, -g_over_r * y, -g_over_r * z)


@njit(cache=True, fastmath=True)
def _j2_perturbation(
    x: float, y: float, z: float,
    mu: float, r_eq: float, j2: float,
) -> tuple[float, float, float]:
    """J2 part of the acceleration only (central term excluded)."""
    r_sq = x*x + y*y + z*z
    r = np.sqrt(r_sq)

    if r < _MIN_RADIUS:
        r = _MIN_RADIUS
        r_sq = r * r

    common = mu / (r * r_sq)
    factor = 1.5 * j2 * (r_eq / r) ** 2
    z_r_sq = (z / r) ** 2

    ax = common * x * factor * (5.0 * z_r_sq - 1.0)
    ay = common * y * factor * (5.0 * z_r_sq - 1.0)
    az = common * z * factor * (5.0 * z_r_sq - 3.0)

    return (ax, ay, az)


# =============================================================================
# Gravity Field
# =============================================================================


@beartype
class GravityField:
    """Gravity field of a central body.

    Args:
        gravitational_parameter: mu [m^3/s^2]
        reference_radius: Equatorial radius used by the J2 term [m]
        j2: Unnormalized second zonal coefficient (0 for point mass)
    """

    def __init__(
        self,
        gravitational_parameter: float,
        reference_radius: float = 0.0,
        j2: float = 0.0,
    ) -> None:
        if gravitational_parameter <= 0.0:
            raise ValueError(f"Gravitational parameter must be positive, got {gravitational_parameter}")
        self.gravitational_parameter = gravitational_parameter
        self.reference_radius = reference_radius
        self.j2 = j2

    @classmethod
    def earth(cls) -> "GravityField":
        return cls(MU_EARTH, R_EARTH_EQ, J2_EARTH)

    def point_mass_acceleration(self, relative_position: NDArray[np.float64]) -> NDArray[np.float64]:
        """Central-term acceleration at a position relative to the body center."""
        x, y, z = (float(c) for c in relative_position)
        return np.array(_point_mass_gravity(x, y, z, self.gravitational_parameter))

    def j2_acceleration(self, body_fixed_position: NDArray[np.float64]) -> NDArray[np.float64]:
        """J2 perturbation at a position in the body-fixed frame."""
        x, y, z = (float(c) for c in body_fixed_position)
        return np.array(_j2_perturbation(
            x, y, z, self.gravitational_parameter, self.reference_radius, self.j2,
        ))

    def acceleration(self, body_fixed_position: NDArray[np.float64]) -> NDArray[np.float64]:
        """Total acceleration in the body-fixed frame [m/s^2]."""
        return self.point_mass_acceleration(body_fixed_position) + self.j2_acceleration(body_fixed_position)

    def potential(self, body_fixed_position: NDArray[np.float64]) -> float:
        """Gravitational potential per unit mass [J/kg]."""
        r = max(float(np.linalg.norm(body_fixed_position)), _MIN_RADIUS)
        sin_lat = float(body_fixed_position[2]) / r
        mu = self.gravitational_parameter
        return -mu / r + mu * self.j2 * self.reference_radius ** 2 / (2 * r ** 3) * (3 * sin_lat ** 2 - 1)
