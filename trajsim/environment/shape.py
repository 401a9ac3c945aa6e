"""Body shape models, used to turn body-fixed positions into altitude."""

from abc import ABC, abstractmethod

import numpy as np
from beartype import beartype
from numpy.typing import NDArray


class BodyShape(ABC):
    """Reference surface of a central body."""

    @abstractmethod
    def altitude(self, body_fixed_position: NDArray[np.float64]) -> float:
        """Height above the surface [m] of a body-fixed position."""

    @property
    @abstractmethod
    def average_radius(self) -> float:
        """Mean radius [m]."""


@beartype
class SphereShape(BodyShape):
    """Sphere of constant radius."""

    def __init__(self, radius: float) -> None:
        if radius <= 0.0:
            raise ValueError(f"Radius must be positive, got {radius}")
        self.radius = radius

    @property
    def average_radius(self) -> float:
        return self.radius

    def altitude(self, body_fixed_position: NDArray[np.float64]) -> float:
        return float(np.linalg.norm(body_fixed_position)) - self.radius


@beartype
class OblateSpheroidShape(BodyShape):
    """Oblate spheroid; altitude is approximated along the geocentric radius.

    Args:
        equatorial_radius: Semi-major axis [m]
        flattening: (a - b) / a
    """

    def __init__(self, equatorial_radius: float, flattening: float) -> None:
        if equatorial_radius <= 0.0 or not 0.0 <= flattening < 1.0:
            raise ValueError("Invalid spheroid parameters")
        self.equatorial_radius = equatorial_radius
        self.flattening = flattening

    @property
    def polar_radius(self) -> float:
        return self.equatorial_radius * (1.0 - self.flattening)

    @property
    def average_radius(self) -> float:
        return (2.0 * self.equatorial_radius + self.polar_radius) / 3.0

    def altitude(self, body_fixed_position: NDArray[np.float64]) -> float:
        r = float(np.linalg.norm(body_fixed_position))
        if r == 0.0:
            return -self.polar_radius
        sin_lat = float(body_fixed_position[2]) / r
        a, b = self.equatorial_radius, self.polar_radius
        # Radius of the ellipse along the geocentric direction
        surface_radius = a * b / np.sqrt((b * np.sqrt(1.0 - sin_lat**2)) ** 2 + (a * sin_lat) ** 2)
        return r - float(surface_radius)
