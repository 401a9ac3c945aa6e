"""Atmosphere models.

Every model answers density, pressure, temperature and speed of sound as a
function of (altitude, longitude, latitude, time). The two shipped models
ignore everything but altitude.

Models available:
- StandardAtmosphere: US Standard Atmosphere 1976, 0-86 km
- ExponentialAtmosphere: isothermal exponential density decay

Reference: U.S. Standard Atmosphere, 1976 (NASA-TM-X-74335)

Example:
    >>> from trajsim.environment.atmosphere import StandardAtmosphere
    >>>
    >>> atm = StandardAtmosphere()
    >>> rho = atm.density(10000.0)
    >>> a = atm.speed_of_sound(10000.0)
"""

from abc import ABC, abstractmethod

import numpy as np
from beartype import beartype

from trajsim.timing import TimeLike

# =============================================================================
# Constants
# =============================================================================

T0 = 288.15  # Sea level temperature [K]
P0 = 101325.0  # Sea level pressure [Pa]
RHO0 = 1.225  # Sea level density [kg/m^3]

R_AIR = 287.05287  # Specific gas constant for dry air [J/(kg·K)]
GAMMA_AIR = 1.4
G0 = 9.80665  # [m/s^2]

R_EARTH_GEOPOTENTIAL = 6356766.0  # [m]

# (base_altitude_km, base_temp_K, lapse_rate_K_per_km)
LAYERS = [
    (0.0, 288.15, -6.5),
    (11.0, 216.65, 0.0),
    (20.0, 216.65, 1.0),
    (32.0, 228.65, 2.8),
    (47.0, 270.65, 0.0),
    (51.0, 270.65, -2.8),
    (71.0, 214.65, -2.0),
]

UPPER_LIMIT = 86000.0  # [m]


# =============================================================================
# Interface
# =============================================================================


class AtmosphereModel(ABC):
    """Atmospheric properties at a point."""

    @abstractmethod
    def density(
        self, altitude: float, longitude: float = 0.0, latitude: float = 0.0, time: TimeLike = 0.0
    ) -> float:
        """Density [kg/m^3]."""

    @abstractmethod
    def pressure(
        self, altitude: float, longitude: float = 0.0, latitude: float = 0.0, time: TimeLike = 0.0
    ) -> float:
        """Static pressure [Pa]."""

    @abstractmethod
    def temperature(
        self, altitude: float, longitude: float = 0.0, latitude: float = 0.0, time: TimeLike = 0.0
    ) -> float:
        """Static temperature [K]."""

    def speed_of_sound(
        self, altitude: float, longitude: float = 0.0, latitude: float = 0.0, time: TimeLike = 0.0
    ) -> float:
        """Speed of sound [m/s] for a calorically perfect gas."""
        return float(np.sqrt(GAMMA_AIR * R_AIR * self.temperature(altitude, longitude, latitude, time)))


# =============================================================================
# US 1976
# =============================================================================


@beartype
class StandardAtmosphere(AtmosphereModel):
    """US Standard Atmosphere 1976.

    Below sea level the sea-level values are returned; above 86 km the
    pressure and density are zero.
    """

    def __init__(self) -> None:
        self._base_pressures = self._compute_base_pressures()

    @staticmethod
    def _compute_base_pressures() -> list[float]:
        pressures = [P0]
        for i in range(len(LAYERS) - 1):
            h0, t_base, lapse = LAYERS[i]
            dh = (LAYERS[i + 1][0] - h0) * 1000.0
            pressures.append(_layer_pressure(pressures[-1], t_base, lapse, dh))
        return pressures

    @staticmethod
    def _layer(altitude: float) -> tuple[int, float]:
        """Layer index and height above the layer base [m]."""
        h_km = R_EARTH_GEOPOTENTIAL * altitude / (R_EARTH_GEOPOTENTIAL + altitude) / 1000.0
        for i in range(len(LAYERS) - 1, -1, -1):
            if h_km >= LAYERS[i][0]:
                return i, (h_km - LAYERS[i][0]) * 1000.0
        return 0, 0.0

    def temperature(
        self, altitude: float, longitude: float = 0.0, latitude: float = 0.0, time: TimeLike = 0.0
    ) -> float:
        if altitude < 0.0:
            return T0
        if altitude > UPPER_LIMIT:
            return 186.87
        idx, dh = self._layer(altitude)
        _, t_base, lapse = LAYERS[idx]
        return t_base + lapse / 1000.0 * dh

    def pressure(
        self, altitude: float, longitude: float = 0.0, latitude: float = 0.0, time: TimeLike = 0.0
    ) -> float:
        if altitude < 0.0:
            return P0
        if altitude > UPPER_LIMIT:
            return 0.0
        idx, dh = self._layer(altitude)
        _, t_base, lapse = LAYERS[idx]
        return _layer_pressure(self._base_pressures[idx], t_base, lapse, dh)

    def density(
        self, altitude: float, longitude: float = 0.0, latitude: float = 0.0, time: TimeLike = 0.0
    ) -> float:
        temperature = self.temperature(altitude)
        return self.pressure(altitude) / (R_AIR * temperature)


def _layer_pressure(base_pressure: float, base_temperature: float, lapse_km: float, dh: float) -> float:
    if abs(lapse_km) < 1e-10:
        return float(base_pressure * np.exp(-G0 * dh / (R_AIR * base_temperature)))
    lapse = lapse_km / 1000.0
    temperature = base_temperature + lapse * dh
    return float(base_pressure * (temperature / base_temperature) ** (-G0 / (R_AIR * lapse)))


# =============================================================================
# Exponential
# =============================================================================


@beartype
class ExponentialAtmosphere(AtmosphereModel):
    """Isothermal atmosphere, rho = rho0 * exp(-h / H).

    Args:
        scale_height: Density scale height H [m]
        surface_density: Density at zero altitude [kg/m^3]
        constant_temperature: Temperature of the whole column [K]
    """

    def __init__(
        self,
        scale_height: float = 7200.0,
        surface_density: float = RHO0,
        constant_temperature: float = 246.0,
    ) -> None:
        if scale_height <= 0.0:
            raise ValueError(f"Scale height must be positive, got {scale_height}")
        self.scale_height = scale_height
        self.surface_density = surface_density
        self.constant_temperature = constant_temperature

    def density(
        self, altitude: float, longitude: float = 0.0, latitude: float = 0.0, time: TimeLike = 0.0
    ) -> float:
        return float(self.surface_density * np.exp(-altitude / self.scale_height))

    def pressure(
        self, altitude: float, longitude: float = 0.0, latitude: float = 0.0, time: TimeLike = 0.0
    ) -> float:
        return self.density(altitude) * R_AIR * self.constant_temperature

    def temperature(
        self, altitude: float, longitude: float = 0.0, latitude: float = 0.0, time: TimeLike = 0.0
    ) -> float:
        return self.constant_temperature
