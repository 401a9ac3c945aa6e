"""Aerodynamic coefficient models.

A coefficient interface maps the current values of its independent
variables (Mach number, angles, altitude) to force coefficients
[C_D, C_S, C_L] and moment coefficients [C_l, C_m, C_n].

Models available:
- ConstantCoefficients: fixed coefficients
- SimpleCoefficients: Mach-dependent drag with angle of attack effects
- TabulatedCoefficients: N-dimensional grid interpolation
- CustomCoefficients: user function

Any model can carry control surface increments: coefficient models with
CONTROL_SURFACE_DEFLECTION among their independent variables, whose
coefficients are added to the base coefficients.

Conventions:
    By default force coefficients are given in the aerodynamic frame and
    positive along the negative axes (drag opposes the x axis), as used for
    C_D / C_S / C_L. Moment coefficients are about the body axes.

Example:
    >>> from trajsim.vehicle.aerodynamics import SimpleCoefficients
    >>>
    >>> aero = SimpleCoefficients(Cd0=0.3, reference_area=1.0)
    >>> forces, moments = aero.compute_coefficients([1.5, 0.05])
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Callable

import numpy as np
from beartype import beartype
from numpy.typing import NDArray
from scipy.interpolate import RegularGridInterpolator

from trajsim.exceptions import DimensionMismatch
from trajsim.vehicle.coefficient_files import read_coefficients


class AerodynamicCoefficientsIndependentVariables(Enum):
    MACH_NUMBER = "mach number"
    ANGLE_OF_ATTACK = "angle of attack"
    ANGLE_OF_SIDESLIP = "angle of sideslip"
    ALTITUDE = "altitude"
    CONTROL_SURFACE_DEFLECTION = "control surface deflection"


Variables = AerodynamicCoefficientsIndependentVariables


# =============================================================================
# Interface
# =============================================================================


class AerodynamicCoefficientInterface(ABC):
    """Base class of coefficient models.

    Subclasses provide ``reference_area``, ``reference_length``,
    ``independent_variables`` and ``compute_coefficients``.
    """

    reference_area: float
    reference_length: float
    independent_variables: tuple
    are_coefficients_in_aerodynamic_frame: bool = True
    are_coefficients_in_negative_axis_direction: bool = True
    control_surface_increments = MappingProxyType({})

    @abstractmethod
    def compute_coefficients(
        self, values: list[float]
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """(force, moment) coefficients for ordered independent variable values."""

    def set_control_surface_increments(self, increments: dict[str, "AerodynamicCoefficientInterface"]) -> None:
        """Attach per-surface increment models, keyed by control surface name.

        Raises:
            ValueError: If an increment does not depend on the deflection or
                uses other frame/sign conventions than this model
        """
        for name, increment in increments.items():
            if increment.variable_index(Variables.CONTROL_SURFACE_DEFLECTION) is None:
                raise ValueError(f"Increment of control surface {name} does not depend on its deflection")
            if (
                increment.are_coefficients_in_aerodynamic_frame != self.are_coefficients_in_aerodynamic_frame
                or increment.are_coefficients_in_negative_axis_direction
                != self.are_coefficients_in_negative_axis_direction
            ):
                raise ValueError(f"Increment of control surface {name} uses different coefficient conventions")
        self.control_surface_increments = MappingProxyType(dict(increments))

    def total_coefficients(
        self,
        values: list[float],
        control_surface_values: dict[str, list[float]] | None = None,
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Base coefficients plus the increment of every control surface."""
        if len(values) != len(self.independent_variables):
            raise DimensionMismatch(
                f"Expected {len(self.independent_variables)} independent variables, got {len(values)}"
            )
        forces, moments = self.compute_coefficients(values)
        for name, increment in self.control_surface_increments.items():
            surface_values = (control_surface_values or {}).get(name)
            if surface_values is None or len(surface_values) != len(increment.independent_variables):
                raise DimensionMismatch(
                    f"Control surface {name} expects {len(increment.independent_variables)} independent variables"
                )
            delta_forces, delta_moments = increment.compute_coefficients(surface_values)
            forces = forces + delta_forces
            moments = moments + delta_moments
        return forces, moments

    def update_current_coefficients(
        self,
        values: list[float],
        control_surface_values: dict[str, list[float]] | None = None,
    ) -> None:
        self.current_force_coefficients, self.current_moment_coefficients = self.total_coefficients(
            values, control_surface_values
        )

    def variable_index(self, variable: Variables) -> int | None:
        try:
            return list(self.independent_variables).index(variable)
        except ValueError:
            return None

    def _reset_current_coefficients(self) -> None:
        self.current_force_coefficients = np.zeros(3)
        self.current_moment_coefficients = np.zeros(3)


# =============================================================================
# Models
# =============================================================================


@beartype
@dataclass
class ConstantCoefficients(AerodynamicCoefficientInterface):
    """Coefficients independent of flight conditions."""
    force_coefficients: NDArray[np.float64]
    reference_area: float = 1.0
    reference_length: float = 1.0
    moment_coefficients: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    are_coefficients_in_aerodynamic_frame: bool = True
    are_coefficients_in_negative_axis_direction: bool = True
    independent_variables: tuple = ()

    def __post_init__(self) -> None:
        if self.force_coefficients.shape != (3,) or self.moment_coefficients.shape != (3,):
            raise DimensionMismatch("Constant coefficients must have 3 components")
        self._reset_current_coefficients()

    def compute_coefficients(self, values: list[float]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        return self.force_coefficients.copy(), self.moment_coefficients.copy()


@beartype
@dataclass
class SimpleCoefficients(AerodynamicCoefficientInterface):
    """Mach and angle-of-attack dependent coefficients.

    Drag is piecewise in Mach number:
    - Subsonic (M < 0.8): Cd = Cd0
    - Transonic (0.8 < M < 1.2): Cd rises to a peak at M=1
    - Supersonic (M > 1.2): Cd decreases with Mach

    Lift is linear in angle of attack with a Prandtl-Glauert (subsonic) or
    Ackeret (supersonic) correction. Pitch moment is Cm0 + Cm_alpha * alpha.

    Attributes:
        Cd0: Zero-lift drag coefficient at subsonic speeds
        reference_area: Aerodynamic reference area [m^2]
        reference_length: Moment reference length [m]
        transonic_peak: Multiplier for Cd at M=1
        Cl_alpha: Lift curve slope [1/rad]
        Cd_alpha: Drag increase per rad^2 of alpha
        Cm0: Pitch moment at zero angle of attack
        Cm_alpha: Pitch moment slope [1/rad], negative when statically stable
    """
    Cd0: float = 0.3
    reference_area: float = 1.0  # [m^2]
    reference_length: float = 1.0  # [m]
    transonic_peak: float = 1.5
    Cl_alpha: float = 2.0  # [1/rad]
    Cd_alpha: float = 0.5
    Cm0: float = 0.0
    Cm_alpha: float = -2.0  # [1/rad]
    independent_variables: tuple = (Variables.MACH_NUMBER, Variables.ANGLE_OF_ATTACK)

    def __post_init__(self) -> None:
        self._reset_current_coefficients()

    def drag_coefficient(self, mach: float, alpha: float = 0.0) -> float:
        if mach < 0.8:
            cd = self.Cd0
        elif mach < 1.0:
            frac = (mach - 0.8) / 0.2
            cd = self.Cd0 * (1 + frac * (self.transonic_peak - 1))
        elif mach < 1.2:
            frac = (mach - 1.0) / 0.2
            cd = self.Cd0 * self.transonic_peak * (1 - 0.3 * frac)
        else:
            cd = self.Cd0 * self.transonic_peak * 0.7 / np.sqrt(mach**2 - 1 + 0.1)
        return float(cd + self.Cd_alpha * alpha**2)

    def lift_coefficient(self, mach: float, alpha: float) -> float:
        if mach < 1.0:
            return float(self.Cl_alpha * alpha / np.sqrt(1 - mach**2 + 0.01))
        return float(4 * alpha / np.sqrt(mach**2 - 1 + 0.01))

    def compute_coefficients(self, values: list[float]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        mach, alpha = float(values[0]), float(values[1])
        forces = np.array([self.drag_coefficient(mach, alpha), 0.0, self.lift_coefficient(mach, alpha)])
        moments = np.array([0.0, self.Cm0 + self.Cm_alpha * alpha, 0.0])
        return forces, moments


class TabulatedCoefficients(AerodynamicCoefficientInterface):
    """Coefficients interpolated (multi-linearly) on a rectilinear grid.

    Values outside the grid are clamped to the grid boundary.

    Args:
        independent_variables: Variable of each grid axis
        grid: Grid points of each axis
        force_coefficients: Array of shape grid + (3,)
        moment_coefficients: Array of shape grid + (3,), zeros if omitted
    """

    @beartype
    def __init__(
        self,
        independent_variables: list[Variables] | tuple[Variables, ...],
        grid: list[NDArray[np.float64]],
        force_coefficients: NDArray[np.float64],
        moment_coefficients: NDArray[np.float64] | None = None,
        reference_area: float = 1.0,
        reference_length: float = 1.0,
        are_coefficients_in_aerodynamic_frame: bool = True,
        are_coefficients_in_negative_axis_direction: bool = True,
    ) -> None:
        if len(independent_variables) != len(grid):
            raise DimensionMismatch(
                f"{len(independent_variables)} independent variables but {len(grid)} grid axes"
            )
        shape = tuple(len(axis) for axis in grid) + (3,)
        if moment_coefficients is None:
            moment_coefficients = np.zeros(shape)
        for name, values in (("force", force_coefficients), ("moment", moment_coefficients)):
            if values.shape != shape:
                raise DimensionMismatch(f"Tabulated {name} coefficients have shape {values.shape}, expected {shape}")

        self.independent_variables = tuple(independent_variables)
        self.grid = grid
        self.reference_area = reference_area
        self.reference_length = reference_length
        self.are_coefficients_in_aerodynamic_frame = are_coefficients_in_aerodynamic_frame
        self.are_coefficients_in_negative_axis_direction = are_coefficients_in_negative_axis_direction

        self._lower = np.array([axis[0] for axis in grid])
        self._upper = np.array([axis[-1] for axis in grid])
        self._force = RegularGridInterpolator(tuple(grid), force_coefficients)
        self._moment = RegularGridInterpolator(tuple(grid), moment_coefficients)
        self._reset_current_coefficients()

    @classmethod
    def from_files(
        cls,
        independent_variables: list[Variables],
        force_files: dict[int, str | Path],
        moment_files: dict[int, str | Path] | None = None,
        **kwargs,
    ) -> "TabulatedCoefficients":
        """Build from per-component coefficient files (see ``coefficient_files``)."""
        dimensions = len(independent_variables)
        forces, grid = read_coefficients(force_files, dimensions)
        moments = None
        if moment_files:
            moments, moment_grid = read_coefficients(moment_files, dimensions)
            if any(not np.array_equal(a, b) for a, b in zip(grid, moment_grid)):
                raise DimensionMismatch("Force and moment coefficient files use different grids")
        return cls(independent_variables, grid, forces, moments, **kwargs)

    def compute_coefficients(self, values: list[float]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        point = np.clip(np.asarray(values, dtype=np.float64), self._lower, self._upper)[np.newaxis, :]
        return self._force(point)[0], self._moment(point)[0]


class CustomCoefficients(AerodynamicCoefficientInterface):
    """Coefficients from a function values -> (force, moment)."""

    def __init__(
        self,
        function: Callable,
        independent_variables: list[Variables] | tuple,
        reference_area: float = 1.0,
        reference_length: float = 1.0,
        are_coefficients_in_aerodynamic_frame: bool = True,
        are_coefficients_in_negative_axis_direction: bool = True,
    ) -> None:
        self.function = function
        self.independent_variables = tuple(independent_variables)
        self.reference_area = reference_area
        self.reference_length = reference_length
        self.are_coefficients_in_aerodynamic_frame = are_coefficients_in_aerodynamic_frame
        self.are_coefficients_in_negative_axis_direction = are_coefficients_in_negative_axis_direction
        self._reset_current_coefficients()

    def compute_coefficients(self, values: list[float]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        forces, moments = self.function(list(values))
        return np.asarray(forces, dtype=np.float64), np.asarray(moments, dtype=np.float64)
