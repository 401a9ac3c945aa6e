"""Vehicle aerodynamic coefficient models and tabulated coefficient files."""

from trajsim.vehicle.aerodynamics import (
    AerodynamicCoefficientInterface,
    AerodynamicCoefficientsIndependentVariables,
    ConstantCoefficients,
    CustomCoefficients,
    SimpleCoefficients,
    TabulatedCoefficients,
)
from trajsim.vehicle.coefficient_files import read_coefficient_file, read_coefficients

__all__ = [
    "AerodynamicCoefficientInterface",
    "AerodynamicCoefficientsIndependentVariables",
    "ConstantCoefficients",
    "SimpleCoefficients",
    "TabulatedCoefficients",
    "CustomCoefficients",
    "read_coefficient_file",
    "read_coefficients",
]
