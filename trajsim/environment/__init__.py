"""Environment models: bodies, rotations, atmosphere, gravity, aerodynamic angles.

Available models:
    ConstantRotation, SimpleRotation, TabulatedRotation: Ephemeris-backed rotations
    AerodynamicAngleRotation: Rotation defined by aerodynamic angles
    AerodynamicAngleCalculator: Resolves latitude, longitude, heading,
        flight-path angle and body angles
    StandardAtmosphere, ExponentialAtmosphere: Atmosphere models
    GravityField: Point-mass and J2 gravity
"""

from trajsim.environment.aerodynamic_angles import (
    AerodynamicAngleCalculator,
    AerodynamicAngleRotation,
    AerodynamicAngles,
    AerodynamicsReferenceFrames,
    AngleDriven,
    FunctionAngleSource,
    RotationDriven,
    create_aerodynamic_angle_rotation,
    verify_orientation_closure,
)
from trajsim.environment.atmosphere import AtmosphereModel, ExponentialAtmosphere, StandardAtmosphere
from trajsim.environment.bodies import Body, Capability, SystemOfBodies
from trajsim.environment.ephemeris import ConstantEphemeris, Ephemeris, TabulatedEphemeris
from trajsim.environment.flight_conditions import (
    AerodynamicGuidance,
    AtmosphericFlightConditions,
    TrimOrientationCalculator,
    create_flight_conditions,
    set_guidance_angle_functions,
    set_trimmed_conditions,
)
from trajsim.environment.gravity import GravityField
from trajsim.environment.rotation import (
    ConstantRotation,
    RotationalEphemeris,
    RotationState,
    SimpleRotation,
    TabulatedRotation,
)
from trajsim.environment.shape import BodyShape, OblateSpheroidShape, SphereShape

__all__ = [
    # Bodies
    "Body",
    "Capability",
    "SystemOfBodies",
    # Rotations
    "RotationState",
    "RotationalEphemeris",
    "ConstantRotation",
    "SimpleRotation",
    "TabulatedRotation",
    # Aerodynamic angles
    "AerodynamicAngleCalculator",
    "AerodynamicAngleRotation",
    "AerodynamicAngles",
    "AerodynamicsReferenceFrames",
    "AngleDriven",
    "RotationDriven",
    "FunctionAngleSource",
    "create_aerodynamic_angle_rotation",
    "verify_orientation_closure",
    # Flight conditions
    "AtmosphericFlightConditions",
    "AerodynamicGuidance",
    "TrimOrientationCalculator",
    "create_flight_conditions",
    "set_guidance_angle_functions",
    "set_trimmed_conditions",
    # Models
    "AtmosphereModel",
    "StandardAtmosphere",
    "ExponentialAtmosphere",
    "GravityField",
    "BodyShape",
    "SphereShape",
    "OblateSpheroidShape",
    "Ephemeris",
    "ConstantEphemeris",
    "TabulatedEphemeris",
]
