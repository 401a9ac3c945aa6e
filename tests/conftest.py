"""Shared body sets for tests."""

import numpy as np
import pytest

from trajsim.environment.atmosphere import ExponentialAtmosphere
from trajsim.environment.bodies import SystemOfBodies
from trajsim.environment.ephemeris import ConstantEphemeris
from trajsim.environment.gravity import GravityField
from trajsim.environment.rotation import SimpleRotation
from trajsim.environment.shape import SphereShape
from trajsim.vehicle.aerodynamics import ConstantCoefficients

EARTH_RADIUS = 6378137.0
EARTH_ROTATION_RATE = 7.2921159e-5


def vehicle_state(altitude=100e3, speed=7000.0, flight_path=0.1):
    """Global state above (lat 0, lon 0), flying north-up."""
    r = EARTH_RADIUS + altitude
    return np.array([r, 0.0, 0.0, speed * np.sin(flight_path), 0.0, speed * np.cos(flight_path)])


@pytest.fixture
def earth_bodies():
    """Earth (rotating, with atmosphere) and a massive vehicle without orientation."""
    bodies = SystemOfBodies()
    earth = bodies.create_empty_body("Earth")
    earth.rotation_model = SimpleRotation(np.eye(3), EARTH_ROTATION_RATE, target_frame="IAU_Earth")
    earth.atmosphere = ExponentialAtmosphere()
    earth.shape = SphereShape(EARTH_RADIUS)
    earth.gravity_field = GravityField.earth()

    vehicle = bodies.create_empty_body("Vehicle")
    vehicle.ephemeris = ConstantEphemeris(vehicle_state())
    vehicle.mass = 1000.0
    vehicle.aerodynamic_coefficients = ConstantCoefficients(
        np.array([1.5, 0.0, 0.3]), reference_area=2.0, reference_length=1.0,
    )
    return bodies


@pytest.fixture
def free_space_bodies():
    """Central body at the origin and a vehicle, no environment models."""
    bodies = SystemOfBodies()
    bodies.create_empty_body("Earth")
    vehicle = bodies.create_empty_body("Vehicle")
    vehicle.mass = 100.0
    return bodies
