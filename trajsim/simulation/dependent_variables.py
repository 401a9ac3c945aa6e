"""Dependent variables recorded alongside the propagated state.

A dependent variable is a named function of the body registry, evaluated
after the environment has been brought up to date for an accepted step.
Each variable lists the (body, capability) pairs it reads, so that a
missing environment model is reported by ``initialize`` instead of
failing mid-run.

Example:
    >>> variables = [altitude("Vehicle", "Earth"), mach_number("Vehicle")]
"""

from dataclasses import dataclass
from typing import Callable

import numpy as np
from numpy.typing import NDArray

from trajsim.environment.aerodynamic_angles import BODY_ANGLES
from trajsim.environment.bodies import Capability


@dataclass(frozen=True)
class DependentVariable:
    """Named quantity of ``size`` values computed from the body registry."""
    name: str
    function: Callable
    size: int = 1
    required_capabilities: tuple[tuple[str, Capability], ...] = ()

    def evaluate(self, bodies) -> NDArray[np.float64]:
        values = np.atleast_1d(np.asarray(self.function(bodies), dtype=np.float64))
        if values.shape != (self.size,):
            raise ValueError(f"Dependent variable {self.name} returned shape {values.shape}, expected ({self.size},)")
        return values


def altitude(body_name: str, central_body_name: str) -> DependentVariable:
    """Altitude above the central body shape [m]."""
    def compute(bodies):
        body = bodies.get_body(body_name)
        central = bodies.get_body(central_body_name)
        relative = body.position - central.position
        return central.shape.altitude(central.rotation_state.rotation_to_target_frame @ relative)
    return DependentVariable(
        f"altitude {body_name} w.r.t. {central_body_name}",
        compute,
        required_capabilities=((central_body_name, Capability.SHAPE),),
    )


def relative_distance(body_name: str, other_body_name: str) -> DependentVariable:
    def compute(bodies):
        return np.linalg.norm(bodies.get_body(body_name).position - bodies.get_body(other_body_name).position)
    return DependentVariable(f"distance {body_name} - {other_body_name}", compute)


def mach_number(body_name: str) -> DependentVariable:
    return DependentVariable(
        f"mach number {body_name}",
        lambda bodies: bodies.get_body(body_name).flight_conditions.mach_number,
        required_capabilities=((body_name, Capability.FLIGHT_CONDITIONS),),
    )


def aerodynamic_angles(body_name: str) -> DependentVariable:
    """[attack, sideslip, bank] [rad]."""
    return DependentVariable(
        f"aerodynamic angles {body_name}",
        lambda bodies: bodies.get_body(body_name).angle_calculator.body_angles,
        size=len(BODY_ANGLES),
        required_capabilities=((body_name, Capability.FLIGHT_CONDITIONS),),
    )


def body_mass(body_name: str) -> DependentVariable:
    return DependentVariable(
        f"mass {body_name}",
        lambda bodies: bodies.get_body(body_name).current_mass,
        required_capabilities=((body_name, Capability.MASS),),
    )
