"""trajsim - Numerical propagation of body trajectories and orientations.

Bodies carry environment models (ephemeris, rotation, atmosphere, gravity,
aerodynamic coefficients). A single-arc simulator integrates their
translational, rotational and mass states, refreshing every environment
model once per evaluated (time, state) in dependency order.

Example:
    >>> from trajsim import SystemOfBodies, SingleArcSimulator, PropagatorSettings
    >>> from trajsim import IntegratorSettings, TimeTermination, ConstantAcceleration
    >>>
    >>> bodies = SystemOfBodies()
    >>> bodies.create_empty_body("Earth")
    >>> bodies.create_empty_body("Vehicle")
    >>> settings = PropagatorSettings(
    ...     bodies_to_propagate=["Vehicle"],
    ...     central_bodies=["Earth"],
    ...     termination=TimeTermination(10.0),
    ...     accelerations={"Vehicle": [ConstantAcceleration("Vehicle", np.array([1.0, 0.0, 0.0]))]},
    ... )
    >>> simulator = SingleArcSimulator()
    >>> simulator.initialize(bodies, IntegratorSettings(step_size=0.5), np.zeros(6), 0.0, settings)
    >>> simulator.run()
    >>> simulator.get_solution().final_state[:3]
    array([50.,  0.,  0.])
"""

__version__ = "0.1.0"

from trajsim.environment import (
    AerodynamicAngleCalculator,
    AerodynamicAngleRotation,
    Body,
    Capability,
    ConstantRotation,
    SimpleRotation,
    SystemOfBodies,
    TabulatedRotation,
    create_aerodynamic_angle_rotation,
    create_flight_conditions,
)
from trajsim.dynamics.models import (
    AerodynamicAcceleration,
    ConstantAcceleration,
    FromThrustMassRate,
    J2Gravity,
    PointMassGravity,
    ThrustAcceleration,
)
from trajsim.exceptions import (
    AmbiguousOrientationClosure,
    CircularEnvironmentDependency,
    ConfigurationError,
    DimensionMismatch,
    IncompleteForceModel,
    MissingEnvironmentModel,
    NumericalPropagationError,
    SimulatorStateError,
)
from trajsim.simulation import (
    IntegratorSettings,
    IntegratorType,
    PropagationStatus,
    PropagatorSettings,
    SingleArcSimulator,
    SolutionHistory,
    TimeTermination,
)
from trajsim.timing import Epoch

__all__ = [
    "__version__",
    # Bodies and environment
    "Body",
    "Capability",
    "SystemOfBodies",
    "ConstantRotation",
    "SimpleRotation",
    "TabulatedRotation",
    "AerodynamicAngleCalculator",
    "AerodynamicAngleRotation",
    "create_aerodynamic_angle_rotation",
    "create_flight_conditions",
    # Models
    "PointMassGravity",
    "J2Gravity",
    "ConstantAcceleration",
    "ThrustAcceleration",
    "AerodynamicAcceleration",
    "FromThrustMassRate",
    # Simulation
    "IntegratorSettings",
    "IntegratorType",
    "PropagatorSettings",
    "SingleArcSimulator",
    "PropagationStatus",
    "SolutionHistory",
    "TimeTermination",
    # Time
    "Epoch",
    # Errors
    "ConfigurationError",
    "MissingEnvironmentModel",
    "CircularEnvironmentDependency",
    "AmbiguousOrientationClosure",
    "DimensionMismatch",
    "IncompleteForceModel",
    "NumericalPropagationError",
    "SimulatorStateError",
]
