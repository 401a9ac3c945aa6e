"""Propagation: environment updates, integrators, termination and the simulator.

Example:
    >>> from trajsim.simulation import SingleArcSimulator, IntegratorSettings, PropagatorSettings
    >>> simulator = SingleArcSimulator()
    >>> simulator.initialize(bodies, IntegratorSettings(), x0, 0.0, settings)
    >>> simulator.run()
"""

from trajsim.simulation.dependent_variables import DependentVariable
from trajsim.simulation.environment_updater import (
    ClosureBinding,
    EnvironmentNode,
    EnvironmentUpdater,
    create_environment_updater,
)
from trajsim.simulation.integrators import (
    EulerIntegrator,
    Integrator,
    RK4Integrator,
    RKF45Integrator,
    StepResult,
)
from trajsim.simulation.results import SolutionHistory
from trajsim.simulation.settings import (
    IntegratorSettings,
    IntegratorType,
    PropagatorSettings,
    create_integrator,
)
from trajsim.simulation.simulator import (
    BaseSimulator,
    PropagationStatus,
    SimulatorState,
    SingleArcSimulator,
)
from trajsim.simulation.termination import (
    CustomTermination,
    DependentVariableTermination,
    HybridTermination,
    TerminationCondition,
    TimeTermination,
)

__all__ = [
    # Simulator
    "BaseSimulator",
    "SingleArcSimulator",
    "SimulatorState",
    "PropagationStatus",
    "SolutionHistory",
    # Settings
    "IntegratorSettings",
    "IntegratorType",
    "PropagatorSettings",
    "create_integrator",
    # Environment updates
    "ClosureBinding",
    "EnvironmentNode",
    "EnvironmentUpdater",
    "create_environment_updater",
    # Integrators
    "Integrator",
    "StepResult",
    "EulerIntegrator",
    "RK4Integrator",
    "RKF45Integrator",
    # Termination
    "TerminationCondition",
    "TimeTermination",
    "CustomTermination",
    "DependentVariableTermination",
    "HybridTermination",
    "DependentVariable",
]
