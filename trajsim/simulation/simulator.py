"""Single-arc propagation of translational, rotational and mass states.

The simulator validates a complete configuration up front, then drives the
integrator step by step, refreshing the environment through the state
derivative model, recording every accepted step and checking termination.

A body set must not be propagated by two simulators at the same time.

Example:
    >>> simulator = SingleArcSimulator(set_integrated_result=True)
    >>> simulator.initialize(bodies, IntegratorSettings(IntegratorType.RK4, 0.5), x0, 0.0, settings)
    >>> status = simulator.run()
    >>> df = simulator.get_solution().to_dataframe()
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum, auto
from time import perf_counter

import numpy as np

from trajsim.dynamics.models import FromThrustMassRate
from trajsim.dynamics.state_derivative import PropagatorType, StateDerivativeModel, StateLayout
from trajsim.environment.aerodynamic_angles import verify_orientation_closure
from trajsim.environment.bodies import Capability
from trajsim.exceptions import (
    ConfigurationError,
    DimensionMismatch,
    MissingEnvironmentModel,
    NumericalPropagationError,
    SimulatorStateError,
)
from trajsim.simulation.environment_updater import EnvironmentUpdater, create_environment_updater
from trajsim.simulation.integrators import Integrator
from trajsim.simulation.results import SolutionHistory
from trajsim.simulation.settings import (
    IntegratorSettings,
    PropagatorSettings,
    create_integrator,
    validate_time_and_scalar_types,
)
from trajsim.simulation.termination import TerminationCondition
from trajsim.timing import TimeLike, convert_time, is_finite_time

logger = logging.getLogger(__name__)


class SimulatorState(Enum):
    UNCONFIGURED = auto()
    INITIALIZED = auto()
    RUNNING = auto()
    COMPLETED = auto()
    FAILED = auto()


class PropagationStatus(Enum):
    TERMINATED = auto()  # a termination condition fired
    EXHAUSTED = auto()   # max_steps reached
    FAILED = auto()


# =============================================================================
# Base
# =============================================================================


class BaseSimulator(ABC):
    """State machine shared by simulators.

    UNCONFIGURED -> INITIALIZED -> RUNNING -> COMPLETED | FAILED. A new
    ``initialize`` is needed before running again.
    """

    def __init__(self, clear_numerical_solutions: bool = False, set_integrated_result: bool = False) -> None:
        self.clear_numerical_solutions = clear_numerical_solutions
        self.set_integrated_result = set_integrated_result
        self.state = SimulatorState.UNCONFIGURED
        self.status: PropagationStatus | None = None
        self.bodies = None

    def _transition(self, allowed_from: tuple[SimulatorState, ...], target: SimulatorState) -> None:
        if self.state not in allowed_from:
            raise SimulatorStateError(
                f"Cannot move simulator from {self.state.name} to {target.name}"
            )
        self.state = target

    def integration_completed_successfully(self) -> bool:
        return self.status in (PropagationStatus.TERMINATED, PropagationStatus.EXHAUSTED)

    def get_system_of_bodies(self):
        return self.bodies

    @abstractmethod
    def run(self) -> PropagationStatus:
        """Integrate the equations of motion."""


# =============================================================================
# Single Arc
# =============================================================================


class SingleArcSimulator(BaseSimulator):
    """Propagates one continuous arc from a start time until termination.

    Args:
        clear_numerical_solutions: Drop the raw history when
            ``process_numerical_equations_of_motion_solution`` is called
        set_integrated_result: Process every run and push the per-body
            histories into the bodies (tabulated ephemeris, rotation and mass)
    """

    def __init__(self, clear_numerical_solutions: bool = False, set_integrated_result: bool = False) -> None:
        super().__init__(clear_numerical_solutions, set_integrated_result)
        self.layout: StateLayout | None = None
        self.settings: PropagatorSettings | None = None
        self.integrator: Integrator | None = None
        self.environment_updater: EnvironmentUpdater | None = None
        self.derivative_model: StateDerivativeModel | None = None
        self.termination: TerminationCondition | None = None
        self.initial_time: TimeLike | None = None
        self.initial_state: np.ndarray | None = None
        self.solution = SolutionHistory()
        self.fired_conditions: list[TerminationCondition] = []
        self.failure_message = ""
        self.translational_histories: dict[str, dict] = {}
        self.rotational_histories: dict[str, dict] = {}
        self.mass_histories: dict[str, dict] = {}
        self._global_states: dict[str, dict] = {}

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def initialize(
        self,
        bodies,
        integrator_settings: IntegratorSettings,
        initial_state: np.ndarray,
        start_time: TimeLike,
        propagator_settings: PropagatorSettings,
    ) -> None:
        """Validate the configuration and build the propagation machinery.

        Nothing is stored on the simulator unless every check passes.

        Raises:
            ConfigurationError: Unsupported time/scalar types, unknown bodies
            DimensionMismatch: Initial state does not match the state layout
            MissingEnvironmentModel: A model prerequisite does not exist
            AmbiguousOrientationClosure: A body orientation is defined twice
            CircularEnvironmentDependency: Environment dependencies form a cycle
            SimulatorStateError: Called while running
        """
        if self.state is SimulatorState.RUNNING:
            raise SimulatorStateError("Cannot re-initialize a running simulator")

        settings = propagator_settings
        validate_time_and_scalar_types(settings.time_type, settings.state_scalar_type)
        time = convert_time(start_time, settings.time_type)
        if not is_finite_time(time):
            raise ConfigurationError(f"Start time must be finite, got {start_time!r}")

        layout = settings.layout()
        state = np.asarray(initial_state, dtype=settings.state_scalar_type)
        if state.ndim != 1:
            raise DimensionMismatch(f"Initial state must be 1-D, got shape {state.shape}")
        layout.validate(state)

        for name in list(settings.bodies_to_propagate) + list(settings.central_bodies):
            bodies.get_body(name)
        self._check_model_prerequisites(bodies, settings, layout)

        models = [model for _, model in settings.models_by_body()]
        for model in models:
            model.bind(bodies)
        for body_name, rates in settings.mass_rates.items():
            for rate in rates:
                if isinstance(rate, FromThrustMassRate):
                    rate.attach_thrust_models(settings.accelerations.get(body_name, []))

        rotational = set(layout.bodies(PropagatorType.ROTATIONAL))
        for body in bodies:
            if body.flight_conditions is not None:
                verify_orientation_closure(bodies, body.name, rotation_propagated=body.name in rotational)

        updater = create_environment_updater(
            bodies, layout, settings.central_body_map, settings.bindings, settings.custom_nodes,
        )
        derivative_model = StateDerivativeModel(
            bodies, layout, settings.accelerations, settings.torques, settings.mass_rates, updater,
        )
        integrator = create_integrator(integrator_settings)
        settings.termination.bind(bodies)

        self.bodies = bodies
        self.settings = settings
        self.layout = layout
        self.environment_updater = updater
        self.derivative_model = derivative_model
        self.integrator = integrator
        self.termination = settings.termination
        self.initial_time = time
        self.initial_state = state
        self.solution = SolutionHistory([v.name for v in settings.dependent_variables])
        self.fired_conditions = []
        self.failure_message = ""
        self.status = None
        self.state = SimulatorState.INITIALIZED
        logger.info(
            "Initialized propagation of %s (%d states) with %s",
            ", ".join(settings.bodies_to_propagate + settings.rotational_bodies + settings.mass_bodies),
            layout.size,
            type(integrator).__name__,
        )

    def _check_model_prerequisites(self, bodies, settings: PropagatorSettings, layout: StateLayout) -> None:
        rotational = set(layout.bodies(PropagatorType.ROTATIONAL))
        propagated_mass = set(layout.bodies(PropagatorType.MASS))

        def available(body_name: str, capability: Capability) -> bool:
            if capability is Capability.MASS and body_name in propagated_mass:
                return True
            if capability is Capability.ROTATION and body_name in rotational:
                return True
            return bodies.get_body(body_name).has_capability(capability)

        for body_name, model in settings.models_by_body():
            if model.body_name != body_name:
                raise ConfigurationError(
                    f"Model {model.name} is registered under body {body_name}", body_name=body_name,
                )
            for required_body, capability in model.required_capabilities():
                if not available(required_body, capability):
                    raise MissingEnvironmentModel(required_body, capability.value, required_by=model.name)

        variables = list(settings.dependent_variables) + settings.termination.dependent_variables()
        for variable in variables:
            for required_body, capability in variable.required_capabilities:
                if not available(required_body, capability):
                    raise MissingEnvironmentModel(
                        required_body, capability.value, required_by=f"dependent variable {variable.name}",
                    )

        for body_name in rotational:
            if not bodies.get_body(body_name).has_capability(Capability.INERTIA):
                raise MissingEnvironmentModel(
                    body_name, Capability.INERTIA.value, required_by="rotational propagation",
                )

    # -------------------------------------------------------------------------
    # Propagation
    # -------------------------------------------------------------------------

    def run(self) -> PropagationStatus:
        """Integrate from the initial state until termination.

        Returns:
            TERMINATED when a termination condition fired, EXHAUSTED when
            ``max_steps`` was reached, FAILED on step failure or non-finite
            state (the history keeps the last valid entry)

        Raises:
            SimulatorStateError: If not initialized
            ConfigurationError: If a model prerequisite disappears mid-run

        Any exception escaping propagation leaves the simulator FAILED, so
        it can be initialized again.
        """
        self._transition((SimulatorState.INITIALIZED,), SimulatorState.RUNNING)
        self.solution.clear()
        self._global_states = {name: {} for name in self.layout.bodies(PropagatorType.TRANSLATIONAL)}
        self.derivative_model.function_evaluations = 0
        self.environment_updater.reset()
        logger.info("Starting propagation at t=%s", self.initial_time)

        start = perf_counter()
        try:
            self.status = self._propagate(start)
        except Exception as err:
            self.status = PropagationStatus.FAILED
            self.failure_message = str(err)
            self.state = SimulatorState.FAILED
            raise

        if self.status is PropagationStatus.FAILED:
            self.state = SimulatorState.FAILED
            logger.warning("Propagation failed: %s", self.failure_message)
        else:
            self.state = SimulatorState.COMPLETED
        logger.info(
            "Propagation ended (%s) at t=%s after %d steps, %d function evaluations",
            self.status.name,
            self.solution.final_time,
            len(self.solution) - 1,
            self.derivative_model.function_evaluations,
        )

        if self.set_integrated_result:
            self._process_solution(clear=False)
        return self.status

    def _propagate(self, start: float) -> PropagationStatus:
        time, state = self.initial_time, self.initial_state
        try:
            self._record(time, state, start)
        except NumericalPropagationError as err:
            self.failure_message = str(err)
            return PropagationStatus.FAILED

        derivative = self.derivative_model.evaluate
        for step in range(self.settings.max_steps):
            try:
                result = self.integrator.step(derivative, time, state)
            except NumericalPropagationError as err:
                self.failure_message = str(err)
                return PropagationStatus.FAILED
            if not result.succeeded:
                self.failure_message = result.message
                return PropagationStatus.FAILED
            if not np.all(np.isfinite(result.state)):
                self.failure_message = f"Non-finite state after step {step + 1} at t={result.time}"
                return PropagationStatus.FAILED

            time, state = result.time, self.layout.normalize_quaternions(result.state)
            try:
                self._record(time, state, start)
            except NumericalPropagationError as err:
                self.failure_message = str(err)
                return PropagationStatus.FAILED

            fired = self.termination.fired_conditions(time, state)
            if fired:
                self.fired_conditions = fired
                logger.debug("Termination at t=%s by %s", time, fired)
                return PropagationStatus.TERMINATED
        return PropagationStatus.EXHAUSTED

    def _record(self, time: TimeLike, state: np.ndarray, start: float) -> None:
        self.environment_updater.update(time, state)
        dependent = np.concatenate(
            [variable.evaluate(self.bodies) for variable in self.settings.dependent_variables]
        ) if self.settings.dependent_variables else None
        if dependent is not None and not np.all(np.isfinite(dependent)):
            raise NumericalPropagationError(f"Non-finite dependent variable at t={time}")
        for name, history in self._global_states.items():
            history[time] = self.bodies.get_body(name).state.copy()
        self.solution.append(
            time, state, dependent,
            computation_time=perf_counter() - start,
            function_evaluations=self.derivative_model.function_evaluations,
        )

    # -------------------------------------------------------------------------
    # Results
    # -------------------------------------------------------------------------

    def get_solution(self) -> SolutionHistory:
        return self.solution

    def get_dependent_variable_history(self) -> dict:
        """time -> dependent variable vector."""
        return dict(zip(self.solution.times, self.solution.dependent_variables))

    def termination_details(self) -> dict:
        """Why the last run stopped."""
        return {
            "status": self.status,
            "fired_conditions": list(self.fired_conditions),
            "message": self.failure_message,
        }

    def process_numerical_equations_of_motion_solution(self) -> None:
        """Split the raw history into per-body histories.

        Translational histories hold global states (central body state plus
        propagated relative state). With ``set_integrated_result`` they are
        pushed into the bodies; with ``clear_numerical_solutions`` the raw
        history is emptied afterwards.
        """
        if self.layout is None:
            raise SimulatorStateError("Nothing to process: simulator was never initialized")
        self._process_solution(clear=self.clear_numerical_solutions)

    def _process_solution(self, clear: bool) -> None:
        self.translational_histories = {name: dict(h) for name, h in self._global_states.items()}
        self.rotational_histories = {name: {} for name in self.layout.bodies(PropagatorType.ROTATIONAL)}
        self.mass_histories = {name: {} for name in self.layout.bodies(PropagatorType.MASS)}
        for time, state in self.solution.items():
            for (kind, name), values in self.layout.split(state).items():
                if kind is PropagatorType.ROTATIONAL:
                    self.rotational_histories[name][time] = np.asarray(values, dtype=np.float64)
                elif kind is PropagatorType.MASS:
                    self.mass_histories[name][time] = float(values[0])

        if self.set_integrated_result:
            self._push_histories_into_bodies()
        if clear:
            self.solution.clear()
            self._global_states = {}

    def reset_set_integrated_result(self, set_integrated_result: bool) -> None:
        """Change whether results are pushed into the bodies.

        Enabling it after a processed run pushes the existing histories.
        """
        self.set_integrated_result = set_integrated_result
        if set_integrated_result and (self.translational_histories or self.rotational_histories or self.mass_histories):
            self._push_histories_into_bodies()

    def _push_histories_into_bodies(self) -> None:
        origin = self.bodies.global_frame_origin
        for name, history in self.translational_histories.items():
            if len(history) > 1:
                self.bodies.get_body(name).set_state_history(history, origin=origin)
        for name, history in self.rotational_histories.items():
            if len(history) > 1:
                self.bodies.get_body(name).set_rotation_history(history)
        for name, history in self.mass_histories.items():
            if history:
                self.bodies.get_body(name).set_mass_history(history)
        logger.debug("Integrated results set in bodies")
