"""End-to-end tests of the single-arc simulator."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from trajsim.dynamics.models import (
    G0,
    AerodynamicAcceleration,
    ConstantAcceleration,
    ConstantTorque,
    FromThrustMassRate,
    PointMassGravity,
    ThrustAcceleration,
)
from trajsim.environment.aerodynamic_angles import (
    AerodynamicAngleCalculator,
    body_to_trajectory_rotation,
    create_aerodynamic_angle_rotation,
)
from trajsim.environment.ephemeris import ConstantEphemeris, TabulatedEphemeris
from trajsim.environment.flight_conditions import create_flight_conditions
from trajsim.environment.rotation import ConstantRotation
from trajsim.exceptions import (
    AmbiguousOrientationClosure,
    CircularEnvironmentDependency,
    ConfigurationError,
    DimensionMismatch,
    MissingEnvironmentModel,
    SimulatorStateError,
)
from trajsim.simulation.dependent_variables import aerodynamic_angles, altitude, body_mass, mach_number
from trajsim.simulation.environment_updater import ClosureBinding
from trajsim.simulation.settings import IntegratorSettings, IntegratorType, PropagatorSettings
from trajsim.simulation.simulator import PropagationStatus, SimulatorState, SingleArcSimulator
from trajsim.simulation.termination import CustomTermination, DependentVariableTermination, TimeTermination
from trajsim.timing import Epoch

RK4 = IntegratorSettings(IntegratorType.RK4, step_size=0.5)


def _accelerated(**kwargs) -> PropagatorSettings:
    """Vehicle pushed along x at 1 m/s^2 for 10 s."""
    return PropagatorSettings(
        bodies_to_propagate=["Vehicle"],
        central_bodies=["Earth"],
        termination=TimeTermination(10.0),
        accelerations={"Vehicle": [ConstantAcceleration("Vehicle", np.array([1.0, 0.0, 0.0]))]},
        **kwargs,
    )


# =============================================================================
# Propagation
# =============================================================================


class TestTranslationalPropagation:
    """Test translational propagation and termination."""

    def test_constant_acceleration(self, free_space_bodies):
        simulator = SingleArcSimulator()
        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, _accelerated())
        status = simulator.run()

        solution = simulator.get_solution()
        assert status is PropagationStatus.TERMINATED
        assert simulator.state is SimulatorState.COMPLETED
        assert simulator.integration_completed_successfully()
        assert len(solution) == 21
        assert solution.final_time == pytest.approx(10.0)
        assert_allclose(solution.final_state, [50.0, 0.0, 0.0, 10.0, 0.0, 0.0], rtol=1e-12)
        assert simulator.termination_details()["fired_conditions"] == [simulator.termination]

    def test_function_evaluations_recorded(self, free_space_bodies):
        simulator = SingleArcSimulator()
        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, _accelerated())
        simulator.run()
        evaluations = simulator.get_solution().function_evaluations
        assert evaluations[0] == 0
        assert evaluations[-1] == 4 * 20
        assert np.all(np.diff(simulator.get_solution().computation_times) >= 0.0)

    def test_exhausted_at_max_steps(self, free_space_bodies):
        simulator = SingleArcSimulator()
        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, _accelerated(max_steps=5))
        status = simulator.run()
        assert status is PropagationStatus.EXHAUSTED
        assert simulator.integration_completed_successfully()
        assert len(simulator.get_solution()) == 6

    def test_non_finite_derivative_fails(self, free_space_bodies):
        """The history keeps the last valid entry."""
        settings = PropagatorSettings(
            bodies_to_propagate=["Vehicle"],
            central_bodies=["Earth"],
            termination=TimeTermination(10.0),
            accelerations={"Vehicle": [ConstantAcceleration("Vehicle", np.array([np.nan, 0.0, 0.0]))]},
        )
        simulator = SingleArcSimulator()
        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, settings)
        status = simulator.run()
        assert status is PropagationStatus.FAILED
        assert simulator.state is SimulatorState.FAILED
        assert not simulator.integration_completed_successfully()
        assert len(simulator.get_solution()) == 1
        assert "Non-finite" in simulator.termination_details()["message"]

    def test_rkf45_failure_below_minimum_step(self, free_space_bodies):
        integrator = IntegratorSettings(
            IntegratorType.RKF45, step_size=1.0, minimum_step_size=0.9,
            relative_tolerance=1e-15, absolute_tolerance=1e-15,
        )
        settings = PropagatorSettings(
            bodies_to_propagate=["Vehicle"],
            central_bodies=["Earth"],
            termination=TimeTermination(10.0),
            accelerations={"Vehicle": [ThrustAcceleration("Vehicle", lambda t: 1000.0 * np.sin(50.0 * t), 300.0)]},
        )
        simulator = SingleArcSimulator()
        simulator.initialize(free_space_bodies, integrator, np.zeros(6), 0.0, settings)
        assert simulator.run() is PropagationStatus.FAILED
        assert len(simulator.get_solution()) == 1

    def test_gravity_and_dependent_variables(self, earth_bodies):
        settings = PropagatorSettings(
            bodies_to_propagate=["Vehicle"],
            central_bodies=["Earth"],
            termination=DependentVariableTermination(altitude("Vehicle", "Earth"), limit=101e3),
            accelerations={"Vehicle": [PointMassGravity("Vehicle", "Earth")]},
            dependent_variables=[altitude("Vehicle", "Earth"), body_mass("Vehicle")],
        )
        simulator = SingleArcSimulator()
        simulator.initialize(earth_bodies, RK4, earth_bodies.get_body("Vehicle").ephemeris.cartesian_state(0.0), 0.0, settings)
        assert simulator.run() is PropagationStatus.TERMINATED

        solution = simulator.get_solution()
        dependent = solution.dependent_variables
        assert dependent.shape == (len(solution), 2)
        assert dependent[0, 0] == pytest.approx(100e3)
        assert dependent[-1, 0] > 101e3
        assert_allclose(dependent[:, 1], 1000.0)
        assert solution.final_time < 10.0
        assert len(simulator.get_dependent_variable_history()) == len(solution)

    def test_to_dataframe(self, free_space_bodies):
        settings = _accelerated(dependent_variables=[body_mass("Vehicle")])
        simulator = SingleArcSimulator()
        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, settings)
        simulator.run()
        df = simulator.get_solution().to_dataframe(["x", "y", "z", "vx", "vy", "vz"])
        assert df.height == 21
        assert {"time", "x", "vx", "dependent_0", "computation_time", "function_evaluations"} <= set(df.columns)
        assert df["x"][-1] == pytest.approx(50.0)


class TestTimeTypes:
    """Test epoch time and extended precision states."""

    def test_epoch_with_longdouble(self, free_space_bodies):
        start = Epoch.from_seconds(8.0e8)
        settings = PropagatorSettings(
            bodies_to_propagate=["Vehicle"],
            central_bodies=["Earth"],
            termination=TimeTermination(start + 10.0),
            accelerations={"Vehicle": [ConstantAcceleration("Vehicle", np.array([1.0, 0.0, 0.0]))]},
            state_scalar_type=np.longdouble,
            time_type=Epoch,
        )
        simulator = SingleArcSimulator()
        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 8.0e8, settings)
        simulator.run()

        solution = simulator.get_solution()
        assert isinstance(solution.final_time, Epoch)
        assert solution.final_time.seconds_since(start) == pytest.approx(10.0)
        assert solution.final_state.dtype == np.longdouble
        assert float(solution.final_state[0]) == pytest.approx(50.0)

    def test_float_time_with_longdouble_rejected(self, free_space_bodies):
        settings = _accelerated(state_scalar_type=np.longdouble)
        with pytest.raises(ConfigurationError):
            SingleArcSimulator().initialize(free_space_bodies, RK4, np.zeros(6), 0.0, settings)

    def test_non_finite_start_rejected(self, free_space_bodies):
        with pytest.raises(ConfigurationError):
            SingleArcSimulator().initialize(free_space_bodies, RK4, np.zeros(6), float("nan"), _accelerated())


# =============================================================================
# Rotation and Mass
# =============================================================================


class TestRotationalPropagation:
    """Test attitude propagation under a constant torque."""

    def test_spin_up_about_z(self, free_space_bodies):
        free_space_bodies.get_body("Vehicle").inertia_tensor = np.diag([1.0, 2.0, 3.0])
        settings = PropagatorSettings(
            bodies_to_propagate=[],
            central_bodies=[],
            termination=TimeTermination(10.0),
            rotational_bodies=["Vehicle"],
            torques={"Vehicle": [ConstantTorque("Vehicle", np.array([0.0, 0.0, 1.0]))]},
        )
        x0 = np.array([1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0])
        simulator = SingleArcSimulator(set_integrated_result=True)
        simulator.initialize(free_space_bodies, IntegratorSettings(IntegratorType.RK4, step_size=0.015625), x0, 0.0, settings)
        simulator.run()

        angle = 10.0**2 / 6.0
        final = simulator.get_solution().final_state
        assert_allclose(final[:4], [np.cos(angle / 2), 0.0, 0.0, np.sin(angle / 2)], atol=1e-6)
        assert_allclose(final[4:], [0.0, 0.0, 10.0 / 3.0], rtol=1e-10)
        assert np.linalg.norm(final[:4]) == pytest.approx(1.0)
        assert len(simulator.rotational_histories["Vehicle"]) == len(simulator.get_solution())
        assert free_space_bodies.get_body("Vehicle").rotation_model is not None

    def test_missing_inertia(self, free_space_bodies):
        settings = PropagatorSettings(
            bodies_to_propagate=[],
            central_bodies=[],
            termination=TimeTermination(10.0),
            rotational_bodies=["Vehicle"],
        )
        with pytest.raises(MissingEnvironmentModel) as exc_info:
            SingleArcSimulator().initialize(free_space_bodies, RK4, np.array([1.0] + [0.0] * 6), 0.0, settings)
        assert exc_info.value.body_name == "Vehicle"


class TestMassPropagation:
    """Test mass depletion consistent with thrust."""

    def test_thrust_burn(self, free_space_bodies):
        thrust = ThrustAcceleration("Vehicle", 1000.0, 300.0)
        settings = PropagatorSettings(
            bodies_to_propagate=["Vehicle"],
            central_bodies=["Earth"],
            termination=TimeTermination(10.0),
            accelerations={"Vehicle": [thrust]},
            mass_bodies=["Vehicle"],
            mass_rates={"Vehicle": [FromThrustMassRate("Vehicle")]},
        )
        x0 = np.array([0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 100.0])
        simulator = SingleArcSimulator(set_integrated_result=True)
        simulator.initialize(free_space_bodies, RK4, x0, 0.0, settings)
        simulator.run()

        mass_flow = 1000.0 / (300.0 * G0)
        final_mass = 100.0 - 10.0 * mass_flow
        final = simulator.get_solution().final_state
        assert final[6] == pytest.approx(final_mass)
        assert final[3] == pytest.approx(300.0 * G0 * np.log(100.0 / final_mass), rel=1e-8)

        vehicle = free_space_bodies.get_body("Vehicle")
        vehicle.update_mass(10.0)
        assert vehicle.current_mass == pytest.approx(final_mass)


# =============================================================================
# Configuration and State Machine
# =============================================================================


class TestConfiguration:
    """Test checks made before propagation starts."""

    def test_state_size_mismatch(self, free_space_bodies):
        simulator = SingleArcSimulator()
        with pytest.raises(DimensionMismatch):
            simulator.initialize(free_space_bodies, RK4, np.zeros(7), 0.0, _accelerated())
        assert simulator.state is SimulatorState.UNCONFIGURED
        assert simulator.bodies is None

    def test_missing_gravity_names_central_body(self, free_space_bodies):
        settings = PropagatorSettings(
            bodies_to_propagate=["Vehicle"],
            central_bodies=["Earth"],
            termination=TimeTermination(10.0),
            accelerations={"Vehicle": [PointMassGravity("Vehicle", "Earth")]},
        )
        with pytest.raises(MissingEnvironmentModel) as exc_info:
            SingleArcSimulator().initialize(free_space_bodies, RK4, np.zeros(6), 0.0, settings)
        assert exc_info.value.body_name == "Earth"
        assert "PointMassGravity" in exc_info.value.required_by

    def test_unknown_body(self, free_space_bodies):
        settings = PropagatorSettings(
            bodies_to_propagate=["Probe"], central_bodies=["Earth"], termination=TimeTermination(1.0),
        )
        with pytest.raises(ConfigurationError):
            SingleArcSimulator().initialize(free_space_bodies, RK4, np.zeros(6), 0.0, settings)

    def test_central_body_count_mismatch(self):
        with pytest.raises(DimensionMismatch):
            PropagatorSettings(bodies_to_propagate=["Vehicle"], central_bodies=[], termination=TimeTermination(1.0))

    def test_model_under_wrong_body(self, free_space_bodies):
        settings = PropagatorSettings(
            bodies_to_propagate=["Vehicle"],
            central_bodies=["Earth"],
            termination=TimeTermination(1.0),
            accelerations={"Vehicle": [ConstantAcceleration("Earth", np.zeros(3))]},
        )
        with pytest.raises(ConfigurationError):
            SingleArcSimulator().initialize(free_space_bodies, RK4, np.zeros(6), 0.0, settings)


class TestStateMachine:
    """Test simulator lifecycle transitions."""

    def test_run_before_initialize(self):
        with pytest.raises(SimulatorStateError):
            SingleArcSimulator().run()

    def test_run_twice_requires_reinitialize(self, free_space_bodies):
        simulator = SingleArcSimulator()
        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, _accelerated())
        simulator.run()
        with pytest.raises(SimulatorStateError):
            simulator.run()

        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, _accelerated())
        assert simulator.state is SimulatorState.INITIALIZED
        assert simulator.run() is PropagationStatus.TERMINATED
        assert len(simulator.get_solution()) == 21

    def test_process_before_initialize(self):
        with pytest.raises(SimulatorStateError):
            SingleArcSimulator().process_numerical_equations_of_motion_solution()


# =============================================================================
# Results in Bodies
# =============================================================================


class TestIntegratedResults:
    """Test pushing propagated histories into the bodies."""

    def test_set_integrated_result(self, free_space_bodies):
        simulator = SingleArcSimulator(set_integrated_result=True)
        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, _accelerated())
        simulator.run()

        ephemeris = free_space_bodies.get_body("Vehicle").ephemeris
        assert isinstance(ephemeris, TabulatedEphemeris)
        assert_allclose(ephemeris.cartesian_state(5.0), [12.5, 0.0, 0.0, 5.0, 0.0, 0.0], atol=1e-9)

    def test_global_history_includes_central_body_offset(self, free_space_bodies):
        offset = np.array([1.0e3, 0.0, 0.0, 0.0, 0.0, 0.0])
        free_space_bodies.get_body("Earth").ephemeris = ConstantEphemeris(offset)
        simulator = SingleArcSimulator(set_integrated_result=True)
        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, _accelerated())
        simulator.run()
        history = simulator.translational_histories["Vehicle"]
        assert_allclose(history[0.0], offset)
        assert_allclose(simulator.get_solution().states[0], np.zeros(6))

    def test_clear_numerical_solutions(self, free_space_bodies):
        """The history survives the run and is released by explicit processing."""
        simulator = SingleArcSimulator(clear_numerical_solutions=True)
        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, _accelerated())
        simulator.run()
        assert len(simulator.get_solution()) == 21
        simulator.process_numerical_equations_of_motion_solution()
        assert len(simulator.get_solution()) == 0
        assert len(simulator.translational_histories["Vehicle"]) == 21
        assert free_space_bodies.get_body("Vehicle").ephemeris is None

    def test_reset_set_integrated_result(self, free_space_bodies):
        simulator = SingleArcSimulator(clear_numerical_solutions=True)
        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, _accelerated())
        simulator.run()
        simulator.process_numerical_equations_of_motion_solution()
        assert free_space_bodies.get_body("Vehicle").ephemeris is None
        simulator.reset_set_integrated_result(True)
        assert isinstance(free_space_bodies.get_body("Vehicle").ephemeris, TabulatedEphemeris)

    def test_integrated_result_keeps_history(self, free_space_bodies):
        simulator = SingleArcSimulator(clear_numerical_solutions=True, set_integrated_result=True)
        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, _accelerated())
        simulator.run()
        assert len(simulator.get_solution()) == 21
        assert isinstance(free_space_bodies.get_body("Vehicle").ephemeris, TabulatedEphemeris)


# =============================================================================
# Aerodynamic Flight
# =============================================================================


ANGLES = np.array([0.1, 0.0, 0.2])


def _reentry(aerodynamics=True, **kwargs) -> PropagatorSettings:
    """Vehicle under gravity (and drag) for 2 s, recording angles and Mach number."""
    accelerations = [PointMassGravity("Vehicle", "Earth")]
    if aerodynamics:
        accelerations.append(AerodynamicAcceleration("Vehicle", "Earth"))
    return PropagatorSettings(
        bodies_to_propagate=["Vehicle"],
        central_bodies=["Earth"],
        termination=TimeTermination(2.0),
        accelerations={"Vehicle": accelerations},
        dependent_variables=[aerodynamic_angles("Vehicle"), mach_number("Vehicle")],
        **kwargs,
    )


def _initial_state(bodies):
    return bodies.get_body("Vehicle").ephemeris.cartesian_state(0.0)


class TestAerodynamicPropagation:
    """Test propagation with flight conditions and orientation closure."""

    def test_angles_from_body_rotation(self, earth_bodies):
        """A fixed body rotation built from known angles gives them back at the start."""
        reference = AerodynamicAngleCalculator(earth_bodies, "Vehicle", "Earth")
        reference.update(0.0, update_body_angles=False, refresh_states=True)
        to_inertial = reference.trajectory_to_inertial() @ body_to_trajectory_rotation(*ANGLES)
        earth_bodies.get_body("Vehicle").rotation_model = ConstantRotation(to_inertial)
        create_flight_conditions(earth_bodies, "Vehicle", "Earth")

        simulator = SingleArcSimulator()
        simulator.initialize(earth_bodies, RK4, _initial_state(earth_bodies), 0.0, _reentry())
        assert simulator.run() is PropagationStatus.TERMINATED

        dependent = simulator.get_solution().dependent_variables
        assert_allclose(dependent[0, :3], ANGLES, atol=1e-10)
        assert not np.allclose(dependent[-1, :3], ANGLES, atol=1e-5)
        assert np.all(dependent[:, 3] > 20.0)

    def test_rotation_from_angles(self, earth_bodies):
        """An angle-driven rotation keeps the commanded angles along the arc."""
        rotation = create_aerodynamic_angle_rotation(earth_bodies, "Vehicle", "Earth", lambda t: ANGLES)
        create_flight_conditions(earth_bodies, "Vehicle", "Earth")

        simulator = SingleArcSimulator()
        simulator.initialize(earth_bodies, RK4, _initial_state(earth_bodies), 0.0, _reentry())
        assert simulator.run() is PropagationStatus.TERMINATED

        dependent = simulator.get_solution().dependent_variables
        assert len(dependent) == 5
        assert_allclose(dependent[:, :3], np.tile(ANGLES, (5, 1)), atol=1e-12)
        expected = rotation.calculator.trajectory_to_inertial() @ body_to_trajectory_rotation(*ANGLES)
        assert_allclose(earth_bodies.get_body("Vehicle").rotation_state.rotation_to_base_frame, expected, atol=1e-12)

    def test_drag_slows_vehicle(self, earth_bodies):
        create_aerodynamic_angle_rotation(earth_bodies, "Vehicle", "Earth", lambda t: ANGLES)
        create_flight_conditions(earth_bodies, "Vehicle", "Earth")
        x0 = _initial_state(earth_bodies)

        speeds = []
        for aerodynamics in (False, True):
            simulator = SingleArcSimulator()
            simulator.initialize(earth_bodies, RK4, x0, 0.0, _reentry(aerodynamics))
            simulator.run()
            speeds.append(np.linalg.norm(simulator.get_solution().final_state[3:]))
        assert speeds[1] < speeds[0] - 0.05


class TestEnvironmentConfiguration:
    """Test environment errors raised by initialize, before any state is kept."""

    def test_conflicting_orientation(self, earth_bodies):
        earth_bodies.get_body("Vehicle").rotation_model = ConstantRotation(np.eye(3))
        flight_conditions = create_flight_conditions(earth_bodies, "Vehicle", "Earth")
        flight_conditions.angle_calculator.set_orientation_angle_functions(attack=lambda t: 0.1)

        simulator = SingleArcSimulator()
        with pytest.raises(AmbiguousOrientationClosure) as exc_info:
            simulator.initialize(earth_bodies, RK4, _initial_state(earth_bodies), 0.0, _reentry())
        assert exc_info.value.body_name == "Vehicle"
        assert simulator.bodies is None
        assert simulator.state is SimulatorState.UNCONFIGURED

    def test_cyclic_binding(self, earth_bodies):
        create_aerodynamic_angle_rotation(earth_bodies, "Vehicle", "Earth", lambda t: ANGLES)
        create_flight_conditions(earth_bodies, "Vehicle", "Earth")
        settings = _reentry(bindings=[ClosureBinding("rotation:Earth", "flight_conditions:Vehicle")])

        simulator = SingleArcSimulator()
        with pytest.raises(CircularEnvironmentDependency) as exc_info:
            simulator.initialize(earth_bodies, RK4, _initial_state(earth_bodies), 0.0, settings)
        assert {"rotation:Earth", "flight_conditions:Vehicle"} <= set(exc_info.value.participants)
        assert simulator.bodies is None
        assert simulator.state is SimulatorState.UNCONFIGURED

    def test_missing_atmosphere(self, earth_bodies):
        create_aerodynamic_angle_rotation(earth_bodies, "Vehicle", "Earth", lambda t: ANGLES)
        create_flight_conditions(earth_bodies, "Vehicle", "Earth")
        earth_bodies.get_body("Earth").atmosphere = None

        simulator = SingleArcSimulator()
        with pytest.raises(MissingEnvironmentModel) as exc_info:
            simulator.initialize(earth_bodies, RK4, _initial_state(earth_bodies), 0.0, _reentry())
        assert exc_info.value.body_name == "Earth"
        assert exc_info.value.capability == "atmosphere"
        assert simulator.bodies is None


# =============================================================================
# Dependent Variable Prerequisites and Run Failures
# =============================================================================


def _sensor_failure(time, state):
    raise RuntimeError("sensor offline")


class TestDependentVariablePrerequisites:
    """Test that variables reading missing models are rejected by initialize."""

    def test_altitude_without_shape(self, free_space_bodies):
        simulator = SingleArcSimulator()
        settings = _accelerated(dependent_variables=[altitude("Vehicle", "Earth")])
        with pytest.raises(MissingEnvironmentModel) as exc_info:
            simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, settings)
        assert exc_info.value.body_name == "Earth"
        assert exc_info.value.capability == "shape"
        assert "altitude" in exc_info.value.required_by
        assert simulator.bodies is None

    def test_mach_number_without_flight_conditions(self, free_space_bodies):
        settings = _accelerated(dependent_variables=[mach_number("Vehicle")])
        with pytest.raises(MissingEnvironmentModel) as exc_info:
            SingleArcSimulator().initialize(free_space_bodies, RK4, np.zeros(6), 0.0, settings)
        assert exc_info.value.body_name == "Vehicle"
        assert exc_info.value.capability == "flight conditions"

    def test_termination_variable_without_shape(self, free_space_bodies):
        settings = PropagatorSettings(
            bodies_to_propagate=["Vehicle"],
            central_bodies=["Earth"],
            termination=TimeTermination(10.0) | DependentVariableTermination(
                altitude("Vehicle", "Earth"), limit=0.0, use_as_lower_limit=True,
            ),
            accelerations={"Vehicle": [ConstantAcceleration("Vehicle", np.array([1.0, 0.0, 0.0]))]},
        )
        with pytest.raises(MissingEnvironmentModel) as exc_info:
            SingleArcSimulator().initialize(free_space_bodies, RK4, np.zeros(6), 0.0, settings)
        assert exc_info.value.body_name == "Earth"


class TestRunFailure:
    """Test the simulator state after an exception escapes a run."""

    def test_exception_leaves_simulator_failed(self, free_space_bodies):
        settings = PropagatorSettings(
            bodies_to_propagate=["Vehicle"],
            central_bodies=["Earth"],
            termination=CustomTermination(_sensor_failure),
            accelerations={"Vehicle": [ConstantAcceleration("Vehicle", np.array([1.0, 0.0, 0.0]))]},
        )
        simulator = SingleArcSimulator()
        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, settings)
        with pytest.raises(RuntimeError, match="sensor offline"):
            simulator.run()
        assert simulator.state is SimulatorState.FAILED
        assert simulator.status is PropagationStatus.FAILED
        assert not simulator.integration_completed_successfully()
        assert "sensor offline" in simulator.termination_details()["message"]

        simulator.initialize(free_space_bodies, RK4, np.zeros(6), 0.0, _accelerated())
        assert simulator.run() is PropagationStatus.TERMINATED
