"""Unit tests for the numerical integrators."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from trajsim.exceptions import ConfigurationError
from trajsim.simulation.integrators import EulerIntegrator, RK4Integrator, RKF45Integrator
from trajsim.simulation.settings import IntegratorSettings, IntegratorType, create_integrator
from trajsim.timing import Epoch


def decay(t, y):
    return -y


def harmonic(t, y):
    return np.array([y[1], -y[0]])


def _integrate(integrator, derivative, y0, t_end):
    t, y = 0.0, np.array(y0, dtype=np.float64)
    while t < t_end - 1e-12:
        result = integrator.step(derivative, t, y)
        assert result.succeeded
        t, y = result.time, result.state
    return t, y


# =============================================================================
# Fixed Step
# =============================================================================


class TestEuler:
    """Test the explicit Euler step."""

    def test_single_step(self):
        result = EulerIntegrator(0.1).step(decay, 0.0, np.array([1.0]))
        assert_allclose(result.time, 0.1)
        assert_allclose(result.state, [0.9])


class TestRK4:
    """Test the classical Runge-Kutta step."""

    def test_exponential_decay(self):
        _, y = _integrate(RK4Integrator(0.1), decay, [1.0], 1.0)
        assert_allclose(y, [np.exp(-1.0)], rtol=1e-6)

    def test_fourth_order_convergence(self):
        """Halving the step reduces the error ~16 times."""
        errors = []
        for dt in (0.2, 0.1):
            _, y = _integrate(RK4Integrator(dt), harmonic, [1.0, 0.0], 2.0)
            errors.append(abs(y[0] - np.cos(2.0)))
        assert 12.0 < errors[0] / errors[1] < 20.0

    def test_constant_acceleration_is_exact(self):
        """RK4 integrates a quadratic trajectory exactly."""
        _, y = _integrate(RK4Integrator(0.5), lambda t, y: np.array([y[1], 1.0]), [0.0, 0.0], 10.0)
        assert_allclose(y, [50.0, 10.0], rtol=1e-12)

    def test_epoch_time(self):
        result = RK4Integrator(0.5).step(decay, Epoch.from_seconds(3.0e9), np.array([1.0]))
        assert isinstance(result.time, Epoch)
        assert_allclose(result.time.seconds_since(Epoch.from_seconds(3.0e9)), 0.5)

    def test_longdouble_state(self):
        result = RK4Integrator(0.5).step(decay, 0.0, np.array([1.0], dtype=np.longdouble))
        assert result.state.dtype == np.longdouble


# =============================================================================
# Variable Step
# =============================================================================


class TestRKF45:
    """Test the adaptive Runge-Kutta-Fehlberg step."""

    def test_accuracy(self):
        integrator = RKF45Integrator(0.1, relative_tolerance=1e-10, absolute_tolerance=1e-12)
        _, y = _integrate(integrator, harmonic, [1.0, 0.0], 5.0)
        t, y = _integrate(integrator, harmonic, [1.0, 0.0], 5.0)
        assert_allclose(y, [np.cos(t), -np.sin(t)], atol=1e-8)

    def test_step_grows_for_smooth_problem(self):
        integrator = RKF45Integrator(1e-3, relative_tolerance=1e-6, absolute_tolerance=1e-6)
        integrator.step(decay, 0.0, np.array([1.0]))
        assert integrator.step_size > 1e-3

    def test_respects_maximum_step(self):
        integrator = RKF45Integrator(0.1, maximum_step_size=0.2, relative_tolerance=1e-3, absolute_tolerance=1e-3)
        for _ in range(5):
            integrator.step(decay, 0.0, np.array([1.0]))
        assert integrator.step_size <= 0.2

    def test_failure_below_minimum_step(self):
        """An unmeetable tolerance fails without advancing."""
        integrator = RKF45Integrator(1.0, minimum_step_size=0.5, relative_tolerance=1e-14, absolute_tolerance=1e-14)
        state = np.array([1.0, 0.0])
        result = integrator.step(harmonic, 0.0, state)
        assert not result.succeeded
        assert result.time == 0.0
        assert_allclose(result.state, state)
        assert "below minimum" in result.message

    def test_backward_direction(self):
        integrator = RKF45Integrator(-0.1, relative_tolerance=1e-8, absolute_tolerance=1e-8)
        result = integrator.step(decay, 1.0, np.array([1.0]))
        assert result.time < 1.0
        assert result.state[0] > 1.0


# =============================================================================
# Settings
# =============================================================================


class TestIntegratorSettings:
    """Test the settings factory."""

    @pytest.mark.parametrize("kind,cls", [
        (IntegratorType.EULER, EulerIntegrator),
        (IntegratorType.RK4, RK4Integrator),
        (IntegratorType.RKF45, RKF45Integrator),
    ])
    def test_create_integrator(self, kind, cls):
        integrator = create_integrator(IntegratorSettings(kind, step_size=0.5))
        assert isinstance(integrator, cls)
        assert integrator.step_size == 0.5

    def test_zero_step_rejected(self):
        with pytest.raises(ConfigurationError):
            IntegratorSettings(IntegratorType.RK4, step_size=0.0)

    def test_invalid_bounds_rejected(self):
        with pytest.raises(ConfigurationError):
            IntegratorSettings(IntegratorType.RKF45, minimum_step_size=1.0, maximum_step_size=0.1)
