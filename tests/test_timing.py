"""Unit tests for time representations."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from trajsim.environment.rotation import SimpleRotation
from trajsim.timing import SECONDS_PER_PERIOD, Epoch, convert_time, is_finite_time

# =============================================================================
# Epoch Arithmetic
# =============================================================================


class TestEpoch:
    """Test the compensated time value."""

    def test_from_seconds_splits_periods(self):
        """Seconds beyond one period roll over into full periods."""
        t = Epoch.from_seconds(2.5 * SECONDS_PER_PERIOD)
        assert t.full_periods == 2
        assert_allclose(t.seconds_into_period, 0.5 * SECONDS_PER_PERIOD)

    def test_negative_seconds_normalized(self):
        """Seconds into period stay in [0, period)."""
        t = Epoch.from_seconds(-1.0)
        assert t.full_periods == -1
        assert_allclose(t.seconds_into_period, SECONDS_PER_PERIOD - 1.0)
        assert_allclose(float(t), -1.0)

    def test_small_increment_survives_large_epoch(self):
        """A microsecond is resolved at ~100 years, where a float is not."""
        t = Epoch.from_seconds(3.0e9)
        t2 = t + 1.0e-6
        assert_allclose(t2.seconds_since(t), 1.0e-6, rtol=1e-6)
        assert (3.0e9 + 1.0e-6) - 3.0e9 != pytest.approx(1.0e-6, rel=1e-6)

    def test_ordering_and_equality(self):
        """Epochs compare with each other and with floats."""
        a = Epoch.from_seconds(10.0)
        b = Epoch.from_seconds(20.0)
        assert a < b
        assert b > a
        assert a == 10.0
        assert a == Epoch(0, 10.0)
        assert a <= 10.0

    def test_subtraction_gives_epoch(self):
        """Difference of two epochs is an Epoch convertible to seconds."""
        diff = Epoch(5, 1.0) - Epoch(3, 2.0)
        assert isinstance(diff, Epoch)
        assert_allclose(float(diff), 2 * SECONDS_PER_PERIOD - 1.0)

    def test_hashable_as_history_key(self):
        """Epochs can key a history dictionary."""
        history = {Epoch.from_seconds(1.0): 1.0}
        assert history[Epoch.from_seconds(1.0)] == 1.0


class TestTimeConversion:
    """Test conversion between time types."""

    def test_convert_to_epoch(self):
        t = convert_time(7200.5, Epoch)
        assert isinstance(t, Epoch)
        assert t.full_periods == 2

    def test_convert_to_float(self):
        assert convert_time(Epoch(1, 1.0), float) == SECONDS_PER_PERIOD + 1.0

    def test_unsupported_type_raises(self):
        with pytest.raises(TypeError):
            convert_time(1.0, int)

    def test_finite_check(self):
        assert is_finite_time(1.0)
        assert not is_finite_time(float("nan"))
        assert not is_finite_time(Epoch(0, float("inf")))


class TestRotationTimeDispatch:
    """Rotation providers accept both time types."""

    def test_same_rotation_for_float_and_epoch(self):
        """Float and Epoch inputs of the same instant give the same rotation."""
        rotation = SimpleRotation(np.eye(3), rotation_rate=7.2921159e-5)
        from_float = rotation.rotation_to_target_frame(5000.0)
        from_epoch = rotation.rotation_to_target_frame(Epoch.from_seconds(5000.0))
        assert_allclose(from_float, from_epoch, atol=1e-14)

    def test_epoch_reference_keeps_precision(self):
        """An Epoch reference far from zero is subtracted without cancellation."""
        reference = Epoch.from_seconds(3.0e9)
        rotation = SimpleRotation(np.eye(3), rotation_rate=1.0, initial_epoch=reference)
        assert_allclose(rotation.seconds_since_reference(reference + 1.0e-6), 1.0e-6, rtol=1e-6)
