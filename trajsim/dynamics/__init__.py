"""Equations of motion.

Modules:
    attitude: Quaternion and rotation-matrix kinematics
    models: Acceleration, torque and mass rate models
    state_derivative: Global state layout and derivative evaluation

Only the kinematics are re-exported here; the environment package builds
on them, so models and the state derivative are imported from their
modules.
"""

from trajsim.dynamics.attitude import (
    matrix_to_quaternion,
    normalize_quaternion,
    quaternion_derivative,
    quaternion_multiply,
    quaternion_to_matrix,
)

__all__ = [
    "matrix_to_quaternion",
    "normalize_quaternion",
    "quaternion_derivative",
    "quaternion_multiply",
    "quaternion_to_matrix",
]
