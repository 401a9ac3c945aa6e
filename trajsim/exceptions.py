"""Exception hierarchy for propagation setup and execution.

Configuration errors are raised while a simulation is being set up and always
name the offending body or model. Numerical errors are raised while stepping
and are turned into a failed run by the simulator.

Example:
    >>> from trajsim.exceptions import MissingEnvironmentModel
    >>> try:
    ...     sim.initialize(bodies, integrator_settings, x0, 0.0, settings)
    ... except MissingEnvironmentModel as err:
    ...     print(err.body_name, err.capability)
"""


class ConfigurationError(ValueError):
    """Base class for errors detected before propagation starts."""

    def __init__(self, message: str, body_name: str | None = None) -> None:
        super().__init__(message)
        self.body_name = body_name


class MissingEnvironmentModel(ConfigurationError):
    """A model requires an environment capability that a body does not have."""

    def __init__(self, body_name: str, capability: str, required_by: str = "") -> None:
        suffix = f" (required by {required_by})" if required_by else ""
        super().__init__(
            f"Body '{body_name}' has no {capability} model{suffix}",
            body_name=body_name,
        )
        self.capability = capability
        self.required_by = required_by


class CircularEnvironmentDependency(ConfigurationError):
    """The environment dependency graph contains a cycle."""

    def __init__(self, participants: list[str]) -> None:
        super().__init__(
            "Circular environment dependency between: " + " -> ".join(participants)
        )
        self.participants = participants


class AmbiguousOrientationClosure(ConfigurationError):
    """Body orientation and aerodynamic angles are both defined from each other."""

    def __init__(self, body_name: str, reason: str) -> None:
        super().__init__(
            f"Ambiguous orientation closure for body '{body_name}': {reason}",
            body_name=body_name,
        )
        self.reason = reason


class DimensionMismatch(ConfigurationError):
    """Array sizes are inconsistent (state vectors, tabulated data)."""


class IncompleteForceModel(ConfigurationError):
    """A registered model is evaluated while one of its prerequisites is absent."""

    def __init__(self, model_name: str, body_name: str, capability: str) -> None:
        super().__init__(
            f"Cannot evaluate {model_name}: body '{body_name}' has no {capability} model",
            body_name=body_name,
        )
        self.model_name = model_name
        self.capability = capability


class NumericalPropagationError(RuntimeError):
    """A derivative or state became non-finite during integration."""


class SimulatorStateError(RuntimeError):
    """A simulator method was called in a state that does not allow it."""
