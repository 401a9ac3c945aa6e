"""Per-step environment refresh.

Every environment quantity that depends on time or on the propagated state
is a node keyed ``"<kind>:<body>"`` (``state``, ``rotation``, ``mass``,
``angles``, ``flight_conditions``, or a user-defined kind). Each node has an
update function, a reset function and the keys of the nodes it reads.

The update order is fixed once, at construction, by a topological sort of
the node dependencies. ``update(time, state)`` then refreshes all nodes in
that order, or does nothing if called again with the same time and state.

Example:
    >>> updater = create_environment_updater(bodies, layout, {"Vehicle": "Earth"})
    >>> updater.update(0.0, x0)
    >>> updater.order
    ['state:Earth', 'rotation:Earth', 'state:Vehicle', 'angles:Vehicle', ...]
"""

import logging
from dataclasses import dataclass, field
from typing import Callable

import networkx as nx
import numpy as np

from trajsim.dynamics.state_derivative import PropagatorType, StateLayout
from trajsim.environment.aerodynamic_angles import (
    AerodynamicAngleRotation,
    RotationDriven,
)
from trajsim.exceptions import CircularEnvironmentDependency, ConfigurationError
from trajsim.timing import TimeLike

logger = logging.getLogger(__name__)


def _no_reset() -> None:
    pass


@dataclass
class EnvironmentNode:
    """One refreshable environment quantity.

    Attributes:
        key: ``"<kind>:<body>"``
        update: Called with (time, global state)
        reset: Invalidates memoized values of the underlying model
        depends_on: Keys of the nodes that must be updated first
    """
    key: str
    update: Callable[[TimeLike, np.ndarray], None]
    reset: Callable[[], None] = _no_reset
    depends_on: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ClosureBinding:
    """Directed edge: ``dependent`` is updated from ``source``."""
    dependent: str
    source: str


class EnvironmentUpdater:
    """Refreshes environment nodes once per (time, state), in dependency order.

    Raises:
        CircularEnvironmentDependency: If the node dependencies contain a cycle
        ConfigurationError: If a node depends on a key that does not exist
    """

    def __init__(self, nodes: list[EnvironmentNode], bindings: list[ClosureBinding] | None = None) -> None:
        self.nodes = {node.key: node for node in nodes}
        if len(self.nodes) != len(nodes):
            raise ConfigurationError("Duplicate environment node keys")

        dependencies = {key: set(node.depends_on) for key, node in self.nodes.items()}
        for binding in bindings or []:
            dependencies.setdefault(binding.dependent, set()).add(binding.source)

        for key, sources in dependencies.items():
            if key not in self.nodes:
                raise ConfigurationError(f"Binding refers to unknown environment node '{key}'")
            missing = sources - self.nodes.keys()
            if missing:
                raise ConfigurationError(
                    f"Environment node '{key}' depends on unknown node(s) {sorted(missing)}"
                )

        self.bindings = [
            ClosureBinding(key, source) for key, sources in dependencies.items() for source in sorted(sources)
        ]
        self.graph = nx.DiGraph()
        self.graph.add_nodes_from(self.nodes)
        self.graph.add_edges_from((binding.source, binding.dependent) for binding in self.bindings)
        try:
            self.order = list(nx.topological_sort(self.graph))
        except nx.NetworkXUnfeasible:
            cycle = nx.find_cycle(self.graph)
            raise CircularEnvironmentDependency([source for source, _ in cycle] + [cycle[0][0]]) from None
        logger.debug("Environment update order: %s", self.order)

        self.update_counts = {key: 0 for key in self.nodes}
        self.node_times: dict[str, TimeLike] = {}
        self.cache_hits = 0
        self._last_time: TimeLike | None = None
        self._last_state: bytes | None = None

    def update(self, time: TimeLike, state: np.ndarray) -> None:
        """Bring every node to (time, state)."""
        state_key = np.ascontiguousarray(state).tobytes()
        if (
            self._last_time is not None
            and type(self._last_time) is type(time)
            and self._last_time == time
            and self._last_state == state_key
        ):
            self.cache_hits += 1
            return

        for key in self.order:
            self.nodes[key].reset()
        for key in self.order:
            self.nodes[key].update(time, state)
            self.update_counts[key] += 1
            self.node_times[key] = time

        self._last_time = time
        self._last_state = state_key

    def reset(self) -> None:
        """Forget the cached (time, state); the next update recomputes everything."""
        self._last_time = None
        self._last_state = None
        for key in self.order:
            self.nodes[key].reset()


# =============================================================================
# Construction from a body set
# =============================================================================


def create_environment_updater(
    bodies,
    layout: StateLayout,
    central_bodies: dict[str, str],
    bindings: list[ClosureBinding] | None = None,
    custom_nodes: list[EnvironmentNode] | None = None,
) -> EnvironmentUpdater:
    """Build the nodes of every body in ``bodies`` and order them.

    Dependencies of the built-in nodes on quantities a body does not have
    (e.g. the rotation of a body without rotation model) are dropped;
    dependencies of custom nodes and bindings must exist.

    Args:
        bodies: Body registry
        layout: Propagated state layout
        central_bodies: Central body of each translationally propagated body
        bindings: Additional dependency edges
        custom_nodes: User-defined nodes
    """
    translational = set(layout.bodies(PropagatorType.TRANSLATIONAL))
    rotational = set(layout.bodies(PropagatorType.ROTATIONAL))
    propagated_mass = set(layout.bodies(PropagatorType.MASS))

    nodes: list[EnvironmentNode] = []
    for body in bodies:
        nodes.extend(_state_nodes(body, bodies, layout, central_bodies, translational))
        nodes.extend(_rotation_nodes(body, layout, rotational, translational))
        nodes.extend(_mass_nodes(body, layout, propagated_mass))
        nodes.extend(_flight_condition_nodes(body))

    keys = {node.key for node in nodes}
    for node in nodes:
        node.depends_on = tuple(dep for dep in node.depends_on if dep in keys)

    return EnvironmentUpdater(nodes + list(custom_nodes or []), bindings)


def _state_nodes(body, bodies, layout, central_bodies, translational) -> list[EnvironmentNode]:
    name = body.name
    if name in translational:
        block = layout.block(PropagatorType.TRANSLATIONAL, name)
        central_name = central_bodies[name]
        central = bodies.get_body(central_name)

        def update(time, state, body=body, block=block, central=central):
            body.set_state(central.state + np.asarray(state[block.slice], dtype=np.float64))

        return [EnvironmentNode(f"state:{name}", update, depends_on=(f"state:{central_name}",))]

    if body.ephemeris is not None:
        return [EnvironmentNode(f"state:{name}", lambda time, state, body=body: body.update_state_from_ephemeris(time))]
    return []


def _rotation_nodes(body, layout, rotational, translational) -> list[EnvironmentNode]:
    name = body.name
    if name in rotational:
        block = layout.block(PropagatorType.ROTATIONAL, name)

        def update(time, state, body=body, block=block):
            values = np.asarray(state[block.slice], dtype=np.float64)
            body.set_rotation_from_quaternion(values[:4], values[4:])

        return [EnvironmentNode(f"rotation:{name}", update)]

    model = body.rotation_model
    if model is None:
        return []
    depends_on: tuple[str, ...] = ()
    if isinstance(model, AerodynamicAngleRotation):
        model.set_is_body_in_propagation(name in translational)
        depends_on = (f"angles:{name}",)
    return [EnvironmentNode(
        f"rotation:{name}",
        lambda time, state, body=body: body.update_rotation_from_model(time),
        reset=model.reset_current_time,
        depends_on=depends_on,
    )]


def _mass_nodes(body, layout, propagated_mass) -> list[EnvironmentNode]:
    name = body.name
    if name in propagated_mass:
        block = layout.block(PropagatorType.MASS, name)

        def update(time, state, body=body, block=block):
            body.current_mass = float(state[block.start])

        return [EnvironmentNode(f"mass:{name}", update)]
    if body.mass is not None or body.mass_function is not None:
        return [EnvironmentNode(f"mass:{name}", lambda time, state, body=body: body.update_mass(time))]
    return []


def _flight_condition_nodes(body) -> list[EnvironmentNode]:
    flight_conditions = body.flight_conditions
    if flight_conditions is None:
        return []
    name = body.name
    central_name = flight_conditions.central_body_name
    calculator = flight_conditions.angle_calculator

    angle_dependencies = [f"state:{name}", f"state:{central_name}", f"rotation:{central_name}"]
    if isinstance(calculator.closure, RotationDriven):
        angle_dependencies.append(f"rotation:{name}")

    angles = EnvironmentNode(
        f"angles:{name}",
        lambda time, state, calculator=calculator: calculator.update(time),
        reset=calculator.reset_current_time,
        depends_on=tuple(angle_dependencies),
    )
    conditions = EnvironmentNode(
        f"flight_conditions:{name}",
        lambda time, state, fc=flight_conditions: fc.update(time),
        reset=flight_conditions.reset_current_time,
        depends_on=(f"angles:{name}", f"rotation:{name}", f"state:{name}"),
    )
    return [angles, conditions]
