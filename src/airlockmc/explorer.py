"""Explicit-state explorer: successor enumeration, BFS reachability, invariant checking."""
from __future__ import annotations
import itertools
import logging
from collections import deque
from dataclasses import dataclass, field
from airlockmc.components import next_pressed, next_status, next_modes
from airlockmc.controller import StateDict, evaluate, step
from airlockmc.errors import (
    IllegalCommandError, IllegalResetError, MalformedModelError, ModelViolation,
)
from airlockmc.model import (
    AirlockModel, Configuration, ControllerOutput, Invariant, BUTTONS, OUTPUT_NAMES,
    referenced_names,
)

log = logging.getLogger("airlockmc.explorer")

DEFAULT_MAX_STATES = 100_000

# Properties the explorer always checks, independent of the property set.
BUILTIN_PROPERTIES = [
    IllegalCommandError.property_name,
    IllegalResetError.property_name,
]


@dataclass
class Violation:
    """First violation of one invariant in BFS order."""
    name: str
    state: Configuration                  # violating node (edge source for transitions)
    next_state: Configuration | None = None  # edge target for transition invariants
    message: str = ""


@dataclass
class ExplorationResult:
    """Reachable configuration graph plus invariant verdicts."""
    initial: Configuration
    reachable_states: set[Configuration]
    transitions: list[tuple[Configuration, Configuration]]  # (src, dst) pairs
    bfs_layers: list[list[Configuration]]
    parent: dict[Configuration, Configuration | None]
    outputs: dict[Configuration, ControllerOutput] = field(default_factory=dict)
    violations: dict[str, Violation] = field(default_factory=dict)
    truncated: bool = False

    @property
    def wellformed(self) -> bool:
        return not any(name in self.violations for name in BUILTIN_PROPERTIES)

    def successors(self) -> dict[Configuration, list[Configuration]]:
        adj: dict[Configuration, list[Configuration]] = {s: [] for s in self.reachable_states}
        for src, dst in self.transitions:
            adj[src].append(dst)
        return adj


def context(config: Configuration, output: ControllerOutput | None) -> StateDict:
    """Evaluation context: configuration fields plus controller outputs."""
    state = config.as_dict()
    if output is not None:
        state.update(output.as_dict())
    return state


def successors_of(model: AirlockModel, config: Configuration,
                  output: ControllerOutput | None = None) -> list[Configuration]:
    """All successor Configurations of ``config``, in a fixed branch order.

    Buttons branch in field order, then the access mode. Duplicates collapse,
    keeping the first occurrence.
    """
    if output is None:
        output = step(model, config)
    inner = next_status(config.inner_door, output.inner_cmd, "inner_door")
    outer = next_status(config.outer_door, output.outer_cmd, "outer_door")
    choices = [
        next_pressed(getattr(config, b), output.reset_for(b), b) for b in BUTTONS
    ]
    choices.append(next_modes(config.access_mode, model.mode_graph))

    succs: dict[Configuration, None] = {}
    for combo in itertools.product(*choices):
        *buttons, mode = combo
        succ = Configuration(
            inner_door=inner,
            outer_door=outer,
            cleanliness=output.next_cleanliness,
            access_mode=mode,
            **dict(zip(BUTTONS, buttons)),
        )
        succs[succ] = None
    return list(succs)


def _evaluable(inv: Invariant, state: StateDict) -> bool:
    return all(name in state for name in referenced_names(inv.expr) if name in OUTPUT_NAMES)


def _holds(inv: Invariant, state: StateDict, next_state: StateDict | None = None) -> bool:
    try:
        return bool(evaluate(inv.expr, state, next_state))
    except ValueError as e:
        raise MalformedModelError(f"cannot evaluate invariant {inv.name!r}: {e}") from e


def explore(model: AirlockModel,
            invariants: list[Invariant] | None = None,
            max_states: int = DEFAULT_MAX_STATES,
            max_depth: int | None = None) -> ExplorationResult:
    """BFS over the reachable Configurations, checking invariants on the way.

    State invariants are checked on each node as it is visited, transition
    invariants on each generated edge. Only the first violation of each
    property is kept, so every counterexample ends at a BFS-minimal node.
    """
    invariants = invariants or []
    state_invs = [inv for inv in invariants if not inv.is_transition]
    trans_invs = [inv for inv in invariants if inv.is_transition]

    init = model.initial
    visited: set[Configuration] = {init}
    parent: dict[Configuration, Configuration | None] = {init: None}
    transitions: list[tuple[Configuration, Configuration]] = []
    bfs_layers: list[list[Configuration]] = [[init]]
    outputs: dict[Configuration, ControllerOutput] = {}
    violations: dict[str, Violation] = {}
    truncated = False

    def record(name, src, dst=None, message=""):
        if name not in violations:
            log.info("property %s violated at depth %d", name, depth)
            violations[name] = Violation(name, src, dst, message)

    queue = deque([init])
    depth = 0
    while queue:
        current_layer_size = len(queue)
        next_layer: list[Configuration] = []

        for _ in range(current_layer_size):
            src = queue.popleft()
            try:
                out = step(model, src)
                outputs[src] = out
                succs = successors_of(model, src, out)
            except ModelViolation as e:
                record(e.property_name, src, message=str(e))
                # Without controller outputs only field-only invariants can be evaluated.
                state = context(src, outputs.get(src))
                for inv in state_invs:
                    if (inv.name not in violations and _evaluable(inv, state)
                            and not _holds(inv, state)):
                        record(inv.name, src)
                continue

            state = context(src, out)
            for inv in state_invs:
                if inv.name not in violations and not _holds(inv, state):
                    record(inv.name, src)

            if max_depth is not None and depth >= max_depth:
                truncated = True
                continue

            for dst in succs:
                if dst not in visited:
                    if len(visited) >= max_states:
                        truncated = True
                        continue
                    visited.add(dst)
                    parent[dst] = src
                    queue.append(dst)
                    next_layer.append(dst)
                transitions.append((src, dst))
                if trans_invs:
                    dst_dict = dst.as_dict()
                    for inv in trans_invs:
                        if inv.name not in violations and not _holds(inv, state, dst_dict):
                            record(inv.name, src, dst)

        if next_layer:
            bfs_layers.append(next_layer)
        depth += 1

    if truncated:
        log.warning("exploration truncated at %d states (max_states=%d, max_depth=%s)",
                    len(visited), max_states, max_depth)
    log.info("explored %d states, %d transitions, %d BFS layers",
             len(visited), len(transitions), len(bfs_layers))

    return ExplorationResult(
        initial=init,
        reachable_states=visited,
        transitions=transitions,
        bfs_layers=bfs_layers,
        parent=parent,
        outputs=outputs,
        violations=violations,
        truncated=truncated,
    )
