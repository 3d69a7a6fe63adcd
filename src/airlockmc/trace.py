"""Counterexample traces: path reconstruction and nuXmv-style rendering."""
from __future__ import annotations
from collections import deque
from dataclasses import dataclass, field
from airlockmc.model import Configuration

# Trace descriptions, as nuXmv prints them.
INVARIANT_DESCRIPTION = "AG alpha Counterexample"
LIVENESS_DESCRIPTION = "LTL Counterexample"


@dataclass
class Trace:
    """A counterexample trace."""
    states: list[dict[str, object]]   # [{var: value, ...}, ...]
    loop_start: int | None = None     # index of loop-back state (lasso traces)
    description: str = ""
    configurations: list[Configuration] = field(default_factory=list, repr=False)

    def __len__(self):
        return len(self.states)


def path_to(parent: dict[Configuration, Configuration | None],
            target: Configuration) -> list[Configuration]:
    """Walk the BFS predecessor map back from ``target`` to the root."""
    path = []
    current: Configuration | None = target
    while current is not None:
        path.append(current)
        current = parent.get(current)
    path.reverse()
    return path


def bfs_path(start: Configuration,
             targets: set[Configuration] | frozenset[Configuration],
             adj: dict[Configuration, list[Configuration]],
             within: set[Configuration] | frozenset[Configuration] | None = None,
             ) -> list[Configuration]:
    """Shortest path from ``start`` to any of ``targets`` using at least one edge.

    Only nodes in ``within`` are used when given. Returns [] if unreachable.
    """
    visited: set[Configuration] = set()
    parent: dict[Configuration, Configuration | None] = {}
    queue: deque[Configuration] = deque()

    for succ in adj.get(start, []):
        if within is not None and succ not in within:
            continue
        if succ in targets:
            return [start, succ]
        if succ not in visited:
            visited.add(succ)
            parent[succ] = None
            queue.append(succ)

    while queue:
        current = queue.popleft()
        for succ in adj.get(current, []):
            if within is not None and succ not in within:
                continue
            if succ in targets:
                return [start] + path_to(parent, current) + [succ]
            if succ not in visited:
                visited.add(succ)
                parent[succ] = current
                queue.append(succ)
    return []


def make_trace(configs: list[Configuration], description: str,
               loop_start: int | None = None) -> Trace:
    return Trace(
        states=[c.as_dict() for c in configs],
        loop_start=loop_start,
        description=description,
        configurations=list(configs),
    )


def safety_trace(parent: dict[Configuration, Configuration | None],
                 target: Configuration,
                 next_state: Configuration | None = None) -> Trace:
    """Shortest path to ``target``, extended by one step for transition invariants."""
    configs = path_to(parent, target)
    if next_state is not None:
        configs.append(next_state)
    return make_trace(configs, INVARIANT_DESCRIPTION)


def lasso_trace(prefix: list[Configuration], cycle: list[Configuration]) -> Trace:
    """Build ``prefix; loop starts here; cycle``.

    ``prefix`` ends at the loop entry and ``cycle`` starts and ends there.
    """
    configs = list(prefix) + list(cycle[1:])
    return make_trace(configs, LIVENESS_DESCRIPTION, loop_start=len(prefix) - 1)


def changed_fields(trace: Trace) -> list[dict[str, object]]:
    """Per step, the fields whose value differs from the previous step."""
    diffs = []
    prev: dict[str, object] = {}
    for state in trace.states:
        diffs.append({k: v for k, v in state.items() if prev.get(k, _MISSING) != v})
        prev = state
    return diffs


_MISSING = object()


def _fmt(value) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


def format_trace(trace: Trace, trace_no: int = 1) -> str:
    """Render a trace the way nuXmv prints counterexamples."""
    lines = [f"Trace Description: {trace.description}", "Trace Type: Counterexample"]
    for i, diff in enumerate(changed_fields(trace)):
        if trace.loop_start is not None and i == trace.loop_start:
            lines.append("  -- Loop starts here")
        lines.append(f"  -> State: {trace_no}.{i + 1} <-")
        for name, value in diff.items():
            lines.append(f"    {name} = {_fmt(value)}")
    return "\n".join(lines)
