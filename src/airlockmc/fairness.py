"""Fairness-constrained liveness: Tarjan's SCC decomposition and fair-cycle search.

A claim ``AF P`` (from every reachable state, along every fair path) fails
iff the reachable graph restricted to ``!P`` states contains a fair SCC: a
nontrivial component in which every fairness predicate holds on some node.
The system can loop there forever, satisfying each fairness condition
infinitely often, without ever reaching ``P``.
"""
from __future__ import annotations
from dataclasses import dataclass
from airlockmc.controller import evaluate
from airlockmc.explorer import ExplorationResult, context
from airlockmc.model import Configuration, Expr, LivenessClaim
from airlockmc.trace import Trace, bfs_path, lasso_trace, path_to

State = Configuration


@dataclass
class LivenessResult:
    """Result of checking one liveness claim on the reachable graph."""
    claim: LivenessClaim
    holds: bool
    fair_sccs: list[frozenset[State]]
    lasso: tuple[list[State], list[State]] | None = None  # (prefix, cycle)
    trace: Trace | None = None


def restrict(adj: dict[State, list[State]],
             keep: set[State]) -> dict[State, list[State]]:
    """Subgraph induced by ``keep``."""
    return {s: [d for d in succs if d in keep]
            for s, succs in adj.items() if s in keep}


def compute_sccs(adj: dict[State, list[State]]) -> list[frozenset[State]]:
    """Tarjan's SCC decomposition of an adjacency map, without recursion.

    Nodes are the keys of ``adj``; edges to other nodes are ignored.
    Components come out in reverse topological order.
    """
    order: dict[State, int] = {}
    low: dict[State, int] = {}
    pending: list[State] = []
    on_pending: set[State] = set()
    sccs: list[frozenset[State]] = []

    def visit(node):
        order[node] = low[node] = len(order)
        pending.append(node)
        on_pending.add(node)
        return node, iter(adj[node])

    for root in adj:
        if root in order:
            continue
        frames = [visit(root)]
        while frames:
            node, succs = frames[-1]
            for succ in succs:
                if succ not in adj:
                    continue
                if succ not in order:
                    frames.append(visit(succ))
                    break
                if succ in on_pending:
                    low[node] = min(low[node], order[succ])
            else:
                frames.pop()
                if frames:
                    caller = frames[-1][0]
                    low[caller] = min(low[caller], low[node])
                if low[node] == order[node]:
                    members = set()
                    while True:
                        member = pending.pop()
                        on_pending.discard(member)
                        members.add(member)
                        if member == node:
                            break
                    sccs.append(frozenset(members))
    return sccs


def nontrivial_sccs(sccs: list[frozenset[State]],
                    adj: dict[State, list[State]]) -> list[frozenset[State]]:
    """Components that can be looped in: several nodes, or one with a self-loop."""
    return [scc for scc in sccs
            if len(scc) > 1 or any(s in adj.get(s, ()) for s in scc)]


def _satisfying(exploration: ExplorationResult, expr: Expr,
                states) -> set[State]:
    return {s for s in states
            if evaluate(expr, context(s, exploration.outputs.get(s)))}


def check_liveness(exploration: ExplorationResult,
                   claim: LivenessClaim) -> LivenessResult:
    """Decide ``AF claim.target`` under ``claim.fairness`` on a complete graph."""
    reachable = exploration.reachable_states
    not_p = reachable - _satisfying(exploration, claim.target, reachable)
    restricted = restrict(exploration.successors(), not_p)

    sccs = compute_sccs(restricted)
    witnesses: dict[frozenset[State], list[set[State]]] = {}
    fair: list[frozenset[State]] = []
    for scc in nontrivial_sccs(sccs, restricted):
        per_condition = [_satisfying(exploration, f.expr, scc) for f in claim.fairness]
        if all(per_condition):
            fair.append(scc)
            witnesses[scc] = per_condition

    if not fair:
        return LivenessResult(claim=claim, holds=True, fair_sccs=[])

    # Report the fair SCC closest to the initial configuration.
    depth = {s: i for i, layer in enumerate(exploration.bfs_layers) for s in layer}
    target_scc = min(fair, key=lambda scc: min((depth[s], str(s)) for s in scc))
    lasso = extract_lasso(exploration, target_scc, witnesses[target_scc])
    return LivenessResult(
        claim=claim,
        holds=False,
        fair_sccs=fair,
        lasso=lasso,
        trace=lasso_trace(*lasso),
    )


def extract_lasso(
    exploration: ExplorationResult,
    scc: frozenset[State],
    witnesses: list[set[State]],
) -> tuple[list[State], list[State]]:
    """Extract a lasso counterexample: (prefix, cycle).

    prefix: BFS-shortest path from the initial configuration to the SCC
    cycle: path inside the SCC from the entry through one witness per
    fairness condition and back to the entry
    """
    depth = {s: i for i, layer in enumerate(exploration.bfs_layers) for s in layer}
    entry = min(scc, key=lambda s: (depth[s], str(s)))
    prefix = path_to(exploration.parent, entry)

    adj = exploration.successors()
    cycle = [entry]
    current = entry
    for targets in witnesses:
        if not targets.isdisjoint(cycle):
            continue
        leg = bfs_path(current, targets & scc, adj, within=scc)
        cycle.extend(leg[1:])
        current = cycle[-1]
    back = bfs_path(current, {entry}, adj, within=scc)
    cycle.extend(back[1:])
    return prefix, cycle
