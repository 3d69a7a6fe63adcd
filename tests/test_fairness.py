"""Tests for SCC decomposition and fairness-constrained liveness."""
from __future__ import annotations
from airlockmc.explorer import ExplorationResult, explore
from airlockmc.fairness import (
    check_liveness, compute_sccs, extract_lasso, nontrivial_sccs, restrict,
)
from airlockmc.model import Configuration, INITIAL_CONFIGURATION
from airlockmc.properties import DEFAULT_FAIRNESS, liveness


# ======================== Hand-crafted graph helpers ========================

def _make_explicit(layers, transitions) -> ExplorationResult:
    """Build a minimal ExplorationResult from hand-crafted data."""
    states = {s for layer in layers for s in layer}
    parent = {layers[0][0]: None}
    for src, dst in transitions:
        if dst not in parent:
            parent[dst] = src
    return ExplorationResult(
        initial=layers[0][0],
        reachable_states=states,
        transitions=transitions,
        bfs_layers=[list(layer) for layer in layers],
        parent=parent,
    )


A = INITIAL_CONFIGURATION
B = A.replace(button_inner_in=True)
C = A.replace(inner_door="open", cleanliness="dirty")
D = A.replace(button_outer_out=True)


# ======================== SCC Tests ========================

class TestSCC:
    def test_simple_cycle(self):
        """a->b->c->a + d->a: SCC {a,b,c} nontrivial, {d} trivial."""
        a, b, c, d = (0,), (1,), (2,), (3,)
        adj = {a: [b], b: [c], c: [a], d: [a]}
        sccs = compute_sccs(adj)
        assert len(sccs) == 2
        assert nontrivial_sccs(sccs, adj) == [frozenset({a, b, c})]

    def test_self_loop_scc(self):
        s = (0,)
        adj = {s: [s]}
        assert nontrivial_sccs(compute_sccs(adj), adj) == [frozenset({s})]

    def test_no_edges(self):
        adj = {(0,): [], (1,): []}
        sccs = compute_sccs(adj)
        assert len(sccs) == 2
        assert nontrivial_sccs(sccs, adj) == []

    def test_scc_partition(self):
        a, b, c, d = (0,), (1,), (2,), (3,)
        sccs = compute_sccs({a: [b, c], b: [a], c: [d], d: [c]})
        seen: set = set()
        for scc in sccs:
            assert seen.isdisjoint(scc)
            seen |= scc
        assert seen == {a, b, c, d}
        assert sccs == [frozenset({c, d}), frozenset({a, b})]

    def test_edges_outside_graph_ignored(self):
        a, b = (0,), (1,)
        assert compute_sccs({a: [b]}) == [frozenset({a})]

    def test_restrict(self):
        a, b, c = (0,), (1,), (2,)
        adj = {a: [b, c], b: [a], c: [c]}
        assert restrict(adj, {a, b}) == {a: [b], b: [a]}

    def test_long_chain_is_iterative(self):
        n = 5000
        nodes = [(i,) for i in range(n)]
        adj = {nodes[i]: [nodes[(i + 1) % n]] for i in range(n)}
        assert len(compute_sccs(adj)) == 1

    def test_airlock_graph_partitions(self, airlock_explicit):
        adj = airlock_explicit.successors()
        sccs = compute_sccs(adj)
        assert sum(len(scc) for scc in sccs) == len(airlock_explicit.reachable_states)
        assert frozenset().union(*sccs) == airlock_explicit.reachable_states


# ======================== Liveness on hand-crafted graphs ========================

class TestLivenessHandCrafted:
    def test_unfair_cycle_is_ignored(self):
        """A stutters forever, but fairness demands B infinitely often."""
        er = _make_explicit([[A], [B], [C]],
                            [(A, A), (A, B), (B, C), (C, A)])
        claim = liveness("open", "inner_door = open", ["button_inner_in"])
        assert check_liveness(er, claim).holds

    def test_unconstrained_stutter_refutes(self):
        er = _make_explicit([[A], [B], [C]],
                            [(A, A), (A, B), (B, C), (C, A)])
        claim = liveness("open", "inner_door = open", [])
        result = check_liveness(er, claim)
        assert not result.holds
        prefix, cycle = result.lasso
        assert prefix == [A]
        assert cycle == [A, A]

    def test_fair_cycle_avoiding_target(self):
        """A <-> D cycles fairly (outer button pressed) without opening the inner door."""
        er = _make_explicit([[A], [B, D], [C]],
                            [(A, B), (A, D), (D, A), (B, C), (C, A)])
        claim = liveness("open", "inner_door = open", ["button_outer_out"])
        result = check_liveness(er, claim)
        assert not result.holds
        assert result.fair_sccs == [frozenset({A, D})]
        prefix, cycle = result.lasso
        assert prefix == [A]
        assert cycle == [A, D, A]

    def test_target_on_every_cycle(self):
        er = _make_explicit([[A], [B], [C]], [(A, B), (B, C), (C, A)])
        claim = liveness("open", "inner_door = open", [])
        assert check_liveness(er, claim).holds

    def test_lasso_visits_every_fairness_witness(self):
        er = _make_explicit([[A], [B, D]],
                            [(A, B), (B, A), (A, D), (D, A)])
        scc = frozenset({A, B, D})
        prefix, cycle = extract_lasso(er, scc, [{B}, {D}])
        assert prefix == [A]
        assert cycle[0] == cycle[-1] == A
        assert B in cycle and D in cycle
        edges = set(er.transitions)
        for src, dst in zip(cycle, cycle[1:]):
            assert (src, dst) in edges


# ======================== Liveness on the airlock ========================

class TestAirlockLiveness:
    def test_inner_door_eventually_opens(self, airlock_explicit):
        claim = liveness("inner", "inner_door = open", DEFAULT_FAIRNESS)
        assert check_liveness(airlock_explicit, claim).holds

    def test_outer_door_eventually_opens(self, airlock_explicit):
        claim = liveness("outer", "outer_door = open", DEFAULT_FAIRNESS)
        assert check_liveness(airlock_explicit, claim).holds

    def test_buttons_are_released(self, airlock_explicit):
        for b in ["button_inner_in", "button_inner_out",
                  "button_outer_in", "button_outer_out"]:
            claim = liveness(b, f"!{b}", DEFAULT_FAIRNESS)
            assert check_liveness(airlock_explicit, claim).holds, b

    def test_button_fairness_alone_does_not_open_outer(self, airlock_explicit):
        fairness = ["button_inner_in", "button_inner_out",
                    "button_outer_in", "button_outer_out"]
        claim = liveness("outer", "outer_door = open", fairness)
        result = check_liveness(airlock_explicit, claim)
        assert not result.holds

        prefix, cycle = result.lasso
        assert prefix[0] == INITIAL_CONFIGURATION
        assert prefix[-1] == cycle[0] == cycle[-1]
        assert all(s.outer_door == "closed" for s in cycle)
        for b in fairness:
            assert any(getattr(s, b) for s in cycle), b
        edges = set(airlock_explicit.transitions)
        path = prefix + cycle[1:]
        for src, dst in zip(path, path[1:]):
            assert (src, dst) in edges

    def test_trace_loop_marker(self, airlock_explicit):
        claim = liveness("stutter", "inner_door = open", [])
        result = check_liveness(airlock_explicit, claim)
        assert result.trace.loop_start == 0
        assert result.trace.configurations == [INITIAL_CONFIGURATION, INITIAL_CONFIGURATION]
