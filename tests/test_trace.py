"""Tests for path reconstruction and trace rendering."""
from airlockmc.model import INITIAL_CONFIGURATION
from airlockmc.nuxmv_runner import parse_text_traces
from airlockmc.trace import (
    INVARIANT_DESCRIPTION, LIVENESS_DESCRIPTION,
    bfs_path, changed_fields, format_trace, lasso_trace, path_to, safety_trace,
)

A = INITIAL_CONFIGURATION
B = A.replace(button_inner_in=True)
C = B.replace(inner_door="open", cleanliness="dirty")


class TestPaths:
    def test_path_to_root(self):
        parent = {A: None, B: A, C: B}
        assert path_to(parent, C) == [A, B, C]
        assert path_to(parent, A) == [A]

    def test_bfs_path_needs_an_edge(self):
        adj = {A: [B], B: [A]}
        assert bfs_path(A, {A}, adj) == [A, B, A]

    def test_bfs_path_respects_within(self):
        adj = {A: [B, C], B: [C], C: []}
        assert bfs_path(A, {C}, adj, within={B, C}) == [A, C]
        assert bfs_path(A, {C}, adj, within={B}) == []


class TestSafetyTrace:
    def test_states_and_description(self):
        trace = safety_trace({A: None, B: A, C: B}, C)
        assert trace.description == INVARIANT_DESCRIPTION
        assert trace.loop_start is None
        assert trace.configurations == [A, B, C]
        assert len(trace) == 3

    def test_transition_extension(self):
        trace = safety_trace({A: None, B: A}, B, next_state=C)
        assert trace.configurations == [A, B, C]


class TestChangedFields:
    def test_first_state_is_complete(self):
        diffs = changed_fields(safety_trace({A: None, B: A, C: B}, C))
        assert diffs[0] == A.as_dict()
        assert diffs[1] == {"button_inner_in": True}
        assert diffs[2] == {"inner_door": "open", "cleanliness": "dirty"}

    def test_stutter_has_no_changes(self):
        diffs = changed_fields(lasso_trace([A], [A, A]))
        assert diffs[1] == {}


class TestFormat:
    def test_nuxmv_layout(self):
        text = format_trace(safety_trace({A: None, B: A}, B))
        lines = text.splitlines()
        assert lines[0] == f"Trace Description: {INVARIANT_DESCRIPTION}"
        assert "  -> State: 1.1 <-" in lines
        assert "  -> State: 1.2 <-" in lines
        assert "    button_inner_in = TRUE" in lines
        assert "    inner_door = closed" in lines
        assert lines.count("    inner_door = closed") == 1

    def test_loop_marker_before_loop_state(self):
        trace = lasso_trace([A, B], [B, C, B])
        assert trace.description == LIVENESS_DESCRIPTION
        assert trace.loop_start == 1
        lines = format_trace(trace, trace_no=2).splitlines()
        marker = lines.index("  -- Loop starts here")
        assert lines[marker + 1] == "  -> State: 2.2 <-"

    def test_parses_back(self):
        trace = lasso_trace([A, B], [B, C, B])
        parsed = parse_text_traces(format_trace(trace))
        assert len(parsed) == 1
        assert parsed[0].loop_start == trace.loop_start
        assert len(parsed[0].states) == len(trace.states)
        assert parsed[0].states[2]["inner_door"] == "open"
        assert parsed[0].states[3]["inner_door"] == "closed"
