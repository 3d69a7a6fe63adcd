"""Tests for the controller rule tables, step function and load-time checks."""
import copy
import pytest
from airlockmc.controller import (
    default_model, evaluate, fire, make_table, step, validate_model,
    all_configurations,
)
from airlockmc.errors import IllegalCommandError, MalformedModelError
from airlockmc.expr_parser import parse_expr
from airlockmc.model import Configuration, INITIAL_CONFIGURATION


def _step(model, **fields):
    return step(model, Configuration(**fields))


class TestEvaluate:
    def test_enum_constant(self):
        assert evaluate(parse_expr("inner_door = open"), {"inner_door": "open"}) is True

    def test_implication(self):
        expr = parse_expr("a -> b")
        assert evaluate(expr, {"a": False, "b": False}) is True
        assert evaluate(expr, {"a": True, "b": False}) is False

    def test_next_requires_binding(self):
        with pytest.raises(ValueError):
            evaluate(parse_expr("next(inner_door) = open"), {"inner_door": "closed"})

    def test_next_binding(self):
        expr = parse_expr("next(inner_door) = open")
        assert evaluate(expr, {}, {"inner_door": "open"}) is True


class TestFire:
    def test_first_match_wins(self):
        table = make_table("t", [("a", "TRUE", "open"), ("b", "TRUE", "close")],
                           ["open", "close", "nop"])
        rule, value = fire(table, {})
        assert rule.rule_id == "a"
        assert value == "open"

    def test_no_match_is_malformed(self):
        table = make_table("t", [("a", "FALSE", "open")], ["open"])
        with pytest.raises(MalformedModelError) as exc:
            fire(table, {}, config=INITIAL_CONFIGURATION)
        assert exc.value.rule == "t"
        assert exc.value.config == INITIAL_CONFIGURATION


class TestScenarios:
    def test_inner_request_opens_inner_door(self, airlock_model):
        out = _step(airlock_model, button_inner_in=True)
        assert out.inner_cmd == "open"
        assert out.outer_cmd == "nop"
        assert out.next_cleanliness == "dirty"

    def test_open_inner_door_resets_request(self, airlock_model):
        out = _step(airlock_model, inner_door="open", cleanliness="dirty",
                    button_inner_in=True)
        assert out.reset_inner_in is True
        assert out.inner_cmd == "nop"

    def test_inner_door_closes_when_no_request(self, airlock_model):
        out = _step(airlock_model, inner_door="open", cleanliness="dirty")
        assert out.inner_cmd == "close"
        assert out.next_cleanliness == "dirty"

    def test_lockdown_closes_outer_door(self, airlock_model):
        out = _step(airlock_model, access_mode="lockdown", outer_door="open")
        assert out.outer_cmd == "close"
        assert out.inner_cmd == "nop"

    def test_lockdown_ignores_requests(self, airlock_model):
        out = _step(airlock_model, access_mode="lockdown", button_inner_in=True,
                    button_outer_out=True)
        assert out.inner_cmd == "nop"
        assert out.outer_cmd == "nop"

    def test_inner_request_precedes_outer(self, airlock_model):
        out = _step(airlock_model, button_inner_out=True, button_outer_out=True)
        assert out.inner_cmd == "open"
        assert out.outer_cmd == "nop"

    def test_outer_request_when_clean(self, airlock_model):
        out = _step(airlock_model, button_outer_out=True)
        assert out.outer_cmd == "open"

    def test_outer_request_blocked_when_dirty(self, airlock_model):
        out = _step(airlock_model, button_outer_out=True, cleanliness="dirty")
        assert out.outer_cmd == "nop"
        assert out.next_cleanliness == "clean"

    def test_evac_egress_from_inside_button(self, airlock_model):
        out = _step(airlock_model, access_mode="evac", button_outer_in=True)
        assert out.outer_cmd == "open"

    def test_evac_outside_button_does_not_open(self, airlock_model):
        out = _step(airlock_model, access_mode="evac", button_outer_out=True)
        assert out.outer_cmd == "nop"
        assert out.reset_outer_out is True

    def test_evac_inner_request_blocks_outer(self, airlock_model):
        out = _step(airlock_model, access_mode="evac", button_inner_in=True,
                    button_outer_in=True)
        assert out.outer_cmd == "nop"
        assert out.inner_cmd == "open"

    def test_evac_resets_inner_outside_button(self, airlock_model):
        out = _step(airlock_model, access_mode="evac", button_inner_out=True)
        assert out.reset_inner_out is True
        assert out.inner_cmd == "nop"

    def test_cleaning_cycle(self, airlock_model):
        out = _step(airlock_model, cleanliness="dirty")
        assert out.next_cleanliness == "clean"

    def test_illegal_command_surfaces(self, airlock_model):
        model = copy.deepcopy(airlock_model)
        model.tables["inner_cmd"] = make_table(
            "inner_cmd", [("always-open", "TRUE", "open")], ["open", "close", "nop"])
        with pytest.raises(IllegalCommandError):
            _step(model, inner_door="open", cleanliness="dirty")


class TestValidateModel:
    def test_default_model_is_valid(self, airlock_model):
        validate_model(airlock_model)

    def test_full_domain_size(self, airlock_model):
        assert len(all_configurations(airlock_model)) == 2 * 2 * 2 ** 4 * 2 * 3

    def test_missing_default_arm(self):
        model = default_model()
        model.tables["outer_cmd"].rules.pop()
        with pytest.raises(MalformedModelError) as exc:
            validate_model(model)
        assert exc.value.rule == "outer_cmd"

    def test_undeclared_field(self):
        model = default_model()
        model.tables["inner_cmd"] = make_table(
            "inner_cmd", [("x", "airlock_pressure = high", "open"), ("default", "TRUE", "nop")],
            ["open", "close", "nop"])
        with pytest.raises(MalformedModelError) as exc:
            validate_model(model)
        assert "airlock_pressure" in str(exc.value)
        assert exc.value.rule == "inner_cmd.x"

    def test_value_outside_domain(self):
        model = default_model()
        model.tables["inner_cmd"] = make_table(
            "inner_cmd", [("default", "TRUE", "dirty")], ["open", "close", "nop"])
        with pytest.raises(MalformedModelError) as exc:
            validate_model(model)
        assert exc.value.config is not None
        assert exc.value.rule == "inner_cmd.default"

    def test_next_outside_cleanliness_table(self):
        model = default_model()
        model.tables["outer_cmd"] = make_table(
            "outer_cmd", [("peek", "next(inner_door) = open", "nop"), ("default", "TRUE", "nop")],
            ["open", "close", "nop"])
        with pytest.raises(MalformedModelError):
            validate_model(model)

    def test_missing_table(self):
        model = default_model()
        del model.tables["reset_outer_in"]
        with pytest.raises(MalformedModelError):
            validate_model(model)

    def test_mode_graph_out_of_domain(self):
        model = default_model()
        model.mode_graph["normal"] = ["normal", "panic"]
        with pytest.raises(MalformedModelError):
            validate_model(model)
