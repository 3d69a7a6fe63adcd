"""Airlock controller: ordered rule tables, expression evaluation and the step function."""
from __future__ import annotations
import itertools
import logging
from airlockmc.components import next_status
from airlockmc.errors import MalformedModelError
from airlockmc.expr_parser import parse_expr
from airlockmc.model import (
    AirlockModel, Configuration, ControllerOutput, Rule, RuleTable, Expr,
    BoolLit, VarRef, NextRef, BinOp, UnaryOp,
    COMMANDS, CLEANLINESS_VALUES, DOORS, FIELD_NAMES, TABLE_NAMES,
    get_domain, referenced_names, next_refs, expr_to_str,
)

log = logging.getLogger("airlockmc.controller")

# A state dict maps variable (and output) names to their current values.
StateDict = dict[str, object]


# ---------------------------------------------------------------------------
# Default rule tables
# ---------------------------------------------------------------------------

# Outside-request buttons may be cleared in evacuation mode even while their
# door is still closed.
_RESET_RULES = {
    "reset_inner_in": "button_inner_in & inner_door = open",
    "reset_inner_out": "button_inner_out & (inner_door = open | access_mode = evac)",
    "reset_outer_in": "button_outer_in & outer_door = open",
    "reset_outer_out": "button_outer_out & (outer_door = open | access_mode = evac)",
}

_OUTER_CMD_RULES = [
    ("lockdown-close", "access_mode = lockdown & outer_door = open", "close"),
    ("lockdown-hold", "access_mode = lockdown", "nop"),
    ("evac-inner-request-blocks", "access_mode = evac & button_inner_in", "nop"),
    ("evac-egress",
     "access_mode = evac & button_outer_in & inner_door = closed"
     " & outer_door = closed & cleanliness = clean", "open"),
    ("inner-open-blocks", "inner_door = open", "nop"),
    ("inner-request-precedes", "button_inner_in | button_inner_out", "nop"),
    ("auto-close",
     "outer_door = open & !(button_outer_in | button_outer_out)", "close"),
    ("evac-hold", "access_mode = evac", "nop"),
    ("request-open",
     "inner_door = closed & (button_outer_in | button_outer_out)"
     " & cleanliness = clean & outer_door = closed", "open"),
    ("default", "TRUE", "nop"),
]

_INNER_CMD_RULES = [
    ("lockdown-close", "access_mode = lockdown & inner_door = open", "close"),
    ("lockdown-hold", "access_mode = lockdown", "nop"),
    ("evac-entry",
     "access_mode = evac & button_inner_in & outer_door = closed"
     " & inner_door = closed", "open"),
    ("outer-open-blocks", "outer_door = open", "nop"),
    ("auto-close",
     "inner_door = open & !(button_inner_in | button_inner_out)", "close"),
    ("evac-hold", "access_mode = evac", "nop"),
    ("request-open",
     "outer_door = closed & (button_inner_in | button_inner_out)"
     " & inner_door = closed", "open"),
    ("default", "TRUE", "nop"),
]

_CLEANLINESS_RULES = [
    ("inner-opening", "next(inner_door) = open", "dirty"),
    ("inner-open", "inner_door = open", "dirty"),
    ("cleaning",
     "cleanliness = dirty & inner_door = closed & outer_door = closed", "clean"),
    ("default", "TRUE", "cleanliness"),
]


def make_table(name: str, rules: list[tuple[str, str, str]], domain: list) -> RuleTable:
    """Build a rule table from (rule_id, guard text, value text) triples."""
    return RuleTable(
        name=name,
        rules=[Rule(rid, parse_expr(guard), parse_expr(value))
               for rid, guard, value in rules],
        domain=list(domain),
    )


def default_tables() -> dict[str, RuleTable]:
    tables: dict[str, RuleTable] = {}
    for name, guard in _RESET_RULES.items():
        tables[name] = make_table(
            name, [("pressed", guard, "TRUE"), ("default", "TRUE", "FALSE")],
            [False, True],
        )
    tables["inner_cmd"] = make_table("inner_cmd", _INNER_CMD_RULES, COMMANDS)
    tables["outer_cmd"] = make_table("outer_cmd", _OUTER_CMD_RULES, COMMANDS)
    tables["cleanliness"] = make_table(
        "cleanliness", _CLEANLINESS_RULES, CLEANLINESS_VALUES)
    return tables


def default_model() -> AirlockModel:
    """The airlock controller with the standard rule tables."""
    return AirlockModel(tables=default_tables())


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def evaluate(expr: Expr, state: StateDict,
             next_state: StateDict | None = None) -> object:
    """Evaluate an expression AST node given current state (and optional next state)."""
    if isinstance(expr, BoolLit):
        return expr.value
    elif isinstance(expr, VarRef):
        if expr.name in state:
            return state[expr.name]
        # Must be an enum constant (e.g., "open", "dirty", "evac")
        return expr.name
    elif isinstance(expr, NextRef):
        if next_state is not None and expr.name in next_state:
            return next_state[expr.name]
        raise ValueError(f"next({expr.name}) referenced but not yet computed")
    elif isinstance(expr, UnaryOp):
        if expr.op == "!":
            return not evaluate(expr.operand, state, next_state)
        raise ValueError(f"Unknown unary op: {expr.op}")
    elif isinstance(expr, BinOp):
        left = evaluate(expr.left, state, next_state)
        right = evaluate(expr.right, state, next_state)
        op = expr.op
        if op == "=":
            return left == right
        elif op == "!=":
            return left != right
        elif op == "&":
            return bool(left and right)
        elif op == "|":
            return bool(left or right)
        elif op == "->":
            return (not left) or bool(right)
        elif op == "<->":
            return bool(left) == bool(right)
        raise ValueError(f"Unknown binary op: {op}")
    raise ValueError(f"Cannot evaluate expression type: {type(expr)}")


def fire(table: RuleTable, state: StateDict,
         next_state: StateDict | None = None,
         config: Configuration | None = None) -> tuple[Rule, object]:
    """Return the first rule of ``table`` whose guard holds, and its value."""
    for rule in table.rules:
        cond = evaluate(rule.guard, state, next_state)
        if not isinstance(cond, bool):
            raise MalformedModelError(
                f"guard of {table.name} is not boolean: {expr_to_str(rule.guard)}",
                config=config, rule=f"{table.name}.{rule.rule_id}",
            )
        if cond:
            return rule, evaluate(rule.value, state, next_state)
    raise MalformedModelError(
        f"no rule of table {table.name!r} matches", config=config, rule=table.name,
    )


def step(model: AirlockModel, config: Configuration) -> ControllerOutput:
    """Compute door commands, button resets and next cleanliness for ``config``.

    Evaluation order: resets, door commands, next door statuses, cleanliness.
    Raises IllegalCommandError when a door table issues an illegal command.
    """
    state = config.as_dict()
    tables = model.tables
    resets = {
        name: fire(tables[name], state, config=config)[1]
        for name in TABLE_NAMES if name.startswith("reset_")
    }
    _, inner_cmd = fire(tables["inner_cmd"], state, config=config)
    _, outer_cmd = fire(tables["outer_cmd"], state, config=config)
    next_doors = {
        "inner_door": next_status(config.inner_door, inner_cmd, "inner_door"),
        "outer_door": next_status(config.outer_door, outer_cmd, "outer_door"),
    }
    _, cleanliness = fire(tables["cleanliness"], state, next_doors, config=config)
    return ControllerOutput(
        inner_cmd=inner_cmd,
        outer_cmd=outer_cmd,
        next_cleanliness=cleanliness,
        **resets,
    )


# ---------------------------------------------------------------------------
# Load-time checks
# ---------------------------------------------------------------------------

def all_configurations(model: AirlockModel) -> list[Configuration]:
    """Every Configuration in the full variable domain."""
    domains = [get_domain(model.variables[name]) for name in FIELD_NAMES]
    return [Configuration(**dict(zip(FIELD_NAMES, combo)))
            for combo in itertools.product(*domains)]


def _check_names(model: AirlockModel, table: RuleTable):
    known = set(FIELD_NAMES) | model.enum_constants()
    allowed_next = set(DOORS) if table.name == "cleanliness" else set()
    for rule in table.rules:
        rid = f"{table.name}.{rule.rule_id}"
        for expr in (rule.guard, rule.value):
            unknown = referenced_names(expr) - known
            if unknown:
                raise MalformedModelError(
                    f"reference to undeclared field(s) {sorted(unknown)}", rule=rid)
            bad_next = next_refs(expr) - allowed_next
            if bad_next:
                raise MalformedModelError(
                    f"next() not allowed on {sorted(bad_next)}", rule=rid)


def validate_model(model: AirlockModel):
    """Fail fast on anything that would make exploration meaningless.

    Checks table presence, field references, default arms, the mode graph,
    the initial Configuration, and that every table is total with in-domain
    values over the full Configuration domain.
    """
    missing = [n for n in TABLE_NAMES if n not in model.tables]
    if missing:
        raise MalformedModelError(f"missing rule table(s): {missing}")
    extra = [n for n in model.tables if n not in TABLE_NAMES]
    if extra:
        raise MalformedModelError(f"unknown rule table(s): {extra}")

    for table in model.tables.values():
        _check_names(model, table)
        if not table.rules or table.rules[-1].guard != BoolLit(True):
            raise MalformedModelError(
                f"table {table.name!r} has no TRUE default arm", rule=table.name)

    modes = get_domain(model.variables["access_mode"])
    for mode in modes:
        targets = model.mode_graph.get(mode)
        if not targets:
            raise MalformedModelError(f"access mode {mode!r} has no successors")
        if any(t not in modes for t in targets):
            raise MalformedModelError(f"access mode graph leaves the domain at {mode!r}")

    for name, value in model.initial.as_dict().items():
        if value not in get_domain(model.variables[name]):
            raise MalformedModelError(
                f"initial value {value!r} of {name} is out of domain")

    door_domain = get_domain(model.variables["inner_door"])
    door_bindings = [dict(zip(DOORS, combo))
                     for combo in itertools.product(door_domain, repeat=len(DOORS))]
    configs = all_configurations(model)
    for table in model.tables.values():
        uses_next = any(next_refs(r.guard) or next_refs(r.value) for r in table.rules)
        bindings = door_bindings if uses_next else [None]
        for config in configs:
            state = config.as_dict()
            for nxt in bindings:
                rule, value = fire(table, state, nxt, config=config)
                if value not in table.domain:
                    raise MalformedModelError(
                        f"value {value!r} outside {table.domain}",
                        config=config, rule=f"{table.name}.{rule.rule_id}",
                    )
    log.debug("model validated over %d configurations", len(configs))
