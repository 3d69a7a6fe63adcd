"""Dataclasses for the airlock model: variables, configurations, rule tables, properties."""
from __future__ import annotations
from dataclasses import dataclass, field, fields, replace as _replace
from typing import Union


# --- Variable Types ---

@dataclass
class BoolType:
    pass

@dataclass
class EnumType:
    values: list[str]

VarType = Union[BoolType, EnumType]


@dataclass
class VarDecl:
    name: str
    var_type: VarType


def get_domain(var_decl: VarDecl) -> list:
    """Return the list of all possible values for a variable."""
    vt = var_decl.var_type
    if isinstance(vt, BoolType):
        return [False, True]
    elif isinstance(vt, EnumType):
        return list(vt.values)
    raise ValueError(f"Unknown var type: {vt}")


# --- Domain constants ---

OPEN, CLOSED = "open", "closed"
CLEAN, DIRTY = "clean", "dirty"
NORMAL, EVAC, LOCKDOWN = "normal", "evac", "lockdown"
CMD_OPEN, CMD_CLOSE, CMD_NOP = "open", "close", "nop"

DOOR_VALUES = [CLOSED, OPEN]
CLEANLINESS_VALUES = [CLEAN, DIRTY]
ACCESS_MODES = [NORMAL, EVAC, LOCKDOWN]
COMMANDS = [CMD_OPEN, CMD_CLOSE, CMD_NOP]

BUTTONS = ["button_inner_in", "button_inner_out", "button_outer_in", "button_outer_out"]
DOORS = ["inner_door", "outer_door"]

# Environment-controlled mode graph: mode -> allowed next modes, in branch order.
ACCESS_MODE_GRAPH: dict[str, list[str]] = {
    NORMAL: [NORMAL, EVAC],
    EVAC: [NORMAL, EVAC, LOCKDOWN],
    LOCKDOWN: [LOCKDOWN, NORMAL],
}


def default_variables() -> dict[str, VarDecl]:
    """Declarations for the eight Configuration fields, in field order."""
    decls = [
        VarDecl("inner_door", EnumType(list(DOOR_VALUES))),
        VarDecl("outer_door", EnumType(list(DOOR_VALUES))),
    ]
    decls += [VarDecl(b, BoolType()) for b in BUTTONS]
    decls += [
        VarDecl("cleanliness", EnumType(list(CLEANLINESS_VALUES))),
        VarDecl("access_mode", EnumType(list(ACCESS_MODES))),
    ]
    return {d.name: d for d in decls}


# --- Configuration ---

@dataclass(frozen=True)
class Configuration:
    """Complete controller + environment state at one step. Immutable."""
    inner_door: str = CLOSED
    outer_door: str = CLOSED
    button_inner_in: bool = False
    button_inner_out: bool = False
    button_outer_in: bool = False
    button_outer_out: bool = False
    cleanliness: str = CLEAN
    access_mode: str = NORMAL

    def as_dict(self) -> dict[str, object]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def replace(self, **changes) -> Configuration:
        return _replace(self, **changes)

    def __str__(self):
        return ", ".join(f"{k} = {_fmt_value(v)}" for k, v in self.as_dict().items())


FIELD_NAMES = [f.name for f in fields(Configuration)]
INITIAL_CONFIGURATION = Configuration()


def _fmt_value(value) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


# --- Controller outputs ---

@dataclass(frozen=True)
class ControllerOutput:
    """Everything the controller decides for one step."""
    inner_cmd: str
    outer_cmd: str
    reset_inner_in: bool
    reset_inner_out: bool
    reset_outer_in: bool
    reset_outer_out: bool
    next_cleanliness: str

    def as_dict(self) -> dict[str, object]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def reset_for(self, button: str) -> bool:
        return getattr(self, "reset_" + button[len("button_"):])


OUTPUT_NAMES = [f.name for f in fields(ControllerOutput)]


# --- Expression AST ---

@dataclass(frozen=True)
class BoolLit:
    value: bool

@dataclass(frozen=True)
class VarRef:
    name: str

@dataclass(frozen=True)
class NextRef:
    """Reference to next(var) inside a condition."""
    name: str

@dataclass(frozen=True)
class BinOp:
    op: str
    left: Expr
    right: Expr

@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: Expr

Expr = Union[BoolLit, VarRef, NextRef, BinOp, UnaryOp]


def expr_to_str(expr: Expr) -> str:
    """Convert an expression AST back to a readable string."""
    if isinstance(expr, BoolLit):
        return "TRUE" if expr.value else "FALSE"
    elif isinstance(expr, VarRef):
        return expr.name
    elif isinstance(expr, NextRef):
        return f"next({expr.name})"
    elif isinstance(expr, UnaryOp):
        return f"!({expr_to_str(expr.operand)})"
    elif isinstance(expr, BinOp):
        return f"({expr_to_str(expr.left)} {expr.op} {expr_to_str(expr.right)})"
    return str(expr)


def referenced_names(expr: Expr) -> set[str]:
    """All identifiers read in the current state (enum constants included)."""
    if isinstance(expr, VarRef):
        return {expr.name}
    elif isinstance(expr, BinOp):
        return referenced_names(expr.left) | referenced_names(expr.right)
    elif isinstance(expr, UnaryOp):
        return referenced_names(expr.operand)
    return set()


def next_refs(expr: Expr) -> set[str]:
    """Find all next(var) references in an expression."""
    if isinstance(expr, NextRef):
        return {expr.name}
    elif isinstance(expr, BinOp):
        return next_refs(expr.left) | next_refs(expr.right)
    elif isinstance(expr, UnaryOp):
        return next_refs(expr.operand)
    return set()


# --- Rule tables ---

@dataclass
class Rule:
    rule_id: str
    guard: Expr
    value: Expr


@dataclass
class RuleTable:
    """Ordered guarded rules; the first rule whose guard holds decides."""
    name: str
    rules: list[Rule]
    domain: list


# --- Top-level Model ---

TABLE_NAMES = [
    "reset_inner_in", "reset_inner_out", "reset_outer_in", "reset_outer_out",
    "inner_cmd", "outer_cmd", "cleanliness",
]


@dataclass
class AirlockModel:
    variables: dict[str, VarDecl] = field(default_factory=default_variables)
    initial: Configuration = INITIAL_CONFIGURATION
    tables: dict[str, RuleTable] = field(default_factory=dict)
    mode_graph: dict[str, list[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in ACCESS_MODE_GRAPH.items()}
    )

    def enum_constants(self) -> set[str]:
        consts: set[str] = set(COMMANDS)
        for vd in self.variables.values():
            if isinstance(vd.var_type, EnumType):
                consts |= set(vd.var_type.values)
        return consts


# --- Specifications ---

@dataclass
class Invariant:
    """A predicate that must hold in every reachable Configuration.

    When ``expr`` contains next(...) it is checked on every transition
    instead, with next() bound to the successor Configuration.
    """
    name: str
    expr: Expr
    text: str = ""  # original text for display

    @property
    def is_transition(self) -> bool:
        return bool(next_refs(self.expr))


@dataclass
class Fairness:
    name: str
    expr: Expr
    text: str = ""


@dataclass
class LivenessClaim:
    """AF target from every reachable state, along every fair path."""
    name: str
    target: Expr
    fairness: list[Fairness] = field(default_factory=list)
    text: str = ""


@dataclass
class PropertySet:
    invariants: list[Invariant] = field(default_factory=list)
    liveness: list[LivenessClaim] = field(default_factory=list)

    def names(self) -> list[str]:
        return [p.name for p in self.invariants] + [p.name for p in self.liveness]
