"""Named safety invariants and fairness-constrained liveness claims for the airlock."""
from __future__ import annotations
from airlockmc.errors import MalformedModelError
from airlockmc.expr_parser import parse_expr
from airlockmc.model import (
    AirlockModel, Fairness, Invariant, LivenessClaim, PropertySet,
    BUTTONS, DOORS, FIELD_NAMES, OUTPUT_NAMES, referenced_names, next_refs,
)


def invariant(name: str, text: str) -> Invariant:
    return Invariant(name=name, expr=parse_expr(text), text=text)


def fairness(text: str, name: str | None = None) -> Fairness:
    return Fairness(name=name or text, expr=parse_expr(text), text=text)


def liveness(name: str, target: str, fair: list[str]) -> LivenessClaim:
    return LivenessClaim(
        name=name,
        target=parse_expr(target),
        fairness=[fairness(f) for f in fair],
        text=target,
    )


_INVARIANTS = [
    ("doors-mutually-exclusive", "!(inner_door = open & outer_door = open)"),
    ("inner-opens-on-request",
     "inner_door = closed & next(inner_door) = open"
     " -> button_inner_in | button_inner_out"),
    ("outer-opens-on-request",
     "outer_door = closed & next(outer_door) = open"
     " -> button_outer_in | button_outer_out"),
    ("inner-request-precedence",
     "access_mode != lockdown & button_inner_in & button_outer_in & outer_door = closed"
     " -> next(inner_door) = open & next(outer_door) != open"),
    ("inner-open-implies-dirty", "inner_door = open -> cleanliness = dirty"),
    ("dirty-after-inner-open", "inner_door = open -> next(cleanliness) = dirty"),
    ("no-outer-open-while-dirty", "cleanliness = dirty -> outer_cmd != open"),
    ("lockdown-closes-doors",
     "access_mode = lockdown -> next(inner_door) = closed & next(outer_door) = closed"),
    ("lockdown-no-open-command",
     "access_mode = lockdown -> inner_cmd != open & outer_cmd != open"),
]

# Each button pressed infinitely often, each door open infinitely often.
DEFAULT_FAIRNESS = list(BUTTONS) + [f"{door} = open" for door in DOORS]


def default_properties() -> PropertySet:
    """The airlock's safety invariants and liveness claims."""
    claims = [
        liveness("eventually-inner-open", "inner_door = open", DEFAULT_FAIRNESS),
        liveness("eventually-outer-open", "outer_door = open", DEFAULT_FAIRNESS),
    ]
    claims += [
        liveness(f"{b}-released", f"!{b}", DEFAULT_FAIRNESS) for b in BUTTONS
    ]
    return PropertySet(
        invariants=[invariant(name, text) for name, text in _INVARIANTS],
        liveness=claims,
    )


def validate_properties(model: AirlockModel, properties: PropertySet):
    """Reject properties that read undeclared fields or misuse next()."""
    known = set(FIELD_NAMES) | set(OUTPUT_NAMES) | model.enum_constants()
    seen: set[str] = set()

    def check(name, expr, allow_next):
        unknown = referenced_names(expr) - known
        if unknown:
            raise MalformedModelError(
                f"property {name!r} references undeclared field(s) {sorted(unknown)}")
        refs = next_refs(expr)
        if refs and not allow_next:
            raise MalformedModelError(f"property {name!r} may not use next()")
        if refs - set(FIELD_NAMES):
            raise MalformedModelError(
                f"property {name!r} uses next() on non-fields {sorted(refs - set(FIELD_NAMES))}")

    for name in properties.names():
        if name in seen:
            raise MalformedModelError(f"duplicate property name {name!r}")
        seen.add(name)
    for inv in properties.invariants:
        check(inv.name, inv.expr, allow_next=True)
    for claim in properties.liveness:
        check(claim.name, claim.target, allow_next=False)
        for f in claim.fairness:
            check(claim.name, f.expr, allow_next=False)
