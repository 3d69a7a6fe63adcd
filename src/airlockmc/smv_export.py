"""Render an airlock model and its properties as a nuXmv SMV module."""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from airlockmc.model import (
    AirlockModel, BoolType, EnumType, PropertySet, RuleTable,
    BUTTONS, DOORS, TABLE_NAMES, expr_to_str,
)

log = logging.getLogger("airlockmc.smv_export")


@dataclass
class SmvExport:
    text: str
    invariant_names: list[str] = field(default_factory=list)  # INVARSPEC order
    liveness_names: list[str] = field(default_factory=list)   # LTLSPEC order
    skipped: list[str] = field(default_factory=list)


def _smv_value(value) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    return str(value)


def _smv_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_]", "_", name)


def _case(branches: list[tuple[str, str]], indent: str = "    ") -> str:
    lines = ["case"]
    lines += [f"{indent}  {cond} : {value};" for cond, value in branches]
    lines.append(f"{indent}esac")
    return "\n".join(lines)


def _table_case(table: RuleTable) -> str:
    return _case([(expr_to_str(r.guard), expr_to_str(r.value)) for r in table.rules])


def export_smv(model: AirlockModel, properties: PropertySet | None = None) -> SmvExport:
    """Build the SMV text for ``model``.

    Invariants that use next() cannot be stated as INVARSPEC and are skipped.
    Each liveness claim becomes ``LTLSPEC (G F f1 & ...) -> G F target``.
    """
    out = ["MODULE main", "VAR"]
    for vd in model.variables.values():
        if isinstance(vd.var_type, BoolType):
            out.append(f"  {vd.name} : boolean;")
        elif isinstance(vd.var_type, EnumType):
            out.append(f"  {vd.name} : {{{', '.join(vd.var_type.values)}}};")

    out.append("DEFINE")
    for name in TABLE_NAMES:
        if name == "cleanliness":
            continue
        out.append(f"  {name} := {_table_case(model.tables[name])};")

    out.append("ASSIGN")
    for name, value in model.initial.as_dict().items():
        out.append(f"  init({name}) := {_smv_value(value)};")
    for door in DOORS:
        cmd = door.split("_")[0] + "_cmd"
        out.append(f"  next({door}) := " + _case([
            (f"{cmd} = open", "open"),
            (f"{cmd} = close", "closed"),
            ("TRUE", door),
        ]) + ";")
    for b in BUTTONS:
        reset = "reset_" + b[len("button_"):]
        out.append(f"  next({b}) := " + _case([
            (f"{b} & {reset}", "FALSE"),
            (b, "TRUE"),
            ("TRUE", "{FALSE, TRUE}"),
        ]) + ";")
    out.append(f"  next(cleanliness) := {_table_case(model.tables['cleanliness'])};")
    out.append("  next(access_mode) := " + _case([
        (f"access_mode = {mode}", "{" + ", ".join(targets) + "}")
        for mode, targets in model.mode_graph.items()
    ]) + ";")

    export = SmvExport(text="")
    if properties is not None:
        for inv in properties.invariants:
            if inv.is_transition:
                log.warning("invariant %s uses next(); not exported", inv.name)
                export.skipped.append(inv.name)
                continue
            out.append(f"INVARSPEC NAME {_smv_name(inv.name)} := {expr_to_str(inv.expr)};")
            export.invariant_names.append(inv.name)
        for claim in properties.liveness:
            target = f"G F {expr_to_str(claim.target)}"
            if claim.fairness:
                fair = " & ".join(f"G F {expr_to_str(f.expr)}" for f in claim.fairness)
                formula = f"({fair}) -> {target}"
            else:
                formula = target
            out.append(f"LTLSPEC NAME {_smv_name(claim.name)} := {formula};")
            export.liveness_names.append(claim.name)

    export.text = "\n".join(out) + "\n"
    return export
