"""Top-level verification: validate, explore, check liveness, collect per-property results."""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from airlockmc.controller import validate_model
from airlockmc.explorer import (
    BUILTIN_PROPERTIES, DEFAULT_MAX_STATES, ExplorationResult, explore,
)
from airlockmc.fairness import check_liveness
from airlockmc.model import AirlockModel, PropertySet
from airlockmc.properties import validate_properties
from airlockmc.trace import Trace, format_trace, safety_trace

log = logging.getLogger("airlockmc.verifier")

PASS, FAIL, INCONCLUSIVE = "PASS", "FAIL", "INCONCLUSIVE"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_MALFORMED = 3
EXIT_INCONCLUSIVE = 4


@dataclass
class PropertyResult:
    """Result of checking a single property."""
    name: str
    kind: str       # "builtin", "invariant", "liveness"
    status: str     # PASS / FAIL / INCONCLUSIVE
    trace: Trace | None = None  # counterexample if failed
    detail: str = ""


@dataclass
class VerificationReport:
    results: list[PropertyResult] = field(default_factory=list)
    states: int = 0
    transitions: int = 0
    exploration: ExplorationResult | None = field(default=None, repr=False)

    def __getitem__(self, name: str) -> PropertyResult:
        for r in self.results:
            if r.name == name:
                return r
        raise KeyError(name)

    @property
    def passed(self) -> bool:
        return all(r.status == PASS for r in self.results)

    @property
    def exit_code(self) -> int:
        statuses = {r.status for r in self.results}
        if FAIL in statuses:
            return EXIT_FAILED
        if INCONCLUSIVE in statuses:
            return EXIT_INCONCLUSIVE
        return EXIT_OK

    def format(self, show_traces: bool = True) -> str:
        lines = [f"-- explored {self.states} states, {self.transitions} transitions"]
        trace_no = 0
        for r in self.results:
            line = f"-- {r.kind} {r.name} : {r.status}"
            if r.detail:
                line += f" ({r.detail})"
            lines.append(line)
            if show_traces and r.trace is not None:
                trace_no += 1
                lines.append(format_trace(r.trace, trace_no))
        return "\n".join(lines)


def verify(model: AirlockModel,
           properties: PropertySet,
           max_states: int = DEFAULT_MAX_STATES,
           max_depth: int | None = None) -> VerificationReport:
    """Check every property of ``properties`` against ``model``.

    Raises MalformedModelError when the model or properties cannot be checked.
    Property failures are reported in the returned VerificationReport.
    """
    validate_model(model)
    validate_properties(model, properties)

    exploration = explore(model, properties.invariants,
                          max_states=max_states, max_depth=max_depth)
    report = VerificationReport(
        states=len(exploration.reachable_states),
        transitions=len(exploration.transitions),
        exploration=exploration,
    )
    partial = f"stopped after {report.states} states"
    incomplete = "controller issued illegal commands; graph incomplete"

    safety = [(name, "builtin") for name in BUILTIN_PROPERTIES]
    safety += [(inv.name, "invariant") for inv in properties.invariants]
    for name, kind in safety:
        violation = exploration.violations.get(name)
        if violation is not None:
            trace = safety_trace(exploration.parent, violation.state, violation.next_state)
            report.results.append(PropertyResult(
                name, kind, FAIL, trace=trace, detail=violation.message))
        elif exploration.truncated:
            report.results.append(PropertyResult(name, kind, INCONCLUSIVE, detail=partial))
        elif not exploration.wellformed:
            report.results.append(PropertyResult(name, kind, INCONCLUSIVE, detail=incomplete))
        else:
            report.results.append(PropertyResult(name, kind, PASS))

    for claim in properties.liveness:
        if exploration.truncated:
            report.results.append(PropertyResult(
                claim.name, "liveness", INCONCLUSIVE, detail=partial))
            continue
        if not exploration.wellformed:
            report.results.append(PropertyResult(
                claim.name, "liveness", INCONCLUSIVE, detail=incomplete))
            continue
        result = check_liveness(exploration, claim)
        if result.holds:
            report.results.append(PropertyResult(claim.name, "liveness", PASS))
        else:
            report.results.append(PropertyResult(
                claim.name, "liveness", FAIL, trace=result.trace,
                detail=f"{len(result.fair_sccs)} fair cycle(s) avoid the target"))

    failed = [r.name for r in report.results if r.status == FAIL]
    log.info("%d properties checked, %d failed", len(report.results), len(failed))
    return report
