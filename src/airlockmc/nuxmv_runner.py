"""nuXmv integration: cross-check exported models, parse verdicts and traces."""
from __future__ import annotations

import os
import re
import shutil
import subprocess
import tempfile
from dataclasses import dataclass, field

import logging

from airlockmc.trace import Trace

log = logging.getLogger("airlockmc.nuxmv")

NUXMV_ENV = "AIRLOCKMC_NUXMV"
NUXMV_TIMEOUT = 60


def find_nuxmv() -> str | None:
    """Locate the nuXmv binary: $AIRLOCKMC_NUXMV first, then PATH."""
    path = os.environ.get(NUXMV_ENV)
    if path:
        return path if os.path.isfile(path) else None
    return shutil.which("nuXmv") or shutil.which("nuxmv")


def nuxmv_available() -> bool:
    """Check if the nuXmv binary exists."""
    return find_nuxmv() is not None


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class SpecResult:
    """Result of checking a single specification."""
    spec_text: str       # "( G ( F inner_door = open))"
    spec_kind: str       # "LTLSPEC", "INVARSPEC"
    passed: bool
    trace: Trace | None = None  # counterexample if failed


@dataclass
class NuxmvResult:
    """Full result of a batch nuXmv run."""
    specs: list[SpecResult] = field(default_factory=list)
    raw_output: str = ""
    error: str | None = None


# ---------------------------------------------------------------------------
# Output parsing
# ---------------------------------------------------------------------------

_RE_SPEC = re.compile(
    r"-- (specification|invariant)\s+(.+?)\s+is\s+(true|false)",
)
_RE_STATE = re.compile(r"-> State: (\d+)\.(\d+) <-")
_RE_ASSIGN = re.compile(r"(\w+)\s*=\s*(.+)")


def parse_text_traces(output: str) -> list[Trace]:
    """Parse text-format counterexample traces.

    nuXmv prints only changed variables after the first state, so each state
    starts as a copy of the previous one.
    """
    traces = []
    current_states: list[dict[str, str]] = []
    current_state: dict[str, str] = {}
    current_desc = ""
    loop_start: int | None = None
    in_trace = False

    def flush():
        if current_state:
            current_states.append(current_state)
        if current_states:
            traces.append(Trace(
                states=current_states,
                loop_start=loop_start,
                description=current_desc,
            ))

    for line in output.split("\n"):
        line = line.strip()

        if line.startswith("Trace Description:"):
            if in_trace:
                flush()
            current_states = []
            current_state = {}
            current_desc = line.split(":", 1)[1].strip()
            loop_start = None
            in_trace = True
            continue

        if not in_trace:
            continue

        if line == "-- Loop starts here":
            # Account for pending current_state not yet appended
            loop_start = len(current_states) + (1 if current_state else 0)
            continue

        if _RE_STATE.match(line):
            if current_state:
                current_states.append(current_state)
            current_state = dict(current_states[-1]) if current_states else {}
            continue

        if _RE_SPEC.search(line) or line.startswith("nuXmv >"):
            flush()
            current_states = []
            current_state = {}
            in_trace = False
            continue

        m = _RE_ASSIGN.match(line)
        if m:
            current_state[m.group(1)] = m.group(2).strip()

    if in_trace:
        flush()
    return traces


def parse_output_paired(output: str) -> list[SpecResult]:
    """Parse nuXmv output pairing each spec result with its inline trace.

    Scans the output sequentially, matching each '-- specification/invariant
    ... is false' with the trace that immediately follows it.
    """
    results: list[SpecResult] = []
    lines = output.split("\n")

    for i, raw in enumerate(lines):
        m = _RE_SPEC.search(raw.strip())
        if not m:
            continue
        spec_kind = "INVARSPEC" if m.group(1) == "invariant" else "LTLSPEC"
        passed = m.group(3) == "true"

        trace = None
        if not passed:
            trace_lines = []
            for tl in lines[i + 1:]:
                if _RE_SPEC.search(tl.strip()):
                    break
                trace_lines.append(tl)
            parsed = parse_text_traces("\n".join(trace_lines))
            if parsed:
                trace = parsed[0]

        results.append(SpecResult(
            spec_text=m.group(2).strip(),
            spec_kind=spec_kind,
            passed=passed,
            trace=trace,
        ))
    return results


# ---------------------------------------------------------------------------
# Batch model checking
# ---------------------------------------------------------------------------

_ERROR_PATTERNS = [
    re.compile(r"cannot assign value .+ to variable .+"),
    re.compile(r"A model must be built before"),
    re.compile(r"type error"),
    re.compile(r"undefined.*variable", re.IGNORECASE),
    re.compile(r"(?:syntax|parse) error", re.IGNORECASE),
]


def run_batch_check(smv_text: str, nuxmv_path: str | None = None) -> NuxmvResult:
    """Run all specs through nuXmv and parse results.

    Invariants are checked before LTL specs, so results come back in the
    same order as the export lists them.
    """
    nuxmv = nuxmv_path or find_nuxmv()
    if not nuxmv or not os.path.isfile(nuxmv):
        return NuxmvResult(error=f"nuXmv binary not found (set {NUXMV_ENV})")

    tmp = tempfile.NamedTemporaryFile(
        mode="w", suffix=".smv", delete=False, encoding="utf-8",
    )
    try:
        tmp.write(smv_text)
        tmp.close()

        script = (
            "go\n"
            "check_invar\n"
            "check_ltlspec\n"
            "quit\n"
        )
        log.debug("running %s on %s", nuxmv, tmp.name)
        proc = subprocess.run(
            [nuxmv, "-int", tmp.name],
            input=script,
            capture_output=True,
            text=True,
            timeout=NUXMV_TIMEOUT,
        )
        raw = proc.stdout + (proc.stderr or "")

        error = None
        for line in raw.split("\n"):
            if any(pat.search(line) for pat in _ERROR_PATTERNS):
                error = line.strip()
                break

        return NuxmvResult(specs=parse_output_paired(raw), raw_output=raw, error=error)

    except subprocess.TimeoutExpired:
        return NuxmvResult(error=f"nuXmv timed out after {NUXMV_TIMEOUT} seconds")
    except OSError as e:
        return NuxmvResult(error=str(e))
    finally:
        try:
            os.unlink(tmp.name)
        except OSError:
            pass
