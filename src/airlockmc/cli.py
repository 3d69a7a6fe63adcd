"""Command-line interface: verify, export-smv, crosscheck."""
from __future__ import annotations
import argparse
import logging
import sys
from airlockmc.controller import default_model, validate_model
from airlockmc.errors import MalformedModelError
from airlockmc.explorer import DEFAULT_MAX_STATES
from airlockmc.loader import load_model, load_properties
from airlockmc.nuxmv_runner import (
    NUXMV_ENV, SpecResult, nuxmv_available, run_batch_check,
)
from airlockmc.properties import default_properties
from airlockmc.smv_export import SmvExport, export_smv
from airlockmc.verifier import (
    EXIT_FAILED, EXIT_MALFORMED, EXIT_OK, verify,
)

log = logging.getLogger("airlockmc")

EXIT_NO_NUXMV = 5


def _load(args):
    model = load_model(args.model) if args.model else default_model()
    props = load_properties(args.properties) if args.properties else default_properties()
    return model, props


def handle_verify(args) -> int:
    model, props = _load(args)
    report = verify(model, props, max_states=args.max_states, max_depth=args.max_depth)
    print(report.format(show_traces=not args.no_traces))
    return report.exit_code


def handle_export(args) -> int:
    model, props = _load(args)
    validate_model(model)
    export = export_smv(model, props)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(export.text)
        log.info("wrote %s", args.output)
    else:
        sys.stdout.write(export.text)
    return EXIT_OK


def pair_verdicts(export: SmvExport, specs: list[SpecResult]):
    """Match nuXmv verdicts to property names, or None if the counts differ."""
    invariants = [s for s in specs if s.spec_kind == "INVARSPEC"]
    ltl = [s for s in specs if s.spec_kind == "LTLSPEC"]
    if (len(invariants) != len(export.invariant_names)
            or len(ltl) != len(export.liveness_names)):
        return None
    return list(zip(export.invariant_names, invariants)) + list(zip(export.liveness_names, ltl))


def handle_crosscheck(args) -> int:
    if not nuxmv_available():
        print(f"nuXmv not found; set {NUXMV_ENV} or put nuXmv on PATH", file=sys.stderr)
        return EXIT_NO_NUXMV
    model, props = _load(args)
    report = verify(model, props, max_states=args.max_states)
    export = export_smv(model, props)
    result = run_batch_check(export.text)
    if result.error:
        print(f"nuXmv error: {result.error}", file=sys.stderr)
        return EXIT_FAILED

    pairs = pair_verdicts(export, result.specs)
    if pairs is None:
        print(f"nuXmv reported {len(result.specs)} verdicts for "
              f"{len(export.invariant_names) + len(export.liveness_names)} exported specs",
              file=sys.stderr)
        return EXIT_FAILED
    disagreements = 0
    for name, spec in pairs:
        ours = report[name].status
        theirs = "PASS" if spec.passed else "FAIL"
        mark = "ok" if ours == theirs else "MISMATCH"
        if ours != theirs:
            disagreements += 1
        print(f"{name:40s} airlockmc={ours:12s} nuXmv={theirs:5s} {mark}")
    for name in export.skipped:
        print(f"{name:40s} skipped (uses next())")
    return EXIT_OK if disagreements == 0 else EXIT_FAILED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="airlockmc",
        description="Explicit-state verifier for the biohazard airlock controller.",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="-v for progress, -vv for debug output")
    sub = parser.add_subparsers(dest="command", required=True)

    def common(p):
        p.add_argument("--model", help="JSON model variant (default: built-in tables)")
        p.add_argument("--properties", help="JSON property file (default: built-in set)")

    p_verify = sub.add_parser("verify", help="check all properties")
    common(p_verify)
    p_verify.add_argument("--max-states", type=int, default=DEFAULT_MAX_STATES)
    p_verify.add_argument("--max-depth", type=int, default=None)
    p_verify.add_argument("--no-traces", action="store_true",
                          help="print verdicts only")
    p_verify.set_defaults(func=handle_verify)

    p_export = sub.add_parser("export-smv", help="write the model as an SMV module")
    common(p_export)
    p_export.add_argument("-o", "--output", help="output file (default: stdout)")
    p_export.set_defaults(func=handle_export)

    p_cross = sub.add_parser("crosscheck", help="compare verdicts against nuXmv")
    common(p_cross)
    p_cross.add_argument("--max-states", type=int, default=DEFAULT_MAX_STATES)
    p_cross.set_defaults(func=handle_crosscheck)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        return args.func(args)
    except MalformedModelError as e:
        print(f"malformed model: {e}", file=sys.stderr)
        return EXIT_MALFORMED
    except OSError as e:
        print(f"cannot read input: {e}", file=sys.stderr)
        return EXIT_MALFORMED
