"""Exception types raised while loading and exploring an airlock model."""
from __future__ import annotations


class AirlockError(Exception):
    """Base class for airlockmc errors."""
    pass


class MalformedModelError(AirlockError):
    """Raised when a model cannot be checked at all.

    Covers uncovered cases in a rule table, references to undeclared fields,
    out-of-domain rule values and unparsable expressions. Carries the
    offending Configuration and rule identifier when known.
    """

    def __init__(self, message: str, config=None, rule: str | None = None):
        super().__init__(message)
        self.config = config
        self.rule = rule

    def __str__(self):
        parts = [self.args[0]]
        if self.rule is not None:
            parts.append(f"rule: {self.rule}")
        if self.config is not None:
            parts.append(f"configuration: {self.config}")
        return "; ".join(parts)


class ModelViolation(AirlockError):
    """A controller output that breaks a built-in well-formedness property.

    The explorer turns these into invariant failures of ``property_name``
    instead of aborting the run.
    """
    property_name = ""


class IllegalCommandError(ModelViolation):
    """Open issued on an open door, or Close on a closed one."""
    property_name = "door-command-legality"

    def __init__(self, door: str, status: str, cmd: str):
        super().__init__(f"{door}: command {cmd!r} is illegal while {status!r}")
        self.door = door
        self.status = status
        self.cmd = cmd


class IllegalResetError(ModelViolation):
    """Reset asserted on a button that is not pressed."""
    property_name = "button-reset-legality"

    def __init__(self, button: str):
        super().__init__(f"{button}: reset asserted while idle")
        self.button = button
