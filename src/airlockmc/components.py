"""Leaf components: request buttons, doors and the access-mode graph."""
from __future__ import annotations
from airlockmc.errors import IllegalCommandError, IllegalResetError
from airlockmc.model import (
    OPEN, CLOSED, CMD_OPEN, CMD_CLOSE, CMD_NOP, ACCESS_MODE_GRAPH,
)


def next_pressed(pressed: bool, reset: bool, name: str = "button") -> list[bool]:
    """Possible next values of a request button.

    A pressed button stays pressed until reset. An idle button may or may not
    be pressed by the environment, so both values are returned.
    """
    if not pressed:
        if reset:
            raise IllegalResetError(name)
        return [False, True]
    if reset:
        return [False]
    return [True]


def next_status(status: str, cmd: str, name: str = "door") -> str:
    """Door status after applying a command."""
    if cmd == CMD_NOP:
        return status
    if cmd == CMD_OPEN:
        if status != CLOSED:
            raise IllegalCommandError(name, status, cmd)
        return OPEN
    if cmd == CMD_CLOSE:
        if status != OPEN:
            raise IllegalCommandError(name, status, cmd)
        return CLOSED
    raise ValueError(f"Unknown door command: {cmd}")


def next_modes(mode: str, graph: dict[str, list[str]] | None = None) -> list[str]:
    """Access modes the environment may switch to from ``mode``."""
    if graph is None:
        graph = ACCESS_MODE_GRAPH
    try:
        return list(graph[mode])
    except KeyError:
        raise ValueError(f"Unknown access mode: {mode}") from None
