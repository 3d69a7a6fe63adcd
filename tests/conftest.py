"""Shared fixtures for airlockmc tests."""
from __future__ import annotations
import os
import sys
import pytest

# Ensure src/ is on the path so airlockmc is importable without install
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_SRC = os.path.join(_ROOT, "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from airlockmc.controller import default_model
from airlockmc.explorer import explore
from airlockmc.properties import default_properties
from airlockmc.verifier import verify

# --------------- Models and properties ---------------

@pytest.fixture(scope="session")
def airlock_model():
    return default_model()


@pytest.fixture(scope="session")
def airlock_properties():
    return default_properties()


# --------------- Exploration / verification ---------------

@pytest.fixture(scope="session")
def airlock_explicit(airlock_model, airlock_properties):
    return explore(airlock_model, airlock_properties.invariants)


@pytest.fixture(scope="session")
def airlock_report(airlock_model, airlock_properties):
    return verify(airlock_model, airlock_properties)
