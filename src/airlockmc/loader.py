"""Load model variants and property sets from JSON files.

Model file::

    {
      "initial": {"access_mode": "evac"},
      "mode_graph": {"normal": ["normal", "evac"], ...},
      "tables": {
        "cleanliness": [
          {"id": "inner-open", "guard": "inner_door = open", "value": "dirty"},
          {"id": "default", "guard": "TRUE", "value": "cleanliness"}
        ]
      }
    }

Every key is optional; tables not listed keep their default rules.

Property file::

    {
      "include_defaults": false,
      "invariants": [{"name": "...", "expr": "..."}],
      "liveness": [{"name": "...", "target": "...", "fairness": ["..."]}]
    }
"""
from __future__ import annotations
import json
import logging
from airlockmc.controller import default_model, make_table
from airlockmc.errors import MalformedModelError
from airlockmc.model import (
    AirlockModel, PropertySet, INITIAL_CONFIGURATION, FIELD_NAMES, TABLE_NAMES,
)
from airlockmc.properties import default_properties, invariant, liveness

log = logging.getLogger("airlockmc.loader")


def _read_json(filepath: str) -> dict:
    with open(filepath, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise MalformedModelError(f"{filepath}: invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedModelError(f"{filepath}: top level must be an object")
    return data


def _section(data: dict, key: str, kind=dict):
    value = data.get(key, kind())
    if not isinstance(value, kind):
        raise MalformedModelError(f"{key!r} must be a JSON {'object' if kind is dict else 'array'}")
    return value


def _text(value, where: str) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if not isinstance(value, str):
        raise MalformedModelError(f"{where}: expected an expression string, got {value!r}")
    return value


def model_from_dict(data: dict) -> AirlockModel:
    """Build a model from a parsed model description, starting from the defaults."""
    model = default_model()

    unknown = set(data) - {"initial", "mode_graph", "tables"}
    if unknown:
        raise MalformedModelError(f"unknown model section(s): {sorted(unknown)}")

    initial = _section(data, "initial")
    bad = set(initial) - set(FIELD_NAMES)
    if bad:
        raise MalformedModelError(f"initial: undeclared field(s) {sorted(bad)}")
    model.initial = INITIAL_CONFIGURATION.replace(**initial)

    if "mode_graph" in data:
        graph = _section(data, "mode_graph")
        if not all(isinstance(v, list) for v in graph.values()):
            raise MalformedModelError("mode_graph: successors must be arrays")
        model.mode_graph = {k: list(v) for k, v in graph.items()}

    for name, rules in _section(data, "tables").items():
        if name not in TABLE_NAMES:
            raise MalformedModelError(f"unknown rule table {name!r}")
        if not isinstance(rules, list):
            raise MalformedModelError(f"table {name!r}: rules must be an array")
        triples = []
        for i, rule in enumerate(rules):
            if not isinstance(rule, dict) or "guard" not in rule or "value" not in rule:
                raise MalformedModelError(
                    f"table {name!r}: rule {i + 1} needs a guard and a value")
            rid = str(rule.get("id", f"rule-{i + 1}"))
            where = f"{name}.{rid}"
            triples.append((rid, _text(rule["guard"], where), _text(rule["value"], where)))
        model.tables[name] = make_table(name, triples, model.tables[name].domain)
        log.debug("table %s replaced with %d rules", name, len(triples))
    return model


def properties_from_dict(data: dict) -> PropertySet:
    """Build a property set from a parsed property description."""
    props = default_properties() if data.get("include_defaults", False) else PropertySet()
    try:
        for item in _section(data, "invariants", list):
            props.invariants.append(invariant(item["name"], _text(item["expr"], item["name"])))
        for item in _section(data, "liveness", list):
            fair = _section(item, "fairness", list)
            props.liveness.append(liveness(
                item["name"], _text(item["target"], item["name"]),
                [_text(f, item["name"]) for f in fair]))
    except (KeyError, TypeError, AttributeError) as e:
        raise MalformedModelError(f"malformed property entry ({e})") from e
    return props


def load_model(filepath: str) -> AirlockModel:
    """Load a model variant file."""
    return model_from_dict(_read_json(filepath))


def load_properties(filepath: str) -> PropertySet:
    """Load a property file."""
    return properties_from_dict(_read_json(filepath))
