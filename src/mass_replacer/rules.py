"""Substitution rules loader (``blocks.json``).

Format: a JSON list of objects, applied in order::

  [
    {"from": "minecraft:stone", "to": "minecraft:granite"},
    {"from": "minecraft:dirt",  "to": "minecraft:coarse_dirt"}
  ]

Only the top-level shape is strict. An entry that is not an object, or whose
``from``/``to`` is missing, empty or not a string, is kept as an inapplicable rule
and silently skipped by the substitution engine.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from mass_replacer.replace.palette import Rule, applicable_rules

RULES_FILE_DEFAULT = "blocks.json"


class RulesSpecError(ValueError):
    pass


def _load_json_arg(rules_arg: str) -> Any:
    s = rules_arg.strip()
    if not s:
        raise RulesSpecError("rules: argomento vuoto")

    # inline JSON
    if s.startswith("["):
        try:
            return json.loads(s)
        except Exception as e:
            raise RulesSpecError(f"rules: JSON inline non valido: {e}") from e

    p = Path(s[1:] if s.startswith("@") else s).expanduser()
    if not p.exists() or not p.is_file():
        raise RulesSpecError(f"rules: file non trovato: {p}")
    raw = p.read_text(encoding="utf-8")
    try:
        return json.loads(raw)
    except Exception as e:
        raise RulesSpecError(f"rules: JSON non valido in {p}: {e}") from e


def _as_name(v: Any) -> str | None:
    if isinstance(v, str) and v:
        return v
    return None


def parse_rules(obj: Any) -> list[Rule]:
    if not isinstance(obj, list):
        raise RulesSpecError("rules: il JSON deve essere una lista di oggetti {from, to}")
    out: list[Rule] = []
    for item in obj:
        if not isinstance(item, dict):
            out.append(Rule(from_=None, to=None))
            continue
        out.append(Rule(from_=_as_name(item.get("from")), to=_as_name(item.get("to"))))
    return out


def load_rules(rules_arg: str | Path = RULES_FILE_DEFAULT) -> list[Rule]:
    """Load rules from a path, '@path', or an inline JSON list."""
    return parse_rules(_load_json_arg(str(rules_arg)))


def count_applicable(rules: list[Rule]) -> int:
    return len(applicable_rules(rules))
