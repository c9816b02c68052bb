"""
Scenario variables and ``{{name}}`` interpolation.

Declared variables are resolved once per run into a ``VariableTable``.
A declaration is either a literal string or ``${ENV_NAME:-default}``,
which takes the environment value when it is set and non-empty.
"""

from __future__ import annotations

import json
import os
import re
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from scenario_engine.runner.errors import DocumentError

VariableTable = Dict[str, str]

_ENV_FALLBACK = re.compile(r"^\$\{([^:]+):-(.*)\}$")
_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def resolve_declared(
    declarations: Iterable[Tuple[str, Any]] | Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> VariableTable:
    """
    Build the initial variable table from declared variables.

    :param declarations: Ordered ``(name, raw)`` pairs or a mapping
    :param environ: Environment to consult (defaults to ``os.environ``)
    :raises DocumentError: If a declared value is not a string
    """
    env = os.environ if environ is None else environ
    items = declarations.items() if isinstance(declarations, Mapping) else declarations

    table: VariableTable = {}
    for name, raw in items:
        if not isinstance(raw, str):
            raise DocumentError(f"Variable '{name}' must be a string, got {type(raw).__name__}")
        match = _ENV_FALLBACK.match(raw)
        if match:
            env_name, default = match.groups()
            table[name] = env.get(env_name) or default
        else:
            table[name] = raw
    return table


def interpolate(value: Any, table: Mapping[str, str]) -> Any:
    """
    Replace ``{{identifier}}`` placeholders in every string of ``value``.

    Lists and mappings are rebuilt recursively; undefined names become the
    empty string and non-string leaves are returned untouched.
    """
    if isinstance(value, str):
        return _PLACEHOLDER.sub(lambda m: table.get(m.group(1)) or "", value)
    if isinstance(value, (list, tuple)):
        return [interpolate(item, table) for item in value]
    if isinstance(value, Mapping):
        return {key: interpolate(item, table) for key, item in value.items()}
    return value


def stringify_result(value: Any) -> str:
    """Convert a script evaluation result into a table value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)
