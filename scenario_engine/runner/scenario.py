"""
Loading of scenario definitions from YAML or JSON.

A scenario describes a browser workflow declaratively: a name, optional
variables (literals or ``${ENV:-default}``), a global ``onError`` policy
and an ordered list of steps. Each step carries exactly one kind key
(``goto``, ``click``, ``if``, ``repeat`` ...) with that kind's parameters.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple
import json
import os

import yaml

from scenario_engine.runner.errors import DocumentError
from scenario_engine.runner.scenario_validator import validate_scenario
from scenario_engine.runner.steps import OnErrorPolicy


@dataclass(frozen=True)
class ScenarioDefinition:
    name: str
    steps: Tuple[Mapping[str, Any], ...]
    description: Optional[str] = None
    # Named page on the browser server
    page: str = "main"
    # Declaration order is preserved
    variables: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
    on_error: OnErrorPolicy = OnErrorPolicy.STOP


def scenario_from_dict(data: Any, default_page: str = "main") -> ScenarioDefinition:
    """
    Build a ``ScenarioDefinition`` from a parsed document.

    :raises DocumentError: If the document fails validation
    """
    is_valid, errors = validate_scenario(data)
    if not is_valid:
        raise DocumentError("Invalid scenario document", errors)

    variables: Dict[str, str] = data.get("variables") or {}
    return ScenarioDefinition(
        name=data["name"],
        description=data.get("description"),
        page=data.get("page") or default_page,
        variables=tuple(variables.items()),
        on_error=OnErrorPolicy(data.get("onError") or OnErrorPolicy.STOP.value),
        steps=tuple(data["steps"]),
    )


def load_scenario(path: str, default_page: str = "main") -> ScenarioDefinition:
    """
    Read and validate the scenario document at ``path``.

    ``.json`` files are parsed as JSON; anything else as YAML.

    :raises DocumentError: If the file cannot be read, parsed or validated
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise DocumentError(f"Cannot read scenario file {path}: {e}") from e

    ext = os.path.splitext(path)[1].lower()
    try:
        if ext == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (ValueError, yaml.YAMLError) as e:
        raise DocumentError(f"Cannot parse scenario file {path}: {e}") from e

    return scenario_from_dict(data, default_page=default_page)
