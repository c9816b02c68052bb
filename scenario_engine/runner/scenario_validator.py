"""
Scenario document validation rules.

Checks the structure of a parsed scenario document before anything runs
so that a malformed file fails once, up front, instead of part-way through
a run. Step kinds are deliberately not checked here: an unrecognised step
is a runtime step failure governed by ``onError``.
"""

from typing import Any, Dict, List, Tuple

from scenario_engine.runner.steps import OnErrorPolicy

_POLICIES = {p.value for p in OnErrorPolicy}


def validate_scenario(scenario: Any) -> Tuple[bool, List[str]]:
    """
    Validate a scenario document and collect every problem found.

    Args:
        scenario: Parsed scenario document

    Returns:
        (is_valid, errors): Whether the document passed and the messages
    """
    errors: List[str] = []

    if not isinstance(scenario, dict):
        errors.append("scenario must be a mapping (YAML/JSON object)")
        return False, errors

    name = scenario.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append("'name' is required and must be a non-empty string")

    for key in ("description", "page"):
        value = scenario.get(key)
        if value is not None and not isinstance(value, str):
            errors.append(f"'{key}' must be a string")

    on_error = scenario.get("onError")
    if on_error is not None and on_error not in _POLICIES:
        errors.append(f"'onError' must be one of {sorted(_POLICIES)}, got {on_error!r}")

    variables = scenario.get("variables")
    if variables is not None:
        if not isinstance(variables, dict):
            errors.append("'variables' must be a mapping of name -> string")
        else:
            for var_name, raw in variables.items():
                if not isinstance(raw, str):
                    errors.append(f"variable '{var_name}' must be a string")

    steps = scenario.get("steps")
    if not isinstance(steps, list):
        errors.append("'steps' is required and must be a list")
        return False, errors

    for i, step in enumerate(steps):
        errors.extend(validate_step(step, f"steps[{i}]"))

    return len(errors) == 0, errors


def validate_step(step: Any, where: str) -> List[str]:
    """
    Validate the keys shared by every step kind.

    Nested step lists of control-flow steps are validated recursively.
    """
    errors: List[str] = []

    if not isinstance(step, dict):
        errors.append(f"{where}: step must be a mapping")
        return errors

    on_error = step.get("onError")
    if on_error is not None and on_error not in _POLICIES:
        errors.append(f"{where}: 'onError' must be one of {sorted(_POLICIES)}")

    assertions = step.get("assert")
    if assertions is not None:
        if not isinstance(assertions, list):
            errors.append(f"{where}: 'assert' must be a list")
        else:
            for j, assertion in enumerate(assertions):
                if not isinstance(assertion, dict):
                    errors.append(f"{where}.assert[{j}]: assertion must be a mapping")

    for key, nested in _nested(step).items():
        if not isinstance(nested, list):
            errors.append(f"{where}.{key}: must be a list of steps")
            continue
        for j, sub in enumerate(nested):
            errors.extend(validate_step(sub, f"{where}.{key}[{j}]"))

    return errors


def _nested(step: Dict[str, Any]) -> Dict[str, Any]:
    found: Dict[str, Any] = {}
    for key in ("then", "else", "catch"):
        if key in step:
            found[key] = step[key]
    if "try" in step:
        found["try"] = step["try"]
    for key in ("each", "repeat"):
        body = step.get(key)
        if isinstance(body, dict) and "steps" in body:
            found[f"{key}.steps"] = body["steps"]
    return found
