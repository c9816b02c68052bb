"""
Step kinds understood by the scenario executor.

A step is a mapping carrying exactly one kind key (``goto``, ``click``,
``if`` ...) plus the optional ``onError`` and ``assert`` keys. The kind is
determined by checking the keys of ``StepKind`` in declaration order, so a
malformed step carrying two kind keys always resolves to the same one.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, Tuple

from scenario_engine.runner.errors import UnknownStepError


class StepKind(str, Enum):
    # Declaration order is the dispatch priority.
    GOTO = "goto"
    CLICK = "click"
    FILL = "fill"
    TYPE = "type"
    WAIT = "wait"
    SCREENSHOT = "screenshot"
    EVAL = "eval"
    LOGIN = "login"
    FILL_FORM = "fillForm"
    MODAL = "modal"
    RESPONSIVE = "responsive"
    IF = "if"
    TRY = "try"
    EACH = "each"
    REPEAT = "repeat"


class OnErrorPolicy(str, Enum):
    STOP = "stop"
    CONTINUE = "continue"


CONTROL_FLOW_KINDS = frozenset({StepKind.IF, StepKind.TRY, StepKind.EACH, StepKind.REPEAT})
LEAF_KINDS = frozenset(k for k in StepKind if k not in CONTROL_FLOW_KINDS)

# Keys that are not part of any kind's payload.
COMMON_KEYS = ("onError", "assert")


def step_kind(step: Mapping[str, Any]) -> StepKind:
    """
    Return the kind of ``step``.

    :raises UnknownStepError: If no recognised kind key is present
    """
    if isinstance(step, Mapping):
        for kind in StepKind:
            if kind.value in step:
                return kind
    raise UnknownStepError(f"Unknown step type: {_describe(step)}")


def step_label(step: Mapping[str, Any]) -> str:
    """Kind name used in reports; ``unknown`` for unrecognised steps."""
    try:
        return step_kind(step).value
    except UnknownStepError:
        return "unknown"


def nested_step_lists(kind: StepKind, step: Mapping[str, Any]) -> Dict[Tuple[str, ...], Any]:
    """
    Locate the nested step lists of a control-flow step.

    Keys of the returned dict are paths into ``step`` (e.g. ``("then",)``
    or ``("repeat", "steps")``). Leaf kinds have none.
    """
    if kind is StepKind.IF:
        paths = [("then",), ("else",)]
    elif kind is StepKind.TRY:
        paths = [("try",), ("catch",)]
    elif kind is StepKind.EACH:
        paths = [("each", "steps")]
    elif kind is StepKind.REPEAT:
        paths = [("repeat", "steps")]
    else:
        return {}

    found: Dict[Tuple[str, ...], Any] = {}
    for path in paths:
        node: Any = step
        for key in path:
            if not isinstance(node, Mapping) or key not in node:
                node = None
                break
            node = node[key]
        if node is not None:
            found[path] = node
    return found


def resolve_policy(step: Mapping[str, Any], scenario_policy: str | None) -> OnErrorPolicy:
    """Step-level ``onError``, else the scenario's, else ``stop``."""
    raw = step.get("onError") if isinstance(step, Mapping) else None
    for candidate in (raw, scenario_policy):
        if candidate:
            return OnErrorPolicy(candidate)
    return OnErrorPolicy.STOP


def _describe(step: Any) -> str:
    if isinstance(step, Mapping):
        keys = [k for k in step.keys() if k not in COMMON_KEYS]
        return f"keys={keys}"
    return repr(step)
