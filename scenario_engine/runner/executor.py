"""
Scenario executor.

Walks the top-level steps of a ``ScenarioDefinition`` in order, records one
result per top-level step and applies the ``onError`` policy on failure.

``execute_steps`` and ``execute_step`` call each other: the control-flow
kinds (``if``, ``try``, ``each``, ``repeat``) run their nested step lists
through ``execute_steps``, so nesting is unbounded and every nested step
goes through the same interpolation, dispatch and assertion path as a
top-level one. Nested steps do not get their own result entries; a nested
failure that escapes is recorded against the enclosing top-level step.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from scenario_engine.core.config import Settings
from scenario_engine.reporting.report import ExecutionReport, ExecutionReporter, StepStatus
from scenario_engine.runner.assertions import run_assertions, url_matches
from scenario_engine.runner.context import ExecutionContext
from scenario_engine.runner.errors import FatalRunnerError, ScenarioError
from scenario_engine.runner.playwright_steps import run_action
from scenario_engine.runner.scenario import ScenarioDefinition
from scenario_engine.runner.steps import (
    CONTROL_FLOW_KINDS,
    OnErrorPolicy,
    StepKind,
    nested_step_lists,
    resolve_policy,
    step_kind,
    step_label,
)
from scenario_engine.runner.variables import interpolate, resolve_declared

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def error_message(error: BaseException) -> str:
    if isinstance(error, KeyError):
        return f"Missing required parameter {error}"
    return str(error) or error.__class__.__name__


def interpolate_step(kind: StepKind, step: Mapping[str, Any], variables: Mapping[str, str]) -> Dict[str, Any]:
    """
    Interpolate a step's own parameters.

    Nested step lists of control-flow steps are left as written; each
    nested step is interpolated when it is itself dispatched, so values
    stored by an earlier iteration are visible to later ones. ``assert``
    is interpolated separately, just before the assertions run.
    """
    nested = nested_step_lists(kind, step)
    resolved: Dict[str, Any] = {}
    for key, value in step.items():
        if key == "assert" or (key,) in nested:
            resolved[key] = value
        elif isinstance(value, Mapping) and any(path[0] == key for path in nested):
            resolved[key] = {
                k: v if (key, k) in nested else interpolate(v, variables)
                for k, v in value.items()
            }
        else:
            resolved[key] = interpolate(value, variables)
    return resolved


def execute_steps(ctx: ExecutionContext, steps: Iterable[Mapping[str, Any]]) -> None:
    """Run ``steps`` sequentially; the first error propagates."""
    for step in steps or ():
        execute_step(ctx, step)


def execute_step(ctx: ExecutionContext, step: Mapping[str, Any]) -> None:
    """
    Interpolate, dispatch and assert a single step.

    :raises UnknownStepError: If the step has no recognised kind key
    :raises Exception: Whatever the action, control-flow body or assertion raised
    """
    kind = step_kind(step)
    resolved = interpolate_step(kind, step, ctx.variables)
    logger.debug("step %s started", kind.value)
    started = time.monotonic()

    if kind in CONTROL_FLOW_KINDS:
        CONTROL_FLOW_HANDLERS[kind](ctx, resolved)
    else:
        run_action(ctx, kind, resolved[kind.value])

    assertions = step.get("assert")
    if assertions:
        run_assertions(interpolate(assertions, ctx.variables), ctx.page)
    logger.debug("step %s finished in %dms", kind.value, _elapsed_ms(started))


def _condition_holds(ctx: ExecutionContext, condition: Mapping[str, Any]) -> bool:
    if condition.get("exists"):
        return ctx.page.locator(condition["exists"]).count() > 0
    if condition.get("url"):
        return url_matches(condition["url"], ctx.page.url)
    return False


def run_if(ctx: ExecutionContext, step: Mapping[str, Any]) -> None:
    condition = step["if"] or {}
    if _condition_holds(ctx, condition):
        execute_steps(ctx, step.get("then") or [])
    else:
        execute_steps(ctx, step.get("else") or [])


def run_try(ctx: ExecutionContext, step: Mapping[str, Any]) -> None:
    # The error is absorbed whatever the onError policy says.
    try:
        execute_steps(ctx, step["try"] or [])
    except FatalRunnerError:
        raise
    except Exception as e:
        logger.info("try block failed, running catch: %s", error_message(e))
        execute_steps(ctx, step.get("catch") or [])


def run_each(ctx: ExecutionContext, step: Mapping[str, Any]) -> None:
    """
    Run the nested steps once per element matched by ``selector``.

    When ``as`` is given, ``{{<as>}}`` holds the element's trimmed text and
    ``{{<as>_index}}`` its 0-based position for the current pass.
    """
    spec = step["each"]
    alias: Optional[str] = spec.get("as")
    body = spec.get("steps") or []
    elements = ctx.page.locator(spec["selector"]).all()

    bound = [alias, f"{alias}_index"] if alias else []
    saved = {name: ctx.variables[name] for name in bound if name in ctx.variables}
    try:
        for index, element in enumerate(elements):
            if alias:
                ctx.variables[alias] = (element.text_content() or "").strip()
                ctx.variables[f"{alias}_index"] = str(index)
            execute_steps(ctx, body)
    finally:
        for name in bound:
            if name in saved:
                ctx.variables[name] = saved[name]
            else:
                ctx.variables.pop(name, None)


def run_repeat(ctx: ExecutionContext, step: Mapping[str, Any]) -> None:
    spec = step["repeat"]
    times = int(spec.get("times") or 0)
    for _ in range(times):
        execute_steps(ctx, spec.get("steps") or [])


CONTROL_FLOW_HANDLERS: Dict[StepKind, Callable[[ExecutionContext, Mapping[str, Any]], None]] = {
    StepKind.IF: run_if,
    StepKind.TRY: run_try,
    StepKind.EACH: run_each,
    StepKind.REPEAT: run_repeat,
}


class ScenarioExecutor:
    """
    Runs one scenario against a page obtained from ``client``.

    :param scenario: Parsed scenario
    :param client: Browser server connection (``page``, ``select_snapshot_ref``,
        ``fill_form``)
    :param settings: Timeouts and paths used by the step handlers
    :param reporter: Result sink; a fresh one is created when omitted
    """

    def __init__(
        self,
        scenario: ScenarioDefinition,
        client: Any,
        settings: Settings,
        reporter: Optional[ExecutionReporter] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.scenario = scenario
        self.client = client
        self.settings = settings
        self.reporter = reporter or ExecutionReporter(settings.STEP_LOG_PATH)
        self.environ = environ

    def execute(self) -> ExecutionReport:
        reporter = self.reporter
        reporter.start()
        try:
            variables = resolve_declared(self.scenario.variables, self.environ)
            page = self.client.page(self.scenario.page)
            ctx = ExecutionContext(
                scenario=self.scenario,
                page=page,
                client=self.client,
                variables=variables,
                reporter=reporter,
                settings=self.settings,
            )
            for index, step in enumerate(self.scenario.steps):
                if reporter.halted:
                    break
                self._run_top_level(ctx, index, step)
        except ScenarioError as e:
            logger.error("Scenario %s aborted: %s", self.scenario.name, e)
            reporter.fatal(str(e))
        except Exception as e:
            logger.exception("Unexpected error while running scenario %s", self.scenario.name)
            reporter.fatal(error_message(e))
        return reporter.build(self.scenario.name)

    def _run_top_level(self, ctx: ExecutionContext, index: int, step: Mapping[str, Any]) -> None:
        label = step_label(step)
        started = time.monotonic()
        try:
            execute_step(ctx, step)
        except FatalRunnerError:
            raise
        except Exception as e:
            message = error_message(e)
            self.reporter.record(index, label, StepStatus.FAILED, _elapsed_ms(started), message)
            policy = resolve_policy(step, self.scenario.on_error)
            if policy is OnErrorPolicy.STOP:
                logger.error("Step %d (%s) failed, stopping: %s", index, label, message)
                self.reporter.halt()
            else:
                logger.warning("Step %d (%s) failed (continuing): %s", index, label, message)
            return
        self.reporter.record(index, label, StepStatus.PASSED, _elapsed_ms(started))
