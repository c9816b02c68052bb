"""
Implementation of leaf step execution for Playwright.

Each supported leaf step kind is mapped to concrete actions on the
Playwright ``Page`` object (or, for ``ref`` clicks and ``fillForm``, on
the browser server connection). Handlers receive the kind's payload with
variables already interpolated and raise on failure; the executor decides
what a failure means for the rest of the run.
"""

import logging
import os
from typing import Any, Callable, Dict

from scenario_engine.runner import patterns
from scenario_engine.runner.context import ExecutionContext
from scenario_engine.runner.errors import StepError
from scenario_engine.runner.steps import StepKind
from scenario_engine.runner.variables import stringify_result

logger = logging.getLogger(__name__)

Handler = Callable[[ExecutionContext, Any], None]


def _timeout(payload: Any, default: int) -> int:
    if isinstance(payload, dict) and payload.get("timeout") is not None:
        return int(payload["timeout"])
    return default


def screenshot_path(ctx: ExecutionContext, path: str) -> str:
    """Relative paths land under ``SCREENSHOT_DIR``; absolute paths are kept."""
    if os.path.isabs(path):
        return path
    return os.path.join(ctx.settings.SCREENSHOT_DIR, path)


def run_goto(ctx: ExecutionContext, payload: Any) -> None:
    page = ctx.page
    timeout = ctx.settings.WAIT_TIMEOUT_MS
    if isinstance(payload, str):
        page.goto(payload)
        patterns.wait_for_page_load(page, timeout)
        return
    page.goto(payload["url"])
    if payload.get("waitUntil") == "networkidle":
        patterns.wait_for_network_idle(page, timeout)
    else:
        patterns.wait_for_page_load(page, timeout)


def run_click(ctx: ExecutionContext, payload: Any) -> None:
    page = ctx.page
    if isinstance(payload, str):
        page.click(payload, timeout=ctx.settings.ACTION_TIMEOUT_MS)
        return

    timeout = _timeout(payload, ctx.settings.ACTION_TIMEOUT_MS)
    if payload.get("text"):
        page.get_by_text(payload["text"]).click(timeout=timeout)
    elif payload.get("ref"):
        element = ctx.client.select_snapshot_ref(ctx.page_name, payload["ref"])
        if element is None:
            raise StepError(f"Ref not found: {payload['ref']}")
        element.click(timeout=timeout)
    elif payload.get("selector"):
        page.click(payload["selector"], timeout=timeout)
    else:
        raise StepError("click requires a selector, 'text', 'ref' or 'selector'")


def run_fill(ctx: ExecutionContext, payload: Any) -> None:
    page = ctx.page
    timeout = ctx.settings.ACTION_TIMEOUT_MS
    if not isinstance(payload, dict):
        raise StepError("fill requires {selector, value} or a map of selector -> value")

    if "selector" in payload:
        value = payload.get("value")
        if payload.get("clear", True) is not False:
            page.fill(payload["selector"], "", timeout=timeout)
        page.fill(payload["selector"], "" if value is None else str(value), timeout=timeout)
        return

    for selector, value in payload.items():
        page.fill(selector, "" if value is None else str(value), timeout=timeout)


def run_type(ctx: ExecutionContext, payload: Any) -> None:
    page = ctx.page
    if isinstance(payload, str):
        payload = {"text": payload}
    text = str(payload.get("text", ""))
    delay = payload.get("delay")
    if payload.get("selector"):
        page.type(payload["selector"], text, delay=delay, timeout=ctx.settings.ACTION_TIMEOUT_MS)
    else:
        page.keyboard.type(text, delay=delay)


def run_wait(ctx: ExecutionContext, payload: Any) -> None:
    page = ctx.page
    default = ctx.settings.WAIT_TIMEOUT_MS
    if payload == "load":
        patterns.wait_for_page_load(page, default)
    elif payload == "networkidle":
        patterns.wait_for_network_idle(page, default)
    elif isinstance(payload, dict):
        timeout = _timeout(payload, default)
        if payload.get("element"):
            patterns.wait_for_element(page, payload["element"], timeout)
        elif payload.get("gone"):
            patterns.wait_for_element_gone(page, payload["gone"], timeout)
        elif payload.get("url"):
            patterns.wait_for_url(page, payload["url"], timeout)
        elif payload.get("ms"):
            page.wait_for_timeout(int(payload["ms"]))
    else:
        raise StepError(f"Unsupported wait: {payload!r}")


def run_screenshot(ctx: ExecutionContext, payload: Any) -> None:
    if isinstance(payload, str):
        ctx.page.screenshot(path=screenshot_path(ctx, payload))
    else:
        ctx.page.screenshot(
            path=screenshot_path(ctx, payload["path"]),
            full_page=bool(payload.get("fullPage", False)),
        )


def run_eval(ctx: ExecutionContext, payload: Any) -> None:
    if isinstance(payload, str):
        ctx.page.evaluate(payload)
        return
    result = ctx.page.evaluate(payload["script"])
    store = payload.get("store")
    if store:
        ctx.variables[store] = stringify_result(result)
        logger.debug("stored %s=%r", store, ctx.variables[store])


def run_login(ctx: ExecutionContext, payload: Any) -> None:
    patterns.login(
        ctx.page,
        url=payload["url"],
        user=str(payload["username"]),
        password=str(payload["password"]),
        selectors={
            "username": payload.get("usernameSelector"),
            "password": payload.get("passwordSelector"),
            "submit": payload.get("submitSelector"),
        },
        wait_for=payload.get("waitFor"),
        timeout=_timeout(payload, ctx.settings.WAIT_TIMEOUT_MS),
    )


def run_fill_form(ctx: ExecutionContext, payload: Any) -> None:
    result = ctx.client.fill_form(
        ctx.page_name,
        payload.get("fields") or {},
        submit=bool(payload.get("submit", False)),
        timeout=ctx.settings.ACTION_TIMEOUT_MS,
    )
    if result.not_found:
        raise StepError(f"fillForm: fields not found: {', '.join(result.not_found)}")


def run_modal(ctx: ExecutionContext, payload: Any) -> None:
    page = ctx.page
    timeout = ctx.settings.ACTION_TIMEOUT_MS
    if payload.get("wait"):
        patterns.wait_for_element(page, payload["wait"], ctx.settings.WAIT_TIMEOUT_MS)
    for selector, value in (payload.get("fill") or {}).items():
        page.fill(selector, "" if value is None else str(value), timeout=timeout)
    if payload.get("action"):
        page.click(payload["action"], timeout=timeout)
    if payload.get("close"):
        page.click(payload["close"], timeout=timeout)


def run_responsive(ctx: ExecutionContext, payload: Any) -> None:
    patterns.responsive(
        ctx.page,
        screenshots=screenshot_path(ctx, payload["path"]),
        viewports=payload.get("viewports"),
        url=payload.get("url"),
        timeout=ctx.settings.WAIT_TIMEOUT_MS,
    )


ACTION_HANDLERS: Dict[StepKind, Handler] = {
    StepKind.GOTO: run_goto,
    StepKind.CLICK: run_click,
    StepKind.FILL: run_fill,
    StepKind.TYPE: run_type,
    StepKind.WAIT: run_wait,
    StepKind.SCREENSHOT: run_screenshot,
    StepKind.EVAL: run_eval,
    StepKind.LOGIN: run_login,
    StepKind.FILL_FORM: run_fill_form,
    StepKind.MODAL: run_modal,
    StepKind.RESPONSIVE: run_responsive,
}


def run_action(ctx: ExecutionContext, kind: StepKind, payload: Any) -> None:
    """Execute one leaf step against ``ctx.page``."""
    ACTION_HANDLERS[kind](ctx, payload)
