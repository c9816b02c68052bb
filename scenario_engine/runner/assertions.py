"""
Post-step assertions.

Each assertion is a single-key mapping checked against the current page.
Assertions run in order and the first failure raises ``AssertionFailure``,
skipping the rest of the list.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping

from playwright.sync_api import Page

from scenario_engine.runner.errors import AssertionFailure

logger = logging.getLogger(__name__)


def glob_to_regex(pattern: str) -> str:
    """``**`` matches anything, ``*`` anything except ``/``; the rest is literal."""
    escaped = re.escape(pattern)
    return escaped.replace(r"\*\*", ".*").replace(r"\*", "[^/]*")


def url_matches(pattern: str, url: str) -> bool:
    # Unanchored: "/dashboard" also matches ".../dashboard/extra".
    return re.search(glob_to_regex(pattern), url or "") is not None


def _first_text(page: Page, selector: str) -> str:
    text = page.locator(selector).first.text_content()
    return (text or "").strip()


def _check_title(page: Page, expected: str) -> None:
    title = page.title()
    if title != expected:
        raise AssertionFailure(f'Title mismatch: expected "{expected}", got "{title}"')


def _check_title_contains(page: Page, expected: str) -> None:
    title = page.title()
    if expected not in title:
        raise AssertionFailure(f'Title does not contain "{expected}": "{title}"')


def _check_url(page: Page, pattern: str) -> None:
    url = page.url
    if not url_matches(pattern, url):
        raise AssertionFailure(f'URL does not match pattern "{pattern}": "{url}"')


def _check_visible(page: Page, selector: str) -> None:
    if not page.locator(selector).first.is_visible():
        raise AssertionFailure(f"Element not visible: {selector}")


def _check_hidden(page: Page, selector: str) -> None:
    if page.locator(selector).first.is_visible():
        raise AssertionFailure(f"Element should be hidden: {selector}")


def _check_exists(page: Page, selector: str) -> None:
    if page.locator(selector).count() == 0:
        raise AssertionFailure(f"Element does not exist: {selector}")


def _check_text(page: Page, spec: Dict[str, Any]) -> None:
    selector = spec["selector"]
    text = _first_text(page, selector)
    contains = spec.get("contains")
    equals = spec.get("equals")
    if contains is not None and str(contains) not in text:
        raise AssertionFailure(f'Text does not contain "{contains}": "{text}"')
    if equals is not None and text != str(equals):
        raise AssertionFailure(f'Text mismatch: expected "{equals}", got "{text}"')


def _check_count(page: Page, spec: Dict[str, Any]) -> None:
    count = page.locator(spec["selector"]).count()
    equals = spec.get("equals")
    minimum = spec.get("min")
    maximum = spec.get("max")
    if equals is not None and count != int(equals):
        raise AssertionFailure(f"Count mismatch: expected {equals}, got {count}")
    if minimum is not None and count < int(minimum):
        raise AssertionFailure(f"Count too low: expected min {minimum}, got {count}")
    if maximum is not None and count > int(maximum):
        raise AssertionFailure(f"Count too high: expected max {maximum}, got {count}")


# Checked in this order when an assertion carries more than one key.
ASSERTION_CHECKS = (
    ("title", _check_title),
    ("titleContains", _check_title_contains),
    ("url", _check_url),
    ("visible", _check_visible),
    ("hidden", _check_hidden),
    ("exists", _check_exists),
    ("text", _check_text),
    ("count", _check_count),
)


def run_assertion(assertion: Mapping[str, Any], page: Page) -> None:
    if isinstance(assertion, Mapping):
        for key, check in ASSERTION_CHECKS:
            if key in assertion:
                check(page, assertion[key])
                return
    raise AssertionFailure(f"Unknown assertion: {assertion!r}")


def run_assertions(assertions: List[Mapping[str, Any]], page: Page) -> None:
    """
    Evaluate ``assertions`` against ``page`` in order.

    :raises AssertionFailure: On the first assertion that does not hold
    """
    for assertion in assertions or []:
        logger.debug("assert %s", assertion)
        run_assertion(assertion, page)
