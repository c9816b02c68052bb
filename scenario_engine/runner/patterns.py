"""
Higher-level interaction patterns built from Playwright primitives.

These back the ``login`` and ``responsive`` shortcut steps. Unlike the
individual actions they string several page calls together and wait for
the page to settle in between.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from playwright.sync_api import Page

logger = logging.getLogger(__name__)

# WordPress login form
DEFAULT_LOGIN_SELECTORS = {
    "username": "#user_login",
    "password": "#user_pass",
    "submit": "#wp-submit",
}

DEFAULT_VIEWPORTS: List[Dict[str, Any]] = [
    {"name": "mobile", "width": 375, "height": 812},
    {"name": "tablet", "width": 768, "height": 1024},
    {"name": "desktop", "width": 1280, "height": 900},
    {"name": "desktop-large", "width": 1920, "height": 1080},
]

RESET_VIEWPORT = {"width": 1280, "height": 900}


def wait_for_page_load(page: Page, timeout: int) -> None:
    page.wait_for_load_state("load", timeout=timeout)


def wait_for_network_idle(page: Page, timeout: int) -> None:
    page.wait_for_load_state("networkidle", timeout=timeout)


def wait_for_element(page: Page, selector: str, timeout: int) -> None:
    page.locator(selector).first.wait_for(state="visible", timeout=timeout)


def wait_for_element_gone(page: Page, selector: str, timeout: int) -> None:
    page.locator(selector).first.wait_for(state="hidden", timeout=timeout)


def wait_for_url(page: Page, url: str, timeout: int) -> None:
    page.wait_for_url(url, timeout=timeout)


def wait_for_indicator(page: Page, indicator: str, timeout: int) -> None:
    """Wait for a URL when ``indicator`` looks like one, otherwise for an element."""
    if indicator.startswith("/") or "://" in indicator:
        # A bare path has to match anywhere in the absolute URL.
        wait_for_url(page, indicator if "://" in indicator else f"**{indicator}", timeout)
    else:
        wait_for_element(page, indicator, timeout)


def login(
    page: Page,
    url: str,
    user: str,
    password: str,
    selectors: Optional[Dict[str, Optional[str]]] = None,
    wait_for: Optional[str] = None,
    timeout: int = 10000,
) -> None:
    """
    Log in through a username/password form.

    Navigates to ``url`` unless the page is already on its path, fills the
    credentials, submits and waits for ``wait_for`` (URL or selector) or a
    short fixed settle time when none is given.
    """
    selectors = selectors or {}
    username_sel = selectors.get("username") or DEFAULT_LOGIN_SELECTORS["username"]
    password_sel = selectors.get("password") or DEFAULT_LOGIN_SELECTORS["password"]
    submit_sel = selectors.get("submit") or DEFAULT_LOGIN_SELECTORS["submit"]

    path = urlparse(url).path or "/"
    if path not in (page.url or ""):
        page.goto(url)
        wait_for_page_load(page, timeout)

    page.fill(username_sel, user)
    page.fill(password_sel, password)
    page.click(submit_sel)
    wait_for_page_load(page, timeout)

    if wait_for:
        wait_for_indicator(page, wait_for, timeout)
    else:
        page.wait_for_timeout(2000)
    logger.info("logged in at %s", url)


def responsive(
    page: Page,
    screenshots: Optional[str],
    viewports: Optional[List[Dict[str, Any]]] = None,
    url: Optional[str] = None,
    timeout: int = 10000,
) -> List[str]:
    """
    Capture the page across several viewport sizes.

    :param screenshots: Path prefix; ``-<viewport name>.png`` is appended
    :return: Paths of the screenshots taken
    """
    if url:
        page.goto(url)
        wait_for_page_load(page, timeout)

    taken: List[str] = []
    for viewport in viewports or DEFAULT_VIEWPORTS:
        name = viewport.get("name") or f"{viewport['width']}x{viewport['height']}"
        logger.info("viewport %s (%sx%s)", name, viewport["width"], viewport["height"])
        page.set_viewport_size({"width": int(viewport["width"]), "height": int(viewport["height"])})
        # Reload so media queries evaluated at load time apply.
        page.reload()
        wait_for_page_load(page, timeout)
        page.wait_for_timeout(500)
        if screenshots:
            path = f"{screenshots}-{name}.png"
            page.screenshot(path=path, full_page=True)
            taken.append(path)

    page.set_viewport_size(dict(RESET_VIEWPORT))
    return taken
