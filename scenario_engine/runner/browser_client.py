"""
Client for the long-lived browser server.

The server keeps one browser session alive across runs and hands out
named pages. This module asks it for the CDP endpoint and the target id
of a named page, then attaches to that page with Playwright over CDP.

Beyond page retrieval the client offers two connection-level helpers the
executor relies on: resolving an accessibility-snapshot ref (``e5``) to a
locator, and a form fill that searches every frame of the page.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from playwright.sync_api import Browser, Frame, Locator, Page, Playwright, sync_playwright

from scenario_engine.runner.errors import FatalRunnerError

logger = logging.getLogger(__name__)

SUBMIT_SELECTORS = ('button[type="submit"]', 'input[type="submit"]')


@dataclass
class FillFormResult:
    filled: List[str] = field(default_factory=list)
    not_found: List[str] = field(default_factory=list)
    submitted: bool = False


def _field_candidates(label: str) -> List[str]:
    candidates: List[str] = []
    # Already a CSS selector (tag[attr], [attr], #id, .class)
    if label[:1] in ("#", ".", "[") or ("[" in label and label.split("[", 1)[0].isalpha()):
        candidates.append(label)
    candidates.extend(
        [
            f'[name="{label}"]',
            f"#{label}",
            f'[placeholder*="{label}" i]',
            f'[aria-label*="{label}" i]',
        ]
    )
    return candidates


def _first_match(frame: Frame, label: str) -> Optional[Locator]:
    for selector in _field_candidates(label):
        try:
            locator = frame.locator(selector).first
            if locator.count() > 0:
                return locator
        except Exception:
            # Invalid selector for this label (e.g. "#first name"); try the next one.
            continue
    by_label = frame.get_by_label(label)
    if by_label.count() > 0:
        return by_label.first
    return None


def _fill_in_frame(frame: Frame, label: str, value: str, timeout: int) -> bool:
    # Once a field matched, fill errors propagate instead of searching on.
    locator = _first_match(frame, label)
    if locator is None:
        return False
    locator.fill(value, timeout=timeout)
    return True


def smart_fill_form(
    page: Page,
    fields: Mapping[str, Any],
    submit: bool = False,
    timeout: int = 5000,
) -> FillFormResult:
    """
    Fill ``fields`` (label/name/selector -> value) wherever they live.

    The main frame is searched first, then every child frame, so forms
    embedded in iframes are handled transparently. With ``submit`` the
    submit button of the frame holding the last filled field is clicked.

    :return: Which fields were filled and which could not be found
    """
    result = FillFormResult()
    frames: List[Frame] = [page.main_frame] + [f for f in page.frames if f is not page.main_frame]
    last_frame: Optional[Frame] = None

    for label, value in fields.items():
        for frame in frames:
            if _fill_in_frame(frame, str(label), "" if value is None else str(value), timeout):
                result.filled.append(str(label))
                last_frame = frame
                break
        else:
            result.not_found.append(str(label))

    if submit and last_frame is not None:
        for selector in SUBMIT_SELECTORS:
            button = last_frame.locator(selector).first
            if button.count() > 0:
                button.click(timeout=timeout)
                result.submitted = True
                break
        if result.submitted:
            page.wait_for_load_state("load", timeout=timeout * 2)
    return result


class DevBrowserClient:
    """
    Connection to the browser server.

    :param base_url: HTTP endpoint of the server (e.g. ``http://localhost:9222``)
    :param timeout: Timeout in seconds for server HTTP calls
    """

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._pages: Dict[str, Page] = {}

    @classmethod
    def connect(cls, base_url: str, timeout: float = 5.0) -> "DevBrowserClient":
        client = cls(base_url, timeout=timeout)
        client.open()
        return client

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Dict[str, Any]:
        body = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(
            f"{self.base_url}{path}",
            data=body,
            method=method,
            headers={"content-type": "application/json"},
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return json.loads(resp.read().decode("utf-8") or "{}")
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise FatalRunnerError(f"Browser server request failed ({method} {path}): {e}") from e

    def open(self) -> None:
        info = self._request("GET", "/")
        ws_endpoint = info.get("wsEndpoint")
        if not ws_endpoint:
            raise FatalRunnerError(f"Browser server at {self.base_url} did not report a wsEndpoint")
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.connect_over_cdp(ws_endpoint)
        except Exception as e:
            self.disconnect()
            raise FatalRunnerError(f"Could not attach to browser at {ws_endpoint}: {e}") from e
        logger.debug("connected to %s", ws_endpoint)

    def _target_id(self, page: Page) -> str:
        session = page.context.new_cdp_session(page)
        try:
            return session.send("Target.getTargetInfo")["targetInfo"]["targetId"]
        finally:
            session.detach()

    def page(self, name: str) -> Page:
        """Get (or create on the server) the page registered under ``name``."""
        if name in self._pages and not self._pages[name].is_closed():
            return self._pages[name]
        if self._browser is None:
            raise FatalRunnerError("Not connected to a browser server")

        target_id = self._request("POST", "/pages", {"name": name}).get("targetId")
        for context in self._browser.contexts:
            for page in context.pages:
                try:
                    if self._target_id(page) == target_id:
                        self._pages[name] = page
                        return page
                except Exception:
                    continue
        raise FatalRunnerError(f"Page '{name}' (target {target_id}) not found in the browser")

    def select_snapshot_ref(self, name: str, ref: str) -> Optional[Locator]:
        """
        Resolve an accessibility-snapshot ref such as ``e5``.

        :return: Locator for the element, or ``None`` when the ref is unknown
        """
        locator = self.page(name).locator(f"aria-ref={ref}")
        try:
            if locator.count() == 0:
                return None
        except Exception:
            return None
        return locator.first

    def fill_form(self, name: str, fields: Mapping[str, Any], submit: bool = False, timeout: int = 5000) -> FillFormResult:
        return smart_fill_form(self.page(name), fields, submit=submit, timeout=timeout)

    def disconnect(self) -> None:
        # Only detaches; the server keeps the browser and its pages alive.
        try:
            if self._browser is not None:
                self._browser.close()
        except Exception:
            pass
        finally:
            self._browser = None
            self._pages.clear()
            if self._playwright is not None:
                self._playwright.stop()
                self._playwright = None
