"""
Exception types raised while loading and executing scenarios.

``DocumentError`` and ``FatalRunnerError`` abort a whole run. Everything
derived from ``StepError`` is a per-step failure that the executor records
and resolves against the step's ``onError`` policy.
"""

from __future__ import annotations

from typing import Iterable, List


class ScenarioError(Exception):
    """Base class for every error raised by the scenario engine."""


class DocumentError(ScenarioError):
    """The scenario document is malformed or could not be parsed."""

    def __init__(self, message: str, errors: Iterable[str] = ()):
        self.errors: List[str] = list(errors)
        if self.errors:
            message = f"{message}: " + "; ".join(self.errors)
        super().__init__(message)


class StepError(ScenarioError):
    """A step failed. Subject to the onError policy."""


class UnknownStepError(StepError):
    """No recognised step kind key is present on a step."""


class AssertionFailure(StepError):
    """A post-step assertion did not hold."""


class FatalRunnerError(ScenarioError):
    """The browser surface could not be reached; the run cannot continue."""
