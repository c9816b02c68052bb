"""
Execution report for a scenario run.

The executor feeds one ``StepResult`` per top-level step into an
``ExecutionReporter``; ``build`` turns them into the final
``ExecutionReport``. ``render_report`` produces the human-readable form
printed by the CLI and ``ExecutionReport.to_dict`` the JSON form.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

RULE = "=" * 60


class StepStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StepResult:
    """Outcome of one top-level step."""

    index: int
    type: str
    status: StepStatus
    duration_ms: int
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status == StepStatus.PASSED

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "index": self.index,
            "type": self.type,
            "status": self.status.value,
            "duration": self.duration_ms,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass(frozen=True)
class ExecutionReport:
    scenario: str
    success: bool
    steps: List[StepResult]
    duration_ms: int
    error: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "scenario": self.scenario,
            "success": self.success,
            "steps": [s.to_dict() for s in self.steps],
            "duration": self.duration_ms,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


class ExecutionReporter:
    """
    Collects step results while a scenario runs.

    :param step_log_path: Optional JSONL file; one line is appended per
        recorded result as soon as it is recorded
    """

    def __init__(self, step_log_path: Optional[str] = None):
        self.step_log_path = step_log_path or None
        self.results: List[StepResult] = []
        self.halted = False
        self.fatal_error: Optional[str] = None
        self._started = time.monotonic()

    def start(self) -> None:
        self._started = time.monotonic()

    def record(
        self,
        index: int,
        step_type: str,
        status: StepStatus,
        duration_ms: int,
        error: Optional[str] = None,
    ) -> StepResult:
        result = StepResult(index=index, type=step_type, status=status, duration_ms=duration_ms, error=error)
        self.results.append(result)
        self._write_step_log(result)
        return result

    def halt(self) -> None:
        self.halted = True

    def fatal(self, message: str) -> None:
        """Record an error that ended the run outside of any step."""
        self.fatal_error = message
        self.halted = True

    def build(self, scenario_name: str) -> ExecutionReport:
        success = (
            not self.halted
            and self.fatal_error is None
            and all(r.status == StepStatus.PASSED for r in self.results)
        )
        return ExecutionReport(
            scenario=scenario_name,
            success=success,
            steps=list(self.results),
            duration_ms=int((time.monotonic() - self._started) * 1000),
            error=self.fatal_error,
        )

    def _write_step_log(self, result: StepResult) -> None:
        if not self.step_log_path:
            return
        try:
            parent = os.path.dirname(self.step_log_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(self.step_log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(result.to_dict(), ensure_ascii=False) + "\n")
        except OSError as e:
            logger.warning("could not write step log %s: %s", self.step_log_path, e)


def render_report(report: ExecutionReport) -> str:
    lines = [
        RULE,
        f"Scenario: {report.scenario}",
        f"Status: {'PASSED' if report.success else 'FAILED'}",
        f"Duration: {report.duration_ms}ms",
        RULE,
    ]
    for step in report.steps:
        icon = "✓" if step.passed else "✗"
        status = step.status.value.upper().ljust(7)
        lines.append(f"{icon} Step {step.index} [{status}] {step.type} ({step.duration_ms}ms)")
        if step.error:
            lines.append(f"  Error: {step.error}")
    if report.error:
        lines.append("")
        lines.append(f"Fatal error: {report.error}")
    return "\n".join(lines)


def write_report_json(report: ExecutionReport, path: str) -> str:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, ensure_ascii=False, indent=2)
    return path
