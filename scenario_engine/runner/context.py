from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from playwright.sync_api import Page

from scenario_engine.core.config import Settings
from scenario_engine.runner.variables import VariableTable

if TYPE_CHECKING:
    from scenario_engine.reporting.report import ExecutionReporter
    from scenario_engine.runner.scenario import ScenarioDefinition


@dataclass
class ExecutionContext:
    """
    Everything a step needs while a scenario runs.

    One instance per run, passed explicitly into every step. ``variables``
    is shared by reference: an ``eval`` step with ``store`` writes into it
    and every later step sees the new value.
    """

    scenario: "ScenarioDefinition"
    page: Page
    client: Any
    variables: VariableTable
    reporter: "ExecutionReporter"
    settings: Settings

    @property
    def page_name(self) -> str:
        return self.scenario.page
