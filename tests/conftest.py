"""
Shared pytest configuration.

The ``--scenario`` option points the live end-to-end test at a scenario
file; unit tests use the fake page and connection fixtures below.
"""

from unittest.mock import MagicMock

import pytest

from scenario_engine.core.config import Settings
from scenario_engine.reporting.report import ExecutionReporter
from scenario_engine.runner.context import ExecutionContext
from scenario_engine.runner.scenario import ScenarioDefinition
from tests.fakes import FakePage


def pytest_addoption(parser):
    """Hook to add custom command-line options to pytest."""
    parser.addoption("--scenario", action="store", default=None)


@pytest.fixture(scope="session")
def scenario_path(pytestconfig):
    """
    Path to the scenario file given with ``--scenario``.

    Tests depending on it are skipped when the option is missing.
    """
    path = pytestconfig.getoption("--scenario")
    if not path:
        pytest.skip("no --scenario given")
    return path


@pytest.fixture
def settings():
    return Settings(_env_file=None, STEP_LOG_PATH="", SCREENSHOT_DIR="tmp")


@pytest.fixture
def page():
    return FakePage(url="https://example.com/", title="Example Domain")


@pytest.fixture
def client(page):
    client = MagicMock()
    client.page.return_value = page
    return client


@pytest.fixture
def ctx(page, client, settings):
    scenario = ScenarioDefinition(name="t", steps=())
    return ExecutionContext(
        scenario=scenario,
        page=page,
        client=client,
        variables={},
        reporter=ExecutionReporter(),
        settings=settings,
    )
