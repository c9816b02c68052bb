"""
Command-line entrypoint.

``scenario-runner path/to/scenario.yaml`` loads the scenario, attaches to
the browser server, runs it and prints a report. The exit code is ``0``
when the run succeeded and ``1`` otherwise, including when the document
could not be loaded or the browser server could not be reached.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
import sys
from typing import Any, Callable, List, Optional

from scenario_engine.core.config import Settings, settings
from scenario_engine.reporting.report import (
    ExecutionReport,
    ExecutionReporter,
    render_report,
    write_report_json,
)
from scenario_engine.runner.browser_client import DevBrowserClient
from scenario_engine.runner.errors import DocumentError, FatalRunnerError
from scenario_engine.runner.executor import ScenarioExecutor
from scenario_engine.runner.scenario import load_scenario

logger = logging.getLogger(__name__)

ClientFactory = Callable[[Settings], Any]


def connect_client(cfg: Settings) -> DevBrowserClient:
    return DevBrowserClient.connect(cfg.DEV_BROWSER_URL, timeout=cfg.CONNECT_TIMEOUT_S)


def _fatal_report(name: str, reporter: ExecutionReporter, error: Exception) -> ExecutionReport:
    reporter.fatal(str(error))
    return reporter.build(name)


def run_scenario_file(
    path: str,
    cfg: Settings,
    client_factory: ClientFactory = connect_client,
    page: Optional[str] = None,
    echo: Callable[[str], None] = print,
) -> ExecutionReport:
    """
    Load, connect and execute; never raises for document or connection errors.

    Those end up in the report's ``error`` field instead.
    """
    reporter = ExecutionReporter(cfg.STEP_LOG_PATH)
    try:
        scenario = load_scenario(path, default_page=cfg.DEFAULT_PAGE)
    except DocumentError as e:
        logger.error("%s", e)
        return _fatal_report(os.path.basename(path), reporter, e)

    if page:
        scenario = dataclasses.replace(scenario, page=page)

    echo(f"Running scenario: {scenario.name}")
    if scenario.description:
        echo(f"Description: {scenario.description}")

    try:
        client = client_factory(cfg)
    except FatalRunnerError as e:
        logger.error("%s", e)
        return _fatal_report(scenario.name, reporter, e)

    try:
        return ScenarioExecutor(scenario, client, cfg, reporter=reporter).execute()
    finally:
        client.disconnect()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scenario-runner",
        description="Run a declarative browser scenario against the dev browser server.",
    )
    parser.add_argument("scenario", help="Path to a scenario YAML/JSON file")
    parser.add_argument("--server", default=None, help="Browser server URL (default: DEV_BROWSER_URL)")
    parser.add_argument("--page", default=None, help="Override the scenario's page name")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("--report-file", default=None, help="Also write the JSON report to this path")
    parser.add_argument("--step-log", default=None, help="Append one JSON line per step result to this file")
    parser.add_argument("--log-level", default=None, help="Logging level (default: LOG_LEVEL)")
    return parser


def main(argv: Optional[List[str]] = None, client_factory: ClientFactory = connect_client) -> int:
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.server:
        overrides["DEV_BROWSER_URL"] = args.server
    if args.step_log:
        overrides["STEP_LOG_PATH"] = args.step_log
    if args.log_level:
        overrides["LOG_LEVEL"] = args.log_level
    cfg = settings.model_copy(update=overrides)

    logging.basicConfig(
        level=cfg.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    # Keep stdout clean for --json consumers.
    echo = (lambda _line: None) if args.json else print
    report = run_scenario_file(args.scenario, cfg, client_factory=client_factory, page=args.page, echo=echo)

    if args.json:
        print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    else:
        print("\n" + render_report(report))

    if args.report_file:
        write_report_json(report, args.report_file)

    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
