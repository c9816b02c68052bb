"""Tests for the scenario executor: dispatch, control flow and error policy."""

from unittest.mock import MagicMock

import pytest

from scenario_engine.reporting.report import ExecutionReporter, StepStatus
from scenario_engine.runner.errors import FatalRunnerError
from scenario_engine.runner.executor import ScenarioExecutor, execute_step, interpolate_step
from scenario_engine.runner.scenario import scenario_from_dict
from scenario_engine.runner.steps import StepKind
from tests.fakes import FakePage


def run(document, page, settings, environ=None):
    client = MagicMock()
    client.page.return_value = page
    scenario = scenario_from_dict(document)
    report = ScenarioExecutor(scenario, client, settings, environ=environ or {}).execute()
    return report, client


def test_end_to_end_goto_wait_screenshot(page, settings):
    report, client = run(
        {"name": "t", "steps": [{"goto": "https://example.com"}, {"wait": "load"}, {"screenshot": "out.png"}]},
        page,
        settings,
    )
    assert report.success is True
    assert report.error is None
    assert [(s.index, s.type, s.status) for s in report.steps] == [
        (0, "goto", StepStatus.PASSED),
        (1, "wait", StepStatus.PASSED),
        (2, "screenshot", StepStatus.PASSED),
    ]
    assert page.called("screenshot") == [("screenshot", "tmp/out.png", False)]
    client.page.assert_called_once_with("main")


def test_named_page_is_requested(page, settings):
    _, client = run({"name": "t", "page": "checkout", "steps": []}, page, settings)
    client.page.assert_called_once_with("checkout")


def test_stop_policy_halts_after_first_failure(page, settings):
    page.add("#ok")
    report, _ = run(
        {"name": "t", "steps": [{"click": "#ok"}, {"click": "#missing"}, {"click": "#ok"}, {"click": "#ok"}]},
        page,
        settings,
    )
    assert report.success is False
    assert [s.index for s in report.steps] == [0, 1]
    assert report.steps[1].status is StepStatus.FAILED
    assert "#missing" in report.steps[1].error
    assert report.error is None
    assert len(page.called("click")) == 1


def test_global_continue_runs_every_step(page, settings):
    page.add("#ok")
    report, _ = run(
        {"name": "t", "onError": "continue", "steps": [{"click": "#missing"}, {"click": "#ok"}, {"click": "#gone"}]},
        page,
        settings,
    )
    assert report.success is False
    assert [(s.index, s.status) for s in report.steps] == [
        (0, StepStatus.FAILED),
        (1, StepStatus.PASSED),
        (2, StepStatus.FAILED),
    ]


def test_step_level_continue_overrides_global_stop(page, settings):
    page.add("#ok")
    report, _ = run(
        {"name": "t", "steps": [{"click": "#missing", "onError": "continue"}, {"click": "#ok"}]},
        page,
        settings,
    )
    assert [s.status for s in report.steps] == [StepStatus.FAILED, StepStatus.PASSED]
    assert report.success is False


def test_step_level_stop_overrides_global_continue(page, settings):
    report, _ = run(
        {"name": "t", "onError": "continue", "steps": [{"click": "#missing", "onError": "stop"}, {"wait": "load"}]},
        page,
        settings,
    )
    assert len(report.steps) == 1


def test_unknown_step_is_a_step_failure(page, settings):
    report, _ = run(
        {"name": "t", "onError": "continue", "steps": [{"hover": "#x"}, {"wait": "load"}]},
        page,
        settings,
    )
    assert report.steps[0].type == "unknown"
    assert report.steps[0].status is StepStatus.FAILED
    assert "Unknown step type" in report.steps[0].error
    assert report.steps[1].status is StepStatus.PASSED


def test_variables_are_interpolated_before_dispatch(page, settings):
    report, _ = run(
        {"name": "t", "variables": {"URL": "https://example.com"}, "steps": [{"goto": "{{URL}}/path"}]},
        page,
        settings,
    )
    assert report.success
    assert page.called("goto") == [("goto", "https://example.com/path")]


def test_env_fallback_variables(page, settings):
    run(
        {"name": "t", "variables": {"HOST": "${APP_HOST:-localhost}"}, "steps": [{"goto": "http://{{HOST}}/"}]},
        page,
        settings,
        environ={"APP_HOST": "staging.test"},
    )
    assert page.called("goto") == [("goto", "http://staging.test/")]


def test_assertion_failure_fails_the_step(page, settings):
    report, _ = run(
        {"name": "t", "steps": [{"goto": "https://example.com", "assert": [{"title": "Nope"}]}]},
        page,
        settings,
    )
    assert report.steps[0].status is StepStatus.FAILED
    assert "Title mismatch" in report.steps[0].error


def test_assertions_see_values_stored_by_the_same_step(page, settings):
    page.eval_results["document.title"] = "Example Domain"
    report, _ = run(
        {
            "name": "t",
            "steps": [
                {"eval": {"script": "document.title", "store": "T"}, "assert": [{"title": "{{T}}"}]},
            ],
        },
        page,
        settings,
    )
    assert report.success


def test_try_catch_absorbs_failure_even_with_stop(page, settings):
    page.add("#recover")
    report, _ = run(
        {"name": "t", "steps": [{"try": [{"click": "#missing"}], "catch": [{"click": "#recover"}]}, {"wait": "load"}]},
        page,
        settings,
    )
    assert report.success is True
    assert [s.status for s in report.steps] == [StepStatus.PASSED, StepStatus.PASSED]
    assert page.called("click") == [("click", "#recover")]


def test_try_without_catch_still_absorbs(page, settings):
    report, _ = run({"name": "t", "steps": [{"try": [{"click": "#missing"}]}]}, page, settings)
    assert report.success is True


def test_try_stops_at_first_failing_nested_step(page, settings):
    page.add("#a")
    run(
        {"name": "t", "steps": [{"try": [{"click": "#missing"}, {"click": "#a"}], "catch": []}]},
        page,
        settings,
    )
    assert page.called("click") == []


def test_failure_in_catch_fails_the_top_level_step(page, settings):
    report, _ = run(
        {"name": "t", "steps": [{"try": [{"click": "#missing"}], "catch": [{"click": "#also-missing"}]}]},
        page,
        settings,
    )
    assert report.steps[0].status is StepStatus.FAILED
    assert "#also-missing" in report.steps[0].error


def test_if_exists_runs_then_branch(page, settings):
    page.add(".banner").add("#accept").add("#other")
    run(
        {
            "name": "t",
            "steps": [{"if": {"exists": ".banner"}, "then": [{"click": "#accept"}], "else": [{"click": "#other"}]}],
        },
        page,
        settings,
    )
    assert page.called("click") == [("click", "#accept")]


def test_if_url_runs_else_branch_when_no_match(page, settings):
    page.add("#other")
    run(
        {
            "name": "t",
            "steps": [{"if": {"url": "**/admin/**"}, "then": [{"click": "#accept"}], "else": [{"click": "#other"}]}],
        },
        page,
        settings,
    )
    assert page.called("click") == [("click", "#other")]


def test_if_without_matching_branch_is_a_no_op(page, settings):
    report, _ = run({"name": "t", "steps": [{"if": {"exists": ".banner"}, "then": [{"click": "#x"}]}]}, page, settings)
    assert report.success
    assert page.calls == []


def test_nested_failure_is_recorded_against_top_level_index(page, settings):
    report, _ = run(
        {
            "name": "t",
            "onError": "continue",
            "steps": [
                {"wait": "load"},
                {"if": {"url": "example.com"}, "then": [{"wait": "load"}, {"click": "#missing"}]},
                {"wait": "load"},
            ],
        },
        page,
        settings,
    )
    assert [(s.index, s.type, s.status) for s in report.steps] == [
        (0, "wait", StepStatus.PASSED),
        (1, "if", StepStatus.FAILED),
        (2, "wait", StepStatus.PASSED),
    ]


def test_repeat_runs_body_in_order(page, settings):
    page.add("#a").add("#b")
    run(
        {"name": "t", "steps": [{"repeat": {"times": 3, "steps": [{"click": "#a"}, {"click": "#b"}]}}]},
        page,
        settings,
    )
    assert [c[1] for c in page.called("click")] == ["#a", "#b"] * 3


def test_repeat_zero_times_is_a_no_op(page, settings):
    report, _ = run({"name": "t", "steps": [{"repeat": {"times": 0, "steps": [{"click": "#a"}]}}]}, page, settings)
    assert report.success
    assert page.called("click") == []


def test_repeat_sees_values_stored_on_previous_iteration(page, settings):
    page.eval_results["next()"] = "https://example.com/next"
    run(
        {
            "name": "t",
            "steps": [
                {
                    "repeat": {
                        "times": 2,
                        "steps": [{"goto": "{{NEXT}}start"}, {"eval": {"script": "next()", "store": "NEXT"}}],
                    }
                }
            ],
        },
        page,
        settings,
    )
    assert page.called("goto") == [("goto", "start"), ("goto", "https://example.com/nextstart")]


def test_each_binds_alias_per_element_and_restores_it(page, settings):
    page.add("li.product", " Apple ", "Pear")
    page.add("text=Apple").add("text=Pear")
    report, _ = run(
        {
            "name": "t",
            "variables": {"item": "before"},
            "steps": [
                {"each": {"selector": "li.product", "as": "item", "steps": [{"click": {"text": "{{item}}"}}, {"eval": "log('{{item_index}}')"}]}},
                {"eval": "log('{{item}}')"},
            ],
        },
        page,
        settings,
    )
    assert report.success
    assert page.called("click") == [("click", "text=Apple"), ("click", "text=Pear")]
    assert [c[1] for c in page.called("evaluate")] == ["log('0')", "log('1')", "log('before')"]


def test_each_with_no_matches_runs_nothing(page, settings):
    report, _ = run(
        {"name": "t", "steps": [{"each": {"selector": ".none", "as": "x", "steps": [{"click": "#a"}]}}]},
        page,
        settings,
    )
    assert report.success
    assert page.called("click") == []


def test_fatal_error_while_getting_page(settings):
    client = MagicMock()
    client.page.side_effect = FatalRunnerError("Browser server request failed")
    scenario = scenario_from_dict({"name": "t", "steps": [{"wait": "load"}]})
    report = ScenarioExecutor(scenario, client, settings).execute()
    assert report.success is False
    assert report.steps == []
    assert report.error == "Browser server request failed"


def test_fatal_error_inside_a_step_is_not_absorbed_by_try(page, settings, client):
    client.select_snapshot_ref.side_effect = FatalRunnerError("connection lost")
    scenario = scenario_from_dict(
        {"name": "t", "onError": "continue", "steps": [{"try": [{"click": {"ref": "e1"}}]}, {"wait": "load"}]}
    )
    report = ScenarioExecutor(scenario, client, settings).execute()
    assert report.error == "connection lost"
    assert report.steps == []


def test_step_log_is_written(page, settings, tmp_path):
    log_path = tmp_path / "logs" / "steps.jsonl"
    client = MagicMock()
    client.page.return_value = page
    scenario = scenario_from_dict({"name": "t", "steps": [{"wait": "load"}, {"wait": "networkidle"}]})
    ScenarioExecutor(scenario, client, settings, reporter=ExecutionReporter(str(log_path))).execute()
    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert '"index": 1' in lines[1]
    assert '"status": "passed"' in lines[1]


def test_interpolate_step_leaves_nested_steps_raw():
    step = {"repeat": {"times": "{{N}}", "steps": [{"goto": "{{URL}}"}]}, "assert": [{"title": "{{T}}"}]}
    resolved = interpolate_step(StepKind.REPEAT, step, {"N": "2", "URL": "u", "T": "t"})
    assert resolved == {"repeat": {"times": "2", "steps": [{"goto": "{{URL}}"}]}, "assert": [{"title": "{{T}}"}]}


def test_execute_step_directly(ctx, page):
    ctx.variables["SEL"] = "#x"
    page.add("#x")
    execute_step(ctx, {"click": "{{SEL}}"})
    assert page.called("click") == [("click", "#x")]


def test_step_start_and_finish_are_logged_at_debug(ctx, page, caplog):
    caplog.set_level("DEBUG", logger="scenario_engine.runner.executor")
    execute_step(ctx, {"wait": "load"})
    messages = [r.getMessage() for r in caplog.records if r.name == "scenario_engine.runner.executor"]
    assert messages[0] == "step wait started"
    assert messages[1].startswith("step wait finished in ")
