from __future__ import annotations

import json
from pathlib import Path

import pytest

from step_kernel.app.runtime import (
    EXIT_OK,
    EXIT_SETUP_FAILED,
    EXIT_STEP_FAILED,
    EXIT_USAGE,
    run,
    run_with_registry,
)
from step_kernel.kernel.step_registry import StepRegistry
from step_kernel.main import main

_SCRIPT = """
from step_kernel import step

CALLS = []


@step
def step1():
    \"\"\"Constant-time work.\"\"\"
    CALLS.append("step1")


@step(default=True)
def step2():
    step1()
    CALLS.append("step2")


@step
def broken():
    raise RuntimeError("tests failed")


@step
async def publish():
    CALLS.append("publish")
"""


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    (tmp_path / "steps.py").write_text(_SCRIPT, encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _report_names(out: str) -> list[str]:
    # Rows sit between the column separator and the closing rule.
    lines = out.splitlines()
    start = lines.index("-----               ----------------   ----------------") + 1
    end = len(lines) - 2
    return [line.split()[0] for line in lines[start:end]]


def test_run_prints_report_for_selected_steps(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["step2"]) == EXIT_OK
    out = capsys.readouterr().out
    assert "Steps Summary" in out
    assert _report_names(out) == ["step1", "step2"]
    assert out.splitlines()[-1].startswith("Total               ")


def test_run_with_default_step(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert run([]) == EXIT_OK
    assert _report_names(capsys.readouterr().out) == ["step1", "step2"]


def test_unknown_step_runs_nothing(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(["step1", "stpe2"]) == EXIT_USAGE
    captured = capsys.readouterr()
    assert "Steps Summary" not in captured.out
    assert "unknown step(s): stpe2" in captured.err
    assert "step1" in captured.err


def test_step_failure_reports_partial_session(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(["step1", "broken", "step2", "--log-level", "error"]) == EXIT_STEP_FAILED
    captured = capsys.readouterr()
    assert _report_names(captured.out) == ["step1", "broken"]
    assert "error: step 'broken' failed: RuntimeError: tests failed" in captured.err


def test_async_step_runs_from_cli(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(["publish"]) == EXIT_OK
    assert _report_names(capsys.readouterr().out) == ["publish"]


def test_list_shows_steps_without_running(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(["--list"]) == EXIT_OK
    out = capsys.readouterr().out.splitlines()
    assert out[0].split() == ["step1", "Constant-time", "work."]
    assert out[1].split() == ["*", "step2"]
    assert out[3].split() == ["publish", "async"]


def test_trace_and_report_files(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = run(["step1", "step2", "--trace-path", "out/trace.jsonl", "--report-path", "out/summary.txt"])
    assert code == EXIT_OK
    out = capsys.readouterr().out
    assert (workspace / "out" / "summary.txt").read_text(encoding="utf-8") == out
    records = [json.loads(line) for line in (workspace / "out" / "trace.jsonl").read_text(encoding="utf-8").splitlines()]
    assert [(item["name"], item["depth"]) for item in records] == [("step1", 0), ("step1", 1), ("step2", 0)]


def test_config_file_selects_policy(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (workspace / "steps.yml").write_text(
        "selection:\n  on_empty: usage\nlogging:\n  sink: none\n",
        encoding="utf-8",
    )
    assert run(["--config", "steps.yml"]) == EXIT_USAGE
    captured = capsys.readouterr()
    assert "usage: step-kernel" in captured.err
    assert "available steps:" in captured.err


def test_invalid_config_is_setup_failure(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (workspace / "steps.yml").write_text("selection:\n  on_empty: sometimes\n", encoding="utf-8")
    assert run(["--config", "steps.yml"]) == EXIT_SETUP_FAILED
    assert "invalid configuration" in capsys.readouterr().err


def test_missing_script_is_setup_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.chdir(tmp_path)
    assert run(["build", "--log-level", "error"]) == EXIT_SETUP_FAILED
    captured = capsys.readouterr()
    assert "Step script not found" in captured.err
    assert "discovery failed" in captured.err


def test_run_with_registry_for_embedding(capsys: pytest.CaptureFixture[str]) -> None:
    registry = StepRegistry()
    registry.register("lint", lambda: None)
    assert run_with_registry(registry, ["lint"]) == EXIT_OK
    assert _report_names(capsys.readouterr().out) == ["lint"]


def test_sys_exit_in_a_step_is_a_step_failure(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    # sys.exit(0) mid-selection must not end the run as a success.
    (tmp_path / "steps.py").write_text(
        "import sys\n"
        "from step_kernel import step\n"
        "\n"
        "@step\n"
        "def ok():\n"
        "    pass\n"
        "\n"
        "@step\n"
        "def gate():\n"
        "    sys.exit(0)\n"
        "\n"
        "@step\n"
        "def later():\n"
        "    raise AssertionError('must not run')\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    assert run(["ok", "gate", "later", "--log-level", "error"]) == EXIT_STEP_FAILED
    captured = capsys.readouterr()
    assert _report_names(captured.out) == ["ok", "gate"]
    assert "error: step 'gate' failed: SystemExit: 0" in captured.err


def test_unwritable_log_path_is_setup_failure(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (workspace / "blocker").write_text("not a directory", encoding="utf-8")
    (workspace / "steps.yml").write_text(
        "logging:\n  sink: jsonl\n  path: blocker/run.jsonl\n",
        encoding="utf-8",
    )
    assert run(["step1", "--config", "steps.yml"]) == EXIT_SETUP_FAILED
    captured = capsys.readouterr()
    assert "invalid configuration" in captured.err
    assert "Steps Summary" not in captured.out
