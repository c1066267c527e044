from __future__ import annotations

from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from mr import __version__
from mr.cli.app import app
from mr.core.errors import ErrorCode
from mr.output.console import MockConsole
from mr.services.checkers import CheckGroup, CheckResult, PreflightReport


def _patch(monkeypatch: pytest.MonkeyPatch, report: PreflightReport) -> MockConsole:
    import mr.cli.commands.check as check_cmd

    console = MockConsole()
    monkeypatch.setattr(check_cmd, "RichConsole", lambda: console)
    monkeypatch.setattr(check_cmd, "scan_project", lambda root, environ: root)
    monkeypatch.setattr(check_cmd, "validate_project", lambda snapshot: report)
    return console


def test_check_exits_on_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import mr.cli.commands.check as check_cmd

    report = PreflightReport(
        groups=(CheckGroup("Project files", (CheckResult.error("package.json", "missing"),)),),
    )
    console = _patch(monkeypatch, report)

    with pytest.raises(typer.Exit) as exc:
        check_cmd.check(project=tmp_path)

    assert exc.value.exit_code == int(ErrorCode.ENV_ERROR)
    assert console.find("package.json: missing")


def test_check_warnings_do_not_fail(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import mr.cli.commands.check as check_cmd

    report = PreflightReport(
        groups=(
            CheckGroup(
                "Dependencies",
                (CheckResult.warning("node_modules", "missing", hint="Run: npm install"),),
            ),
        ),
    )
    console = _patch(monkeypatch, report)

    check_cmd.check(project=tmp_path)

    assert not console.has_error()
    assert console.has_warning()
    assert console.find("hint: Run: npm install")
    assert console.find("1 warning(s)")


def test_check_all_passed(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import mr.cli.commands.check as check_cmd

    report = PreflightReport(groups=(CheckGroup("Tools", (CheckResult.success("node", "/usr/bin/node"),)),))
    console = _patch(monkeypatch, report)

    check_cmd.check(project=tmp_path)

    assert console.find("all checks passed")
    assert not console.find("hint:")


def test_version_flag() -> None:
    result = CliRunner().invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output
