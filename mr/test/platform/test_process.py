"""Tests for mr.platform.process module."""

from __future__ import annotations

import sys
from pathlib import Path

from mr.core.result import Err, Ok
from mr.platform.process import ProcessError, SubprocessRunner, run


class TestProcessError:
    def test_str_short_command(self) -> None:
        error = ProcessError(command=("npm", "ci"), returncode=1, stdout="", stderr="boom")
        assert str(error) == "npm ci failed (exit 1)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(
            command=("bundle", "exec", "fastlane", "run", "upload_to_testflight"),
            returncode=1,
            stdout="",
            stderr="",
        )
        assert str(error) == "bundle exec fastlane ... failed (exit 1)"

    def test_tail_combines_output(self) -> None:
        stdout = "\n".join(f"line {i}" for i in range(50))
        error = ProcessError(("gradlew",), 1, stdout, "FAILURE: Build failed")

        tail = error.tail(lines=3).splitlines()

        assert tail == ["line 48", "line 49", "FAILURE: Build failed"]


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert "hello" in result.value

    def test_failure_returns_error(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "import sys; sys.exit(42)"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == 42

    def test_undecodable_output_is_replaced(self, tmp_path: Path) -> None:
        script = "import sys; sys.stdout.buffer.write(b'ok \\xff'); sys.stderr.buffer.write(b'\\xfe fail'); sys.exit(1)"

        result = run([sys.executable, "-c", script], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == 1
        assert result.error.stdout == "ok �"
        assert result.error.stderr == "� fail"

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run(["nonexistent_command_12345"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == -1

    def test_timeout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "import time; time.sleep(5)"], cwd=tmp_path, timeout=0.2)

        assert isinstance(result, Err)
        assert "timed out" in result.error.stderr


def test_runner_passes_environment(tmp_path: Path) -> None:
    value = "from-env"
    runner = SubprocessRunner()
    result = runner.run(
        [sys.executable, "-c", "import os; print(os.environ['MR_TEST_VALUE'])"],
        cwd=tmp_path,
        env={"MR_TEST_VALUE": value, "PATH": ""},
    )

    assert isinstance(result, Ok)
    assert result.value.strip() == value
