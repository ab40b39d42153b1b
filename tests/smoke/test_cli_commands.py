"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
Each test gets its own session directory through PLAYLIST_SESSION_DIR.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent

CATALOG = {
    "units": [
        {"id": "outro", "title": "Outro", "sequence": 3},
        {"id": "intro", "title": "Intro", "sequence": 1},
        {"id": "quiz", "title": "Quiz", "type": "quiz", "category": "graded", "sequence": 2},
    ]
}

IDS = ["-e", "enr-1", "-m", "mod-1"]


@pytest.fixture
def workspace(tmp_path):
    """Session directory plus a catalog file."""
    catalog = tmp_path / "catalog.json"
    catalog.write_text(json.dumps(CATALOG), encoding="utf-8")
    return tmp_path


def run_cli_command(args: list[str], workspace: Path, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        args: Arguments after 'python -m src.cli.playlist_cli'
        workspace: Directory holding sessions for this test
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    env = dict(os.environ)
    env["PLAYLIST_SESSION_DIR"] = str(workspace / "sessions")
    env["PLAYLIST_LOG_LEVEL"] = "INFO"
    env["PYTHONIOENCODING"] = "utf-8"

    result = subprocess.run(
        [sys.executable, "-m", "src.cli.playlist_cli", *args],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
        encoding="utf-8",
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


def init_session(workspace: Path, *extra: str) -> None:
    code, stdout, stderr = run_cli_command(
        ["init", str(workspace / "catalog.json"), *IDS, *extra], workspace
    )
    assert code == 0, f"Init failed: {stderr}"


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self, workspace):
        """Main help should list the commands."""
        code, stdout, stderr = run_cli_command(["--help"], workspace)

        assert code == 0, f"Help failed: {stderr}"
        for command in ("init", "show", "next", "gate", "mastery", "goto", "sessions"):
            assert command in stdout

    def test_gate_help(self, workspace):
        code, stdout, stderr = run_cli_command(["gate", "--help"], workspace)

        assert code == 0, f"Gate help failed: {stderr}"


class TestCLIInit:
    def test_init_creates_session(self, workspace):
        code, stdout, stderr = run_cli_command(
            ["init", str(workspace / "catalog.json"), *IDS, "--mode", "full"], workspace
        )

        assert code == 0, f"Init failed: {stderr}"
        assert "PLAYLIST SESSION CREATED" in stdout
        assert "FULL" in stdout
        assert (workspace / "sessions" / "enr-1__mod-1.json").exists()

    def test_init_refuses_existing_session(self, workspace):
        init_session(workspace)

        code, stdout, stderr = run_cli_command(
            ["init", str(workspace / "catalog.json"), *IDS], workspace
        )
        assert code == 1
        assert "--force" in stdout

        init_session(workspace, "--force")

    def test_init_rejects_bad_catalog(self, workspace):
        bad = workspace / "bad.json"
        bad.write_text(json.dumps([{"title": "missing id"}]), encoding="utf-8")

        code, stdout, stderr = run_cli_command(["init", str(bad), *IDS], workspace)

        assert code == 2


class TestCLIWalkthrough:
    def test_full_module(self, workspace):
        init_session(workspace)

        code, stdout, _ = run_cli_command(["next", *IDS], workspace)
        assert code == 0
        assert "Now at Quiz" in stdout

        code, stdout, _ = run_cli_command(["next", *IDS], workspace)
        assert code == 0
        assert "Retry gate" in stdout

        code, stdout, _ = run_cli_command(
            ["gate", "quiz", "--failed", "--score", "0.3", *IDS], workspace
        )
        assert code == 0
        assert "attempt #1" in stdout
        assert "failed" in stdout

        code, stdout, _ = run_cli_command(
            ["gate", "quiz", "--passed", "--score", "0.9", *IDS], workspace
        )
        assert code == 0
        assert "passed" in stdout

        code, stdout, _ = run_cli_command(["next", *IDS], workspace)
        assert "Now at Outro" in stdout

        code, stdout, _ = run_cli_command(["next", *IDS], workspace)
        assert code == 0
        assert "Module complete" in stdout

        code, stdout, stderr = run_cli_command(["show", *IDS], workspace)
        assert code == 0, f"Show failed: {stderr}"
        assert "Progress: 100.0%" in stdout

    def test_show_lists_entries(self, workspace):
        init_session(workspace)

        code, stdout, stderr = run_cli_command(["show", *IDS], workspace)

        assert code == 0, f"Show failed: {stderr}"
        for title in ("Intro", "Quiz", "Outro"):
            assert title in stdout
        assert "locked" in stdout

    def test_goto_and_mastery(self, workspace):
        init_session(workspace, "--mode", "full")

        code, stdout, _ = run_cli_command(["goto", "2", *IDS], workspace)
        assert code == 0
        assert "Outro" in stdout

        code, stdout, _ = run_cli_command(["mastery", "node-a", "0.8", *IDS], workspace)
        assert code == 0
        assert "80%" in stdout


class TestCLIErrors:
    def test_missing_session(self, workspace):
        code, stdout, stderr = run_cli_command(["show", *IDS], workspace)

        assert code == 1
        assert "No session" in stdout

    def test_goto_out_of_range(self, workspace):
        init_session(workspace)

        code, stdout, _ = run_cli_command(["goto", "9", *IDS], workspace)

        assert code == 2
        assert "Invalid request" in stdout

    def test_out_of_sequence_attempt(self, workspace):
        init_session(workspace)

        code, stdout, _ = run_cli_command(
            ["gate", "quiz", "--passed", "--score", "1.0", "--attempt", "3", *IDS], workspace
        )

        assert code == 2

    def test_mastery_out_of_range(self, workspace):
        init_session(workspace)

        code, stdout, _ = run_cli_command(["mastery", "node-a", "1.5", *IDS], workspace)

        assert code == 2


class TestCLISessions:
    def test_sessions_empty(self, workspace):
        code, stdout, stderr = run_cli_command(["sessions"], workspace)

        assert code == 0, f"Sessions failed: {stderr}"
        assert "No stored sessions" in stdout

    def test_sessions_lists_saved(self, workspace):
        init_session(workspace)

        code, stdout, stderr = run_cli_command(["sessions"], workspace)

        assert code == 0, f"Sessions failed: {stderr}"
        assert "enr-1" in stdout
