"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import subprocess
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from config import get_settings
from src.cli.tutor_cli import app

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

# Project root
PROJECT_ROOT = Path(__file__).parent.parent.parent

INSIGHT = (
    "Oh! I see, so that means acceleration depends on mass because F=ma, "
    "for example when pushing a heavy cart it's harder to speed up."
)

runner = CliRunner()


def run_cli_command(command: str, timeout: int = 30) -> tuple[int, str, str]:
    """
    Run a CLI command and return exit code, stdout, stderr.

    Args:
        command: The command to run (after 'python -m src.cli.tutor_cli')
        timeout: Maximum time to wait

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    full_command = f"{sys.executable} -m src.cli.tutor_cli {command}"

    result = subprocess.run(
        full_command,
        shell=True,
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=timeout,
    )

    return result.returncode, result.stdout, result.stderr


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point profile storage at a temp dir and force offline generation."""
    monkeypatch.setenv("PROFILE_BACKEND", "json")
    monkeypatch.setenv("PROFILE_DIR", str(tmp_path))
    monkeypatch.setenv("RANDOM_SEED", "3")
    monkeypatch.delenv("LLM_API_URL", raising=False)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        """Main help should display without errors."""
        code, stdout, stderr = run_cli_command("--help")

        assert code == 0, f"Help failed: {stderr}"
        assert "tutor" in stdout.lower()
        assert "Commands" in stdout

    @pytest.mark.parametrize("command", ["start", "profile", "reset"])
    def test_command_help(self, command):
        result = runner.invoke(app, [command, "--help"])

        assert result.exit_code == 0, result.output


class TestStartCommand:
    """Interactive dialogue runs with offline templates."""

    def test_quit_abandons_without_saving(self, isolated_settings):
        result = runner.invoke(app, ["start", "--skill", "Forces", "--offline"], input="/quit\n")

        assert result.exit_code == 0, result.output
        assert "abandoned" in result.output
        assert not list(isolated_settings.glob("*.json"))

    def test_discovery_completes_and_saves(self, isolated_settings):
        result = runner.invoke(
            app,
            ["start", "--skill", "Forces", "--concept", "acceleration", "--offline"],
            input=f"{INSIGHT}\n",
        )

        assert result.exit_code == 0, result.output
        assert "Dialogue Summary" in result.output
        assert (isolated_settings / "default.json").exists()

    def test_done_completes_early(self, isolated_settings):
        result = runner.invoke(
            app,
            ["start", "--skill", "Forces", "--offline", "--learner", "sam"],
            input="I think it has to do with how hard you push on something heavy.\n/done\n",
        )

        assert result.exit_code == 0, result.output
        assert "Dialogue Summary" in result.output
        assert (isolated_settings / "sam.json").exists()

    def test_inverse_mode_opens_as_learner(self):
        result = runner.invoke(
            app, ["start", "--skill", "Forces", "--kind", "inverse", "--offline"], input="/quit\n"
        )

        assert result.exit_code == 0, result.output
        assert "Learner:" in result.output


class TestProfileCommands:

    def test_missing_profile_exits_nonzero(self):
        result = runner.invoke(app, ["profile", "--learner", "ghost"])

        assert result.exit_code == 1

    def test_profile_after_dialogue(self):
        runner.invoke(
            app,
            ["start", "--skill", "Forces", "--concept", "acceleration", "--offline"],
            input=f"{INSIGHT}\n",
        )

        result = runner.invoke(app, ["profile"])

        assert result.exit_code == 0, result.output
        assert "Dialogues completed" in result.output

    def test_reset_deletes_profile(self, isolated_settings):
        runner.invoke(
            app,
            ["start", "--skill", "Forces", "--concept", "acceleration", "--offline"],
            input=f"{INSIGHT}\n",
        )

        result = runner.invoke(app, ["reset", "--yes"])

        assert result.exit_code == 0, result.output
        assert not (isolated_settings / "default.json").exists()
