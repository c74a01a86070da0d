"""Unit tests for the command line entry point."""

import pytest
from click.testing import CliRunner

from agent_runtime.__main__ import main

pytestmark = pytest.mark.usefixtures("restore_logging")


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestRun:
    """Tests for the run command."""

    def test_call_with_mock_provider(self, runner):
        """The demo agent answers offline through the scripted mock."""
        result = runner.invoke(main, ["run", "How many open orders are there?", "--log-level", "WARNING"])
        assert result.exit_code == 0, result.output
        assert "There are 30 open orders, for example SO-0004, SO-0008, SO-0012." in result.output

    def test_stream(self, runner):
        """--stream prints content deltas and a done line."""
        result = runner.invoke(main, ["run", "Describe the order desk", "--stream", "--log-level", "WARNING"])
        assert result.exit_code == 0, result.output
        assert "The order desk tracks 120 service orders." in result.output
        assert "[thinking]" in result.output
        assert "[done]" in result.output

    def test_budget_error_exits_nonzero(self, runner):
        """Agent errors are printed and exit with status 1."""
        result = runner.invoke(main, ["run", "hi", "--max-iterations", "1", "--log-level", "CRITICAL"])
        assert result.exit_code == 1
        assert "Error: budget_error: Maximum iterations (1) reached" in result.output

    def test_unknown_provider(self, runner):
        """Providers outside the choices are usage errors."""
        result = runner.invoke(main, ["run", "hi", "--provider", "nope"])
        assert result.exit_code == 2

    def test_help(self, runner):
        """The run command documents its options."""
        result = runner.invoke(main, ["run", "--help"])
        assert result.exit_code == 0
        assert "--max-iterations" in result.output
