"""Tests for the creator-feed CLI against the memory backend."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from src.cli import main
from src.config.settings import get_settings


@pytest.fixture
def runner(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("USE_MOCK_CONNECTORS", "true")
    get_settings.cache_clear()
    with patch("src.cli.setup_logging"):
        yield CliRunner()
    get_settings.cache_clear()


class TestRefresh:
    def test_refresh_with_mock_connectors(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["refresh", "--mock"])

        assert result.exit_code == 0, result.output
        assert "Refresh status: refreshed" in result.output
        assert "reddit: 5 new" in result.output
        assert "twitter: 5 new" in result.output
        assert "Feed now holds 10 items" in result.output

    def test_failed_refresh_exits_nonzero(self, runner: CliRunner) -> None:
        with patch(
            "src.refresh.coordinator.RefreshCoordinator._evaluate_unguarded",
            side_effect=RuntimeError("store down"),
        ):
            result = runner.invoke(main, ["refresh", "--mock"])

        assert result.exit_code == 1
        assert "Refresh status: failed" in result.output


class TestUsers:
    def test_add_admin(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["add-user", "u1", "--username", "Sam", "--admin"])

        assert result.exit_code == 0, result.output
        assert "User u1 (Sam): role=admin, credits=0" in result.output

    def test_grant_to_unknown_user_fails(self, runner: CliRunner) -> None:
        # Each invocation starts a fresh memory backend
        result = runner.invoke(main, ["grant", "u1", "50", "Contest winner"])

        assert result.exit_code == 1
        assert "Grant failed: User not found: u1" in result.output

    def test_grant_rejects_non_positive_amount(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["grant", "u1", "0", "Contest winner"])

        assert result.exit_code == 1
        assert "amount must be positive" in result.output


class TestInitDb:
    def test_memory_backend_needs_no_schema(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["init-db"])

        assert result.exit_code == 0, result.output
        assert "nothing to initialize" in result.output
