"""Unit tests for the db migration commands."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from location_api.cli.app import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("JWT_SECRET_KEY", "test-secret-key-that-is-at-least-32-characters-long")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")


class TestDbCommands:
    """Each command forwards to Alembic with the project config."""

    def test_upgrade_defaults_to_head(self) -> None:
        with patch("alembic.command.upgrade") as upgrade:
            result = runner.invoke(app, ["db", "upgrade"])

        assert result.exit_code == 0
        config, revision = upgrade.call_args.args
        assert revision == "head"
        assert config.config_file_name == "alembic.ini"

    def test_downgrade_one_step(self) -> None:
        with patch("alembic.command.downgrade") as downgrade:
            result = runner.invoke(app, ["db", "downgrade"])

        assert result.exit_code == 0
        assert downgrade.call_args.args[1] == "-1"

    def test_current(self) -> None:
        with patch("alembic.command.current") as current:
            result = runner.invoke(app, ["db", "current"])

        assert result.exit_code == 0
        assert current.call_args.kwargs == {"verbose": True}
