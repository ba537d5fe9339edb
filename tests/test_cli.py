"""
CLI Tests

Commands run against a throwaway SQLite file configured through the
environment, the same way an operator would run them.
"""

import pytest
from typer.testing import CliRunner

from dth_release.cli.main import app
from dth_release.config import get_settings
from dth_release.context import build_context

from conftest import StubDocuments

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point settings at a temp database; unset SMTP so mail is mocked."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.delenv("SMTP_HOST", raising=False)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def seeded(cli_env, dispatcher, make_payload):
    """One DRAFT load in the CLI database."""
    context = build_context(cli_env, documents=StubDocuments(), background=False)
    try:
        return context.loads.create_load(make_payload(), acting_user=dispatcher)
    finally:
        context.close()


class TestCommands:
    def test_init_db(self, cli_env):
        result = runner.invoke(app, ["init-db"])

        assert result.exit_code == 0, result.output
        assert "Database ready" in result.output

    def test_empty_listing(self, cli_env):
        result = runner.invoke(app, ["loads"])

        assert result.exit_code == 0, result.output
        assert "No loads found" in result.output

    def test_show_and_validate(self, seeded):
        shown = runner.invoke(app, ["show", str(seeded.id)])
        assert shown.exit_code == 0, shown.output
        assert seeded.pin in shown.output

        validated = runner.invoke(app, ["validate", str(seeded.id)])
        assert validated.exit_code == 0, validated.output
        assert f"Load {seeded.load_id} validated" in validated.output

        listed = runner.invoke(app, ["loads", "--status", "VALID"])
        assert seeded.load_id in listed.output

    def test_void(self, seeded):
        result = runner.invoke(app, ["void", str(seeded.id)])

        assert result.exit_code == 0, result.output
        assert "voided" in result.output

    def test_unknown_load_exits_nonzero(self, cli_env):
        result = runner.invoke(app, ["show", "999"])

        assert result.exit_code == 1
        assert "Load not found" in result.output

    def test_logs_and_stats(self, seeded):
        logs = runner.invoke(app, ["logs"])
        assert logs.exit_code == 0, logs.output
        assert "No releases recorded yet" in logs.output

        stats = runner.invoke(app, ["stats"])
        assert stats.exit_code == 0, stats.output
        assert "Total" in stats.output
