"""
Test the operator CLI schema commands.
"""

from sqlalchemy import create_engine, inspect
from typer.testing import CliRunner

from campaign_rewards.cli import app
from campaign_rewards.core.config import settings

runner = CliRunner()


def _tables(path):
    engine = create_engine(f"sqlite:///{path}")
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_reset_drops_tables_after_confirmation(tmp_path, monkeypatch):
    path = tmp_path / "cli.db"
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{path}")

    assert runner.invoke(app, ["init-db"]).exit_code == 0
    assert {"campaigns", "submissions"} <= _tables(path)

    declined = runner.invoke(app, ["reset"], input="n\n")
    assert declined.exit_code == 0
    assert "Operation cancelled" in declined.output
    assert "submissions" in _tables(path)

    result = runner.invoke(app, ["reset", "--yes"])
    assert result.exit_code == 0
    assert _tables(path) == set()
