"""Tests for the command line interface."""
import json

import pytest
from typer.testing import CliRunner

from tweetmood.app import cli_app
from tweetmood.config import reload_settings
from tweetmood.storage.sqlite import SQLiteStorage

from conftest import RAW_TABLE

runner = CliRunner()


@pytest.fixture
def cli_env(temp_db, monkeypatch, sample_raw_records):
    """Point the CLI at a seeded temporary database with local scoring."""
    monkeypatch.setenv("SQLITE_PATH", str(temp_db))
    monkeypatch.setenv("CLASSIFIER_BACKEND", "local")
    monkeypatch.setenv("CHUNK_DELAY", "0")
    monkeypatch.setenv("BATCH_DELAY", "0")
    monkeypatch.setenv("INGESTION_WEBHOOK_URL", "")
    reload_settings()

    storage = SQLiteStorage(path=temp_db)
    storage.init()
    storage.insert_many(RAW_TABLE, [r.to_row() for r in sample_raw_records])
    yield temp_db
    monkeypatch.undo()
    reload_settings()


class TestCli:
    def test_process_and_stats(self, cli_env):
        """Test that process stores results and stats reflect them."""
        result = runner.invoke(cli_app, ["process"])
        assert result.exit_code == 0, result.output
        assert "[100%] completed" in result.output

        result = runner.invoke(cli_app, ["stats"])
        assert result.exit_code == 0
        assert "total=5 processed=2 remaining=3" in result.output

    def test_export_json(self, cli_env, tmp_path):
        runner.invoke(cli_app, ["process"])
        out = tmp_path / "records.json"

        result = runner.invoke(cli_app, ["export", str(out), "--format", "json"])

        assert result.exit_code == 0
        assert {row["original_id"] for row in json.loads(out.read_text())} == {1, 2}

    def test_export_rejects_unknown_format(self, cli_env, tmp_path):
        result = runner.invoke(cli_app, ["export", str(tmp_path / "x"), "--format", "xml"])
        assert result.exit_code == 2

    def test_trigger_without_webhook_fails(self, cli_env):
        result = runner.invoke(cli_app, ["trigger", "--no-poll"])
        assert result.exit_code == 1

    def test_clear_with_confirmation_flag(self, cli_env):
        assert runner.invoke(cli_app, ["clear", "--yes"]).exit_code == 0
        result = runner.invoke(cli_app, ["stats"])
        assert "total=0" in result.output

    def test_validate(self, cli_env):
        assert runner.invoke(cli_app, ["validate"]).exit_code == 0

    def test_invalid_configuration_exits(self, cli_env, monkeypatch):
        """Test that configuration errors exit with code 1."""
        import tweetmood.config as config

        monkeypatch.setenv("BATCH_SIZE", "0")
        monkeypatch.setattr(config, "_settings", None)
        result = runner.invoke(cli_app, ["stats"])
        assert result.exit_code == 1
