"""Tests for the command line entry point."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from tiny_pgtest.__main__ import app

runner = CliRunner()


def test_start_prints_status_and_waits():
    pg = MagicMock()
    pg.dsn = "host=/tmp/pgtest/sock dbname=test user=alice"
    pg.status.return_value = "STATUS"

    with patch("tiny_pgtest.__main__.PgTest") as cls:
        cls.return_value.__enter__.return_value = pg
        result = runner.invoke(
            app,
            ["start", "--persistent", "--data-dir", "/tmp/x", "--", "-c", "wal_level=logical"],
            input="q\n",
        )

    assert result.exit_code == 0, result.output
    assert "STATUS" in result.output
    assert "dbname=test" in result.output
    config = cls.call_args.args[0]
    assert config.persistent is True
    assert config.data_dir == Path("/tmp/x")
    assert config.extra_args == ("-c", "wal_level=logical")
    cls.return_value.__exit__.assert_called_once()
