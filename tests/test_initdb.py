"""Tests for the one-time cluster initialization."""

from __future__ import annotations

import stat
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from tiny_pgtest.directories import make_root, provision
from tiny_pgtest.errors import InitializationError
from tiny_pgtest.identity import ExecutionIdentity
from tiny_pgtest.initdb import initialize, is_initialized

USER = ExecutionIdentity(db_user="alice")
BIN_DIR = Path("/opt/pg/bin")


def _completed(returncode: int, output: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=output)


def test_already_initialized_is_a_no_op(tmp_path: Path):
    dirs = provision(tmp_path, USER)
    (dirs.data / "postgresql.conf").write_text("# existing\n")

    with patch("subprocess.run") as run:
        assert initialize(dirs, BIN_DIR, USER) is False

    run.assert_not_called()
    assert is_initialized(dirs.data)


def test_runs_initdb_without_sync(tmp_path: Path):
    dirs = provision(tmp_path, USER)

    with patch("subprocess.run", return_value=_completed(0, "Success.")) as run:
        assert initialize(dirs, BIN_DIR, USER) is True

    argv = run.call_args.args[0]
    assert argv == [str(BIN_DIR / "initdb"), "-D", str(dirs.data), "--no-sync"]
    assert run.call_args.kwargs["stderr"] == subprocess.STDOUT
    assert run.call_args.kwargs["cwd"] == str(tmp_path)


def test_runs_initdb_as_dropped_user(tmp_path: Path):
    identity = ExecutionIdentity(db_user="postgres", elevated=True, uid=123, gid=456)
    with patch("os.chown"), patch("os.chmod"):
        dirs = provision(tmp_path, identity)

    with patch("subprocess.run", return_value=_completed(0)) as run:
        initialize(dirs, BIN_DIR, identity)

    assert run.call_args.kwargs["user"] == 123
    assert run.call_args.kwargs["group"] == 456


def test_nonzero_exit_carries_output(tmp_path: Path):
    dirs = provision(tmp_path, USER)

    with patch(
        "subprocess.run",
        return_value=_completed(1, "initdb: error: directory is not empty"),
    ):
        with pytest.raises(InitializationError) as excinfo:
            initialize(dirs, BIN_DIR, USER)

    assert "code 1" in excinfo.value.message
    assert excinfo.value.stdout == "initdb: error: directory is not empty"
    assert "directory is not empty" in str(excinfo.value)


def test_missing_binary(tmp_path: Path):
    dirs = provision(tmp_path / "root", USER)

    with pytest.raises(InitializationError, match="Failed to initialize DB"):
        initialize(dirs, tmp_path / "nowhere", USER)


FAKE_INITDB = """#!/bin/sh
# writes the marker below the -D argument, relative to the working directory
while [ $# -gt 0 ]; do
    if [ "$1" = "-D" ]; then data="$2"; fi
    shift
done
echo "# initialized" > "$data/postgresql.conf"
"""


def test_relative_root_is_initialized_once(tmp_path: Path, monkeypatch):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    initdb = bin_dir / "initdb"
    initdb.write_text(FAKE_INITDB)
    initdb.chmod(initdb.stat().st_mode | stat.S_IEXEC)
    monkeypatch.chdir(tmp_path)
    dirs = provision(make_root(Path("pgdata")), USER)

    assert initialize(dirs, bin_dir, USER) is True
    assert initialize(dirs, bin_dir, USER) is False

    assert [p.relative_to(tmp_path) for p in tmp_path.rglob("postgresql.conf")] == [
        Path("pgdata/data/postgresql.conf")
    ]
