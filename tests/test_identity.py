"""Tests for detecting root and dropping privileges."""

from __future__ import annotations

import pwd
from unittest.mock import patch

import pytest

from tiny_pgtest.errors import PrivilegeResolutionError
from tiny_pgtest.identity import ExecutionIdentity, resolve_identity


def _account(
    name: str = "postgres", uid: int = 123, gid: int = 456
) -> pwd.struct_passwd:
    return pwd.struct_passwd(
        (name, "x", uid, gid, "PostgreSQL", "/var/lib/postgresql", "/bin/sh")
    )


def test_unprivileged_user_comes_from_effective_uid(monkeypatch):
    monkeypatch.setenv("USER", "someone-else")
    monkeypatch.setenv("LOGNAME", "someone-else")
    with patch("os.geteuid", return_value=1000), patch(
        "pwd.getpwuid", return_value=_account("alice", uid=1000)
    ) as getpwuid:
        identity = resolve_identity()

    getpwuid.assert_called_once_with(1000)

    assert identity.elevated is False
    assert identity.db_user == "alice"
    assert identity.uid is None


def test_root_drops_to_postgres():
    with patch("os.geteuid", return_value=0), patch(
        "pwd.getpwnam", return_value=_account()
    ) as getpwnam:
        identity = resolve_identity()

    getpwnam.assert_called_once_with("postgres")
    assert identity.elevated is True
    assert identity.db_user == "postgres"
    assert (identity.uid, identity.gid) == (123, 456)


def test_root_without_postgres_account_fails():
    with patch("os.geteuid", return_value=0), patch(
        "pwd.getpwnam", side_effect=KeyError("postgres")
    ):
        with pytest.raises(PrivilegeResolutionError, match="postgres user"):
            resolve_identity()


def test_wrap_unprivileged_returns_command_unchanged():
    identity = ExecutionIdentity(db_user="alice")

    command = identity.wrap("/usr/bin/postgres", "-D", "/data")

    assert command.argv == ["/usr/bin/postgres", "-D", "/data"]
    assert command.popen_kwargs() == {}


def test_wrap_elevated_sets_user_and_keeps_empty_arguments():
    identity = ExecutionIdentity(db_user="postgres", elevated=True, uid=123, gid=456)

    command = identity.wrap("/usr/bin/postgres", "-h", "", "-F")

    assert command.argv == ["/usr/bin/postgres", "-h", "", "-F"]
    assert command.popen_kwargs() == {"user": 123, "group": 456, "extra_groups": []}


def test_prepared_command_run_passes_user():
    identity = ExecutionIdentity(db_user="postgres", elevated=True, uid=123, gid=456)
    command = identity.wrap("initdb", "-D", "/data")

    with patch("subprocess.run") as run:
        command.run(cwd="/tmp")

    run.assert_called_once_with(
        ["initdb", "-D", "/data"], user=123, group=456, extra_groups=[], cwd="/tmp"
    )
