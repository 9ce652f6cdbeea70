from __future__ import annotations

import dataclasses
import logging
import os
import pwd
import subprocess
from typing import Any

from .errors import PrivilegeResolutionError

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT = "postgres"


@dataclasses.dataclass(frozen=True)
class PreparedCommand:
    """
    A command line together with the account it has to run as.
    """

    argv: list[str]
    uid: int | None = None
    gid: int | None = None

    def popen_kwargs(self) -> dict[str, Any]:
        if self.uid is None:
            return {}
        return {"user": self.uid, "group": self.gid, "extra_groups": []}

    def run(self, **kwargs) -> subprocess.CompletedProcess:
        return subprocess.run(self.argv, **self.popen_kwargs(), **kwargs)

    def popen(self, **kwargs) -> subprocess.Popen:
        return subprocess.Popen(self.argv, **self.popen_kwargs(), **kwargs)


@dataclasses.dataclass(frozen=True)
class ExecutionIdentity:
    """
    Who the postgres processes run as.
    Resolved once at the start of provisioning and passed around from there.
    """

    db_user: str
    elevated: bool = False
    uid: int | None = None
    gid: int | None = None

    def wrap(self, executable: str | os.PathLike, *args: str) -> PreparedCommand:
        """
        Prepare a command to run as the unprivileged account when elevated.
        Arguments are passed through as-is, empty strings included.
        """
        argv = [str(executable), *args]
        if not self.elevated:
            return PreparedCommand(argv)
        return PreparedCommand(argv, uid=self.uid, gid=self.gid)


def resolve_identity() -> ExecutionIdentity:
    """
    Figure out whether privileges have to be dropped.
    postgres refuses to run as root, so running as root requires the
    service account to exist.
    """
    if os.geteuid() != 0:
        # initdb names the superuser after the effective uid, not $USER
        return ExecutionIdentity(db_user=pwd.getpwuid(os.geteuid()).pw_name)

    try:
        account = pwd.getpwnam(SERVICE_ACCOUNT)
    except KeyError as e:
        raise PrivilegeResolutionError(
            f"Could not find {SERVICE_ACCOUNT} user, "
            f"which is required when running as root"
        ) from e
    logger.debug(
        f"Running as root, dropping to {SERVICE_ACCOUNT} "
        f"(uid={account.pw_uid}, gid={account.pw_gid})"
    )
    return ExecutionIdentity(
        db_user=SERVICE_ACCOUNT,
        elevated=True,
        uid=account.pw_uid,
        gid=account.pw_gid,
    )
