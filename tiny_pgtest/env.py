from __future__ import annotations

import logging
import os
import re
import shutil
from pathlib import Path

from .errors import LaunchError

logger = logging.getLogger(__name__)

# Ubuntu and Debian keep initdb out of $PATH.
SEARCH_ROOTS = (Path("/usr/lib/postgresql"),)


def _version_key(path: Path) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", path.name))


def get_postgres_bin_dir(override: Path | None = None) -> Path:
    """
    Get the path to the postgres binaries.

    :param override: Use this directory instead of searching.
    :return: The directory holding initdb and postgres.
    """
    if override is not None:
        return Path(override)

    initdb = shutil.which("initdb")
    if initdb:
        return Path(initdb).parent

    for root in SEARCH_ROOTS:
        if not root.is_dir():
            continue
        versions = sorted(
            (entry for entry in root.iterdir() if entry.is_dir()),
            key=_version_key,
            reverse=True,
        )
        for version in versions:
            bin_dir = version / "bin"
            if (bin_dir / "initdb").exists():
                logger.debug(f"Found postgres binaries in {bin_dir}")
                return bin_dir

    raise LaunchError("Did not find PostgreSQL executables installed")


def get_pg_environ(bin_dir: Path) -> dict[str, str]:
    path = os.environ.get("PATH", "")
    environ = {
        **os.environ,
        "PATH": f"{bin_dir}:{path}" if path else str(bin_dir),
    }
    return environ
