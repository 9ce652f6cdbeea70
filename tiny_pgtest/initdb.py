from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .directories import DataDirs
from .errors import InitializationError
from .identity import ExecutionIdentity

logger = logging.getLogger(__name__)

MARKER_FILE = "postgresql.conf"


def is_initialized(data_dir: Path) -> bool:
    return (data_dir / MARKER_FILE).exists()


def initialize(
    dirs: DataDirs,
    bin_dir: Path,
    identity: ExecutionIdentity,
    env: dict[str, str] | None = None,
) -> bool:
    """
    Initialize the database cluster, unless that already happened.
    fsync is disabled, startup speed matters more than durability here.
    :return: Whether initdb was run.
    """
    if is_initialized(dirs.data):
        logger.debug(f"Database at {dirs.data} already initialized")
        return False

    logger.debug(f"Initializing database at {dirs.data}")
    command = identity.wrap(bin_dir / "initdb", "-D", str(dirs.data), "--no-sync")
    try:
        result = command.run(
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            universal_newlines=True,
            cwd=str(dirs.root),
            env=env,
        )
    except OSError as e:
        raise InitializationError(f"Failed to initialize DB: {e}") from e

    if result.returncode != 0:
        logger.error(result.stdout)
        raise InitializationError(
            f"Failed to initialize DB: initdb exited with code {result.returncode}",
            stdout=result.stdout,
        )
    logger.debug(result.stdout)
    return True
