from __future__ import annotations

import dataclasses
import logging
import os
import tempfile
from pathlib import Path

from .errors import ProvisioningError
from .identity import ExecutionIdentity

logger = logging.getLogger(__name__)

DIR_MODE = 0o770
TRAVERSE_MODE = 0o711


@dataclasses.dataclass(frozen=True)
class DataDirs:
    root: Path
    data: Path
    sock: Path


def make_root(path: Path | None) -> Path:
    """
    Return the root directory to use, allocating a private temporary one
    when none was given.
    """
    if path is not None:
        # children run with root as their working directory
        return Path(path).absolute()
    try:
        return Path(tempfile.mkdtemp(prefix="pgtest"))
    except OSError as e:
        raise ProvisioningError(f"Failed to create temporary directory: {e}") from e


def provision(root: Path, identity: ExecutionIdentity) -> DataDirs:
    """
    Create the data and socket directories below root.
    When running elevated, hand both over to the unprivileged account and
    make root traversable for it.
    :param root: The directory owning everything of this instance.
    :param identity: Who the server will run as.
    :return: The prepared directories.
    """
    dirs = DataDirs(root=root, data=root / "data", sock=root / "sock")
    logger.debug(f"Preparing directories in {root}")
    try:
        dirs.data.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        dirs.sock.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        if identity.elevated:
            os.chmod(root, TRAVERSE_MODE)
            os.chown(dirs.data, identity.uid, identity.gid)
            os.chown(dirs.sock, identity.uid, identity.gid)
    except OSError as e:
        raise ProvisioningError(f"Failed to prepare {root}: {e}") from e
    return dirs
