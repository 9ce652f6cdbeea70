from __future__ import annotations

import dataclasses
import enum
from pathlib import Path


class InstanceState(enum.Enum):
    CREATED = "created"
    PROVISIONING = "provisioning"
    INITIALIZING = "initializing"
    STARTING = "starting"
    AWAITING_READY = "awaiting_ready"
    READY = "ready"
    STOPPING = "stopping"
    STOPPED = "stopped"


# Allowed forward moves. Every stage before READY may fall through to
# STOPPING when start fails.
TRANSITIONS: dict[InstanceState, frozenset[InstanceState]] = {
    InstanceState.CREATED: frozenset({InstanceState.PROVISIONING}),
    InstanceState.PROVISIONING: frozenset(
        {InstanceState.INITIALIZING, InstanceState.STOPPING}
    ),
    InstanceState.INITIALIZING: frozenset(
        {InstanceState.STARTING, InstanceState.STOPPING}
    ),
    InstanceState.STARTING: frozenset(
        {InstanceState.AWAITING_READY, InstanceState.STOPPING}
    ),
    InstanceState.AWAITING_READY: frozenset(
        {InstanceState.READY, InstanceState.STOPPING}
    ),
    InstanceState.READY: frozenset({InstanceState.STOPPING}),
    InstanceState.STOPPING: frozenset({InstanceState.STOPPED}),
    InstanceState.STOPPED: frozenset(),
}


@dataclasses.dataclass(frozen=True)
class InstanceStatus:
    """
    The status of a test database.
    """

    state: InstanceState
    root: Path | None
    data_dir: Path | None
    sock_dir: Path | None
    database: str
    persistent: bool
    running: bool
    pid: int | None
