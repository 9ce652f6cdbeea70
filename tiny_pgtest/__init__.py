from __future__ import annotations

import contextlib
import logging
import shutil
from pathlib import Path
from types import TracebackType
from typing import Type

import pg8000.dbapi

from .bootstrap import bootstrap_database
from .db_config import PgConfig
from .db_status import TRANSITIONS, InstanceState, InstanceStatus
from .directories import DataDirs, make_root, provision
from .env import get_pg_environ, get_postgres_bin_dir
from .errors import (
    BootstrapError,
    InitializationError,
    LaunchError,
    LifecycleError,
    PgTestError,
    PrivilegeResolutionError,
    ProvisioningError,
    TeardownError,
)
from .identity import ExecutionIdentity, resolve_identity
from .initdb import initialize
from .server import ServerProcess

__all__ = [
    "BootstrapError",
    "InitializationError",
    "InstanceState",
    "InstanceStatus",
    "LaunchError",
    "LifecycleError",
    "PgConfig",
    "PgTest",
    "PgTestError",
    "PrivilegeResolutionError",
    "ProvisioningError",
    "TeardownError",
    "start",
    "start_persistent",
]

logger = logging.getLogger(__name__)


class PgTest:
    """
    A throwaway PostgreSQL server with a single database, for unit tests.

    The server listens on a unix socket only and runs with fsync disabled.
    Unless the configuration is persistent, everything is removed again on
    stop. Use ``connection`` to talk to the test database.
    """

    def __init__(self, config: PgConfig | None = None):
        self.config = config or PgConfig()
        self.state = InstanceState.CREATED
        self.dirs: DataDirs | None = None
        self.identity: ExecutionIdentity | None = None
        self.server: ServerProcess | None = None
        self.connection: pg8000.dbapi.Connection | None = None

    @property
    def root(self) -> Path | None:
        return self.dirs.root if self.dirs else None

    @property
    def data_dir(self) -> Path | None:
        return self.dirs.data if self.dirs else None

    @property
    def sock_dir(self) -> Path | None:
        return self.dirs.sock if self.dirs else None

    @property
    def dsn(self) -> str:
        """
        A libpq style connection string for the test database.
        """
        if self.dirs is None or self.identity is None:
            raise LifecycleError(f"No DSN for a database in state {self.state.value}")
        dsn = f"host={self.dirs.sock} dbname={self.config.database}"
        if self.server is not None and self.server.port != 5432:
            dsn += f" port={self.server.port}"
        return f"{dsn} user={self.identity.db_user}"

    def _transition(self, state: InstanceState) -> None:
        if state not in TRANSITIONS[self.state]:
            raise LifecycleError(
                f"Cannot move from {self.state.value} to {state.value}"
            )
        logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    def start(self) -> PgTest:
        """
        Prepare directories, initialize if needed, start the server and wait
        until the test database is usable.
        On failure the server is shut down again, the directory is kept.
        :return: self, ready to use.
        """
        self._transition(InstanceState.PROVISIONING)
        try:
            self._start()
        except BaseException as e:
            self._abort(e)
            raise
        return self

    def _start(self) -> None:
        config = self.config
        self.identity = resolve_identity()
        self.dirs = provision(make_root(config.data_dir), self.identity)

        self._transition(InstanceState.INITIALIZING)
        bin_dir = get_postgres_bin_dir(config.bin_dir)
        env = get_pg_environ(bin_dir)
        initialize(self.dirs, bin_dir, self.identity, env=env)

        self._transition(InstanceState.STARTING)
        self.server = ServerProcess.launch(
            self.dirs, bin_dir, self.identity, config.extra_args, env=env
        )

        self._transition(InstanceState.AWAITING_READY)
        self.connection = bootstrap_database(
            self.server.socket,
            self.identity.db_user,
            config.database,
            attempts=config.bootstrap_attempts,
            interval=config.bootstrap_interval,
            is_running=self.server.is_running,
        )
        self._transition(InstanceState.READY)
        logger.info(f"Database {config.database} ready in {self.dirs.root}")

    def _abort(self, error: BaseException) -> None:
        self.state = InstanceState.STOPPING
        try:
            if self.server is not None:
                stdout, stderr = self.server.abort()
                if isinstance(error, PgTestError):
                    error.attach_output(stdout, stderr)
        finally:
            self.server = None
            self.state = InstanceState.STOPPED

    def stop(self) -> None:
        """
        Stop the server and, unless persistent, remove all storage files.
        Does nothing on a handle that is not running.
        """
        if self.state in (InstanceState.CREATED, InstanceState.STOPPED):
            return
        self._transition(InstanceState.STOPPING)
        try:
            # Released in reverse: disconnect, stop the server, remove files.
            with contextlib.ExitStack() as release:
                if not self.config.persistent:
                    release.callback(self._cleanup)
                release.callback(self.server.stop)
                release.callback(self._disconnect)
        finally:
            self.connection = None
            self.server = None
            self.state = InstanceState.STOPPED

    def _disconnect(self) -> None:
        if self.connection is None:
            return
        try:
            self.connection.close()
        except (pg8000.Error, OSError) as e:
            raise TeardownError(f"Failed to disconnect: {e}") from e

    def _cleanup(self) -> None:
        """
        Remove the root directory. Best-effort, leftovers are not an error.
        """
        logger.debug(f"Cleaning up postgres directory {self.dirs.root}")
        shutil.rmtree(self.dirs.root, ignore_errors=True)

    def status(self) -> InstanceStatus:
        server = self.server
        return InstanceStatus(
            state=self.state,
            root=self.root,
            data_dir=self.data_dir,
            sock_dir=self.sock_dir,
            database=self.config.database,
            persistent=self.config.persistent,
            running=server is not None and server.is_running(),
            pid=server.pid if server is not None else None,
        )

    def __enter__(self) -> PgTest:
        # start() and start_persistent() hand out handles that are running
        if self.state is not InstanceState.READY:
            self.start()
        return self

    def __exit__(
        self,
        exc_type: Type[Exception] | None,
        exc_val: Exception | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.stop()


def start(config: PgConfig | None = None) -> PgTest:
    """
    Start a new PostgreSQL database, on temporary storage unless the
    configuration says otherwise.
    """
    return PgTest(config).start()


def start_persistent(folder: str | Path) -> PgTest:
    """
    Start a PostgreSQL database in folder, initializing it if needed.
    Data is kept on stop, so the folder can be used again later.
    """
    return start(PgConfig(data_dir=Path(folder), persistent=True))
