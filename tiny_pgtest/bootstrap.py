from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import pg8000.dbapi
from pg8000.native import identifier
from retry.api import retry_call

from .errors import BootstrapError, LaunchError

logger = logging.getLogger(__name__)

ADMIN_DATABASE = "postgres"
RETRY_ERRORS = (pg8000.Error, OSError)


def connect(socket: Path, user: str, database: str) -> pg8000.dbapi.Connection:
    connection = pg8000.dbapi.connect(
        user=user, unix_sock=str(socket), database=database
    )
    connection.autocommit = True
    return connection


class _Bootstrapper:
    """
    One bootstrap run: holds the admin connection across attempts.
    """

    def __init__(
        self,
        socket: Path,
        user: str,
        database: str,
        is_running: Callable[[], bool] | None = None,
    ):
        self.socket = socket
        self.user = user
        self.database = database
        self.is_running = is_running
        self.admin: pg8000.dbapi.Connection | None = None
        self.attempts = 0

    def attempt(self) -> None:
        self.attempts += 1
        if self.is_running is not None and not self.is_running():
            raise LaunchError("PostgreSQL exited before accepting connections")
        try:
            if self.admin is None:
                self.admin = connect(self.socket, self.user, ADMIN_DATABASE)
            self.ensure_database()
        except RETRY_ERRORS as e:
            logger.debug(f"Bootstrap attempt {self.attempts} failed: {e}")
            self.close()
            raise

    def ensure_database(self) -> None:
        cursor = self.admin.cursor()
        try:
            # Check first, duplicate database errors are not relied upon.
            cursor.execute(
                "SELECT 1 FROM pg_database WHERE datname = %s", (self.database,)
            )
            if cursor.fetchone() is not None:
                return
            logger.debug(f"Creating database {self.database}")
            cursor.execute(f"CREATE DATABASE {identifier(self.database)}")
        finally:
            cursor.close()

    def close(self) -> None:
        admin, self.admin = self.admin, None
        if admin is None:
            return
        try:
            admin.close()
        except RETRY_ERRORS as e:
            logger.debug(f"Ignoring error closing admin connection: {e}")


def bootstrap_database(
    socket: Path,
    user: str,
    database: str,
    attempts: int = 1000,
    interval: float = 0.01,
    is_running: Callable[[], bool] | None = None,
) -> pg8000.dbapi.Connection:
    """
    Wait for a freshly started server and make sure the test database exists.

    Every attempt that fails (usually because the server is not accepting
    connections yet) is retried after ``interval`` seconds, at most
    ``attempts`` times in total.

    :param socket: Path of the server's unix socket file.
    :param user: Role to connect as.
    :param database: The test database to check for or create.
    :param is_running: Fail right away once this returns False.
    :return: A connection to the test database, in autocommit mode.
    """
    bootstrapper = _Bootstrapper(socket, user, database, is_running)
    logger.debug(f"Waiting for PostgreSQL on {socket}")
    try:
        retry_call(
            bootstrapper.attempt,
            exceptions=RETRY_ERRORS,
            tries=max(attempts, 1),
            delay=interval,
            logger=None,
        )
    except RETRY_ERRORS as e:
        raise BootstrapError(
            f"Failed to initialize DB after {bootstrapper.attempts} attempts: {e}"
        ) from e
    finally:
        bootstrapper.close()

    try:
        return connect(socket, user, database)
    except RETRY_ERRORS as e:
        raise BootstrapError(f"Failed to connect to {database} DB: {e}") from e
