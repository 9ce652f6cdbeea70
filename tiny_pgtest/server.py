from __future__ import annotations

import logging
import signal
import subprocess
import threading
from collections import deque
from pathlib import Path
from typing import IO, Sequence

from .directories import DataDirs
from .errors import LaunchError, TeardownError
from .identity import ExecutionIdentity

logger = logging.getLogger(__name__)

DEFAULT_PORT = 5432
MAX_OUTPUT_LINES = 1000


def build_server_args(dirs: DataDirs, extra_args: Sequence[str] = ()) -> list[str]:
    """
    The postgres arguments: unix socket only, no fsync, then whatever the
    caller asked for. Later flags win, nothing is deduplicated.
    """
    return [
        "-D",
        str(dirs.data),
        "-k",
        str(dirs.sock),
        "-h",
        "",
        "-F",
        *extra_args,
    ]


def socket_port(extra_args: Sequence[str] = ()) -> int:
    """
    The port the unix socket file is named after. The last setting wins,
    like it does for postgres itself.
    """
    port = DEFAULT_PORT
    args = list(extra_args)
    for i, arg in enumerate(args):
        value = None
        if arg in ("-p", "-c") and i + 1 < len(args):
            value = args[i + 1]
            if arg == "-c":
                value = value[len("port=") :] if value.startswith("port=") else None
        elif arg.startswith("--port="):
            value = arg[len("--port=") :]
        if value is not None and value.strip().isdigit():
            port = int(value)
    return port


def socket_path(sock_dir: Path, port: int = DEFAULT_PORT) -> Path:
    return sock_dir / f".s.PGSQL.{port}"


class _OutputDrain:
    """
    Reads one of the server's pipes on a daemon thread, so a chatty server
    never blocks on a full pipe. Only the last lines are kept.
    """

    def __init__(
        self, stream: IO[str], name: str, max_lines: int = MAX_OUTPUT_LINES
    ):
        self.stream = stream
        self.lines: deque[str] = deque(maxlen=max_lines)
        self.thread = threading.Thread(target=self._run, name=name, daemon=True)
        self.thread.start()

    def _run(self) -> None:
        with self.stream:
            for line in self.stream:
                self.lines.append(line)

    def text(self) -> str:
        return "".join(list(self.lines))

    def join(self) -> str:
        self.thread.join()
        return self.text()


class ServerProcess:
    """
    The one postgres child process of a test database.
    stdout and stderr are drained in the background and kept around, they
    are the only diagnostics available when startup goes wrong.
    """

    def __init__(self, process: subprocess.Popen, dirs: DataDirs, port: int):
        self.process = process
        self.dirs = dirs
        self.port = port
        name = f"postgres-{process.pid}"
        self.stdout = _OutputDrain(process.stdout, f"{name}-stdout")
        self.stderr = _OutputDrain(process.stderr, f"{name}-stderr")

    @classmethod
    def launch(
        cls,
        dirs: DataDirs,
        bin_dir: Path,
        identity: ExecutionIdentity,
        extra_args: Sequence[str] = (),
        env: dict[str, str] | None = None,
    ) -> ServerProcess:
        """
        Start postgres. Returning only means the exec succeeded, the server
        is most likely not accepting connections yet.
        """
        command = identity.wrap(
            bin_dir / "postgres", *build_server_args(dirs, extra_args)
        )
        logger.debug(f"Starting database at {dirs.data}: {command.argv}")
        try:
            process = command.popen(
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                universal_newlines=True,
                cwd=str(dirs.root),
                env=env,
            )
        except OSError as e:
            raise LaunchError(f"Failed to start PostgreSQL: {e}") from e
        return cls(process, dirs, socket_port(extra_args))

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def socket(self) -> Path:
        return socket_path(self.dirs.sock, self.port)

    def is_running(self) -> bool:
        return self.process.poll() is None

    def interrupt(self) -> None:
        # SIGINT is a fast shutdown for postgres
        self.process.send_signal(signal.SIGINT)

    def output(self) -> tuple[str, str]:
        """
        What the server wrote to stdout and stderr so far.
        """
        return self.stdout.text(), self.stderr.text()

    def _wait(self) -> tuple[str, str]:
        self.interrupt()
        self.process.wait()
        return self.stdout.join(), self.stderr.join()

    def stop(self) -> None:
        """
        Interrupt the server and wait for it to exit. There is no timeout,
        a server ignoring the signal blocks here.
        """
        logger.debug(f"Stopping database at {self.dirs.data}")
        try:
            stdout, stderr = self._wait()
        except OSError as e:
            raise TeardownError(f"Failed to stop PostgreSQL: {e}") from e
        if self.process.returncode != 0:
            raise TeardownError(
                f"PostgreSQL exited with code {self.process.returncode}",
                stdout=stdout,
                stderr=stderr,
            )

    def abort(self) -> tuple[str, str]:
        """
        Best-effort shutdown after a failed start.
        :return: The last lines the server wrote to stdout and stderr.
        """
        try:
            stdout, stderr = self._wait()
        except OSError as e:
            logger.warning(f"Failed to abort PostgreSQL (pid {self.pid}): {e}")
            return self.output()
        if stderr:
            logger.error(stderr)
        return stdout, stderr
