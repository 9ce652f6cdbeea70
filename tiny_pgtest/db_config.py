from __future__ import annotations

import dataclasses
from pathlib import Path


@dataclasses.dataclass(frozen=True)
class PgConfig:
    """
    The configuration of a test database.
    Builder methods return a modified copy, the value itself never changes.
    """

    bin_dir: Path | None = None
    data_dir: Path | None = None
    persistent: bool = False
    extra_args: tuple[str, ...] = ()
    database: str = "test"
    bootstrap_attempts: int = 1000
    bootstrap_interval: float = 0.01

    def as_persistent(self) -> PgConfig:
        """
        Keep the data directory around after stop, so it can be reused.
        """
        return dataclasses.replace(self, persistent=True)

    def use_binaries_in(self, path: str | Path) -> PgConfig:
        """
        Look for initdb and postgres in the given directory.
        """
        return dataclasses.replace(self, bin_dir=Path(path))

    def with_data_dir(self, path: str | Path) -> PgConfig:
        return dataclasses.replace(self, data_dir=Path(path))

    def with_additional_args(self, *args: str) -> PgConfig:
        """
        Arguments appended verbatim to the postgres command line.
        Replaces any previously configured arguments.
        """
        return dataclasses.replace(self, extra_args=tuple(args))

    def with_database(self, name: str) -> PgConfig:
        return dataclasses.replace(self, database=name)

    def with_bootstrap(self, attempts: int, interval: float) -> PgConfig:
        """
        Set the retry budget used while waiting for the server to come up.
        :param attempts: How many times to try connecting.
        :param interval: Seconds to sleep between attempts.
        """
        return dataclasses.replace(
            self, bootstrap_attempts=attempts, bootstrap_interval=interval
        )
