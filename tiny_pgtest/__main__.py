import logging
from pathlib import Path
from typing import List, Optional

import typer

from tiny_pgtest import PgTest
from tiny_pgtest.db_config import PgConfig

app = typer.Typer()

formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
handler = logging.StreamHandler()
handler.setFormatter(formatter)
logger = logging.getLogger("tiny_pgtest")
logger.addHandler(handler)
logger.setLevel(logging.DEBUG)


def main():
    app()


@app.callback()
def callback():
    """
    Throwaway PostgreSQL servers for tests.
    """


@app.command()
def start(
    data_dir: Optional[Path] = typer.Option(None, help="Directory to keep data in"),
    bin_dir: Optional[Path] = typer.Option(None, help="Where initdb and postgres live"),
    persistent: bool = typer.Option(False, help="Keep the data after exit"),
    database: str = "test",
    extra_args: Optional[List[str]] = typer.Argument(None, help="Passed to postgres"),
):
    config = PgConfig(
        bin_dir=bin_dir,
        data_dir=data_dir,
        persistent=persistent,
        extra_args=tuple(extra_args or ()),
        database=database,
    )
    with PgTest(config) as pg:
        typer.echo(pg.status())
        typer.echo(pg.dsn)
        typer.prompt("Press q to exit")


if __name__ == "__main__":
    main()
