"""Server command for the shopsync CLI.

Commands:
- server: Run the shopsync reference server
"""

from __future__ import annotations

import os
from pathlib import Path

import click


@click.command()
@click.option("--host", default="0.0.0.0", show_default=True, help="Bind address.")
@click.option("--port", "-p", type=int, default=8000, show_default=True, help="Bind port.")
@click.option(
    "--db-path",
    type=click.Path(),
    default=None,
    help="Path to database file (default: SHOPSYNC_DB_PATH or ./shopsync-server.db).",
)
@click.option(
    "--log-path",
    type=click.Path(),
    default=None,
    help="Also write logs to this file (default: SHOPSYNC_LOG_PATH).",
)
def server(host: str, port: int, db_path: str | None, log_path: str | None) -> None:
    """Run the shopsync server."""
    import uvicorn

    from shopsync.server.app import create_app, setup_logging
    from shopsync.server.database import Database

    db_file = Path(db_path or os.environ.get("SHOPSYNC_DB_PATH", "shopsync-server.db"))
    log_file = log_path or os.environ.get("SHOPSYNC_LOG_PATH")
    setup_logging(Path(log_file) if log_file else None)

    click.echo(f"Serving {db_file} on http://{host}:{port}/")
    uvicorn.run(create_app(Database(db_file)), host=host, port=port)
