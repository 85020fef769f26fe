"""repocontext serve — run the local search API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
import uvicorn

from repocontext.cli.common import DbOption, console
from repocontext.cli.errors import err_configuration
from repocontext.config import load_config
from repocontext.errors import ConfigurationError
from repocontext.server.app import create_app
from repocontext.services import Services


def serve_cmd(
    host: Annotated[
        str | None, typer.Option("--host", help="Bind address (default: from config, loopback).")
    ] = None,
    port: Annotated[
        int | None, typer.Option("--port", "-p", min=0, max=65535, help="Port (0 = any free port).")
    ] = None,
    db: DbOption = None,
) -> None:
    """Serve POST /search and the status/history endpoints over HTTP."""
    try:
        cfg = load_config()
    except ConfigurationError as exc:
        console.print(err_configuration(str(exc)))
        raise typer.Exit(1) from exc
    if db is not None:
        cfg.database.path = str(db)
    bind_host = host or cfg.server.host
    bind_port = cfg.server.port if port is None else port

    app = create_app(Services.build(cfg))
    console.print(
        f"Serving repocontext on [bold]http://{bind_host}:{bind_port}[/] "
        f"(database {Path(cfg.database.path).expanduser()})"
    )
    uvicorn.run(
        app,
        host=bind_host,
        port=bind_port,
        log_level="debug" if logging.getLogger().level <= logging.DEBUG else "warning",
    )
