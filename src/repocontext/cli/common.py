"""Shared CLI plumbing: console, option types, service lifecycle."""

from __future__ import annotations

import hashlib
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from repocontext.cli.errors import err_configuration, message_for
from repocontext.config import load_config
from repocontext.errors import ConfigurationError, RepoContextError
from repocontext.services import Services

console = Console()

DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="Path to the repocontext database (default: from config)."),
]


def repository_id_for(path: Path) -> str:
    """Stable repository id derived from the absolute path."""
    return hashlib.sha256(str(path.resolve()).encode("utf-8")).hexdigest()[:16]


@contextmanager
def open_services(db: Path | None = None) -> Iterator[Services]:
    """Load config, open the database and yield the wired services.

    repocontext errors raised inside the block are printed with a hint and
    turned into exit code 1.
    """
    try:
        cfg = load_config()
    except ConfigurationError as exc:
        console.print(err_configuration(str(exc)))
        raise typer.Exit(1) from exc
    if db is not None:
        cfg.database.path = str(db)

    services = Services.build(cfg)
    try:
        services.open()
        yield services
    except RepoContextError as exc:
        console.print(message_for(exc))
        raise typer.Exit(1) from exc
    finally:
        services.close()
