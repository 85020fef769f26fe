"""repocontext CLI entry point."""

from __future__ import annotations

import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from repocontext import __version__
from repocontext.cli.access import access_app
from repocontext.cli.history import history_cmd, tokens_cmd
from repocontext.cli.index import index_cmd
from repocontext.cli.repo import repo_app
from repocontext.cli.search import search_cmd
from repocontext.cli.serve import serve_cmd
from repocontext.cli.status import status_cmd


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"repocontext {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=verbose)],
        force=True,
    )


app = typer.Typer(
    name="repocontext",
    help=(
        "repocontext — local hybrid search over code repositories.\n\n"
        "  repocontext repo add PATH     Register a repository.\n"
        "  repocontext index REPO_ID     Chunk, embed and store its files.\n"
        "  repocontext serve             Expose POST /search on 127.0.0.1."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log debug output to stderr."),
    ] = False,
) -> None:
    """repocontext — local hybrid search over code repositories."""
    _configure_logging(verbose)


app.add_typer(repo_app, name="repo")
app.add_typer(access_app, name="access")
app.command("index")(index_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)
app.command("history")(history_cmd)
app.command("tokens")(tokens_cmd)
app.command("serve")(serve_cmd)


if __name__ == "__main__":
    app()
