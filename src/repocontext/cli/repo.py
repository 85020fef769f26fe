"""repocontext repo — register, list and remove repositories."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from repocontext.cli.common import DbOption, console, open_services, repository_id_for
from repocontext.cli.errors import err_not_a_directory, err_unknown_repository
from repocontext.config import ensure_global_config

repo_app = typer.Typer(help="Manage registered repositories.", no_args_is_help=True)


@repo_app.command("add")
def add_cmd(
    path: Annotated[Path, typer.Argument(help="Repository root directory.")],
    name: Annotated[
        str | None, typer.Option("--name", help="Display name (default: directory name).")
    ] = None,
    repo_id: Annotated[
        str | None, typer.Option("--id", help="Explicit repository id (default: path hash).")
    ] = None,
    db: DbOption = None,
) -> None:
    """Register PATH as a repository (re-adding bumps its last-opened time)."""
    if not path.is_dir():
        console.print(err_not_a_directory(str(path)))
        raise typer.Exit(1)

    ensure_global_config()
    root = path.resolve()
    with open_services(db) as services:
        repo = services.repositories.add_repository(
            repo_id or repository_id_for(root), name or root.name, str(root)
        )
    console.print(f"[green]✓[/] Registered [bold]{repo.name}[/] ({repo.id}) → {repo.path}")


@repo_app.command("list")
def list_cmd(db: DbOption = None) -> None:
    """List registered repositories, most recently opened first."""
    with open_services(db) as services:
        repos = services.repositories.list_repositories()
        counts = {r.id: services.documents.get_index_status(r.id)[0] for r in repos}

    if not repos:
        console.print("[dim]No repositories registered.[/]\n  Run:  repocontext repo add PATH")
        return

    table = Table(title="Repositories")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Path")
    table.add_column("Documents", justify="right")
    table.add_column("Last opened", style="dim")
    for repo in repos:
        table.add_row(repo.id, repo.name, repo.path, str(counts[repo.id]), repo.last_opened or "")
    console.print(table)


@repo_app.command("remove")
def remove_cmd(
    repo_id: Annotated[str, typer.Argument(help="Repository id.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
    db: DbOption = None,
) -> None:
    """Remove a repository with its index, access grants and history."""
    with open_services(db) as services:
        repo = services.repositories.get_repository(repo_id)
        if repo is None:
            console.print(err_unknown_repository(repo_id))
            raise typer.Exit(1)
        if not yes:
            typer.confirm(f"Remove '{repo.name}' and all of its indexed data?", abort=True)
        services.repositories.remove_repository(repo_id)
    console.print(f"[green]✓[/] Removed [bold]{repo.name}[/] ({repo_id})")
