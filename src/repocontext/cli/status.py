"""repocontext status — index overview for one or all repositories."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from repocontext.cli.common import DbOption, console, open_services
from repocontext.cli.errors import err_unknown_repository
from repocontext.db.models import Repository, RepositoryStatistics


def status_cmd(
    repo_id: Annotated[
        str | None, typer.Argument(help="Repository id (omit for an overview of all).")
    ] = None,
    db: DbOption = None,
) -> None:
    """Show index statistics."""
    with open_services(db) as services:
        console.print(f"Database: [bold]{services.db.db_path or ':memory:'}[/]")

        if repo_id is None:
            repos = services.repositories.list_repositories()
            stats = {r.id: services.documents.get_statistics(r.id) for r in repos}
            _show_overview(repos, stats)
            return

        repo = services.repositories.get_repository(repo_id)
        if repo is None:
            console.print(err_unknown_repository(repo_id))
            raise typer.Exit(1)
        _show_repository(repo, services.documents.get_statistics(repo_id))
        accessible = services.access.get_accessible_repositories(repo_id)

    others = [r for r in accessible if r != repo_id]
    if others:
        console.print(f"Searches also read: {', '.join(others)}")


def _show_overview(repos: list[Repository], stats: dict[str, RepositoryStatistics]) -> None:
    if not repos:
        console.print(
            Panel(
                "[yellow]No repositories registered.[/]\n  Run:  repocontext repo add PATH",
                title="[bold]Index[/]",
                expand=False,
            )
        )
        return

    table = Table(title="Index")
    table.add_column("Repository", style="bold")
    table.add_column("Documents", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Last updated", style="dim")
    for repo in repos:
        s = stats[repo.id]
        table.add_row(
            f"{repo.name} [dim]({repo.id})[/]",
            f"{s.total_documents:,}",
            f"{s.total_chunks:,}",
            s.last_updated or "never",
        )
    console.print(table)


def _show_repository(repo: Repository, stats: RepositoryStatistics) -> None:
    lines = [
        f"Path:        {repo.path}",
        f"Documents:   [bold]{stats.total_documents:,}[/]",
        f"Chunks:      [bold]{stats.total_chunks:,}[/]"
        f"  (avg {stats.avg_chunks_per_document:.1f} per document)",
        f"Avg chunk:   {stats.avg_chunk_size:.0f} chars",
        f"Total size:  {stats.total_size:,} chars",
        f"Vector dims: {stats.vector_dimensions or '-'}",
        f"Updated:     [dim]{stats.last_updated or 'never'}[/]",
    ]
    console.print(Panel("\n".join(lines), title=f"[bold]{repo.name}[/]", expand=False))
