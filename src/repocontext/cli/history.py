"""repocontext history / tokens — inspect the search audit trail and token usage."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.table import Table

from repocontext.cli.common import DbOption, console, open_services


def history_cmd(
    repo_id: Annotated[
        str | None, typer.Option("--repo", "-r", help="Only searches started from this repository.")
    ] = None,
    query: Annotated[
        str | None, typer.Option("--search", "-s", help="Substring to look for in prompts.")
    ] = None,
    prompt_id: Annotated[
        str | None, typer.Option("--results", help="Show the stored results of one prompt id.")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Maximum rows.")] = 20,
    clean_days: Annotated[
        int | None,
        typer.Option("--clean", min=1, help="Delete history older than this many days."),
    ] = None,
    db: DbOption = None,
) -> None:
    """List recent searches, newest first."""
    with open_services(db) as services:
        if clean_days is not None:
            removed = services.history.cleanup_old_history(clean_days)
            console.print(f"[green]✓[/] Removed {removed} history entries older than {clean_days} days")
            return
        if prompt_id is not None:
            if services.history.get_prompt(prompt_id) is None:
                console.print(f"[red]Error:[/] Unknown prompt id '{prompt_id}'.")
                raise typer.Exit(1)
            results = services.history.get_prompt_results(prompt_id)
            _show_results(prompt_id, results)
            return
        if query is not None:
            entries = services.history.search_prompt_history(query, repo_id, limit)
        elif repo_id is not None:
            entries = services.history.get_prompt_history(repo_id, limit)
        else:
            entries = services.history.get_all_prompt_history(limit)

    if not entries:
        console.print("[dim]No searches recorded.[/]")
        return

    table = Table(title="Search history")
    table.add_column("When", style="dim")
    table.add_column("Repository", style="bold")
    table.add_column("Prompt")
    table.add_column("Results", justify="right")
    table.add_column("ID", style="cyan")
    for entry in entries:
        table.add_row(
            entry.timestamp, entry.repository_name, entry.prompt, str(entry.total_results), entry.id
        )
    console.print(table)


def _show_results(prompt_id: str, results: list) -> None:
    if not results:
        console.print(f"[dim]Prompt {prompt_id} returned no results.[/]")
        return
    table = Table(title=f"Results for {prompt_id}")
    table.add_column("Score", justify="right")
    table.add_column("File", style="bold")
    table.add_column("Chunk", justify="right")
    table.add_column("Repository", style="dim")
    for r in results:
        table.add_row(f"{r.score:.3f}", r.document_path, str(r.chunk_index), r.repository_id)
    console.print(table)


def tokens_cmd(db: DbOption = None) -> None:
    """Show token usage per source for today and in total."""
    with open_services(db) as services:
        stats = services.tokens.get_token_usage_stats()

    if not stats["total"]:
        console.print("[dim]No token usage recorded.[/]")
        return

    table = Table(title="Token usage")
    table.add_column("Source", style="bold")
    table.add_column("Today in", justify="right")
    table.add_column("Today out", justify="right")
    table.add_column("Total in", justify="right")
    table.add_column("Total out", justify="right")
    empty = {"input": 0, "output": 0}
    for source in sorted(stats["total"]):
        today = stats["today"].get(source, empty)
        total = stats["total"][source]
        table.add_row(
            source,
            f"{today['input']:,}",
            f"{today['output']:,}",
            f"{total['input']:,}",
            f"{total['output']:,}",
        )
    console.print(table)
