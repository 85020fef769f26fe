"""repocontext search — run a hybrid search from the terminal."""

from __future__ import annotations

import asyncio
import json
from typing import Annotated

import typer
from rich.panel import Panel
from rich.text import Text

from repocontext.cli.common import DbOption, console, open_services
from repocontext.rag.service import SearchOptions, SearchRequest


def search_cmd(
    prompt: Annotated[str, typer.Argument(help="Natural-language query.")],
    repo_id: Annotated[str, typer.Option("--repo", "-r", help="Source repository id.")],
    top_k: Annotated[int | None, typer.Option("--top-k", "-k", min=1, help="Results to return.")] = None,
    context_chunks: Annotated[
        int | None, typer.Option("--context", min=0, help="Neighbour chunks on each side.")
    ] = None,
    min_score: Annotated[
        float | None, typer.Option("--min-score", min=0.0, help="Drop results below this score.")
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the raw JSON response.")] = False,
    db: DbOption = None,
) -> None:
    """Search a repository (and every repository it has access to)."""
    with open_services(db) as services:
        options = SearchOptions.from_config(services.config.search)
        if top_k is not None:
            options.top_k = top_k
        if context_chunks is not None:
            options.context_chunks = context_chunks
        if min_score is not None:
            options.min_score = min_score

        response = asyncio.run(
            services.search_service.search(
                SearchRequest(prompt=prompt, repository_id=repo_id, options=options)
            )
        )

    if as_json:
        typer.echo(json.dumps(response.to_dict(), indent=2))
        return

    if response.expanded_query != response.query:
        console.print(f"[dim]Expanded query:[/] {response.expanded_query}")
    if not response.results:
        console.print(f"[yellow]{response.message}[/]")
        return

    for i, result in enumerate(response.results, start=1):
        lines = result.metadata.get("startLine"), result.metadata.get("endLine")
        span = f":{lines[0]}-{lines[1]}" if lines[0] is not None else ""
        console.print(
            Panel(
                Text(result.content),
                title=f"[bold]{i}. {result.file_path}{span}[/] [dim]({result.repository_name})[/]",
                subtitle=f"score {result.score:.3f}",
                expand=False,
            )
        )
