"""repocontext index — scan a registered repository into the search index.

Without --file the whole tree is scanned (hidden, node_modules, dist and
build directories skipped). With --file only the named files are
(re-)indexed; a named file that no longer exists is removed from the index.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from repocontext.cli.common import DbOption, console, open_services
from repocontext.cli.errors import err_unknown_repository
from repocontext.ingest.indexer import ScanReport
from repocontext.services import Services


def index_cmd(
    repo_id: Annotated[str, typer.Argument(help="Repository id (see: repocontext repo list).")],
    file: Annotated[
        list[Path] | None,
        typer.Option("--file", "-f", help="Index only this file, relative to the repo root (repeatable)."),
    ] = None,
    docs: Annotated[
        bool,
        typer.Option("--docs", help="Generate AI documentation per file and index that instead."),
    ] = False,
    clear: Annotated[
        bool,
        typer.Option("--clear", help="Drop the existing index for the repository first."),
    ] = False,
    db: DbOption = None,
) -> None:
    """Index a repository's files (chunk, embed, store)."""
    with open_services(db) as services:
        repo = services.repositories.get_repository(repo_id)
        if repo is None:
            console.print(err_unknown_repository(repo_id))
            raise typer.Exit(1)

        root = Path(repo.path)
        if file:
            asyncio.run(_index_files(services, repo_id, root, file, docs))
            return

        if clear:
            removed = asyncio.run(services.indexer.remove_repository(repo_id))
            console.print(f"[dim]Cleared {removed} documents.[/]")

        with console.status(f"Indexing [bold]{repo.name}[/]…"):
            report = asyncio.run(
                services.indexer.scan_repository(repo_id, root, generate_docs=docs)
            )
        services.repositories.touch(repo_id)

    _print_report(report)
    if report.failed and not report.indexed:
        raise typer.Exit(1)


async def _index_files(
    services: Services, repo_id: str, root: Path, files: list[Path], docs: bool
) -> None:
    for rel in files:
        path = root / rel
        rel_posix = rel.as_posix()
        if not path.exists():
            if await services.indexer.remove_file(repo_id, rel_posix):
                console.print(f"[yellow]−[/] {rel_posix} (removed from index)")
            else:
                console.print(f"[yellow]![/] {rel_posix} not found")
            continue
        content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        if docs:
            count = await services.indexer.document_and_index(repo_id, rel_posix, content)
        else:
            count = await services.indexer.index_file(repo_id, rel_posix, content)
        console.print(f"[green]✓[/] {rel_posix} ({count} chunks)")


def _print_report(report: ScanReport) -> None:
    console.print(
        f"[green]✓[/] Indexed [bold]{len(report.indexed)}[/] files "
        f"([bold]{report.chunk_count}[/] chunks)"
    )
    for rel, reason in sorted(report.failed.items()):
        console.print(f"  [red]✗[/] {rel}: {reason}")
