"""repocontext access — grant, revoke and inspect cross-repository read access.

Access is directed and not transitive: granting A → B lets searches started
from A read B's chunks, nothing more.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

import typer
from rich.table import Table

from repocontext.cli.common import DbOption, console, open_services
from repocontext.cli.errors import err_bad_expiry

access_app = typer.Typer(help="Manage cross-repository search access.", no_args_is_help=True)


def _parse_expiry(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        console.print(err_bad_expiry(value))
        raise typer.Exit(1) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@access_app.command("grant")
def grant_cmd(
    source: Annotated[str, typer.Argument(help="Repository whose searches gain access.")],
    target: Annotated[str, typer.Argument(help="Repository being exposed.")],
    expires: Annotated[
        str | None, typer.Option("--expires", help="ISO timestamp after which the grant lapses.")
    ] = None,
    granted_by: Annotated[
        str | None, typer.Option("--by", help="Who granted the access (audit only).")
    ] = None,
    db: DbOption = None,
) -> None:
    """Let searches from SOURCE read TARGET."""
    expires_at = _parse_expiry(expires)
    with open_services(db) as services:
        services.access.grant_access(source, target, granted_by=granted_by, expires_at=expires_at)
    suffix = f" until {expires_at.isoformat()}" if expires_at else ""
    console.print(f"[green]✓[/] {source} → {target}{suffix}")


@access_app.command("revoke")
def revoke_cmd(
    source: Annotated[str, typer.Argument(help="Repository losing access.")],
    target: Annotated[str, typer.Argument(help="Repository no longer exposed.")],
    db: DbOption = None,
) -> None:
    """Withdraw SOURCE's access to TARGET."""
    with open_services(db) as services:
        removed = services.access.revoke_access(source, target)
    if removed:
        console.print(f"[green]✓[/] Revoked {source} → {target}")
    else:
        console.print(f"[dim]No grant {source} → {target}.[/]")


@access_app.command("list")
def list_cmd(
    source: Annotated[str, typer.Argument(help="Repository id.")],
    db: DbOption = None,
) -> None:
    """Show which repositories SOURCE's searches can read."""
    with open_services(db) as services:
        entries = services.access.list_repositories_with_access(source)
        permissions = {p.target_repository_id: p for p in services.access.get_permissions(source)}

    table = Table(title=f"Access from {source}")
    table.add_column("Repository", style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Access", justify="center")
    table.add_column("Expires", style="dim")
    for entry in entries:
        perm = permissions.get(entry.id)
        if entry.id == source:
            mark = "[dim]self[/]"
        else:
            mark = "[green]✓[/]" if entry.has_access else "[dim]✗[/]"
        table.add_row(entry.name, entry.id, mark, (perm.expires_at if perm else None) or "")
    console.print(table)
