"""repocontext rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from repocontext.cli.errors import err_unknown_repository
    console.print(err_unknown_repository(repo_id))
    raise typer.Exit(1)
"""

from __future__ import annotations

from repocontext.errors import (
    ConfigurationError,
    ExternalProviderError,
    RepoContextError,
    StoreError,
)


def err_unknown_repository(repository_id: str) -> str:
    """Repository id not registered.

    Example:
        Unknown repository 'abc123'. Register it:  repocontext repo add PATH
    """
    return (
        f"[red]Error:[/] Unknown repository '{repository_id}'.\n"
        "  List registered repositories:  repocontext repo list\n"
        "  Register a new one:            repocontext repo add PATH"
    )


def err_not_a_directory(path: str) -> str:
    return f"[red]Error:[/] '{path}' is not a directory."


def err_configuration(message: str) -> str:
    return (
        f"[red]Configuration error:[/] {message}\n"
        "  Check ~/.repocontext/config.yaml and ./repocontext.yaml"
    )


def err_provider(provider: str, message: str) -> str:
    """An AI provider call failed (network, quota, bad model name)."""
    return (
        f"[red]Error:[/] Call to provider '{provider}' failed: {message}\n"
        "  Check the model name in repocontext.yaml and that the provider is reachable."
    )


def err_store(message: str) -> str:
    return (
        f"[red]Database error:[/] {message}\n"
        "  Check the database path (--db) and that no other process holds a write lock."
    )


def err_bad_expiry(value: str) -> str:
    return (
        f"[red]Error:[/] Invalid --expires value '{value}'.\n"
        "  Use an ISO date/time, e.g.  --expires 2026-12-31T00:00:00"
    )


def message_for(exc: RepoContextError) -> str:
    """Pick the user-facing message for a repocontext error."""
    if isinstance(exc, ConfigurationError):
        return err_configuration(str(exc))
    if isinstance(exc, ExternalProviderError):
        return err_provider(exc.provider, exc.detail)
    if isinstance(exc, StoreError):
        return err_store(str(exc))
    return f"[red]Error:[/] {exc}"
