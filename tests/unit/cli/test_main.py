"""Tests for the repocontext CLI entry point."""

from __future__ import annotations

from typer.testing import CliRunner

from repocontext import __version__
from repocontext.cli.main import app

runner = CliRunner()


def test_version_flag_exits_zero() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"repocontext {__version__}" in result.output


def test_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("repo", "access", "index", "search", "status", "history", "tokens", "serve"):
        assert command in result.output


def test_repo_without_subcommand_shows_help() -> None:
    result = runner.invoke(app, ["repo"])
    assert "add" in result.output
    assert "remove" in result.output


def test_verbose_flag_accepted(cli_env) -> None:
    result = runner.invoke(app, ["-v", "status", "--db", str(cli_env)])
    assert result.exit_code == 0, result.output
