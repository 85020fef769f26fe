"""Tests for repocontext serve (uvicorn is never started)."""

from __future__ import annotations

from unittest.mock import patch

from fastapi import FastAPI
from typer.testing import CliRunner

from repocontext.cli.main import app

runner = CliRunner()


def test_serve_defaults_to_loopback(cli_env):
    with patch("repocontext.cli.serve.uvicorn.run") as run:
        result = runner.invoke(app, ["serve", "--db", str(cli_env)])

    assert result.exit_code == 0, result.output
    run.assert_called_once()
    served, kwargs = run.call_args.args[0], run.call_args.kwargs
    assert isinstance(served, FastAPI)
    assert (kwargs["host"], kwargs["port"]) == ("127.0.0.1", 7845)
    assert kwargs["log_level"] == "warning"
    assert "http://127.0.0.1:7845" in result.output


def test_serve_overrides(cli_env):
    with patch("repocontext.cli.serve.uvicorn.run") as run:
        result = runner.invoke(app, ["serve", "--host", "0.0.0.0", "-p", "9000", "--db", str(cli_env)])

    assert result.exit_code == 0, result.output
    assert (run.call_args.kwargs["host"], run.call_args.kwargs["port"]) == ("0.0.0.0", 9000)


def test_serve_port_from_config(cli_env):
    (cli_env.parent / "work" / "repocontext.yaml").write_text(
        "server:\n  port: 8123\nexpansion:\n  enabled: false\n", encoding="utf-8"
    )
    with patch("repocontext.cli.serve.uvicorn.run") as run:
        result = runner.invoke(app, ["serve", "--db", str(cli_env)])

    assert result.exit_code == 0, result.output
    assert run.call_args.kwargs["port"] == 8123


def test_serve_verbose_logs_debug(cli_env):
    with patch("repocontext.cli.serve.uvicorn.run") as run:
        runner.invoke(app, ["-v", "serve", "--db", str(cli_env)])
    assert run.call_args.kwargs["log_level"] == "debug"


def test_serve_bad_config(cli_env):
    (cli_env.parent / "work" / "repocontext.yaml").write_text("server: [", encoding="utf-8")
    with patch("repocontext.cli.serve.uvicorn.run") as run:
        result = runner.invoke(app, ["serve", "--db", str(cli_env)])
    assert result.exit_code == 1
    run.assert_not_called()
