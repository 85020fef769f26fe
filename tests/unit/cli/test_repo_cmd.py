"""Tests for repocontext repo add / list / remove."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from repocontext.cli.common import repository_id_for
from repocontext.cli.main import app
from repocontext.db.connection import Database
from repocontext.db.repositories import RepositoryStore

runner = CliRunner()


def _repos(db_path: Path):
    with Database(db_path) as db:
        return RepositoryStore(db).list_repositories()


def test_add_registers_repository(cli_env, tmp_path):
    project = tmp_path / "alpha"
    project.mkdir()

    result = runner.invoke(app, ["repo", "add", str(project), "--db", str(cli_env)])

    assert result.exit_code == 0, result.output
    assert "Registered" in result.output
    [repo] = _repos(cli_env)
    assert repo.name == "alpha"
    assert repo.path == str(project.resolve())
    assert repo.id == repository_id_for(project)


def test_add_seeds_global_config(cli_env, tmp_path):
    project = tmp_path / "alpha"
    project.mkdir()

    runner.invoke(app, ["repo", "add", str(project), "--db", str(cli_env)])

    assert (tmp_path / "home" / "config.yaml").exists()


def test_add_with_name_and_id(cli_env, tmp_path):
    project = tmp_path / "beta"
    project.mkdir()

    result = runner.invoke(
        app, ["repo", "add", str(project), "--name", "Beta", "--id", "b1", "--db", str(cli_env)]
    )

    assert result.exit_code == 0, result.output
    [repo] = _repos(cli_env)
    assert (repo.id, repo.name) == ("b1", "Beta")


def test_add_twice_keeps_one_row(cli_env, tmp_path):
    project = tmp_path / "alpha"
    project.mkdir()
    runner.invoke(app, ["repo", "add", str(project), "--db", str(cli_env)])
    runner.invoke(app, ["repo", "add", str(project), "--db", str(cli_env)])
    assert len(_repos(cli_env)) == 1


def test_add_rejects_missing_directory(cli_env, tmp_path):
    result = runner.invoke(app, ["repo", "add", str(tmp_path / "nope"), "--db", str(cli_env)])
    assert result.exit_code == 1
    assert "not a directory" in " ".join(result.output.split())


def test_repository_id_is_stable(tmp_path):
    assert repository_id_for(tmp_path) == repository_id_for(tmp_path / "sub" / "..")
    assert len(repository_id_for(tmp_path)) == 16


def test_list_empty(cli_env):
    result = runner.invoke(app, ["repo", "list", "--db", str(cli_env)])
    assert result.exit_code == 0
    assert "No repositories registered" in result.output


def test_list_shows_repositories(cli_env, tmp_path):
    project = tmp_path / "alpha"
    project.mkdir()
    runner.invoke(app, ["repo", "add", str(project), "--id", "a1", "--db", str(cli_env)])

    result = runner.invoke(app, ["repo", "list", "--db", str(cli_env)])

    assert result.exit_code == 0
    assert "a1" in result.output
    assert "alpha" in result.output


def test_remove_with_yes(cli_env, tmp_path):
    project = tmp_path / "alpha"
    project.mkdir()
    runner.invoke(app, ["repo", "add", str(project), "--id", "a1", "--db", str(cli_env)])

    result = runner.invoke(app, ["repo", "remove", "a1", "--yes", "--db", str(cli_env)])

    assert result.exit_code == 0, result.output
    assert "Removed" in result.output
    assert _repos(cli_env) == []


def test_remove_prompt_declined(cli_env, tmp_path):
    project = tmp_path / "alpha"
    project.mkdir()
    runner.invoke(app, ["repo", "add", str(project), "--id", "a1", "--db", str(cli_env)])

    result = runner.invoke(app, ["repo", "remove", "a1", "--db", str(cli_env)], input="n\n")

    assert result.exit_code != 0
    assert len(_repos(cli_env)) == 1


def test_remove_unknown(cli_env):
    result = runner.invoke(app, ["repo", "remove", "ghost", "--yes", "--db", str(cli_env)])
    assert result.exit_code == 1
    assert "Unknown repository" in result.output
