"""Tests for repocontext access grant / revoke / list."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from repocontext.cli.main import app
from repocontext.db.access import RepositoryAccessStore
from repocontext.db.connection import Database

runner = CliRunner()


@pytest.fixture
def repos(cli_env, tmp_path):
    for repo_id in ("app", "lib", "ops"):
        root = tmp_path / repo_id
        root.mkdir()
        runner.invoke(app, ["repo", "add", str(root), "--id", repo_id, "--db", str(cli_env)])
    return cli_env


def _accessible(db_path, source):
    with Database(db_path) as db:
        return RepositoryAccessStore(db).get_accessible_repositories(source)


def test_grant(repos):
    result = runner.invoke(app, ["access", "grant", "app", "lib", "--by", "alice", "--db", str(repos)])
    assert result.exit_code == 0, result.output
    assert "app → lib" in result.output
    assert _accessible(repos, "app") == ["app", "lib"]


def test_grant_with_expiry(repos):
    result = runner.invoke(
        app,
        ["access", "grant", "app", "lib", "--expires", "2999-01-01T00:00:00", "--db", str(repos)],
    )
    assert result.exit_code == 0, result.output
    assert "until 2999-01-01" in result.output
    assert _accessible(repos, "app") == ["app", "lib"]


def test_grant_already_expired_is_inert(repos):
    runner.invoke(
        app, ["access", "grant", "app", "lib", "--expires", "2000-01-01", "--db", str(repos)]
    )
    assert _accessible(repos, "app") == ["app"]


def test_grant_bad_expiry(repos):
    result = runner.invoke(
        app, ["access", "grant", "app", "lib", "--expires", "next tuesday", "--db", str(repos)]
    )
    assert result.exit_code == 1
    assert "Invalid --expires" in result.output


def test_grant_unknown_repository(repos):
    result = runner.invoke(app, ["access", "grant", "app", "ghost", "--db", str(repos)])
    assert result.exit_code == 1
    assert "ghost" in result.output


def test_revoke(repos):
    runner.invoke(app, ["access", "grant", "app", "lib", "--db", str(repos)])
    result = runner.invoke(app, ["access", "revoke", "app", "lib", "--db", str(repos)])
    assert result.exit_code == 0
    assert "Revoked" in result.output
    assert _accessible(repos, "app") == ["app"]


def test_revoke_missing_grant(repos):
    result = runner.invoke(app, ["access", "revoke", "app", "lib", "--db", str(repos)])
    assert result.exit_code == 0
    assert "No grant" in result.output


def test_list(repos):
    runner.invoke(app, ["access", "grant", "app", "lib", "--db", str(repos)])
    result = runner.invoke(app, ["access", "list", "app", "--db", str(repos)])
    assert result.exit_code == 0, result.output
    assert "self" in result.output
    assert "✓" in result.output
    assert "✗" in result.output
