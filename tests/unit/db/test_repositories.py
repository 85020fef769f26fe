"""Tests for RepositoryStore."""

from __future__ import annotations

import pytest

from repocontext.errors import StoreError


def test_add_and_get(repositories):
    repo = repositories.add_repository("r1", "Alpha", "/src/alpha")
    assert repo.id == "r1"
    assert repo.name == "Alpha"
    assert repo.added_at is not None
    assert repositories.get_repository("r1") == repo


def test_get_missing(repositories):
    assert repositories.get_repository("nope") is None
    assert repositories.get_repository_by_path("/nowhere") is None


def test_readd_updates_name(repositories):
    repositories.add_repository("r1", "Alpha", "/src/alpha")
    repositories.add_repository("r1", "Alpha Renamed", "/src/alpha")
    assert repositories.get_repository("r1").name == "Alpha Renamed"
    assert len(repositories.list_repositories()) == 1


def test_path_is_unique(repositories):
    repositories.add_repository("r1", "Alpha", "/src/alpha")
    with pytest.raises(StoreError):
        repositories.add_repository("r2", "Other", "/src/alpha")


def test_lookup_by_path(repositories):
    repositories.add_repository("r1", "Alpha", "/src/alpha")
    assert repositories.get_repository_by_path("/src/alpha").id == "r1"
    assert repositories.has_repository("/src/alpha")
    assert not repositories.has_repository("/src/beta")


def test_names_by_id(repositories, two_repos):
    assert repositories.names_by_id(["repo-a", "repo-b", "ghost"]) == {
        "repo-a": "Alpha",
        "repo-b": "Beta",
    }
    assert repositories.names_by_id([]) == {}


def test_list_repositories(repositories, two_repos):
    assert {r.id for r in repositories.list_repositories()} == {"repo-a", "repo-b"}


def test_touch_keeps_repository(repositories, two_repos):
    repositories.touch("repo-a")
    assert repositories.get_repository("repo-a").last_opened is not None


def test_remove_cascades(repositories, documents, access, history, two_repos):
    doc_id = documents.upsert_document("repo-a", "a.md", "a", "x")
    access.grant_access("repo-b", "repo-a")
    history.add_prompt_history("p1", "q", "repo-a", "Alpha", {})

    assert repositories.remove_repository("repo-a") is True
    assert documents.get_document(doc_id) is None
    assert access.get_accessible_repositories("repo-b") == ["repo-b"]
    assert history.get_prompt("p1") is None
    assert repositories.remove_repository("repo-a") is False


def test_read_errors_surface_as_store_error(repositories, tmp_db):
    tmp_db.conn.execute("ALTER TABLE repositories RENAME TO repositories_old")
    with pytest.raises(StoreError, match="get repository"):
        repositories.get_repository("r1")
    with pytest.raises(StoreError):
        repositories.names_by_id(["r1"])
    with pytest.raises(StoreError):
        repositories.list_repositories()
