"""Tests for PromptHistoryStore."""

from __future__ import annotations

import pytest

from repocontext.errors import StoreError


def _result(path="a.md", score=0.5, chunk_index=0):
    return {
        "repository_id": "repo-a",
        "document_id": 1,
        "document_path": path,
        "chunk_index": chunk_index,
        "score": score,
        "content": f"content of {path}",
        "metadata": {"headers": [path]},
    }


def test_add_and_get_prompt(history, two_repos):
    history.add_prompt_history("p1", "where is auth", "repo-a", "Alpha", {"topK": 5})
    entry = history.get_prompt("p1")
    assert entry.prompt == "where is auth"
    assert entry.repository_name == "Alpha"
    assert entry.options == {"topK": 5}
    assert entry.total_results == 0
    assert entry.timestamp is not None


def test_duplicate_prompt_id_rejected(history, two_repos):
    history.add_prompt_history("p1", "q", "repo-a", "Alpha", {})
    with pytest.raises(StoreError):
        history.add_prompt_history("p1", "q", "repo-a", "Alpha", {})


def test_results_set_total_and_sort_by_score(history, two_repos):
    history.add_prompt_history("p1", "q", "repo-a", "Alpha", {})
    history.add_prompt_results("p1", [_result("a.md", 0.2), _result("b.md", 0.9, 3)])

    assert history.get_prompt("p1").total_results == 2
    results = history.get_prompt_results("p1")
    assert [r.document_path for r in results] == ["b.md", "a.md"]
    assert results[0].chunk_index == 3
    assert results[0].metadata == {"headers": ["b.md"]}
    assert results[0].to_dict()["promptHistoryId"] == "p1"


def test_results_for_unknown_prompt_rejected(history, two_repos):
    with pytest.raises(StoreError):
        history.add_prompt_results("missing", [_result()])


def test_history_newest_first_and_scoped(history, two_repos):
    for i in range(3):
        history.add_prompt_history(f"a{i}", f"query {i}", "repo-a", "Alpha", {})
    history.add_prompt_history("b0", "other", "repo-b", "Beta", {})

    entries = history.get_prompt_history("repo-a")
    assert [e.id for e in entries] == ["a2", "a1", "a0"]
    assert [e.id for e in history.get_prompt_history("repo-a", limit=1)] == ["a2"]
    assert [e.id for e in history.get_all_prompt_history()] == ["b0", "a2", "a1", "a0"]


def test_search_prompt_history(history, two_repos):
    history.add_prompt_history("p1", "How does Auth work", "repo-a", "Alpha", {})
    history.add_prompt_history("p2", "deploy steps", "repo-a", "Alpha", {})
    history.add_prompt_history("p3", "auth tokens", "repo-b", "Beta", {})

    assert {e.id for e in history.search_prompt_history("auth")} == {"p1", "p3"}
    assert [e.id for e in history.search_prompt_history("auth", repository_id="repo-b")] == ["p3"]


def test_search_prompt_history_treats_wildcards_literally(history, two_repos):
    history.add_prompt_history("p1", "100% coverage", "repo-a", "Alpha", {})
    history.add_prompt_history("p2", "100 tests", "repo-a", "Alpha", {})
    assert [e.id for e in history.search_prompt_history("100%")] == ["p1"]


def test_cleanup_old_history(history, tmp_db, two_repos):
    history.add_prompt_history("old", "q", "repo-a", "Alpha", {})
    history.add_prompt_history("new", "q", "repo-a", "Alpha", {})
    history.add_prompt_results("old", [_result()])
    with tmp_db.conn:
        tmp_db.conn.execute(
            "UPDATE prompt_history SET timestamp = datetime('now', '-40 days') WHERE id = 'old'"
        )

    assert history.cleanup_old_history(30) == 1
    assert history.get_prompt("old") is None
    assert history.get_prompt_results("old") == []
    assert history.get_prompt("new") is not None


@pytest.mark.parametrize(
    "read",
    [
        lambda h: h.get_prompt("p1"),
        lambda h: h.get_prompt_history("repo-a"),
        lambda h: h.get_all_prompt_history(),
        lambda h: h.search_prompt_history("x"),
        lambda h: h.get_prompt_results("p1"),
    ],
)
def test_read_errors_surface_as_store_error(history, tmp_db, read):
    tmp_db.conn.execute("DROP TABLE prompt_results")
    tmp_db.conn.execute("DROP TABLE prompt_history")
    with pytest.raises(StoreError):
        read(history)
