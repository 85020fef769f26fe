"""Tests for DocumentIndexer (chunk → embed → store) and repository scans."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from repocontext.config import IndexingCfg
from repocontext.errors import ConfigurationError, ExternalProviderError
from repocontext.ingest.documenter import Analysis
from repocontext.ingest.indexer import DocumentIndexer, iter_repository_files

GUIDE = (
    "# Deployment guide\n"
    "Run the deploy script from the repository root after tagging the release. "
    "The script uploads build artifacts and restarts every worker.\n"
)

NOTES = (
    "Rate limiting is applied per API token with a sliding window of sixty seconds. "
    "Exceeding the limit returns HTTP 429 with a Retry-After header."
)


@pytest.fixture
def indexer(documents, fake_embeddings, two_repos):
    return DocumentIndexer(documents, fake_embeddings, config=IndexingCfg(batch_pause=0))


# ------------------------------------------------------------------
# index_file
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_index_file_stores_document_and_chunks(indexer, documents):
    count = await indexer.index_file("repo-a", "docs/guide.md", GUIDE)

    doc = documents.get_document_by_path("repo-a", "docs/guide.md")
    assert doc is not None
    assert doc.title == "guide.md"
    assert doc.content == GUIDE
    assert count == 1
    chunks = documents.list_chunks(doc.id)
    assert [c.chunk_index for c in chunks] == [0]
    assert chunks[0].embedding is not None
    assert chunks[0].metadata_dict["headers"] == ["Deployment guide"]


@pytest.mark.asyncio
async def test_reindex_same_content_is_idempotent(indexer, documents):
    await indexer.index_file("repo-a", "notes.txt", NOTES)
    doc = documents.get_document_by_path("repo-a", "notes.txt")
    first = [(c.chunk_index, c.content) for c in documents.list_chunks(doc.id)]

    await indexer.index_file("repo-a", "notes.txt", NOTES)
    again = documents.get_document_by_path("repo-a", "notes.txt")

    assert again.id == doc.id
    assert [(c.chunk_index, c.content) for c in documents.list_chunks(doc.id)] == first


@pytest.mark.asyncio
async def test_reindex_replaces_old_chunks(indexer, documents):
    await indexer.index_file("repo-a", "notes.txt", NOTES)
    await indexer.index_file("repo-a", "notes.txt", GUIDE.replace("# Deployment guide\n", ""))

    doc = documents.get_document_by_path("repo-a", "notes.txt")
    contents = [c.content for c in documents.list_chunks(doc.id)]
    assert all("Rate limiting" not in c for c in contents)
    assert documents.search_fts("Retry", ["repo-a"]) == []


@pytest.mark.asyncio
async def test_short_file_has_document_but_no_chunks(indexer, documents):
    assert await indexer.index_file("repo-a", "tiny.txt", "just a note") == 0
    doc = documents.get_document_by_path("repo-a", "tiny.txt")
    assert doc is not None
    assert documents.count_chunks(doc.id) == 0


@pytest.mark.asyncio
async def test_embedding_failure_keeps_previous_chunks(documents, two_repos, fake_embeddings):
    good = DocumentIndexer(documents, fake_embeddings)
    await good.index_file("repo-a", "notes.txt", NOTES)

    failing = AsyncMock()
    failing.generate_batch_embeddings.side_effect = ExternalProviderError("ollama", "down")
    with pytest.raises(ExternalProviderError):
        await DocumentIndexer(documents, failing).index_file("repo-a", "notes.txt", GUIDE)

    doc = documents.get_document_by_path("repo-a", "notes.txt")
    assert doc.content == NOTES
    assert "Rate limiting" in documents.list_chunks(doc.id)[0].content


# ------------------------------------------------------------------
# remove / stats
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_remove_file(indexer, documents):
    await indexer.index_file("repo-a", "notes.txt", NOTES)
    assert await indexer.remove_file("repo-a", "notes.txt") is True
    assert documents.get_document_by_path("repo-a", "notes.txt") is None
    assert await indexer.remove_file("repo-a", "notes.txt") is False


@pytest.mark.asyncio
async def test_remove_repository_only_touches_that_repo(indexer, documents):
    await indexer.index_file("repo-a", "a.txt", NOTES)
    await indexer.index_file("repo-b", "b.txt", NOTES)

    assert await indexer.remove_repository("repo-a") == 1
    assert documents.list_documents("repo-a") == []
    assert len(documents.list_documents("repo-b")) == 1


@pytest.mark.asyncio
async def test_get_index_stats(indexer):
    await indexer.index_file("repo-a", "a.txt", NOTES)
    await indexer.index_file("repo-a", "docs/guide.md", GUIDE)

    stats = await indexer.get_index_stats("repo-a")
    assert stats.document_count == 2
    assert stats.chunk_count == 2
    assert stats.last_indexed is not None


# ------------------------------------------------------------------
# document_and_index
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_document_and_index_stores_markdown(documents, fake_embeddings, two_repos):
    documenter = AsyncMock()
    documenter.analyze.return_value = Analysis(text=GUIDE, input_tokens=9, output_tokens=3)
    indexer = DocumentIndexer(documents, fake_embeddings, documenter=documenter)

    await indexer.document_and_index("repo-a", "src/deploy.py", "def deploy(): ...")

    assert documents.get_document_by_path("repo-a", "src/deploy.py.md") is not None
    assert documents.get_document_by_path("repo-a", "src/deploy.py") is None
    documenter.analyze.assert_awaited_once_with("src/deploy.py", "def deploy(): ...", None)


@pytest.mark.asyncio
async def test_document_and_index_without_documenter(indexer):
    with pytest.raises(ConfigurationError):
        await indexer.document_and_index("repo-a", "x.py", "pass")


# ------------------------------------------------------------------
# scan_repository
# ------------------------------------------------------------------


def _make_tree(root):
    (root / "docs").mkdir()
    (root / "docs" / "guide.md").write_text(GUIDE, encoding="utf-8")
    (root / "notes.txt").write_text(NOTES, encoding="utf-8")
    (root / "image.png").write_bytes(b"\x89PNG")
    (root / "node_modules" / "pkg").mkdir(parents=True)
    (root / "node_modules" / "pkg" / "index.js").write_text("module.exports = 1", encoding="utf-8")
    (root / ".git").mkdir()
    (root / ".git" / "HEAD.txt").write_text("ref", encoding="utf-8")
    (root / ".env.txt").write_text("SECRET=1", encoding="utf-8")


def test_iter_repository_files_skips_ignored(tmp_path):
    _make_tree(tmp_path)
    found = [p.relative_to(tmp_path).as_posix() for p in iter_repository_files(tmp_path)]
    assert found == ["notes.txt", "docs/guide.md"]


@pytest.mark.asyncio
async def test_scan_repository_indexes_supported_files(indexer, documents, tmp_path):
    _make_tree(tmp_path)
    report = await indexer.scan_repository("repo-a", tmp_path)

    assert sorted(report.indexed) == ["docs/guide.md", "notes.txt"]
    assert report.failed == {}
    assert report.chunk_count == 2
    assert [d.file_path for d in documents.list_documents("repo-a")] == [
        "docs/guide.md",
        "notes.txt",
    ]


@pytest.mark.asyncio
async def test_scan_records_failures_and_continues(documents, two_repos, fake_embeddings, tmp_path):
    _make_tree(tmp_path)
    (tmp_path / "broken.txt").write_bytes(b"\xff\xfe\xfa not utf-8")
    indexer = DocumentIndexer(documents, fake_embeddings, config=IndexingCfg(batch_size=1, batch_pause=0))

    report = await indexer.scan_repository("repo-a", tmp_path)

    assert "broken.txt" in report.failed
    assert "notes.txt" in report.indexed


@pytest.mark.asyncio
async def test_scan_stops_on_configuration_error(documents, two_repos, tmp_path):
    _make_tree(tmp_path)
    embeddings = AsyncMock()
    embeddings.generate_batch_embeddings.side_effect = ConfigurationError("no key")

    with pytest.raises(ConfigurationError):
        await DocumentIndexer(documents, embeddings).scan_repository("repo-a", tmp_path)
