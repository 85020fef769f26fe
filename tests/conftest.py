"""Shared pytest fixtures."""

from __future__ import annotations

import hashlib
import os
import re
from types import SimpleNamespace

# Keep litellm from fetching its model cost map over the network at import.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import litellm  # noqa: E402
import pytest  # noqa: E402

from repocontext.config import EMBEDDING_DIMENSIONS, RepoContextConfig  # noqa: E402
from repocontext.db.access import RepositoryAccessStore  # noqa: E402
from repocontext.db.connection import Database  # noqa: E402
from repocontext.db.documents import DocumentStore  # noqa: E402
from repocontext.db.history import PromptHistoryStore  # noqa: E402
from repocontext.db.repositories import RepositoryStore  # noqa: E402
from repocontext.db.tokens import TokenUsageStore  # noqa: E402
from repocontext.services import Services  # noqa: E402

_WORD_RE = re.compile(r"\w+")


class FakeEmbeddings:
    """Deterministic bag-of-words embedder: each word bumps one hashed slot.

    Texts sharing words get a positive cosine similarity; no network involved.
    """

    def __init__(self, dimension: int = EMBEDDING_DIMENSIONS) -> None:
        self.dimension = dimension
        self.calls: list[str] = []

    async def initialize(self) -> None:
        return None

    def vector(self, text: str) -> list[float]:
        vec = [0.0] * self.dimension
        for word in _WORD_RE.findall(text.lower()):
            slot = int(hashlib.sha1(word.encode("utf-8")).hexdigest(), 16) % self.dimension
            vec[slot] += 1.0
        return vec

    async def generate_embedding(self, text: str) -> list[float]:
        self.calls.append(text)
        return self.vector(text)

    async def generate_batch_embeddings(self, texts: list[str]) -> list[list[float]]:
        return [await self.generate_embedding(t) for t in texts]


@pytest.fixture(autouse=True)
def _offline_token_counter(monkeypatch):
    """Token counting without tokenizer downloads."""
    monkeypatch.setattr(
        litellm, "token_counter", lambda model=None, text="", **kw: max(1, len(text) // 4)
    )


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema applied, closed after test."""
    db = Database(tmp_path / "repocontext.db")
    db.open()
    yield db
    db.close()


@pytest.fixture
def repositories(tmp_db):
    return RepositoryStore(tmp_db)


@pytest.fixture
def documents(tmp_db):
    return DocumentStore(tmp_db)


@pytest.fixture
def access(tmp_db):
    return RepositoryAccessStore(tmp_db)


@pytest.fixture
def history(tmp_db):
    return PromptHistoryStore(tmp_db)


@pytest.fixture
def tokens(tmp_db):
    return TokenUsageStore(tmp_db)


@pytest.fixture
def two_repos(repositories):
    """Register repositories ``repo-a`` and ``repo-b``."""
    repositories.add_repository("repo-a", "Alpha", "/src/alpha")
    repositories.add_repository("repo-b", "Beta", "/src/beta")
    return "repo-a", "repo-b"


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddings()


@pytest.fixture
def app_config(tmp_path):
    """Default config pointed at a temp database, query expansion off."""
    cfg = RepoContextConfig()
    cfg.database.path = str(tmp_path / "services.db")
    cfg.expansion.enabled = False
    return cfg


@pytest.fixture
def services(app_config, fake_embeddings):
    """Fully wired, opened Services using the fake embedder."""
    svc = Services.build(app_config, embeddings=fake_embeddings)
    svc.open()
    yield svc
    svc.close()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Isolated CLI environment: temp config/cwd, no expansion, offline embeddings.

    Returns the database path to pass with ``--db``.
    """
    import repocontext.config as config_mod
    from repocontext.rag import llm_client

    for var in (
        "REPOCONTEXT_DB",
        "REPOCONTEXT_EMBEDDING_MODEL",
        "REPOCONTEXT_EXPANSION_MODEL",
        "REPOCONTEXT_DOCUMENTATION_MODEL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(config_mod, "_GLOBAL_CONFIG_PATH", tmp_path / "home" / "config.yaml")

    workdir = tmp_path / "work"
    workdir.mkdir()
    (workdir / "repocontext.yaml").write_text("expansion:\n  enabled: false\n", encoding="utf-8")
    monkeypatch.chdir(workdir)

    embedder = FakeEmbeddings()

    async def _aembedding(model, input, **kwargs):
        return SimpleNamespace(data=[{"embedding": embedder.vector(input[0])}])

    monkeypatch.setattr(llm_client.litellm, "aembedding", _aembedding)
    return tmp_path / "cli.db"
