"""repocontext configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (REPOCONTEXT_DB, REPOCONTEXT_EMBEDDING_MODEL,
     REPOCONTEXT_EXPANSION_MODEL, REPOCONTEXT_DOCUMENTATION_MODEL)
  3. Per-project repocontext.yaml
  4. Global ~/.repocontext/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from repocontext.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".repocontext"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "repocontext.yaml"

# Matches api_key, apikey, api-key, api_secret, *_token, token, *_secret,
# secret, password, passwd, credential(s). Does NOT match max_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["database", "embedding", "expansion", "documentation", "search", "server", "indexing"]
)

EMBEDDING_DIMENSIONS = 768


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class DatabaseCfg:
    """SQLite database location (repocontext.yaml: database:)."""

    path: str = str(_GLOBAL_CONFIG_DIR / "repocontext.db")


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (repocontext.yaml: embedding:).

    The dimension must match every vector already stored in the database.
    """

    model: str = "ollama/nomic-embed-text"
    dimensions: int = EMBEDDING_DIMENSIONS
    batch_size: int = 8
    timeout: float = 60.0


@dataclass
class ExpansionCfg:
    """Query expansion configuration (repocontext.yaml: expansion:)."""

    model: str = "anthropic/claude-3-haiku-20240307"
    enabled: bool = True
    max_terms: int = 5
    timeout: float = 30.0


@dataclass
class DocumentationCfg:
    """Per-file documentation generation (repocontext.yaml: documentation:)."""

    model: str = "anthropic/claude-3-5-haiku-20241022"
    max_tokens: int = 2_000
    timeout: float = 120.0


@dataclass
class SearchCfg:
    """Default hybrid search options (repocontext.yaml: search:)."""

    top_k: int = 5
    context_chunks: int = 2
    weight_fts: float = 1.0
    weight_vector: float = 1.0
    min_score: float = 0.1


@dataclass
class ServerCfg:
    """Local HTTP API binding (repocontext.yaml: server:)."""

    host: str = "127.0.0.1"
    port: int = 7845


@dataclass
class IndexingCfg:
    """Repository scan pacing (repocontext.yaml: indexing:)."""

    batch_size: int = 10
    batch_pause: float = 0.1


@dataclass
class RepoContextConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    database: DatabaseCfg = field(default_factory=DatabaseCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    expansion: ExpansionCfg = field(default_factory=ExpansionCfg)
    documentation: DocumentationCfg = field(default_factory=DocumentationCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    server: ServerCfg = field(default_factory=ServerCfg)
    indexing: IndexingCfg = field(default_factory=IndexingCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigurationError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigurationError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in '{path}': {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file '{path}' must contain a mapping at top level.")
    return data


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any]) -> RepoContextConfig:
    """Build a *RepoContextConfig* from a merged raw YAML dict."""
    cfg = RepoContextConfig()

    if "database" in data:
        d = data["database"]
        cfg.database = DatabaseCfg(path=str(d.get("path", cfg.database.path)))

    if "embedding" in data:
        e = data["embedding"]
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
            timeout=float(e.get("timeout", cfg.embedding.timeout)),
        )

    if "expansion" in data:
        x = data["expansion"]
        cfg.expansion = ExpansionCfg(
            model=str(x.get("model", cfg.expansion.model)),
            enabled=bool(x.get("enabled", cfg.expansion.enabled)),
            max_terms=int(x.get("max_terms", cfg.expansion.max_terms)),
            timeout=float(x.get("timeout", cfg.expansion.timeout)),
        )

    if "documentation" in data:
        doc = data["documentation"]
        cfg.documentation = DocumentationCfg(
            model=str(doc.get("model", cfg.documentation.model)),
            max_tokens=int(doc.get("max_tokens", cfg.documentation.max_tokens)),
            timeout=float(doc.get("timeout", cfg.documentation.timeout)),
        )

    if "search" in data:
        s = data["search"]
        cfg.search = SearchCfg(
            top_k=int(s.get("top_k", cfg.search.top_k)),
            context_chunks=int(s.get("context_chunks", cfg.search.context_chunks)),
            weight_fts=float(s.get("weight_fts", cfg.search.weight_fts)),
            weight_vector=float(s.get("weight_vector", cfg.search.weight_vector)),
            min_score=float(s.get("min_score", cfg.search.min_score)),
        )

    if "server" in data:
        srv = data["server"]
        cfg.server = ServerCfg(
            host=str(srv.get("host", cfg.server.host)),
            port=int(srv.get("port", cfg.server.port)),
        )

    if "indexing" in data:
        i = data["indexing"]
        cfg.indexing = IndexingCfg(
            batch_size=int(i.get("batch_size", cfg.indexing.batch_size)),
            batch_pause=float(i.get("batch_pause", cfg.indexing.batch_pause)),
        )

    if cfg.embedding.dimensions < 1:
        raise ConfigurationError(
            f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}"
        )

    return cfg


def _apply_env_overrides(cfg: RepoContextConfig) -> RepoContextConfig:
    """Apply REPOCONTEXT_* environment variable overrides (layer 2)."""
    if path := os.environ.get("REPOCONTEXT_DB"):
        cfg.database.path = path
    if model := os.environ.get("REPOCONTEXT_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("REPOCONTEXT_EXPANSION_MODEL"):
        cfg.expansion.model = model
    if model := os.environ.get("REPOCONTEXT_DOCUMENTATION_MODEL"):
        cfg.documentation.model = model
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> RepoContextConfig:
    """Load and return a merged *RepoContextConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *repocontext.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigurationError: If global config contains API-key-like fields or a
            file is not valid YAML.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)
    return _apply_env_overrides(cfg)


def ensure_global_config(global_config_path: Path | None = None) -> Path:
    """Create ``~/.repocontext/config.yaml`` with defaults if it does not exist.

    Creates the parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# repocontext global configuration — model defaults only.\n"
            "# NEVER store API keys here — use environment variables:\n"
            "#   export ANTHROPIC_API_KEY=sk-ant-...\n"
            "\n"
            "embedding:\n"
            "  model: ollama/nomic-embed-text\n"
            "  dimensions: 768\n"
            "\n"
            "expansion:\n"
            "  model: anthropic/claude-3-haiku-20240307\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
