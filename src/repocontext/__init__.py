"""repocontext — local hybrid search over code repositories."""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("repocontext")
except importlib.metadata.PackageNotFoundError:
    __version__ = "dev"
