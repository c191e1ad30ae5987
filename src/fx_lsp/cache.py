"""Cache management for parsed declaration indexes."""

from __future__ import annotations

import hashlib
import json
import logging
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import platformdirs

from fx_lsp._version import __version__
from fx_lsp.constants import ENV_DISABLE_CACHE
from fx_lsp.models import DeclarationIndex

logger = logging.getLogger(__name__)


class DeclarationIndexCache:
    """Cache for declaration indexes using platformdirs.

    Entries are keyed by the content of the declaration sources, so a changed
    ``lib.*.d.ts`` file simply produces a new entry.
    """

    def __init__(self, cache_dir: Path | str | None = None):
        self.cache_dir = Path(cache_dir or platformdirs.user_cache_dir("fx-lsp", "fx-lsp"))

    @property
    def caching_enabled(self) -> bool:
        # Read on every access so tests can toggle it with monkeypatch
        return os.getenv(ENV_DISABLE_CACHE, "").lower() not in ("1", "true", "yes")

    def get_cache_key(self, sources: Iterable[Mapping[str, str]]) -> str:
        """Generate a cache key from the filenames and contents of the sources."""
        digest = hashlib.sha256(f"fx-lsp:{__version__}".encode())
        for source in sorted(sources, key=lambda s: s.get("filename", "")):
            digest.update(source.get("filename", "").encode())
            digest.update(b"\0")
            digest.update(str(source.get("content") or "").encode())
            digest.update(b"\0")
        return digest.hexdigest()

    def _get_cache_path(self, cache_key: str) -> Path:
        return self.cache_dir / f"{cache_key}.json"

    def get(self, cache_key: str) -> DeclarationIndex | None:
        """Get a cached index, or None when missing, unreadable or disabled."""
        if not self.caching_enabled:
            return None

        cache_path = self._get_cache_path(cache_key)
        if not cache_path.exists():
            return None

        try:
            with cache_path.open("r", encoding="utf-8") as f:
                data: dict[str, Any] = json.load(f)
            return DeclarationIndex.from_dict(data)
        except (json.JSONDecodeError, OSError, AttributeError, TypeError) as e:
            logger.debug(f"Failed to read declaration cache {cache_path.name}: {e}")
            return None

    def set(self, cache_key: str, index: DeclarationIndex) -> None:
        """Store an index under ``cache_key``."""
        if not self.caching_enabled:
            return

        cache_path = self._get_cache_path(cache_key)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with cache_path.open("w", encoding="utf-8") as f:
                json.dump(index.to_dict(), f, indent=2)
        except OSError as e:
            logger.debug(f"Failed to write declaration cache {cache_path.name}: {e}")

    def entries(self) -> list[Path]:
        if not self.cache_dir.exists():
            return []
        return sorted(self.cache_dir.glob("*.json"))

    def clear(self, cache_key: str | None = None) -> int:
        """Clear one entry or the whole cache. Returns the number of files removed."""
        if cache_key:
            targets = [self._get_cache_path(cache_key)]
        else:
            targets = self.entries()
        removed = 0
        for cache_file in targets:
            if cache_file.exists():
                cache_file.unlink()
                removed += 1
        return removed


# Global cache instance
declaration_index_cache = DeclarationIndexCache()
