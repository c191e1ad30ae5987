"""
Process-wide declaration library.

Owns the shared :class:`DeclarationIndex` and loads it at most once: concurrent
``ensure_loaded()`` callers all await the same in-flight task. Parsed indexes are
stored in the disk cache keyed by the content of the sources.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from fx_lsp._analyzer.declaration_indexer import index_declaration_sources
from fx_lsp.cache import DeclarationIndexCache, declaration_index_cache
from fx_lsp.loader import ManifestDeclarationLoader
from fx_lsp.models import DeclarationIndex, DeclarationSource

if TYPE_CHECKING:
    from fx_lsp.popup.protocols import DeclarationLoader

logger = logging.getLogger(__name__)


class DeclarationLibrary:
    """The declaration index plus its one-shot loading task."""

    def __init__(
        self,
        loader: DeclarationLoader | None = None,
        base_urls: Sequence[str] = (),
        cache: DeclarationIndexCache | None = None,
    ):
        self.loader = loader if loader is not None else ManifestDeclarationLoader()
        self.base_urls = list(base_urls)
        self.cache = cache if cache is not None else declaration_index_cache
        self.index = DeclarationIndex()
        self.loaded = False
        self._task: asyncio.Task[DeclarationIndex] | None = None

    @property
    def loading(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def loaded_files(self) -> list[str]:
        return list(self.index.loaded_files)

    def add_base_urls(self, base_urls: Iterable[str]) -> None:
        for base in base_urls:
            if base and base not in self.base_urls:
                self.base_urls.append(base)

    def ingest(self, sources: Iterable[DeclarationSource]) -> DeclarationIndex:
        """Index ``sources`` into the shared index, going through the disk cache."""
        sources = list(sources)
        cache_key = self.cache.get_cache_key(sources)
        parsed = self.cache.get(cache_key)
        if parsed is None:
            parsed = index_declaration_sources(sources)
            self.cache.set(cache_key, parsed)
        else:
            logger.debug(f"Using cached declaration index {cache_key[:12]}")
        self.index.merge(parsed)
        return self.index

    async def _load(self) -> DeclarationIndex:
        try:
            sources = await self.loader.load_declaration_texts(self.base_urls)
            self.ingest(sources)
        except Exception as e:
            logger.debug(f"Declaration loading failed: {e}")
        finally:
            self.loaded = True
        logger.info(f"Declaration library ready ({len(self.index.loaded_files)} file(s))")
        return self.index

    async def ensure_loaded(self) -> DeclarationIndex:
        """Load the library once; later and concurrent calls share the same task."""
        if self._task is None:
            self._task = asyncio.ensure_future(self._load())
        return await self._task

    def reset(self) -> None:
        """Forget the loaded index, e.g. after the cache was cleared."""
        self.index = DeclarationIndex()
        self.loaded = False
        self._task = None


# Global library instance
declaration_library = DeclarationLibrary()
