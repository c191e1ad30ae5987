"""Tests for the shared declaration library."""

from __future__ import annotations

import asyncio

import pytest

from fx_lsp.cache import DeclarationIndexCache
from fx_lsp.library import DeclarationLibrary


@pytest.fixture
def enabled_cache(tmp_path, monkeypatch):
    monkeypatch.delenv("FX_LSP_DISABLE_CACHE", raising=False)
    return DeclarationIndexCache(tmp_path / "cache")


class TestEnsureLoaded:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_load(self, make_loader):
        loader = make_loader()
        library = DeclarationLibrary(loader=loader)
        first, second = await asyncio.gather(library.ensure_loaded(), library.ensure_loaded())

        assert first is second is library.index
        assert len(loader.calls) == 1
        assert library.loaded
        assert not library.loading
        assert library.loaded_files == ["lib.es5.d.ts"]
        assert "max" in library.index.members_by_type["Math"]

        await library.ensure_loaded()
        assert len(loader.calls) == 1

    @pytest.mark.asyncio
    async def test_loader_failure_still_marks_loaded(self, make_loader):
        library = DeclarationLibrary(loader=make_loader(error=OSError("network down")))
        index = await library.ensure_loaded()
        assert library.loaded
        assert index.is_empty

    @pytest.mark.asyncio
    async def test_malformed_source_is_skipped(self, make_loader, sample_declarations):
        loader = make_loader(
            [
                {"filename": "lib.broken.d.ts", "content": 123},
                {"filename": "lib.es5.d.ts", "content": sample_declarations},
            ]
        )
        library = DeclarationLibrary(loader=loader)
        await library.ensure_loaded()
        assert library.loaded_files == ["lib.es5.d.ts"]

    @pytest.mark.asyncio
    async def test_base_urls_are_passed_to_loader(self, make_loader):
        loader = make_loader()
        library = DeclarationLibrary(loader=loader, base_urls=["/srv/app"])
        library.add_base_urls(["/srv/app", "", "https://cdn.example.com/"])
        await library.ensure_loaded()
        assert loader.calls == [["/srv/app", "https://cdn.example.com/"]]

    @pytest.mark.asyncio
    async def test_reset_allows_reload(self, make_loader):
        loader = make_loader()
        library = DeclarationLibrary(loader=loader)
        await library.ensure_loaded()
        library.reset()
        assert not library.loaded
        assert library.index.is_empty

        await library.ensure_loaded()
        assert len(loader.calls) == 2
        assert not library.index.is_empty


class TestIngest:
    def test_ingest_merges(self, sample_declarations):
        library = DeclarationLibrary(loader=None)
        library.ingest([{"filename": "lib.es5.d.ts", "content": sample_declarations}])
        library.ingest([{"filename": "lib.extra.d.ts", "content": "interface Math { tau: number; }"}])
        assert library.index.members_by_type["Math"] == {"E", "max", "min", "tau"}
        assert library.loaded_files == ["lib.es5.d.ts", "lib.extra.d.ts"]

    def test_parsed_index_is_cached(self, enabled_cache, sample_declarations):
        sources = [{"filename": "lib.es5.d.ts", "content": sample_declarations}]
        DeclarationLibrary(loader=None, cache=enabled_cache).ingest(sources)
        assert len(enabled_cache.entries()) == 1

        cached = enabled_cache.get(enabled_cache.get_cache_key(sources))
        assert cached is not None
        assert cached.members_by_type["Math"] == {"E", "max", "min"}

        restored = DeclarationLibrary(loader=None, cache=enabled_cache).ingest(sources)
        assert restored.docs_by_member["Math.max"] == cached.docs_by_member["Math.max"]
