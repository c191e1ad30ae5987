"""Tests for worker result merging and request ordering."""

from __future__ import annotations

import asyncio

import pytest

from fx_lsp._analyzer.context_extractor import extract_context
from fx_lsp.models import CompletionEntry, SuggestionItem
from fx_lsp.popup import EnrichmentCoordinator, merge_worker_entries


class GatedWorker:
    """Worker whose responses are released one gate at a time."""

    def __init__(self):
        self.gates: list[asyncio.Event] = []

    async def get_completions(self, buffer_uri, offset):
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        return [{"name": f"entry{offset}"}]


class TestMergeWorkerEntries:
    def test_patch_and_append(self):
        context = extract_context("{{ a.b")
        items = [SuggestionItem(label="bar", insert_text="bar", full_path="a.bar", kind="number")]
        entries = [
            {"name": "bar", "source": "lib", "data": {"x": 1}},
            {"name": "baz", "insertText": "baz()", "kind": "method"},
            {"name": "qux"},
            {"name": ""},
            CompletionEntry(name="baz", kind="property"),
        ]

        merged = merge_worker_entries(items, entries, context)
        assert [item.label for item in merged] == ["bar", "baz"]
        bar, baz = merged
        assert bar.source == "js"
        assert bar.kind == "number"
        assert bar.completion_source == "lib"
        assert bar.completion_data == {"x": 1}
        assert baz.insert_text == "baz()"
        assert baz.kind == baz.detail == "method"
        assert baz.full_path == "a.baz"
        assert items[0].source == "context"

    def test_nothing_new(self):
        context = extract_context("{{ a.b")
        assert merge_worker_entries([], [{"name": "other"}], context) is None
        assert merge_worker_entries([], [], context) is None

    def test_root_paths(self):
        context = extract_context("{{ 'x'.")
        merged = merge_worker_entries([], [{"name": "at"}], context)
        assert merged[0].full_path == "String.at"

    def test_result_is_sorted(self):
        context = extract_context("{{ a.")
        items = [SuggestionItem(label="m", insert_text="m", full_path="a.m")]
        merged = merge_worker_entries(items, [{"name": "Z"}, {"name": "a"}], context)
        assert [item.label for item in merged] == ["a", "m", "Z"]


class TestEnrichmentCoordinator:
    def test_request_without_loop(self):
        coordinator = EnrichmentCoordinator(GatedWorker())
        context = extract_context("{{ a.")
        assert coordinator.request(context, "uri", 5, lambda *args: None) is None
        assert coordinator.latest_request_id == 1

    def test_invalidate(self):
        coordinator = EnrichmentCoordinator(GatedWorker())
        coordinator.invalidate()
        assert coordinator.latest_request_id == 1
        assert coordinator.is_current(1)
        assert not coordinator.is_current(0)

    @pytest.mark.asyncio
    async def test_only_latest_response_is_delivered(self):
        worker = GatedWorker()
        coordinator = EnrichmentCoordinator(worker)
        context = extract_context("{{ a.")
        results = []

        def on_result(request_id, ctx, entries):
            results.append((request_id, [entry.name for entry in entries]))

        coordinator.request(context, "uri", 1, on_result)
        coordinator.request(context, "uri", 2, on_result)
        await asyncio.sleep(0)
        assert len(worker.gates) == 2

        # Release the newest first, then the stale one
        worker.gates[1].set()
        worker.gates[0].set()
        await coordinator.drain()
        assert results == [(2, ["entry2"])]

    @pytest.mark.asyncio
    async def test_failures_are_swallowed(self):
        class FailingWorker:
            async def get_completions(self, buffer_uri, offset):
                raise ConnectionError("worker gone")

        coordinator = EnrichmentCoordinator(FailingWorker())
        results = []
        coordinator.request(extract_context("{{ a."), "uri", 1, lambda *args: results.append(args))
        await coordinator.drain()
        assert results == []

    @pytest.mark.asyncio
    async def test_none_response_delivers_empty_list(self):
        class EmptyWorker:
            async def get_completions(self, buffer_uri, offset):
                return None

        coordinator = EnrichmentCoordinator(EmptyWorker())
        results = []
        coordinator.request(
            extract_context("{{ a."), "uri", 1, lambda rid, ctx, entries: results.append(entries)
        )
        await coordinator.drain()
        assert results == [[]]
