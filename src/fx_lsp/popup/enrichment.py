"""
Background enrichment from the language-service worker.

Every query gets a fresh, strictly increasing request id. Only the response to
the latest id is handed back; older responses are dropped without touching any
state. Closing the popup bumps the id so in-flight queries become stale too.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from fx_lsp._analyzer.aggregator import sort_suggestions
from fx_lsp.models import CompletionEntry, ExpressionContext, SuggestionItem

from .protocols import CompletionWorker

logger = logging.getLogger(__name__)

ResultHandler = Callable[[int, ExpressionContext, list[CompletionEntry]], None]


def merge_worker_entries(
    items: Sequence[SuggestionItem],
    entries: Iterable[CompletionEntry | Mapping[str, Any]],
    context: ExpressionContext,
) -> list[SuggestionItem] | None:
    """Merge worker entries into ``items``.

    Entries not starting with the segment prefix are ignored. Entries whose label
    already exists patch that item; the rest are appended as ``js`` items.

    Returns:
        The merged, sorted list, or None when the entries change nothing
    """
    existing = {item.label for item in items}
    updates: dict[str, CompletionEntry] = {}
    additions: dict[str, SuggestionItem] = {}
    for raw in entries:
        entry = CompletionEntry.from_value(raw)
        if entry is None:
            continue
        label = entry.name
        if context.segment_prefix and not label.startswith(context.segment_prefix):
            continue
        if label in existing:
            updates.setdefault(label, entry)
            continue
        if label in additions:
            continue
        additions[label] = SuggestionItem(
            label=label,
            insert_text=entry.insert_text or label,
            full_path=f"{context.base_path}.{label}" if context.base_path else label,
            kind=entry.kind,
            detail=entry.kind,
            source="js",
            completion_source=entry.source,
            completion_data=entry.data,
        )

    if not updates and not additions:
        return None

    patched = [
        dataclasses.replace(
            item,
            source="js",
            completion_source=updates[item.label].source,
            completion_data=updates[item.label].data,
        )
        if item.label in updates
        else item
        for item in items
    ]
    return sort_suggestions([*patched, *additions.values()])


class EnrichmentCoordinator:
    """Issues worker queries and hands back only the latest response."""

    def __init__(self, worker: CompletionWorker):
        self.worker = worker
        self._latest_request_id = 0
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def latest_request_id(self) -> int:
        return self._latest_request_id

    def is_current(self, request_id: int) -> bool:
        return request_id == self._latest_request_id

    def invalidate(self) -> None:
        """Make every in-flight request stale."""
        self._latest_request_id += 1

    async def query(
        self,
        request_id: int,
        context: ExpressionContext,
        buffer_uri: str,
        offset: int,
        on_result: ResultHandler,
    ) -> None:
        try:
            raw_entries = await self.worker.get_completions(buffer_uri, offset)
        except Exception as e:
            logger.debug(f"Completion worker failed for request {request_id}: {e}")
            return

        if not self.is_current(request_id):
            logger.debug(f"Discarding stale completion response {request_id}")
            return

        entries = [
            entry
            for entry in (CompletionEntry.from_value(raw) for raw in raw_entries or ())
            if entry is not None
        ]
        on_result(request_id, context, entries)

    def request(
        self,
        context: ExpressionContext,
        buffer_uri: str,
        offset: int,
        on_result: ResultHandler,
    ) -> asyncio.Task[None] | None:
        """Start a query in the background. Returns None outside an event loop."""
        self._latest_request_id += 1
        request_id = self._latest_request_id
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, skipping completion enrichment")
            return None
        task = loop.create_task(self.query(request_id, context, buffer_uri, offset, on_result))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every in-flight query."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))
