"""
Popup state machine.

The controller owns the :class:`PopupState` the host renders. It reacts to
editor events (key presses, content changes, blur), recomputes suggestions
synchronously, merges worker results as they arrive and applies commits
through the editor collaborator. States:

- closed: ``state.open`` is False
- open: a list of suggestions with keyboard navigation
- open signature: a single signature item for an empty call; only Escape is
  handled
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from fx_lsp._analyzer.aggregator import (
    compute_suggestions,
    is_generic_detail,
    resolve_call_signature,
)
from fx_lsp._analyzer.context_extractor import extract_context, word_before_cursor
from fx_lsp._analyzer.value_inspector import (
    DEFAULT_GLOBALS,
    WellKnownGlobals,
    format_inline_preview,
    preview_entries,
    resolve_value,
)
from fx_lsp.constants import (
    DEFAULT_CLOSE_MARKER,
    DEFAULT_OPEN_MARKER,
    KEY_ARROW_DOWN,
    KEY_ARROW_UP,
    KEY_ENTER,
    KEY_ESCAPE,
    KEY_TAB,
    LIST_WIDTH,
    POPUP_GAP,
    POPUP_MIN_LEFT,
    POPUP_TOP_OFFSET,
    PREVIEW_WIDTH,
)
from fx_lsp.library import DeclarationLibrary
from fx_lsp.models import (
    Anchor,
    CompletionEntry,
    DeclarationIndex,
    DocEntry,
    ExpressionContext,
    PixelPosition,
    PopupState,
    ReplaceRange,
    SuggestionItem,
)

from .enrichment import EnrichmentCoordinator, merge_worker_entries
from .protocols import CompletionWorker, EditorProtocol

logger = logging.getLogger(__name__)

StateListener = Callable[[PopupState], None]


@dataclass
class ValuePreview:
    """Rendering of the value behind the active item."""

    summary: str
    entries: list[tuple[str, str]] = field(default_factory=list)


def compute_anchor(position: PixelPosition, signature_only: bool) -> Anchor:
    """Place the popup below the caret with the preview pane to its left.

    The left edge is clamped so the whole popup stays inside the editor.
    """
    total_width = PREVIEW_WIDTH if signature_only else PREVIEW_WIDTH + POPUP_GAP + LIST_WIDTH
    left = position.viewport_left + position.left - PREVIEW_WIDTH - POPUP_GAP
    if position.viewport_right is not None:
        left = min(left, position.viewport_right - total_width)
    top = position.top + position.height + POPUP_TOP_OFFSET
    return Anchor(top=top, left=max(POPUP_MIN_LEFT, left))


class PopupController:
    """Drives the suggestion popup for one editor.

    Args:
        editor: Editor collaborator
        metadata: Host metadata, ``full path -> {kind, detail, documentation, appendDot}``
        value_tree: Live context values
        library: Declaration library; loaded lazily on first use
        worker: Language-service worker used for background enrichment
        on_commit: Called with the committed item
    """

    def __init__(
        self,
        editor: EditorProtocol,
        metadata: Mapping[str, Any] | None = None,
        value_tree: Any = None,
        library: DeclarationLibrary | None = None,
        worker: CompletionWorker | None = None,
        open_marker: str = DEFAULT_OPEN_MARKER,
        close_marker: str = DEFAULT_CLOSE_MARKER,
        globals_table: WellKnownGlobals | None = None,
        on_commit: Callable[[SuggestionItem], None] | None = None,
        auto_close_markers: bool = True,
    ):
        if not open_marker or not close_marker:
            raise ValueError("Expression markers must be non-empty strings")
        self.editor = editor
        self.metadata = dict(metadata or {})
        self.value_tree = value_tree
        self.library = library
        self.open_marker = open_marker
        self.close_marker = close_marker
        self.globals_table = globals_table if globals_table is not None else DEFAULT_GLOBALS
        self.on_commit = on_commit
        self.auto_close_markers = auto_close_markers
        self.state = PopupState()
        self._enrichment = EnrichmentCoordinator(worker) if worker is not None else None
        # State shown if a worker response arrives while the sync list was empty
        self._pending_state: PopupState | None = None
        self._listeners: list[StateListener] = []
        self._library_task: asyncio.Future[Any] | None = None

    # Wiring

    def attach(self) -> None:
        """Register the controller's handlers with the editor."""
        self.editor.on_key_down(self.handle_key)
        self.editor.on_content_changed(self.handle_content_changed)
        self.editor.on_blur(self.close)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with a snapshot after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_context(self, metadata: Mapping[str, Any] | None = None, value_tree: Any = None) -> None:
        """Replace metadata and values; an open popup is refreshed."""
        if metadata is not None:
            self.metadata = dict(metadata)
        if value_tree is not None:
            self.value_tree = value_tree
        if self.state.open:
            self.recompute(preserve_selection=True)

    @property
    def index(self) -> DeclarationIndex:
        return self.library.index if self.library is not None else DeclarationIndex()

    @property
    def enrichment(self) -> EnrichmentCoordinator | None:
        return self._enrichment

    # State

    def _set_state(self, state: PopupState) -> None:
        self.state = state
        snapshot = state.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    def close(self) -> None:
        """Close the popup and invalidate in-flight worker queries."""
        if self._enrichment is not None:
            self._enrichment.invalidate()
        self._pending_state = None
        if self.state.open:
            self._set_state(PopupState())

    cancel = close

    # Events

    def handle_content_changed(self) -> None:
        if self.auto_close_markers:
            self._auto_close_marker()
        self.recompute(preserve_selection=True)

    def _auto_close_marker(self) -> None:
        """Insert ``" " + close_marker`` when an open marker was just completed."""
        before = self.editor.get_text_before_cursor()
        if not before.endswith(self.open_marker):
            return
        after = self.editor.get_text_after_cursor()
        if after.lstrip(" ").startswith(self.close_marker):
            return
        cursor = len(before)
        self.editor.replace_range(cursor, cursor, f" {self.close_marker}")
        self.editor.set_cursor(cursor)

    def handle_key(self, key: str) -> bool:
        """Handle a key press. Returns True when the key was consumed."""
        state = self.state
        if not state.open or not state.items:
            return False

        if key == KEY_ESCAPE:
            self.close()
            return True
        if state.signature_only:
            return False

        count = len(state.items)
        if key == KEY_ARROW_DOWN:
            self._set_active((state.active_index + 1) % count)
            return True
        if key == KEY_ARROW_UP:
            self._set_active((state.active_index - 1 + count) % count)
            return True
        if key in (KEY_ENTER, KEY_TAB):
            self.commit()
            return True
        return False

    def _set_active(self, index: int) -> None:
        state = self.state.snapshot()
        state.active_index = index
        self._set_state(state)

    def commit(self) -> SuggestionItem | None:
        """Apply the active item to the editor and close."""
        item = self.state.active_item
        if item is None:
            return None
        replace_range = self.state.replace_range
        if replace_range is None:
            cursor = len(self.editor.get_text_before_cursor())
            replace_range = ReplaceRange(cursor, cursor)

        self.editor.replace_range(replace_range.start, replace_range.end, item.insert_text)
        self.editor.set_cursor(replace_range.start + len(item.insert_text))
        self.close()
        if self.on_commit is not None:
            self.on_commit(item)
        if item.append_dot or item.insert_text.endswith("."):
            self.recompute()
        return item

    # Recompute

    def _ensure_library(self) -> None:
        library = self.library
        if library is None or library.loaded or self._library_task is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, declaration library stays unloaded")
            return
        self._library_task = loop.create_task(library.ensure_loaded())
        self._library_task.add_done_callback(self._on_library_loaded)

    def _on_library_loaded(self, task: asyncio.Future[Any]) -> None:
        self._library_task = None
        if task.cancelled():
            return
        if self.state.open:
            self.recompute(preserve_selection=True)

    def recompute(self, preserve_selection: bool = False) -> None:
        """Re-derive the popup from the editor's current line."""
        before = self.editor.get_text_before_cursor()
        context = extract_context(before, self.open_marker, self.close_marker, self.index)
        if context is None:
            self.close()
            return

        self._ensure_library()
        items = compute_suggestions(
            context, self.metadata, self.value_tree, self.index, self.globals_table
        )

        position = self.editor.get_cursor_pixel_position()
        if position is None:
            self.close()
            return

        cursor = len(before)
        active_index = 0
        previous = self.state.active_item if preserve_selection else None
        if previous is not None:
            labels = [item.label for item in items]
            if previous.label in labels:
                active_index = labels.index(previous.label)

        next_state = PopupState(
            open=True,
            items=items,
            active_index=active_index,
            anchor=compute_anchor(position, context.is_empty_call),
            replace_range=ReplaceRange(cursor - len(word_before_cursor(before)), cursor),
            signature_only=context.is_empty_call,
        )
        self._pending_state = next_state
        if items:
            self._set_state(next_state)
        elif self.state.open:
            self._set_state(PopupState())

        if self._enrichment is None:
            return
        if context.has_dot and not context.is_empty_call:
            self._enrichment.request(
                context,
                self.editor.get_buffer_uri(),
                self.editor.get_cursor_offset(),
                self._apply_worker_entries,
            )
        else:
            # Queries issued for an earlier dotted prefix no longer apply
            self._enrichment.invalidate()

    def _apply_worker_entries(
        self, request_id: int, context: ExpressionContext, entries: list[CompletionEntry]
    ) -> None:
        if self._enrichment is None or not self._enrichment.is_current(request_id):
            return
        base_state = self.state if self.state.open else self._pending_state
        if base_state is None or base_state.signature_only:
            return
        merged = merge_worker_entries(base_state.items, entries, context)
        if merged is None:
            return

        next_state = base_state.snapshot()
        next_state.open = True
        next_state.items = merged
        next_state.active_index = 0
        active = self.state.active_item
        if active is not None:
            for i, item in enumerate(merged):
                if item.label == active.label:
                    next_state.active_index = i
                    break
        next_state.active_index = min(next_state.active_index, len(merged) - 1)
        self._set_state(next_state)

    # Detail pane

    def active_details(self) -> DocEntry | None:
        """Detail and documentation of the active item, upgraded from the index."""
        item = self.state.active_item
        if item is None:
            return None
        details = DocEntry(detail=item.detail, documentation=item.documentation)
        if not is_generic_detail(item.detail) and item.documentation:
            return details

        if self.state.signature_only:
            indexed = resolve_call_signature(
                item.full_path, self.metadata, self.value_tree, self.index, self.globals_table
            )
        else:
            indexed = self.index.doc_for_path(item.full_path)
        if indexed is None:
            return details
        return DocEntry(
            detail=indexed.detail if is_generic_detail(item.detail) and indexed.detail else item.detail,
            documentation=item.documentation or indexed.documentation,
        )

    def active_preview(self) -> ValuePreview | None:
        """Rendering of the value at the active item's path."""
        item = self.state.active_item
        if item is None or self.state.signature_only:
            return None
        value = resolve_value(item.full_path, self.value_tree, self.globals_table)
        return ValuePreview(summary=format_inline_preview(value), entries=preview_entries(value))
