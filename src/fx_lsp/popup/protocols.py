"""Protocols for the collaborators the popup talks to."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from fx_lsp.models import CompletionEntry, DeclarationSource, PixelPosition

KeyHandler = Callable[[str], bool]
"""Receives a key name; returns True when the key was consumed."""


class EditorProtocol(Protocol):
    """The code editor widget, seen from the popup.

    Positions are zero-based columns on the cursor line.
    """

    def get_text_before_cursor(self) -> str:
        """Cursor line up to the cursor."""
        ...

    def get_text_after_cursor(self) -> str:
        """Cursor line from the cursor to the end of the line."""
        ...

    def get_cursor_pixel_position(self) -> PixelPosition | None: ...

    def get_buffer_uri(self) -> str: ...

    def get_cursor_offset(self) -> int:
        """Cursor offset into the whole buffer, as the worker expects it."""
        ...

    def replace_range(self, start: int, end: int, text: str) -> None: ...

    def set_cursor(self, position: int) -> None: ...

    def on_key_down(self, handler: KeyHandler) -> None: ...

    def on_content_changed(self, handler: Callable[[], None]) -> None: ...

    def on_blur(self, handler: Callable[[], None]) -> None: ...


class CompletionWorker(Protocol):
    """Language-service worker answering completion queries."""

    def get_completions(
        self, buffer_uri: str, offset: int
    ) -> Awaitable[Sequence[CompletionEntry | Mapping[str, Any]]]: ...


class DeclarationLoader(Protocol):
    """Source of raw declaration texts."""

    def load_declaration_texts(
        self, candidate_base_urls: Iterable[str]
    ) -> Awaitable[list[DeclarationSource]]: ...
