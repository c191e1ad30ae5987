from __future__ import annotations

import asyncio
import logging
from typing import Any

from lsprotocol.types import (
    INITIALIZE,
    INITIALIZED,
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    CompletionList,
    CompletionOptions,
    CompletionParams,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    InitializedParams,
    InitializeParams,
    Range,
    TextDocumentSyncKind,
)

from fx_lsp._version import __version__
from fx_lsp.library import DeclarationLibrary

from .completion import CompletionMixin

logger = logging.getLogger(__name__)

SET_CONTEXT = "fx/setContext"


def _position_to_offset(lines: list[str], line: int, character: int) -> int:
    if line >= len(lines):
        return sum(len(text) + 1 for text in lines) - 1
    return sum(len(text) + 1 for text in lines[:line]) + min(character, len(lines[line]))


def apply_content_change(content: str, text: str, change_range: Range | None) -> str:
    """Apply one ``didChange`` content change to ``content``."""
    if change_range is None:
        # Full document change
        return text
    lines = content.split("\n")
    start = _position_to_offset(lines, change_range.start.line, change_range.start.character)
    end = _position_to_offset(lines, change_range.end.line, change_range.end.character)
    return content[:start] + text + content[max(start, end) :]


class FxLanguageServer(CompletionMixin):
    """Language server completing ``{{ ... }}`` expressions in template documents."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._load_task: asyncio.Task[Any] | None = None

    def _update_document(self, uri: str, content: str) -> None:
        self.document_cache[uri] = {"content": content}

    def start_library_load(self) -> asyncio.Task[Any] | None:
        """Start the declaration load in the background, once."""
        if self.library.loaded or self._load_task is not None:
            return self._load_task
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, declaration load postponed")
            return None
        self._load_task = loop.create_task(self.library.ensure_loaded())
        return self._load_task


def create_server(
    library: DeclarationLibrary | None = None,
    open_marker: str | None = None,
    close_marker: str | None = None,
) -> FxLanguageServer:
    """Build a language server with its features registered."""
    server = FxLanguageServer(
        "fx-lsp", __version__, text_document_sync_kind=TextDocumentSyncKind.Incremental, library=library
    )
    if open_marker:
        server.open_marker = open_marker
    if close_marker:
        server.close_marker = close_marker

    @server.feature(INITIALIZE)
    def initialize(params: InitializeParams) -> None:
        """Initialize the language server."""
        logger.info("Initializing fx-lsp server")
        if params.initialization_options:
            server.configure(params.initialization_options)
        logger.info(
            f"Markers: {server.open_marker} {server.close_marker}, "
            f"{len(server.metadata)} metadata path(s)"
        )

    @server.feature(INITIALIZED)
    async def initialized(params: InitializedParams) -> None:
        """Start loading declarations once the client is ready."""
        server.start_library_load()

    @server.feature(TEXT_DOCUMENT_DID_OPEN)
    def did_open(params: DidOpenTextDocumentParams) -> None:
        """Handle document open event."""
        uri = params.text_document.uri
        server._update_document(uri, params.text_document.text)
        logger.info(f"Opened document: {uri}")

    @server.feature(TEXT_DOCUMENT_DID_CHANGE)
    def did_change(params: DidChangeTextDocumentParams) -> None:
        """Handle document change event."""
        uri = params.text_document.uri
        content = server.document_cache.get(uri, {}).get("content", "")
        for change in params.content_changes:
            content = apply_content_change(content, change.text, getattr(change, "range", None))
        server._update_document(uri, content)

    @server.feature(TEXT_DOCUMENT_DID_CLOSE)
    def did_close(params: DidCloseTextDocumentParams) -> None:
        server.document_cache.pop(params.text_document.uri, None)

    @server.feature(
        TEXT_DOCUMENT_COMPLETION,
        CompletionOptions(trigger_characters=[".", "(", "{"]),
    )
    def completion(params: CompletionParams) -> CompletionList:
        """Provide completion suggestions."""
        uri = params.text_document.uri
        position = params.position
        line_text = server.get_line(uri, position.line)
        if line_text is None:
            return CompletionList(is_incomplete=False, items=[])

        server.start_library_load()
        items = server._get_expression_completions(line_text, position.line, position.character)
        # Incomplete until declarations are in, so clients ask again
        return CompletionList(is_incomplete=not server.library.loaded, items=items)

    @server.feature(SET_CONTEXT)
    def set_context(params: Any) -> None:
        """Replace metadata and context values at runtime."""
        server.configure(params)
        logger.debug(f"Context updated: {len(server.metadata)} metadata path(s)")

    return server

