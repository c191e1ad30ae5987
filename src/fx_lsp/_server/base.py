"""Base class for LSP server with interface for mixins."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pygls.server import LanguageServer

from fx_lsp.constants import DEFAULT_CLOSE_MARKER, DEFAULT_OPEN_MARKER
from fx_lsp.library import DeclarationLibrary, declaration_library


def _lsp_value(params: Any, key: str, default: Any = None) -> Any:
    """Read ``key`` from LSP params that may be a mapping or an attribute object."""
    if params is None:
        return default
    if isinstance(params, Mapping):
        return params.get(key, default)
    return getattr(params, key, default)


class LSPServerBase(LanguageServer):
    """Base class defining the interface needed by mixins.

    Holds the completion inputs the client configures: metadata map, value
    tree, expression markers and the declaration library.
    """

    def __init__(self, *args, library: DeclarationLibrary | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.library = library if library is not None else declaration_library
        self.metadata: dict[str, Any] = {}
        self.value_tree: Any = {}
        self.open_marker = DEFAULT_OPEN_MARKER
        self.close_marker = DEFAULT_CLOSE_MARKER
        self.document_cache: dict[str, dict[str, Any]] = {}

    def configure(self, options: Any) -> None:
        """Apply ``initializationOptions`` or an ``fx/setContext`` payload."""
        metadata = _lsp_value(options, "metadata")
        if isinstance(metadata, Mapping):
            self.metadata = dict(metadata)
        context = _lsp_value(options, "context")
        if context is not None:
            self.value_tree = context
        markers = _lsp_value(options, "markers")
        if markers is not None:
            open_marker = _lsp_value(markers, "open") or self.open_marker
            close_marker = _lsp_value(markers, "close") or self.close_marker
            self.open_marker, self.close_marker = open_marker, close_marker
        declaration_paths = _lsp_value(options, "declarationPaths")
        if declaration_paths:
            self.library.add_base_urls(str(path) for path in declaration_paths)

    def get_line(self, uri: str, line: int) -> str | None:
        """Text of line ``line`` of a cached document."""
        if uri not in self.document_cache:
            return None
        lines = self.document_cache[uri]["content"].split("\n")
        if line >= len(lines):
            return None
        return lines[line]
