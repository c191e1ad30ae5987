"""fx-lsp: completion engine for ``{{ ... }}`` template expressions."""

from __future__ import annotations

from ._analyzer.aggregator import compute_suggestions
from ._analyzer.context_extractor import extract_context
from ._analyzer.declaration_indexer import DeclarationIndex, parse_declarations
from ._version import __version__

__all__ = [
    "DeclarationIndex",
    "__version__",
    "compute_suggestions",
    "extract_context",
    "parse_declarations",
]
