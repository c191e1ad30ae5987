"""
Analyzer package - the text and value analysis behind suggestions.

The context extractor and declaration indexer are pure text processing; the
value inspector and aggregator combine their output with host supplied data.
"""

from __future__ import annotations

from .aggregator import compute_suggestions, resolve_call_signature
from .context_extractor import extract_context
from .declaration_indexer import DeclarationIndex, index_declaration_sources, parse_declarations
from .value_inspector import WellKnownGlobals

__all__ = [
    "DeclarationIndex",
    "WellKnownGlobals",
    "compute_suggestions",
    "extract_context",
    "index_declaration_sources",
    "parse_declarations",
    "resolve_call_signature",
]
