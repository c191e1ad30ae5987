"""Completion mixin for providing autocompletion functionality."""

from __future__ import annotations

import logging

from lsprotocol.types import (
    CompletionItem,
    CompletionItemKind,
    MarkupContent,
    MarkupKind,
    Position,
    Range,
    TextEdit,
)

from fx_lsp._analyzer.aggregator import compute_suggestions, map_kind
from fx_lsp._analyzer.context_extractor import extract_context, word_before_cursor
from fx_lsp.constants import SCALAR_KINDS
from fx_lsp.models import SuggestionItem

from .base import LSPServerBase

logger = logging.getLogger(__name__)


def completion_item_kind(kind: str | None) -> CompletionItemKind:
    """Map a suggestion kind onto the LSP completion item kind."""
    mapped = map_kind(kind)
    if mapped == "keyword":
        return CompletionItemKind.Keyword
    if mapped == "function":
        return CompletionItemKind.Function
    if mapped == "object":
        return CompletionItemKind.Module
    if mapped in SCALAR_KINDS:
        return CompletionItemKind.Value
    return CompletionItemKind.Variable


class CompletionMixin(LSPServerBase):
    """Provides autocompletion functionality for the LSP server."""

    def _to_completion_item(
        self, item: SuggestionItem, line: int, replace: tuple[int, int], order: int
    ) -> CompletionItem:
        start, end = replace
        documentation = (
            MarkupContent(kind=MarkupKind.Markdown, value=item.documentation)
            if item.documentation
            else None
        )
        return CompletionItem(
            label=item.label,
            kind=completion_item_kind(item.kind),
            detail=item.detail,
            documentation=documentation,
            sort_text=f"{order:04d}",
            filter_text=item.label,
            text_edit=TextEdit(
                range=Range(
                    start=Position(line=line, character=start),
                    end=Position(line=line, character=end),
                ),
                new_text=item.insert_text,
            ),
        )

    def _get_expression_completions(
        self, line_text: str, line: int, character: int
    ) -> list[CompletionItem]:
        """Completions for the expression marker around ``character``, if any."""
        before = line_text[:character]
        context = extract_context(before, self.open_marker, self.close_marker, self.library.index)
        if context is None:
            return []

        items = compute_suggestions(context, self.metadata, self.value_tree, self.library.index)
        start = character - len(word_before_cursor(before))
        logger.debug(f"Completing {context.raw_prefix!r}: {len(items)} item(s)")
        return [
            self._to_completion_item(item, line, (start, character), order)
            for order, item in enumerate(items)
        ]
