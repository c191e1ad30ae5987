"""Mixins and handlers for the fx Language Server."""

from __future__ import annotations

from .completion import CompletionMixin, completion_item_kind
from .server import FxLanguageServer, apply_content_change, create_server

__all__ = [
    "CompletionMixin",
    "FxLanguageServer",
    "apply_content_change",
    "completion_item_kind",
    "create_server",
]
