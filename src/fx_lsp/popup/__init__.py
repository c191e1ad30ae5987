"""Suggestion popup: state machine, worker enrichment and collaborator protocols."""

from __future__ import annotations

from .controller import PopupController, ValuePreview, compute_anchor
from .enrichment import EnrichmentCoordinator, merge_worker_entries
from .protocols import CompletionWorker, DeclarationLoader, EditorProtocol

__all__ = [
    "CompletionWorker",
    "DeclarationLoader",
    "EditorProtocol",
    "EnrichmentCoordinator",
    "PopupController",
    "ValuePreview",
    "compute_anchor",
    "merge_worker_entries",
]
