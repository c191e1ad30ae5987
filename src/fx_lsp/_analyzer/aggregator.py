"""
Suggestion aggregation.

Combines the host's metadata map, the live context tree and the declaration
index into one sorted, de-duplicated list of suggestions for an expression
context. Everything here is synchronous and free of side effects.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from fx_lsp.constants import (
    FUNCTION_TYPE_NAMES,
    GENERIC_DETAILS,
    KIND_TYPE_NAMES,
    OBJECT_KINDS,
    PRIMITIVE_TYPE_NAMES,
    SCALAR_KINDS,
    SENSITIVE_MEMBERS,
)
from fx_lsp.models import (
    CompletionMetadata,
    DeclarationIndex,
    DocEntry,
    ExpressionContext,
    MetadataMap,
    SuggestionItem,
    normalize_metadata,
)

from .context_extractor import parse_return_type
from .value_inspector import (
    DEFAULT_GLOBALS,
    UNDEFINED,
    WellKnownGlobals,
    js_type_name,
    member_info,
    placeholder_for_kind,
    resolve_value,
    value_kind,
)

logger = logging.getLogger(__name__)


class _OrderedNames:
    """Insertion-ordered set of type names."""

    def __init__(self, names: Iterable[str] = ()):
        self._names: dict[str, None] = {}
        self.update(names)

    def add(self, name: str | None) -> None:
        if name:
            self._names.setdefault(name, None)

    def update(self, names: Iterable[str]) -> None:
        for name in names:
            self.add(name)

    def __iter__(self):
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)


def map_kind(raw_kind: str | None) -> str:
    """Collapse a metadata kind onto the kinds the popup distinguishes."""
    normalized = (raw_kind or "").lower()
    if normalized in ("keyword", "function"):
        return normalized
    if normalized in OBJECT_KINDS:
        return "object"
    if normalized in SCALAR_KINDS:
        return normalized
    return normalized or "unknown"


def is_generic_detail(detail: str | None) -> bool:
    """True for details such as ``function`` that say nothing about the member."""
    if not detail:
        return True
    return detail.strip().lower() in GENERIC_DETAILS


def _type_name_for_kind(kind: str | None) -> str | None:
    return KIND_TYPE_NAMES.get((kind or "").lower())


def _kind_from_detail(name: str, detail: str | None) -> str | None:
    """Guess a member kind from its documented signature when no value exists."""
    if not detail or not detail.startswith(name):
        return None
    tail = detail[len(name) :].lstrip("?")
    if tail.startswith(("(", "<")):
        return "function"
    return_type = parse_return_type(detail)
    if return_type in PRIMITIVE_TYPE_NAMES:
        return return_type
    return "object" if return_type else None


def _sort_and_dedupe(items: Iterable[SuggestionItem]) -> list[SuggestionItem]:
    unique: dict[str, SuggestionItem] = {}
    for item in items:
        unique.setdefault(item.label, item)
    return sorted(unique.values(), key=lambda item: (item.label.casefold(), item.label))


def sort_suggestions(items: Iterable[SuggestionItem]) -> list[SuggestionItem]:
    """Sort by label, keeping the first item for every label."""
    return _sort_and_dedupe(items)


def _owner_type_candidates(
    owner_path: str,
    metadata: MetadataMap,
    value_tree: Any,
    globals_table: WellKnownGlobals,
) -> _OrderedNames:
    candidates = _OrderedNames()
    owner_meta = metadata.get(owner_path)
    candidates.add(_type_name_for_kind(owner_meta.kind if owner_meta else None))
    owner_value = resolve_value(owner_path, value_tree, globals_table)
    if owner_value is UNDEFINED and owner_meta is not None and owner_meta.kind:
        owner_value = placeholder_for_kind(owner_meta.kind)
    candidates.update(member_info(owner_value, globals_table).type_names)
    candidates.add(owner_path)
    candidates.add(f"{owner_path}Constructor")
    return candidates


def resolve_call_signature(
    call_path: str,
    metadata: Mapping[str, Any] | None,
    value_tree: Any = None,
    index: DeclarationIndex | None = None,
    globals_table: WellKnownGlobals | None = None,
) -> DocEntry | None:
    """Docs for the callable at ``call_path``: indexed docs first, then metadata."""
    meta = normalize_metadata(metadata)
    index = index if index is not None else DeclarationIndex()
    globals_table = globals_table if globals_table is not None else DEFAULT_GLOBALS

    owner_path, _, member = call_path.rpartition(".")
    if not member:
        return None
    if owner_path:
        candidates = _owner_type_candidates(owner_path, meta, value_tree, globals_table)
        doc = index.doc_for_types(candidates, member)
    else:
        doc = index.doc_for_path(call_path)
    if doc is not None:
        return doc

    call_meta = meta.get(call_path)
    if call_meta is None:
        return None
    return DocEntry(detail=call_meta.detail, documentation=call_meta.documentation)


def _signature_item(
    context: ExpressionContext,
    metadata: MetadataMap,
    value_tree: Any,
    index: DeclarationIndex,
    globals_table: WellKnownGlobals,
) -> SuggestionItem:
    call_path = context.call_path or ""
    doc = resolve_call_signature(call_path, metadata, value_tree, index, globals_table)
    return SuggestionItem(
        label=call_path.split(".")[-1] or call_path,
        insert_text="",
        full_path=call_path,
        kind="function",
        detail=doc.detail if doc is not None and doc.detail else "function",
        documentation=doc.documentation if doc is not None else None,
    )


def _metadata_member_items(
    context: ExpressionContext, metadata: MetadataMap
) -> list[SuggestionItem]:
    """Members declared explicitly in the metadata under ``base_path``."""
    context_prefix = f"{context.base_path}."
    items: list[SuggestionItem] = []
    seen: set[str] = set()
    for key in metadata:
        if not key.startswith(context_prefix):
            continue
        next_segment = key[len(context_prefix) :].split(".")[0]
        if not next_segment or next_segment in seen:
            continue
        if context.segment_prefix and not next_segment.startswith(context.segment_prefix):
            continue
        seen.add(next_segment)
        full_path = f"{context_prefix}{next_segment}"
        meta = metadata.get(full_path) or metadata.get(next_segment) or CompletionMetadata()
        append_dot = bool(meta.append_dot)
        items.append(
            SuggestionItem(
                label=next_segment,
                insert_text=f"{next_segment}." if append_dot else next_segment,
                full_path=full_path,
                kind=meta.kind or "object",
                detail=meta.detail,
                documentation=meta.documentation,
                append_dot=append_dot,
            )
        )
    return items


def _introspected_member_items(
    context: ExpressionContext,
    metadata: MetadataMap,
    value_tree: Any,
    index: DeclarationIndex,
    globals_table: WellKnownGlobals,
) -> list[SuggestionItem]:
    """Members of the value at ``base_path``, typed through the declaration index."""
    base_path = context.base_path
    base_meta = metadata.get(base_path)

    value = resolve_value(base_path, value_tree, globals_table)
    if value is UNDEFINED:
        value = placeholder_for_kind(base_meta.kind if base_meta else None)
    info = member_info(value, globals_table)

    use_expression_types = bool(context.expression_types)
    candidates = _OrderedNames(
        context.expression_types if use_expression_types else info.type_names
    )
    if not use_expression_types:
        if base_meta is not None:
            candidates.add(_type_name_for_kind(base_meta.kind))
        last_segment = base_path.split(".")[-1]
        if last_segment:
            candidates.add(last_segment)
            candidates.add(f"{last_segment}Constructor")

    type_members = index.members_for_types(candidates)
    has_non_function_type = any(
        name not in FUNCTION_TYPE_NAMES and not name.endswith("Constructor")
        for name in candidates
    )
    # Documented members beat raw introspection unless only callable types matched
    prefer_type_members = bool(type_members) and has_non_function_type
    names = [] if prefer_type_members else list(info.names)
    names.extend(sorted(type_members))

    namespace_kinds = (
        index.namespace_member_kinds.get(base_path) if base_path and "." not in base_path else None
    )

    items: list[SuggestionItem] = []
    seen: set[str] = set()
    for name in names:
        if name in seen:
            continue
        seen.add(name)
        if context.segment_prefix and not name.startswith(context.segment_prefix):
            continue
        full_path = f"{base_path}.{name}"
        meta = metadata.get(full_path)
        doc = index.doc_for_types(candidates, name)
        namespace_kind = namespace_kinds.get(name) if namespace_kinds else None
        if name in SENSITIVE_MEMBERS:
            fallback_kind = "object"
        else:
            member_value = resolve_value(full_path, value_tree, globals_table)
            if member_value is UNDEFINED:
                fallback_kind = _kind_from_detail(name, doc.detail if doc else None) or "undefined"
            else:
                fallback_kind = js_type_name(member_value)
        items.append(
            SuggestionItem(
                label=name,
                insert_text=name,
                full_path=full_path,
                kind=(meta.kind if meta else None) or namespace_kind or fallback_kind,
                detail=(meta.detail if meta else None)
                or (doc.detail if doc else None)
                or namespace_kind
                or fallback_kind,
                documentation=(meta.documentation if meta else None)
                or (doc.documentation if doc else None),
            )
        )
    return items


def _root_items(
    context: ExpressionContext, metadata: MetadataMap, value_tree: Any
) -> list[SuggestionItem]:
    prefix = context.segment_prefix
    roots: dict[str, None] = {}
    nested_roots: set[str] = set()
    for key in metadata:
        root, dot, _ = key.partition(".")
        roots.setdefault(root, None)
        if dot:
            nested_roots.add(root)
    tree_values: Mapping[str, Any] = value_tree if isinstance(value_tree, Mapping) else {}
    for key in tree_values:
        roots.setdefault(str(key), None)

    items: list[SuggestionItem] = []
    for root in roots:
        if not root or (prefix and not root.startswith(prefix)):
            continue
        meta = metadata.get(root) or CompletionMetadata()
        kind = meta.kind
        if not kind and root in tree_values:
            kind = value_kind(tree_values[root])
        if not kind and root in nested_roots:
            kind = "object"
        if meta.append_dot is not None:
            append_dot = meta.append_dot
        else:
            append_dot = map_kind(kind) == "object"
        items.append(
            SuggestionItem(
                label=root,
                insert_text=f"{root}." if append_dot else root,
                full_path=root,
                kind=kind,
                detail=meta.detail,
                documentation=meta.documentation,
                append_dot=append_dot,
            )
        )
    return items


def compute_suggestions(
    context: ExpressionContext,
    metadata: Mapping[str, Any] | None = None,
    value_tree: Any = None,
    index: DeclarationIndex | None = None,
    globals_table: WellKnownGlobals | None = None,
) -> list[SuggestionItem]:
    """Synchronous suggestions for an expression context.

    Args:
        context: Output of the context extractor
        metadata: Host metadata, ``full path -> {kind, detail, documentation, appendDot}``
        value_tree: Live context values (nested mappings)
        index: Declaration index; an empty one is used when omitted
        globals_table: Stand-in for the runtime's global scope

    Returns:
        Suggestions sorted by label with unique labels; a single signature item
        for an empty call
    """
    meta = normalize_metadata(metadata)
    index = index if index is not None else DeclarationIndex()
    globals_table = globals_table if globals_table is not None else DEFAULT_GLOBALS

    if context.is_empty_call:
        return [_signature_item(context, meta, value_tree, index, globals_table)]

    if not context.has_dot:
        return _sort_and_dedupe(_root_items(context, meta, value_tree))

    items = _metadata_member_items(context, meta)
    if not items:
        items = _introspected_member_items(context, meta, value_tree, index, globals_table)
    logger.debug(f"{len(items)} suggestion(s) for {context.raw_prefix!r}")
    return _sort_and_dedupe(items)
