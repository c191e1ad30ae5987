"""Data models for fx-lsp."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, TypedDict

SuggestionSource = Literal["context", "js"]


class DeclarationSource(TypedDict):
    """One declaration file as handed over by a loader."""

    filename: str
    content: str


@dataclass(frozen=True)
class ExpressionContext:
    """What the user is typing inside the active expression marker."""

    raw_prefix: str
    has_dot: bool
    base_path: str
    segment_prefix: str
    is_empty_call: bool = False
    call_path: str | None = None
    # Type names known from a call's return type or a literal, e.g. ("String",)
    expression_types: tuple[str, ...] = ()
    expression: str = ""


@dataclass
class DocEntry:
    """Detail line and documentation text for one member."""

    detail: str | None = None
    documentation: str | None = None


@dataclass
class CompletionMetadata:
    """Explicit metadata the host declares for a dotted path."""

    kind: str | None = None
    detail: str | None = None
    documentation: str | None = None
    append_dot: bool | None = None

    @classmethod
    def from_value(cls, value: Any) -> CompletionMetadata:
        """Build from a metadata mapping, accepting ``appendDot`` as well."""
        if isinstance(value, CompletionMetadata):
            return value
        if not isinstance(value, Mapping):
            return cls()
        append_dot = value.get("append_dot", value.get("appendDot"))
        return cls(
            kind=value.get("kind"),
            detail=value.get("detail"),
            documentation=value.get("documentation"),
            append_dot=None if append_dot is None else bool(append_dot),
        )


MetadataMap = Mapping[str, CompletionMetadata]


def normalize_metadata(metadata: Mapping[str, Any] | None) -> dict[str, CompletionMetadata]:
    """Convert a host metadata map into ``CompletionMetadata`` values."""
    if not metadata:
        return {}
    return {str(key): CompletionMetadata.from_value(value) for key, value in metadata.items()}


@dataclass
class SuggestionItem:
    """One candidate completion."""

    label: str
    insert_text: str
    full_path: str
    kind: str | None = None
    detail: str | None = None
    documentation: str | None = None
    append_dot: bool = False
    source: SuggestionSource = "context"
    completion_source: str | None = None
    completion_data: Any = None


@dataclass
class CompletionEntry:
    """A completion as reported by the language-service worker."""

    name: str
    insert_text: str | None = None
    kind: str | None = None
    source: str | None = None
    data: Any = None

    @classmethod
    def from_value(cls, value: Any) -> CompletionEntry | None:
        """Accept mappings using wire names (``insertText``) or plain objects."""
        if isinstance(value, CompletionEntry):
            return value
        if isinstance(value, Mapping):
            name = value.get("name")
            if not name:
                return None
            return cls(
                name=str(name),
                insert_text=value.get("insert_text", value.get("insertText")),
                kind=value.get("kind"),
                source=value.get("source"),
                data=value.get("data"),
            )
        name = getattr(value, "name", None)
        if not name:
            return None
        return cls(
            name=str(name),
            insert_text=getattr(value, "insert_text", None),
            kind=getattr(value, "kind", None),
            source=getattr(value, "source", None),
            data=getattr(value, "data", None),
        )


@dataclass(frozen=True)
class ReplaceRange:
    """Half-open column range ``[start, end)`` on the cursor line."""

    start: int
    end: int


@dataclass(frozen=True)
class Anchor:
    top: float = 0.0
    left: float = 0.0


@dataclass(frozen=True)
class PixelPosition:
    """Cursor position in editor pixels, as reported by the editor widget."""

    top: float
    left: float
    height: float = 0.0
    viewport_left: float = 0.0
    viewport_right: float | None = None


@dataclass
class PopupState:
    """Everything the host needs to render the suggestion popup."""

    open: bool = False
    items: list[SuggestionItem] = field(default_factory=list)
    active_index: int = 0
    anchor: Anchor = field(default_factory=Anchor)
    replace_range: ReplaceRange | None = None
    signature_only: bool = False

    @property
    def active_item(self) -> SuggestionItem | None:
        if not self.open or not 0 <= self.active_index < len(self.items):
            return None
        return self.items[self.active_index]

    def snapshot(self) -> PopupState:
        """Copy that can be handed to the host without exposing internal lists."""
        return PopupState(
            open=self.open,
            items=list(self.items),
            active_index=self.active_index,
            anchor=self.anchor,
            replace_range=self.replace_range,
            signature_only=self.signature_only,
        )


@dataclass
class DeclarationIndex:
    """Members and docs extracted from declaration sources.

    Shared process-wide and only ever grows: members are unioned, and a key's
    documentation is kept once it is non-empty.
    """

    global_aliases: dict[str, str] = field(default_factory=dict)
    members_by_type: dict[str, set[str]] = field(default_factory=dict)
    docs_by_member: dict[str, DocEntry] = field(default_factory=dict)
    namespace_member_kinds: dict[str, dict[str, str]] = field(default_factory=dict)
    loaded_files: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.global_aliases or self.members_by_type or self.docs_by_member)

    def add_member(self, type_name: str, member: str) -> None:
        self.members_by_type.setdefault(type_name, set()).add(member)

    def set_member_kind(self, namespace: str, member: str, kind: str) -> None:
        self.namespace_member_kinds.setdefault(namespace, {})[member] = kind

    def set_doc(self, key: str, detail: str | None, documentation: str | None) -> None:
        """Record docs for ``Type.member`` unless documentation is already known."""
        existing = self.docs_by_member.get(key)
        if existing is not None and existing.documentation:
            return
        self.docs_by_member[key] = DocEntry(
            detail=detail,
            documentation=documentation or (existing.documentation if existing else None),
        )

    def merge(self, other: DeclarationIndex) -> None:
        """Merge another index into this one with the same first-wins rule."""
        for name, type_name in other.global_aliases.items():
            self.global_aliases.setdefault(name, type_name)
        for type_name, members in other.members_by_type.items():
            self.members_by_type.setdefault(type_name, set()).update(members)
        for key, entry in other.docs_by_member.items():
            self.set_doc(key, entry.detail, entry.documentation)
        for namespace, kinds in other.namespace_member_kinds.items():
            self.namespace_member_kinds.setdefault(namespace, {}).update(kinds)
        for filename in other.loaded_files:
            if filename not in self.loaded_files:
                self.loaded_files.append(filename)

    def doc_for_path(self, full_path: str) -> DocEntry | None:
        """Docs for ``root.member``, resolving ``declare var`` aliases of the root."""
        parts = full_path.split(".")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            return None
        root, member = parts[0], parts[1]
        type_name = self.global_aliases.get(root, root)
        return self.docs_by_member.get(f"{type_name}.{member}") or self.docs_by_member.get(
            f"Function.{member}"
        )

    def doc_for_types(self, type_names: Iterable[str], member: str) -> DocEntry | None:
        """First docs found for ``member`` on any of ``type_names``."""
        for name in type_names:
            normalized = name.removeprefix("typeof ")
            entry = self.docs_by_member.get(f"{normalized}.{member}")
            if entry is not None:
                return entry
        return self.docs_by_member.get(f"Function.{member}")

    def members_for_types(self, type_names: Iterable[str]) -> set[str]:
        names: set[str] = set()
        for name in type_names:
            members = self.members_by_type.get(name.removeprefix("typeof "))
            if members:
                names.update(members)
        return names

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible representation, used by the disk cache."""
        return {
            "global_aliases": dict(self.global_aliases),
            "members_by_type": {k: sorted(v) for k, v in self.members_by_type.items()},
            "docs_by_member": {
                k: {"detail": v.detail, "documentation": v.documentation}
                for k, v in self.docs_by_member.items()
            },
            "namespace_member_kinds": {
                k: dict(v) for k, v in self.namespace_member_kinds.items()
            },
            "loaded_files": list(self.loaded_files),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DeclarationIndex:
        return cls(
            global_aliases=dict(data.get("global_aliases", {})),
            members_by_type={k: set(v) for k, v in data.get("members_by_type", {}).items()},
            docs_by_member={
                k: DocEntry(detail=v.get("detail"), documentation=v.get("documentation"))
                for k, v in data.get("docs_by_member", {}).items()
            },
            namespace_member_kinds={
                k: dict(v) for k, v in data.get("namespace_member_kinds", {}).items()
            },
            loaded_files=list(data.get("loaded_files", [])),
        )
