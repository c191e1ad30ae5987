"""
Declaration indexer for fx-lsp.

Extracts global aliases, interface members and namespace members from
TypeScript-style declaration sources (``lib.es5.d.ts`` and friends). Bodies are
located with brace-depth counting because they nest; the members inside a body
are picked up with lenient regular expressions.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

from fx_lsp.models import DeclarationIndex

if TYPE_CHECKING:
    from re import Match

logger = logging.getLogger(__name__)

_re_declare_var = re.compile(r"declare\s+var\s+([A-Za-z_$][\w$]*)\s*:\s*([A-Za-z_$][\w$]*);")
_re_interface = re.compile(r"interface\s+([A-Za-z_$][\w$]*)[^{]*\{")
_re_interface_member = re.compile(r"(?:/\*\*([\s\S]*?)\*/\s*)?([A-Za-z_$][\w$]*)\s*([^;{]*);")
_re_namespace = re.compile(r"namespace\s+([A-Za-z_$][\w$]*)\s*\{")
_re_namespace_member = re.compile(
    r"(?:/\*\*([\s\S]*?)\*/\s*)?(var|const|function|class)\s+([A-Za-z_$][\w$]*)\s*([^;{]*)"
)
_re_comment_line_prefix = re.compile(r"^\s*\*\s?")
_re_whitespace = re.compile(r"\s+")

# Declaration keyword -> member kind reported for namespace members
_NAMESPACE_KINDS = {
    "function": "function",
    "class": "function",
    "const": "function",
    "var": "object",
}

__all__ = [
    "DeclarationIndex",
    "extract_doc_text",
    "index_declaration_sources",
    "normalize_signature",
    "parse_declarations",
]


def extract_doc_text(comment: str) -> str:
    """Flatten a ``/** ... */`` body into one line of text."""
    lines = (_re_comment_line_prefix.sub("", line).strip() for line in comment.split("\n"))
    return " ".join(line for line in lines if line)


def normalize_signature(signature: str) -> str:
    return _re_whitespace.sub(" ", signature).strip()


def _balanced_body(content: str, body_start: int) -> str | None:
    """Return the text between an opening brace and its matching close.

    ``body_start`` is the index right after the opening brace. Returns None when
    the braces never balance (truncated or malformed source).
    """
    depth = 1
    index = body_start
    length = len(content)
    while index < length and depth > 0:
        char = content[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        index += 1
    if depth != 0:
        return None
    return content[body_start : index - 1]


def _record_member_doc(
    index: DeclarationIndex, owner: str, member: str, raw_doc: str | None, raw_signature: str
) -> None:
    signature = normalize_signature(raw_signature or "")
    detail = f"{member}{signature}" if signature else member
    documentation = extract_doc_text(raw_doc) if raw_doc else None
    index.set_doc(f"{owner}.{member}", detail, documentation or None)


def _parse_global_aliases(content: str, index: DeclarationIndex) -> None:
    for match in _re_declare_var.finditer(content):
        index.global_aliases.setdefault(match.group(1), match.group(2))


def _iter_bodies(pattern: re.Pattern[str], content: str) -> Iterable[tuple[Match[str], str]]:
    for match in pattern.finditer(content):
        body = _balanced_body(content, match.end())
        if body is None:
            logger.debug(f"Skipping unbalanced body for {match.group(1)}")
            continue
        yield match, body


def _parse_interfaces(content: str, index: DeclarationIndex) -> None:
    for match, body in _iter_bodies(_re_interface, content):
        name = match.group(1)
        index.members_by_type.setdefault(name, set())
        for member_match in _re_interface_member.finditer(body):
            raw_doc, member, raw_signature = member_match.groups()
            if not member:
                continue
            index.add_member(name, member)
            _record_member_doc(index, name, member, raw_doc, raw_signature)


def _parse_namespaces(content: str, index: DeclarationIndex) -> None:
    for match, body in _iter_bodies(_re_namespace, content):
        namespace = match.group(1)
        index.members_by_type.setdefault(namespace, set())
        index.namespace_member_kinds.setdefault(namespace, {})
        for member_match in _re_namespace_member.finditer(body):
            raw_doc, declaration_kind, member, raw_signature = member_match.groups()
            if not member:
                continue
            index.add_member(namespace, member)
            index.set_member_kind(namespace, member, _NAMESPACE_KINDS.get(declaration_kind, "object"))
            _record_member_doc(index, namespace, member, raw_doc, raw_signature)


def parse_declarations(content: str, index: DeclarationIndex | None = None) -> DeclarationIndex:
    """Parse one declaration source into ``index``.

    Args:
        content: Raw declaration text
        index: Index to merge into; a new one is created when omitted

    Returns:
        The index that was updated
    """
    if index is None:
        index = DeclarationIndex()
    _parse_global_aliases(content, index)
    _parse_interfaces(content, index)
    _parse_namespaces(content, index)
    return index


def index_declaration_sources(
    sources: Iterable[Mapping[str, str]], index: DeclarationIndex | None = None
) -> DeclarationIndex:
    """Parse several ``{filename, content}`` sources, skipping files that fail.

    A failing file leaves whatever it had already added in place; every other
    file is still indexed.
    """
    if index is None:
        index = DeclarationIndex()
    for source in sources:
        filename = source.get("filename", "<unknown>")
        content = source.get("content")
        if not content:
            logger.debug(f"Skipping empty declaration source {filename}")
            continue
        try:
            parse_declarations(content, index)
        except Exception as e:
            logger.debug(f"Failed to parse declarations in {filename}: {e}")
            continue
        if filename not in index.loaded_files:
            index.loaded_files.append(filename)
    logger.debug(
        f"Indexed {len(index.loaded_files)} declaration file(s), "
        f"{len(index.members_by_type)} type(s)"
    )
    return index
