"""
Expression context extraction.

Works on the text of the cursor line up to the cursor and decides whether the
cursor sits inside an open expression marker, and if so what is being typed:
a dotted path, a member access on a call result or literal, or an empty call.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from fx_lsp.constants import DEFAULT_CLOSE_MARKER, DEFAULT_OPEN_MARKER, PRIMITIVE_TYPE_NAMES
from fx_lsp.models import ExpressionContext

if TYPE_CHECKING:
    from fx_lsp.models import DeclarationIndex

_re_trailing_path = re.compile(r"([A-Za-z_$][\w$.]*)$")
_re_callee_path = re.compile(r"([A-Za-z_$][\w$.]*)\s*$")
_re_trailing_word = re.compile(r"[\w$]*$")
_re_number_literal = re.compile(r"^-?\d+(\.\d+)?([eE][+-]?\d+)?$")


def expression_start(text: str, open_marker: str, close_marker: str) -> int | None:
    """Index right after the active open marker, or None outside any expression.

    Markers do not nest: the last open marker is active unless a close marker
    follows it.
    """
    open_index = text.rfind(open_marker)
    if open_index == -1:
        return None
    start = open_index + len(open_marker)
    if text.find(close_marker, start) != -1:
        return None
    return start


def word_before_cursor(text: str) -> str:
    """The identifier fragment directly left of the cursor."""
    match = _re_trailing_word.search(text)
    return match.group(0) if match else ""


def get_empty_call_path(expression: str) -> str | None:
    """Callee of an open call with nothing typed yet, e.g. ``Math.max(`` -> ``Math.max``."""
    depth = 0
    for i in range(len(expression) - 1, -1, -1):
        char = expression[i]
        if char == ")":
            depth += 1
            continue
        if char != "(":
            continue
        if depth == 0:
            if expression[i + 1 :].strip():
                return None
            match = _re_callee_path.search(expression[:i])
            return match.group(1) if match else None
        depth -= 1
    return None


def extract_call_path(expression: str) -> str | None:
    """Callee of a completed call at the end of ``expression``, e.g. ``foo.bar(1)``."""
    index = len(expression.rstrip(" ")) - 1
    if index < 0 or expression[index] != ")":
        return None
    depth = 0
    for i in range(index, -1, -1):
        char = expression[i]
        if char == ")":
            depth += 1
        elif char == "(":
            depth -= 1
            if depth == 0:
                match = _re_callee_path.search(expression[:i])
                return match.group(1) if match else None
    return None


def literal_type_name(expression: str) -> str | None:
    """Pseudo type of a literal expression (``"a"`` -> ``String``), if it is one."""
    trimmed = expression.strip()
    if not trimmed:
        return None
    if trimmed.startswith("[") and trimmed.endswith("]"):
        return "Array"
    if trimmed.startswith("{") and trimmed.endswith("}"):
        return "Object"
    first = trimmed[0]
    if first in "\"'`" and len(trimmed) > 1 and trimmed.endswith(first):
        # An odd run of backslashes escapes the closing quote
        body = trimmed[1:-1]
        backslashes = len(body) - len(body.rstrip("\\"))
        if backslashes % 2 == 0:
            return "String"
    if _re_number_literal.match(trimmed):
        return "Number"
    if trimmed in ("true", "false"):
        return "Boolean"
    if trimmed == "null":
        return "Object"
    return None


def parse_return_type(detail: str | None) -> str | None:
    """Return type of a documented signature such as ``slice(start?: number): string``."""
    if not detail:
        return None
    index = detail.rfind(":")
    if index == -1:
        return None
    return detail[index + 1 :].strip() or None


def map_return_type_to_type_names(return_type: str) -> list[str]:
    """Type names whose members apply to a value of ``return_type``."""
    names: list[str] = []

    def add(name: str) -> None:
        if name and name not in names:
            names.append(name)

    for part in return_type.split("|"):
        normalized = " ".join(part.split())
        if not normalized:
            continue
        if normalized in PRIMITIVE_TYPE_NAMES:
            add(PRIMITIVE_TYPE_NAMES[normalized])
            continue
        if normalized.endswith("[]"):
            add("Array")
            continue
        base = normalized.split("<")[0].strip()
        if base.startswith("ReadonlyArray"):
            add("Array")
        elif "." in base:
            add(base.split(".")[-1])
        else:
            add(base)
    return names


def extract_context(
    text_before_cursor: str,
    open_marker: str = DEFAULT_OPEN_MARKER,
    close_marker: str = DEFAULT_CLOSE_MARKER,
    index: DeclarationIndex | None = None,
) -> ExpressionContext | None:
    """Work out what is being typed at the cursor.

    Args:
        text_before_cursor: Cursor line up to the cursor column
        open_marker: Marker opening an expression
        close_marker: Marker closing an expression
        index: Declaration index used to type the result of ``call().``

    Returns:
        The expression context, or None when the cursor is outside a marker
    """
    if not open_marker or not close_marker:
        raise ValueError("Expression markers must be non-empty strings")

    start = expression_start(text_before_cursor, open_marker, close_marker)
    if start is None:
        return None
    expression = text_before_cursor[start:]

    call_path = get_empty_call_path(expression)
    if call_path:
        return ExpressionContext(
            raw_prefix="",
            has_dot=False,
            base_path="",
            segment_prefix="",
            is_empty_call=True,
            call_path=call_path,
            expression=expression,
        )

    match = _re_trailing_path.search(expression)
    prefix = match.group(1) if match else ""
    expression_types: list[str] = []

    if expression.endswith("."):
        receiver = expression[:-1]
        callee = extract_call_path(receiver)
        if callee:
            prefix = f"{callee}."
            doc = index.doc_for_path(callee) if index is not None else None
            return_type = parse_return_type(doc.detail if doc else None)
            if return_type:
                expression_types = map_return_type_to_type_names(return_type)
        else:
            receiver_match = _re_trailing_path.search(receiver)
            if receiver_match:
                prefix = f"{receiver_match.group(1)}."
            else:
                literal = literal_type_name(receiver)
                if literal:
                    prefix = f"{literal}."
                    expression_types = [literal]

    has_dot = "." in prefix
    if has_dot:
        last_dot = prefix.rfind(".")
        base_path = prefix[:last_dot]
        segment_prefix = prefix[last_dot + 1 :]
    else:
        base_path = ""
        segment_prefix = prefix

    return ExpressionContext(
        raw_prefix=prefix,
        has_dot=has_dot,
        base_path=base_path,
        segment_prefix=segment_prefix,
        expression_types=tuple(expression_types),
        expression=expression,
    )
