"""
Value lookups and member introspection.

Values come from the host's context tree (plain mappings, sequences, scalars and
callables) and from an injected table of well-known globals that stands in for
the expression runtime's global object. Nothing here touches Python's own
globals or module state.
"""

from __future__ import annotations

import datetime
import inspect
import json
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from fx_lsp.constants import PREVIEW_ENTRY_LIMIT, SAFE_IDENTIFIER, SENSITIVE_MEMBERS


class _Undefined:
    """Marker for "no value at this path", distinct from ``None`` (null)."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False


UNDEFINED: Any = _Undefined()

# Runtime tags for values that map onto a built-in runtime type
_RUNTIME_TAGS: tuple[tuple[type | tuple[type, ...], str], ...] = (
    ((set, frozenset), "Set"),
    ((datetime.date, datetime.datetime), "Date"),
    (re.Pattern, "RegExp"),
)


def _js_builtin(name: str, *members: str) -> Callable[..., Any]:
    """A stand-in callable named like a runtime builtin, carrying member attributes."""

    def builtin(*args: Any, **kwargs: Any) -> None:
        return None

    builtin.__name__ = name
    builtin.__qualname__ = name
    for member in members:
        setattr(builtin, member, _js_builtin(member))
    return builtin


_DEFAULT_PROTOTYPES: dict[str, tuple[str, ...]] = {
    "String": (
        "length", "charAt", "concat", "endsWith", "includes", "indexOf", "lastIndexOf",
        "padEnd", "padStart", "repeat", "replace", "slice", "split", "startsWith",
        "substring", "toLowerCase", "toUpperCase", "trim", "trimEnd", "trimStart",
    ),
    "Number": ("toExponential", "toFixed", "toLocaleString", "toPrecision", "toString"),
    "Boolean": ("toString", "valueOf"),
    "Array": (
        "length", "concat", "every", "filter", "find", "findIndex", "flat", "flatMap",
        "forEach", "includes", "indexOf", "join", "map", "pop", "push", "reduce",
        "reverse", "shift", "slice", "some", "sort", "splice", "unshift",
    ),
    "Function": ("apply", "bind", "call", "length", "name", "toString"),
    "Set": ("add", "clear", "delete", "forEach", "has", "size", "values"),
    "Date": ("getDate", "getDay", "getFullYear", "getHours", "getMonth", "getTime", "toISOString"),
    "RegExp": ("exec", "flags", "source", "test"),
}


def _default_values() -> dict[str, Any]:
    return {
        "Math": {
            "E": 2.718281828459045,
            "PI": 3.141592653589793,
            **{
                name: _js_builtin(name)
                for name in ("abs", "ceil", "floor", "max", "min", "pow", "random", "round", "sqrt")
            },
        },
        "JSON": {"parse": _js_builtin("parse"), "stringify": _js_builtin("stringify")},
        "Object": _js_builtin("Object", "assign", "entries", "freeze", "keys", "values"),
        "Array": _js_builtin("Array", "from", "isArray", "of"),
        "Number": _js_builtin("Number", "isFinite", "isInteger", "isNaN", "parseFloat", "parseInt"),
        "String": _js_builtin("String", "fromCharCode", "raw"),
        "Date": _js_builtin("Date", "now", "parse", "UTC"),
    }


@dataclass
class WellKnownGlobals:
    """Injected stand-in for the expression runtime's global scope.

    ``values`` are looked up by path when the context tree has nothing;
    ``prototypes`` list the inherited member names of each runtime type.
    """

    values: dict[str, Any] = field(default_factory=dict)
    prototypes: dict[str, tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def default(cls) -> WellKnownGlobals:
        return cls(values=_default_values(), prototypes=dict(_DEFAULT_PROTOTYPES))

    @classmethod
    def empty(cls) -> WellKnownGlobals:
        return cls()

    def prototype_names(self, type_name: str) -> tuple[str, ...]:
        return self.prototypes.get(type_name, ())

    def lookup(self, path: str) -> Any:
        """Resolve ``path`` in the table, refusing reflective members of callables."""
        current: Any = self.values
        for key in path.split("."):
            if current is UNDEFINED or current is None:
                return UNDEFINED
            if callable(current) and not isinstance(current, Mapping) and key in SENSITIVE_MEMBERS:
                return UNDEFINED
            current = _child(current, key, allow_attributes=True)
        return current


@dataclass
class MemberInfo:
    names: list[str] = field(default_factory=list)
    type_names: list[str] = field(default_factory=list)


def _child(value: Any, key: str, allow_attributes: bool = False) -> Any:
    if isinstance(value, Mapping):
        return value.get(key, UNDEFINED)
    if isinstance(value, Sequence) and not isinstance(value, str):
        if key.isdigit() and int(key) < len(value):
            return value[int(key)]
        return UNDEFINED
    if allow_attributes and not key.startswith("_") and SAFE_IDENTIFIER.match(key):
        return getattr(value, key, UNDEFINED)
    return UNDEFINED


def get_context_value(value_tree: Any, path: str) -> Any:
    """Value at a dotted ``path`` of the context tree, or ``UNDEFINED``."""
    if value_tree is None or not path:
        return UNDEFINED
    current = value_tree
    for key in path.split("."):
        if not isinstance(current, Mapping | Sequence) or isinstance(current, str):
            return UNDEFINED
        current = _child(current, key)
        if current is UNDEFINED:
            return UNDEFINED
    return current


def resolve_value(path: str, value_tree: Any, globals_table: WellKnownGlobals) -> Any:
    """Context tree first, then the well-known globals."""
    value = get_context_value(value_tree, path)
    if value is not UNDEFINED:
        return value
    if not path:
        return UNDEFINED
    return globals_table.lookup(path)


def placeholder_for_kind(kind: str | None) -> Any:
    """A representative value for a metadata kind, used when nothing resolves."""
    normalized = (kind or "").lower()
    if normalized in ("var", "module", "object"):
        return {}
    if normalized == "string":
        return ""
    if normalized == "number":
        return 0
    if normalized == "boolean":
        return False
    if normalized == "array":
        return []
    if normalized == "function":
        return _js_builtin("")
    return UNDEFINED


def js_type_name(value: Any) -> str:
    """``typeof``-style name of a value."""
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    if callable(value) and not isinstance(value, Mapping):
        return "function"
    return "object"


def value_kind(value: Any) -> str | None:
    """Metadata-style kind for a context value (arrays are their own kind)."""
    if value is UNDEFINED:
        return None
    if value is None:
        return "null"
    if isinstance(value, list | tuple):
        return "array"
    return js_type_name(value)


def _own_names(target: Any) -> list[str]:
    if isinstance(target, Mapping):
        return [str(key) for key in target]
    if isinstance(target, str | bytes | int | float | bool) or target is None:
        return []
    if inspect.isclass(target):
        return [name for name in vars(target) if not name.startswith("_")]
    try:
        return [name for name in vars(target) if not name.startswith("_")]
    except TypeError:
        return []


def _function_name(value: Any) -> str:
    name = getattr(value, "__name__", "") or ""
    return "" if name.startswith("<") else name


def member_info(value: Any, globals_table: WellKnownGlobals) -> MemberInfo:
    """Own member names of ``value`` plus the type names it is an instance of."""
    names: list[str] = []
    type_names: list[str] = []

    def add_names(candidates: Iterable[str]) -> None:
        names.extend(candidates)

    def add_type(name: str | None) -> None:
        if not name:
            return
        normalized = name.split(".")[-1]
        if normalized not in type_names:
            type_names.append(normalized)

    def add_prototype(type_name: str) -> None:
        add_type(type_name)
        add_names(globals_table.prototype_names(type_name))

    if value is UNDEFINED or value is None:
        return MemberInfo()

    if isinstance(value, str):
        add_prototype("String")
    elif isinstance(value, bool):
        add_prototype("Boolean")
    elif isinstance(value, int | float):
        add_prototype("Number")
    elif isinstance(value, list | tuple):
        add_prototype("Array")
    else:
        for types, tag in _RUNTIME_TAGS:
            if isinstance(value, types):
                add_prototype(tag)
                break

    if callable(value) and not isinstance(value, Mapping):
        fn_name = _function_name(value)
        add_type(fn_name or "Function")
        if fn_name:
            add_type(f"{fn_name}Constructor")
        add_type("Function")
        add_names(_own_names(value))
        add_names(globals_table.prototype_names("Function"))
    elif isinstance(value, Mapping):
        add_names(_own_names(value))
    elif not isinstance(value, str | int | float | list | tuple):
        add_names(_own_names(value))
        cls_name = type(value).__name__
        if not any(isinstance(value, types) for types, _ in _RUNTIME_TAGS):
            add_type(cls_name)

    seen: set[str] = set()
    filtered: list[str] = []
    for name in names:
        if not name or name == "constructor" or name in seen:
            continue
        if not SAFE_IDENTIFIER.match(name):
            continue
        seen.add(name)
        filtered.append(name)
    return MemberInfo(names=filtered, type_names=type_names)


def format_inline_preview(value: Any) -> str:
    """Short rendering of a value for the popup's detail pane."""
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, int | float):
        return str(value)
    if isinstance(value, list | tuple):
        return f"[{len(value)}]"
    if callable(value) and not isinstance(value, Mapping):
        return "function"
    return "{ }"


def preview_entries(value: Any) -> list[tuple[str, str]]:
    """First few ``(key, preview)`` pairs of a mapping value."""
    if not isinstance(value, Mapping):
        return []
    entries = []
    for key, child in value.items():
        if len(entries) >= PREVIEW_ENTRY_LIMIT:
            break
        entries.append((str(key), format_inline_preview(child)))
    return entries


DEFAULT_GLOBALS = WellKnownGlobals.default()
