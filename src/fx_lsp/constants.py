"""Shared constants for fx-lsp."""

from __future__ import annotations

import re

DEFAULT_OPEN_MARKER = "{{"
DEFAULT_CLOSE_MARKER = "}}"

# Identifier rules follow the expression language (JavaScript), so ``$`` is a word char
IDENTIFIER_PATTERN = r"[A-Za-z_$][\w$]*"
SAFE_IDENTIFIER = re.compile(rf"^{IDENTIFIER_PATTERN}$", re.ASCII)

# Members that must never be read from a callable during lookups
SENSITIVE_MEMBERS = frozenset({"caller", "callee", "arguments"})

# Types whose members describe calling conventions rather than the value itself
FUNCTION_TYPE_NAMES = frozenset({"Function", "FunctionConstructor"})

# Details too vague to show when indexed documentation is available
GENERIC_DETAILS = frozenset(
    {"function", "object", "string", "number", "boolean", "void", "undefined", "null", "unknown"}
)

# Metadata kind -> pseudo type name used for member lookups
KIND_TYPE_NAMES = {
    "string": "String",
    "number": "Number",
    "boolean": "Boolean",
    "array": "Array",
    "function": "Function",
    "object": "Object",
    "var": "Object",
    "module": "Object",
    "symbol": "Symbol",
    "bigint": "BigInt",
}

# Return type keyword -> pseudo type name
PRIMITIVE_TYPE_NAMES = {
    "string": "String",
    "number": "Number",
    "boolean": "Boolean",
    "bigint": "BigInt",
    "symbol": "Symbol",
}

# Kinds that describe containers; their suggestions insert a trailing dot
OBJECT_KINDS = frozenset({"object", "array", "var", "module"})
SCALAR_KINDS = frozenset({"string", "number", "boolean", "null", "undefined"})

# Declaration sources
MANIFEST_DIR = "monaco"
MANIFEST_NAME = "manifest.json"
REMOTE_LIB_RAW_BASE = "https://raw.githubusercontent.com/microsoft/TypeScript/v5.2.2/lib"
REMOTE_LIB_API_URL = "https://api.github.com/repos/microsoft/TypeScript/contents/lib?ref=v5.2.2"
REMOTE_TIMEOUT_S = 15.0
DECLARATION_ALLOWLIST = (
    "lib.es5.d.ts",
    "lib.es2015.collection.d.ts",
    "lib.es2015.iterable.d.ts",
    "lib.es2015.promise.d.ts",
    "lib.es2015.symbol.d.ts",
    "lib.es2015.symbol.wellknown.d.ts",
    "lib.es2016.array.include.d.ts",
    "lib.es2018.promise.d.ts",
    "lib.dom.d.ts",
    "lib.dom.iterable.d.ts",
)

# Environment switches
ENV_DISABLE_CACHE = "FX_LSP_DISABLE_CACHE"
ENV_ALLOW_REMOTE_LIBS = "FX_LSP_ALLOW_REMOTE_LIBS"

# Popup geometry, in pixels
PREVIEW_WIDTH = 220
LIST_WIDTH = 220
POPUP_GAP = 8
POPUP_MIN_LEFT = 8
POPUP_TOP_OFFSET = 6

PREVIEW_ENTRY_LIMIT = 6

# Key names, as reported by browser-style keyboard events
KEY_ESCAPE = "Escape"
KEY_ARROW_DOWN = "ArrowDown"
KEY_ARROW_UP = "ArrowUp"
KEY_ENTER = "Enter"
KEY_TAB = "Tab"
