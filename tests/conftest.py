from __future__ import annotations

from collections.abc import Callable

import pytest

from fx_lsp._analyzer.declaration_indexer import parse_declarations
from fx_lsp.models import DeclarationIndex, PixelPosition

SAMPLE_DECLARATIONS = """\
declare var Math: Math;
declare var JSON: JSON;

interface Math {
    /** The mathematical constant e. */
    E: number;
    /**
     * Returns the larger of a set of supplied numeric expressions.
     * @param values Numeric expressions to be evaluated.
     */
    max(...values: number[]): number;
    min(...values: number[]): number;
}

interface String {
    /** Returns the character at the specified index. */
    charAt(pos: number): string;
    /** Returns the length of a String object. */
    length: number;
    toUpperCase(): string;
}

interface Array<T> {
    length: number;
    map<U>(callbackfn: (value: T) => U): U[];
}

interface Function {
    /** Calls the function with the given this value. */
    apply(thisArg: any, argArray?: any): any;
}

declare namespace Intl {
    var DateTimeFormat: DateTimeFormatConstructor;
    /** Returns canonical locale names. */
    function getCanonicalLocales(locale?: string): string[];
}
"""


@pytest.fixture(autouse=True)
def _disable_cache(monkeypatch):
    monkeypatch.setenv("FX_LSP_DISABLE_CACHE", "1")
    monkeypatch.delenv("FX_LSP_ALLOW_REMOTE_LIBS", raising=False)


@pytest.fixture
def sample_declarations() -> str:
    return SAMPLE_DECLARATIONS


@pytest.fixture
def index() -> DeclarationIndex:
    return parse_declarations(SAMPLE_DECLARATIONS)


class FakeLoader:
    """Declaration loader serving fixed sources and counting calls."""

    def __init__(self, sources=None, error: Exception | None = None):
        self.sources = sources if sources is not None else [
            {"filename": "lib.es5.d.ts", "content": SAMPLE_DECLARATIONS}
        ]
        self.error = error
        self.calls: list[list[str]] = []

    async def load_declaration_texts(self, candidate_base_urls):
        self.calls.append(list(candidate_base_urls))
        if self.error is not None:
            raise self.error
        return list(self.sources)


class FakeEditor:
    """Single-line editor double recording the edits the popup makes."""

    def __init__(self, line: str = "", cursor: int | None = None):
        self.line = line
        self.cursor = len(line) if cursor is None else cursor
        self.pixel: PixelPosition | None = PixelPosition(
            top=100, left=300, height=18, viewport_left=0, viewport_right=1000
        )
        self.edits: list[tuple[int, int, str]] = []
        self.key_handlers: list[Callable[[str], bool]] = []
        self.content_handlers: list[Callable[[], None]] = []
        self.blur_handlers: list[Callable[[], None]] = []

    # EditorProtocol

    def get_text_before_cursor(self) -> str:
        return self.line[: self.cursor]

    def get_text_after_cursor(self) -> str:
        return self.line[self.cursor :]

    def get_cursor_pixel_position(self) -> PixelPosition | None:
        return self.pixel

    def get_buffer_uri(self) -> str:
        return "inmemory://model/1"

    def get_cursor_offset(self) -> int:
        return self.cursor

    def replace_range(self, start: int, end: int, text: str) -> None:
        self.edits.append((start, end, text))
        self.line = self.line[:start] + text + self.line[end:]

    def set_cursor(self, position: int) -> None:
        self.cursor = position

    def on_key_down(self, handler) -> None:
        self.key_handlers.append(handler)

    def on_content_changed(self, handler) -> None:
        self.content_handlers.append(handler)

    def on_blur(self, handler) -> None:
        self.blur_handlers.append(handler)

    # Test helpers

    def type(self, text: str) -> None:
        """Insert ``text`` at the cursor one character at a time."""
        for char in text:
            self.line = self.line[: self.cursor] + char + self.line[self.cursor :]
            self.cursor += 1
            for handler in list(self.content_handlers):
                handler()

    def press(self, key: str) -> bool:
        return any(handler(key) for handler in list(self.key_handlers))

    def blur(self) -> None:
        for handler in list(self.blur_handlers):
            handler()


@pytest.fixture
def make_editor():
    return FakeEditor


@pytest.fixture
def fake_loader():
    return FakeLoader()


@pytest.fixture
def make_loader():
    return FakeLoader
