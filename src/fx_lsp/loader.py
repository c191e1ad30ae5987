"""
Declaration source loading.

Reads ``lib.*.d.ts`` files listed in a ``monaco/manifest.json`` under one of
several candidate bases. A base is either a local directory or an ``http(s)``
URL. When remote libraries are allowed, files missing locally are fetched from
the TypeScript repository instead.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import urllib.error
import urllib.request
from collections.abc import Iterable, Sequence
from pathlib import Path

from fx_lsp.constants import (
    DECLARATION_ALLOWLIST,
    ENV_ALLOW_REMOTE_LIBS,
    MANIFEST_DIR,
    MANIFEST_NAME,
    REMOTE_LIB_API_URL,
    REMOTE_LIB_RAW_BASE,
    REMOTE_TIMEOUT_S,
)
from fx_lsp.models import DeclarationSource

logger = logging.getLogger(__name__)

_LOAD_ERRORS = (OSError, urllib.error.URLError, json.JSONDecodeError, UnicodeDecodeError)


def remote_libs_allowed() -> bool:
    return os.getenv(ENV_ALLOW_REMOTE_LIBS, "").lower() == "true"


def _is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def _join(base: str, *parts: str) -> str:
    if _is_url(base):
        return "/".join([base.rstrip("/"), *parts])
    return str(Path(base).joinpath(*parts))


def read_text(location: str, timeout: float = REMOTE_TIMEOUT_S) -> str:
    """Read a local file or an ``http(s)`` resource as UTF-8 text."""
    if _is_url(location):
        request = urllib.request.Request(
            url=location, headers={"User-Agent": "fx-lsp"}, method="GET"
        )
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return response.read().decode("utf-8")
    return Path(location).read_text(encoding="utf-8")


class ManifestDeclarationLoader:
    """Default declaration-source loader.

    Args:
        allowlist: Files to keep from the manifest; empty keeps every file
        allow_remote: Fall back to the TypeScript repository; defaults to the
            ``FX_LSP_ALLOW_REMOTE_LIBS`` environment variable
    """

    def __init__(
        self,
        allowlist: Sequence[str] | None = DECLARATION_ALLOWLIST,
        allow_remote: bool | None = None,
    ):
        self.allowlist = tuple(allowlist or ())
        self.allow_remote = remote_libs_allowed() if allow_remote is None else allow_remote

    def _load_manifest(self, candidates: Sequence[str]) -> list[str] | None:
        for candidate in candidates:
            location = _join(candidate, MANIFEST_DIR, MANIFEST_NAME)
            try:
                data = json.loads(read_text(location))
            except _LOAD_ERRORS as e:
                logger.debug(f"No declaration manifest at {location}: {e}")
                continue
            files = data.get("files") if isinstance(data, dict) else None
            if isinstance(files, list) and files:
                return [str(name) for name in files]
        return None

    def _load_remote_file_list(self) -> list[str] | None:
        if not self.allow_remote:
            return None
        try:
            data = json.loads(read_text(REMOTE_LIB_API_URL))
        except _LOAD_ERRORS as e:
            logger.debug(f"Failed to list remote declaration files: {e}")
            return None
        if not isinstance(data, list):
            return None
        names = (item.get("name") for item in data if isinstance(item, dict))
        return [
            name
            for name in names
            if isinstance(name, str) and name.startswith("lib.") and name.endswith(".d.ts")
        ]

    def _filter(self, files: Iterable[str]) -> list[str]:
        if not self.allowlist:
            return list(files)
        allowed = set(self.allowlist)
        return [name for name in files if name in allowed]

    def _load_file(self, candidates: Sequence[str], filename: str) -> str | None:
        for candidate in candidates:
            try:
                return read_text(_join(candidate, MANIFEST_DIR, filename))
            except _LOAD_ERRORS:
                continue
        if self.allow_remote:
            try:
                return read_text(f"{REMOTE_LIB_RAW_BASE}/{filename}")
            except _LOAD_ERRORS as e:
                logger.debug(f"Remote fallback failed for {filename}: {e}")
        return None

    def load_sync(self, candidate_base_urls: Iterable[str]) -> list[DeclarationSource]:
        """Blocking variant of :meth:`load_declaration_texts`."""
        candidates = list(dict.fromkeys(base for base in candidate_base_urls if base and base.strip()))
        if not candidates:
            candidates = ["."]

        files = self._load_manifest(candidates) or self._load_remote_file_list()
        if not files:
            logger.info("No declaration manifest found")
            return []

        sources: list[DeclarationSource] = []
        for filename in self._filter(files):
            content = self._load_file(candidates, filename)
            if not content:
                logger.debug(f"Declaration file {filename} not found")
                continue
            sources.append({"filename": filename, "content": content})
        logger.info(f"Loaded {len(sources)} declaration file(s)")
        return sources

    async def load_declaration_texts(
        self, candidate_base_urls: Iterable[str]
    ) -> list[DeclarationSource]:
        """Load ``{filename, content}`` sources without blocking the event loop."""
        return await asyncio.to_thread(self.load_sync, list(candidate_base_urls))
