"""Tests for manifest-driven declaration loading."""

from __future__ import annotations

import json
import urllib.error
from pathlib import Path

import pytest

from fx_lsp import loader as loader_module
from fx_lsp.constants import REMOTE_LIB_API_URL, REMOTE_LIB_RAW_BASE
from fx_lsp.loader import ManifestDeclarationLoader, remote_libs_allowed

ES5 = "declare var Math: Math;\ninterface Math { max(...values: number[]): number; }"


def write_manifest(base: Path, files, contents=None):
    monaco = base / "monaco"
    monaco.mkdir(parents=True, exist_ok=True)
    (monaco / "manifest.json").write_text(json.dumps({"files": files}), encoding="utf-8")
    for name, content in (contents or {}).items():
        (monaco / name).write_text(content, encoding="utf-8")


@pytest.fixture
def offline_remote(monkeypatch):
    """Serve remote URLs from a dict; local paths are read from disk."""
    responses: dict[str, str] = {}
    requested: list[str] = []

    def fake_read_text(location, timeout=None):
        if location.startswith("https://"):
            requested.append(location)
            if location in responses:
                return responses[location]
            raise urllib.error.URLError("offline")
        return Path(location).read_text(encoding="utf-8")

    monkeypatch.setattr(loader_module, "read_text", fake_read_text)
    return responses, requested


class TestLocalManifest:
    def test_allowlisted_files_are_loaded(self, tmp_path):
        write_manifest(
            tmp_path,
            ["lib.es5.d.ts", "lib.webworker.d.ts", "lib.dom.d.ts"],
            {"lib.es5.d.ts": ES5, "lib.webworker.d.ts": "interface Worker {}"},
        )
        sources = ManifestDeclarationLoader().load_sync([str(tmp_path)])
        assert sources == [{"filename": "lib.es5.d.ts", "content": ES5}]

    def test_empty_allowlist_keeps_every_file(self, tmp_path):
        write_manifest(
            tmp_path,
            ["lib.es5.d.ts", "lib.webworker.d.ts"],
            {"lib.es5.d.ts": ES5, "lib.webworker.d.ts": "interface Worker {}"},
        )
        sources = ManifestDeclarationLoader(allowlist=()).load_sync([str(tmp_path)])
        assert [source["filename"] for source in sources] == ["lib.es5.d.ts", "lib.webworker.d.ts"]

    def test_first_candidate_with_manifest_wins(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        app = tmp_path / "app"
        write_manifest(app, ["lib.es5.d.ts"], {"lib.es5.d.ts": ES5})

        loader = ManifestDeclarationLoader()
        sources = loader.load_sync([str(empty), str(app), str(app)])
        assert [source["filename"] for source in sources] == ["lib.es5.d.ts"]

    def test_no_manifest(self, tmp_path):
        assert ManifestDeclarationLoader().load_sync([str(tmp_path)]) == []

    def test_invalid_manifest(self, tmp_path):
        monaco = tmp_path / "monaco"
        monaco.mkdir()
        (monaco / "manifest.json").write_text("[1, 2", encoding="utf-8")
        assert ManifestDeclarationLoader().load_sync([str(tmp_path)]) == []

    def test_blank_candidates_default_to_working_directory(self, tmp_path, monkeypatch):
        write_manifest(tmp_path, ["lib.es5.d.ts"], {"lib.es5.d.ts": ES5})
        monkeypatch.chdir(tmp_path)
        sources = ManifestDeclarationLoader().load_sync(["", "  "])
        assert len(sources) == 1

    @pytest.mark.asyncio
    async def test_async_load(self, tmp_path):
        write_manifest(tmp_path, ["lib.es5.d.ts"], {"lib.es5.d.ts": ES5})
        sources = await ManifestDeclarationLoader().load_declaration_texts([str(tmp_path)])
        assert sources[0]["content"] == ES5


class TestRemoteFallback:
    def test_environment_switch(self, monkeypatch):
        assert not remote_libs_allowed()
        assert not ManifestDeclarationLoader().allow_remote
        monkeypatch.setenv("FX_LSP_ALLOW_REMOTE_LIBS", "true")
        assert remote_libs_allowed()
        assert ManifestDeclarationLoader().allow_remote

    def test_missing_file_fetched_remotely(self, tmp_path, offline_remote):
        responses, requested = offline_remote
        responses[f"{REMOTE_LIB_RAW_BASE}/lib.es5.d.ts"] = ES5
        write_manifest(tmp_path, ["lib.es5.d.ts", "lib.dom.d.ts"])

        sources = ManifestDeclarationLoader(allow_remote=True).load_sync([str(tmp_path)])
        assert sources == [{"filename": "lib.es5.d.ts", "content": ES5}]
        assert f"{REMOTE_LIB_RAW_BASE}/lib.dom.d.ts" in requested

    def test_remote_file_list_without_manifest(self, tmp_path, offline_remote):
        responses, _ = offline_remote
        responses[REMOTE_LIB_API_URL] = json.dumps(
            [{"name": "lib.es5.d.ts"}, {"name": "README.md"}, {"name": "lib.dom.d.ts"}, "junk"]
        )
        responses[f"{REMOTE_LIB_RAW_BASE}/lib.es5.d.ts"] = ES5
        responses[f"{REMOTE_LIB_RAW_BASE}/lib.dom.d.ts"] = "interface Document {}"

        sources = ManifestDeclarationLoader(allow_remote=True).load_sync([str(tmp_path)])
        assert [source["filename"] for source in sources] == ["lib.es5.d.ts", "lib.dom.d.ts"]

    def test_remote_not_used_when_disallowed(self, tmp_path, offline_remote):
        _, requested = offline_remote
        write_manifest(tmp_path, ["lib.es5.d.ts"])
        assert ManifestDeclarationLoader(allow_remote=False).load_sync([str(tmp_path)]) == []
        assert requested == []

    def test_remote_base_url(self, offline_remote):
        responses, _ = offline_remote
        base = "https://cdn.example.com/app"
        responses[f"{base}/monaco/manifest.json"] = json.dumps({"files": ["lib.es5.d.ts"]})
        responses[f"{base}/monaco/lib.es5.d.ts"] = ES5

        sources = ManifestDeclarationLoader().load_sync([base + "/"])
        assert sources == [{"filename": "lib.es5.d.ts", "content": ES5}]
