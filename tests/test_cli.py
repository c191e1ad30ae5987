"""Tests for the command line interface."""

from __future__ import annotations

import json
import logging
import sys

import pytest

import fx_lsp.library
from fx_lsp.__main__ import main
from fx_lsp.library import DeclarationLibrary


@pytest.fixture(autouse=True)
def _restore_logging():
    root_logger = logging.getLogger()
    handlers, level = root_logger.handlers[:], root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def run_cli(monkeypatch):
    def run(*args):
        monkeypatch.setattr(sys, "argv", ["fx-lsp", *args])
        main()

    return run


@pytest.fixture
def library(monkeypatch, make_loader):
    library = DeclarationLibrary(loader=make_loader())
    monkeypatch.setattr(fx_lsp.library, "declaration_library", library)
    return library


class TestComplete:
    def test_table_output(self, run_cli, capsys, tmp_path, library):
        context = tmp_path / "context.json"
        context.write_text(json.dumps({"user": {"name": "Ada", "age": 36}}), encoding="utf-8")
        run_cli("complete", "{{ user.", "--context", str(context))
        out = capsys.readouterr().out.splitlines()
        assert out == ["age\tnumber", "name\tstring"]

    def test_json_output(self, run_cli, capsys, tmp_path, library):
        metadata = tmp_path / "metadata.json"
        metadata.write_text(
            json.dumps({"user": {"kind": "object", "detail": "Current user"}}), encoding="utf-8"
        )
        run_cli("complete", "{{ us", "--metadata", str(metadata), "--json")
        payload = json.loads(capsys.readouterr().out)
        assert payload == [
            {
                "label": "user",
                "insertText": "user.",
                "kind": "object",
                "detail": "Current user",
                "documentation": None,
            }
        ]

    def test_declarations_are_loaded(self, run_cli, capsys, library):
        run_cli("--declarations", "/srv/app", "complete", "{{ Math.m")
        out = capsys.readouterr().out
        assert "max\tfunction  max(...values: number[]): number" in out
        assert library.loaded
        assert library.loader.calls == [["/srv/app"]]

    def test_no_suggestions(self, run_cli, capsys, library):
        run_cli("complete", "{{ nothing.here.")
        assert capsys.readouterr().out.strip() == "No suggestions"

    def test_outside_expression(self, run_cli, capsys, library):
        with pytest.raises(SystemExit) as exc_info:
            run_cli("complete", "plain text")
        assert exc_info.value.code == 1
        assert "not inside an expression" in capsys.readouterr().err

    def test_custom_markers(self, run_cli, capsys, tmp_path, library):
        context = tmp_path / "context.json"
        context.write_text(json.dumps({"a": {"b": True}}), encoding="utf-8")
        run_cli("--open-marker", "<%", "--close-marker", "%>", "complete", "<% a.", "--context", str(context))
        assert capsys.readouterr().out.splitlines() == ["b\tboolean"]

    def test_unreadable_json(self, run_cli, tmp_path, library):
        with pytest.raises(SystemExit) as exc_info:
            run_cli("complete", "{{ a.", "--context", str(tmp_path / "missing.json"))
        assert exc_info.value.code == 2


class TestArguments:
    def test_subcommand_required(self, run_cli, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run_cli()
        assert exc_info.value.code == 2
        assert "subcommand is required" in capsys.readouterr().err

    def test_empty_marker_rejected(self, run_cli):
        with pytest.raises(SystemExit):
            run_cli("--open-marker", "", "complete", "x")

    def test_version(self, run_cli, capsys):
        with pytest.raises(SystemExit):
            run_cli("--version")
        assert capsys.readouterr().out.startswith("fx-lsp ")


class TestCacheCommand:
    def test_show(self, run_cli, capsys, monkeypatch, tmp_path):
        from fx_lsp.cache import declaration_index_cache

        monkeypatch.setattr(declaration_index_cache, "cache_dir", tmp_path)
        run_cli("cache", "--show")
        assert capsys.readouterr().out.strip() == str(tmp_path)

    def test_clear(self, run_cli, capsys, monkeypatch, tmp_path, index):
        from fx_lsp.cache import declaration_index_cache

        monkeypatch.delenv("FX_LSP_DISABLE_CACHE")
        monkeypatch.setattr(declaration_index_cache, "cache_dir", tmp_path)
        declaration_index_cache.set("entry", index)
        run_cli("cache", "--clear")
        assert capsys.readouterr().out.strip() == "Removed 1 cached index(es)"

    def test_generate_requires_declarations(self, run_cli, library):
        with pytest.raises(SystemExit):
            run_cli("cache", "--generate")

    def test_generate(self, run_cli, capsys, library):
        run_cli("--declarations", "/srv/app", "cache", "--generate")
        assert capsys.readouterr().out.strip() == "Cached index of 1 declaration file(s)"
