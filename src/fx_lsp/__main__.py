from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from ._logging import setup_colored_logging
from ._version import __version__

logger = logging.getLogger(__name__)

_DESCRIPTION = """\
fx-lsp: completion engine for {{ ... }} template expressions

Provides editor support for expressions embedded in template documents with:
• Property path completion from host metadata and live context values
• Member completion and signatures from TypeScript declaration files
• A Language Server Protocol surface for any LSP-capable editor"""


def _load_json(path: str | None, parser: argparse.ArgumentParser, what: str) -> Any:
    if not path:
        return None
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        parser.error(f"Could not read {what} from {path}: {e}")


def main():
    """Main entry point for the language server."""
    parser = argparse.ArgumentParser(
        description=_DESCRIPTION,
        prog="fx-lsp",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: %(default)s)",
    )
    parser.add_argument(
        "--declarations",
        action="append",
        default=[],
        metavar="BASE",
        help="Directory or URL holding monaco/manifest.json and lib.*.d.ts files (repeatable)",
    )
    parser.add_argument("--open-marker", type=str, default="{{", help="Expression open marker")
    parser.add_argument("--close-marker", type=str, default="}}", help="Expression close marker")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Server subcommand
    server_parser = subparsers.add_parser(
        "server",
        help="Start the LSP server",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    server_parser.add_argument("--tcp", action="store_true", help="Use TCP instead of stdio")
    server_parser.add_argument(
        "--port", type=int, default=8080, help="TCP port to listen on (default: %(default)s)"
    )
    server_parser.add_argument("--stdio", action="store_true", help="Use stdio (default)")

    # Complete subcommand
    complete_parser = subparsers.add_parser(
        "complete",
        help="Print suggestions for the end of a line of text",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    complete_parser.add_argument("text", type=str, help="Line up to the cursor, e.g. '{{ user.'")
    complete_parser.add_argument("--metadata", type=str, help="JSON file with the metadata map")
    complete_parser.add_argument("--context", type=str, help="JSON file with the context values")
    complete_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")

    # Cache subcommand
    cache_parser = subparsers.add_parser(
        "cache",
        help="Manage the declaration index cache",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    cache_group = cache_parser.add_mutually_exclusive_group(required=True)
    cache_group.add_argument("--show", action="store_true", help="Print the cache directory path")
    cache_group.add_argument(
        "--generate",
        action="store_true",
        help="Parse the declaration files given with --declarations and cache the index",
    )
    cache_group.add_argument("--clear", action="store_true", help="Remove every cached index")

    args = parser.parse_args()

    # Require explicit subcommand
    if args.command is None:
        parser.error(
            "A subcommand is required. Use 'fx-lsp server' to start the LSP server.\n"
            "See 'fx-lsp --help' for available commands."
        )
    if not args.open_marker or not args.close_marker:
        parser.error("--open-marker and --close-marker must not be empty")

    # Configure colored logging
    log_level = getattr(logging, args.log_level)
    setup_colored_logging(level=log_level)

    from .library import declaration_library

    declaration_library.add_base_urls(args.declarations)

    if args.command == "cache":
        from .cache import declaration_index_cache

        if args.show:
            print(declaration_index_cache.cache_dir)
            return
        if args.clear:
            removed = declaration_index_cache.clear()
            print(f"Removed {removed} cached index(es)")
            return
        if args.generate:
            if not args.declarations:
                parser.error("cache --generate needs at least one --declarations base")
            index = asyncio.run(declaration_library.ensure_loaded())
            print(f"Cached index of {len(index.loaded_files)} declaration file(s)")
            return

    elif args.command == "complete":
        metadata = _load_json(args.metadata, parser, "metadata")
        value_tree = _load_json(args.context, parser, "context")
        _run_complete(args.text, metadata, value_tree, args.open_marker, args.close_marker, args.json)
        return

    elif args.command == "server":
        # Check for mutually exclusive options
        if args.tcp and args.stdio:
            parser.error("--tcp and --stdio are mutually exclusive")

        # Import server only when actually needed
        from .server import create_server

        server = create_server(
            library=declaration_library,
            open_marker=args.open_marker,
            close_marker=args.close_marker,
        )

        if args.tcp:
            logger.info(f"Starting fx-lsp server ({__version__}) on TCP port {args.port}")
            server.start_tcp("localhost", args.port)
        else:
            logger.info(f"Starting fx-lsp server ({__version__}) on stdio")
            server.start_io()


def _run_complete(
    text: str,
    metadata: Any,
    value_tree: Any,
    open_marker: str,
    close_marker: str,
    as_json: bool,
) -> None:
    """Print the suggestions for ``text`` as if the cursor sat at its end."""
    from ._analyzer import compute_suggestions, extract_context
    from .library import declaration_library

    if declaration_library.base_urls:
        asyncio.run(declaration_library.ensure_loaded())
    index = declaration_library.index

    context = extract_context(text, open_marker, close_marker, index)
    if context is None:
        print("Cursor is not inside an expression", file=sys.stderr)
        sys.exit(1)

    items = compute_suggestions(context, metadata, value_tree, index)
    if as_json:
        payload = [
            {
                "label": item.label,
                "insertText": item.insert_text,
                "kind": item.kind,
                "detail": item.detail,
                "documentation": item.documentation,
            }
            for item in items
        ]
        print(json.dumps(payload, indent=2))
        return

    if not items:
        print("No suggestions")
        return
    for item in items:
        detail = f"  {item.detail}" if item.detail and item.detail != item.kind else ""
        print(f"{item.label}\t{item.kind or ''}{detail}")


if __name__ == "__main__":
    main()
