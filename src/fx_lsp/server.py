"""
fx Language Server Protocol implementation.
Provides completion for ``{{ ... }}`` expressions embedded in template documents.
"""

from __future__ import annotations

from ._server.server import SET_CONTEXT, FxLanguageServer, create_server

__all__ = ["SET_CONTEXT", "FxLanguageServer", "create_server"]
