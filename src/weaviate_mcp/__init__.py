"""MCP server package for the Weaviate RAG backend."""

from .mcp_server import run, run_server

__all__ = [
    "run",
    "run_server",
]
