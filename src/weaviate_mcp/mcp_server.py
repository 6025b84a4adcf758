"""MCP server exposing the Weaviate indexers and retrievers as tools."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Coroutine
from importlib import metadata
from typing import Any, cast

from loguru import logger
from weaviate.classes.query import Filter

from weaviate_backend.config import load_config
from weaviate_backend.models import Document, IndexerOptions, RetrieverOptions
from weaviate_backend.plugin import (
    ActionRegistry,
    WeaviatePlugin,
    weaviate_indexer_ref,
    weaviate_retriever_ref,
)

FastMCP: type[Any] | None = None

__all__ = [
    "run_server",
    "run",
    "__version__",
    "FastMCP",
    "build_filters",
]


def _resolve_version() -> str:
    """Return the installed distribution version or fall back to the project default."""

    try:
        return metadata.version("weaviate-rag-mcp")
    except metadata.PackageNotFoundError:
        return "0.1.0"


__version__ = _resolve_version()


def _import_fastmcp() -> type[Any]:
    """Import FastMCP lazily so tests can stub the implementation."""

    global FastMCP
    if FastMCP is not None:
        return FastMCP

    try:
        import fastmcp
        from fastmcp import FastMCP as FastMCPClass

        # Disable banner for stdio transport compatibility
        fastmcp.settings.show_cli_banner = False
    except ModuleNotFoundError as exc:  # pragma: no cover - exercised in tests
        raise ImportError(
            "FastMCP is required to run the Weaviate MCP server. Install `fastmcp` to proceed."
        ) from exc

    FastMCP = cast(type[Any], FastMCPClass)
    return FastMCP


def build_filters(filters: dict[str, Any] | None) -> Any:
    """Translate `{property: value}` equality pairs into a Weaviate filter.

    Returns None for empty input, a single filter for one pair, and an
    `all_of` conjunction otherwise.
    """
    if not filters:
        return None
    clauses = [Filter.by_property(name).equal(value) for name, value in filters.items()]
    if len(clauses) == 1:
        return clauses[0]
    return Filter.all_of(clauses)


async def run_server(config_name: str = "default", overrides: list[str] | None = None) -> None:
    """Run the MCP server event loop."""

    params = load_config(config_name, overrides=overrides)
    fastmcp_class = _import_fastmcp()

    registry = ActionRegistry()
    plugin = WeaviatePlugin(params)
    client = plugin.initialize(registry)
    collection_names = [collection.collection_name for collection in params.collections]

    server = _instantiate_fastmcp(
        fastmcp_class,
        server_id="weaviate-rag-mcp",
        name="Weaviate RAG Server",
        version=__version__,
        description="MCP server indexing and retrieving documents in Weaviate collections.",
    )

    @server.tool()  # type: ignore[misc]
    async def list_collections() -> list[str]:
        """List the Weaviate collections this server can index into and search."""
        return collection_names

    @server.tool()  # type: ignore[misc]
    async def index_documents(
        collection_name: str,
        documents: list[dict[str, Any]],
        create_collection_if_missing: bool | None = None,
    ) -> dict[str, Any]:
        """Embed documents and store them in a collection.

        Args:
            collection_name: One of the names returned by list_collections
            documents: Objects with "content" and optional "content_type" / "metadata"
            create_collection_if_missing: Create the collection first if needed;
                defaults to the collection's configured behaviour

        Returns:
            The collection name and the number of documents indexed
        """
        docs = [Document.model_validate(doc) for doc in documents]
        logger.info(f"index_documents called for {collection_name!r} with {len(docs)} documents")
        options = (
            None
            if create_collection_if_missing is None
            else IndexerOptions(create_collection_if_missing=create_collection_if_missing)
        )
        await registry.index(weaviate_indexer_ref(collection_name), docs, options)
        return {"collection": collection_name, "documents_indexed": len(docs)}

    @server.tool()  # type: ignore[misc]
    async def retrieve_documents(
        collection_name: str,
        query: str,
        k: int = 10,
        distance: float | None = None,
        filters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Find the documents most similar to a query.

        Args:
            collection_name: One of the names returned by list_collections
            query: Natural language query
            k: Maximum number of documents to return
            distance: Optional maximum distance (lower is more similar)
            filters: Optional property equality filters, e.g. {"contentType": "text/plain"}

        Returns:
            Documents nearest first; metadata["_distance"] holds the distance
        """
        logger.debug(f"retrieve_documents called for {collection_name!r} with k={k}")
        documents = await registry.retrieve(
            weaviate_retriever_ref(collection_name),
            query,
            RetrieverOptions(k=k, distance=distance, filters=build_filters(filters)),
        )
        return [document.model_dump() for document in documents]

    @server.tool()  # type: ignore[misc]
    async def collection_stats(collection_name: str) -> dict[str, Any]:
        """Return the object count of a collection."""
        stats = await client.get_collection_stats(collection_name)
        return stats.model_dump()

    @server.tool()  # type: ignore[misc]
    async def delete_documents(collection_name: str, ids: list[str]) -> dict[str, Any]:
        """Delete stored objects by id."""
        await client.delete_objects(collection_name, ids)
        return {"collection": collection_name, "requested": len(ids)}

    try:
        await server.run_async()
    finally:
        await plugin.aclose()


def run(main: Callable[[], Coroutine[Any, Any, None]] | None = None) -> None:
    """Synchronous helper for CLI entry points."""
    entry = main or run_server
    try:
        asyncio.run(entry())
    except KeyboardInterrupt:
        logger.warning("MCP server interrupted by user.")
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled MCP server failure: {}", exc)
        raise


def _instantiate_fastmcp(class_: type[Any], **metadata: Any) -> Any:
    signature = inspect.signature(class_.__init__)
    parameters = signature.parameters

    filtered: dict[str, Any] = {key: value for key, value in metadata.items() if key in parameters}

    if "server_id" in metadata and "server_id" not in filtered and "id" in parameters:
        filtered["id"] = metadata["server_id"]

    if not filtered and any(
        param.kind == inspect.Parameter.VAR_KEYWORD for param in parameters.values()
    ):
        filtered = metadata

    return class_(**filtered)
