"""Weaviate client wrapper shared by every indexer and retriever.

Provides collection-scoped primitives over Weaviate's async v4 client:
- Lazy, exactly-once connection shared by concurrent callers
- Idempotent collection provisioning with the fixed document schema
- Batch insertion, near-vector search, deletion and statistics
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import weaviate
from loguru import logger
from weaviate.classes.config import Configure, DataType, Property
from weaviate.classes.data import DataObject
from weaviate.classes.init import AdditionalConfig, Auth, Timeout
from weaviate.classes.query import MetadataQuery
from weaviate.exceptions import WeaviateBaseError

from weaviate_backend.config import ClientParams
from weaviate_backend.errors import StoreConnectionError, StoreOperationError
from weaviate_backend.models import (
    CollectionConfig,
    CollectionStats,
    SearchHit,
    SearchResult,
    StoreObject,
)

Connector = Callable[[ClientParams], Awaitable[Any]]

DEFAULT_SEARCH_LIMIT = 10


def _document_properties() -> list[Property]:
    return [
        Property(name="content", data_type=DataType.TEXT, description="Document content"),
        Property(
            name="contentType", data_type=DataType.TEXT, description="Document content type"
        ),
        Property(
            name="metadata",
            data_type=DataType.TEXT,
            description="Document metadata as JSON string",
        ),
    ]


async def connect_weaviate(params: ClientParams) -> Any:
    """Open and connect an async Weaviate client.

    Cloud mode when an API key is configured, local mode otherwise. Local mode
    with `secure=True` uses a custom connection with TLS on HTTP and gRPC.

    Args:
        params: Connection parameters

    Returns:
        A connected `WeaviateAsyncClient`
    """
    additional_config = (
        AdditionalConfig(timeout=Timeout(init=params.timeout)) if params.timeout else None
    )

    if params.api_key:
        client = weaviate.use_async_with_weaviate_cloud(
            cluster_url=params.host,
            auth_credentials=Auth.api_key(params.api_key),
            headers=params.headers,
            additional_config=additional_config,
        )
    elif params.secure:
        client = weaviate.use_async_with_custom(
            http_host=params.host,
            http_port=params.port,
            http_secure=True,
            grpc_host=params.host,
            grpc_port=params.grpc_port,
            grpc_secure=True,
            headers=params.headers,
            additional_config=additional_config,
        )
    else:
        client = weaviate.use_async_with_local(
            host=params.host,
            port=params.port,
            grpc_port=params.grpc_port,
            headers=params.headers,
            additional_config=additional_config,
        )

    await client.connect()
    return client


class WeaviateClientWrapper:
    """Collection-scoped access to one lazily connected Weaviate client.

    The connection is opened on first use. Concurrent callers arriving before it
    completes await the same attempt, so at most one connection is ever opened.
    A failed attempt is not retried; every later call raises the same
    `StoreConnectionError`.
    """

    def __init__(self, params: ClientParams, connect: Connector | None = None):
        """Initialize the wrapper without connecting.

        Args:
            params: Connection parameters
            connect: Coroutine function opening the client (defaults to
                `connect_weaviate`)
        """
        self.params = params
        self._connect = connect or connect_weaviate
        self._connect_task: asyncio.Task[Any] | None = None
        self._closed = False

    async def _open(self) -> Any:
        mode = "cloud" if self.params.api_key else "local"
        try:
            client = await self._connect(self.params)
        except Exception as exc:
            raise StoreConnectionError(
                f"Failed to connect to Weaviate at {self.params.host} ({mode}): {exc}"
            ) from exc
        logger.info(f"Connected to Weaviate at {self.params.host} ({mode})")
        return client

    async def _ensure_connected(self) -> Any:
        if self._closed:
            raise StoreConnectionError("Weaviate client wrapper is closed")
        if self._connect_task is None:
            self._connect_task = asyncio.ensure_future(self._open())
        task = self._connect_task
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # close() cancelled the shared attempt; a cancelled caller re-raises
            if task.cancelled():
                raise StoreConnectionError(
                    "Weaviate client wrapper was closed while connecting"
                ) from None
            raise

    async def get_client(self) -> Any:
        """Return the underlying connected `WeaviateAsyncClient`."""
        return await self._ensure_connected()

    async def collection_exists(self, collection_name: str) -> bool:
        """Check whether a collection exists.

        Lookup failures are reported as False so the result can guard
        idempotent creation.
        """
        client = await self._ensure_connected()
        try:
            return bool(await client.collections.exists(collection_name))
        except WeaviateBaseError as exc:
            logger.warning(f"Existence check for collection {collection_name!r} failed: {exc}")
            return False

    async def create_collection(self, config: CollectionConfig) -> None:
        """Create a collection unless it already exists.

        The schema always holds content, contentType and metadata (JSON text);
        vectors are supplied by the caller.
        """
        if not config.name:
            raise ValueError("Collection config requires a name")

        client = await self._ensure_connected()
        if await self.collection_exists(config.name):
            return

        properties = _document_properties()
        for prop in config.properties or []:
            properties.append(
                Property(
                    name=prop.name,
                    data_type=DataType(prop.data_type),
                    description=prop.description,
                )
            )

        await client.collections.create(
            name=config.name,
            description=config.description,
            vectorizer_config=Configure.Vectorizer.none(),
            properties=properties,
        )
        logger.info(f"Created Weaviate collection {config.name!r}")

    async def insert_objects(self, collection_name: str, objects: Sequence[StoreObject]) -> None:
        """Insert objects into a collection in one batch.

        Raises:
            StoreOperationError: If Weaviate reports per-object errors
        """
        if not objects:
            logger.debug(f"No objects to insert into {collection_name!r}")
            return

        client = await self._ensure_connected()
        collection = client.collections.get(collection_name)

        result = await collection.data.insert_many(
            [
                DataObject(properties=obj.properties, vector=obj.vector, uuid=obj.id)
                for obj in objects
            ]
        )
        if result.has_errors:
            errors = {idx: error.message for idx, error in result.errors.items()}
            raise StoreOperationError(collection_name, errors)

        logger.debug(f"Inserted {len(objects)} objects into {collection_name!r}")

    async def search(
        self,
        collection_name: str,
        vector: Sequence[float],
        limit: int = DEFAULT_SEARCH_LIMIT,
        *,
        distance: float | None = None,
        filters: Any = None,
    ) -> SearchResult:
        """Search for the nearest vectors in a collection.

        Args:
            collection_name: Name of the collection to search
            vector: The query vector
            limit: Maximum number of results to return
            distance: Maximum distance threshold, passed through verbatim
            filters: Weaviate filter, passed through verbatim

        Returns:
            Matches nearest-first, each with the distance reported by Weaviate
        """
        client = await self._ensure_connected()
        collection = client.collections.get(collection_name)

        query: dict[str, Any] = {
            "near_vector": list(vector),
            "limit": limit,
            "return_metadata": MetadataQuery(distance=True),
        }
        if distance is not None:
            query["distance"] = distance
        if filters is not None:
            query["filters"] = filters

        logger.debug(
            f"near_vector on {collection_name!r}: limit={limit}, distance={distance}, "
            f"filtered={filters is not None}"
        )
        response = await collection.query.near_vector(**query)

        hits = [
            SearchHit(
                id=str(obj.uuid),
                properties=dict(obj.properties or {}),
                distance=obj.metadata.distance if obj.metadata is not None else None,
            )
            for obj in response.objects
        ]
        return SearchResult(objects=hits, total=len(hits))

    async def delete_objects(self, collection_name: str, ids: Sequence[str]) -> None:
        """Delete objects one by one; ids that are not found are skipped."""
        client = await self._ensure_connected()
        collection = client.collections.get(collection_name)

        for object_id in ids:
            deleted = await collection.data.delete_by_id(object_id)
            if not deleted:
                logger.warning(f"Object {object_id} not found in {collection_name!r}")

    async def delete_collection(self, collection_name: str) -> None:
        """Drop a collection and all its objects."""
        client = await self._ensure_connected()
        await client.collections.delete(collection_name)
        logger.info(f"Deleted Weaviate collection {collection_name!r}")

    async def get_collection_stats(self, collection_name: str) -> CollectionStats:
        """Return the collection name and a point-in-time object count."""
        client = await self._ensure_connected()
        collection = client.collections.get(collection_name)

        config = await collection.config.get()
        aggregate = await collection.aggregate.over_all(total_count=True)

        return CollectionStats(name=config.name, object_count=aggregate.total_count or 0)

    async def close(self) -> None:
        """Close the connection. Safe to call repeatedly; never raises."""
        if self._closed:
            return
        self._closed = True

        task, self._connect_task = self._connect_task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
            return
        if task.cancelled() or task.exception() is not None:
            return

        try:
            await task.result().close()
        except Exception as exc:  # noqa: BLE001
            logger.warning(f"Error while closing Weaviate client: {exc}")

    async def __aenter__(self) -> WeaviateClientWrapper:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()
