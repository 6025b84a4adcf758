"""Registration of Weaviate indexers and retrievers with a host registry.

One shared `WeaviateClientWrapper` serves every configured collection. Each
collection gets an indexer action and a retriever action named
`weaviate/<collectionName>`.

Usage:
    >>> registry = ActionRegistry()
    >>> plugin = WeaviatePlugin(load_config())
    >>> plugin.initialize(registry)
    >>> await registry.index(weaviate_indexer_ref("Documents"), docs)
    >>> ref = weaviate_retriever_ref("Documents")
    >>> await registry.retrieve(ref, "query", RetrieverOptions(k=5))
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from loguru import logger

from weaviate_backend.client import Connector, WeaviateClientWrapper
from weaviate_backend.config import CollectionParams, PluginParams
from weaviate_backend.embedding import Embedder, create_embedder
from weaviate_backend.errors import MisconfigurationError
from weaviate_backend.indexer import WeaviateIndexer
from weaviate_backend.models import Document, IndexerOptions, RetrieverOptions
from weaviate_backend.retriever import WeaviateRetriever

IndexerFn = Callable[[Sequence[Document], IndexerOptions | None], Awaitable[None]]
RetrieverFn = Callable[[Document, RetrieverOptions | None], Awaitable[list[Document]]]
EmbedderFactory = Callable[..., Embedder]

PLUGIN_NAME = "weaviate"


def weaviate_indexer_ref(collection_name: str) -> str:
    """Return the action name of the indexer for a collection."""
    return f"{PLUGIN_NAME}/{collection_name}"


def weaviate_retriever_ref(collection_name: str) -> str:
    """Return the action name of the retriever for a collection."""
    return f"{PLUGIN_NAME}/{collection_name}"


def weaviate_action_label(collection_name: str, display_name: str | None = None) -> str:
    """Return the human-readable label shown for a collection's actions."""
    return display_name or f"Weaviate - {collection_name}"


class ActionRegistry:
    """In-process registry of indexer and retriever actions."""

    def __init__(self) -> None:
        self._indexers: dict[str, IndexerFn] = {}
        self._retrievers: dict[str, RetrieverFn] = {}
        self._labels: dict[str, str] = {}

    def define_indexer(
        self, name: str, fn: IndexerFn, *, label: str | None = None
    ) -> IndexerFn:
        if name in self._indexers:
            raise ValueError(f"Indexer {name!r} is already registered")
        self._indexers[name] = fn
        if label:
            self._labels[name] = label
        return fn

    def define_retriever(
        self, name: str, fn: RetrieverFn, *, label: str | None = None
    ) -> RetrieverFn:
        if name in self._retrievers:
            raise ValueError(f"Retriever {name!r} is already registered")
        self._retrievers[name] = fn
        if label:
            self._labels[name] = label
        return fn

    def label(self, name: str) -> str:
        """Return the display label of an action, falling back to its name."""
        return self._labels.get(name, name)

    def indexer_names(self) -> list[str]:
        return sorted(self._indexers)

    def retriever_names(self) -> list[str]:
        return sorted(self._retrievers)

    async def index(
        self,
        name: str,
        documents: Sequence[Document],
        options: IndexerOptions | None = None,
    ) -> None:
        """Run a registered indexer."""
        try:
            indexer = self._indexers[name]
        except KeyError:
            raise KeyError(f"No indexer registered as {name!r}") from None
        await indexer(documents, options)

    async def retrieve(
        self,
        name: str,
        query: Document | str,
        options: RetrieverOptions | None = None,
    ) -> list[Document]:
        """Run a registered retriever; plain strings are wrapped as documents."""
        try:
            retriever = self._retrievers[name]
        except KeyError:
            raise KeyError(f"No retriever registered as {name!r}") from None
        if isinstance(query, str):
            query = Document(content=query)
        return await retriever(query, options)


class WeaviatePlugin:
    """Wires configured collections to embedders and registers their actions."""

    name = PLUGIN_NAME

    def __init__(
        self,
        params: PluginParams,
        *,
        connect: Connector | None = None,
        embedder_factory: EmbedderFactory = create_embedder,
    ):
        """Initialize the plugin without connecting.

        Args:
            params: Plugin configuration
            connect: Connection opener for the shared client wrapper
            embedder_factory: Builds embedders for collections configured with a
                model identifier
        """
        self.params = params
        self._connect = connect
        self._embedder_factory = embedder_factory
        self.client: WeaviateClientWrapper | None = None
        self.indexers: dict[str, WeaviateIndexer] = {}
        self.retrievers: dict[str, WeaviateRetriever] = {}

    def _validate(self) -> None:
        seen: set[str] = set()
        for collection in self.params.collections:
            if collection.embedder is None or collection.embedder == "":
                raise MisconfigurationError(
                    f"Embedder is required for collection '{collection.collection_name}'"
                )
            if collection.collection_name in seen:
                raise MisconfigurationError(
                    f"Collection '{collection.collection_name}' is configured more than once"
                )
            seen.add(collection.collection_name)

    def _resolve_embedder(self, collection: CollectionParams) -> Embedder:
        embedder = collection.embedder
        if isinstance(embedder, str):
            return self._embedder_factory(
                embedder, config=self.params.embedding, chunking=self.params.chunking
            )
        if not callable(getattr(embedder, "embed", None)):
            raise MisconfigurationError(
                f"Embedder for collection '{collection.collection_name}' has no embed() method"
            )
        return embedder

    def initialize(self, registry: ActionRegistry) -> WeaviateClientWrapper:
        """Validate configuration and register one indexer and retriever per collection.

        Raises:
            MisconfigurationError: If any collection lacks an embedder; nothing
                is registered in that case
        """
        self._validate()
        embedders = {
            collection.collection_name: self._resolve_embedder(collection)
            for collection in self.params.collections
        }

        client = WeaviateClientWrapper(self.params.client_params, connect=self._connect)
        self.client = client

        for collection in self.params.collections:
            name = collection.collection_name
            embedder = embedders[name]

            indexer = WeaviateIndexer(
                name,
                client,
                embedder,
                embedder_options=collection.embedder_options,
                default_options=IndexerOptions(
                    create_collection_if_missing=collection.create_collection_if_missing,
                    collection_config=collection.collection_config,
                ),
            )
            retriever = WeaviateRetriever(
                name, client, embedder, embedder_options=collection.embedder_options
            )

            label = weaviate_action_label(name, collection.display_name)
            registry.define_indexer(weaviate_indexer_ref(name), indexer.index, label=label)
            registry.define_retriever(
                weaviate_retriever_ref(name), retriever.retrieve, label=label
            )
            self.indexers[name] = indexer
            self.retrievers[name] = retriever

        logger.info(
            f"Registered Weaviate actions for {len(self.params.collections)} collection(s)"
        )
        return client

    async def aclose(self) -> None:
        """Close the shared client wrapper, if one was created."""
        if self.client is not None:
            await self.client.close()


def weaviate_plugin(params: PluginParams | dict[str, Any], **kwargs: Any) -> WeaviatePlugin:
    """Build a Weaviate plugin from params or a plain configuration mapping."""
    if not isinstance(params, PluginParams):
        params = PluginParams(**params)
    return WeaviatePlugin(params, **kwargs)
