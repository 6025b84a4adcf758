"""Weaviate indexer and retriever backend.

This package stores document embeddings in Weaviate and answers similarity
queries, independent of any server interface. The MCP server in `weaviate_mcp`
consumes it as a service layer.

Architecture:
    - client: Lazily connected Weaviate client wrapper (collections, objects, search)
    - indexer: Embed documents and insert one object per embedding chunk
    - retriever: Embed a query and map nearest neighbours back to documents
    - plugin: Register an indexer and a retriever per configured collection
    - embedding: Embedding collaborator protocol and OpenAI implementation
    - chunking: Token-aware text splitting for chunking embedders
    - config: Pydantic configuration loaded with Hydra
    - models: Pydantic schemas for documents, store objects, search results

Usage:
    >>> from weaviate_backend import ActionRegistry, WeaviatePlugin, load_config
    >>> registry = ActionRegistry()
    >>> WeaviatePlugin(load_config()).initialize(registry)
    >>> docs = await registry.retrieve("weaviate/Documents", "vector databases")
"""

__version__ = "0.1.0"

from weaviate_backend.client import WeaviateClientWrapper
from weaviate_backend.config import ClientParams, CollectionParams, PluginParams, load_config
from weaviate_backend.errors import (
    EmbeddingError,
    MisconfigurationError,
    StoreConnectionError,
    StoreOperationError,
    WeaviateBackendError,
)
from weaviate_backend.indexer import WeaviateIndexer
from weaviate_backend.models import (
    CollectionConfig,
    Document,
    Embedding,
    IndexerOptions,
    RetrieverOptions,
)
from weaviate_backend.plugin import (
    ActionRegistry,
    WeaviatePlugin,
    weaviate_action_label,
    weaviate_indexer_ref,
    weaviate_plugin,
    weaviate_retriever_ref,
)
from weaviate_backend.retriever import WeaviateRetriever

__all__ = [
    "ActionRegistry",
    "ClientParams",
    "CollectionConfig",
    "CollectionParams",
    "Document",
    "Embedding",
    "EmbeddingError",
    "IndexerOptions",
    "MisconfigurationError",
    "PluginParams",
    "RetrieverOptions",
    "StoreConnectionError",
    "StoreOperationError",
    "WeaviateBackendError",
    "WeaviateClientWrapper",
    "WeaviateIndexer",
    "WeaviatePlugin",
    "WeaviateRetriever",
    "load_config",
    "weaviate_action_label",
    "weaviate_indexer_ref",
    "weaviate_plugin",
    "weaviate_retriever_ref",
]
