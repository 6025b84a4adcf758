"""Indexing pipeline: embed documents and store them in a Weaviate collection.

Handles the complete workflow:
1. Provision the collection (optional, idempotent)
2. Embed every document (concurrently across documents)
3. Flatten per-document embeddings into store objects, keeping chunk order
4. Insert the whole batch in one call
"""

import asyncio
import json
import uuid
from collections.abc import Sequence
from typing import Any

from loguru import logger

from weaviate_backend.client import WeaviateClientWrapper
from weaviate_backend.embedding import Embedder
from weaviate_backend.errors import EmbeddingError
from weaviate_backend.models import (
    CollectionConfig,
    Document,
    Embedding,
    IndexerOptions,
    PlannedObject,
    StoreObject,
)


def plan_objects(embeddings_per_document: Sequence[Sequence[Embedding]]) -> list[PlannedObject]:
    """Flatten per-document embeddings into an ordered list of planned objects.

    Documents appear in input order and, within a document, embeddings keep the
    order the embedder returned them in.

    Args:
        embeddings_per_document: Embeddings for each input document

    Returns:
        One planned object per embedding

    Example:
        >>> plan = plan_objects([[e0, e1], [e2]])
        >>> [(p.document_index, p.chunk_index) for p in plan]
        [(0, 0), (0, 1), (1, 0)]
    """
    return [
        PlannedObject(document_index=doc_idx, chunk_index=chunk_idx, embedding=embedding)
        for doc_idx, embeddings in enumerate(embeddings_per_document)
        for chunk_idx, embedding in enumerate(embeddings)
    ]


def to_store_object(planned: PlannedObject) -> StoreObject:
    """Materialize a planned embedding as a store object with a fresh id."""
    embedding = planned.embedding
    return StoreObject(
        id=str(uuid.uuid4()),
        properties={
            "content": embedding.data,
            "contentType": embedding.data_type or "",
            "metadata": json.dumps(embedding.metadata or {}),
        },
        vector=embedding.embedding,
    )


class WeaviateIndexer:
    """Indexes documents into one Weaviate collection."""

    def __init__(
        self,
        collection_name: str,
        client: WeaviateClientWrapper,
        embedder: Embedder,
        embedder_options: dict[str, Any] | None = None,
        default_options: IndexerOptions | None = None,
    ):
        """Initialize the indexer.

        Args:
            collection_name: Collection to index into
            client: Shared Weaviate client wrapper
            embedder: Embedding collaborator
            embedder_options: Options passed to every embed call
            default_options: Options used when a call does not supply its own
        """
        self.collection_name = collection_name
        self.client = client
        self.embedder = embedder
        self.embedder_options = embedder_options
        self.default_options = default_options or IndexerOptions()

    async def _embed(self, document: Document) -> list[Embedding]:
        embeddings = await self.embedder.embed(document, self.embedder_options)
        if not embeddings:
            raise EmbeddingError(
                f"Embedder returned no embeddings for a document bound for "
                f"{self.collection_name!r}"
            )
        return embeddings

    async def index(
        self, documents: Sequence[Document], options: IndexerOptions | None = None
    ) -> None:
        """Embed and store documents.

        Args:
            documents: Documents to index
            options: Per-call options; defaults to the indexer's default options

        Raises:
            EmbeddingError: If the embedder returns nothing for a document
        """
        options = options or self.default_options

        if options.create_collection_if_missing:
            collection_config = options.collection_config or self.default_options.collection_config
            await self.client.create_collection(
                CollectionConfig(
                    name=self.collection_name,
                    description=collection_config.description if collection_config else None,
                    properties=collection_config.properties if collection_config else None,
                )
            )

        embeddings_per_document = await asyncio.gather(*(self._embed(doc) for doc in documents))
        objects = [to_store_object(planned) for planned in plan_objects(embeddings_per_document)]

        await self.client.insert_objects(self.collection_name, objects)
        logger.info(
            f"Indexed {len(objects)} objects from {len(documents)} documents "
            f"into {self.collection_name!r}"
        )
