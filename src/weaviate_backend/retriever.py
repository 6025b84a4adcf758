"""Retrieval pipeline: embed a query and search a Weaviate collection."""

import json
from typing import Any

from loguru import logger

from weaviate_backend.client import WeaviateClientWrapper
from weaviate_backend.embedding import Embedder
from weaviate_backend.errors import EmbeddingError
from weaviate_backend.models import Document, RetrieverOptions, SearchHit

DISTANCE_KEY = "_distance"


def parse_metadata(raw: Any) -> dict[str, Any] | None:
    """Decode a stored metadata property.

    Args:
        raw: Stored value, normally a JSON object string

    Returns:
        The decoded mapping, `{"metadata": raw}` when the value is not a JSON
        object, or None when nothing was stored
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, dict):
        return dict(raw)
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        return {"metadata": raw}
    if not isinstance(decoded, dict):
        return {"metadata": raw}
    return decoded


def hit_to_document(hit: SearchHit) -> Document:
    """Convert a search hit into a host document.

    The distance reported by Weaviate, when present, is stored in the metadata
    under `_distance`.
    """
    properties = hit.properties
    metadata = parse_metadata(properties.get("metadata"))

    if hit.distance is not None:
        metadata = {**(metadata or {}), DISTANCE_KEY: hit.distance}

    return Document(
        content=str(properties.get("content") or ""),
        content_type=properties.get("contentType") or None,
        metadata=metadata,
    )


class WeaviateRetriever:
    """Answers similarity queries against one Weaviate collection."""

    def __init__(
        self,
        collection_name: str,
        client: WeaviateClientWrapper,
        embedder: Embedder,
        embedder_options: dict[str, Any] | None = None,
    ):
        self.collection_name = collection_name
        self.client = client
        self.embedder = embedder
        self.embedder_options = embedder_options

    async def retrieve(
        self, query: Document, options: RetrieverOptions | None = None
    ) -> list[Document]:
        """Return the documents nearest to the query, nearest first.

        Queries are embedded once. Only the first embedding is used: an
        embedder that chunks queries gets a warning, not a multi-vector search.

        Args:
            query: Query document
            options: Result count, distance threshold and filters

        Returns:
            Matching documents in Weaviate's order

        Raises:
            EmbeddingError: If the embedder returns no embedding for the query
        """
        options = options or RetrieverOptions()

        embeddings = await self.embedder.embed(query, self.embedder_options)
        if not embeddings:
            raise EmbeddingError(
                f"Embedder returned no embeddings for a query on {self.collection_name!r}"
            )
        if len(embeddings) > 1:
            logger.warning(
                f"Query embedded into {len(embeddings)} vectors; "
                f"searching {self.collection_name!r} with the first only"
            )

        result = await self.client.search(
            self.collection_name,
            embeddings[0].embedding,
            options.k,
            distance=options.distance,
            filters=options.filters,
        )
        return [hit_to_document(hit) for hit in result.objects]
