"""Pydantic models for data flowing through the Weaviate backend.

Documents enter the indexer and leave the retriever in the host representation;
store objects and search hits describe what Weaviate persists and returns.
"""

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from weaviate.classes.config import DataType


class PropertyConfig(BaseModel):
    """An extra collection property declared alongside the fixed schema.

    Attributes:
        name: Property name
        data_type: Weaviate data type name (e.g. "text", "int", "number")
        description: Optional property description
    """

    name: str = Field(min_length=1)
    data_type: str = Field(min_length=1)
    description: str | None = None

    @field_validator("data_type")
    @classmethod
    def validate_data_type(cls, v: str) -> str:
        """Resolve the name to a Weaviate data type, ignoring case."""
        known = {member.value.lower(): member.value for member in DataType}
        try:
            return known[v.lower()]
        except KeyError:
            raise ValueError(
                f"Unknown Weaviate data type {v!r}; expected one of {sorted(known.values())}"
            ) from None


class CollectionConfig(BaseModel):
    """Provisioning parameters for a collection.

    Attributes:
        name: Collection name (filled in by the indexer when omitted)
        description: Optional collection description
        properties: Extra properties added after content/contentType/metadata
    """

    name: str | None = None
    description: str | None = None
    properties: list[PropertyConfig] | None = None


class Document(BaseModel):
    """Host-level content unit.

    Attributes:
        content: Textual payload (or a data URI / reference for media)
        content_type: Optional MIME-style content type tag
        metadata: Opaque key-value metadata
    """

    content: str
    content_type: str | None = None
    metadata: dict[str, Any] | None = None


class Embedding(BaseModel):
    """One entry returned by the embedding collaborator.

    A document that the embedder chunks yields several entries, each carrying
    its own sub-document view (`data`, `data_type`, `metadata`).
    """

    embedding: list[float] = Field(min_length=1)
    data: str
    data_type: str | None = None
    metadata: dict[str, Any] | None = None

    @field_validator("embedding")
    @classmethod
    def validate_vector_values(cls, v: list[float]) -> list[float]:
        """Ensure vector contains valid finite floats."""
        for i, val in enumerate(v):
            if not math.isfinite(val):
                raise ValueError(f"Vector contains non-finite value at index {i}: {val}")
        return v


class PlannedObject(BaseModel):
    """Position of one embedding within an indexing batch.

    Attributes:
        document_index: Index of the source document in the input batch
        chunk_index: Index of the embedding within that document's embeddings
        embedding: The embedding entry itself
    """

    document_index: int = Field(ge=0)
    chunk_index: int = Field(ge=0)
    embedding: Embedding


class StoreObject(BaseModel):
    """A single object ready for insertion into a collection.

    Attributes:
        id: Caller-assigned UUID string, or None to let Weaviate assign one
        properties: Flat property mapping (content, contentType, metadata)
        vector: The object's only vector
    """

    id: str | None = None
    properties: dict[str, Any]
    vector: list[float] = Field(min_length=1)


class SearchHit(BaseModel):
    """A single nearest-neighbour match.

    Attributes:
        id: Object UUID as a string
        properties: Stored properties
        distance: Distance reported by Weaviate, if any
    """

    id: str
    properties: dict[str, Any]
    distance: float | None = None


class SearchResult(BaseModel):
    """Result of a near-vector query, nearest first."""

    objects: list[SearchHit] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)


class CollectionStats(BaseModel):
    """Point-in-time statistics for a collection."""

    name: str
    object_count: int = Field(ge=0)


class IndexerOptions(BaseModel):
    """Per-call options for an indexer action.

    Attributes:
        create_collection_if_missing: Provision the collection before writing
        collection_config: Description/extra properties used when provisioning
    """

    create_collection_if_missing: bool = True
    collection_config: CollectionConfig | None = None


class RetrieverOptions(BaseModel):
    """Per-call options for a retriever action.

    Attributes:
        k: Maximum number of documents to return (default 10)
        distance: Maximum distance cutoff, passed to Weaviate verbatim
        filters: Opaque Weaviate filter (built with `weaviate.classes.query.Filter`)
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    k: int = Field(default=10, ge=1)
    distance: float | None = None
    filters: Any = None
