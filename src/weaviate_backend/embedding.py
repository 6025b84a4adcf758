"""Embedding collaborator used by the indexer and retriever.

An embedder turns one document into an ordered list of embeddings. Most
embedders return a single entry; a chunking embedder returns one entry per
chunk, each paired with the chunk's own text and metadata.
"""

import asyncio
from typing import Any, Protocol

import httpx
from loguru import logger
from openai import AsyncOpenAI, RateLimitError
from pydantic import BaseModel, Field

from weaviate_backend.chunking import ChunkingConfig, RecursiveTokenChunker
from weaviate_backend.errors import MisconfigurationError
from weaviate_backend.models import Document, Embedding


class EmbeddingConfig(BaseModel):
    """Configuration for embedding generation.

    Attributes:
        model: Model identifier (e.g., "openai/text-embedding-3-small")
        dimensions: Expected embedding width; None accepts the model default
        batch_size: Number of texts to embed per API call
        max_retries: Maximum retry attempts for transient failures
        timeout_seconds: API request timeout
        api_key: API key (falls back to OPENAI_API_KEY when unset)
    """

    model: str = "openai/text-embedding-3-small"
    dimensions: int | None = Field(default=None, ge=128, le=4096)
    batch_size: int = Field(default=100, ge=1, le=500)
    max_retries: int = Field(default=3, ge=1, le=10)
    timeout_seconds: float = Field(default=30.0, ge=1.0, le=300.0)
    api_key: str | None = None


class Embedder(Protocol):
    """Protocol for embedding collaborators."""

    async def embed(
        self, document: Document, options: dict[str, Any] | None = None
    ) -> list[Embedding]:
        """Embed a document.

        Args:
            document: Document to embed
            options: Embedder-specific options

        Returns:
            One or more embeddings, in chunk order
        """
        ...


class OpenAIEmbedder:
    """OpenAI embedder with retry logic and optional chunking."""

    def __init__(self, config: EmbeddingConfig, chunking: ChunkingConfig | None = None):
        """Initialize OpenAI client.

        Args:
            config: Embedding configuration
            chunking: When set, documents are split into token chunks and each
                chunk is embedded separately
        """
        self.config = config
        self.client = AsyncOpenAI(api_key=config.api_key, timeout=config.timeout_seconds)
        self.model_name = config.model.removeprefix("openai/")
        self.chunker = RecursiveTokenChunker(chunking) if chunking else None

    async def embed(
        self, document: Document, options: dict[str, Any] | None = None
    ) -> list[Embedding]:
        """Embed a document, chunking it first when configured.

        Args:
            document: Document to embed
            options: Supports "dimensions" to override the configured width

        Returns:
            Embeddings in chunk order
        """
        dimensions = (options or {}).get("dimensions", self.config.dimensions)
        parts = [document] if self.chunker is None else self.chunker.split_document(document)

        vectors: list[list[float]] = []
        for start in range(0, len(parts), self.config.batch_size):
            batch = [part.content for part in parts[start : start + self.config.batch_size]]
            vectors.extend(await self.embed_batch(batch, dimensions=dimensions))

        return [
            Embedding(
                embedding=vector,
                data=part.content,
                data_type=part.content_type,
                metadata=part.metadata,
            )
            for part, vector in zip(parts, vectors, strict=True)
        ]

    async def embed_batch(
        self, texts: list[str], dimensions: int | None = None
    ) -> list[list[float]]:
        """Generate embeddings for a batch of texts with retry logic.

        Args:
            texts: List of input texts (max batch_size)
            dimensions: Requested embedding width, if any

        Returns:
            List of embedding vectors (same order as inputs)

        Raises:
            ValueError: If batch size exceeds the limit or widths mismatch
            httpx.HTTPError: For API failures after all retries
        """
        if len(texts) > self.config.batch_size:
            raise ValueError(f"Batch size {len(texts)} exceeds limit {self.config.batch_size}")

        if not texts:
            return []

        request: dict[str, Any] = {"model": self.model_name, "input": texts}
        if dimensions is not None:
            request["dimensions"] = dimensions

        for attempt in range(self.config.max_retries):
            try:
                response = await self.client.embeddings.create(**request)
                embeddings = [item.embedding for item in response.data]

                if dimensions is not None:
                    for i, emb in enumerate(embeddings):
                        if len(emb) != dimensions:
                            raise ValueError(
                                f"Expected {dimensions} dimensions, got {len(emb)} for text {i}"
                            )

                logger.debug(
                    f"Embedded {len(texts)} texts with {self.model_name} "
                    f"(attempt {attempt + 1}/{self.config.max_retries})"
                )
                return embeddings

            except httpx.TimeoutException as e:
                logger.warning(
                    f"Timeout embedding batch "
                    f"(attempt {attempt + 1}/{self.config.max_retries}): {e}"
                )
                if attempt < self.config.max_retries - 1:
                    await asyncio.sleep(2**attempt)
                else:
                    raise

            except RateLimitError as e:
                logger.warning(
                    f"Rate limited (attempt {attempt + 1}/{self.config.max_retries}): {e}"
                )
                if attempt < self.config.max_retries - 1:
                    await asyncio.sleep(2 ** (attempt + 1))
                else:
                    raise

        raise RuntimeError("Exhausted all retry attempts")


def create_embedder(
    model: str,
    config: EmbeddingConfig | None = None,
    chunking: ChunkingConfig | None = None,
) -> Embedder:
    """Build an embedder from a model identifier.

    Args:
        model: Model identifier with provider prefix (e.g. "openai/text-embedding-3-small")
        config: Shared embedding settings; its `model` is replaced by `model`
        chunking: Optional chunking configuration

    Returns:
        Embedder implementation

    Raises:
        MisconfigurationError: If the provider prefix is unknown

    Example:
        >>> embedder = create_embedder("openai/text-embedding-3-small")
    """
    if model.startswith("openai/"):
        settings = (config or EmbeddingConfig()).model_copy(update={"model": model})
        return OpenAIEmbedder(settings, chunking=chunking)
    raise MisconfigurationError(f"Unknown model prefix in {model!r}. Expected 'openai/'")
