"""Error taxonomy for the Weaviate backend.

Transport errors raised by `weaviate-client` and embedder errors (OpenAI, httpx)
are not wrapped; they reach the caller unchanged. The classes below cover the
failures this package detects itself.
"""

from __future__ import annotations


class WeaviateBackendError(Exception):
    """Base class for errors raised by this package."""


class StoreConnectionError(WeaviateBackendError, ConnectionError):
    """Connecting to Weaviate failed.

    The failed attempt is remembered by the client wrapper: every later
    operation on the same wrapper raises this error again.
    """


class MisconfigurationError(WeaviateBackendError, ValueError):
    """Plugin configuration is invalid (e.g. a collection without an embedder)."""


class StoreOperationError(WeaviateBackendError, RuntimeError):
    """Weaviate reported per-object failures for a batch write."""

    def __init__(self, collection: str, errors: dict[int, str]):
        self.collection = collection
        self.errors = errors
        preview = "; ".join(f"#{idx}: {msg}" for idx, msg in sorted(errors.items())[:5])
        super().__init__(
            f"Failed to insert {len(errors)} object(s) into {collection!r}: {preview}"
        )


class EmbeddingError(WeaviateBackendError, RuntimeError):
    """The embedder returned an unusable result."""
