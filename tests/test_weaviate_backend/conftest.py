"""In-memory stand-ins for the async Weaviate client and embedders."""

from __future__ import annotations

import asyncio
import math
import uuid
from types import SimpleNamespace
from typing import Any

import pytest

from weaviate_backend.client import WeaviateClientWrapper
from weaviate_backend.config import ClientParams
from weaviate_backend.models import Document, Embedding


def cosine_distance(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return 1.0 - dot / norm


class FakeData:
    def __init__(self, collection: FakeCollection) -> None:
        self._collection = collection

    async def insert_many(self, objects: list[Any]) -> Any:
        self._collection.insert_calls.append(list(objects))
        errors: dict[int, Any] = {}
        uuids: dict[int, Any] = {}
        for idx, obj in enumerate(objects):
            if obj.properties.get("content") in self._collection.rejected_contents:
                errors[idx] = SimpleNamespace(message="rejected by store")
                continue
            object_id = str(obj.uuid or uuid.uuid4())
            self._collection.objects[object_id] = {
                "properties": dict(obj.properties),
                "vector": list(obj.vector),
            }
            uuids[idx] = object_id
        return SimpleNamespace(has_errors=bool(errors), errors=errors, uuids=uuids)

    async def delete_by_id(self, object_id: str) -> bool:
        return self._collection.objects.pop(str(object_id), None) is not None


class FakeQuery:
    def __init__(self, collection: FakeCollection) -> None:
        self._collection = collection

    async def near_vector(self, **kwargs: Any) -> Any:
        self._collection.query_calls.append(kwargs)
        vector = kwargs["near_vector"]
        scored = sorted(
            (
                (cosine_distance(vector, stored["vector"]), object_id, stored)
                for object_id, stored in self._collection.objects.items()
            ),
            key=lambda item: item[0],
        )
        threshold = kwargs.get("distance")
        if threshold is not None:
            scored = [item for item in scored if item[0] <= threshold]
        predicate = kwargs.get("filters")
        if callable(predicate):
            scored = [item for item in scored if predicate(item[2]["properties"])]
        objects = [
            SimpleNamespace(
                uuid=uuid.UUID(object_id),
                properties=dict(stored["properties"]),
                metadata=SimpleNamespace(distance=dist),
            )
            for dist, object_id, stored in scored[: kwargs["limit"]]
        ]
        return SimpleNamespace(objects=objects)


class FakeConfig:
    def __init__(self, collection: FakeCollection) -> None:
        self._collection = collection

    async def get(self) -> Any:
        return SimpleNamespace(name=self._collection.name)


class FakeAggregate:
    def __init__(self, collection: FakeCollection) -> None:
        self._collection = collection

    async def over_all(self, total_count: bool = False) -> Any:
        return SimpleNamespace(total_count=len(self._collection.objects))


class FakeCollection:
    def __init__(self, name: str, description: str | None = None, properties: Any = None):
        self.name = name
        self.description = description
        self.properties = properties or []
        self.objects: dict[str, dict[str, Any]] = {}
        self.insert_calls: list[list[Any]] = []
        self.query_calls: list[dict[str, Any]] = []
        self.rejected_contents: set[str] = set()
        self.data = FakeData(self)
        self.query = FakeQuery(self)
        self.config = FakeConfig(self)
        self.aggregate = FakeAggregate(self)


class FakeCollections:
    def __init__(self) -> None:
        self.store: dict[str, FakeCollection] = {}
        self.create_calls: list[dict[str, Any]] = []
        self.exists_error: Exception | None = None

    async def exists(self, name: str) -> bool:
        if self.exists_error is not None:
            raise self.exists_error
        return name in self.store

    async def create(self, name: str, **kwargs: Any) -> FakeCollection:
        self.create_calls.append({"name": name, **kwargs})
        collection = FakeCollection(name, kwargs.get("description"), kwargs.get("properties"))
        self.store[name] = collection
        return collection

    def get(self, name: str) -> FakeCollection:
        # Weaviate hands out a handle even for unknown collections
        return self.store.setdefault(name, FakeCollection(name))

    async def delete(self, name: str) -> None:
        self.store.pop(name, None)


class FakeWeaviateClient:
    def __init__(self) -> None:
        self.collections = FakeCollections()
        self.close_calls = 0

    async def close(self) -> None:
        self.close_calls += 1


class FakeConnector:
    """Connection opener that counts attempts and yields to the loop first."""

    def __init__(self, client: FakeWeaviateClient, error: Exception | None = None) -> None:
        self.client = client
        self.error = error
        self.calls: list[ClientParams] = []

    async def __call__(self, params: ClientParams) -> FakeWeaviateClient:
        self.calls.append(params)
        await asyncio.sleep(0.01)
        if self.error is not None:
            raise self.error
        return self.client


class TableEmbedder:
    """Embeds documents by looking up their content; `|` separates chunks."""

    def __init__(self, table: dict[str, list[float]] | None = None) -> None:
        self.table = table or {}
        self.calls: list[tuple[Document, dict[str, Any] | None]] = []

    def vector_for(self, text: str) -> list[float]:
        if text in self.table:
            return self.table[text]
        # deterministic fallback, never the zero vector
        return [1.0, float(len(text) % 7), float(sum(map(ord, text)) % 11)]

    async def embed(
        self, document: Document, options: dict[str, Any] | None = None
    ) -> list[Embedding]:
        self.calls.append((document, options))
        await asyncio.sleep(0)
        return [
            Embedding(
                embedding=self.vector_for(part),
                data=part,
                data_type=document.content_type,
                metadata=document.metadata,
            )
            for part in document.content.split("|")
        ]


class FailingEmbedder:
    def __init__(self, error: Exception) -> None:
        self.error = error

    async def embed(
        self, document: Document, options: dict[str, Any] | None = None
    ) -> list[Embedding]:
        raise self.error


@pytest.fixture
def fake_client() -> FakeWeaviateClient:
    return FakeWeaviateClient()


@pytest.fixture
def fake_connector(fake_client: FakeWeaviateClient) -> FakeConnector:
    return FakeConnector(fake_client)


@pytest.fixture
def client_params() -> ClientParams:
    return ClientParams(host="localhost")


@pytest.fixture
def wrapper(client_params: ClientParams, fake_connector: FakeConnector) -> WeaviateClientWrapper:
    return WeaviateClientWrapper(client_params, connect=fake_connector)


@pytest.fixture
def embedder() -> TableEmbedder:
    return TableEmbedder()


@pytest.fixture
def fakes() -> SimpleNamespace:
    """Fake classes for tests that need more than the default fixtures."""
    return SimpleNamespace(
        TableEmbedder=TableEmbedder,
        FailingEmbedder=FailingEmbedder,
        FakeConnector=FakeConnector,
        FakeWeaviateClient=FakeWeaviateClient,
    )
