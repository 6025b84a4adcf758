"""Unit tests for the indexing pipeline."""

import json

import pytest

from weaviate_backend.errors import EmbeddingError
from weaviate_backend.indexer import WeaviateIndexer, plan_objects, to_store_object
from weaviate_backend.models import (
    CollectionConfig,
    Document,
    Embedding,
    IndexerOptions,
    PlannedObject,
    PropertyConfig,
)


def _embedding(text: str, metadata: dict | None = None) -> Embedding:
    return Embedding(embedding=[1.0, 0.0], data=text, metadata=metadata)


class TestPlanObjects:
    """Tests for flattening embeddings into store objects."""

    def test_keeps_document_and_chunk_order(self):
        plan = plan_objects(
            [[_embedding("a0"), _embedding("a1")], [], [_embedding("c0")]]
        )

        assert [(p.document_index, p.chunk_index) for p in plan] == [(0, 0), (0, 1), (2, 0)]
        assert [p.embedding.data for p in plan] == ["a0", "a1", "c0"]

    def test_empty_input(self):
        assert plan_objects([]) == []

    def test_store_object_serializes_metadata(self):
        planned = PlannedObject(
            document_index=0,
            chunk_index=0,
            embedding=Embedding(
                embedding=[0.5, 0.5],
                data="hello",
                data_type="text/plain",
                metadata={"source": "docs", "page": 3},
            ),
        )

        obj = to_store_object(planned)

        assert obj.id
        assert obj.vector == [0.5, 0.5]
        assert obj.properties["content"] == "hello"
        assert obj.properties["contentType"] == "text/plain"
        assert json.loads(obj.properties["metadata"]) == {"source": "docs", "page": 3}

    def test_store_object_defaults(self):
        """Missing content type becomes "" and missing metadata becomes "{}"."""
        obj = to_store_object(
            PlannedObject(document_index=0, chunk_index=0, embedding=_embedding("x"))
        )

        assert obj.properties["contentType"] == ""
        assert obj.properties["metadata"] == "{}"

    def test_store_objects_get_distinct_ids(self):
        planned = PlannedObject(document_index=0, chunk_index=0, embedding=_embedding("x"))

        assert to_store_object(planned).id != to_store_object(planned).id


class TestWeaviateIndexer:
    """Tests for WeaviateIndexer.index."""

    @pytest.mark.asyncio
    async def test_index_into_fresh_collection(self, wrapper, fake_client, embedder):
        """A single document lands as one object in a newly created collection."""
        indexer = WeaviateIndexer("Docs", wrapper, embedder)

        await indexer.index(
            [Document(content="Weaviate is a vector database", metadata={"source": "docs"})],
            IndexerOptions(create_collection_if_missing=True),
        )

        assert await wrapper.collection_exists("Docs")
        stored = list(fake_client.collections.get("Docs").objects.values())
        assert len(stored) == 1
        assert stored[0]["properties"]["content"] == "Weaviate is a vector database"
        assert json.loads(stored[0]["properties"]["metadata"]) == {"source": "docs"}

    @pytest.mark.asyncio
    async def test_index_into_existing_collection(self, wrapper, fake_client, embedder):
        """With creation disabled no create call is made."""
        fake_client.collections.get("Docs")
        indexer = WeaviateIndexer("Docs", wrapper, embedder)

        await indexer.index(
            [Document(content="first"), Document(content="second")],
            IndexerOptions(create_collection_if_missing=False),
        )

        assert fake_client.collections.create_calls == []
        assert len(fake_client.collections.get("Docs").objects) == 2

    @pytest.mark.asyncio
    async def test_chunks_keep_their_order(self, wrapper, fake_client, embedder):
        indexer = WeaviateIndexer("Docs", wrapper, embedder)

        await indexer.index([Document(content="c0|c1|c2"), Document(content="d0")])

        collection = fake_client.collections.get("Docs")
        assert len(collection.insert_calls) == 1
        batch = collection.insert_calls[0]
        assert [obj.properties["content"] for obj in batch] == ["c0", "c1", "c2", "d0"]

    @pytest.mark.asyncio
    async def test_default_options_supply_collection_config(self, wrapper, fake_client, embedder):
        indexer = WeaviateIndexer(
            "Docs",
            wrapper,
            embedder,
            default_options=IndexerOptions(
                collection_config=CollectionConfig(
                    description="notes",
                    properties=[PropertyConfig(name="source", data_type="text")],
                )
            ),
        )

        await indexer.index([Document(content="hello")])

        call = fake_client.collections.create_calls[0]
        assert call["name"] == "Docs"
        assert call["description"] == "notes"
        assert [prop.name for prop in call["properties"]][-1] == "source"

    @pytest.mark.asyncio
    async def test_embedder_options_are_forwarded(self, wrapper, embedder):
        indexer = WeaviateIndexer("Docs", wrapper, embedder, embedder_options={"dimensions": 256})

        await indexer.index([Document(content="hello")])

        assert embedder.calls[0][1] == {"dimensions": 256}

    @pytest.mark.asyncio
    async def test_embedder_failure_stops_before_insert(self, wrapper, fake_client, fakes):
        indexer = WeaviateIndexer("Docs", wrapper, fakes.FailingEmbedder(RuntimeError("boom")))

        with pytest.raises(RuntimeError, match="boom"):
            await indexer.index([Document(content="hello")])

        assert fake_client.collections.get("Docs").insert_calls == []

    @pytest.mark.asyncio
    async def test_empty_embeddings_raise(self, wrapper, fake_client):
        class SilentEmbedder:
            async def embed(self, document, options=None):
                return []

        indexer = WeaviateIndexer("Docs", wrapper, SilentEmbedder())

        with pytest.raises(EmbeddingError, match="no embeddings"):
            await indexer.index([Document(content="hello")])

        assert fake_client.collections.get("Docs").insert_calls == []
