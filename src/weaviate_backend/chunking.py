"""Token-aware splitting of long documents into chunk documents.

A chunking embedder hands each document to `RecursiveTokenChunker.split_document`
and embeds the resulting sub-documents one by one. Every sub-document keeps the
parent's content type and metadata and adds where the chunk sits in the parent:

    {"chunk_index": 0, "chunk_start": 0, "chunk_end": 812, "chunk_tokens": 180}

The indexer stores those keys with the object's metadata, so a retrieved chunk
can be traced back to its position in the source document.

Splitting is deterministic: the same text and config always produce the same
chunks in the same order.
"""

from dataclasses import dataclass
from typing import Any

import tiktoken
from langchain_text_splitters import RecursiveCharacterTextSplitter

from weaviate_backend.models import Document

BOUNDARY_SEPARATORS = ["\n\n", "\n", ". ", " ", ""]


@dataclass(frozen=True)
class ChunkingConfig:
    """Configuration for document chunking.

    Attributes:
        chunk_size: Target chunk size in tokens
        overlap: Number of overlapping tokens between chunks
        tokenizer: tiktoken encoding name (e.g. "cl100k_base")
        preserve_boundaries: Prefer paragraph, line and sentence breaks as split points
    """

    chunk_size: int = 400
    overlap: int = 50
    tokenizer: str = "cl100k_base"
    preserve_boundaries: bool = True

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.overlap < 0:
            raise ValueError(f"overlap must be non-negative, got {self.overlap}")
        if self.overlap >= self.chunk_size:
            raise ValueError(
                f"overlap ({self.overlap}) must be less than chunk_size ({self.chunk_size})"
            )


@dataclass(frozen=True)
class Chunk:
    """One slice of a document's content.

    `text` is always `source[start_char:end_char]`.
    """

    text: str
    start_char: int
    end_char: int
    token_count: int
    chunk_index: int

    def __post_init__(self) -> None:
        if not self.text:
            raise ValueError("Chunk text cannot be empty")
        if self.start_char < 0 or self.end_char <= self.start_char:
            raise ValueError(f"Invalid offsets: start={self.start_char}, end={self.end_char}")
        if self.token_count <= 0:
            raise ValueError(f"token_count must be positive, got {self.token_count}")
        if self.chunk_index < 0:
            raise ValueError(f"chunk_index must be non-negative, got {self.chunk_index}")

    def position(self) -> dict[str, int]:
        """Metadata locating this chunk in its source document."""
        return {
            "chunk_index": self.chunk_index,
            "chunk_start": self.start_char,
            "chunk_end": self.end_char,
            "chunk_tokens": self.token_count,
        }


class RecursiveTokenChunker:
    """Splits text recursively on boundaries, measuring length in tokens."""

    def __init__(self, config: ChunkingConfig):
        self.config = config
        self.encoding = tiktoken.get_encoding(config.tokenizer)
        self.splitter = RecursiveCharacterTextSplitter(
            chunk_size=config.chunk_size,
            chunk_overlap=config.overlap,
            length_function=self.count_tokens,
            separators=BOUNDARY_SEPARATORS if config.preserve_boundaries else None,
        )

    def count_tokens(self, text: str) -> int:
        return len(self.encoding.encode(text, disallowed_special=()))

    def chunk(self, text: str) -> list[Chunk]:
        """Split text into overlapping chunks with offsets into `text`.

        Raises:
            ValueError: If the text is empty or whitespace only
        """
        if not text or not text.strip():
            raise ValueError("Input text cannot be empty")

        chunks: list[Chunk] = []
        search_from = 0
        for piece in self.splitter.split_text(text):
            # overlapping pieces start after the previous piece's start
            start = text.find(piece, search_from)
            if start == -1:
                continue
            chunks.append(
                Chunk(
                    text=piece,
                    start_char=start,
                    end_char=start + len(piece),
                    token_count=self.count_tokens(piece),
                    chunk_index=len(chunks),
                )
            )
            search_from = start + 1
        return chunks

    def split_document(self, document: Document) -> list[Document]:
        """Split a document into chunk documents carrying their position.

        Args:
            document: Document whose content is split

        Returns:
            Sub-documents in source order; each keeps the parent's content type
            and metadata, extended with `Chunk.position()`
        """
        parent_metadata: dict[str, Any] = dict(document.metadata or {})
        return [
            Document(
                content=chunk.text,
                content_type=document.content_type,
                metadata={**parent_metadata, **chunk.position()},
            )
            for chunk in self.chunk(document.content)
        ]
