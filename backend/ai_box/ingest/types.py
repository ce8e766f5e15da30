"""Common ingestion data structures."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(slots=True)
class ParsedDocument:
    """Plain text extracted from a file, with the detected type."""

    path: Path
    text: str
    file_type: str
    size_bytes: int


@dataclass(slots=True)
class ChunkPayload:
    """Chunk produced by the chunker prior to persistence."""

    id: str
    document_id: str
    content: str
    chunk_index: int
    embedding: list[float] | None = None


@dataclass(slots=True)
class UploadResult:
    """Outcome of storing one document."""

    document_id: str
    chunks: int
    embedded_chunks: int
    warning: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "document_id": self.document_id,
            "chunks": self.chunks,
            "embedded_chunks": self.embedded_chunks,
            "warning": self.warning,
        }


__all__ = ["ParsedDocument", "ChunkPayload", "UploadResult"]
