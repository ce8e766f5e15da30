"""Chunking utilities."""

from __future__ import annotations

from typing import Iterable

from ai_box.core.errors import UnsupportedInputError
from ai_box.ingest.types import ChunkPayload
from ai_box.utils.ids import new_id

DEFAULT_CHUNK_SIZE = 512
DEFAULT_CHUNK_OVERLAP = 64


def chunk_text(text: str, size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_CHUNK_OVERLAP) -> list[str]:
    """Split text into overlapping windows of ``size`` characters.

    Consecutive windows start ``size - overlap`` characters apart. The input
    and every window are trimmed; windows that trim to nothing are dropped.
    The window that reaches the end of the text is the last one.
    """
    if size <= 0 or overlap < 0 or overlap >= size:
        raise UnsupportedInputError(f"Invalid chunk window: size={size} overlap={overlap}")
    text = text.strip()
    if not text:
        return []
    if len(text) <= size:
        return [text]

    step = size - overlap
    chunks: list[str] = []
    start = 0
    while start < len(text):
        end = min(start + size, len(text))
        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)
        if end >= len(text):
            break
        start += step
    return chunks


def build_chunk_payloads(document_id: str, texts: Iterable[str]) -> list[ChunkPayload]:
    """Attach ids and ordinals to raw chunk texts."""
    return [
        ChunkPayload(id=new_id(), document_id=document_id, content=content, chunk_index=index)
        for index, content in enumerate(texts)
    ]


__all__ = ["chunk_text", "build_chunk_payloads", "DEFAULT_CHUNK_SIZE", "DEFAULT_CHUNK_OVERLAP"]
