"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class Conversation:
    id: str
    title: str
    model: str | None
    created_at: str
    updated_at: str


@dataclass(slots=True)
class Message:
    id: str
    conversation_id: str
    role: str
    content: str
    created_at: str


@dataclass(slots=True)
class Document:
    id: str
    filename: str
    file_type: str
    file_path: str
    file_size: int | None
    created_at: str


@dataclass(slots=True)
class StoredChunk:
    id: str
    document_id: str
    content: str
    chunk_index: int
    embedding: list[float] | None


__all__ = ["Conversation", "Message", "Document", "StoredChunk"]
