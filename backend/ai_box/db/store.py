"""Row-level persistence for settings, conversations and the knowledge base."""

from __future__ import annotations

import sqlite3
from typing import Sequence

from ai_box.db.sqlite import SQLiteDatabase
from ai_box.ingest.embeddings import bytes_to_embedding, embedding_to_bytes
from ai_box.ingest.types import ChunkPayload
from ai_box.models.entities import Conversation, Document, Message, StoredChunk
from ai_box.utils.ids import new_id

_NOW = "strftime('%Y-%m-%dT%H:%M:%f', 'now')"


class Store:
    """CRUD operations over :class:`SQLiteDatabase`; every write is a single commit."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    # Settings ---------------------------------------------------------

    def get_setting(self, key: str) -> str | None:
        row = self.db.query_one("SELECT value FROM settings WHERE key = ?", [key])
        return row["value"] if row else None

    def set_setting(self, key: str, value: str) -> None:
        with self.db.transaction() as cursor:
            cursor.execute("INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", [key, value])

    def delete_setting(self, key: str) -> bool:
        with self.db.transaction() as cursor:
            cursor.execute("DELETE FROM settings WHERE key = ?", [key])
            return cursor.rowcount > 0

    # Conversations ----------------------------------------------------

    def create_conversation(self, title: str, model: str | None = None) -> Conversation:
        conversation_id = new_id()
        with self.db.transaction() as cursor:
            cursor.execute(
                "INSERT INTO conversations (id, title, model) VALUES (?, ?, ?)",
                [conversation_id, title, model],
            )
        conversation = self.get_conversation(conversation_id)
        assert conversation is not None
        return conversation

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        row = self.db.query_one(
            "SELECT id, title, model, created_at, updated_at FROM conversations WHERE id = ?",
            [conversation_id],
        )
        return _row_to_conversation(row) if row else None

    def list_conversations(self) -> list[Conversation]:
        rows = self.db.query(
            "SELECT id, title, model, created_at, updated_at FROM conversations ORDER BY updated_at DESC, rowid DESC"
        )
        return [_row_to_conversation(row) for row in rows]

    def rename_conversation(self, conversation_id: str, title: str) -> bool:
        with self.db.transaction() as cursor:
            cursor.execute(
                f"UPDATE conversations SET title = ?, updated_at = {_NOW} WHERE id = ?",
                [title, conversation_id],
            )
            return cursor.rowcount > 0

    def delete_conversation(self, conversation_id: str) -> bool:
        with self.db.transaction() as cursor:
            cursor.execute("DELETE FROM conversations WHERE id = ?", [conversation_id])
            return cursor.rowcount > 0

    # Messages ---------------------------------------------------------

    def add_message(self, conversation_id: str, role: str, content: str) -> Message:
        message_id = new_id()
        with self.db.transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO messages (id, conversation_id, role, content, seq)
                VALUES (?, ?, ?, ?, (SELECT COALESCE(MAX(seq), 0) + 1 FROM messages WHERE conversation_id = ?))
                """,
                [message_id, conversation_id, role, content, conversation_id],
            )
            cursor.execute(f"UPDATE conversations SET updated_at = {_NOW} WHERE id = ?", [conversation_id])
        row = self.db.query_one(
            "SELECT id, conversation_id, role, content, created_at FROM messages WHERE id = ?",
            [message_id],
        )
        return _row_to_message(row)

    def get_messages(self, conversation_id: str) -> list[Message]:
        rows = self.db.query(
            "SELECT id, conversation_id, role, content, created_at FROM messages WHERE conversation_id = ? ORDER BY seq ASC",
            [conversation_id],
        )
        return [_row_to_message(row) for row in rows]

    # Documents and chunks ---------------------------------------------

    def add_document(
        self,
        filename: str,
        file_type: str,
        file_path: str,
        file_size: int | None,
        chunks: Sequence[ChunkPayload],
        document_id: str | None = None,
    ) -> Document:
        """Insert a document and its chunks in one transaction."""
        document_id = document_id or new_id()
        with self.db.transaction() as cursor:
            cursor.execute(
                "INSERT INTO documents (id, filename, file_type, file_path, file_size) VALUES (?, ?, ?, ?, ?)",
                [document_id, filename, file_type, file_path, file_size],
            )
            cursor.executemany(
                "INSERT INTO chunks (id, document_id, content, chunk_index, embedding) VALUES (?, ?, ?, ?, ?)",
                [
                    (
                        chunk.id,
                        document_id,
                        chunk.content,
                        chunk.chunk_index,
                        embedding_to_bytes(chunk.embedding) if chunk.embedding is not None else None,
                    )
                    for chunk in chunks
                ],
            )
        document = self.get_document(document_id)
        assert document is not None
        return document

    def get_document(self, document_id: str) -> Document | None:
        row = self.db.query_one(
            "SELECT id, filename, file_type, file_path, file_size, created_at FROM documents WHERE id = ?",
            [document_id],
        )
        return _row_to_document(row) if row else None

    def list_documents(self) -> list[Document]:
        rows = self.db.query(
            "SELECT id, filename, file_type, file_path, file_size, created_at FROM documents ORDER BY created_at DESC, rowid DESC"
        )
        return [_row_to_document(row) for row in rows]

    def delete_document(self, document_id: str) -> bool:
        with self.db.transaction() as cursor:
            cursor.execute("DELETE FROM documents WHERE id = ?", [document_id])
            return cursor.rowcount > 0

    def update_chunk_embeddings(self, pairs: Sequence[tuple[str, Sequence[float]]]) -> None:
        with self.db.transaction() as cursor:
            cursor.executemany(
                "UPDATE chunks SET embedding = ? WHERE id = ?",
                [(embedding_to_bytes(vector), chunk_id) for chunk_id, vector in pairs],
            )

    def get_chunks(self, document_id: str) -> list[StoredChunk]:
        rows = self.db.query(
            "SELECT id, document_id, content, chunk_index, embedding FROM chunks WHERE document_id = ? ORDER BY chunk_index",
            [document_id],
        )
        return [_row_to_chunk(row) for row in rows]

    def embedded_chunks(self) -> list[StoredChunk]:
        """Every chunk that has a vector, in insertion order."""
        rows = self.db.query(
            "SELECT id, document_id, content, chunk_index, embedding FROM chunks WHERE embedding IS NOT NULL ORDER BY rowid"
        )
        return [_row_to_chunk(row) for row in rows]


def _row_to_conversation(row: sqlite3.Row) -> Conversation:
    return Conversation(
        id=row["id"],
        title=row["title"],
        model=row["model"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_message(row: sqlite3.Row) -> Message:
    return Message(
        id=row["id"],
        conversation_id=row["conversation_id"],
        role=row["role"],
        content=row["content"],
        created_at=row["created_at"],
    )


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        filename=row["filename"],
        file_type=row["file_type"],
        file_path=row["file_path"],
        file_size=row["file_size"],
        created_at=row["created_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> StoredChunk:
    blob = row["embedding"]
    return StoredChunk(
        id=row["id"],
        document_id=row["document_id"],
        content=row["content"],
        chunk_index=row["chunk_index"],
        embedding=bytes_to_embedding(blob) if blob is not None else None,
    )


__all__ = ["Store"]
