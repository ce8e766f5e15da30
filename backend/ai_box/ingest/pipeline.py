"""Document upload: parse, chunk, persist, then embed in batches."""

from __future__ import annotations

from pathlib import Path

from ai_box.core.config import Settings
from ai_box.core.errors import AIBoxError, ConfigError, NotFoundError, UnsupportedInputError
from ai_box.core.logging import get_logger
from ai_box.db.store import Store
from ai_box.ingest.chunker import build_chunk_payloads, chunk_text
from ai_box.ingest.embeddings import iter_embedding_batches
from ai_box.ingest.loaders import LoaderRegistry
from ai_box.ingest.types import UploadResult
from ai_box.llm.types import OpenAIConfig
from ai_box.models.entities import Document
from ai_box.utils.ids import new_id

logger = get_logger(__name__)


def embedding_config(store: Store, settings: Settings) -> OpenAIConfig | None:
    """OpenAI-compatible endpoint for embeddings, or ``None`` when no key is stored."""
    api_key = store.get_setting("openai_api_key")
    if not api_key:
        return None
    base_url = store.get_setting("openai_base_url") or settings.openai_base_url
    return OpenAIConfig(api_key=api_key, base_url=base_url)


class IngestPipeline:
    """Coordinate loaders, chunking, embeddings, and persistence."""

    def __init__(self, store: Store, settings: Settings) -> None:
        self.store = store
        self.settings = settings
        self.loader_registry = LoaderRegistry()

    def upload_document(self, path: Path) -> tuple[Document, UploadResult]:
        """Store a document and its chunks; embeddings are best-effort.

        The document is kept even when embedding fails; the failure is logged
        and returned as ``warning`` together with how many chunks got vectors.
        """
        path = path.expanduser()
        if not path.is_file():
            raise UnsupportedInputError(f"File not found: {path}")
        parsed = self.loader_registry.load(path)
        texts = chunk_text(parsed.text, self.settings.chunk_size, self.settings.chunk_overlap)
        if not texts:
            raise UnsupportedInputError("Document is empty or could not be parsed")

        document_id = new_id()
        chunks = build_chunk_payloads(document_id, texts)
        document = self.store.add_document(
            filename=path.name,
            file_type=parsed.file_type,
            file_path=str(path),
            file_size=parsed.size_bytes,
            chunks=chunks,
            document_id=document_id,
        )
        logger.info("Stored %s as %s with %d chunks", path.name, document.id, len(chunks))

        embedded, warning = self._embed_chunks(chunks)
        result = UploadResult(document_id=document.id, chunks=len(chunks), embedded_chunks=embedded, warning=warning)
        return document, result

    def _embed_chunks(self, chunks) -> tuple[int, str | None]:
        config = embedding_config(self.store, self.settings)
        if config is None:
            logger.info("Skipping embeddings: OpenAI API key not configured")
            return 0, "Embeddings skipped: OpenAI API key not configured"
        embedded = 0
        try:
            for offset, vectors in iter_embedding_batches(
                config,
                [chunk.content for chunk in chunks],
                self.settings.embedding_model,
                batch_size=self.settings.embedding_batch_size,
                timeout=self.settings.request_timeout,
            ):
                batch = chunks[offset : offset + len(vectors)]
                self.store.update_chunk_embeddings([(chunk.id, vector) for chunk, vector in zip(batch, vectors)])
                for chunk, vector in zip(batch, vectors):
                    chunk.embedding = vector
                embedded += len(batch)
        except AIBoxError as exc:
            logger.warning(
                "Embedding generation failed after %d/%d chunks (non-fatal): %s",
                embedded,
                len(chunks),
                exc,
            )
            return embedded, f"Embedding generation failed: {exc}"
        return embedded, None

    def list_documents(self) -> list[Document]:
        return self.store.list_documents()

    def delete_document(self, document_id: str) -> None:
        if not self.store.delete_document(document_id):
            raise NotFoundError(f"Document {document_id} not found")


def require_embedding_config(store: Store, settings: Settings) -> OpenAIConfig:
    config = embedding_config(store, settings)
    if config is None:
        raise ConfigError("OpenAI API key required for knowledge base search")
    return config


__all__ = ["IngestPipeline", "embedding_config", "require_embedding_config"]
