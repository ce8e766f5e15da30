"""Knowledge base API routes."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends

from ai_box.api.dependencies import get_ingest_pipeline, get_query_service
from ai_box.ingest.pipeline import IngestPipeline
from ai_box.models.dto import (
    DocumentResponse,
    SearchHit,
    SearchRequest,
    SearchResponse,
    StatusResponse,
    UploadRequest,
    UploadResponse,
)
from ai_box.models.entities import Document
from ai_box.retrieval.search import QueryService

router = APIRouter()


@router.get("/documents", response_model=list[DocumentResponse], summary="List uploaded documents")
def list_documents(pipeline: IngestPipeline = Depends(get_ingest_pipeline)) -> list[DocumentResponse]:
    return [_to_document(document) for document in pipeline.list_documents()]


@router.post("/documents", response_model=UploadResponse, summary="Upload a document by path")
def upload_document(
    request: UploadRequest,
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
) -> UploadResponse:
    document, result = pipeline.upload_document(Path(request.path))
    return UploadResponse(
        document=_to_document(document),
        chunks=result.chunks,
        embedded_chunks=result.embedded_chunks,
        warning=result.warning,
    )


@router.delete("/documents/{document_id}", response_model=StatusResponse, summary="Delete a document and its chunks")
def delete_document(document_id: str, pipeline: IngestPipeline = Depends(get_ingest_pipeline)) -> StatusResponse:
    pipeline.delete_document(document_id)
    return StatusResponse()


@router.post("/search", response_model=SearchResponse, summary="Semantic search over stored chunks")
def search(request: SearchRequest, service: QueryService = Depends(get_query_service)) -> SearchResponse:
    hits = service.search(request.query, request.top_k)
    return SearchResponse(
        results=[
            SearchHit(
                id=hit.id,
                document_id=hit.document_id,
                content=hit.content,
                chunk_index=hit.chunk_index,
                score=hit.score,
            )
            for hit in hits
        ]
    )


def _to_document(document: Document) -> DocumentResponse:
    return DocumentResponse(
        id=document.id,
        filename=document.filename,
        file_type=document.file_type,
        file_path=document.file_path,
        file_size=document.file_size,
        created_at=document.created_at,
    )


__all__ = ["router"]
