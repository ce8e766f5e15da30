"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ConversationCreateRequest(BaseModel):
    title: str = Field(default="New Chat", min_length=1)
    model: str | None = None


class ConversationUpdateRequest(BaseModel):
    title: str = Field(min_length=1)


class ConversationResponse(BaseModel):
    id: str
    title: str
    model: str | None
    created_at: str
    updated_at: str


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    role: Literal["system", "user", "assistant"]
    content: str
    created_at: str


class SendMessageRequest(BaseModel):
    content: str = Field(min_length=1)
    model: str = Field(description="Prefixed model id, e.g. claude/claude-sonnet-4-20250514")
    stream: bool = False


class SettingValueRequest(BaseModel):
    value: str


class ModelResponse(BaseModel):
    id: str
    name: str
    provider: str


class DeviceCodeResponse(BaseModel):
    device_code: str
    user_code: str
    verification_uri: str
    interval: int
    expires_in: int | None = None


class DevicePollRequest(BaseModel):
    device_code: str


class DevicePollResponse(BaseModel):
    status: Literal["pending", "complete"]


class CopilotStatusResponse(BaseModel):
    logged_in: bool


class DocumentResponse(BaseModel):
    id: str
    filename: str
    file_type: str
    file_path: str
    file_size: int | None
    created_at: str


class UploadRequest(BaseModel):
    path: str = Field(description="Filesystem path readable by the server")


class UploadResponse(BaseModel):
    document: DocumentResponse
    chunks: int
    embedded_chunks: int
    warning: str | None = None


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    top_k: int | None = Field(default=None, ge=0, le=50)


class SearchHit(BaseModel):
    id: str
    document_id: str
    content: str
    chunk_index: int
    score: float


class SearchResponse(BaseModel):
    results: list[SearchHit]


class StatusResponse(BaseModel):
    status: str = "ok"


__all__ = [
    "ConversationCreateRequest",
    "ConversationUpdateRequest",
    "ConversationResponse",
    "MessageResponse",
    "SendMessageRequest",
    "SettingValueRequest",
    "ModelResponse",
    "DeviceCodeResponse",
    "DevicePollRequest",
    "DevicePollResponse",
    "CopilotStatusResponse",
    "DocumentResponse",
    "UploadRequest",
    "UploadResponse",
    "SearchRequest",
    "SearchHit",
    "SearchResponse",
    "StatusResponse",
]
