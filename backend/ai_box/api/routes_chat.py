"""Conversation and chat API routes."""

from __future__ import annotations

from typing import Iterator

import orjson
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ai_box.api.dependencies import get_chat_service
from ai_box.core.errors import AIBoxError
from ai_box.core.logging import get_logger
from ai_box.llm.types import StreamChunk
from ai_box.models.dto import (
    ConversationCreateRequest,
    ConversationResponse,
    ConversationUpdateRequest,
    MessageResponse,
    SendMessageRequest,
    StatusResponse,
)
from ai_box.models.entities import Conversation, Message
from ai_box.services.chat import ChatService

logger = get_logger(__name__)

router = APIRouter()


@router.get("/conversations", response_model=list[ConversationResponse], summary="List conversations")
def list_conversations(service: ChatService = Depends(get_chat_service)) -> list[ConversationResponse]:
    return [_to_conversation(conversation) for conversation in service.list_conversations()]


@router.post("/conversations", response_model=ConversationResponse, summary="Start a conversation")
def create_conversation(
    request: ConversationCreateRequest,
    service: ChatService = Depends(get_chat_service),
) -> ConversationResponse:
    return _to_conversation(service.create_conversation(request.title, request.model))


@router.patch("/conversations/{conversation_id}", response_model=StatusResponse, summary="Rename a conversation")
def rename_conversation(
    conversation_id: str,
    request: ConversationUpdateRequest,
    service: ChatService = Depends(get_chat_service),
) -> StatusResponse:
    service.rename_conversation(conversation_id, request.title)
    return StatusResponse()


@router.delete("/conversations/{conversation_id}", response_model=StatusResponse, summary="Delete a conversation")
def delete_conversation(conversation_id: str, service: ChatService = Depends(get_chat_service)) -> StatusResponse:
    service.delete_conversation(conversation_id)
    return StatusResponse()


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=list[MessageResponse],
    summary="Messages in chronological order",
)
def list_messages(conversation_id: str, service: ChatService = Depends(get_chat_service)) -> list[MessageResponse]:
    return [_to_message(message) for message in service.get_messages(conversation_id)]


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    summary="Send a user message and get the assistant reply",
)
def send_message(
    conversation_id: str,
    request: SendMessageRequest,
    service: ChatService = Depends(get_chat_service),
):
    if not request.stream:
        return _to_message(service.reply(conversation_id, request.content, request.model))
    chunks = service.stream_reply(conversation_id, request.content, request.model)
    return StreamingResponse(
        _sse_frames(chunks),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


def _sse_frames(chunks: Iterator[StreamChunk]) -> Iterator[bytes]:
    # Headers are already sent, so a provider failure becomes a final error frame.
    try:
        for chunk in chunks:
            yield b"data: " + orjson.dumps({"delta": chunk.delta, "done": chunk.done}) + b"\n\n"
    except AIBoxError as exc:
        logger.warning("Chat stream failed: %s", exc)
        yield b"data: " + orjson.dumps({"error": str(exc), "kind": exc.kind, "done": True}) + b"\n\n"


def _to_conversation(conversation: Conversation) -> ConversationResponse:
    return ConversationResponse(
        id=conversation.id,
        title=conversation.title,
        model=conversation.model,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
    )


def _to_message(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        role=message.role,
        content=message.content,
        created_at=message.created_at,
    )


__all__ = ["router"]
