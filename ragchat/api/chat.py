"""Streaming chat endpoints, with and without document retrieval.

Validation failures are answered with a JSON ``{"error": ...}`` body before
any stream opens. After that, everything, including failures, travels as
SSE frames on the response body.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError as PydanticValidationError

from ragchat.api.dependencies import get_chat_orchestrator, get_conversation_orchestrator
from ragchat.errors import ValidationError
from ragchat.models.schemas import ChatRequest
from ragchat.orchestrator.chat import ChatOrchestrator
from ragchat.streaming.sse import SSE_HEADERS, SSE_MEDIA_TYPE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


async def _parse_chat_request(request: Request) -> ChatRequest:
    try:
        body = await request.json()
    except ValueError as e:
        raise ValidationError("Invalid JSON in request body") from e
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    try:
        return ChatRequest.model_validate(body)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"Invalid request field {location}: {first.get('msg')}") from e


@router.post("/stream")
async def chat_stream(
    request: Request,
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
) -> StreamingResponse:
    """Answer a query over the session's documents as a Server-Sent Events stream.

    Body: ``{query, sessionId, modelId, history?, tools?, threadId?,
    temperaturePreset?, maxTokens?}``.

    Frames are ``event: <kind>\\ndata: <JSON>\\n\\n`` with kind one of
    chunk, sources, tool_invocation, tool_invocations, error,
    final_response. A disconnecting client stops the stream.

    Raises:
        400: Malformed JSON or a missing sessionId, query, or modelId.
        503: The session could not be updated.
    """
    chat_request = await _parse_chat_request(request)
    turn = await orchestrator.begin(chat_request)

    return StreamingResponse(
        orchestrator.stream(turn, request.is_disconnected),
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )


@router.post("/basic")
async def chat_basic(
    request: Request,
    orchestrator: ChatOrchestrator = Depends(get_conversation_orchestrator),
) -> StreamingResponse:
    """Answer a query without document retrieval, as a Server-Sent Events stream.

    Same body and frames as ``/chat/stream``, except that no ``sources``
    frame is sent and ``sessionId`` may be omitted. A new session is then
    created and its id returned in the ``final_response`` frame.

    Raises:
        400: Malformed JSON, a malformed sessionId, or a missing query or modelId.
        503: The session could not be updated.
    """
    chat_request = await _parse_chat_request(request)
    if not chat_request.session_id:
        chat_request = chat_request.model_copy(update={"session_id": str(uuid.uuid4())})
    turn = await orchestrator.begin(chat_request)

    return StreamingResponse(
        orchestrator.stream(turn, request.is_disconnected),
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )
