"""Chat path of the RAG streaming orchestrator.

``begin`` validates a chat request, records the user's turn, and prepares
the flow input (trimmed history, enabled tools). ``stream`` then runs the
generation flow and republishes its events as SSE frames:

- text deltas, sources, and tool calls are forwarded as they arrive
- a flow failure becomes exactly one terminal ``error`` frame
- normal completion records the model's turn, then emits exactly one
  ``final_response`` frame
- cancellation, checked before every frame, stops forwarding and closes
  the stream without a ``final_response``
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass

from ragchat.agent.flow import FlowEvent, FlowEventType, FlowInput, GenerationFlow, ToolInvocation
from ragchat.agent.tools import ToolConfig
from ragchat.errors import RagChatError, StorageError, UpstreamError, ValidationError
from ragchat.history.manager import history_token_budget, to_turns, trim_history
from ragchat.models.schemas import ChatRequest
from ragchat.models.session import ConversationTurn, SessionState
from ragchat.sessions.files import validate_session_id
from ragchat.sessions.store import SessionStore
from ragchat.settings import AppSettings
from ragchat.streaming.events import StreamEvent
from ragchat.streaming.protocol import EventChannel, RequestLifecycle, RequestState
from ragchat.streaming.sse import FrameEncodingError

logger = logging.getLogger(__name__)

IsCancelled = Callable[[], Awaitable[bool]]

CANCELLED_MESSAGE = "cancelled"


@dataclass
class ChatTurn:
    """A validated chat request whose user turn has been recorded."""

    session_id: str
    thread_id: str
    flow_input: FlowInput
    channel: EventChannel


def validate_chat_request(request: ChatRequest) -> None:
    """Reject requests missing a session id, query, or model id, in that order.

    A session id must also be one an upload would accept.

    Raises:
        ValidationError: Naming the first missing field.
    """
    if not request.session_id:
        raise ValidationError("No session ID provided")
    validate_session_id(request.session_id)
    if not request.query:
        raise ValidationError("No query provided")
    if not request.model_id:
        raise ValidationError("No model ID provided")


async def _never_cancelled() -> bool:
    return False


class ChatOrchestrator:
    """Drives one chat exchange from request to closed stream.

    Args:
        store: Session store holding conversation threads.
        flow: Retrieval + generation flow.
        settings: History bounds and cancellation behaviour.
        tool_config_factory: Reads the tool feature flags, once per request.
    """

    def __init__(
        self,
        store: SessionStore,
        flow: GenerationFlow,
        settings: AppSettings,
        tool_config_factory: Callable[[], ToolConfig] = ToolConfig.from_env,
    ) -> None:
        self._store = store
        self._flow = flow
        self._settings = settings
        self._tool_config_factory = tool_config_factory

    async def begin(self, request: ChatRequest) -> ChatTurn:
        """Validate the request and append the user's turn to its session thread.

        Creates the session if it does not exist yet.

        Raises:
            ValidationError: If a required field is missing.
            StorageError: If the session cannot be read or written.
        """
        validate_chat_request(request)
        lifecycle = RequestLifecycle("chat")
        session_id = request.session_id
        thread_id = request.thread_id
        user_turn = ConversationTurn.from_text("user", request.query)

        def append_user_turn(state: SessionState | None) -> SessionState:
            base = state or SessionState(session_id=session_id)
            return base.with_turn(user_turn, thread_id)

        state = await self._store.update(session_id, append_user_turn)

        if request.history is not None:
            history = to_turns(request.history)
        else:
            # The stored thread already ends with the turn just appended.
            history = state.turns(thread_id)[:-1]

        trimmed = trim_history(
            history,
            request.model_id,
            max_messages=self._settings.max_history_messages,
            token_budget=history_token_budget(request.model_id, self._settings.history_token_ratio),
        )

        tools = self._tool_config_factory().select(request.tools)

        flow_input = FlowInput(
            query=request.query,
            session_id=session_id,
            model_id=request.model_id,
            history=trimmed,
            tools=tools,
            temperature_preset=request.temperature_preset,
            max_tokens=request.max_tokens,
        )
        lifecycle.advance(RequestState.GENERATING)
        logger.info(
            f"Chat turn for session {session_id} (thread {thread_id}): "
            f"{len(trimmed)} history messages, tools: {', '.join(tools) or 'none'}"
        )
        return ChatTurn(
            session_id=session_id,
            thread_id=thread_id,
            flow_input=flow_input,
            channel=EventChannel(lifecycle),
        )

    async def stream(
        self,
        turn: ChatTurn,
        is_cancelled: IsCancelled = _never_cancelled,
    ) -> AsyncIterator[str]:
        """Run the generation flow and yield SSE frames.

        Args:
            turn: Prepared turn from ``begin``.
            is_cancelled: Cooperative cancellation signal, awaited before
                every frame.

        Yields:
            Serialised ``event: <kind>\\ndata: <JSON>\\n\\n`` frames.
        """
        channel = turn.channel
        events = self._flow.run(turn.flow_input)
        frames = self._frames(turn, events, is_cancelled)
        try:
            async for frame in frames:
                yield frame
        except FrameEncodingError as e:
            logger.error(f"Failed to encode stream frame for session {turn.session_id}: {e}")
            fallback = self._encode_fallback_error(channel)
            if fallback is not None:
                yield fallback
        finally:
            channel.close()
            await frames.aclose()
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _frames(
        self,
        turn: ChatTurn,
        events: AsyncIterator[FlowEvent],
        is_cancelled: IsCancelled,
    ) -> AsyncIterator[str]:
        channel = turn.channel
        text_parts: list[str] = []
        invocations: list[ToolInvocation] = []

        try:
            async for flow_event in events:
                if await is_cancelled():
                    for frame in self._cancel(turn):
                        yield frame
                    return
                event = self._translate(flow_event, text_parts, invocations)
                if event is None:
                    continue
                yield channel.encode(event)
                if event.is_terminal:
                    logger.warning(f"Generation flow reported an error for session {turn.session_id}")
                    return
        except FrameEncodingError:
            raise
        except Exception as e:
            error = e if isinstance(e, RagChatError) else UpstreamError(f"Generation failed: {e}")
            logger.error(f"Generation failed for session {turn.session_id}: {error.message}")
            yield channel.encode(StreamEvent.error(error.message))
            return

        if await is_cancelled():
            for frame in self._cancel(turn):
                yield frame
            return

        response = "".join(text_parts)
        model_turn = ConversationTurn.from_text("model", response)

        def append_model_turn(state: SessionState | None) -> SessionState:
            base = state or SessionState(session_id=turn.session_id)
            return base.with_turn(model_turn, turn.thread_id)

        try:
            await self._store.update(turn.session_id, append_model_turn)
        except StorageError as e:
            logger.error(f"Failed to record model turn for session {turn.session_id}: {e.message}")
            yield channel.encode(StreamEvent.error(e.message))
            return

        yield channel.encode(StreamEvent.final_response(response, turn.session_id, invocations))
        logger.info(f"Stream completed for session {turn.session_id} ({len(response)} chars)")

    @staticmethod
    def _translate(
        flow_event: FlowEvent,
        text_parts: list[str],
        invocations: list[ToolInvocation],
    ) -> StreamEvent | None:
        if flow_event.type is FlowEventType.TEXT:
            if not flow_event.text:
                return None
            text_parts.append(flow_event.text)
            return StreamEvent.chunk(flow_event.text)
        if flow_event.type is FlowEventType.SOURCES:
            return StreamEvent.sources(flow_event.sources)
        if flow_event.type is FlowEventType.TOOL_INVOCATION:
            if flow_event.invocation is None:
                return None
            invocations.append(flow_event.invocation)
            return StreamEvent.tool_invocation(flow_event.invocation)
        if flow_event.type is FlowEventType.TOOL_INVOCATIONS:
            invocations.extend(flow_event.invocations)
            return StreamEvent.tool_invocations(flow_event.invocations)
        return StreamEvent.error(flow_event.error or "Unknown error during generation")

    def _cancel(self, turn: ChatTurn) -> list[str]:
        logger.info(f"Client cancelled stream for session {turn.session_id}")
        if self._settings.notify_cancellation:
            return [turn.channel.encode(StreamEvent.error(CANCELLED_MESSAGE, cancelled=True))]
        turn.channel.close()
        return []

    @staticmethod
    def _encode_fallback_error(channel: EventChannel) -> str | None:
        if channel.closed:
            return None
        try:
            return channel.encode(StreamEvent.error("Failed to encode stream event"))
        except (FrameEncodingError, RuntimeError) as e:
            logger.error(f"Could not report encoding failure, closing stream: {e}")
            return None
