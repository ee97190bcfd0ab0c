"""Agno agent service: retrieval over the LanceDB knowledge base plus streaming generation.

Implements both sides the orchestrator depends on:

- ``FragmentIndex``: ingested fragments are embedded into a LanceDB-backed
  Agno ``Knowledge`` with their session and document metadata.
- ``GenerationFlow``: for each query, fragments are retrieved in two
  stages (a wide fetch, then a session filter with fallback and top-N
  truncation), published as sources, and handed to a per-request Agno
  ``Agent`` whose streamed run events are translated into ``FlowEvent``
  values.

``ConversationFlow`` exposes the same agent without retrieval, for plain
chat that still streams through the orchestrator.

A model run that fails before producing anything while tools were enabled
is retried once without tools.
"""

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from agno.agent import Agent
from agno.knowledge.embedder.openai import OpenAIEmbedder
from agno.knowledge.knowledge import Knowledge
from agno.models.message import Message
from agno.models.openai import OpenAIChat
from agno.vectordb.lancedb import LanceDb

from ragchat.agent.capabilities import get_capabilities
from ragchat.agent.config import AgentConfig, get_agent_config
from ragchat.agent.flow import FlowEvent, FlowInput, SourceCitation, ToolInvocation, resolve_temperature
from ragchat.agent.tools import build_tools
from ragchat.errors import UpstreamError
from ragchat.models.fragments import Fragment
from ragchat.models.session import ConversationTurn
from ragchat.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)

_RUN_CONTENT = "RunContent"
_TOOL_CALL_COMPLETED = "ToolCallCompleted"
_RUN_ERROR = "RunError"

_RAG_INSTRUCTIONS = [
    "Answer the user's question using the provided documents when they are relevant.",
    "When you use a document, cite it by its file name and page.",
    "If the documents do not contain the answer, say so and answer from general knowledge.",
    "Be concise yet thorough.",
]

_CHAT_INSTRUCTIONS = [
    "Answer the user's question from general knowledge.",
    "Use the available tools when the question needs current information from the web.",
    "Be concise yet thorough.",
]


def provider_model_name(model_id: str) -> str:
    """Strip the provider prefix: ``openai/gpt-4.1-mini`` -> ``gpt-4.1-mini``."""
    return model_id.split("/", 1)[1] if "/" in model_id else model_id


def render_prompt(query: str, sources: Sequence[SourceCitation]) -> str:
    """Build the final user message: retrieved context followed by the question."""
    if not sources:
        return f"No uploaded documents matched this question.\n\nQuestion: {query}"
    blocks = []
    for index, source in enumerate(sources, start=1):
        label = source.file_name or "document"
        if source.page_number is not None:
            label = f"{label}, page {source.page_number}"
        blocks.append(f"[{index}] ({label})\n{source.text}")
    documents = "\n\n".join(blocks)
    return f"Documents:\n\n{documents}\n\nQuestion: {query}"


def _to_message(turn: ConversationTurn) -> Message:
    return Message(role="user" if turn.role == "user" else "assistant", content=turn.text)


def _citation_from_document(document: Any) -> SourceCitation:
    meta = getattr(document, "meta_data", None) or {}
    return SourceCitation(
        document_id=meta.get("document_id"),
        session_id=meta.get("session_id"),
        file_name=meta.get("original_file_name"),
        chunk_id=meta.get("chunk_id"),
        chunk_index=meta.get("chunk_index"),
        page_number=meta.get("page_number"),
        text=getattr(document, "content", "") or "",
    )


class AgentService:
    """Service wrapping Agno's Knowledge and Agent for the chat orchestrator.

    Wraps Agno with:
    - LanceDB knowledge base for fragment storage and retrieval
    - Session-scoped two-stage retrieval
    - Per-request agents honouring model capabilities and presets
    - Translation of Agno run events into flow events
    """

    def __init__(
        self,
        config: AgentConfig | None = None,
        settings: AppSettings | None = None,
    ) -> None:
        """Initialize the agent service.

        Args:
            config: Optional agent configuration.
                    Loads from environment if not provided.
            settings: Optional application settings for storage and retrieval sizes.
        """
        self._config = config or get_agent_config()
        self._settings = settings or get_settings()
        self._knowledge = self._create_knowledge()

    def _create_knowledge(self) -> Knowledge:
        """Create LanceDB-backed knowledge base for RAG.

        Returns:
            Configured Knowledge instance.
        """
        knowledge_dir = self._settings.knowledge_dir
        knowledge_dir.mkdir(parents=True, exist_ok=True)

        embedder = OpenAIEmbedder(
            id=self._config.embedder_model,
            api_key=self._config.api_key,
            base_url=self._config.base_url,
        )
        vector_db = LanceDb(
            uri=str(knowledge_dir),
            table_name="documents",
            embedder=embedder,
        )

        return Knowledge(vector_db=vector_db)

    def _create_model(self, flow_input: FlowInput) -> OpenAIChat:
        """Create the chat model for one request, omitting unsupported parameters."""
        model_id = flow_input.model_id or self._config.default_model
        capabilities = get_capabilities(model_id)

        params: dict[str, Any] = {
            "id": provider_model_name(model_id),
            "api_key": self._config.api_key,
            capabilities.max_tokens_param: flow_input.max_tokens or self._config.max_tokens,
        }
        if self._config.base_url:
            params["base_url"] = self._config.base_url
        if capabilities.supports_temperature:
            params["temperature"] = (
                resolve_temperature(flow_input.temperature_preset)
                if flow_input.temperature_preset
                else self._config.temperature
            )
        else:
            logger.info(f"Model {model_id} does not support temperature; omitting parameter")

        return OpenAIChat(**params)

    def _create_agent(self, flow_input: FlowInput, tool_names: Sequence[str], grounded: bool = True) -> Agent:
        """Create a per-request Agno agent.

        Returns:
            Agent with the requested model and tools. History is supplied
            explicitly with each run, so no storage is attached.
        """
        tools = build_tools(tool_names)
        return Agent(
            model=self._create_model(flow_input),
            description=(
                "A helpful RAG chatbot assistant with access to uploaded documents."
                if grounded
                else "A helpful chatbot assistant."
            ),
            instructions=_RAG_INSTRUCTIONS if grounded else _CHAT_INSTRUCTIONS,
            tools=tools or None,
            markdown=True,
        )

    async def add_fragments(self, fragments: Sequence[Fragment]) -> None:
        """Embed fragments into the knowledge base.

        Args:
            fragments: Fragments from one or more slices, in ordinal order.

        Raises:
            UpstreamError: If the knowledge base rejects a fragment.
        """
        for fragment in fragments:
            try:
                await self._knowledge.add_content_async(
                    name=f"{fragment.document_id}#{fragment.fragment_id}",
                    text_content=fragment.text,
                    metadata=fragment.index_metadata(),
                )
            except Exception as e:
                logger.exception(f"Failed to index fragment {fragment.fragment_id} of {fragment.file_name}")
                raise UpstreamError(f"Failed to store document in knowledge base: {e}") from e
        if fragments:
            logger.info(f"Indexed {len(fragments)} fragments of {fragments[0].file_name}")

    async def search(self, query: str, session_id: str | None) -> list[SourceCitation]:
        """Retrieve the fragments to ground an answer on.

        Fetches a wide candidate set, keeps the session's own fragments (or
        every candidate when the session has none), and truncates to the
        final document count.

        Raises:
            UpstreamError: If the knowledge base cannot be searched.
        """
        try:
            documents = await self._knowledge.async_search(
                query=query,
                max_results=self._settings.initial_retrieval_count,
            )
        except Exception as e:
            logger.exception("Knowledge base search failed")
            raise UpstreamError(f"Retrieval failed: {e}") from e

        candidates = [_citation_from_document(document) for document in documents or []]
        filtered = [c for c in candidates if c.session_id == session_id] if session_id else candidates
        if session_id and not filtered and candidates:
            logger.warning(
                f"No documents found for session {session_id}, falling back to all {len(candidates)} documents"
            )
            filtered = candidates

        logger.info(
            f"Retrieved {len(candidates)} documents initially, {len(filtered)} after filtering for session {session_id}"
        )
        return filtered[: self._settings.final_document_count]

    async def _generate(
        self,
        flow_input: FlowInput,
        messages: list[Message],
        tool_names: Sequence[str],
        grounded: bool,
    ) -> AsyncIterator[FlowEvent]:
        agent = self._create_agent(flow_input, tool_names, grounded)
        logger.info(
            f"Using model {flow_input.model_id} with tools: {', '.join(tool_names) or 'none'}"
        )

        invocations: list[ToolInvocation] = []
        response_stream = agent.arun(input=messages, stream=True, stream_events=True)
        async for chunk in response_stream:
            event = getattr(chunk, "event", None)
            if event == _RUN_CONTENT:
                content = getattr(chunk, "content", None)
                if isinstance(content, str) and content:
                    yield FlowEvent.text_delta(content)
            elif event == _TOOL_CALL_COMPLETED:
                tool = getattr(chunk, "tool", None)
                if tool is not None:
                    invocations.append(
                        ToolInvocation(
                            name=tool.tool_name or "unknown_tool",
                            input=tool.tool_args,
                            output=tool.result,
                            error=str(tool.result) if tool.tool_call_error else None,
                        )
                    )
            elif event == _RUN_ERROR:
                raise UpstreamError(str(getattr(chunk, "content", None) or "Model run failed"))

        if invocations:
            yield FlowEvent.tool_calls(invocations)

    async def _answer(
        self,
        flow_input: FlowInput,
        messages: list[Message],
        grounded: bool,
    ) -> AsyncIterator[FlowEvent]:
        produced = False
        try:
            async for event in self._generate(flow_input, messages, flow_input.tools, grounded):
                produced = True
                yield event
        except Exception as e:
            if produced or not flow_input.tools:
                if isinstance(e, UpstreamError):
                    raise
                raise UpstreamError(f"Generation failed: {e}") from e
            logger.warning(f"Generation with tools failed ({e}); retrying without tools")
            try:
                async for event in self._generate(flow_input, messages, [], grounded):
                    yield event
            except UpstreamError:
                raise
            except Exception as retry_error:
                raise UpstreamError(f"Generation failed: {retry_error}") from retry_error

    async def run(self, flow_input: FlowInput) -> AsyncIterator[FlowEvent]:
        """Stream retrieval and generation events for one query.

        Yields:
            One ``sources`` event, then text deltas, then at most one
            ``tool_invocations`` event.

        Raises:
            UpstreamError: If retrieval or generation fails.
        """
        logger.info(f"RAG query for session {flow_input.session_id}: {flow_input.query!r}")
        sources = await self.search(flow_input.query, flow_input.session_id)
        yield FlowEvent.with_sources(sources)

        messages = [_to_message(turn) for turn in flow_input.history]
        messages.append(Message(role="user", content=render_prompt(flow_input.query, sources)))

        async for event in self._answer(flow_input, messages, grounded=True):
            yield event

    async def converse(self, flow_input: FlowInput) -> AsyncIterator[FlowEvent]:
        """Stream generation events for one query without consulting the knowledge base.

        Yields:
            Text deltas, then at most one ``tool_invocations`` event.

        Raises:
            UpstreamError: If generation fails.
        """
        logger.info(f"Chat query for session {flow_input.session_id}: {flow_input.query!r}")
        messages = [_to_message(turn) for turn in flow_input.history]
        messages.append(Message(role="user", content=flow_input.query))

        async for event in self._answer(flow_input, messages, grounded=False):
            yield event


class ConversationFlow:
    """Generation flow for plain chat: the agent answers without retrieval."""

    def __init__(self, service: AgentService) -> None:
        self._service = service

    def run(self, flow_input: FlowInput) -> AsyncIterator[FlowEvent]:
        return self._service.converse(flow_input)


# Module-level singleton instance
_agent_service: AgentService | None = None


def get_agent_service() -> AgentService:
    """Get or create the global agent service.

    Uses singleton pattern for resource efficiency.

    Returns:
        The AgentService instance.
    """
    global _agent_service
    if _agent_service is None:
        _agent_service = AgentService()
    return _agent_service
