"""Agno agent logic for retrieval-augmented generation.

Responsibilities:
    - Fragment indexing into the LanceDB knowledge base
    - Session-scoped retrieval with fallback to all documents
    - Per-request agents honouring model capabilities and temperature presets
    - Web research tools behind feature flags
    - Translation of streamed agent runs into flow events

Maintains clean separation from the HTTP layer: the orchestrator sees only
the ``GenerationFlow`` and ``FragmentIndex`` protocols.
"""

from ragchat.agent.capabilities import ModelCapabilities, get_capabilities
from ragchat.agent.chat_agent import AgentService, get_agent_service
from ragchat.agent.config import AgentConfig, get_agent_config
from ragchat.agent.flow import (
    FlowEvent,
    FlowEventType,
    FlowInput,
    FragmentIndex,
    GenerationFlow,
    SourceCitation,
    ToolInvocation,
)
from ragchat.agent.tools import TOOL_CATALOG, ToolConfig, build_tools

__all__ = [
    "TOOL_CATALOG",
    "AgentConfig",
    "AgentService",
    "FlowEvent",
    "FlowEventType",
    "FlowInput",
    "FragmentIndex",
    "GenerationFlow",
    "ModelCapabilities",
    "SourceCitation",
    "ToolConfig",
    "ToolInvocation",
    "build_tools",
    "get_agent_config",
    "get_agent_service",
    "get_capabilities",
]
