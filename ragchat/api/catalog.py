"""Static service discovery endpoints: tool listing and RAG endpoint configuration."""

from fastapi import APIRouter

from ragchat.agent.tools import TOOL_CATALOG, ToolConfig
from ragchat.models.schemas import RagEndpoint, ServicesConfig, ToolInfo

router = APIRouter(tags=["catalog"])

RAG_ENDPOINTS = [
    RagEndpoint(
        endpoint_id="pdf-rag",
        endpoint_name="PDF Document RAG with Two-Stage Retrieval",
    ),
]


@router.get("/tools", response_model=list[ToolInfo])
async def list_tools() -> list[ToolInfo]:
    """List the tools the chat agent knows, with their current enabled flags."""
    config = ToolConfig.from_env()
    return [
        ToolInfo(
            name=spec.name,
            description=spec.description,
            source=spec.source,
            enabled=config.is_enabled(spec.name),
        )
        for spec in TOOL_CATALOG.values()
    ]


@router.get("/services-config", response_model=ServicesConfig)
async def services_config() -> ServicesConfig:
    return ServicesConfig(rag_endpoints=RAG_ENDPOINTS)
