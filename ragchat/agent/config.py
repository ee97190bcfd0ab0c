"""Agent configuration with environment variable loading.

Pydantic-based configuration for the Agno generation agent and its
knowledge base. Supports OpenAI and OpenAI-compatible APIs via a custom
base URL.
"""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file
load_dotenv()


class AgentConfig(BaseModel):
    """Configuration for the Agno generation agent.

    Attributes:
        api_key: API key for model and embedding access.
        base_url: API base URL (None for OpenAI default).
        default_model: Model used when a request does not name one.
        temperature: Fallback sampling temperature when no preset is given.
        max_tokens: Fallback cap on generated tokens.
        embedder_model: Embedding model used by the knowledge base.
    """

    api_key: str = Field(
        default_factory=lambda: os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", "")),
        description="API key for LLM provider",
    )
    base_url: str | None = Field(
        default_factory=lambda: os.getenv("LLM_BASE_URL") or None,
        description="API base URL (None for OpenAI default)",
    )
    default_model: str = Field(
        default_factory=lambda: os.getenv("LLM_MODEL", "openai/gpt-4.1-mini"),
        description="Model used when the request does not specify one",
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for response generation",
    )
    max_tokens: int = Field(
        default=4096,
        ge=1,
        le=128000,
        description="Maximum tokens in generated response",
    )
    embedder_model: str = Field(
        default_factory=lambda: os.getenv("EMBEDDER_MODEL", "text-embedding-3-small"),
        description="Embedding model for the knowledge base",
    )

    @field_validator("api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """Validate that API key is provided and non-empty."""
        if not v or not v.strip():
            raise ValueError(
                "API key required. Set LLM_API_KEY or OPENAI_API_KEY in .env"
            )
        return v.strip()


def get_agent_config() -> AgentConfig:
    """Create agent configuration from environment.

    Returns:
        Configured AgentConfig instance.

    Raises:
        ValueError: If no API key is set.
    """
    return AgentConfig()
