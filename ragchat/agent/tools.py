"""Web research tools the generation agent may call.

Each tool is a plain async function; Agno derives the tool schema from the
signature and docstring. Which tools are offered is decided per request
from ``ToolConfig`` (feature flags) narrowed by the client's selection.
"""

import logging
import os
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Literal

import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

TAVILY_API_URL = "https://api.tavily.com"
PERPLEXITY_API_ENDPOINT = "https://api.perplexity.ai/chat/completions"

_TIMEOUT = httpx.Timeout(60.0, connect=10.0)
_DEEP_RESEARCH_TIMEOUT = httpx.Timeout(600.0, connect=10.0)


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _require_key(env_name: str, label: str) -> str:
    key = os.getenv(env_name, "").strip()
    if not key:
        raise RuntimeError(f"{label} API key missing ({env_name}).")
    return key


async def tavily_search(
    query: str,
    search_depth: Literal["basic", "advanced"] = "basic",
    max_results: int = 5,
) -> list[dict[str, Any]]:
    """Search the web using Tavily and return relevant snippets.

    Args:
        query: Search query.
        search_depth: "basic" or "advanced".
        max_results: Number of results to return (5-20).

    Returns:
        Results with title, url, content, and score.
    """
    api_key = _require_key("TAVILY_API_KEY", "Tavily")
    payload = {
        "query": query,
        "search_depth": search_depth,
        "max_results": max(5, min(max_results, 20)),
    }
    async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
        response = await client.post(
            f"{TAVILY_API_URL}/search",
            json=payload,
            headers={"Authorization": f"Bearer {api_key}"},
        )
        response.raise_for_status()
        data = response.json()
    return [
        {
            "title": item.get("title", ""),
            "url": item.get("url", ""),
            "content": item.get("content", ""),
            "score": item.get("score", 0.0),
        }
        for item in data.get("results") or []
    ]


async def tavily_extract(
    urls: list[str],
    extract_depth: Literal["basic", "advanced"] = "basic",
) -> dict[str, list[dict[str, str]]]:
    """Extract the readable content of web pages using Tavily.

    Args:
        urls: One or more page URLs.
        extract_depth: "basic" or "advanced".

    Returns:
        ``results`` (url, content) and ``failed_results`` (url, error).
    """
    if not urls:
        raise ValueError("At least one URL is required")
    api_key = _require_key("TAVILY_API_KEY", "Tavily")
    async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
        response = await client.post(
            f"{TAVILY_API_URL}/extract",
            json={"urls": urls, "extract_depth": extract_depth},
            headers={"Authorization": f"Bearer {api_key}"},
        )
        response.raise_for_status()
        data = response.json()
    return {
        "results": [
            {"url": item.get("url", ""), "content": item.get("raw_content") or item.get("content") or ""}
            for item in data.get("results") or []
        ],
        "failed_results": [
            {"url": item.get("url", ""), "error": item.get("error") or "Unknown error"}
            for item in data.get("failed_results") or []
        ],
    }


async def _ask_perplexity(query: str, model: str, timeout: httpx.Timeout) -> dict[str, str]:
    api_key = _require_key("PERPLEXITY_API_KEY", "Perplexity")
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(
            PERPLEXITY_API_ENDPOINT,
            json={"model": model, "messages": [{"role": "user", "content": query}]},
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
        )
        if response.is_error:
            raise RuntimeError(
                f"Perplexity API error: {response.status_code} {response.reason_phrase} - {response.text}"
            )
        data = response.json()
    choices = data.get("choices") or [{}]
    content = (choices[0].get("message") or {}).get("content")
    return {"response": content or "No response content found."}


async def perplexity_search(query: str) -> dict[str, str]:
    """Answer a question with Perplexity's online model (sonar) for up-to-date information.

    Args:
        query: The search query.

    Returns:
        The answer under ``response``.
    """
    return await _ask_perplexity(query, "sonar", _TIMEOUT)


async def perplexity_deep_research(query: str) -> dict[str, str]:
    """Run deep research with Perplexity's research model (sonar-deep-research).

    Args:
        query: The research query.

    Returns:
        The research answer under ``response``.
    """
    return await _ask_perplexity(query, "sonar-deep-research", _DEEP_RESEARCH_TIMEOUT)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    source: str
    flag: str
    function: Callable[..., Any]


TOOL_CATALOG: dict[str, ToolSpec] = {
    spec.name: spec
    for spec in (
        ToolSpec(
            name="tavily_search",
            description="Searches the web using Tavily. Returns relevant snippets.",
            source="tavily",
            flag="ENABLE_TAVILY_SEARCH",
            function=tavily_search,
        ),
        ToolSpec(
            name="tavily_extract",
            description="Extracts content from URLs using Tavily.",
            source="tavily",
            flag="ENABLE_TAVILY_EXTRACT",
            function=tavily_extract,
        ),
        ToolSpec(
            name="perplexity_search",
            description="Performs a search using Perplexity AI's online model (sonar) for up-to-date answers.",
            source="perplexity",
            flag="ENABLE_PERPLEXITY_SEARCH",
            function=perplexity_search,
        ),
        ToolSpec(
            name="perplexity_deep_research",
            description="Performs deep research using Perplexity AI's research model (sonar-deep-research).",
            source="perplexity",
            flag="ENABLE_PERPLEXITY_DEEP_RESEARCH",
            function=perplexity_deep_research,
        ),
    )
}


class ToolConfig(BaseModel):
    """Feature flags deciding which tools may be offered to the model."""

    tavily_search: bool = Field(default_factory=lambda: _flag("ENABLE_TAVILY_SEARCH"))
    tavily_extract: bool = Field(default_factory=lambda: _flag("ENABLE_TAVILY_EXTRACT"))
    perplexity_search: bool = Field(default_factory=lambda: _flag("ENABLE_PERPLEXITY_SEARCH"))
    perplexity_deep_research: bool = Field(
        default_factory=lambda: _flag("ENABLE_PERPLEXITY_DEEP_RESEARCH")
    )

    @classmethod
    def from_env(cls) -> "ToolConfig":
        return cls()

    def is_enabled(self, name: str) -> bool:
        return name in TOOL_CATALOG and bool(getattr(self, name))

    def enabled_names(self) -> list[str]:
        return [name for name in TOOL_CATALOG if self.is_enabled(name)]

    def select(self, requested: Sequence[str] | None) -> list[str]:
        """Narrow the enabled tools to the client's selection.

        Args:
            requested: Tool names asked for, or ``None`` for every enabled tool.

        Returns:
            Enabled names in catalogue order. Requested names that are
            unknown or disabled are logged and dropped.
        """
        if requested is None:
            return self.enabled_names()
        wanted = set(requested)
        for name in sorted(wanted):
            if not self.is_enabled(name):
                logger.warning(f"Requested tool '{name}' is not enabled; ignoring it")
        return [name for name in self.enabled_names() if name in wanted]


def build_tools(names: Sequence[str]) -> list[Callable[..., Any]]:
    """Tool functions for the given catalogue names, ready to hand to an Agent."""
    return [TOOL_CATALOG[name].function for name in names if name in TOOL_CATALOG]
