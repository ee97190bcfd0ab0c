"""Unit tests for web research tools and their feature flags."""

import json
from unittest.mock import patch

import httpx
import pytest
import pytest_check as check

from ragchat.agent.tools import (
    TOOL_CATALOG,
    ToolConfig,
    build_tools,
    perplexity_deep_research,
    perplexity_search,
    tavily_extract,
    tavily_search,
)

_RealAsyncClient = httpx.AsyncClient


def _mock_http(handler):
    """Route every AsyncClient the tools open through ``handler``."""

    def client_factory(*args, **kwargs):
        return _RealAsyncClient(*args, transport=httpx.MockTransport(handler), **kwargs)

    return patch("ragchat.agent.tools.httpx.AsyncClient", side_effect=client_factory)


class TestToolConfig:
    """Tests for feature-flagged tool selection."""

    def test_flags_read_from_environment(self) -> None:
        env = {"ENABLE_TAVILY_SEARCH": "true", "ENABLE_PERPLEXITY_SEARCH": "1", "ENABLE_TAVILY_EXTRACT": "no"}
        with patch.dict("os.environ", env, clear=True):
            config = ToolConfig.from_env()

        assert config.enabled_names() == ["tavily_search", "perplexity_search"]

    def test_everything_disabled_by_default(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            config = ToolConfig.from_env()

        assert config.enabled_names() == []

    def test_select_none_means_all_enabled(self) -> None:
        config = ToolConfig(tavily_search=True, tavily_extract=True, perplexity_search=False, perplexity_deep_research=False)

        assert config.select(None) == ["tavily_search", "tavily_extract"]

    def test_select_drops_disabled_and_unknown_names(self) -> None:
        config = ToolConfig(tavily_search=True, tavily_extract=False, perplexity_search=True, perplexity_deep_research=False)

        selected = config.select(["perplexity_search", "tavily_extract", "made_up_tool"])

        assert selected == ["perplexity_search"]

    def test_select_empty_list_means_no_tools(self) -> None:
        config = ToolConfig(tavily_search=True, tavily_extract=True, perplexity_search=True, perplexity_deep_research=True)

        assert config.select([]) == []

    def test_is_enabled_rejects_unknown_names(self) -> None:
        config = ToolConfig(tavily_search=True, tavily_extract=True, perplexity_search=True, perplexity_deep_research=True)

        assert not config.is_enabled("model_copy")

    def test_build_tools_follows_catalog(self) -> None:
        check.equal(build_tools(["tavily_search", "perplexity_deep_research"]), [tavily_search, perplexity_deep_research])
        check.equal(build_tools(["nope"]), [])
        check.equal(set(TOOL_CATALOG), {"tavily_search", "tavily_extract", "perplexity_search", "perplexity_deep_research"})


class TestTavily:
    """Tests for the Tavily tools."""

    async def test_search_posts_query_and_shapes_results(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"results": [{"title": "T", "url": "https://a.example", "content": "C", "score": 0.9, "raw": "x"}]},
            )

        with patch.dict("os.environ", {"TAVILY_API_KEY": "tvly-key"}), _mock_http(handler):
            results = await tavily_search("rag pipelines", max_results=50)

        check.equal(results, [{"title": "T", "url": "https://a.example", "content": "C", "score": 0.9}])
        check.equal(str(seen[0].url), "https://api.tavily.com/search")
        check.equal(seen[0].headers["Authorization"], "Bearer tvly-key")
        body = json.loads(seen[0].content)
        check.equal(body, {"query": "rag pipelines", "search_depth": "basic", "max_results": 20})

    async def test_extract_reports_failures(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "results": [{"url": "https://a.example", "raw_content": "Body"}],
                    "failed_results": [{"url": "https://b.example"}],
                },
            )

        with patch.dict("os.environ", {"TAVILY_API_KEY": "tvly-key"}), _mock_http(handler):
            data = await tavily_extract(["https://a.example", "https://b.example"])

        check.equal(data["results"], [{"url": "https://a.example", "content": "Body"}])
        check.equal(data["failed_results"], [{"url": "https://b.example", "error": "Unknown error"}])

    async def test_extract_requires_urls(self) -> None:
        with pytest.raises(ValueError):
            await tavily_extract([])

    async def test_missing_key(self) -> None:
        with patch.dict("os.environ", {}, clear=True), pytest.raises(RuntimeError, match="TAVILY_API_KEY"):
            await tavily_search("q")

    async def test_http_error_propagates(self) -> None:
        with (
            patch.dict("os.environ", {"TAVILY_API_KEY": "tvly-key"}),
            _mock_http(lambda request: httpx.Response(401, json={"detail": "bad key"})),
            pytest.raises(httpx.HTTPStatusError),
        ):
            await tavily_search("q")


class TestPerplexity:
    """Tests for the Perplexity tools."""

    async def test_search_uses_sonar(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"choices": [{"message": {"content": "Fresh answer"}}]})

        with patch.dict("os.environ", {"PERPLEXITY_API_KEY": "pplx-key"}), _mock_http(handler):
            result = await perplexity_search("latest release?")

        check.equal(result, {"response": "Fresh answer"})
        check.equal(bodies[0]["model"], "sonar")
        check.equal(bodies[0]["messages"], [{"role": "user", "content": "latest release?"}])

    async def test_deep_research_uses_research_model(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"choices": []})

        with patch.dict("os.environ", {"PERPLEXITY_API_KEY": "pplx-key"}), _mock_http(handler):
            result = await perplexity_deep_research("survey RAG evaluation")

        check.equal(bodies[0]["model"], "sonar-deep-research")
        check.equal(result, {"response": "No response content found."})

    async def test_api_error_message(self) -> None:
        with (
            patch.dict("os.environ", {"PERPLEXITY_API_KEY": "pplx-key"}),
            _mock_http(lambda request: httpx.Response(429, text="slow down")),
            pytest.raises(RuntimeError, match="Perplexity API error: 429"),
        ):
            await perplexity_search("q")
