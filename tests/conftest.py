"""Pytest configuration and fixtures."""

from typing import Any

import pytest

from sourcegraph_mcp.config import AISettings, ServerSettings, Settings, SourcegraphSettings
from sourcegraph_mcp.core.types import RoutingMode, SearchType
from sourcegraph_mcp.mcp.server import MCPServer
from sourcegraph_mcp.search.translator import NaturalLanguageTranslator


def make_settings(
    url: str = "https://sourcegraph.example.com",
    token: str = "sgp_test_token",
    routing_mode: RoutingMode = RoutingMode.LENIENT,
    **server_values: Any,
) -> Settings:
    """Build settings without reading the environment or a .env file."""
    return Settings(
        sourcegraph=SourcegraphSettings(
            _env_file=None,
            sourcegraph_url=url,
            sourcegraph_token=token,
            sourcegraph_timeout=5.0,
            search_result_count=20,
        ),
        ai=AISettings(
            _env_file=None,
            llm_provider="openai",
            openai_api_key="",
            anthropic_api_key="",
        ),
        server=ServerSettings(
            _env_file=None,
            routing_mode=routing_mode,
            **server_values,
        ),
    )


class FakeSourcegraphClient:
    """Stand-in for SourcegraphClient that records every call."""

    url = "https://sourcegraph.example.com"

    def __init__(self, search_results: dict | None = None, data: dict | None = None, error: Exception | None = None):
        self.search_results = search_results if search_results is not None else {"results": [], "matchCount": 0}
        self.data = data or {}
        self.error = error
        self.searches: list[tuple[str, SearchType]] = []
        self.executed: list[tuple[str, dict]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def search(self, query: str, search_type: SearchType = SearchType.FILE) -> dict:
        self.searches.append((query, search_type))
        if self.error:
            raise self.error
        return self.search_results

    async def current_user(self) -> str | None:
        if self.error:
            raise self.error
        return "jane"

    async def execute(self, document: str, variables: dict | None = None) -> dict:
        self.executed.append((document, variables or {}))
        if self.error:
            raise self.error
        return self.data

    async def blob(self, document: str, variables: dict) -> dict | None:
        data = await self.execute(document, variables)
        return ((data.get("repository") or {}).get("commit") or {}).get("blob")

    async def blob_lsif(self, document: str, variables: dict) -> dict | None:
        blob = await self.blob(document, variables)
        return blob.get("lsif") if blob else None

    async def vulnerabilities(self, document: str, variables: dict) -> dict:
        data = await self.execute(document, variables)
        return data.get("vulnerabilities") or {"nodes": [], "totalCount": 0}


class FailingProvider:
    """LLM provider whose completions always fail."""

    async def complete(self, messages, **kwargs):
        raise RuntimeError("provider unavailable")

    async def close(self):
        pass


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def unconfigured_settings() -> Settings:
    return make_settings(url="", token="")


@pytest.fixture
def fake_client() -> FakeSourcegraphClient:
    return FakeSourcegraphClient()


@pytest.fixture
def fallback_translator() -> NaturalLanguageTranslator:
    """Translator that always uses the rule-based rewrite."""
    return NaturalLanguageTranslator(provider_factory=FailingProvider, timeout=1.0)


@pytest.fixture
def server(settings, fake_client, fallback_translator) -> MCPServer:
    return MCPServer(
        settings=settings,
        client_factory=lambda: fake_client,
        translator=fallback_translator,
    )
