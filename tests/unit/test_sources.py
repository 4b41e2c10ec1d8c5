"""Unit tests for HTTP source providers."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from newsdesk.config import Settings
from newsdesk.core.exceptions import ExternalAPIError, RateLimitExceededError
from newsdesk.integrations.sources import (
    AggregatedSourceFetcher,
    DevToClient,
    GitHubClient,
    HackerNewsClient,
)

HN_PAYLOAD: dict[str, Any] = {
    "hits": [
        {
            "title": "Show HN: RAG for lab notebooks",
            "url": "https://example.com/rag-notebooks",
            "author": "alice",
            "created_at_i": 1700000000,
        },
        {"title": "Ask HN: no link", "url": None, "author": "bob"},
    ]
}

DEVTO_PAYLOAD: list[dict[str, Any]] = [
    {
        "title": "Prompting tips for analysts",
        "url": "https://dev.to/carol/prompting-tips",
        "description": "Five prompts that save hours.",
        "user": {"username": "carol"},
        "published_at": "2024-05-01T10:00:00Z",
    },
    {
        "title": "Duplicate of HN story",
        "url": "https://example.com/rag-notebooks",
        "user": {"username": "dave"},
    },
]

GITHUB_PAYLOAD: dict[str, Any] = {
    "items": [
        {
            "full_name": "acme/notebook-rag",
            "html_url": "https://github.com/acme/notebook-rag",
            "description": "RAG over lab notebooks",
            "owner": {"login": "acme"},
            "created_at": "2024-05-02T08:00:00Z",
        }
    ]
}


def _transport(routes: dict[str, httpx.Response], seen: list[httpx.Request] | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        for host, response in routes.items():
            if request.url.host == host:
                return response
        return httpx.Response(404)

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_hackernews_client_maps_hits_and_skips_linkless_stories() -> None:
    seen: list[httpx.Request] = []
    transport = _transport({"hn.algolia.com": httpx.Response(200, json=HN_PAYLOAD)}, seen)

    async with HackerNewsClient(Settings(), transport=transport) as client:
        documents = await client.search("rag notebooks", 5)

    assert [d.url for d in documents] == ["https://example.com/rag-notebooks"]
    assert documents[0].provider == "hackernews"
    assert documents[0].author == "alice"
    assert documents[0].published_at is not None
    assert seen[0].url.params["query"] == "rag notebooks"
    assert seen[0].url.params["hitsPerPage"] == "5"


@pytest.mark.asyncio
async def test_devto_client_uses_tag_and_truncates_snippet() -> None:
    seen: list[httpx.Request] = []
    transport = _transport({"dev.to": httpx.Response(200, json=DEVTO_PAYLOAD)}, seen)

    async with DevToClient(Settings(devto_tag="llm"), transport=transport) as client:
        documents = await client.search("ignored", 2)

    assert seen[0].url.params["tag"] == "llm"
    assert seen[0].url.params["top"] == "7"
    assert documents[0].author == "carol"
    assert documents[0].snippet == "Five prompts that save hours."


@pytest.mark.asyncio
async def test_github_client_searches_recent_topic_repositories() -> None:
    seen: list[httpx.Request] = []
    transport = _transport({"api.github.com": httpx.Response(200, json=GITHUB_PAYLOAD)}, seen)

    async with GitHubClient(Settings(), transport=transport) as client:
        documents = await client.search("", 3)

    query = seen[0].url.params["q"]
    assert "topic:machine-learning" in query
    assert "created:>" in query
    assert seen[0].url.params["sort"] == "stars"
    assert documents[0].title == "acme/notebook-rag"
    assert documents[0].provider == "github"


@pytest.mark.asyncio
async def test_http_errors_map_to_external_api_error() -> None:
    transport = _transport({"hn.algolia.com": httpx.Response(500, text="server error")})

    async with HackerNewsClient(Settings(), transport=transport) as client:
        with pytest.raises(ExternalAPIError) as exc_info:
            await client.search("rag", 5)

    assert exc_info.value.api_name == "HackerNews"


@pytest.mark.asyncio
async def test_rate_limit_raises_dedicated_error() -> None:
    transport = _transport({"hn.algolia.com": httpx.Response(429, text="Rate limit exceeded")})

    async with HackerNewsClient(Settings(), transport=transport) as client:
        with pytest.raises(RateLimitExceededError):
            await client.search("rag", 5)


def test_client_requires_context_manager() -> None:
    with pytest.raises(RuntimeError):
        _ = HackerNewsClient(Settings()).client


@pytest.mark.asyncio
async def test_aggregated_fetcher_dedupes_and_survives_provider_failure() -> None:
    app_settings = Settings()
    providers = [
        HackerNewsClient(
            app_settings,
            transport=_transport({"hn.algolia.com": httpx.Response(200, json=HN_PAYLOAD)}),
        ),
        DevToClient(
            app_settings,
            transport=_transport({"dev.to": httpx.Response(200, json=DEVTO_PAYLOAD)}),
        ),
        GitHubClient(
            app_settings,
            transport=_transport({"api.github.com": httpx.Response(503)}),
        ),
    ]
    fetcher = AggregatedSourceFetcher(providers)

    documents = await fetcher.fetch_sources(["RAG for lab notebooks", "RAG pipelines"], 2)

    assert [d.url for d in documents] == [
        "https://example.com/rag-notebooks",
        "https://dev.to/carol/prompting-tips",
    ]
    assert fetcher.build_query(["RAG for lab notebooks", "RAG pipelines"]).startswith("rag")
    assert await fetcher.fetch_sources([], 2) == []
