"""Source document providers: Hacker News (Algolia), DEV and GitHub search."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from newsdesk.config import Settings, settings
from newsdesk.core.exceptions import ExternalAPIError, RateLimitExceededError
from newsdesk.schemas.section import SourceDocument
from newsdesk.services.source_allocation import extract_keywords

logger = logging.getLogger(__name__)

USER_AGENT = "newsdesk/0.1 (+https://github.com/newsdesk)"
SNIPPET_CHARS = 200


def _parse_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _snippet(text: str | None) -> str | None:
    if not text:
        return None
    return text.strip()[:SNIPPET_CHARS] or None


class SourceProviderClient:
    """Base class for JSON-over-HTTP source providers.

    Must be used as an async context manager.
    """

    api_name = "source"

    def __init__(
        self,
        app_settings: Settings | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = app_settings or settings
        self.timeout = timeout if timeout is not None else self.settings.source_fetch_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> SourceProviderClient:
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client must be used as async context manager")
        return self._client

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = await self.client.get(url, params=params)
            # GitHub signals an exhausted quota with 403
            if response.status_code == 429 or (
                response.status_code == 403 and "rate limit" in response.text.lower()
            ):
                logger.warning("Source provider rate limit hit", extra={"provider": self.api_name})
                raise RateLimitExceededError(self.api_name)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as exc:
            logger.warning(
                "Source provider HTTP error",
                extra={"provider": self.api_name, "url": url, "error": str(exc)},
            )
            raise ExternalAPIError(self.api_name, str(exc)) from exc
        except ValueError as exc:
            raise ExternalAPIError(self.api_name, f"invalid JSON response: {exc}") from exc

    async def search(self, query: str, limit: int) -> list[SourceDocument]:
        raise NotImplementedError


class HackerNewsClient(SourceProviderClient):
    """Story search through the Hacker News Algolia API."""

    api_name = "HackerNews"

    async def search(self, query: str, limit: int) -> list[SourceDocument]:
        payload = await self._get_json(
            self.settings.hackernews_search_url,
            params={"query": query, "tags": "story", "hitsPerPage": limit},
        )
        documents: list[SourceDocument] = []
        for hit in payload.get("hits", []):
            url = hit.get("url")
            title = hit.get("title")
            # Only stories that link out
            if not url or not title:
                continue
            documents.append(
                SourceDocument(
                    url=url,
                    title=title,
                    snippet=_snippet(hit.get("story_text")),
                    provider="hackernews",
                    author=hit.get("author"),
                    published_at=_parse_timestamp(hit.get("created_at_i") or hit.get("created_at")),
                )
            )
        return documents[:limit]


class DevToClient(SourceProviderClient):
    """Top recent articles for a tag on DEV."""

    api_name = "DEV"

    async def search(self, query: str, limit: int) -> list[SourceDocument]:
        # DEV has no full-text search endpoint; the query only feeds logging
        payload = await self._get_json(
            self.settings.devto_api_url,
            params={"tag": self.settings.devto_tag, "per_page": limit, "top": 7},
        )
        logger.debug("DEV articles fetched", extra={"query": query, "count": len(payload)})
        documents: list[SourceDocument] = []
        for article in payload[:limit]:
            if not article.get("url") or not article.get("title"):
                continue
            documents.append(
                SourceDocument(
                    url=article["url"],
                    title=article["title"],
                    snippet=_snippet(article.get("description")),
                    provider="devto",
                    author=(article.get("user") or {}).get("username"),
                    published_at=_parse_timestamp(article.get("published_at")),
                )
            )
        return documents


class GitHubClient(SourceProviderClient):
    """Recently created, most-starred repositories for a topic."""

    api_name = "GitHub"

    async def search(self, query: str, limit: int) -> list[SourceDocument]:
        since = (datetime.now(timezone.utc) - timedelta(days=7)).date().isoformat()
        payload = await self._get_json(
            self.settings.github_search_url,
            params={
                "q": f"{query} topic:{self.settings.github_topic} created:>{since}".strip(),
                "sort": "stars",
                "order": "desc",
                "per_page": limit,
            },
        )
        documents: list[SourceDocument] = []
        for repo in payload.get("items", [])[:limit]:
            documents.append(
                SourceDocument(
                    url=repo["html_url"],
                    title=repo["full_name"],
                    snippet=_snippet(repo.get("description")),
                    provider="github",
                    author=(repo.get("owner") or {}).get("login"),
                    published_at=_parse_timestamp(repo.get("created_at")),
                )
            )
        return documents


class AggregatedSourceFetcher:
    """SourceFetcher that queries every provider concurrently and merges the results.

    A failing provider is logged and skipped; the others still contribute.
    """

    def __init__(
        self,
        providers: Sequence[SourceProviderClient] | None = None,
        *,
        max_query_keywords: int = 6,
    ) -> None:
        self.providers = list(providers) if providers is not None else [
            HackerNewsClient(),
            DevToClient(),
        ]
        self.max_query_keywords = max_query_keywords

    def build_query(self, topic_titles: Sequence[str]) -> str:
        """Most frequent keywords across the titles, as one search query."""
        counts: dict[str, int] = {}
        for title in topic_titles:
            for keyword in dict.fromkeys(extract_keywords(title)):
                counts[keyword] = counts.get(keyword, 0) + 1
        ranked = sorted(counts, key=lambda keyword: -counts[keyword])
        return " ".join(ranked[: self.max_query_keywords])

    async def _fetch_one(
        self, provider: SourceProviderClient, query: str, limit: int
    ) -> list[SourceDocument]:
        try:
            async with provider:
                return await provider.search(query, limit)
        except ExternalAPIError as exc:
            logger.warning(
                "Source provider failed, continuing without it",
                extra={"provider": provider.api_name, "error": exc.message},
            )
            return []

    async def fetch_sources(self, topic_titles: Sequence[str], count_hint: int) -> list[SourceDocument]:
        if not topic_titles or count_hint <= 0:
            return []
        query = self.build_query(topic_titles)
        limit = max(count_hint, 5)
        batches = await asyncio.gather(
            *[self._fetch_one(provider, query, limit) for provider in self.providers]
        )

        documents: list[SourceDocument] = []
        seen_urls: set[str] = set()
        for batch in batches:
            for document in batch:
                if document.url in seen_urls:
                    continue
                seen_urls.add(document.url)
                documents.append(document)

        logger.info(
            "Sources fetched",
            extra={
                "query": query,
                "provider_count": len(self.providers),
                "document_count": len(documents),
            },
        )
        return documents
