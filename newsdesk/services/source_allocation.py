"""Keyword-relevance source allocation with cross-audience diversity.

Every (topic, audience) pair gets its most relevant sources, preferring
sources that no other audience has been given yet.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from newsdesk.schemas.section import SourceDocument
from newsdesk.schemas.topic import Topic

logger = logging.getLogger(__name__)

TITLE_WEIGHT = 0.5
CONTENT_WEIGHT = 0.3
URL_WEIGHT = 0.2
MIN_RELEVANCE = 0.1

_PUNCTUATION_RE = re.compile(r"[^\w\s-]")

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
        "be", "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare", "ought",
        "use", "uses", "used", "using", "case", "cases", "how", "what", "when",
        "where", "why", "which", "who", "whom", "this", "that", "these", "those",
        "it", "its", "they", "them", "their", "we", "us", "our", "you", "your",
    }
)


def extract_keywords(text: str) -> list[str]:
    """Lower-cased content words longer than two characters."""
    words = _PUNCTUATION_RE.sub(" ", text.lower()).split()
    return [word for word in words if len(word) > 2 and word not in STOP_WORDS]


def _match_ratio(text: str | None, keywords: list[str]) -> float:
    if not text:
        return 0.0
    lowered = text.lower()
    return sum(1 for keyword in keywords if keyword in lowered) / len(keywords)


def relevance_score(topic_title: str, source: SourceDocument) -> float:
    """Score how well ``source`` covers ``topic_title``, in ``[0, 1]``."""
    keywords = extract_keywords(topic_title)
    if not keywords:
        return 0.0
    score = TITLE_WEIGHT * _match_ratio(source.title, keywords)
    score += CONTENT_WEIGHT * min(_match_ratio(source.content or source.snippet, keywords), 1.0)
    score += URL_WEIGHT * _match_ratio(source.url, keywords)
    return min(score, 1.0)


@dataclass(slots=True)
class SourceAllocation:
    topic: str
    audience_id: str
    sources: list[SourceDocument]
    relevance: float
    reused: bool = False


@dataclass(slots=True)
class AllocationResult:
    allocations: list[SourceAllocation] = field(default_factory=list)
    reused_urls: list[str] = field(default_factory=list)
    diversity_score: float = 100.0
    topics_without_sources: list[str] = field(default_factory=list)

    def by_audience(self) -> dict[str, list[SourceDocument]]:
        """Sources per audience, de-duplicated by URL in allocation order."""
        grouped: dict[str, list[SourceDocument]] = {}
        seen: dict[str, set[str]] = {}
        for allocation in self.allocations:
            bucket = grouped.setdefault(allocation.audience_id, [])
            urls = seen.setdefault(allocation.audience_id, set())
            for source in allocation.sources:
                if source.url not in urls:
                    urls.add(source.url)
                    bucket.append(source)
        return grouped


class RelevanceSourceAllocator:
    """Allocates sources to each audience's topics in three passes.

    1. Relevant sources no audience has received yet.
    2. Relevant sources this audience has not received yet.
    3. The single best relevant source, when nothing was allocated.
    """

    def __init__(self, min_relevance: float = MIN_RELEVANCE) -> None:
        self.min_relevance = min_relevance

    def allocate_detailed(
        self,
        topic_map: Mapping[str, Sequence[Topic]],
        sources: Sequence[SourceDocument],
        sources_per_topic: int,
    ) -> AllocationResult:
        result = AllocationResult()
        allocated_urls: set[str] = set()
        audience_urls: dict[str, set[str]] = {audience_id: set() for audience_id in topic_map}
        reused_urls: list[str] = []

        for audience_id, topics in topic_map.items():
            own_urls = audience_urls[audience_id]
            for topic in topics:
                scored = sorted(
                    ((relevance_score(topic.title, source), source) for source in sources),
                    key=lambda pair: -pair[0],
                )
                relevant = [(score, source) for score, source in scored if score >= self.min_relevance]
                chosen: list[SourceDocument] = []
                reused = False

                for _score, source in relevant:
                    if len(chosen) >= sources_per_topic:
                        break
                    if source.url not in allocated_urls:
                        chosen.append(source)
                        allocated_urls.add(source.url)
                        own_urls.add(source.url)

                for _score, source in relevant:
                    if len(chosen) >= sources_per_topic:
                        break
                    if source.url not in own_urls:
                        chosen.append(source)
                        own_urls.add(source.url)
                        reused = True
                        if source.url not in reused_urls:
                            reused_urls.append(source.url)

                if not chosen and relevant and sources_per_topic > 0:
                    best = relevant[0][1]
                    chosen.append(best)
                    reused = True
                    if best.url not in reused_urls:
                        reused_urls.append(best.url)

                top_score = relevant[0][0] if chosen and relevant else 0.0
                result.allocations.append(
                    SourceAllocation(
                        topic=topic.title,
                        audience_id=audience_id,
                        sources=chosen,
                        relevance=round(top_score, 4),
                        reused=reused,
                    )
                )
                if not chosen:
                    result.topics_without_sources.append(topic.title)

        unique_urls = {s.url for allocation in result.allocations for s in allocation.sources}
        result.reused_urls = reused_urls
        if reused_urls and unique_urls:
            result.diversity_score = max(0.0, 100.0 - len(reused_urls) / len(unique_urls) * 100.0)

        logger.info(
            "Sources allocated",
            extra={
                "source_count": len(sources),
                "allocation_count": len(result.allocations),
                "reused_count": len(reused_urls),
                "diversity_score": round(result.diversity_score, 1),
                "topics_without_sources": len(result.topics_without_sources),
            },
        )
        return result

    def allocate(
        self,
        topic_map: Mapping[str, Sequence[Topic]],
        sources: Sequence[SourceDocument],
        sources_per_topic: int,
    ) -> dict[str, list[SourceDocument]]:
        detailed = self.allocate_detailed(topic_map, sources, sources_per_topic)
        grouped = detailed.by_audience()
        return {audience_id: grouped.get(audience_id, []) for audience_id in topic_map}
