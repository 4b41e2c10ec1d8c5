"""Parallel topic suggestion across agent batches.

Audiences are grouped into batches according to the generation mode; each
batch is served by one topic-generation call and all calls run concurrently.
The per-batch results are merged with equal representation per audience.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from newsdesk.config import GenerationMode, settings
from newsdesk.core.exceptions import NoAudiencesSelectedError, TotalFailureError
from newsdesk.schemas.audience import AudienceConfig
from newsdesk.schemas.pipeline import AgentBatch
from newsdesk.schemas.topic import Topic
from newsdesk.services.audiences import AudienceDirectory
from newsdesk.services.collaborators import TopicGenerator
from newsdesk.services.fan_out import FanOutFailure, fan_out
from newsdesk.services.topic_balancer import dedupe_audiences
from newsdesk.services.topic_merger import MergerStats, merge_topics_with_balance

logger = logging.getLogger(__name__)

ESTIMATED_SECONDS_PER_AGENT = 15
CUSTOM_CATEGORY = "custom"

CATEGORY_BATCH_LABELS = {
    "academic": "Academic Researchers",
    "business": "Business Professionals",
}


@dataclass(slots=True)
class ModeAlternative:
    mode: GenerationMode
    agent_count: int
    estimated_seconds: int
    description: str


@dataclass(slots=True)
class GenerationTradeoffs:
    """What a generation mode costs for a set of audiences."""

    audience_count: int
    default_count: int
    custom_count: int
    by_category: dict[str, int]
    mode: GenerationMode
    agent_count: int
    estimated_topics: int
    estimated_seconds: int
    estimated_api_calls: int
    alternatives: list[ModeAlternative] = field(default_factory=list)


@dataclass(slots=True)
class BatchFailure:
    batch_id: str
    audience_ids: list[str]
    reason: str


@dataclass(slots=True)
class TopicSuggestionResult:
    topics: list[Topic]
    batches: list[AgentBatch]
    failures: list[BatchFailure]
    merge_stats: MergerStats
    wall_clock_seconds: float
    parallel_efficiency: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "topics": [topic.model_dump(exclude_none=True) for topic in self.topics],
            "batches": [
                {"id": batch.id, "label": batch.label, "audience_ids": batch.audience_ids}
                for batch in self.batches
            ],
            "failures": [
                {"batch_id": f.batch_id, "audience_ids": f.audience_ids, "reason": f.reason}
                for f in self.failures
            ],
            "per_audience": dict(self.merge_stats.per_audience),
            "underrepresented": list(self.merge_stats.underrepresented),
            "wall_clock_seconds": round(self.wall_clock_seconds, 3),
            "parallel_efficiency": self.parallel_efficiency,
        }


def category_label(category_id: str) -> str:
    return CATEGORY_BATCH_LABELS.get(category_id, category_id)


def _single_batch(audience: AudienceConfig, category: str | None) -> AgentBatch:
    return AgentBatch(id=audience.id, label=audience.name, audiences=[audience], category=category)


def _fold_overflow(batches: list[AgentBatch], max_batches: int | None) -> list[AgentBatch]:
    """Keep the first ``max_batches - 1`` batches and fold the rest into one."""
    if max_batches is None or len(batches) <= max_batches:
        return batches
    kept = batches[: max_batches - 1]
    overflow = [audience for batch in batches[max_batches - 1 :] for audience in batch.audiences]
    kept.append(
        AgentBatch(
            id="overflow-" + "-".join(a.id for a in overflow),
            label="Mixed: " + ", ".join(a.name for a in overflow),
            audiences=overflow,
        )
    )
    return kept


def _category_for(audience: AudienceConfig, directory: AudienceDirectory) -> str:
    if audience.is_custom:
        return CUSTOM_CATEGORY
    return directory.category_of(audience.id) or CUSTOM_CATEGORY


def build_agent_batches(
    audiences: Iterable[AudienceConfig],
    mode: GenerationMode,
    max_parallel_agents: int | None,
    directory: AudienceDirectory,
) -> list[AgentBatch]:
    """Group audiences into topic-generation batches.

    ``per-audience`` gives every audience its own batch. ``per-category`` and
    ``hybrid`` batch built-in audiences by parent category and give each
    custom audience its own batch. When ``max_parallel_agents`` is set, any
    batches beyond it are folded into the last one.
    """
    selected = dedupe_audiences(audiences)
    if mode == "per-audience":
        batches = [_single_batch(a, directory.category_of(a.id)) for a in selected]
        return _fold_overflow(batches, max_parallel_agents)

    by_category: dict[str, list[AudienceConfig]] = {}
    for audience in selected:
        by_category.setdefault(_category_for(audience, directory), []).append(audience)

    batches = []
    for category_id, members in by_category.items():
        if category_id == CUSTOM_CATEGORY:
            batches.extend(_single_batch(a, None) for a in members)
        else:
            batches.append(
                AgentBatch(
                    id=category_id,
                    label=category_label(category_id),
                    audiences=members,
                    category=category_id,
                )
            )
    return _fold_overflow(batches, max_parallel_agents)


def estimate_tradeoffs(
    audiences: Sequence[AudienceConfig],
    mode: GenerationMode,
    topics_per_agent: int,
    directory: AudienceDirectory,
    max_parallel_agents: int | None = None,
) -> GenerationTradeoffs:
    """Estimate agent count, topic yield and latency for ``mode`` and its alternatives."""
    selected = dedupe_audiences(audiences)
    batches = build_agent_batches(selected, mode, max_parallel_agents, directory)

    by_category: dict[str, int] = {}
    for audience in selected:
        category = _category_for(audience, directory)
        by_category[category] = by_category.get(category, 0) + 1
    custom_count = sum(1 for a in selected if a.is_custom)

    alternatives: list[ModeAlternative] = []
    if mode != "per-category":
        count = len(build_agent_batches(selected, "per-category", max_parallel_agents, directory))
        alternatives.append(
            ModeAlternative(
                "per-category", count, ESTIMATED_SECONDS_PER_AGENT,
                f"Faster: {count} agents (one per category)",
            )
        )
    if mode != "per-audience" and len(selected) <= 10:
        alternatives.append(
            ModeAlternative(
                "per-audience", len(selected), ESTIMATED_SECONDS_PER_AGENT,
                f"More granular: {len(selected)} agents (one per audience)",
            )
        )
    if mode != "hybrid":
        count = len(build_agent_batches(selected, "hybrid", max_parallel_agents, directory))
        alternatives.append(
            ModeAlternative(
                "hybrid", count, ESTIMATED_SECONDS_PER_AGENT,
                f"Balanced: {count} agents (category + custom)",
            )
        )

    # Agents run in parallel, so latency is one agent's, not the sum
    return GenerationTradeoffs(
        audience_count=len(selected),
        default_count=len(selected) - custom_count,
        custom_count=custom_count,
        by_category=by_category,
        mode=mode,
        agent_count=len(batches),
        estimated_topics=len(batches) * topics_per_agent,
        estimated_seconds=ESTIMATED_SECONDS_PER_AGENT,
        estimated_api_calls=len(batches),
        alternatives=alternatives,
    )


def route_batch_topics(batch: AgentBatch, topics: Iterable[Topic]) -> dict[str, list[Topic]]:
    """Group a batch's topics by audience.

    Topics tagged with one of the batch's audiences go to it. In a
    single-audience batch, untagged or mistagged topics go to that audience;
    in a multi-audience batch they are dropped.
    """
    routed: dict[str, list[Topic]] = {audience_id: [] for audience_id in batch.audience_ids}
    only = batch.audience_ids[0] if len(batch.audiences) == 1 else None
    for topic in topics:
        if topic.audience_id in routed:
            routed[topic.audience_id].append(topic)
        elif only is not None:
            routed[only].append(topic.model_copy(update={"audience_id": only}))
        else:
            logger.debug(
                "Dropping topic for an audience outside its batch",
                extra={"batch_id": batch.id, "title": topic.title, "audience_id": topic.audience_id},
            )
    return routed


class TopicSuggestionService:
    """Suggests fresh topics for a set of audiences with one agent per batch."""

    def __init__(
        self,
        generator: TopicGenerator,
        directory: AudienceDirectory,
        *,
        mode: GenerationMode | None = None,
        max_parallel_agents: int | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.generator = generator
        self.directory = directory
        self.mode: GenerationMode = mode or settings.default_generation_mode
        self.max_parallel_agents = (
            max_parallel_agents if max_parallel_agents is not None else settings.max_parallel_agents
        )
        self.rng = rng or random.Random()

    async def suggest(
        self,
        audiences: Sequence[AudienceConfig],
        topics_per_agent: int | None = None,
        target_count: int | None = None,
    ) -> TopicSuggestionResult:
        selected = dedupe_audiences(audiences)
        if not selected:
            raise NoAudiencesSelectedError()
        per_agent = topics_per_agent or settings.default_topics_per_audience

        batches = build_agent_batches(selected, self.mode, self.max_parallel_agents, self.directory)
        logger.info(
            "Suggesting topics",
            extra={
                "mode": self.mode,
                "audience_count": len(selected),
                "batch_count": len(batches),
                "topics_per_agent": per_agent,
            },
        )

        async def _run_batch(batch: AgentBatch) -> dict[str, list[Topic]]:
            # Category batches ask for enough topics to cover every member
            count = per_agent * max(len(batch.audiences), 1)
            topics = await self.generator.generate_topics(batch, count)
            return route_batch_topics(batch, topics)

        outcome = await fan_out(batches, _run_batch, key=lambda batch: batch.id, label="suggest_topics")
        batches_by_id = {batch.id: batch for batch in batches}
        failures = [self._batch_failure(batches_by_id[f.key], f) for f in outcome.failures]
        if outcome.all_failed:
            raise TotalFailureError(
                f"Topic suggestion failed for all {len(batches)} batches",
                failures=failures,
            )

        candidates: dict[str, list[Topic]] = {}
        for routed in outcome.values:
            for audience_id, topics in routed.items():
                candidates.setdefault(audience_id, []).extend(topics)

        merged = merge_topics_with_balance(
            candidates,
            per_audience_cap=per_agent,
            target_count=target_count,
            rng=self.rng,
        )
        return TopicSuggestionResult(
            topics=merged.topics,
            batches=batches,
            failures=failures,
            merge_stats=merged.stats,
            wall_clock_seconds=outcome.wall_clock_seconds,
            parallel_efficiency=outcome.parallel_efficiency,
        )

    @staticmethod
    def _batch_failure(batch: AgentBatch, failure: FanOutFailure) -> BatchFailure:
        return BatchFailure(batch_id=batch.id, audience_ids=batch.audience_ids, reason=failure.reason)
