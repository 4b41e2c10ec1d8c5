"""Per-audience newsletter pipeline.

Phases run in strict order and each fan-out drains before the next starts:

1. balance            match pre-tagged topics to the selected audiences
2. fill_orphans       generate fresh topics for audiences left without any
3. detect_overlaps    suggest cross-audience platform equivalents
4. allocate_sources   fetch sources for every title and allocate per audience
5. generate_sections  one independent section per audience
6. merge_and_finalize assemble the newsletter from the successful sections

Per-audience failures are recorded and the run continues; only a total
failure yields ``success=False``.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from newsdesk.config import settings
from newsdesk.core.exceptions import (
    NoAudiencesSelectedError,
    OrphanGenerationFailure,
    TotalFailureError,
    describe_cause,
)
from newsdesk.schemas.audience import AudienceConfig
from newsdesk.schemas.pipeline import AgentBatch, NewsletterRequest, OrchestratorConfig
from newsdesk.schemas.section import Newsletter, SourceDocument
from newsdesk.schemas.topic import MismatchResolution, StrategicOverlap, Topic
from newsdesk.services.audiences import AudienceDirectory, default_audience_directory
from newsdesk.services.collaborators import (
    PersonaStore,
    SectionWriter,
    SourceAllocator,
    SourceFetcher,
    TopicGenerator,
)
from newsdesk.services.fan_out import fan_out
from newsdesk.services.newsletter_assembly import NewsletterAssembler
from newsdesk.services.overlap_detector import OverlapDetector
from newsdesk.services.platform_equivalents import (
    PlatformEquivalenceTable,
    default_equivalence_table,
)
from newsdesk.services.section_generator import SectionGenerator, SectionRequest, SectionResult
from newsdesk.services.source_allocation import RelevanceSourceAllocator
from newsdesk.services.topic_balancer import (
    BalancedTopicMap,
    BalanceResult,
    TopicAudienceBalancer,
    dedupe_audiences,
)
from newsdesk.services.topic_suggestions import build_agent_batches, route_batch_topics

logger = logging.getLogger(__name__)

FailureStage = Literal["balance", "fill_orphans", "generate_sections"]


@dataclass(slots=True)
class AudienceFailure:
    audience_id: str
    stage: FailureStage
    reason: str


@dataclass(slots=True)
class PipelineMetrics:
    """Per-phase durations in seconds plus section outcome counts."""

    balance_seconds: float = 0.0
    topic_generation_seconds: float = 0.0
    overlap_detection_seconds: float = 0.0
    source_allocation_seconds: float = 0.0
    content_generation_seconds: float = 0.0
    merge_seconds: float = 0.0
    total_seconds: float = 0.0
    sections_succeeded: int = 0
    sections_failed: int = 0
    parallel_efficiency: float = 1.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "balance_seconds": round(self.balance_seconds, 3),
            "topic_generation_seconds": round(self.topic_generation_seconds, 3),
            "overlap_detection_seconds": round(self.overlap_detection_seconds, 3),
            "source_allocation_seconds": round(self.source_allocation_seconds, 3),
            "content_generation_seconds": round(self.content_generation_seconds, 3),
            "merge_seconds": round(self.merge_seconds, 3),
            "total_seconds": round(self.total_seconds, 3),
            "sections_succeeded": self.sections_succeeded,
            "sections_failed": self.sections_failed,
            "parallel_efficiency": self.parallel_efficiency,
        }


@dataclass(slots=True)
class AggregateResult:
    """Outcome of one pipeline run, successful or not."""

    success: bool
    newsletter: Newsletter | None = None
    section_results: list[SectionResult] = field(default_factory=list)
    failures: list[AudienceFailure] = field(default_factory=list)
    missing_audience_ids: list[str] = field(default_factory=list)
    overlaps: list[StrategicOverlap] = field(default_factory=list)
    balance: dict[str, Any] | None = None
    metrics: PipelineMetrics = field(default_factory=PipelineMetrics)
    error: str | None = None

    def raise_for_failure(self) -> None:
        """Raise TotalFailureError when the run produced no newsletter."""
        if not self.success:
            raise TotalFailureError(self.error or "Newsletter generation failed", failures=self.failures)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "error": self.error,
            "newsletter": self.newsletter.model_dump(mode="json") if self.newsletter else None,
            "sections": [
                {
                    "audience_id": r.audience_id,
                    "audience_name": r.audience_name,
                    "topics": [t.title for t in r.topics],
                    "generation_seconds": round(r.generation_seconds, 3),
                }
                for r in self.section_results
            ],
            "failures": [
                {"audience_id": f.audience_id, "stage": f.stage, "reason": f.reason}
                for f in self.failures
            ],
            "missing_audience_ids": list(self.missing_audience_ids),
            "overlaps": [o.model_dump(mode="json") for o in self.overlaps],
            "balance": self.balance,
            "metrics": self.metrics.to_dict(),
        }


class NewsletterOrchestrator:
    """Runs the six-phase per-audience pipeline against injected collaborators."""

    def __init__(
        self,
        section_writer: SectionWriter,
        topic_generator: TopicGenerator,
        source_fetcher: SourceFetcher,
        *,
        source_allocator: SourceAllocator | None = None,
        directory: AudienceDirectory | None = None,
        table: PlatformEquivalenceTable | None = None,
        persona_store: PersonaStore | None = None,
        rng: random.Random | None = None,
        section_timeout_seconds: float | None = None,
        topic_timeout_seconds: float | None = None,
    ) -> None:
        self.section_writer = section_writer
        self.topic_generator = topic_generator
        self.source_fetcher = source_fetcher
        self.source_allocator = source_allocator or RelevanceSourceAllocator()
        self.directory = directory or default_audience_directory()
        self.balancer = TopicAudienceBalancer(self.directory)
        self.detector = OverlapDetector(table or default_equivalence_table())
        self.persona_store = persona_store
        self.rng = rng or random.Random()
        self.section_timeout_seconds = section_timeout_seconds
        self.topic_timeout_seconds = (
            settings.topic_generation_timeout_seconds
            if topic_timeout_seconds is None
            else topic_timeout_seconds
        )

    async def run(
        self,
        request: NewsletterRequest,
        config: OrchestratorConfig | None = None,
        resolutions: Sequence[MismatchResolution] | None = None,
    ) -> AggregateResult:
        config = config or request.config or OrchestratorConfig()
        if resolutions is None:
            resolutions = request.resolutions
        metrics = PipelineMetrics()
        result = AggregateResult(success=False, metrics=metrics)
        run_start = time.perf_counter()

        audiences = dedupe_audiences(request.audiences)
        logger.info(
            "Newsletter pipeline started",
            extra={
                "audience_count": len(audiences),
                "topic_count": len(request.topics),
                "generation_mode": config.generation_mode,
            },
        )
        try:
            if not audiences:
                raise NoAudiencesSelectedError()

            t0 = time.perf_counter()
            balance = self._balance(request.topics, audiences, config, resolutions)
            result.balance = balance.to_dict()
            if balance.has_mismatches:
                logger.info(
                    "Topics rebalanced across audiences",
                    extra={
                        "reassigned_count": len(balance.reassigned),
                        "dropped_count": len(balance.dropped),
                        "orphaned_count": len(balance.orphaned),
                    },
                )
            for item in balance.unresolved:
                result.failures.append(
                    AudienceFailure(
                        item.topic.audience_id,
                        "balance",
                        f'topic "{item.topic.title}" dropped: {item.reason}',
                    )
                )
            topic_map: BalancedTopicMap = {
                audience_id: list(topics) for audience_id, topics in balance.balanced_map.items()
            }
            metrics.balance_seconds = time.perf_counter() - t0

            t0 = time.perf_counter()
            if balance.orphaned:
                await self._fill_orphans(balance.orphaned, topic_map, config, result.failures)
            metrics.topic_generation_seconds = time.perf_counter() - t0

            t0 = time.perf_counter()
            if not config.skip_overlap_detection:
                result.overlaps = self._detect_overlaps(topic_map, audiences)
            metrics.overlap_detection_seconds = time.perf_counter() - t0

            ready = [audience for audience in audiences if topic_map.get(audience.id)]
            if not ready:
                raise TotalFailureError(
                    "No audience has topics to write about",
                    failures=result.failures,
                )

            t0 = time.perf_counter()
            allocated = await self._allocate_sources(topic_map, ready, config)
            metrics.source_allocation_seconds = time.perf_counter() - t0

            t0 = time.perf_counter()
            generator = SectionGenerator(
                self.section_writer,
                persona_store=self.persona_store,
                timeout_seconds=self.section_timeout_seconds,
                newsletter_name=request.newsletter_name,
            )
            section_requests = [
                SectionRequest(
                    audience=audience,
                    topics=topic_map[audience.id],
                    sources=allocated.get(audience.id, []),
                    tone=request.tone,
                    flavors=list(request.flavors),
                    persona_id=request.persona_id,
                )
                for audience in ready
            ]
            try:
                sections = await generator.generate_many(section_requests)
            except TotalFailureError as exc:
                metrics.sections_failed = len(exc.failures)
                for failure in exc.failures:
                    result.failures.append(
                        AudienceFailure(failure.audience_id, "generate_sections", describe_cause(failure.cause))
                    )
                raise
            finally:
                metrics.content_generation_seconds = time.perf_counter() - t0

            for failure in sections.failures:
                result.failures.append(
                    AudienceFailure(failure.audience_id, "generate_sections", describe_cause(failure.cause))
                )
            metrics.sections_succeeded = len(sections.results)
            metrics.sections_failed = len(sections.failures)
            metrics.parallel_efficiency = sections.parallel_efficiency

            t0 = time.perf_counter()
            assembler = NewsletterAssembler(request.newsletter_name)
            result.newsletter = assembler.assemble(sections.results, allocated)
            result.section_results = list(sections.results)
            metrics.merge_seconds = time.perf_counter() - t0
            result.success = True
        except (NoAudiencesSelectedError, TotalFailureError) as exc:
            result.error = exc.message
            logger.error(
                "Newsletter pipeline failed",
                extra={"error": exc.message, "failure_count": len(result.failures)},
            )

        succeeded = {r.audience_id for r in result.section_results}
        result.missing_audience_ids = [a.id for a in audiences if a.id not in succeeded]
        metrics.total_seconds = time.perf_counter() - run_start

        logger.info(
            "Newsletter pipeline finished",
            extra={
                "success": result.success,
                "sections_succeeded": metrics.sections_succeeded,
                "sections_failed": metrics.sections_failed,
                "missing_audience_ids": result.missing_audience_ids,
                "overlap_count": len(result.overlaps),
                "total_s": round(metrics.total_seconds, 2),
                "parallel_efficiency": metrics.parallel_efficiency,
            },
        )
        return result

    def _balance(
        self,
        topics: Sequence[Topic],
        audiences: list[AudienceConfig],
        config: OrchestratorConfig,
        resolutions: Sequence[MismatchResolution] | None,
    ) -> BalanceResult:
        if config.auto_balance or resolutions is None:
            return self.balancer.auto_balance(topics, audiences)
        analysis = self.balancer.analyze(topics, audiences)
        return self.balancer.apply_resolutions(analysis, resolutions)

    async def _fill_orphans(
        self,
        orphans: list[AudienceConfig],
        topic_map: BalancedTopicMap,
        config: OrchestratorConfig,
        failures: list[AudienceFailure],
    ) -> None:
        """Generate fresh topics for every orphan; record the ones still empty."""
        per_audience = config.topics_per_audience
        batches = build_agent_batches(
            orphans, config.generation_mode, config.max_parallel_agents, self.directory
        )

        async def _run_batch(batch: AgentBatch) -> dict[str, list[Topic]]:
            try:
                topics = await asyncio.wait_for(
                    self.topic_generator.generate_topics(batch, per_audience * len(batch.audiences)),
                    timeout=self.topic_timeout_seconds,
                )
            except Exception as exc:
                raise OrphanGenerationFailure(batch.id, exc) from exc
            return route_batch_topics(batch, topics)

        outcome = await fan_out(batches, _run_batch, key=lambda batch: batch.id, label="fill_orphans")
        batch_errors = {f.key: f.cause for f in outcome.failures}
        batch_of = {audience.id: batch for batch in batches for audience in batch.audiences}

        for routed in outcome.values:
            for audience_id, topics in routed.items():
                topic_map[audience_id] = topics[:per_audience]

        for audience in orphans:
            if topic_map.get(audience.id):
                continue
            cause = batch_errors.get(batch_of[audience.id].id)
            if isinstance(cause, OrphanGenerationFailure):
                reason = describe_cause(cause.cause)
            elif cause is not None:
                reason = describe_cause(cause)
            else:
                reason = "no topics generated"
            failures.append(AudienceFailure(audience.id, "fill_orphans", reason))

        logger.info(
            "Orphaned audiences filled",
            extra={
                "orphan_count": len(orphans),
                "batch_count": len(batches),
                "filled_count": sum(1 for a in orphans if topic_map.get(a.id)),
            },
        )

    def _detect_overlaps(
        self, topic_map: BalancedTopicMap, audiences: list[AudienceConfig]
    ) -> list[StrategicOverlap]:
        try:
            return self.detector.detect(topic_map, audiences)
        except Exception as exc:
            logger.warning(
                "Overlap detection failed, continuing without suggestions",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return []

    async def _allocate_sources(
        self,
        topic_map: BalancedTopicMap,
        ready: list[AudienceConfig],
        config: OrchestratorConfig,
    ) -> dict[str, list[SourceDocument]]:
        if config.sources_per_allocation <= 0:
            return {}
        ready_map = {audience.id: topic_map[audience.id] for audience in ready}
        titles = list(dict.fromkeys(t.title for topics in ready_map.values() for t in topics))
        count_hint = config.sources_per_allocation * len(ready)

        try:
            sources = await self.source_fetcher.fetch_sources(titles, count_hint)
        except Exception as exc:
            logger.warning(
                "Source fetch failed, generating without sources",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return {}
        if not sources:
            return {}

        try:
            return self.source_allocator.allocate(ready_map, sources, config.sources_per_allocation)
        except Exception as exc:
            logger.warning(
                "Source allocation failed, generating without sources",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return {}
