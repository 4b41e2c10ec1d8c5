"""Unit tests for the newsletter pipeline orchestrator."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Sequence
from typing import Any

import pytest

from newsdesk.core.exceptions import ExternalAPIError, TotalFailureError
from newsdesk.schemas.audience import AudienceConfig
from newsdesk.schemas.pipeline import AgentBatch, NewsletterRequest, OrchestratorConfig
from newsdesk.schemas.section import SectionGenerationContext, SourceDocument
from newsdesk.schemas.topic import MismatchResolution, Topic
from newsdesk.services.pipelines.newsletter.orchestrator import NewsletterOrchestrator

ACADEMIC = AudienceConfig(id="forensic-anthropology", name="Forensic Anthropology")
ARCHAEOLOGY = AudienceConfig(id="computational-archaeology", name="Computational Archaeology")
BUSINESS = AudienceConfig(id="business-administration", name="Business Administration")


class FakeWriter:
    def __init__(
        self,
        failing: dict[str, BaseException] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.failing = failing or {}
        self.delays = delays or {}
        self.contexts: list[SectionGenerationContext] = []

    async def generate(self, context: SectionGenerationContext) -> dict[str, Any]:
        self.contexts.append(context)
        audience_id = context.audience.id
        await asyncio.sleep(self.delays.get(audience_id, 0))
        if audience_id in self.failing:
            raise self.failing[audience_id]
        return {
            "title": f"Section for {context.audience.name}",
            "whyItMatters": "It saves time.",
            "content": " ".join(t.title for t in context.topics),
            "practicalPrompt": {"scenario": "Try it", "prompt": f"Prompt for {audience_id}"},
            "sources": [{"url": s.url, "title": s.title} for s in context.sources],
        }


class FakeTopicGenerator:
    def __init__(self, failing: set[str] | None = None, untagged: bool = False) -> None:
        self.failing = failing or set()
        self.untagged = untagged
        self.batches: list[AgentBatch] = []

    async def generate_topics(self, batch: AgentBatch, count: int) -> list[Topic]:
        self.batches.append(batch)
        if batch.id in self.failing:
            raise RuntimeError("model overloaded")
        ids = batch.audience_ids
        return [
            Topic(
                title=f"Fresh {batch.id} {i}",
                audience_id="unknown" if self.untagged else ids[i % len(ids)],
            )
            for i in range(count)
        ]


class FakeFetcher:
    def __init__(self, sources: Sequence[SourceDocument] = (), error: Exception | None = None) -> None:
        self.sources = list(sources)
        self.error = error
        self.calls: list[tuple[list[str], int]] = []

    async def fetch_sources(self, topic_titles: Sequence[str], count_hint: int) -> list[SourceDocument]:
        self.calls.append((list(topic_titles), count_hint))
        if self.error:
            raise self.error
        return self.sources


def _config(**overrides: Any) -> OrchestratorConfig:
    values: dict[str, Any] = {
        "generation_mode": "per-audience",
        "topics_per_audience": 2,
        "sources_per_allocation": 1,
        "skip_overlap_detection": False,
        "auto_balance": True,
        "max_parallel_agents": None,
    }
    values.update(overrides)
    return OrchestratorConfig(**values)


def _orchestrator(
    writer: FakeWriter | None = None,
    topics: FakeTopicGenerator | None = None,
    fetcher: FakeFetcher | None = None,
    **kwargs: Any,
) -> NewsletterOrchestrator:
    return NewsletterOrchestrator(
        writer or FakeWriter(),
        topics or FakeTopicGenerator(),
        fetcher or FakeFetcher(),
        rng=random.Random(0),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_timeout_for_one_audience_still_succeeds() -> None:
    writer = FakeWriter(delays={BUSINESS.id: 1.0})
    orchestrator = _orchestrator(writer, section_timeout_seconds=0.05)
    request = NewsletterRequest(
        audiences=[ACADEMIC, BUSINESS],
        topics=[
            Topic(title="Bone age estimation with Claude", audience_id=ACADEMIC.id),
            Topic(title="Invoice triage with Zapier", audience_id=BUSINESS.id),
        ],
    )

    result = await orchestrator.run(request, _config())

    assert result.success is True
    assert [r.audience_id for r in result.section_results] == [ACADEMIC.id]
    assert len(result.failures) == 1
    failure = result.failures[0]
    assert failure.audience_id == BUSINESS.id
    assert failure.stage == "generate_sections"
    assert failure.reason == "timed out"
    assert result.missing_audience_ids == [BUSINESS.id]
    assert result.metrics.sections_succeeded == 1
    assert result.metrics.sections_failed == 1
    assert result.newsletter is not None
    assert len(result.newsletter.sections) == 1
    result.raise_for_failure()


@pytest.mark.asyncio
async def test_total_generation_failure_reports_every_audience() -> None:
    writer = FakeWriter(
        failing={ACADEMIC.id: RuntimeError("quota"), BUSINESS.id: RuntimeError("quota")}
    )
    request = NewsletterRequest(
        audiences=[ACADEMIC, BUSINESS],
        topics=[
            Topic(title="Bone age estimation", audience_id=ACADEMIC.id),
            Topic(title="Invoice triage", audience_id=BUSINESS.id),
        ],
    )

    result = await _orchestrator(writer).run(request, _config())

    assert result.success is False
    assert result.newsletter is None
    assert result.error
    assert {f.audience_id for f in result.failures} == {ACADEMIC.id, BUSINESS.id}
    assert all(f.stage == "generate_sections" for f in result.failures)
    assert result.metrics.sections_failed == 2
    with pytest.raises(TotalFailureError):
        result.raise_for_failure()


@pytest.mark.asyncio
async def test_zero_topics_fills_every_orphan_then_generates() -> None:
    generator = FakeTopicGenerator()
    fetcher = FakeFetcher(
        [SourceDocument(url="https://github.com/acme/fresh", title="acme/fresh", provider="github")]
    )
    request = NewsletterRequest(audiences=[ACADEMIC, BUSINESS])

    result = await _orchestrator(topics=generator, fetcher=fetcher).run(request, _config())

    assert result.success is True
    assert result.balance is not None
    assert result.balance["orphaned_audience_ids"] == [ACADEMIC.id, BUSINESS.id]
    assert sorted(b.id for b in generator.batches) == sorted([ACADEMIC.id, BUSINESS.id])
    assert {r.audience_id for r in result.section_results} == {ACADEMIC.id, BUSINESS.id}
    assert all(len(r.topics) == 2 for r in result.section_results)
    titles, count_hint = fetcher.calls[0]
    assert len(titles) == 4
    assert count_hint == 2
    assert result.newsletter is not None
    assert result.newsletter.tool_of_the_day is not None
    assert result.newsletter.tool_of_the_day.url == "https://github.com/acme/fresh"


@pytest.mark.asyncio
async def test_per_category_mode_batches_orphans_by_category() -> None:
    generator = FakeTopicGenerator()
    request = NewsletterRequest(audiences=[ACADEMIC, ARCHAEOLOGY, BUSINESS])

    result = await _orchestrator(topics=generator).run(
        request, _config(generation_mode="per-category")
    )

    assert sorted(b.id for b in generator.batches) == ["academic", "business"]
    assert result.success is True
    assert len(result.section_results) == 3


@pytest.mark.asyncio
async def test_untagged_topics_route_to_single_audience_batch() -> None:
    request = NewsletterRequest(audiences=[ACADEMIC])

    result = await _orchestrator(topics=FakeTopicGenerator(untagged=True)).run(request, _config())

    assert result.success is True
    assert all(t.audience_id == ACADEMIC.id for t in result.section_results[0].topics)


@pytest.mark.asyncio
async def test_failed_orphan_fill_is_recorded_and_run_continues() -> None:
    request = NewsletterRequest(
        audiences=[ACADEMIC, BUSINESS],
        topics=[Topic(title="Bone age estimation", audience_id=ACADEMIC.id)],
    )

    result = await _orchestrator(topics=FakeTopicGenerator(failing={BUSINESS.id})).run(
        request, _config()
    )

    assert result.success is True
    assert [(f.audience_id, f.stage) for f in result.failures] == [(BUSINESS.id, "fill_orphans")]
    assert result.failures[0].reason == "model overloaded"
    assert result.missing_audience_ids == [BUSINESS.id]


@pytest.mark.asyncio
async def test_no_audiences_is_a_total_failure() -> None:
    result = await _orchestrator().run(NewsletterRequest(audiences=[]), _config())

    assert result.success is False
    assert result.error == "No audiences selected"
    assert result.metrics.total_seconds >= 0


@pytest.mark.asyncio
async def test_source_fetch_error_degrades_to_no_sources() -> None:
    writer = FakeWriter()
    fetcher = FakeFetcher(error=ExternalAPIError("HackerNews", "503"))
    request = NewsletterRequest(
        audiences=[ACADEMIC],
        topics=[Topic(title="Bone age estimation", audience_id=ACADEMIC.id)],
    )

    result = await _orchestrator(writer, fetcher=fetcher).run(request, _config())

    assert result.success is True
    assert writer.contexts[0].sources == []


@pytest.mark.asyncio
async def test_overlap_detection_can_be_skipped() -> None:
    request = NewsletterRequest(
        audiences=[ACADEMIC, BUSINESS],
        topics=[
            Topic(title="Gemini for skeletal reports", audience_id=ACADEMIC.id),
            Topic(title="Invoice triage", audience_id=BUSINESS.id),
        ],
    )

    detected = await _orchestrator().run(request, _config())
    skipped = await _orchestrator().run(request, _config(skip_overlap_detection=True))

    assert any(o.target_audience_id == BUSINESS.id for o in detected.overlaps)
    assert skipped.overlaps == []


@pytest.mark.asyncio
async def test_supplied_resolutions_are_applied_when_auto_balance_is_off() -> None:
    stray = Topic(title="Site survey drones", audience_id=ARCHAEOLOGY.id)
    request = NewsletterRequest(audiences=[ACADEMIC], topics=[stray])
    resolutions = [MismatchResolution(topic=stray, action="reassign", target_audience_id=ACADEMIC.id)]
    generator = FakeTopicGenerator()

    result = await _orchestrator(topics=generator).run(
        request, _config(auto_balance=False), resolutions
    )

    assert generator.batches == []
    section_topics = result.section_results[0].topics
    assert [t.title for t in section_topics] == ["Site survey drones"]
    assert section_topics[0].reassigned_from == ARCHAEOLOGY.id
