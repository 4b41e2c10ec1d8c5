"""Tests for agent prompt contracts and the agent-backed collaborators."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from newsdesk.agents.section_writer import MAX_SOURCE_CONTENT_CHARS, SectionWriterAgent
from newsdesk.agents.topic_scout import TopicScoutAgent, TopicScoutInput
from newsdesk.config import settings
from newsdesk.schemas.audience import AudienceConfig, WriterPersona
from newsdesk.schemas.pipeline import AgentBatch
from newsdesk.schemas.section import SectionGenerationContext, SourceDocument
from newsdesk.schemas.topic import GeneratedTopics, Topic
from newsdesk.services.audiences import default_audience_directory
from newsdesk.services.collaborators import AgentTopicGenerator, SectionWriter, TopicGenerator

ADMIN = AudienceConfig(
    id="business-administration",
    name="Business Administration",
    description="Operators automating back-office work.",
)


def test_agent_model_resolution_prefers_override_then_tier() -> None:
    assert SectionWriterAgent("test").model_name == "test"
    assert TopicScoutAgent().model_name == settings.get_model("fast")


def test_agent_model_settings_use_tier_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "llm_timeout_fast", 42)
    monkeypatch.setattr(settings, "llm_timeout_standard", 99)

    assert TopicScoutAgent("test").model_settings == {"temperature": 0.8, "timeout": 42.0}
    assert SectionWriterAgent("test").model_settings["timeout"] == 99.0


def test_section_writer_prompt_includes_rich_topics_sources_and_persona() -> None:
    agent = SectionWriterAgent("test")
    prompt = agent._build_prompt(
        SectionGenerationContext(
            newsletter_name="AI for PI",
            audience=ADMIN,
            topics=[
                Topic(
                    title="Invoice triage with Claude",
                    audience_id=ADMIN.id,
                    why_it_matters="Cuts month-end close by days.",
                    resource="https://example.com/invoices",
                )
            ],
            sources=[
                SourceDocument(
                    url="https://example.com/long",
                    title="Long read",
                    content="x" * (MAX_SOURCE_CONTENT_CHARS + 50),
                )
            ],
            tone_instructions="TONE: Confident",
            persona=WriterPersona(id="p1", name="Dana", avoid_phrases=["synergy"]),
        )
    )

    assert 'Write the "Business Administration" section of the "AI for PI" newsletter.' in prompt
    assert "Why Business Administration Should Care: Cuts month-end close by days." in prompt
    assert "Source URL: https://example.com/invoices" in prompt
    assert "x" * MAX_SOURCE_CONTENT_CHARS + "..." in prompt
    assert "x" * (MAX_SOURCE_CONTENT_CHARS + 1) not in prompt
    assert "Never use: synergy" in prompt
    assert "Cover ALL 1 topics listed above." in prompt


def test_topic_scout_prompt_lists_audience_ids_and_totals() -> None:
    prompt = TopicScoutAgent("test")._build_prompt(
        TopicScoutInput(
            audiences=[ADMIN],
            topics_per_audience=2,
            example_titles=["Automate Meeting Notes with Whisper API"],
            avoid_titles=["Old topic"],
        )
    )

    assert "- business-administration: Business Administration." in prompt
    assert "- Old topic" in prompt
    assert "Return 2 topics in total." in prompt


@pytest.mark.asyncio
async def test_agent_topic_generator_builds_scout_input_from_directory() -> None:
    agent = TopicScoutAgent("test")
    agent.run = AsyncMock(  # type: ignore[method-assign]
        return_value=GeneratedTopics(topics=[Topic(title="Fresh idea", audience_id=ADMIN.id)])
    )
    custom = AudienceConfig(id="nurses", name="ICU Nurses", description="Critical care", is_custom=True)
    generator = AgentTopicGenerator(default_audience_directory(), agent=agent, avoid_titles=["Old"])

    topics = await generator.generate_topics(
        AgentBatch(id="mixed", label="Mixed", audiences=[ADMIN, custom]),
        4,
    )

    scout_input = agent.run.await_args.args[0]
    assert scout_input.topics_per_audience == 2
    assert scout_input.avoid_titles == ["Old"]
    assert "ICU Nurses: Critical care" in scout_input.domain_examples
    assert "Business Administration" in scout_input.domain_examples
    assert [t.title for t in topics] == ["Fresh idea"]


def test_agent_collaborators_satisfy_protocols() -> None:
    from newsdesk.services.collaborators import AgentSectionWriter

    assert isinstance(AgentSectionWriter(), SectionWriter)
    assert isinstance(AgentTopicGenerator(default_audience_directory()), TopicGenerator)
