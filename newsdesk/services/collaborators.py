"""Interfaces of the pipeline's external collaborators and their default implementations."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from newsdesk.agents.section_writer import SectionWriterAgent
from newsdesk.agents.topic_scout import TopicScoutAgent, TopicScoutInput
from newsdesk.schemas.audience import WriterPersona
from newsdesk.schemas.pipeline import AgentBatch
from newsdesk.schemas.section import GeneratedSection, SectionGenerationContext, SourceDocument
from newsdesk.schemas.topic import Topic
from newsdesk.services.audiences import AudienceDirectory

logger = logging.getLogger(__name__)


@runtime_checkable
class SectionWriter(Protocol):
    """Produces one structured section from a generation context.

    May return a GeneratedSection, a mapping or raw JSON text.
    """

    async def generate(self, context: SectionGenerationContext) -> GeneratedSection | Mapping[str, Any] | str:
        ...


@runtime_checkable
class TopicGenerator(Protocol):
    async def generate_topics(self, batch: AgentBatch, count: int) -> list[Topic]:
        ...


@runtime_checkable
class SourceFetcher(Protocol):
    async def fetch_sources(self, topic_titles: Sequence[str], count_hint: int) -> list[SourceDocument]:
        ...


@runtime_checkable
class SourceAllocator(Protocol):
    def allocate(
        self,
        topic_map: Mapping[str, Sequence[Topic]],
        sources: Sequence[SourceDocument],
        sources_per_topic: int,
    ) -> dict[str, list[SourceDocument]]:
        ...


@runtime_checkable
class PersonaStore(Protocol):
    def get(self, persona_id: str) -> WriterPersona | None:
        ...


class AgentSectionWriter:
    """SectionWriter backed by the pydantic-ai section writer agent."""

    def __init__(self, agent: SectionWriterAgent | None = None) -> None:
        self._agent = agent

    @property
    def agent(self) -> SectionWriterAgent:
        if self._agent is None:
            self._agent = SectionWriterAgent()
        return self._agent

    async def generate(self, context: SectionGenerationContext) -> GeneratedSection:
        return await self.agent.run(context)


class AgentTopicGenerator:
    """TopicGenerator backed by the pydantic-ai topic scout agent."""

    def __init__(
        self,
        directory: AudienceDirectory,
        agent: TopicScoutAgent | None = None,
        avoid_titles: Iterable[str] = (),
    ) -> None:
        self.directory = directory
        self._agent = agent
        self.avoid_titles = list(avoid_titles)

    @property
    def agent(self) -> TopicScoutAgent:
        if self._agent is None:
            self._agent = TopicScoutAgent()
        return self._agent

    async def generate_topics(self, batch: AgentBatch, count: int) -> list[Topic]:
        ids = batch.audience_ids
        builtin_ids = [i for i in ids if self.directory.get(i) is not None]
        custom_text = "\n".join(
            f"- {a.name}: {a.description}" for a in batch.audiences if a.id not in builtin_ids
        )
        domain_examples = self.directory.domain_examples_for(builtin_ids) if builtin_ids else ""
        if custom_text:
            domain_examples = f"{domain_examples}\n{custom_text}".strip()

        output = await self.agent.run(
            TopicScoutInput(
                audiences=batch.audiences,
                topics_per_audience=max(1, math.ceil(count / max(len(ids), 1))),
                domain_examples=domain_examples,
                example_titles=self.directory.balanced_topic_titles(builtin_ids) if builtin_ids else [],
                avoid_titles=self.avoid_titles,
            )
        )
        return list(output.topics)


class InMemoryPersonaStore:
    """PersonaStore over a fixed set of personas."""

    def __init__(self, personas: Iterable[WriterPersona] = ()) -> None:
        self._personas = {persona.id: persona for persona in personas}

    def get(self, persona_id: str) -> WriterPersona | None:
        return self._personas.get(persona_id)

    def add(self, persona: WriterPersona) -> None:
        self._personas[persona.id] = persona
