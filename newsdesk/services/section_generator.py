"""Per-audience section generation.

Each request becomes one call to the section writer. The call either yields
a complete SectionResult or raises GenerationFailure; nothing in between.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from newsdesk.config import settings
from newsdesk.core.exceptions import GenerationFailure, SectionParseError, TotalFailureError
from newsdesk.schemas.audience import AudienceConfig, WriterPersona
from newsdesk.schemas.section import (
    GeneratedSection,
    SourceCitation,
    SectionGenerationContext,
    SourceDocument,
)
from newsdesk.schemas.topic import Topic
from newsdesk.services.collaborators import PersonaStore, SectionWriter
from newsdesk.services.fan_out import fan_out
from newsdesk.services.style import DEFAULT_TONE, flavor_formatting_rules, flavor_instructions, tone_instructions

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?\s*```$", re.DOTALL)


@dataclass(slots=True)
class SectionRequest:
    """Resolved parameters for one audience's section."""

    audience: AudienceConfig
    topics: list[Topic]
    sources: list[SourceDocument] = field(default_factory=list)
    tone: str | None = None
    flavors: list[str] = field(default_factory=list)
    persona_id: str | None = None


@dataclass(frozen=True, slots=True)
class SectionResult:
    """One audience's generated section. Built only after a successful parse."""

    audience_id: str
    audience_name: str
    section: GeneratedSection
    topics: tuple[Topic, ...]
    sources: tuple[SourceCitation, ...]
    generation_seconds: float


@dataclass(slots=True)
class SectionFanOutResult:
    results: list[SectionResult]
    failures: list[GenerationFailure]
    wall_clock_seconds: float
    sum_task_seconds: float
    parallel_efficiency: float


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def parse_section(response: Any) -> GeneratedSection:
    """Parse a writer response into a GeneratedSection.

    Accepts a GeneratedSection, a mapping, or JSON text optionally wrapped
    in a markdown fence.
    """
    if isinstance(response, GeneratedSection):
        return response

    payload: Any = response
    raw: str | None = None
    if isinstance(response, (bytes, bytearray)):
        response = response.decode("utf-8", errors="replace")
    if isinstance(response, str):
        raw = response
        text = strip_code_fence(response)
        if not text:
            raise SectionParseError("empty response", raw=raw)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SectionParseError(f"invalid JSON ({exc.msg})", raw=raw) from exc

    if not isinstance(payload, Mapping):
        raise SectionParseError(f"expected an object, got {type(payload).__name__}", raw=raw)

    try:
        return GeneratedSection.model_validate(dict(payload))
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise SectionParseError(f"missing or invalid fields: {fields}", raw=raw) from exc


class SectionGenerator:
    """Wraps the section writer with audience context, a timeout and parsing."""

    def __init__(
        self,
        writer: SectionWriter,
        *,
        persona_store: PersonaStore | None = None,
        timeout_seconds: float | None = None,
        newsletter_name: str | None = None,
    ) -> None:
        self.writer = writer
        self.persona_store = persona_store
        self.timeout_seconds = (
            settings.section_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.newsletter_name = newsletter_name or settings.newsletter_name

    def _lookup_persona(self, request: SectionRequest) -> WriterPersona | None:
        if not request.persona_id or self.persona_store is None:
            return None
        persona = self.persona_store.get(request.persona_id)
        if persona is None:
            logger.warning(
                "Persona not found, writing without persona",
                extra={"persona_id": request.persona_id, "audience_id": request.audience.id},
            )
        return persona

    def build_context(self, request: SectionRequest) -> SectionGenerationContext:
        tone = request.tone or DEFAULT_TONE
        flavor_text = flavor_instructions(request.flavors)
        formatting = flavor_formatting_rules(request.flavors)
        if formatting:
            flavor_text = f"{flavor_text}\n\n{formatting}".strip()
        return SectionGenerationContext(
            newsletter_name=self.newsletter_name,
            audience=request.audience,
            topics=list(request.topics),
            sources=list(request.sources),
            tone=tone,
            tone_instructions=tone_instructions(tone),
            flavors=list(request.flavors),
            flavor_instructions=flavor_text,
            persona=self._lookup_persona(request),
        )

    async def generate(self, request: SectionRequest) -> SectionResult:
        """Generate one audience's section or raise GenerationFailure."""
        audience = request.audience
        t0 = time.perf_counter()
        try:
            context = self.build_context(request)
            response = await asyncio.wait_for(
                self.writer.generate(context),
                timeout=self.timeout_seconds,
            )
            section = parse_section(response)
        except Exception as exc:
            logger.warning(
                "Section generation failed",
                extra={
                    "audience_id": audience.id,
                    "error_type": type(exc).__name__,
                    "duration_s": round(time.perf_counter() - t0, 2),
                },
            )
            raise GenerationFailure(audience.id, exc) from exc

        elapsed = time.perf_counter() - t0
        logger.info(
            "Section generated",
            extra={
                "audience_id": audience.id,
                "topic_count": len(request.topics),
                "source_count": len(request.sources),
                "citation_count": len(section.sources),
                "duration_s": round(elapsed, 2),
            },
        )
        return SectionResult(
            audience_id=audience.id,
            audience_name=audience.name,
            section=section,
            topics=tuple(request.topics),
            sources=tuple(section.sources),
            generation_seconds=elapsed,
        )

    async def generate_many(self, requests: Sequence[SectionRequest]) -> SectionFanOutResult:
        """Generate every request concurrently; raise only if all of them failed."""
        outcome = await fan_out(
            requests,
            self.generate,
            key=lambda request: request.audience.id,
            label="generate_sections",
        )
        failures = [
            f.cause if isinstance(f.cause, GenerationFailure) else GenerationFailure(f.key, f.cause)
            for f in outcome.failures
        ]
        if outcome.all_failed:
            raise TotalFailureError(
                f"Section generation failed for all {len(failures)} audiences",
                failures=failures,
            )
        return SectionFanOutResult(
            results=outcome.values,
            failures=failures,
            wall_clock_seconds=outcome.wall_clock_seconds,
            sum_task_seconds=outcome.sum_task_seconds,
            parallel_efficiency=outcome.parallel_efficiency,
        )
