"""Section writer agent: one newsletter section for one audience."""

import logging

from newsdesk.agents.base_agent import BaseAgent
from newsdesk.schemas.audience import WriterPersona
from newsdesk.schemas.section import GeneratedSection, SectionGenerationContext

logger = logging.getLogger(__name__)

MAX_SOURCE_CONTENT_CHARS = 2000


class SectionWriterAgent(BaseAgent[SectionGenerationContext, GeneratedSection]):
    """Writes a single audience-focused section grounded in the supplied sources."""

    model_tier = "standard"
    temperature = 0.7

    @property
    def system_prompt(self) -> str:
        return """You are an expert newsletter writer. Each issue helps professionals use AI tools in their daily work.

Your task is to write ONE newsletter section for ONE audience.

## SECTION REQUIREMENTS
- content: at least 250 words (4-5 paragraphs). Introduction, 2-3 body paragraphs with details, then a practical closing paragraph.
- Cover what it is, why it matters now, how it works, specific use cases and next steps.
- why_it_matters: at least 3 sentences about relevance to THIS audience's work.
- practical_prompt: a copy-paste ready prompt with [VARIABLE] placeholders and the scenario it serves.
- cta: an action-oriented call to action (copy_prompt or visit_url).
- image_prompt: a descriptive prompt for an illustration of the concept in this audience's context.

## SOURCE GROUNDING
- Use ONLY the sources provided in the user message.
- Cite every factual claim with the source URL and list the sources you used.
- If the sources do not cover an aspect, say so instead of inventing facts.

## AUDIENCE FOCUS
- Write exclusively for the named audience. Every example must come from their domain.
- Do not write generic content."""

    @property
    def output_type(self) -> type[GeneratedSection]:
        return GeneratedSection

    def _build_prompt(self, input_data: SectionGenerationContext) -> str:
        audience = input_data.audience
        rich_topics = sum(
            1 for t in input_data.topics if t.summary or t.what_it_is or t.why_it_matters
        )
        if input_data.topics and not rich_topics:
            logger.warning(
                "No topics carry rich context",
                extra={"audience_id": audience.id, "topic_count": len(input_data.topics)},
            )

        topic_blocks = []
        for index, topic in enumerate(input_data.topics, start=1):
            lines = [f"{index}. {topic.title}"]
            if topic.summary:
                lines.append(f"   Summary: {topic.summary}")
            if topic.what_it_is:
                lines.append(f"   What It Is: {topic.what_it_is}")
            if topic.why_it_matters:
                lines.append(f"   Why {audience.name} Should Care: {topic.why_it_matters}")
            if topic.how_to_start:
                lines.append(f"   How To Get Started: {topic.how_to_start}")
            if topic.expected_impact:
                lines.append(f"   Expected Impact: {topic.expected_impact}")
            if topic.resource:
                lines.append(f"   Source URL: {topic.resource}")
            topic_blocks.append("\n".join(lines))

        source_blocks = []
        for index, source in enumerate(input_data.sources, start=1):
            lines = [f'SOURCE {index}: "{source.title}"', f"URL: {source.url}"]
            if source.content:
                body = source.content
                if len(body) > MAX_SOURCE_CONTENT_CHARS:
                    body = body[:MAX_SOURCE_CONTENT_CHARS] + "..."
                lines.append(f"Content: {body}")
            elif source.snippet:
                lines.append(f"Snippet: {source.snippet}")
            source_blocks.append("\n".join(lines))

        topics_text = "\n\n".join(topic_blocks)
        sources_text = "\n\n---\n\n".join(source_blocks) or "No sources were allocated."
        persona_text = _persona_instructions(input_data.persona)

        return f"""Write the "{audience.name}" section of the "{input_data.newsletter_name}" newsletter.

## Audience
- ID: {audience.id}
- Name: {audience.name}
- Description: {audience.description or "Not specified"}

## Tone
{input_data.tone_instructions}
{input_data.flavor_instructions}

## Topics for this audience
{topics_text}

## Sources (cite these)
{sources_text}
{persona_text}

Cover ALL {len(input_data.topics)} topics listed above."""


def _persona_instructions(persona: WriterPersona | None) -> str:
    if persona is None:
        return ""
    lines = ["", "## Writer persona", f'Adopt the voice and style of "{persona.name}".']
    if persona.writing_style:
        lines.append(f"Writing style: {persona.writing_style}")
    if persona.signature_phrases:
        lines.append(f"Signature phrases to use naturally: {', '.join(persona.signature_phrases)}")
    if persona.avoid_phrases:
        lines.append(f"Never use: {', '.join(persona.avoid_phrases)}")
    return "\n".join(lines)
