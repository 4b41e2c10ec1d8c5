"""Topic scout agent: fresh topic ideas for a batch of audiences."""

import logging

from pydantic import BaseModel, Field

from newsdesk.agents.base_agent import BaseAgent
from newsdesk.schemas.audience import AudienceConfig
from newsdesk.schemas.topic import GeneratedTopics

logger = logging.getLogger(__name__)


class TopicScoutInput(BaseModel):
    """Input for the topic scout agent."""

    audiences: list[AudienceConfig]
    topics_per_audience: int = Field(default=3, ge=1, le=20)
    domain_examples: str = ""
    example_titles: list[str] = Field(default_factory=list)
    avoid_titles: list[str] = Field(default_factory=list)


class TopicScoutAgent(BaseAgent[TopicScoutInput, GeneratedTopics]):
    """Suggests practical, tool-focused topics tagged with their audience id."""

    model_tier = "fast"
    temperature = 0.8

    @property
    def system_prompt(self) -> str:
        return """You are a research editor for a newsletter about applying AI tools at work.

Suggest concrete, hands-on topics. A good topic names a specific tool or technique and the job it does for the reader, e.g. "Automate Meeting Notes with Whisper API and Claude Summarization".

## RULES
- Every topic MUST set audience_id to exactly one of the audience ids you are given.
- Give each audience the same number of topics.
- Prefer tools and releases that are current and actually usable today.
- Fill what_it_is, why_it_matters, how_to_start and expected_impact with one or two sentences each.
- Set resource to a real URL for the tool or announcement when you know one, otherwise leave it empty.
- Never repeat a title from the "avoid" list."""

    @property
    def output_type(self) -> type[GeneratedTopics]:
        return GeneratedTopics

    def _build_prompt(self, input_data: TopicScoutInput) -> str:
        audiences_text = "\n".join(
            f"- {a.id}: {a.name}. {a.description or 'No description'}"
            for a in input_data.audiences
        )
        examples_text = "\n".join(f"- {t}" for t in input_data.example_titles) or "None"
        avoid_text = "\n".join(f"- {t}" for t in input_data.avoid_titles) or "None"
        domain_text = (
            f"\n## Domain examples\n{input_data.domain_examples}\n"
            if input_data.domain_examples
            else ""
        )

        return f"""Suggest {input_data.topics_per_audience} topics for EACH of these audiences:

## Audiences
{audiences_text}
{domain_text}
## Example titles (style reference only)
{examples_text}

## Avoid
{avoid_text}

Return {input_data.topics_per_audience * len(input_data.audiences)} topics in total."""
