"""Section and newsletter schemas."""

from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

from newsdesk.schemas.audience import AudienceConfig, WriterPersona
from newsdesk.schemas.topic import Topic


class SourceDocument(BaseModel):
    """A fetched article or repository that a section may cite."""

    url: str
    title: str
    snippet: str | None = None
    content: str | None = None
    provider: str | None = None
    author: str | None = None
    published_at: datetime | None = None


class SourceCitation(BaseModel):
    url: str
    title: str


class PracticalPrompt(BaseModel):
    """A copy-pasteable prompt readers can try."""

    scenario: str
    prompt: str
    is_tool_specific: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_tool_specific", "isToolSpecific"),
    )


class CallToAction(BaseModel):
    text: str
    action: Literal["copy_prompt", "visit_url"] = "copy_prompt"


class GeneratedSection(BaseModel):
    """Structured payload of one audience section.

    Accepts both snake_case and camelCase keys from the writer.
    """

    title: str
    why_it_matters: str = Field(
        default="",
        validation_alias=AliasChoices("why_it_matters", "whyItMatters"),
    )
    content: str
    practical_prompt: PracticalPrompt | None = Field(
        default=None,
        validation_alias=AliasChoices("practical_prompt", "practicalPrompt"),
    )
    cta: CallToAction | None = None
    sources: list[SourceCitation] = Field(default_factory=list)
    image_prompt: str | None = Field(
        default=None,
        validation_alias=AliasChoices("image_prompt", "imagePrompt"),
    )


class SectionGenerationContext(BaseModel):
    """Everything a section writer needs for one audience."""

    newsletter_name: str
    audience: AudienceConfig
    topics: list[Topic]
    sources: list[SourceDocument] = Field(default_factory=list)
    tone: str | None = None
    tone_instructions: str = ""
    flavors: list[str] = Field(default_factory=list)
    flavor_instructions: str = ""
    persona: WriterPersona | None = None


class ToolOfTheDay(BaseModel):
    name: str
    url: str
    why_its_useful: str
    quick_start: str


class PromptOfTheDay(BaseModel):
    title: str
    prompt: str
    audience_id: str


class Newsletter(BaseModel):
    """The assembled newsletter issue."""

    subject: str
    editors_note: str
    tool_of_the_day: ToolOfTheDay | None = None
    sections: list[GeneratedSection] = Field(default_factory=list)
    conclusion: str
    prompt_of_the_day: PromptOfTheDay | None = None
