"""Pipeline schemas."""

from pydantic import BaseModel, Field, field_validator

from newsdesk.config import GenerationMode, settings
from newsdesk.schemas.audience import AudienceConfig
from newsdesk.schemas.topic import MismatchResolution, Topic


class OrchestratorConfig(BaseModel):
    """Run-scoped knobs for the newsletter orchestrator.

    Defaults are taken from the application settings at construction time.
    """

    generation_mode: GenerationMode = Field(
        default_factory=lambda: settings.default_generation_mode,
        description="How fresh-topic agents are batched: per-audience, per-category or hybrid.",
    )
    topics_per_audience: int = Field(
        default_factory=lambda: settings.default_topics_per_audience,
        ge=1,
        le=20,
    )
    sources_per_allocation: int = Field(
        default_factory=lambda: settings.default_sources_per_allocation,
        ge=0,
        le=20,
    )
    skip_overlap_detection: bool = Field(default_factory=lambda: settings.skip_overlap_detection)
    auto_balance: bool = Field(default_factory=lambda: settings.auto_balance)
    max_parallel_agents: int | None = Field(
        default_factory=lambda: settings.max_parallel_agents,
        ge=1,
    )

    @field_validator("generation_mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower().replace("_", "-")
        return value


class NewsletterRequest(BaseModel):
    """One newsletter generation request."""

    audiences: list[AudienceConfig]
    topics: list[Topic] = Field(default_factory=list)
    resolutions: list[MismatchResolution] | None = None
    tone: str | None = None
    flavors: list[str] = Field(default_factory=list)
    persona_id: str | None = None
    newsletter_name: str = Field(default_factory=lambda: settings.newsletter_name)
    config: OrchestratorConfig | None = None


class AgentBatch(BaseModel):
    """A group of audiences served by one topic-generation agent."""

    id: str
    label: str
    audiences: list[AudienceConfig]
    category: str | None = None

    @property
    def audience_ids(self) -> list[str]:
        return [audience.id for audience in self.audiences]
