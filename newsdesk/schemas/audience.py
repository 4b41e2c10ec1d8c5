"""Audience schemas."""

from pydantic import BaseModel, ConfigDict, Field


class AudienceConfig(BaseModel):
    """A readership group selected for a newsletter issue."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    is_custom: bool = False


class AudienceSpecialization(BaseModel):
    """A built-in audience specialization within a category."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    parent_id: str
    description: str
    domain_examples: list[str] = Field(default_factory=list)
    example_topics: list[str] = Field(default_factory=list)
    source_preferences: list[str] = Field(default_factory=list)

    def to_audience_config(self) -> AudienceConfig:
        return AudienceConfig(id=self.id, name=self.name, description=self.description)


class AudienceCategory(BaseModel):
    """A top-level audience category with its specializations."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    children: list[str] = Field(default_factory=list)


class WriterPersona(BaseModel):
    """Voice and style preferences of a newsletter writer."""

    id: str
    name: str
    writing_style: str = ""
    signature_phrases: list[str] = Field(default_factory=list)
    avoid_phrases: list[str] = Field(default_factory=list)
