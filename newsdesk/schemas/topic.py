"""Topic schemas."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ResolutionAction = Literal["reassign", "generate_fresh", "skip"]


class Topic(BaseModel):
    """A candidate newsletter topic tagged with the audience it targets."""

    model_config = ConfigDict(frozen=True)

    title: str
    audience_id: str
    summary: str | None = None
    what_it_is: str | None = None
    why_it_matters: str | None = None
    how_to_start: str | None = None
    expected_impact: str | None = None
    resource: str | None = None
    reassigned_from: str | None = None

    def reassigned_to(self, audience_id: str) -> "Topic":
        """Return a copy retargeted at another audience."""
        return self.model_copy(
            update={"audience_id": audience_id, "reassigned_from": self.audience_id}
        )


class MismatchResolution(BaseModel):
    """A decision on what to do with a topic tagged for an unselected audience."""

    topic: Topic
    action: ResolutionAction
    target_audience_id: str | None = None


class MismatchInfo(BaseModel):
    """A topic tagged for an audience outside the current selection."""

    topic: Topic
    original_audience_id: str
    original_audience_name: str
    suggested_audience_id: str | None = None
    suggested_audience_name: str | None = None
    same_category_options: list[str] = Field(default_factory=list)


class StrategicOverlap(BaseModel):
    """A suggestion to cover the same idea for another audience's platform."""

    original_topic: str
    original_audience_id: str
    suggested_title: str
    target_audience_id: str
    confidence: float = Field(ge=0, le=1)
    category: str
    overlap_type: Literal["platform-equivalent"] = "platform-equivalent"
    matched_platform: str
    equivalent_platform: str
    reasoning: str = ""


class GeneratedTopics(BaseModel):
    """Structured topic suggestions returned by the topic scout."""

    topics: list[Topic] = Field(default_factory=list)
