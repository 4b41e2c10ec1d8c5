"""Custom exception classes for the newsletter pipeline."""

from collections.abc import Sequence
from typing import Any


class NewsdeskError(Exception):
    """Base exception for all newsdesk errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# Pipeline Errors
class PipelineError(NewsdeskError):
    """Base class for pipeline errors."""

    pass


class NoAudiencesSelectedError(PipelineError):
    """The request did not select any audience."""

    def __init__(self) -> None:
        super().__init__("No audiences selected")


class GenerationFailure(PipelineError):
    """Section generation failed for a single audience.

    Wraps the external-call error, timeout or parse error that caused it.
    """

    def __init__(self, audience_id: str, cause: BaseException | str) -> None:
        self.audience_id = audience_id
        self.cause = cause
        reason = describe_cause(cause)
        super().__init__(
            f"Section generation failed for {audience_id}: {reason}",
            details={"audience_id": audience_id, "reason": reason},
        )


class SectionParseError(PipelineError):
    """The generation response could not be parsed into a section."""

    def __init__(self, message: str, raw: str | None = None) -> None:
        self.raw = raw
        super().__init__(f"Unparseable section response: {message}")


class OrphanGenerationFailure(PipelineError):
    """Fresh topic generation failed for an orphaned audience."""

    def __init__(self, audience_id: str, cause: BaseException | str) -> None:
        self.audience_id = audience_id
        self.cause = cause
        reason = describe_cause(cause)
        super().__init__(
            f"Topic generation failed for {audience_id}: {reason}",
            details={"audience_id": audience_id, "reason": reason},
        )


class TotalFailureError(PipelineError):
    """Every per-audience task of a phase failed."""

    def __init__(self, message: str, failures: Sequence[Any] = ()) -> None:
        self.failures = list(failures)
        super().__init__(message, details={"failure_count": len(self.failures)})


# External API Errors
class ExternalAPIError(NewsdeskError):
    """Error calling external API."""

    def __init__(self, api_name: str, message: str) -> None:
        self.api_name = api_name
        super().__init__(f"{api_name} API error: {message}")


class RateLimitExceededError(ExternalAPIError):
    """Rate limit exceeded for external API."""

    def __init__(self, api_name: str) -> None:
        super().__init__(api_name, "Rate limit exceeded")


def describe_cause(cause: BaseException | str) -> str:
    """Render a failure cause as a short human-readable reason."""
    if isinstance(cause, str):
        return cause
    if isinstance(cause, TimeoutError):
        return "timed out"
    text = str(cause).strip()
    return text or type(cause).__name__
