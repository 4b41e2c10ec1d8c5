"""Derived newsletter parts: subject line, editor's note, conclusion and daily picks."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence

from newsdesk.config import settings
from newsdesk.schemas.section import Newsletter, PromptOfTheDay, SourceDocument, ToolOfTheDay
from newsdesk.services.section_generator import SectionResult
from newsdesk.services.topic_merger import merge_sections

logger = logging.getLogger(__name__)

# (theme, title fragments that signal it), in subject priority order
THEME_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Automation", ("automat", "workflow")),
    ("Analysis", ("analys", "data")),
    ("AI", ("ai", "claude", "gpt")),
    ("Building", ("build", "creat")),
    ("Optimization", ("optim", "improve")),
)
FALLBACK_THEME = "Professional AI Tools"
MAX_SUBJECT_THEMES = 2

_WORD_RE = re.compile(r"[a-z0-9]+")

DEFAULT_TOOL = ToolOfTheDay(
    name="Claude API",
    url="https://docs.anthropic.com",
    why_its_useful=(
        "Claude continues to be one of the most capable assistants for professional "
        "workflows, with recent updates improving code generation and analysis."
    ),
    quick_start=(
        "1. Sign up at console.anthropic.com\n2. Create an API key\n"
        "3. Install the SDK: pip install anthropic\n4. Start building!"
    ),
)
REPOSITORY_QUICK_START = (
    "1. Visit the repository\n2. Follow the installation instructions\n"
    "3. Check the examples directory\n4. Integrate it into your workflow"
)


def _join_names(names: Sequence[str], conjunction: str = "and") -> str:
    if not names:
        return "our"
    if len(names) == 1:
        return names[0]
    return f"{', '.join(names[:-1])} {conjunction} {names[-1]}"


def _is_github_source(source: SourceDocument) -> bool:
    return source.provider == "github" or "github.com" in source.url


class NewsletterAssembler:
    """Builds the final Newsletter from successful section results."""

    def __init__(self, newsletter_name: str | None = None) -> None:
        self.newsletter_name = newsletter_name or settings.newsletter_name

    def themes(self, section_results: Sequence[SectionResult]) -> list[str]:
        """Themes found in the topic titles, in priority order."""
        text = " ".join(
            topic.title for result in section_results for topic in result.topics
        ).lower()
        words = set(_WORD_RE.findall(text))
        found: list[str] = []
        for theme, fragments in THEME_KEYWORDS:
            # Two-letter fragments must be whole words
            if any((f in words) if len(f) <= 2 else (f in text) for f in fragments):
                found.append(theme)
        return found or [FALLBACK_THEME]

    def subject_line(self, section_results: Sequence[SectionResult]) -> str:
        theme_text = " & ".join(self.themes(section_results)[:MAX_SUBJECT_THEMES])
        return f"{theme_text}: This Week's Actionable AI Insights"

    def editors_note(self, section_results: Sequence[SectionResult]) -> str:
        names = [result.audience_name for result in section_results]
        topic_count = sum(len(result.topics) for result in section_results)
        return (
            f"Welcome to this week's {self.newsletter_name} newsletter! We've curated "
            f"{topic_count} actionable insights tailored specifically for our "
            f"{_join_names(names)} readers. Each section below contains practical guidance "
            "you can put to work today."
        )

    def conclusion(self, section_results: Sequence[SectionResult]) -> str:
        names = [result.audience_name for result in section_results]
        return (
            f"That's a wrap for this edition of {self.newsletter_name}! We've explored tools "
            f"and techniques tailored for {_join_names(names)}. Pick one technique from above "
            "and try it this week. Until next time, keep building!"
        )

    def tool_of_the_day(
        self, allocated_sources: Mapping[str, Sequence[SourceDocument]] | None
    ) -> ToolOfTheDay:
        """The first GitHub source among the allocated sources, else a default tool."""
        for sources in (allocated_sources or {}).values():
            for source in sources:
                if not source.title or not _is_github_source(source):
                    continue
                detail = source.snippet or (source.content or "")[:200]
                return ToolOfTheDay(
                    name=source.title.split(":")[0].strip() or source.title,
                    url=source.url,
                    why_its_useful=(
                        "Recently featured as a top AI tool for professional workflows. "
                        f"{detail}"
                    ).strip(),
                    quick_start=REPOSITORY_QUICK_START,
                )
        return DEFAULT_TOOL

    def prompt_of_the_day(self, section_results: Sequence[SectionResult]) -> PromptOfTheDay | None:
        """The practical prompt of the first section that has one."""
        for result in section_results:
            practical = result.section.practical_prompt
            if practical and practical.prompt:
                return PromptOfTheDay(
                    title=practical.scenario or result.section.title,
                    prompt=practical.prompt,
                    audience_id=result.audience_id,
                )
        return None

    def assemble(
        self,
        section_results: Sequence[SectionResult],
        allocated_sources: Mapping[str, Sequence[SourceDocument]] | None = None,
    ) -> Newsletter:
        ordered = merge_sections(section_results)
        newsletter = Newsletter(
            subject=self.subject_line(ordered),
            editors_note=self.editors_note(ordered),
            tool_of_the_day=self.tool_of_the_day(allocated_sources),
            sections=[result.section for result in ordered],
            conclusion=self.conclusion(ordered),
            prompt_of_the_day=self.prompt_of_the_day(ordered),
        )
        logger.info(
            "Newsletter assembled",
            extra={"section_count": len(newsletter.sections), "subject": newsletter.subject},
        )
        return newsletter
