"""Platform/tool equivalence table used to suggest cross-audience topics.

Each entry maps a platform to its interchangeable alternatives within a
category (``ai-model``, ``cloud``, ``productivity``, ``framework``,
``language``). The table is immutable and passed explicitly to the
components that need it.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import cached_property
from typing import Literal

PlatformCategory = Literal["ai-model", "cloud", "productivity", "framework", "language"]

_NON_SLUG_RE = re.compile(r"[^a-z0-9-]")

DISPLAY_NAMES: dict[str, str] = {
    "gpt-4": "GPT-4",
    "gpt-4o": "GPT-4o",
    "aws": "AWS",
    "gcp": "GCP",
    "azure": "Azure",
    "azure-openai": "Azure OpenAI",
    "vertex-ai": "Vertex AI",
    "bedrock": "Bedrock",
    "claude": "Claude",
    "gemini": "Gemini",
    "openai": "OpenAI",
    "anthropic": "Anthropic",
    "langchain": "LangChain",
    "llamaindex": "LlamaIndex",
    "langgraph": "LangGraph",
    "autogen": "AutoGen",
    "crewai": "CrewAI",
    "huggingface": "Hugging Face",
    "n8n": "n8n",
    "zapier": "Zapier",
    "make": "Make",
    "power-automate": "Power Automate",
    "google-workspace": "Google Workspace",
    "microsoft-365": "Microsoft 365",
    "python": "Python",
    "typescript": "TypeScript",
    "javascript": "JavaScript",
    "go": "Go",
    "rust": "Rust",
}

WELL_KNOWN_PAIRS: tuple[tuple[str, str], ...] = (
    ("claude", "gpt-4"),
    ("claude", "gemini"),
    ("gemini", "gpt-4"),
    ("langchain", "llamaindex"),
    ("aws", "gcp"),
    ("aws", "azure"),
    ("n8n", "zapier"),
)


def normalize_platform(name: str) -> str:
    """Normalize a platform name to its lookup slug."""
    return _NON_SLUG_RE.sub("-", name.strip().lower())


# Platforms named by everyday words only match in a tool-like context:
# after "with", "using", "in", "on" or "via", or in a qualified form.
_TOOL_CONTEXT = r"(?:(?<=\bwith )|(?<=\busing )|(?<=\bin )|(?<=\bon )|(?<=\bvia ))"

CONTEXT_GATED_MENTIONS: dict[str, str] = {
    "make": (
        rf"{_TOOL_CONTEXT}make|make\.com|integromat"
        r"|make(?=\s+(?:scenario|automation|workflow)s?\b)"
    ),
    "go": rf"{_TOOL_CONTEXT}go|golang|go(?=\s+(?:service|module|language)s?\b)",
}


def mention_pattern(name: str) -> re.Pattern[str]:
    """Compile a case-insensitive, token-bounded pattern for a platform name.

    A hyphen in the slug also matches whitespace, so ``vertex-ai`` matches
    "Vertex AI". Names listed in ``CONTEXT_GATED_MENTIONS`` use their
    context pattern, so "How to Make Claude ..." is not a mention of Make.
    """
    slug = normalize_platform(name)
    if slug in CONTEXT_GATED_MENTIONS:
        body = f"(?:{CONTEXT_GATED_MENTIONS[slug]})"
        return re.compile(rf"(?<![a-z0-9]){body}(?![a-z0-9])", re.IGNORECASE)
    parts = [re.escape(part) for part in slug.split("-") if part]
    body = r"[-\s]+".join(parts)
    return re.compile(rf"(?<![a-z0-9]){body}(?![a-z0-9])", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class PlatformEquivalent:
    """A platform and the alternatives that can stand in for it."""

    platform: str
    equivalents: tuple[str, ...]
    category: PlatformCategory


class PlatformEquivalenceTable:
    """Read-only lookup over a list of platform equivalence entries."""

    def __init__(
        self,
        entries: Iterable[PlatformEquivalent],
        display_names: dict[str, str] | None = None,
        well_known_pairs: Iterable[tuple[str, str]] = (),
    ) -> None:
        self._entries: tuple[PlatformEquivalent, ...] = tuple(entries)
        self._by_platform: dict[str, PlatformEquivalent] = {}
        for entry in self._entries:
            self._by_platform.setdefault(normalize_platform(entry.platform), entry)
        self._display_names = {
            normalize_platform(k): v for k, v in (display_names or {}).items()
        }
        self._well_known = frozenset(
            frozenset((normalize_platform(a), normalize_platform(b)))
            for a, b in well_known_pairs
        )

    @property
    def entries(self) -> tuple[PlatformEquivalent, ...]:
        return self._entries

    @cached_property
    def _patterns(self) -> dict[str, re.Pattern[str]]:
        return {name: mention_pattern(name) for name in self.all_platforms()}

    def lookup(self, name: str) -> PlatformEquivalent | None:
        """Return the entry whose platform is exactly ``name``."""
        return self._by_platform.get(normalize_platform(name))

    def find_entry(self, name: str) -> PlatformEquivalent | None:
        """Return the direct entry, else the first entry listing ``name`` as an equivalent."""
        direct = self.lookup(name)
        if direct is not None:
            return direct
        slug = normalize_platform(name)
        for entry in self._entries:
            if any(normalize_platform(alt) == slug for alt in entry.equivalents):
                return entry
        return None

    def equivalents_for(self, name: str) -> list[str]:
        """Return the platforms that can replace ``name``.

        When ``name`` only appears as an equivalent, the owning entry's
        platform joins the candidates and ``name`` itself is left out.
        """
        entry = self.find_entry(name)
        if entry is None:
            return []
        slug = normalize_platform(name)
        candidates = [entry.platform, *entry.equivalents]
        result: list[str] = []
        for candidate in candidates:
            candidate_slug = normalize_platform(candidate)
            if candidate_slug == slug or candidate in result:
                continue
            result.append(candidate)
        return result

    def mentions(self, title: str, platform: str) -> bool:
        """Return True when ``title`` mentions ``platform`` as a whole token."""
        pattern = self._patterns.get(platform) or mention_pattern(platform)
        return pattern.search(title) is not None

    def extract_mentions(self, title: str) -> list[str]:
        """Return the known platforms mentioned in ``title``, first-seen order."""
        found: list[str] = []
        for entry in self._entries:
            if self.mentions(title, entry.platform):
                if entry.platform not in found:
                    found.append(entry.platform)
                continue
            for alt in entry.equivalents:
                if alt not in found and self.mentions(title, alt):
                    found.append(alt)
        return found

    def replace_mention(self, title: str, platform: str, replacement: str) -> str:
        """Replace every whole-token mention of ``platform`` in ``title``."""
        pattern = self._patterns.get(platform) or mention_pattern(platform)
        return pattern.sub(lambda _match: replacement, title)

    def display_name(self, name: str) -> str:
        slug = normalize_platform(name)
        if slug in self._display_names:
            return self._display_names[slug]
        return " ".join(word[:1].upper() + word[1:] for word in name.split("-"))

    def is_well_known_pair(self, a: str, b: str) -> bool:
        return frozenset((normalize_platform(a), normalize_platform(b))) in self._well_known

    def all_platforms(self) -> list[str]:
        names: set[str] = set()
        for entry in self._entries:
            names.add(entry.platform)
            names.update(entry.equivalents)
        return sorted(names)

    def by_category(self, category: str) -> list[PlatformEquivalent]:
        return [entry for entry in self._entries if entry.category == category]

    def are_equivalents(self, a: str, b: str) -> bool:
        slug_a = normalize_platform(a)
        slug_b = normalize_platform(b)
        if slug_a == slug_b:
            return True
        entry = self.find_entry(a)
        if entry is None:
            return False
        if normalize_platform(entry.platform) == slug_b:
            return True
        return any(normalize_platform(alt) == slug_b for alt in entry.equivalents)


def _entry(platform: str, equivalents: list[str], category: PlatformCategory) -> PlatformEquivalent:
    return PlatformEquivalent(platform=platform, equivalents=tuple(equivalents), category=category)


DEFAULT_ENTRIES: tuple[PlatformEquivalent, ...] = (
    # AI models
    _entry("gemini", ["claude", "gpt-4", "gpt-4o", "llama", "mistral", "command-r"], "ai-model"),
    _entry("claude", ["gemini", "gpt-4", "gpt-4o", "llama", "mistral", "command-r"], "ai-model"),
    _entry("gpt-4", ["claude", "gemini", "llama", "mistral", "command-r"], "ai-model"),
    _entry("chatgpt", ["claude", "gemini", "perplexity", "copilot"], "ai-model"),
    _entry("openai", ["anthropic", "google-ai", "meta-ai", "mistral-ai", "cohere"], "ai-model"),
    _entry("anthropic", ["openai", "google-ai", "meta-ai", "mistral-ai", "cohere"], "ai-model"),
    # Cloud AI platforms
    _entry("vertex-ai", ["bedrock", "azure-openai", "together-ai", "anyscale"], "cloud"),
    _entry("bedrock", ["vertex-ai", "azure-openai", "together-ai", "anyscale"], "cloud"),
    _entry("azure-openai", ["vertex-ai", "bedrock", "together-ai", "anyscale"], "cloud"),
    _entry("aws", ["gcp", "azure", "oracle-cloud", "ibm-cloud"], "cloud"),
    _entry("gcp", ["aws", "azure", "oracle-cloud", "ibm-cloud"], "cloud"),
    _entry("azure", ["aws", "gcp", "oracle-cloud", "ibm-cloud"], "cloud"),
    # Productivity suites
    _entry("google-workspace", ["microsoft-365", "notion", "coda", "airtable"], "productivity"),
    _entry("microsoft-365", ["google-workspace", "notion", "coda", "airtable"], "productivity"),
    _entry("google-docs", ["microsoft-word", "notion", "coda"], "productivity"),
    _entry("google-sheets", ["excel", "airtable", "coda"], "productivity"),
    _entry("excel", ["google-sheets", "airtable", "coda"], "productivity"),
    _entry("copilot", ["duet-ai", "codeium", "cursor", "tabnine"], "productivity"),
    # AI frameworks
    _entry("langchain", ["llamaindex", "semantic-kernel", "haystack", "dspy"], "framework"),
    _entry("llamaindex", ["langchain", "semantic-kernel", "haystack", "dspy"], "framework"),
    _entry("langgraph", ["autogen", "crewai", "agents-sdk"], "framework"),
    _entry("autogen", ["langgraph", "crewai", "agents-sdk"], "framework"),
    _entry("huggingface", ["replicate", "together-ai", "modal"], "framework"),
    # Programming languages
    _entry("python", ["typescript", "javascript", "go", "rust"], "language"),
    _entry("typescript", ["python", "javascript", "go", "rust"], "language"),
    _entry("javascript", ["python", "typescript", "go"], "language"),
    # Automation platforms
    _entry("n8n", ["zapier", "make", "power-automate", "pipedream"], "productivity"),
    _entry("zapier", ["n8n", "make", "power-automate", "pipedream"], "productivity"),
    _entry("make", ["n8n", "zapier", "power-automate", "pipedream"], "productivity"),
)


def default_equivalence_table() -> PlatformEquivalenceTable:
    """Build the standard platform equivalence table."""
    return PlatformEquivalenceTable(
        DEFAULT_ENTRIES,
        display_names=DISPLAY_NAMES,
        well_known_pairs=WELL_KNOWN_PAIRS,
    )
