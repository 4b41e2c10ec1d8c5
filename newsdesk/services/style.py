"""Tone and style-modifier instructions for section generation."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_TONE = "confident"


@dataclass(frozen=True, slots=True)
class ToneDefinition:
    label: str
    description: str
    sentence_construction: tuple[str, ...]
    words_to_use: tuple[str, ...]
    words_to_avoid: tuple[str, ...]
    punctuation_style: str


TONES: dict[str, ToneDefinition] = {
    "warm": ToneDefinition(
        label="Warm",
        description="Friendly, accepting, and celebratory. Suited to community and support content.",
        sentence_construction=(
            "Use positive framing: \"Here's what helped\" not \"Don't do this\"",
            "Include gratitude: \"Thanks for being here\"",
            "Celebrate wins and progress",
        ),
        words_to_use=("welcome", "glad", "excited", "appreciate", "together"),
        words_to_avoid=("unfortunately", "problem", "issue", "failed"),
        punctuation_style="Occasional exclamation points, warm ellipses",
    ),
    "confident": ToneDefinition(
        label="Confident",
        description="Sure, direct, and authoritative. No hedging.",
        sentence_construction=(
            "Short, declarative sentences",
            "Active voice only",
            "Imperative mood: \"Do this\" not \"You might consider\"",
        ),
        words_to_use=("proven", "works", "results", "exactly", "here's how"),
        words_to_avoid=("seems", "might", "perhaps", "appears", "arguably", "I think"),
        punctuation_style="Periods. Short sentences. Direct.",
    ),
    "witty": ToneDefinition(
        label="Witty",
        description="Clever and engaging. Insider jokes that reward knowledge.",
        sentence_construction=(
            "Unexpected word choices and wordplay",
            "Timing through sentence length variation",
            "Deadpan delivery followed by punchline",
        ),
        words_to_use=("impossibly", "finally", "actually", "somehow"),
        words_to_avoid=("LOL", "hilarious", "funny thing is", "haha"),
        punctuation_style="Parentheticals for asides, dashes for timing",
    ),
    "empathetic": ToneDefinition(
        label="Empathetic",
        description="Understanding, validating, and supportive. Suited to difficult topics.",
        sentence_construction=(
            "Acknowledge feelings first, then information",
            "Use second person: \"You\" and \"your\"",
            "Validate before advising",
        ),
        words_to_use=("understand", "feel", "struggle", "not alone", "valid"),
        words_to_avoid=("just", "simply", "obviously", "easy", "should have"),
        punctuation_style="Gentle pauses, ellipses for reflection",
    ),
    "analytical": ToneDefinition(
        label="Analytical",
        description="Thoughtful, intellectual, and nuanced. Multiple perspectives examined.",
        sentence_construction=(
            "Complex sentence structures with clear logic",
            "Transitional language: \"However,\" \"Conversely,\" \"Moreover\"",
            "\"On the surface... but actually...\" pattern",
        ),
        words_to_use=("however", "conversely", "notably", "interestingly", "reveals"),
        words_to_avoid=("obviously", "clearly", "everyone knows"),
        punctuation_style="Colons for explanations, semicolons for related ideas",
    ),
    "urgent": ToneDefinition(
        label="Urgent",
        description="Fast-paced and action-focused. For breaking news and launches.",
        sentence_construction=(
            "Short sentences. Very short.",
            "Time-specific framing",
            "Direct calls to action",
        ),
        words_to_use=("now", "immediately", "breaking", "just announced", "this changes"),
        words_to_avoid=("eventually", "sometime", "might want to consider"),
        punctuation_style="Periods for punch. Exclamation points sparingly.",
    ),
    "introspective": ToneDefinition(
        label="Introspective",
        description="Reflective, questioning, and contemplative.",
        sentence_construction=(
            "Questions without immediate answers",
            "First person reflection: \"I've been thinking...\"",
            "Exploration over conclusions",
        ),
        words_to_use=("wondering", "perhaps", "what if", "I've noticed", "makes me think"),
        words_to_avoid=("definitely", "certainly", "the answer is", "everyone should"),
        punctuation_style="Question marks for genuine inquiry, ellipses for trailing thoughts",
    ),
    "serious": ToneDefinition(
        label="Serious",
        description="Formal, grave, and respectful. For crisis, investigative, or policy content.",
        sentence_construction=(
            "Formal without being cold",
            "Acknowledge stakes clearly",
            "Measured, deliberate pacing",
        ),
        words_to_use=("significant", "implications", "important to understand", "deserves attention"),
        words_to_avoid=("joke", "fun", "exciting", "cool", "awesome"),
        punctuation_style="Conservative punctuation, no exclamation points",
    ),
}

FLAVOR_INSTRUCTIONS: dict[str, str] = {
    "includeHumor": (
        "- You may sprinkle in one or two instances of light-hearted, clever humor "
        "where appropriate, without undermining the main tone."
    ),
    "useSlang": (
        "- You may incorporate some modern, conversational slang to make the content "
        "feel more relatable and authentic."
    ),
    "useJargon": (
        "- You should incorporate relevant technical jargon where it adds precision "
        "and is appropriate for the expert audience."
    ),
    "useAnalogies": (
        "- You should use relatable analogies and simple metaphors to explain complex "
        "technical concepts."
    ),
    "citeData": (
        "- Wherever possible, cite specific data points, statistics, or findings "
        "to add authority and credibility."
    ),
}

FLAVOR_FORMATTING_RULES: dict[str, str] = {
    "citeData": (
        "DATA-DRIVEN FORMATTING:\n"
        "- Highlight numbers and percentages prominently\n"
        "- Use comparisons to show scale (\"3x faster than\", \"50% reduction\")\n"
        "- Include a source for every statistic cited"
    ),
    "includeHumor": (
        "CONVERSATIONAL FORMATTING:\n"
        "- Use contractions naturally\n"
        "- Vary sentence length for rhythm\n"
        "- End sections with memorable, quotable lines"
    ),
    "useSlang": (
        "MODERN VOICE FORMATTING:\n"
        "- Keep paragraphs short (3-4 sentences max)\n"
        "- Use casual transitions (\"So here's the thing...\")\n"
        "- Use bold for emphasis on key phrases"
    ),
    "useJargon": (
        "TECHNICAL FORMATTING:\n"
        "- Define acronyms on first use, then use freely\n"
        "- Use inline code formatting for technical terms\n"
        "- Add \"Prerequisites\" callouts"
    ),
    "useAnalogies": (
        "EXPLANATORY FORMATTING:\n"
        "- Lead technical explanations with the analogy\n"
        "- Follow analogies with concrete applications\n"
        "- Connect abstract concepts to everyday experiences"
    ),
}


def available_tones() -> list[str]:
    return list(TONES)


def tone_instructions(tone: str | None) -> str:
    """Render writing instructions for a tone, falling back to the default tone."""
    key = (tone or DEFAULT_TONE).strip().lower()
    definition = TONES.get(key)
    if definition is None:
        logger.warning("Unknown tone, using default", extra={"tone": tone, "default": DEFAULT_TONE})
        definition = TONES[DEFAULT_TONE]

    rules = "\n".join(f"- {rule}" for rule in definition.sentence_construction)
    return (
        f"TONE: {definition.label}\n"
        f"{definition.description}\n\n"
        f"SENTENCE CONSTRUCTION:\n{rules}\n\n"
        f"PREFERRED LANGUAGE: {', '.join(definition.words_to_use)}\n"
        f"AVOID: {', '.join(definition.words_to_avoid)}\n"
        f"PUNCTUATION STYLE: {definition.punctuation_style}"
    )


def flavor_instructions(flavors: Iterable[str]) -> str:
    """Render the stylistic instructions for the selected style modifiers.

    Unknown modifiers are ignored; returns an empty string when none apply.
    """
    lines = [FLAVOR_INSTRUCTIONS[key] for key in flavors if key in FLAVOR_INSTRUCTIONS]
    if not lines:
        return ""
    return "Additionally, adhere to the following stylistic instructions:\n" + "\n".join(lines)


def flavor_formatting_rules(flavors: Iterable[str]) -> str:
    rules = [FLAVOR_FORMATTING_RULES[key] for key in flavors if key in FLAVOR_FORMATTING_RULES]
    return "\n\n".join(rules)
