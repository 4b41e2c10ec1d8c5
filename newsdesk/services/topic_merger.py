"""Balanced merging of per-audience topic candidates and generated sections.

Round-robin selection gives every audience the same number of turns, and
the shuffles remove any advantage from position. Randomness comes from an
injected ``random.Random`` so callers can seed it.
"""

from __future__ import annotations

import logging
import random
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from newsdesk.config import settings
from newsdesk.schemas.topic import Topic

logger = logging.getLogger(__name__)

T = TypeVar("T")

TITLE_TOKEN_PATTERN = re.compile(r"[a-z0-9]+")
HOW_TO_PATTERN = re.compile(r"\bhow to\b")


@dataclass(slots=True)
class MergerStats:
    total_before_merge: int
    total_after_merge: int
    per_audience: dict[str, int] = field(default_factory=dict)
    underrepresented: list[str] = field(default_factory=list)


@dataclass(slots=True)
class MergerResult:
    topics: list[Topic]
    stats: MergerStats


@dataclass(slots=True)
class TopicDistribution:
    total: int
    per_audience: dict[str, int]
    percentages: dict[str, str]
    imbalance_ratio: float
    is_balanced: bool


def _title_key(title: str) -> str:
    return " ".join(title.lower().split())


def _claim_titles(
    candidates_by_audience: Mapping[str, Sequence[Topic]],
) -> dict[str, list[Topic]]:
    """Drop repeated titles; the earliest audience keeps a shared one."""
    seen_titles: set[str] = set()
    claimed: dict[str, list[Topic]] = {}
    for audience_id, topics in candidates_by_audience.items():
        claimed[audience_id] = []
        for topic in topics:
            key = _title_key(topic.title)
            if key in seen_titles:
                continue
            seen_titles.add(key)
            claimed[audience_id].append(topic)
    return claimed


def merge_topics_with_balance(
    candidates_by_audience: Mapping[str, Sequence[Topic]],
    per_audience_cap: int,
    *,
    min_per_audience: int | None = None,
    target_count: int | None = None,
    rng: random.Random | None = None,
) -> MergerResult:
    """Merge candidates with equal representation per audience.

    Takes one topic per audience per round, in a shuffled audience order,
    until every audience is exhausted up to ``per_audience_cap`` or the
    optional ``target_count`` is reached. A title shared by several audiences
    stays with the first of them in ``candidates_by_audience`` order, so the
    per-audience counts do not depend on the shuffle.
    """
    rng = rng or random.Random()
    if min_per_audience is None:
        min_per_audience = settings.merger_min_per_audience

    total_before = sum(len(topics) for topics in candidates_by_audience.values())
    unique_candidates = _claim_titles(candidates_by_audience)
    audience_ids = list(unique_candidates)
    rng.shuffle(audience_ids)

    per_audience = {audience_id: 0 for audience_id in audience_ids}
    positions = {audience_id: 0 for audience_id in audience_ids}
    merged: list[Topic] = []

    def _target_reached() -> bool:
        return target_count is not None and len(merged) >= target_count

    progressed = True
    while progressed and not _target_reached():
        progressed = False
        for audience_id in audience_ids:
            if _target_reached():
                break
            if per_audience[audience_id] >= per_audience_cap:
                continue
            candidates = unique_candidates[audience_id]
            if positions[audience_id] < len(candidates):
                merged.append(candidates[positions[audience_id]])
                positions[audience_id] += 1
                per_audience[audience_id] += 1
                progressed = True

    rng.shuffle(merged)
    underrepresented = [
        audience_id
        for audience_id in candidates_by_audience
        if per_audience.get(audience_id, 0) < min_per_audience
    ]

    logger.info(
        "Balanced topic merge complete",
        extra={
            "audience_count": len(audience_ids),
            "total_before_merge": total_before,
            "total_after_merge": len(merged),
            "underrepresented": underrepresented,
        },
    )
    return MergerResult(
        topics=merged,
        stats=MergerStats(
            total_before_merge=total_before,
            total_after_merge=len(merged),
            per_audience={k: per_audience[k] for k in candidates_by_audience},
            underrepresented=underrepresented,
        ),
    )


def merge_with_priority(
    candidates_by_audience: Mapping[str, Sequence[Topic]],
    weights: Mapping[str, float],
    target_count: int | None = None,
    *,
    rng: random.Random | None = None,
) -> MergerResult:
    """Allocate ``target_count`` slots proportionally to audience weights (default 1.0).

    Leftover slots go to the highest-weighted audiences first.
    """
    rng = rng or random.Random()
    if target_count is None:
        target_count = settings.merger_target_count
    total_before = sum(len(topics) for topics in candidates_by_audience.values())
    audience_ids = list(candidates_by_audience)
    if not audience_ids:
        return MergerResult(topics=[], stats=MergerStats(0, 0))

    weight_of = {audience_id: max(weights.get(audience_id, 1.0), 0.0) for audience_id in audience_ids}
    total_weight = sum(weight_of.values()) or float(len(audience_ids))

    allocations = {
        audience_id: int(target_count * (weight_of[audience_id] or 0.0) / total_weight)
        for audience_id in audience_ids
    }
    by_weight = sorted(audience_ids, key=lambda audience_id: -weight_of[audience_id])
    allocated = sum(allocations.values())
    index = 0
    while allocated < target_count:
        audience_id = by_weight[index % len(by_weight)]
        allocations[audience_id] += 1
        allocated += 1
        index += 1

    merged: list[Topic] = []
    per_audience: dict[str, int] = {}
    for audience_id in audience_ids:
        taken = list(candidates_by_audience[audience_id][: allocations[audience_id]])
        merged.extend(taken)
        per_audience[audience_id] = len(taken)

    rng.shuffle(merged)
    return MergerResult(
        topics=merged,
        stats=MergerStats(
            total_before_merge=total_before,
            total_after_merge=len(merged),
            per_audience=per_audience,
        ),
    )


def _title_tokens(title: str) -> set[str]:
    lowered = HOW_TO_PATTERN.sub(" ", title.lower())
    return set(TITLE_TOKEN_PATTERN.findall(lowered))


def title_similarity(a: str, b: str) -> float:
    """Word-level Jaccard similarity of two titles."""
    tokens_a = _title_tokens(a)
    tokens_b = _title_tokens(b)
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def deduplicate_similar_topics(topics: Iterable[Topic], threshold: float = 0.8) -> list[Topic]:
    """Keep the first of any group of topics whose titles are at least ``threshold`` similar."""
    unique: list[Topic] = []
    for topic in topics:
        if any(title_similarity(topic.title, kept.title) >= threshold for kept in unique):
            continue
        unique.append(topic)
    return unique


def analyze_topic_distribution(topics: Sequence[Topic]) -> TopicDistribution:
    """Per-audience counts; balanced when no audience has more than twice another's topics."""
    per_audience: dict[str, int] = {}
    for topic in topics:
        audience_id = topic.audience_id or "unknown"
        per_audience[audience_id] = per_audience.get(audience_id, 0) + 1

    total = len(topics)
    percentages = {
        audience_id: f"{count / total * 100:.1f}%" for audience_id, count in per_audience.items()
    }
    if per_audience:
        imbalance_ratio = max(per_audience.values()) / min(per_audience.values())
    else:
        imbalance_ratio = 1.0
    return TopicDistribution(
        total=total,
        per_audience=per_audience,
        percentages=percentages,
        imbalance_ratio=round(imbalance_ratio, 4),
        is_balanced=imbalance_ratio <= 2,
    )


def merge_sections(section_results: Iterable[T]) -> list[T]:
    """Concatenate section results in arrival order."""
    return list(section_results)
