"""Topic-to-audience matching and mismatch resolution.

Covers four situations:

A. Fewer topics than audiences: the audiences without topics are orphaned
   and get fresh topics later in the pipeline.
B. More topics than audiences: each audience keeps several topics.
C. Topics tagged for audiences that are not selected: the caller (or the
   automatic policy) reassigns, regenerates or skips them.
D. No topics at all: every selected audience is orphaned.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from newsdesk.config import settings
from newsdesk.schemas.audience import AudienceConfig
from newsdesk.schemas.topic import MismatchInfo, MismatchResolution, Topic
from newsdesk.services.audiences import AudienceDirectory

logger = logging.getLogger(__name__)

BalancedTopicMap = dict[str, list[Topic]]


@dataclass(frozen=True, slots=True)
class MismatchUnresolved:
    """A mismatched topic that was dropped because no usable resolution existed."""

    topic: Topic
    reason: str


@dataclass(slots=True)
class BalanceAnalysis:
    """Partition of the input topics against the selected audiences."""

    audiences: list[AudienceConfig]
    matched: BalancedTopicMap
    mismatched: list[MismatchInfo]
    orphaned: list[AudienceConfig]
    total_topics: int


@dataclass(slots=True)
class BalanceStats:
    total_topics: int
    matched_topics: int
    mismatch_count: int
    orphaned_audience_count: int


@dataclass(slots=True)
class BalanceResult:
    """Balanced topic map after mismatch resolutions were applied."""

    balanced_map: BalancedTopicMap
    audiences: list[AudienceConfig]
    orphaned: list[AudienceConfig]
    reassigned: list[Topic] = field(default_factory=list)
    fresh_requested: list[Topic] = field(default_factory=list)
    skipped: list[Topic] = field(default_factory=list)
    unresolved: list[MismatchUnresolved] = field(default_factory=list)
    stats: BalanceStats | None = None

    @property
    def has_mismatches(self) -> bool:
        return bool(self.stats and self.stats.mismatch_count) or bool(self.orphaned)

    @property
    def dropped(self) -> list[Topic]:
        """Every mismatched topic that did not end up in the balanced map."""
        return [
            *self.fresh_requested,
            *self.skipped,
            *(item.topic for item in self.unresolved),
        ]

    def summary(self) -> str:
        """Human-readable report of the balance outcome."""
        stats = self.stats or BalanceStats(0, 0, 0, len(self.orphaned))
        lines = [
            "Topic-audience balance summary:",
            f"  Total topics: {stats.total_topics}",
            f"  Matched topics: {stats.matched_topics}",
            f"  Mismatched topics: {stats.mismatch_count}",
            f"  Orphaned audiences: {stats.orphaned_audience_count}",
        ]
        if self.reassigned:
            lines.append("  Reassigned topics:")
            for topic in self.reassigned:
                lines.append(
                    f'    - "{topic.title}": {topic.reassigned_from} -> {topic.audience_id}'
                )
        if self.unresolved:
            lines.append("  Dropped without resolution:")
            for item in self.unresolved:
                lines.append(f'    - "{item.topic.title}": {item.reason}')
        if self.orphaned:
            lines.append("  Audiences needing fresh topics:")
            for audience in self.orphaned:
                lines.append(f"    - {audience.name} ({audience.id})")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "balanced_map": serialize_balanced_map(self.balanced_map),
            "orphaned_audience_ids": [a.id for a in self.orphaned],
            "reassigned": [t.model_dump(exclude_none=True) for t in self.reassigned],
            "fresh_requested": [t.title for t in self.fresh_requested],
            "skipped": [t.title for t in self.skipped],
            "unresolved": [
                {"title": item.topic.title, "reason": item.reason} for item in self.unresolved
            ],
            "has_mismatches": self.has_mismatches,
            "dropped_count": len(self.dropped),
            "stats": {
                "total_topics": self.stats.total_topics if self.stats else 0,
                "matched_topics": self.stats.matched_topics if self.stats else 0,
                "mismatch_count": self.stats.mismatch_count if self.stats else 0,
                "orphaned_audience_count": len(self.orphaned),
            },
        }


def dedupe_audiences(audiences: Iterable[AudienceConfig]) -> list[AudienceConfig]:
    """Drop repeated audience ids, keeping the first occurrence."""
    seen: set[str] = set()
    unique: list[AudienceConfig] = []
    for audience in audiences:
        if audience.id in seen:
            continue
        seen.add(audience.id)
        unique.append(audience)
    return unique


def serialize_balanced_map(balanced_map: Mapping[str, Sequence[Topic]]) -> dict[str, list[dict]]:
    return {
        audience_id: [topic.model_dump(exclude_none=True) for topic in topics]
        for audience_id, topics in balanced_map.items()
    }


def deserialize_balanced_map(payload: Mapping[str, Sequence[Any]]) -> BalancedTopicMap:
    return {
        audience_id: [Topic.model_validate(item) for item in topics]
        for audience_id, topics in payload.items()
    }


class TopicAudienceBalancer:
    """Matches pre-tagged topics against the selected audiences."""

    def __init__(
        self,
        directory: AudienceDirectory,
        *,
        allow_cross_category_reassign: bool | None = None,
    ) -> None:
        self.directory = directory
        if allow_cross_category_reassign is None:
            allow_cross_category_reassign = settings.allow_cross_category_reassign
        self.allow_cross_category_reassign = allow_cross_category_reassign

    def are_same_category(self, first_id: str, second_id: str) -> bool:
        """True when both audiences have a known and equal category."""
        first = self.directory.category_of(first_id)
        return first is not None and first == self.directory.category_of(second_id)

    def same_category_audiences(
        self,
        audience_id: str,
        candidates: Iterable[AudienceConfig],
    ) -> list[AudienceConfig]:
        return [c for c in candidates if self.are_same_category(audience_id, c.id)]

    def analyze(
        self,
        topics: Sequence[Topic],
        audiences: Iterable[AudienceConfig],
    ) -> BalanceAnalysis:
        """Partition topics into matched, mismatched and orphaned audiences."""
        selected = dedupe_audiences(audiences)
        matched: BalancedTopicMap = {audience.id: [] for audience in selected}
        mismatched: list[MismatchInfo] = []

        for topic in topics:
            if topic.audience_id in matched:
                matched[topic.audience_id].append(topic)
            else:
                mismatched.append(self._build_mismatch(topic, selected))

        orphaned = [audience for audience in selected if not matched[audience.id]]

        logger.info(
            "Topic-audience analysis complete",
            extra={
                "topic_count": len(topics),
                "audience_count": len(selected),
                "matched_count": len(topics) - len(mismatched),
                "mismatch_count": len(mismatched),
                "orphaned_count": len(orphaned),
            },
        )
        return BalanceAnalysis(
            audiences=selected,
            matched=matched,
            mismatched=mismatched,
            orphaned=orphaned,
            total_topics=len(topics),
        )

    def _build_mismatch(self, topic: Topic, selected: list[AudienceConfig]) -> MismatchInfo:
        original = self.directory.get(topic.audience_id)
        options = self.same_category_audiences(topic.audience_id, selected)

        suggestion: AudienceConfig | None = None
        if options:
            suggestion = options[0]
        elif self.allow_cross_category_reassign and selected:
            suggestion = selected[0]

        return MismatchInfo(
            topic=topic,
            original_audience_id=topic.audience_id,
            original_audience_name=original.name if original else topic.audience_id,
            suggested_audience_id=suggestion.id if suggestion else None,
            suggested_audience_name=suggestion.name if suggestion else None,
            same_category_options=[option.id for option in options],
        )

    def apply_resolutions(
        self,
        analysis: BalanceAnalysis,
        resolutions: Iterable[MismatchResolution],
    ) -> BalanceResult:
        """Apply per-mismatch decisions and recompute orphaned audiences.

        Resolutions are matched by (title, original audience id); a later
        resolution for the same topic replaces an earlier one.
        """
        balanced: BalancedTopicMap = {
            audience_id: list(topics) for audience_id, topics in analysis.matched.items()
        }
        by_key = {
            (resolution.topic.title, resolution.topic.audience_id): resolution
            for resolution in resolutions
        }
        result = BalanceResult(balanced_map=balanced, audiences=analysis.audiences, orphaned=[])

        for mismatch in analysis.mismatched:
            topic = mismatch.topic
            resolution = by_key.get((topic.title, topic.audience_id))
            if resolution is None:
                result.unresolved.append(MismatchUnresolved(topic, "no resolution supplied"))
                logger.info(
                    "Dropping mismatched topic without resolution",
                    extra={"title": topic.title, "audience_id": topic.audience_id},
                )
                continue

            if resolution.action == "reassign":
                target = resolution.target_audience_id
                if not target or target not in balanced:
                    reason = (
                        f"reassign target {target!r} is not selected"
                        if target
                        else "reassign without target audience"
                    )
                    result.unresolved.append(MismatchUnresolved(topic, reason))
                    logger.warning(
                        "Invalid reassign resolution",
                        extra={"title": topic.title, "target_audience_id": target},
                    )
                    continue
                moved = topic.reassigned_to(target)
                balanced[target].append(moved)
                result.reassigned.append(moved)
            elif resolution.action == "generate_fresh":
                result.fresh_requested.append(topic)
            else:
                result.skipped.append(topic)

        result.orphaned = [a for a in analysis.audiences if not balanced.get(a.id)]
        matched_total = sum(len(topics) for topics in balanced.values())
        result.stats = BalanceStats(
            total_topics=analysis.total_topics,
            matched_topics=matched_total,
            mismatch_count=len(analysis.mismatched),
            orphaned_audience_count=len(result.orphaned),
        )

        logger.info(
            "Mismatch resolutions applied",
            extra={
                "matched_topics": matched_total,
                "reassigned_count": len(result.reassigned),
                "fresh_requested_count": len(result.fresh_requested),
                "unresolved_count": len(result.unresolved),
                "orphaned_count": len(result.orphaned),
            },
        )
        return result

    @staticmethod
    def auto_resolutions(analysis: BalanceAnalysis) -> list[MismatchResolution]:
        """Reassign to the suggested audience where one exists, else request fresh topics."""
        resolutions: list[MismatchResolution] = []
        for mismatch in analysis.mismatched:
            if mismatch.suggested_audience_id:
                resolutions.append(
                    MismatchResolution(
                        topic=mismatch.topic,
                        action="reassign",
                        target_audience_id=mismatch.suggested_audience_id,
                    )
                )
            else:
                resolutions.append(
                    MismatchResolution(topic=mismatch.topic, action="generate_fresh")
                )
        return resolutions

    def auto_balance(
        self,
        topics: Sequence[Topic],
        audiences: Iterable[AudienceConfig],
    ) -> BalanceResult:
        analysis = self.analyze(topics, audiences)
        return self.apply_resolutions(analysis, self.auto_resolutions(analysis))
