"""Strategic overlap detection across audiences.

When a topic mentions a platform that has known equivalents, suggest the
same idea built on an equivalent platform for the other selected audiences,
e.g. "Google Gemini for Research" becomes "Google Claude for Research".
Suggestions are advisory; the topic map is never modified.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence

from newsdesk.schemas.audience import AudienceConfig
from newsdesk.schemas.topic import StrategicOverlap, Topic
from newsdesk.services.platform_equivalents import PlatformEquivalenceTable

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.5
CATEGORY_BONUS: dict[str, float] = {
    "ai-model": 0.30,
    "cloud": 0.25,
    "framework": 0.20,
}
WELL_KNOWN_PAIR_BONUS = 0.15


class OverlapDetector:
    """Proposes complementary topics for other audiences via platform substitution."""

    def __init__(self, table: PlatformEquivalenceTable) -> None:
        self.table = table

    def confidence(self, original: str, equivalent: str, category: str) -> float:
        score = BASE_CONFIDENCE + CATEGORY_BONUS.get(category, 0.0)
        if self.table.is_well_known_pair(original, equivalent):
            score += WELL_KNOWN_PAIR_BONUS
        return round(min(max(score, 0.0), 1.0), 4)

    def suggest_title(self, title: str, mention: str, equivalent: str) -> str:
        return self.table.replace_mention(title, mention, self.table.display_name(equivalent))

    def detect(
        self,
        topic_map: Mapping[str, Sequence[Topic]],
        audiences: Iterable[AudienceConfig],
    ) -> list[StrategicOverlap]:
        """Return de-duplicated overlap suggestions, highest confidence first."""
        audience_ids: list[str] = []
        for audience in audiences:
            if audience.id not in audience_ids:
                audience_ids.append(audience.id)

        candidates: list[StrategicOverlap] = []
        for audience_id, topics in topic_map.items():
            for topic in topics:
                for mention in self.table.extract_mentions(topic.title):
                    candidates.extend(
                        self._suggestions_for(topic, audience_id, mention, audience_ids, topic_map)
                    )

        # sorted() is stable, so equal scores keep discovery order
        ranked = sorted(candidates, key=lambda overlap: -overlap.confidence)
        result = self._deduplicate(ranked)

        logger.info(
            "Strategic overlap detection complete",
            extra={
                "audience_count": len(audience_ids),
                "candidate_count": len(candidates),
                "overlap_count": len(result),
            },
        )
        return result

    def _suggestions_for(
        self,
        topic: Topic,
        audience_id: str,
        mention: str,
        audience_ids: list[str],
        topic_map: Mapping[str, Sequence[Topic]],
    ) -> list[StrategicOverlap]:
        entry = self.table.find_entry(mention)
        if entry is None:
            return []

        suggestions: list[StrategicOverlap] = []
        for equivalent in self.table.equivalents_for(mention):
            for other_id in audience_ids:
                if other_id == audience_id:
                    continue
                other_topics = topic_map.get(other_id, ())
                if any(self.table.mentions(t.title, equivalent) for t in other_topics):
                    continue

                confidence = self.confidence(mention, equivalent, entry.category)
                suggestions.append(
                    StrategicOverlap(
                        original_topic=topic.title,
                        original_audience_id=audience_id,
                        suggested_title=self.suggest_title(topic.title, mention, equivalent),
                        target_audience_id=other_id,
                        confidence=confidence,
                        category=entry.category,
                        matched_platform=mention,
                        equivalent_platform=equivalent,
                        reasoning=(
                            f"{self.table.display_name(mention)} and "
                            f"{self.table.display_name(equivalent)} are interchangeable "
                            f"{entry.category} options"
                        ),
                    )
                )
        return suggestions

    @staticmethod
    def _deduplicate(overlaps: list[StrategicOverlap]) -> list[StrategicOverlap]:
        seen: set[tuple[str, str]] = set()
        unique: list[StrategicOverlap] = []
        for overlap in overlaps:
            key = (overlap.target_audience_id, overlap.suggested_title.lower())
            if key in seen:
                continue
            seen.add(key)
            unique.append(overlap)
        return unique
