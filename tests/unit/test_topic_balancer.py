"""Unit tests for topic-to-audience balancing."""

import pytest

from newsdesk.schemas.audience import AudienceConfig
from newsdesk.schemas.topic import MismatchResolution, Topic
from newsdesk.services.audiences import default_audience_directory
from newsdesk.services.topic_balancer import (
    TopicAudienceBalancer,
    deserialize_balanced_map,
    serialize_balanced_map,
)

FORENSIC = AudienceConfig(id="forensic-anthropology", name="Forensic Anthropology")
ARCHAEOLOGY = AudienceConfig(id="computational-archaeology", name="Computational Archaeology")
ADMIN = AudienceConfig(id="business-administration", name="Business Administration")
ANALYTICS = AudienceConfig(id="business-intelligence", name="Business Intelligence & Analytics")


def _balancer(allow_cross_category: bool = False) -> TopicAudienceBalancer:
    return TopicAudienceBalancer(
        default_audience_directory(),
        allow_cross_category_reassign=allow_cross_category,
    )


def test_zero_topics_orphans_every_audience() -> None:
    analysis = _balancer().analyze([], [FORENSIC, ADMIN])

    assert [a.id for a in analysis.orphaned] == [FORENSIC.id, ADMIN.id]
    assert analysis.mismatched == []
    assert analysis.matched == {FORENSIC.id: [], ADMIN.id: []}


def test_analyze_partitions_topics_and_dedupes_audiences() -> None:
    topics = [
        Topic(title="Bone density models", audience_id=FORENSIC.id),
        Topic(title="Forecast churn", audience_id=ANALYTICS.id),
    ]

    analysis = _balancer().analyze(topics, [FORENSIC, FORENSIC, ADMIN])

    assert list(analysis.matched) == [FORENSIC.id, ADMIN.id]
    assert [t.title for t in analysis.matched[FORENSIC.id]] == ["Bone density models"]
    assert len(analysis.mismatched) == 1
    mismatch = analysis.mismatched[0]
    assert mismatch.original_audience_name == "Business Intelligence & Analytics"
    assert mismatch.suggested_audience_id == ADMIN.id
    assert mismatch.same_category_options == [ADMIN.id]
    assert [a.id for a in analysis.orphaned] == [ADMIN.id]


def test_no_cross_category_suggestion_unless_enabled() -> None:
    topics = [Topic(title="Forecast churn", audience_id=ANALYTICS.id)]

    strict = _balancer().analyze(topics, [FORENSIC])
    lenient = _balancer(allow_cross_category=True).analyze(topics, [FORENSIC])

    assert strict.mismatched[0].suggested_audience_id is None
    assert lenient.mismatched[0].suggested_audience_id == FORENSIC.id


def test_unknown_categories_never_match() -> None:
    balancer = _balancer()

    assert balancer.are_same_category(FORENSIC.id, ARCHAEOLOGY.id)
    assert not balancer.are_same_category(FORENSIC.id, ADMIN.id)
    assert not balancer.are_same_category("custom-a", "custom-b")


def test_apply_resolutions_reassigns_copy_and_tracks_every_action() -> None:
    balancer = _balancer()
    moved = Topic(title="Forecast churn", audience_id=ANALYTICS.id)
    fresh = Topic(title="Site survey drones", audience_id=ARCHAEOLOGY.id)
    skipped = Topic(title="Quarterly OKRs", audience_id="executives")
    unresolved = Topic(title="Orphan idea", audience_id="executives")
    analysis = balancer.analyze([moved, fresh, skipped, unresolved], [FORENSIC, ADMIN])

    result = balancer.apply_resolutions(
        analysis,
        [
            MismatchResolution(topic=moved, action="reassign", target_audience_id=ADMIN.id),
            MismatchResolution(topic=fresh, action="generate_fresh"),
            MismatchResolution(topic=skipped, action="skip"),
        ],
    )

    assert [t.title for t in result.balanced_map[ADMIN.id]] == ["Forecast churn"]
    assert result.balanced_map[ADMIN.id][0].reassigned_from == ANALYTICS.id
    assert moved.audience_id == ANALYTICS.id
    assert result.fresh_requested == [fresh]
    assert result.skipped == [skipped]
    assert [u.topic for u in result.unresolved] == [unresolved]
    assert [a.id for a in result.orphaned] == [FORENSIC.id]
    assert result.stats is not None
    assert result.stats.total_topics == 4
    assert result.stats.matched_topics == 1
    assert result.stats.mismatch_count == 4
    assert result.has_mismatches
    assert result.dropped == [fresh, skipped, unresolved]
    assert result.to_dict()["dropped_count"] == 3


@pytest.mark.parametrize("target", [None, "not-selected"])
def test_invalid_reassign_target_is_recorded_unresolved(target: str | None) -> None:
    balancer = _balancer()
    topic = Topic(title="Forecast churn", audience_id=ANALYTICS.id)
    analysis = balancer.analyze([topic], [ADMIN])

    result = balancer.apply_resolutions(
        analysis,
        [MismatchResolution(topic=topic, action="reassign", target_audience_id=target)],
    )

    assert result.balanced_map[ADMIN.id] == []
    assert len(result.unresolved) == 1
    assert result.unresolved[0].topic == topic


def test_later_resolution_for_same_topic_wins() -> None:
    balancer = _balancer()
    topic = Topic(title="Forecast churn", audience_id=ANALYTICS.id)
    analysis = balancer.analyze([topic], [ADMIN])

    result = balancer.apply_resolutions(
        analysis,
        [
            MismatchResolution(topic=topic, action="skip"),
            MismatchResolution(topic=topic, action="reassign", target_audience_id=ADMIN.id),
        ],
    )

    assert result.skipped == []
    assert len(result.reassigned) == 1


def test_auto_balance_reassigns_within_category_and_requests_fresh_otherwise() -> None:
    balancer = _balancer()
    topics = [
        Topic(title="Forecast churn", audience_id=ANALYTICS.id),
        Topic(title="Grant writing", audience_id="unknown-audience"),
    ]

    result = balancer.auto_balance(topics, [ADMIN, FORENSIC])

    assert [t.title for t in result.balanced_map[ADMIN.id]] == ["Forecast churn"]
    assert [t.title for t in result.fresh_requested] == ["Grant writing"]
    assert [a.id for a in result.orphaned] == [FORENSIC.id]
    assert "Orphaned audiences: 1" in result.summary()


def test_balanced_map_round_trips_through_json_payload() -> None:
    balanced = {ADMIN.id: [Topic(title="Forecast churn", audience_id=ADMIN.id)], FORENSIC.id: []}

    restored = deserialize_balanced_map(serialize_balanced_map(balanced))

    assert restored == balanced


def test_fully_matched_topics_report_no_mismatches() -> None:
    balancer = _balancer()
    topic = Topic(title="Bone density models", audience_id=FORENSIC.id)

    result = balancer.apply_resolutions(balancer.analyze([topic], [FORENSIC]), [])

    assert not result.has_mismatches
    assert result.dropped == []
    assert result.to_dict()["has_mismatches"] is False
