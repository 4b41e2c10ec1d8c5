"""Unit tests for strategic overlap detection."""

from newsdesk.schemas.audience import AudienceConfig
from newsdesk.schemas.topic import Topic
from newsdesk.services.overlap_detector import OverlapDetector
from newsdesk.services.platform_equivalents import default_equivalence_table

ACADEMIC = AudienceConfig(id="academic", name="Academic")
BUSINESS = AudienceConfig(id="business", name="Business")


def _detector() -> OverlapDetector:
    return OverlapDetector(default_equivalence_table())


def test_gemini_topic_suggests_claude_or_gpt4_for_business() -> None:
    topic_map = {
        "academic": [Topic(title="Using Gemini for literature reviews", audience_id="academic")],
        "business": [],
    }

    overlaps = _detector().detect(topic_map, [ACADEMIC, BUSINESS])

    business = [o for o in overlaps if o.target_audience_id == "business"]
    assert business
    top = business[0]
    assert top.equivalent_platform in {"claude", "gpt-4"}
    assert top.confidence >= 0.8
    assert top.overlap_type == "platform-equivalent"
    assert top.matched_platform == "gemini"
    assert top.suggested_title in {
        "Using Claude for literature reviews",
        "Using GPT-4 for literature reviews",
    }


def test_confidence_scoring_by_category_and_pair() -> None:
    detector = _detector()

    assert detector.confidence("claude", "gemini", "ai-model") == 0.95
    assert detector.confidence("claude", "mistral", "ai-model") == 0.8
    assert detector.confidence("aws", "gcp", "cloud") == 0.9
    assert detector.confidence("langchain", "haystack", "framework") == 0.7
    assert detector.confidence("n8n", "zapier", "productivity") == 0.65


def test_results_sorted_by_confidence_and_deduplicated() -> None:
    topic_map = {
        "academic": [
            Topic(title="Claude for grant writing", audience_id="academic"),
            Topic(title="claude for grant writing", audience_id="academic"),
        ],
        "business": [],
    }

    overlaps = _detector().detect(topic_map, [ACADEMIC, BUSINESS])

    confidences = [o.confidence for o in overlaps]
    assert confidences == sorted(confidences, reverse=True)
    keys = [(o.target_audience_id, o.suggested_title.lower()) for o in overlaps]
    assert len(keys) == len(set(keys))


def test_skips_audiences_already_covering_the_equivalent() -> None:
    topic_map = {
        "academic": [Topic(title="Gemini for lab notes", audience_id="academic")],
        "business": [Topic(title="Claude for sales emails", audience_id="business")],
    }

    overlaps = _detector().detect(topic_map, [ACADEMIC, BUSINESS])

    to_business = [o for o in overlaps if o.target_audience_id == "business"]
    assert all(o.equivalent_platform != "claude" for o in to_business)
    to_academic = [o for o in overlaps if o.target_audience_id == "academic"]
    assert all(o.equivalent_platform != "gemini" for o in to_academic)


def test_detection_is_deterministic_and_does_not_mutate_input() -> None:
    topic_map = {
        "academic": [Topic(title="AWS Bedrock for genomics", audience_id="academic")],
        "business": [Topic(title="LangChain agents for support", audience_id="business")],
    }
    snapshot = {key: list(value) for key, value in topic_map.items()}

    first = _detector().detect(topic_map, [ACADEMIC, BUSINESS])
    second = _detector().detect(topic_map, [ACADEMIC, BUSINESS])

    assert [o.model_dump() for o in first] == [o.model_dump() for o in second]
    assert topic_map == snapshot


def test_no_suggestions_for_single_audience_or_unknown_platforms() -> None:
    detector = _detector()

    single = detector.detect(
        {"academic": [Topic(title="Gemini for citations", audience_id="academic")]},
        [ACADEMIC],
    )
    unknown = detector.detect(
        {
            "academic": [Topic(title="Spreadsheets for fieldwork", audience_id="academic")],
            "business": [],
        },
        [ACADEMIC, BUSINESS],
    )

    assert single == []
    assert unknown == []


def test_verb_make_is_not_swapped_for_automation_tools() -> None:
    topic_map = {
        "academic": [Topic(title="How to Make Claude Summarize Papers", audience_id="academic")],
        "business": [],
    }

    overlaps = _detector().detect(topic_map, [ACADEMIC, BUSINESS])

    assert overlaps
    assert {o.matched_platform for o in overlaps} == {"claude"}
    assert all(o.suggested_title.startswith("How to Make ") for o in overlaps)
