"""Tests for tone/style-modifier rendering and the built-in audience directory."""

import random

from newsdesk.services.audiences import ALL_SOURCE_PREFERENCES, default_audience_directory
from newsdesk.services.style import (
    DEFAULT_TONE,
    available_tones,
    flavor_formatting_rules,
    flavor_instructions,
    tone_instructions,
)


def test_tone_instructions_fall_back_to_default_tone() -> None:
    assert DEFAULT_TONE in available_tones()
    assert tone_instructions("WITTY").startswith("TONE: Witty")
    assert tone_instructions("no-such-tone") == tone_instructions(None)
    assert tone_instructions(None).startswith("TONE: Confident")


def test_flavor_instructions_ignore_unknown_modifiers() -> None:
    assert flavor_instructions([]) == ""
    assert flavor_instructions(["sparkles"]) == ""

    text = flavor_instructions(["citeData", "sparkles"])

    assert text.startswith("Additionally, adhere to the following stylistic instructions:")
    assert "statistics" in text
    assert flavor_formatting_rules(["useJargon", "citeData"]).index("TECHNICAL") < flavor_formatting_rules(
        ["useJargon", "citeData"]
    ).index("DATA-DRIVEN")


def test_resolve_ids_expands_categories_and_drops_unknown_ids() -> None:
    directory = default_audience_directory()
    category = directory.categories()[0]

    resolved = directory.resolve_ids([category.id, category.children[0], "not-an-audience"])

    assert resolved == list(category.children)
    assert all(directory.category_of(audience_id) == category.id for audience_id in resolved)
    assert directory.category_of("not-an-audience") is None


def test_legacy_ids_expand_to_specializations() -> None:
    directory = default_audience_directory()

    assert directory.resolve_ids(["analysts"]) == ["business-intelligence"]
    configs = directory.audience_configs(["analysts"])
    assert [config.id for config in configs] == ["business-intelligence"]
    assert not configs[0].is_custom


def test_balanced_topic_titles_take_same_count_per_audience() -> None:
    directory = default_audience_directory()
    ids = [spec.id for spec in directory.all_specializations()[:2]]

    titles = directory.balanced_topic_titles(ids, titles_per_audience=1, rng=random.Random(3))

    assert len(titles) == 2


def test_source_preferences_default_to_all_sources_for_unknown_ids() -> None:
    directory = default_audience_directory()

    assert directory.source_preferences_for(["nobody"]) == ALL_SOURCE_PREFERENCES
