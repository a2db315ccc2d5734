"""Tests for the theme registry."""

import pytest

from pano_mission.themes import (
    get_all_themes,
    get_max_clue_count,
    get_theme,
    get_theme_types,
    is_valid_theme,
)


def test_registry_contents():
    assert get_theme_types() == [
        "yakuza",
        "spy",
        "heist",
        "murder",
        "smuggling",
        "art_theft",
        "kidnapping",
        "corruption",
        "custom",
    ]


def test_max_clue_counts():
    assert get_max_clue_count("spy") == 7
    assert get_max_clue_count("heist") == 6
    assert get_max_clue_count("custom") == 4


def test_every_theme_supports_minimum_clue_count():
    for theme in get_all_themes():
        assert len(theme.clue_templates) >= 3, theme.type
        assert len({t.name for t in theme.clue_templates}) == len(
            theme.clue_templates
        )


def test_unknown_theme():
    assert not is_valid_theme("pirates")
    with pytest.raises(KeyError, match="Unknown theme: pirates"):
        get_theme("pirates")


def test_lookup_returns_validated_model():
    theme = get_theme("yakuza")

    assert is_valid_theme("yakuza")
    assert theme.type == "yakuza"
    assert theme.color.startswith("#")
    assert all(10 <= t.base_xp <= 200 for t in theme.clue_templates)
