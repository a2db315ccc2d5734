"""
Theme template registry.

Themes and their clue templates are plain data shipped in
``data/themes.json`` and validated with the pydantic schema on first use.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, List

from .schemas import MissionTheme

logger = logging.getLogger(__name__)

THEMES_PATH = Path(__file__).parent / "data" / "themes.json"


@lru_cache(maxsize=1)
def _load_themes() -> Dict[str, MissionTheme]:
    with open(THEMES_PATH, "r", encoding="utf-8") as f:
        raw = json.load(f)

    themes: Dict[str, MissionTheme] = {}
    for entry in raw:
        theme = MissionTheme.model_validate(entry)
        if theme.type in themes:
            raise ValueError(f"Duplicate theme type in {THEMES_PATH}: {theme.type}")
        themes[theme.type] = theme

    logger.debug("Loaded %d themes from %s", len(themes), THEMES_PATH)
    return themes


def get_theme_types() -> List[str]:
    """Theme ids in registry order."""
    return list(_load_themes())


def is_valid_theme(theme_type: str) -> bool:
    return theme_type in _load_themes()


def get_theme(theme_type: str) -> MissionTheme:
    """
    Look up a theme by id.

    Raises:
        KeyError: If the theme is not registered
    """
    themes = _load_themes()
    if theme_type not in themes:
        raise KeyError(f"Unknown theme: {theme_type}")
    return themes[theme_type]


def get_all_themes() -> List[MissionTheme]:
    return list(_load_themes().values())


def get_max_clue_count(theme_type: str) -> int:
    """Number of distinct clue templates the theme offers."""
    return len(get_theme(theme_type).clue_templates)


__all__ = [
    "get_all_themes",
    "get_max_clue_count",
    "get_theme",
    "get_theme_types",
    "is_valid_theme",
]
