"""
Pydantic models for mission generation payloads.

Covers the theme template data, the generated mission artifact and the
inbound generation request. Models dump to camelCase plain data.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

Difficulty = Literal["easy", "medium", "hard", "extreme"]
SpotType = Literal["dead_end", "intersection", "corner", "far_point", "hidden_alley"]

DIFFICULTIES: Tuple[str, ...] = ("easy", "medium", "hard", "extreme")

Latitude = Annotated[float, Field(ge=-90, le=90)]
Longitude = Annotated[float, Field(ge=-180, le=180)]
Coordinates = Tuple[Latitude, Longitude]
Heading = Annotated[float, Field(ge=0, lt=360)]
PanoId = Annotated[str, Field(min_length=1, max_length=100)]
TemplateTexts = Annotated[List[str], Field(min_length=1, max_length=10)]

HEX_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"
SEMVER_PATTERN = r"^\d+\.\d+\.\d+$"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    def to_payload(self) -> dict:
        """Plain JSON-compatible data with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class ClueTemplate(_CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    icon: str = Field(..., min_length=1, max_length=10)
    name_templates: TemplateTexts
    story_context_templates: TemplateTexts
    hint_templates: TemplateTexts
    base_xp: int = Field(..., ge=10, le=200)


class MissionTheme(_CamelModel):
    type: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    briefing: str = Field(..., min_length=1, max_length=2000)
    icon: str = Field(..., min_length=1, max_length=10)
    color: str = Field(..., pattern=HEX_COLOR_PATTERN)
    clue_templates: List[ClueTemplate] = Field(..., min_length=1)


class GeneratedClue(_CamelModel):
    id: str = Field(..., min_length=1)
    pano_id: PanoId
    reveal_heading: Heading
    cone_degrees: float = Field(..., ge=10, le=45)
    dwell_time: float = Field(..., ge=1, le=10)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    icon: str = Field(..., min_length=1, max_length=10)
    story_context: str = Field(..., min_length=1, max_length=500)
    xp_reward: int = Field(..., ge=10, le=500)
    hint_text: str = Field(..., min_length=1, max_length=200)
    scanner_hint: str = Field(..., min_length=1, max_length=200)
    spot_type: SpotType
    distance_from_start: int = Field(..., ge=0)


class GeneratedMission(_CamelModel):
    id: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    briefing: str = Field(..., min_length=1, max_length=2000)
    start_coordinates: Coordinates
    start_pano_id: PanoId
    start_heading: Heading
    allow_navigation: bool
    clues: List[GeneratedClue] = Field(..., min_length=3, max_length=7)
    required_clues: int = Field(..., ge=1, le=7)
    time_limit: int = Field(..., ge=60, le=3600)
    xp_reward: int = Field(..., ge=50, le=2000)
    speed_bonus_per_second: float = Field(..., ge=0, le=5)
    location: str = Field(..., min_length=1, max_length=200)
    difficulty: Difficulty
    icon: str = Field(..., min_length=1, max_length=10)
    color: str = Field(..., pattern=HEX_COLOR_PATTERN)
    generated_at: datetime
    generator_version: str = Field(..., pattern=SEMVER_PATTERN)
    seed: Optional[str] = None


class PanoLinkModel(_CamelModel):
    target_pano_id: PanoId
    heading: Heading
    description: Optional[str] = None


class PanoNodeModel(_CamelModel):
    pano_id: PanoId
    lat: float
    lng: float
    links: List[PanoLinkModel]
    distance_from_start: int = Field(..., ge=0)
    is_dead_end: bool
    is_intersection: bool
    is_corner: bool
    description: Optional[str] = None


class GraphStatsModel(_CamelModel):
    total_nodes: int = Field(..., ge=1)
    dead_ends: int = Field(..., ge=0)
    intersections: int = Field(..., ge=0)
    corners: int = Field(..., ge=0)
    max_depth: int = Field(..., ge=0)
    avg_links: float = Field(..., ge=0)


class SerializedGraph(_CamelModel):
    nodes: List[Tuple[str, PanoNodeModel]] = Field(..., min_length=1)
    start_pano_id: PanoId
    start_coordinates: Coordinates
    max_depth: int = Field(..., ge=1)
    stats: GraphStatsModel


class GenerateMissionRequest(_CamelModel):
    """Inbound request for one mission.

    ``theme`` is kept a free string so that an unknown theme surfaces as a
    generator result listing the valid themes rather than a schema error.
    """

    coordinates: Coordinates
    theme: str = Field(..., min_length=1, max_length=50)
    clue_count: int = Field(..., ge=3, le=7)
    location_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    difficulty: Difficulty = "hard"
    graph: SerializedGraph
    save: bool = False
    seed: Optional[str] = Field(default=None, max_length=50)


def format_validation_error(error: ValidationError) -> str:
    """Render pydantic errors as ``path: message`` pairs joined by ``; ``."""
    parts = []
    for issue in error.errors():
        path = ".".join(str(part) for part in issue["loc"])
        parts.append(f"{path}: {issue['msg']}")
    return "; ".join(parts)


def safe_validate_generated_mission(
    data: Any,
) -> Tuple[Optional[GeneratedMission], Optional[str]]:
    """Validate a mission payload without raising.

    Returns:
        ``(mission, None)`` on success, ``(None, error_text)`` otherwise
    """
    try:
        return GeneratedMission.model_validate(data), None
    except ValidationError as exc:
        return None, format_validation_error(exc)


def safe_validate_generate_request(
    data: Any,
) -> Tuple[Optional[GenerateMissionRequest], Optional[str]]:
    try:
        return GenerateMissionRequest.model_validate(data), None
    except ValidationError as exc:
        return None, format_validation_error(exc)


__all__ = [
    "DIFFICULTIES",
    "ClueTemplate",
    "Difficulty",
    "GenerateMissionRequest",
    "GeneratedClue",
    "GeneratedMission",
    "GraphStatsModel",
    "MissionTheme",
    "PanoLinkModel",
    "PanoNodeModel",
    "SerializedGraph",
    "SpotType",
    "format_validation_error",
    "safe_validate_generate_request",
    "safe_validate_generated_mission",
]
