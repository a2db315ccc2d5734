"""
Mission generator.

Turns a scanned panorama graph into a themed hidden-clue mission:

1. Validate theme, difficulty and graph size
2. Place clues on interesting spots
3. Bind theme templates to spots with the seeded random source
4. Derive timing, required clue count and rewards from difficulty
5. Validate the assembled mission against the output schema

Expected failures (unknown theme, graph too small, not enough spots) are
returned as unsuccessful results; they never raise.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .clue_placement import find_optimal_clue_spots
from .config import PlacementConfig
from .geometry_utils import GeometryUtils, round_to
from .schemas import (
    DIFFICULTIES,
    ClueTemplate,
    GenerateMissionRequest,
    GeneratedMission,
    safe_validate_generated_mission,
)
from .seeded_random import SeededRandom, generate_seed
from .themes import get_max_clue_count, get_theme, get_theme_types, is_valid_theme
from .types import ClueSpot, PanoramaGraph

logger = logging.getLogger(__name__)

GENERATOR_VERSION = "3.0.0"

MIN_CLUE_COUNT = 3
MAX_CLUE_COUNT = 7

MIN_GRAPH_NODES = 10
MIN_GRAPH_DEPTH = 4

TIME_LIMIT_BY_DIFFICULTY: Dict[str, int] = {
    "easy": 900,
    "medium": 720,
    "hard": 600,
    "extreme": 480,
}

REQUIRED_CLUES_RATIO_BY_DIFFICULTY: Dict[str, float] = {
    "easy": 0.6,
    "medium": 0.7,
    "hard": 0.8,
    "extreme": 0.9,
}

XP_MULTIPLIER_BY_DIFFICULTY: Dict[str, float] = {
    "easy": 0.8,
    "medium": 1.0,
    "hard": 1.2,
    "extreme": 1.5,
}

MIN_MISSION_XP = 50
MAX_MISSION_XP = 2000
MAX_DEPTH_XP_BONUS = 200

SPEED_BONUS_PER_SECOND = 0.5
DEFAULT_LOCATION = "Unknown location"

HEADING_PRECISION = 2
COORDINATE_PRECISION = 6


class GenerationErrorKind(str, Enum):
    UNKNOWN_THEME = "unknown_theme"
    INVALID_DIFFICULTY = "invalid_difficulty"
    EMPTY_GRAPH = "empty_graph"
    GRAPH_TOO_SMALL = "graph_too_small"
    GRAPH_TOO_SHALLOW = "graph_too_shallow"
    INSUFFICIENT_SPOTS = "insufficient_spots"
    SCHEMA_VIOLATION = "schema_violation"


@dataclass
class MissionGenerationRequest:
    """What the caller wants generated."""

    theme: str
    clue_count: int
    difficulty: str = "hard"
    location_name: Optional[str] = None

    @classmethod
    def from_model(cls, request: GenerateMissionRequest) -> "MissionGenerationRequest":
        return cls(
            theme=request.theme,
            clue_count=request.clue_count,
            difficulty=request.difficulty,
            location_name=request.location_name,
        )


@dataclass
class MissionGenerationResult:
    success: bool
    seed: str
    generation_time_ms: float
    mission: Optional[GeneratedMission] = None
    spots: List[ClueSpot] = field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[GenerationErrorKind] = None

    @property
    def is_internal_error(self) -> bool:
        """True when the failure points at a generator defect, not bad input."""
        return self.error_kind is GenerationErrorKind.SCHEMA_VIOLATION


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def calculate_clue_params(difficulty: int, max_depth: int) -> Dict[str, float]:
    """
    Derive view cone and dwell time for a clue.

    Harder clues get a narrower cone and a longer dwell. Deep graphs relax
    both slightly since reaching the spot is already a challenge.
    """
    depth_relief = min(4, max_depth // 10)
    cone_degrees = max(12, 30 - difficulty * 4) + depth_relief
    dwell_time = round_to(2.0 + difficulty * 0.4 - depth_relief * 0.1, 1)
    return {"cone_degrees": cone_degrees, "dwell_time": dwell_time}


def calculate_clue_xp(base_xp: int, difficulty: int) -> int:
    return int(round_to(base_xp * (1 + (difficulty - 1) * 0.2), 0))


def calculate_mission_xp(clue_xp: List[int], difficulty: str, max_depth: int) -> int:
    multiplier = XP_MULTIPLIER_BY_DIFFICULTY[difficulty]
    depth_bonus = min(MAX_DEPTH_XP_BONUS, 5 * max_depth)
    reward = int(round_to(0.5 * sum(clue_xp) * multiplier + depth_bonus, 0))
    return max(MIN_MISSION_XP, min(MAX_MISSION_XP, reward))


def placement_min_distance(max_depth: int) -> int:
    """Depth separation between clues, scaled to the graph depth."""
    return max(2, min(6, int(round_to(max_depth / 8, 0))))


def generate_mission_id(seed: str, rng: SeededRandom) -> str:
    digest = hashlib.sha1(seed.encode("utf-8")).hexdigest()[:10]
    return f"gen_{digest}_{rng.randint(100000, 999999)}"


def _build_clue(
    spot: ClueSpot,
    index: int,
    template: ClueTemplate,
    theme_type: str,
    max_depth: int,
    rng: SeededRandom,
) -> Dict[str, Any]:
    params = calculate_clue_params(spot.difficulty, max_depth)
    clue: Dict[str, Any] = {
        "id": f"{theme_type}_clue_{index}_{spot.pano_id[:8]}",
        "panoId": spot.pano_id,
        "revealHeading": GeometryUtils.normalize_heading(
            round_to(spot.heading, HEADING_PRECISION)
        ),
        "coneDegrees": params["cone_degrees"],
        "dwellTime": params["dwell_time"],
        "name": rng.choice(template.name_templates),
        "icon": template.icon,
        "storyContext": rng.choice(template.story_context_templates),
        "xpReward": calculate_clue_xp(template.base_xp, spot.difficulty),
        "hintText": rng.choice(template.hint_templates),
        "scannerHint": f'Detected an object of type "{template.name}".',
        "spotType": spot.category.value,
        "distanceFromStart": spot.distance_from_start,
    }
    if spot.description:
        clue["description"] = spot.description
    return clue


def generate_mission(
    graph: PanoramaGraph,
    request: MissionGenerationRequest,
    seed: Optional[str] = None,
    *,
    seed_factory: Callable[[], str] = generate_seed,
    now: Callable[[], datetime] = utc_now,
) -> MissionGenerationResult:
    """
    Generate a mission for ``graph``.

    Args:
        graph: Scanned panorama graph
        request: Theme, clue count, difficulty and location label
        seed: Seed for reproducible output; synthesized when omitted
        seed_factory: Produces the seed when none is given
        now: Clock used for the ``generatedAt`` timestamp

    Returns:
        MissionGenerationResult carrying either the mission or an error
    """
    started = time.perf_counter()
    rng = SeededRandom(seed, seed_factory=seed_factory)
    actual_seed = rng.seed

    def fail(kind: GenerationErrorKind, message: str) -> MissionGenerationResult:
        return MissionGenerationResult(
            success=False,
            seed=actual_seed,
            generation_time_ms=(time.perf_counter() - started) * 1000,
            error=message,
            error_kind=kind,
        )

    if not is_valid_theme(request.theme):
        return fail(
            GenerationErrorKind.UNKNOWN_THEME,
            f'Unknown mission theme "{request.theme}". '
            f"Available: {', '.join(get_theme_types())}",
        )

    difficulty = request.difficulty or "hard"
    if difficulty not in TIME_LIMIT_BY_DIFFICULTY:
        return fail(
            GenerationErrorKind.INVALID_DIFFICULTY,
            f'Unknown difficulty "{difficulty}". Available: {", ".join(DIFFICULTIES)}',
        )

    if not graph.nodes:
        return fail(
            GenerationErrorKind.EMPTY_GRAPH,
            "The panorama graph is empty. Run a scan first.",
        )

    if len(graph.nodes) < MIN_GRAPH_NODES:
        return fail(
            GenerationErrorKind.GRAPH_TOO_SMALL,
            f"The panorama graph has {len(graph.nodes)} nodes, at least "
            f"{MIN_GRAPH_NODES} are needed. Scan more panoramas or choose "
            "another location.",
        )

    if graph.max_depth < MIN_GRAPH_DEPTH:
        return fail(
            GenerationErrorKind.GRAPH_TOO_SHALLOW,
            f"The panorama graph is only {graph.max_depth} steps deep, at least "
            f"{MIN_GRAPH_DEPTH} are needed. Increase the scan depth.",
        )

    theme = get_theme(request.theme)
    max_theme_clues = get_max_clue_count(request.theme)
    clue_count = min(
        max(MIN_CLUE_COUNT, request.clue_count), MAX_CLUE_COUNT, max_theme_clues
    )
    if clue_count != request.clue_count:
        logger.warning(
            "Requested %d clues for theme %s, using %d "
            "(allowed %d-%d, theme has %d templates)",
            request.clue_count,
            request.theme,
            clue_count,
            MIN_CLUE_COUNT,
            MAX_CLUE_COUNT,
            max_theme_clues,
        )

    spots = find_optimal_clue_spots(
        graph,
        PlacementConfig(
            clue_count=clue_count,
            min_distance=placement_min_distance(graph.max_depth),
            prioritize_dead_ends=True,
            min_first_clue_depth=2,
        ),
    )
    if len(spots) < clue_count:
        return fail(
            GenerationErrorKind.INSUFFICIENT_SPOTS,
            f"Not enough interesting spots: found {len(spots)}, need {clue_count}. "
            "Increase the scan depth or choose another location.",
        )

    templates = rng.shuffle(theme.clue_templates)
    clues = [
        _build_clue(
            spot,
            index,
            templates[index % len(templates)],
            request.theme,
            graph.max_depth,
            rng,
        )
        for index, spot in enumerate(spots)
    ]

    ratio = REQUIRED_CLUES_RATIO_BY_DIFFICULTY[difficulty]
    payload: Dict[str, Any] = {
        "id": generate_mission_id(actual_seed, rng),
        "title": theme.title,
        "description": theme.description,
        "briefing": theme.briefing,
        "startCoordinates": [
            round_to(graph.start_coordinates[0], COORDINATE_PRECISION),
            round_to(graph.start_coordinates[1], COORDINATE_PRECISION),
        ],
        "startPanoId": graph.start_pano_id,
        "startHeading": 0,
        "allowNavigation": True,
        "clues": clues,
        "requiredClues": math.ceil(clue_count * ratio),
        "timeLimit": TIME_LIMIT_BY_DIFFICULTY[difficulty],
        "xpReward": calculate_mission_xp(
            [clue["xpReward"] for clue in clues], difficulty, graph.max_depth
        ),
        "speedBonusPerSecond": SPEED_BONUS_PER_SECOND,
        "location": request.location_name or DEFAULT_LOCATION,
        "difficulty": difficulty,
        "icon": theme.icon,
        "color": theme.color,
        "generatedAt": now(),
        "generatorVersion": GENERATOR_VERSION,
        "seed": actual_seed,
    }

    mission, validation_error = safe_validate_generated_mission(payload)
    if mission is None:
        logger.error("Generated mission failed validation: %s", validation_error)
        return fail(
            GenerationErrorKind.SCHEMA_VIOLATION,
            f"Mission validation failed: {validation_error}",
        )

    logger.info(
        "Generated mission %r with %d clues (seed %s)",
        mission.title,
        len(mission.clues),
        actual_seed,
    )
    return MissionGenerationResult(
        success=True,
        seed=actual_seed,
        generation_time_ms=(time.perf_counter() - started) * 1000,
        mission=mission,
        spots=spots,
    )


_GENERATOR_ONLY_MISSION_KEYS = ("generatedAt", "generatorVersion", "seed")
_GENERATOR_ONLY_CLUE_KEYS = ("spotType", "distanceFromStart")


def to_hidden_clue_mission(mission: GeneratedMission) -> Dict[str, Any]:
    """Strip generator metadata, leaving what the gameplay runtime consumes."""

    payload = mission.to_payload()
    for key in _GENERATOR_ONLY_MISSION_KEYS:
        payload.pop(key, None)
    for clue in payload["clues"]:
        for key in _GENERATOR_ONLY_CLUE_KEYS:
            clue.pop(key, None)
    return payload


__all__ = [
    "GENERATOR_VERSION",
    "GenerationErrorKind",
    "MissionGenerationRequest",
    "MissionGenerationResult",
    "calculate_clue_params",
    "calculate_clue_xp",
    "calculate_mission_xp",
    "generate_mission",
    "placement_min_distance",
    "to_hidden_clue_mission",
    "utc_now",
]
