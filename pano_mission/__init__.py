"""
Procedural hidden-clue missions over a photo-sphere network.

Scan the panoramas around a coordinate, pick interesting spots to hide
clues and bind themed content to them as a reproducible mission.
"""

from .clue_placement import find_optimal_clue_spots, get_placement_stats
from .graph_builder import (
    CancelToken,
    GraphBuildCancelled,
    GraphBuilder,
    StartPanoramaUnavailableError,
)
from .mission_generator import (
    GenerationErrorKind,
    MissionGenerationRequest,
    MissionGenerationResult,
    generate_mission,
    to_hidden_clue_mission,
)
from .seeded_random import SeededRandom, generate_seed

__all__ = [
    "CancelToken",
    "GenerationErrorKind",
    "GraphBuildCancelled",
    "GraphBuilder",
    "MissionGenerationRequest",
    "MissionGenerationResult",
    "SeededRandom",
    "StartPanoramaUnavailableError",
    "find_optimal_clue_spots",
    "generate_mission",
    "generate_seed",
    "get_placement_stats",
    "to_hidden_clue_mission",
]
