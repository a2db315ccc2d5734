"""
Clue placement on a scanned panorama graph.

Picks geometrically interesting panoramas to host clues:

- dead ends (the player has to walk in on purpose)
- corners (hidden behind a turn)
- intersections (easy to walk past)
- far points (reward for exploring)
- hidden alleys (quiet side paths)

Thresholds scale with the depth of the scanned graph so that small and
large scans both yield spots spread across their depth range.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from .config import PlacementConfig
from .geometry_utils import GeometryUtils
from .types import ClueSpot, PanoNode, PanoramaGraph, SpotCategory

logger = logging.getLogger(__name__)

# (ratio of graph depth, absolute floor) per category
_DEPTH_RULES: Dict[SpotCategory, Tuple[float, int]] = {
    SpotCategory.DEAD_END: (0.15, 2),
    SpotCategory.CORNER: (0.20, 3),
    SpotCategory.INTERSECTION: (0.25, 3),
    SpotCategory.FAR_POINT: (0.80, 1),
    SpotCategory.HIDDEN_ALLEY: (0.50, 4),
}

SCORE_BONUS: Dict[SpotCategory, float] = {
    SpotCategory.DEAD_END: 40,
    SpotCategory.HIDDEN_ALLEY: 35,
    SpotCategory.FAR_POINT: 30,
    SpotCategory.CORNER: 25,
    SpotCategory.INTERSECTION: 15,
}

DEPTH_SCORE_WEIGHT = 30.0
DEAD_END_PRIORITY_BONUS = 20.0
DIFFICULTY_SCORE_WEIGHT = 5.0

# Spots shallower than this share of the graph depth are too close to start.
MIN_START_DEPTH_RATIO = 0.1

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5

_REASONS: Dict[SpotCategory, str] = {
    SpotCategory.DEAD_END: "Dead end at depth {depth}: ideal for a hidden clue",
    SpotCategory.INTERSECTION: "Intersection at depth {depth}: easy to walk past",
    SpotCategory.CORNER: "Corner at depth {depth}: hidden behind the turn",
    SpotCategory.FAR_POINT: "Far point ({depth} steps): hard to reach",
    SpotCategory.HIDDEN_ALLEY: "Side alley at depth {depth}: an inconspicuous path",
}


@dataclass(frozen=True)
class DepthThresholds:
    """Minimum depth at which each category may be assigned."""

    dead_end: int
    corner: int
    intersection: int
    far_point: int
    hidden_alley: int

    @classmethod
    def for_graph(cls, max_depth: int) -> "DepthThresholds":
        values = {
            category.value: max(floor, math.ceil(ratio * max_depth))
            for category, (ratio, floor) in _DEPTH_RULES.items()
        }
        return cls(**values)


CategoryPredicate = Callable[[PanoNode, DepthThresholds], bool]

# Evaluated in order; the first matching rule decides the category.
CATEGORY_RULES: List[Tuple[SpotCategory, CategoryPredicate]] = [
    (
        SpotCategory.DEAD_END,
        lambda node, t: node.is_dead_end and node.distance_from_start >= t.dead_end,
    ),
    (
        SpotCategory.CORNER,
        lambda node, t: node.is_corner and node.distance_from_start >= t.corner,
    ),
    (
        SpotCategory.INTERSECTION,
        lambda node, t: node.is_intersection
        and node.distance_from_start >= t.intersection,
    ),
    (
        SpotCategory.FAR_POINT,
        lambda node, t: node.distance_from_start >= t.far_point,
    ),
    (
        SpotCategory.HIDDEN_ALLEY,
        lambda node, t: len(node.links) <= 2
        and node.distance_from_start >= t.hidden_alley,
    ),
]


def classify_node(
    node: PanoNode, thresholds: DepthThresholds
) -> Optional[SpotCategory]:
    """Return the first matching category, or None if the node is unremarkable."""

    if node.distance_from_start == 0:
        return None
    for category, predicate in CATEGORY_RULES:
        if predicate(node, thresholds):
            return category
    return None


def calculate_optimal_heading(node: PanoNode, category: SpotCategory) -> float:
    """Direction the player must face to see the clue at this node."""

    headings = node.link_headings
    if category is SpotCategory.DEAD_END and len(headings) == 1:
        # Look back the way you came in.
        return GeometryUtils.normalize_heading(headings[0] + 180.0)

    if category is SpotCategory.CORNER and len(headings) == 2:
        # Perpendicular to the bend.
        middle = GeometryUtils.average_heading(headings[0], headings[1])
        return GeometryUtils.normalize_heading(middle + 90.0)

    gap_heading = GeometryUtils.widest_gap_heading(headings)
    return gap_heading if gap_heading is not None else 0.0


def calculate_difficulty(depth: int, max_depth: int, category: SpotCategory) -> int:
    """Difficulty 1-5 from normalized depth plus a category adjustment."""

    if category is SpotCategory.FAR_POINT:
        return MAX_DIFFICULTY

    normalized = depth / max_depth if max_depth > 0 else 0.0
    difficulty = math.ceil(normalized * MAX_DIFFICULTY)

    if category in (SpotCategory.DEAD_END, SpotCategory.HIDDEN_ALLEY):
        difficulty += 1
    elif category is SpotCategory.INTERSECTION:
        difficulty -= 1

    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, difficulty))


def find_all_potential_spots(graph: PanoramaGraph) -> List[ClueSpot]:
    """Enumerate every node that qualifies for a clue category."""

    if not graph.nodes:
        logger.warning("Empty graph provided to clue placement")
        return []

    thresholds = DepthThresholds.for_graph(graph.max_depth)
    spots: List[ClueSpot] = []
    for node in graph.nodes.values():
        category = classify_node(node, thresholds)
        if category is None:
            continue
        depth = node.distance_from_start
        spots.append(
            ClueSpot(
                pano_id=node.pano_id,
                category=category,
                lat=node.lat,
                lng=node.lng,
                heading=calculate_optimal_heading(node, category),
                difficulty=calculate_difficulty(depth, graph.max_depth, category),
                distance_from_start=depth,
                reason=_REASONS[category].format(depth=depth),
                description=node.description,
            )
        )
    return spots


def score_spot(
    spot: ClueSpot, max_depth: int, prioritize_dead_ends: bool = False
) -> float:
    """Rank a spot by depth, category and difficulty."""

    normalized = spot.distance_from_start / max_depth if max_depth > 0 else 0.0
    score = normalized * DEPTH_SCORE_WEIGHT
    score += SCORE_BONUS[spot.category]
    if prioritize_dead_ends and spot.category is SpotCategory.DEAD_END:
        score += DEAD_END_PRIORITY_BONUS
    score += spot.difficulty * DIFFICULTY_SCORE_WEIGHT
    return round(score, 1)


def _depth_order(spots: Sequence[ClueSpot]) -> List[ClueSpot]:
    return sorted(spots, key=lambda s: (s.distance_from_start, s.pano_id))


def effective_min_distance(
    depths: Sequence[int], count: int, requested: int
) -> int:
    """Shrink the requested separation so ``count`` spots fit the depth span."""

    if not depths or count <= 1:
        return max(0, requested)
    span = max(depths) - min(depths)
    return max(1, min(requested, span // (count - 1)))


def select_distributed_spots(
    spots: Sequence[ClueSpot],
    graph: PanoramaGraph,
    options: PlacementConfig,
) -> List[ClueSpot]:
    """
    Pick ``options.clue_count`` spots balancing score against depth coverage.

    Returns:
        Selected spots ordered from shallow to deep
    """
    count = options.clue_count
    if not spots:
        logger.warning("No spots provided for selection")
        return []

    min_start_depth = max(
        options.min_first_clue_depth,
        int(round(graph.max_depth * MIN_START_DEPTH_RATIO)),
    )
    eligible = [s for s in spots if s.distance_from_start >= min_start_depth]
    if not eligible:
        logger.warning(
            "No spots at depth >= %d, falling back to all %d spots",
            min_start_depth,
            len(spots),
        )
        eligible = list(spots)

    if len(eligible) <= count:
        return _depth_order(eligible)

    scored = sorted(
        eligible,
        key=lambda s: (
            -score_spot(s, graph.max_depth, options.prioritize_dead_ends),
            s.distance_from_start,
            s.pano_id,
        ),
    )

    depths = np.array([s.distance_from_start for s in eligible])
    min_distance = effective_min_distance(depths.tolist(), count, options.min_distance)
    zone_edges = np.linspace(depths.min(), depths.max() + 1, count + 1)

    selected: List[ClueSpot] = []
    used_ids: Set[str] = set()
    used_zones: Set[int] = set()

    def too_close(spot: ClueSpot) -> bool:
        return any(
            abs(chosen.distance_from_start - spot.distance_from_start) < min_distance
            for chosen in selected
        )

    def take(spot: ClueSpot) -> None:
        selected.append(spot)
        used_ids.add(spot.pano_id)

    # Pass 1: best spot per depth zone.
    for spot in scored:
        if len(selected) >= count:
            break
        zone = int(np.digitize(spot.distance_from_start, zone_edges)) - 1
        zone = min(max(zone, 0), count - 1)
        if spot.pano_id in used_ids or zone in used_zones or too_close(spot):
            continue
        take(spot)
        used_zones.add(zone)

    # Pass 2: best remaining spots that keep the separation.
    for spot in scored:
        if len(selected) >= count:
            break
        if spot.pano_id not in used_ids and not too_close(spot):
            take(spot)

    # Pass 3: fill any shortfall regardless of separation.
    for spot in scored:
        if len(selected) >= count:
            break
        if spot.pano_id not in used_ids:
            take(spot)

    return _depth_order(selected)


def find_optimal_clue_spots(
    graph: PanoramaGraph, options: PlacementConfig
) -> List[ClueSpot]:
    """Find the spots that should host the clues of a mission."""

    if not graph.nodes:
        logger.error("Cannot find clue spots in an empty graph")
        return []

    all_spots = find_all_potential_spots(graph)
    counts = _count_by_category(all_spots)
    logger.info(
        "Found %d potential spots (%s)",
        len(all_spots),
        ", ".join(f"{category.value}={n}" for category, n in counts.items()),
    )

    selected = select_distributed_spots(all_spots, graph, options)
    for index, spot in enumerate(selected, start=1):
        logger.debug(
            "  %d. %s at depth %d (difficulty %d)",
            index,
            spot.category.value,
            spot.distance_from_start,
            spot.difficulty,
        )
    return selected


def _count_by_category(spots: Sequence[ClueSpot]) -> Dict[SpotCategory, int]:
    counts = {category: 0 for category in SpotCategory}
    for spot in spots:
        counts[spot.category] += 1
    return counts


def get_placement_stats(graph: PanoramaGraph) -> Dict[str, object]:
    """Summarize the candidate spots of a graph."""

    spots = find_all_potential_spots(graph)
    difficulties = [spot.difficulty for spot in spots]
    return {
        "totalSpots": len(spots),
        "byType": {
            category.value: n for category, n in _count_by_category(spots).items()
        },
        "avgDifficulty": round(float(np.mean(difficulties)), 1) if spots else 0.0,
        "maxDistance": max((s.distance_from_start for s in spots), default=0),
    }


__all__ = [
    "CATEGORY_RULES",
    "DepthThresholds",
    "calculate_difficulty",
    "calculate_optimal_heading",
    "classify_node",
    "effective_min_distance",
    "find_all_potential_spots",
    "find_optimal_clue_spots",
    "get_placement_stats",
    "score_spot",
    "select_distributed_spots",
]
