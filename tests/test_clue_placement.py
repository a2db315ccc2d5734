"""
Tests for clue placement.

Tests adaptive thresholds, category precedence, headings, difficulty,
scoring and the distributed selection of spots.
"""

import itertools
import logging

import pytest

from pano_mission.clue_placement import (
    CATEGORY_RULES,
    DepthThresholds,
    calculate_difficulty,
    calculate_optimal_heading,
    classify_node,
    effective_min_distance,
    find_all_potential_spots,
    find_optimal_clue_spots,
    get_placement_stats,
    score_spot,
    select_distributed_spots,
)
from pano_mission.config import PlacementConfig
from pano_mission.types import ClueSpot, SpotCategory
from tests.test_fixtures import assert_angle_close, make_graph, make_node, street_graph


def spot(pano_id, depth, category=SpotCategory.HIDDEN_ALLEY, difficulty=3):
    return ClueSpot(
        pano_id=pano_id,
        category=category,
        lat=0.0,
        lng=0.0,
        heading=0.0,
        difficulty=difficulty,
        distance_from_start=depth,
        reason="test",
    )


class TestDepthThresholds:
    def test_scale_with_graph_depth(self):
        thresholds = DepthThresholds.for_graph(20)
        assert thresholds == DepthThresholds(
            dead_end=3, corner=4, intersection=5, far_point=16, hidden_alley=10
        )

    def test_floors_apply_to_shallow_graphs(self):
        thresholds = DepthThresholds.for_graph(4)
        assert thresholds == DepthThresholds(
            dead_end=2, corner=3, intersection=3, far_point=4, hidden_alley=4
        )


class TestClassifyNode:
    """Category rules and their precedence."""

    thresholds = DepthThresholds.for_graph(20)

    def test_rule_order(self):
        assert [category for category, _ in CATEGORY_RULES] == [
            SpotCategory.DEAD_END,
            SpotCategory.CORNER,
            SpotCategory.INTERSECTION,
            SpotCategory.FAR_POINT,
            SpotCategory.HIDDEN_ALLEY,
        ]

    def test_start_node_never_qualifies(self):
        node = make_node("start", 0, [("a", 0.0)])
        assert classify_node(node, DepthThresholds.for_graph(0)) is None

    def test_deep_dead_end_beats_far_point(self):
        node = make_node("x", 18, [("y", 90.0)])
        assert classify_node(node, self.thresholds) is SpotCategory.DEAD_END

    def test_deep_corner_beats_far_point(self):
        node = make_node("x", 17, [("y", 180.0), ("z", 90.0)], is_corner=True)
        assert classify_node(node, self.thresholds) is SpotCategory.CORNER

    def test_far_point_before_hidden_alley(self):
        node = make_node("x", 16, [("y", 180.0), ("z", 0.0)])
        assert classify_node(node, self.thresholds) is SpotCategory.FAR_POINT

    def test_hidden_alley(self):
        node = make_node("x", 10, [("y", 180.0), ("z", 0.0)])
        assert classify_node(node, self.thresholds) is SpotCategory.HIDDEN_ALLEY

    def test_shallow_dead_end_is_unremarkable(self):
        node = make_node("x", 2, [("y", 90.0)])
        assert classify_node(node, self.thresholds) is None

    def test_busy_node_is_not_hidden_alley(self):
        node = make_node("x", 12, [("a", 0.0), ("b", 90.0), ("c", 180.0)])
        assert classify_node(node, self.thresholds) is SpotCategory.INTERSECTION

    def test_shallow_graph_overlap_resolved_by_order(self):
        node = make_node("x", 4, [("y", 0.0)])
        assert (
            classify_node(node, DepthThresholds.for_graph(4)) is SpotCategory.DEAD_END
        )


class TestOptimalHeading:
    def test_dead_end_looks_back(self):
        node = make_node("x", 5, [("y", 90.0)])
        assert_angle_close(calculate_optimal_heading(node, SpotCategory.DEAD_END), 270.0)

    def test_corner_is_perpendicular_to_bend(self):
        node = make_node("x", 5, [("y", 180.0), ("z", 90.0)], is_corner=True)
        assert_angle_close(calculate_optimal_heading(node, SpotCategory.CORNER), 225.0)

    def test_intersection_points_into_widest_gap(self):
        node = make_node("x", 5, [("a", 0.0), ("b", 90.0), ("c", 180.0)])
        assert_angle_close(
            calculate_optimal_heading(node, SpotCategory.INTERSECTION), 270.0
        )

    def test_far_point_is_deterministic(self):
        node = make_node("x", 16, [("y", 180.0), ("z", 0.0)])
        first = calculate_optimal_heading(node, SpotCategory.FAR_POINT)
        assert first == calculate_optimal_heading(node, SpotCategory.FAR_POINT)
        assert_angle_close(first, 90.0)

    def test_node_without_links(self):
        node = make_node("x", 16, [])
        assert calculate_optimal_heading(node, SpotCategory.HIDDEN_ALLEY) == 0.0


class TestDifficulty:
    @pytest.mark.parametrize(
        "depth,category,expected",
        [
            (18, SpotCategory.DEAD_END, 5),
            (4, SpotCategory.INTERSECTION, 1),
            (1, SpotCategory.FAR_POINT, 5),
            (10, SpotCategory.CORNER, 3),
            (10, SpotCategory.HIDDEN_ALLEY, 4),
        ],
    )
    def test_difficulty(self, depth, category, expected):
        assert calculate_difficulty(depth, 20, category) == expected

    def test_zero_depth_graph(self):
        assert calculate_difficulty(0, 0, SpotCategory.CORNER) == 1


class TestScoring:
    def test_score_components(self):
        dead_end = spot("d", 10, SpotCategory.DEAD_END, difficulty=4)
        assert score_spot(dead_end, 20) == pytest.approx(15 + 40 + 20)
        assert score_spot(dead_end, 20, prioritize_dead_ends=True) == pytest.approx(95)

    def test_rounded_to_one_decimal(self):
        assert score_spot(spot("a", 1, SpotCategory.CORNER, 1), 3) == 40.0


class TestEffectiveMinDistance:
    def test_shrinks_to_fit_span(self):
        assert effective_min_distance([5, 9], 5, 3) == 1
        assert effective_min_distance([2, 20], 3, 3) == 3
        assert effective_min_distance([2, 20], 7, 6) == 3

    def test_never_below_one(self):
        assert effective_min_distance([4, 4, 4], 3, 3) == 1


class TestSelection:
    """Distributed selection of spots."""

    @pytest.mark.parametrize("count", [3, 5, 7])
    def test_count_and_separation(self, count):
        graph = street_graph(30)
        spots = find_all_potential_spots(graph)
        options = PlacementConfig(clue_count=count, min_distance=3)
        selected = select_distributed_spots(spots, graph, options)

        assert len(selected) == count
        assert len({s.pano_id for s in selected}) == count
        minimum = effective_min_distance(
            [s.distance_from_start for s in spots], count, 3
        )
        for a, b in itertools.combinations(selected, 2):
            assert abs(a.distance_from_start - b.distance_from_start) >= minimum

    def test_returns_all_when_too_few(self):
        graph = street_graph(12)
        spots = find_all_potential_spots(graph)
        selected = select_distributed_spots(
            spots, graph, PlacementConfig(clue_count=7)
        )
        assert len(selected) == len(spots) == 6

    def test_output_sorted_by_depth(self):
        graph = street_graph(30)
        selected = find_optimal_clue_spots(graph, PlacementConfig(clue_count=5))
        keys = [(s.distance_from_start, s.pano_id) for s in selected]
        assert keys == sorted(keys)

    def test_excludes_spots_close_to_start(self):
        graph = street_graph(30)
        spots = [spot("near", 2), spot("mid", 12), spot("far", 25)]
        selected = select_distributed_spots(
            spots, graph, PlacementConfig(clue_count=3, min_first_clue_depth=5)
        )
        assert [s.pano_id for s in selected] == ["mid", "far"]

    def test_falls_back_when_everything_is_too_shallow(self, caplog):
        graph = street_graph(30)
        spots = [spot("a", 3), spot("b", 4)]
        with caplog.at_level(logging.WARNING, logger="pano_mission.clue_placement"):
            selected = select_distributed_spots(
                spots, graph, PlacementConfig(clue_count=3, min_first_clue_depth=10)
            )
        assert [s.pano_id for s in selected] == ["a", "b"]
        assert "falling back" in caplog.text

    def test_empty_input(self):
        graph = street_graph(5)
        assert select_distributed_spots([], graph, PlacementConfig()) == []

    def test_prefers_high_scores(self):
        graph = street_graph(30)
        spots = [
            spot("weak", 20, SpotCategory.INTERSECTION, difficulty=1),
            spot("strong", 20, SpotCategory.DEAD_END, difficulty=5),
            spot("other", 10, SpotCategory.HIDDEN_ALLEY, difficulty=3),
        ]
        selected = select_distributed_spots(
            spots, graph, PlacementConfig(clue_count=2, min_distance=1)
        )
        assert "strong" in {s.pano_id for s in selected}
        assert "weak" not in {s.pano_id for s in selected}


class TestFindOptimalClueSpots:
    def test_includes_deep_dead_end(self, graph_for_mission):
        selected = find_optimal_clue_spots(
            graph_for_mission, PlacementConfig(clue_count=3)
        )

        assert len(selected) == 3
        dead_ends = [s for s in selected if s.category is SpotCategory.DEAD_END]
        assert [s.pano_id for s in dead_ends] == ["d18"]
        assert dead_ends[0].distance_from_start == 18
        assert_angle_close(dead_ends[0].heading, 270.0)

    def test_graph_without_candidates(self):
        graph = make_graph([make_node("only", 0, [])])
        assert find_optimal_clue_spots(graph, PlacementConfig()) == []

    def test_deterministic(self, graph_for_mission):
        options = PlacementConfig(clue_count=5)
        assert find_optimal_clue_spots(
            graph_for_mission, options
        ) == find_optimal_clue_spots(graph_for_mission, options)


def test_placement_stats(graph_for_mission):
    stats = get_placement_stats(graph_for_mission)

    assert stats["totalSpots"] == 23
    assert stats["byType"] == {
        "dead_end": 1,
        "intersection": 1,
        "corner": 0,
        "far_point": 9,
        "hidden_alley": 12,
    }
    assert stats["maxDistance"] == 20
    assert 1 <= stats["avgDifficulty"] <= 5
