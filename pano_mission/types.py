"""Shared value types for the panorama graph and clue placement."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .geometry_utils import GeometryUtils

FloatPair = Tuple[float, float]


class SpotCategory(str, Enum):
    """Why a panorama is an interesting place to hide a clue."""

    DEAD_END = "dead_end"
    INTERSECTION = "intersection"
    CORNER = "corner"
    FAR_POINT = "far_point"
    HIDDEN_ALLEY = "hidden_alley"


@dataclass(frozen=True)
class PanoLink:
    """Directed link from one panorama to a neighbour."""

    target_pano_id: str
    heading: float
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "targetPanoId": self.target_pano_id,
            "heading": self.heading,
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PanoLink":
        return cls(
            target_pano_id=str(data["targetPanoId"]),
            heading=GeometryUtils.normalize_heading(float(data["heading"])),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class PanoNode:
    """A single panorama discovered during the scan.

    Topology flags are fixed at discovery time from the links the provider
    reported, so later pruning never changes a node's classification.
    """

    pano_id: str
    lat: float
    lng: float
    links: Tuple[PanoLink, ...]
    distance_from_start: int
    is_dead_end: bool
    is_intersection: bool
    is_corner: bool
    description: Optional[str] = None

    @property
    def link_headings(self) -> List[float]:
        return [link.heading for link in self.links]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "panoId": self.pano_id,
            "lat": self.lat,
            "lng": self.lng,
            "links": [link.to_dict() for link in self.links],
            "distanceFromStart": self.distance_from_start,
            "isDeadEnd": self.is_dead_end,
            "isIntersection": self.is_intersection,
            "isCorner": self.is_corner,
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PanoNode":
        return cls(
            pano_id=str(data["panoId"]),
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            links=tuple(PanoLink.from_dict(link) for link in data.get("links", [])),
            distance_from_start=int(data["distanceFromStart"]),
            is_dead_end=bool(data["isDeadEnd"]),
            is_intersection=bool(data["isIntersection"]),
            is_corner=bool(data["isCorner"]),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class GraphStats:
    """Aggregate topology counts for a scanned graph."""

    total_nodes: int = 0
    dead_ends: int = 0
    intersections: int = 0
    corners: int = 0
    max_depth: int = 0
    avg_links: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalNodes": self.total_nodes,
            "deadEnds": self.dead_ends,
            "intersections": self.intersections,
            "corners": self.corners,
            "maxDepth": self.max_depth,
            "avgLinks": self.avg_links,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GraphStats":
        return cls(
            total_nodes=int(data.get("totalNodes", 0)),
            dead_ends=int(data.get("deadEnds", 0)),
            intersections=int(data.get("intersections", 0)),
            corners=int(data.get("corners", 0)),
            max_depth=int(data.get("maxDepth", 0)),
            avg_links=float(data.get("avgLinks", 0.0)),
        )


@dataclass(frozen=True)
class PanoramaGraph:
    """Immutable result of a breadth-first scan.

    ``nodes`` preserves BFS discovery order, so ``distance_from_start`` is
    non-decreasing when iterating it. Consumers should still order by depth
    explicitly rather than rely on that.
    """

    nodes: Mapping[str, PanoNode]
    start_pano_id: str
    start_coordinates: FloatPair
    max_depth: int
    stats: GraphStats = field(default_factory=GraphStats)

    def __post_init__(self) -> None:
        if not isinstance(self.nodes, MappingProxyType):
            object.__setattr__(self, "nodes", MappingProxyType(dict(self.nodes)))

    def __len__(self) -> int:
        return len(self.nodes)

    def to_serializable(self) -> Dict[str, Any]:
        """Convert to the transport form exchanged with the generator."""

        return {
            "nodes": [[pano_id, node.to_dict()] for pano_id, node in self.nodes.items()],
            "startPanoId": self.start_pano_id,
            "startCoordinates": list(self.start_coordinates),
            "maxDepth": self.max_depth,
            "stats": self.stats.to_dict(),
        }

    @classmethod
    def from_serializable(cls, data: Mapping[str, Any]) -> "PanoramaGraph":
        """Restore a graph from its transport form."""

        entries: Sequence[Sequence[Any]] = data.get("nodes") or []
        nodes = {str(pano_id): PanoNode.from_dict(node) for pano_id, node in entries}
        lat, lng = data["startCoordinates"]
        return cls(
            nodes=nodes,
            start_pano_id=str(data["startPanoId"]),
            start_coordinates=(float(lat), float(lng)),
            max_depth=int(data["maxDepth"]),
            stats=GraphStats.from_dict(data.get("stats") or {}),
        )


@dataclass(frozen=True)
class ClueSpot:
    """Candidate panorama selected to host a clue."""

    pano_id: str
    category: SpotCategory
    lat: float
    lng: float
    heading: float
    difficulty: int
    distance_from_start: int
    reason: str
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "panoId": self.pano_id,
            "type": self.category.value,
            "lat": self.lat,
            "lng": self.lng,
            "heading": self.heading,
            "difficulty": self.difficulty,
            "distanceFromStart": self.distance_from_start,
            "reason": self.reason,
            "description": self.description,
        }


__all__ = [
    "ClueSpot",
    "FloatPair",
    "GraphStats",
    "PanoLink",
    "PanoNode",
    "PanoramaGraph",
    "SpotCategory",
]
