"""
Geometry utilities for mission generation.

This module provides compass-heading arithmetic that is safe across the
0°/360° wrap-around, plus the coordinate helpers used when resolving a
start panorama.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Optional


class GeometryUtils:
    """
    Utility class for geometric calculations on the panorama graph.

    All headings are compass bearings in degrees. Differences are always
    taken along the shorter arc so that 350° and 10° are 20° apart.
    """

    # Earth radius in kilometers (WGS84)
    EARTH_RADIUS_KM = 6371.0

    @staticmethod
    def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """
        Calculate the Haversine distance between two points on Earth.

        Args:
            lat1: Latitude of first point in degrees
            lon1: Longitude of first point in degrees
            lat2: Latitude of second point in degrees
            lon2: Longitude of second point in degrees

        Returns:
            Distance in kilometers
        """
        phi1 = math.radians(lat1)
        phi2 = math.radians(lat2)
        dphi = math.radians(lat2 - lat1)
        dlambda = math.radians(lon2 - lon1)

        a = (
            math.sin(dphi / 2) ** 2
            + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
        )
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

        return GeometryUtils.EARTH_RADIUS_KM * c

    @staticmethod
    def normalize_heading(heading_deg: float) -> float:
        """
        Normalize a heading to the [0, 360) range.

        Args:
            heading_deg: Heading in degrees, any magnitude or sign

        Returns:
            Equivalent heading in [0, 360)
        """
        normalized = math.fmod(heading_deg, 360.0)
        if normalized < 0:
            normalized += 360.0
        # fmod of a tiny negative value can round up to exactly 360.0
        if normalized >= 360.0:
            normalized = 0.0
        return normalized

    @staticmethod
    def heading_difference(from_deg: float, to_deg: float) -> float:
        """
        Signed shorter-arc difference that turns ``from_deg`` into ``to_deg``.

        Args:
            from_deg: Starting heading in degrees
            to_deg: Target heading in degrees

        Returns:
            Difference in degrees within [-180, 180]
        """
        diff = GeometryUtils.normalize_heading(to_deg - from_deg)
        if diff > 180.0:
            diff -= 360.0
        return diff

    @staticmethod
    def average_heading(first_deg: float, second_deg: float) -> float:
        """
        Midpoint of two headings measured along the shorter arc.

        The arithmetic mean of 350° and 10° is 180°, which points the wrong
        way; the shorter-arc midpoint is 0°.
        """
        diff = GeometryUtils.heading_difference(first_deg, second_deg)
        return GeometryUtils.normalize_heading(first_deg + diff / 2.0)

    @staticmethod
    def widest_gap_heading(headings: Sequence[float]) -> Optional[float]:
        """
        Find the direction pointing into the largest gap between headings.

        Args:
            headings: Link headings in degrees

        Returns:
            Midpoint of the widest angular gap, or None for no headings.
            A single heading leaves a 360° gap whose midpoint is the
            reversed heading.
        """
        if not headings:
            return None

        ordered = sorted(GeometryUtils.normalize_heading(h) for h in headings)
        max_gap = -1.0
        midpoint = 0.0
        for index, current in enumerate(ordered):
            following = ordered[(index + 1) % len(ordered)]
            gap = following - current
            if gap <= 0:
                gap += 360.0
            if gap > max_gap:
                max_gap = gap
                midpoint = GeometryUtils.normalize_heading(current + gap / 2.0)

        return midpoint

    @staticmethod
    def validate_coordinates(lat: float, lon: float) -> bool:
        """
        Validate latitude and longitude coordinates.

        Args:
            lat: Latitude in degrees
            lon: Longitude in degrees

        Returns:
            True if coordinates are valid, False otherwise
        """
        return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def round_to(value: float, precision: int) -> float:
    """Round half away from zero, matching how headings are stored."""

    multiplier = 10**precision
    return math.floor(abs(value) * multiplier + 0.5) / multiplier * (
        1 if value >= 0 else -1
    )


__all__ = ["GeometryUtils", "round_to"]
