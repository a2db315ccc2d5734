"""
Google Street View provider implementation.

This module implements the PanoramaProvider interface for Google Street View
using the streetview and streetlevel libraries.
"""

from __future__ import annotations

import importlib
import logging
import math
from typing import Any, Callable, Optional, Tuple

from ..geometry_utils import GeometryUtils
from ..types import PanoLink
from .base import (
    PanoramaMetadata,
    PanoramaProvider,
    ProviderError,
    TransientProviderError,
)

logger = logging.getLogger(__name__)


class GoogleStreetViewProvider(PanoramaProvider):
    """
    Google Street View provider implementation.

    Uses ``streetview.search_panoramas`` for coordinate lookups and
    ``streetlevel.streetview.find_panorama_by_id`` for per-panorama
    metadata including navigation links.
    """

    def __init__(self, min_capture_year: Optional[int] = None):
        super().__init__(min_capture_year=min_capture_year)
        # Lazy-loaded modules (initialized on first access)
        self._streetlevel_module: Any | None = None
        self._search_function: Callable[..., Any] | None = None

    @property
    def provider_name(self) -> str:
        """Get the name of this provider."""
        return "google_streetview"

    def find_nearest_panorama(
        self, lat: float, lon: float, radius_m: float = 50.0
    ) -> Optional[PanoramaMetadata]:
        """
        Find the most recent panorama within ``radius_m`` of the coordinates.

        Raises:
            ValueError: If coordinates are invalid
            TransientProviderError: If the lookup failed at the network level
        """
        if not self.validate_coordinates(lat, lon):
            raise ValueError(f"Invalid coordinates: lat={lat}, lon={lon}")

        panos = self._call(self._search_panoramas, lat=lat, lon=lon)
        if not panos:
            return None

        nearby = [p for p in panos if self._within_radius(p, lat, lon, radius_m)]
        if self.min_capture_year:
            nearby = [p for p in nearby if self._meets_year_requirement(p)]
        if not nearby:
            logger.debug(
                "No panoramas within %.0fm of (%.6f, %.6f)", radius_m, lat, lon
            )
            return None

        for pano in sorted(nearby, key=self._get_capture_date, reverse=True):
            pano_id = getattr(pano, "pano_id", None)
            if not pano_id:
                continue
            metadata = self.get_panorama_metadata(pano_id)
            if metadata:
                return metadata
        return None

    def get_panorama_metadata(self, pano_id: str) -> Optional[PanoramaMetadata]:
        """
        Get metadata for a specific panorama.

        Args:
            pano_id: Panorama identifier

        Returns:
            Panorama metadata if found, None otherwise
        """
        pano = self._call(self._streetlevel.find_panorama_by_id, pano_id)
        if not pano:
            logger.warning("Panorama %s not found when fetching metadata", pano_id)
            return None

        return PanoramaMetadata(
            pano_id=pano.id,
            lat=float(pano.lat),
            lon=float(pano.lon),
            links=self._extract_links(pano),
            description=self._extract_description(pano),
            date=self._format_date(getattr(pano, "date", None)),
        )

    def _call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Invoke a library function, mapping failures to provider errors."""
        try:
            return func(*args, **kwargs)
        except OSError as exc:
            # requests' exceptions derive from OSError
            raise TransientProviderError(f"Street View request failed: {exc}") from exc
        except Exception as exc:
            raise ProviderError(f"Street View returned an unusable response: {exc}") from exc

    @staticmethod
    def _within_radius(pano, lat: float, lon: float, radius_m: float) -> bool:
        pano_lat = getattr(pano, "lat", None)
        pano_lon = getattr(pano, "lon", None)
        if pano_lat is None or pano_lon is None:
            return False
        distance_km = GeometryUtils.haversine_distance(lat, lon, pano_lat, pano_lon)
        return distance_km * 1000.0 <= radius_m

    def _meets_year_requirement(self, pano) -> bool:
        """Check if panorama meets minimum capture year requirement."""
        if not (date_str := getattr(pano, "date", None)):
            return True  # Include panoramas without dates
        try:
            year = int(str(date_str).split("-")[0])
            return year >= self.min_capture_year
        except (ValueError, IndexError):
            return True

    def _get_capture_date(self, pano) -> tuple[int, int]:
        """Extract capture date for sorting."""
        if date_str := getattr(pano, "date", None):
            try:
                parts = str(date_str).split("-")
                return (int(parts[0]), int(parts[1]))
            except (ValueError, IndexError):
                pass
        return (-1, -1)

    def _extract_links(self, pano) -> Tuple[PanoLink, ...]:
        """Extract navigation links, converting directions to compass degrees."""
        if not (hasattr(pano, "links") and pano.links):
            return ()

        links = []
        for link in pano.links:
            target = getattr(link, "pano", None)
            target_id = getattr(target, "id", None)
            if not target_id:
                continue
            direction_rad = getattr(link, "direction", 0.0) or 0.0
            links.append(
                PanoLink(
                    target_pano_id=target_id,
                    heading=GeometryUtils.normalize_heading(math.degrees(direction_rad)),
                    description=self._extract_description(target),
                )
            )
        return tuple(links)

    @staticmethod
    def _extract_description(pano) -> Optional[str]:
        """Best-effort street name or address for a panorama."""
        for attribute in ("street_names", "address"):
            values = getattr(pano, attribute, None)
            if not values:
                continue
            first = values[0]
            text = getattr(first, "value", None) or getattr(first, "names", None)
            if isinstance(text, list) and text:
                text = getattr(text[0], "value", text[0])
            if isinstance(text, str) and text:
                return text
        return None

    def _format_date(self, date_obj) -> Optional[str]:
        """Format a capture date to ``YYYY-MM``."""
        if date_obj is None:
            return None
        if isinstance(date_obj, str):
            return date_obj

        year = getattr(date_obj, "year", None)
        month = getattr(date_obj, "month", None)
        if year and month:
            return f"{year}-{month:02d}"
        return str(date_obj)

    @property
    def _streetlevel(self) -> Any:
        """Lazily import and return the streetlevel module."""
        if self._streetlevel_module is None:
            self._streetlevel_module = importlib.import_module("streetlevel.streetview")
        return self._streetlevel_module

    @property
    def _search_panoramas(self) -> Callable[..., Any]:
        """Lazily import and return the search_panoramas function."""
        if self._search_function is None:
            streetview_module = importlib.import_module("streetview")
            self._search_function = getattr(streetview_module, "search_panoramas")
        return self._search_function
