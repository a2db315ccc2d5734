"""
Base interface for photo-sphere providers.

This module defines the abstract interface that all panorama providers
must implement to be explored by the graph builder.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple

from ..geometry_utils import GeometryUtils
from ..types import PanoLink


class ProviderError(Exception):
    """A provider request failed and should not be retried."""


class TransientProviderError(ProviderError):
    """A provider request failed in a way that may succeed on retry.

    Raised for network hiccups, throttling and unknown upstream errors.
    """


@dataclass(frozen=True)
class PanoramaMetadata:
    """Snapshot of one panorama as reported by a provider."""

    pano_id: str
    lat: float
    lon: float
    links: Tuple[PanoLink, ...] = ()
    description: Optional[str] = None
    date: Optional[str] = None


class PanoramaProvider(ABC):
    """
    Abstract base class for panorama data providers.

    Implementations return ``None`` when a panorama does not exist and raise
    :class:`TransientProviderError` or :class:`ProviderError` when the
    request itself fails. Retries and pacing are the caller's concern.
    """

    def __init__(self, min_capture_year: Optional[int] = None):
        """
        Initialize the provider.

        Args:
            min_capture_year: Minimum capture year for panorama filtering
        """
        self.min_capture_year = min_capture_year

    @abstractmethod
    def find_nearest_panorama(
        self, lat: float, lon: float, radius_m: float = 50.0
    ) -> Optional[PanoramaMetadata]:
        """
        Find the nearest outdoor panorama around the given coordinates.

        Args:
            lat: Latitude in degrees
            lon: Longitude in degrees
            radius_m: Search radius in meters

        Returns:
            Panorama metadata if one exists within the radius, None otherwise
        """

    @abstractmethod
    def get_panorama_metadata(self, pano_id: str) -> Optional[PanoramaMetadata]:
        """
        Get metadata for a specific panorama.

        Args:
            pano_id: Panorama identifier

        Returns:
            Panorama metadata if found, None otherwise
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the name of this provider."""

    def validate_coordinates(self, lat: float, lon: float) -> bool:
        """Validate latitude and longitude coordinates."""
        return GeometryUtils.validate_coordinates(lat, lon)
