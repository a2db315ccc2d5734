"""
Photo-sphere providers explored by the graph builder.

This module provides the provider interface, its error types and the
Google Street View implementation.
"""

from .base import (
    PanoramaMetadata,
    PanoramaProvider,
    ProviderError,
    TransientProviderError,
)
from .google_streetview import GoogleStreetViewProvider

__all__ = [
    "PanoramaMetadata",
    "PanoramaProvider",
    "ProviderError",
    "TransientProviderError",
    "GoogleStreetViewProvider",
]
