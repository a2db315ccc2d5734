"""
Configuration management for mission generation.

This module provides structured configuration classes for scanning,
caching and clue placement with validation and type safety.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping


@dataclass
class ProviderConfig:
    """Configuration for panorama data providers."""

    provider: str = "google_streetview"
    min_capture_year: int | None = None

    def __post_init__(self) -> None:
        if self.provider != "google_streetview":
            raise ValueError(f"Unsupported provider: {self.provider}")


@dataclass
class CacheConfig:
    """Bounds for the process-wide panorama cache."""

    capacity: int = 1000
    ttl_seconds: float = 30 * 60

    def __post_init__(self) -> None:
        if self.capacity <= 0:
            raise ValueError(f"capacity must be positive, got {self.capacity}")
        if self.ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {self.ttl_seconds}")


@dataclass
class ScanConfig:
    """Options for one breadth-first scan of the panorama network."""

    max_depth: int = 40
    max_nodes: int = 200
    request_timeout_s: float = 5.0
    request_delay_s: float = 0.2
    search_radius_m: float = 100.0
    use_cache: bool = True

    def __post_init__(self) -> None:
        if self.max_depth <= 0:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")
        if self.max_nodes <= 0:
            raise ValueError(f"max_nodes must be positive, got {self.max_nodes}")
        if self.request_timeout_s <= 0:
            raise ValueError("request_timeout_s must be positive")
        if self.request_delay_s < 0:
            raise ValueError("request_delay_s must not be negative")
        if self.search_radius_m <= 0:
            raise ValueError("search_radius_m must be positive")


@dataclass
class PlacementConfig:
    """Options controlling how clue spots are chosen."""

    clue_count: int = 5
    min_distance: int = 3
    prioritize_dead_ends: bool = True
    min_first_clue_depth: int = 2

    def __post_init__(self) -> None:
        if self.clue_count <= 0:
            raise ValueError(f"clue_count must be positive, got {self.clue_count}")
        if self.min_distance < 0:
            raise ValueError("min_distance must not be negative")
        if self.min_first_clue_depth < 0:
            raise ValueError("min_first_clue_depth must not be negative")


@dataclass
class EngineConfig:
    """
    Complete configuration for the mission engine.

    Groups provider, cache and scan settings so the command line can load
    them from one JSON document.
    """

    provider_config: ProviderConfig = field(default_factory=ProviderConfig)
    cache_config: CacheConfig = field(default_factory=CacheConfig)
    scan_config: ScanConfig = field(default_factory=ScanConfig)

    @classmethod
    def from_dict(cls, config_dict: Mapping[str, object] | None) -> "EngineConfig":
        """
        Create configuration from dictionary.

        Args:
            config_dict: Configuration mapping (can be None)

        Returns:
            EngineConfig instance
        """
        if not config_dict:
            return cls()

        allowed = {"provider_config", "cache_config", "scan_config"}
        unexpected = set(config_dict) - allowed
        if unexpected:
            raise ValueError(
                f"Unsupported configuration keys provided: {sorted(unexpected)}"
            )

        return cls(
            provider_config=ProviderConfig(
                **_extract_mapping(config_dict, "provider_config")
            ),
            cache_config=CacheConfig(**_extract_mapping(config_dict, "cache_config")),
            scan_config=ScanConfig(**_extract_mapping(config_dict, "scan_config")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "provider_config": {
                "provider": self.provider_config.provider,
                "min_capture_year": self.provider_config.min_capture_year,
            },
            "cache_config": {
                "capacity": self.cache_config.capacity,
                "ttl_seconds": self.cache_config.ttl_seconds,
            },
            "scan_config": {
                "max_depth": self.scan_config.max_depth,
                "max_nodes": self.scan_config.max_nodes,
                "request_timeout_s": self.scan_config.request_timeout_s,
                "request_delay_s": self.scan_config.request_delay_s,
                "search_radius_m": self.scan_config.search_radius_m,
                "use_cache": self.scan_config.use_cache,
            },
        }


def _extract_mapping(source: Mapping[str, object], key: str) -> Dict[str, Any]:
    """Extract nested mapping from top-level configuration."""

    value = source.get(key)
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    raise ValueError(f"Configuration field '{key}' must be a mapping")


__all__ = [
    "CacheConfig",
    "EngineConfig",
    "PlacementConfig",
    "ProviderConfig",
    "ScanConfig",
]
