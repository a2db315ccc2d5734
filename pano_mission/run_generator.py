#!/usr/bin/env python3
"""
Command line front end for the mission generator.

Subcommands:
    themes    list the available mission themes
    scan      build a panorama graph around a coordinate and save it
    generate  generate a mission from a saved graph or a request file
"""

import argparse
import json
import logging
import os
import sys
from dataclasses import replace
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from .cache_manager import configure_default_cache
from .config import EngineConfig
from .graph_builder import (
    GraphBuildCancelled,
    GraphBuilder,
    StartPanoramaUnavailableError,
)
from .mission_generator import (
    MissionGenerationRequest,
    generate_mission,
    to_hidden_clue_mission,
)
from .providers import GoogleStreetViewProvider
from .schemas import DIFFICULTIES, GenerateMissionRequest, format_validation_error
from .themes import get_all_themes
from .types import PanoramaGraph

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_INPUT = 2
EXIT_INTERRUPTED = 130


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="pano-mission",
        description="Generate hidden-clue missions from a photo-sphere network",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("PANO_MISSION_LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--config", type=str, help="Path to an engine configuration JSON file"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("themes", help="List available mission themes")

    scan = subparsers.add_parser("scan", help="Scan the panorama graph around a point")
    scan.add_argument("--lat", type=float, required=True, help="Start latitude")
    scan.add_argument("--lon", type=float, required=True, help="Start longitude")
    scan.add_argument("--out", type=str, required=True, help="Output graph JSON path")
    scan.add_argument("--max-depth", type=int, help="Override the scan depth")
    scan.add_argument("--max-nodes", type=int, help="Override the node budget")
    scan.add_argument(
        "--no-cache", action="store_true", help="Bypass the panorama cache"
    )

    generate = subparsers.add_parser("generate", help="Generate a mission")
    source = generate.add_mutually_exclusive_group(required=True)
    source.add_argument("--request", type=str, help="Generation request JSON path")
    source.add_argument("--graph", type=str, help="Serialized graph JSON path")
    generate.add_argument("--theme", type=str, default="spy", help="Mission theme")
    generate.add_argument(
        "--clue-count", type=int, default=5, help="Number of clues (default: 5)"
    )
    generate.add_argument(
        "--difficulty", choices=list(DIFFICULTIES), default="hard", help="Difficulty"
    )
    generate.add_argument("--location", type=str, help="Location label")
    generate.add_argument("--seed", type=str, help="Seed for reproducible output")
    generate.add_argument("--out", type=str, help="Output mission JSON path")
    generate.add_argument(
        "--runtime",
        action="store_true",
        help="Write the gameplay runtime payload instead of the full mission",
    )

    return parser.parse_args(argv)


def load_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json(data: Any, path: Optional[str]) -> None:
    """Write JSON to ``path``, or to stdout when no path is given."""
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if not path:
        print(text)
        return

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    logger.info("Wrote %s", path)


def load_engine_config(path: Optional[str]) -> EngineConfig:
    if not path:
        return EngineConfig()
    return EngineConfig.from_dict(load_json(path))


def run_themes() -> int:
    for theme in get_all_themes():
        print(
            f"{theme.type:<12} {theme.icon} {theme.title} "
            f"({len(theme.clue_templates)} clue templates)"
        )
    return EXIT_OK


def run_scan(args: argparse.Namespace, config: EngineConfig) -> int:
    overrides: Dict[str, Any] = {}
    if args.max_depth is not None:
        overrides["max_depth"] = args.max_depth
    if args.max_nodes is not None:
        overrides["max_nodes"] = args.max_nodes
    if args.no_cache:
        overrides["use_cache"] = False
    try:
        scan_config = replace(config.scan_config, **overrides)
    except ValueError as e:
        print(f"Invalid scan options: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    cache = configure_default_cache(
        capacity=config.cache_config.capacity,
        ttl_seconds=config.cache_config.ttl_seconds,
    )
    provider = GoogleStreetViewProvider(
        min_capture_year=config.provider_config.min_capture_year
    )
    builder = GraphBuilder(provider, cache=cache)

    def on_progress(current: int, total: int, message: str) -> None:
        logger.debug("[%d/%d] %s", current, total, message)

    try:
        result = builder.build_graph(
            (args.lat, args.lon), options=scan_config, on_progress=on_progress
        )
    except StartPanoramaUnavailableError as e:
        logger.error("%s", e)
        return EXIT_FAILURE

    write_json(result.graph.to_serializable(), args.out)
    print(
        json.dumps({"scan": result.metrics.to_dict(), "cache": cache.stats.to_dict()})
    )
    return EXIT_OK


def build_request_data(args: argparse.Namespace) -> Dict[str, Any]:
    """Assemble raw request data from a request file or from flags."""
    if args.request:
        return load_json(args.request)

    graph = load_json(args.graph)
    data: Dict[str, Any] = {
        "coordinates": graph.get("startCoordinates"),
        "theme": args.theme,
        "clueCount": args.clue_count,
        "difficulty": args.difficulty,
        "graph": graph,
    }
    if args.location:
        data["locationName"] = args.location
    if args.seed:
        data["seed"] = args.seed
    return data


def run_generate(args: argparse.Namespace) -> int:
    try:
        request = GenerateMissionRequest.model_validate(build_request_data(args))
    except ValidationError as e:
        print(f"Invalid generation request: {format_validation_error(e)}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except (OSError, ValueError) as e:
        print(f"Could not read generation input: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    if request.save:
        logger.warning("Saving missions is not supported here; writing JSON only")

    graph = PanoramaGraph.from_serializable(request.graph.to_payload())
    result = generate_mission(
        graph, MissionGenerationRequest.from_model(request), seed=request.seed
    )
    if not result.success:
        if result.is_internal_error:
            logger.error("Internal generator error: %s", result.error)
        print(f"Error: {result.error}", file=sys.stderr)
        return EXIT_FAILURE

    payload = (
        to_hidden_clue_mission(result.mission)
        if args.runtime
        else result.mission.to_payload()
    )
    write_json(payload, args.out)
    logger.info(
        "Mission %s ready in %.1f ms (seed %s)",
        result.mission.id,
        result.generation_time_ms,
        result.seed,
    )
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_engine_config(args.config)
    except (OSError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_INVALID_INPUT

    try:
        if args.command == "themes":
            return run_themes()
        if args.command == "scan":
            return run_scan(args, config)
        return run_generate(args)
    except (GraphBuildCancelled, KeyboardInterrupt):
        logger.warning("Interrupted")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
