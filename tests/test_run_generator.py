"""Tests for the command line front end."""

import json

from pano_mission import cache_manager, run_generator
from pano_mission.run_generator import EXIT_FAILURE, EXIT_INVALID_INPUT, EXIT_OK, main
from tests.test_fixtures import StubProvider, chain_network, street_graph


def write_graph(tmp_path, graph):
    path = tmp_path / "graph.json"
    path.write_text(json.dumps(graph.to_serializable()), encoding="utf-8")
    return path


def test_themes_lists_registry(capsys):
    assert main(["themes"]) == EXIT_OK
    out = capsys.readouterr().out
    assert "spy" in out
    assert "custom" in out


def test_generate_from_graph(tmp_path, graph_for_mission):
    graph_path = write_graph(tmp_path, graph_for_mission)
    out_path = tmp_path / "missions" / "mission.json"

    code = main(
        [
            "generate",
            "--graph",
            str(graph_path),
            "--clue-count",
            "3",
            "--seed",
            "cli",
            "--out",
            str(out_path),
        ]
    )

    assert code == EXIT_OK
    mission = json.loads(out_path.read_text(encoding="utf-8"))
    assert mission["seed"] == "cli"
    assert len(mission["clues"]) == 3
    assert mission["startPanoId"] == "s0"


def test_generate_runtime_payload(tmp_path, graph_for_mission, capsys):
    graph_path = write_graph(tmp_path, graph_for_mission)

    code = main(["generate", "--graph", str(graph_path), "--runtime", "--seed", "x"])

    assert code == EXIT_OK
    mission = json.loads(capsys.readouterr().out)
    assert "seed" not in mission
    assert "spotType" not in mission["clues"][0]


def test_generate_rejects_invalid_request(tmp_path, graph_for_mission, capsys):
    graph_path = write_graph(tmp_path, graph_for_mission)

    code = main(["generate", "--graph", str(graph_path), "--clue-count", "9"])

    assert code == EXIT_INVALID_INPUT
    assert "clueCount" in capsys.readouterr().err


def test_generate_reports_generator_failure(tmp_path, capsys):
    graph_path = write_graph(tmp_path, street_graph(12))

    code = main(["generate", "--graph", str(graph_path), "--clue-count", "7"])

    assert code == EXIT_FAILURE
    assert "Not enough interesting spots" in capsys.readouterr().err


def test_missing_request_file(tmp_path):
    code = main(["generate", "--request", str(tmp_path / "missing.json")])
    assert code == EXIT_INVALID_INPUT


def test_invalid_config_file(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"scan_config": {"max_depth": 0}}))

    assert main(["--config", str(config_path), "themes"]) == EXIT_INVALID_INPUT


def test_scan_writes_graph_and_reports_cache_stats(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(cache_manager, "_default_cache", None)
    monkeypatch.setattr(
        run_generator,
        "GoogleStreetViewProvider",
        lambda min_capture_year=None: StubProvider(chain_network(8), "p0"),
    )

    out_path = tmp_path / "graph.json"

    code = main(
        [
            "scan",
            "--lat",
            "35.0",
            "--lon",
            "139.0",
            "--max-depth",
            "2",
            "--out",
            str(out_path),
        ]
    )

    assert code == EXIT_OK
    graph = json.loads(out_path.read_text(encoding="utf-8"))
    assert [entry[0] for entry in graph["nodes"]] == ["p0", "p1", "p2"]

    report = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert report["scan"]["nodesScanned"] == 3
    assert report["cache"] == {"hits": 0, "misses": 2, "evictions": 0, "expirations": 0}
