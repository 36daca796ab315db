"""Tests for the command line harness."""
from __future__ import annotations

import io
import json

import pytest

from mazestream.cli import build_parser, run


@pytest.fixture
def small_config(tmp_path) -> str:
    path = tmp_path / "small.json"
    path.write_text(
        json.dumps({"mazeSize": 8, "subMeshPartitions": 2, "buildIters": 16, "generationIters": 8}),
        encoding="utf-8",
    )
    return str(path)


def test_run_prints_the_window(small_config) -> None:
    out = io.StringIO()
    assert run(["--config", small_config, "--seed", "5"], out=out) == 0
    lines = out.getvalue().splitlines()
    assert lines[0].startswith("seed=5 observer=(0, 0)")
    assert len(lines) == 1 + 36
    ready = [line for line in lines[1:] if "ready" in line]
    assert len(ready) == 5
    assert all(line.startswith("*") for line in ready)


def test_walk_and_dump_tile(small_config) -> None:
    out = io.StringIO()
    code = run(["--config", small_config, "--walk", "ee", "--step-ticks", "2", "--dump-tile", "2,0"], out=out)
    assert code == 0
    text = out.getvalue()
    assert "observer=(2, 0)" in text
    assert "#" in text


def test_dump_of_missing_tile_fails(small_config) -> None:
    out = io.StringIO()
    code = run(["--config", small_config, "--ticks", "3", "--dump-tile", "50,50"], out=out)
    assert code == 1
    assert "has no finished maze" in out.getvalue()


def test_parser_rejects_bad_arguments() -> None:
    parser = build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["--walk", "NX"])
    with pytest.raises(SystemExit):
        parser.parse_args(["--dump-tile", "1"])
    with pytest.raises(SystemExit):
        parser.parse_args(["--ticks", "0"])
