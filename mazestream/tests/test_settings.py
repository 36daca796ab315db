"""Tests for the layered world settings loader."""
from __future__ import annotations

import json

import pytest

from mazestream.settings import WorldSettings, load_world_settings, with_overrides


def _write(tmp_path, payload) -> str:
    path = tmp_path / "world.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_bundled_defaults_match_dataclass_defaults() -> None:
    assert load_world_settings(env={}) == WorldSettings()


def test_defaults_and_derived_values() -> None:
    settings = WorldSettings()
    assert settings.maze_size == 64
    assert settings.window_size == 6
    assert settings.init_iters == 4 * settings.build_iters
    params = settings.mesh_params()
    assert params.sub_mesh_size == 16
    assert params.cell_length == pytest.approx(0.125)


def test_json_file_is_read(tmp_path) -> None:
    path = _write(tmp_path, {"mazeSize": 16, "subMeshPartitions": 2, "windowSize": 7, "tileSize": 4})
    settings = load_world_settings(path, env={})
    assert settings.maze_size == 16
    assert settings.sub_mesh_partitions == 2
    assert settings.window_size == 7
    assert settings.tile_size == 4.0
    assert isinstance(settings.tile_size, float)


def test_environment_overrides_file(tmp_path) -> None:
    path = _write(tmp_path, {"mazeSize": 16, "subMeshPartitions": 2})
    env = {"MAZESTREAM_MAZE_SIZE": "32", "MAZESTREAM_STRICT": "yes", "UNRELATED": "1"}
    settings = load_world_settings(path, env=env)
    assert settings.maze_size == 32
    assert settings.strict is True


def test_explicit_overrides_win(tmp_path) -> None:
    path = _write(tmp_path, {"mazeSize": 16, "subMeshPartitions": 2})
    env = {"MAZESTREAM_MAZE_SIZE": "32"}
    settings = load_world_settings(path, env=env, overrides={"mazeSize": 8, "world_seed": -4})
    assert settings.maze_size == 8
    assert settings.world_seed == -4


@pytest.mark.parametrize(
    "payload",
    [
        {"windowSize": 4},
        {"mazeSize": 10},
        {"maxParallelChunks": 0},
        {"wallHeight": 0},
        {"worldSeed": 2**31},
        {"unknownKnob": 1},
    ],
)
def test_invalid_configuration_is_rejected(tmp_path, payload) -> None:
    with pytest.raises(ValueError):
        load_world_settings(_write(tmp_path, payload), env={})


def test_bad_boolean_in_environment() -> None:
    with pytest.raises(ValueError):
        load_world_settings(env={"MAZESTREAM_STRICT": "maybe"})


def test_config_must_be_an_object(tmp_path) -> None:
    with pytest.raises(ValueError):
        load_world_settings(_write(tmp_path, [1, 2, 3]), env={})


def test_mapping_round_trip() -> None:
    settings = WorldSettings(maze_size=32, strict=True, world_seed=-77)
    mapping = settings.to_mapping()
    assert mapping["mazeSize"] == 32
    assert WorldSettings.from_mapping(mapping) == settings
    assert WorldSettings.from_mapping(None) == WorldSettings()


def test_with_overrides_validates() -> None:
    settings = with_overrides(WorldSettings(), window_size=9)
    assert settings.window_size == 9
    with pytest.raises(ValueError):
        with_overrides(settings, sub_mesh_partitions=5)
