"""Structured loader for world streaming settings."""
from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from .mesh import MeshParams
from .seeding import INT32_MAX, INT32_MIN

ENV_PREFIX = "MAZESTREAM"
INIT_TO_BUILD_RATIO = 4
MIN_WINDOW_SIZE = 5

# //1.- Map the camelCase option names of the JSON files onto dataclass fields.
_CAMEL_NAMES = {
    "mazeSize": "maze_size",
    "tileSize": "tile_size",
    "subMeshPartitions": "sub_mesh_partitions",
    "maxParallelChunks": "max_parallel_chunks",
    "generationIters": "generation_iters",
    "buildIters": "build_iters",
    "wallHeight": "wall_height",
    "wallThicknessFactor": "wall_thickness_factor",
    "windowSize": "window_size",
    "worldSeed": "world_seed",
    "randomizeSeedOnStart": "randomize_seed_on_start",
    "strict": "strict",
}


# //2.- Capture every recognised option of the streaming core.
@dataclass(frozen=True)
class WorldSettings:
    maze_size: int = 64
    tile_size: float = 8.0
    sub_mesh_partitions: int = 4
    max_parallel_chunks: int = 1
    generation_iters: int = 8
    build_iters: int = 128
    wall_height: float = 0.25
    wall_thickness_factor: float = 1.0
    window_size: int = 6
    world_seed: int = 523416426
    randomize_seed_on_start: bool = False
    strict: bool = False

    @property
    def init_iters(self) -> int:
        return self.build_iters * INIT_TO_BUILD_RATIO

    def mesh_params(self) -> MeshParams:
        return MeshParams(
            maze_size=self.maze_size,
            partitions=self.sub_mesh_partitions,
            tile_size=self.tile_size,
            wall_height=self.wall_height,
            wall_thickness_factor=self.wall_thickness_factor,
        )

    # //3.- Build settings from a mapping using either naming convention.
    @classmethod
    def from_mapping(cls, payload: Optional[Mapping[str, Any]] = None) -> "WorldSettings":
        if not payload:
            return cls()
        values = _coerce(_normalize_keys(payload))
        settings = cls(**values)
        settings.validate()
        return settings

    def to_mapping(self) -> Dict[str, Any]:
        reverse = {snake: camel for camel, snake in _CAMEL_NAMES.items()}
        return {reverse[name]: value for name, value in asdict(self).items()}

    # //4.- Reject knob combinations the streaming core cannot honour.
    def validate(self) -> None:
        if self.maze_size < 1:
            raise ValueError("mazeSize must be >= 1")
        if self.sub_mesh_partitions < 1:
            raise ValueError("subMeshPartitions must be >= 1")
        if self.maze_size % self.sub_mesh_partitions != 0:
            raise ValueError("mazeSize must be divisible by subMeshPartitions")
        if self.window_size < MIN_WINDOW_SIZE:
            raise ValueError(f"windowSize must be >= {MIN_WINDOW_SIZE}")
        for name in ("max_parallel_chunks", "generation_iters", "build_iters"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        for name in ("tile_size", "wall_height", "wall_thickness_factor"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if not INT32_MIN <= self.world_seed <= INT32_MAX:
            raise ValueError("worldSeed must fit in a signed 32-bit integer")


def _normalize_keys(payload: Mapping[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(WorldSettings)}
    values: Dict[str, Any] = {}
    for key, value in payload.items():
        name = _CAMEL_NAMES.get(key, key)
        if name not in known:
            raise ValueError(f"Unknown setting '{key}'")
        values[name] = value
    return values


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off", ""}:
            return False
        raise ValueError(f"'{value}' is not a boolean")
    return bool(value)


# //5.- Coerce raw JSON or environment strings into the declared field types.
def _coerce(values: Mapping[str, Any]) -> Dict[str, Any]:
    types = {f.name: f.type for f in fields(WorldSettings)}
    coerced: Dict[str, Any] = {}
    for name, value in values.items():
        kind = types[name]
        if kind in ("bool", bool):
            coerced[name] = _parse_bool(value)
        elif kind in ("int", int):
            coerced[name] = int(value)
        else:
            coerced[name] = float(value)
    return coerced


# //6.- Resolve the bundled configuration directory next to this module.
def _default_config_path() -> str:
    return os.path.join(os.path.dirname(__file__), "config", "world.json")


def _read_json_config(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return payload


# //7.- Collect MAZESTREAM_* overrides from the environment.
def _environment_overrides(env: Mapping[str, str], prefix: str = ENV_PREFIX) -> Dict[str, str]:
    overrides: Dict[str, str] = {}
    for item in fields(WorldSettings):
        raw = env.get(f"{prefix}_{item.name.upper()}")
        if raw is not None:
            overrides[item.name] = raw
    return overrides


# //8.- Public helper layering file defaults, environment and explicit overrides.
def load_world_settings(
    path: Optional[str] = None,
    *,
    env: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> WorldSettings:
    payload = _normalize_keys(_read_json_config(path or _default_config_path()))
    source = env if env is not None else os.environ
    payload.update(_environment_overrides(source))
    if overrides:
        payload.update(_normalize_keys(overrides))
    settings = WorldSettings(**_coerce(payload))
    settings.validate()
    return settings


def with_overrides(settings: WorldSettings, **changes: Any) -> WorldSettings:
    updated = replace(settings, **changes)
    updated.validate()
    return updated
