"""Endless maze streaming package.

A fixed window of tiles follows the observer across an unbounded plane. Each
tile runs a resumable maze generator and an incremental mesh builder that are
advanced a small, bounded amount per tick by a cooperative scheduler.
"""

from .exceptions import (
    FaceCountMismatch,
    InvariantViolation,
    MazeStreamError,
    StackDepthExceeded,
    WindowShapeError,
)
from .grid import EAST, NORTH, SOUTH, WEST, WallGrid
from .maze import GeneratorState, MazeGenerator, Region, generate_maze
from .mesh import BuildPhase, CollisionVolume, IncrementalMeshBuilder, MeshParams, SubMesh, build_all
from .observer import ObserverTracker, discretize
from .scheduler import Scheduler, World, build_world
from .seeding import SeedChannel, TileKey, resolve_world_seed, tile_seed
from .settings import WorldSettings, load_world_settings
from .streaming import SlotState, StreamingGrid, TileSlot
from .xorshift import Xorshift

__all__ = [
    "MazeStreamError",
    "InvariantViolation",
    "StackDepthExceeded",
    "FaceCountMismatch",
    "WindowShapeError",
    "SOUTH",
    "NORTH",
    "WEST",
    "EAST",
    "WallGrid",
    "GeneratorState",
    "MazeGenerator",
    "Region",
    "generate_maze",
    "BuildPhase",
    "CollisionVolume",
    "IncrementalMeshBuilder",
    "MeshParams",
    "SubMesh",
    "build_all",
    "ObserverTracker",
    "discretize",
    "Scheduler",
    "World",
    "build_world",
    "SeedChannel",
    "TileKey",
    "resolve_world_seed",
    "tile_seed",
    "WorldSettings",
    "load_world_settings",
    "SlotState",
    "StreamingGrid",
    "TileSlot",
    "Xorshift",
]
