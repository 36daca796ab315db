"""Incremental conversion of a wall grid into tile-bounded wall meshes.

A tile is split into ``W x W`` sub-meshes. Each sub-mesh is produced in two
resumable phases: a counting pass that sizes the output buffers exactly and
an emission pass that fills them. Both passes walk the sub-mesh cells column
by column and make every face decision from the canonical grid alone, so
neighbouring sub-meshes join without seams.

Coordinates are tile-local with the tile centred on the origin. The first two
components span the maze plane, the third is the height above the floor.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .exceptions import FaceCountMismatch
from .grid import ALL_WALLS, EAST, NORTH, SOUTH, WEST, WallGrid

LOGGER = logging.getLogger(__name__)

VERTS_PER_FACE = 4
INDICES_PER_FACE = 6
QUAD_INDICES = np.array([3, 1, 0, 3, 2, 1], dtype=np.int32)

# Face directions: the normal each quad faces.
FACE_NEG_Y = 0
FACE_POS_Y = 1
FACE_NEG_X = 2
FACE_POS_X = 3

NORMALS = {
    FACE_NEG_Y: (0.0, -1.0, 0.0),
    FACE_POS_Y: (0.0, 1.0, 0.0),
    FACE_NEG_X: (-1.0, 0.0, 0.0),
    FACE_POS_X: (1.0, 0.0, 0.0),
}

THICKNESS_RATIO = 0.1


@dataclass(frozen=True)
class MeshParams:
    maze_size: int = 64
    partitions: int = 4
    tile_size: float = 8.0
    wall_height: float = 0.25
    wall_thickness_factor: float = 1.0

    def __post_init__(self) -> None:
        if self.partitions < 1:
            raise ValueError("partitions must be >= 1")
        if self.maze_size % self.partitions != 0:
            raise ValueError("maze_size must be divisible by partitions")

    @property
    def sub_mesh_size(self) -> int:
        return self.maze_size // self.partitions

    @property
    def sub_mesh_count(self) -> int:
        return self.partitions * self.partitions

    @property
    def cell_length(self) -> float:
        return self.tile_size / self.maze_size

    @property
    def thickness(self) -> float:
        return self.cell_length * THICKNESS_RATIO * self.wall_thickness_factor

    @property
    def connector_uv_scale(self) -> float:
        return THICKNESS_RATIO * self.wall_thickness_factor


@dataclass
class CollisionVolume:
    """Triangle collider sharing the render buffers of a sub-mesh."""

    vertices: np.ndarray
    indices: np.ndarray
    aabb_min: Tuple[float, float, float]
    aabb_max: Tuple[float, float, float]

    @classmethod
    def from_buffers(cls, vertices: np.ndarray, indices: np.ndarray) -> "CollisionVolume":
        if len(vertices) == 0:
            zero = (0.0, 0.0, 0.0)
            return cls(vertices=vertices, indices=indices, aabb_min=zero, aabb_max=zero)
        lo = vertices.min(axis=0)
        hi = vertices.max(axis=0)
        return cls(
            vertices=vertices,
            indices=indices,
            aabb_min=tuple(float(v) for v in lo),
            aabb_max=tuple(float(v) for v in hi),
        )

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3


def _empty_vectors(count: int, width: int) -> np.ndarray:
    return np.zeros((count, width), dtype=np.float32)


@dataclass
class SubMesh:
    """Geometry of one partition of a tile."""

    index: int
    positions: np.ndarray = field(default_factory=lambda: _empty_vectors(0, 3))
    normals: np.ndarray = field(default_factory=lambda: _empty_vectors(0, 3))
    uvs: np.ndarray = field(default_factory=lambda: _empty_vectors(0, 2))
    indices: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int32))
    collider: Optional[CollisionVolume] = None

    @property
    def face_count(self) -> int:
        return len(self.indices) // INDICES_PER_FACE

    def clear(self) -> None:
        self.positions = _empty_vectors(0, 3)
        self.normals = _empty_vectors(0, 3)
        self.uvs = _empty_vectors(0, 2)
        self.indices = np.zeros(0, dtype=np.int32)
        self.collider = None

    def commit(self, positions: np.ndarray, normals: np.ndarray, uvs: np.ndarray, indices: np.ndarray) -> None:
        self.positions = positions
        self.normals = normals
        self.uvs = uvs
        self.indices = indices
        self.collider = CollisionVolume.from_buffers(positions, indices)


# -- Face rules -------------------------------------------------------------

def _neighbour(cells: np.ndarray, x: int, y: int) -> int:
    size = cells.shape[0]
    if 0 <= x < size and 0 <= y < size:
        return int(cells[x, y])
    # Outside the tile counts as walled so no end cap is emitted there.
    return ALL_WALLS


def count_cell_faces(cells: np.ndarray, x: int, y: int) -> int:
    """Number of quads the walls of cell ``(x, y)`` require."""

    cell = int(cells[x, y])
    total = 0
    if cell & SOUTH:
        total += 1
        east = _neighbour(cells, x + 1, y)
        if not east & SOUTH and not east & WEST:
            total += 1
        west = _neighbour(cells, x - 1, y)
        if not west & SOUTH and not west & EAST:
            total += 1
    if cell & NORTH:
        total += 1
    if cell & WEST:
        total += 1
        north = _neighbour(cells, x, y + 1)
        if not north & WEST and not north & SOUTH:
            total += 1
        south = _neighbour(cells, x, y - 1)
        if not south & WEST and not south & NORTH:
            total += 1
    if cell & EAST:
        total += 1
    return total


def iter_cell_faces(cells: np.ndarray, x: int, y: int) -> Iterator[Tuple[int, bool, bool]]:
    """Yield ``(direction, is_connector, offset_by_thickness)`` for each quad of a cell."""

    cell = int(cells[x, y])
    if cell & SOUTH:
        yield FACE_NEG_Y, False, False
        east = _neighbour(cells, x + 1, y)
        if (east & SOUTH) == 0 and (east & WEST) == 0:
            yield FACE_POS_X, True, False
        west = _neighbour(cells, x - 1, y)
        if (west & SOUTH) == 0 and (west & EAST) == 0:
            yield FACE_NEG_X, True, False
    if cell & NORTH:
        yield FACE_POS_Y, False, True
    if cell & WEST:
        yield FACE_NEG_X, False, False
        north = _neighbour(cells, x, y + 1)
        if (north & WEST) == 0 and (north & SOUTH) == 0:
            yield FACE_POS_Y, True, False
        south = _neighbour(cells, x, y - 1)
        if (south & WEST) == 0 and (south & NORTH) == 0:
            yield FACE_NEG_Y, True, False
    if cell & EAST:
        yield FACE_POS_X, False, True


def quad_corners(
    px: float,
    py: float,
    height: float,
    extent: float,
    cell_length: float,
    offset: float,
    direction: int,
) -> List[Tuple[float, float, float]]:
    """Corners of one wall quad in emission order (top edge first)."""

    if direction == FACE_NEG_Y:
        y = py + offset
        return [(px, y, height), (px + extent, y, height), (px + extent, y, 0.0), (px, y, 0.0)]
    if direction == FACE_POS_Y:
        y = py + cell_length + offset
        return [(px + extent, y, height), (px, y, height), (px, y, 0.0), (px + extent, y, 0.0)]
    if direction == FACE_NEG_X:
        x = px + offset
        return [(x, py + extent, height), (x, py, height), (x, py, 0.0), (x, py + extent, 0.0)]
    x = px + cell_length + offset
    return [(x, py, height), (x, py + extent, height), (x, py + extent, 0.0), (x, py, 0.0)]


# -- Builder ----------------------------------------------------------------

class BuildPhase(Enum):
    IDLE = auto()
    COUNT = auto()
    EMIT = auto()
    DONE = auto()


class IncrementalMeshBuilder:
    """Resumable two-phase builder for every sub-mesh of one tile."""

    def __init__(self, params: MeshParams) -> None:
        self.params = params
        self.sub_meshes = [SubMesh(index) for index in range(params.sub_mesh_count)]
        self.phase = BuildPhase.IDLE
        self.current = 0
        self.total_faces = 0
        self._grid: Optional[WallGrid] = None
        self._cursor = 0
        self._counted = 0
        self._emitted = 0
        self._positions = _empty_vectors(0, 3)
        self._normals = _empty_vectors(0, 3)
        self._uvs = _empty_vectors(0, 2)
        self._indices = np.zeros(0, dtype=np.int32)

    def reset(self) -> None:
        for sub_mesh in self.sub_meshes:
            sub_mesh.clear()
        self.phase = BuildPhase.IDLE
        self.current = 0
        self.total_faces = 0
        self._grid = None
        self._cursor = 0
        self._counted = 0
        self._emitted = 0

    def begin(self, grid: WallGrid) -> None:
        if grid.size != self.params.maze_size:
            raise ValueError("grid size does not match mesh parameters")
        self.reset()
        self._grid = grid
        self.phase = BuildPhase.COUNT

    def is_done(self) -> bool:
        return self.phase is BuildPhase.DONE

    def advance(self, init_iters: int, build_iters: int) -> bool:
        """Run one bounded batch of the active phase; ``True`` once the tile is built."""

        if self.phase is BuildPhase.COUNT:
            self._count(init_iters)
        elif self.phase is BuildPhase.EMIT:
            self._emit(build_iters)
        return self.phase is BuildPhase.DONE

    def _cells_per_sub_mesh(self) -> int:
        size = self.params.sub_mesh_size
        return size * size

    def _cell_at(self, cursor: int) -> Tuple[int, int]:
        size = self.params.sub_mesh_size
        mx = self.current % self.params.partitions
        my = self.current // self.params.partitions
        return mx * size + cursor // size, my * size + cursor % size

    def _count(self, budget: int) -> None:
        assert self._grid is not None
        cells = self._grid.cells
        if self._cursor == 0:
            self._counted = 0
        limit = self._cells_per_sub_mesh()
        end = min(limit, self._cursor + budget)
        for cursor in range(self._cursor, end):
            x, y = self._cell_at(cursor)
            self._counted += count_cell_faces(cells, x, y)
        self._cursor = end
        if self._cursor < limit:
            return
        faces = self._counted
        self._positions = _empty_vectors(faces * VERTS_PER_FACE, 3)
        self._normals = _empty_vectors(faces * VERTS_PER_FACE, 3)
        self._uvs = _empty_vectors(faces * VERTS_PER_FACE, 2)
        self._indices = np.zeros(faces * INDICES_PER_FACE, dtype=np.int32)
        self._emitted = 0
        self._cursor = 0
        self.phase = BuildPhase.EMIT

    def _emit(self, budget: int) -> None:
        assert self._grid is not None
        params = self.params
        cells = self._grid.cells
        length = params.cell_length
        thickness = params.thickness
        half = params.maze_size * 0.5
        limit = self._cells_per_sub_mesh()
        end = min(limit, self._cursor + budget)
        for cursor in range(self._cursor, end):
            x, y = self._cell_at(cursor)
            px = (x - half) * length
            py = (y - half) * length
            for direction, connector, shifted in iter_cell_faces(cells, x, y):
                extent = thickness if connector else length
                offset = thickness if shifted else 0.0
                uv_scale = params.connector_uv_scale if connector else 1.0
                self._add_face(px, py, extent, offset, direction, uv_scale)
        self._cursor = end
        if self._cursor < limit:
            return
        self._commit()

    def _add_face(self, px: float, py: float, extent: float, offset: float, direction: int, uv_scale: float) -> None:
        face = self._emitted
        if face >= self._counted:
            raise FaceCountMismatch(self.current, self._counted, face + 1)
        base = face * VERTS_PER_FACE
        corners = quad_corners(
            px, py, self.params.wall_height, extent, self.params.cell_length, offset, direction
        )
        self._positions[base:base + 4] = corners
        self._normals[base:base + 4] = NORMALS[direction]
        self._uvs[base:base + 4] = ((uv_scale, 1.0), (0.0, 1.0), (0.0, 0.0), (uv_scale, 0.0))
        start = face * INDICES_PER_FACE
        self._indices[start:start + INDICES_PER_FACE] = QUAD_INDICES + base
        self._emitted = face + 1

    def _commit(self) -> None:
        if self._emitted != self._counted:
            raise FaceCountMismatch(self.current, self._counted, self._emitted)
        self.sub_meshes[self.current].commit(self._positions, self._normals, self._uvs, self._indices)
        self.total_faces += self._emitted
        self._cursor = 0
        if self.current == len(self.sub_meshes) - 1:
            self.phase = BuildPhase.DONE
            self._grid = None
            LOGGER.debug("%d total faces generated", self.total_faces)
            return
        self.current += 1
        self.phase = BuildPhase.COUNT


def build_all(grid: WallGrid, params: MeshParams, budget: int = 512) -> List[SubMesh]:
    """Build every sub-mesh of ``grid`` without spreading the work over ticks."""

    builder = IncrementalMeshBuilder(params)
    builder.begin(grid)
    while not builder.advance(budget * 4, budget):
        pass
    return builder.sub_meshes
