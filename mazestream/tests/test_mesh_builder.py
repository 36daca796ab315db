"""Tests for the incremental two-phase wall mesh builder."""
from __future__ import annotations

import numpy as np
import pytest

from mazestream.exceptions import FaceCountMismatch
from mazestream.grid import WallGrid
from mazestream.maze import generate_maze
from mazestream.mesh import (
    BuildPhase,
    IncrementalMeshBuilder,
    MeshParams,
    build_all,
    count_cell_faces,
)
from mazestream.seeding import TileKey


def _maze(size: int = 32, seed: int = 4242) -> WallGrid:
    return generate_maze(TileKey(1, 2, seed), size)


def _faces(sub_meshes) -> list:
    """Every quad as a sorted-comparable tuple of its twelve coordinates."""

    quads = []
    for sub_mesh in sub_meshes:
        for face in sub_mesh.positions.reshape(-1, 12):
            quads.append(tuple(float(value) for value in face))
    return sorted(quads)


def test_counted_faces_match_emitted_buffers() -> None:
    grid = _maze()
    params = MeshParams(maze_size=32, partitions=4)
    sub_meshes = build_all(grid, params)
    cells = grid.cells
    size = params.sub_mesh_size
    for sub_mesh in sub_meshes:
        mx, my = sub_mesh.index % 4, sub_mesh.index // 4
        expected = sum(
            count_cell_faces(cells, x, y)
            for x in range(mx * size, (mx + 1) * size)
            for y in range(my * size, (my + 1) * size)
        )
        assert sub_mesh.face_count == expected
        assert len(sub_mesh.positions) == 4 * expected
        assert len(sub_mesh.normals) == 4 * expected
        assert len(sub_mesh.uvs) == 4 * expected
        assert len(sub_mesh.indices) == 6 * expected
        assert sub_mesh.positions.dtype == np.float32
        assert sub_mesh.indices.dtype == np.int32


def test_quads_use_the_shared_index_pattern() -> None:
    sub_meshes = build_all(_maze(), MeshParams(maze_size=32, partitions=2))
    populated = [sub_mesh for sub_mesh in sub_meshes if sub_mesh.face_count > 1]
    assert populated
    indices = populated[0].indices
    assert indices[:6].tolist() == [3, 1, 0, 3, 2, 1]
    assert indices[6:12].tolist() == [7, 5, 4, 7, 6, 5]


def test_triangle_winding_agrees_with_vertex_normals() -> None:
    for sub_mesh in build_all(_maze(16, 77), MeshParams(maze_size=16, partitions=2)):
        triangles = sub_mesh.indices.reshape(-1, 3)
        for a, b, c in triangles:
            p0, p1, p2 = sub_mesh.positions[a], sub_mesh.positions[b], sub_mesh.positions[c]
            facing = np.cross(p1 - p0, p2 - p0)
            assert float(np.dot(facing, sub_mesh.normals[a])) > 0.0


def test_geometry_does_not_depend_on_partitioning() -> None:
    grid = _maze(32, 9001)
    single = build_all(grid, MeshParams(maze_size=32, partitions=1))
    split = build_all(grid, MeshParams(maze_size=32, partitions=4))
    assert len(single) == 1
    assert len(split) == 16
    assert _faces(single) == _faces(split)


def test_interior_horizontal_wall_gets_both_end_caps() -> None:
    grid = WallGrid(8)
    grid.add_horizontal_wall(3, 3, 4, gaps=())
    (sub_mesh,) = build_all(grid, MeshParams(maze_size=8, partitions=1))
    assert sub_mesh.face_count == 4


def test_interior_vertical_wall_gets_both_end_caps() -> None:
    grid = WallGrid(8)
    grid.add_vertical_wall(3, 3, 4, gaps=())
    (sub_mesh,) = build_all(grid, MeshParams(maze_size=8, partitions=1))
    assert sub_mesh.face_count == 4


def test_no_end_cap_against_the_tile_border() -> None:
    grid = WallGrid(8)
    grid.add_horizontal_wall(3, 0, 1, gaps=())
    assert count_cell_faces(grid.cells, 0, 3) == 2
    (sub_mesh,) = build_all(grid, MeshParams(maze_size=8, partitions=1))
    assert sub_mesh.face_count == 3


def test_continuous_wall_has_caps_only_at_its_ends() -> None:
    grid = WallGrid(8)
    grid.add_horizontal_wall(4, 2, 6, gaps=())
    # Four south faces, four north faces and one cap at each end.
    (sub_mesh,) = build_all(grid, MeshParams(maze_size=8, partitions=1))
    assert sub_mesh.face_count == 10


def test_connector_faces_are_thin() -> None:
    params = MeshParams(maze_size=8, partitions=1, tile_size=8.0, wall_thickness_factor=2.0)
    grid = WallGrid(8)
    grid.add_horizontal_wall(3, 3, 4, gaps=())
    (sub_mesh,) = build_all(grid, params)
    widths = []
    for face in sub_mesh.positions.reshape(-1, 4, 3):
        span = face.max(axis=0) - face.min(axis=0)
        widths.append(round(float(max(span[0], span[1])), 5))
    assert sorted(widths) == [0.2, 0.2, 1.0, 1.0]
    assert params.thickness == pytest.approx(0.2)


def test_builder_walks_the_phases_in_order() -> None:
    grid = _maze(8, 5)
    params = MeshParams(maze_size=8, partitions=2)
    builder = IncrementalMeshBuilder(params)
    assert builder.phase is BuildPhase.IDLE
    builder.begin(grid)
    assert builder.phase is BuildPhase.COUNT

    phases = []
    while True:
        done = builder.advance(8, 8)
        phases.append((builder.current, builder.phase))
        if done:
            break
    # Each 4x4 sub-mesh takes two counting and two emission batches.
    assert phases[:4] == [
        (0, BuildPhase.COUNT),
        (0, BuildPhase.EMIT),
        (0, BuildPhase.EMIT),
        (1, BuildPhase.COUNT),
    ]
    assert phases[-1] == (3, BuildPhase.DONE)
    assert len(phases) == 16
    assert builder.total_faces == sum(sub_mesh.face_count for sub_mesh in builder.sub_meshes)


def test_walls_added_after_counting_are_detected() -> None:
    grid = WallGrid(8)
    builder = IncrementalMeshBuilder(MeshParams(maze_size=8, partitions=1))
    builder.begin(grid)
    builder.advance(64, 0)
    assert builder.phase is BuildPhase.EMIT
    grid.add_vertical_wall(4, 0, 8, gaps=())
    with pytest.raises(FaceCountMismatch) as excinfo:
        builder.advance(0, 64)
    assert excinfo.value.counted == 0


def test_walls_removed_after_counting_are_detected() -> None:
    grid = _maze(8, 11)
    assert grid.cells.any()
    builder = IncrementalMeshBuilder(MeshParams(maze_size=8, partitions=1))
    builder.begin(grid)
    builder.advance(64, 0)
    grid.clear()
    with pytest.raises(FaceCountMismatch) as excinfo:
        builder.advance(0, 64)
    assert excinfo.value.emitted == 0
    assert excinfo.value.counted > 0


def test_collider_bounds_cover_the_walls() -> None:
    params = MeshParams(maze_size=16, partitions=1, tile_size=4.0, wall_height=0.5)
    (sub_mesh,) = build_all(_maze(16, 3), params)
    collider = sub_mesh.collider
    assert collider is not None
    assert collider.triangle_count == 2 * sub_mesh.face_count
    assert collider.aabb_min[2] == 0.0
    assert collider.aabb_max[2] == pytest.approx(0.5)
    limit = 2.0 + params.thickness
    assert -limit <= collider.aabb_min[0] and collider.aabb_max[0] <= limit
    assert -limit <= collider.aabb_min[1] and collider.aabb_max[1] <= limit


def test_empty_grid_builds_empty_sub_meshes() -> None:
    sub_meshes = build_all(WallGrid(8), MeshParams(maze_size=8, partitions=2))
    assert [sub_mesh.face_count for sub_mesh in sub_meshes] == [0, 0, 0, 0]
    assert all(sub_mesh.collider is not None for sub_mesh in sub_meshes)
    assert sub_meshes[0].collider.aabb_max == (0.0, 0.0, 0.0)


def test_invalid_parameters_are_rejected() -> None:
    with pytest.raises(ValueError):
        MeshParams(maze_size=10, partitions=4)
    with pytest.raises(ValueError):
        MeshParams(partitions=0)
    builder = IncrementalMeshBuilder(MeshParams(maze_size=8, partitions=1))
    with pytest.raises(ValueError):
        builder.begin(WallGrid(16))
