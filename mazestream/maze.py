"""Resumable recursive-division maze generator.

The classic recursive division method leaves exactly one path through the
maze. Two changes keep the world traversable in many ways:

* every divider gets two gaps, three once the wall is 32 cells or longer;
* small regions may stop subdividing at random, which leaves open rooms.

Recursion is replaced by an explicit stack of regions so the work can be cut
into single :meth:`MazeGenerator.step` calls and spread over many ticks.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Tuple

from .exceptions import StackDepthExceeded
from .grid import WallGrid
from .seeding import TileKey
from .xorshift import Xorshift

LOGGER = logging.getLogger(__name__)

MAX_STACK_DEPTH = 32
MIN_REGION_SIZE = 3
ROOM_PRUNE_SIZE = 8
THIRD_GAP_SPAN = 32
SPAWN_ROOM_WIDTH = 6
SPAWN_ROOM_HEIGHT = 10


class GeneratorState(Enum):
    IDLE = auto()
    GENERATING = auto()
    DONE = auto()


@dataclass
class Region:
    """Rectangle of cells waiting to be split by a divider."""

    x: int
    y: int
    width: int
    height: int
    divider: int = 0
    vertical: bool = False
    needs_divider: bool = True


class MazeGenerator:
    """Owns one tile's wall grid and the region stack that fills it."""

    def __init__(self, maze_size: int = 64) -> None:
        self.maze_size = int(maze_size)
        self.grid = WallGrid(self.maze_size)
        self.state = GeneratorState.IDLE
        self.steps_taken = 0
        self.max_depth_seen = 0
        self._stack: List[Region] = []
        self._carve_spawn_room = False

    @property
    def stack_depth(self) -> int:
        return len(self._stack)

    def is_done(self) -> bool:
        return self.state is GeneratorState.DONE

    def reset(self) -> None:
        self.grid.clear()
        self._stack.clear()
        self.state = GeneratorState.IDLE
        self.steps_taken = 0
        self.max_depth_seen = 0

    def init(self, rng: Xorshift, carve_spawn_room: bool = False) -> None:
        """Clear the grid and push the whole tile as the root region."""

        self.reset()
        self._carve_spawn_room = carve_spawn_room
        self.state = GeneratorState.GENERATING
        size = self.maze_size
        if size < MIN_REGION_SIZE:
            # Too small to hold a divider: the tile stays one open room.
            return
        root = Region(x=0, y=0, width=size, height=size)
        root.divider = rng.next_int(size - 1) + 1
        root.vertical = False
        root.needs_divider = False
        self._push(root)

    def step(self, rng: Xorshift) -> None:
        """Perform exactly one stack operation."""

        if self.state is not GeneratorState.GENERATING:
            return
        self.steps_taken += 1
        if not self._stack:
            self._finish()
            return
        region = self._stack.pop()
        if region.needs_divider:
            region.vertical = region.width > region.height
            span = region.width if region.vertical else region.height
            region.divider = rng.next_int(span - 1) + 1
            region.needs_divider = False
            self._stack.append(region)
            return
        if region.vertical:
            self._carve_vertical(region, rng)
        else:
            self._carve_horizontal(region, rng)
        self._divide(region, rng)

    def run_batch(self, rng: Xorshift, key: TileKey, iterations: int) -> int:
        """Run up to ``iterations`` steps, reseeding ``rng`` before each one.

        The seed of every step is keyed by the tile and the number of steps
        already taken, so the grid does not depend on how steps are batched or
        on what other tiles drew from ``rng`` in between. Returns the number of
        steps performed.
        """

        performed = 0
        while performed < iterations and self.state is GeneratorState.GENERATING:
            rng.seed(key.seed_for(self.steps_taken))
            self.step(rng)
            performed += 1
        return performed

    def _push(self, region: Region) -> None:
        depth = len(self._stack) + 1
        if depth > MAX_STACK_DEPTH:
            raise StackDepthExceeded(depth, MAX_STACK_DEPTH)
        self._stack.append(region)
        self.max_depth_seen = max(self.max_depth_seen, depth)

    def _draw_gaps(self, rng: Xorshift, start: int, span: int) -> Tuple[int, ...]:
        first = rng.next_int(span) + start
        second = rng.next_int(span) + start
        if span >= THIRD_GAP_SPAN:
            return first, second, rng.next_int(span) + start
        return first, second

    def _carve_vertical(self, region: Region, rng: Xorshift) -> None:
        gaps = self._draw_gaps(rng, region.y, region.height)
        column = region.x + region.divider
        self.grid.add_vertical_wall(column, region.y, region.y + region.height, gaps)

    def _carve_horizontal(self, region: Region, rng: Xorshift) -> None:
        gaps = self._draw_gaps(rng, region.x, region.width)
        row = region.y + region.divider
        self.grid.add_horizontal_wall(row, region.x, region.x + region.width, gaps)

    def _keep_child(self, size: int, parallel: int, rng: Xorshift) -> bool:
        if size < MIN_REGION_SIZE:
            return False
        d = min(size, parallel)
        if d < ROOM_PRUNE_SIZE and rng.next_int(d * 2) == 0:
            return False
        return True

    def _divide(self, region: Region, rng: Xorshift) -> None:
        div = region.divider
        if region.vertical:
            if region.height < MIN_REGION_SIZE:
                return
            if self._keep_child(div, region.height, rng):
                self._push(Region(region.x, region.y, div, region.height))
            rest = region.width - div
            if self._keep_child(rest, region.height, rng):
                self._push(Region(region.x + div, region.y, rest, region.height))
        else:
            if region.width < MIN_REGION_SIZE:
                return
            if self._keep_child(div, region.width, rng):
                self._push(Region(region.x, region.y, region.width, div))
            rest = region.height - div
            if self._keep_child(rest, region.width, rng):
                self._push(Region(region.x, region.y + div, region.width, rest))

    def _finish(self) -> None:
        if self._carve_spawn_room:
            half = self.maze_size // 2
            self.grid.clear_rect(
                half - SPAWN_ROOM_WIDTH // 2,
                half - SPAWN_ROOM_HEIGHT // 2,
                half + SPAWN_ROOM_WIDTH // 2,
                half + SPAWN_ROOM_HEIGHT // 2,
            )
        self.state = GeneratorState.DONE
        LOGGER.debug(
            "maze finished after %d steps (max stack depth %d)", self.steps_taken, self.max_depth_seen
        )


def generate_maze(
    key: TileKey,
    maze_size: int = 64,
    carve_spawn_room: bool = False,
    batch_size: int = 8,
    rng: Xorshift | None = None,
) -> WallGrid:
    """Run a generator to completion and return its grid."""

    rng = rng or Xorshift()
    generator = MazeGenerator(maze_size)
    rng.seed(key.seed_for(0))
    generator.init(rng, carve_spawn_room)
    while not generator.is_done():
        generator.run_batch(rng, key, batch_size)
    return generator.grid
