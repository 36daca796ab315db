"""Discretised observer position consumed once per tick."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

GridPoint = Tuple[int, int]


def discretize(world_position: Sequence[float], tile_size: float) -> GridPoint:
    """Tile coordinate nearest to a 3D world position (x and z span the floor)."""

    if tile_size <= 0:
        raise ValueError("tile_size must be positive")
    x = float(world_position[0]) / tile_size
    z = float(world_position[2]) / tile_size
    return int(math.floor(x + 0.5)), int(math.floor(z + 0.5))


def round_to_even(value: int) -> int:
    return (value // 2) * 2


@dataclass
class ObserverTracker:
    """Keeps the current and previous grid position of the local observer."""

    x: int = 0
    y: int = 0
    prev_x: int = 0
    prev_y: int = 0

    @property
    def position(self) -> GridPoint:
        return self.x, self.y

    @property
    def previous(self) -> GridPoint:
        return self.prev_x, self.prev_y

    def moved(self) -> bool:
        return self.position != self.previous

    def teleported(self) -> bool:
        return abs(self.x - self.prev_x) > 1 or abs(self.y - self.prev_y) > 1

    def update(self, cell: GridPoint) -> None:
        self.prev_x, self.prev_y = self.x, self.y
        self.x, self.y = int(cell[0]), int(cell[1])

    def update_from_world(self, world_position: Sequence[float], tile_size: float) -> None:
        self.update(discretize(world_position, tile_size))

    def is_adjacent(self, cx: int, cy: int) -> bool:
        """True on the observer's tile and its four edge neighbours."""

        return abs(self.x - cx) + abs(self.y - cy) <= 1
