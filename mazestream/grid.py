"""Square wall-bitmask grid shared by the maze generator and the mesh builder.

Every cell stores four wall bits. A wall lies on the edge between two cells,
so a set bit on one side is always mirrored by the opposite bit on the
neighbour. Cells are addressed as ``cells[x, y]``.
"""
from __future__ import annotations

from typing import List, Tuple

import numpy as np

SOUTH = 0b0001
NORTH = 0b0010
WEST = 0b0100
EAST = 0b1000
ALL_WALLS = SOUTH | NORTH | WEST | EAST

OPPOSITE = {SOUTH: NORTH, NORTH: SOUTH, WEST: EAST, EAST: WEST}


class WallGrid:
    """Fixed size ``size x size`` matrix of 4-bit wall masks."""

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError("grid size must be >= 1")
        self.size = int(size)
        self.cells = np.zeros((self.size, self.size), dtype=np.uint8)

    def __getitem__(self, key: Tuple[int, int]) -> int:
        return int(self.cells[key])

    def clear(self) -> None:
        self.cells.fill(0)

    def copy(self) -> "WallGrid":
        clone = WallGrid(self.size)
        clone.cells[:] = self.cells
        return clone

    def has_wall(self, x: int, y: int, bit: int) -> bool:
        return bool(self.cells[x, y] & bit)

    def add_vertical_wall(self, column: int, y_start: int, y_end: int, gaps: Tuple[int, ...]) -> None:
        """Place a wall along the west edge of ``column`` for rows ``[y_start, y_end)``."""

        for y in range(y_start, y_end):
            if y in gaps:
                continue
            self.cells[column, y] |= WEST
            if column > 0:
                self.cells[column - 1, y] |= EAST

    def add_horizontal_wall(self, row: int, x_start: int, x_end: int, gaps: Tuple[int, ...]) -> None:
        """Place a wall along the south edge of ``row`` for columns ``[x_start, x_end)``."""

        for x in range(x_start, x_end):
            if x in gaps:
                continue
            self.cells[x, row] |= SOUTH
            if row > 0:
                self.cells[x, row - 1] |= NORTH

    def clear_rect(self, x0: int, y0: int, x1: int, y1: int) -> None:
        """Remove every wall touching the cells of ``[x0, x1) x [y0, y1)``.

        Bits of neighbouring cells that mirror a cleared edge are removed too.
        """

        x0, y0 = max(0, x0), max(0, y0)
        x1, y1 = min(self.size, x1), min(self.size, y1)
        if x0 >= x1 or y0 >= y1:
            return
        self.cells[x0:x1, y0:y1] = 0
        if x0 > 0:
            self.cells[x0 - 1, y0:y1] &= ~EAST & 0xFF
        if x1 < self.size:
            self.cells[x1, y0:y1] &= ~WEST & 0xFF
        if y0 > 0:
            self.cells[x0:x1, y0 - 1] &= ~NORTH & 0xFF
        if y1 < self.size:
            self.cells[x0:x1, y1] &= ~SOUTH & 0xFF

    def mismatched_edges(self) -> List[Tuple[int, int, str]]:
        """List internal edges whose two sides disagree about the wall."""

        cells = self.cells
        problems: List[Tuple[int, int, str]] = []
        east = (cells[:-1, :] & EAST) != 0
        west = (cells[1:, :] & WEST) != 0
        for x, y in np.argwhere(east != west):
            problems.append((int(x), int(y), "east"))
        north = (cells[:, :-1] & NORTH) != 0
        south = (cells[:, 1:] & SOUTH) != 0
        for x, y in np.argwhere(north != south):
            problems.append((int(x), int(y), "north"))
        return problems

    def is_consistent(self) -> bool:
        return not self.mismatched_edges()

    def debug_image(self, cell_pixels: int = 4) -> np.ndarray:
        """Rasterise the maze: 255 for open floor, 0 where a wall runs.

        The image is indexed ``[x, y]`` like the grid itself.
        """

        span = self.size * cell_pixels + 1
        image = np.full((span, span), 255, dtype=np.uint8)
        for x, y in zip(*np.nonzero(self.cells)):
            cell = int(self.cells[x, y])
            px = int(x) * cell_pixels
            py = int(y) * cell_pixels
            if cell & SOUTH:
                image[px:px + cell_pixels + 1, py] = 0
            if cell & NORTH:
                image[px:px + cell_pixels + 1, py + cell_pixels] = 0
            if cell & WEST:
                image[px, py:py + cell_pixels + 1] = 0
            if cell & EAST:
                image[px + cell_pixels, py:py + cell_pixels + 1] = 0
        return image

    def render_ascii(self) -> str:
        """Text rendering with north at the top, ``#`` marking walls."""

        size = self.size
        canvas = [[" "] * (size * 2 + 1) for _ in range(size * 2 + 1)]
        for x in range(size):
            for y in range(size):
                cell = int(self.cells[x, y])
                col = x * 2 + 1
                row = (size - 1 - y) * 2 + 1
                if cell & SOUTH:
                    canvas[row + 1][col - 1:col + 2] = ["#"] * 3
                if cell & NORTH:
                    canvas[row - 1][col - 1:col + 2] = ["#"] * 3
                if cell & WEST:
                    for r in (row - 1, row, row + 1):
                        canvas[r][col - 1] = "#"
                if cell & EAST:
                    for r in (row - 1, row, row + 1):
                        canvas[r][col + 1] = "#"
        return "\n".join("".join(line).rstrip() for line in canvas)
