"""Sliding window of tile slots streamed around the observer.

The window is a fixed arena of ``N x N`` slots. Slots are never created or
destroyed after start-up; as the observer walks, the slots that fall behind
are relabelled with coordinates on the leading edge and regenerated there,
like a treadmill. Repositioning only happens when the observer reaches an
even coordinate, which keeps an observer pacing across a single tile border
from triggering regeneration over and over.
"""
from __future__ import annotations

import logging
from enum import Enum, auto
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .exceptions import InvariantViolation, WindowShapeError
from .maze import MazeGenerator
from .mesh import IncrementalMeshBuilder, SubMesh
from .observer import GridPoint, ObserverTracker, round_to_even
from .seeding import TileKey, wrap_int32
from .settings import WorldSettings
from .xorshift import Xorshift

LOGGER = logging.getLogger(__name__)

SPAWN_TILE = (0, 0)


class SlotState(Enum):
    IDLE = auto()
    PENDING = auto()
    GENERATING = auto()
    MESHING = auto()
    READY = auto()


ACTIVE_STATES = (SlotState.GENERATING, SlotState.MESHING)


class TileSlot:
    """One reusable tile of the window and its generation pipeline."""

    def __init__(self, index: int) -> None:
        self.index = index
        self.coord: Optional[GridPoint] = None
        self.state = SlotState.IDLE
        self.visible = False
        self.generator: Optional[MazeGenerator] = None
        self.builder: Optional[IncrementalMeshBuilder] = None
        self._key: Optional[TileKey] = None

    def __repr__(self) -> str:
        return f"TileSlot(index={self.index}, coord={self.coord}, state={self.state.name})"

    @property
    def is_bound(self) -> bool:
        return self.generator is not None and self.builder is not None

    @property
    def active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def sub_meshes(self) -> List[SubMesh]:
        return self.builder.sub_meshes if self.builder is not None else []

    @property
    def face_count(self) -> int:
        return sum(sub_mesh.face_count for sub_mesh in self.sub_meshes)

    def bind(self, generator: MazeGenerator, builder: IncrementalMeshBuilder) -> None:
        self.generator = generator
        self.builder = builder

    def origin(self, tile_size: float) -> Tuple[float, float]:
        if self.coord is None:
            raise RuntimeError(f"slot {self.index} has not been placed")
        return self.coord[0] * tile_size, self.coord[1] * tile_size

    def relabel(self, coord: GridPoint) -> None:
        self.coord = (int(coord[0]), int(coord[1]))
        self.reset()

    def reset(self) -> None:
        """Cancel any pipeline work and drop the slot's geometry."""

        if self.generator is not None:
            self.generator.reset()
        if self.builder is not None:
            self.builder.reset()
        self._key = None
        self.state = SlotState.IDLE

    def start(self, rng: Xorshift, world_seed: int) -> None:
        assert self.generator is not None and self.coord is not None
        self._key = TileKey(self.coord[0], self.coord[1], world_seed)
        rng.seed(self._key.seed_for(0))
        self.generator.init(rng, carve_spawn_room=self.coord == SPAWN_TILE)
        self.state = SlotState.GENERATING

    def advance(self, rng: Xorshift, settings: WorldSettings) -> None:
        """Run one bounded batch of whichever phase the slot is in."""

        assert self.generator is not None and self.builder is not None
        if self.state is SlotState.GENERATING:
            assert self._key is not None
            self.generator.run_batch(rng, self._key, settings.generation_iters)
            if self.generator.is_done():
                LOGGER.debug("tile %s maze done after %d steps", self.coord, self.generator.steps_taken)
                self.builder.begin(self.generator.grid)
                self.state = SlotState.MESHING
        elif self.state is SlotState.MESHING:
            if self.builder.advance(settings.init_iters, settings.build_iters):
                LOGGER.debug("tile %s built with %d faces", self.coord, self.builder.total_faces)
                self.state = SlotState.READY


def window_span(anchor: int, size: int) -> range:
    start = anchor - size // 2
    return range(start, start + size)


def window_coords(anchor: GridPoint, size: int) -> List[GridPoint]:
    """Coordinates of the square window, x-major then y ascending."""

    return [(x, y) for x in window_span(anchor[0], size) for y in window_span(anchor[1], size)]


def check_window_shape(coords: Sequence[Optional[GridPoint]], size: int) -> None:
    """Raise :class:`WindowShapeError` unless ``coords`` form a full square."""

    if len(coords) != size * size or any(coord is None for coord in coords):
        raise WindowShapeError("window has unplaced slots")
    points = set(coords)
    if len(points) != len(coords):
        raise WindowShapeError("window contains duplicate tile coordinates")
    xs = [point[0] for point in points]
    ys = [point[1] for point in points]
    if max(xs) - min(xs) != size - 1 or max(ys) - min(ys) != size - 1:
        raise WindowShapeError(f"window is not a {size}x{size} square")


class StreamingGrid:
    """Fixed window of tile slots that follows the observer."""

    def __init__(self, settings: WorldSettings, observer: Optional[ObserverTracker] = None) -> None:
        settings.validate()
        self.settings = settings
        self.size = settings.window_size
        self.observer = observer or ObserverTracker()
        self.world_seed: Optional[int] = None
        self.ready = False
        self.reposition_count = 0
        self._anchor: GridPoint = (0, 0)
        self.slots = [TileSlot(index) for index in range(self.size * self.size)]
        mesh_params = settings.mesh_params()
        for slot in self.slots:
            slot.bind(MazeGenerator(settings.maze_size), IncrementalMeshBuilder(mesh_params))

    @property
    def anchor(self) -> GridPoint:
        return self._anchor

    @property
    def seed_synced(self) -> bool:
        return self.world_seed is not None

    def receive_seed(self, seed: int) -> None:
        self.world_seed = wrap_int32(seed)
        LOGGER.info("Received world seed %d", self.world_seed)

    def coords(self) -> List[Optional[GridPoint]]:
        return [slot.coord for slot in self.slots]

    def slot_at(self, cx: int, cy: int) -> Optional[TileSlot]:
        for slot in self.slots:
            if slot.coord == (cx, cy):
                return slot
        return None

    def slots_by_coord(self) -> Dict[GridPoint, TileSlot]:
        return {slot.coord: slot for slot in self.slots if slot.coord is not None}

    def active_count(self) -> int:
        return sum(1 for slot in self.slots if slot.active)

    def is_settled(self) -> bool:
        """True when every slot around the observer is built and nothing is running."""

        if not self.ready:
            return False
        for slot in self.slots:
            if slot.active:
                return False
            if slot.coord is not None and self.observer.is_adjacent(*slot.coord):
                if slot.state is not SlotState.READY:
                    return False
        return True

    def check_ready(self) -> bool:
        self.ready = self.seed_synced and all(slot.is_bound for slot in self.slots)
        return self.ready

    def tick(self, rng: Xorshift, observer_cell: Optional[GridPoint] = None) -> None:
        """Advance the window by one scheduler tick."""

        self.observer.update(observer_cell if observer_cell is not None else self.observer.position)
        if not self.ready:
            if self.check_ready():
                LOGGER.info("World generator ready with seed %d", self.world_seed)
                self.reseed_window()
            return
        self._update_positions()
        self._update_visibility()
        self._advance_slots(rng)

    def reseed_window(self) -> None:
        """Place every slot on its canonical square around the observer."""

        x, y = self.observer.position
        self._anchor = (round_to_even(x), round_to_even(y))
        for slot, coord in zip(self.slots, window_coords(self._anchor, self.size)):
            slot.relabel(coord)
        self._verify_window()

    def _update_positions(self) -> None:
        observer = self.observer
        if not observer.moved():
            return
        try:
            if observer.teleported():
                LOGGER.info(
                    "Observer jumped from %s to %s, re-seeding window", observer.previous, observer.position
                )
                self.reseed_window()
                return
            x, y = observer.position
            prev_x, prev_y = observer.previous
            if x != prev_x and x % 2 == 0:
                self._anchor = (x, self._anchor[1])
                self._shift_window("x", x - prev_x)
            if y != prev_y and y % 2 == 0:
                self._anchor = (self._anchor[0], y)
                self._shift_window("y", y - prev_y)
        except InvariantViolation as exc:
            if self.settings.strict:
                raise
            LOGGER.error("Window invariant broken (%s), re-seeding around %s", exc, observer.position)
            self.reseed_window()

    def _shift_window(self, axis: str, direction: int) -> None:
        desired = window_coords(self._anchor, self.size)
        desired_set = set(desired)
        occupied = {slot.coord for slot in self.slots if slot.coord in desired_set}
        missing = [coord for coord in desired if coord not in occupied]
        stale = [slot for slot in self.slots if slot.coord not in desired_set]
        if len(missing) != len(stale):
            raise WindowShapeError(
                f"cannot move {len(stale)} slot(s) onto {len(missing)} free coordinate(s)"
            )
        for slot, coord in zip(stale, missing):
            slot.relabel(coord)
        if stale:
            self.reposition_count += 1
            LOGGER.debug(
                "Treadmill on %s axis (direction %+d): relabelled %d slot(s), anchor now %s",
                axis,
                direction,
                len(stale),
                self._anchor,
            )
        self._verify_window()

    def _verify_window(self) -> None:
        check_window_shape(self.coords(), self.size)

    def _update_visibility(self) -> None:
        for slot in self.slots:
            slot.visible = slot.coord is not None and self.observer.is_adjacent(*slot.coord)

    def _advance_slots(self, rng: Xorshift) -> None:
        assert self.world_seed is not None
        for slot in self.slots:
            if slot.state is SlotState.IDLE and slot.coord is not None:
                slot.state = SlotState.PENDING
        active = self.active_count()
        for slot in self._admission_order():
            if active >= self.settings.max_parallel_chunks:
                break
            slot.start(rng, self.world_seed)
            active += 1
        for slot in self.slots:
            if not slot.active:
                continue
            try:
                slot.advance(rng, self.settings)
            except InvariantViolation as exc:
                if self.settings.strict:
                    raise
                LOGGER.error("Aborting build of tile %s: %s", slot.coord, exc)
                slot.reset()

    def _admission_order(self) -> Iterable[TileSlot]:
        for slot in self.slots:
            if slot.state is SlotState.PENDING and slot.coord is not None:
                if self.observer.is_adjacent(*slot.coord):
                    yield slot
