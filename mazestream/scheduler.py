"""Cooperative single-threaded driver for the streaming core."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

from .observer import GridPoint
from .seeding import SeedChannel, resolve_world_seed
from .settings import WorldSettings
from .streaming import StreamingGrid
from .xorshift import Xorshift

LOGGER = logging.getLogger(__name__)


class Scheduler:
    """Ticks the streaming grid and exclusively owns the shared PRNG.

    Every consumer receives the generator only for the duration of one tick
    and reseeds it from a tile key before drawing, so the order in which tile
    batches run never leaks into the generated world.
    """

    def __init__(self, grid: StreamingGrid, rng: Optional[Xorshift] = None) -> None:
        self.grid = grid
        self._rng = rng or Xorshift()
        self.ticks = 0

    def tick(self, observer_cell: Optional[GridPoint] = None) -> None:
        self.ticks += 1
        self.grid.tick(self._rng, observer_cell)

    def run(self, ticks: int, observer_cell: Optional[GridPoint] = None) -> None:
        for _ in range(ticks):
            self.tick(observer_cell)

    def run_until_settled(self, max_ticks: int = 100_000, observer_cell: Optional[GridPoint] = None) -> int:
        """Tick until the tiles around the observer are built; returns the ticks used."""

        # //1.- The first tick only binds positions once the grid turns ready.
        for used in range(1, max_ticks + 1):
            self.tick(observer_cell)
            if self.grid.is_settled():
                return used
        raise RuntimeError(f"grid did not settle within {max_ticks} ticks")


@dataclass
class World:
    """A streaming grid wired to its scheduler and seed channel."""

    settings: WorldSettings
    grid: StreamingGrid
    scheduler: Scheduler
    channel: SeedChannel


def build_world(
    settings: WorldSettings,
    channel: Optional[SeedChannel] = None,
    *,
    authority: bool = True,
    rng: Optional[random.Random] = None,
) -> World:
    """Create a grid subscribed to ``channel``; the authority also publishes the seed."""

    # //1.- Peers share one channel; the authority publishes once for everybody.
    channel = channel or SeedChannel()
    grid = StreamingGrid(settings)
    channel.subscribe(grid.receive_seed)
    if authority and not channel.published:
        seed = resolve_world_seed(settings.world_seed, settings.randomize_seed_on_start, rng)
        channel.publish(seed)
    elif not channel.published:
        LOGGER.info("Waiting for the world seed from the authority")
    return World(settings=settings, grid=grid, scheduler=Scheduler(grid), channel=channel)
