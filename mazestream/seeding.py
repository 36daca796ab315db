"""World seed distribution and per-tile seed derivation."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, List, Optional

LOGGER = logging.getLogger(__name__)

INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1
RANDOM_SEED_LIMIT = 2_000_000_000

TILE_X_FACTOR = 13263126
TILE_Y_FACTOR = 2154135
COUNTER_FACTOR = 10413561


# //1.- Emulate signed 32-bit overflow so every host derives the same seeds.
def wrap_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value > INT32_MAX else value


# //2.- Fold a signed seed into the non-negative range fed to the PRNG.
def normalize_seed(seed: int) -> int:
    seed = wrap_int32(seed)
    if seed < 0:
        seed = INT32_MAX + seed
    # The only value still negative here is INT32_MIN, which lands on 0xFFFFFFFF.
    return seed & 0xFFFFFFFF


# //3.- Combine tile coordinate, world seed and step counter into one seed.
def tile_seed(cx: int, cy: int, world_seed: int, counter: int = 0) -> int:
    mixed = wrap_int32(
        wrap_int32(cx * TILE_X_FACTOR)
        + wrap_int32(cy * TILE_Y_FACTOR)
        + world_seed
        + wrap_int32(counter * COUNTER_FACTOR)
    )
    return normalize_seed(mixed)


@dataclass(frozen=True)
class TileKey:
    """Identifies the PRNG stream of one tile generation."""

    cx: int
    cy: int
    world_seed: int

    def seed_for(self, counter: int) -> int:
        return tile_seed(self.cx, self.cy, self.world_seed, counter)


# //4.- Choose the seed the authority will publish at startup.
def resolve_world_seed(
    configured: int,
    randomize: bool = False,
    rng: Optional[random.Random] = None,
) -> int:
    if not randomize:
        return wrap_int32(configured)
    source = rng or random.Random()
    return int(source.random() * RANDOM_SEED_LIMIT)


SeedListener = Callable[[int], None]


class SeedChannel:
    """In-process stand-in for the seed replication transport.

    One authority publishes the world seed once. Every subscriber receives the
    value, including subscribers that register after publication.
    """

    def __init__(self) -> None:
        self._seed: Optional[int] = None
        self._listeners: List[SeedListener] = []

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    @property
    def published(self) -> bool:
        return self._seed is not None

    def publish(self, seed: int) -> None:
        # //5.- Only the first publication counts; peers must all converge on it.
        if self._seed is not None:
            if wrap_int32(seed) != self._seed:
                raise RuntimeError("world seed was already published with a different value")
            return
        self._seed = wrap_int32(seed)
        LOGGER.info("Publishing world seed %d to %d peer(s)", self._seed, len(self._listeners))
        for listener in list(self._listeners):
            listener(self._seed)

    def subscribe(self, listener: SeedListener) -> None:
        self._listeners.append(listener)
        # //6.- Late joiners get the stored seed straight away.
        if self._seed is not None:
            listener(self._seed)
