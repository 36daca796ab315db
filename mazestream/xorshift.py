"""Seedable xorshift128+ bit generator shared by every tile pipeline.

Only integer arithmetic feeds the generator state, so a given seed yields the
same sequence on every host. The floating point helpers are derived from the
integer output and never feed back into the state.
"""
from __future__ import annotations

import math

MASK64 = (1 << 64) - 1
GOLDEN_GAMMA = 0x9E3779B97F4A7C15
FLOAT_MANTISSA_MASK = 0xFFFFFF
INT_DRAW_MASK = 0x0FFFFFFF


def _splitmix64(value: int) -> int:
    value = (value ^ (value >> 30)) * 0xBF58476D1CE4E5B9 & MASK64
    value = (value ^ (value >> 27)) * 0x94D049BB133111EB & MASK64
    return value ^ (value >> 31)


class Xorshift:
    """xorshift128+ generator with a splitmix style seeding routine."""

    __slots__ = ("_hi", "_lo")

    def __init__(self, seed: int | None = None) -> None:
        self._hi = 326264246
        self._lo = 235632513
        if seed is not None:
            self.seed(seed)

    def seed(self, value: int) -> None:
        """Reset the state from a 64-bit seed; the state is never all zero."""

        value &= MASK64
        self._lo = _splitmix64((value + GOLDEN_GAMMA) & MASK64)
        self._hi = _splitmix64((value + 2 * GOLDEN_GAMMA) & MASK64)
        if self._lo == 0 and self._hi == 0:
            self._lo = GOLDEN_GAMMA

    @property
    def state(self) -> tuple[int, int]:
        return self._hi, self._lo

    def next_u64(self) -> int:
        t = self._lo
        s = self._hi
        self._lo = s
        t ^= (t << 23) & MASK64
        t ^= t >> 18
        t ^= s ^ (s >> 5)
        self._hi = t
        # Drop the two low bits, they carry the linear artifacts of xorshift+.
        return ((t + s) & MASK64) >> 2

    def next_float(self) -> float:
        """Uniform value in the inclusive range [0, 1]."""

        return (self.next_u64() & FLOAT_MANTISSA_MASK) / float(FLOAT_MANTISSA_MASK)

    def next_double(self) -> float:
        return float(self.next_u64() & FLOAT_MANTISSA_MASK) / 16777215.0

    def next_int(self, maximum: int) -> int:
        """Integer in ``[0, maximum - 1]``; modulo biased, 0 when ``maximum <= 1``."""

        if maximum <= 1:
            return 0
        return (self.next_u64() & INT_DRAW_MASK) % maximum

    def next_gaussian(self) -> float:
        """Standard normal sample using the Box-Muller transform."""

        u1 = 1.0 - self.next_float()
        u2 = 1.0 - self.next_float()
        # u1 reaches 0 when the draw hits the top of the mantissa range.
        u1 = max(u1, 1.0 / FLOAT_MANTISSA_MASK)
        return math.sqrt(-2.0 * math.log(u1)) * math.cos(math.tau * u2)
