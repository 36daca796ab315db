"""Exception hierarchy for contract violations in the streaming core."""
from __future__ import annotations


class MazeStreamError(Exception):
    """Base class for all errors raised by :mod:`mazestream`."""


class InvariantViolation(MazeStreamError):
    """A programming contract of the generation pipeline was broken.

    The streaming grid treats these as fatal for the affected tile: outside of
    strict mode the tile build is aborted, the error is logged and the slot is
    reset so it regenerates from scratch.
    """


class StackDepthExceeded(InvariantViolation):
    def __init__(self, depth: int, limit: int) -> None:
        super().__init__(f"subdivision stack would grow to {depth} entries (limit {limit})")
        self.depth = depth
        self.limit = limit


class FaceCountMismatch(InvariantViolation):
    def __init__(self, sub_mesh: int, counted: int, emitted: int) -> None:
        super().__init__(
            f"sub-mesh {sub_mesh}: counted {counted} faces but emission produced {emitted}"
        )
        self.sub_mesh = sub_mesh
        self.counted = counted
        self.emitted = emitted


class WindowShapeError(InvariantViolation):
    """The slot window no longer covers a gapless, duplicate-free square."""
