"""Command line harness that streams the maze around a scripted walk."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Sequence, TextIO, Tuple

from .observer import GridPoint
from .scheduler import build_world
from .settings import load_world_settings

LOGGER = logging.getLogger(__name__)

MOVES = {"N": (0, 1), "S": (0, -1), "E": (1, 0), "W": (-1, 0)}


def _parse_walk(value: str) -> str:
    walk = value.strip().upper()
    unknown = sorted(set(walk) - set(MOVES))
    if unknown:
        raise argparse.ArgumentTypeError(f"unknown move(s) {''.join(unknown)}; use N, S, E or W")
    return walk


def _parse_coord(value: str) -> Tuple[int, int]:
    try:
        cx, cy = (int(part) for part in value.split(","))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"'{value}' is not a CX,CY tile coordinate") from exc
    return cx, cy


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"'{value}' is not an integer") from exc
    if number < 1:
        raise argparse.ArgumentTypeError("value must be >= 1")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mazestream",
        description="Stream an endless procedurally generated maze around a walking observer.",
    )
    parser.add_argument("--config", help="JSON settings file (defaults to the bundled world.json)")
    parser.add_argument("--seed", type=int, help="world seed published by the authority")
    parser.add_argument("--walk", type=_parse_walk, default="", help="moves to apply, e.g. EENNW")
    parser.add_argument(
        "--step-ticks",
        type=_positive_int,
        default=1,
        help="ticks spent on each tile of the walk before taking the next step",
    )
    parser.add_argument(
        "--ticks",
        type=_positive_int,
        default=None,
        help="ticks to run after the walk (default: until the tiles around the observer are built)",
    )
    parser.add_argument("--dump-tile", type=_parse_coord, help="print the maze of tile CX,CY once built")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging verbosity",
    )
    return parser


def _walk_positions(start: GridPoint, walk: str) -> List[GridPoint]:
    x, y = start
    positions = []
    for move in walk:
        dx, dy = MOVES[move]
        x, y = x + dx, y + dy
        positions.append((x, y))
    return positions


def run(argv: Optional[Sequence[str]] = None, out: TextIO = sys.stdout) -> int:
    args = build_parser().parse_args(argv)
    overrides = {"world_seed": args.seed} if args.seed is not None else None
    settings = load_world_settings(args.config, overrides=overrides)
    world = build_world(settings)
    scheduler = world.scheduler
    grid = world.grid

    # //1.- Walk the observer one tile at a time, dwelling on each tile.
    position: GridPoint = (0, 0)
    scheduler.tick(position)
    for position in _walk_positions(position, args.walk):
        scheduler.run(args.step_ticks, position)

    # //2.- Either run a fixed number of ticks or wait for nearby tiles.
    if args.ticks is not None:
        scheduler.run(args.ticks, position)
    else:
        scheduler.run_until_settled(observer_cell=position)
    LOGGER.info("Streamed %d tick(s), %d treadmill move(s)", scheduler.ticks, grid.reposition_count)

    out.write(f"seed={grid.world_seed} observer={grid.observer.position} ticks={scheduler.ticks}\n")
    for slot in sorted(grid.slots, key=lambda item: item.coord or (0, 0)):
        marker = "*" if slot.visible else " "
        out.write(f"{marker} {slot.coord}: {slot.state.name.lower():<10} faces={slot.face_count}\n")

    # //3.- Optionally print a finished tile as ASCII art.
    if args.dump_tile is not None:
        slot = grid.slot_at(*args.dump_tile)
        if slot is None or slot.generator is None or not slot.generator.is_done():
            out.write(f"tile {args.dump_tile} has no finished maze in the current window\n")
            return 1
        out.write(slot.generator.grid.render_ascii() + "\n")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="[%(asctime)s] %(levelname)s %(message)s")
    return run(argv)


if __name__ == "__main__":  # pragma: no cover - exercised via ``python -m`` execution
    raise SystemExit(main())
