"""Arena geometry helpers."""

from __future__ import annotations

import math
import random

from kingdom.config import ArenaConfig


def distance(ax: float, ay: float, bx: float, by: float) -> float:
    return math.hypot(ax - bx, ay - by)


def arena_center(arena: ArenaConfig) -> tuple[float, float]:
    return arena.width / 2, arena.height / 2


def base_attack_range(arena: ArenaConfig) -> float:
    # Castle reach is a fraction of the short side so spawn edges start out of range.
    return min(arena.width, arena.height) * arena.base_range_fraction


def clamp_to_arena(x: float, y: float, arena: ArenaConfig) -> tuple[float, float]:
    margin = arena.spawn_margin
    return (
        max(margin, min(arena.width - margin, x)),
        max(margin, min(arena.height - margin, y)),
    )


def edge_spawn_point(arena: ArenaConfig, rng: random.Random) -> tuple[float, float]:
    """Pick a point on one of the four arena edges, inset by the spawn margin."""
    side = int(rng.random() * 4)
    margin = arena.spawn_margin
    if side == 0:
        return margin, rng.random() * arena.height
    if side == 1:
        return arena.width - margin, rng.random() * arena.height
    if side == 2:
        return rng.random() * arena.width, margin
    return rng.random() * arena.width, arena.height - margin
