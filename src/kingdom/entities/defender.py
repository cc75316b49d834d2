"""Garrison guards and summoned knights."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math


class DefenderKind(str, Enum):
    GARRISON = "garrison"
    KNIGHT = "knight"


@dataclass
class Defender:
    defender_id: str
    kind: DefenderKind
    x: float
    y: float
    home_x: float
    home_y: float
    damage: float
    attack_range: float
    chase_speed: float
    return_speed: float
    leash: float | None = None
    expires_at: float | None = None
    step_timer: float = 0.0

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(self.x - x, self.y - y)

    def is_home(self, tolerance: float) -> bool:
        return self.distance_to(self.home_x, self.home_y) <= tolerance

    def step_toward(self, x: float, y: float, speed: float) -> None:
        dist = self.distance_to(x, y)
        if dist <= 0:
            return
        step = min(speed, dist)
        self.x += (x - self.x) / dist * step
        self.y += (y - self.y) / dist * step
