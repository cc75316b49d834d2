"""Castle projectiles."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import math


class ProjectileKind(str, Enum):
    ARROW = "arrow"
    FIREBALL = "fireball"


@dataclass
class Projectile:
    projectile_id: str
    kind: ProjectileKind
    x: float
    y: float
    target_id: str
    speed: float
    damage: float
    bounces: int = 0
    hit_enemies: list[str] = field(default_factory=list)
    is_ricochet: bool = False
    empowered: bool = False

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(self.x - x, self.y - y)

    def step_toward(self, x: float, y: float, step: float) -> None:
        dist = self.distance_to(x, y)
        if dist <= 0:
            return
        step = min(step, dist)
        self.x += (x - self.x) / dist * step
        self.y += (y - self.y) / dist * step
