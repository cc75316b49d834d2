"""Enemy entity, lifecycle and status effects."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math


class EnemyLife(str, Enum):
    ALIVE = "alive"
    DYING = "dying"
    DEAD = "dead"


@dataclass
class Enemy:
    enemy_id: str
    enemy_type: str
    x: float
    y: float
    max_health: float
    health: float
    damage: float
    speed: float
    value: int
    ranged: bool = False
    attack_range: float = 0.0
    is_boss: bool = False
    size: float = 1.0
    life: EnemyLife = EnemyLife.ALIVE
    has_exploded: bool = False
    slow_left: float = 0.0
    warp_factor: float = 1.0
    warp_left: float = 0.0
    poison_dps: float = 0.0
    poison_left: float = 0.0
    attack_cooldown: float = 0.0

    @property
    def is_alive(self) -> bool:
        return self.life is EnemyLife.ALIVE

    @property
    def slowed(self) -> bool:
        return self.slow_left > 0

    @property
    def health_fraction(self) -> float:
        if self.max_health <= 0:
            return 0.0
        return max(0.0, self.health / self.max_health)

    def apply_damage(self, amount: float) -> bool:
        """Subtract health; True exactly once, when this hit is lethal."""
        if not self.is_alive:
            return False
        self.health -= max(amount, 0.0)
        if self.health <= 0:
            self.life = EnemyLife.DYING
            return True
        return False

    def mark_dead(self) -> bool:
        if self.life is EnemyLife.DEAD:
            return False
        self.life = EnemyLife.DEAD
        return True

    def apply_slow(self, duration: float) -> None:
        if not self.is_alive or duration <= 0:
            return
        self.slow_left = max(self.slow_left, duration)

    def apply_time_warp(self, factor: float, duration: float) -> None:
        if not self.is_alive or duration <= 0:
            return
        self.warp_factor = min(self.warp_factor, factor)
        self.warp_left = max(self.warp_left, duration)

    def apply_poison(self, dps: float, duration: float) -> None:
        # Poison refreshes instead of stacking: strongest dps, latest duration.
        if not self.is_alive or dps <= 0 or duration <= 0:
            return
        self.poison_dps = max(self.poison_dps, dps)
        self.poison_left = duration

    def tick_effects(self, dt: float) -> float:
        """Advance status timers and return the poison damage due this tick."""
        if not self.is_alive:
            return 0.0

        poison = 0.0
        if self.poison_left > 0:
            poison = self.poison_dps * min(dt, self.poison_left)
            self.poison_left = max(0.0, self.poison_left - dt)
            if self.poison_left == 0:
                self.poison_dps = 0.0

        if self.slow_left > 0:
            self.slow_left = max(0.0, self.slow_left - dt)

        if self.warp_left > 0:
            self.warp_left = max(0.0, self.warp_left - dt)
            if self.warp_left == 0:
                self.warp_factor = 1.0

        if self.attack_cooldown > 0:
            self.attack_cooldown = max(0.0, self.attack_cooldown - dt)

        return poison

    def distance_to(self, x: float, y: float) -> float:
        return math.hypot(self.x - x, self.y - y)

    def move_toward(self, x: float, y: float, step: float) -> None:
        dist = self.distance_to(x, y)
        if dist <= 0:
            return
        self.x += (x - self.x) / dist * step
        self.y += (y - self.y) / dist * step
