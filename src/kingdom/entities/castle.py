"""The defended castle."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Castle:
    x: float
    y: float
    health: float
    arrow_cooldown: float = 0.0
    fireball_cooldown: float = 0.0
    lightning_cooldown: float = 0.0
    meteor_cooldown: float = 0.0
    arrows_fired: int = 0
    invincible_until: float = 0.0
    guardian_used: bool = False
    phoenix_used: bool = False

    def is_invincible(self, now: float) -> bool:
        return now < self.invincible_until

    def grant_invincibility(self, now: float, duration: float) -> None:
        self.invincible_until = max(self.invincible_until, now + duration)

    def heal(self, amount: float, max_health: float) -> float:
        if amount <= 0:
            return 0.0
        before = self.health
        self.health = min(max_health, self.health + amount)
        return self.health - before

    def tick_cooldowns(self, dt: float) -> None:
        self.arrow_cooldown = max(0.0, self.arrow_cooldown - dt)
        self.fireball_cooldown = max(0.0, self.fireball_cooldown - dt)
        self.lightning_cooldown = max(0.0, self.lightning_cooldown - dt)
        self.meteor_cooldown = max(0.0, self.meteor_cooldown - dt)
