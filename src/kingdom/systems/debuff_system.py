"""Curse application, wave countdown and exact reversal."""

from __future__ import annotations

from dataclasses import dataclass, field

from kingdom.config import DebuffDefinition
from kingdom.entities.castle import Castle
from kingdom.systems.economy_system import EconomySystem
from kingdom.systems.stat_model import CastleStats


@dataclass
class ActiveDebuff:
    debuff_id: str
    remaining_waves: int
    stat_key: str
    stat_value: float


@dataclass
class DebuffTracker:
    active: list[ActiveDebuff] = field(default_factory=list)
    applied: list[str] = field(default_factory=list)

    def apply(
        self,
        definition: DebuffDefinition,
        stats: CastleStats,
        castle: Castle,
        economy: EconomySystem,
    ) -> ActiveDebuff | None:
        self.applied.append(definition.debuff_id)

        if definition.instant is not None:
            _apply_instant(definition, stats, castle, economy)
            return None

        stats.apply_overlay(definition.stat_key, definition.stat_value)
        # Each stack keeps its own copy of the applied value for reversal.
        entry = ActiveDebuff(
            debuff_id=definition.debuff_id,
            remaining_waves=definition.wave_duration,
            stat_key=definition.stat_key,
            stat_value=definition.stat_value,
        )
        self.active.append(entry)
        return entry

    def tick_down(self, stats: CastleStats) -> list[ActiveDebuff]:
        """Count every active curse down one wave and lift the expired ones."""
        expired: list[ActiveDebuff] = []
        remaining: list[ActiveDebuff] = []
        for entry in self.active:
            entry.remaining_waves -= 1
            if entry.remaining_waves <= 0:
                expired.append(entry)
            else:
                remaining.append(entry)
        self.active = remaining

        for entry in expired:
            stats.remove_overlay(entry.stat_key, entry.stat_value)
        return expired

    def stacks(self, debuff_id: str) -> list[ActiveDebuff]:
        return [entry for entry in self.active if entry.debuff_id == debuff_id]


def _apply_instant(
    definition: DebuffDefinition,
    stats: CastleStats,
    castle: Castle,
    economy: EconomySystem,
) -> None:
    effect = definition.instant
    if effect.kind == "max_health_loss":
        stats.max_health = max(effect.floor, stats.max_health - effect.amount)
        castle.health = min(castle.health, stats.max_health)
    elif effect.kind == "gold_loss":
        economy.keep_fraction(effect.keep)
    elif effect.kind == "health_loss":
        castle.health = max(effect.floor, castle.health - effect.amount)
    else:
        raise ValueError(f"Unknown instant debuff kind: {effect.kind}")
