"""Interpreter for tagged upgrade effects."""

from __future__ import annotations

from kingdom.config import StatEffect, Upgrade
from kingdom.systems.stat_model import CastleStats, stat_type


def apply_effect(effect: StatEffect, stats: CastleStats) -> None:
    current = getattr(stats, effect.stat)
    if effect.kind == "enable":
        new_value = True
    elif effect.kind == "multiply":
        new_value = current * effect.value
    elif effect.kind == "add":
        new_value = current + effect.value
    elif effect.kind == "add_capped":
        new_value = min(effect.cap, current + effect.value)
    else:
        raise ValueError(f"Unknown effect kind: {effect.kind}")

    if stat_type(effect.stat) == "int":
        new_value = int(round(new_value))
    setattr(stats, effect.stat, new_value)


def apply_upgrade(upgrade: Upgrade, stats: CastleStats) -> None:
    for effect in upgrade.effects:
        apply_effect(effect, stats)
