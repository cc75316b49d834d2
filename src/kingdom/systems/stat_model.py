"""Castle stat block with debuff overlays and transient buffs."""

from __future__ import annotations

from dataclasses import dataclass, fields


SNAP_TOLERANCE = 0.01

# Debuff overlay fields and their neutral values. Fields with a neutral of 1
# compose multiplicatively, fields with a neutral of 0 compose additively.
OVERLAY_NEUTRAL = {
    "damage_debuff_mult": 1.0,
    "attack_speed_debuff_mult": 1.0,
    "armor_debuff": 0.0,
    "crit_chance_debuff": 0.0,
    "enemy_speed_debuff": 1.0,
    "enemy_damage_debuff": 1.0,
}


@dataclass
class CastleStats:
    max_health: float = 150.0
    damage: float = 25.0
    attack_speed: float = 1.3
    attack_range: float = 1.0
    projectiles: int = 1
    crit_chance: float = 0.05
    crit_damage: float = 1.5
    armor: float = 0.0
    regen: float = 0.0
    thorns: float = 0.0
    freeze_chance: float = 0.0
    has_fireball: bool = False
    has_lightning: bool = False
    has_meteor: bool = False
    explosive_arrows: bool = False
    has_vortex: bool = False
    has_infinity: bool = False
    has_phoenix: bool = False
    has_guardian: bool = False
    has_berserker: bool = False
    death_explosion: bool = False
    ricochet: int = 0
    splash_damage: float = 0.0
    gold_multiplier: float = 1.0
    bonus_gold_on_kill: int = 0
    magic_damage_multiplier: float = 1.0
    life_steal: float = 0.0
    block_chance: float = 0.0
    dodge_chance: float = 0.0
    reflect_damage: float = 0.0
    enemy_slow_aura: float = 1.0
    garrison_count: int = 0
    poison_damage: float = 0.0
    execute_damage: float = 0.0
    damage_multiplier: float = 1.0
    damage_debuff_mult: float = 1.0
    attack_speed_debuff_mult: float = 1.0
    armor_debuff: float = 0.0
    crit_chance_debuff: float = 0.0
    enemy_speed_debuff: float = 1.0
    enemy_damage_debuff: float = 1.0

    @classmethod
    def from_mapping(cls, values: dict[str, float]) -> "CastleStats":
        """Build a stat block from plain numbers, casting to each field's type."""
        casters = {f.name: f.type for f in fields(cls)}
        kwargs = {}
        for name, value in values.items():
            if name not in casters:
                raise ValueError(f"Unknown castle stat: {name}")
            kwargs[name] = _cast(casters[name], value)
        return cls(**kwargs)

    def effective_damage(self) -> float:
        return self.damage * self.damage_debuff_mult * self.damage_multiplier

    def effective_attack_speed(self) -> float:
        return self.attack_speed * self.attack_speed_debuff_mult

    def effective_armor(self) -> float:
        return min(1.0, max(0.0, self.armor - self.armor_debuff))

    def effective_crit_chance(self) -> float:
        return max(0.0, self.crit_chance - self.crit_chance_debuff)

    def enemy_speed_factor(self) -> float:
        return self.enemy_speed_debuff * self.enemy_slow_aura

    def enemy_damage_factor(self) -> float:
        return self.enemy_damage_debuff

    def effective_range(self, base_range: float) -> float:
        return base_range * self.attack_range

    def apply_overlay(self, key: str, value: float) -> None:
        neutral = _overlay_neutral(key)
        current = getattr(self, key)
        if neutral == 1.0:
            setattr(self, key, current * value)
        else:
            setattr(self, key, current + value)

    def remove_overlay(self, key: str, value: float) -> None:
        """Invert one earlier ``apply_overlay`` using the exact stored value."""
        neutral = _overlay_neutral(key)
        current = getattr(self, key)
        if neutral == 1.0:
            restored = current / value if value else current
        else:
            restored = max(0.0, current - value)
        if abs(restored - neutral) < SNAP_TOLERANCE:
            restored = neutral
        setattr(self, key, restored)

    def apply_buff(self, multiplier: float) -> None:
        self.damage_multiplier *= multiplier

    def remove_buff(self, multiplier: float) -> None:
        restored = self.damage_multiplier / multiplier
        if abs(restored - 1.0) < SNAP_TOLERANCE:
            restored = 1.0
        self.damage_multiplier = restored


def _overlay_neutral(key: str) -> float:
    if key not in OVERLAY_NEUTRAL:
        raise ValueError(f"Unknown overlay stat: {key}")
    return OVERLAY_NEUTRAL[key]


def _cast(type_name: str, value):
    if type_name == "bool":
        return bool(value)
    if type_name == "int":
        return int(value)
    return float(value)


def stat_type(name: str) -> str:
    for f in fields(CastleStats):
        if f.name == name:
            return f.type
    raise ValueError(f"Unknown castle stat: {name}")
