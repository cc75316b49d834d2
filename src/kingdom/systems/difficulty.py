"""Castle power and enemy difficulty scaling.

Everything here is a pure function of its arguments: no randomness and no
session state, so balance numbers can be checked in isolation.
"""

from __future__ import annotations

from dataclasses import dataclass
import math

from kingdom.config import EnemyArchetype, Upgrade
from kingdom.systems.stat_model import CastleStats


BASE_POWER = 219
POWER_PER_DISPLAY_POINT = 15
MIN_POWER_RATIO = 0.5
MAX_POWER_RATIO = 5.0
POWER_RATIO_SOFT_CAP = 2.5

RARITY_POWER = {
    "common": 3,
    "uncommon": 6,
    "rare": 12,
    "epic": 20,
    "legendary": 35,
    "mythic": 60,
}
UNKNOWN_RARITY_POWER = 8
ACTION_CARD_POWER = 15

# Weight of the magic damage multiplier in raw power. The historical formula
# evaluated to zero for this term; kept at zero so power numbers stay stable.
MAGIC_MULTIPLIER_POWER = 0

# (stat, weight) for plain linear terms.
_LINEAR_WEIGHTS = (
    ("damage", 2),
    ("attack_speed", 30),
    ("projectiles", 25),
    ("crit_chance", 100),
    ("freeze_chance", 80),
    ("splash_damage", 60),
    ("max_health", 0.5),
    ("armor", 10),
    ("regen", 20),
    ("thorns", 15),
    ("dodge_chance", 80),
    ("reflect_damage", 50),
    ("life_steal", 100),
    ("bonus_gold_on_kill", 15),
)

# (stat, weight) for multipliers whose neutral value is 1.
_MULTIPLIER_WEIGHTS = (
    ("crit_damage", 50),
    ("damage_multiplier", 100),
    ("magic_damage_multiplier", MAGIC_MULTIPLIER_POWER),
    ("gold_multiplier", 30),
    ("attack_range", 40),
)

_ABILITY_WEIGHTS = (
    ("has_fireball", 50),
    ("has_lightning", 60),
    ("has_meteor", 80),
    ("explosive_arrows", 40),
    ("death_explosion", 100),
)


def raw_power(
    stats: CastleStats,
    earned_upgrades: list[str],
    catalog: dict[str, Upgrade],
    action_card_count: int = 0,
) -> int:
    power = 0.0
    for stat, weight in _LINEAR_WEIGHTS:
        power += getattr(stats, stat) * weight
    for stat, weight in _MULTIPLIER_WEIGHTS:
        power += (getattr(stats, stat) - 1) * weight
    for stat, weight in _ABILITY_WEIGHTS:
        if getattr(stats, stat):
            power += weight

    power += action_card_count * ACTION_CARD_POWER
    for upgrade_id in earned_upgrades:
        upgrade = catalog.get(upgrade_id)
        if upgrade is None:
            power += UNKNOWN_RARITY_POWER
            continue
        power += RARITY_POWER.get(upgrade.rarity, UNKNOWN_RARITY_POWER)

    return math.floor(power)


def display_power(raw: int) -> int:
    return max(1, math.floor((raw - BASE_POWER) / POWER_PER_DISPLAY_POINT) + 1)


def power_ratio(raw: int) -> float:
    return max(MIN_POWER_RATIO, min(MAX_POWER_RATIO, raw / BASE_POWER))


@dataclass(frozen=True)
class DifficultyMultipliers:
    enemy_health: float
    enemy_damage: float
    gold_reward: float
    spawn_rate: float
    wave_scaling: float
    power_ratio: float
    boss_multiplier: float


def difficulty_multipliers(wave: int, difficulty: int, ratio: float) -> DifficultyMultipliers:
    """Enemy and economy multipliers for a wave.

    ``difficulty`` is the 1-10 slider. Low settings make enemies follow the
    player's power ratio weakly, high settings make them follow it fully.
    Boss waves get an extra multiplier growing every ten waves, and easy
    settings get a slow catch-up after wave 15.
    """
    wave_scaling = 1 + min((wave - 1) * 0.015, 0.6)
    slider = (difficulty - 1) / 9
    power_scale = 0.15 + slider * 0.85

    if ratio <= POWER_RATIO_SOFT_CAP:
        capped_ratio = ratio
    else:
        capped_ratio = POWER_RATIO_SOFT_CAP + (ratio - POWER_RATIO_SOFT_CAP) * 0.4
    power_mult = 1 + (capped_ratio - 1) * power_scale

    boss_mult = 1 + (wave // 10) * 0.12 if wave % 5 == 0 else 1.0
    easy_catchup = 1 + (wave - 15) * 0.008 if difficulty <= 3 and wave > 15 else 1.0

    return DifficultyMultipliers(
        enemy_health=(0.4 + slider * 0.5) * wave_scaling * power_mult * boss_mult * easy_catchup,
        enemy_damage=(0.32 + slider * 0.35) * wave_scaling * power_mult * math.sqrt(boss_mult) * easy_catchup,
        gold_reward=1.8 - slider * 0.5,
        spawn_rate=1.35 - slider * 0.4,
        wave_scaling=wave_scaling,
        power_ratio=ratio,
        boss_multiplier=boss_mult,
    )


def shop_price_multiplier(wave: int) -> float:
    return 1.5 ** (wave // 10)


def box_price_multiplier(wave: int, ratio: float) -> float:
    return 1.25 ** (wave // 5) * ratio ** 0.35


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up, as game prices do."""
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class EnemyScaling:
    health: float
    damage: float
    speed: float


def enemy_scaling(archetype: EnemyArchetype, wave: int, multipliers: DifficultyMultipliers) -> EnemyScaling:
    health_scale = (1 + (wave - 1) * 0.15 + wave ** 1.3 * 0.02) * multipliers.enemy_health
    damage_scale = (1 + (wave - 1) * 0.1 + wave ** 1.2 * 0.015) * multipliers.enemy_damage
    if archetype.damage_scales_with_wave:
        # Full damage is reached around wave 15.
        damage_scale *= min(1.0, max(0.3, (wave - 1) / 14))
    speed_scale = 1 + min(wave * 0.02, 0.5)

    return EnemyScaling(
        health=archetype.base_health * health_scale,
        damage=archetype.base_damage * damage_scale,
        speed=archetype.speed * speed_scale,
    )
