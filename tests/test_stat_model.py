import pytest

from kingdom.config import StatEffect
from kingdom.entities.castle import Castle
from kingdom.systems.debuff_system import DebuffTracker
from kingdom.systems.economy_system import EconomySystem
from kingdom.systems.effects import apply_effect, apply_upgrade
from kingdom.systems.stat_model import CastleStats


def _tracker_fixture(health: float = 150.0):
    return DebuffTracker(), CastleStats(), Castle(x=600, y=400, health=health), EconomySystem(gold=100)


def test_stacked_debuff_reverts_exactly(content) -> None:
    tracker, stats, castle, economy = _tracker_fixture()
    rusty = content.debuffs["rusty_arrows"]
    dull = content.debuffs["dull_blades"]

    tracker.apply(rusty, stats, castle, economy)
    tracker.apply(dull, stats, castle, economy)
    tracker.apply(rusty, stats, castle, economy)
    assert stats.damage_debuff_mult == pytest.approx(0.85 * 0.75 * 0.85)

    # Dull blades lasts five waves, rusty arrows eight.
    for _ in range(5):
        tracker.tick_down(stats)
    assert stats.damage_debuff_mult == pytest.approx(0.85 * 0.85)
    for _ in range(3):
        tracker.tick_down(stats)

    assert tracker.active == []
    assert stats.damage_debuff_mult == 1.0


def test_additive_overlay_never_goes_negative() -> None:
    stats = CastleStats()
    stats.apply_overlay("armor_debuff", 0.08)
    stats.remove_overlay("armor_debuff", 0.08)
    stats.remove_overlay("armor_debuff", 0.08)
    assert stats.armor_debuff == 0.0


def test_overlay_removal_snaps_to_neutral() -> None:
    stats = CastleStats()
    stats.apply_overlay("enemy_speed_debuff", 1.2)
    stats.enemy_speed_debuff += 0.004
    stats.remove_overlay("enemy_speed_debuff", 1.2)
    assert stats.enemy_speed_debuff == 1.0


def test_unknown_overlay_raises() -> None:
    with pytest.raises(ValueError):
        CastleStats().apply_overlay("damage", 2.0)


def test_instant_debuffs_respect_floors(content) -> None:
    tracker, stats, castle, economy = _tracker_fixture(health=60.0)

    assert tracker.apply(content.devastating_debuffs["doom_curse"], stats, castle, economy) is None
    assert castle.health == 1

    tracker.apply(content.devastating_debuffs["shattered_walls"], stats, castle, economy)
    assert stats.max_health == 50

    tracker.apply(content.devastating_debuffs["cursed_gold"], stats, castle, economy)
    assert economy.gold == 30
    assert tracker.applied == ["doom_curse", "shattered_walls", "cursed_gold"]
    assert tracker.active == []


def test_effective_values_combine_overlays() -> None:
    stats = CastleStats(armor=0.3, crit_chance=0.05)
    stats.apply_overlay("armor_debuff", 0.5)
    stats.apply_overlay("crit_chance_debuff", 0.08)
    stats.apply_overlay("damage_debuff_mult", 0.5)

    assert stats.effective_armor() == 0.0
    assert stats.effective_crit_chance() == 0.0
    assert stats.effective_damage() == pytest.approx(12.5)


def test_timed_buff_reverts_exact_multiplier() -> None:
    stats = CastleStats()
    stats.apply_buff(1.3)
    stats.apply_buff(1.5)
    stats.remove_buff(1.3)
    stats.remove_buff(1.5)
    assert stats.damage_multiplier == 1.0


def test_three_sharp_arrows_compound(content) -> None:
    stats = CastleStats()
    for _ in range(3):
        apply_upgrade(content.upgrades["damage_c"], stats)
    assert stats.damage == pytest.approx(25 * 1.15 ** 3)


def test_capped_and_integer_effects() -> None:
    stats = CastleStats()
    for _ in range(5):
        apply_effect(StatEffect(kind="add_capped", stat="freeze_chance", value=0.15, cap=0.6), stats)
    apply_effect(StatEffect(kind="add", stat="projectiles", value=1), stats)
    apply_effect(StatEffect(kind="enable", stat="has_fireball"), stats)

    assert stats.freeze_chance == 0.6
    assert stats.projectiles == 2
    assert isinstance(stats.projectiles, int)
    assert stats.has_fireball is True


def test_from_mapping_rejects_unknown_stat() -> None:
    with pytest.raises(ValueError):
        CastleStats.from_mapping({"mana": 10})
