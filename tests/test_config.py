import json
import shutil

import pytest

from kingdom.config import DEFAULT_DATA_DIR, load_game_content


def _copy_data(tmp_path):
    target = tmp_path / "data"
    shutil.copytree(DEFAULT_DATA_DIR, target)
    return target


def test_load_content_success() -> None:
    content = load_game_content()
    assert content.simulation.arena.width == 1200
    assert content.simulation.timing.tick_rate == 60
    assert content.simulation.session.deck_capacity == 6
    assert content.simulation.session.starting_stats["max_health"] == 150
    assert len(content.enemies) == 28
    assert len(content.upgrades) == 57
    assert len(content.action_cards) == 17
    assert len(content.debuffs) == 10
    assert len(content.devastating_debuffs) == 6
    assert content.wave_rules.boss_wave_every == 5
    assert content.rewards.offer_size == 3
    assert content.shop.items["goldenBox"].price == 300
    assert content.shop.items["fullRepair"].heal_amount is None


def test_card_effect_params_are_inlined() -> None:
    content = load_game_content()
    volley = content.action_cards["arrow_volley_c"].effect
    assert volley.kind == "arrow_volley"
    assert volley.param("count") == 10

    with pytest.raises(ValueError):
        volley.param("duration")


def test_find_debuff_covers_both_pools() -> None:
    content = load_game_content()
    assert content.find_debuff("rusty_arrows").severity == "minor"
    assert content.find_debuff("doom_curse").is_instant
    assert content.find_debuff("missing") is None


def test_missing_file_raises(tmp_path) -> None:
    data_dir = _copy_data(tmp_path)
    (data_dir / "shop" / "shop_items.json").unlink()

    with pytest.raises(ValueError, match="Missing config file"):
        load_game_content(base_data_dir=data_dir)


def test_unknown_stat_in_upgrade_raises(tmp_path) -> None:
    data_dir = _copy_data(tmp_path)
    path = data_dir / "upgrades" / "upgrades.json"
    upgrades = json.loads(path.read_text())
    upgrades[0]["effects"][0]["stat"] = "laser_power"
    path.write_text(json.dumps(upgrades))

    with pytest.raises(ValueError, match="unknown stat"):
        load_game_content(base_data_dir=data_dir)


def test_unknown_enemy_in_wave_rules_raises(tmp_path) -> None:
    data_dir = _copy_data(tmp_path)
    path = data_dir / "waves" / "wave_rules.json"
    rules = json.loads(path.read_text())
    rules["regular"]["default_type"] = "kraken"
    path.write_text(json.dumps(rules))

    with pytest.raises(ValueError):
        load_game_content(base_data_dir=data_dir)
