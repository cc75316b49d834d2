import pytest

from kingdom.systems.deck import CardSource
from kingdom.systems.progression_system import OfferKind, RewardOffer, RewardOption


def _listing(session, item_id: str):
    for listing in session.shop_listing():
        if listing.item_id == item_id:
            return listing
    return None


def _rejections(session) -> list[str]:
    return [e.payload["message"] for e in session.events.events if e.name == "command_rejected"]


def test_repair_disabled_at_full_health(reward_session) -> None:
    session = reward_session()
    session.economy.gold = 500

    listing = _listing(session, "smallRepair")
    assert not listing.enabled
    assert listing.reason == "Health is full!"
    assert not session.purchase_shop_item("smallRepair")


def test_repair_heals_and_charges(reward_session) -> None:
    session = reward_session()
    session.economy.gold = 100
    session.castle.health = 100

    assert session.purchase_shop_item("smallRepair")
    assert session.castle.health == 125
    assert session.economy.gold == 75

    assert not session.purchase_shop_item("fullRepair")
    assert _rejections(session)[-1] == "Not enough gold!"


def test_not_enough_gold(reward_session) -> None:
    session = reward_session()
    session.castle.health = 10

    assert not session.purchase_shop_item("fullRepair")
    assert _rejections(session)[-1] == "Not enough gold!"
    assert session.castle.health == 10


def test_repair_price_rises_from_wave_ten(reward_session) -> None:
    session = reward_session()
    session.castle.health = 10
    session.wave = 10
    assert _listing(session, "fullRepair").price == 150


def test_mystery_box_limit_per_wave(reward_session, scripted) -> None:
    rng = scripted(seed=11)
    session = reward_session(rng=rng)
    session.economy.gold = 1000

    for _ in range(3):
        # upgrade branch, first eligible upgrade
        rng.queue(0.9, 0.0)
        assert session.purchase_shop_item("mysteryUpgrade")

    paid = sum(e.payload["price"] for e in session.events.events if e.name == "shop_purchase")
    assert paid >= 3 * 75
    assert session.economy.gold == 1000 - paid
    assert _listing(session, "mysteryUpgrade").reason == "Max reached this wave!"
    assert not session.purchase_shop_item("mysteryUpgrade")
    assert len(session.earned_upgrades) == 3

    session.shop.reset_wave_limits()
    assert _listing(session, "mysteryUpgrade").enabled


def test_mystery_box_card(reward_session, scripted) -> None:
    rng = scripted(seed=11)
    session = reward_session(rng=rng)
    session.economy.gold = 100

    rng.queue(0.1, 0.0)
    assert session.purchase_shop_item("mysteryUpgrade")

    assert session.deck.cards == ["arrow_volley_c"]
    opened = [e for e in session.events.events if e.name == "box_opened"][-1]
    assert opened.payload["is_action_card"]


def test_mystery_box_card_into_full_deck_parks_it(reward_session, scripted) -> None:
    rng = scripted(seed=11)
    session = reward_session(rng=rng)
    session.economy.gold = 100
    session.deck.cards = ["quick_heal_c"] * 6

    rng.queue(0.1, 0.0)
    session.purchase_shop_item("mysteryUpgrade")

    assert session.deck.pending.source is CardSource.MYSTERY_BOX
    assert not session.cancel_card_swap()
    assert not session.purchase_shop_item("smallRepair")
    assert session.resolve_card_swap(None)
    assert not session.deck.has_pending
    assert session.wave == 1


def test_mystery_box_catastrophe_after_safe_waves(reward_session, scripted) -> None:
    rng = scripted(seed=11)
    session = reward_session(rng=rng)
    session.wave = 6
    session.economy.gold = 400

    rng.queue(0.01, 0.0)
    assert session.purchase_shop_item("mysteryUpgrade")

    catastrophe = [e for e in session.events.events if e.name == "catastrophe"][-1]
    assert catastrophe.payload == {"box": "mystery_box", "curse": "cursed_gold"}
    assert session.debuffs.applied == ["cursed_gold"]
    assert session.economy.gold == int((400 - _mystery_price(session)) * 0.3)


def _mystery_price(session) -> int:
    return session.shop.price(session, session.content.shop.items["mysteryUpgrade"])


def test_golden_box_only_on_boss_waves(reward_session) -> None:
    session = reward_session()
    session.economy.gold = 5000

    assert _listing(session, "goldenBox") is None
    assert not session.purchase_shop_item("goldenBox")
    assert _rejections(session)[-1] == "Only sold on boss waves!"


def test_golden_box_forced_by_debug_flag(reward_session) -> None:
    session = reward_session(force_golden_box=True)
    session.economy.gold = 5000
    assert _listing(session, "goldenBox").enabled


def test_golden_box_deaths_touch(reward_session, scripted) -> None:
    rng = scripted(seed=11)
    session = reward_session(rng=rng)
    session.wave = 10
    session.economy.gold = 5000

    rng.queue(0.01, 0.9)
    assert session.purchase_shop_item("goldenBox")

    assert session.castle.health == 1
    catastrophe = [e for e in session.events.events if e.name == "catastrophe"][-1]
    assert catastrophe.payload["curse"] == "deaths_touch"
    assert _listing(session, "goldenBox").reason == "Already purchased!"


def test_golden_box_shattered_dreams_halves_upgrade_record(reward_session, scripted) -> None:
    rng = scripted(seed=11)
    session = reward_session(rng=rng)
    session.wave = 10
    session.economy.gold = 5000
    session.earned_upgrades = ["damage_c", "armor_c", "health_c", "range_c", "slow_c"]
    damage_before = session.stats.damage

    rng.queue(0.01, 0.2)
    session.purchase_shop_item("goldenBox")

    wiped = [e for e in session.events.events if e.name == "upgrades_wiped"][-1]
    assert len(wiped.payload["removed"]) == 2
    assert len(session.earned_upgrades) == 3
    assert session.stats.damage == damage_before


def test_golden_box_wipe_removes_garrisons(reward_session, scripted) -> None:
    rng = scripted(seed=11)
    session = reward_session(rng=rng)
    session.wave = 10
    session.economy.gold = 5000
    session.progression.earn_upgrade(session, "garrison_e")
    session.progression.earn_upgrade(session, "garrison_e")

    rng.queue(0.01, 0.2, 0.0)
    session.purchase_shop_item("goldenBox")

    assert session.earned_upgrades == ["garrison_e"]
    assert session.stats.garrison_count == 1
    assert len(session.defenders) == 1


def test_golden_box_legendary_card(reward_session, scripted) -> None:
    rng = scripted(seed=11)
    session = reward_session(rng=rng)
    session.wave = 10
    session.economy.gold = 5000

    rng.queue(0.5, 0.9, 0.1, 0.0)
    session.purchase_shop_item("goldenBox")

    assert session.deck.cards == ["apocalypse_l"]


def test_golden_box_mythic_upgrade(reward_session, scripted) -> None:
    rng = scripted(seed=11)
    session = reward_session(rng=rng)
    session.wave = 10
    session.economy.gold = 5000

    # A mythic roll wins even when the card roll also hits.
    rng.queue(0.5, 0.1, 0.1, 0.0)
    session.purchase_shop_item("goldenBox")

    assert session.earned_upgrades == ["godslayer_m"]
    assert session.stats.damage == pytest.approx(25 * 3.5)


def test_shop_closed_outside_rewards(make_session) -> None:
    session = make_session()
    session.economy.gold = 500
    session.castle.health = 10

    assert not session.purchase_shop_item("smallRepair")
    assert _rejections(session)[-1] == "The shop is closed"


def test_shop_closed_during_curse(reward_session) -> None:
    session = reward_session()
    session.economy.gold = 500
    session.castle.health = 10
    session.progression.offer = RewardOffer(
        kind=OfferKind.DEBUFFS,
        wave=1,
        options=[RewardOption("rusty_arrows", "Rusty Arrows", "minor")],
    )

    assert not session.purchase_shop_item("smallRepair")
    assert session.castle.health == 10


def test_infinite_gold_buys_without_spending(reward_session) -> None:
    session = reward_session(infinite_gold=True)
    session.castle.health = 10

    assert session.purchase_shop_item("fullRepair")
    assert session.economy.gold == 0
    assert session.castle.health == session.stats.max_health
