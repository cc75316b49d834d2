import pytest

from kingdom.core.game_state import GameState
from kingdom.entities.defender import DefenderKind
from kingdom.entities.enemy import Enemy, EnemyLife
from kingdom.entities.projectile import ProjectileKind

FRAME = 1 / 60


def _quiet_castle(session) -> None:
    # Keep the castle from firing on its own so only test shots are in flight.
    session.castle.arrow_cooldown = 1e9


def _run_projectiles(session, max_frames: int = 600) -> None:
    for _ in range(max_frames):
        if not session.projectiles:
            return
        session.combat.tick(session, FRAME)
    raise AssertionError("projectiles never resolved")


def _events(session, name: str):
    return [event for event in session.events.events if event.name == name]


def test_enemy_poison_refresh_keeps_strongest() -> None:
    enemy = Enemy(enemy_id="e1", enemy_type="orc", x=0, y=0, max_health=100, health=100, damage=1, speed=1, value=1)
    enemy.apply_poison(12, 2.5)
    enemy.apply_poison(8, 1.0)

    assert enemy.poison_dps == 12
    assert enemy.poison_left == 1.0


def test_enemy_lethal_hit_reported_once() -> None:
    enemy = Enemy(enemy_id="e1", enemy_type="orc", x=0, y=0, max_health=10, health=10, damage=1, speed=1, value=1)

    assert enemy.apply_damage(15)
    assert not enemy.apply_damage(15)
    assert enemy.life == EnemyLife.DYING
    assert enemy.mark_dead()
    assert not enemy.mark_dead()


def test_ricochet_chain_never_repeats_a_target(make_session, place_enemy) -> None:
    session = make_session()
    _quiet_castle(session)
    session.stats.ricochet = 3
    enemies = [place_enemy(session, 700 + i * 60, 400, health=1e6) for i in range(5)]

    session.combat.fire_projectile(session, enemies[0], ProjectileKind.ARROW)
    _run_projectiles(session)

    bounces = _events(session, "ricochet")
    chain = [enemies[0].enemy_id] + [event.payload["target_id"] for event in bounces]
    assert len(bounces) == 3
    assert len(chain) == len(set(chain))
    assert chain == [e.enemy_id for e in enemies[:4]]


def test_ricochet_target_claimed_once_per_tick(make_session, place_enemy) -> None:
    session = make_session()
    _quiet_castle(session)
    session.stats.ricochet = 1
    left = place_enemy(session, 500, 400, health=1e6)
    right = place_enemy(session, 700, 400, health=1e6)
    place_enemy(session, 600, 700, health=1e6)

    session.combat.fire_projectile(session, right, ProjectileKind.ARROW)
    session.combat.fire_projectile(session, left, ProjectileKind.ARROW)
    while not _events(session, "enemy_hit"):
        session.combat.tick(session, FRAME)

    assert len(_events(session, "enemy_hit")) == 2
    assert len(_events(session, "ricochet")) == 1
    assert len(session.projectiles) == 1


def test_death_explosion_chain_explodes_each_enemy_once(make_session, place_enemy) -> None:
    session = make_session()
    session.stats.death_explosion = True
    cluster = [place_enemy(session, 700 + i * 10, 400, health=10.0, max_health=100.0) for i in range(5)]

    session.combat.damage_enemy(session, cluster[0], 1000)

    explosions = [event.payload["enemy_id"] for event in _events(session, "death_explosion")]
    assert len(explosions) == len(set(explosions))
    assert len(explosions) <= 5
    assert session.kills == 5
    assert session.wave_controller.wave_kills == 5
    assert all(enemy.life == EnemyLife.DEAD for enemy in cluster)


def test_kill_pays_scaled_gold(make_session, place_enemy) -> None:
    session = make_session()
    enemy = place_enemy(session, 700, 400, health=10.0)

    session.combat.damage_enemy(session, enemy, 50)

    # value 1 x 5 x gold reward 1.5778 rounds to 8
    assert session.economy.gold == 8
    assert session.economy.total_earned == 8
    session.combat.damage_enemy(session, enemy, 50)
    assert session.economy.gold == 8


def test_targeting_prefers_untargeted_enemies(make_session, place_enemy) -> None:
    session = make_session()
    near = place_enemy(session, 700, 400)
    far = place_enemy(session, 800, 400)
    place_enemy(session, 1150, 400)

    session.combat.fire_projectile(session, near, ProjectileKind.ARROW)

    assert session.combat.find_targets(session, 1) == [far]
    assert session.combat.find_targets(session, 5) == [far]


def test_targeting_falls_back_to_targeted(make_session, place_enemy) -> None:
    session = make_session()
    only = place_enemy(session, 700, 400)
    session.combat.fire_projectile(session, only, ProjectileKind.ARROW)

    assert session.combat.find_targets(session, 1) == [only]


def test_manual_target_ranks_by_marker(make_session, place_enemy) -> None:
    session = make_session()
    near = place_enemy(session, 700, 400)
    marked = place_enemy(session, 880, 400)
    session.set_manual_target(900, 400)

    assert session.combat.find_targets(session, 2) == [marked, near]


def test_armor_reduces_enemy_hits(make_session, place_enemy) -> None:
    session = make_session()
    session.stats.armor = 0.5
    enemy = place_enemy(session, 650, 400, damage=10.0)

    session.combat.attack_castle(session, enemy)

    assert session.castle.health == pytest.approx(145)


def test_block_negates_hit(make_session, place_enemy, scripted) -> None:
    rng = scripted()
    session = make_session(rng=rng)
    session.stats.block_chance = 0.5
    enemy = place_enemy(session, 650, 400, damage=10.0)

    rng.queue(0.1)
    session.combat.attack_castle(session, enemy)

    assert session.castle.health == 150
    assert _events(session, "attack_blocked")[-1].payload["reason"] == "block"


def test_thorns_and_reflect_hit_back(make_session, place_enemy) -> None:
    session = make_session()
    session.stats.thorns = 5
    session.stats.reflect_damage = 0.5
    archer = place_enemy(session, 700, 400, damage=10.0, ranged=True, attack_range=150.0)

    session.combat.attack_castle(session, archer)

    assert archer.health == pytest.approx(100 - 5 - 5)


def test_guardian_saves_once_then_castle_falls(make_session, place_enemy) -> None:
    session = make_session()
    session.stats.has_guardian = True
    brute = place_enemy(session, 650, 400, damage=500.0)

    session.combat.attack_castle(session, brute)
    assert session.castle.health == 1
    assert session.state == GameState.PLAYING

    session.combat.attack_castle(session, brute)
    assert session.state == GameState.GAME_OVER
    assert session.enemies == []


def test_fireball_splashes_target_and_neighbours(make_session, place_enemy, scripted) -> None:
    rng = scripted()
    session = make_session(rng=rng)
    _quiet_castle(session)
    target = place_enemy(session, 700, 400, health=1000.0)
    neighbour = place_enemy(session, 750, 400, health=1000.0)

    session.combat.fire_projectile(session, target, ProjectileKind.FIREBALL)
    rng.queue(0.99)
    _run_projectiles(session)

    assert target.health == pytest.approx(1000 - 50 - 25)
    assert neighbour.health == pytest.approx(1000 - 25)


def test_lightning_chain_falls_off(make_session, place_enemy) -> None:
    session = make_session()
    first = place_enemy(session, 700, 400)
    second = place_enemy(session, 800, 400)
    third = place_enemy(session, 900, 400)

    links = session.combat.chain_lightning(session, first)
    session.scheduler.advance(0.3)

    assert links == [first, second, third]
    assert first.health == pytest.approx(75)
    assert second.health == pytest.approx(80)
    assert third.health == pytest.approx(85)


def test_meteor_impact_splashes(make_session, place_enemy) -> None:
    session = make_session()
    target = place_enemy(session, 700, 400, health=500.0)
    nearby = place_enemy(session, 740, 400, health=500.0)
    distant = place_enemy(session, 900, 400, health=500.0)

    session.combat.call_meteors(session, [target])
    session.scheduler.advance(0.5)
    assert target.health == 500
    session.scheduler.advance(0.2)

    assert target.health == pytest.approx(425)
    assert nearby.health == pytest.approx(462.5)
    assert distant.health == 500


def test_garrisons_follow_stat(make_session) -> None:
    session = make_session()
    session.stats.garrison_count = 2
    session.combat.sync_garrisons(session)
    guards = [d for d in session.defenders if d.kind is DefenderKind.GARRISON]
    assert len(guards) == 2
    assert guards[0].home_x == pytest.approx(660)
    assert guards[0].leash == 200

    session.stats.garrison_count = 1
    session.combat.sync_garrisons(session)
    assert len(session.defenders) == 1


def test_garrison_attacks_enemy_in_reach(make_session, place_enemy) -> None:
    session = make_session()
    _quiet_castle(session)
    session.stats.garrison_count = 1
    session.combat.sync_garrisons(session)
    enemy = place_enemy(session, 690, 400, health=100.0)

    session.combat.tick(session, 0.05)

    assert enemy.health == pytest.approx(100 - 18)


def test_knight_expires(make_session) -> None:
    session = make_session()
    knight = session.combat.summon_knight(session, 1.0)
    assert knight.y == session.content.simulation.arena.height - 100

    session.scheduler.advance(1.0)
    session.combat.tick(session, FRAME)

    assert session.defenders == []
