"""Per-tick combat: enemy advance and attacks, castle fire, projectiles, kills."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
import math
from typing import TYPE_CHECKING

from kingdom.config import GameContent
from kingdom.entities.defender import Defender, DefenderKind
from kingdom.entities.enemy import Enemy
from kingdom.entities.projectile import Projectile, ProjectileKind
from kingdom.systems.difficulty import round_half_up
from kingdom.systems.geometry import base_attack_range, distance

if TYPE_CHECKING:
    from kingdom.game import GameSession


HOME_TOLERANCE = 5.0


@dataclass
class CombatTickResult:
    kills: int
    shots_fired: int


class CombatSystem:
    def __init__(self, content: GameContent) -> None:
        self._arena = content.simulation.arena
        self._timing = content.simulation.timing
        self._cfg = content.simulation.combat
        self._defender_cfg = content.simulation.defenders
        self._kills_this_tick = 0
        self._shots_this_tick = 0

    def tick(self, session: GameSession, dt: float) -> CombatTickResult:
        self._kills_this_tick = 0
        self._shots_this_tick = 0
        frames = dt * self._timing.frame_rate

        stats = session.stats
        if stats.regen > 0:
            session.castle.heal(stats.regen * dt, stats.max_health)
        session.castle.tick_cooldowns(dt)

        self._update_enemies(session, dt, frames)
        if session.is_active:
            self._update_projectiles(session, frames)
        if session.is_active:
            self._castle_attack(session)
        if session.is_active:
            self._update_defenders(session, dt)

        session.sweep_dead()
        return CombatTickResult(kills=self._kills_this_tick, shots_fired=self._shots_this_tick)

    # Enemies

    def _update_enemies(self, session: GameSession, dt: float, frames: float) -> None:
        castle = session.castle
        stats = session.stats
        for enemy in list(session.enemies):
            if not session.is_active:
                return
            if not enemy.is_alive:
                continue

            poison = enemy.tick_effects(dt)
            if poison > 0:
                self.damage_enemy(session, enemy, poison, source="poison")
                if not enemy.is_alive:
                    continue

            reach = enemy.attack_range if enemy.ranged else self._cfg.melee_range
            dist = enemy.distance_to(castle.x, castle.y)
            if dist > reach:
                speed = enemy.speed * enemy.warp_factor * stats.enemy_speed_factor()
                if enemy.slowed:
                    speed *= self._cfg.slow_factor
                enemy.move_toward(castle.x, castle.y, min(speed * frames, dist - reach))
            elif enemy.attack_cooldown <= 0:
                enemy.attack_cooldown = self._cfg.enemy_attack_interval
                self.attack_castle(session, enemy)

    def attack_castle(self, session: GameSession, enemy: Enemy) -> None:
        castle = session.castle
        stats = session.stats

        if castle.is_invincible(session.scheduler.now):
            session.events.emit("attack_blocked", enemy_id=enemy.enemy_id, reason="invincible")
            return
        if stats.block_chance > 0 and session.rng.random() < stats.block_chance:
            session.events.emit("attack_blocked", enemy_id=enemy.enemy_id, reason="block")
            return
        if stats.dodge_chance > 0 and session.rng.random() < stats.dodge_chance:
            session.events.emit("attack_blocked", enemy_id=enemy.enemy_id, reason="dodge")
            return

        damage = enemy.damage * stats.enemy_damage_factor()
        if session.debug.infinite_health:
            session.events.emit("attack_blocked", enemy_id=enemy.enemy_id, reason="debug")
            return

        damage *= 1 - stats.effective_armor()
        castle.health -= damage
        session.events.emit(
            "castle_hit",
            enemy_id=enemy.enemy_id,
            damage=damage,
            ranged=enemy.ranged,
            health=castle.health,
        )

        if enemy.ranged and stats.reflect_damage > 0:
            self.damage_enemy(session, enemy, damage * stats.reflect_damage, source="reflect")
        if stats.thorns > 0:
            self.damage_enemy(session, enemy, stats.thorns, source="thorns")

        if castle.health <= 0:
            self._castle_lethal(session)

    def _castle_lethal(self, session: GameSession) -> None:
        castle = session.castle
        stats = session.stats
        if stats.has_guardian and not castle.guardian_used:
            castle.guardian_used = True
            castle.health = 1
            session.events.emit("guardian_saved")
            return
        if stats.has_phoenix and not castle.phoenix_used:
            castle.phoenix_used = True
            castle.health = stats.max_health * self._cfg.phoenix_health_fraction
            session.events.emit("phoenix_revived", health=castle.health)
            return
        session.game_over()

    # Targeting and firing

    def max_range(self, session: GameSession) -> float:
        return session.stats.effective_range(base_attack_range(self._arena))

    def find_targets(self, session: GameSession, count: int) -> list[Enemy]:
        """Up to ``count`` in-range enemies, nearest first.

        Without a manual target, enemies that already have a projectile in
        flight are skipped unless nothing else is in range. A manual target
        ranks enemies by distance to that point instead.
        """
        castle = session.castle
        max_range = self.max_range(session)
        in_range = [e for e in session.live_enemies() if e.distance_to(castle.x, castle.y) <= max_range]

        if session.manual_target is not None:
            mx, my = session.manual_target
            return sorted(in_range, key=lambda e: e.distance_to(mx, my))[:count]

        targeted = {p.target_id for p in session.projectiles}
        pool = [e for e in in_range if e.enemy_id not in targeted] or in_range
        return sorted(pool, key=lambda e: e.distance_to(castle.x, castle.y))[:count]

    def _castle_attack(self, session: GameSession) -> None:
        if not session.live_enemies():
            return
        castle = session.castle
        stats = session.stats
        cfg = self._cfg

        if castle.arrow_cooldown <= 0:
            castle.arrow_cooldown = 1.0 / stats.effective_attack_speed()
            for target in self.find_targets(session, stats.projectiles):
                self.fire_projectile(session, target, ProjectileKind.ARROW)

        if stats.has_fireball and castle.fireball_cooldown <= 0:
            targets = self.find_targets(session, 1)
            if targets:
                self.fire_projectile(session, targets[0], ProjectileKind.FIREBALL)
                castle.fireball_cooldown = cfg.fireball_cooldown

        if stats.has_lightning and castle.lightning_cooldown <= 0:
            targets = self.find_targets(session, 1)
            if targets:
                self.chain_lightning(session, targets[0])
                castle.lightning_cooldown = cfg.lightning_cooldown

        if stats.has_meteor and castle.meteor_cooldown <= 0:
            targets = self.find_targets(session, cfg.meteor_targets)
            if targets:
                self.call_meteors(session, targets)
                castle.meteor_cooldown = cfg.meteor_cooldown

    def _berserker_factor(self, session: GameSession) -> float:
        stats = session.stats
        if not stats.has_berserker or stats.max_health <= 0:
            return 1.0
        missing = max(0.0, 1 - session.castle.health / stats.max_health)
        return 1 + missing * self._cfg.berserker_factor

    def fire_projectile(self, session: GameSession, target: Enemy, kind: ProjectileKind) -> Projectile:
        stats = session.stats
        castle = session.castle
        damage = stats.effective_damage() * self._berserker_factor(session)
        empowered = False

        if kind is ProjectileKind.FIREBALL:
            damage *= self._cfg.fireball_damage_factor * stats.magic_damage_multiplier
            speed = self._cfg.fireball_speed
        else:
            speed = self._cfg.arrow_speed
            castle.arrows_fired += 1
            if stats.has_infinity and castle.arrows_fired % self._cfg.infinity_interval == 0:
                damage *= self._cfg.infinity_multiplier
                empowered = True

        projectile = Projectile(
            projectile_id=session.next_id("proj"),
            kind=kind,
            x=castle.x,
            y=castle.y,
            target_id=target.enemy_id,
            speed=speed,
            damage=damage,
            empowered=empowered,
        )
        session.projectiles.append(projectile)
        self._shots_this_tick += 1
        session.events.emit("projectile_fired", kind=kind.value, target_id=target.enemy_id, damage=damage)
        return projectile

    def chain_lightning(self, session: GameSession, first: Enemy) -> list[Enemy]:
        cfg = self._cfg
        links = [first]
        last = first
        for _ in range(cfg.lightning_links):
            nearby = next(
                (
                    e
                    for e in session.live_enemies()
                    if e not in links and distance(e.x, e.y, last.x, last.y) < cfg.lightning_radius
                ),
                None,
            )
            if nearby is None:
                continue
            links.append(nearby)
            last = nearby

        session.events.emit("lightning", target_ids=[e.enemy_id for e in links])
        for i, enemy in enumerate(links):
            session.scheduler.call_later(
                i * cfg.lightning_stagger,
                partial(self._lightning_strike, session, enemy, i),
                label="lightning",
            )
        return links

    def _lightning_strike(self, session: GameSession, enemy: Enemy, link: int) -> None:
        if not session.is_active or not enemy.is_alive:
            return
        damage = session.stats.damage * (1 - link * self._cfg.lightning_falloff)
        self.damage_enemy(session, enemy, damage, source="lightning")

    def call_meteors(self, session: GameSession, targets: list[Enemy]) -> None:
        cfg = self._cfg
        session.events.emit("meteor", target_ids=[e.enemy_id for e in targets])
        for i, enemy in enumerate(targets):
            session.scheduler.call_later(
                cfg.meteor_impact_delay + i * cfg.meteor_stagger,
                partial(self._meteor_impact, session, enemy),
                label="meteor",
            )

    def _meteor_impact(self, session: GameSession, target: Enemy) -> None:
        if not session.is_active or not target.is_alive:
            return
        cfg = self._cfg
        damage = session.stats.damage * cfg.meteor_damage_factor * session.stats.damage_multiplier
        impact_x, impact_y = target.x, target.y
        splashed = [
            e
            for e in session.live_enemies()
            if e is not target and distance(e.x, e.y, impact_x, impact_y) < cfg.meteor_radius
        ]
        self.damage_enemy(session, target, damage, source="meteor")
        for enemy in splashed:
            self.damage_enemy(session, enemy, damage * cfg.splash_fraction, source="meteor")

    # Projectiles

    def _closest_unclaimed(self, session: GameSession, excluded: set[str]) -> Enemy | None:
        castle = session.castle
        candidates = [e for e in session.live_enemies() if e.enemy_id not in excluded]
        if not candidates:
            return None
        return min(candidates, key=lambda e: e.distance_to(castle.x, castle.y))

    def _update_projectiles(self, session: GameSession, frames: float) -> None:
        stats = session.stats
        in_flight = session.projectiles
        claimed_this_tick: set[str] = set()
        ricochets: list[Projectile] = []
        survivors: list[Projectile] = []

        for proj in list(in_flight):
            if not session.is_active:
                return
            target = session.find_enemy(proj.target_id)
            if target is None or not target.is_alive:
                can_ricochet = proj.kind is ProjectileKind.ARROW and (stats.ricochet > 0 or proj.is_ricochet)
                if not can_ricochet:
                    continue
                excluded = {p.target_id for p in in_flight if p is not proj}
                excluded |= claimed_this_tick
                excluded.update(proj.hit_enemies)
                target = self._closest_unclaimed(session, excluded)
                if target is None:
                    continue
                proj.target_id = target.enemy_id

            if proj.distance_to(target.x, target.y) < self._cfg.hit_threshold:
                self._resolve_hit(session, proj, target, claimed_this_tick, ricochets)
                continue

            proj.step_toward(target.x, target.y, proj.speed * frames)
            survivors.append(proj)

        # Ricochets spawned this pass join after the sweep.
        session.projectiles = survivors + ricochets

    def _resolve_hit(
        self,
        session: GameSession,
        proj: Projectile,
        target: Enemy,
        claimed_this_tick: set[str],
        ricochets: list[Projectile],
    ) -> None:
        stats = session.stats
        cfg = self._cfg
        hit_x, hit_y = target.x, target.y

        damage = proj.damage
        if stats.execute_damage > 0 and target.health_fraction < cfg.execute_threshold:
            damage *= 1 + stats.execute_damage
        is_crit = session.rng.random() < stats.effective_crit_chance()
        if is_crit:
            damage *= stats.crit_damage

        splash: list[tuple[Enemy, float]] = []
        for enemy in session.live_enemies():
            dist = distance(enemy.x, enemy.y, hit_x, hit_y)
            if proj.kind is ProjectileKind.FIREBALL:
                if dist < cfg.fireball_radius:
                    splash.append((enemy, damage * cfg.splash_fraction))
                continue
            if enemy is target:
                continue
            if stats.explosive_arrows and dist < cfg.explosive_radius:
                splash.append((enemy, damage * cfg.splash_fraction))
            if stats.splash_damage > 0 and dist < cfg.splash_stat_radius:
                splash.append((enemy, damage * stats.splash_damage))

        self.damage_enemy(session, target, damage, crit=is_crit, source=proj.kind.value)
        if stats.life_steal > 0:
            session.castle.heal(damage * stats.life_steal, stats.max_health)
        if proj.kind is ProjectileKind.ARROW and stats.poison_damage > 0:
            target.apply_poison(stats.poison_damage / cfg.poison_duration, cfg.poison_duration)

        for enemy, amount in splash:
            self.damage_enemy(session, enemy, amount, source="splash")

        if stats.freeze_chance > 0 and session.rng.random() < stats.freeze_chance:
            target.apply_slow(cfg.freeze_duration)

        if proj.kind is ProjectileKind.ARROW and stats.ricochet > 0 and proj.bounces < stats.ricochet:
            hit_chain = proj.hit_enemies + [target.enemy_id]
            excluded = {p.target_id for p in session.projectiles if p is not proj}
            excluded |= {p.target_id for p in ricochets}
            excluded |= claimed_this_tick
            excluded.update(hit_chain)
            next_target = self._closest_unclaimed(session, excluded)
            if next_target is not None:
                claimed_this_tick.add(next_target.enemy_id)
                ricochets.append(
                    Projectile(
                        projectile_id=session.next_id("proj"),
                        kind=ProjectileKind.ARROW,
                        x=hit_x,
                        y=hit_y,
                        target_id=next_target.enemy_id,
                        speed=cfg.ricochet_speed,
                        damage=proj.damage * cfg.ricochet_falloff,
                        bounces=proj.bounces + 1,
                        hit_enemies=hit_chain,
                        is_ricochet=True,
                    )
                )
                session.events.emit(
                    "ricochet",
                    from_id=target.enemy_id,
                    target_id=next_target.enemy_id,
                    bounces=proj.bounces + 1,
                )

    # Damage and death

    def damage_enemy(
        self,
        session: GameSession,
        enemy: Enemy,
        amount: float,
        crit: bool = False,
        source: str = "",
    ) -> bool:
        """Apply damage; runs the kill exactly once when the hit is lethal."""
        if not enemy.is_alive:
            return False
        lethal = enemy.apply_damage(amount)
        session.events.emit(
            "enemy_hit",
            enemy_id=enemy.enemy_id,
            damage=amount,
            crit=crit,
            source=source,
        )
        if lethal:
            self.kill(session, enemy)
        return lethal

    def kill(self, session: GameSession, enemy: Enemy) -> None:
        if not enemy.mark_dead():
            return
        stats = session.stats
        cfg = self._cfg

        session.kills += 1
        session.wave_controller.record_kill()
        self._kills_this_tick += 1

        gold_reward = session.difficulty_multipliers().gold_reward
        gold = round_half_up(enemy.value * cfg.gold_per_value * gold_reward * stats.gold_multiplier)
        gold += stats.bonus_gold_on_kill
        session.economy.reward(gold)
        session.events.emit(
            "enemy_killed",
            enemy_id=enemy.enemy_id,
            enemy_type=enemy.enemy_type,
            is_boss=enemy.is_boss,
            gold=gold,
        )

        if stats.death_explosion and not enemy.has_exploded:
            enemy.has_exploded = True
            blast = round_half_up(enemy.max_health * cfg.death_explosion_fraction * stats.magic_damage_multiplier)
            # Victims are collected before any damage so chained kills cannot alter the list.
            victims = [
                e
                for e in session.live_enemies()
                if e is not enemy and distance(e.x, e.y, enemy.x, enemy.y) < cfg.death_explosion_radius
            ]
            session.events.emit(
                "death_explosion",
                enemy_id=enemy.enemy_id,
                damage=blast,
                victim_ids=[e.enemy_id for e in victims],
            )
            for victim in victims:
                self.damage_enemy(session, victim, blast, source="death_explosion")

    # Defenders

    def sync_garrisons(self, session: GameSession) -> None:
        """Match garrison guards to the garrison_count stat."""
        cfg = self._defender_cfg
        castle = session.castle
        garrisons = [d for d in session.defenders if d.kind is DefenderKind.GARRISON]
        target = max(0, session.stats.garrison_count)

        while len(garrisons) > target:
            removed = garrisons.pop()
            session.defenders.remove(removed)
            session.events.emit("garrison_removed", defender_id=removed.defender_id)

        while len(garrisons) < target:
            angle = len(garrisons) * (math.pi / 3)
            home_x = castle.x + math.cos(angle) * cfg.garrison_radius
            home_y = castle.y + math.sin(angle) * cfg.garrison_radius
            guard = Defender(
                defender_id=session.next_id("guard"),
                kind=DefenderKind.GARRISON,
                x=home_x,
                y=home_y,
                home_x=home_x,
                home_y=home_y,
                damage=cfg.garrison_damage * session.stats.damage_multiplier,
                attack_range=cfg.garrison_attack_range,
                chase_speed=cfg.garrison_chase_speed,
                return_speed=cfg.garrison_return_speed,
                leash=cfg.garrison_leash,
            )
            garrisons.append(guard)
            session.defenders.append(guard)
            session.events.emit("garrison_spawned", defender_id=guard.defender_id)

    def summon_knight(self, session: GameSession, duration: float) -> Defender:
        cfg = self._defender_cfg
        x, y = session.castle.x, self._arena.height - 100
        knight = Defender(
            defender_id=session.next_id("knight"),
            kind=DefenderKind.KNIGHT,
            x=x,
            y=y,
            home_x=x,
            home_y=y,
            damage=cfg.knight_damage * session.stats.damage_multiplier,
            attack_range=cfg.knight_attack_range,
            chase_speed=cfg.knight_speed,
            return_speed=0.0,
            expires_at=session.scheduler.now + duration,
        )
        session.defenders.append(knight)
        session.events.emit("knight_summoned", defender_id=knight.defender_id, duration=duration)
        return knight

    def _update_defenders(self, session: GameSession, dt: float) -> None:
        step = self._defender_cfg.step_interval
        now = session.scheduler.now
        for defender in list(session.defenders):
            if defender.expires_at is not None and now >= defender.expires_at:
                session.defenders.remove(defender)
                session.events.emit("knight_expired", defender_id=defender.defender_id)
                continue
            defender.step_timer += dt
            while defender.step_timer >= step:
                defender.step_timer -= step
                self._defender_step(session, defender)
                if not session.is_active:
                    return

    def _defender_step(self, session: GameSession, defender: Defender) -> None:
        live = session.live_enemies()
        if not live:
            if defender.kind is DefenderKind.GARRISON and not defender.is_home(HOME_TOLERANCE):
                defender.step_toward(defender.home_x, defender.home_y, defender.return_speed)
            return

        closest = min(live, key=lambda e: defender.distance_to(e.x, e.y))
        dist = defender.distance_to(closest.x, closest.y)
        if dist < defender.attack_range:
            self.damage_enemy(session, closest, defender.damage, source=defender.kind.value)
        elif defender.leash is None or dist < defender.leash:
            defender.step_toward(closest.x, closest.y, defender.chase_speed)
        elif not defender.is_home(HOME_TOLERANCE):
            defender.step_toward(defender.home_x, defender.home_y, defender.return_speed)
