"""One-shot action card effects."""

from __future__ import annotations

from functools import partial
import logging
from typing import TYPE_CHECKING, Callable

from kingdom.config import ActionCard, CardEffect, GameContent
from kingdom.entities.enemy import Enemy
from kingdom.entities.projectile import ProjectileKind
from kingdom.systems.geometry import clamp_to_arena
from kingdom.systems.rarity import choose

if TYPE_CHECKING:
    from kingdom.game import GameSession


logger = logging.getLogger(__name__)


class ActionCardSystem:
    """Interprets card effect kinds against a live session.

    Staggered and time-boxed effects run on the session scheduler, so they
    freeze with the session when it is paused.
    """

    def __init__(self, content: GameContent) -> None:
        self._content = content
        self._arena = content.simulation.arena
        self._handlers: dict[str, Callable[[GameSession, CardEffect], None]] = {
            "arrow_volley": self._arrow_volley,
            "heal": self._heal,
            "grant_gold": self._grant_gold,
            "shield_bash": self._shield_bash,
            "battle_cry": self._timed_damage_buff,
            "multi_fireball": self._multi_fireball,
            "freeze_all": self._freeze_all,
            "lightning_storm": self._lightning_storm,
            "poison_cloud": self._poison_cloud,
            "damage_all": self._damage_all,
            "invincibility": self._invincibility,
            "time_warp": self._time_warp,
            "summon_knight": self._summon_knight,
            "apocalypse": self._apocalypse,
            "phoenix_rebirth": self._phoenix_rebirth,
        }

    def activate(self, session: GameSession, card: ActionCard) -> None:
        handler = self._handlers.get(card.effect.kind)
        if handler is None:
            raise ValueError(f"Unknown card effect kind: {card.effect.kind}")
        logger.debug("Activating card %s", card.card_id)
        handler(session, card.effect)
        session.events.emit("card_used", card_id=card.card_id, kind=card.effect.kind)

    def _later(self, session: GameSession, delay: float, callback: Callable[[], None], label: str) -> None:
        def guarded() -> None:
            if session.is_active:
                callback()

        session.scheduler.call_later(delay, guarded, label=label)

    def _magic_damage(self, session: GameSession, base: float) -> float:
        stats = session.stats
        return base * stats.damage_multiplier * stats.magic_damage_multiplier

    def _arrow_volley(self, session: GameSession, effect: CardEffect) -> None:
        targets = session.live_enemies()
        if not targets:
            return

        def fire() -> None:
            target = choose(targets, session.rng)
            if target.is_alive:
                session.combat.fire_projectile(session, target, ProjectileKind.ARROW)

        for i in range(int(effect.param("count"))):
            self._later(session, i * effect.param("stagger"), fire, "arrow_volley")

    def _heal(self, session: GameSession, effect: CardEffect) -> None:
        healed = session.castle.heal(effect.param("amount"), session.stats.max_health)
        session.events.emit("castle_healed", amount=healed, health=session.castle.health)

    def _grant_gold(self, session: GameSession, effect: CardEffect) -> None:
        amount = int(effect.param("amount"))
        session.economy.reward(amount)
        session.events.emit("gold_changed", delta=amount, reason="card", gold=session.economy.gold)

    def _shield_bash(self, session: GameSession, effect: CardEffect) -> None:
        castle = session.castle
        push = effect.param("push")
        for enemy in session.live_enemies():
            dist = enemy.distance_to(castle.x, castle.y)
            if dist > 0:
                x = enemy.x + (enemy.x - castle.x) / dist * push
                y = enemy.y + (enemy.y - castle.y) / dist * push
                enemy.x, enemy.y = clamp_to_arena(x, y, self._arena)
            enemy.apply_slow(effect.param("stun"))

    def _multi_fireball(self, session: GameSession, effect: CardEffect) -> None:
        targets = session.combat.find_targets(session, int(effect.param("count")))
        for i, target in enumerate(targets):
            self._later(
                session,
                i * effect.param("stagger"),
                partial(self._fireball_at, session, target),
                "multi_fireball",
            )

    def _fireball_at(self, session: GameSession, target: Enemy) -> None:
        if target.is_alive:
            session.combat.fire_projectile(session, target, ProjectileKind.FIREBALL)

    def _freeze_all(self, session: GameSession, effect: CardEffect) -> None:
        for enemy in session.live_enemies():
            enemy.apply_slow(effect.param("duration"))

    def _lightning_storm(self, session: GameSession, effect: CardEffect) -> None:
        targets = session.live_enemies()[: int(effect.param("count"))]
        for i, target in enumerate(targets):
            self._later(
                session,
                i * effect.param("stagger"),
                partial(self._strike, session, target, effect.param("damage_factor"), True),
                "lightning_storm",
            )

    def _strike(self, session: GameSession, target: Enemy, amount: float, scale_with_damage: bool = False) -> None:
        base = session.stats.damage * amount if scale_with_damage else amount
        session.combat.damage_enemy(session, target, self._magic_damage(session, base), source="card")

    def _damage_all(self, session: GameSession, effect: CardEffect) -> None:
        for i, target in enumerate(session.live_enemies()):
            self._later(
                session,
                i * effect.param("stagger"),
                partial(self._strike, session, target, effect.param("damage")),
                "damage_all",
            )

    def _poison_cloud(self, session: GameSession, effect: CardEffect) -> None:
        interval = effect.param("interval")
        ticks = int(effect.param("duration") / interval)

        def pulse() -> None:
            for enemy in session.live_enemies():
                self._strike(session, enemy, effect.param("damage"))

        for n in range(1, ticks + 1):
            self._later(session, n * interval, pulse, "poison_cloud")

    def _apocalypse(self, session: GameSession, effect: CardEffect) -> None:
        def impact() -> None:
            for enemy in session.live_enemies():
                self._strike(session, enemy, effect.param("damage"))

        self._later(session, effect.param("delay"), impact, "apocalypse")

    def _invincibility(self, session: GameSession, effect: CardEffect) -> None:
        session.castle.grant_invincibility(session.scheduler.now, effect.param("duration"))

    def _time_warp(self, session: GameSession, effect: CardEffect) -> None:
        for enemy in session.live_enemies():
            enemy.apply_time_warp(effect.param("speed_factor"), effect.param("duration"))

    def _summon_knight(self, session: GameSession, effect: CardEffect) -> None:
        session.combat.summon_knight(session, effect.param("duration"))

    def _timed_damage_buff(self, session: GameSession, effect: CardEffect) -> None:
        multiplier = effect.param("multiplier")
        session.stats.apply_buff(multiplier)
        session.events.emit("buff_started", multiplier=multiplier, duration=effect.param("duration"))

        def expire() -> None:
            session.stats.remove_buff(multiplier)
            session.events.emit("buff_ended", multiplier=multiplier)

        self._later(session, effect.param("duration"), expire, "damage_buff")

    def _phoenix_rebirth(self, session: GameSession, effect: CardEffect) -> None:
        session.castle.health = session.stats.max_health
        session.events.emit("castle_healed", amount=0, health=session.castle.health)
        self._timed_damage_buff(session, effect)
