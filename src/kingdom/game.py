"""Main session aggregate for the Kingdom simulation core."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
import logging
from pathlib import Path
import random
from typing import Any

from kingdom.config import GameContent, load_game_content
from kingdom.core.event_bus import EventBus
from kingdom.core.game_state import GameState
from kingdom.core.records import BEST_WAVE, WaveRecord
from kingdom.core.scheduler import ScheduledCall, Scheduler
from kingdom.entities.castle import Castle
from kingdom.entities.defender import Defender
from kingdom.entities.enemy import Enemy
from kingdom.entities.projectile import Projectile
from kingdom.systems.action_cards import ActionCardSystem
from kingdom.systems.combat_system import CombatSystem, CombatTickResult
from kingdom.systems.debuff_system import DebuffTracker
from kingdom.systems.deck import ActionDeck, CardSource
from kingdom.systems.difficulty import (
    DifficultyMultipliers,
    difficulty_multipliers,
    display_power,
    enemy_scaling,
    power_ratio,
    raw_power,
)
from kingdom.systems.economy_system import EconomySystem
from kingdom.systems.geometry import arena_center, edge_spawn_point
from kingdom.systems.progression_system import OfferKind, ProgressionController, SelectionOutcome
from kingdom.systems.shop_system import PurchaseRejected, ShopListing, ShopSystem
from kingdom.systems.stat_model import CastleStats
from kingdom.systems.wave_system import PendingSpawn, SpawnEntry, WaveController, WavePhase


logger = logging.getLogger(__name__)

MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 10


@dataclass
class DebugOverrides:
    infinite_gold: bool = False
    infinite_health: bool = False
    no_enemies: bool = False
    fast_waves: bool = False
    manual_wave_end: bool = False
    force_golden_box: bool = False


class GameSession:
    """Engine-agnostic model of one run: castle, waves, rewards and shop.

    The host drives it by calling ``tick`` at the configured rate and by
    forwarding player commands. Commands return False and emit
    ``command_rejected`` when the session is not in a state to accept them.
    """

    def __init__(
        self,
        data_dir: Path | None = None,
        content: GameContent | None = None,
        difficulty: int | None = None,
        rng: random.Random | None = None,
        debug: DebugOverrides | None = None,
        record: WaveRecord | None = None,
    ) -> None:
        self.content = content or load_game_content(base_data_dir=data_dir)
        sim = self.content.simulation
        self.rng = rng or random.Random()
        self.debug = debug or DebugOverrides()
        self.record = record if record is not None else BEST_WAVE
        self.events = EventBus()
        self.scheduler = Scheduler()
        self.state = GameState.BOOT
        self.paused = False

        self.difficulty = sim.session.default_difficulty if difficulty is None else difficulty
        if not MIN_DIFFICULTY <= self.difficulty <= MAX_DIFFICULTY:
            raise ValueError(f"difficulty must be within {MIN_DIFFICULTY}-{MAX_DIFFICULTY}")

        self.stats = CastleStats.from_mapping(sim.session.starting_stats)
        castle_x, castle_y = arena_center(sim.arena)
        self.castle = Castle(x=castle_x, y=castle_y, health=self.stats.max_health)
        self.economy = EconomySystem(gold=sim.session.starting_gold, infinite=self.debug.infinite_gold)
        self.deck = ActionDeck(capacity=sim.session.deck_capacity)
        self.debuffs = DebuffTracker()
        self.earned_upgrades: list[str] = []

        self.enemies: list[Enemy] = []
        self.projectiles: list[Projectile] = []
        self.defenders: list[Defender] = []
        self.manual_target: tuple[float, float] | None = None
        self.kills = 0
        self.wave = 1

        self.wave_controller = WaveController(self.content.wave_rules, sim.arena)
        self.combat = CombatSystem(self.content)
        self.cards = ActionCardSystem(self.content)
        self.progression = ProgressionController(self.content, self.rng)
        self.shop = ShopSystem(self.content, self.progression, self.rng)

        self._id_counter = 0
        self._spawn_call: ScheduledCall | None = None

    # Session queries

    @property
    def is_active(self) -> bool:
        return self.state in {GameState.PLAYING, GameState.REWARD_SELECTION}

    def live_enemies(self) -> list[Enemy]:
        return [enemy for enemy in self.enemies if enemy.is_alive]

    def find_enemy(self, enemy_id: str) -> Enemy | None:
        for enemy in self.enemies:
            if enemy.enemy_id == enemy_id:
                return enemy
        return None

    def next_id(self, prefix: str) -> str:
        self._id_counter += 1
        return f"{prefix}-{self._id_counter}"

    def sweep_dead(self) -> None:
        self.enemies[:] = self.live_enemies()

    def raw_power(self) -> int:
        return raw_power(self.stats, self.earned_upgrades, self.content.upgrades, len(self.deck.cards))

    def power(self) -> int:
        return display_power(self.raw_power())

    def power_ratio(self) -> float:
        return power_ratio(self.raw_power())

    def difficulty_multipliers(self) -> DifficultyMultipliers:
        return difficulty_multipliers(self.wave, self.difficulty, self.power_ratio())

    # Lifecycle

    def start(self) -> None:
        if self.state != GameState.BOOT:
            raise ValueError("Session has already been started")
        self.state = GameState.PLAYING
        logger.info("Session started at difficulty %s", self.difficulty)
        self.events.emit("session_started", difficulty=self.difficulty, max_health=self.stats.max_health)
        self._start_wave()

    def tick(self, dt: float | None = None) -> CombatTickResult | None:
        """Advance the session by one fixed step (``1 / tick_rate`` by default)."""
        if not self.is_active or self.paused:
            return None
        if dt is None:
            dt = 1.0 / self.content.simulation.timing.tick_rate

        self.scheduler.advance(dt)
        if self.state != GameState.PLAYING:
            return None

        result = self.combat.tick(self, dt)
        if self.state == GameState.PLAYING and not self.debug.manual_wave_end:
            if self.wave_controller.is_wave_complete(len(self.live_enemies())):
                self._complete_wave()
        return result

    def _start_wave(self) -> None:
        if self.state != GameState.PLAYING:
            return
        wave = self.wave
        is_boss = self.wave_controller.is_boss_wave(wave)
        self.wave_controller.announce(wave)
        self.castle.guardian_used = False
        logger.info("Wave %s announced%s", wave, " (boss)" if is_boss else "")
        self.events.emit("wave_announced", wave=wave, is_boss=is_boss)
        self._spawn_call = self.scheduler.call_later(
            self.content.simulation.timing.announce_delay,
            self._spawn_wave,
            label="spawn_wave",
        )

    def _spawn_wave(self) -> None:
        self._spawn_call = None
        if self.state != GameState.PLAYING:
            return
        fast = self.debug.fast_waves
        if self.debug.no_enemies:
            entries: list[SpawnEntry] = []
        else:
            spawn_rate = self.difficulty_multipliers().spawn_rate
            entries = self.wave_controller.build_spawn_schedule(self.wave, self.rng, delay_scale=spawn_rate)

        pending = self.wave_controller.begin_spawning(entries)
        for spawn in pending:
            delay = 0.0 if fast else spawn.entry.delay
            spawn.handle = self.scheduler.call_later(delay, partial(self._materialize, spawn), label="spawn")
        self.events.emit("wave_started", wave=self.wave, expected_enemies=len(pending))

    def _materialize(self, spawn: PendingSpawn) -> None:
        if not self.is_active:
            return
        if self.wave_controller.mark_spawned(spawn):
            self.spawn_enemy(spawn.entry.enemy_type)

    def spawn_enemy(self, enemy_type: str) -> Enemy:
        archetype = self.content.enemies.get(enemy_type)
        if archetype is None:
            raise ValueError(f"Unknown enemy_type: {enemy_type}")

        scaling = enemy_scaling(archetype, self.wave, self.difficulty_multipliers())
        x, y = edge_spawn_point(self.content.simulation.arena, self.rng)
        enemy = Enemy(
            enemy_id=self.next_id("enemy"),
            enemy_type=enemy_type,
            x=x,
            y=y,
            max_health=scaling.health,
            health=scaling.health,
            damage=scaling.damage,
            speed=scaling.speed,
            value=archetype.value,
            ranged=archetype.ranged,
            attack_range=archetype.attack_range,
            is_boss=archetype.is_boss,
            size=archetype.size,
        )
        self.enemies.append(enemy)
        self.events.emit("enemy_spawned", enemy_id=enemy.enemy_id, enemy_type=enemy_type, is_boss=enemy.is_boss)
        return enemy

    def _complete_wave(self) -> None:
        self.wave_controller.complete()
        self.projectiles.clear()
        for expired in self.debuffs.tick_down(self.stats):
            self.events.emit("debuff_expired", debuff_id=expired.debuff_id)
        logger.info("Wave %s complete (%s kills total)", self.wave, self.kills)
        self.events.emit("wave_complete", wave=self.wave, kills=self.kills)
        self._open_rewards()

    def _open_rewards(self) -> None:
        self.state = GameState.REWARD_SELECTION
        offer = self.progression.open_offer(self.wave, self.earned_upgrades)
        self.events.emit(
            "reward_offer",
            wave=self.wave,
            kind=offer.kind.value,
            options=[option.option_id for option in offer.options],
        )

    def _advance_wave(self) -> None:
        self.wave += 1
        self.shop.reset_wave_limits()
        self.debug.force_golden_box = False
        self.state = GameState.PLAYING
        self.scheduler.call_later(
            self.content.simulation.timing.next_wave_delay,
            self._start_wave,
            label="next_wave",
        )

    def game_over(self) -> None:
        if self.state in {GameState.GAME_OVER, GameState.ENDED}:
            return
        self.state = GameState.GAME_OVER
        self.scheduler.cancel_all()
        self._clear_entities()
        new_record = self.record.submit(self.wave)
        logger.info("Castle destroyed on wave %s after %s kills", self.wave, self.kills)
        self.events.emit("castle_destroyed", wave=self.wave)
        self.events.emit(
            "game_over",
            wave=self.wave,
            kills=self.kills,
            total_gold=self.economy.total_earned,
            best_wave=self.record.best,
            new_record=new_record,
        )

    def quit(self) -> None:
        if self.state == GameState.ENDED:
            return
        self.state = GameState.ENDED
        self.scheduler.cancel_all()
        self._clear_entities()
        self.events.emit("session_ended", wave=self.wave)

    def _clear_entities(self) -> None:
        self.enemies.clear()
        self.projectiles.clear()
        self.defenders.clear()

    # Commands

    def _reject(self, message: str) -> bool:
        logger.debug("Command rejected: %s", message)
        self.events.emit("command_rejected", message=message)
        return False

    def set_manual_target(self, x: float, y: float) -> bool:
        if not self.is_active:
            return self._reject("No game in progress")
        self.manual_target = (x, y)
        return True

    def clear_manual_target(self) -> bool:
        self.manual_target = None
        return True

    def select_reward_option(self, option_id: str, is_action_card: bool = False) -> bool:
        if self.state != GameState.REWARD_SELECTION:
            return self._reject("No reward to choose right now")
        if self.deck.has_pending:
            return self._reject("Swap or discard the new card first")

        outcome = self.progression.select(self, option_id, is_action_card)
        if outcome is SelectionOutcome.REJECTED:
            return self._reject("That reward is not on offer")
        if outcome is SelectionOutcome.ADVANCE:
            self._advance_wave()
        return True

    def select_debuff(self, debuff_id: str) -> bool:
        if self.state != GameState.REWARD_SELECTION:
            return self._reject("No curse to choose right now")
        if self.progression.select_debuff(self, debuff_id) is SelectionOutcome.REJECTED:
            return self._reject("That curse is not on offer")
        self._advance_wave()
        return True

    def resolve_card_swap(self, index: int | None) -> bool:
        """Swap the pending card into deck slot ``index``; ``None`` discards it."""
        if not self.deck.has_pending:
            return self._reject("No card is waiting for a slot")
        if index is not None and not 0 <= index < len(self.deck.cards):
            return self._reject("No card in that slot")

        pending = self.progression.resolve_swap(self, index)
        if pending.source is CardSource.REWARD and self.state == GameState.REWARD_SELECTION:
            self.progression.close()
            self._advance_wave()
        return True

    def cancel_card_swap(self) -> bool:
        """Drop the pending reward card and return to the reward offer."""
        pending = self.deck.pending
        if pending is None:
            return self._reject("No card is waiting for a slot")
        if pending.source is not CardSource.REWARD:
            return self._reject("Box rewards cannot be exchanged")
        self.deck.discard_pending()
        self.events.emit("card_swap_cancelled", card_id=pending.card_id)
        return True

    def shop_listing(self) -> list[ShopListing]:
        return self.shop.listing(self)

    def purchase_shop_item(self, item_id: str) -> bool:
        offer = self.progression.offer
        if self.state != GameState.REWARD_SELECTION or offer is None:
            return self._reject("The shop is closed")
        if offer.kind is OfferKind.DEBUFFS:
            return self._reject("The shop is closed during a curse")
        if self.deck.has_pending:
            return self._reject("Swap or discard the new card first")
        try:
            self.shop.purchase(self, item_id)
        except PurchaseRejected as exc:
            return self._reject(str(exc))
        return True

    def use_action_card(self, index: int) -> bool:
        if self.state != GameState.PLAYING or self.paused:
            return self._reject("Cards can only be played during a wave")
        if not 0 <= index < len(self.deck.cards):
            return self._reject("No card in that slot")

        card = self.content.action_cards.get(self.deck.cards[index])
        if card is None:
            logger.debug("Unknown action card id %s ignored", self.deck.cards[index])
            return False
        self.deck.take(index)
        self.cards.activate(self, card)
        return True

    def toggle_pause(self) -> bool | None:
        """Flip the pause flag; returns the new value, or None when rejected."""
        if not self.is_active:
            self._reject("No game in progress")
            return None
        self.paused = not self.paused
        self.events.emit("paused" if self.paused else "resumed")
        return self.paused

    def set_difficulty(self, level: int) -> bool:
        if not MIN_DIFFICULTY <= level <= MAX_DIFFICULTY:
            return self._reject(f"Difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}")
        self.difficulty = level
        self.events.emit("difficulty_changed", difficulty=level)
        return True

    def force_end_wave(self) -> bool:
        """Abort the running wave: cancel spawns, remove enemies and open rewards."""
        if self.state != GameState.PLAYING:
            return self._reject("No wave in progress")
        if self.wave_controller.phase not in {WavePhase.ANNOUNCING, WavePhase.SPAWNING, WavePhase.IN_PROGRESS}:
            return self._reject("No wave in progress")

        for handle in self.wave_controller.force_end():
            self.scheduler.cancel(handle)
        if self._spawn_call is not None:
            self.scheduler.cancel(self._spawn_call)
            self._spawn_call = None
        self.enemies.clear()
        self.projectiles.clear()
        logger.info("Wave %s ended early", self.wave)
        self.events.emit("wave_force_ended", wave=self.wave)
        self._open_rewards()
        return True

    # Render sink

    def snapshot(self) -> dict[str, Any]:
        offer = self.progression.offer
        return {
            "state": self.state.value,
            "paused": self.paused,
            "wave": self.wave,
            "wave_phase": self.wave_controller.phase.value,
            "is_boss_wave": self.wave_controller.is_boss_wave(self.wave),
            "time": self.scheduler.now,
            "gold": self.economy.gold,
            "total_gold": self.economy.total_earned,
            "kills": self.kills,
            "power": self.power(),
            "difficulty": self.difficulty,
            "castle": {
                "x": self.castle.x,
                "y": self.castle.y,
                "health": self.castle.health,
                "max_health": self.stats.max_health,
                "health_fraction": self.castle.health / self.stats.max_health if self.stats.max_health else 0.0,
                "invincible": self.castle.is_invincible(self.scheduler.now),
            },
            "enemies": [
                {
                    "id": e.enemy_id,
                    "type": e.enemy_type,
                    "x": e.x,
                    "y": e.y,
                    "health_fraction": e.health_fraction,
                    "is_boss": e.is_boss,
                    "slowed": e.slowed,
                }
                for e in self.live_enemies()
            ],
            "projectiles": [
                {"id": p.projectile_id, "kind": p.kind.value, "x": p.x, "y": p.y}
                for p in self.projectiles
            ],
            "defenders": [
                {"id": d.defender_id, "kind": d.kind.value, "x": d.x, "y": d.y}
                for d in self.defenders
            ],
            "deck": list(self.deck.cards),
            "pending_card": self.deck.pending.card_id if self.deck.pending else None,
            "earned_upgrades": list(self.earned_upgrades),
            "active_debuffs": [
                {"id": d.debuff_id, "remaining_waves": d.remaining_waves} for d in self.debuffs.active
            ],
            "offer": None if offer is None else {
                "kind": offer.kind.value,
                "options": [
                    {"id": o.option_id, "name": o.name, "rarity": o.rarity, "is_action_card": o.is_action_card}
                    for o in offer.options
                ],
            },
            "manual_target": self.manual_target,
        }
