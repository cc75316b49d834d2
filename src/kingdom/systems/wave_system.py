"""Wave composition, spawn bookkeeping and completion detection."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import random

from kingdom.config import ArenaConfig, BossAddGroup, RollRule, TieredChoice, WaveRules
from kingdom.core.scheduler import ScheduledCall


logger = logging.getLogger(__name__)


class WavePhase(str, Enum):
    IDLE = "idle"
    ANNOUNCING = "announcing"
    SPAWNING = "spawning"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


@dataclass
class SpawnEntry:
    enemy_type: str
    delay: float


@dataclass
class PendingSpawn:
    entry: SpawnEntry
    spawned: bool = False
    handle: ScheduledCall | None = None


def _tiered(tiers: list[TieredChoice], wave: int) -> str:
    chosen = tiers[0].enemy_type
    for tier in tiers:
        if wave >= tier.min_wave:
            chosen = tier.enemy_type
    return chosen


def _rolled(rules: list[RollRule], default_type: str, wave: int, roll: float) -> str:
    # Later rules override earlier ones, so the last match wins.
    chosen = default_type
    for rule in rules:
        if wave >= rule.min_wave and roll > rule.roll_above:
            chosen = rule.enemy_type
    return chosen


class WaveController:
    def __init__(self, rules: WaveRules, arena: ArenaConfig) -> None:
        self._rules = rules
        self._arena = arena
        self.wave = 0
        self.phase = WavePhase.IDLE
        self.pending: list[PendingSpawn] = []
        self.expected_enemies = 0
        self.wave_kills = 0

    def is_boss_wave(self, wave: int) -> bool:
        return wave % self._rules.boss_wave_every == 0

    def announce(self, wave: int) -> None:
        if self.phase not in {WavePhase.IDLE, WavePhase.COMPLETE}:
            raise ValueError(f"Cannot announce wave {wave} during {self.phase.value}")
        self.wave = wave
        self.phase = WavePhase.ANNOUNCING
        self.pending = []
        self.expected_enemies = 0
        self.wave_kills = 0

    def build_spawn_schedule(self, wave: int, rng: random.Random, delay_scale: float = 1.0) -> list[SpawnEntry]:
        """Ordered spawn list for ``wave``; delays are seconds from spawn start.

        ``delay_scale`` is the difficulty spawn-rate multiplier. Narrow arenas
        and later wave tiers stretch the schedule further.
        """
        tier_cfg = self._rules.tier
        tier = min(tier_cfg.max_tier, wave // tier_cfg.every)
        count_scale = tier_cfg.count_growth ** tier
        width_scale = max(1.0, tier_cfg.reference_width / self._arena.width)
        stretch = width_scale * (1 + tier * tier_cfg.delay_growth) * delay_scale

        if self.is_boss_wave(wave):
            entries = self._boss_schedule(wave, rng, count_scale, stretch)
        else:
            entries = self._regular_schedule(wave, rng, count_scale, stretch)
        return entries

    def _boss_schedule(self, wave: int, rng: random.Random, count_scale: float, stretch: float) -> list[SpawnEntry]:
        rules = self._rules
        entries = [SpawnEntry(enemy_type=_tiered(rules.boss_tiers, wave), delay=0.0)]
        entries.extend(self._add_group(rules.boss_adds, wave, stretch))
        entries.extend(self._add_group(rules.boss_dragons, wave, stretch))

        minions = rules.minions
        count = int(int(wave * minions.per_wave + minions.base_count) * count_scale)
        for i in range(count):
            enemy_type = _rolled(minions.rules, minions.default_type, wave, rng.random())
            delay = (minions.base_delay + i * minions.delay_step) * stretch
            entries.append(SpawnEntry(enemy_type=enemy_type, delay=delay))
        return entries

    def _add_group(self, group: BossAddGroup, wave: int, stretch: float) -> list[SpawnEntry]:
        if wave < group.min_wave:
            return []
        enemy_type = _tiered(group.tiers, wave)
        return [
            SpawnEntry(enemy_type=enemy_type, delay=(group.base_delay + i * group.delay_step) * stretch)
            for i in range(wave // group.every)
        ]

    def _regular_schedule(self, wave: int, rng: random.Random, count_scale: float, stretch: float) -> list[SpawnEntry]:
        regular = self._rules.regular
        count = int(int(regular.base_count + wave * regular.per_wave) * count_scale)
        interval = max(regular.min_interval, regular.spawn_interval - wave * regular.interval_per_wave)
        entries = []
        for i in range(count):
            enemy_type = _rolled(regular.rules, regular.default_type, wave, rng.random())
            entries.append(SpawnEntry(enemy_type=enemy_type, delay=i * interval * stretch))
        return entries

    def begin_spawning(self, entries: list[SpawnEntry]) -> list[PendingSpawn]:
        if self.phase != WavePhase.ANNOUNCING:
            raise ValueError(f"Cannot start spawning during {self.phase.value}")
        self.pending = [PendingSpawn(entry=entry) for entry in entries]
        self.expected_enemies = len(self.pending)
        self.phase = WavePhase.SPAWNING if self.pending else WavePhase.IN_PROGRESS
        logger.debug("Wave %s scheduled %s spawns", self.wave, self.expected_enemies)
        return self.pending

    def mark_spawned(self, spawn: PendingSpawn) -> bool:
        if spawn.spawned or self.phase != WavePhase.SPAWNING:
            return False
        spawn.spawned = True
        if self.all_spawned():
            self.phase = WavePhase.IN_PROGRESS
        return True

    def all_spawned(self) -> bool:
        return all(spawn.spawned for spawn in self.pending)

    def unspawned_count(self) -> int:
        return sum(1 for spawn in self.pending if not spawn.spawned)

    def record_kill(self) -> None:
        self.wave_kills += 1

    def is_wave_complete(self, live_enemies: int) -> bool:
        if self.phase not in {WavePhase.SPAWNING, WavePhase.IN_PROGRESS}:
            return False
        return live_enemies == 0 and self.all_spawned() and self.wave_kills >= self.expected_enemies

    def complete(self) -> None:
        if self.phase not in {WavePhase.SPAWNING, WavePhase.IN_PROGRESS}:
            raise ValueError(f"Cannot complete a wave during {self.phase.value}")
        self.phase = WavePhase.COMPLETE

    def force_end(self) -> list[ScheduledCall]:
        """Abort the wave; returns timer handles of spawns that never fired."""
        if self.phase not in {WavePhase.ANNOUNCING, WavePhase.SPAWNING, WavePhase.IN_PROGRESS}:
            raise ValueError(f"Cannot force end a wave during {self.phase.value}")
        handles = [spawn.handle for spawn in self.pending if not spawn.spawned and spawn.handle is not None]
        for spawn in self.pending:
            spawn.spawned = True
        self.phase = WavePhase.COMPLETE
        return handles
