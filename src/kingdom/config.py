"""Content loading and validation for the Kingdom simulation."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
import json

from kingdom.systems.stat_model import OVERLAY_NEUTRAL, CastleStats


RARITIES = ("common", "uncommon", "rare", "epic", "legendary", "mythic")
UPGRADE_TYPES = ("weapon", "defense", "magic", "utility")
SEVERITIES = ("minor", "moderate", "devastating")
STAT_EFFECT_KINDS = ("multiply", "add", "add_capped", "enable")
INSTANT_EFFECT_KINDS = ("max_health_loss", "gold_loss", "health_loss")
CARD_EFFECT_KINDS = (
    "arrow_volley",
    "heal",
    "grant_gold",
    "shield_bash",
    "battle_cry",
    "multi_fireball",
    "freeze_all",
    "lightning_storm",
    "poison_cloud",
    "damage_all",
    "invincibility",
    "time_warp",
    "summon_knight",
    "apocalypse",
    "phoenix_rebirth",
)
SHOP_ITEM_KINDS = ("repair", "mystery_box", "golden_box")


@dataclass
class ArenaConfig:
    width: float
    height: float
    spawn_margin: float
    base_range_fraction: float


@dataclass
class TimingConfig:
    tick_rate: int
    frame_rate: float
    announce_delay: float
    next_wave_delay: float


@dataclass
class CombatConfig:
    melee_range: float
    enemy_attack_interval: float
    slow_factor: float
    freeze_duration: float
    hit_threshold: float
    arrow_speed: float
    fireball_speed: float
    ricochet_speed: float
    ricochet_falloff: float
    fireball_damage_factor: float
    splash_fraction: float
    explosive_radius: float
    fireball_radius: float
    splash_stat_radius: float
    fireball_cooldown: float
    lightning_cooldown: float
    lightning_links: int
    lightning_radius: float
    lightning_falloff: float
    lightning_stagger: float
    meteor_cooldown: float
    meteor_targets: int
    meteor_damage_factor: float
    meteor_impact_delay: float
    meteor_stagger: float
    meteor_radius: float
    death_explosion_fraction: float
    death_explosion_radius: float
    gold_per_value: int
    execute_threshold: float
    poison_duration: float
    infinity_interval: int
    infinity_multiplier: float
    berserker_factor: float
    phoenix_health_fraction: float


@dataclass
class DefenderConfig:
    step_interval: float
    garrison_radius: float
    garrison_damage: float
    garrison_attack_range: float
    garrison_leash: float
    garrison_chase_speed: float
    garrison_return_speed: float
    knight_damage: float
    knight_attack_range: float
    knight_speed: float


@dataclass
class SessionConfig:
    starting_gold: int
    deck_capacity: int
    default_difficulty: int
    starting_stats: dict[str, float]


@dataclass
class SimulationConfig:
    arena: ArenaConfig
    timing: TimingConfig
    combat: CombatConfig
    defenders: DefenderConfig
    session: SessionConfig


@dataclass
class EnemyArchetype:
    enemy_type: str
    name: str
    base_health: float
    base_damage: float
    speed: float
    value: int
    ranged: bool = False
    attack_range: float = 0.0
    is_boss: bool = False
    size: float = 1.0
    damage_scales_with_wave: bool = False


@dataclass
class TieredChoice:
    min_wave: int
    enemy_type: str


@dataclass
class RollRule:
    min_wave: int
    roll_above: float
    enemy_type: str


@dataclass
class WaveTierConfig:
    every: int
    max_tier: int
    count_growth: float
    delay_growth: float
    reference_width: float


@dataclass
class BossAddGroup:
    every: int
    min_wave: int
    base_delay: float
    delay_step: float
    tiers: list[TieredChoice]


@dataclass
class MinionRules:
    default_type: str
    base_count: int
    per_wave: float
    base_delay: float
    delay_step: float
    rules: list[RollRule]


@dataclass
class RegularWaveRules:
    default_type: str
    base_count: int
    per_wave: float
    spawn_interval: float
    interval_per_wave: float
    min_interval: float
    rules: list[RollRule]


@dataclass
class WaveRules:
    boss_wave_every: int
    tier: WaveTierConfig
    boss_tiers: list[TieredChoice]
    boss_adds: BossAddGroup
    boss_dragons: BossAddGroup
    minions: MinionRules
    regular: RegularWaveRules


@dataclass
class StatEffect:
    kind: str
    stat: str
    value: float = 0.0
    cap: float | None = None


@dataclass
class Upgrade:
    upgrade_id: str
    name: str
    upgrade_type: str
    rarity: str
    repeatable: bool
    effects: list[StatEffect]


@dataclass
class CardEffect:
    kind: str
    params: dict[str, float] = field(default_factory=dict)

    def param(self, name: str) -> float:
        if name not in self.params:
            raise ValueError(f"Card effect {self.kind!r} is missing parameter {name!r}")
        return self.params[name]


@dataclass
class ActionCard:
    card_id: str
    name: str
    rarity: str
    effect: CardEffect


@dataclass
class InstantEffect:
    kind: str
    amount: float = 0.0
    floor: float = 0.0
    keep: float = 1.0


@dataclass
class DebuffDefinition:
    debuff_id: str
    name: str
    severity: str
    wave_duration: int | None = None
    stat_key: str | None = None
    stat_value: float | None = None
    instant: InstantEffect | None = None

    @property
    def is_instant(self) -> bool:
        return self.instant is not None


@dataclass
class ShopItem:
    item_id: str
    name: str
    kind: str
    price: int
    heal_amount: float | None = None


@dataclass
class MysteryBoxOdds:
    safe_waves: int
    catastrophe_chance: float
    action_card_chance: float


@dataclass
class GoldenBoxOdds:
    catastrophe_chance: float
    mythic_chance: float
    action_card_chance: float


@dataclass
class ShopConfig:
    items: dict[str, ShopItem]
    mystery_box_limit: int
    golden_box_limit: int
    mystery_box: MysteryBoxOdds
    golden_box: GoldenBoxOdds


@dataclass
class RarityTier:
    max_wave: int | None
    weights: dict[str, int]


@dataclass
class RewardConfig:
    rarity_order: list[str]
    rarity_tiers: list[RarityTier]
    offer_size: int
    action_card_chance: float
    debuff_offer_chance: float
    debuff_safe_waves: int


@dataclass
class GameContent:
    simulation: SimulationConfig
    enemies: dict[str, EnemyArchetype]
    wave_rules: WaveRules
    upgrades: dict[str, Upgrade]
    action_cards: dict[str, ActionCard]
    debuffs: dict[str, DebuffDefinition]
    devastating_debuffs: dict[str, DebuffDefinition]
    shop: ShopConfig
    rewards: RewardConfig

    def find_debuff(self, debuff_id: str) -> DebuffDefinition | None:
        return self.debuffs.get(debuff_id) or self.devastating_debuffs.get(debuff_id)


DEFAULT_DATA_DIR = Path(__file__).resolve().parent / "data"

_STAT_NAMES = {f.name for f in fields(CastleStats)}


def _load_json(path: Path) -> dict | list:
    if not path.exists():
        raise ValueError(f"Missing config file: {path}")
    return json.loads(path.read_text())


def _require_keys(data: dict, keys: set[str], context: str) -> None:
    missing = keys - set(data.keys())
    if missing:
        raise ValueError(f"{context}: missing keys {sorted(missing)}")


def _numeric_section(cls: type, raw: dict, context: str):
    """Build a flat dataclass of numbers, casting each value by its annotation."""
    section_fields = fields(cls)
    _require_keys(raw, {f.name for f in section_fields}, context)
    values = {}
    for f in section_fields:
        caster = int if f.type == "int" else float
        values[f.name] = caster(raw[f.name])
    return cls(**values)


def _load_simulation(raw: dict) -> SimulationConfig:
    _require_keys(raw, {"arena", "timing", "combat", "defenders", "session"}, "simulation")

    session_raw = raw["session"]
    _require_keys(
        session_raw,
        {"starting_gold", "deck_capacity", "default_difficulty", "starting_stats"},
        "simulation.session",
    )
    starting_stats = {name: float(value) for name, value in session_raw["starting_stats"].items()}
    for name in starting_stats:
        if name not in _STAT_NAMES:
            raise ValueError(f"simulation.session: unknown starting stat {name!r}")

    config = SimulationConfig(
        arena=_numeric_section(ArenaConfig, raw["arena"], "simulation.arena"),
        timing=_numeric_section(TimingConfig, raw["timing"], "simulation.timing"),
        combat=_numeric_section(CombatConfig, raw["combat"], "simulation.combat"),
        defenders=_numeric_section(DefenderConfig, raw["defenders"], "simulation.defenders"),
        session=SessionConfig(
            starting_gold=int(session_raw["starting_gold"]),
            deck_capacity=int(session_raw["deck_capacity"]),
            default_difficulty=int(session_raw["default_difficulty"]),
            starting_stats=starting_stats,
        ),
    )

    if config.arena.width <= 0 or config.arena.height <= 0:
        raise ValueError("arena dimensions must be positive")
    if config.timing.tick_rate <= 0:
        raise ValueError("tick_rate must be positive")
    if config.session.deck_capacity < 1:
        raise ValueError("deck_capacity must be at least 1")
    if not 1 <= config.session.default_difficulty <= 10:
        raise ValueError("default_difficulty must be within 1-10")
    return config


def _load_enemies(raw: list) -> dict[str, EnemyArchetype]:
    enemies: dict[str, EnemyArchetype] = {}
    for enemy in raw:
        _require_keys(
            enemy,
            {"enemy_type", "name", "base_health", "base_damage", "speed", "value"},
            f"enemy {enemy!r}",
        )
        archetype = EnemyArchetype(
            enemy_type=enemy["enemy_type"],
            name=enemy["name"],
            base_health=float(enemy["base_health"]),
            base_damage=float(enemy["base_damage"]),
            speed=float(enemy["speed"]),
            value=int(enemy["value"]),
            ranged=bool(enemy.get("ranged", False)),
            attack_range=float(enemy.get("attack_range", 0.0)),
            is_boss=bool(enemy.get("is_boss", False)),
            size=float(enemy.get("size", 1.0)),
            damage_scales_with_wave=bool(enemy.get("damage_scales_with_wave", False)),
        )
        if archetype.ranged and archetype.attack_range <= 0:
            raise ValueError(f"Ranged enemy {archetype.enemy_type} needs a positive attack_range")
        enemies[archetype.enemy_type] = archetype
    return enemies


def _tiers(raw: list, enemies: dict[str, EnemyArchetype], context: str) -> list[TieredChoice]:
    tiers: list[TieredChoice] = []
    for tier in raw:
        _require_keys(tier, {"min_wave", "enemy_type"}, context)
        if tier["enemy_type"] not in enemies:
            raise ValueError(f"{context} references unknown enemy type: {tier['enemy_type']}")
        tiers.append(TieredChoice(min_wave=int(tier["min_wave"]), enemy_type=tier["enemy_type"]))
    if not tiers:
        raise ValueError(f"{context} must define at least one tier")
    return sorted(tiers, key=lambda t: t.min_wave)


def _roll_rules(raw: list, enemies: dict[str, EnemyArchetype], context: str) -> list[RollRule]:
    rules: list[RollRule] = []
    for rule in raw:
        _require_keys(rule, {"min_wave", "roll_above", "enemy_type"}, context)
        if rule["enemy_type"] not in enemies:
            raise ValueError(f"{context} references unknown enemy type: {rule['enemy_type']}")
        rules.append(
            RollRule(
                min_wave=int(rule["min_wave"]),
                roll_above=float(rule["roll_above"]),
                enemy_type=rule["enemy_type"],
            )
        )
    # Evaluation order matters (last match wins), so rules keep their file order.
    return rules


def _add_group(raw: dict, enemies: dict[str, EnemyArchetype], context: str) -> BossAddGroup:
    _require_keys(raw, {"every", "min_wave", "base_delay", "delay_step", "tiers"}, context)
    return BossAddGroup(
        every=int(raw["every"]),
        min_wave=int(raw["min_wave"]),
        base_delay=float(raw["base_delay"]),
        delay_step=float(raw["delay_step"]),
        tiers=_tiers(raw["tiers"], enemies, context),
    )


def _load_wave_rules(raw: dict, enemies: dict[str, EnemyArchetype]) -> WaveRules:
    _require_keys(raw, {"boss_wave_every", "tier", "boss", "regular"}, "wave_rules")
    boss_raw = raw["boss"]
    _require_keys(boss_raw, {"tiers", "adds", "dragons", "minions"}, "wave_rules.boss")

    minions_raw = boss_raw["minions"]
    _require_keys(
        minions_raw,
        {"default_type", "base_count", "per_wave", "base_delay", "delay_step", "rules"},
        "wave_rules.boss.minions",
    )
    regular_raw = raw["regular"]
    _require_keys(
        regular_raw,
        {"default_type", "base_count", "per_wave", "spawn_interval", "interval_per_wave", "min_interval", "rules"},
        "wave_rules.regular",
    )
    for default in (minions_raw["default_type"], regular_raw["default_type"]):
        if default not in enemies:
            raise ValueError(f"Wave rules reference unknown enemy type: {default}")

    rules = WaveRules(
        boss_wave_every=int(raw["boss_wave_every"]),
        tier=_numeric_section(WaveTierConfig, raw["tier"], "wave_rules.tier"),
        boss_tiers=_tiers(boss_raw["tiers"], enemies, "wave_rules.boss.tiers"),
        boss_adds=_add_group(boss_raw["adds"], enemies, "wave_rules.boss.adds"),
        boss_dragons=_add_group(boss_raw["dragons"], enemies, "wave_rules.boss.dragons"),
        minions=MinionRules(
            default_type=minions_raw["default_type"],
            base_count=int(minions_raw["base_count"]),
            per_wave=float(minions_raw["per_wave"]),
            base_delay=float(minions_raw["base_delay"]),
            delay_step=float(minions_raw["delay_step"]),
            rules=_roll_rules(minions_raw["rules"], enemies, "wave_rules.boss.minions"),
        ),
        regular=RegularWaveRules(
            default_type=regular_raw["default_type"],
            base_count=int(regular_raw["base_count"]),
            per_wave=float(regular_raw["per_wave"]),
            spawn_interval=float(regular_raw["spawn_interval"]),
            interval_per_wave=float(regular_raw["interval_per_wave"]),
            min_interval=float(regular_raw["min_interval"]),
            rules=_roll_rules(regular_raw["rules"], enemies, "wave_rules.regular"),
        ),
    )
    if rules.boss_wave_every < 1:
        raise ValueError("boss_wave_every must be at least 1")
    return rules


def _stat_effect(raw: dict, context: str) -> StatEffect:
    _require_keys(raw, {"kind", "stat"}, context)
    kind = raw["kind"]
    if kind not in STAT_EFFECT_KINDS:
        raise ValueError(f"{context}: unknown effect kind {kind!r}")
    if raw["stat"] not in _STAT_NAMES:
        raise ValueError(f"{context}: unknown stat {raw['stat']!r}")
    if kind != "enable" and "value" not in raw:
        raise ValueError(f"{context}: effect {kind!r} requires a value")
    if kind == "add_capped" and "cap" not in raw:
        raise ValueError(f"{context}: add_capped effect requires a cap")
    cap = raw.get("cap")
    return StatEffect(
        kind=kind,
        stat=raw["stat"],
        value=float(raw.get("value", 0.0)),
        cap=None if cap is None else float(cap),
    )


def _load_upgrades(raw: list) -> dict[str, Upgrade]:
    upgrades: dict[str, Upgrade] = {}
    for entry in raw:
        _require_keys(entry, {"upgrade_id", "name", "type", "rarity", "repeatable", "effects"}, f"upgrade {entry!r}")
        context = f"upgrade {entry['upgrade_id']}"
        if entry["rarity"] not in RARITIES:
            raise ValueError(f"{context}: unknown rarity {entry['rarity']!r}")
        if entry["type"] not in UPGRADE_TYPES:
            raise ValueError(f"{context}: unknown type {entry['type']!r}")
        upgrades[entry["upgrade_id"]] = Upgrade(
            upgrade_id=entry["upgrade_id"],
            name=entry["name"],
            upgrade_type=entry["type"],
            rarity=entry["rarity"],
            repeatable=bool(entry["repeatable"]),
            effects=[_stat_effect(effect, context) for effect in entry["effects"]],
        )
    return upgrades


def _load_action_cards(raw: list) -> dict[str, ActionCard]:
    cards: dict[str, ActionCard] = {}
    for entry in raw:
        _require_keys(entry, {"card_id", "name", "rarity", "effect"}, f"action card {entry!r}")
        context = f"action card {entry['card_id']}"
        if entry["rarity"] not in RARITIES:
            raise ValueError(f"{context}: unknown rarity {entry['rarity']!r}")
        effect_raw = dict(entry["effect"])
        _require_keys(effect_raw, {"kind"}, context)
        kind = effect_raw.pop("kind")
        if kind not in CARD_EFFECT_KINDS:
            raise ValueError(f"{context}: unknown effect kind {kind!r}")
        cards[entry["card_id"]] = ActionCard(
            card_id=entry["card_id"],
            name=entry["name"],
            rarity=entry["rarity"],
            effect=CardEffect(kind=kind, params={k: float(v) for k, v in effect_raw.items()}),
        )
    return cards


def _load_debuffs(raw: list, context: str) -> dict[str, DebuffDefinition]:
    debuffs: dict[str, DebuffDefinition] = {}
    for entry in raw:
        _require_keys(entry, {"debuff_id", "name", "severity"}, f"{context} {entry!r}")
        entry_context = f"{context} {entry['debuff_id']}"
        if entry["severity"] not in SEVERITIES:
            raise ValueError(f"{entry_context}: unknown severity {entry['severity']!r}")

        if "instant" in entry:
            instant_raw = entry["instant"]
            _require_keys(instant_raw, {"kind"}, entry_context)
            if instant_raw["kind"] not in INSTANT_EFFECT_KINDS:
                raise ValueError(f"{entry_context}: unknown instant kind {instant_raw['kind']!r}")
            debuff = DebuffDefinition(
                debuff_id=entry["debuff_id"],
                name=entry["name"],
                severity=entry["severity"],
                instant=InstantEffect(
                    kind=instant_raw["kind"],
                    amount=float(instant_raw.get("amount", 0.0)),
                    floor=float(instant_raw.get("floor", 0.0)),
                    keep=float(instant_raw.get("keep", 1.0)),
                ),
            )
        else:
            _require_keys(entry, {"wave_duration", "stat_key", "stat_value"}, entry_context)
            if entry["stat_key"] not in OVERLAY_NEUTRAL:
                raise ValueError(f"{entry_context}: unknown overlay stat {entry['stat_key']!r}")
            if int(entry["wave_duration"]) < 1:
                raise ValueError(f"{entry_context}: wave_duration must be at least 1")
            debuff = DebuffDefinition(
                debuff_id=entry["debuff_id"],
                name=entry["name"],
                severity=entry["severity"],
                wave_duration=int(entry["wave_duration"]),
                stat_key=entry["stat_key"],
                stat_value=float(entry["stat_value"]),
            )
        debuffs[debuff.debuff_id] = debuff
    return debuffs


def _load_shop(raw: dict) -> ShopConfig:
    _require_keys(raw, {"mystery_box_limit", "golden_box_limit", "items", "mystery_box", "golden_box"}, "shop")
    items: dict[str, ShopItem] = {}
    for entry in raw["items"]:
        _require_keys(entry, {"item_id", "name", "kind", "price"}, f"shop item {entry!r}")
        if entry["kind"] not in SHOP_ITEM_KINDS:
            raise ValueError(f"shop item {entry['item_id']}: unknown kind {entry['kind']!r}")
        heal = entry.get("heal_amount")
        items[entry["item_id"]] = ShopItem(
            item_id=entry["item_id"],
            name=entry["name"],
            kind=entry["kind"],
            price=int(entry["price"]),
            heal_amount=None if heal is None else float(heal),
        )
    return ShopConfig(
        items=items,
        mystery_box_limit=int(raw["mystery_box_limit"]),
        golden_box_limit=int(raw["golden_box_limit"]),
        mystery_box=_numeric_section(MysteryBoxOdds, raw["mystery_box"], "shop.mystery_box"),
        golden_box=_numeric_section(GoldenBoxOdds, raw["golden_box"], "shop.golden_box"),
    )


def _load_rewards(raw: dict) -> RewardConfig:
    _require_keys(
        raw,
        {"rarity_order", "rarity_tiers", "offer_size", "action_card_chance", "debuff_offer_chance", "debuff_safe_waves"},
        "rewards",
    )
    order = list(raw["rarity_order"])
    for rarity in order:
        if rarity not in RARITIES:
            raise ValueError(f"rewards: unknown rarity {rarity!r}")

    tiers: list[RarityTier] = []
    for tier in raw["rarity_tiers"]:
        _require_keys(tier, {"max_wave", "weights"}, "rewards.rarity_tiers")
        weights = {rarity: int(weight) for rarity, weight in tier["weights"].items()}
        if set(weights) - set(order):
            raise ValueError(f"rewards: weights name rarities outside rarity_order: {sorted(set(weights) - set(order))}")
        if sum(weights.values()) <= 0:
            raise ValueError("rewards: rarity weights must sum to a positive total")
        max_wave = tier["max_wave"]
        tiers.append(RarityTier(max_wave=None if max_wave is None else int(max_wave), weights=weights))
    if not tiers or tiers[-1].max_wave is not None:
        raise ValueError("rewards: the last rarity tier must be open-ended (max_wave null)")

    return RewardConfig(
        rarity_order=order,
        rarity_tiers=tiers,
        offer_size=int(raw["offer_size"]),
        action_card_chance=float(raw["action_card_chance"]),
        debuff_offer_chance=float(raw["debuff_offer_chance"]),
        debuff_safe_waves=int(raw["debuff_safe_waves"]),
    )


def load_game_content(base_data_dir: Path | None = None) -> GameContent:
    data_dir = base_data_dir or DEFAULT_DATA_DIR

    simulation = _load_simulation(_load_json(data_dir / "simulation" / "simulation.json"))
    enemies = _load_enemies(_load_json(data_dir / "enemies" / "enemy_types.json"))
    wave_rules = _load_wave_rules(_load_json(data_dir / "waves" / "wave_rules.json"), enemies)
    upgrades = _load_upgrades(_load_json(data_dir / "upgrades" / "upgrades.json"))
    action_cards = _load_action_cards(_load_json(data_dir / "cards" / "action_cards.json"))

    debuffs_raw = _load_json(data_dir / "debuffs" / "debuffs.json")
    _require_keys(debuffs_raw, {"regular", "devastating"}, "debuffs")
    debuffs = _load_debuffs(debuffs_raw["regular"], "debuff")
    devastating = _load_debuffs(debuffs_raw["devastating"], "devastating debuff")
    overlap = set(debuffs) & set(devastating)
    if overlap:
        raise ValueError(f"Debuff ids defined twice: {sorted(overlap)}")

    shop = _load_shop(_load_json(data_dir / "shop" / "shop_items.json"))
    rewards = _load_rewards(_load_json(data_dir / "progression" / "rewards.json"))
    if len(debuffs) < rewards.offer_size:
        raise ValueError("Not enough regular debuffs to fill a debuff offer")

    return GameContent(
        simulation=simulation,
        enemies=enemies,
        wave_rules=wave_rules,
        upgrades=upgrades,
        action_cards=action_cards,
        debuffs=debuffs,
        devastating_debuffs=devastating,
        shop=shop,
        rewards=rewards,
    )
