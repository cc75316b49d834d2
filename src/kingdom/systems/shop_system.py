"""Between-wave shop: repairs, mystery boxes and golden boxes."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import random
from typing import TYPE_CHECKING

from kingdom.config import GameContent, ShopItem, Upgrade
from kingdom.systems.deck import CardSource
from kingdom.systems.difficulty import box_price_multiplier, round_half_up, shop_price_multiplier
from kingdom.systems.progression_system import ProgressionController
from kingdom.systems.rarity import choose

if TYPE_CHECKING:
    from kingdom.game import GameSession


logger = logging.getLogger(__name__)

GARRISON_UPGRADE_ID = "garrison_e"


class PurchaseRejected(ValueError):
    """Raised when a shop item cannot be bought right now; the message is player-facing."""


@dataclass
class ShopListing:
    item_id: str
    name: str
    kind: str
    price: int
    enabled: bool
    reason: str | None = None


class ShopSystem:
    def __init__(self, content: GameContent, progression: ProgressionController, rng: random.Random) -> None:
        self._content = content
        self._cfg = content.shop
        self._progression = progression
        self._rng = rng
        self.mystery_boxes_bought = 0
        self.golden_boxes_bought = 0

    def reset_wave_limits(self) -> None:
        self.mystery_boxes_bought = 0
        self.golden_boxes_bought = 0

    def price(self, session: GameSession, item: ShopItem) -> int:
        if item.kind == "repair":
            return round_half_up(item.price * shop_price_multiplier(session.wave))
        return round_half_up(item.price * box_price_multiplier(session.wave, session.power_ratio()))

    def golden_box_offered(self, session: GameSession) -> bool:
        return self._progression.is_golden_box_wave(session.wave) or session.debug.force_golden_box

    def listing(self, session: GameSession) -> list[ShopListing]:
        listings = []
        for item in self._cfg.items.values():
            if item.kind == "golden_box" and not self.golden_box_offered(session):
                continue
            listings.append(self.listing_for(session, item))
        return listings

    def listing_for(self, session: GameSession, item: ShopItem) -> ShopListing:
        price = self.price(session, item)
        reason = self._blocked_reason(session, item, price)
        return ShopListing(
            item_id=item.item_id,
            name=item.name,
            kind=item.kind,
            price=price,
            enabled=reason is None,
            reason=reason,
        )

    def _blocked_reason(self, session: GameSession, item: ShopItem, price: int) -> str | None:
        if item.kind == "repair" and session.castle.health >= session.stats.max_health:
            return "Health is full!"
        if item.kind == "mystery_box" and self.mystery_boxes_bought >= self._cfg.mystery_box_limit:
            return "Max reached this wave!"
        if item.kind == "golden_box":
            if not self.golden_box_offered(session):
                return "Only sold on boss waves!"
            if self.golden_boxes_bought >= self._cfg.golden_box_limit:
                return "Already purchased!"
        if not session.economy.can_afford(price):
            return "Not enough gold!"
        return None

    def purchase(self, session: GameSession, item_id: str) -> ShopListing:
        item = self._cfg.items.get(item_id)
        if item is None:
            raise PurchaseRejected(f"Unknown shop item: {item_id}")
        listing = self.listing_for(session, item)
        if not listing.enabled:
            raise PurchaseRejected(listing.reason)

        session.economy.spend(listing.price)
        session.events.emit(
            "gold_changed",
            delta=0 if session.economy.infinite else -listing.price,
            reason=f"shop:{item_id}",
            gold=session.economy.gold,
        )

        if item.kind == "repair":
            self._repair(session, item)
        elif item.kind == "mystery_box":
            self.mystery_boxes_bought += 1
            self.open_mystery_box(session)
        elif item.kind == "golden_box":
            self.golden_boxes_bought += 1
            self.open_golden_box(session)
        else:
            raise ValueError(f"Unknown shop item kind: {item.kind}")

        session.events.emit("shop_purchase", item_id=item_id, price=listing.price)
        return listing

    def _repair(self, session: GameSession, item: ShopItem) -> None:
        max_health = session.stats.max_health
        amount = max_health if item.heal_amount is None else item.heal_amount
        healed = session.castle.heal(amount, max_health)
        session.events.emit("castle_healed", amount=healed, health=session.castle.health)

    def _available_upgrades(self, session: GameSession, rarity: str | None = None) -> list[Upgrade]:
        return [
            u for u in self._content.upgrades.values()
            if (u.repeatable or u.upgrade_id not in session.earned_upgrades)
            and (u.rarity == rarity if rarity is not None else u.rarity != "mythic")
        ]

    # Boxes

    def open_mystery_box(self, session: GameSession) -> None:
        odds = self._cfg.mystery_box
        if session.wave > odds.safe_waves and self._rng.random() < odds.catastrophe_chance:
            pool = list(self._content.devastating_debuffs.values())
            if pool:
                debuff = choose(pool, self._rng)
                self._unleash(session, "mystery_box", debuff.debuff_id)
                self._progression.inflict(session, debuff)
            return

        if self._rng.random() < odds.action_card_chance:
            card = choose(list(self._content.action_cards.values()), self._rng)
            self._reveal(session, "mystery_box", card.card_id, card.rarity, is_action_card=True)
            self._progression.grant_card(session, card.card_id, CardSource.MYSTERY_BOX)
            return

        available = self._available_upgrades(session)
        if not available:
            return
        upgrade = choose(available, self._rng)
        self._reveal(session, "mystery_box", upgrade.upgrade_id, upgrade.rarity)
        self._progression.earn_upgrade(session, upgrade.upgrade_id)

    def open_golden_box(self, session: GameSession) -> None:
        odds = self._cfg.golden_box
        if self._rng.random() < odds.catastrophe_chance:
            if self._rng.random() < 0.5:
                self._unleash(session, "golden_box", "shattered_dreams")
                self._wipe_upgrades(session)
            else:
                self._unleash(session, "golden_box", "deaths_touch")
                session.castle.health = 1
            return

        is_mythic = self._rng.random() < odds.mythic_chance
        wants_card = self._rng.random() < odds.action_card_chance
        if wants_card and not is_mythic:
            legendary_cards = [c for c in self._content.action_cards.values() if c.rarity == "legendary"]
            if legendary_cards:
                card = choose(legendary_cards, self._rng)
                self._reveal(session, "golden_box", card.card_id, card.rarity, is_action_card=True)
                self._progression.grant_card(session, card.card_id, CardSource.GOLDEN_BOX)
                return

        target = "mythic" if is_mythic else "legendary"
        candidates = self._available_upgrades(session, target)
        if not candidates:
            candidates = self._available_upgrades(session, "legendary" if is_mythic else "epic")
        if not candidates:
            return
        upgrade = choose(candidates, self._rng)
        self._reveal(session, "golden_box", upgrade.upgrade_id, upgrade.rarity)
        self._progression.earn_upgrade(session, upgrade.upgrade_id)

    def _wipe_upgrades(self, session: GameSession) -> None:
        earned = session.earned_upgrades
        garrisons_removed = 0
        removed = []
        for _ in range(math.floor(len(earned) / 2)):
            removed_id = earned.pop(int(self._rng.random() * len(earned)))
            removed.append(removed_id)
            if removed_id == GARRISON_UPGRADE_ID:
                garrisons_removed += 1
        # Only the record is wiped; applied stat changes stay, except garrisons.
        if garrisons_removed:
            session.stats.garrison_count = max(0, session.stats.garrison_count - garrisons_removed)
            session.combat.sync_garrisons(session)
        session.events.emit("upgrades_wiped", removed=removed)

    def _unleash(self, session: GameSession, box: str, curse: str) -> None:
        logger.info("Catastrophe from %s: %s", box, curse)
        session.events.emit("catastrophe", box=box, curse=curse)

    def _reveal(self, session: GameSession, box: str, reward_id: str, rarity: str, is_action_card: bool = False) -> None:
        session.events.emit(
            "box_opened",
            box=box,
            reward_id=reward_id,
            rarity=rarity,
            is_action_card=is_action_card,
        )
