"""End-of-wave reward offers, upgrade and curse selection, card grants."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import random
from typing import TYPE_CHECKING

from kingdom.config import ActionCard, DebuffDefinition, GameContent, Upgrade
from kingdom.systems.deck import CardSource, PendingCard
from kingdom.systems.effects import apply_upgrade
from kingdom.systems.rarity import choose, pick_rarity, pick_with_fallback

if TYPE_CHECKING:
    from kingdom.game import GameSession


logger = logging.getLogger(__name__)


class OfferKind(str, Enum):
    UPGRADES = "upgrades"
    DEBUFFS = "debuffs"


class SelectionOutcome(str, Enum):
    REJECTED = "rejected"
    ADVANCE = "advance"
    AWAITING_SWAP = "awaiting_swap"


@dataclass
class RewardOption:
    option_id: str
    name: str
    rarity: str
    is_action_card: bool = False


@dataclass
class RewardOffer:
    kind: OfferKind
    wave: int
    options: list[RewardOption] = field(default_factory=list)

    def find(self, option_id: str, is_action_card: bool = False) -> RewardOption | None:
        for option in self.options:
            if option.option_id == option_id and option.is_action_card == is_action_card:
                return option
        return None


class ProgressionController:
    """Builds the reward offer shown between waves and applies the player's pick."""

    def __init__(self, content: GameContent, rng: random.Random) -> None:
        self._content = content
        self._rng = rng
        self.offer: RewardOffer | None = None

    def is_golden_box_wave(self, wave: int) -> bool:
        return wave % self._content.wave_rules.boss_wave_every == 0

    def open_offer(self, wave: int, earned: list[str]) -> RewardOffer:
        rewards = self._content.rewards
        cursed = (
            not self.is_golden_box_wave(wave)
            and wave > rewards.debuff_safe_waves
            and self._rng.random() < rewards.debuff_offer_chance
        )
        if cursed:
            self.offer = RewardOffer(kind=OfferKind.DEBUFFS, wave=wave, options=self.debuff_options())
        else:
            self.offer = RewardOffer(kind=OfferKind.UPGRADES, wave=wave, options=self.upgrade_options(wave, earned))
        logger.debug("Wave %s offer (%s): %s", wave, self.offer.kind.value, [o.option_id for o in self.offer.options])
        return self.offer

    def upgrade_options(self, wave: int, earned: list[str]) -> list[RewardOption]:
        """Roll the reward slots.

        Each slot is an action card with a fixed chance, otherwise (or when no
        card is left to offer) an upgrade at the rolled rarity. Empty rarities
        widen to their neighbours; leftover slots are filled with repeatables.
        """
        rewards = self._content.rewards
        order = rewards.rarity_order
        options: list[RewardOption] = []

        def offered(item_id: str) -> bool:
            return any(o.option_id == item_id for o in options)

        def cards_of(rarity: str) -> list[ActionCard]:
            return [
                c for c in self._content.action_cards.values()
                if c.rarity == rarity and not offered(c.card_id)
            ]

        def upgrades_of(rarity: str) -> list[Upgrade]:
            return [
                u for u in self._content.upgrades.values()
                if u.rarity == rarity
                and (u.repeatable or u.upgrade_id not in earned)
                and not offered(u.upgrade_id)
            ]

        for _ in range(rewards.offer_size):
            wants_card = self._rng.random() < rewards.action_card_chance
            target = pick_rarity(wave, self._rng, rewards)
            if wants_card:
                card = pick_with_fallback(target, order, cards_of, self._rng)
                if card is not None:
                    options.append(RewardOption(card.card_id, card.name, card.rarity, is_action_card=True))
                    continue
            upgrade = pick_with_fallback(target, order, upgrades_of, self._rng)
            if upgrade is not None:
                options.append(RewardOption(upgrade.upgrade_id, upgrade.name, upgrade.rarity))

        while len(options) < rewards.offer_size:
            repeatables = [
                u for u in self._content.upgrades.values()
                if u.repeatable and not offered(u.upgrade_id)
            ]
            if not repeatables:
                break
            upgrade = choose(repeatables, self._rng)
            options.append(RewardOption(upgrade.upgrade_id, upgrade.name, upgrade.rarity))
        return options

    def debuff_options(self) -> list[RewardOption]:
        pool = list(self._content.debuffs.values())
        picked: list[DebuffDefinition] = []
        # Drawn without replacement: one draw per slot.
        for _ in range(min(self._content.rewards.offer_size, len(pool))):
            picked.append(pool.pop(int(self._rng.random() * len(pool))))
        return [RewardOption(d.debuff_id, d.name, d.severity) for d in picked]

    def close(self) -> None:
        self.offer = None

    # Selection

    def select(self, session: GameSession, option_id: str, is_action_card: bool = False) -> SelectionOutcome:
        offer = self.offer
        if offer is None or offer.kind is not OfferKind.UPGRADES:
            return SelectionOutcome.REJECTED
        if offer.find(option_id, is_action_card) is None:
            return SelectionOutcome.REJECTED

        if is_action_card:
            if not self.grant_card(session, option_id, CardSource.REWARD):
                # The offer stays open so the player can back out and pick again.
                return SelectionOutcome.AWAITING_SWAP
        else:
            self.earn_upgrade(session, option_id)
        self.close()
        return SelectionOutcome.ADVANCE

    def select_debuff(self, session: GameSession, debuff_id: str) -> SelectionOutcome:
        offer = self.offer
        if offer is None or offer.kind is not OfferKind.DEBUFFS or offer.find(debuff_id) is None:
            return SelectionOutcome.REJECTED
        definition = self._content.debuffs.get(debuff_id)
        if definition is not None:
            self.inflict(session, definition)
        self.close()
        return SelectionOutcome.ADVANCE

    # Grants shared with the shop

    def earn_upgrade(self, session: GameSession, upgrade_id: str) -> bool:
        upgrade = self._content.upgrades.get(upgrade_id)
        if upgrade is None:
            logger.debug("Unknown upgrade id %s ignored", upgrade_id)
            return False
        apply_upgrade(upgrade, session.stats)
        session.earned_upgrades.append(upgrade_id)
        if any(effect.stat == "garrison_count" for effect in upgrade.effects):
            session.combat.sync_garrisons(session)
        session.events.emit(
            "upgrade_earned",
            upgrade_id=upgrade_id,
            rarity=upgrade.rarity,
            max_health=session.stats.max_health,
        )
        return True

    def grant_card(self, session: GameSession, card_id: str, source: CardSource) -> bool:
        """Put a card in the deck; False means it waits on a swap-or-discard decision."""
        if card_id not in self._content.action_cards:
            logger.debug("Unknown action card id %s ignored", card_id)
            return True
        added = session.deck.add(card_id, source)
        if added:
            session.events.emit("card_added", card_id=card_id, source=source.value)
        else:
            session.events.emit("deck_full", card_id=card_id, source=source.value)
        return added

    def resolve_swap(self, session: GameSession, index: int | None) -> PendingCard:
        """Swap the pending card into slot ``index``, or discard it when ``index`` is None."""
        if index is None:
            pending = session.deck.discard_pending()
            session.events.emit("card_discarded", card_id=pending.card_id)
            return pending
        replaced, pending = session.deck.swap(index)
        session.events.emit("card_swapped", card_id=pending.card_id, replaced_id=replaced, index=index)
        return pending

    def inflict(self, session: GameSession, definition: DebuffDefinition) -> None:
        active = session.debuffs.apply(definition, session.stats, session.castle, session.economy)
        session.events.emit(
            "debuff_applied",
            debuff_id=definition.debuff_id,
            severity=definition.severity,
            remaining_waves=active.remaining_waves if active is not None else 0,
            health=session.castle.health,
            gold=session.economy.gold,
        )
