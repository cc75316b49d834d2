"""Action card deck with a hard capacity and swap-or-discard gate."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class CardSource(str, Enum):
    REWARD = "reward"
    MYSTERY_BOX = "mystery_box"
    GOLDEN_BOX = "golden_box"


@dataclass
class PendingCard:
    card_id: str
    source: CardSource


@dataclass
class ActionDeck:
    capacity: int
    cards: list[str] = field(default_factory=list)
    pending: PendingCard | None = None

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be at least 1")

    @property
    def is_full(self) -> bool:
        return len(self.cards) >= self.capacity

    @property
    def has_pending(self) -> bool:
        return self.pending is not None

    def add(self, card_id: str, source: CardSource) -> bool:
        """Add a card; False means it is parked until a swap decision is made."""
        if self.pending is not None:
            raise ValueError("A card is already waiting for a swap decision")
        if self.is_full:
            self.pending = PendingCard(card_id=card_id, source=source)
            return False
        self.cards.append(card_id)
        return True

    def swap(self, index: int) -> tuple[str, PendingCard]:
        """Replace the card at ``index`` with the pending one; returns the replaced id."""
        if self.pending is None:
            raise ValueError("No card is waiting for a swap decision")
        if not 0 <= index < len(self.cards):
            raise ValueError(f"Deck index out of range: {index}")
        pending = self.pending
        replaced = self.cards[index]
        self.cards[index] = pending.card_id
        self.pending = None
        return replaced, pending

    def discard_pending(self) -> PendingCard:
        if self.pending is None:
            raise ValueError("No card is waiting for a swap decision")
        pending = self.pending
        self.pending = None
        return pending

    def take(self, index: int) -> str:
        if not 0 <= index < len(self.cards):
            raise ValueError(f"Deck index out of range: {index}")
        return self.cards.pop(index)
