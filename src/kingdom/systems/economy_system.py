"""Gold ledger."""

from dataclasses import dataclass


@dataclass
class EconomySystem:
    gold: int
    total_earned: int = 0
    infinite: bool = False

    def can_afford(self, amount: int) -> bool:
        return self.infinite or self.gold >= amount

    def spend(self, amount: int) -> bool:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        if self.infinite:
            return True
        if self.gold < amount:
            return False
        self.gold -= amount
        return True

    def reward(self, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        self.gold += amount
        self.total_earned += amount

    def keep_fraction(self, fraction: float) -> int:
        """Shrink gold to ``fraction`` of its value; returns the amount lost."""
        if not 0 <= fraction <= 1:
            raise ValueError("fraction must be within 0-1")
        kept = int(self.gold * fraction)
        lost = self.gold - kept
        self.gold = kept
        return lost
