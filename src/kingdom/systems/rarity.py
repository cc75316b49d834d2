"""Wave-tiered rarity roulette and adjacent-rarity fallback."""

from __future__ import annotations

import random
from typing import Callable, Sequence, TypeVar

from kingdom.config import RarityTier, RewardConfig


T = TypeVar("T")


def rarity_weights(wave: int, tiers: list[RarityTier]) -> dict[str, int]:
    for tier in tiers:
        if tier.max_wave is None or wave <= tier.max_wave:
            return tier.weights
    return tiers[-1].weights


def pick_rarity(wave: int, rng: random.Random, rewards: RewardConfig) -> str:
    weights = rarity_weights(wave, rewards.rarity_tiers)
    total = sum(weights.values())
    roll = rng.random() * total
    for rarity in rewards.rarity_order:
        roll -= weights.get(rarity, 0)
        if roll <= 0:
            return rarity
    return rewards.rarity_order[0]


def adjacent_order(rarity: str, order: list[str]) -> list[str]:
    """Rarities to try after ``rarity``: one step down, one step up, then further out."""
    if rarity not in order:
        return list(order)
    idx = order.index(rarity)
    result: list[str] = []
    for offset in range(1, len(order)):
        if idx - offset >= 0:
            result.append(order[idx - offset])
        if idx + offset < len(order):
            result.append(order[idx + offset])
    return result


def pick_with_fallback(
    rarity: str,
    order: list[str],
    candidates: Callable[[str], Sequence[T]],
    rng: random.Random,
) -> T | None:
    """Pick uniformly from ``candidates(rarity)``, widening to adjacent rarities when empty."""
    for current in [rarity] + adjacent_order(rarity, order):
        pool = candidates(current)
        if pool:
            return choose(pool, rng)
    return None


def choose(pool: Sequence[T], rng: random.Random) -> T:
    return pool[int(rng.random() * len(pool))]
