"""CLI entry point: headless auto-play of one Kingdom session."""

from __future__ import annotations

import argparse
import logging
import random
from typing import Optional, Sequence

from kingdom.core.game_state import GameState
from kingdom.game import GameSession
from kingdom.systems.progression_system import OfferKind


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a headless Kingdom session with a simple autopilot.")
    parser.add_argument("--waves", type=int, default=10, help="Stop after this many waves.")
    parser.add_argument("--difficulty", type=int, default=5, help="Difficulty slider, 1-10.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible run.")
    parser.add_argument("--max-seconds", type=float, default=3600.0, help="Simulated time limit.")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, ...).")
    return parser.parse_args(argv)


def _auto_shop(session: GameSession) -> None:
    # Patch the walls first, then gamble spare gold on mystery boxes.
    for item_id in ("fullRepair", "mediumRepair", "smallRepair", "mysteryUpgrade"):
        for listing in session.shop_listing():
            if listing.item_id == item_id and listing.enabled:
                session.purchase_shop_item(item_id)
                break
        if session.deck.has_pending:
            session.resolve_card_swap(None)


def _auto_reward(session: GameSession) -> None:
    offer = session.progression.offer
    if offer is None:
        return
    if offer.kind is OfferKind.DEBUFFS:
        session.select_debuff(offer.options[0].option_id)
        return

    _auto_shop(session)
    option = offer.options[0]
    session.select_reward_option(option.option_id, option.is_action_card)
    if session.deck.has_pending:
        session.resolve_card_swap(None)


def _auto_cards(session: GameSession) -> None:
    if session.deck.cards and len(session.live_enemies()) >= 8:
        session.use_action_card(0)


def autopilot(session: GameSession, waves: int, max_seconds: float) -> None:
    """Play a started session until it ends, reaches ``waves`` or runs out of time."""
    dt = 1.0 / session.content.simulation.timing.tick_rate
    while session.is_active and session.scheduler.now < max_seconds:
        if session.state == GameState.REWARD_SELECTION:
            if session.wave >= waves:
                session.quit()
                break
            _auto_reward(session)
            continue
        _auto_cards(session)
        session.tick(dt)
        # Nobody renders a headless run, so the event log is discarded each tick.
        session.events.drain()


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")

    rng = random.Random(args.seed)
    session = GameSession(difficulty=args.difficulty, rng=rng)
    session.start()
    autopilot(session, args.waves, args.max_seconds)

    summary = session.snapshot()
    print("Kingdom Headless Run")
    print(f"state={summary['state']}")
    print(f"wave={summary['wave']}")
    print(f"kills={summary['kills']}")
    print(f"gold={summary['gold']}")
    print(f"total_gold={summary['total_gold']}")
    print(f"power={summary['power']}")
    print(f"upgrades={len(summary['earned_upgrades'])}")
    print(f"best_wave={session.record.best}")


if __name__ == "__main__":
    main()
