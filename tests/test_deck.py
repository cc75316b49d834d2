import pytest

from kingdom.systems.deck import ActionDeck, CardSource


def _full_deck() -> ActionDeck:
    deck = ActionDeck(capacity=6)
    for i in range(6):
        assert deck.add(f"card_{i}", CardSource.REWARD)
    return deck


def test_seventh_card_waits_for_decision() -> None:
    deck = _full_deck()

    assert not deck.add("new_card", CardSource.MYSTERY_BOX)
    assert len(deck.cards) == 6
    assert deck.pending.card_id == "new_card"
    assert deck.pending.source is CardSource.MYSTERY_BOX

    with pytest.raises(ValueError):
        deck.add("another", CardSource.REWARD)


def test_swap_replaces_chosen_slot() -> None:
    deck = _full_deck()
    deck.add("new_card", CardSource.REWARD)

    replaced, pending = deck.swap(2)

    assert replaced == "card_2"
    assert pending.card_id == "new_card"
    assert deck.cards[2] == "new_card"
    assert len(deck.cards) == 6
    assert not deck.has_pending


def test_discard_keeps_deck_unchanged() -> None:
    deck = _full_deck()
    deck.add("new_card", CardSource.REWARD)

    deck.discard_pending()

    assert deck.cards == [f"card_{i}" for i in range(6)]
    assert deck.pending is None


def test_swap_out_of_range_keeps_pending() -> None:
    deck = _full_deck()
    deck.add("new_card", CardSource.REWARD)

    with pytest.raises(ValueError):
        deck.swap(6)
    assert deck.has_pending


def test_take_and_capacity_checks() -> None:
    deck = _full_deck()
    assert deck.take(0) == "card_0"
    assert not deck.is_full

    with pytest.raises(ValueError):
        deck.take(9)
    with pytest.raises(ValueError):
        ActionDeck(capacity=0)


def test_session_swap_commands_need_a_pending_card(make_session) -> None:
    session = make_session()

    assert not session.resolve_card_swap(None)
    assert not session.cancel_card_swap()
    assert session.events.names()[-1] == "command_rejected"
