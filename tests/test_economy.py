import pytest

from kingdom.core.records import WaveRecord
from kingdom.systems.economy_system import EconomySystem


def test_economy_transactions() -> None:
    economy = EconomySystem(gold=1000)
    assert economy.can_afford(500)
    assert economy.spend(250)
    assert economy.gold == 750
    economy.reward(100)
    assert economy.gold == 850
    assert economy.total_earned == 100
    assert not economy.spend(5000)
    assert economy.gold == 850


def test_keep_fraction_truncates() -> None:
    economy = EconomySystem(gold=95)
    assert economy.keep_fraction(0.3) == 67
    assert economy.gold == 28

    with pytest.raises(ValueError):
        economy.keep_fraction(1.5)


def test_infinite_gold_never_drains() -> None:
    economy = EconomySystem(gold=0, infinite=True)
    assert economy.can_afford(10_000)
    assert economy.spend(10_000)
    assert economy.gold == 0


def test_negative_amounts_rejected() -> None:
    economy = EconomySystem(gold=10)
    with pytest.raises(ValueError):
        economy.spend(-1)
    with pytest.raises(ValueError):
        economy.reward(-1)


def test_wave_record_keeps_best() -> None:
    record = WaveRecord()
    assert record.submit(4)
    assert not record.submit(3)
    assert record.best == 4
