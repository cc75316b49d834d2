import random

import pytest

from kingdom.config import GameContent, load_game_content
from kingdom.core.game_state import GameState
from kingdom.core.records import WaveRecord
from kingdom.entities.enemy import Enemy
from kingdom.game import DebugOverrides, GameSession


class ScriptedRandom(random.Random):
    """Returns queued values from ``random()`` first, then seeded draws."""

    def __init__(self, values=(), seed: int = 0) -> None:
        super().__init__(seed)
        self.script = list(values)

    def random(self) -> float:
        if self.script:
            return self.script.pop(0)
        return super().random()

    def queue(self, *values: float) -> None:
        self.script.extend(values)


@pytest.fixture(scope="session")
def content() -> GameContent:
    return load_game_content()


@pytest.fixture
def scripted() -> type[ScriptedRandom]:
    return ScriptedRandom


@pytest.fixture
def make_session(content):
    def _make(rng=None, difficulty: int = 5, debug: DebugOverrides | None = None, start: bool = True) -> GameSession:
        session = GameSession(
            content=content,
            difficulty=difficulty,
            rng=rng or ScriptedRandom(seed=7),
            debug=debug,
            record=WaveRecord(),
        )
        if start:
            session.start()
        return session

    return _make


@pytest.fixture
def place_enemy():
    def _place(session: GameSession, x: float, y: float, health: float = 100.0, **overrides) -> Enemy:
        fields = {
            "enemy_id": session.next_id("enemy"),
            "enemy_type": "orc",
            "x": x,
            "y": y,
            "max_health": health,
            "health": health,
            "damage": 5.0,
            "speed": 0.0,
            "value": 1,
        }
        fields.update(overrides)
        enemy = Enemy(**fields)
        session.enemies.append(enemy)
        return enemy

    return _place


@pytest.fixture
def reward_session(make_session):
    """A started session whose first wave is empty, already waiting on a reward pick."""

    def _make(rng=None, **debug_flags) -> GameSession:
        session = make_session(rng=rng, debug=DebugOverrides(no_enemies=True, **debug_flags))
        session.tick(session.content.simulation.timing.announce_delay)
        assert session.state == GameState.REWARD_SELECTION
        return session

    return _make
