"""Session lifecycle states."""

from enum import Enum


class GameState(str, Enum):
    BOOT = "boot"
    PLAYING = "playing"
    REWARD_SELECTION = "reward_selection"
    GAME_OVER = "game_over"
    ENDED = "ended"
