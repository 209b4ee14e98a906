"""Match setup options and server settings."""

import enum
import os
from dataclasses import dataclass

# Server bind address. Can be overridden using the CARROM_HOST / CARROM_PORT
# environment variables.
HOST = os.environ.get("CARROM_HOST", "0.0.0.0")
PORT = int(os.environ.get("CARROM_PORT", "8000"))


class ConfigError(ValueError):
    """Raised when the setup screen hands over options we cannot play."""


class GameMode(str, enum.Enum):
    HUMAN_VS_HUMAN = "human-vs-human"
    HUMAN_VS_COMPUTER = "human-vs-computer"


class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


_MODE_ALIASES = {
    "pvp": GameMode.HUMAN_VS_HUMAN,
    "pve": GameMode.HUMAN_VS_COMPUTER,
    "human-vs-human": GameMode.HUMAN_VS_HUMAN,
    "human-vs-computer": GameMode.HUMAN_VS_COMPUTER,
}


@dataclass(frozen=True)
class MatchConfig:
    mode: GameMode = GameMode.HUMAN_VS_HUMAN
    difficulty: Difficulty = Difficulty.MEDIUM
    player_count: int = 2

    def __post_init__(self):
        if self.player_count not in (2, 4):
            raise ConfigError(f"player_count must be 2 or 4, got {self.player_count!r}")

    @classmethod
    def from_dict(cls, data: dict) -> "MatchConfig":
        """Build from the setup screen payload.

        Accepts ``mode`` (``pvp``/``pve`` or the long names), ``difficulty``
        (any case) and ``playerCount`` or ``player_count``. Missing keys fall
        back to the defaults.
        """
        raw_mode = str(data.get("mode", GameMode.HUMAN_VS_HUMAN.value)).lower().strip()
        if raw_mode not in _MODE_ALIASES:
            raise ConfigError(f"unknown mode: {raw_mode!r}")

        raw_diff = str(data.get("difficulty", Difficulty.MEDIUM.value)).lower().strip()
        try:
            difficulty = Difficulty(raw_diff)
        except ValueError as exc:
            raise ConfigError(f"unknown difficulty: {raw_diff!r}") from exc

        raw_count = data.get("playerCount", data.get("player_count", 2))
        try:
            player_count = int(raw_count)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"playerCount must be an integer, got {raw_count!r}") from exc

        return cls(mode=_MODE_ALIASES[raw_mode], difficulty=difficulty,
                   player_count=player_count)

    def is_computer(self, slot: int) -> bool:
        """Slot 0 is always human; in vs-computer mode every other slot is not."""
        return self.mode == GameMode.HUMAN_VS_COMPUTER and slot != 0
