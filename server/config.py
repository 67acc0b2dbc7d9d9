"""
Centralized configuration for the Pears card game server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.game.win_score)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from constants import (
    DEFAULT_HAND_SIZE,
    DEFAULT_MAX_NAME_LENGTH,
    DEFAULT_MIN_PLAYERS,
    DEFAULT_ROOM_CODE_ALPHABET,
    DEFAULT_ROOM_CODE_LENGTH,
    DEFAULT_WIN_SCORE,
)

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class GameSettings:
    """Engine tunables. None of these are fixed by the protocol."""
    win_score: int = DEFAULT_WIN_SCORE
    hand_size: int = DEFAULT_HAND_SIZE
    min_players: int = DEFAULT_MIN_PLAYERS
    room_code_alphabet: str = DEFAULT_ROOM_CODE_ALPHABET
    room_code_length: int = DEFAULT_ROOM_CODE_LENGTH
    max_name_length: int = DEFAULT_MAX_NAME_LENGTH


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Comma-separated in the environment; "*" allows any origin
    CORS_ORIGINS: list[str] = field(default_factory=lambda: ["*"])

    # Error tracking (disabled when empty)
    SENTRY_DSN: str = ""

    # Directory holding red_cards.json and green_cards.json
    CARD_DATA_DIR: str = str(Path(__file__).parent / "data")

    game: GameSettings = field(default_factory=GameSettings)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        origins_str = get_env("CORS_ORIGINS", "*")
        origins = [o.strip() for o in origins_str.split(",") if o.strip()]

        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 3000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            CORS_ORIGINS=origins or ["*"],
            SENTRY_DSN=get_env("SENTRY_DSN", ""),
            CARD_DATA_DIR=get_env("CARD_DATA_DIR", str(Path(__file__).parent / "data")),
            game=GameSettings(
                win_score=max(1, get_env_int("WIN_SCORE", DEFAULT_WIN_SCORE)),
                hand_size=max(1, get_env_int("HAND_SIZE", DEFAULT_HAND_SIZE)),
                min_players=max(2, get_env_int("MIN_PLAYERS", DEFAULT_MIN_PLAYERS)),
                room_code_alphabet=get_env("ROOM_CODE_ALPHABET", DEFAULT_ROOM_CODE_ALPHABET) or DEFAULT_ROOM_CODE_ALPHABET,
                room_code_length=max(3, get_env_int("ROOM_CODE_LENGTH", DEFAULT_ROOM_CODE_LENGTH)),
                max_name_length=max(1, get_env_int("MAX_NAME_LENGTH", DEFAULT_MAX_NAME_LENGTH)),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
