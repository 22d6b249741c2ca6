"""
Centralized configuration for the Close Rummy game server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.START_CARDS)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

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


def get_env_list(key: str, default: list[str]) -> list[str]:
    """Get comma-separated list environment variable."""
    raw = os.environ.get(key)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class CardValues:
    """Card point values used when totalling a hand."""
    ACE: int = 1
    JACK: int = 10
    QUEEN: int = 10
    KING: int = 10
    JOKER: int = 0

    def to_dict(self) -> dict[str, int]:
        """Get card values keyed by rank string; 2-10 score face value."""
        values = {"A": self.ACE}
        for pip in range(2, 11):
            values[str(pip)] = pip
        values.update({
            "J": self.JACK,
            "Q": self.QUEEN,
            "K": self.KING,
            "JOKER": self.JOKER,
        })
        return values


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: list[str] = field(default_factory=lambda: ["*"])

    # Room settings
    MAX_PLAYERS_PER_ROOM: int = 7
    MIN_PLAYERS: int = 2
    ROOM_CODE_LENGTH: int = 4
    MAX_NAME_LENGTH: int = 15
    RECONNECT_GRACE_SECONDS: int = 60

    # Round settings
    START_CARDS: int = 7
    ROOM_LOG_LIMIT: int = 50
    SNAPSHOT_LOG_TAIL: int = 20

    card_values: CardValues = field(default_factory=CardValues)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 3000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            CORS_ORIGINS=get_env_list("CORS_ORIGINS", ["*"]),
            MAX_PLAYERS_PER_ROOM=get_env_int("MAX_PLAYERS_PER_ROOM", 7),
            MIN_PLAYERS=get_env_int("MIN_PLAYERS", 2),
            ROOM_CODE_LENGTH=get_env_int("ROOM_CODE_LENGTH", 4),
            MAX_NAME_LENGTH=get_env_int("MAX_NAME_LENGTH", 15),
            RECONNECT_GRACE_SECONDS=get_env_int("RECONNECT_GRACE_SECONDS", 60),
            START_CARDS=get_env_int("START_CARDS", 7),
            ROOM_LOG_LIMIT=get_env_int("ROOM_LOG_LIMIT", 50),
            SNAPSHOT_LOG_TAIL=get_env_int("SNAPSHOT_LOG_TAIL", 20),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()

