"""
Card value and game constants for Close Rummy.

This module is the single source of truth for card point values and the
room/round limits the game engine enforces. Values come from config.py,
which reads environment variables (see .env.example).

Scoring:
    - Ace: 1 point
    - 2-10: Face value
    - Jack, Queen, King: 10 points
    - Joker: 0 points

Special ranks:
    - 7: the next player must draw 2 cards per 7 dropped
    - J: one player is skipped per Jack dropped
"""

from config import config


# =============================================================================
# Card Values - Single Source of Truth
# =============================================================================

DEFAULT_CARD_VALUES: dict[str, int] = config.card_values.to_dict()

RANK_ORDER: tuple[str, ...] = (
    "A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K",
)

JOKERS_PER_DECK = 2
FULL_DECK_SIZE = 4 * len(RANK_ORDER) + JOKERS_PER_DECK

DRAW_RANK = "7"
DRAW_PENALTY_PER_CARD = 2
SKIP_RANK = "J"


# =============================================================================
# Game Constants
# =============================================================================

MAX_PLAYERS = config.MAX_PLAYERS_PER_ROOM
MIN_PLAYERS = config.MIN_PLAYERS
START_CARDS = config.START_CARDS
ROOM_CODE_LENGTH = config.ROOM_CODE_LENGTH
MAX_NAME_LENGTH = config.MAX_NAME_LENGTH
RECONNECT_GRACE_SECONDS = config.RECONNECT_GRACE_SECONDS
ROOM_LOG_LIMIT = config.ROOM_LOG_LIMIT
SNAPSHOT_LOG_TAIL = config.SNAPSHOT_LOG_TAIL

# No I/O/0/1 so codes can be read aloud and typed without confusion
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

