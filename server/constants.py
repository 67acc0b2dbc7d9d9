"""
Game constants for the Pears card game.

These are the defaults the engine falls back to when no environment
override is present. See config.py for the environment variable names.

Standard Rules:
    - Each player holds 7 red (noun) cards
    - First player to 10 round wins takes the game
    - At least 2 connected players are needed to start
"""

# =============================================================================
# Rule Defaults
# =============================================================================

DEFAULT_WIN_SCORE: int = 10
DEFAULT_HAND_SIZE: int = 7
DEFAULT_MIN_PLAYERS: int = 2


# =============================================================================
# Room Codes
# =============================================================================

# No I, O, 0 or 1 so codes survive being read aloud
DEFAULT_ROOM_CODE_ALPHABET: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
DEFAULT_ROOM_CODE_LENGTH: int = 6


# =============================================================================
# Payload Sanitizing
# =============================================================================

DEFAULT_MAX_NAME_LENGTH: int = 24
FALLBACK_PLAYER_NAME: str = "Player"

# Upper bound on any id echoed back from a client (card, submission, player)
MAX_ID_LENGTH: int = 64


# =============================================================================
# Card Colors
# =============================================================================

RED = "red"
GREEN = "green"
CARD_ID_PREFIXES: dict[str, str] = {RED: "r", GREEN: "g"}
