"""
Error taxonomy for the room session engine.

Every rejected command raises one of these before touching any state.
The handler layer catches GameError once and reports it to the issuing
connection only; nothing here is fatal to the connection or the room.
"""


class GameError(Exception):
    """Base class for recoverable, client-reportable engine errors."""

    code = "GAME_ERROR"
    default_message = "Request could not be completed."

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"type": "error", "code": self.code, "message": self.message}


class RoomNotFound(GameError):
    code = "ROOM_NOT_FOUND"
    default_message = "Room not found."


class GameAlreadyStarted(GameError):
    code = "GAME_ALREADY_STARTED"
    default_message = "Game already started. New joins are limited to the lobby."


class NotAuthorized(GameError):
    code = "NOT_AUTHORIZED"
    default_message = "You are not allowed to do that."


class NotJoined(NotAuthorized):
    code = "NOT_JOINED"
    default_message = "You are not joined to this room."


class WrongPhase(GameError):
    code = "WRONG_PHASE"
    default_message = "That action is not available right now."


class DuplicateSubmission(GameError):
    code = "DUPLICATE_SUBMISSION"
    default_message = "You already submitted this round."


class CardNotInHand(GameError):
    code = "CARD_NOT_IN_HAND"
    default_message = "Card must be in your hand."


class InvalidWinner(GameError):
    code = "INVALID_WINNER"
    default_message = "Winner must be one of the submitted cards."


class InsufficientPlayers(GameError):
    code = "INSUFFICIENT_PLAYERS"
    default_message = "Not enough connected players."


class NoCardsRemain(GameError):
    code = "NO_CARDS_REMAIN"
    default_message = "No cards remain to play with."
