"""
Error taxonomy for the Close Rummy server.

UserError subclasses are expected, recoverable rejections of a client
intent. They are reported back to the sender only and never mutate state.
InvariantViolation signals a bug in the engine and is allowed to propagate.
"""


class ErrorCode:
    """Machine-readable error codes sent to clients."""

    INVALID_NAME = "InvalidName"
    INVALID_PAYLOAD = "InvalidPayload"
    ROOM_NOT_FOUND = "RoomNotFound"
    ROOM_FULL = "RoomFull"
    ROUND_IN_PROGRESS = "RoundInProgress"
    NOT_HOST = "NotHost"
    INSUFFICIENT_PLAYERS = "InsufficientPlayers"
    NOT_IN_ROOM = "NotInRoom"
    NO_ROUND_IN_PROGRESS = "NoRoundInProgress"
    NOT_YOUR_TURN = "NotYourTurn"
    ALREADY_DRAWN = "AlreadyDrawn"
    MUST_DRAW_FIRST = "MustDrawFirst"
    MIXED_RANKS = "MixedRanks"
    INVALID_SELECTION = "InvalidSelection"
    SEAT_TAKEN = "SeatTaken"
    RESOURCE_EXHAUSTED = "ResourceExhausted"
    INVARIANT_VIOLATION = "InvariantViolation"


class GameError(Exception):
    """Base exception for game-related errors."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")

    def to_message(self) -> dict:
        """Build the error message sent to the originating client."""
        return {"type": "error", "code": self.code, "message": self.message}


class UserError(GameError):
    """A client intent that is not legal right now."""


class InvalidName(UserError):
    def __init__(self, message: str = "Name required"):
        super().__init__(ErrorCode.INVALID_NAME, message)


class InvalidPayload(UserError):
    def __init__(self, message: str = "Malformed request"):
        super().__init__(ErrorCode.INVALID_PAYLOAD, message)


class RoomNotFound(UserError):
    def __init__(self, room_code: str):
        super().__init__(ErrorCode.ROOM_NOT_FOUND, f"Room {room_code} not found")


class RoomFull(UserError):
    def __init__(self, message: str = "Room is full"):
        super().__init__(ErrorCode.ROOM_FULL, message)


class RoundInProgress(UserError):
    def __init__(self, message: str = "Round already in progress"):
        super().__init__(ErrorCode.ROUND_IN_PROGRESS, message)


class NotHost(UserError):
    def __init__(self, message: str = "Only the host can start the round"):
        super().__init__(ErrorCode.NOT_HOST, message)


class InsufficientPlayers(UserError):
    def __init__(self, minimum: int):
        super().__init__(ErrorCode.INSUFFICIENT_PLAYERS, f"At least {minimum} players needed")


class NotInRoom(UserError):
    def __init__(self, message: str = "You are not in this room"):
        super().__init__(ErrorCode.NOT_IN_ROOM, message)


class NoRoundInProgress(UserError):
    def __init__(self, message: str = "No round in progress"):
        super().__init__(ErrorCode.NO_ROUND_IN_PROGRESS, message)


class NotYourTurn(UserError):
    def __init__(self, message: str = "It is not your turn"):
        super().__init__(ErrorCode.NOT_YOUR_TURN, message)


class AlreadyDrawn(UserError):
    def __init__(self, message: str = "You have already drawn this turn"):
        super().__init__(ErrorCode.ALREADY_DRAWN, message)


class MustDrawFirst(UserError):
    def __init__(self, message: str = "Draw first or match open card rank!"):
        super().__init__(ErrorCode.MUST_DRAW_FIRST, message)


class MixedRanks(UserError):
    def __init__(self, message: str = "Select cards of the same rank only!"):
        super().__init__(ErrorCode.MIXED_RANKS, message)


class InvalidSelection(UserError):
    def __init__(self, message: str = "Selected cards are not in your hand"):
        super().__init__(ErrorCode.INVALID_SELECTION, message)


class SeatTaken(UserError):
    def __init__(self, message: str = "That seat belongs to another player"):
        super().__init__(ErrorCode.SEAT_TAKEN, message)


class ResourceExhaustion(GameError):
    """Neither pile can supply a card. The deck absorbs this as 'no card'."""

    def __init__(self, message: str = "No cards left to draw"):
        super().__init__(ErrorCode.RESOURCE_EXHAUSTED, message)


class InvariantViolation(GameError):
    """Card conservation or identity broken. Always a server bug."""

    def __init__(self, message: str):
        super().__init__(ErrorCode.INVARIANT_VIOLATION, message)
