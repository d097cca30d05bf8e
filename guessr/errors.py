"""Errors raised by the game services.

Every error is scoped to the player who caused it: the dispatcher reports it
back to that player only and the room carries on.
"""


class GameError(Exception):
    message = 'Something went wrong'

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class RoomNotFound(GameError):
    message = 'Room not found'


class GameAlreadyStarted(GameError):
    message = 'The game has already started'


class NotHost(GameError):
    message = 'Only the host can do that'


class InsufficientPlayers(GameError):
    message = 'Not enough players to start'


class MalformedMessage(GameError):
    message = 'Malformed message'


class DuplicateSubmission(GameError):
    """A second guess or timeout for a round the player already answered.

    Never reported to the client.
    """
    message = 'Already answered this round'
