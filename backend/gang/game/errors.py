"""Error taxonomy shared by the game domain and the socket layer.

Every error carries a stable ``code`` (the class name by default) that is
sent back to clients inside a failure acknowledgement.
"""


class GameError(Exception):
    code = 'GameError'

    def __init__(self, message: str = ''):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_ack(self) -> dict:
        return {'success': False, 'error': self.code, 'message': self.message}


class ValidationError(GameError):
    code = 'ValidationError'


class StateError(GameError):
    code = 'StateError'


class InvalidTurn(StateError):
    code = 'InvalidTurn'


class TokenUnavailable(StateError):
    code = 'TokenUnavailable'


class NoTokenHeld(StateError):
    code = 'NoTokenHeld'


class CannotAdvance(StateError):
    code = 'CannotAdvance'


class NotFoundError(GameError):
    code = 'NotFoundError'


class RoomNotFound(NotFoundError):
    code = 'RoomNotFound'


class CapacityError(GameError):
    code = 'CapacityError'


class PersistenceError(GameError):
    code = 'PersistenceError'
