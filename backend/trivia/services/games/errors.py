"""Errors raised by the game services.

Each error carries a ``code`` that transports (HTTP routes, Socket.IO
handlers) forward to clients unchanged.
"""


class GameError(Exception):
    code = 'INTERNAL_ERROR'
    http_status = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'code': self.code, 'message': self.message}


class PreconditionFailed(GameError):
    """The game is not in a state that allows the requested action."""

    code = 'PRECONDITION_FAILED'
    http_status = 400


class Forbidden(GameError):
    code = 'FORBIDDEN'
    http_status = 403


class NotFound(GameError):
    code = 'NOT_FOUND'
    http_status = 404


class InvalidPayload(GameError):
    code = 'VALIDATION_ERROR'
    http_status = 400


class PasscodeUnavailable(GameError):
    code = 'CONFLICT'
    http_status = 409
