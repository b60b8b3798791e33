"""Errors raised by the game services.

Every error carries the HTTP status the API layer answers with, so routes
and socket handlers never have to map exception types themselves.
"""


class GameError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'error': self.message}


class ValidationError(GameError):
    """Bad input from the originating user; nothing was changed."""
    status_code = 400


class PermissionDenied(GameError):
    status_code = 403


class StaleStateError(GameError):
    """The caller acted on a view of the session that is no longer current."""
    status_code = 409


class SessionNotFound(StaleStateError):
    status_code = 404


class CollaboratorError(GameError):
    """A backing service (database, broadcast) failed; the operation was not applied."""
    status_code = 503


class DuplicateSubmission(Exception):
    """Raised by stores when a (player, question) submission already exists."""

    def __init__(self, existing):
        super().__init__(f'player {existing.player_id} already answered question {existing.question_index}')
        self.existing = existing
