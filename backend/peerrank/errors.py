"""Error taxonomy for game operations.

Services raise these; a single Flask error handler renders them as
``{"error": <message>, "type": <kind>}`` with the class's status code.
"""

from typing import Optional

from flask import current_app, jsonify


class GameError(Exception):
    status_code = 400
    kind = 'game_error'
    default_message = 'Request could not be processed'

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {'error': self.message, 'type': self.kind}


class Unauthorized(GameError):
    status_code = 401
    kind = 'unauthorized'
    default_message = 'Unauthorized'


class Forbidden(GameError):
    status_code = 403
    kind = 'forbidden'
    default_message = 'You are not allowed to do that'


class NotFound(GameError):
    status_code = 404
    kind = 'not_found'
    default_message = 'Not found'


class InvalidState(GameError):
    status_code = 409
    kind = 'invalid_state'
    default_message = 'Operation is not valid for the current game status'


class PreconditionFailed(GameError):
    status_code = 412
    kind = 'precondition_failed'
    default_message = 'Precondition failed'


class Conflict(GameError):
    status_code = 409
    kind = 'conflict'
    default_message = 'Conflict'


class ValidationError(GameError):
    status_code = 400
    kind = 'validation_error'
    default_message = 'Invalid request'


class AlreadyVoted(ValidationError):
    kind = 'already_voted'
    default_message = 'You have already voted'


class TooManyVotes(ValidationError):
    kind = 'too_many_votes'


class DuplicateVote(ValidationError):
    kind = 'duplicate_vote'
    default_message = 'You cannot vote for the same participant multiple times'


class SelfVote(ValidationError):
    kind = 'self_vote'
    default_message = 'You cannot vote for yourself'


class InvalidTarget(ValidationError):
    kind = 'invalid_target'
    default_message = 'You can only vote for participants in this game'


def register_error_handlers(flask_app) -> None:
    @flask_app.errorhandler(GameError)
    def handle_game_error(exc: GameError):
        current_app.logger.warning(f"[rejected] type={exc.kind} status={exc.status_code} message={exc.message}")
        return jsonify(exc.to_dict()), exc.status_code
