from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from peerrank.errors import ValidationError
from peerrank.services.games import lifecycle


games = Blueprint('games', __name__)


def _json_body(required=False) -> dict:
    data = request.get_json(silent=True)
    if data is None:
        if required:
            raise ValidationError('A JSON body is required')
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


@games.route('', methods=['GET'])
@login_required
def list_games():
    return jsonify([g.to_dict() for g in lifecycle.list_games(current_user.id)])


@games.route('', methods=['POST'])
@login_required
def create_game():
    """Create a game lobby and add the caller as host and first participant."""
    data = _json_body(required=True)
    game = lifecycle.create_game(current_user.id, data.get('title'), data.get('time_limit'))
    return jsonify(game.to_dict()), 201


@games.route('/join', methods=['POST'])
@login_required
def join_game():
    data = _json_body(required=True)
    participant = lifecycle.join_game(current_user.id, data.get('code'))
    return jsonify(participant.to_dict()), 201


@games.route('/<int:game_id>', methods=['GET'])
@login_required
def get_game(game_id):
    return jsonify(lifecycle.get_game(game_id, current_user.id).to_dict())


@games.route('/<int:game_id>/start', methods=['POST'])
@login_required
def start_game(game_id):
    data = _json_body()
    game = lifecycle.start_game(game_id, current_user.id, data.get('time_limit'))
    return jsonify(game.to_dict())


@games.route('/<int:game_id>/vote', methods=['POST'])
@login_required
def cast_vote(game_id):
    data = _json_body(required=True)
    game = lifecycle.cast_vote(game_id, current_user.id, data.get('targets'))
    return jsonify(game.to_dict())


@games.route('/<int:game_id>/vote/skip', methods=['POST'])
@login_required
def skip_vote(game_id):
    game = lifecycle.skip_vote(game_id, current_user.id)
    return jsonify(game.to_dict())


@games.route('/<int:game_id>/complete', methods=['POST'])
@login_required
def complete_game(game_id):
    game = lifecycle.complete_game(game_id, current_user.id)
    return jsonify(game.to_dict())


@games.route('/<int:game_id>/cancel', methods=['POST'])
@login_required
def cancel_game(game_id):
    game = lifecycle.cancel_game(game_id, current_user.id)
    return jsonify(game.to_dict())
