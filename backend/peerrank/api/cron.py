import hmac

from flask import Blueprint, current_app, jsonify, request

from peerrank.errors import Unauthorized
from peerrank.services.games.lifecycle import sweep_expired_games


cron = Blueprint('cron', __name__)


def _check_cron_secret() -> None:
    secret = current_app.config.get('CRON_SECRET')
    if not secret:
        return
    supplied = request.headers.get('Authorization', '')
    if not hmac.compare_digest(supplied, f'Bearer {secret}'):
        raise Unauthorized('Invalid cron credentials')


@cron.route('/complete-games', methods=['GET', 'POST'])
def complete_expired_games():
    """Complete ACTIVE games past their end time. Meant to be hit about once a minute."""
    _check_cron_secret()
    completed = sweep_expired_games()
    if not completed:
        return jsonify({'message': 'No expired games found', 'games': []})
    return jsonify({
        'message': f'Completed {len(completed)} expired games',
        'games': [g.to_dict(include_participants=False) for g in completed],
    })
