from datetime import timedelta

from conftest import as_user
from peerrank import db
from peerrank.models import Game, utcnow


def _expire(game_id):
    game = Game.query.filter_by(id=game_id).first()
    game.end_time = utcnow() - timedelta(seconds=1)
    db.session.commit()


def test_cron_completes_expired_games_once(client, make_game):
    game, ids = make_game(members=['u1', 'u2'], start=True)
    client.post(f"/api/games/{game['id']}/vote", json={'targets': [ids['u2']]}, headers=as_user('u1'))
    _expire(game['id'])

    res = client.get('/api/cron/complete-games')
    assert res.status_code == 200
    body = res.get_json()
    assert body['message'] == 'Completed 1 expired games'
    assert [g['id'] for g in body['games']] == [game['id']]

    state = client.get(f"/api/games/{game['id']}", headers=as_user('host')).get_json()
    assert state['status'] == 'COMPLETED'
    ranks = {p['user_id']: p['rank'] for p in state['participants']}
    assert ranks == {'host': 'F', 'u1': 'F', 'u2': 'A'}

    # second sweep is a no-op
    res = client.get('/api/cron/complete-games')
    assert res.status_code == 200
    assert res.get_json() == {'message': 'No expired games found', 'games': []}
    again = client.get(f"/api/games/{game['id']}", headers=as_user('host')).get_json()
    assert again['end_time'] == state['end_time']
    assert {p['user_id']: p['rank'] for p in again['participants']} == ranks


def test_cron_leaves_running_games_alone(client, make_game):
    game, _ = make_game(members=['u1'], start=True)
    res = client.get('/api/cron/complete-games')
    assert res.get_json()['games'] == []
    state = client.get(f"/api/games/{game['id']}", headers=as_user('host')).get_json()
    assert state['status'] == 'ACTIVE'


def test_cron_secret(flask_app, client):
    flask_app.config['CRON_SECRET'] = 's3cret'
    assert client.get('/api/cron/complete-games').status_code == 401
    res = client.get('/api/cron/complete-games', headers={'Authorization': 'Bearer wrong'})
    assert res.status_code == 401
    res = client.get('/api/cron/complete-games', headers={'Authorization': 'Bearer s3cret'})
    assert res.status_code == 200


def test_cli_command_runs_sweep(flask_app, make_game):
    game, _ = make_game(members=['u1'], start=True)
    _expire(game['id'])
    result = flask_app.test_cli_runner().invoke(args=['complete-expired-games'])
    assert 'Completed 1 expired games' in result.output
    assert Game.query.filter_by(id=game['id']).first().status == 'COMPLETED'


def test_background_sweep_tick(flask_app, make_game):
    from peerrank.services.games.scheduler import run_sweep, start_expiry_sweeper

    game, _ = make_game(members=['u1'], start=True)
    _expire(game['id'])
    assert run_sweep(flask_app) == 1
    assert run_sweep(flask_app) == 0
    assert Game.query.filter_by(id=game['id']).first().status == 'COMPLETED'
    # never started under TESTING
    assert start_expiry_sweeper(flask_app) is False
