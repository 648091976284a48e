from conftest import as_user


def test_socket_connect_and_join(sio_client):
    # Ensure we are connected to /ws
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')

    sio_client.get_received('/ws')

    # Join a room and expect a joined ack
    sio_client.emit('join_game', {'game_code': 'abc123'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    joined = [pkt for pkt in received if pkt['name'] == 'joined']
    assert joined and joined[0]['args'][0] == {'room': 'game:ABC123'}


def test_join_without_code_is_an_error(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_game', {}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'error' for pkt in received)


def test_ping_pong(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'pong' and pkt['args'][0] == {'n': 1} for pkt in received)


def test_state_update_pushed_to_game_room(sio_client, client, make_game):
    game, ids = make_game(members=['alice'])
    sio_client.emit('join_game', {'game_code': game['code']}, namespace='/ws')
    sio_client.get_received('/ws')  # flush

    res = client.post(f"/api/games/{game['id']}/start", json={}, headers=as_user('host'))
    assert res.status_code == 200

    events = [pkt for pkt in sio_client.get_received('/ws') if pkt['name'] == 'state_update']
    assert events
    assert events[-1]['args'][0] == {'game_code': game['code'], 'game_id': game['id'], 'status': 'ACTIVE'}


def test_leave_game_stops_updates(sio_client, client, make_game):
    game, _ = make_game(members=['alice'])
    sio_client.emit('join_game', {'game_code': game['code']}, namespace='/ws')
    sio_client.emit('leave_game', {'game_code': game['code']}, namespace='/ws')
    sio_client.get_received('/ws')

    client.post(f"/api/games/{game['id']}/cancel", headers=as_user('host'))
    assert not [pkt for pkt in sio_client.get_received('/ws') if pkt['name'] == 'state_update']
