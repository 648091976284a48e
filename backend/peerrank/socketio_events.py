from flask_socketio import join_room, leave_room, emit
from peerrank import socketio

# Clients still poll GET /api/games/<id>; these rooms only carry a
# `state_update` hint telling them to re-fetch early.


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def _room_for(data):
    game_code = (data or {}).get('game_code')
    if not isinstance(game_code, str) or not game_code.strip():
        emit('error', {'message': 'game_code is required'})
        return None
    return f"game:{game_code.strip().upper()}"


def handle_join_game(data):
    room = _room_for(data)
    if room is None:
        return
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_game(data):
    room = _room_for(data)
    if room is None:
        return
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'join_game': handle_join_game,
        'leave_game': handle_leave_game,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
