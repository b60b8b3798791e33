from flask_socketio import join_room, leave_room, emit
from quizblast import socketio, get_game_service
from quizblast.services.games.state import GameSession
import logging

logger = logging.getLogger(__name__)

NAMESPACE = '/ws'


def room_for(game_code: str) -> str:
    return f"game:{game_code.upper()}"


def state_payload(event: str, session: GameSession, remaining_seconds=None) -> dict:
    payload = {
        'game_code': session.game_code,
        'event': event,
        'game': session.to_dict(),
    }
    if remaining_seconds is not None:
        payload['game']['remaining_seconds'] = remaining_seconds
    return payload


def broadcast_state(event: str, session: GameSession) -> None:
    """Store listener: fan every session change out to the game's room."""
    if session is None:
        return
    socketio.emit('state_update', state_payload(event, session), to=room_for(session.game_code), namespace=NAMESPACE)


def handle_connect(auth=None):
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(reason=None):
    pass


def handle_join_game(data):
    game_code = ((data or {}).get('game_code') or '').strip()
    is_host = bool((data or {}).get('is_host'))
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    room = room_for(game_code)
    join_room(room)
    emit('joined', {'room': room, 'is_host': is_host})
    # Late viewers get the current state right away instead of waiting for the next change
    service = get_game_service()
    session = service.store.get_session(game_code.upper())
    if session is not None:
        emit('state_update', state_payload('snapshot', session, service.remaining_seconds(session)))
    logger.debug(f"[ws-join] room={room} host={is_host} known={session is not None}")


def handle_leave_game(data):
    game_code = ((data or {}).get('game_code') or '').strip()
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    room = room_for(game_code)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_game', handle_join_game, namespace=namespace)
        socketio.on_event('leave_game', handle_leave_game, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
