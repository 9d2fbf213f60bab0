from flask_socketio import join_room, leave_room, emit
from flask import current_app
from hardword import socketio
from hardword.services.realtime import NAMESPACE, room_for


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(*args):
    # Rooms are dropped by the server; nothing is tracked per socket
    pass


def _event_id(data):
    event_id = (data or {}).get('event_id')
    if event_id is None or str(event_id).strip() == '':
        emit('error', {'message': 'event_id is required'})
        return None
    return str(event_id).strip()


def handle_join_event(data):
    event_id = _event_id(data)
    if event_id is None:
        return
    room = room_for(event_id)
    join_room(room)
    current_app.logger.debug(f"[room-join] room={room}")
    emit('joined', {'room': room})


def handle_leave_event(data):
    event_id = _event_id(data)
    if event_id is None:
        return
    room = room_for(event_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register the room handlers on the '/ws' namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('join_event', handle_join_event, namespace=NAMESPACE)
    socketio.on_event('leave_event', handle_leave_event, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
