from flask_socketio import join_room, leave_room, emit
from flask_login import current_user

from starhub import socketio


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_user(data=None):
    # Balance pushes are private; only the logged-in owner may subscribe
    if not current_user.is_authenticated:
        emit('error', {'message': 'Not authenticated'})
        return
    room = user_room(current_user.id)
    join_room(room)
    emit('joined', {'room': room, 'credits': current_user.credits})


def handle_leave_user(data=None):
    if not current_user.is_authenticated:
        emit('error', {'message': 'Not authenticated'})
        return
    room = user_room(current_user.id)
    leave_room(room)
    emit('left', {'room': room})


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace='/ws')
    socketio.on_event('join_user', handle_join_user, namespace='/ws')
    socketio.on_event('leave_user', handle_leave_user, namespace='/ws')
    socketio.on_event('ping', handle_ping, namespace='/ws')
