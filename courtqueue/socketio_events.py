from flask_socketio import join_room, leave_room, emit
from flask import current_app
from flask_login import current_user
from courtqueue import socketio, db
from courtqueue.models import Club
from courtqueue.services.queue.session import club_room, get_session, host_room, NAMESPACE


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def _club_code(data) -> str:
    code = data.get('club_id') if isinstance(data, dict) else None
    return code.strip().upper() if isinstance(code, str) else ''


def _club_from(data):
    code = _club_code(data)
    if not code:
        emit('error', {'message': 'club_id is required'})
        return None
    club = db.session.get(Club, code)
    if club is None:
        emit('error', {'message': 'Club not found'})
    return club


def handle_join_club(data):
    club = _club_from(data)
    if club is None:
        return
    room = club_room(club.id)
    join_room(room)
    is_host = bool(current_user.is_authenticated and current_user.id == club.host_owner_id)
    if is_host:
        join_room(host_room(club.id))
    name = data.get('name')
    if name:
        get_session(club.id).touch(name)
    emit('joined', {'room': room, 'is_host': is_host})
    emit('state_update', club.to_dict())


def handle_leave_club(data):
    code = _club_code(data)
    if not code:
        emit('error', {'message': 'club_id is required'})
        return
    room = club_room(code)
    leave_room(room)
    leave_room(host_room(code))
    emit('left', {'room': room})


def handle_heartbeat(data):
    # Liveness only; never touches the database row
    club = _club_from(data)
    if club is None:
        return
    name = data.get('name')
    if not name:
        emit('error', {'message': 'name is required'})
        return
    get_session(club.id).touch(name)
    current_app.logger.debug(f"[heartbeat] club={club.id} name={name}")


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'join_club': handle_join_club,
        'leave_club': handle_leave_club,
        'heartbeat': handle_heartbeat,
        'ping': handle_ping,
    }
    for event, handler in handlers.items():
        socketio.on_event(event, handler, namespace=NAMESPACE)

    if testing:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace='/')
