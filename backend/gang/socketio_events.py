import functools
import logging

from flask import request
from flask_socketio import emit

from gang import get_services, socketio
from gang.game import GameError

logger = logging.getLogger(__name__)

NAMESPACE = '/ws'


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def acknowledged(handler):
    """Turn a handler's dict (or a raised error) into an acknowledgement.

    ``GameError`` becomes ``{'success': False, 'error': code, 'message': ...}``;
    anything else is logged with its traceback and reported as InternalError
    so one bad request never takes the server down.
    """
    @functools.wraps(handler)
    def wrapper(data=None):
        payload = data if isinstance(data, dict) else {}
        try:
            result = handler(payload) or {}
        except GameError as exc:
            logger.warning("[rejected] event=%s sid=%s error=%s message=%s",
                           handler.__name__, _get_sid(), exc.code, exc.message)
            return exc.to_ack()
        except Exception:
            logger.exception("[handler-error] event=%s sid=%s", handler.__name__, _get_sid())
            return {'success': False, 'error': 'InternalError', 'message': 'Internal server error'}
        return dict(result, success=True)
    return wrapper


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    get_services().sessions.disconnect(_get_sid())


@acknowledged
def handle_ping(data):
    return {'pong': data}


@acknowledged
def handle_get_room_list(data):
    return get_services().sessions.get_room_list(_get_sid(), data)


@acknowledged
def handle_create_room(data):
    return get_services().sessions.create_room(_get_sid(), data)


@acknowledged
def handle_join_room(data):
    return get_services().sessions.join_room(_get_sid(), data)


@acknowledged
def handle_join_as_spectator(data):
    return get_services().sessions.join_as_spectator(_get_sid(), data)


@acknowledged
def handle_rejoin_game(data):
    return get_services().sessions.rejoin_game(_get_sid(), data)


@acknowledged
def handle_start_game(data):
    return get_services().gameplay.start_game(_get_sid())


@acknowledged
def handle_restart_game(data):
    return get_services().gameplay.restart_game(_get_sid())


@acknowledged
def handle_next_round(data):
    return get_services().gameplay.next_round(_get_sid())


@acknowledged
def handle_claim_token(data):
    return get_services().gameplay.claim_token(_get_sid(), data)


@acknowledged
def handle_pass_turn(data):
    return get_services().gameplay.pass_turn(_get_sid())


@acknowledged
def handle_set_ready(data):
    return get_services().gameplay.set_ready(_get_sid())


@acknowledged
def handle_get_game_state(data):
    return get_services().sessions.get_game_state(_get_sid())


@acknowledged
def handle_leave_game(data):
    return get_services().sessions.leave_game(_get_sid())


@acknowledged
def handle_leave_spectator(data):
    return get_services().sessions.leave_spectator(_get_sid())


@acknowledged
def handle_return_to_lobby(data):
    return get_services().sessions.return_to_lobby(_get_sid())


_HANDLERS = {
    'ping': handle_ping,
    'get_room_list': handle_get_room_list,
    'create_room': handle_create_room,
    'join_room': handle_join_room,
    'join_as_spectator': handle_join_as_spectator,
    'rejoin_game': handle_rejoin_game,
    'start_game': handle_start_game,
    'restart_game': handle_restart_game,
    'next_round': handle_next_round,
    'claim_token': handle_claim_token,
    'pass_turn': handle_pass_turn,
    'set_ready': handle_set_ready,
    'get_game_state': handle_get_game_state,
    'leave_game': handle_leave_game,
    'leave_spectator': handle_leave_spectator,
    'return_to_lobby': handle_return_to_lobby,
}


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace=NAMESPACE)
