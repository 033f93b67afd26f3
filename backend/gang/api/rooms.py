from flask import Blueprint, jsonify

from gang import get_services
from gang.game import GameError
from gang.game.views import public_state
from gang.services.rooms.registry import normalize_room_id

rooms = Blueprint('rooms', __name__)


@rooms.route('', methods=['GET'])
def list_rooms():
    return jsonify({'rooms': get_services().registry.lobby()})


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room(room_id):
    try:
        room = get_services().registry.get(normalize_room_id(room_id))
    except GameError as exc:
        return jsonify({'error': exc.code, 'message': exc.message}), 404
    with room.lock:
        return jsonify(public_state(room).to_dict())
