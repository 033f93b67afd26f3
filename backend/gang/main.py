from flask import Blueprint, jsonify

from gang import get_services

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'name': 'gang', 'message': 'The Gang game server', 'socket_namespace': '/ws'})


@main.route('/health')
def health():
    return jsonify({'status': 'ok', 'rooms': len(get_services().registry)})
