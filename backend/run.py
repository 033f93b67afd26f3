from gang import create_app, get_services, restore_rooms, socketio
from gang.services.rooms.cleanup import start_cleanup_loop

app = create_app()

if app.config.get('RESTORE_ROOMS_ON_START'):
    restore_rooms(app)
start_cleanup_loop(app, get_services(app).sessions)

if __name__ == '__main__':
    # Use SocketIO server to enable websockets in dev
    socketio.run(app, debug=True)
