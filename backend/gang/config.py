import os


def _origins(raw):
    return [origin.strip() for origin in raw.split(',') if origin.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Local embedded storage; any SQLAlchemy URL works
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///game_state.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = _origins(os.environ.get(
        'CORS_ORIGINS',
        'http://localhost:8080,http://127.0.0.1:8080,http://localhost:5173,http://127.0.0.1:5173',
    ))
    # Table limits
    DEFAULT_MAX_PLAYERS = int(os.environ.get('DEFAULT_MAX_PLAYERS', '6'))
    DEFAULT_MIN_PLAYERS = int(os.environ.get('DEFAULT_MIN_PLAYERS', '2'))
    SEAT_LIMIT = int(os.environ.get('SEAT_LIMIT', '6'))
    # Rounds in a best-of series (odd)
    SERIES_LENGTH = int(os.environ.get('SERIES_LENGTH', '5'))
    MAX_NAME_LENGTH = int(os.environ.get('MAX_NAME_LENGTH', '20'))
    # Cleanup sweep (seconds). 0 disables the background loop.
    CLEANUP_INTERVAL_SEC = int(os.environ.get('CLEANUP_INTERVAL_SEC', '300'))
    WAITING_ROOM_TTL_SEC = int(os.environ.get('WAITING_ROOM_TTL_SEC', str(10 * 60)))
    IDLE_GAME_TTL_SEC = int(os.environ.get('IDLE_GAME_TTL_SEC', str(20 * 60)))
    ABANDONED_ROOM_TTL_SEC = int(os.environ.get('ABANDONED_ROOM_TTL_SEC', str(4 * 60 * 60)))
    # Reload in-flight rooms from the database when the server boots
    RESTORE_ROOMS_ON_START = os.environ.get('RESTORE_ROOMS_ON_START', '1') == '1'
