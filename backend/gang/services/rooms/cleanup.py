import logging
from typing import List

from gang import socketio
from gang.game import PersistenceError
from .persistence import delete_rooms, find_stale_rooms

logger = logging.getLogger(__name__)

SWEEP_REASON = 'Game removed due to inactivity'


def run_cleanup(app, sessions, now=None) -> List[str]:
    """One sweep: pick stale rooms, drop them from memory, then from storage.

    Each live room leaves the registry under its own lock before its rows
    are deleted, so no later action can write it back.
    """
    with app.app_context():
        try:
            room_ids = find_stale_rooms(now=now)
            if not room_ids:
                return []
            sessions.discard_rooms(room_ids, SWEEP_REASON)
            delete_rooms(room_ids)
        except PersistenceError:
            logger.exception("[sweep-failed]")
            return []
        return room_ids


def start_cleanup_loop(app, sessions) -> bool:
    """Run ``run_cleanup`` every CLEANUP_INTERVAL_SEC on a background task.

    - No-ops in TESTING mode or when the interval is 0
    - The first sweep runs after one full interval
    """
    interval = int(app.config.get('CLEANUP_INTERVAL_SEC', 0) or 0)
    if app.config.get('TESTING') or interval <= 0:
        return False

    def _worker():
        while True:
            socketio.sleep(interval)
            try:
                run_cleanup(app, sessions)
            except Exception:
                logger.exception("[sweep-crashed]")

    socketio.start_background_task(_worker)
    logger.info("[sweep-scheduled] every %ds", interval)
    return True
