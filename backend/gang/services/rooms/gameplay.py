import logging

from gang.game import Phase
from .broadcast import Push, state_pushes
from .persistence import persist
from .sessions import SessionManager

logger = logging.getLogger(__name__)


def _round_complete_pushes(room, result) -> list:
    payload = dict(result.to_dict(), room_id=room.room_id, state_version=room.state_version)
    sids = [seat.connection_id for seat in room.seats]
    sids += [s.connection_id for s in room.spectators.values()]
    return [Push('round_complete', dict(payload), sid) for sid in sids if sid]


class GamePlay:
    """In-game actions of a seated player, resolved through their socket."""

    def __init__(self, sessions: SessionManager) -> None:
        self.sessions = sessions
        self.broadcaster = sessions.broadcaster

    def start_game(self, sid: str) -> dict:
        room, player_id = self.sessions.require_player(sid)
        self.sessions.apply(room, room.start_game)
        logger.info("[game-started] room=%s by=%s players=%d", room.room_id, player_id, room.player_count)
        self.sessions.publish_lobby()
        return {}

    def restart_game(self, sid: str) -> dict:
        room, player_id = self.sessions.require_player(sid)
        self.sessions.apply(room, room.restart_game)
        logger.info("[game-restarted] room=%s by=%s", room.room_id, player_id)
        self.sessions.publish_lobby()
        return {}

    def next_round(self, sid: str) -> dict:
        room, player_id = self.sessions.require_player(sid)
        self.sessions.apply(room, room.next_round)
        logger.info("[next-round] room=%s wins=%d losses=%d",
                    room.room_id, room.series_wins, room.series_losses)
        return {}

    def claim_token(self, sid: str, data: dict) -> dict:
        room, player_id = self.sessions.require_player(sid)
        token_number = data.get('token_number')
        return self.sessions.apply(room, lambda: room.claim_token(player_id, token_number))

    def pass_turn(self, sid: str) -> dict:
        room, player_id = self.sessions.require_player(sid)
        return self.sessions.apply(room, lambda: room.pass_turn(player_id))

    def set_ready(self, sid: str) -> dict:
        """Toggle readiness; the last player to ready up closes the round."""
        room, player_id = self.sessions.require_player(sid)
        with room.lock:
            self.sessions.check_live(room)
            ready = room.set_player_ready(player_id)
            result = None
            advanced = False
            if room.all_players_ready():
                result = room.advance_phase()
                advanced = True
            persist(room)
            pushes = state_pushes(room)
            if result is not None:
                pushes = _round_complete_pushes(room, result) + pushes
            phase = room.phase
        self.broadcaster.deliver(pushes)
        if advanced:
            logger.info("[phase-advanced] room=%s phase=%s", room.room_id, phase.value)
        return {'ready': ready, 'advanced': advanced, 'game_over': phase == Phase.COMPLETE}

