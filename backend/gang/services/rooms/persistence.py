"""Write-through storage for rooms and their seated players.

In-memory rooms are authoritative while the process runs; the database only
exists so an interrupted process can recover in-flight rooms. Writes are
therefore best-effort: ``persist`` logs a failed write instead of undoing the
mutation that was already applied.
"""

import json
import logging
import time
from typing import List, Optional

from flask import current_app
from sqlalchemy import and_, func, or_
from sqlalchemy.exc import SQLAlchemyError

from gang import db
from gang.game import GameMode, GameRoom, PersistenceError, Phase, PlayerSeat
from gang.models import Player, Room

logger = logging.getLogger(__name__)


def _dumps(value) -> str:
    return json.dumps(value)


def _loads(raw, default):
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        return default


def save_room(room: GameRoom) -> None:
    """Upsert the room row and its player rows; vacated seats are dropped."""
    now = time.time()
    try:
        record = db.session.get(Room, room.room_id)
        if record is None:
            record = Room(id=room.room_id, created_at=room.created_at)
            db.session.add(record)

        record.phase = room.phase.value
        record.host_id = room.host_id
        record.max_players = room.max_players
        record.min_players = room.min_players
        record.game_mode = room.game_mode.value
        record.series_length = room.series_length
        record.series_wins = room.series_wins
        record.series_losses = room.series_losses
        record.dealer_index = room.dealer_index
        record.community_cards = _dumps(room.community_cards)
        record.token_pool = _dumps(room.token_pool)
        record.token_assignments = _dumps(room.token_assignments)
        record.betting_round_history = _dumps(room.betting_round_history)
        record.action_log = _dumps(room.action_log)
        record.deck = _dumps(room.deck)
        record.last_game_result = _dumps(room.last_game_result) if room.last_game_result else None
        record.current_turn = room.current_turn
        record.state_version = room.state_version
        record.updated_at = room.updated_at
        record.last_action = room.last_action

        existing = {p.id: p for p in record.players}
        rows = []
        for index, seat in enumerate(room.seats):
            row = existing.get(seat.id) or Player(id=seat.id)
            row.seat = index
            row.name = seat.name
            row.connection_id = seat.connection_id
            row.pocket_cards = _dumps(seat.pocket_cards)
            row.ready = seat.ready
            row.connected = seat.connected
            row.at_table = seat.at_table
            row.last_seen = now
            rows.append(row)
        # delete-orphan cascade removes rows of vacated seats
        record.players = rows

        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Failed to save room {room.room_id}: {exc}") from exc


def _to_room(record: Room) -> GameRoom:
    room = GameRoom(
        record.id,
        max_players=record.max_players,
        min_players=record.min_players,
        game_mode=GameMode(record.game_mode),
        series_length=record.series_length,
        created_at=record.created_at,
    )
    room.phase = Phase(record.phase)
    room.host_id = record.host_id
    room.series_wins = record.series_wins
    room.series_losses = record.series_losses
    room.dealer_index = record.dealer_index
    room.community_cards = _loads(record.community_cards, [])
    room.token_pool = _loads(record.token_pool, [])
    room.token_assignments = _loads(record.token_assignments, {})
    room.betting_round_history = _loads(record.betting_round_history, [])
    room.action_log = _loads(record.action_log, [])
    room.deck = _loads(record.deck, [])
    room.last_game_result = _loads(record.last_game_result, None)
    room.current_turn = record.current_turn
    room.state_version = record.state_version
    room.updated_at = record.updated_at
    room.last_action = record.last_action
    room.seats = [
        PlayerSeat(
            id=p.id,
            name=p.name,
            connection_id=p.connection_id,
            pocket_cards=_loads(p.pocket_cards, []),
            ready=p.ready,
            at_table=p.at_table,
            connected=p.connected,
        )
        for p in record.players
    ]
    return room


def load_room(room_id: str) -> Optional[GameRoom]:
    record = db.session.get(Room, room_id)
    if record is None:
        return None
    return _to_room(record)


def load_all_rooms() -> List[GameRoom]:
    rooms = []
    for record in Room.query.order_by(Room.created_at).all():
        try:
            rooms.append(_to_room(record))
        except (ValueError, KeyError) as exc:
            logger.warning("[restore-skip] room=%s unreadable record: %s", record.id, exc)
    return rooms


def delete_room(room_id: str) -> None:
    try:
        Player.query.filter_by(room_id=room_id).delete()
        Room.query.filter_by(id=room_id).delete()
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Failed to delete room {room_id}: {exc}") from exc


def persist(room: GameRoom) -> None:
    """Best-effort ``save_room``; a failed write is logged, never raised."""
    try:
        save_room(room)
    except PersistenceError:
        logger.exception("[persist-failed] room=%s version=%s", room.room_id, room.state_version)


def forget(room_id: str) -> None:
    """Best-effort ``delete_room``."""
    try:
        delete_room(room_id)
    except PersistenceError:
        logger.exception("[delete-failed] room=%s", room_id)


def find_stale_rooms(now: Optional[float] = None) -> List[str]:
    """Ids of abandoned or degenerate rooms.

    - waiting rooms untouched past WAITING_ROOM_TTL_SEC with at most one seat
    - started rooms with at most one seat
    - started rooms with no player action past IDLE_GAME_TTL_SEC
    - any room untouched past ABANDONED_ROOM_TTL_SEC
    """
    cfg = current_app.config
    now = now if now is not None else time.time()
    waiting_cutoff = now - int(cfg.get('WAITING_ROOM_TTL_SEC', 600))
    idle_cutoff = now - int(cfg.get('IDLE_GAME_TTL_SEC', 1200))
    abandoned_cutoff = now - int(cfg.get('ABANDONED_ROOM_TTL_SEC', 14400))

    seat_counts = (
        db.session.query(Player.room_id, func.count(Player.id).label('seats'))
        .group_by(Player.room_id)
        .subquery()
    )
    seats = func.coalesce(seat_counts.c.seats, 0)
    waiting = Room.phase == Phase.WAITING.value
    started = Room.phase != Phase.WAITING.value

    try:
        rows = (
            db.session.query(Room.id)
            .outerjoin(seat_counts, seat_counts.c.room_id == Room.id)
            .filter(or_(
                and_(waiting, Room.updated_at < waiting_cutoff, seats <= 1),
                and_(started, seats <= 1),
                and_(started, func.coalesce(Room.last_action, Room.updated_at) < idle_cutoff),
                Room.updated_at < abandoned_cutoff,
            ))
            .all()
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Cleanup sweep failed: {exc}") from exc
    return [row.id for row in rows]


def delete_rooms(room_ids: List[str]) -> None:
    """Bulk ``delete_room``."""
    if not room_ids:
        return
    try:
        Player.query.filter(Player.room_id.in_(room_ids)).delete(synchronize_session='fetch')
        Room.query.filter(Room.id.in_(room_ids)).delete(synchronize_session='fetch')
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Failed to delete rooms {', '.join(room_ids)}: {exc}") from exc
    logger.info("[sweep] removed %d room(s): %s", len(room_ids), ", ".join(room_ids))


def sweep_stale_rooms(now: Optional[float] = None) -> List[str]:
    """Delete stale rooms from storage only and return their ids.

    Live processes go through ``cleanup.run_cleanup`` instead, which drops
    each room from the registry before its rows are deleted.
    """
    room_ids = find_stale_rooms(now=now)
    delete_rooms(room_ids)
    return room_ids
