import random
import threading
import time

import pytest

from gang.game import GameError, InvalidTurn, Phase
from gang.services.rooms import GamePlay, RoomRegistry, SessionManager, gameplay, sessions

THREADS_PER_PLAYER = 2
STEPS = 40


class RecordingBroadcaster:
    """Collects pushes instead of emitting them."""

    def __init__(self):
        self.pushes = []
        self._lock = threading.Lock()

    def deliver(self, pushes):
        with self._lock:
            self.pushes.extend(pushes)

    def room_list(self, lobby):
        pass


@pytest.fixture()
def table(flask_app, monkeypatch):
    """Three seated players on fake sids, game started, storage stubbed out."""
    monkeypatch.setattr(sessions, 'persist', lambda room: None)
    monkeypatch.setattr(gameplay, 'persist', lambda room: None)
    manager = SessionManager(RoomRegistry(), RecordingBroadcaster(), flask_app.config)
    play = GamePlay(manager)

    created = manager.create_room('sid-1', {'player_name': 'P1'})
    room = manager.registry.get(created['room_id'])
    sids = {created['player_id']: 'sid-1'}
    for idx in (2, 3):
        joined = manager.join_room(f'sid-{idx}', {'room_id': room.room_id, 'player_name': f'P{idx}'})
        sids[joined['player_id']] = f'sid-{idx}'
    play.start_game('sid-1')
    return room, play, sids


def _tokens_partitioned(room):
    held = list(room.token_assignments.values())
    return sorted(room.token_pool + held) == list(range(1, room.player_count + 1))


def _run(workers):
    errors = []

    def guard(work):
        try:
            work()
        except Exception as exc:  # surfaced through the assert below
            errors.append(exc)

    threads = [threading.Thread(target=guard, args=(work,)) for work in workers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    assert not any(thread.is_alive() for thread in threads)
    assert errors == []


def test_one_claim_wins_each_turn(table):
    room, play, sids = table
    contenders = room.player_count * 2

    for _ in range(2 * room.player_count):
        turn = room.current_turn
        version = room.state_version
        barrier = threading.Barrier(contenders)
        wins, losses = [], []

        def claim(token):
            barrier.wait()
            try:
                play.claim_token(sids[turn], {'token_number': token})
            except InvalidTurn:
                losses.append(token)
            else:
                wins.append(token)

        _run([lambda t=(n % room.player_count) + 1: claim(t) for n in range(contenders)])

        assert len(wins) == 1
        assert len(losses) == contenders - 1
        assert room.token_assignments[turn] == wins[0]
        assert room.current_turn != turn
        assert room.state_version == version + 1
        assert _tokens_partitioned(room)


def test_mixed_actions_stay_serialized(table):
    room, play, sids = table
    start_version = room.state_version
    counts_lock = threading.Lock()
    bumps = []
    barrier = threading.Barrier(len(sids) * THREADS_PER_PLAYER + 1)
    done = threading.Event()
    seen = []
    broken = []

    def player(sid, seed):
        rng = random.Random(seed)
        barrier.wait()
        for _ in range(STEPS):
            action = rng.choice(('claim', 'pass', 'ready'))
            try:
                if action == 'claim':
                    play.claim_token(sid, {'token_number': rng.randint(1, room.player_count)})
                    bump = 1
                elif action == 'pass':
                    play.pass_turn(sid)
                    bump = 1
                else:
                    res = play.set_ready(sid)
                    bump = 1 + int(res['advanced']) + int(res['game_over'])
            except GameError:
                continue
            with counts_lock:
                bumps.append(bump)

    def observer():
        barrier.wait()
        while not done.is_set():
            with room.lock:
                if not _tokens_partitioned(room):
                    broken.append(room.state_version)
                seen.append(room.state_version)
            time.sleep(0.001)

    workers = [lambda s=sid, n=n: player(s, n)
               for n, sid in enumerate(sid for sid in sids.values() for _ in range(THREADS_PER_PLAYER))]
    watcher = threading.Thread(target=observer)
    watcher.start()
    try:
        _run(workers)
    finally:
        done.set()
        watcher.join(timeout=30)

    assert bumps
    assert room.state_version == start_version + sum(bumps)
    assert broken == []
    assert seen == sorted(seen)
    assert _tokens_partitioned(room)
    if room.phase == Phase.COMPLETE:
        assert room.last_game_result is not None
