from conftest import fixed_deck
from gang import restore_rooms
from gang.game import GameRoom, Phase
from gang.services.rooms.persistence import save_room


def test_restore_reloads_rooms_unbound(flask_app, services):
    room = GameRoom('REST01', deck_factory=fixed_deck)
    room.add_player('p1', 'Ann', 'old-sid-1')
    room.add_player('p2', 'Bob', 'old-sid-2')
    room.add_spectator('s1', 'Sue', 'old-sid-3')
    room.start_game()
    room.claim_token('p1', 2)
    save_room(room)

    assert restore_rooms(flask_app) == 1
    assert restore_rooms(flask_app) == 0

    restored = services.registry.get('REST01')
    assert restored.phase == Phase.BETTING_1
    assert restored.token_assignments == {'p1': 2}
    assert restored.current_turn == 'p2'
    assert all(seat.connection_id is None and not seat.connected for seat in restored.seats)
    assert restored.spectators == {}
