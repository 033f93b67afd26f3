from conftest import fixed_deck
from gang.game import GameRoom, StateTracker
from gang.game.views import player_state, public_state, spectator_state


def _room():
    room = GameRoom('VIEW01', deck_factory=fixed_deck)
    room.add_player('p1', 'Ann', 'sid-1')
    room.add_player('p2', 'Bob', 'sid-2')
    room.add_spectator('s1', 'Sue', 'sid-3')
    room.start_game()
    return room


def test_public_view_has_no_pocket_cards():
    state = public_state(_room()).to_dict()
    assert state['view'] == 'public'
    assert 'my_pocket_cards' not in state
    assert 'all_pocket_cards' not in state
    assert [p['name'] for p in state['players']] == ['Ann', 'Bob']


def test_player_view_shows_only_own_cards():
    room = _room()
    state = player_state(room, 'p2').to_dict()
    assert state['view'] == 'player'
    assert state['my_player_id'] == 'p2'
    assert state['my_pocket_cards'] == ['Kh', 'Kd']
    assert '2c' not in str(state)


def test_spectator_view_shows_every_hand():
    state = spectator_state(_room(), 's1').to_dict()
    assert state['is_spectator'] is True
    assert state['my_spectator_id'] == 's1'
    assert state['all_pocket_cards'] == {'p1': ['2c', '7d'], 'p2': ['Kh', 'Kd']}


def test_views_are_detached_from_room():
    room = _room()
    room.claim_token('p1', 1)
    state = player_state(room, 'p1').to_dict()
    state['action_log'][0]['token_number'] = 99
    state['token_pool'].append(42)
    assert room.action_log[0]['token_number'] == 1
    assert 42 not in room.token_pool


def test_tracker_drops_stale_snapshot():
    tracker = StateTracker()
    assert tracker.apply({'state_version': 7, 'phase': 'betting_2'})
    assert not tracker.apply({'state_version': 5, 'phase': 'betting_1'})
    assert not tracker.apply({'state_version': 7, 'phase': 'betting_1'})
    assert tracker.version == 7
    assert tracker.state['phase'] == 'betting_2'

    tracker.reset()
    assert tracker.apply({'state_version': 5})


def test_views_carry_current_version():
    room = _room()
    before = player_state(room, 'p1').state_version
    room.claim_token('p1', 2)
    assert player_state(room, 'p1').state_version == before + 1
    assert spectator_state(room).state_version == before + 1
