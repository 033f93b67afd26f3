import pytest

from conftest import fixed_deck
from gang.game import (
    CannotAdvance,
    CapacityError,
    GameMode,
    GameRoom,
    InvalidTurn,
    NoTokenHeld,
    Phase,
    StateError,
    TokenUnavailable,
    ValidationError,
)
from gang.game.views import public_state


def make_room(players=3, **kwargs):
    kwargs.setdefault('deck_factory', fixed_deck)
    room = GameRoom('ROOM01', **kwargs)
    for idx in range(1, players + 1):
        room.add_player(f'p{idx}', f'Player {idx}', f'sid-{idx}')
    return room


def started_room(players=3, **kwargs):
    room = make_room(players, **kwargs)
    room.start_game()
    return room


def play_round(room, tokens):
    """Claim ``tokens`` in seat order and ready up until the round resolves."""
    while True:
        for seat in list(room.seats):
            room.claim_token(seat.id, tokens[seat.id])
        for seat in room.seats:
            room.set_player_ready(seat.id)
        assert room.all_players_ready()
        result = room.advance_phase()
        if result is not None:
            return result


def assert_token_partition(room):
    held = list(room.token_assignments.values())
    assert len(held) == len(set(held))
    assert not set(held) & set(room.token_pool)
    assert sorted(held + room.token_pool) == list(range(1, room.player_count + 1))


def test_first_player_becomes_host():
    room = make_room(2)
    assert room.host_id == 'p1'
    assert room.seat_ids == ['p1', 'p2']


def test_room_rejects_bad_limits():
    with pytest.raises(ValidationError):
        GameRoom('ROOM01', max_players=2, min_players=3)
    with pytest.raises(ValidationError):
        GameRoom('ROOM01', game_mode=GameMode.BEST_OF, series_length=4)


def test_full_room_rejects_join():
    room = make_room(2, max_players=2)
    with pytest.raises(CapacityError):
        room.add_player('p3', 'Late')


def test_join_after_start_rejected():
    room = started_room(2)
    with pytest.raises(StateError):
        room.add_player('p3', 'Late')


def test_start_needs_min_players():
    room = make_room(1)
    with pytest.raises(CapacityError):
        room.start_game()
    assert room.phase == Phase.WAITING


def test_start_deals_and_opens_first_betting_round():
    room = started_room(3)
    assert room.phase == Phase.BETTING_1
    assert [seat.pocket_cards for seat in room.seats] == [['2c', '7d'], ['Kh', 'Kd'], ['As', 'Ah']]
    assert room.community_cards == []
    assert room.token_pool == [1, 2, 3]
    assert room.token_assignments == {}
    assert room.current_turn == 'p1'
    assert len(room.deck) == 52 - 6
    with pytest.raises(StateError):
        room.start_game()


def test_claim_and_steal():
    room = started_room(3)

    result = room.claim_token('p1', 2)
    assert result == {'token_assignments': {'p1': 2}, 'token_pool': [1, 3], 'current_turn': 'p2'}

    result = room.claim_token('p2', 2)
    assert result['token_assignments'] == {'p2': 2}
    assert result['token_pool'] == [1, 3]
    assert result['current_turn'] == 'p3'

    steal = room.action_log[-1]
    assert steal['from_pool'] is False
    assert steal['from_player_id'] == 'p1'
    assert steal['from_player_name'] == 'Player 1'
    assert room.action_log[0]['from_pool'] is True
    assert_token_partition(room)


def test_claim_returns_held_token_to_pool():
    room = started_room(3)
    room.claim_token('p1', 1)
    room.claim_token('p2', 2)
    room.claim_token('p3', 3)
    room.claim_token('p1', 3)
    assert room.token_assignments == {'p1': 3, 'p2': 2}
    assert room.token_pool == [1]
    assert_token_partition(room)


def test_reclaiming_own_token_keeps_it():
    room = started_room(2)
    room.claim_token('p1', 1)
    room.claim_token('p2', 2)
    room.claim_token('p1', 1)
    assert room.token_assignments == {'p1': 1, 'p2': 2}
    assert room.token_pool == []


def test_out_of_turn_claim_changes_nothing():
    room = started_room(3)
    room.claim_token('p1', 1)
    before = public_state(room).to_dict()

    with pytest.raises(InvalidTurn):
        room.claim_token('p3', 2)

    assert public_state(room).to_dict() == before


def test_unavailable_token_changes_nothing():
    room = started_room(3)
    room.claim_token('p1', 1)
    before = public_state(room).to_dict()

    with pytest.raises(TokenUnavailable):
        room.claim_token('p2', 7)
    with pytest.raises(ValidationError):
        room.claim_token('p2', 'two')

    assert public_state(room).to_dict() == before


def test_claim_clears_readiness():
    room = started_room(2)
    room.claim_token('p1', 1)
    room.claim_token('p2', 2)
    assert room.set_player_ready('p1') is True
    room.claim_token('p1', 1)
    assert not any(seat.ready for seat in room.seats)


def test_pass_requires_turn_and_token():
    room = started_room(3)
    with pytest.raises(NoTokenHeld):
        room.pass_turn('p1')
    with pytest.raises(InvalidTurn):
        room.pass_turn('p2')


def test_full_lap_of_passes_returns_turn():
    room = started_room(3)
    for pid, token in (('p1', 3), ('p2', 1), ('p3', 2)):
        room.claim_token(pid, token)
    assignments = dict(room.token_assignments)
    start = room.current_turn

    for _ in range(room.player_count):
        room.pass_turn(room.current_turn)

    assert room.current_turn == start
    assert room.token_assignments == assignments
    assert room.token_pool == []


def test_ready_needs_token_and_toggles():
    room = started_room(2)
    with pytest.raises(NoTokenHeld):
        room.set_player_ready('p1')
    room.claim_token('p1', 2)
    assert room.set_player_ready('p1') is True
    assert room.set_player_ready('p1') is False


def test_ready_outside_betting_rejected():
    room = make_room(2)
    with pytest.raises(StateError):
        room.set_player_ready('p1')


def test_advance_needs_every_token():
    room = started_room(3)
    room.claim_token('p1', 1)
    with pytest.raises(CannotAdvance):
        room.advance_phase()
    assert room.phase == Phase.BETTING_1


def test_advance_deals_streets():
    room = started_room(3)
    seen = []
    for _ in range(3):
        for pid, token in (('p1', 1), ('p2', 2), ('p3', 3)):
            room.claim_token(pid, token)
        assert room.advance_phase() is None
        seen.append((room.phase, len(room.community_cards)))
        assert room.token_pool == [1, 2, 3]
        assert room.current_turn == 'p1'

    assert seen == [(Phase.BETTING_2, 3), (Phase.BETTING_3, 4), (Phase.BETTING_4, 5)]
    assert room.community_cards == ['3s', '8h', '9c', 'Jd', '4h']
    assert [h['phase'] for h in room.betting_round_history] == ['betting_1', 'betting_2', 'betting_3']


def test_correct_order_wins_series_round():
    room = started_room(3, game_mode=GameMode.BEST_OF, series_length=5)
    result = play_round(room, {'p1': 1, 'p2': 2, 'p3': 3})

    assert result.success
    assert room.phase == Phase.COMPLETE
    assert [h.player_id for h in result.ranked_hands] == ['p1', 'p2', 'p3']
    assert [h.rank for h in result.ranked_hands] == [1, 2, 3]
    assert room.series_wins == 1
    assert room.series_losses == 0
    assert room.last_game_result['success'] is True
    assert len(room.betting_round_history) == 4


def test_swapped_tokens_report_misranked_seats():
    room = started_room(3)
    result = play_round(room, {'p1': 2, 'p2': 1, 'p3': 3})

    assert not result.success
    errors = {e['player_id']: e for e in result.validation.errors}
    assert set(errors) == {'p1', 'p2'}
    assert errors['p1']['actual_rank'] == 1
    assert errors['p1']['assigned_token'] == 2
    assert errors['p2']['hand'] == 'Pair'
    assert room.series_wins == room.series_losses == 0


def test_next_round_keeps_score_and_rotates_dealer():
    room = started_room(3, game_mode=GameMode.BEST_OF, series_length=3)
    play_round(room, {'p1': 1, 'p2': 2, 'p3': 3})
    assert room.dealer_id == 'p1'

    room.next_round()

    assert room.phase == Phase.BETTING_1
    assert room.series_wins == 1
    assert room.dealer_id == 'p2'
    assert room.current_turn == 'p1'
    assert room.last_game_result is None
    assert room.action_log == []


def test_decided_series_blocks_next_round():
    room = started_room(3, game_mode=GameMode.BEST_OF, series_length=3)
    play_round(room, {'p1': 1, 'p2': 2, 'p3': 3})
    room.next_round()
    result = play_round(room, {'p1': 1, 'p2': 2, 'p3': 3})

    assert result.series_complete
    assert room.series_wins + room.series_losses <= room.series_length
    with pytest.raises(StateError):
        room.next_round()

    room.restart_game()
    assert (room.series_wins, room.series_losses) == (0, 0)
    assert room.phase == Phase.BETTING_1


def test_next_round_needs_series_mode_and_complete_round():
    room = started_room(2)
    with pytest.raises(StateError):
        room.next_round()
    series = started_room(2, game_mode=GameMode.BEST_OF)
    with pytest.raises(StateError):
        series.next_round()


def test_leaving_mid_round_restarts_betting_round():
    room = started_room(4)
    room.claim_token('p1', 4)
    room.claim_token('p2', 3)

    assert room.remove_player('p2') is False

    assert room.phase == Phase.BETTING_1
    assert room.token_pool == [1, 2, 3]
    assert room.token_assignments == {}
    assert room.current_turn == 'p1'
    assert_token_partition(room)


def test_host_leaving_promotes_next_seat():
    room = make_room(3)
    assert room.remove_player('p1') is False
    assert room.host_id == 'p2'


def test_last_player_in_started_room_signals_delete():
    room = started_room(3)
    assert room.remove_player('p2') is False
    assert room.remove_player('p3') is True
    assert room.player_count == 1


def test_empty_waiting_room_signals_delete():
    room = make_room(1)
    assert room.remove_player('p1') is True


def test_every_mutation_bumps_version():
    room = make_room(2)
    versions = [room.state_version]
    room.start_game()
    versions.append(room.state_version)
    room.claim_token('p1', 1)
    versions.append(room.state_version)
    room.mark_disconnected('p2')
    versions.append(room.state_version)
    assert versions == sorted(set(versions))
    assert room.last_action is not None


def test_lobby_info():
    room = make_room(2)
    room.add_spectator('s1', 'Watcher')
    info = room.lobby_info()
    assert info['players'] == ['Player 1', 'Player 2']
    assert info['spectators'] == ['Watcher']
    assert info['is_joinable'] is True
    room.start_game()
    assert room.lobby_info()['is_joinable'] is False
