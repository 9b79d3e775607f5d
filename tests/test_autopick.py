import pytest

from courtqueue.services.queue.autopick import NotEnoughPlayers, select_next
from courtqueue.services.queue.state import ClubState, MatchRecord, QueueEntry


def queue_state(spec, **kwargs):
    """Build a state from ``[(name, gender, paused), ...]``."""
    state = ClubState(id='CLUB-PICK000001', **kwargs)
    state.waiting_queue = [QueueEntry(name=n, gender=g, is_paused=p) for n, g, p in spec]
    return state


def test_picks_first_active_players_in_order():
    state = queue_state([
        ('ALICE', 'M', False),
        ('BOB', 'M', True),
        ('CARL', 'F', False),
        ('DEE', 'F', False),
        ('EVE', 'F', False),
    ])
    assert select_next(state) == [0, 2, 3, 4]


def test_not_enough_players_in_pick_range():
    state = queue_state([(n, 'M', False) for n in ['A', 'B', 'C', 'D']], pick_range=3)
    with pytest.raises(NotEnoughPlayers) as excinfo:
        select_next(state)
    assert excinfo.value.needed == 4
    assert excinfo.value.available == 3


def test_gender_balanced_selection():
    state = queue_state([
        ('ALICE', 'M', False),
        ('BOB', 'M', False),
        ('CARL', 'M', False),
        ('DEE', 'F', False),
        ('EVE', 'F', False),
    ])
    assert select_next(state, gender_balanced=True) == [0, 1, 3, 4]


def test_gender_balanced_falls_back_to_queue_order():
    state = queue_state([(n, 'M', False) for n in ['A', 'B', 'C', 'D']] + [('E', 'F', False)])
    assert select_next(state, gender_balanced=True) == [0, 1, 2, 3]


def test_flags_default_to_club_settings():
    spec = [('A', 'M', False), ('B', 'M', False), ('C', 'M', False), ('D', 'F', False), ('E', 'F', False)]
    assert select_next(queue_state(spec, gender_balanced=True)) == [0, 1, 3, 4]
    assert select_next(queue_state(spec)) == [0, 1, 2, 3]


def test_avoid_repeats_swaps_last_pick():
    state = queue_state([(n, 'M', False) for n in ['ALICE', 'BOB', 'CARL', 'DEE', 'EVE']])
    state.match_history = [
        MatchRecord(timestamp='t', unit=0, team_a=['ALICE', 'BOB'], team_b=['CARL', 'DEE'], winners=[]),
    ]
    assert select_next(state, avoid_repeats=True) == [0, 1, 2, 4]
    assert select_next(state, avoid_repeats=False) == [0, 1, 2, 3]


def test_avoid_repeats_without_replacement_keeps_selection():
    state = queue_state([(n, 'M', False) for n in ['ALICE', 'BOB', 'CARL', 'DEE']])
    state.match_history = [
        MatchRecord(timestamp='t', unit=0, team_a=['ALICE', 'BOB'], team_b=['CARL', 'DEE'], winners=[]),
    ]
    assert select_next(state, avoid_repeats=True) == [0, 1, 2, 3]


def test_two_player_sport():
    state = queue_state([('A', 'M', True), ('B', 'M', False), ('C', 'F', False)], sport='squash')
    assert select_next(state) == [1, 2]
