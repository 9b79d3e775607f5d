from courtqueue import db
from courtqueue.models import Club
from courtqueue.services.queue.outcomes import Applied
from courtqueue.services.queue.session import IdleTimer, get_session
from courtqueue.services.queue.state import ClubState, QueueEntry
from courtqueue.services.queue.supervisor import (
    StaleGuestSupervisor,
    TimerPolicy,
    TopOfQueueSupervisor,
    evict_stale,
    find_stale,
    start_supervisors,
    tick_top_of_queue,
)


def make_state(names, paused=()):
    state = ClubState(id='CLUB-TIMER00001')
    state.waiting_queue = [QueueEntry(name=n, is_paused=n in paused) for n in names]
    return state


def run_ticks(state, timer, policy, count):
    outcome = None
    for _ in range(count):
        outcome = tick_top_of_queue(state, timer, policy)
    return outcome


# ---- Stale guests ----

def test_find_stale_ignores_players_without_heartbeat():
    state = make_state(['ALICE', 'BOB', 'CARL'])
    heartbeats = {'ALICE': 0.0, 'BOB': 150.0}
    assert find_stale(state, heartbeats, now=200.0, threshold=120) == ['ALICE']


def test_evict_stale_removes_and_audits():
    state = make_state(['ALICE', 'BOB'])
    names, outcome = evict_stale(state, {'ALICE': 0.0, 'BOB': 0.0}, now=500.0, threshold=120)
    assert names == ['ALICE', 'BOB']
    assert outcome.state.waiting_queue == []
    assert outcome.audit_lines == (
        'AUTO: ALICE removed, no response for 120s.',
        'AUTO: BOB removed, no response for 120s.',
    )
    assert outcome.reset_idle
    assert evict_stale(state, {}, now=500.0, threshold=120) == ([], None)


# ---- Top of queue ----

def test_timer_idle_with_too_few_active_players():
    state = make_state(['ALICE', 'BOB', 'CARL', 'DEE'], paused=('DEE',))
    timer = IdleTimer()
    policy = TimerPolicy(countdown_enabled=True, countdown_limit=2)
    assert run_ticks(state, timer, policy, 10) is None
    assert timer.top_name == 'ALICE'
    assert timer.elapsed == 0


def test_countdown_hands_off_to_next_player():
    state = make_state(['ALICE', 'BOB', 'CARL', 'DEE', 'EVE'])
    timer = IdleTimer()
    policy = TimerPolicy(countdown_enabled=True, countdown_limit=3)
    assert run_ticks(state, timer, policy, 3) is None
    outcome = tick_top_of_queue(state, timer, policy)
    assert isinstance(outcome, Applied)
    assert [e.name for e in outcome.state.waiting_queue] == ['BOB', 'ALICE', 'CARL', 'DEE', 'EVE']
    assert outcome.audit_lines == ('TIMER: ALICE timed out. Moved down.',)
    assert outcome.announcement == 'ALICE took too long. BOB, it is now your turn to pick.'
    assert timer.top_name == 'BOB'
    assert timer.elapsed == 0


def test_countdown_skips_resting_players():
    state = make_state(['ALICE', 'BOB', 'CARL', 'DEE', 'EVE', 'FAY'], paused=('BOB',))
    timer = IdleTimer()
    policy = TimerPolicy(countdown_enabled=True, countdown_limit=1)
    outcome = run_ticks(state, timer, policy, 2)
    assert [e.name for e in outcome.state.waiting_queue] == ['BOB', 'CARL', 'ALICE', 'DEE', 'EVE', 'FAY']
    assert outcome.announcement == 'ALICE took too long. CARL, it is now your turn to pick.'


def test_repeat_reminder_does_not_persist():
    state = make_state(['ALICE', 'BOB', 'CARL', 'DEE'])
    timer = IdleTimer()
    policy = TimerPolicy(repeat_enabled=True, repeat_interval=2)
    assert run_ticks(state, timer, policy, 2) is None
    outcome = tick_top_of_queue(state, timer, policy)
    assert outcome.announcement == 'Still waiting for ALICE to pick a court.'
    assert not outcome.persist
    assert outcome.state is state
    assert tick_top_of_queue(state, timer, policy) is None
    assert tick_top_of_queue(state, timer, policy).announcement == 'Still waiting for ALICE to pick a court.'
    assert timer.reminders == 2


def test_timer_restarts_when_top_changes():
    timer = IdleTimer()
    policy = TimerPolicy(repeat_enabled=True, repeat_interval=30)
    run_ticks(make_state(['ALICE', 'BOB', 'CARL', 'DEE']), timer, policy, 5)
    assert timer.elapsed == 4
    tick_top_of_queue(make_state(['BOB', 'CARL', 'DEE', 'ALICE']), timer, policy)
    assert timer.top_name == 'BOB'
    assert timer.elapsed == 0


# ---- Supervisors against a club session ----

def _club(names, **settings):
    club = Club(club_name='Timer Club', **settings)
    club.waiting_queue = [QueueEntry(name=n).to_dict() for n in names]
    db.session.add(club)
    db.session.commit()
    return club


def test_stale_supervisor_evicts_through_session(flask_app):
    club = _club(['ALICE', 'BOB', 'CARL'])
    session = get_session(club.id)
    session.touch('alice', now=0.0)
    session.touch('bob', now=900.0)

    supervisor = StaleGuestSupervisor(flask_app, interval=60, threshold=120)
    supervisor.run_once(now=1000.0)

    club = db.session.get(Club, club.id)
    assert [e['name'] for e in club.waiting_queue] == ['BOB', 'CARL']
    assert 'ALICE' not in session.heartbeats
    assert session.audit[0].endswith('AUTO: ALICE removed, no response for 120s.')


def test_top_of_queue_supervisor_moves_late_player(flask_app):
    club = _club(['ALICE', 'BOB', 'CARL', 'DEE'], countdown_enabled=True, countdown_limit_sec=2)
    session = get_session(club.id)
    supervisor = TopOfQueueSupervisor(flask_app, interval=1)

    for _ in range(3):
        supervisor.run_once()

    club = db.session.get(Club, club.id)
    assert [e['name'] for e in club.waiting_queue] == ['BOB', 'ALICE', 'CARL', 'DEE']
    assert session.audit[0].endswith('TIMER: ALICE timed out. Moved down.')
    assert session.idle.top_name == 'BOB'


def test_supervisors_do_not_start_in_testing(flask_app):
    assert start_supervisors(flask_app) == []
