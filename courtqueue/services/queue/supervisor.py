"""Host-side periodic supervisors.

Two independent behaviours, each on its own schedule:

- ``StaleGuestSupervisor`` evicts queued guests whose heartbeat went quiet.
- ``TopOfQueueSupervisor`` times the first active player, repeats reminders
  and, when the countdown policy is on, hands the pick to the next player.

A third loop, ``PendingRequestSupervisor``, retries inbox rows left behind
by a failed write. The decision logic lives in plain functions so it can be
tested without threads; the classes only schedule and route through
:class:`ClubSession`.
"""

import copy
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

from courtqueue import socketio
from courtqueue.models import PendingRequest
from .outcomes import Applied
from .session import active_club_ids, get_session


@dataclass(frozen=True)
class TimerPolicy:
    repeat_enabled: bool = False
    repeat_interval: int = 30
    countdown_enabled: bool = False
    countdown_limit: int = 60
    min_active: int = 4

    @classmethod
    def from_club(cls, club, min_active=4):
        return cls(
            repeat_enabled=bool(club.repeat_enabled),
            repeat_interval=int(club.repeat_interval_sec or 30),
            countdown_enabled=bool(club.countdown_enabled),
            countdown_limit=int(club.countdown_limit_sec or 60),
            min_active=min_active,
        )


def find_stale(state, heartbeats, now: float, threshold: float) -> List[str]:
    """Queued names whose last heartbeat is older than ``threshold`` seconds.

    Players without a heartbeat record are never considered stale.
    """
    stale = []
    for entry in state.waiting_queue:
        seen = heartbeats.get(entry.name)
        if seen is None:
            continue
        if now - seen > threshold and state.unit_of(entry.name) is None:
            stale.append(entry.name)
    return stale


def evict_stale(state, heartbeats, now: float, threshold: float) -> Tuple[List[str], Optional[Applied]]:
    names = find_stale(state, heartbeats, now, threshold)
    if not names:
        return names, None
    nxt = copy.deepcopy(state)
    nxt.waiting_queue = [e for e in nxt.waiting_queue if e.name not in names]
    lines = tuple(f'AUTO: {name} removed, no response for {int(threshold)}s.' for name in names)
    return names, Applied(nxt, lines, reset_idle=True)


def _hand_off(state, late_name: str):
    """Move ``late_name`` behind the next active player."""
    nxt = copy.deepcopy(state)
    late = nxt.waiting_queue.pop(nxt.queue_index(late_name))
    new_top = nxt.first_active()
    insert_at = nxt.queue_index(new_top.name) + 1 if new_top else 0
    nxt.waiting_queue.insert(insert_at, late)
    return nxt, new_top


def tick_top_of_queue(state, timer, policy: TimerPolicy, step: float = 1.0) -> Optional[Applied]:
    """Advance ``timer`` by ``step`` seconds and return any resulting effect."""
    first = state.first_active()
    if first is None:
        timer.reset()
        return None
    if first.name != timer.top_name:
        timer.reset()
        timer.top_name = first.name
    else:
        timer.elapsed += step

    if state.active_count() < policy.min_active:
        timer.elapsed = 0.0
        timer.reminders = 0
        return None

    if policy.countdown_enabled and timer.elapsed >= policy.countdown_limit:
        nxt, new_top = _hand_off(state, first.name)
        timer.reset()
        timer.top_name = new_top.name if new_top else ''
        next_name = new_top.name if new_top else 'the next player'
        return Applied(
            nxt,
            (f'TIMER: {first.name} timed out. Moved down.',),
            announcement=f'{first.name} took too long. {next_name}, it is now your turn to pick.',
        )

    interval = policy.repeat_interval
    if policy.repeat_enabled and interval > 0 and timer.elapsed >= (timer.reminders + 1) * interval:
        timer.reminders += 1
        unit = state.sport_config.unit_label.lower()
        return Applied(state, announcement=f'Still waiting for {first.name} to pick a {unit}.', persist=False)
    return None


class _Supervisor:
    interval_key = ''
    default_interval = 1

    def __init__(self, app, interval=None):
        self.app = app
        self.interval = interval or app.config.get(self.interval_key, self.default_interval)
        self.running = False

    def run_once(self, now=None) -> None:
        raise NotImplementedError

    def run_forever(self) -> None:
        self.running = True
        self.app.logger.info(f"[supervisor-start] {type(self).__name__} every {self.interval}s")
        while self.running:
            socketio.sleep(self.interval)
            with self.app.app_context():
                try:
                    self.run_once()
                except Exception:
                    self.app.logger.exception(f"[supervisor-error] {type(self).__name__}")

    def stop(self) -> None:
        self.running = False


class StaleGuestSupervisor(_Supervisor):
    interval_key = 'STALE_CHECK_INTERVAL_SEC'
    default_interval = 60

    def __init__(self, app, interval=None, threshold=None):
        super().__init__(app, interval)
        self.threshold = threshold or app.config.get('STALE_AFTER_SEC', 120)

    def sweep(self, club_id: str, now: Optional[float] = None):
        now = now if now is not None else time.time()
        session = get_session(club_id)
        evicted: List[str] = []

        def change(club):
            names, outcome = evict_stale(club.to_state(), session.heartbeats, now, self.threshold)
            evicted.extend(names)
            return outcome

        outcome = session.mutate(change)
        if isinstance(outcome, Applied):
            session.forget(evicted)
            self.app.logger.info(f"[supervisor-evict] club={club_id} names={','.join(evicted)}")
        return outcome

    def run_once(self, now=None) -> None:
        for club_id in active_club_ids():
            self.sweep(club_id, now)


class TopOfQueueSupervisor(_Supervisor):
    interval_key = 'TOP_OF_QUEUE_TICK_SEC'
    default_interval = 1

    def tick(self, club_id: str):
        session = get_session(club_id)
        min_active = int(self.app.config.get('COUNTDOWN_MIN_ACTIVE', 4))

        def change(club):
            policy = TimerPolicy.from_club(club, min_active)
            return tick_top_of_queue(club.to_state(), session.idle, policy, float(self.interval))

        outcome = session.mutate(change)
        if isinstance(outcome, Applied) and outcome.persist:
            self.app.logger.info(f"[supervisor-handoff] club={club_id} top={session.idle.top_name}")
        return outcome

    def run_once(self, now=None) -> None:
        for club_id in active_club_ids():
            self.tick(club_id)


class PendingRequestSupervisor(_Supervisor):
    interval_key = 'RETRY_DRAIN_SEC'
    default_interval = 5

    def run_once(self, now=None) -> None:
        club_ids = {cid for (cid,) in PendingRequest.query.with_entities(PendingRequest.club_id).distinct()}
        for club_id in club_ids:
            processed = get_session(club_id).drain(now)
            if processed:
                self.app.logger.info(f"[supervisor-retry] club={club_id} processed={processed}")


def start_supervisors(app):
    """Start the background loops. No-ops in TESTING mode."""
    if app.config.get('TESTING') and not app.config.get('ENABLE_SUPERVISORS_IN_TESTS'):
        return []
    supervisors = [StaleGuestSupervisor(app), TopOfQueueSupervisor(app)]
    if int(app.config.get('RETRY_DRAIN_SEC', 0)) > 0:
        supervisors.append(PendingRequestSupervisor(app))
    for supervisor in supervisors:
        socketio.start_background_task(supervisor.run_forever)
    return supervisors
