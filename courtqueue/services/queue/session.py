"""Per-club orchestration around the reconciliation engine.

Every change to a club goes through its :class:`ClubSession`: queued guest
requests, trusted host actions, host settings edits and the supervisors.
The session lock serialises them, so ``apply`` never sees two writers at
once. After a successful commit the session emits the side effects: audit
lines, narration and a ``state_update`` broadcast to the club's room.
"""

import collections
import datetime
import threading
import time
from typing import Callable, Dict, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from courtqueue import db, socketio
from courtqueue.models import Club, PendingRequest
from .engine import reconcile
from .outcomes import Applied, PersistenceFailed, Rejected, RejectedWithAudit
from .state import sanitize_name

NAMESPACE = '/ws'

_sessions: Dict[str, 'ClubSession'] = {}
_sessions_lock = threading.Lock()


def club_room(club_id: str) -> str:
    return f"club:{club_id}"


def host_room(club_id: str) -> str:
    return f"club:{club_id}:host"


class IdleTimer:
    """How long the current top-of-queue player has held that spot."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.top_name = ''
        self.elapsed = 0.0
        self.reminders = 0


class ClubSession:
    def __init__(self, club_id: str, audit_size: int = 100):
        self.club_id = club_id
        self.lock = threading.RLock()
        self.heartbeats: Dict[str, float] = {}
        self.audit = collections.deque(maxlen=audit_size)
        self.idle = IdleTimer()

    # ---- Outbound collaborators ----

    def record(self, line: str) -> None:
        stamp = datetime.datetime.now().strftime('%H:%M')
        entry = f"[{stamp}] {line}"
        self.audit.appendleft(entry)
        current_app.logger.info(f"[audit] club={self.club_id} {line}")
        socketio.emit('audit', {'line': entry}, to=host_room(self.club_id), namespace=NAMESPACE)

    def announce(self, text: str, voice: str = 'en-US') -> None:
        current_app.logger.info(f"[announce] club={self.club_id} {text}")
        socketio.emit('announce', {'text': text, 'voice': voice}, to=club_room(self.club_id), namespace=NAMESPACE)

    def broadcast(self, club: Club) -> None:
        socketio.emit('state_update', club.to_dict(), to=club_room(self.club_id), namespace=NAMESPACE)

    # ---- Liveness ----

    def touch(self, name, now: Optional[float] = None) -> None:
        name = sanitize_name(name)
        if not name:
            return
        with self.lock:
            self.heartbeats[name] = now if now is not None else time.time()

    def forget(self, names) -> None:
        with self.lock:
            for name in names:
                self.heartbeats.pop(name, None)

    # ---- Mutation path ----

    def load(self) -> Optional[Club]:
        return db.session.get(Club, self.club_id, populate_existing=True)

    def _commit(self, club: Club, outcome, request_row=None) -> bool:
        if isinstance(outcome, Applied) and outcome.persist:
            club.load_state(outcome.state)
        if request_row is not None:
            db.session.delete(request_row)
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(f"[persist-failed] club={self.club_id}")
            return False
        return True

    def _emit(self, club: Club, outcome: Applied) -> None:
        for line in outcome.audit_lines:
            self.record(line)
        if outcome.announcement:
            self.announce(outcome.announcement, club.announce_voice or 'en-US')
        if outcome.reset_idle:
            self.idle.reset()
        if outcome.persist:
            self.broadcast(club)

    def _settle(self, club: Club, outcome, request_row=None):
        """Persist ``outcome`` (and consume ``request_row``) then emit effects."""
        if isinstance(outcome, Applied) and not outcome.persist:
            if request_row is not None and not self._commit(club, outcome, request_row):
                return PersistenceFailed('could not consume request')
            self._emit(club, outcome)
            return outcome
        if not self._commit(club, outcome, request_row):
            return PersistenceFailed('could not save change')
        if isinstance(outcome, Applied):
            self._emit(club, outcome)
        elif isinstance(outcome, RejectedWithAudit):
            self.record(outcome.log_line)
        elif isinstance(outcome, Rejected) and outcome.reason:
            current_app.logger.debug(f"[request-rejected] club={self.club_id} {outcome.reason}")
        return outcome

    def execute(self, action, payload, requester_name='', from_host=True, now=None):
        """Apply a trusted host-side action immediately, bypassing the queue."""
        with self.lock:
            club = self.load()
            if club is None:
                return Rejected('club not found')
            if action == 'heartbeat':
                self.touch(requester_name)
                return Applied(club.to_state(), persist=False)
            outcome = reconcile(club.to_state(), action, payload, requester_name, from_host, now)
            if isinstance(outcome, Rejected):
                current_app.logger.debug(f"[host-rejected] club={self.club_id} {outcome.reason}")
                return outcome
            result = self._settle(club, outcome)
            if isinstance(result, Applied):
                current_app.logger.info(f"[host-applied] club={self.club_id} action={action}")
            return result

    def _track_liveness(self, action: str, requester_name: str, outcome: Applied) -> None:
        if action == 'batch_join':
            self.touch(requester_name)
        elif action == 'finish_match':
            # Only refresh players already tracked; host-added players stay exempt
            now = time.time()
            for entry in outcome.state.waiting_queue:
                if entry.name in self.heartbeats:
                    self.heartbeats[entry.name] = now

    def _process_row(self, row: PendingRequest, now=None):
        action, payload, requester_name = row.action, row.payload, row.requester_name
        if action == 'heartbeat':
            self.touch(requester_name)
            db.session.delete(row)
            try:
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                current_app.logger.exception(f"[persist-failed] club={self.club_id} heartbeat")
                return PersistenceFailed('could not consume heartbeat')
            return None

        club = self.load()
        if club is None:
            return self._settle(club, Rejected('club not found'), request_row=row)
        try:
            outcome = reconcile(club.to_state(), action, payload, requester_name, False, now)
        except Exception:
            # Consume the row so one bad request cannot block the inbox
            current_app.logger.exception(
                f"[request-failed] club={self.club_id} action={action} requester={requester_name}"
            )
            outcome = Rejected('request could not be reconciled')
        result = self._settle(club, outcome, request_row=row)
        if isinstance(result, Applied):
            self._track_liveness(action, requester_name, result)
            current_app.logger.info(
                f"[request-applied] club={self.club_id} action={action} requester={requester_name}"
            )
        return result

    def drain(self, now=None) -> int:
        """Reconcile queued requests one at a time, oldest first.

        Stops at the first persistence failure; that request stays queued and
        is retried on the next drain.
        """
        processed = 0
        with self.lock:
            while True:
                row = (
                    PendingRequest.query.filter_by(club_id=self.club_id)
                    .order_by(PendingRequest.id)
                    .first()
                )
                if row is None:
                    break
                result = self._process_row(row, now)
                if isinstance(result, PersistenceFailed):
                    break
                processed += 1
        return processed

    def mutate(self, change: Callable[[Club], object]):
        """Run a host-local change under the session lock.

        ``change`` receives the freshly loaded club row and returns an outcome
        (or ``None`` for nothing to do). Settings edits may modify the row
        directly before returning ``Applied``.
        """
        with self.lock:
            club = self.load()
            if club is None:
                return Rejected('club not found')
            outcome = change(club)
            if outcome is None or isinstance(outcome, Rejected):
                db.session.rollback()
                return outcome
            return self._settle(club, outcome)


def get_session(club_id: str) -> ClubSession:
    with _sessions_lock:
        session = _sessions.get(club_id)
        if session is None:
            size = int(current_app.config.get('AUDIT_LOG_SIZE', 100))
            session = ClubSession(club_id, audit_size=size)
            _sessions[club_id] = session
        return session


def active_club_ids():
    with _sessions_lock:
        return list(_sessions)


def drop_session(club_id: str) -> None:
    with _sessions_lock:
        _sessions.pop(club_id, None)


def reset_sessions() -> None:
    with _sessions_lock:
        _sessions.clear()


def submit_request(club_id: str, action: str, payload, requester_name: str) -> PendingRequest:
    """Queue a guest action and drain the club's inbox.

    Delivery is at-least-once: if the drain cannot persist, the row stays in
    the inbox and a later drain picks it up.
    """
    row = PendingRequest(
        club_id=club_id,
        action=str(action)[:32],
        payload=payload if isinstance(payload, dict) else {},
        requester_name=str(requester_name or '')[:64],
    )
    db.session.add(row)
    db.session.commit()
    get_session(club_id).drain()
    return row
