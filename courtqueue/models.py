from courtqueue import db, bcrypt
from flask_login import UserMixin
import datetime
import string
import random

from courtqueue.sports import get_sport_config
from courtqueue.services.queue.state import (
    ClubState,
    MatchRecord,
    QueueEntry,
    RosterPlayer,
)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    nickname = db.Column(db.String(64), nullable=True)
    password_hash = db.Column(db.String(256), nullable=False)
    clubs = db.relationship('Club', back_populates='host')

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'nickname': self.nickname,
        }


def generate_club_code(length=10):
    """Generate a unique, human-typeable join code."""
    while True:
        code = 'CLUB-' + ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if not db.session.get(Club, code):
            return code


def _roster_from_json(raw):
    # Sessions created before per-sport rosters stored one flat list
    if isinstance(raw, list):
        raw = {'badminton': raw}
    return {
        sport: [RosterPlayer.from_dict(p) for p in players or []]
        for sport, players in (raw or {}).items()
    }


class Club(db.Model):
    __tablename__ = 'club'
    id = db.Column(db.String(16), primary_key=True)
    club_name = db.Column(db.String(128), nullable=True)
    host_owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True, index=True)
    host = db.relationship('User', back_populates='clubs')
    sport = db.Column(db.String(32), nullable=False, default='badminton')
    active_unit_count = db.Column(db.Integer, nullable=False, default=4)
    pick_range = db.Column(db.Integer, nullable=False, default=20)
    # Session document (JSON encoded)
    waiting_queue = db.Column(db.JSON, nullable=False, default=list)
    unit_occupants = db.Column(db.JSON, nullable=False, default=dict)
    roster = db.Column(db.JSON, nullable=False, default=dict)
    match_history = db.Column(db.JSON, nullable=False, default=list)
    saved_queue = db.Column(db.JSON, nullable=False, default=list)
    # Salted hashes ("salt:hash")
    join_secret = db.Column(db.String(256), nullable=True)
    elevated_guest_secret = db.Column(db.String(256), nullable=True)
    # Auto-pick policies
    gender_balanced = db.Column(db.Boolean, nullable=False, default=False)
    avoid_repeats = db.Column(db.Boolean, nullable=False, default=False)
    # Top-of-queue announcements
    repeat_enabled = db.Column(db.Boolean, nullable=False, default=False)
    repeat_interval_sec = db.Column(db.Integer, nullable=False, default=30)
    countdown_enabled = db.Column(db.Boolean, nullable=False, default=False)
    countdown_limit_sec = db.Column(db.Integer, nullable=False, default=60)
    announce_voice = db.Column(db.String(16), nullable=False, default='en-US')
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    requests = db.relationship('PendingRequest', back_populates='club', lazy='dynamic',
                               cascade='all, delete-orphan')

    def __init__(self, **kwargs):
        super(Club, self).__init__(**kwargs)
        if not self.id:
            self.id = generate_club_code()

    @property
    def sport_config(self):
        return get_sport_config(self.sport)

    def to_state(self) -> ClubState:
        return ClubState(
            id=self.id,
            host_owner_id=self.host_owner_id,
            sport=self.sport or 'badminton',
            active_unit_count=self.active_unit_count or 0,
            pick_range=self.pick_range or 0,
            waiting_queue=[QueueEntry.from_dict(e) for e in self.waiting_queue or []],
            unit_occupants={
                str(k): [QueueEntry.from_dict(e) for e in players]
                for k, players in (self.unit_occupants or {}).items()
                if players
            },
            roster=_roster_from_json(self.roster),
            match_history=[MatchRecord.from_dict(m) for m in self.match_history or []],
            saved_queue=[QueueEntry.from_dict(e) for e in self.saved_queue or []],
            join_secret=self.join_secret,
            elevated_guest_secret=self.elevated_guest_secret,
            gender_balanced=bool(self.gender_balanced),
            avoid_repeats=bool(self.avoid_repeats),
        )

    def load_state(self, state: ClubState) -> None:
        """Copy the mutable session fields of ``state`` onto this row."""
        self.waiting_queue = [e.to_dict() for e in state.waiting_queue]
        self.unit_occupants = {
            k: [e.to_dict() for e in players] for k, players in state.unit_occupants.items()
        }
        self.roster = {
            sport: [p.to_dict() for p in players] for sport, players in state.roster.items()
        }
        self.match_history = [m.to_dict() for m in state.match_history]
        self.saved_queue = [e.to_dict() for e in state.saved_queue]
        self.elevated_guest_secret = state.elevated_guest_secret
        self.join_secret = state.join_secret

    def roster_for_sport(self):
        return _roster_from_json(self.roster).get(self.sport or 'badminton', [])

    def to_dict(self):
        sport = self.sport_config
        return {
            'id': self.id,
            'club_name': self.club_name,
            'host_owner_id': self.host_owner_id,
            'sport': sport.key,
            'sport_name': sport.display_name,
            'unit_label': sport.unit_label,
            'players_per_unit': sport.players_per_unit,
            'active_unit_count': self.active_unit_count,
            'pick_range': self.pick_range,
            'waiting_queue': list(self.waiting_queue or []),
            'unit_occupants': dict(self.unit_occupants or {}),
            'roster': [p.to_dict() for p in self.roster_for_sport()],
            'match_history': list(self.match_history or []),
            'saved_queue_length': len(self.saved_queue or []),
            'has_join_secret': bool(self.join_secret),
            'has_power_guest_pin': bool(self.elevated_guest_secret),
            'gender_balanced': bool(self.gender_balanced),
            'avoid_repeats': bool(self.avoid_repeats),
            'repeat_enabled': bool(self.repeat_enabled),
            'repeat_interval_sec': self.repeat_interval_sec,
            'countdown_enabled': bool(self.countdown_enabled),
            'countdown_limit_sec': self.countdown_limit_sec,
            'announce_voice': self.announce_voice,
        }


class PendingRequest(db.Model):
    """A guest action waiting for the host to reconcile it."""
    __tablename__ = 'pending_request'
    id = db.Column(db.Integer, primary_key=True)
    club_id = db.Column(db.String(16), db.ForeignKey('club.id'), nullable=False, index=True)
    action = db.Column(db.String(32), nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    requester_name = db.Column(db.String(64), nullable=False, default='')
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    club = db.relationship('Club', back_populates='requests')

    def to_dict(self):
        return {
            'id': self.id,
            'club_id': self.club_id,
            'action': self.action,
            'payload': self.payload,
            'requester_name': self.requester_name,
        }
