"""In-memory snapshot of a club session.

``ClubState`` is the plain-data view of a :class:`courtqueue.models.Club`
row. The engine, the auto-pick selector and the supervisors only ever see
this snapshot; converting to and from the database row happens in
``models.py``.
"""

import re
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional

from courtqueue.sports import get_sport_config

MAX_NAME_LENGTH = 20
HISTORY_LIMIT = 100

_DISALLOWED = re.compile(r'[^A-Za-z0-9 ]')
_WHITESPACE = re.compile(r'\s+')


def sanitize_name(raw) -> str:
    """Normalise a player name into the form used as its unique key."""
    if not isinstance(raw, str):
        return ''
    name = _DISALLOWED.sub('', raw)
    name = _WHITESPACE.sub(' ', name).strip().upper()
    return name[:MAX_NAME_LENGTH].rstrip()


def normalize_gender(raw) -> str:
    if isinstance(raw, str) and raw.strip().upper().startswith('F'):
        return 'F'
    return 'M'


@dataclass
class QueueEntry:
    name: str
    gender: str = 'M'
    is_paused: bool = False
    is_elevated_guest: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> 'QueueEntry':
        return cls(
            name=data.get('name', ''),
            gender=normalize_gender(data.get('gender')),
            is_paused=bool(data.get('is_paused', False)),
            is_elevated_guest=bool(data.get('is_elevated_guest', False)),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class RosterPlayer:
    name: str
    gender: str = 'M'
    games: int = 0
    wins: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> 'RosterPlayer':
        return cls(
            name=data.get('name', ''),
            gender=normalize_gender(data.get('gender')),
            games=int(data.get('games') or 0),
            wins=int(data.get('wins') or 0),
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MatchRecord:
    timestamp: str
    unit: int
    team_a: List[str]
    team_b: List[str]
    winners: List[str]

    @classmethod
    def from_dict(cls, data: dict) -> 'MatchRecord':
        return cls(
            timestamp=data.get('timestamp', ''),
            unit=int(data.get('unit') or 0),
            team_a=list(data.get('team_a') or []),
            team_b=list(data.get('team_b') or []),
            winners=list(data.get('winners') or []),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    def players(self) -> List[str]:
        return self.team_a + self.team_b


@dataclass
class ClubState:
    id: str
    host_owner_id: Optional[int] = None
    sport: str = 'badminton'
    active_unit_count: int = 4
    pick_range: int = 20
    waiting_queue: List[QueueEntry] = field(default_factory=list)
    unit_occupants: Dict[str, List[QueueEntry]] = field(default_factory=dict)
    roster: Dict[str, List[RosterPlayer]] = field(default_factory=dict)
    match_history: List[MatchRecord] = field(default_factory=list)
    saved_queue: List[QueueEntry] = field(default_factory=list)
    join_secret: Optional[str] = None
    elevated_guest_secret: Optional[str] = None
    gender_balanced: bool = False
    avoid_repeats: bool = False

    @property
    def sport_config(self):
        return get_sport_config(self.sport)

    @property
    def players_per_unit(self) -> int:
        return self.sport_config.players_per_unit

    def sport_roster(self) -> List[RosterPlayer]:
        return self.roster.setdefault(self.sport, [])

    def find_roster_player(self, name: str) -> Optional[RosterPlayer]:
        for player in self.roster.get(self.sport, []):
            if player.name == name:
                return player
        return None

    def queue_index(self, name: str) -> int:
        for idx, entry in enumerate(self.waiting_queue):
            if entry.name == name:
                return idx
        return -1

    def queue_entry(self, name: str) -> Optional[QueueEntry]:
        idx = self.queue_index(name)
        return self.waiting_queue[idx] if idx != -1 else None

    def first_active(self) -> Optional[QueueEntry]:
        for entry in self.waiting_queue:
            if not entry.is_paused:
                return entry
        return None

    def active_count(self) -> int:
        return sum(1 for entry in self.waiting_queue if not entry.is_paused)

    def unit_of(self, name: str) -> Optional[str]:
        for key, players in self.unit_occupants.items():
            if any(p.name == name for p in players):
                return key
        return None

    def is_elevated(self, name: str) -> bool:
        entry = self.queue_entry(name)
        return bool(entry and entry.is_elevated_guest)

    def unit_label(self, unit_key) -> str:
        return f"{self.sport_config.unit_label} {int(unit_key) + 1}"
