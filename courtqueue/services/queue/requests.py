"""Typed request variants and the boundary parser.

Inbound requests arrive as ``{action, payload, requester_name}`` from the
network. ``parse_request`` validates the payload once and returns one frozen
dataclass per action, so the engine never has to poke at raw dicts.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from .state import sanitize_name, normalize_gender


class MalformedRequest(ValueError):
    """Raised when an inbound payload cannot be turned into a request."""


@dataclass(frozen=True)
class JoinPlayer:
    name: str
    gender: str


@dataclass(frozen=True)
class Request:
    requester: str
    from_host: bool


@dataclass(frozen=True)
class BatchJoin(Request):
    players: Tuple[JoinPlayer, ...]


@dataclass(frozen=True)
class TogglePause(Request):
    target: str


@dataclass(frozen=True)
class Leave(Request):
    target: str


@dataclass(frozen=True)
class Substitute(Request):
    unit: int
    out_player: str
    in_player: str


@dataclass(frozen=True)
class StartMatch(Request):
    unit: int
    players: Tuple[str, ...]


@dataclass(frozen=True)
class FinishMatch(Request):
    unit: int
    winners: Tuple[str, ...]


@dataclass(frozen=True)
class GrantPowerGuest(Request):
    target: str
    grant: bool


@dataclass(frozen=True)
class ClaimPowerGuest(Request):
    pin_hash: Optional[str]
    pin: Optional[str]


@dataclass(frozen=True)
class Heartbeat(Request):
    pass


def _unit(payload: dict) -> int:
    raw = payload.get('unit')
    if isinstance(raw, bool):
        raise MalformedRequest('unit must be an integer')
    if isinstance(raw, float) and not raw.is_integer():
        raise MalformedRequest('unit must be an integer')
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        raise MalformedRequest('unit must be an integer')


def _name_of(item) -> str:
    if isinstance(item, dict):
        return sanitize_name(item.get('name'))
    return sanitize_name(item)


def _names(raw) -> Tuple[str, ...]:
    if not isinstance(raw, (list, tuple)):
        raise MalformedRequest('expected a list of players')
    return tuple(_name_of(item) for item in raw)


def _target(payload: dict) -> str:
    target = sanitize_name(payload.get('name'))
    if not target:
        raise MalformedRequest('name is required')
    return target


def _parse_batch_join(payload, requester, from_host):
    raw = payload.get('players')
    if not isinstance(raw, list) or not raw:
        raise MalformedRequest('players must be a non-empty list')
    players = []
    for item in raw:
        if not isinstance(item, dict):
            raise MalformedRequest('each player must be an object')
        name = sanitize_name(item.get('name'))
        if not name:
            raise MalformedRequest('player name is empty after sanitizing')
        players.append(JoinPlayer(name=name, gender=normalize_gender(item.get('gender'))))
    return BatchJoin(requester=requester, from_host=from_host, players=tuple(players))


def _parse_toggle_pause(payload, requester, from_host):
    return TogglePause(requester=requester, from_host=from_host, target=_target(payload))


def _parse_leave(payload, requester, from_host):
    return Leave(requester=requester, from_host=from_host, target=_target(payload))


def _parse_substitute(payload, requester, from_host):
    out_player = sanitize_name(payload.get('out_player'))
    in_player = sanitize_name(payload.get('in_player'))
    if not (out_player and in_player):
        raise MalformedRequest('out_player and in_player are required')
    return Substitute(
        requester=requester,
        from_host=from_host,
        unit=_unit(payload),
        out_player=out_player,
        in_player=in_player,
    )


def _parse_start_match(payload, requester, from_host):
    return StartMatch(
        requester=requester,
        from_host=from_host,
        unit=_unit(payload),
        players=_names(payload.get('players')),
    )


def _parse_finish_match(payload, requester, from_host):
    winners = payload.get('winners') or []
    return FinishMatch(
        requester=requester,
        from_host=from_host,
        unit=_unit(payload),
        winners=_names(winners),
    )


def _parse_grant_power_guest(payload, requester, from_host):
    return GrantPowerGuest(
        requester=requester,
        from_host=from_host,
        target=_target(payload),
        grant=bool(payload.get('grant', True)),
    )


def _parse_claim_power_guest(payload, requester, from_host):
    pin_hash = payload.get('pin_hash')
    pin = payload.get('pin')
    if not isinstance(pin_hash, str):
        pin_hash = None
    if not isinstance(pin, str):
        pin = None
    else:
        pin = pin.strip() or None
    if not (pin_hash or pin):
        raise MalformedRequest('pin or pin_hash is required')
    return ClaimPowerGuest(requester=requester, from_host=from_host, pin_hash=pin_hash, pin=pin)


def _parse_heartbeat(payload, requester, from_host):
    return Heartbeat(requester=requester, from_host=from_host)


_PARSERS = {
    'batch_join': _parse_batch_join,
    'toggle_pause': _parse_toggle_pause,
    'leave': _parse_leave,
    'substitute': _parse_substitute,
    'start_match': _parse_start_match,
    'finish_match': _parse_finish_match,
    'grant_power_guest': _parse_grant_power_guest,
    'claim_power_guest': _parse_claim_power_guest,
    'heartbeat': _parse_heartbeat,
}

ACTIONS = frozenset(_PARSERS)


def parse_request(action, payload, requester_name, from_host: bool = False) -> Request:
    """Build the typed request for ``action`` or raise :class:`MalformedRequest`."""
    parser = _PARSERS.get(action) if isinstance(action, str) else None
    if parser is None:
        raise MalformedRequest(f'unknown action {action!r}')
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise MalformedRequest('payload must be an object')
    requester = sanitize_name(requester_name)
    if not requester and not from_host:
        raise MalformedRequest('requester name is required')
    return parser(payload, requester, bool(from_host))
