"""Reconciliation engine.

``apply`` takes the current :class:`ClubState` and one typed request and
returns an outcome value. It never mutates its input and never raises: every
precondition failure becomes :class:`Rejected`, every credential failure
:class:`RejectedWithAudit`, and every accepted request an :class:`Applied`
carrying a fresh state plus the side effects the caller should emit.
"""

import copy
import datetime

from . import credentials
from .outcomes import Applied, Rejected, RejectedWithAudit
from .requests import (
    BatchJoin,
    ClaimPowerGuest,
    FinishMatch,
    GrantPowerGuest,
    Heartbeat,
    Leave,
    MalformedRequest,
    StartMatch,
    Substitute,
    TogglePause,
    parse_request,
)
from .state import HISTORY_LIMIT, MatchRecord, QueueEntry, RosterPlayer

MAX_RECORDED_WINNERS = 2


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def is_trusted(state, request) -> bool:
    return request.from_host or state.is_elevated(request.requester)


def _may_target(state, request, target: str) -> bool:
    return target == request.requester or is_trusted(state, request)


def _team_str(names) -> str:
    if len(names) == 1:
        return names[0]
    return ', '.join(names[:-1]) + ' and ' + names[-1]


def _split_teams(names):
    half = len(names) // 2
    return list(names[:half]), list(names[half:])


def _bump_stat(state, entry: QueueEntry, stat: str) -> None:
    player = state.find_roster_player(entry.name)
    if player is None:
        player = RosterPlayer(name=entry.name, gender=entry.gender)
        state.sport_roster().append(player)
    setattr(player, stat, getattr(player, stat) + 1)


def _batch_join(state, req: BatchJoin, now):
    if not is_trusted(state, req) and any(p.name != req.requester for p in req.players):
        return Rejected(f'{req.requester} tried to add other players')

    nxt = copy.deepcopy(state)
    roster = nxt.sport_roster()
    added = roster_added = 0
    seen = set()
    for player in req.players:
        if player.name in seen:
            continue
        seen.add(player.name)
        if nxt.find_roster_player(player.name) is None:
            roster.append(RosterPlayer(name=player.name, gender=player.gender))
            roster_added += 1
        if nxt.queue_index(player.name) != -1 or nxt.unit_of(player.name) is not None:
            continue
        nxt.waiting_queue.append(QueueEntry(name=player.name, gender=player.gender))
        added += 1

    if not (added or roster_added):
        return Rejected('all players already present')
    if not added:
        return Applied(nxt, (f'ROSTER: {roster_added} player(s) added.',))
    plural = 's' if added > 1 else ''
    return Applied(
        nxt,
        (f'QUEUE: {added} player(s) added.',),
        announcement=f'{added} player{plural} added to the queue.',
    )


def _toggle_pause(state, req: TogglePause, now):
    if not _may_target(state, req, req.target):
        return Rejected(f'{req.requester} tried to pause {req.target}')
    idx = state.queue_index(req.target)
    if idx == -1:
        return Rejected(f'{req.target} is not queued')
    nxt = copy.deepcopy(state)
    entry = nxt.waiting_queue[idx]
    entry.is_paused = not entry.is_paused
    status = 'Resting' if entry.is_paused else 'Active'
    return Applied(nxt, (f'STATUS: {req.target} is now {status}.',), reset_idle=True)


def _leave(state, req: Leave, now):
    if not _may_target(state, req, req.target):
        return Rejected(f'{req.requester} tried to remove {req.target}')
    if state.queue_index(req.target) == -1:
        return Rejected(f'{req.target} is not queued')
    nxt = copy.deepcopy(state)
    nxt.waiting_queue = [e for e in nxt.waiting_queue if e.name != req.target]
    return Applied(nxt, (f'QUEUE: {req.target} left.',), reset_idle=True)


def _substitute(state, req: Substitute, now):
    if not is_trusted(state, req):
        return Rejected('substitute requires a trusted actor')
    key = str(req.unit)
    if key not in state.unit_occupants:
        return Rejected(f'unit {key} is not busy')
    in_idx = state.queue_index(req.in_player)
    if in_idx == -1:
        return Rejected(f'{req.in_player} is not waiting')

    nxt = copy.deepcopy(state)
    players = nxt.unit_occupants[key]
    out_idx = next((i for i, p in enumerate(players) if p.name == req.out_player), -1)
    if out_idx == -1:
        return Rejected(f'{req.out_player} is not on unit {key}')

    incoming = nxt.waiting_queue.pop(in_idx)
    incoming.is_paused = False
    outgoing = players[out_idx]
    outgoing.is_paused = False
    players[out_idx] = incoming
    nxt.waiting_queue.append(outgoing)

    label = nxt.unit_label(key)
    return Applied(
        nxt,
        (f'SUB: {req.out_player} <-> {req.in_player} on {label}.',),
        announcement=f'{req.in_player} is substituting {req.out_player} on {label.lower()}.',
    )


def _start_match(state, req: StartMatch, now):
    unit_count = state.active_unit_count or 10
    if req.unit < 0 or req.unit >= unit_count:
        return Rejected(f'unit {req.unit} out of range')
    key = str(req.unit)
    if key in state.unit_occupants:
        return Rejected(f'unit {key} is busy')
    names = list(req.players)
    if len(names) != state.players_per_unit:
        return Rejected('wrong player count')
    if any(not n for n in names) or len(set(names)) != len(names):
        return Rejected('duplicate or blank player names')

    if not is_trusted(state, req):
        if req.requester not in names:
            return Rejected(f'{req.requester} is not one of the players')
        first = state.first_active()
        if first is None or first.name != req.requester:
            return Rejected(f'{req.requester} is not first in line')
        limit = state.pick_range or 20
        for name in names:
            idx = state.queue_index(name)
            if idx == -1 or idx >= limit or state.waiting_queue[idx].is_paused:
                return Rejected(f'{name} is not eligible to be picked')

    if any(state.queue_index(name) == -1 for name in names):
        return Rejected('picked player is not waiting')

    nxt = copy.deepcopy(state)
    picked = [nxt.queue_entry(name) for name in names]
    nxt.waiting_queue = [e for e in nxt.waiting_queue if e.name not in names]
    nxt.unit_occupants[key] = picked
    for entry in picked:
        _bump_stat(nxt, entry, 'games')

    label = nxt.unit_label(key)
    team_a, team_b = _split_teams(names)
    message = f'{label} ready. {_team_str(team_a)} versus {_team_str(team_b)}.'
    next_up = nxt.first_active()
    if next_up is not None:
        message += f' Next up is {next_up.name}.'
    return Applied(nxt, (f'MATCH: {label} started.',), announcement=message, reset_idle=True)


def _finish_match(state, req: FinishMatch, now):
    key = str(req.unit)
    occupants = state.unit_occupants.get(key)
    if not occupants:
        return Rejected(f'unit {key} is not busy')
    names = [p.name for p in occupants]
    if not is_trusted(state, req) and req.requester not in names:
        return Rejected(f'{req.requester} is not playing on unit {key}')

    winners = []
    for name in req.winners:
        if name in names and name not in winners:
            winners.append(name)
    winners = winners[:MAX_RECORDED_WINNERS]

    nxt = copy.deepcopy(state)
    returning = nxt.unit_occupants.pop(key)
    for entry in returning:
        if entry.name in winners:
            _bump_stat(nxt, entry, 'wins')
    team_a, team_b = _split_teams(names)
    record = MatchRecord(
        timestamp=now.isoformat(),
        unit=req.unit,
        team_a=team_a,
        team_b=team_b,
        winners=winners,
    )
    nxt.match_history = [record] + nxt.match_history[:HISTORY_LIMIT - 1]
    nxt.waiting_queue.extend(returning)
    nxt.saved_queue = copy.deepcopy(nxt.waiting_queue)

    label = nxt.unit_label(key)
    return Applied(
        nxt,
        (f"MATCH: {label} finished. Winners: {', '.join(winners) or 'none'}",),
        reset_idle=True,
    )


def _grant_power_guest(state, req: GrantPowerGuest, now):
    if not req.from_host:
        return Rejected('only the host may grant power guest')
    idx = state.queue_index(req.target)
    if idx == -1:
        return Rejected(f'{req.target} is not queued')
    nxt = copy.deepcopy(state)
    nxt.waiting_queue[idx].is_elevated_guest = req.grant
    verb = 'granted' if req.grant else 'revoked'
    return Applied(nxt, (f'POWER: {req.target} {verb} power guest.',))


def _claim_power_guest(state, req: ClaimPowerGuest, now):
    stored = state.elevated_guest_secret
    if not stored:
        return Rejected('power guest is not enabled')
    if req.pin_hash:
        ok = credentials.hash_matches(req.pin_hash, stored)
    else:
        ok = credentials.verify_secret(req.pin, stored, credentials.LEGACY_PIN)
    if not ok:
        return RejectedWithAudit(f'SECURITY: {req.requester} used wrong power guest PIN.')
    idx = state.queue_index(req.requester)
    if idx == -1:
        return Rejected(f'{req.requester} is not queued')
    if state.waiting_queue[idx].is_elevated_guest:
        return Rejected(f'{req.requester} is already a power guest')
    nxt = copy.deepcopy(state)
    nxt.waiting_queue[idx].is_elevated_guest = True
    return Applied(nxt, (f'POWER: {req.requester} claimed power guest status.',))


def _heartbeat(state, req: Heartbeat, now):
    return Applied(state, persist=False)


_HANDLERS = {
    BatchJoin: _batch_join,
    TogglePause: _toggle_pause,
    Leave: _leave,
    Substitute: _substitute,
    StartMatch: _start_match,
    FinishMatch: _finish_match,
    GrantPowerGuest: _grant_power_guest,
    ClaimPowerGuest: _claim_power_guest,
    Heartbeat: _heartbeat,
}


def apply(state, request, now=None):
    handler = _HANDLERS.get(type(request))
    if handler is None:
        return Rejected(f'unsupported request {type(request).__name__}')
    return handler(state, request, now or _utcnow())


def reconcile(state, action, payload, requester_name, from_host=False, now=None):
    """Parse a raw request and apply it; malformed input is simply rejected."""
    try:
        request = parse_request(action, payload, requester_name, from_host)
    except MalformedRequest as exc:
        return Rejected(f'malformed {action}: {exc}')
    return apply(state, request, now)
