from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from courtqueue import db
from courtqueue.models import Club
from courtqueue.sports import is_known_sport
from courtqueue.services.queue import credentials
from courtqueue.services.queue.autopick import NotEnoughPlayers, select_next
from courtqueue.services.queue.outcomes import Applied, PersistenceFailed, Rejected
from courtqueue.services.queue.session import get_session, submit_request
from courtqueue.services.queue.state import sanitize_name, normalize_gender


clubs = Blueprint('clubs', __name__)

_BOOL_SETTINGS = ('gender_balanced', 'avoid_repeats', 'repeat_enabled', 'countdown_enabled')
_INT_SETTINGS = {
    'active_unit_count': (1, 50),
    'pick_range': (1, 100),
    'repeat_interval_sec': (5, 3600),
    'countdown_limit_sec': (5, 3600),
}


def _body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ''


def _load_club(code):
    club = db.session.get(Club, _text(code).upper())
    if club is None:
        return None, (jsonify({'error': 'Club not found'}), 404)
    return club, None


def _is_host(club) -> bool:
    return bool(current_user.is_authenticated and current_user.id == club.host_owner_id)


def _load_hosted_club(code):
    club, error = _load_club(code)
    if error:
        return None, error
    if not _is_host(club):
        return None, (jsonify({'error': 'Only the host can do that'}), 403)
    return club, None


def _respond(club_id, outcome):
    if isinstance(outcome, PersistenceFailed):
        return jsonify({'error': 'Could not save the change, try again'}), 503
    if outcome is None or isinstance(outcome, Rejected):
        reason = outcome.reason if outcome is not None else 'Nothing to change'
        return jsonify({'error': 'Action rejected', 'reason': reason}), 409
    club = db.session.get(Club, club_id)
    return jsonify(club.to_dict()), 200


def _parse_int(value, low, high):
    if isinstance(value, bool):
        raise ValueError('expected an integer')
    number = int(value)
    if number < low or number > high:
        raise ValueError(f'must be between {low} and {high}')
    return number


@clubs.route('/create', methods=['POST'])
@login_required
def create_club():
    data = _body()
    existing = (
        Club.query.filter_by(host_owner_id=current_user.id)
        .order_by(Club.created_at.desc())
        .first()
    )
    if existing and not data.get('new'):
        return jsonify(existing.to_dict()), 200

    cfg = current_app.config
    sport = data.get('sport') or cfg.get('DEFAULT_SPORT', 'badminton')
    if not is_known_sport(sport):
        return jsonify({'error': f'Unknown sport {sport}'}), 400
    try:
        units = _parse_int(data.get('active_unit_count', cfg.get('DEFAULT_ACTIVE_UNITS', 4)), *_INT_SETTINGS['active_unit_count'])
        pick_range = _parse_int(data.get('pick_range', cfg.get('DEFAULT_PICK_RANGE', 20)), *_INT_SETTINGS['pick_range'])
    except (TypeError, ValueError, OverflowError) as exc:
        return jsonify({'error': f'Invalid club settings: {exc}'}), 400

    club = Club(
        club_name=_text(data.get('club_name'))[:128] or None,
        host_owner_id=current_user.id,
        sport=sport,
        active_unit_count=units,
        pick_range=pick_range,
    )
    db.session.add(club)
    db.session.commit()
    current_app.logger.info(f"[club-create] club={club.id} host={current_user.id} sport={sport}")
    return jsonify(club.to_dict()), 201


@clubs.route('/join', methods=['POST'])
def join_club():
    data = _body()
    code = _text(data.get('club_id') or data.get('code'))
    name = sanitize_name(data.get('name'))
    if not code or not name:
        return jsonify({'error': 'Club code and player name are required'}), 400

    club, error = _load_club(code)
    if error:
        return error

    if club.join_secret:
        password_hash = data.get('password_hash')
        if isinstance(password_hash, str) and password_hash:
            ok = credentials.hash_matches(password_hash, club.join_secret)
        else:
            ok = credentials.verify_secret(data.get('password'), club.join_secret, credentials.LEGACY_JOIN)
        if not ok:
            current_app.logger.info(f"[join-denied] club={club.id} name={name}")
            return jsonify({'error': 'Incorrect club password'}), 403

    payload = {'players': [{'name': name, 'gender': normalize_gender(data.get('gender'))}]}
    submit_request(club.id, 'batch_join', payload, name)
    return jsonify({'message': 'Request sent', 'club_id': club.id, 'name': name}), 202


@clubs.route('/<string:code>/state', methods=['GET'])
def get_club_state(code):
    club, error = _load_club(code)
    if error:
        return error
    return jsonify(club.to_dict())


@clubs.route('/<string:code>/requests', methods=['POST'])
def post_request(code):
    club, error = _load_club(code)
    if error:
        return error
    data = _body()
    payload = data.get('payload')
    submit_request(club.id, data.get('action') or '', payload, data.get('requester_name') or '')
    return jsonify({'message': 'Request sent'}), 202


@clubs.route('/<string:code>/actions', methods=['POST'])
def post_host_action(code):
    club, error = _load_hosted_club(code)
    if error:
        return error
    data = _body()
    action = data.get('action')
    if not action:
        return jsonify({'error': 'action is required'}), 400
    outcome = get_session(club.id).execute(
        action,
        data.get('payload') or {},
        requester_name=data.get('requester_name') or '',
        from_host=True,
    )
    return _respond(club.id, outcome)


@clubs.route('/<string:code>/autopick', methods=['GET'])
def get_autopick(code):
    club, error = _load_club(code)
    if error:
        return error
    state = club.to_state()
    gender_balanced = request.args.get('gender_balanced')
    avoid_repeats = request.args.get('avoid_repeats')
    try:
        indices = select_next(
            state,
            gender_balanced=None if gender_balanced is None else gender_balanced.lower() in ('1', 'true', 'yes'),
            avoid_repeats=None if avoid_repeats is None else avoid_repeats.lower() in ('1', 'true', 'yes'),
        )
    except NotEnoughPlayers as exc:
        return jsonify({'error': str(exc), 'needed': exc.needed, 'available': exc.available}), 409
    return jsonify({
        'indices': indices,
        'players': [state.waiting_queue[i].name for i in indices],
    })


@clubs.route('/<string:code>/settings', methods=['PATCH'])
def update_settings(code):
    club, error = _load_hosted_club(code)
    if error:
        return error
    data = _body()

    changes = {}
    for key in _BOOL_SETTINGS:
        if key in data:
            changes[key] = bool(data[key])
    for key, (low, high) in _INT_SETTINGS.items():
        if key in data:
            try:
                changes[key] = _parse_int(data[key], low, high)
            except (TypeError, ValueError, OverflowError) as exc:
                return jsonify({'error': f'{key} {exc}'}), 400
    if 'sport' in data:
        if not is_known_sport(data['sport']):
            return jsonify({'error': f"Unknown sport {data['sport']}"}), 400
        changes['sport'] = data['sport']
    if 'club_name' in data:
        changes['club_name'] = _text(data.get('club_name'))[:128] or None
    if 'announce_voice' in data:
        changes['announce_voice'] = _text(data.get('announce_voice'))[:16] or 'en-US'

    for key in ('join_password', 'power_guest_pin'):
        value = data.get(key)
        if key in data and value is not None and (not isinstance(value, str) or not value.strip()):
            return jsonify({'error': f'{key} must be a non-empty string or null'}), 400

    def change(row):
        if changes.get('sport', row.sport) != row.sport and row.unit_occupants:
            return Rejected('finish or clear active matches before changing sport')
        for key, value in changes.items():
            setattr(row, key, value)
        state = row.to_state()
        lines = []
        if changes:
            lines.append('SYSTEM: Settings updated.')
        if 'join_password' in data:
            secret = data['join_password']
            state.join_secret = credentials.make_secret(secret.strip()) if secret else None
            lines.append('SECURITY: Join password set.' if secret else 'SECURITY: Join password removed.')
        if 'power_guest_pin' in data:
            pin = data['power_guest_pin']
            state.elevated_guest_secret = credentials.make_secret(pin.strip()) if pin else None
            if not pin:
                for entry in state.waiting_queue:
                    entry.is_elevated_guest = False
                for players in state.unit_occupants.values():
                    for entry in players:
                        entry.is_elevated_guest = False
            lines.append('SECURITY: Power guest PIN set.' if pin else 'SECURITY: Power guest PIN removed.')
        if not lines:
            return None
        return Applied(state, tuple(lines))

    return _respond(club.id, get_session(club.id).mutate(change))


@clubs.route('/<string:code>/reset', methods=['POST'])
def reset_club(code):
    club, error = _load_hosted_club(code)
    if error:
        return error
    session = get_session(club.id)

    def change(row):
        state = row.to_state()
        state.waiting_queue = []
        state.unit_occupants = {}
        return Applied(state, ('SYSTEM: Session reset.',), reset_idle=True)

    outcome = session.mutate(change)
    if isinstance(outcome, Applied):
        session.forget(list(session.heartbeats))
    return _respond(club.id, outcome)


@clubs.route('/<string:code>/wipe', methods=['POST'])
def wipe_club(code):
    club, error = _load_hosted_club(code)
    if error:
        return error
    session = get_session(club.id)

    def change(row):
        state = row.to_state()
        state.waiting_queue = []
        state.unit_occupants = {}
        state.roster = {}
        state.match_history = []
        state.saved_queue = []
        state.join_secret = None
        return Applied(state, ('SYSTEM: Full wipe. Roster, history and join password cleared.',), reset_idle=True)

    outcome = session.mutate(change)
    if isinstance(outcome, Applied):
        session.forget(list(session.heartbeats))
    return _respond(club.id, outcome)


@clubs.route('/<string:code>/restore', methods=['POST'])
def restore_club(code):
    club, error = _load_hosted_club(code)
    if error:
        return error

    def change(row):
        state = row.to_state()
        if not state.saved_queue:
            return Rejected('no saved queue to restore')
        state.waiting_queue = list(state.saved_queue)
        state.unit_occupants = {}
        return Applied(
            state,
            (f'SYSTEM: Queue restored ({len(state.waiting_queue)} players).',),
            reset_idle=True,
        )

    return _respond(club.id, get_session(club.id).mutate(change))


@clubs.route('/<string:code>/logs', methods=['GET'])
def get_logs(code):
    club, error = _load_hosted_club(code)
    if error:
        return error
    return jsonify({'logs': list(get_session(club.id).audit)})


@clubs.route('/<string:code>/roster', methods=['GET'])
def get_roster(code):
    club, error = _load_club(code)
    if error:
        return error
    sport = request.args.get('sport') or club.sport
    roster = club.to_state().roster.get(sport, [])
    return jsonify({'sport': sport, 'players': [p.to_dict() for p in roster]})
