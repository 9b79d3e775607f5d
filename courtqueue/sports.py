"""Static sport catalog.

Each sport names its play area ("Court", "Table", "Board") and how many
players one unit holds. Unknown keys fall back to the default sport.
"""

from collections import namedtuple

SportConfig = namedtuple('SportConfig', ['key', 'display_name', 'unit_label', 'players_per_unit'])

SPORTS = {
    'badminton': SportConfig('badminton', 'Badminton', 'Court', 4),
    'pickleball': SportConfig('pickleball', 'Pickleball', 'Court', 4),
    'tennis': SportConfig('tennis', 'Tennis', 'Court', 4),
    'tableTennis': SportConfig('tableTennis', 'Table Tennis', 'Table', 2),
    'squash': SportConfig('squash', 'Squash', 'Court', 2),
    'padel': SportConfig('padel', 'Padel', 'Court', 4),
    'pool': SportConfig('pool', 'Pool', 'Table', 2),
    'darts': SportConfig('darts', 'Darts', 'Board', 2),
    'volleyball': SportConfig('volleyball', 'Volleyball', 'Court', 6),
    'basketball': SportConfig('basketball', 'Basketball', 'Court', 10),
}

DEFAULT_SPORT = 'badminton'


def get_sport_config(sport=None) -> SportConfig:
    return SPORTS.get(sport or DEFAULT_SPORT) or SPORTS[DEFAULT_SPORT]


def is_known_sport(sport) -> bool:
    return isinstance(sport, str) and sport in SPORTS
