"""Auto-pick: choose the next group to play.

The selector only proposes queue indices; committing them is a normal
``start_match`` request so the engine stays the only place state changes.
"""

from itertools import combinations
from typing import List


class NotEnoughPlayers(ValueError):
    def __init__(self, needed: int, available: int):
        super().__init__(f'Not enough active players in range (need {needed}, have {available}).')
        self.needed = needed
        self.available = available


def _eligible(state):
    limit = state.pick_range or 20
    return [
        (idx, entry)
        for idx, entry in enumerate(state.waiting_queue)
        if idx < limit and not entry.is_paused
    ]


def _gender_balanced(pool, size):
    half = size // 2
    males = [item for item in pool if item[1].gender != 'F']
    females = [item for item in pool if item[1].gender == 'F']
    if len(males) >= half and len(females) >= half:
        return males[:half] + females[:half]
    return None


def _repeats_last_match(selected, last_match) -> bool:
    names = {entry.name for _, entry in selected}
    return any(a in names and b in names for a, b in combinations(last_match.players(), 2))


def select_next(state, gender_balanced=None, avoid_repeats=None) -> List[int]:
    """Return the queue indices of the next players to send on court.

    Raises :class:`NotEnoughPlayers` when fewer eligible players than one
    unit needs are within the pick range.
    """
    if gender_balanced is None:
        gender_balanced = state.gender_balanced
    if avoid_repeats is None:
        avoid_repeats = state.avoid_repeats

    size = state.players_per_unit
    pool = _eligible(state)
    if len(pool) < size:
        raise NotEnoughPlayers(size, len(pool))

    selected = None
    if gender_balanced and size % 2 == 0:
        selected = _gender_balanced(pool, size)
    if selected is None:
        selected = pool[:size]

    if avoid_repeats and state.match_history:
        last_match = state.match_history[0]
        if _repeats_last_match(selected, last_match):
            played = set(last_match.players())
            kept = selected[:-1]
            kept_names = {entry.name for _, entry in kept}
            for item in pool:
                if item[1].name not in played and item[1].name not in kept_names:
                    selected = kept + [item]
                    break

    return [idx for idx, _ in selected]
