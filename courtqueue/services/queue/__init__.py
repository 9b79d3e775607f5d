"""Queue reconciliation: typed requests, the pure engine, auto-pick,
credentials, the per-club session handle and the idle supervisors.

Import submodules directly; ``session`` and ``supervisor`` pull in the
database models.
"""
