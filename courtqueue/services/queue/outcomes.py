from dataclasses import dataclass
from typing import Optional, Tuple

from .state import ClubState


@dataclass(frozen=True)
class Rejected:
    """Ignored request: no state change, nothing recorded for the requester."""
    reason: str = ''


@dataclass(frozen=True)
class RejectedWithAudit:
    """Ignored request that still leaves a line in the host's audit log."""
    log_line: str


@dataclass(frozen=True)
class Applied:
    state: ClubState
    audit_lines: Tuple[str, ...] = ()
    announcement: Optional[str] = None
    reset_idle: bool = False
    persist: bool = True


@dataclass(frozen=True)
class PersistenceFailed:
    """The outcome could not be written; in-memory state was rolled back."""
    reason: str = ''
