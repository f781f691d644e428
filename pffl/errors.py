"""Error kinds raised by the rules engine.

Business-rule rejections are returned as structured results, not raised.
These exceptions cover missing records, store conflicts and unavailable
collaborators.
"""

VALIDATION_ERROR = 'ValidationError'
NOT_FOUND = 'NotFound'
CONFLICT = 'Conflict'
PRECONDITION_FAILED = 'PreconditionFailed'
UPSTREAM_UNAVAILABLE = 'UpstreamUnavailable'


class LeagueError(Exception):
    """Base class for rules-engine errors."""

    kind = 'LeagueError'
    retryable = False

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_envelope(self) -> dict:
        envelope = {'ok': False, 'errorKind': self.kind, 'message': self.message}
        if self.details:
            envelope['details'] = self.details
        return envelope


class RuleViolation(LeagueError):
    """An invariant was violated."""

    kind = VALIDATION_ERROR


class NotFound(LeagueError):
    """A referenced player, participant or chip does not exist."""

    kind = NOT_FOUND


class Conflict(LeagueError):
    """A concurrent mutation won the race; the caller should retry."""

    kind = CONFLICT
    retryable = True


class PreconditionFailed(LeagueError):
    kind = PRECONDITION_FAILED


class UpstreamUnavailable(LeagueError):
    """Performance feed or record store could not be reached."""

    kind = UPSTREAM_UNAVAILABLE
