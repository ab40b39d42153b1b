"""
Playlist engine exceptions.

Two families:
- PlaylistContractError: the calling layer passed something invalid
  (bad index, out-of-sequence attempt, mastery outside [0, 1]).
- PlaylistInvariantError: the engine was asked to move past a gate that
  has not been passed.
"""

from __future__ import annotations


class PlaylistError(Exception):
    """Base class for every error raised by the playlist engine."""


class PlaylistContractError(PlaylistError, ValueError):
    """Raised when a caller violates an operation's contract."""


class InvalidIndexError(PlaylistContractError):
    """Raised when an index does not address a playlist entry."""

    def __init__(self, index: object, length: int, message: str | None = None):
        self.index = index
        self.length = length
        super().__init__(
            message or f"Index {index!r} is outside the playlist range [0, {length})"
        )


class AttemptSequenceError(PlaylistContractError):
    """Raised when a gate attempt number is not the next one in sequence."""

    def __init__(self, unit_id: str, expected: int, received: int):
        self.unit_id = unit_id
        self.expected = expected
        self.received = received
        super().__init__(
            f"Gate '{unit_id}' expected attempt #{expected}, got #{received}"
        )


class MasteryRangeError(PlaylistContractError):
    """Raised when a mastery value, score or attempt count is out of range."""


class UnknownUnitError(PlaylistContractError):
    """Raised when a unit id is not part of the session's playlist."""

    def __init__(self, unit_id: str):
        self.unit_id = unit_id
        super().__init__(f"Unit '{unit_id}' is not part of this playlist")


class NotAGateError(PlaylistContractError):
    """Raised when a gate result targets an entry that is not a gate."""

    def __init__(self, unit_id: str):
        self.unit_id = unit_id
        super().__init__(f"Unit '{unit_id}' is not a gate")


class InvalidDecisionError(PlaylistContractError):
    """Raised when a decision cannot be applied to the session."""


class InvalidSessionError(PlaylistContractError):
    """Raised when serialized session data cannot be restored."""


class PlaylistInvariantError(PlaylistError):
    """Raised when an operation would break a sequencing invariant."""


class GateNotPassedError(PlaylistInvariantError):
    """Raised when progression is attempted past a gate that was not passed."""

    def __init__(self, unit_id: str, attempts: int):
        self.unit_id = unit_id
        self.attempts = attempts
        state = "no attempts" if attempts == 0 else f"latest of {attempts} attempts failed"
        super().__init__(f"Cannot move past gate '{unit_id}' ({state})")
