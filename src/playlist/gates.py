"""
Gate Subsystem.

Records pass/fail outcomes for gated units and derives gate status.
Recording never moves the session: the player shell shows feedback first,
then asks the resolver what to do next.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from loguru import logger

from src.playlist.errors import (
    AttemptSequenceError,
    MasteryRangeError,
    NotAGateError,
    UnknownUnitError,
)
from src.playlist.models import (
    AdaptiveConfiguration,
    GateAttempt,
    GateResult,
    GateStatus,
    PlaylistEntry,
    Session,
    is_unit_interval,
)


def gate_attempts(session: Session, unit_id: str) -> tuple[GateAttempt, ...]:
    """All recorded attempts for a gate, oldest first."""
    return session.gate_attempts.get(unit_id, ())


def latest_attempt(session: Session, unit_id: str) -> Optional[GateAttempt]:
    attempts = gate_attempts(session, unit_id)
    return attempts[-1] if attempts else None


def gate_status(session: Session, unit_id: str) -> GateStatus:
    """Status from the latest attempt only; earlier failures do not linger."""
    latest = latest_attempt(session, unit_id)
    if latest is None:
        return GateStatus.PENDING
    return GateStatus.PASSED if latest.passed else GateStatus.FAILED


def is_gate_satisfied(session: Session, unit_id: str) -> bool:
    return gate_status(session, unit_id) is GateStatus.PASSED


def attempt_cap(entry: PlaylistEntry, config: AdaptiveConfiguration) -> Optional[int]:
    """Per-gate cap if the unit defines one, else the course-wide cap."""
    settings = entry.gate_settings
    if settings is not None and settings.max_attempts is not None:
        return settings.max_attempts
    return config.max_gate_attempts


def attempts_remaining(
    session: Session,
    entry: PlaylistEntry,
    config: AdaptiveConfiguration,
) -> Optional[int]:
    """Attempts left before the gate holds, or None when unlimited."""
    cap = attempt_cap(entry, config)
    if cap is None:
        return None
    return max(0, cap - len(gate_attempts(session, entry.id)))


def record_gate_result(session: Session, result: GateResult) -> Session:
    """
    Append a gate attempt to the session.

    Args:
        session: Current session
        result: Outcome reported by the assessment collaborator

    Returns:
        New session with the attempt appended

    Raises:
        UnknownUnitError: If the unit is not in the playlist
        NotAGateError: If the entry is not a gate
        AttemptSequenceError: If attempt_number is not previous count + 1
        MasteryRangeError: If score is outside [0, 1]
    """
    index = session.index_of(result.unit_id)
    if index is None:
        logger.warning(f"Gate result for unknown unit '{result.unit_id}'")
        raise UnknownUnitError(result.unit_id)

    entry = session.playlist[index]
    if not entry.is_gate:
        logger.warning(f"Gate result for non-gate unit '{result.unit_id}'")
        raise NotAGateError(result.unit_id)

    previous = gate_attempts(session, result.unit_id)
    expected = len(previous) + 1
    if result.attempt_number != expected:
        logger.warning(
            f"Out-of-sequence attempt for '{result.unit_id}': "
            f"expected #{expected}, got #{result.attempt_number}"
        )
        raise AttemptSequenceError(result.unit_id, expected, result.attempt_number)

    if not is_unit_interval(result.score):
        raise MasteryRangeError(f"Gate score {result.score} is outside [0, 1]")

    attempts = dict(session.gate_attempts)
    attempts[result.unit_id] = previous + (result.to_attempt(),)

    logger.debug(
        f"Gate '{result.unit_id}' attempt #{result.attempt_number}: "
        f"{'passed' if result.passed else 'failed'} (score={result.score:.2f})"
    )
    return replace(session, gate_attempts=attempts)
