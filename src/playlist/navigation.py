"""
Navigation Facade.

Direct positioning for review, "back" and instructor overrides, plus the
read-only projection handed to the playlist sidebar. go_to_index bypasses
the resolver and is exempt from gate checks.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Optional

from loguru import logger

from src.playlist.errors import InvalidIndexError
from src.playlist.gates import gate_status, is_gate_satisfied
from src.playlist.models import (
    AdaptiveConfiguration,
    DisplayEntry,
    PlaylistEntry,
    Session,
)


def go_to_index(session: Session, index: int) -> Session:
    """
    Move the current position directly.

    Raises:
        InvalidIndexError: If index is not within [0, len(playlist))
    """
    length = len(session.playlist)
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < length:
        logger.warning(f"Rejected navigation to index {index!r} (playlist length {length})")
        raise InvalidIndexError(index, length)

    if index == session.current_index:
        return session
    logger.debug(f"Navigated {session.current_index} -> {index}")
    return replace(session, current_index=index)


def current_entry(session: Session) -> Optional[PlaylistEntry]:
    """Entry at the current position, or None once the session is complete."""
    if session.is_complete:
        return None
    return session.playlist[session.current_index]


def is_complete(session: Session) -> bool:
    return session.is_complete


def display_entries(session: Session) -> list[DisplayEntry]:
    """One render-ready entry per playlist entry."""
    entries = []
    for index, entry in enumerate(session.playlist):
        entries.append(
            DisplayEntry(
                id=entry.id,
                title=entry.title,
                unit_type=entry.unit.type,
                category=entry.unit.category,
                is_current=index == session.current_index,
                is_completed=entry.id in session.completed,
                is_skipped=entry.id in session.skipped,
                is_gate=entry.is_gate,
                gate_status=gate_status(session, entry.id) if entry.is_gate else None,
            )
        )
    return entries


def navigable_indices(session: Session, config: AdaptiveConfiguration) -> list[int]:
    """
    Indices a sidebar should offer as clickable.

    With learner choice every entry is open. Otherwise entries are open up to
    and including the first gate not yet passed, along with any entry already
    completed or skipped. Advisory only: go_to_index does not consult it.
    """
    if config.allow_learner_choice:
        return list(range(len(session.playlist)))

    open_indices = []
    blocked = False
    for index, entry in enumerate(session.playlist):
        visited = entry.id in session.completed or entry.id in session.skipped
        if not blocked or visited:
            open_indices.append(index)
        if entry.is_gate and not is_gate_satisfied(session, entry.id):
            blocked = True
    return open_indices


def progress_summary(session: Session) -> dict[str, Any]:
    """Counts for a progress bar; percentage is clamped to [0, 100]."""
    total = len(session.playlist)
    completed = len(session.completed)
    skipped = len(session.skipped)
    done = len(session.completed | session.skipped)
    if total == 0:
        percentage = 100.0
    else:
        percentage = min(100.0, max(0.0, done / total * 100))
    return {
        "total": total,
        "completed": completed,
        "skipped": skipped,
        "remaining": max(0, total - done),
        "percentage": round(percentage, 1),
        "is_complete": session.is_complete,
    }
