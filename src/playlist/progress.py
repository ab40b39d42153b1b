"""
Node Progress Tracker.

Stores per-concept mastery reported by the scoring collaborator.
The engine computes no mastery itself; it only validates and exposes it.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from loguru import logger

from src.playlist.errors import MasteryRangeError
from src.playlist.models import NodeProgress, Session, is_unit_interval


def update_node_progress(session: Session, node_id: str, progress: NodeProgress) -> Session:
    """
    Overwrite the stored progress for one knowledge node.

    Raises:
        MasteryRangeError: If mastery is outside [0, 1] or attempts is negative
    """
    if not is_unit_interval(progress.mastery):
        logger.warning(f"Rejected mastery {progress.mastery} for node '{node_id}'")
        raise MasteryRangeError(
            f"Mastery for node '{node_id}' must be within [0, 1], got {progress.mastery}"
        )
    if progress.attempts < 0:
        raise MasteryRangeError(
            f"Attempts for node '{node_id}' must be non-negative, got {progress.attempts}"
        )

    if session.node_progress.get(node_id) == progress:
        return session

    nodes = dict(session.node_progress)
    nodes[node_id] = progress
    logger.debug(f"Node '{node_id}' mastery={progress.mastery:.2f} attempts={progress.attempts}")
    return replace(session, node_progress=nodes)


def node_mastery(session: Session, node_id: str) -> float:
    """Stored mastery for a node, 0.0 if never reported."""
    progress = session.node_progress.get(node_id)
    return progress.mastery if progress else 0.0


def nodes_mastered(session: Session, node_ids: Iterable[str], threshold: float) -> bool:
    """True when there is at least one node and every one meets the threshold."""
    node_ids = tuple(node_ids)
    if not node_ids:
        return False
    return all(node_mastery(session, node_id) >= threshold for node_id in node_ids)
