"""
Playlist Builder.

Materializes a static catalog of learning units into the initial Session:
- Stable sort by sequence (ties keep catalog order)
- One PlaylistEntry per unit
- Gate tagging through an overridable GatePolicy
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Optional

from loguru import logger

from src.playlist.errors import MasteryRangeError, PlaylistContractError
from src.playlist.models import (
    AdaptiveConfiguration,
    LearningUnit,
    NodeProgress,
    PlaylistEntry,
    Session,
    is_unit_interval,
)

# (unit, position in sorted playlist, configuration) -> is the unit a gate?
GatePolicy = Callable[[LearningUnit, int, AdaptiveConfiguration], bool]


def default_gate_policy(
    unit: LearningUnit,
    position: int,
    config: AdaptiveConfiguration,
) -> bool:
    """
    Decide whether a unit blocks progression until a check is passed.

    A unit is a gate when:
    - its category is one of config.gate_categories (graded by default)
    - its adaptive metadata flags it as a gate
    - it is first in sequence and the pre-assessment is enabled
    """
    if unit.category is not None and unit.category in config.gate_categories:
        return True
    if unit.adaptive is not None and unit.adaptive.is_gate:
        return True
    return config.pre_assessment_enabled and position == 0


def sort_catalog(catalog: Iterable[LearningUnit]) -> list[LearningUnit]:
    """Order units by sequence; sorted() is stable so ties keep input order."""
    return sorted(catalog, key=lambda unit: unit.sequence)


def build_session(
    catalog: Iterable[LearningUnit],
    config: AdaptiveConfiguration,
    *,
    enrollment_id: str = "",
    module_id: str = "",
    gate_policy: Optional[GatePolicy] = None,
    node_progress: Optional[Mapping[str, NodeProgress]] = None,
) -> Session:
    """
    Build the initial session for one (enrollment, module) pair.

    Args:
        catalog: Learning units in catalog order
        config: Adaptive configuration for the course
        enrollment_id: Enrollment the session belongs to
        module_id: Module the session covers
        gate_policy: Host override for gate tagging
        node_progress: Mastery carried over from earlier modules

    Returns:
        Session positioned on the first entry (complete when the catalog is empty)

    Raises:
        PlaylistContractError: If two units share an id
        MasteryRangeError: If seeded node progress is out of range
    """
    policy = gate_policy or default_gate_policy
    units = sort_catalog(catalog)

    seen: set[str] = set()
    for unit in units:
        if unit.id in seen:
            raise PlaylistContractError(f"Duplicate learning unit id '{unit.id}' in catalog")
        seen.add(unit.id)

    seeded = dict(node_progress or {})
    for node_id, progress in seeded.items():
        if not is_unit_interval(progress.mastery) or progress.attempts < 0:
            raise MasteryRangeError(f"Seeded progress for node '{node_id}' is out of range")

    playlist = tuple(
        PlaylistEntry.from_unit(unit, is_gate=bool(policy(unit, position, config)))
        for position, unit in enumerate(units)
    )

    session = Session(
        playlist=playlist,
        current_index=0,
        node_progress=seeded,
        enrollment_id=enrollment_id,
        module_id=module_id,
    )

    gates = sum(1 for entry in playlist if entry.is_gate)
    logger.info(
        f"Built playlist for module '{module_id}': {len(playlist)} entries, "
        f"{gates} gates, mode={config.mode.value}"
    )
    if session.is_complete:
        logger.debug("Empty catalog, session starts complete")

    return session
