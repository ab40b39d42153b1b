"""
Playlist Engine Data Models.

Design:
- LearningUnit / AdaptiveConfiguration: read-only inputs supplied by the host
- PlaylistEntry: materialized, orderable view of one unit in a session
- Session: the engine's single source of truth, replaced (never mutated)
  on every transition
- DisplayEntry / Decision: the only values handed to presentation layers

Serialized form (to_dict/from_dict) uses camelCase keys so that hosts
persisting the session keep a stable JSON shape.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.playlist.errors import (
    InvalidSessionError,
    MasteryRangeError,
    PlaylistContractError,
)


class AdaptiveMode(str, Enum):
    """
    Sequencing mode for a course module.

    GUIDED and FULL behave the same here: both enforce gates and both
    branch past mastered entries. Only OFF vs adaptive changes resolution.
    """

    OFF = "off"  # Linear traversal, gates still enforced
    GUIDED = "guided"
    FULL = "full"

    @property
    def is_adaptive(self) -> bool:
        """Whether mastery-based branching is enabled."""
        return self is not AdaptiveMode.OFF


class UnitCategory(str, Enum):
    """Pedagogical category of a learning unit."""

    TOPIC = "topic"
    PRACTICE = "practice"
    ASSIGNMENT = "assignment"
    GRADED = "graded"


class GateStatus(str, Enum):
    """Gate state shown to the learner, derived from the latest attempt."""

    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"

    @property
    def icon(self) -> str:
        """Status glyph for CLI/UI display."""
        return {
            GateStatus.PENDING: "◇",
            GateStatus.PASSED: "◆",
            GateStatus.FAILED: "✗",
        }[self]


class DecisionAction(str, Enum):
    """What the resolver wants the player shell to do next."""

    ADVANCE = "advance"
    BRANCH = "branch"
    RETRY_GATE = "retry-gate"
    COMPLETE = "complete"
    HOLD = "hold"

    @property
    def moves(self) -> bool:
        """Whether applying this action changes the current position."""
        return self in {
            DecisionAction.ADVANCE,
            DecisionAction.BRANCH,
            DecisionAction.COMPLETE,
        }


# ============================================================================
# Inputs
# ============================================================================


@dataclass(frozen=True)
class GateSettings:
    """Per-gate checkpoint configuration."""

    mastery_threshold: float = 0.8  # Score a challenge needs to count as passed
    min_questions: int = 3
    max_attempts: int | None = None  # None = unlimited

    def __post_init__(self):
        if not is_unit_interval(self.mastery_threshold):
            raise MasteryRangeError(
                f"Gate mastery threshold must be within [0, 1], got {self.mastery_threshold}"
            )
        if self.max_attempts is not None and (
            isinstance(self.max_attempts, bool)
            or not isinstance(self.max_attempts, int)
            or self.max_attempts < 1
        ):
            raise PlaylistContractError(
                f"Gate max_attempts must be a positive integer or None, got {self.max_attempts!r}"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GateSettings:
        """
        Create from a camelCase dictionary.

        Also accepts maxRetries (retries after the first failure, -1 for
        unlimited) and converts it to an attempt cap; maxAttempts wins when
        both are present.
        """
        if "maxAttempts" in data:
            max_attempts = data["maxAttempts"]
        else:
            max_attempts = _retries_to_attempts(data.get("maxRetries"))
        return cls(
            mastery_threshold=float(data.get("masteryThreshold", 0.8)),
            min_questions=int(data.get("minQuestions", 3)),
            max_attempts=max_attempts,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "masteryThreshold": self.mastery_threshold,
            "minQuestions": self.min_questions,
            "maxAttempts": self.max_attempts,
        }


@dataclass(frozen=True)
class AdaptiveMetadata:
    """Knowledge-graph annotations attached to a learning unit."""

    teaches_nodes: tuple[str, ...] = ()
    assesses_nodes: tuple[str, ...] = ()
    is_gate: bool = False
    is_skippable: bool = True
    gate: GateSettings | None = None

    def __post_init__(self):
        object.__setattr__(self, "teaches_nodes", tuple(self.teaches_nodes))
        object.__setattr__(self, "assesses_nodes", tuple(self.assesses_nodes))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AdaptiveMetadata:
        """Create from a camelCase dictionary."""
        gate = data.get("gateConfig")
        return cls(
            teaches_nodes=tuple(data.get("teachesNodes", ())),
            assesses_nodes=tuple(data.get("assessesNodes", ())),
            is_gate=bool(data.get("isGate", False)),
            is_skippable=bool(data.get("isSkippable", True)),
            gate=GateSettings.from_dict(gate) if gate else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "teachesNodes": list(self.teaches_nodes),
            "assessesNodes": list(self.assesses_nodes),
            "isGate": self.is_gate,
            "isSkippable": self.is_skippable,
            "gateConfig": self.gate.to_dict() if self.gate else None,
        }


@dataclass(frozen=True)
class LearningUnit:
    """One addressable piece of course content (the syllabus is a list of these)."""

    id: str
    title: str
    type: str = "media"
    content_id: str | None = None
    category: UnitCategory | None = None
    is_required: bool = True
    sequence: int = 0
    estimated_duration: int | None = None  # Seconds, informational only
    adaptive: AdaptiveMetadata | None = None

    def __post_init__(self):
        if self.category is not None and not isinstance(self.category, UnitCategory):
            object.__setattr__(self, "category", UnitCategory(self.category))

    @property
    def node_ids(self) -> tuple[str, ...]:
        """Knowledge nodes this unit teaches or assesses, in first-seen order."""
        if self.adaptive is None:
            return ()
        seen = dict.fromkeys(self.adaptive.teaches_nodes + self.adaptive.assesses_nodes)
        return tuple(seen)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LearningUnit:
        """Create from the catalog's camelCase JSON shape."""
        adaptive = data.get("adaptive")
        category = data.get("category")
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            type=data.get("type", "media"),
            content_id=data.get("contentId"),
            category=UnitCategory(category) if category else None,
            is_required=bool(data.get("isRequired", True)),
            sequence=int(data.get("sequence", 0)),
            estimated_duration=data.get("estimatedDuration"),
            adaptive=AdaptiveMetadata.from_dict(adaptive) if adaptive else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "contentId": self.content_id,
            "category": self.category.value if self.category else None,
            "isRequired": self.is_required,
            "sequence": self.sequence,
            "estimatedDuration": self.estimated_duration,
            "adaptive": self.adaptive.to_dict() if self.adaptive else None,
        }


class AdaptiveConfiguration(BaseModel):
    """
    Course-level sequencing settings.

    mastery_threshold, gate_categories and max_gate_attempts are explicit
    so that hosts never depend on constants buried in the resolver.
    """

    model_config = ConfigDict(frozen=True)

    mode: AdaptiveMode = Field(AdaptiveMode.OFF, description="Sequencing mode")
    allow_learner_choice: bool = Field(
        False, description="Whether learners may navigate freely"
    )
    pre_assessment_enabled: bool = Field(
        False, description="Whether the first unit acts as a diagnostic gate"
    )
    mastery_threshold: float = Field(
        0.7, ge=0.0, le=1.0, description="Mastery at which adaptive mode skips a unit"
    )
    gate_categories: frozenset[UnitCategory] = Field(
        default_factory=lambda: frozenset({UnitCategory.GRADED}),
        description="Unit categories tagged as gates",
    )
    max_gate_attempts: int | None = Field(
        None, ge=1, description="Attempts allowed per gate (None = unlimited)"
    )


DEFAULT_ADAPTIVE_CONFIG = AdaptiveConfiguration()


# ============================================================================
# Session State
# ============================================================================


@dataclass(frozen=True)
class PlaylistEntry:
    """A learning unit materialized into a session's playlist."""

    id: str
    title: str
    unit: LearningUnit
    is_gate: bool = False
    is_required: bool = True

    @property
    def node_ids(self) -> tuple[str, ...]:
        return self.unit.node_ids

    @property
    def teaches_nodes(self) -> tuple[str, ...]:
        """Nodes whose mastery lets adaptive branching pass over this entry."""
        if self.unit.adaptive is None:
            return ()
        return self.unit.adaptive.teaches_nodes

    @property
    def is_skippable(self) -> bool:
        """Whether adaptive branching may ever pass over this entry."""
        if self.is_required or self.is_gate:
            return False
        return self.unit.adaptive is None or self.unit.adaptive.is_skippable

    @property
    def gate_settings(self) -> GateSettings | None:
        if self.unit.adaptive is None:
            return None
        return self.unit.adaptive.gate

    @classmethod
    def from_unit(cls, unit: LearningUnit, is_gate: bool) -> PlaylistEntry:
        return cls(
            id=unit.id,
            title=unit.title,
            unit=unit,
            is_gate=is_gate,
            is_required=unit.is_required,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "isGate": self.is_gate,
            "isRequired": self.is_required,
            "sourceUnit": self.unit.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PlaylistEntry:
        unit = LearningUnit.from_dict(data["sourceUnit"])
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", unit.title)),
            unit=unit,
            is_gate=bool(data["isGate"]),
            is_required=bool(data.get("isRequired", unit.is_required)),
        )


@dataclass(frozen=True)
class GateAttempt:
    """One recorded pass/fail check of a gate. Immutable once recorded."""

    passed: bool
    score: float
    attempt_number: int  # 1-based, per unit
    failed_nodes: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "failed_nodes", tuple(self.failed_nodes))

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "score": self.score,
            "attemptNumber": self.attempt_number,
            "failedNodes": list(self.failed_nodes),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GateAttempt:
        return cls(
            passed=bool(data["passed"]),
            score=float(data["score"]),
            attempt_number=int(data["attemptNumber"]),
            failed_nodes=tuple(data.get("failedNodes", ())),
        )


@dataclass(frozen=True)
class GateResult:
    """Outcome of a gate challenge reported by an assessment collaborator."""

    unit_id: str
    passed: bool
    score: float
    attempt_number: int
    failed_nodes: tuple[str, ...] = ()

    def to_attempt(self) -> GateAttempt:
        return GateAttempt(
            passed=self.passed,
            score=self.score,
            attempt_number=self.attempt_number,
            failed_nodes=tuple(self.failed_nodes),
        )


@dataclass(frozen=True)
class NodeProgress:
    """Mastery of one knowledge node, as computed by the scoring collaborator."""

    mastery: float
    attempts: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"mastery": self.mastery, "attempts": self.attempts}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NodeProgress:
        return cls(mastery=float(data["mastery"]), attempts=int(data.get("attempts", 0)))


@dataclass(frozen=True)
class Session:
    """
    Per-learner, per-module playlist state.

    Every engine operation returns a new Session; the maps are read-only
    views over private copies so a snapshot held by the host never changes
    underneath it.
    """

    playlist: tuple[PlaylistEntry, ...] = ()
    current_index: int = 0
    completed: frozenset[str] = frozenset()
    skipped: frozenset[str] = frozenset()
    gate_attempts: Mapping[str, tuple[GateAttempt, ...]] = field(default_factory=dict)
    node_progress: Mapping[str, NodeProgress] = field(default_factory=dict)
    enrollment_id: str = ""
    module_id: str = ""

    def __post_init__(self):
        object.__setattr__(self, "playlist", tuple(self.playlist))
        object.__setattr__(self, "completed", frozenset(self.completed))
        object.__setattr__(self, "skipped", frozenset(self.skipped))
        object.__setattr__(
            self,
            "gate_attempts",
            MappingProxyType({k: tuple(v) for k, v in self.gate_attempts.items()}),
        )
        object.__setattr__(self, "node_progress", MappingProxyType(dict(self.node_progress)))

    @property
    def is_complete(self) -> bool:
        return not self.playlist or self.current_index >= len(self.playlist)

    @property
    def entry_ids(self) -> tuple[str, ...]:
        return tuple(entry.id for entry in self.playlist)

    def index_of(self, unit_id: str) -> int | None:
        """Position of the entry built from unit_id, or None."""
        for index, entry in enumerate(self.playlist):
            if entry.id == unit_id:
                return index
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable primitives."""
        return {
            "enrollmentId": self.enrollment_id,
            "moduleId": self.module_id,
            "playlist": [entry.to_dict() for entry in self.playlist],
            "currentIndex": self.current_index,
            "completed": sorted(self.completed),
            "skipped": sorted(self.skipped),
            "gateAttempts": {
                unit_id: [attempt.to_dict() for attempt in attempts]
                for unit_id, attempts in self.gate_attempts.items()
            },
            "nodeProgress": {
                node_id: progress.to_dict()
                for node_id, progress in self.node_progress.items()
            },
            "isComplete": self.is_complete,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Session:
        """
        Restore a session persisted with to_dict().

        Raises:
            InvalidSessionError: If the data is malformed or inconsistent
        """
        try:
            playlist = tuple(PlaylistEntry.from_dict(e) for e in data.get("playlist", ()))
            session = cls(
                playlist=playlist,
                current_index=int(data.get("currentIndex", 0)),
                completed=frozenset(data.get("completed", ())),
                skipped=frozenset(data.get("skipped", ())),
                gate_attempts={
                    unit_id: tuple(GateAttempt.from_dict(a) for a in attempts)
                    for unit_id, attempts in data.get("gateAttempts", {}).items()
                },
                node_progress={
                    node_id: NodeProgress.from_dict(p)
                    for node_id, p in data.get("nodeProgress", {}).items()
                },
                enrollment_id=str(data.get("enrollmentId", "")),
                module_id=str(data.get("moduleId", "")),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise InvalidSessionError(f"Malformed session data: {e}") from e

        _check_restored(session)
        return session


def _check_restored(session: Session) -> None:
    ids = session.entry_ids
    known = set(ids)
    if len(known) != len(ids):
        raise InvalidSessionError("Playlist contains duplicate entry ids")
    if not 0 <= session.current_index <= len(ids):
        raise InvalidSessionError(
            f"currentIndex {session.current_index} outside [0, {len(ids)}]"
        )
    for name in ("completed", "skipped", "gate_attempts"):
        stray = set(getattr(session, name)) - known
        if stray:
            raise InvalidSessionError(f"{name} references unknown entries: {sorted(stray)}")
    for unit_id, attempts in session.gate_attempts.items():
        numbers = [a.attempt_number for a in attempts]
        if numbers != list(range(1, len(numbers) + 1)):
            raise InvalidSessionError(f"Gate '{unit_id}' has non-sequential attempts {numbers}")
    for node_id, progress in session.node_progress.items():
        if not is_unit_interval(progress.mastery) or progress.attempts < 0:
            raise InvalidSessionError(f"Node '{node_id}' has invalid progress {progress}")


def is_unit_interval(value: float) -> bool:
    return not math.isnan(value) and 0.0 <= value <= 1.0


def _retries_to_attempts(retries: Any) -> int | None:
    if retries is None or retries == -1:
        return None
    if isinstance(retries, bool) or not isinstance(retries, int) or retries < 0:
        raise PlaylistContractError(f"Gate maxRetries must be -1 or non-negative, got {retries!r}")
    return retries + 1


# ============================================================================
# Outputs
# ============================================================================


@dataclass(frozen=True)
class DisplayEntry:
    """Render-ready projection of one playlist entry for a sidebar."""

    id: str
    title: str
    unit_type: str
    category: UnitCategory | None
    is_current: bool
    is_completed: bool
    is_skipped: bool
    is_gate: bool
    gate_status: GateStatus | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "unitType": self.unit_type,
            "category": self.category.value if self.category else None,
            "isCurrent": self.is_current,
            "isCompleted": self.is_completed,
            "isSkipped": self.is_skipped,
            "isGate": self.is_gate,
            "gateStatus": self.gate_status.value if self.gate_status else None,
        }


@dataclass(frozen=True)
class Decision:
    """What to do next, as computed by the resolver."""

    action: DecisionAction
    target_index: int | None = None  # branch only
    skipped_ids: tuple[str, ...] = ()  # branch only
    reason: str | None = None

    @classmethod
    def advance(cls) -> Decision:
        return cls(DecisionAction.ADVANCE)

    @classmethod
    def branch(cls, target_index: int, skipped_ids: Iterable[str], reason: str | None = None) -> Decision:
        return cls(
            DecisionAction.BRANCH,
            target_index=target_index,
            skipped_ids=tuple(skipped_ids),
            reason=reason,
        )

    @classmethod
    def retry_gate(cls, reason: str | None = None) -> Decision:
        return cls(DecisionAction.RETRY_GATE, reason=reason)

    @classmethod
    def complete(cls) -> Decision:
        return cls(DecisionAction.COMPLETE)

    @classmethod
    def hold(cls, reason: str) -> Decision:
        return cls(DecisionAction.HOLD, reason=reason)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"action": self.action.value}
        if self.action is DecisionAction.BRANCH:
            data["targetIndex"] = self.target_index
            data["skippedIds"] = list(self.skipped_ids)
        if self.reason:
            data["reason"] = self.reason
        return data
