"""
Adaptive Playlist Engine.

Decides, at runtime, which learning unit a learner sees next inside a
course module.

Components:
- builder: Materializes a catalog into the initial Session
- resolver: Computes and applies the next Decision
- gates: Records gate attempts and derives gate status
- progress: Stores per-node mastery reported by scoring collaborators
- navigation: Direct positioning and the sidebar display projection
- engine: PlaylistEngine state container with apply-and-notify
- session_store: JSON persistence of sessions between player mounts
"""
from src.playlist.builder import GatePolicy, build_session, default_gate_policy
from src.playlist.engine import PlaylistEngine
from src.playlist.errors import (
    AttemptSequenceError,
    GateNotPassedError,
    InvalidDecisionError,
    InvalidIndexError,
    InvalidSessionError,
    MasteryRangeError,
    NotAGateError,
    PlaylistContractError,
    PlaylistError,
    PlaylistInvariantError,
    UnknownUnitError,
)
from src.playlist.gates import (
    attempts_remaining,
    gate_attempts,
    gate_status,
    is_gate_satisfied,
    latest_attempt,
    record_gate_result,
)
from src.playlist.models import (
    DEFAULT_ADAPTIVE_CONFIG,
    AdaptiveConfiguration,
    AdaptiveMetadata,
    AdaptiveMode,
    Decision,
    DecisionAction,
    DisplayEntry,
    GateAttempt,
    GateResult,
    GateSettings,
    GateStatus,
    LearningUnit,
    NodeProgress,
    PlaylistEntry,
    Session,
    UnitCategory,
)
from src.playlist.navigation import (
    current_entry,
    display_entries,
    go_to_index,
    is_complete,
    navigable_indices,
    progress_summary,
)
from src.playlist.progress import node_mastery, update_node_progress
from src.playlist.resolver import apply_decision, resolve_next
from src.playlist.session_store import SessionStore, StoredSession, load_catalog

__all__ = [
    # Main engine
    "PlaylistEngine",
    # Operations
    "build_session",
    "default_gate_policy",
    "GatePolicy",
    "resolve_next",
    "apply_decision",
    "record_gate_result",
    "gate_attempts",
    "latest_attempt",
    "gate_status",
    "is_gate_satisfied",
    "attempts_remaining",
    "update_node_progress",
    "node_mastery",
    "go_to_index",
    "current_entry",
    "is_complete",
    "display_entries",
    "navigable_indices",
    "progress_summary",
    # Persistence
    "SessionStore",
    "StoredSession",
    "load_catalog",
    # Data models
    "AdaptiveConfiguration",
    "DEFAULT_ADAPTIVE_CONFIG",
    "AdaptiveMetadata",
    "GateSettings",
    "LearningUnit",
    "PlaylistEntry",
    "Session",
    "GateAttempt",
    "GateResult",
    "NodeProgress",
    "DisplayEntry",
    "Decision",
    # Enums
    "AdaptiveMode",
    "UnitCategory",
    "GateStatus",
    "DecisionAction",
    # Errors
    "PlaylistError",
    "PlaylistContractError",
    "PlaylistInvariantError",
    "InvalidIndexError",
    "AttemptSequenceError",
    "MasteryRangeError",
    "UnknownUnitError",
    "NotAGateError",
    "InvalidDecisionError",
    "InvalidSessionError",
    "GateNotPassedError",
]
