"""
Playlist Engine.

Stateful container around the pure playlist functions for one module.
The host calls a mutator, the engine swaps in the new Session and notifies
subscribers; nothing re-renders implicitly.

Usage:
    engine = PlaylistEngine(config, units, enrollment_id="enr-1", module_id="mod-1")
    engine.initialize()
    decision = engine.resolve_next()
    engine.apply(decision)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Optional

from loguru import logger

from src.playlist import builder, gates, navigation, progress, resolver
from src.playlist.builder import GatePolicy
from src.playlist.models import (
    DEFAULT_ADAPTIVE_CONFIG,
    AdaptiveConfiguration,
    Decision,
    DisplayEntry,
    GateResult,
    GateStatus,
    LearningUnit,
    NodeProgress,
    PlaylistEntry,
    Session,
)

SessionListener = Callable[[Session], None]


class PlaylistEngine:
    """
    Runtime playlist for a single learner in a single module.

    The Session held here is replaced on every mutation, so snapshots
    returned earlier stay valid for diffing and persistence.
    """

    def __init__(
        self,
        config: Optional[AdaptiveConfiguration] = None,
        catalog: Iterable[LearningUnit] = (),
        *,
        enrollment_id: str = "",
        module_id: str = "",
        gate_policy: Optional[GatePolicy] = None,
        initial_node_progress: Optional[Mapping[str, NodeProgress]] = None,
    ):
        self.config = config or DEFAULT_ADAPTIVE_CONFIG
        self.catalog = tuple(catalog)
        self.enrollment_id = enrollment_id
        self.module_id = module_id
        self._gate_policy = gate_policy
        self._initial_node_progress = dict(initial_node_progress or {})
        self._listeners: list[SessionListener] = []
        self._session = Session(
            enrollment_id=enrollment_id,
            module_id=module_id,
            node_progress=self._initial_node_progress,
        )

    # ----- state ----------------------------------------------------------

    @property
    def session(self) -> Session:
        """Current session snapshot (JSON-serializable via to_dict())."""
        return self._session

    def initialize(self) -> Session:
        """Build the playlist from the catalog."""
        session = builder.build_session(
            self.catalog,
            self.config,
            enrollment_id=self.enrollment_id,
            module_id=self.module_id,
            gate_policy=self._gate_policy,
            node_progress=self._initial_node_progress,
        )
        return self._commit(session, force=True)

    def restore(self, session: Session) -> Session:
        """Resume from a previously persisted session."""
        logger.info(
            f"Restoring session for enrollment '{session.enrollment_id}', "
            f"module '{session.module_id}' at index {session.current_index}"
        )
        return self._commit(session, force=True)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, session: Session, force: bool = False) -> Session:
        if session is self._session and not force:
            return session
        self._session = session
        for listener in list(self._listeners):
            listener(session)
        return session

    # ----- progression ----------------------------------------------------

    def resolve_next(self) -> Decision:
        return resolver.resolve_next(self._session, self.config)

    def apply(self, decision: Decision) -> Session:
        return self._commit(resolver.apply_decision(self._session, decision))

    def step(self) -> Decision:
        """Resolve the next decision, apply it and return it."""
        decision = self.resolve_next()
        self.apply(decision)
        return decision

    # ----- gates and mastery ----------------------------------------------

    def record_gate_result(self, result: GateResult) -> Session:
        return self._commit(gates.record_gate_result(self._session, result))

    def gate_status(self, unit_id: str) -> GateStatus:
        return gates.gate_status(self._session, unit_id)

    def update_node_progress(self, node_id: str, node_progress: NodeProgress) -> Session:
        return self._commit(progress.update_node_progress(self._session, node_id, node_progress))

    # ----- navigation -----------------------------------------------------

    def go_to_index(self, index: int) -> Session:
        return self._commit(navigation.go_to_index(self._session, index))

    def current_entry(self) -> Optional[PlaylistEntry]:
        return navigation.current_entry(self._session)

    def is_complete(self) -> bool:
        return navigation.is_complete(self._session)

    def display_entries(self) -> list[DisplayEntry]:
        return navigation.display_entries(self._session)

    def navigable_indices(self) -> list[int]:
        return navigation.navigable_indices(self._session, self.config)
