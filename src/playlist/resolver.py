"""
Decision Resolver.

Computes what happens next for a session without touching it, and applies
a decision to produce the following session.

Resolution order:
1. Complete session -> complete
2. Current entry is a gate without a passing latest attempt
   -> retry-gate (or hold once a configured attempt cap is used up)
3. Nothing left after the current entry -> complete
4. Off mode -> advance
5. Adaptive modes -> branch over the run of upcoming non-required entries
   whose nodes are already mastered, otherwise advance
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from typing import Optional

from loguru import logger

from src.playlist.errors import (
    GateNotPassedError,
    InvalidDecisionError,
    InvalidIndexError,
)
from src.playlist.gates import attempt_cap, gate_attempts, is_gate_satisfied
from src.playlist.models import (
    DEFAULT_ADAPTIVE_CONFIG,
    AdaptiveConfiguration,
    Decision,
    DecisionAction,
    PlaylistEntry,
    Session,
)
from src.playlist.progress import nodes_mastered

ResolverFn = Callable[[Session, AdaptiveConfiguration], Decision]


def next_active_index(session: Session, after: int) -> Optional[int]:
    """First index after `after` whose entry has not been skipped."""
    for index in range(after + 1, len(session.playlist)):
        if session.playlist[index].id not in session.skipped:
            return index
    return None


def is_skip_candidate(session: Session, entry: PlaylistEntry, threshold: float) -> bool:
    """Non-required, non-gate entry whose every taught node is mastered."""
    return entry.is_skippable and nodes_mastered(session, entry.teaches_nodes, threshold)


def resolve_next(
    session: Session,
    config: AdaptiveConfiguration = DEFAULT_ADAPTIVE_CONFIG,
) -> Decision:
    """
    Decide the next step for the learner.

    Args:
        session: Current session (not modified)
        config: Adaptive configuration for the course

    Returns:
        Decision for the player shell
    """
    if session.is_complete:
        return Decision.complete()

    current = session.playlist[session.current_index]
    if current.is_gate and not is_gate_satisfied(session, current.id):
        return _resolve_unpassed_gate(session, current, config)

    next_index = next_active_index(session, session.current_index)
    if next_index is None:
        return Decision.complete()

    if not config.mode.is_adaptive:
        return Decision.advance()

    run = _mastered_run(session, next_index, config.mastery_threshold)
    if not run:
        return Decision.advance()

    target = next_active_index(session, run[-1])
    if target is None:
        target = len(session.playlist)
    skipped_ids = [session.playlist[index].id for index in run]
    return Decision.branch(
        target,
        skipped_ids,
        reason=f"{len(run)} entries already mastered at {config.mastery_threshold:.0%}",
    )


def _resolve_unpassed_gate(
    session: Session,
    entry: PlaylistEntry,
    config: AdaptiveConfiguration,
) -> Decision:
    attempts = len(gate_attempts(session, entry.id))
    cap = attempt_cap(entry, config)
    if cap is not None and attempts >= cap:
        return Decision.hold(
            f"Gate '{entry.title}' failed {attempts} of {cap} allowed attempts"
        )
    if attempts == 0:
        return Decision.retry_gate(f"Gate '{entry.title}' has not been attempted")
    return Decision.retry_gate(f"Gate '{entry.title}' failed attempt #{attempts}")


def _mastered_run(session: Session, start: int, threshold: float) -> list[int]:
    """Indices of consecutive active skip candidates beginning at `start`."""
    run: list[int] = []
    index: Optional[int] = start
    while index is not None:
        if not is_skip_candidate(session, session.playlist[index], threshold):
            break
        run.append(index)
        index = next_active_index(session, index)
    return run


def apply_decision(session: Session, decision: Decision) -> Session:
    """
    Apply a decision and return the resulting session.

    retry-gate and hold leave the session unchanged.

    Raises:
        GateNotPassedError: Moving past a gate whose latest attempt did not pass
        InvalidDecisionError: Decision inconsistent with the session
        InvalidIndexError: Branch target outside the playlist
    """
    action = decision.action
    if not action.moves:
        return session

    if session.is_complete:
        if action is DecisionAction.COMPLETE:
            return session
        raise InvalidDecisionError(f"Cannot apply '{action.value}' to a complete session")

    current = session.playlist[session.current_index]
    if current.is_gate and not is_gate_satisfied(session, current.id):
        attempts = len(gate_attempts(session, current.id))
        logger.warning(f"Blocked '{action.value}' past unpassed gate '{current.id}'")
        raise GateNotPassedError(current.id, attempts)

    # A skipped entry revisited through go_to_index stays skipped only
    completed = session.completed
    if current.id not in session.skipped:
        completed = completed | {current.id}
    next_index = next_active_index(session, session.current_index)

    if action is DecisionAction.ADVANCE:
        new_index = next_index if next_index is not None else len(session.playlist)
        result = replace(session, current_index=new_index, completed=completed)
    elif action is DecisionAction.BRANCH:
        result = _apply_branch(session, decision, completed)
    elif action is DecisionAction.COMPLETE:
        if next_index is not None:
            raise InvalidDecisionError(
                f"Cannot complete: entry '{session.playlist[next_index].id}' is still ahead"
            )
        result = replace(session, current_index=len(session.playlist), completed=completed)
    else:
        raise InvalidDecisionError(f"Unknown decision action {action!r}")

    logger.debug(
        f"Applied {action.value}: index {session.current_index} -> {result.current_index}"
    )
    if result.is_complete:
        logger.info(f"Module '{session.module_id}' playlist complete")
    return result


def _apply_branch(session: Session, decision: Decision, completed: frozenset[str]) -> Session:
    target = decision.target_index
    length = len(session.playlist)
    if isinstance(target, bool) or not isinstance(target, int) or not (
        session.current_index < target <= length
    ):
        raise InvalidIndexError(
            target,
            length,
            f"Branch target {target!r} must be within ({session.current_index}, {length}]",
        )
    if target < length and session.playlist[target].id in session.skipped:
        raise InvalidDecisionError(f"Branch target '{session.playlist[target].id}' was skipped")

    passed_over = [
        entry
        for entry in session.playlist[session.current_index + 1:target]
        if entry.id not in session.skipped
    ]
    for entry in passed_over:
        if not entry.is_skippable:
            raise InvalidDecisionError(
                f"Branch cannot skip '{entry.id}' (required, gate or not skippable)"
            )

    passed_ids = tuple(entry.id for entry in passed_over)
    if decision.skipped_ids and tuple(decision.skipped_ids) != passed_ids:
        raise InvalidDecisionError(
            f"Branch lists {list(decision.skipped_ids)} but passes over {list(passed_ids)}"
        )

    return replace(
        session,
        current_index=target,
        completed=completed,
        skipped=session.skipped | set(passed_ids),
    )
