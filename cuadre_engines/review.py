"""
Review transition function -- the cuadre approval lifecycle.

Responsibility:
    Apply a ReviewEvent to a ReviewStatus and return the new status plus
    the side effects the caller must perform.  Decides which transitions
    notify the cashiers.

Architecture position:
    Engines -- pure functions, zero I/O.  State types live in
    cuadre_kernel.domain.review; the cuadre service performs the side
    effects inside its transaction.

    pendiente --APPROVE--> aprobado    (terminal)
    pendiente --REJECT---> rechazado   (observation required)
    rechazado --RESUBMIT-> pendiente
    SAVE keeps pendiente / rechazado and is refused once aprobado.

Failure modes:
    - CuadreLockedError: any event on an approved cuadre.
    - MissingObservationError: REJECT without a non-blank observation.
    - InvalidReviewTransitionError: any other edge not listed above.
"""

from __future__ import annotations

from collections.abc import Hashable
from typing import Any

from cuadre_kernel.domain.review import (
    REVIEW_TRANSITIONS,
    ReviewEvent,
    ReviewEventType,
    ReviewStatus,
    SideEffect,
    TransitionOutcome,
)
from cuadre_kernel.exceptions import (
    CuadreLockedError,
    InvalidReviewTransitionError,
    MissingObservationError,
)
from cuadre_kernel.logging_config import get_logger

logger = get_logger("engines.review")

_TARGETS: dict[ReviewEventType, ReviewStatus] = {
    ReviewEventType.APPROVE: ReviewStatus.APROBADO,
    ReviewEventType.REJECT: ReviewStatus.RECHAZADO,
    ReviewEventType.RESUBMIT: ReviewStatus.PENDIENTE,
}

_SIDE_EFFECTS: dict[ReviewEventType, tuple[SideEffect, ...]] = {
    ReviewEventType.APPROVE: (
        SideEffect.STAMP_REVIEWER,
        SideEffect.CLEAR_OBSERVATIONS,
        SideEffect.APPROVE_CASHIER_SESSIONS,
    ),
    ReviewEventType.REJECT: (
        SideEffect.RECORD_OBSERVATION,
        SideEffect.STAMP_REVIEWER,
        SideEffect.REJECT_CASHIER_SESSIONS,
        SideEffect.NOTIFY_CASHIERS,
    ),
    ReviewEventType.RESUBMIT: (
        SideEffect.CLEAR_OBSERVATIONS,
        SideEffect.REOPEN_CASHIER_SESSIONS,
    ),
}

# Statuses cashiers are told about.
NOTIFY_ON: frozenset[ReviewStatus] = frozenset({
    ReviewStatus.APROBADO,
    ReviewStatus.RECHAZADO,
})


def transition(
    state: ReviewStatus | str,
    event: ReviewEvent,
    *,
    agency_id: Any = None,
    session_date: Any = None,
) -> TransitionOutcome:
    """Apply ``event`` to ``state``.

    ``agency_id``/``session_date`` only label the lock error.
    """
    current = ReviewStatus(state)

    if current == ReviewStatus.APROBADO:
        raise CuadreLockedError(agency_id, session_date)

    if event.type == ReviewEventType.SAVE:
        return TransitionOutcome(previous=current, status=current)

    target = _TARGETS[event.type]
    if target not in REVIEW_TRANSITIONS[current]:
        raise InvalidReviewTransitionError(current.value, event.type.value)

    observation: str | None = None
    if event.type == ReviewEventType.REJECT:
        observation = (event.observation or "").strip()
        if not observation:
            raise MissingObservationError()

    outcome = TransitionOutcome(
        previous=current,
        status=target,
        side_effects=_SIDE_EFFECTS[event.type],
        observation=observation,
    )
    logger.info(
        "review_transition_applied",
        extra={
            "from_status": current.value,
            "to_status": target.value,
            "event": event.type.value,
            "actor_id": event.actor_id,
        },
    )
    return outcome


def should_notify(
    previous: ReviewStatus | str | None,
    current: ReviewStatus | str,
) -> bool:
    """Cashiers hear about a change into aprobado or rechazado, nothing else."""
    current_status = ReviewStatus(current)
    if previous is not None and ReviewStatus(previous) == current_status:
        return False
    return current_status in NOTIFY_ON


class NotificationDeduper:
    """Remembers which (summary, status) pairs were already announced.

    Entries for a summary are dropped once it is announced as aprobado,
    which is terminal.
    """

    def __init__(self) -> None:
        self._seen: set[tuple[Hashable, ReviewStatus]] = set()

    def should_emit(
        self,
        summary_id: Hashable,
        previous: ReviewStatus | str | None,
        current: ReviewStatus | str,
    ) -> bool:
        if not should_notify(previous, current):
            return False
        status = ReviewStatus(current)
        key = (summary_id, status)
        if key in self._seen:
            return False
        if status == ReviewStatus.APROBADO:
            self.forget(summary_id)
        else:
            self._seen.add(key)
        return True

    def forget(self, summary_id: Hashable) -> None:
        self._seen = {key for key in self._seen if key[0] != summary_id}

    def __len__(self) -> int:
        return len(self._seen)
