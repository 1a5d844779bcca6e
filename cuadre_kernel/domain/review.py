"""
Review domain types (``cuadre_kernel.domain.review``).

Responsibility
--------------
Value objects for the review lifecycle of one day's cuadre: the status
enum, the events a supervisor or cashier can raise, the side effects a
transition asks the caller to perform, and the locking rules.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  The transition
function itself lives in ``cuadre_engines.review``.

Invariants enforced
-------------------
* ``REVIEW_TRANSITIONS`` lists the only status changes a cuadre can make.
  ``aprobado`` has no outgoing edge: there is no "unapprove".
* Entering ``rechazado`` always carries a non-empty observation.
* Entering ``aprobado`` clears any prior observation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ReviewStatus(str, Enum):
    """Review states. Values are the stored column values."""

    PENDIENTE = "pendiente"
    APROBADO = "aprobado"
    RECHAZADO = "rechazado"


REVIEW_TRANSITIONS: dict[ReviewStatus, frozenset[ReviewStatus]] = {
    ReviewStatus.PENDIENTE: frozenset({
        ReviewStatus.APROBADO,
        ReviewStatus.RECHAZADO,
    }),
    ReviewStatus.RECHAZADO: frozenset({ReviewStatus.PENDIENTE}),
    ReviewStatus.APROBADO: frozenset(),
}

TERMINAL_REVIEW_STATUSES: frozenset[ReviewStatus] = frozenset({
    ReviewStatus.APROBADO,
})


class ReviewEventType(str, Enum):
    SAVE = "save"
    APPROVE = "approve"
    REJECT = "reject"
    RESUBMIT = "resubmit"


class SideEffect(str, Enum):
    """Work a transition asks the service to perform, in listed order."""

    STAMP_REVIEWER = "stamp_reviewer"
    CLEAR_OBSERVATIONS = "clear_observations"
    RECORD_OBSERVATION = "record_observation"
    APPROVE_CASHIER_SESSIONS = "approve_cashier_sessions"
    REJECT_CASHIER_SESSIONS = "reject_cashier_sessions"
    REOPEN_CASHIER_SESSIONS = "reopen_cashier_sessions"
    NOTIFY_CASHIERS = "notify_cashiers"


@dataclass(frozen=True)
class ReviewEvent:
    """Something an actor did to a cuadre."""

    type: ReviewEventType
    actor_id: str | None = None
    observation: str | None = None

    @classmethod
    def save(cls, actor_id: str | None = None) -> ReviewEvent:
        return cls(ReviewEventType.SAVE, actor_id)

    @classmethod
    def approve(cls, actor_id: str) -> ReviewEvent:
        return cls(ReviewEventType.APPROVE, actor_id)

    @classmethod
    def reject(cls, actor_id: str, observation: str | None) -> ReviewEvent:
        return cls(ReviewEventType.REJECT, actor_id, observation)

    @classmethod
    def resubmit(cls, actor_id: str | None = None) -> ReviewEvent:
        return cls(ReviewEventType.RESUBMIT, actor_id)


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of applying a ReviewEvent to a ReviewStatus."""

    previous: ReviewStatus
    status: ReviewStatus
    side_effects: tuple[SideEffect, ...] = ()
    observation: str | None = None

    @property
    def changed(self) -> bool:
        return self.previous != self.status


def is_cuadre_locked(status: ReviewStatus | str | None) -> bool:
    """A consolidated cuadre is read-only once approved."""
    return status is not None and ReviewStatus(status) == ReviewStatus.APROBADO


def is_session_locked(
    closure_confirmed: bool, status: ReviewStatus | str | None
) -> bool:
    """A cashier's closure is locked once confirmed, unless it was rejected."""
    if not closure_confirmed:
        return False
    return status is None or ReviewStatus(status) != ReviewStatus.RECHAZADO
