"""
Tests for the review transition function and notification dedupe.
"""

import pytest

from cuadre_engines.review import NotificationDeduper, should_notify, transition
from cuadre_kernel.domain.review import (
    ReviewEvent,
    ReviewStatus,
    SideEffect,
    is_cuadre_locked,
    is_session_locked,
)
from cuadre_kernel.exceptions import (
    CuadreLockedError,
    InvalidReviewTransitionError,
    MissingObservationError,
)

ACTOR = "supervisor-1"


class TestTransitions:
    """Allowed edges and their side effects."""

    def test_approve_from_pendiente(self):
        outcome = transition(ReviewStatus.PENDIENTE, ReviewEvent.approve(ACTOR))

        assert outcome.status == ReviewStatus.APROBADO
        assert outcome.changed
        assert SideEffect.APPROVE_CASHIER_SESSIONS in outcome.side_effects
        assert SideEffect.CLEAR_OBSERVATIONS in outcome.side_effects

    def test_reject_records_stripped_observation(self):
        outcome = transition("pendiente", ReviewEvent.reject(ACTOR, "  faltan 200 Bs  "))

        assert outcome.status == ReviewStatus.RECHAZADO
        assert outcome.observation == "faltan 200 Bs"
        assert SideEffect.REJECT_CASHIER_SESSIONS in outcome.side_effects
        assert SideEffect.NOTIFY_CASHIERS in outcome.side_effects

    def test_resubmit_from_rechazado(self):
        outcome = transition(ReviewStatus.RECHAZADO, ReviewEvent.resubmit(ACTOR))

        assert outcome.status == ReviewStatus.PENDIENTE
        assert SideEffect.REOPEN_CASHIER_SESSIONS in outcome.side_effects

    @pytest.mark.parametrize("status", [ReviewStatus.PENDIENTE, ReviewStatus.RECHAZADO])
    def test_save_keeps_status(self, status):
        outcome = transition(status, ReviewEvent.save(ACTOR))

        assert outcome.status == status
        assert not outcome.changed
        assert outcome.side_effects == ()


class TestRefusals:
    """Edges that are not allowed."""

    @pytest.mark.parametrize(
        "event",
        [
            ReviewEvent.save(ACTOR),
            ReviewEvent.approve(ACTOR),
            ReviewEvent.reject(ACTOR, "tarde"),
            ReviewEvent.resubmit(ACTOR),
        ],
    )
    def test_approved_is_locked(self, event):
        """Every event on an approved cuadre raises."""
        with pytest.raises(CuadreLockedError):
            transition(ReviewStatus.APROBADO, event)

    @pytest.mark.parametrize("observation", [None, "", "   "])
    def test_reject_requires_observation(self, observation):
        with pytest.raises(MissingObservationError):
            transition(ReviewStatus.PENDIENTE, ReviewEvent.reject(ACTOR, observation))

    def test_resubmit_from_pendiente_invalid(self):
        with pytest.raises(InvalidReviewTransitionError):
            transition(ReviewStatus.PENDIENTE, ReviewEvent.resubmit(ACTOR))

    def test_approve_from_rechazado_invalid(self):
        """A rejected cuadre must be resubmitted first."""
        with pytest.raises(InvalidReviewTransitionError):
            transition(ReviewStatus.RECHAZADO, ReviewEvent.approve(ACTOR))


class TestLocks:
    def test_cuadre_lock(self):
        assert is_cuadre_locked("aprobado")
        assert not is_cuadre_locked("rechazado")
        assert not is_cuadre_locked(None)

    def test_session_lock(self):
        """Confirmed closures stay locked unless rejected."""
        assert not is_session_locked(False, "aprobado")
        assert is_session_locked(True, None)
        assert is_session_locked(True, "pendiente")
        assert not is_session_locked(True, "rechazado")


class TestNotifications:
    def test_only_decisions_notify(self):
        assert should_notify("pendiente", "aprobado")
        assert should_notify("pendiente", "rechazado")
        assert not should_notify("rechazado", "pendiente")
        assert not should_notify("rechazado", "rechazado")

    def test_deduper_emits_once_per_status(self):
        deduper = NotificationDeduper()

        assert deduper.should_emit("s1", "pendiente", "rechazado")
        assert not deduper.should_emit("s1", "pendiente", "rechazado")
        assert deduper.should_emit("s2", "pendiente", "rechazado")
        assert deduper.should_emit("s1", "pendiente", "aprobado")

    def test_forget_allows_reannounce(self):
        """After a resubmit the next rejection is announced again."""
        deduper = NotificationDeduper()
        deduper.should_emit("s1", "pendiente", "rechazado")
        deduper.forget("s1")

        assert deduper.should_emit("s1", "pendiente", "rechazado")

    def test_approval_releases_summary(self):
        deduper = NotificationDeduper()
        deduper.should_emit("s1", "pendiente", "rechazado")
        deduper.should_emit("s2", "pendiente", "rechazado")

        assert deduper.should_emit("s1", "pendiente", "aprobado")
        assert len(deduper) == 1
