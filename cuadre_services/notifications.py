"""
Change notifications -- the subscription interface the cuadre core exposes.

Responsibility:
    Let callers subscribe to "summary updated" and "cuadre saved" events
    scoped to a user, a cashier session, or an agency/date, and deliver
    published events to matching subscribers synchronously.

Architecture position:
    Services.  Transport-agnostic: an external bus adapter calls
    ``publish()``; the cuadre service publishes after every commit.

Invariants enforced:
    - A subscriber whose callback raises is logged and skipped; the other
      subscribers still receive the event.
    - Delivery is fire-and-forget; a missed event is tolerated because
      every view re-fetches on entry.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, ClassVar
from uuid import UUID

from cuadre_kernel.domain.review import ReviewStatus
from cuadre_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from cuadre_services.cuadre_service import CuadreService, WorkingState

logger = get_logger("services.notifications")


@dataclass(frozen=True)
class SummaryUpdated:
    name: ClassVar[str] = "summary-updated"

    summary_id: UUID
    agency_id: UUID
    session_date: date
    session_id: UUID | None = None
    user_id: UUID | None = None
    review_status: ReviewStatus = ReviewStatus.PENDIENTE
    previous_status: ReviewStatus | None = None


@dataclass(frozen=True)
class CuadreSaved:
    name: ClassVar[str] = "cuadre-saved"

    agency_id: UUID
    session_date: date
    week_start_date: date


@dataclass(frozen=True)
class ReviewNotification:
    """Tells the day's cashiers that their cuadre was approved or rejected."""

    name: ClassVar[str] = "review-notification"

    summary_id: UUID
    agency_id: UUID
    session_date: date
    review_status: ReviewStatus
    observation: str | None = None
    user_ids: tuple[UUID, ...] = ()


Event = SummaryUpdated | CuadreSaved | ReviewNotification


@dataclass(frozen=True)
class ChangeScope:
    """Which events a subscriber wants.  Unset fields match anything."""

    user_id: UUID | None = None
    session_id: UUID | None = None
    agency_id: UUID | None = None
    session_date: date | None = None

    def matches(self, event: Any) -> bool:
        if self.user_id is not None:
            user_ids = getattr(event, "user_ids", None)
            if user_ids is not None:
                if self.user_id not in user_ids:
                    return False
            elif getattr(event, "user_id", None) != self.user_id:
                return False
        for name in ("session_id", "agency_id", "session_date"):
            wanted = getattr(self, name)
            if wanted is not None and getattr(event, name, None) != wanted:
                return False
        return True


@dataclass
class Subscription:
    id: int
    scope: ChangeScope
    callback: Callable[[Any], None]
    _notifier: ChangeNotifier | None = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self._notifier is not None

    def cancel(self) -> None:
        if self._notifier is not None:
            self._notifier._remove(self.id)
            self._notifier = None


class ChangeNotifier:
    """In-process fan-out of change events to scoped subscribers."""

    def __init__(self) -> None:
        self._subscriptions: dict[int, Subscription] = {}
        self._ids = itertools.count(1)

    def on_external_change(
        self,
        scope: ChangeScope,
        callback: Callable[[Any], None],
    ) -> Subscription:
        subscription = Subscription(next(self._ids), scope, callback, self)
        self._subscriptions[subscription.id] = subscription
        logger.debug("change_subscription_added", extra={"subscription_id": subscription.id})
        return subscription

    def publish(self, event: Any) -> int:
        """Deliver ``event`` to every matching subscriber; return how many got it."""
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if not subscription.scope.matches(event):
                continue
            try:
                subscription.callback(event)
            except Exception:
                logger.warning(
                    "change_callback_failed",
                    extra={
                        "subscription_id": subscription.id,
                        "event_name": event.name,
                    },
                    exc_info=True,
                )
                continue
            delivered += 1
        logger.debug(
            "change_event_published",
            extra={"event_name": event.name, "delivered": delivered},
        )
        return delivered

    def _remove(self, subscription_id: int) -> None:
        self._subscriptions.pop(subscription_id, None)

    def __len__(self) -> int:
        return len(self._subscriptions)


class CuadreWatcher:
    """Keeps the displayed agency/date fresh by re-running the load on change."""

    def __init__(
        self,
        notifier: ChangeNotifier,
        service: CuadreService,
        *,
        agency_id: UUID,
        session_date: date,
        actor_id: UUID,
        on_refresh: Callable[[WorkingState], None] | None = None,
    ):
        self._service = service
        self._agency_id = agency_id
        self._session_date = session_date
        self._actor_id = actor_id
        self._on_refresh = on_refresh
        self.latest: WorkingState | None = None
        self.refresh_count = 0
        self._subscription = notifier.on_external_change(
            ChangeScope(agency_id=agency_id, session_date=session_date),
            self._handle,
        )

    def _handle(self, event: Any) -> None:
        self.refresh()

    def refresh(self) -> WorkingState:
        self.latest = self._service.load_working_state(
            agency_id=self._agency_id,
            session_date=self._session_date,
            actor_id=self._actor_id,
        )
        self.refresh_count += 1
        if self._on_refresh is not None:
            self._on_refresh(self.latest)
        return self.latest

    def stop(self) -> None:
        self._subscription.cancel()
