"""
cuadre_services -- Package init and public API.

Responsibility:
    Stateful orchestration over a SQLAlchemy ``Session``: the supervisor's
    daily cuadre and review lifecycle, cashier entry and closure,
    commission configuration, banqueo weeks and the weekly cuadre.  This is
    the only layer that holds sessions and reads the clock.

Architecture position:
    Services -- imperative shell over cuadre_engines and cuadre_kernel.

        cuadre_services/ -> cuadre_engines/  (allowed)
        cuadre_services/ -> cuadre_kernel/   (allowed)
        cuadre_engines/  -> cuadre_services/ (FORBIDDEN)
        cuadre_kernel/   -> cuadre_services/ (FORBIDDEN)

Invariants enforced:
    - Every public write commits once or rolls back as a whole.
    - Change notifications are published only after commit.
"""

from cuadre_kernel.logging_config import get_logger

logger = get_logger("services")

from cuadre_services.banqueo_service import BanqueoService
from cuadre_services.base import BaseService
from cuadre_services.cashier_service import CashierService
from cuadre_services.commission_service import CommissionService
from cuadre_services.cuadre_service import CuadreService, WorkingState
from cuadre_services.drafts import Draft, DraftStore, InMemoryDraftStore
from cuadre_services.notifications import (
    ChangeNotifier,
    ChangeScope,
    CuadreSaved,
    CuadreWatcher,
    ReviewNotification,
    Subscription,
    SummaryUpdated,
)
from cuadre_services.weekly_service import WeeklyCuadreService

__all__ = [
    "BanqueoService",
    "BaseService",
    "CashierService",
    "ChangeNotifier",
    "ChangeScope",
    "CommissionService",
    "CuadreSaved",
    "CuadreService",
    "CuadreWatcher",
    "Draft",
    "DraftStore",
    "InMemoryDraftStore",
    "ReviewNotification",
    "Subscription",
    "SummaryUpdated",
    "WeeklyCuadreService",
    "WorkingState",
]
