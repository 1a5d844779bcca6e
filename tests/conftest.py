"""
Pytest fixtures for the cuadre engine test suite.

Provides:
- Structured logging configured once per session, plus ``captured_logs``
- A deterministic clock pinned inside the business day
- An in-memory SQLite record store (engine and tables built once per
  session, rows deleted after every test)
- A seeded catalog: one agency, one client, a standalone lottery system
  and a parent system with two subcategories
- Service factories wired to a shared draft store and change notifier
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from cuadre_config.settings import CuadreSettings
from cuadre_kernel.db.base import Base
from cuadre_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from cuadre_kernel.domain.clock import DeterministicClock
from cuadre_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from cuadre_kernel.models.catalog import AgencyModel, ClientModel, LotterySystemModel
from cuadre_services.banqueo_service import BanqueoService
from cuadre_services.cashier_service import CashierService
from cuadre_services.commission_service import CommissionService
from cuadre_services.cuadre_service import CuadreService
from cuadre_services.drafts import InMemoryDraftStore
from cuadre_services.notifications import ChangeNotifier
from cuadre_services.weekly_service import WeeklyCuadreService

# Wednesday of the week starting Monday 2024-01-01
TEST_DAY = date(2024, 1, 3)
TEST_ACTOR_ID = uuid4()


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture cuadre logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            calculate_cuadre(inputs=...)
            assert any(r["message"] == "cuadre_totals_computed" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("cuadre")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock and settings
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 1, 3, 16, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings() -> CuadreSettings:
    return CuadreSettings.with_defaults()


# =============================================================================
# Record store
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single in-memory SQLite engine for the entire test session."""
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture
def session(db_engine) -> Session:
    """A session per test; every row is deleted afterwards."""
    sess = get_session()
    yield sess
    sess.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        sess.execute(table.delete())
    sess.commit()
    sess.close()


@dataclass(frozen=True)
class SeededCatalog:
    agency_id: UUID
    other_agency_id: UUID
    client_id: UUID
    lotto_id: UUID
    parent_id: UUID
    child_a_id: UUID
    child_b_id: UUID


@pytest.fixture
def catalog(session) -> SeededCatalog:
    """Agency, client and lottery systems, committed."""
    agency = AgencyModel(name="Agencia Centro", code="CEN", created_by_id=TEST_ACTOR_ID)
    other = AgencyModel(name="Agencia Norte", code="NOR", created_by_id=TEST_ACTOR_ID)
    client = ClientModel(name="Banca Oriente", created_by_id=TEST_ACTOR_ID)
    lotto = LotterySystemModel(name="Lotto Activo", code="LOTTO", created_by_id=TEST_ACTOR_ID)
    parent = LotterySystemModel(
        name="Animalitos", code="ANIM", has_subcategories=True, created_by_id=TEST_ACTOR_ID,
    )
    session.add_all([agency, other, client, lotto, parent])
    session.flush()
    child_a = LotterySystemModel(
        name="Animalitos Granja", code="ANIM-G",
        parent_system_id=parent.id, created_by_id=TEST_ACTOR_ID,
    )
    child_b = LotterySystemModel(
        name="Animalitos Selva", code="ANIM-S",
        parent_system_id=parent.id, created_by_id=TEST_ACTOR_ID,
    )
    session.add_all([child_a, child_b])
    session.commit()
    return SeededCatalog(
        agency_id=agency.id,
        other_agency_id=other.id,
        client_id=client.id,
        lotto_id=lotto.id,
        parent_id=parent.id,
        child_a_id=child_a.id,
        child_b_id=child_b.id,
    )


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


@pytest.fixture
def draft_store() -> InMemoryDraftStore:
    return InMemoryDraftStore()


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture
def cuadre_service(session, deterministic_clock, settings, draft_store, notifier) -> CuadreService:
    return CuadreService(
        session,
        clock=deterministic_clock,
        settings=settings,
        drafts=draft_store,
        notifier=notifier,
    )


@pytest.fixture
def cashier_service(session, deterministic_clock, settings, draft_store, notifier) -> CashierService:
    return CashierService(
        session,
        clock=deterministic_clock,
        settings=settings,
        drafts=draft_store,
        notifier=notifier,
    )


@pytest.fixture
def commission_service(session, deterministic_clock, settings) -> CommissionService:
    return CommissionService(session, clock=deterministic_clock, settings=settings)


@pytest.fixture
def banqueo_service(session, deterministic_clock, settings, draft_store) -> BanqueoService:
    return BanqueoService(
        session, clock=deterministic_clock, settings=settings, drafts=draft_store,
    )


@pytest.fixture
def weekly_service(session, deterministic_clock, settings) -> WeeklyCuadreService:
    return WeeklyCuadreService(session, clock=deterministic_clock, settings=settings)


@pytest.fixture
def day() -> date:
    return TEST_DAY
