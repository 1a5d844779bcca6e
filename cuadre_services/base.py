"""
BaseService -- shared constructor and transaction boundary for services.

Responsibility:
    Holds the caller's SQLAlchemy ``Session``, the injected clock and the
    settings, and provides ``_transaction()``: the one place a service
    commits, rolls back and translates store failures.

Architecture position:
    Services -- imperative shell.  Every public write method of a
    cuadre service runs inside ``_transaction()``.

Invariants enforced:
    - Each public write commits once on success or rolls back as a whole.
    - ``SQLAlchemyError`` never crosses a service boundary: it surfaces as
      ``TransientIOError`` carrying the original message.  No retry.
    - Domain errors are re-raised unchanged after the rollback.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cuadre_config.settings import CuadreSettings
from cuadre_engines.cuadre_totals import Tolerances
from cuadre_kernel.domain.clock import Clock, SystemClock
from cuadre_kernel.exceptions import TransientIOError
from cuadre_kernel.logging_config import get_logger

logger = get_logger("services.base")


class BaseService:
    """
    Common plumbing for the cuadre services.

    Contract:
        Public write methods either commit and return, or roll back and
        raise.  Read methods never commit.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: CuadreSettings | None = None,
    ):
        self._session = session
        self._settings = settings or CuadreSettings.with_defaults()
        self._clock = clock or SystemClock(self._settings.timezone)

    @property
    def settings(self) -> CuadreSettings:
        return self._settings

    @property
    def tolerances(self) -> Tolerances:
        return Tolerances(
            local=self._settings.local_tolerance,
            usd=self._settings.usd_tolerance,
        )

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Session]:
        """Commit on success; roll back and re-raise on failure."""
        try:
            yield self._session
            self._session.commit()
            # sessions are built with expire_on_commit=False; reload on next read
            self._session.expire_all()
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.error(
                "store_operation_failed",
                extra={"operation": operation, "error": str(exc)},
            )
            raise TransientIOError(operation, exc) from exc
        except Exception:
            self._session.rollback()
            logger.warning(
                "operation_rolled_back",
                extra={"operation": operation},
                exc_info=True,
            )
            raise
