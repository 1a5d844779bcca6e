"""
CommissionService -- configuration of commission and participation rates.

Three tables feed the cascade: the system default (``commission_rates``),
the per-client-per-system participation and the client-wide banqueo
commission.  Every percentage is validated to [0, 100] before anything is
written.  ``None`` stores NULL, which the cascade reads as "not
configured"; 0 is stored as an explicit zero.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select

from cuadre_engines.commission_cascade import ResolvedRates, resolve_rates
from cuadre_kernel.db.types import percentage_column
from cuadre_kernel.domain.commission import (
    ClientBanqueoCommission,
    ClientSystemParticipation,
    CommissionConfig,
    CommissionRate,
)
from cuadre_kernel.domain.values import Percentage
from cuadre_kernel.exceptions import ClientNotFoundError, LotterySystemNotFoundError
from cuadre_kernel.logging_config import LogContext, get_logger
from cuadre_kernel.models.commission import (
    ClientBanqueoCommissionModel,
    ClientSystemParticipationModel,
    CommissionRateModel,
)
from cuadre_kernel.selectors.catalog_selector import CatalogSelector
from cuadre_kernel.selectors.commission_selector import CommissionSelector
from cuadre_services.base import BaseService

logger = get_logger("services.commission")


def _percentages(**raw: Any) -> dict[str, Percentage | None]:
    return {name: Percentage.optional(value, name) for name, value in raw.items()}


class CommissionService(BaseService):
    """Validated upserts of commission configuration."""

    @property
    def _selector(self) -> CommissionSelector:
        return CommissionSelector(self._session)

    def _require_system(self, system_id: UUID) -> None:
        if CatalogSelector(self._session).system(system_id) is None:
            raise LotterySystemNotFoundError(system_id)

    def _require_client(self, client_id: UUID) -> None:
        if not CatalogSelector(self._session).client_exists(client_id):
            raise ClientNotFoundError(client_id)

    def _upsert(
        self,
        model_cls: type,
        operation: str,
        actor_id: UUID,
        keys: dict[str, Any],
        values: dict[str, Percentage | None],
    ) -> None:
        """Find the row by ``keys`` and overwrite ``values``, inserting if absent."""
        stmt = select(model_cls)
        for name, value in keys.items():
            stmt = stmt.where(getattr(model_cls, name) == value)

        with self._transaction(operation):
            row = self._session.scalars(stmt).one_or_none()
            if row is None:
                row = model_cls(created_by_id=actor_id, **keys)
                self._session.add(row)
            for name, value in values.items():
                setattr(row, name, percentage_column(value))
            row.updated_at = self._clock.now_utc()
            row.updated_by_id = actor_id
        logger.info(
            "commission_config_saved",
            extra={
                "table": model_cls.__tablename__,
                **{name: str(value) for name, value in keys.items()},
                **{name: None if v is None else str(v.value) for name, v in values.items()},
            },
        )

    def set_system_rate(
        self,
        *,
        lottery_system_id: UUID,
        actor_id: UUID,
        commission_bs: Any = None,
        commission_usd: Any = None,
        utility_bs: Any = None,
        utility_usd: Any = None,
    ) -> CommissionRate:
        """Upsert a system's default commission and utility percentages."""
        values = _percentages(
            commission_bs=commission_bs,
            commission_usd=commission_usd,
            utility_bs=utility_bs,
            utility_usd=utility_usd,
        )
        self._require_system(lottery_system_id)
        self._upsert(
            CommissionRateModel,
            "set system rate",
            actor_id,
            {"lottery_system_id": lottery_system_id},
            values,
        )
        return self._selector.rate(lottery_system_id)

    def set_client_participation(
        self,
        *,
        client_id: UUID,
        lottery_system_id: UUID,
        actor_id: UUID,
        client_commission_bs: Any = None,
        client_commission_usd: Any = None,
        participation_bs: Any = None,
        participation_usd: Any = None,
        lanave_bs: Any = None,
        lanave_usd: Any = None,
    ) -> ClientSystemParticipation:
        """Upsert a client's per-system overrides."""
        values = _percentages(
            client_commission_bs=client_commission_bs,
            client_commission_usd=client_commission_usd,
            participation_bs=participation_bs,
            participation_usd=participation_usd,
            lanave_bs=lanave_bs,
            lanave_usd=lanave_usd,
        )
        self._require_client(client_id)
        self._require_system(lottery_system_id)
        with LogContext.bind(client_id=client_id):
            self._upsert(
                ClientSystemParticipationModel,
                "set client participation",
                actor_id,
                {"client_id": client_id, "lottery_system_id": lottery_system_id},
                values,
            )
        return self._selector.participation(client_id, lottery_system_id)

    def set_client_banqueo_commission(
        self,
        *,
        client_id: UUID,
        actor_id: UUID,
        commission_bs: Any = None,
        commission_usd: Any = None,
        lanave_bs: Any = None,
        lanave_usd: Any = None,
    ) -> ClientBanqueoCommission:
        """Upsert the client-wide commission and lanave percentages."""
        values = _percentages(
            commission_bs=commission_bs,
            commission_usd=commission_usd,
            lanave_bs=lanave_bs,
            lanave_usd=lanave_usd,
        )
        self._require_client(client_id)
        with LogContext.bind(client_id=client_id):
            self._upsert(
                ClientBanqueoCommissionModel,
                "set client banqueo commission",
                actor_id,
                {"client_id": client_id},
                values,
            )
        return self._selector.client_commission(client_id)

    def load_config(self, client_id: UUID | None = None) -> CommissionConfig:
        return self._selector.config(client_id)

    def resolve(self, lottery_system_id: UUID, client_id: UUID | None = None) -> ResolvedRates:
        """Effective rates for one system, with the source of each."""
        return resolve_rates(lottery_system_id, client_id, self.load_config(client_id))
