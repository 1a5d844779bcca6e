"""Record-store ORM models. Importing this package registers every table."""

from cuadre_kernel.models.catalog import AgencyModel, ClientModel, LotterySystemModel
from cuadre_kernel.models.commission import (
    BanqueoTransactionModel,
    ClientBanqueoCommissionModel,
    ClientSystemParticipationModel,
    CommissionRateModel,
)
from cuadre_kernel.models.summary import CuadreSummaryModel
from cuadre_kernel.models.transactions import (
    CashierSessionModel,
    SupervisorDetailModel,
    TransactionModel,
)
from cuadre_kernel.models.weekly import WeeklyCuadreConfigModel, WeeklySystemTotalModel

__all__ = [
    "AgencyModel",
    "BanqueoTransactionModel",
    "CashierSessionModel",
    "ClientBanqueoCommissionModel",
    "ClientModel",
    "ClientSystemParticipationModel",
    "CommissionRateModel",
    "CuadreSummaryModel",
    "LotterySystemModel",
    "SupervisorDetailModel",
    "TransactionModel",
    "WeeklyCuadreConfigModel",
    "WeeklySystemTotalModel",
]
