"""Read-only selectors implementing the engine's query shapes."""

from cuadre_kernel.selectors.base import BaseSelector
from cuadre_kernel.selectors.catalog_selector import CatalogSelector
from cuadre_kernel.selectors.commission_selector import CommissionSelector
from cuadre_kernel.selectors.summary_selector import SummarySelector
from cuadre_kernel.selectors.transaction_selector import TransactionSelector
from cuadre_kernel.selectors.weekly_selector import WeeklySelector

__all__ = [
    "BaseSelector",
    "CatalogSelector",
    "CommissionSelector",
    "SummarySelector",
    "TransactionSelector",
    "WeeklySelector",
]
