"""
Module: cuadre_kernel.selectors.base
Responsibility: Base class for the read-only selectors that implement the
    engine's query shapes against the record store.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/.  MUST NOT import from engines or services.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - Selectors return frozen domain records, never ORM instances.
    - The caller owns the session and its transaction.
    - Absence is reported as None / empty list, never as an exception.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from cuadre_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """Holds the caller's session for subclass queries."""

    def __init__(self, session: Session, default_apply_excess_usd: bool = True):
        self.session = session
        # Adjustment blocks written before the toggle existed decode to this
        self.default_apply_excess_usd = default_apply_excess_usd
