"""
Draft store -- unsent local edits, keyed by actor and scope.

A supervisor or cashier who edits a cuadre and navigates away keeps the
edits as a draft.  Drafts outrank saved values on the next load until a
save clears them, or until a later confirmed write supersedes them.

Keys come from ``cuadre_engines.reconciler``:
``enc:cuadre-general:{actor}:{agency}:{day}`` for supervisors and
``taq:cuadre-general:{actor}:{day}`` for cashiers.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from cuadre_kernel.logging_config import get_logger

logger = get_logger("services.drafts")


@dataclass(frozen=True)
class Draft:
    """Edited field values and when they were stored."""

    values: Mapping[str, Any] = field(default_factory=dict)
    saved_at: datetime | None = None


@runtime_checkable
class DraftStore(Protocol):
    def get(self, key: str) -> Draft | None:
        ...

    def set(self, key: str, value: Draft) -> None:
        ...

    def clear(self, key: str) -> None:
        ...


class InMemoryDraftStore:
    """Process-local DraftStore, used by tests and single-process callers."""

    def __init__(self) -> None:
        self._drafts: dict[str, Draft] = {}

    def get(self, key: str) -> Draft | None:
        return self._drafts.get(key)

    def set(self, key: str, value: Draft) -> None:
        self._drafts[key] = Draft(values=dict(value.values), saved_at=value.saved_at)
        logger.debug("draft_stored", extra={"draft_key": key, "field_count": len(value.values)})

    def clear(self, key: str) -> None:
        if self._drafts.pop(key, None) is not None:
            logger.debug("draft_cleared", extra={"draft_key": key})

    def keys(self) -> list[str]:
        return list(self._drafts)

    def __contains__(self, key: object) -> bool:
        return key in self._drafts

    def __len__(self) -> int:
        return len(self._drafts)
