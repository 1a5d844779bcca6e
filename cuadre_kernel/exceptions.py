"""
Typed exception hierarchy for the cuadre engine.

Every error carries a machine-readable ``code`` class attribute and keeps
the data it was raised with as attributes, so callers branch on the type
and log the fields instead of parsing message text.

Hierarchy::

    CuadreError
    |
    +-- ValidationError            rejected before any write, never retried
    |   +-- NoAmountsSubmittedError
    |   +-- PercentageOutOfRangeError
    |   +-- InvalidAmountError
    |   +-- MissingObservationError
    |   +-- SystemNotPostableError
    |   +-- InvalidExchangeRateError
    |   +-- DuplicateSystemLineError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |
    +-- NotFoundError              referenced entity absent, never retried
    |   +-- AgencyNotFoundError
    |   +-- ClientNotFoundError
    |   +-- LotterySystemNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- CashierSessionNotFoundError
    |
    +-- ConflictError              resolved internally (update -> insert)
    |   +-- SummaryRowVanishedError
    |
    +-- ReviewError
    |   +-- InvalidReviewTransitionError
    |   +-- CuadreLockedError
    |
    +-- TransientIOError           store failure, surfaced with the original
        +-- ApprovalFailedError    message, the caller decides on retry

Code reference:

    VALIDATION_ERROR, NO_AMOUNTS_SUBMITTED, PERCENTAGE_OUT_OF_RANGE,
    INVALID_AMOUNT, MISSING_OBSERVATION, SYSTEM_NOT_POSTABLE,
    INVALID_EXCHANGE_RATE, DUPLICATE_SYSTEM_LINE, CURRENCY_ERROR,
    INVALID_CURRENCY, CURRENCY_MISMATCH, NOT_FOUND, AGENCY_NOT_FOUND, CLIENT_NOT_FOUND,
    LOTTERY_SYSTEM_NOT_FOUND, TRANSACTION_NOT_FOUND,
    CASHIER_SESSION_NOT_FOUND, CONFLICT, SUMMARY_ROW_VANISHED, REVIEW_ERROR,
    INVALID_REVIEW_TRANSITION, CUADRE_LOCKED, TRANSIENT_IO_ERROR,
    APPROVAL_FAILED
"""

from __future__ import annotations

from typing import Any


class CuadreError(Exception):
    """Base exception for all cuadre engine errors."""

    code: str = "CUADRE_ERROR"


# Validation


class ValidationError(CuadreError):
    """Input rejected before any write."""

    code: str = "VALIDATION_ERROR"


class NoAmountsSubmittedError(ValidationError):
    """A save carried no non-zero amount at all."""

    code: str = "NO_AMOUNTS_SUBMITTED"

    def __init__(self, scope: str):
        self.scope = scope
        super().__init__(f"At least one non-zero amount is required ({scope})")


class PercentageOutOfRangeError(ValidationError):
    """A commission/participation percentage outside [0, 100]."""

    code: str = "PERCENTAGE_OUT_OF_RANGE"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = str(value)
        super().__init__(
            f"Percentage {field}={value} must be between 0 and 100"
        )


class InvalidAmountError(ValidationError):
    """An amount could not be parsed or is not acceptable."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, raw_value: Any, reason: str = "not a decimal number"):
        self.raw_value = str(raw_value)
        self.reason = reason
        super().__init__(f"Invalid amount {raw_value!r}: {reason}")


class MissingObservationError(ValidationError):
    """Rejecting a cuadre requires a non-empty observation."""

    code: str = "MISSING_OBSERVATION"

    def __init__(self) -> None:
        super().__init__("Rejecting a cuadre requires a non-empty observation")


class SystemNotPostableError(ValidationError):
    """Transactions cannot be posted against a parent system."""

    code: str = "SYSTEM_NOT_POSTABLE"

    def __init__(self, lottery_system_id: str, system_name: str):
        self.lottery_system_id = lottery_system_id
        self.system_name = system_name
        super().__init__(
            f"Lottery system {system_name} ({lottery_system_id}) has "
            f"subcategories; post against a subcategory instead"
        )


class InvalidExchangeRateError(ValidationError):
    """Exchange rate cannot be negative."""

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, rate: Any):
        self.rate = str(rate)
        super().__init__(f"Exchange rate cannot be negative, got {rate}")


class DuplicateSystemLineError(ValidationError):
    """The same lottery system appears on more than one line of a save."""

    code: str = "DUPLICATE_SYSTEM_LINE"

    def __init__(self, lottery_system_id: Any, scope: str):
        self.lottery_system_id = str(lottery_system_id)
        self.scope = scope
        super().__init__(
            f"Lottery system {lottery_system_id} appears more than once ({scope})"
        )


# Currency


class CurrencyError(CuadreError):
    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Only the local currency (Bs) and USD are operated."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Unsupported currency: {currency!r}")


class CurrencyMismatchError(CurrencyError):
    """Arithmetic mixing Bs and USD without an explicit conversion."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, left: str, right: str, operation: str):
        self.left = left
        self.right = right
        self.operation = operation
        super().__init__(
            f"Cannot {operation} amounts in different currencies: {left} and {right}"
        )


# Not found


class NotFoundError(CuadreError):
    """A referenced entity does not exist."""

    code: str = "NOT_FOUND"


class AgencyNotFoundError(NotFoundError):
    code: str = "AGENCY_NOT_FOUND"

    def __init__(self, agency_id: Any):
        self.agency_id = str(agency_id)
        super().__init__(f"Agency not found: {agency_id}")


class ClientNotFoundError(NotFoundError):
    code: str = "CLIENT_NOT_FOUND"

    def __init__(self, client_id: Any):
        self.client_id = str(client_id)
        super().__init__(f"Banqueo client not found: {client_id}")


class LotterySystemNotFoundError(NotFoundError):
    code: str = "LOTTERY_SYSTEM_NOT_FOUND"

    def __init__(self, lottery_system_id: Any):
        self.lottery_system_id = str(lottery_system_id)
        super().__init__(f"Lottery system not found: {lottery_system_id}")


class TransactionNotFoundError(NotFoundError):
    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: Any):
        self.transaction_id = str(transaction_id)
        super().__init__(f"Transaction not found: {transaction_id}")


class CashierSessionNotFoundError(NotFoundError):
    code: str = "CASHIER_SESSION_NOT_FOUND"

    def __init__(self, session_id: Any):
        self.session_id = str(session_id)
        super().__init__(f"Cashier session not found: {session_id}")


# Conflict


class ConflictError(CuadreError):
    """The store disagreed with what an update path expected."""

    code: str = "CONFLICT"


class SummaryRowVanishedError(ConflictError):
    """The consolidated summary found by key was gone at update time."""

    code: str = "SUMMARY_ROW_VANISHED"

    def __init__(self, summary_id: Any, agency_id: Any, session_date: Any):
        self.summary_id = str(summary_id)
        self.agency_id = str(agency_id)
        self.session_date = str(session_date)
        super().__init__(
            f"Consolidated summary {summary_id} for agency {agency_id} on "
            f"{session_date} disappeared before it could be updated"
        )


# Review


class ReviewError(CuadreError):
    code: str = "REVIEW_ERROR"


class InvalidReviewTransitionError(ReviewError):
    """Event not allowed from the current review status."""

    code: str = "INVALID_REVIEW_TRANSITION"

    def __init__(self, from_status: str, event: str):
        self.from_status = from_status
        self.event = event
        super().__init__(
            f"Review event {event!r} is not allowed from status {from_status!r}"
        )


class CuadreLockedError(ReviewError):
    """The day is approved; every field is read-only."""

    code: str = "CUADRE_LOCKED"

    def __init__(self, agency_id: Any, session_date: Any):
        self.agency_id = str(agency_id)
        self.session_date = str(session_date)
        super().__init__(
            f"Cuadre for agency {agency_id} on {session_date} is approved and locked"
        )


# Store I/O


class TransientIOError(CuadreError):
    """The record store failed. Carries the original message, never retried."""

    code: str = "TRANSIENT_IO_ERROR"

    def __init__(self, operation: str, original: BaseException | str):
        self.operation = operation
        self.original_message = str(original)
        super().__init__(f"{operation} failed: {original}")


class ApprovalFailedError(TransientIOError):
    """Approval did not complete; no partial approval was left behind."""

    code: str = "APPROVAL_FAILED"

    def __init__(
        self,
        agency_id: Any,
        session_date: Any,
        original: BaseException | str,
        compensated: bool = False,
    ):
        self.agency_id = str(agency_id)
        self.session_date = str(session_date)
        self.compensated = compensated
        super().__init__(
            f"approve cuadre for agency {agency_id} on {session_date}", original
        )
