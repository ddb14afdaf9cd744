"""
Error taxonomy for the trading engine.

OrderRejected / OrderNotCancelable / AlertRejected are user-actionable and
are turned into notifications by the engine; they never escape ``dispatch``.
InternalConsistencyViolation is an execution-time invariant breach: logged,
the offending execution skipped, the order left PENDING.
"""

from enum import Enum


class RejectReason(str, Enum):
    UNKNOWN_INSTRUMENT = "UNKNOWN_INSTRUMENT"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    INVALID_LIMIT_PRICE = "INVALID_LIMIT_PRICE"
    INSUFFICIENT_SHARES = "INSUFFICIENT_SHARES"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    MARKET_CLOSED = "MARKET_CLOSED"


class CancelReason(str, Enum):
    ALREADY_TERMINAL = "ALREADY_TERMINAL"
    UNKNOWN_ORDER = "UNKNOWN_ORDER"


class AlertRejectReason(str, Enum):
    UNKNOWN_INSTRUMENT = "UNKNOWN_INSTRUMENT"
    INVALID_PRICE = "INVALID_PRICE"
    UNKNOWN_ALERT = "UNKNOWN_ALERT"


class OrderRejected(Exception):
    """Admission check failed. No Order record was created."""

    def __init__(self, reason: RejectReason, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


class OrderNotCancelable(Exception):
    """Cancel requested for an order that is not PENDING (or does not exist)."""

    def __init__(self, order_id: str, reason: CancelReason, status: str | None = None) -> None:
        self.order_id = order_id
        self.reason = reason
        self.status = status
        super().__init__(f"{reason.value}: order {order_id}" + (f" is {status}" if status else ""))


class AlertRejected(Exception):
    def __init__(self, reason: AlertRejectReason, detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason.value}: {detail}" if detail else reason.value)


class InternalConsistencyViolation(Exception):
    """Execution-time invariant breach. Never user-actionable."""

    def __init__(self, order_id: str | None, detail: str) -> None:
        self.order_id = order_id
        self.detail = detail
        super().__init__(f"order {order_id}: {detail}" if order_id else detail)


class StateStoreError(Exception):
    """Raised when the durable state store cannot be read or committed."""


class StaleStateError(StateStoreError):
    """Commit refused: another writer saved newer state since this copy was read."""

    def __init__(self, path: object, expected: int, found: int) -> None:
        self.expected = expected
        self.found = found
        super().__init__(f"State store {path} is at generation {found}, expected {expected}")
