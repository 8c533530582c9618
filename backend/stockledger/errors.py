# Overview: Typed failures raised by the service layer and mapped to HTTP responses by routes.

from __future__ import annotations


class LedgerError(Exception):
    """Base class for every failure the ledger reports to callers."""

    code = "LEDGER_ERROR"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "code": self.code,
            "retryable": self.retryable,
            "details": self.details,
        }


class InvalidInput(LedgerError):
    """Malformed cart, discount or transfer request. Rejected before any mutation."""

    code = "INVALID_INPUT"
    http_status = 400


class NotFound(LedgerError):
    code = "NOT_FOUND"
    http_status = 404


class PermissionDenied(LedgerError):
    """Caller is not allowed to perform the operation."""

    code = "PERMISSION_DENIED"
    http_status = 403


class InsufficientStock(LedgerError):
    """A decrement would take a stock record below zero."""

    code = "INSUFFICIENT_STOCK"
    http_status = 409

    def __init__(self, product_id: int, location_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id} at location {location_id}. "
            f"Available: {available}, requested: {requested}",
            details={
                "product_id": product_id,
                "location_id": location_id,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.location_id = location_id
        self.requested = requested
        self.available = available


class ConcurrencyConflict(LedgerError):
    """The store could not serialize the operation in time. Safe to retry from the top."""

    code = "CONCURRENCY_CONFLICT"
    http_status = 503
    retryable = True


class PersistenceFailure(LedgerError):
    """Writing the transaction log failed; reserved stock has been restored."""

    code = "PERSISTENCE_FAILURE"
    http_status = 500


class InvalidTransition(LedgerError):
    """Transfer is not in a state that allows the requested transition."""

    code = "INVALID_TRANSITION"
    http_status = 409
