"""
Typed domain errors.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer maps it to. Messages are user-facing (pt-BR), the same text the
operators see in the stock screens and import reports.

    StockError
    +-- InvalidInput
    |   +-- InsufficientStock
    +-- UnknownReference
    |   +-- UnknownItem
    +-- Unauthorized
    +-- ConflictOrUnavailable
        +-- AdvisoryUnavailable

InvalidInput / UnknownReference are raised before any write and the caller
can fix the input and resubmit. Unauthorized is permanent. Only
ConflictOrUnavailable is retried, and only by the store layer.
"""

from fastapi import Request
from fastapi.responses import JSONResponse


class StockError(Exception):
    code: str = "STOCK_ERROR"
    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidInput(StockError):
    code = "INVALID_INPUT"
    status_code = 400


class InsufficientStock(InvalidInput):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, location: str, available: int, requested: int, item_name: str):
        self.location = location
        self.available = available
        self.requested = requested
        super().__init__(
            f"Estoque insuficiente ({available}) em {location} para {item_name}. "
            f"Necessário: {requested}"
        )


class UnknownReference(StockError):
    code = "UNKNOWN_REFERENCE"
    status_code = 404


class UnknownItem(UnknownReference):
    code = "UNKNOWN_ITEM"

    def __init__(self, item_ref: str):
        self.item_ref = item_ref
        super().__init__(f"Item '{item_ref}' não encontrado.")


class Unauthorized(StockError):
    code = "UNAUTHORIZED"
    status_code = 403


class ConflictOrUnavailable(StockError):
    code = "CONFLICT_OR_UNAVAILABLE"
    status_code = 503


class AdvisoryUnavailable(ConflictOrUnavailable):
    code = "ADVISORY_UNAVAILABLE"
    status_code = 502


async def stock_error_handler(request: Request, exc: StockError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )
