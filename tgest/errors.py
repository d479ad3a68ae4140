"""
Domain errors raised by the service layer.

Each error carries the HTTP status it maps to and a stable machine code; the
handler registered in ``create_app`` renders them as
``{"detail": ..., "code": ...}``.
"""
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class DomainError(Exception):
    status_code = 400
    code = "DOMAIN_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(DomainError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(DomainError):
    status_code = 409
    code = "CONFLICT"


class InsufficientStockError(DomainError):
    status_code = 400
    code = "INSUFFICIENT_STOCK"

    def __init__(self, part_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {part_name}. Available: {available}, requested: {requested}"
        )
        self.available = available
        self.requested = requested


class NegativeStockError(DomainError):
    status_code = 400
    code = "NEGATIVE_STOCK"


class AlreadyConvertedError(DomainError):
    status_code = 400
    code = "ALREADY_CONVERTED"


class IllegalTransitionError(DomainError):
    status_code = 409
    code = "ILLEGAL_TRANSITION"

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(f"Cannot move {entity} from {current} to {target}")
        self.current = current
        self.target = target


class OrderClosedError(DomainError):
    status_code = 409
    code = "ORDER_CLOSED"


class SurveyExpiredError(ValidationError):
    code = "SURVEY_EXPIRED"


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Missing or malformed body fields are a 400, like every other input error."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    message = f"{field}: {first.get('msg')}" if field else (first.get("msg") or "Invalid request")
    return JSONResponse(
        status_code=400,
        content={"detail": message, "code": ValidationError.code, "errors": jsonable_encoder(errors)},
    )
