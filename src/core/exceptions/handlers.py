import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError

from src.core.config import settings
from src.core.exceptions import AppException, ConcurrentModificationError
from src.shared.schemas import ErrorResponse, ErrorDetail

logger = logging.getLogger(__name__)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle application exceptions."""
    field = exc.details.get("field")
    errors = [ErrorDetail(field=field, message=exc.message)]

    response = ErrorResponse(
        message=exc.message,
        error_code=type(exc).__name__,
        errors=errors,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=response.model_dump(),
    )


def _format_validation_errors(errors: list[dict]) -> list[ErrorDetail]:
    details: list[ErrorDetail] = []
    for error in errors:
        loc = error.get("loc", ())
        # Drop top-level "body" for cleaner field paths
        if loc and loc[0] == "body":
            loc = loc[1:]
        field = ".".join(str(part) for part in loc) if loc else None
        details.append(ErrorDetail(field=field, message=error.get("msg", "Invalid value")))
    return details


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI validation errors."""
    response = ErrorResponse(
        message="Validation error",
        error_code="ValidationError",
        errors=_format_validation_errors(exc.errors()),
    )
    return JSONResponse(
        status_code=422,
        content=response.model_dump(),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle generic HTTP exceptions."""
    errors = [ErrorDetail(field=None, message=str(exc.detail) if exc.detail else "HTTP error")]
    response = ErrorResponse(
        message=str(exc.detail) if exc.detail else "HTTP error",
        errors=errors,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=response.model_dump(),
    )


async def stale_data_handler(request: Request, exc: StaleDataError) -> JSONResponse:
    """A versioned row changed under us: report it as a retryable conflict."""
    logger.warning("Optimistic lock failed on %s %s: %s", request.method, request.url.path, exc)
    return await app_exception_handler(request, ConcurrentModificationError("Record"))


# Constraint name -> (message, field, status code)
_CONSTRAINT_MESSAGES: dict[str, tuple[str, str | None, int]] = {
    "uq_invoices_active_enrollment": (
        "Student is already enrolled in this batch",
        "batch_id",
        409,
    ),
    "ck_batch_capacity": ("Batch is full", "max_students", 409),
    "ck_batch_max_students": ("Batch capacity must be at least 1", "max_students", 422),
    "ck_batch_date_range": ("End date must be after start date", "end_date", 422),
    "ck_invoice_remaining_non_negative": (
        "Payment exceeds the remaining balance",
        "amount",
        422,
    ),
    "ck_invoice_payment_amount_positive": ("Payment amount must be positive", "amount", 422),
}


def _friendly_db_error(exc: Exception) -> tuple[str, str | None, int]:
    """
    Convert DB constraint errors to a stable, user-facing message.

    Full DB error details are only exposed when debug is enabled.
    """
    raw = str(getattr(exc, "orig", exc))
    lower = raw.lower()

    for name, mapped in _CONSTRAINT_MESSAGES.items():
        if name in lower:
            return mapped

    if "does not exist" in lower and "column" in lower:
        # Typical after deploying code without running Alembic migrations.
        return (
            "Database schema is out of date. Run the latest migrations and try again.",
            None,
            500,
        )

    if "unique" in lower or "duplicate key" in lower:
        return ("A record with the same unique value already exists", None, 409)

    if settings.debug:
        return (raw, None, 500)

    return ("Database error", None, 500)


async def sqlalchemy_db_error_handler(request: Request, exc: Exception) -> JSONResponse:
    message, field, status_code = _friendly_db_error(exc)
    if status_code >= 500:
        logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    else:
        logger.info("Constraint rejected %s %s: %s", request.method, request.url.path, message)
    response = ErrorResponse(
        message=message,
        error_code="IntegrityError",
        errors=[ErrorDetail(field=field, message=message)],
    )
    return JSONResponse(status_code=status_code, content=response.model_dump())
