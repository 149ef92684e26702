from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id={identifier} not found"
        super().__init__(message=message, status_code=404)


class ValidationError(AppException):
    """Validation error."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message=message, status_code=422, details=details)


class AuthenticationError(AppException):
    """Authentication failed."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message=message, status_code=401)


class AuthorizationError(AppException):
    """Not authorized to perform action."""

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message=message, status_code=403)


class DuplicateError(AppException):
    """Duplicate resource."""

    def __init__(self, resource: str, field: str, value: Any):
        message = f"{resource} with {field}={value} already exists"
        super().__init__(message=message, status_code=409, details={"field": field, "value": value})


class ConcurrentModificationError(AppException):
    """Row was changed by another request between read and write."""

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} was modified concurrently, retry the request"
        if identifier:
            message = f"{resource} with id={identifier} was modified concurrently, retry the request"
        super().__init__(message=message, status_code=409)


# --- Batch provisioning ---


class GenerationError(AppException):
    """Batch identifiers could not be derived (parent course unresolvable)."""

    def __init__(self, message: str, course_id: int | None = None):
        details = {"field": "course_id", "course_id": course_id} if course_id is not None else {}
        super().__init__(message=message, status_code=422, details=details)


class InvalidDateRange(ValidationError):
    """Batch end date is not after its start date."""

    def __init__(self, start: Any, end: Any):
        super().__init__(
            message=f"End date ({end}) must be after start date ({start})",
            field="end_date",
        )
        self.details.update({"start_date": str(start), "end_date": str(end)})


class CapacityExceeded(AppException):
    """Seat count would exceed the batch capacity."""

    def __init__(self, batch_id: int | None, current: int, maximum: int):
        message = f"Batch is full: {current} of {maximum} seats taken"
        if batch_id:
            message = f"Batch with id={batch_id} is full: {current} of {maximum} seats taken"
        super().__init__(
            message=message,
            status_code=409,
            details={"field": "max_students", "current_students": current, "max_students": maximum},
        )


class InvalidStatusTransition(ValidationError):
    """Requested lifecycle transition is not allowed."""

    def __init__(self, resource: str, current: str, requested: str):
        super().__init__(
            message=f"{resource} cannot move from '{current}' to '{requested}'",
            field="status",
        )


# --- Enrollment billing ---


class DuplicateEnrollment(DuplicateError):
    """Student already holds an active invoice for the batch."""

    def __init__(self, student_id: int, batch_id: int):
        super().__init__("Enrollment", "batch_id", batch_id)
        self.message = f"Student {student_id} is already enrolled in batch {batch_id}"
        self.args = (self.message,)
        self.details["student_id"] = student_id


class AlreadyDecided(AppException):
    """Payment was already verified or rejected."""

    def __init__(self, payment_id: int, status: str):
        super().__init__(
            message=f"Payment with id={payment_id} is already {status}",
            status_code=409,
            details={"payment_id": payment_id, "status": status},
        )


class MissingReason(ValidationError):
    """Rejecting a payment requires a reason."""

    def __init__(self):
        super().__init__(message="A rejection reason is required", field="reason")
