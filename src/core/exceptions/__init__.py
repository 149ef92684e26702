from src.core.exceptions.base import (
    AppException,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    DuplicateError,
    ConcurrentModificationError,
    GenerationError,
    InvalidDateRange,
    CapacityExceeded,
    InvalidStatusTransition,
    DuplicateEnrollment,
    AlreadyDecided,
    MissingReason,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "DuplicateError",
    "ConcurrentModificationError",
    "GenerationError",
    "InvalidDateRange",
    "CapacityExceeded",
    "InvalidStatusTransition",
    "DuplicateEnrollment",
    "AlreadyDecided",
    "MissingReason",
]
