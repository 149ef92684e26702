from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class BaseSchema(BaseModel):
    """Base Pydantic schema with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class ErrorDetail(BaseSchema):
    """Error detail for a specific field."""

    field: str | None = None
    message: str


class ApiResponse(BaseSchema, Generic[T]):
    """Envelope for every successful response: {success, data, message}."""

    success: bool = True
    data: T
    message: str | None = None


class ErrorResponse(BaseSchema):
    """Standard error response wrapper; error_code is the exception kind."""

    success: bool = False
    data: None = None
    message: str
    error_code: str | None = None
    errors: list[ErrorDetail] = []


class PaginatedResponse(BaseSchema, Generic[T]):
    """One page of a list endpoint (invoices, batches, the verification queue)."""

    items: list[T]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def create(cls, items: list[T], total: int, page: int, limit: int) -> "PaginatedResponse[T]":
        pages = (total + limit - 1) // limit if limit > 0 else 0
        return cls(items=items, total=total, page=page, limit=limit, pages=pages)

