from uuid import UUID

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ForbiddenError(HTTPException):
    def __init__(self, detail: str = "Access denied"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class BadRequestError(HTTPException):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ValidationError(HTTPException):
    def __init__(self, detail: str = "Invalid input"):
        super().__init__(status_code=422, detail=detail)


class UnauthorizedError(HTTPException):
    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class EmptyCartError(ValidationError):
    def __init__(self, detail: str = "Your cart is empty"):
        super().__init__(detail=detail)


class ProductUnavailableError(ConflictError):
    """A product referenced by a cart is no longer available for sale."""

    def __init__(self, product_id: UUID, product_name: str, product_status: str | None = None):
        self.product_id = product_id
        self.product_name = product_name
        self.product_status = product_status
        super().__init__(
            detail=(
                f"Product '{product_name}' is no longer available. "
                "Remove it from your cart and try again."
            )
        )


class InvalidStatusTransitionError(BadRequestError):
    def __init__(self, current: str, requested: str, allowed: set[str]):
        allowed_str = ", ".join(sorted(allowed)) if allowed else "none"
        super().__init__(
            detail=(
                f"Invalid status transition from '{current}' to '{requested}'. "
                f"Allowed transitions: {allowed_str}"
            )
        )
