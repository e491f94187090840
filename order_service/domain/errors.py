# order_service/domain/errors.py
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    AUTHORIZATION = "authorization"
    UPSTREAM = "upstream"
    PAYMENT_DECLINED = "payment_declined"
    INTERNAL = "internal"


class OrderServiceError(Exception):
    """
    Base error of the service. Carries a machine readable code,
    a human message and optional structured details.
    """

    kind: ErrorKind = ErrorKind.INTERNAL
    default_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationFailed(OrderServiceError):
    kind = ErrorKind.VALIDATION
    default_code = "VALIDATION_ERROR"


class NotFound(OrderServiceError):
    kind = ErrorKind.NOT_FOUND
    default_code = "NOT_FOUND"


class Conflict(OrderServiceError):
    kind = ErrorKind.CONFLICT
    default_code = "CONFLICT"


class InvalidStatusTransition(Conflict):
    default_code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, requested: str, allowed: list[str]):
        allowed_text = ", ".join(allowed) if allowed else "none"
        super().__init__(
            f"Cannot transition from '{current}' to '{requested}'. Allowed transitions: {allowed_text}",
            details={
                "current_status": current,
                "requested_status": requested,
                "allowed_transitions": allowed,
            },
        )
        self.current = current
        self.requested = requested
        self.allowed = allowed


class Unauthorized(OrderServiceError):
    kind = ErrorKind.AUTHORIZATION
    default_code = "UNAUTHORIZED"


class Forbidden(OrderServiceError):
    kind = ErrorKind.AUTHORIZATION
    default_code = "FORBIDDEN"


class UpstreamUnavailable(OrderServiceError):
    """Collaborator or payment provider failed; the caller may retry."""

    kind = ErrorKind.UPSTREAM
    default_code = "UPSTREAM_UNAVAILABLE"


class PaymentDeclined(OrderServiceError):
    kind = ErrorKind.PAYMENT_DECLINED
    default_code = "PAYMENT_FAILED"
