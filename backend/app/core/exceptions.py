"""Domain error taxonomy for the promotion engine.

Every error carries a stable ``kind`` string that is exposed to API clients
and an HTTP status used by the exception handler registered in ``app.main``.
"""

from typing import Optional


class PromotionEngineError(Exception):
    """Base class for all engine errors."""

    kind = "engine_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, *, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = {
            "error": self.kind,
            "detail": self.message,
            "retryable": self.retryable,
        }
        if self.field:
            payload["field"] = self.field
        return payload


class ValidationError(PromotionEngineError):
    """Malformed or out-of-range input, rejected before any write."""

    kind = "validation_error"
    status_code = 422


class NotFoundError(PromotionEngineError):
    """Referenced campaign, coupon or order does not exist."""

    kind = "not_found"
    status_code = 404


class ForbiddenError(PromotionEngineError):
    """Operation not allowed on this resource (e.g. inactive campaign)."""

    kind = "forbidden"
    status_code = 403


class InvalidStateError(PromotionEngineError):
    """Coupon already used or expired."""

    kind = "invalid_state"
    status_code = 409


class InvalidTransitionError(InvalidStateError):
    """Order status change not on the allow-list."""

    kind = "invalid_transition"

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move order from '{current}' to '{requested}'")


class RedemptionConflictError(PromotionEngineError):
    """Concurrent redemption won the race; the caller may try again."""

    kind = "redemption_conflict"
    status_code = 409
    retryable = True

    def __init__(self, coupon_id: int, attempts: int):
        self.coupon_id = coupon_id
        self.attempts = attempts
        super().__init__(
            f"Redemption conflict for coupon {coupon_id} after {attempts} attempts, try again"
        )


class CodeGenerationError(PromotionEngineError):
    """Could not find a free coupon code within the retry budget."""

    kind = "code_generation_failed"
    status_code = 503
    retryable = True
