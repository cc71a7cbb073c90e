"""Exception classes for structured pricing error handling."""

from __future__ import annotations

from typing import Any


class PricingError(Exception):
    """Base exception for all pricing errors.

    Attributes:
        message: Human-readable error message.
        error_code: Stable machine-readable code.
        context: Extra context (SKU id, URL, ...).
    """

    error_code = "PRICING_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class InsufficientDataError(PricingError):
    """Too few observations for any pricing to proceed."""

    error_code = "INSUFFICIENT_DATA"

    def __init__(self, message: str, sale_count: int = 0, **context: Any) -> None:
        super().__init__(message, {"sale_count": sale_count, **context})
        self.sale_count = sale_count


class CurveFitError(PricingError):
    """Zipf curve fit diverged or produced unusable parameters.

    Always recovered inside the normalization engine.
    """

    error_code = "CURVE_FIT_FAILURE"


class ExternalFetchError(PricingError):
    """A marketplace collaborator failed (network, HTTP or payload)."""

    error_code = "EXTERNAL_FETCH_FAILURE"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, {"status_code": status_code, "url": url, **context})
        self.status_code = status_code
        self.url = url


class SkuValidationError(PricingError):
    """Malformed SKU identifier or quantity."""

    error_code = "VALIDATION_FAILURE"

    def __init__(self, message: str, field: str | None = None, value: Any = None) -> None:
        super().__init__(
            message,
            {"field": field, "value": str(value) if value is not None else None},
        )
        self.field = field
        self.value = value


class PricingCancelled(PricingError):
    """Cooperative cancellation was observed."""

    error_code = "CANCELLED"


class ConfigurationError(PricingError, ValueError):
    """Invalid pricing configuration, raised before any work starts."""

    error_code = "INVALID_CONFIG"
