"""
PURPOSE: API error type rendered as {"error": <code>} by the application's exception handler.
"""

from typing import Any, Dict, Optional

from fastapi import status


class ApiError(Exception):
    """
    PURPOSE: Request failure carrying an HTTP status and a machine-readable error code.

    Raised by routes and dependencies; create_app() registers a handler that
    renders it as a JSON body {"error": code}.

    Attributes:
        status_code: HTTP status of the response.
        error: Error code placed in the response body.
        extra: Optional additional body fields.
    """

    def __init__(
        self,
        status_code: int,
        error: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.extra = extra or {}

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.error, **self.extra}


def invalid_signature() -> ApiError:
    return ApiError(status.HTTP_401_UNAUTHORIZED, "invalid_signature")


def rate_limited() -> ApiError:
    return ApiError(status.HTTP_429_TOO_MANY_REQUESTS, "rate_limited")


def missing_field(field: str) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, f"missing_{field}")


def invalid_field(field: str) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, f"invalid_{field}")


def not_found() -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, "not_found")


def store_error() -> ApiError:
    return ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, "store_error")
