from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException


class C4CError(Exception):
    """Base class for every failure the resolution pipeline can surface."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "c4c_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def details(self) -> dict[str, Any] | None:
        return None


class InvalidInput(C4CError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_input"


class InvalidTenantUrl(InvalidInput):
    code = "invalid_tenant_url"


class MissingTicketId(InvalidInput):
    code = "missing_ticket_id"

    def __init__(self, message: str = "ticketId is required.") -> None:
        super().__init__(message)


class MissingCredentials(InvalidInput):
    code = "missing_credentials"

    def __init__(self, message: str = "Basic Auth credentials are required.") -> None:
        super().__init__(message)


class NotFound(C4CError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class TicketNotFound(NotFound):
    code = "ticket_not_found"

    def __init__(self, message: str = "Ticket not found or missing ObjectID.") -> None:
        super().__init__(message)


class UpstreamError(C4CError):
    """Non-2xx answer (or transport failure) from the C4C tenant.

    ``body_text`` keeps the raw upstream body for diagnostics; it is never
    parsed.
    """

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "upstream_error"

    def __init__(self, upstream_status: int, body_text: str, message: str | None = None) -> None:
        super().__init__(message or f"Upstream error {upstream_status}: {body_text}")
        self.upstream_status = upstream_status
        self.body_text = body_text

    def details(self) -> dict[str, Any] | None:
        return {"upstream_status": self.upstream_status}


class UpstreamMalformedResponse(C4CError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "upstream_malformed_response"

    def __init__(self, message: str = "Upstream response was not valid JSON.") -> None:
        super().__init__(message)


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def c4c_exception_handler(request: Request, exc: C4CError):
    return ErrorEnvelope(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details(),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(status_code=exc.status_code, code="http_error", message=message, details=details)


def _describe_validation_error(error: dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    message = error.get("msg", "invalid value")
    return f"{location}: {message}" if location else str(message)


async def validation_exception_handler(request: Request, exc):  # type: ignore[override]
    from fastapi.exceptions import RequestValidationError

    if isinstance(exc, RequestValidationError):
        errors = exc.errors()
        # Several missing fields are reported as one display string.
        message = ", ".join(_describe_validation_error(error) for error in errors) or "Validation failed"
        return ErrorEnvelope(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message=message,
            details={"errors": errors},
        )
    raise exc
