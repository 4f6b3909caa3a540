"""
Custom exception classes for the TextChain SMS gateway.
"""
from typing import Optional, Any, Dict
import uuid
from fastapi import HTTPException, status


class BaseAPIException(HTTPException):
    """Base exception for API errors."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.detail,
            "correlation_id": self.correlation_id,
            "context": self.context,
        }


class ServiceUnavailableError(BaseAPIException):
    """Exception for external service unavailability."""

    def __init__(
        self,
        service_name: str,
        detail: Optional[str] = None,
        retry_after: Optional[int] = None,
        **context
    ):
        self.service_name = service_name
        self.retry_after = retry_after
        if not detail:
            detail = f"External service '{service_name}' is currently unavailable"

        context_dict = {
            "service_name": service_name,
            "retry_after": retry_after,
            **context
        }

        headers = {}
        if retry_after:
            headers["Retry-After"] = str(retry_after)

        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code="TXC_503",
            headers=headers,
            context=context_dict,
        )


# External Service Exceptions
class ExternalServiceError(Exception):
    """Exception for external service call errors."""

    def __init__(
        self,
        service_name: str,
        message: str,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
        **context
    ):
        self.service_name = service_name
        self.status_code = status_code
        self.payload = payload
        self.context = context
        super().__init__(f"[{service_name}] {message}")


class ExternalServiceTimeoutError(ExternalServiceError):
    """Exception for external service timeout errors."""

    def __init__(self, service_name: str, timeout_seconds: float, **context):
        super().__init__(
            service_name=service_name,
            message=f"Service timed out after {timeout_seconds} seconds",
            **context
        )
        self.timeout_seconds = timeout_seconds


# Command handling exceptions. Each carries the SMS reply that replaces it.
class CommandError(Exception):
    """Base exception for failures recovered inside one message's handling."""

    kind = "command_error"

    def __init__(self, reply: str, detail: Optional[str] = None, **context):
        self.reply = reply
        self.context = context
        super().__init__(detail or reply)


class ValidationError(CommandError):
    """Malformed command or argument; the reply is a usage hint."""

    kind = "validation"


class NotFoundError(CommandError):
    """No account, voucher or contact for the requested key."""

    kind = "not_found"


class ResolutionError(CommandError):
    """The recipient of a transfer could not be determined."""

    kind = "resolution"


class UnavailableError(CommandError):
    """A required collaborator is unreachable or not configured."""

    kind = "unavailable"

    def __init__(self, service_name: str, reply: str = "Service offline. Try later.", detail: Optional[str] = None, **context):
        self.service_name = service_name
        super().__init__(reply, detail or f"{service_name} unavailable", **context)


class DownstreamRejection(CommandError):
    """A collaborator explicitly reported failure."""

    kind = "downstream_rejection"

    def __init__(self, reply: str, action: str, error_class: Optional[str] = None, detail: Optional[str] = None):
        self.action = action
        self.error_class = error_class
        super().__init__(reply, detail, action=action, error_class=error_class)
