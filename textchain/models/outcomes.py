"""
Per-message intermediate results: recipient resolution and downstream outcomes.

Neither survives the handling of the message that created it.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ResolutionFailure(Enum):
    """Why a recipient could not be turned into an address."""

    NOT_FOUND = "not_found"
    AMBIGUOUS_OR_INVALID_FORMAT = "ambiguous_or_invalid_format"
    RESOLUTION_SERVICE_UNAVAILABLE = "resolution_service_unavailable"


@dataclass(frozen=True)
class RecipientResolution:
    """Either a settlement address or a typed failure with its SMS reply."""

    strategy: str
    address: Optional[str] = None
    failure: Optional[ResolutionFailure] = None
    reply: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.address is not None

    @classmethod
    def to_address(cls, address: str, strategy: str) -> "RecipientResolution":
        return cls(strategy=strategy, address=address)

    @classmethod
    def failed(cls, failure: ResolutionFailure, reply: str, strategy: str) -> "RecipientResolution":
        return cls(strategy=strategy, failure=failure, reply=reply)


UNREACHABLE_ERROR_CLASSES = ("timeout", "unavailable", "server_error")


@dataclass(frozen=True)
class DownstreamOutcome:
    """
    The shape every external call collapses to before reply rendering.

    ``error_class`` is ``None`` for explicit rejections reported by the
    collaborator, ``"timeout"`` or ``"unavailable"`` when the call itself
    did not complete, and ``"server_error"`` when the collaborator answered
    with a 5xx body. A ``server_error`` keeps the body and its message.
    """

    success: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    error_class: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "DownstreamOutcome":
        """Collapse a loosely typed ``{success, ..., error?}`` body."""
        if not isinstance(payload, dict):
            return cls(success=False, error_class="malformed", message="Unexpected response shape")
        success = payload.get("success") is True
        error = payload.get("error")
        return cls(
            success=success,
            payload=payload,
            message=None if success else str(error or "Unknown error"),
        )

    @classmethod
    def timed_out(cls, message: str) -> "DownstreamOutcome":
        return cls(success=False, error_class="timeout", message=message)

    @classmethod
    def unavailable(cls, message: str) -> "DownstreamOutcome":
        return cls(success=False, error_class="unavailable", message=message)

    @classmethod
    def server_error(cls, payload: Dict[str, Any], message: str) -> "DownstreamOutcome":
        return cls(success=False, payload=payload, error_class="server_error", message=message)

    @property
    def unreachable(self) -> bool:
        """True when the collaborator could not give a usable answer."""
        return self.error_class in UNREACHABLE_ERROR_CLASSES

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)
