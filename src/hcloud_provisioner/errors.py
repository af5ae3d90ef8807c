"""Error taxonomy for provisioning runs.

Every fatal condition raised by the orchestrator, the deploy composer and the
fleet commands is a ``ProvisionError`` subclass. The CLI catches the base
class at the command boundary, prints the message and exits non-zero.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


class ErrorKind(Enum):
    """Category of a provisioning failure."""

    INVALID_INPUT = "invalid_input"
    API_ERROR = "api_error"
    RESOURCE_CREATION_FAILED = "resource_creation_failed"
    PROVISIONING_FAILED = "provisioning_failed"
    TIMEOUT = "timeout"
    TRANSFER_FAILED = "transfer_failed"
    DNS_FAILED = "dns_failed"


@dataclass(eq=False)
class ProvisionError(Exception):
    """Base error class for provisioning errors."""

    message: str
    details: dict[str, Any] = field(default_factory=dict)

    kind: ClassVar[ErrorKind] = ErrorKind.PROVISIONING_FAILED

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serialisable dict."""
        error: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.details:
            error["details"] = self.details
        return error


@dataclass(eq=False)
class InvalidInputError(ProvisionError):
    """Missing credential, unreadable key file, missing directory, bad value."""

    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_INPUT


@dataclass(eq=False)
class ApiError(ProvisionError):
    """Transport failure or an error object embedded in an API response."""

    status_code: int | None = None
    code: str | None = None

    kind: ClassVar[ErrorKind] = ErrorKind.API_ERROR


@dataclass(eq=False)
class ResourceCreationFailedError(ProvisionError):
    """A create call returned no usable resource id."""

    kind: ClassVar[ErrorKind] = ErrorKind.RESOURCE_CREATION_FAILED


@dataclass(eq=False)
class ProvisioningFailedError(ProvisionError):
    """The provider reported the server creation action as failed."""

    kind: ClassVar[ErrorKind] = ErrorKind.PROVISIONING_FAILED


@dataclass(eq=False)
class WaitTimeoutError(ProvisionError):
    """A polling loop exceeded its time budget."""

    kind: ClassVar[ErrorKind] = ErrorKind.TIMEOUT


@dataclass(eq=False)
class TransferFailedError(ProvisionError):
    """File copy or remote script execution failed."""

    returncode: int | None = None

    kind: ClassVar[ErrorKind] = ErrorKind.TRANSFER_FAILED


@dataclass(eq=False)
class DnsRegistrationError(ProvisionError):
    """The DNS provider rejected the record."""

    kind: ClassVar[ErrorKind] = ErrorKind.DNS_FAILED


def api_error_from_body(body: dict[str, Any], status_code: int | None = None) -> ApiError | None:
    """Build an ApiError from an embedded ``error`` object, if there is one.

    The provider sometimes answers with a success envelope that still carries
    an ``{"error": {"code": ..., "message": ...}}`` object.

    Args:
        body: Decoded JSON response
        status_code: HTTP status of the response

    Returns:
        ApiError, or None when the body carries no error
    """
    error = body.get("error") if isinstance(body, dict) else None
    if not error:
        return None
    if isinstance(error, dict):
        return ApiError(
            message=str(error.get("message") or error.get("code") or "API error"),
            details={k: v for k, v in error.items() if k not in ("code", "message")},
            status_code=status_code,
            code=error.get("code"),
        )
    return ApiError(message=str(error), status_code=status_code)
