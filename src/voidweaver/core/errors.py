"""Error taxonomy shared by the adapters, the orchestrator and the API layer.

Every failure that can reach a caller is expressed as a :class:`VoidWeaverError`
subclass.  The ``kind`` attribute is the stable machine-readable code sent on
the wire; ``status_code`` is the HTTP status used by the synchronous endpoints.

=============================  ======  =========================================
Class                          Status  Meaning
=============================  ======  =========================================
``InvalidCredentialError``     401     Provider rejected (or request lacked) a key
``RateLimitedError``           429     Provider throttled the caller
``ProviderError``              502     Any other non-2xx provider response
``ProviderEmptyResponseError`` 502     Successful response with zero candidates
``ProviderNoImageDataError``   502     Successful response without image bytes
``UnsupportedEngineError``     400     Engine is neither supported variant
``InvalidRequestError``        400     Request cannot be executed as given
``InternalError``              500     Anything not otherwise classified
=============================  ======  =========================================
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    INVALID_CREDENTIAL = "INVALID_API_KEY"
    RATE_LIMITED = "RATE_LIMITED"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    PROVIDER_EMPTY_RESPONSE = "PROVIDER_EMPTY_RESPONSE"
    PROVIDER_NO_IMAGE_DATA = "PROVIDER_NO_IMAGE_DATA"
    UNSUPPORTED_ENGINE = "UNSUPPORTED_ENGINE"
    INVALID_REQUEST = "INVALID_REQUEST"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class VoidWeaverError(Exception):
    """Base class for all classified failures.

    Args:
        message: Human-readable description, forwarded to the caller verbatim.
        provider_status: HTTP status returned by the provider, if any.
        provider_body: Raw provider error body, kept for diagnostics.
    """

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        provider_status: int | None = None,
        provider_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider_status = provider_status
        self.provider_body = provider_body

    def __str__(self) -> str:
        return self.message

    def to_error(self) -> dict[str, Any]:
        return {
            "error": True,
            "message": self.message,
            "code": self.kind.value,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class InvalidCredentialError(VoidWeaverError):
    kind = ErrorKind.INVALID_CREDENTIAL
    status_code = 401


class RateLimitedError(VoidWeaverError):
    kind = ErrorKind.RATE_LIMITED
    status_code = 429


class ProviderError(VoidWeaverError):
    kind = ErrorKind.PROVIDER_ERROR
    status_code = 502


class ProviderEmptyResponseError(VoidWeaverError):
    kind = ErrorKind.PROVIDER_EMPTY_RESPONSE
    status_code = 502


class ProviderNoImageDataError(VoidWeaverError):
    kind = ErrorKind.PROVIDER_NO_IMAGE_DATA
    status_code = 502


class UnsupportedEngineError(VoidWeaverError):
    kind = ErrorKind.UNSUPPORTED_ENGINE
    status_code = 400


class InvalidRequestError(VoidWeaverError):
    kind = ErrorKind.INVALID_REQUEST
    status_code = 400


class InternalError(VoidWeaverError):
    kind = ErrorKind.INTERNAL_ERROR
    status_code = 500


def classify_status(status: int, body: str, provider: str) -> VoidWeaverError:
    """Map a non-2xx provider response onto the error taxonomy.

    Args:
        status: HTTP status code returned by the provider.
        body: Raw response body (kept unmodified on the error).
        provider: Display name used in the message, e.g. ``"NovelAI"``.

    Returns:
        The classified error.  The caller raises it.
    """
    if status in (401, 403):
        return InvalidCredentialError(
            f"{provider} rejected the API key ({status}): {body}",
            provider_status=status,
            provider_body=body,
        )
    if status == 429:
        return RateLimitedError(
            f"{provider} rate limit exceeded ({status}): {body}",
            provider_status=status,
            provider_body=body,
        )
    return ProviderError(
        f"{provider} Error ({status}): {body}",
        provider_status=status,
        provider_body=body,
    )


def as_voidweaver_error(exc: BaseException) -> VoidWeaverError:
    """Return *exc* unchanged if already classified, else wrap it as internal."""
    if isinstance(exc, VoidWeaverError):
        return exc
    return InternalError(f"Internal server error: {exc}")
